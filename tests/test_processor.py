from datetime import UTC, datetime
from pathlib import Path

import pytest

from binwatch.exceptions import StorageError, ValidationError
from binwatch.ingestion.processor import (
    IngestionProcessor,
    calculate_fill_level,
    classify_ingestion_status,
    format_summary,
)
from binwatch.models.database import DatabaseManager
from binwatch.models.schemas import BinRecord

FIXED_NOW = datetime(2026, 3, 14, 9, 30, tzinfo=UTC)


class RecordingStore:
    def __init__(self) -> None:
        self.rows: dict[str, BinRecord] = {}
        self.writes = 0

    def upsert_bin(self, record: BinRecord) -> BinRecord:
        self.writes += 1
        self.rows[record.bin_type] = record
        return record

    def list_bins(self) -> list[BinRecord]:
        return [self.rows[key] for key in sorted(self.rows)]

    def get_bin(self, bin_type: str) -> BinRecord | None:
        return self.rows.get(bin_type)


class BrokenStore(RecordingStore):
    def upsert_bin(self, record: BinRecord) -> BinRecord:
        raise StorageError("disk I/O error")


def _processor(store, notifications=None) -> IngestionProcessor:
    on_change = notifications.append if notifications is not None else None
    return IngestionProcessor(store, on_change=on_change, clock=lambda: FIXED_NOW)


def test_calculate_fill_level_midpoint() -> None:
    assert calculate_fill_level(distance_cm=15.0, bin_height_cm=30.0) == 50.0


def test_calculate_fill_level_bounds() -> None:
    assert calculate_fill_level(distance_cm=30.0, bin_height_cm=30.0) == 0.0
    assert calculate_fill_level(distance_cm=0.0, bin_height_cm=30.0) == 100.0
    assert calculate_fill_level(distance_cm=35.0, bin_height_cm=30.0) == 0.0
    assert calculate_fill_level(distance_cm=10_000.0, bin_height_cm=30.0) == 0.0


def test_calculate_fill_level_uses_default_height() -> None:
    assert calculate_fill_level(distance_cm=27.0) == 10.0


def test_calculate_fill_level_keeps_two_decimals() -> None:
    fill = calculate_fill_level(distance_cm=10.0, bin_height_cm=30.0)
    assert fill == 66.67
    for distance in (0.1, 1.7, 7.77, 13.3333, 22.9, 29.99):
        value = calculate_fill_level(distance_cm=distance, bin_height_cm=30.0)
        assert 0.0 <= value <= 100.0
        assert round(value, 2) == value


def test_calculate_fill_level_small_gaps() -> None:
    # (8 - 7.9998) / 8 * 100 == 0.0025
    assert calculate_fill_level(distance_cm=7.9998, bin_height_cm=8.0) == 0.0
    assert calculate_fill_level(distance_cm=0.5, bin_height_cm=8.0) == 93.75


@pytest.mark.parametrize(
    ("fill_level", "expected"),
    [
        (0.0, "empty"),
        (10.0, "empty"),
        (10.01, "low"),
        (30.0, "low"),
        (30.5, "medium"),
        (60.0, "medium"),
        (60.01, "high"),
        (85.0, "high"),
        (85.01, "full"),
        (100.0, "full"),
    ],
)
def test_ingestion_status_bands(fill_level: float, expected: str) -> None:
    assert classify_ingestion_status(fill_level) == expected


def test_ingestion_status_is_monotonic() -> None:
    order = ["empty", "low", "medium", "high", "full"]
    levels = [step / 4 for step in range(0, 401)]
    tiers = [order.index(classify_ingestion_status(level)) for level in levels]
    assert tiers == sorted(tiers)


@pytest.mark.asyncio
async def test_ingest_stores_and_notifies() -> None:
    store = RecordingStore()
    notifications: list[BinRecord] = []

    record = await _processor(store, notifications).ingest("wet", 15, 30)

    assert record.fill_level == 50.0
    assert record.status == "medium"
    assert record.distance_cm == 15.0
    assert record.bin_height_cm == 30.0
    assert record.last_updated == FIXED_NOW
    assert store.rows["wet"] == record
    assert notifications == [record]
    assert format_summary(record) == "wet bin updated: 50% full (medium)"


@pytest.mark.asyncio
async def test_ingest_defaults_height() -> None:
    store = RecordingStore()
    record = await _processor(store).ingest_payload({"bin_type": "dry", "distance_cm": 35, "bin_height_cm": None})
    assert record.bin_height_cm == 30.0
    assert record.fill_level == 0.0
    assert record.status == "empty"


@pytest.mark.asyncio
async def test_ingest_awaits_async_callback() -> None:
    seen: list[str] = []

    async def on_change(record: BinRecord) -> None:
        seen.append(record.bin_type)

    processor = IngestionProcessor(RecordingStore(), on_change=on_change)
    await processor.ingest("metal", 0)
    assert seen == ["metal"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("payload", "field"),
    [
        ({"bin_type": "plastic", "distance_cm": 10}, "bin_type"),
        ({"distance_cm": 10}, "bin_type"),
        ({"bin_type": "dry", "distance_cm": -1}, "distance_cm"),
        ({"bin_type": "dry", "distance_cm": "12"}, "distance_cm"),
        ({"bin_type": "dry", "distance_cm": True}, "distance_cm"),
        ({"bin_type": "dry"}, "distance_cm"),
        ({"bin_type": "dry", "distance_cm": 5, "bin_height_cm": 0}, "bin_height_cm"),
        ({"bin_type": "dry", "distance_cm": 5, "bin_height_cm": -30}, "bin_height_cm"),
    ],
)
async def test_invalid_reading_never_reaches_storage(payload: dict, field: str) -> None:
    store = RecordingStore()
    notifications: list[BinRecord] = []

    with pytest.raises(ValidationError) as excinfo:
        await _processor(store, notifications).ingest_payload(payload)

    assert excinfo.value.field == field
    assert store.writes == 0
    assert notifications == []


@pytest.mark.asyncio
async def test_non_mapping_body_is_rejected() -> None:
    with pytest.raises(ValidationError) as excinfo:
        await _processor(RecordingStore()).ingest_payload([1, 2, 3])  # type: ignore[arg-type]
    assert excinfo.value.field == "body"


@pytest.mark.asyncio
async def test_storage_failure_skips_notification() -> None:
    notifications: list[BinRecord] = []
    with pytest.raises(StorageError):
        await _processor(BrokenStore(), notifications).ingest("dry", 12)
    assert notifications == []


@pytest.mark.asyncio
async def test_repeated_ingest_keeps_single_record(tmp_path: Path) -> None:
    db = DatabaseManager(tmp_path / "bins.db")
    db.initialize()
    processor = _processor(db)

    first = await processor.ingest("metal", 4.5, 30)
    second = await processor.ingest("metal", 4.5, 30)

    assert first == second
    assert db.list_bins() == [second]
    db.close()
