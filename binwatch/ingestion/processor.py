from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError

from binwatch.exceptions import StorageError, ValidationError
from binwatch.models.schemas import (
    DEFAULT_BIN_HEIGHT_CM,
    INGESTION_STATUS_BANDS,
    BinReading,
    BinRecord,
)

LOGGER = logging.getLogger(__name__)

ChangeCallback = Callable[[BinRecord], Awaitable[None] | None]

_FIELD_ERRORS: dict[str, str] = {
    "bin_type": "Invalid bin_type. Must be dry, wet, or metal",
    "distance_cm": "Invalid distance_cm. Must be a non-negative number",
    "bin_height_cm": "Invalid bin_height_cm. Must be a positive number",
}


class BinStore(Protocol):
    def upsert_bin(self, record: BinRecord) -> BinRecord:
        ...

    def list_bins(self) -> list[BinRecord]:
        ...

    def get_bin(self, bin_type: str) -> BinRecord | None:
        ...


def _round_half_up(value: float, digits: int = 2) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def calculate_fill_level(distance_cm: float, bin_height_cm: float = DEFAULT_BIN_HEIGHT_CM) -> float:
    """Percentage of the bin occupied by waste.

    The sensor sits at the top of the bin and reports the empty gap down to the
    waste surface, so a shorter distance means a fuller bin. Readings beyond the
    bin height clamp to 0.
    """
    fill = ((bin_height_cm - distance_cm) / bin_height_cm) * 100
    return _round_half_up(max(0.0, min(100.0, fill)))


def classify_ingestion_status(fill_level: float) -> str:
    for upper, status in INGESTION_STATUS_BANDS:
        if fill_level <= upper:
            return status
    return "full"


def format_summary(record: BinRecord) -> str:
    return f"{record.bin_type} bin updated: {record.fill_level:g}% full ({record.status})"


def parse_reading(payload: Mapping[str, Any]) -> BinReading:
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object", field="body")
    try:
        return BinReading.model_validate(dict(payload))
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = str(first["loc"][0]) if first["loc"] else "body"
        raise ValidationError(_FIELD_ERRORS.get(field, first["msg"]), field=field) from exc


def build_record(reading: BinReading, *, timestamp: datetime) -> BinRecord:
    fill_level = calculate_fill_level(reading.distance_cm, reading.bin_height_cm)
    return BinRecord(
        bin_type=reading.bin_type,
        fill_level=fill_level,
        status=classify_ingestion_status(fill_level),
        distance_cm=reading.distance_cm,
        bin_height_cm=reading.bin_height_cm,
        last_updated=timestamp,
    )


class IngestionProcessor:
    def __init__(
        self,
        store: BinStore,
        *,
        on_change: ChangeCallback | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.on_change = on_change
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    async def ingest(
        self,
        bin_type: str,
        distance_cm: float,
        bin_height_cm: float | None = None,
    ) -> BinRecord:
        payload: dict[str, Any] = {"bin_type": bin_type, "distance_cm": distance_cm}
        if bin_height_cm is not None:
            payload["bin_height_cm"] = bin_height_cm
        return await self.ingest_payload(payload)

    async def ingest_payload(self, payload: Mapping[str, Any]) -> BinRecord:
        try:
            reading = parse_reading(payload)
        except ValidationError as exc:
            LOGGER.warning("Rejected reading on %s: %s", exc.field, exc)
            raise

        record = build_record(reading, timestamp=self._clock())
        try:
            stored = self.store.upsert_bin(record)
        except StorageError:
            LOGGER.exception("Failed to store reading for %s bin", reading.bin_type)
            raise

        LOGGER.info("%s", format_summary(stored))

        if self.on_change is not None:
            maybe_awaitable = self.on_change(stored)
            if asyncio.iscoroutine(maybe_awaitable):
                await maybe_awaitable
        return stored

    def list_bins(self) -> list[BinRecord]:
        try:
            return self.store.list_bins()
        except StorageError:
            LOGGER.exception("Failed to fetch bin data")
            raise

    def get_bin(self, bin_type: str) -> BinRecord | None:
        try:
            return self.store.get_bin(bin_type)
        except StorageError:
            LOGGER.exception("Failed to fetch %s bin", bin_type)
            raise
