from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

BinTypeLiteral = Literal["dry", "wet", "metal"]
IngestionStatusLiteral = Literal["empty", "low", "medium", "high", "full"]
DisplayStatusLiteral = Literal["normal", "warning", "full"]
ComplianceRatingLiteral = Literal["excellent", "good", "poor"]

BIN_TYPES: tuple[str, ...] = ("dry", "wet", "metal")
DEFAULT_BIN_HEIGHT_CM = 30.0

BIN_DISPLAY_NAMES: dict[str, str] = {
    "dry": "Dry Waste",
    "wet": "Wet Waste",
    "metal": "Metal Waste",
}

# Storage-side severity. Upper bounds are inclusive; anything above the last is "full".
INGESTION_STATUS_BANDS: tuple[tuple[float, str], ...] = (
    (10.0, "empty"),
    (30.0, "low"),
    (60.0, "medium"),
    (85.0, "high"),
)

# Display-side severity. Lower bounds are inclusive.
DISPLAY_FULL_MIN = 95.0
DISPLAY_WARNING_MIN = 80.0

DISPLAY_STATUS_LABELS: dict[str, str] = {
    "normal": "Good",
    "warning": "Nearly Full",
    "full": "Full",
}

DISPLAY_STATUS_SCORES: dict[str, int] = {
    "full": 30,
    "warning": 70,
    "normal": 95,
}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class BinReading(BaseModel):
    """One distance measurement as posted by a bin sensor."""

    model_config = ConfigDict(frozen=True)

    bin_type: BinTypeLiteral
    distance_cm: float = Field(ge=0, strict=True, allow_inf_nan=False)
    bin_height_cm: float = Field(default=DEFAULT_BIN_HEIGHT_CM, gt=0, strict=True, allow_inf_nan=False)

    @field_validator("bin_height_cm", mode="before")
    @classmethod
    def _default_height(cls, value: Any) -> Any:
        return DEFAULT_BIN_HEIGHT_CM if value is None else value


class BinRecord(BaseModel):
    bin_type: BinTypeLiteral
    fill_level: float = Field(ge=0, le=100)
    status: IngestionStatusLiteral
    distance_cm: float
    bin_height_cm: float
    last_updated: datetime

    @field_validator("last_updated")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class IngestResponse(BaseModel):
    success: bool = True
    data: BinRecord
    message: str


class BinResponse(BaseModel):
    success: bool = True
    data: BinRecord


class BinListResponse(BaseModel):
    success: bool = True
    data: list[BinRecord]


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    field: str | None = None


class BinDisplay(BaseModel):
    bin_type: BinTypeLiteral
    display_name: str
    fill_level: float
    status: DisplayStatusLiteral
    status_label: str
    last_updated: datetime | None = None


class ComplianceSnapshot(BaseModel):
    bins: list[BinDisplay]
    compliance_score: int = Field(ge=0, le=100)
    rating: ComplianceRatingLiteral
    rating_label: str
