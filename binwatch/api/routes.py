from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from binwatch.dashboard.view_model import build_snapshot
from binwatch.exceptions import StorageError, ValidationError
from binwatch.ingestion.processor import IngestionProcessor, format_summary
from binwatch.models.schemas import (
    BIN_TYPES,
    BinListResponse,
    BinResponse,
    ComplianceSnapshot,
    ErrorResponse,
    IngestResponse,
)

router = APIRouter(prefix="/api")


def _processor(request: Request) -> IngestionProcessor:
    return request.app.state.processor


async def _read_json(request: Request) -> Any:
    raw = await request.body()
    if not raw.strip():
        raise ValidationError("Request body is required", field="body")
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise ValidationError("Request body must be valid JSON", field="body") from exc


def _error(status_code: int, message: str, field: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, field=field).model_dump(exclude_none=True),
    )


@router.post(
    "/bins",
    response_model=IngestResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def ingest_reading(request: Request) -> IngestResponse | JSONResponse:
    try:
        payload = await _read_json(request)
        record = await _processor(request).ingest_payload(payload)
    except ValidationError as exc:
        return _error(400, str(exc), exc.field)
    except StorageError:
        return _error(500, "Failed to update bin data")

    return IngestResponse(data=record, message=format_summary(record))


@router.get("/bins", response_model=BinListResponse, responses={500: {"model": ErrorResponse}})
async def list_bins(request: Request) -> BinListResponse | JSONResponse:
    try:
        records = _processor(request).list_bins()
    except StorageError:
        return _error(500, "Failed to fetch bin data")
    return BinListResponse(data=records)


@router.get(
    "/bins/{bin_type}",
    response_model=BinResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_bin(bin_type: str, request: Request) -> BinResponse | JSONResponse:
    if bin_type not in BIN_TYPES:
        return _error(400, "Invalid bin_type. Must be dry, wet, or metal", "bin_type")
    try:
        record = _processor(request).get_bin(bin_type)
    except StorageError:
        return _error(500, "Failed to fetch bin data")
    if record is None:
        return _error(404, f"No reading received yet for {bin_type} bin")
    return BinResponse(data=record)


@router.get("/dashboard", response_model=ComplianceSnapshot, responses={500: {"model": ErrorResponse}})
async def dashboard_snapshot(request: Request) -> ComplianceSnapshot | JSONResponse:
    try:
        records = _processor(request).list_bins()
    except StorageError:
        return _error(500, "Failed to fetch bin data")
    return build_snapshot(records)
