from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any, Protocol

from binwatch.exceptions import TransportError
from binwatch.models.schemas import (
    BIN_DISPLAY_NAMES,
    DISPLAY_FULL_MIN,
    DISPLAY_STATUS_LABELS,
    DISPLAY_STATUS_SCORES,
    DISPLAY_WARNING_MIN,
    BinDisplay,
    BinRecord,
    ComplianceSnapshot,
)

LOGGER = logging.getLogger(__name__)

COMPLIANCE_RATING_LABELS: dict[str, str] = {
    "excellent": "Excellent",
    "good": "Good",
    "poor": "Needs Attention",
}


class BinSource(Protocol):
    async def fetch_bins(self) -> list[BinRecord]:
        ...


class ChangeFeed(Protocol):
    def subscribe(self) -> AbstractAsyncContextManager[AsyncIterator[dict[str, Any]]]:
        ...


def derive_display_status(fill_level: float) -> str:
    if fill_level >= DISPLAY_FULL_MIN:
        return "full"
    if fill_level >= DISPLAY_WARNING_MIN:
        return "warning"
    return "normal"


def compute_compliance_score(bins: Iterable[Any]) -> int:
    """Mean of per-bin scores, rounded half-up. No bins means a score of 0."""
    scores = [DISPLAY_STATUS_SCORES.get(item.status, DISPLAY_STATUS_SCORES["normal"]) for item in bins]
    if not scores:
        return 0
    return math.floor(sum(scores) / len(scores) + 0.5)


def rate_compliance(score: int) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    return "poor"


def to_display(record: BinRecord) -> BinDisplay:
    status = derive_display_status(record.fill_level)
    return BinDisplay(
        bin_type=record.bin_type,
        display_name=BIN_DISPLAY_NAMES[record.bin_type],
        fill_level=record.fill_level,
        status=status,
        status_label=DISPLAY_STATUS_LABELS[status],
        last_updated=record.last_updated,
    )


def build_snapshot(records: Iterable[BinRecord]) -> ComplianceSnapshot:
    bins = [to_display(record) for record in records]
    score = compute_compliance_score(bins)
    rating = rate_compliance(score)
    return ComplianceSnapshot(
        bins=bins,
        compliance_score=score,
        rating=rating,
        rating_label=COMPLIANCE_RATING_LABELS[rating],
    )


@dataclass(frozen=True, slots=True)
class DashboardState:
    bins: list[BinDisplay] = field(default_factory=list)
    compliance_score: int = 0
    rating: str = "poor"
    connected: bool = False
    last_refreshed: datetime | None = None
    error: str | None = None

    @property
    def rating_label(self) -> str:
        return COMPLIANCE_RATING_LABELS[self.rating]


class DashboardViewModel:
    """Keeps the dashboard state in step with the bin store.

    Every change notification triggers a full refetch; the payload is ignored.
    Refreshes may overlap and whichever finishes last defines the state.
    """

    def __init__(
        self,
        source: BinSource,
        feed: ChangeFeed | None = None,
        *,
        on_render: Callable[[DashboardState], None] | None = None,
    ) -> None:
        self.source = source
        self.feed = feed
        self.on_render = on_render
        self.state = DashboardState()
        self._pending: set[asyncio.Task[DashboardState]] = set()

    def _publish(self, state: DashboardState) -> DashboardState:
        self.state = state
        if self.on_render is not None:
            self.on_render(state)
        return state

    def mark_disconnected(self, error: Exception | str) -> DashboardState:
        # Last known bins and score stay on screen.
        return self._publish(replace(self.state, connected=False, error=str(error)))

    async def refresh(self) -> DashboardState:
        try:
            records = await self.source.fetch_bins()
        except TransportError as exc:
            LOGGER.warning("Bin fetch failed: %s", exc)
            return self.mark_disconnected(exc)

        snapshot = build_snapshot(records)
        return self._publish(
            DashboardState(
                bins=snapshot.bins,
                compliance_score=snapshot.compliance_score,
                rating=snapshot.rating,
                connected=True,
                last_refreshed=datetime.now(tz=UTC),
                error=None,
            )
        )

    def schedule_refresh(self) -> asyncio.Task[DashboardState]:
        task = asyncio.create_task(self.refresh())
        self._pending.add(task)
        task.add_done_callback(self._on_refresh_done)
        return task

    def _on_refresh_done(self, task: asyncio.Task[DashboardState]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            LOGGER.error("Dashboard refresh failed", exc_info=task.exception())

    async def _cancel_pending(self) -> None:
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pending.clear()

    async def run(self) -> None:
        if self.feed is None:
            raise RuntimeError("DashboardViewModel.run() needs a change feed")

        try:
            async with self.feed.subscribe() as events:
                await self.refresh()
                async for _event in events:
                    self.schedule_refresh()
        except TransportError as exc:
            LOGGER.warning("Change feed lost: %s", exc)
            self.mark_disconnected(exc)
            raise
        finally:
            await self._cancel_pending()
