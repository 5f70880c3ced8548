from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Mapping

from backoffice.core.clock import now_utc
from backoffice.domain.orders.models import (
    ORDER_STATUS_METADATA,
    ORDER_STATUS_TRANSITIONS,
    ORDER_STATUSES,
    StatusMetadata,
    TimelineEntry,
)


class TimelineGenerator:
    """Builds and advances the per-status timeline stored on each order.

    The timeline always has one entry per status, in pipeline order. Entries
    before the active step are ``completed``, the active step is ``current``
    and everything after it is ``pending``. Once the terminal status is
    reached its entry is ``completed`` too and no entry is ``current``.
    """

    def __init__(
        self,
        metadata: Mapping[str, StatusMetadata] = ORDER_STATUS_METADATA,
        statuses: tuple[str, ...] = ORDER_STATUSES,
        transitions: Mapping[str, tuple[str, ...]] = ORDER_STATUS_TRANSITIONS,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.metadata = metadata
        self.statuses = statuses
        self.transitions = transitions
        self.clock = clock

    def is_terminal(self, status: str) -> bool:
        return not self.transitions.get(status)

    def generate_initial(self) -> list[TimelineEntry]:
        now = self.clock()
        entries: list[TimelineEntry] = []
        for index, status in enumerate(self.statuses):
            meta = self.metadata[status]
            if index == 0:
                entries.append(
                    TimelineEntry(
                        step=meta.step,
                        state="current",
                        title=meta.title,
                        description=meta.description,
                        date=now,
                    )
                )
            else:
                entries.append(
                    TimelineEntry(
                        step=meta.step,
                        state="pending",
                        title=meta.title,
                        description=meta.description,
                        estimated_date=now + timedelta(days=meta.estimated_days),
                    )
                )
        return entries

    def update(
        self,
        timeline: list[TimelineEntry],
        new_status: str,
        performed_by: str | None = None,
    ) -> list[TimelineEntry]:
        target_step = self.metadata[new_status].step
        target_state = "completed" if self.is_terminal(new_status) else "current"

        for entry in timeline:
            if entry.step == target_step and entry.state == target_state:
                # already applied
                return list(timeline)

        now = self.clock()
        updated: list[TimelineEntry] = []
        for entry in timeline:
            if entry.step == target_step:
                entry = entry.model_copy(
                    update={"state": target_state, "date": now, "performed_by": performed_by}
                )
            elif entry.state == "current":
                entry = entry.model_copy(
                    update={"state": "completed", "date": now, "performed_by": performed_by}
                )
            updated.append(entry)
        return updated
