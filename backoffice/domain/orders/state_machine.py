from __future__ import annotations

from typing import Mapping

from backoffice.domain.errors import InvalidTransition
from backoffice.domain.orders.models import ORDER_STATUS_TRANSITIONS, Order
from backoffice.domain.orders.timeline import TimelineGenerator


class OrderStateMachine:
    def __init__(
        self,
        transitions: Mapping[str, tuple[str, ...]] = ORDER_STATUS_TRANSITIONS,
        timeline: TimelineGenerator | None = None,
    ):
        self.transitions = transitions
        self.timeline = timeline or TimelineGenerator(transitions=transitions)

    def valid_next_statuses(self, current: str) -> list[str]:
        return list(self.transitions.get(current, ()))

    def validate_transition(self, current: str, requested: str) -> bool:
        return requested in self.transitions.get(current, ())

    def apply_transition(self, order: Order, requested: str, performed_by: str | None = None) -> Order:
        if not self.validate_transition(order.status, requested):
            valid = self.valid_next_statuses(order.status)
            if valid:
                hint = f"valid transitions from {order.status} are: {', '.join(valid)}"
            else:
                hint = f"{order.status} is a terminal status with no further transitions"
            raise InvalidTransition(f"invalid status transition: {order.status} -> {requested}. {hint}")

        timeline = order.timeline or self.timeline.generate_initial()
        return order.model_copy(
            update={
                "status": requested,
                "timeline": self.timeline.update(timeline, requested, performed_by),
            }
        )
