"""Domain event envelope published by the engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

EVENT_SOURCE = "payplan"


@dataclass(frozen=True)
class Event:
    """A committed state change, e.g. ``installment.paid`` for one plan.

    ``subject`` is the id of the aggregate the event belongs to; sinks use it
    as the partition key so events for one plan stay ordered.
    """

    event_id: str
    event_type: str  # <entity>.<action>
    event_time: datetime
    subject: str
    data: dict[str, Any]
    source: str = EVENT_SOURCE
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def entity(self) -> str:
        """Entity part of ``event_type`` (``installment`` for ``installment.paid``)."""
        return self.event_type.split(".", 1)[0]

    def topic(self, prefix: str) -> str:
        """Topic the event is published on: ``<prefix>.<entity>``."""
        return f"{prefix}.{self.entity}"
