"""Audit trail of parent decisions."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from .clock import now
from .models import AuditEvent

DECISION_ACTIONS = frozenset({"approve", "reject"})


class AuditLog:
    """Collect who approved, rejected, credited or reset what."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._entries: list[AuditEvent] = []
        self._clock = clock or now

    def record(
        self,
        actor: str,
        action: str,
        target: str,
        *,
        details: Optional[dict] = None,
        timestamp: Optional[datetime] = None,
    ) -> AuditEvent:
        event = AuditEvent(
            actor=actor,
            action=action,
            target=target,
            timestamp=timestamp or self._clock(),
            details=dict(details or {}),
        )
        self._entries.append(event)
        return event

    def entries(
        self,
        *,
        action: str | None = None,
        target: str | None = None,
        actor: str | None = None,
    ) -> tuple[AuditEvent, ...]:
        return tuple(
            entry
            for entry in self._entries
            if (action is None or entry.action == action)
            and (target is None or entry.target == target)
            and (actor is None or entry.actor == actor)
        )

    def decisions(self, completion_id: str) -> tuple[AuditEvent, ...]:
        """Approve/reject events recorded against one completion."""

        return tuple(
            entry for entry in self._entries if entry.target == completion_id and entry.action in DECISION_ACTIONS
        )

    def latest(self) -> AuditEvent | None:
        return self._entries[-1] if self._entries else None


__all__ = ["AuditLog", "DECISION_ACTIONS"]
