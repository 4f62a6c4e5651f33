"""Pending → approved/rejected lifecycle of chore completions."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from .clock import now as current_time
from .models import CompletionStatus, JarSplit, OperationResult


def can_transition(status: CompletionStatus | str) -> bool:
    """Only pending completions may be approved or rejected."""

    return not CompletionStatus(status).is_terminal


def apply_to_balances(child: Any, split: JarSplit) -> None:
    """Add ``split`` (signed) to the child's three jar balances."""

    spending, savings, giving = split.as_cents()
    child.spending_cents += spending
    child.savings_cents += savings
    child.giving_cents += giving


def approve(
    completion: Any,
    child: Any,
    *,
    approver_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> OperationResult:
    """Approve a pending completion and credit its stored jar amounts."""

    if not can_transition(completion.status):
        return OperationResult.skipped(
            "approve", completion.id, f"Completion is already {completion.status}."
        )
    completion.status = CompletionStatus.APPROVED.value
    completion.approved_at = now or current_time()
    completion.approved_by_id = approver_id
    apply_to_balances(child, completion.split)
    return OperationResult.applied(
        "approve",
        completion.id,
        spending=str(completion.split.spending),
        savings=str(completion.split.savings),
        giving=str(completion.split.giving),
    )


def reject(completion: Any) -> OperationResult:
    """Reject a pending completion. Balances are never touched."""

    if not can_transition(completion.status):
        return OperationResult.skipped(
            "reject", completion.id, f"Completion is already {completion.status}."
        )
    completion.status = CompletionStatus.REJECTED.value
    return OperationResult.applied("reject", completion.id)


__all__ = ["can_transition", "apply_to_balances", "approve", "reject"]
