"""Transaction ledger built from a child's completion history."""

from __future__ import annotations

import csv
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Any, Iterable, List, Mapping, Optional

from .clock import as_aware
from .config import (
    BONUS_LABEL,
    EXPENSE_LABEL,
    LEGACY_EXPENSE_PREFIX,
    LEGACY_PURCHASE_PREFIX,
    PURCHASE_LABEL,
    UNKNOWN_CHORE_LABEL,
)
from .models import CompletionStatus, LedgerEntry, TransactionKind
from .money import ZERO, AmountLike, to_decimal


def classify(completion: Any, chore: Any = None) -> TransactionKind:
    """Return the transaction kind of ``completion``.

    Rows written before the ``kind`` column existed are recognised by the
    bonus flag, the ``"Purchase: "``/``"Expense: "`` name prefix of their
    placeholder chore, or a negative jar total.
    """

    if completion.kind:
        return TransactionKind(completion.kind)
    if completion.is_bonus:
        return TransactionKind.BONUS
    name = (chore.name if chore is not None else "") or ""
    if name.startswith(LEGACY_PURCHASE_PREFIX):
        return TransactionKind.PURCHASE
    if name.startswith(LEGACY_EXPENSE_PREFIX) or completion.split.total < ZERO:
        return TransactionKind.EXPENSE
    return TransactionKind.CHORE


def face_value(completion: Any, kind: TransactionKind, chore: Any = None) -> Decimal:
    """Amount shown for a row: always positive except for negative bonuses."""

    if kind is TransactionKind.BONUS:
        return completion.split.total
    if kind.is_debit:
        return abs(completion.split.total)
    return chore.amount if chore is not None else ZERO


def label_for(completion: Any, kind: TransactionKind, chore: Any = None) -> str:
    chore_name = chore.name if chore is not None else None
    if kind is TransactionKind.BONUS:
        return BONUS_LABEL
    if kind is TransactionKind.EXPENSE:
        if completion.description:
            return completion.description
        if chore_name:
            return chore_name.replace(LEGACY_EXPENSE_PREFIX, "", 1)
        return EXPENSE_LABEL
    if kind is TransactionKind.PURCHASE:
        if completion.description:
            return completion.description
        if chore_name:
            return chore_name.replace(LEGACY_PURCHASE_PREFIX, "", 1)
        return PURCHASE_LABEL
    return chore_name or UNKNOWN_CHORE_LABEL


_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


def _occurred(completion: Any) -> datetime:
    return as_aware(completion.completed_at) if completion.completed_at else _UNDATED


def build_ledger(
    current_total: AmountLike,
    completions: Iterable[Any],
    chores: Optional[Mapping[str, Any]] = None,
) -> List[LedgerEntry]:
    """Return ledger rows newest first, each annotated with a running balance.

    The running balance of a row is the balance right after it took effect:
    the child's current total minus every approved row that happened later.
    Pending and rejected rows are listed but never move the balance.
    """

    lookup = chores or {}
    ordered = sorted(completions, key=_occurred, reverse=True)
    balance = to_decimal(current_total)
    entries: list[LedgerEntry] = []
    for completion in ordered:
        chore = lookup.get(completion.chore_id) if completion.chore_id else None
        kind = classify(completion, chore)
        status = CompletionStatus(completion.status)
        entries.append(
            LedgerEntry(
                completion_id=completion.id,
                kind=kind,
                status=status,
                label=label_for(completion, kind, chore),
                occurred_at=completion.completed_at,
                amount=face_value(completion, kind, chore),
                split=completion.split,
                running_balance=balance,
            )
        )
        if status is CompletionStatus.APPROVED:
            balance -= completion.split.total
    return entries


def export_csv(entries: Iterable[LedgerEntry]) -> str:
    """Return a CSV export of ledger rows."""

    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(
        ["timestamp", "kind", "status", "label", "amount", "spending", "savings", "giving", "balance"]
    )
    for entry in entries:
        writer.writerow(
            [
                entry.occurred_at.isoformat() if entry.occurred_at else "",
                entry.kind.value,
                entry.status.value,
                entry.label,
                entry.display_amount,
                f"{entry.split.spending:.2f}",
                f"{entry.split.savings:.2f}",
                f"{entry.split.giving:.2f}",
                f"{entry.running_balance:.2f}",
            ]
        )
    return buffer.getvalue()


__all__ = ["classify", "face_value", "label_for", "build_ledger", "export_csv"]
