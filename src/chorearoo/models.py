"""Domain value objects used by the Chorearoo package."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .clock import now
from .money import ZERO, format_currency, from_cents, to_decimal


class CompletionStatus(str, Enum):
    """Lifecycle of a chore completion."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not CompletionStatus.PENDING


class TransactionKind(str, Enum):
    """What a completion row represents in the ledger."""

    CHORE = "chore"
    BONUS = "bonus"
    EXPENSE = "expense"
    PURCHASE = "purchase"

    @property
    def is_debit(self) -> bool:
        return self in (TransactionKind.EXPENSE, TransactionKind.PURCHASE)


class Jar(str, Enum):
    """The three money jars every child owns."""

    SPENDING = "spending"
    SAVINGS = "savings"
    GIVING = "giving"

    @classmethod
    def parse(cls, value: "Jar | str") -> "Jar":
        if isinstance(value, Jar):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown jar '{value}'.") from exc


class PaymentMethod(str, Enum):
    """Ways a child can pay for a store item."""

    SPENDING = "spending"
    SAVINGS = "savings"
    BOTH = "both"

    @classmethod
    def parse(cls, value: "PaymentMethod | str") -> "PaymentMethod":
        if isinstance(value, PaymentMethod):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Unknown payment method '{value}'.") from exc


class Outcome(str, Enum):
    """Result of a mutating engine operation."""

    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class JarSplit:
    """Signed amounts destined for each jar."""

    spending: Decimal = ZERO
    savings: Decimal = ZERO
    giving: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(self, "spending", to_decimal(self.spending))
        object.__setattr__(self, "savings", to_decimal(self.savings))
        object.__setattr__(self, "giving", to_decimal(self.giving))

    @property
    def total(self) -> Decimal:
        return self.spending + self.savings + self.giving

    def as_cents(self) -> Tuple[int, int, int]:
        return (int(self.spending * 100), int(self.savings * 100), int(self.giving * 100))

    @classmethod
    def from_cents(cls, spending: int, savings: int, giving: int) -> "JarSplit":
        return cls(spending=from_cents(spending), savings=from_cents(savings), giving=from_cents(giving))


@dataclass(slots=True)
class OperationResult:
    """Explicit outcome returned by every mutating engine operation."""

    outcome: Outcome
    action: str
    completion_id: Optional[str] = None
    reason: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.APPLIED

    @classmethod
    def applied(cls, action: str, completion_id: Optional[str] = None, **details: Any) -> "OperationResult":
        return cls(Outcome.APPLIED, action, completion_id, details=dict(details))

    @classmethod
    def skipped(cls, action: str, completion_id: Optional[str], reason: str) -> "OperationResult":
        return cls(Outcome.SKIPPED, action, completion_id, reason=reason)

    @classmethod
    def failed(cls, action: str, completion_id: Optional[str], reason: str) -> "OperationResult":
        return cls(Outcome.FAILED, action, completion_id, reason=reason)


@dataclass(slots=True)
class LedgerEntry:
    """One row of a child's transaction ledger, newest first."""

    completion_id: str
    kind: TransactionKind
    status: CompletionStatus
    label: str
    occurred_at: Optional[datetime]
    amount: Decimal
    split: JarSplit
    running_balance: Decimal

    @property
    def is_debit(self) -> bool:
        return self.kind.is_debit

    @property
    def is_pending(self) -> bool:
        return self.status is CompletionStatus.PENDING

    @property
    def counts_toward_balance(self) -> bool:
        return self.status is CompletionStatus.APPROVED

    @property
    def balance_before(self) -> Decimal:
        """Balance immediately before this row took effect."""

        if not self.counts_toward_balance:
            return self.running_balance
        return self.running_balance - self.split.total

    @property
    def display_amount(self) -> str:
        sign = "-" if self.is_debit or self.amount < ZERO else "+"
        return f"{sign}{format_currency(abs(self.amount))}"


@dataclass(slots=True)
class WeeklyProgress:
    """Snapshot of a child's chore earnings against the weekly cap."""

    week_start: datetime
    chore_earnings: Decimal
    bonus_earnings: Decimal
    weekly_cap: Decimal

    @property
    def total_this_week(self) -> Decimal:
        return self.chore_earnings + self.bonus_earnings

    @property
    def remaining(self) -> Decimal:
        remainder = self.weekly_cap - self.chore_earnings
        return remainder if remainder > ZERO else ZERO

    @property
    def progress(self) -> Decimal:
        """Ratio of chore earnings to the cap, clamped to ``[0, 1]``."""

        if self.weekly_cap <= ZERO:
            return Decimal("0")
        ratio = self.chore_earnings / self.weekly_cap
        return min(Decimal("1"), max(Decimal("0"), ratio)).quantize(Decimal("0.0001"))

    @property
    def cap_reached(self) -> bool:
        return self.chore_earnings >= self.weekly_cap


@dataclass(slots=True)
class AuditEvent:
    """Represents an auditable parent action."""

    actor: str
    action: str
    target: str
    timestamp: datetime = field(default_factory=now)
    details: Dict[str, Any] = field(default_factory=dict)
