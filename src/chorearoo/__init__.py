"""Chorearoo allowance engine: chores, approvals and money jars for kids."""

from .admin import AuditLog
from .allocation import allocate, available_payment_methods, purchase_split, single_jar
from .exceptions import (
    ChildNotFoundError,
    ChoreNotFoundError,
    ChorearooError,
    CompletionNotFoundError,
    InsufficientFundsError,
    PersistenceError,
    StoreItemNotFoundError,
    WeeklyCapExceededError,
)
from .ledger import build_ledger, classify, export_csv
from .models import (
    AuditEvent,
    CompletionStatus,
    Jar,
    JarSplit,
    LedgerEntry,
    OperationResult,
    Outcome,
    PaymentMethod,
    TransactionKind,
    WeeklyProgress,
)
from .ops import StructuredLogger
from .service import AllowanceBank
from .store import Child, Chore, ChoreCompletion, EntityStore, Parent, ParentChildLink, StoreItem
from .weekly import Weekday, start_of_week, week_earnings, would_exceed_cap

__all__ = [
    "AllowanceBank",
    "AuditEvent",
    "AuditLog",
    "Child",
    "Chore",
    "ChoreCompletion",
    "ChoreNotFoundError",
    "ChorearooError",
    "ChildNotFoundError",
    "CompletionNotFoundError",
    "CompletionStatus",
    "EntityStore",
    "InsufficientFundsError",
    "Jar",
    "JarSplit",
    "LedgerEntry",
    "OperationResult",
    "Outcome",
    "Parent",
    "ParentChildLink",
    "PaymentMethod",
    "PersistenceError",
    "StoreItem",
    "StoreItemNotFoundError",
    "StructuredLogger",
    "TransactionKind",
    "WeeklyCapExceededError",
    "WeeklyProgress",
    "Weekday",
    "allocate",
    "available_payment_methods",
    "build_ledger",
    "classify",
    "export_csv",
    "purchase_split",
    "single_jar",
    "start_of_week",
    "week_earnings",
    "would_exceed_cap",
]
