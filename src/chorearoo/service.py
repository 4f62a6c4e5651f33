"""High level allowance engine coordinating children, chores, jars and approvals."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sqlmodel import desc

from . import approvals
from .admin import AuditLog
from .allocation import allocate, available_payment_methods, jar_balance, purchase_split, single_jar
from .clock import local_date, now
from .config import DEFAULT_AVATAR_COLOR, DEFAULT_ITEM_IMAGE, DEFAULT_WEEKLY_CAP, LOG_PATH, PIN_LENGTH
from .exceptions import (
    ChildNotFoundError,
    ChoreNotFoundError,
    CompletionNotFoundError,
    InsufficientFundsError,
    PersistenceError,
    StoreItemNotFoundError,
    WeeklyCapExceededError,
)
from .ledger import build_ledger
from .models import (
    CompletionStatus,
    Jar,
    JarSplit,
    LedgerEntry,
    OperationResult,
    PaymentMethod,
    TransactionKind,
    WeeklyProgress,
)
from .money import AmountLike, format_currency, require_positive, to_cents, to_decimal
from .ops import StructuredLogger
from .store import Child, Chore, ChoreCompletion, EntityStore, Parent, ParentChildLink, StoreItem
from .weekly import start_of_week, weekly_progress, would_exceed_cap

_TRANSITION_EVENTS = {"approve": "completion_approved", "reject": "completion_rejected"}


class AllowanceBank:
    """Manage children, chores, the store and the completion workflow."""

    __slots__ = ("_store", "_logger", "_audit_log", "_clock")

    def __init__(
        self,
        store: EntityStore | None = None,
        *,
        logger: StructuredLogger | None = None,
        audit_log: AuditLog | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clock = clock or now
        self._store = store or EntityStore()
        self._logger = logger or StructuredLogger(path=LOG_PATH, clock=self._clock)
        self._audit_log = audit_log or AuditLog(clock=self._clock)

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    @property
    def audit_log(self) -> AuditLog:
        return self._audit_log

    # ------------------------------------------------------------------
    # Children and parents
    # ------------------------------------------------------------------
    def add_child(
        self,
        name: str,
        *,
        pin: str,
        age: int = 0,
        avatar_color: str = DEFAULT_AVATAR_COLOR,
        weekly_cap: AmountLike = DEFAULT_WEEKLY_CAP,
    ) -> Child:
        cap = require_positive(to_decimal(weekly_cap))
        with self._store.unit_of_work():
            child = self._store.create(
                Child,
                name=_require_name(name),
                pin=_validate_pin(pin),
                age=_validate_age(age),
                avatar_color=avatar_color or DEFAULT_AVATAR_COLOR,
                weekly_cap_cents=to_cents(cap),
                created_at=self._clock(),
            )
        self._logger.log("child_created", child=child.id, name=child.name)
        return child

    def update_child(
        self,
        child_id: str,
        *,
        name: str | None = None,
        age: int | None = None,
        pin: str | None = None,
        avatar_color: str | None = None,
    ) -> Child:
        child = self.get_child(child_id)
        with self._store.unit_of_work():
            if name is not None:
                child.name = _require_name(name)
            if age is not None:
                child.age = _validate_age(age)
            if pin is not None:
                child.pin = _validate_pin(pin)
            if avatar_color:
                child.avatar_color = avatar_color
        self._logger.log("child_updated", child=child.id)
        return child

    def set_weekly_cap(self, child_id: str, amount: AmountLike) -> Child:
        cap = require_positive(to_decimal(amount))
        child = self.get_child(child_id)
        with self._store.unit_of_work():
            child.weekly_cap_cents = to_cents(cap)
        self._logger.log("weekly_cap_set", child=child.id, cap=float(cap))
        return child

    def get_child(self, child_id: str) -> Child:
        child = self._store.get(Child, child_id)
        if child is None:
            raise ChildNotFoundError(f"Child '{child_id}' does not exist.")
        return child

    def list_children(self) -> Tuple[Child, ...]:
        return tuple(self._store.fetch(Child, order_by=Child.name))

    def delete_child(self, child_id: str, *, actor: str = "parent") -> OperationResult:
        child = self.get_child(child_id)
        try:
            with self._store.unit_of_work():
                removed = self._delete_completions(child.id)
                for link in self._store.fetch(ParentChildLink, ParentChildLink.child_id == child.id):
                    self._store.delete(link)
                self._store.delete(child)
        except PersistenceError as exc:
            return self._failed("delete_child", None, exc, child=child_id)
        self._audit_log.record(actor, "delete_child", child_id, details={"completions": removed})
        self._logger.log("child_deleted", child=child_id, completions=removed)
        return OperationResult.applied("delete_child", None, completions=removed)

    def reset_stats(self, child_id: str, *, actor: str = "parent") -> OperationResult:
        """Zero every jar and delete the child's whole completion history."""

        child = self.get_child(child_id)
        try:
            with self._store.unit_of_work():
                child.spending_cents = 0
                child.savings_cents = 0
                child.giving_cents = 0
                removed = self._delete_completions(child.id)
        except PersistenceError as exc:
            return self._failed("reset_stats", None, exc, child=child_id)
        self._audit_log.record(actor, "reset_stats", child_id, details={"completions": removed})
        self._logger.log("stats_reset", child=child_id, completions=removed)
        return OperationResult.applied("reset_stats", None, completions=removed)

    def add_parent(
        self,
        first_name: str,
        *,
        last_name: str | None = None,
        email: str | None = None,
        role: str = "parent",
    ) -> Parent:
        with self._store.unit_of_work():
            now = self._clock()
            parent = self._store.create(
                Parent,
                first_name=_require_name(first_name),
                last_name=last_name,
                email=email,
                role=role,
                created_at=now,
                updated_at=now,
            )
        self._logger.log("parent_created", parent=parent.id)
        return parent

    def link_parent(self, parent_id: str, child_id: str) -> None:
        if self._store.get(Parent, parent_id) is None:
            raise ValueError(f"Parent '{parent_id}' does not exist.")
        self.get_child(child_id)
        existing = self._store.fetch(
            ParentChildLink,
            ParentChildLink.parent_id == parent_id,
            ParentChildLink.child_id == child_id,
        )
        if existing:
            return
        with self._store.unit_of_work():
            self._store.create(ParentChildLink, parent_id=parent_id, child_id=child_id)

    def children_of(self, parent_id: str) -> Tuple[Child, ...]:
        links = self._store.fetch(ParentChildLink, ParentChildLink.parent_id == parent_id)
        children = [self._store.get(Child, link.child_id) for link in links]
        return tuple(sorted((child for child in children if child), key=lambda child: child.name))

    # ------------------------------------------------------------------
    # Chore library
    # ------------------------------------------------------------------
    def add_chore(self, name: str, amount: AmountLike, *, description: str | None = None) -> Chore:
        value = require_positive(to_decimal(amount))
        with self._store.unit_of_work():
            chore = self._store.create(
                Chore,
                name=_require_name(name),
                description=description or None,
                amount_cents=to_cents(value),
                created_at=self._clock(),
            )
        self._logger.log("chore_created", chore=chore.id, name=chore.name, amount=float(value))
        return chore

    def set_chore_active(self, chore_id: str, active: bool) -> Chore:
        chore = self.get_chore(chore_id)
        with self._store.unit_of_work():
            chore.is_active = bool(active)
        self._logger.log("chore_visibility", chore=chore.id, active=chore.is_active)
        return chore

    def delete_chore(self, chore_id: str) -> None:
        """Delete a chore; its completions keep their jar amounts but lose the link."""

        chore = self.get_chore(chore_id)
        with self._store.unit_of_work():
            for completion in self._store.fetch(ChoreCompletion, ChoreCompletion.chore_id == chore.id):
                completion.chore_id = None
            self._store.delete(chore)
        self._logger.log("chore_deleted", chore=chore_id)

    def get_chore(self, chore_id: str) -> Chore:
        chore = self._store.get(Chore, chore_id)
        if chore is None:
            raise ChoreNotFoundError(f"Chore '{chore_id}' does not exist.")
        return chore

    def list_chores(self, *, include_inactive: bool = False) -> Tuple[Chore, ...]:
        criteria = () if include_inactive else (Chore.is_active == True,)  # noqa: E712
        return tuple(self._store.fetch(Chore, *criteria, order_by=Chore.name))

    def selectable_chores(self) -> Tuple[Chore, ...]:
        """Chores a child may pick from: active ones only."""

        return self.list_chores(include_inactive=False)

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------
    def add_store_item(
        self,
        name: str,
        price: AmountLike,
        *,
        description: str | None = None,
        image_name: str = DEFAULT_ITEM_IMAGE,
    ) -> StoreItem:
        value = require_positive(to_decimal(price))
        with self._store.unit_of_work():
            item = self._store.create(
                StoreItem,
                name=_require_name(name),
                description=description or None,
                price_cents=to_cents(value),
                image_name=image_name or DEFAULT_ITEM_IMAGE,
                created_at=self._clock(),
            )
        self._logger.log("store_item_created", item=item.id, name=item.name, price=float(value))
        return item

    def set_item_available(self, item_id: str, available: bool) -> StoreItem:
        item = self.get_store_item(item_id)
        with self._store.unit_of_work():
            item.is_available = bool(available)
        self._logger.log("store_item_visibility", item=item.id, available=item.is_available)
        return item

    def delete_store_item(self, item_id: str) -> None:
        item = self.get_store_item(item_id)
        with self._store.unit_of_work():
            self._store.delete(item)
        self._logger.log("store_item_deleted", item=item_id)

    def get_store_item(self, item_id: str) -> StoreItem:
        item = self._store.get(StoreItem, item_id)
        if item is None:
            raise StoreItemNotFoundError(f"Store item '{item_id}' does not exist.")
        return item

    def list_store_items(self, *, available_only: bool = True) -> Tuple[StoreItem, ...]:
        criteria = (StoreItem.is_available == True,) if available_only else ()  # noqa: E712
        return tuple(self._store.fetch(StoreItem, *criteria, order_by=StoreItem.name))

    def payment_options(self, child_id: str, item_id: str) -> Tuple[PaymentMethod, ...]:
        child = self.get_child(child_id)
        item = self.get_store_item(item_id)
        return available_payment_methods(item.price, child.spending_balance, child.savings_balance)

    # ------------------------------------------------------------------
    # Completion workflow
    # ------------------------------------------------------------------
    def complete_chore(self, child_id: str, chore_id: str) -> OperationResult:
        """Record a child's claim on a chore as a pending 80/10/10 completion."""

        child = self.get_child(child_id)
        chore = self.get_chore(chore_id)
        if not chore.is_active:
            raise ValueError(f"Chore '{chore.name}' is not available.")
        now = self._clock()
        if self.would_exceed_cap(child.id, chore.id, now=now):
            raise WeeklyCapExceededError(
                f"'{chore.name}' would take {child.name} past the weekly cap of "
                f"{format_currency(child.weekly_cap)}."
            )
        completion = ChoreCompletion(
            status=CompletionStatus.PENDING.value,
            kind=TransactionKind.CHORE.value,
            completed_at=now,
            week_start_date=start_of_week(now),
            child_id=child.id,
            chore_id=chore.id,
        )
        completion.assign_split(allocate(chore.amount))
        return self._record(completion, "complete_chore", actor=child.id)

    def give_bonus(
        self,
        child_id: str,
        amount: AmountLike,
        jar: Jar | str = Jar.SPENDING,
        *,
        approver_id: str | None = None,
    ) -> OperationResult:
        """Credit a bonus straight into one jar. Bonuses ignore the weekly cap."""

        child = self.get_child(child_id)
        split = single_jar(amount, jar)
        completion = self._approved_completion(child, TransactionKind.BONUS, split, approver_id)
        completion.is_bonus = True
        return self._record(completion, "give_bonus", actor=approver_id or "parent", child=child)

    def record_expense(
        self,
        child_id: str,
        amount: AmountLike,
        jar: Jar | str = Jar.SPENDING,
        *,
        description: str,
        approver_id: str | None = None,
    ) -> OperationResult:
        child = self.get_child(child_id)
        label = _require_name(description)
        target = Jar.parse(jar)
        split = single_jar(amount, target, debit=True)
        balance = jar_balance(child.spending_balance, child.savings_balance, child.giving_balance, target)
        if balance < -split.total:
            raise InsufficientFundsError(
                f"{child.name}'s {target.value} jar has {format_currency(balance)}, "
                f"not enough for {format_currency(-split.total)}."
            )
        completion = self._approved_completion(child, TransactionKind.EXPENSE, split, approver_id)
        completion.description = label
        return self._record(completion, "record_expense", actor=approver_id or "parent", child=child)

    def purchase_item(
        self,
        child_id: str,
        item_id: str,
        method: PaymentMethod | str,
    ) -> OperationResult:
        child = self.get_child(child_id)
        item = self.get_store_item(item_id)
        if not item.is_available:
            raise ValueError(f"'{item.name}' is not available in the store.")
        split = purchase_split(item.price, method, child.spending_balance, child.savings_balance)
        completion = self._approved_completion(child, TransactionKind.PURCHASE, split, None)
        completion.description = item.name
        completion.store_item_id = item.id
        return self._record(completion, "purchase_item", actor=child.id, child=child)

    def approve_completion(self, completion_id: str, *, approver_id: str | None = None) -> OperationResult:
        try:
            with self._store.unit_of_work():
                completion = self.get_completion(completion_id)
                child = self.get_child(completion.child_id)
                result = approvals.approve(completion, child, approver_id=approver_id, now=self._clock())
        except PersistenceError as exc:
            return self._failed("approve", completion_id, exc)
        self._after_transition(result, approver_id)
        return result

    def reject_completion(self, completion_id: str, *, approver_id: str | None = None) -> OperationResult:
        try:
            with self._store.unit_of_work():
                result = approvals.reject(self.get_completion(completion_id))
        except PersistenceError as exc:
            return self._failed("reject", completion_id, exc)
        self._after_transition(result, approver_id)
        return result

    def bulk_approve(self, completion_ids: Sequence[str], *, approver_id: str | None = None) -> List[OperationResult]:
        return [self.approve_completion(cid, approver_id=approver_id) for cid in completion_ids]

    def get_completion(self, completion_id: str) -> ChoreCompletion:
        completion = self._store.get(ChoreCompletion, completion_id)
        if completion is None:
            raise CompletionNotFoundError(f"Completion '{completion_id}' does not exist.")
        return completion

    def pending_completions(self, child_id: str | None = None) -> Tuple[ChoreCompletion, ...]:
        criteria = [ChoreCompletion.status == CompletionStatus.PENDING.value]
        if child_id is not None:
            criteria.append(ChoreCompletion.child_id == child_id)
        return tuple(self._store.fetch(ChoreCompletion, *criteria, order_by=desc(ChoreCompletion.completed_at)))

    def completions_for(self, child_id: str) -> Tuple[ChoreCompletion, ...]:
        return tuple(
            self._store.fetch(
                ChoreCompletion,
                ChoreCompletion.child_id == child_id,
                order_by=desc(ChoreCompletion.completed_at),
            )
        )

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------
    def ledger(self, child_id: str) -> List[LedgerEntry]:
        child = self.get_child(child_id)
        completions = self.completions_for(child.id)
        return build_ledger(child.total_balance, completions, self._chore_lookup(completions))

    def weekly_progress(self, child_id: str) -> WeeklyProgress:
        child = self.get_child(child_id)
        completions = self.completions_for(child.id)
        return weekly_progress(child, completions, now=self._clock(), chores=self._chore_lookup(completions))

    def would_exceed_cap(self, child_id: str, chore_id: str, *, now: datetime | None = None) -> bool:
        child = self.get_child(child_id)
        chore = self.get_chore(chore_id)
        completions = self.completions_for(child.id)
        return would_exceed_cap(
            child,
            chore,
            completions,
            now=now or self._clock(),
            chores=self._chore_lookup(completions),
        )

    def todays_completion_count(self, child_id: str) -> int:
        today = local_date(self._clock())
        return sum(
            1
            for completion in self.completions_for(child_id)
            if completion.status == CompletionStatus.APPROVED.value
            and completion.completed_at is not None
            and local_date(completion.completed_at) == today
        )

    def total_balance(self, child_id: str | None = None) -> Decimal:
        if child_id is not None:
            return self.get_child(child_id).total_balance
        return sum((child.total_balance for child in self.list_children()), Decimal("0.00"))

    def summary(self) -> str:
        children = self.list_children()
        if not children:
            return "No children have been added yet."
        lines = ["Chorearoo summary:"]
        for child in children:
            lines.append(
                f"- {child.name}: {format_currency(child.total_balance)} "
                f"(spending {format_currency(child.spending_balance)}, "
                f"savings {format_currency(child.savings_balance)}, "
                f"giving {format_currency(child.giving_balance)})"
            )
        lines.append(f"Pending approvals: {len(self.pending_completions())}")
        lines.append(f"Total balance: {format_currency(self.total_balance())}")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _approved_completion(
        self,
        child: Child,
        kind: TransactionKind,
        split: JarSplit,
        approver_id: Optional[str],
    ) -> ChoreCompletion:
        now = self._clock()
        completion = ChoreCompletion(
            status=CompletionStatus.APPROVED.value,
            kind=kind.value,
            completed_at=now,
            approved_at=now,
            week_start_date=start_of_week(now),
            child_id=child.id,
            approved_by_id=approver_id,
        )
        completion.assign_split(split)
        return completion

    def _record(
        self,
        completion: ChoreCompletion,
        action: str,
        *,
        actor: str,
        child: Child | None = None,
    ) -> OperationResult:
        """Persist a new completion, applying it to balances when already approved."""

        try:
            with self._store.unit_of_work():
                self._store.add(completion)
                if child is not None and completion.status == CompletionStatus.APPROVED.value:
                    approvals.apply_to_balances(child, completion.split)
        except PersistenceError as exc:
            return self._failed(action, completion.id, exc, child=completion.child_id)
        split = completion.split
        if completion.status == CompletionStatus.APPROVED.value:
            self._audit_log.record(actor, action, completion.id, details={"child": completion.child_id})
        self._logger.log(
            action,
            completion=completion.id,
            child=completion.child_id,
            kind=completion.kind,
            status=completion.status,
            total=float(split.total),
        )
        return OperationResult.applied(
            action,
            completion.id,
            spending=str(split.spending),
            savings=str(split.savings),
            giving=str(split.giving),
        )

    def _after_transition(self, result: OperationResult, approver_id: Optional[str]) -> None:
        if result.ok:
            self._audit_log.record(approver_id or "parent", result.action, result.completion_id or "")
            self._logger.log(_TRANSITION_EVENTS[result.action], completion=result.completion_id, **result.details)
        else:
            self._logger.log(
                "transition_ignored",
                action=result.action,
                completion=result.completion_id,
                reason=result.reason,
            )

    def _failed(self, action: str, completion_id: Optional[str], exc: Exception, **fields: object) -> OperationResult:
        self._logger.log("persistence_failed", action=action, completion=completion_id, error=str(exc), **fields)
        return OperationResult.failed(action, completion_id, str(exc))

    def _delete_completions(self, child_id: str) -> int:
        completions = self._store.fetch(ChoreCompletion, ChoreCompletion.child_id == child_id)
        for completion in completions:
            self._store.delete(completion)
        return len(completions)

    def _chore_lookup(self, completions: Sequence[ChoreCompletion]) -> Dict[str, Chore]:
        lookup: Dict[str, Chore] = {}
        for chore_id in {completion.chore_id for completion in completions if completion.chore_id}:
            chore = self._store.get(Chore, chore_id)
            if chore is not None:
                lookup[chore_id] = chore
        return lookup


def _require_name(value: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValueError("Name must not be empty.")
    return text


def _validate_pin(pin: str) -> str:
    text = (pin or "").strip()
    if len(text) != PIN_LENGTH or not text.isdigit():
        raise ValueError(f"PIN must be exactly {PIN_LENGTH} digits.")
    return text


def _validate_age(age: int) -> int:
    value = int(age)
    if value < 0:
        raise ValueError("Age cannot be negative.")
    return value


__all__ = ["AllowanceBank"]
