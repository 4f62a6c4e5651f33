from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from chorearoo.exceptions import (
    ChildNotFoundError,
    ChoreNotFoundError,
    InsufficientFundsError,
    StoreItemNotFoundError,
    WeeklyCapExceededError,
)
from chorearoo.models import CompletionStatus, JarSplit, Outcome, PaymentMethod, TransactionKind
from chorearoo.service import AllowanceBank
from chorearoo.store import EntityStore


def _jars(bank: AllowanceBank, child_id: str) -> tuple[Decimal, Decimal, Decimal]:
    child = bank.get_child(child_id)
    return child.spending_balance, child.savings_balance, child.giving_balance


def test_children_are_validated_and_listed(bank: AllowanceBank) -> None:
    ava = bank.add_child("Ava", pin="1234", age=8)
    bank.add_child("Ben", pin="0000")

    assert [child.name for child in bank.list_children()] == ["Ava", "Ben"]
    assert ava.weekly_cap == Decimal("10.00")
    assert ava.total_balance == Decimal("0.00")

    with pytest.raises(ValueError):
        bank.add_child("  ", pin="1234")
    with pytest.raises(ValueError):
        bank.add_child("Cleo", pin="12a4")
    with pytest.raises(ChildNotFoundError):
        bank.get_child("missing")

    bank.update_child(ava.id, name="Ava Rose", age=9)
    bank.set_weekly_cap(ava.id, "15")
    assert bank.get_child(ava.id).name == "Ava Rose"
    assert bank.get_child(ava.id).weekly_cap == Decimal("15.00")
    with pytest.raises(ValueError):
        bank.set_weekly_cap(ava.id, 0)


def test_completed_chore_waits_for_approval_then_pays_out(bank: AllowanceBank, clock) -> None:
    ava = bank.add_child("Ava", pin="1234")
    dishes = bank.add_chore("Wash Dishes", "5.00")

    result = bank.complete_chore(ava.id, dishes.id)

    assert result.ok
    completion = bank.get_completion(result.completion_id)
    assert completion.status == CompletionStatus.PENDING.value
    assert completion.kind == TransactionKind.CHORE.value
    assert completion.week_start_date == datetime(2024, 5, 12, tzinfo=timezone.utc)
    assert completion.split == JarSplit(
        spending=Decimal("4.00"), savings=Decimal("0.50"), giving=Decimal("0.50")
    )
    assert _jars(bank, ava.id) == (Decimal("0.00"), Decimal("0.00"), Decimal("0.00"))
    assert bank.pending_completions() == (completion,)

    clock.advance(hours=2)
    approved = bank.approve_completion(completion.id, approver_id="mom")

    assert approved.ok
    assert _jars(bank, ava.id) == (Decimal("4.00"), Decimal("0.50"), Decimal("0.50"))
    assert completion.approved_at == clock.now
    assert completion.approved_by_id == "mom"
    assert bank.pending_completions() == ()
    assert bank.audit_log.decisions(completion.id)[0].actor == "mom"
    assert bank.logger.events("completion_approved")


def test_approving_twice_is_a_logged_no_op(bank: AllowanceBank) -> None:
    ava = bank.add_child("Ava", pin="1234")
    dishes = bank.add_chore("Wash Dishes", 5)
    completion_id = bank.complete_chore(ava.id, dishes.id).completion_id
    bank.approve_completion(completion_id)

    again = bank.approve_completion(completion_id)

    assert again.outcome is Outcome.SKIPPED
    assert _jars(bank, ava.id) == (Decimal("4.00"), Decimal("0.50"), Decimal("0.50"))
    assert bank.logger.events("transition_ignored")[-1]["completion"] == completion_id


def test_weekly_cap_blocks_chores_that_would_go_over(bank: AllowanceBank) -> None:
    ava = bank.add_child("Ava", pin="1234", weekly_cap=10)
    bank.complete_chore(ava.id, bank.add_chore("Vacuum", 5).id)
    bank.complete_chore(ava.id, bank.add_chore("Laundry", 3).id)
    big = bank.add_chore("Mow Lawn", 5)
    small = bank.add_chore("Feed Cat", 2)

    assert bank.would_exceed_cap(ava.id, big.id)
    assert not bank.would_exceed_cap(ava.id, small.id)
    with pytest.raises(WeeklyCapExceededError):
        bank.complete_chore(ava.id, big.id)
    assert len(bank.pending_completions(ava.id)) == 2

    assert bank.complete_chore(ava.id, small.id).ok
    progress = bank.weekly_progress(ava.id)
    assert progress.chore_earnings == Decimal("10.00")
    assert progress.remaining == Decimal("0.00")
    assert progress.cap_reached


def test_cap_resets_next_week_and_ignores_rejected_claims(bank: AllowanceBank, clock) -> None:
    ava = bank.add_child("Ava", pin="1234", weekly_cap=10)
    mow = bank.add_chore("Mow Lawn", 8)
    claim = bank.complete_chore(ava.id, mow.id).completion_id
    assert bank.would_exceed_cap(ava.id, mow.id)

    bank.reject_completion(claim)
    assert not bank.would_exceed_cap(ava.id, mow.id)

    bank.complete_chore(ava.id, mow.id)
    clock.advance(days=4)  # Sunday 2024-05-19
    assert not bank.would_exceed_cap(ava.id, mow.id)
    assert bank.weekly_progress(ava.id).week_start == datetime(2024, 5, 19, tzinfo=timezone.utc)


def test_bonus_is_applied_immediately_and_skips_the_cap(bank: AllowanceBank) -> None:
    ava = bank.add_child("Ava", pin="1234", weekly_cap=10)
    bank.complete_chore(ava.id, bank.add_chore("Vacuum", 10).id)

    result = bank.give_bonus(ava.id, "3.00", "savings", approver_id="dad")

    bonus = bank.get_completion(result.completion_id)
    assert bonus.status == CompletionStatus.APPROVED.value
    assert bonus.is_bonus
    assert bonus.split == JarSplit(savings=Decimal("3.00"))
    assert bonus.approved_at is not None
    assert _jars(bank, ava.id) == (Decimal("0.00"), Decimal("3.00"), Decimal("0.00"))
    progress = bank.weekly_progress(ava.id)
    assert progress.chore_earnings == Decimal("10.00")
    assert progress.bonus_earnings == Decimal("3.00")
    assert progress.total_this_week == Decimal("13.00")


def test_expense_is_blocked_without_enough_money_in_the_jar(bank: AllowanceBank) -> None:
    ava = bank.add_child("Ava", pin="1234")
    bank.give_bonus(ava.id, 2, "spending")

    with pytest.raises(InsufficientFundsError):
        bank.record_expense(ava.id, 5, "spending", description="Toy car")

    assert len(bank.completions_for(ava.id)) == 1
    assert _jars(bank, ava.id) == (Decimal("2.00"), Decimal("0.00"), Decimal("0.00"))

    result = bank.record_expense(ava.id, "1.50", "spending", description="Sticker")
    expense = bank.get_completion(result.completion_id)
    assert expense.kind == TransactionKind.EXPENSE.value
    assert expense.description == "Sticker"
    assert expense.split == JarSplit(spending=Decimal("-1.50"))
    assert _jars(bank, ava.id) == (Decimal("0.50"), Decimal("0.00"), Decimal("0.00"))

    with pytest.raises(ValueError):
        bank.record_expense(ava.id, 0, "spending", description="Nothing")
    with pytest.raises(ValueError):
        bank.record_expense(ava.id, 1, "spending", description="")


def test_rejecting_leaves_balances_untouched_for_good(bank: AllowanceBank) -> None:
    ava = bank.add_child("Ava", pin="1234")
    bank.give_bonus(ava.id, 1, "giving")
    completion_id = bank.complete_chore(ava.id, bank.add_chore("Wash Dishes", 5).id).completion_id
    before = _jars(bank, ava.id)

    rejected = bank.reject_completion(completion_id, approver_id="mom")

    assert rejected.ok
    assert bank.get_completion(completion_id).status == CompletionStatus.REJECTED.value
    assert _jars(bank, ava.id) == before
    assert bank.approve_completion(completion_id).outcome is Outcome.SKIPPED
    assert bank.get_completion(completion_id).status == CompletionStatus.REJECTED.value
    assert _jars(bank, ava.id) == before


def test_purchase_with_both_jars_drains_spending_first(bank: AllowanceBank, clock) -> None:
    ava = bank.add_child("Ava", pin="1234")
    bank.give_bonus(ava.id, 3, "spending")
    bank.give_bonus(ava.id, 4, "savings")
    lego = bank.add_store_item("Lego Set", 5, description="Small set", image_name="cube.fill")

    assert bank.payment_options(ava.id, lego.id) == (PaymentMethod.BOTH,)
    with pytest.raises(InsufficientFundsError):
        bank.purchase_item(ava.id, lego.id, "spending")

    clock.advance(minutes=5)
    result = bank.purchase_item(ava.id, lego.id, "both")

    purchase = bank.get_completion(result.completion_id)
    assert purchase.kind == TransactionKind.PURCHASE.value
    assert purchase.store_item_id == lego.id
    assert purchase.split == JarSplit(spending=Decimal("-3.00"), savings=Decimal("-2.00"))
    assert _jars(bank, ava.id) == (Decimal("0.00"), Decimal("2.00"), Decimal("0.00"))
    assert bank.ledger(ava.id)[0].label == "Lego Set"
    assert bank.ledger(ava.id)[0].display_amount == "-$5.00"


def test_store_visibility_controls_purchases(bank: AllowanceBank) -> None:
    ava = bank.add_child("Ava", pin="1234")
    bank.give_bonus(ava.id, 10, "spending")
    book = bank.add_store_item("Comic Book", 4)
    bank.add_store_item("Kite", 6)

    bank.set_item_available(book.id, False)

    assert [item.name for item in bank.list_store_items()] == ["Kite"]
    assert len(bank.list_store_items(available_only=False)) == 2
    with pytest.raises(ValueError):
        bank.purchase_item(ava.id, book.id, "spending")

    bank.delete_store_item(book.id)
    with pytest.raises(StoreItemNotFoundError):
        bank.get_store_item(book.id)


def test_inactive_chores_are_hidden_and_cannot_be_claimed(bank: AllowanceBank) -> None:
    ava = bank.add_child("Ava", pin="1234")
    dishes = bank.add_chore("Wash Dishes", 5)
    bank.add_chore("Make Bed", 1, description="Every morning")

    bank.set_chore_active(dishes.id, False)

    assert [chore.name for chore in bank.selectable_chores()] == ["Make Bed"]
    assert len(bank.list_chores(include_inactive=True)) == 2
    with pytest.raises(ValueError):
        bank.complete_chore(ava.id, dishes.id)
    with pytest.raises(ValueError):
        bank.add_chore("Free money", 0)


def test_ledger_reconstructs_running_balance(bank: AllowanceBank, clock) -> None:
    ava = bank.add_child("Ava", pin="1234")
    dishes = bank.add_chore("Wash Dishes", 5)
    bank.give_bonus(ava.id, 3, "spending")
    clock.advance(minutes=10)
    earned = bank.complete_chore(ava.id, dishes.id).completion_id
    clock.advance(minutes=10)
    bank.approve_completion(earned)
    bank.record_expense(ava.id, 1, "spending", description="Ice cream")
    clock.advance(minutes=10)
    bank.complete_chore(ava.id, dishes.id)

    entries = bank.ledger(ava.id)

    assert [entry.kind for entry in entries] == [
        TransactionKind.CHORE,
        TransactionKind.EXPENSE,
        TransactionKind.CHORE,
        TransactionKind.BONUS,
    ]
    assert [entry.running_balance for entry in entries] == [
        Decimal("7.00"),
        Decimal("7.00"),
        Decimal("8.00"),
        Decimal("3.00"),
    ]
    assert entries[0].is_pending
    assert entries[1].balance_before + entries[1].split.total == bank.total_balance(ava.id)
    assert bank.todays_completion_count(ava.id) == 3


def test_deleting_a_chore_keeps_history_and_balances(bank: AllowanceBank) -> None:
    ava = bank.add_child("Ava", pin="1234")
    dishes = bank.add_chore("Wash Dishes", 5)
    bank.approve_completion(bank.complete_chore(ava.id, dishes.id).completion_id)

    bank.delete_chore(dishes.id)

    with pytest.raises(ChoreNotFoundError):
        bank.get_chore(dishes.id)
    (entry,) = bank.ledger(ava.id)
    assert entry.label == "Unknown Chore"
    assert entry.amount == Decimal("0.00")
    assert entry.running_balance == Decimal("5.00")
    assert bank.total_balance(ava.id) == Decimal("5.00")


def test_reset_stats_clears_balances_and_history(bank: AllowanceBank) -> None:
    ava = bank.add_child("Ava", pin="1234")
    ben = bank.add_child("Ben", pin="4321")
    bank.give_bonus(ava.id, 5, "savings")
    bank.give_bonus(ben.id, 2, "giving")
    bank.complete_chore(ava.id, bank.add_chore("Wash Dishes", 5).id)

    result = bank.reset_stats(ava.id, actor="dad")

    assert result.ok
    assert result.details["completions"] == 2
    assert bank.total_balance(ava.id) == Decimal("0.00")
    assert bank.ledger(ava.id) == []
    assert bank.total_balance(ben.id) == Decimal("2.00")
    assert bank.audit_log.entries(action="reset_stats", actor="dad")


def test_delete_child_cascades_to_completions_and_links(bank: AllowanceBank) -> None:
    mom = bank.add_parent("Dana", last_name="Lee", email="dana@example.com")
    ava = bank.add_child("Ava", pin="1234")
    bank.link_parent(mom.id, ava.id)
    bank.link_parent(mom.id, ava.id)
    bank.give_bonus(ava.id, 5, "savings")
    assert [child.name for child in bank.children_of(mom.id)] == ["Ava"]

    result = bank.delete_child(ava.id)

    assert result.ok
    assert bank.children_of(mom.id) == ()
    assert bank.pending_completions() == ()
    with pytest.raises(ChildNotFoundError):
        bank.get_child(ava.id)


def test_failed_save_rolls_back_the_approval(bank: AllowanceBank, monkeypatch) -> None:
    ava = bank.add_child("Ava", pin="1234")
    completion_id = bank.complete_chore(ava.id, bank.add_chore("Wash Dishes", 5).id).completion_id

    def broken_commit() -> None:
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(bank.store.session, "commit", broken_commit)
    result = bank.approve_completion(completion_id)
    monkeypatch.undo()

    assert result.outcome is Outcome.FAILED
    assert "disk I/O error" in result.reason
    assert bank.get_completion(completion_id).status == CompletionStatus.PENDING.value
    assert bank.total_balance(ava.id) == Decimal("0.00")
    assert bank.logger.events("persistence_failed")[-1]["action"] == "approve"

    assert bank.approve_completion(completion_id).ok
    assert bank.total_balance(ava.id) == Decimal("5.00")


def test_bulk_approve_and_summary(bank: AllowanceBank) -> None:
    ava = bank.add_child("Ava", pin="1234")
    ben = bank.add_child("Ben", pin="4321")
    dishes = bank.add_chore("Wash Dishes", 5)
    first = bank.complete_chore(ava.id, dishes.id).completion_id
    second = bank.complete_chore(ben.id, dishes.id).completion_id

    results = bank.bulk_approve([first, second, first])

    assert [result.outcome for result in results] == [Outcome.APPLIED, Outcome.APPLIED, Outcome.SKIPPED]
    summary = bank.summary()
    assert "Ava: $5.00" in summary
    assert "Pending approvals: 0" in summary
    assert "Total balance: $10.00" in summary


def test_default_clock_writes_timezone_aware_rows() -> None:
    bank = AllowanceBank(EntityStore(in_memory=True))
    try:
        ava = bank.add_child("Ava", pin="1234")
        dishes = bank.add_chore("Wash Dishes", 5)
        completion_id = bank.complete_chore(ava.id, dishes.id).completion_id

        assert bank.approve_completion(completion_id).ok
        completion = bank.get_completion(completion_id)
        assert ava.created_at.tzinfo is not None
        assert completion.completed_at.tzinfo is not None
        assert completion.approved_at.tzinfo is not None
        assert bank.todays_completion_count(ava.id) == 1
        assert bank.weekly_progress(ava.id).chore_earnings == Decimal("5.00")
    finally:
        bank.store.close()


def test_weekly_cap_survives_reopening_the_database(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'chorearoo.db'}"
    bank = AllowanceBank(EntityStore(url))
    ava = bank.add_child("Ava", pin="1234", weekly_cap=10)
    mow = bank.add_chore("Mow Lawn", 6)
    bank.complete_chore(ava.id, mow.id)
    bank.store.close()

    reopened = AllowanceBank(EntityStore(url))
    try:
        assert reopened.would_exceed_cap(ava.id, mow.id)
        assert reopened.weekly_progress(ava.id).chore_earnings == Decimal("6.00")
        assert [entry.label for entry in reopened.ledger(ava.id)] == ["Mow Lawn"]
    finally:
        reopened.store.close()


def test_logger_and_audit_log_share_the_bank_clock(bank: AllowanceBank, clock) -> None:
    ava = bank.add_child("Ava", pin="1234")
    clock.advance(minutes=3)

    bank.give_bonus(ava.id, 2, "savings", approver_id="dad")

    assert bank.logger.tail(1)[0]["timestamp"] == clock.now.isoformat()
    assert bank.audit_log.latest().timestamp == clock.now
