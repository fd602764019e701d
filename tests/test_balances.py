import itertools

import pytest

from rupeesplit.core.balances import (
    FRIEND_OWES_USER,
    USER_OWES_FRIEND,
    category_totals,
    compute_balances,
    recent_expenses,
    requires_confirmation,
    simplify_debts,
    total_owed_by_user,
    total_owed_to_user,
)
from rupeesplit.models.schemas import ExpenseCategory, ExpenseRecord, Settlement

ME = "user-0"


def expense(amount, paid_by, split_with, **kwargs):
    return ExpenseRecord(description="Test", amount=amount, paid_by=paid_by, split_with=split_with, **kwargs)


class TestComputeBalances:
    def test_sign_constants(self):
        assert USER_OWES_FRIEND > 0
        assert FRIEND_OWES_USER < 0

    def test_no_expenses_gives_zero_for_every_friend(self, you, rahul, priya):
        balances = compute_balances([you, rahul, priya], [], ME)
        assert balances == {"f-1": 0.0, "f-2": 0.0}

    def test_current_user_never_a_key(self, you, rahul):
        balances = compute_balances([you, rahul], [expense(100, "f-1", [ME, "f-1"])], ME)
        assert ME not in balances

    def test_user_pays_dinner_for_three(self, you, rahul, priya):
        exp = expense(2400, ME, [ME, "f-1", "f-2"])
        balances = compute_balances([you, rahul, priya], [exp], ME)
        assert balances["f-1"] == -800
        assert balances["f-2"] == -800

    def test_friend_pays_split_with_user(self, you, rahul, priya):
        exp = expense(300, "f-1", [ME, "f-1"])
        balances = compute_balances([you, rahul, priya], [exp], ME)
        assert balances["f-1"] == 150
        assert balances["f-2"] == 0

    def test_two_party_split_is_half_either_way(self, you, rahul):
        assert compute_balances([you, rahul], [expense(500, ME, [ME, "f-1"])], ME)["f-1"] == -250
        assert compute_balances([you, rahul], [expense(500, "f-1", [ME, "f-1"])], ME)["f-1"] == 250

    def test_payer_outside_split(self, you, rahul, priya):
        # User fronts money for two friends without sharing the cost
        exp = expense(1000, ME, ["f-1", "f-2"])
        balances = compute_balances([you, rahul, priya], [exp], ME)
        assert balances == {"f-1": -500, "f-2": -500}

    def test_friend_pays_for_user_only(self, you, rahul):
        exp = expense(400, "f-1", [ME])
        assert compute_balances([you, rahul], [exp], ME)["f-1"] == 400

    def test_expense_between_other_friends_is_ignored(self, you, rahul, priya):
        exp = expense(900, "f-1", ["f-1", "f-2"])
        assert compute_balances([you, rahul, priya], [exp], ME) == {"f-1": 0.0, "f-2": 0.0}

    def test_self_only_split_changes_nothing(self, you, rahul):
        assert compute_balances([you, rahul], [expense(700, ME, [ME])], ME) == {"f-1": 0.0}
        assert compute_balances([you, rahul], [expense(700, "f-1", ["f-1"])], ME) == {"f-1": 0.0}

    def test_zero_amount(self, you, rahul):
        assert compute_balances([you, rahul], [expense(0, ME, [ME, "f-1"])], ME) == {"f-1": 0.0}

    def test_no_rounding(self, you, rahul, priya):
        exp = expense(100, ME, [ME, "f-1", "f-2"])
        balances = compute_balances([you, rahul, priya], [exp], ME)
        assert balances["f-1"] == pytest.approx(-100 / 3)
        assert balances["f-1"] != round(balances["f-1"], 2)

    def test_removed_participant_is_dropped(self, you, rahul, priya):
        expenses = [
            expense(2400, ME, [ME, "f-1", "f-2"]),
            expense(600, "f-2", [ME, "f-2"]),
        ]
        balances = compute_balances([you, rahul], expenses, ME)
        assert balances == {"f-1": -800}

    def test_unknown_ids_do_not_reappear(self, you, rahul):
        exp = expense(300, "ghost", [ME, "ghost", "f-1"])
        balances = compute_balances([you, rahul], [exp], ME)
        assert balances == {"f-1": 0.0}

    def test_order_independence(self, you, rahul, priya):
        expenses = [
            expense(2400, ME, [ME, "f-1", "f-2"]),
            expense(300, "f-1", [ME, "f-1"]),
            expense(1250.5, "f-2", [ME, "f-1", "f-2"]),
            expense(90, ME, ["f-2"]),
        ]
        reference = compute_balances([you, rahul, priya], expenses, ME)
        for perm in itertools.permutations(expenses):
            assert compute_balances([you, rahul, priya], list(perm), ME) == reference

    def test_order_independence_is_exact_for_decimal_fractions(self, you, rahul):
        expenses = [expense(a, ME, [ME, "f-1"]) for a in (0.2, 0.4, 0.6)]
        forward = compute_balances([you, rahul], expenses, ME)
        backward = compute_balances([you, rahul], list(reversed(expenses)), ME)
        assert forward == backward == {"f-1": -0.6}

    def test_offsetting_expenses_settle_to_exact_zero(self, you, rahul):
        expenses = [
            expense(0.2, ME, [ME, "f-1"]),
            expense(0.3, "f-1", [ME, "f-1"]),
            expense(0.1, "f-1", [ME]),
            expense(0.3, ME, [ME, "f-1"]),
        ]
        balances = compute_balances([you, rahul], expenses, ME)
        assert balances == {"f-1": 0.0}
        assert simplify_debts(balances, ME) == []

    def test_idempotent(self, you, rahul, priya):
        expenses = [expense(1000, ME, [ME, "f-1", "f-2"]), expense(70, "f-2", [ME, "f-2"])]
        first = compute_balances([you, rahul, priya], expenses, ME)
        second = compute_balances([you, rahul, priya], expenses, ME)
        assert first == second

    def test_keys_follow_roster_order(self, you, rahul, priya):
        balances = compute_balances([priya, you, rahul], [], ME)
        assert list(balances) == ["f-2", "f-1"]


class TestSimplifyDebts:
    def test_dinner_scenario(self, you, rahul, priya):
        balances = compute_balances([you, rahul, priya], [expense(2400, ME, [ME, "f-1", "f-2"])], ME)
        assert simplify_debts(balances, ME) == [
            Settlement(from_id="f-1", to=ME, amount=800),
            Settlement(from_id="f-2", to=ME, amount=800),
        ]

    def test_user_owes_friend(self):
        assert simplify_debts({"f-1": 150.0}, ME) == [Settlement(from_id=ME, to="f-1", amount=150)]

    def test_zero_balances_are_skipped(self):
        assert simplify_debts({"f-1": 0.0, "f-2": -20.0}, ME) == [
            Settlement(from_id="f-2", to=ME, amount=20)
        ]

    def test_one_settlement_per_nonzero_entry(self):
        balances = {"f-1": 12.5, "f-2": -40.0, "f-3": 0.0, "f-4": -0.01}
        settlements = simplify_debts(balances, ME)
        assert len(settlements) == 3
        for s in settlements:
            friend = s.to if s.from_id == ME else s.from_id
            assert ME in (s.from_id, s.to)
            assert s.amount == abs(balances[friend])
            assert (s.from_id == ME) == (balances[friend] > 0)

    def test_empty(self):
        assert simplify_debts({}, ME) == []

    def test_serializes_with_from_key(self):
        data = Settlement(from_id="f-1", to=ME, amount=5).model_dump(by_alias=True)
        assert data == {"from": "f-1", "to": ME, "amount": 5}


class TestAggregates:
    def test_totals(self):
        balances = {"f-1": 150.0, "f-2": -800.0, "f-3": -200.0, "f-4": 0.0}
        assert total_owed_by_user(balances) == 150
        assert total_owed_to_user(balances) == 1000

    def test_requires_confirmation_threshold(self):
        balances = {"f-1": 0.1, "f-2": -0.11, "f-3": 25.0}
        assert not requires_confirmation(balances, "f-1")
        assert requires_confirmation(balances, "f-2")
        assert requires_confirmation(balances, "f-3")
        assert not requires_confirmation(balances, "missing")
        assert not requires_confirmation(balances, "f-3", epsilon=30)

    def test_category_totals(self):
        expenses = [
            expense(100, ME, [ME], category=ExpenseCategory.FOOD),
            expense(50, ME, [ME], category=ExpenseCategory.TRAVEL),
            expense(25, ME, [ME], category=ExpenseCategory.FOOD),
        ]
        assert category_totals(expenses) == {ExpenseCategory.FOOD: 125, ExpenseCategory.TRAVEL: 50}

    def test_recent_expenses(self):
        from datetime import datetime, timedelta

        now = datetime(2024, 1, 1)
        expenses = [expense(i, ME, [ME], date=now + timedelta(days=i)) for i in range(8)]
        recent = recent_expenses(expenses)
        assert [e.amount for e in recent] == [7, 6, 5, 4, 3]
