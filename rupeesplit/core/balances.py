"""
Balance accounting for the current user.

A balance mapping holds one signed amount per friend, always relative to the
current user:

    positive  -> the current user owes that friend
    negative  -> that friend owes the current user
    zero      -> settled

Balances are derived state. They are recomputed from the roster and the full
expense list on every read and are never stored.
"""

import math
from collections.abc import Iterable

from rupeesplit.models.schemas import ExpenseCategory, ExpenseRecord, Participant, Settlement

# Sign applied to a share, per the convention above
USER_OWES_FRIEND = 1
FRIEND_OWES_USER = -1

DEFAULT_EPSILON = 0.1


def compute_balances(
    participants: Iterable[Participant],
    expenses: Iterable[ExpenseRecord],
    current_user_id: str,
) -> dict[str, float]:
    """Fold expenses into a net balance per friend of ``current_user_id``.

    Only friends in the current roster get a key. Contributions involving ids
    that are no longer in the roster are dropped.
    """
    # Summed with fsum so every order of expenses gives the same bits
    contributions: dict[str, list[float]] = {
        p.id: [] for p in participants if p.id != current_user_id
    }

    for exp in expenses:
        share = exp.amount / len(exp.split_with)

        if exp.paid_by == current_user_id:
            # Everyone else in the split owes the user their share
            for friend_id in exp.split_with:
                if friend_id != current_user_id and friend_id in contributions:
                    contributions[friend_id].append(FRIEND_OWES_USER * share)
        elif current_user_id in exp.split_with:
            # The user owes the payer their own share
            if exp.paid_by in contributions:
                contributions[exp.paid_by].append(USER_OWES_FRIEND * share)

    return {friend_id: math.fsum(parts) for friend_id, parts in contributions.items()}


def simplify_debts(balances: dict[str, float], current_user_id: str) -> list[Settlement]:
    """One transfer per non-zero balance, always between the user and that friend."""
    settlements: list[Settlement] = []
    for friend_id, amount in balances.items():
        if amount > 0:
            settlements.append(Settlement(from_id=current_user_id, to=friend_id, amount=amount))
        elif amount < 0:
            settlements.append(Settlement(from_id=friend_id, to=current_user_id, amount=abs(amount)))
    return settlements


def total_owed_by_user(balances: dict[str, float]) -> float:
    return sum(b for b in balances.values() if b > 0)


def total_owed_to_user(balances: dict[str, float]) -> float:
    return abs(sum(b for b in balances.values() if b < 0))


def requires_confirmation(
    balances: dict[str, float], participant_id: str, epsilon: float = DEFAULT_EPSILON
) -> bool:
    """True when removing ``participant_id`` would drop a non-trivial balance."""
    return abs(balances.get(participant_id, 0.0)) > epsilon


def category_totals(expenses: Iterable[ExpenseRecord]) -> dict[ExpenseCategory, float]:
    totals: dict[ExpenseCategory, float] = {}
    for exp in expenses:
        totals[exp.category] = totals.get(exp.category, 0.0) + exp.amount
    return totals


def recent_expenses(expenses: Iterable[ExpenseRecord], limit: int = 5) -> list[ExpenseRecord]:
    return sorted(expenses, key=lambda e: e.date, reverse=True)[:limit]
