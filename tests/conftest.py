from decimal import Decimal

import pytest

from models import Expense, ExpenseMember, Participant


def D(value):
    return Decimal(str(value))


def make_expense(payer, members, total=None, **kwargs):
    """Build an Expense from ``{name: amount}``; total defaults to the share sum."""
    if total is None:
        total = sum((D(a) for a in members.values()), Decimal("0"))
    return Expense(
        total_amount=D(total),
        payer=payer,
        members=[ExpenseMember(name=name, amount=None if amount is None else D(amount))
                 for name, amount in members.items()],
        **kwargs
    )


@pytest.fixture
def roster():
    return [
        Participant(id="a", name="A"),
        Participant(id="b", name="B"),
        Participant(id="c", name="C"),
    ]


@pytest.fixture
def fresh_storage():
    from storage import InMemoryStorage
    return InMemoryStorage()
