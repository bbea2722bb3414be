"""Derived views over an expense snapshot, for the dashboard and exports."""

from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from logging_config import get_logger
from models import (Expense, ExpenseStats, LedgerEntry, Participant,
                    PaymentStatus, Settlement, Transfer)
from settlement import calculate_settlement, resolve_payer
from utils import format_currency

logger = get_logger("reporting")

SETTLED_MESSAGE = "All settled up! No payments needed."


class LedgerReport:
    """Balances and settlement plan for one immutable snapshot.

    Every call recomputes from the snapshot, so the same snapshot always
    yields the same summary and the same transfer order.
    """

    def __init__(self, expenses: Iterable[Expense],
                 participants: Iterable[Participant]):
        self.expenses = tuple(expenses)
        self.participants = tuple(participants)

    def settlement(self) -> Settlement:
        return calculate_settlement(self.expenses, self.participants)

    def balance_summary(self) -> Dict[str, LedgerEntry]:
        return {entry.participant_name: entry
                for entry in self.settlement().balances}

    def settlement_plan(self) -> List[Transfer]:
        return self.settlement().transfers

    def settlement_lines(self, settlement: Optional[Settlement] = None) -> List[str]:
        if settlement is None:
            settlement = self.settlement()
        transfers = settlement.transfers
        if not transfers:
            return [SETTLED_MESSAGE]
        return [describe_transfer(t) for t in transfers]

    def stats(self) -> ExpenseStats:
        return compute_stats(self.expenses, self.participants)


def describe_transfer(transfer: Transfer) -> str:
    return (f"{transfer.from_participant} owes {transfer.to_participant} "
            f"{format_currency(transfer.amount)}")


def compute_stats(expenses: Iterable[Expense],
                  participants: Iterable[Participant]) -> ExpenseStats:
    participants = list(participants)
    total_spent = Decimal("0")
    count = 0
    by_category: Dict[str, Decimal] = {}
    by_payer: Dict[str, Decimal] = {}
    payment_counts = {status.value: 0 for status in PaymentStatus}

    for expense in expenses:
        amount = expense.total_amount or Decimal("0")
        total_spent += amount
        count += 1

        category = expense.category or "Other"
        by_category[category] = by_category.get(category, Decimal("0")) + amount

        payer_name = resolve_payer(expense.payer, participants)
        if payer_name:
            by_payer[payer_name] = by_payer.get(payer_name, Decimal("0")) + amount

        payment_counts[expense.payment_status.value] += 1

    return ExpenseStats(
        total_spent=total_spent,
        expense_count=count,
        by_category=by_category,
        by_payer=by_payer,
        payment_counts=payment_counts
    )


class LiveLedger:
    """Keeps a LedgerReport for the latest snapshot pushed by the store."""

    def __init__(self):
        self.report = LedgerReport([], [])

    def refresh(self, expenses: List[Expense], participants: List[Participant]):
        self.report = LedgerReport(expenses, participants)
        logger.debug("ledger snapshot refreshed",
                     extra={"expenses": len(expenses),
                            "participants": len(participants)})

    def attach(self, store):
        """Subscribe to ``store``; returns its unsubscribe callable."""
        return store.subscribe(self.refresh)
