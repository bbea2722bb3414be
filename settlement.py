from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from logging_config import get_logger
from models import (EPSILON, Expense, LedgerEntry, LedgerTotals, Participant,
                    Settlement, Transfer)

logger = get_logger("settlement")


def calculate_settlement(expenses: Iterable[Expense],
                         participants: Iterable[Participant]) -> Settlement:
    expenses = list(expenses)
    ledger = aggregate(expenses, participants)
    balances = compute_balances(ledger)
    transfers = solve(balances)

    warnings = []
    for expense in expenses:
        warning = check_expense(expense)
        if warning:
            logger.warning(warning, extra={"expense_id": expense.id})
            warnings.append(warning)

    logger.debug("settlement computed",
                 extra={"participants": len(balances),
                        "transfers": len(transfers)})

    return Settlement(
        balances=ledger_entries(ledger),
        transfers=transfers,
        warnings=warnings
    )


def resolve_payer(payer: Optional[str],
                  participants: Iterable[Participant]) -> Optional[str]:
    """Map a payer reference (participant id or name) to a display name.

    Unknown references are returned as-is so they can become implicit
    participants.
    """
    if not payer:
        return None
    participants = list(participants)
    for p in participants:
        if p.id == payer:
            return p.name
    for p in participants:
        if p.name == payer:
            return p.name
    return payer


def aggregate(expenses: Iterable[Expense],
              participants: Iterable[Participant]) -> Dict[str, LedgerTotals]:
    participants = list(participants)
    paid: Dict[str, Decimal] = {p.name: Decimal("0") for p in participants}
    owed: Dict[str, Decimal] = {p.name: Decimal("0") for p in participants}

    def touch(name):
        if name not in paid:
            paid[name] = Decimal("0")
            owed[name] = Decimal("0")

    for expense in expenses:
        payer_name = resolve_payer(expense.payer, participants)
        if payer_name:
            touch(payer_name)
            paid[payer_name] += expense.total_amount or Decimal("0")

        for member in expense.members:
            if not member.name:
                continue
            touch(member.name)
            owed[member.name] += member.amount or Decimal("0")

    return {
        name: LedgerTotals(paid=paid[name], owed=owed[name])
        for name in paid
    }


def compute_balances(ledger: Dict[str, LedgerTotals]) -> Dict[str, Decimal]:
    return {name: totals.paid - totals.owed for name, totals in ledger.items()}


def ledger_entries(ledger: Dict[str, LedgerTotals]) -> List[LedgerEntry]:
    return [
        LedgerEntry(
            participant_name=name,
            total_paid=totals.paid,
            total_owed=totals.owed,
            balance=totals.paid - totals.owed
        )
        for name, totals in ledger.items()
    ]


def solve(balances: Dict[str, Decimal]) -> List[Transfer]:
    """Greedily match debtors to creditors.

    Each round pairs the smallest outstanding debt with the largest
    outstanding credit. Ties go to whoever comes first in ``balances``, which
    min() and max() guarantee by returning the first extreme element.
    """
    debtors = [[name, -balance] for name, balance in balances.items()
               if balance < -EPSILON]
    creditors = [[name, balance] for name, balance in balances.items()
                 if balance > EPSILON]

    transfers = []

    while debtors and creditors:
        i = min(range(len(debtors)), key=lambda k: debtors[k][1])
        j = max(range(len(creditors)), key=lambda k: creditors[k][1])

        debtor_name, debt = debtors[i]
        creditor_name, credit = creditors[j]

        amount = min(debt, credit)

        transfers.append(Transfer(
            from_participant=debtor_name,
            to_participant=creditor_name,
            amount=amount
        ))

        debtors[i][1] = debt - amount
        creditors[j][1] = credit - amount

        if debtors[i][1] < EPSILON:
            del debtors[i]
        if creditors[j][1] < EPSILON:
            del creditors[j]

    return transfers


def check_expense(expense: Expense) -> Optional[str]:
    """Return a data-quality warning when the shares miss the total."""
    total_split = sum((m.amount or Decimal("0") for m in expense.members),
                      Decimal("0"))
    total = expense.total_amount or Decimal("0")
    if abs(total_split - total) > EPSILON:
        label = expense.description or expense.id
        return (f"Expense '{label}': split total ({total_split}) doesn't "
                f"match expense amount ({total})")
    return None
