from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from logging_config import get_logger
from models import Expense, ExpenseMember, Participant, PaymentStatus, PaymentUpdate

logger = get_logger("storage")

SnapshotListener = Callable[[List[Expense], List[Participant]], None]


class InMemoryStorage:
    def __init__(self):
        self.participants: Dict[str, Participant] = {}
        self.expenses: Dict[str, Expense] = {}
        self._listeners: List[SnapshotListener] = []

    # Participants

    def add_participant(self, participant: Participant) -> Participant:
        if participant.id in self.participants:
            raise ValueError(f"Participant id '{participant.id}' already exists")
        if any(p.name == participant.name for p in self.participants.values()):
            raise ValueError(f"Participant name '{participant.name}' already exists")
        self.participants[participant.id] = participant
        logger.info("participant added", extra={"participant_id": participant.id})
        self._notify()
        return participant

    def get_participant(self, participant_id: str) -> Optional[Participant]:
        return self.participants.get(participant_id)

    def list_participants(self) -> List[Participant]:
        return list(self.participants.values())

    def update_participant(self, participant: Participant) -> Optional[Participant]:
        current = self.participants.get(participant.id)
        if current is None:
            return None
        if any(p.name == participant.name and p.id != participant.id
               for p in self.participants.values()):
            raise ValueError(f"Participant name '{participant.name}' already exists")
        if participant.name != current.name and self.participant_in_use(participant.id):
            raise ValueError(
                f"Participant '{current.name}' has expenses and cannot be renamed")
        self.participants[participant.id] = participant
        logger.info("participant updated", extra={"participant_id": participant.id})
        self._notify()
        return participant

    def delete_participant(self, participant_id: str) -> bool:
        """Remove a participant; False when the id is unknown.

        Expenses name members by display name and payers by id, so a
        participant still referenced by an expense cannot be removed.
        """
        if participant_id not in self.participants:
            return False
        if self.participant_in_use(participant_id):
            name = self.participants[participant_id].name
            raise ValueError(f"Participant '{name}' has expenses and cannot be deleted")
        del self.participants[participant_id]
        logger.info("participant deleted", extra={"participant_id": participant_id})
        self._notify()
        return True

    def participant_in_use(self, participant_id: str) -> bool:
        participant = self.participants.get(participant_id)
        if participant is None:
            return False
        for expense in self.expenses.values():
            if expense.payer in (participant.id, participant.name):
                return True
            if any(m.name == participant.name for m in expense.members):
                return True
        return False

    # Expenses

    def add_expense(self, expense: Expense) -> Expense:
        self.expenses[expense.id] = expense
        logger.info("expense added", extra={"expense_id": expense.id})
        self._notify()
        return expense

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        return self.expenses.get(expense_id)

    def list_expenses(self) -> List[Expense]:
        return sorted(self.expenses.values(), key=lambda e: e.created_at, reverse=True)

    def update_payment_status(self, expense_id: str,
                              update: PaymentUpdate) -> Optional[Expense]:
        expense = self.expenses.get(expense_id)
        if expense is None:
            return None

        changes = {
            "payment_status": update.status,
            "paid_amount": update.paid_amount,
        }
        if update.status in (PaymentStatus.PARTIAL, PaymentStatus.PAID):
            changes["paid_by"] = update.paid_by

        expense = expense.model_copy(update=changes)
        self.expenses[expense_id] = expense
        logger.info("payment status updated",
                    extra={"expense_id": expense_id, "status": update.status.value})
        self._notify()
        return expense

    def delete_expense(self, expense_id: str) -> bool:
        if self.expenses.pop(expense_id, None) is None:
            return False
        logger.info("expense deleted", extra={"expense_id": expense_id})
        self._notify()
        return True

    # Live snapshots

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)
        listener(self.list_expenses(), self.list_participants())

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        expenses = self.list_expenses()
        participants = self.list_participants()
        for listener in list(self._listeners):
            listener(expenses, participants)

    def clear(self):
        self.participants.clear()
        self.expenses.clear()
        self._notify()

    def seed_demo_data(self):
        for participant in (
            Participant(id="john", name="John Doe", email="john@example.com",
                        mobile="9876543210"),
            Participant(id="jane", name="Jane Smith", email="jane@example.com",
                        mobile="9876543211"),
            Participant(id="admin", name="Admin User", role="Admin",
                        email="admin@example.com", mobile="9876543212"),
        ):
            taken = participant.id in self.participants or any(
                p.name == participant.name for p in self.participants.values())
            if taken:
                logger.info("demo participant skipped",
                            extra={"participant_id": participant.id})
                continue
            self.participants[participant.id] = participant

        for expense in (
            Expense(id="1",
                    description="Dinner at Restaurant",
                    total_amount=Decimal("2500"),
                    category="Food",
                    payer="John Doe",
                    members=[ExpenseMember(name="John Doe", amount=Decimal("1250")),
                             ExpenseMember(name="Jane Smith", amount=Decimal("1250"))],
                    created_at=datetime(2024, 1, 15)),
            Expense(id="2",
                    description="Movie Tickets",
                    total_amount=Decimal("1200"),
                    category="Entertainment",
                    payer="Jane Smith",
                    members=[ExpenseMember(name="John Doe", amount=Decimal("600")),
                             ExpenseMember(name="Jane Smith", amount=Decimal("600"))],
                    created_at=datetime(2024, 1, 14),
                    payment_status=PaymentStatus.PARTIAL,
                    paid_amount=Decimal("600"),
                    paid_by="John Doe"),
        ):
            self.expenses.setdefault(expense.id, expense)

        logger.info("demo data loaded",
                    extra={"participants": len(self.participants),
                           "expenses": len(self.expenses)})
        self._notify()


storage = InMemoryStorage()
