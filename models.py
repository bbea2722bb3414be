from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import uuid4

# Tolerance below which an amount is treated as zero
EPSILON = Decimal("0.01")


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class Participant(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    role: str = "User"
    email: str = ""
    mobile: str = ""

    @field_validator('name')
    @classmethod
    def name_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Participant name cannot be empty')
        return v.strip()


class ExpenseMember(BaseModel):
    name: str = ""
    amount: Optional[Decimal] = None


class Expense(BaseModel):
    """A stored expense record.

    Accepts whatever the store holds; creation-time checks live on NewExpense.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    description: str = ""
    total_amount: Decimal = Decimal("0")
    category: str = "Other"
    payer: Optional[str] = None
    members: List[ExpenseMember] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    paid_amount: Decimal = Decimal("0")
    paid_by: str = ""


class NewExpense(BaseModel):
    description: str
    total_amount: Decimal
    category: str = "Other"
    payer: str
    members: List[ExpenseMember]
    created_at: Optional[datetime] = None

    @field_validator('description')
    @classmethod
    def description_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Expense description cannot be empty')
        return v.strip()

    @field_validator('total_amount')
    @classmethod
    def amount_positive(cls, v):
        if v <= 0:
            raise ValueError('Amount must be greater than 0')
        return v

    @field_validator('members')
    @classmethod
    def at_least_one_member(cls, v):
        members = [m for m in v if m.name and m.name.strip()]
        if not members:
            raise ValueError('Please add at least one member')
        return [ExpenseMember(name=m.name.strip(), amount=m.amount or Decimal("0"))
                for m in members]

    @model_validator(mode='after')
    def split_matches_total(self):
        total_split = sum((m.amount for m in self.members), Decimal("0"))
        if abs(total_split - self.total_amount) > EPSILON:
            raise ValueError(
                f"Split total ({total_split}) doesn't match expense amount "
                f"({self.total_amount})")
        return self

    def to_expense(self) -> Expense:
        expense = Expense(description=self.description,
                          total_amount=self.total_amount,
                          category=self.category or "Other",
                          payer=self.payer,
                          members=self.members)
        if self.created_at is not None:
            expense.created_at = self.created_at
        return expense


class PaymentUpdate(BaseModel):
    status: PaymentStatus
    paid_amount: Decimal = Decimal("0")
    paid_by: str = ""

    @field_validator('paid_amount')
    @classmethod
    def amount_not_negative(cls, v):
        if v < 0:
            raise ValueError('Paid amount cannot be negative')
        return v


class LedgerTotals(BaseModel):
    paid: Decimal = Decimal("0")
    owed: Decimal = Decimal("0")


class LedgerEntry(BaseModel):
    participant_name: str
    total_paid: Decimal
    total_owed: Decimal
    balance: Decimal


class Transfer(BaseModel):
    from_participant: str
    to_participant: str
    amount: Decimal


class Settlement(BaseModel):
    balances: List[LedgerEntry]
    transfers: List[Transfer]
    warnings: List[str] = Field(default_factory=list)

    @property
    def settled(self) -> bool:
        return not self.transfers


class ExpenseStats(BaseModel):
    total_spent: Decimal
    expense_count: int
    by_category: Dict[str, Decimal]
    by_payer: Dict[str, Decimal]
    payment_counts: Dict[str, int]


class SplitRequest(BaseModel):
    total_amount: Decimal
    members: List[str]
