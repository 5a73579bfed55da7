"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from homeos_finance.domain.exceptions import InvalidDebtTermsError, InvalidRecurrenceError


class TransactionType(str, Enum):
    INCOME = "Income"
    EXPENSE = "Expense"


class TransactionStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    RECONCILED = "Reconciled"
    CANCELLED = "Cancelled"


class AmountType(str, Enum):
    """Fixed amounts are commitments, variable amounts are average estimates"""

    FIXED = "Fixed"
    VARIABLE = "Variable"


class Frequency(str, Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    BIWEEKLY = "Biweekly"
    MONTHLY = "Monthly"
    BIMONTHLY = "Bimonthly"
    QUARTERLY = "Quarterly"
    SEMIANNUAL = "Semiannual"
    ANNUAL = "Annual"

    @property
    def day_step(self) -> int:
        """Days between occurrences (0 for calendar-month frequencies)"""
        return _DAY_STEPS.get(self, 0)

    @property
    def month_step(self) -> int:
        """Calendar months between occurrences (0 for day-based frequencies)"""
        return _MONTH_STEPS.get(self, 0)

    @property
    def is_monthly_family(self) -> bool:
        return self.month_step > 0


_DAY_STEPS = {Frequency.DAILY: 1, Frequency.WEEKLY: 7, Frequency.BIWEEKLY: 14}
_MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.BIMONTHLY: 2,
    Frequency.QUARTERLY: 3,
    Frequency.SEMIANNUAL: 6,
    Frequency.ANNUAL: 12,
}


class AmortizationType(str, Enum):
    PRICE = "Price"  # French / annuity
    SAC = "SAC"  # Constant amortization
    BULLET = "Bullet"


class BulletInterestPolicy(str, Enum):
    """How a bullet debt handles interest before the balloon payment"""

    INTEREST_ONLY = "InterestOnly"
    CAPITALIZE = "Capitalize"


class DebtStatus(str, Enum):
    ACTIVE = "Active"
    SETTLED = "Settled"
    CANCELLED = "Cancelled"


class ForecastEventSource(str, Enum):
    PENDING = "Pending"
    RECURRING = "Recurring"
    DEBT_INSTALLMENT = "DebtInstallment"


@dataclass
class Transaction:
    """Ledger transaction; amount is always positive, direction comes from type"""

    id: uuid.UUID
    description: str
    amount: Decimal
    type: TransactionType
    due_date: date
    status: TransactionStatus = TransactionStatus.PENDING
    category_id: Optional[uuid.UUID] = None
    account_id: Optional[uuid.UUID] = None
    credit_card_id: Optional[uuid.UUID] = None


@dataclass
class RecurringTransaction:
    """
    Definition of a repeating income or expense.

    The definition is validated on construction: exactly one funding source,
    and for calendar-month frequencies exactly one of ``day_of_month`` or
    ``use_last_day``. ``next_occurrence`` is the generation cursor; only the
    generation coordinator advances it.
    """

    id: uuid.UUID
    description: str
    type: TransactionType
    amount_type: AmountType
    amount: Decimal  # Fixed amount, or average estimate for Variable
    frequency: Frequency
    start_date: date
    category_id: Optional[uuid.UUID] = None
    account_id: Optional[uuid.UUID] = None
    credit_card_id: Optional[uuid.UUID] = None
    day_of_month: Optional[int] = None
    use_last_day: bool = False
    end_date: Optional[date] = None
    next_occurrence: Optional[date] = None
    is_active: bool = True
    last_generated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if (self.account_id is None) == (self.credit_card_id is None):
            raise InvalidRecurrenceError(
                f"Recurring transaction {self.id} must have either an account or a credit card, but not both"
            )
        if self.amount <= 0:
            raise InvalidRecurrenceError(f"Recurring transaction {self.id} amount must be positive")
        if self.day_of_month is not None and self.use_last_day:
            raise InvalidRecurrenceError(
                f"Recurring transaction {self.id} sets both day_of_month and use_last_day"
            )
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise InvalidRecurrenceError(f"day_of_month must be between 1 and 31, got {self.day_of_month}")
        if self.frequency.is_monthly_family and self.day_of_month is None and not self.use_last_day:
            raise InvalidRecurrenceError(
                f"{self.frequency.value} recurrence {self.id} needs day_of_month or use_last_day"
            )
        if self.end_date is not None and self.end_date < self.start_date:
            raise InvalidRecurrenceError(f"Recurring transaction {self.id} ends before it starts")


@dataclass
class Debt:
    """Loan or financing with fixed monthly rate"""

    id: uuid.UUID
    name: str
    original_amount: Decimal
    current_balance: Decimal
    monthly_rate: Decimal
    amortization_type: AmortizationType
    total_installments: int
    start_date: date
    installments_paid: int = 0
    status: DebtStatus = DebtStatus.ACTIVE
    linked_account_id: Optional[uuid.UUID] = None
    bullet_policy: Optional[BulletInterestPolicy] = None

    def __post_init__(self) -> None:
        if not 0 <= self.installments_paid <= self.total_installments:
            raise InvalidDebtTermsError(
                f"installments_paid ({self.installments_paid}) must be within 0..{self.total_installments}"
            )


@dataclass
class DebtInstallment:
    """Single installment of an amortization schedule"""

    number: int
    due_date: date
    total_amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    remaining_balance: Decimal
    debt_id: Optional[uuid.UUID] = None
    paid_date: Optional[date] = None
    transaction_id: Optional[uuid.UUID] = None

    @property
    def is_paid(self) -> bool:
        return self.paid_date is not None


@dataclass
class AccountBalance:
    """Snapshot of an active account used as forecast input"""

    account_id: uuid.UUID
    initial_balance: Decimal
    ledger_total: Decimal = Decimal("0")

    @property
    def balance(self) -> Decimal:
        return self.initial_balance + self.ledger_total


@dataclass
class ForecastEvent:
    """Projected cash movement; amount is positive, direction comes from type"""

    date: date
    amount: Decimal
    type: TransactionType
    source: ForecastEventSource
    description: str
    amount_type: AmountType = AmountType.FIXED
    reference_id: Optional[uuid.UUID] = None


@dataclass
class CashFlowDataPoint:
    date: date
    balance: Decimal
    incoming: Decimal
    outgoing: Decimal
    description: str
    includes_estimate: bool = False
    events: List[ForecastEvent] = field(default_factory=list)


@dataclass
class CashFlowForecast:
    """Computed projection; never persisted"""

    starting_balance: Decimal
    start_date: date
    end_date: date
    data_points: List[CashFlowDataPoint]

    @property
    def total_incoming(self) -> Decimal:
        return sum((p.incoming for p in self.data_points), Decimal("0"))

    @property
    def total_outgoing(self) -> Decimal:
        return sum((p.outgoing for p in self.data_points), Decimal("0"))


@dataclass
class GenerationFailure:
    recurring_id: uuid.UUID
    reason: str  # integrity | validation | limit | error
    message: str


@dataclass
class GenerationReport:
    """Outcome of one generation run for a user"""

    user_id: str
    as_of: date
    generated_transaction_ids: List[uuid.UUID] = field(default_factory=list)
    skipped_existing: int = 0
    failures: List[GenerationFailure] = field(default_factory=list)
    timed_out: bool = False

    @property
    def generated_count(self) -> int:
        return len(self.generated_transaction_ids)


@dataclass
class GenerationStats:
    active_count: int
    total_count: int
    next_due_date: Optional[date]
    last_run_at: Optional[datetime]
    pending_count: int
