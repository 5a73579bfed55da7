"""SQLAlchemy ORM models for the finance schema"""

import uuid
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

Money = Numeric(14, 2, asdecimal=True)


class AccountRecord(Base):
    """Bank or cash account"""

    __tablename__ = "account"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    initial_balance = Column(Money, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CreditCardRecord(Base):
    """Credit card used as a funding source"""

    __tablename__ = "credit_card"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TransactionRecord(Base):
    """Ledger transaction; type and status are stored as their enum values"""

    __tablename__ = "ledger_transaction"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    description = Column(Text, nullable=False)
    amount = Column(Money, nullable=False)
    type = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default="Pending")
    category_id = Column(Uuid, nullable=True)
    account_id = Column(Uuid, ForeignKey("account.id"), nullable=True, index=True)
    credit_card_id = Column(Uuid, ForeignKey("credit_card.id"), nullable=True)
    due_date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RecurringTransactionRecord(Base):
    """Recurring income/expense definition with its generation cursor"""

    __tablename__ = "recurring_transaction"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    description = Column(Text, nullable=False)
    type = Column(String(16), nullable=False)
    category_id = Column(Uuid, nullable=True)
    account_id = Column(Uuid, ForeignKey("account.id"), nullable=True)
    credit_card_id = Column(Uuid, ForeignKey("credit_card.id"), nullable=True)
    amount_type = Column(String(16), nullable=False)
    amount = Column(Money, nullable=False)
    frequency = Column(String(16), nullable=False)
    day_of_month = Column(Integer, nullable=True)
    use_last_day = Column(Boolean, nullable=False, default=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    next_occurrence = Column(Date, nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_generated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    generated = relationship(
        "GeneratedTransactionRecord", back_populates="recurring", cascade="all, delete-orphan"
    )


class GeneratedTransactionRecord(Base):
    """
    Link between a ledger transaction and the recurrence that produced it.

    The unique (recurring_transaction_id, occurrence_date) pair is the
    idempotency guard for generation.
    """

    __tablename__ = "generated_transaction"
    __table_args__ = (
        UniqueConstraint("recurring_transaction_id", "occurrence_date", name="uq_generated_occurrence"),
    )

    transaction_id = Column(Uuid, ForeignKey("ledger_transaction.id", ondelete="CASCADE"), primary_key=True)
    recurring_transaction_id = Column(
        Uuid, ForeignKey("recurring_transaction.id", ondelete="CASCADE"), nullable=False
    )
    occurrence_date = Column(Date, nullable=False)
    generated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    was_modified = Column(Boolean, nullable=False, default=False)

    recurring = relationship("RecurringTransactionRecord", back_populates="generated")


class DebtRecord(Base):
    """Loan or financing"""

    __tablename__ = "debt"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    original_amount = Column(Money, nullable=False)
    current_balance = Column(Money, nullable=False)
    monthly_rate = Column(Numeric(12, 8, asdecimal=True), nullable=False)
    amortization_type = Column(String(16), nullable=False)
    bullet_policy = Column(String(16), nullable=True)
    total_installments = Column(Integer, nullable=False)
    installments_paid = Column(Integer, nullable=False, default=0)
    start_date = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, default="Active")
    linked_account_id = Column(Uuid, ForeignKey("account.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    installments = relationship(
        "DebtInstallmentRecord",
        back_populates="debt",
        cascade="all, delete-orphan",
        order_by="DebtInstallmentRecord.number",
    )


class DebtInstallmentRecord(Base):
    """Individual installment within a debt's amortization schedule"""

    __tablename__ = "debt_installment"
    __table_args__ = (UniqueConstraint("debt_id", "number", name="uq_debt_installment_number"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    debt_id = Column(Uuid, ForeignKey("debt.id", ondelete="CASCADE"), nullable=False)
    number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    paid_date = Column(Date, nullable=True)
    total_amount = Column(Money, nullable=False)
    principal_amount = Column(Money, nullable=False)
    interest_amount = Column(Money, nullable=False)
    remaining_balance = Column(Money, nullable=False)
    transaction_id = Column(Uuid, ForeignKey("ledger_transaction.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    debt = relationship("DebtRecord", back_populates="installments")
