"""Data access layer for finance entities"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session

from homeos_finance.domain.exceptions import DataIntegrityError, InvalidDebtTermsError, InvalidRecurrenceError
from homeos_finance.domain.models import (
    AmortizationType,
    AmountType,
    BulletInterestPolicy,
    Debt,
    DebtInstallment,
    DebtStatus,
    Frequency,
    RecurringTransaction,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from homeos_finance.domain.recurrence import first_occurrence
from homeos_finance.infrastructure.database.models import (
    AccountRecord,
    CreditCardRecord,
    DebtInstallmentRecord,
    DebtRecord,
    GeneratedTransactionRecord,
    RecurringTransactionRecord,
    TransactionRecord,
)

E = TypeVar("E", bound=Enum)


def decode_enum(enum_type: Type[E], raw: Optional[str], entity: str) -> E:
    """Decode a persisted enum value; anything outside the closed set is an integrity failure"""
    try:
        return enum_type(raw)
    except ValueError as e:
        raise DataIntegrityError(f"{entity} has unknown {enum_type.__name__} value {raw!r}") from e


def transaction_to_domain(record: TransactionRecord) -> Transaction:
    entity = f"Transaction {record.id}"
    return Transaction(
        id=record.id,
        description=record.description,
        amount=Decimal(record.amount),
        type=decode_enum(TransactionType, record.type, entity),
        due_date=record.due_date,
        status=decode_enum(TransactionStatus, record.status, entity),
        category_id=record.category_id,
        account_id=record.account_id,
        credit_card_id=record.credit_card_id,
    )


def recurring_to_domain(record: RecurringTransactionRecord) -> RecurringTransaction:
    entity = f"Recurring transaction {record.id}"
    try:
        return RecurringTransaction(
            id=record.id,
            description=record.description,
            type=decode_enum(TransactionType, record.type, entity),
            amount_type=decode_enum(AmountType, record.amount_type, entity),
            amount=Decimal(record.amount),
            frequency=decode_enum(Frequency, record.frequency, entity),
            start_date=record.start_date,
            category_id=record.category_id,
            account_id=record.account_id,
            credit_card_id=record.credit_card_id,
            day_of_month=record.day_of_month,
            use_last_day=record.use_last_day,
            end_date=record.end_date,
            next_occurrence=record.next_occurrence,
            is_active=record.is_active,
            last_generated_at=record.last_generated_at,
        )
    except InvalidRecurrenceError as e:
        raise DataIntegrityError(f"{entity} is stored with an invalid definition: {e}") from e


def debt_to_domain(record: DebtRecord) -> Debt:
    entity = f"Debt {record.id}"
    try:
        return Debt(
            id=record.id,
            name=record.name,
            original_amount=Decimal(record.original_amount),
            current_balance=Decimal(record.current_balance),
            monthly_rate=Decimal(record.monthly_rate),
            amortization_type=decode_enum(AmortizationType, record.amortization_type, entity),
            total_installments=record.total_installments,
            start_date=record.start_date,
            installments_paid=record.installments_paid,
            status=decode_enum(DebtStatus, record.status, entity),
            linked_account_id=record.linked_account_id,
            bullet_policy=(
                decode_enum(BulletInterestPolicy, record.bullet_policy, entity)
                if record.bullet_policy is not None
                else None
            ),
        )
    except InvalidDebtTermsError as e:
        raise DataIntegrityError(f"{entity} is inconsistent: {e}") from e


def installment_to_domain(record: DebtInstallmentRecord) -> DebtInstallment:
    return DebtInstallment(
        debt_id=record.debt_id,
        number=record.number,
        due_date=record.due_date,
        total_amount=Decimal(record.total_amount),
        principal_amount=Decimal(record.principal_amount),
        interest_amount=Decimal(record.interest_amount),
        remaining_balance=Decimal(record.remaining_balance),
        paid_date=record.paid_date,
        transaction_id=record.transaction_id,
    )


class AccountRepository:
    """Repository for accounts and other funding sources"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, user_id: str, name: str, initial_balance: Decimal, is_active: bool = True) -> AccountRecord:
        db_account = AccountRecord(
            user_id=user_id,
            name=name,
            initial_balance=initial_balance,
            is_active=is_active,
        )
        self.db.add(db_account)
        self.db.flush()
        return db_account

    def add_credit_card(self, user_id: str, name: str) -> CreditCardRecord:
        db_card = CreditCardRecord(user_id=user_id, name=name)
        self.db.add(db_card)
        self.db.flush()
        return db_card

    def get_active_accounts(self, user_id: str) -> List[AccountRecord]:
        return (
            self.db.query(AccountRecord)
            .filter(AccountRecord.user_id == user_id, AccountRecord.is_active.is_(True))
            .order_by(AccountRecord.created_at, AccountRecord.name)
            .all()
        )

    def get_ledger_total(self, account_id: uuid.UUID, as_of: date) -> Decimal:
        """
        Signed sum of non-cancelled transactions due on or before as_of.

        Raises:
            DataIntegrityError: account does not exist
        """
        if self.db.get(AccountRecord, account_id) is None:
            raise DataIntegrityError(f"Account {account_id} does not exist")

        rows = (
            self.db.query(TransactionRecord.type, func.coalesce(func.sum(TransactionRecord.amount), 0))
            .filter(
                TransactionRecord.account_id == account_id,
                TransactionRecord.status != TransactionStatus.CANCELLED.value,
                TransactionRecord.due_date <= as_of,
            )
            .group_by(TransactionRecord.type)
            .all()
        )

        total = Decimal("0.00")
        for raw_type, amount in rows:
            txn_type = decode_enum(TransactionType, raw_type, f"Ledger of account {account_id}")
            amount = Decimal(str(amount)).quantize(Decimal("0.01"))
            total += amount if txn_type == TransactionType.INCOME else -amount
        return total

    def funding_source_exists(self, user_id: str, account_id=None, credit_card_id=None) -> bool:
        """True when the referenced account or credit card exists and is active"""
        if account_id is not None:
            record = self.db.get(AccountRecord, account_id)
        else:
            record = self.db.get(CreditCardRecord, credit_card_id)
        return record is not None and record.user_id == user_id and record.is_active


class TransactionRepository:
    """Repository for ledger transactions"""

    def __init__(self, db: Session):
        self.db = db

    def insert(self, user_id: str, transaction: Transaction) -> uuid.UUID:
        """Add a transaction to the unit of work without committing"""
        db_transaction = TransactionRecord(
            id=transaction.id,
            user_id=user_id,
            description=transaction.description,
            amount=transaction.amount,
            type=transaction.type.value,
            status=transaction.status.value,
            category_id=transaction.category_id,
            account_id=transaction.account_id,
            credit_card_id=transaction.credit_card_id,
            due_date=transaction.due_date,
        )
        self.db.add(db_transaction)
        self.db.flush()
        return db_transaction.id

    def get_pending(self, user_id: str, start: date, end: date) -> List[Transaction]:
        """Unpaid transactions due within [start, end]"""
        records = (
            self.db.query(TransactionRecord)
            .filter(
                TransactionRecord.user_id == user_id,
                TransactionRecord.status == TransactionStatus.PENDING.value,
                TransactionRecord.due_date >= start,
                TransactionRecord.due_date <= end,
            )
            .order_by(TransactionRecord.due_date)
            .all()
        )
        return [transaction_to_domain(r) for r in records]

    def get_by_recurring_and_date(
        self, user_id: str, recurring_id: uuid.UUID, occurrence_date: date
    ) -> Optional[Transaction]:
        record = (
            self.db.query(TransactionRecord)
            .join(GeneratedTransactionRecord, GeneratedTransactionRecord.transaction_id == TransactionRecord.id)
            .filter(
                TransactionRecord.user_id == user_id,
                GeneratedTransactionRecord.recurring_transaction_id == recurring_id,
                GeneratedTransactionRecord.occurrence_date == occurrence_date,
            )
            .first()
        )
        return transaction_to_domain(record) if record else None

    def get_by_recurring(self, user_id: str, recurring_id: uuid.UUID) -> List[Transaction]:
        records = (
            self.db.query(TransactionRecord)
            .join(GeneratedTransactionRecord, GeneratedTransactionRecord.transaction_id == TransactionRecord.id)
            .filter(
                TransactionRecord.user_id == user_id,
                GeneratedTransactionRecord.recurring_transaction_id == recurring_id,
            )
            .order_by(TransactionRecord.due_date)
            .all()
        )
        return [transaction_to_domain(r) for r in records]


class RecurringTransactionRepository:
    """Repository for recurring definitions and their generation links"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, user_id: str, recurring: RecurringTransaction) -> RecurringTransactionRecord:
        """Persist a new definition; the cursor starts at its first occurrence"""
        db_recurring = RecurringTransactionRecord(
            id=recurring.id,
            user_id=user_id,
            next_occurrence=recurring.next_occurrence or first_occurrence(recurring),
            is_active=recurring.is_active,
            last_generated_at=recurring.last_generated_at,
        )
        self._apply(db_recurring, recurring)
        self.db.add(db_recurring)
        self.db.flush()
        return db_recurring

    def update(
        self, record: RecurringTransactionRecord, recurring: RecurringTransaction, next_occurrence: date
    ) -> RecurringTransactionRecord:
        """
        Replace an edited definition's fields and reseed its cursor.

        The only path that may move the cursor backward; generation itself
        goes through update_next_occurrence.
        """
        self._apply(record, recurring)
        record.next_occurrence = next_occurrence
        self.db.flush()
        return record

    @staticmethod
    def _apply(db_recurring: RecurringTransactionRecord, recurring: RecurringTransaction) -> None:
        db_recurring.description = recurring.description
        db_recurring.type = recurring.type.value
        db_recurring.category_id = recurring.category_id
        db_recurring.account_id = recurring.account_id
        db_recurring.credit_card_id = recurring.credit_card_id
        db_recurring.amount_type = recurring.amount_type.value
        db_recurring.amount = recurring.amount
        db_recurring.frequency = recurring.frequency.value
        db_recurring.day_of_month = recurring.day_of_month
        db_recurring.use_last_day = recurring.use_last_day
        db_recurring.start_date = recurring.start_date
        db_recurring.end_date = recurring.end_date

    def set_active(self, record: RecurringTransactionRecord, is_active: bool) -> None:
        record.is_active = is_active
        self.db.flush()

    def get_by_id(
        self, recurring_id: uuid.UUID, user_id: str, for_update: bool = False
    ) -> Optional[RecurringTransactionRecord]:
        """Fetch a definition; for_update takes a row lock until the unit of work ends"""
        query = self.db.query(RecurringTransactionRecord).filter(
            RecurringTransactionRecord.id == recurring_id,
            RecurringTransactionRecord.user_id == user_id,
        )
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def get_all(self, user_id: str, include_inactive: bool = False) -> List[RecurringTransactionRecord]:
        query = self.db.query(RecurringTransactionRecord).filter(RecurringTransactionRecord.user_id == user_id)
        if not include_inactive:
            query = query.filter(RecurringTransactionRecord.is_active.is_(True))
        return query.order_by(RecurringTransactionRecord.next_occurrence).all()

    def get_due_for_generation(self, user_id: str, as_of: date) -> List[RecurringTransactionRecord]:
        """Active definitions whose cursor is due and not past their end date"""
        return (
            self.db.query(RecurringTransactionRecord)
            .filter(
                RecurringTransactionRecord.user_id == user_id,
                RecurringTransactionRecord.is_active.is_(True),
                RecurringTransactionRecord.next_occurrence <= as_of,
                (RecurringTransactionRecord.end_date.is_(None))
                | (RecurringTransactionRecord.end_date >= RecurringTransactionRecord.next_occurrence),
            )
            .order_by(RecurringTransactionRecord.next_occurrence)
            .all()
        )

    def update_next_occurrence(
        self,
        record: RecurringTransactionRecord,
        next_date: date,
        generated_at: datetime | None = None,
    ) -> None:
        """Move the cursor forward; it never moves backward"""
        if next_date <= record.next_occurrence:
            raise DataIntegrityError(
                f"Cursor of recurring transaction {record.id} cannot move from {record.next_occurrence} to {next_date}"
            )
        record.next_occurrence = next_date
        record.last_generated_at = generated_at or datetime.now(timezone.utc)
        self.db.flush()

    def link_generated_transaction(
        self,
        transaction_id: uuid.UUID,
        recurring_id: uuid.UUID,
        occurrence_date: date,
        generated_at: datetime | None = None,
    ) -> None:
        """Insert the generation link; raises IntegrityError if the occurrence is already linked"""
        self.db.add(
            GeneratedTransactionRecord(
                transaction_id=transaction_id,
                recurring_transaction_id=recurring_id,
                occurrence_date=occurrence_date,
                generated_at=generated_at or datetime.now(timezone.utc),
            )
        )
        self.db.flush()

    def get_last_generated_occurrence(self, recurring_id: uuid.UUID) -> Optional[date]:
        """Latest occurrence date already materialized for a definition"""
        return (
            self.db.query(func.max(GeneratedTransactionRecord.occurrence_date))
            .filter(GeneratedTransactionRecord.recurring_transaction_id == recurring_id)
            .scalar()
        )


class DebtRepository:
    """Repository for debts and their amortization schedules"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, user_id: str, debt: Debt) -> DebtRecord:
        db_debt = DebtRecord(id=debt.id, user_id=user_id)
        self._apply(db_debt, debt)
        self.db.add(db_debt)
        self.db.flush()
        return db_debt

    def save_debt(self, user_id: str, debt: Debt) -> DebtRecord:
        db_debt = self._get_record(debt.id, user_id)
        if db_debt is None:
            return self.add(user_id, debt)
        self._apply(db_debt, debt)
        self.db.flush()
        return db_debt

    @staticmethod
    def _apply(db_debt: DebtRecord, debt: Debt) -> None:
        db_debt.name = debt.name
        db_debt.original_amount = debt.original_amount
        db_debt.current_balance = debt.current_balance
        db_debt.monthly_rate = debt.monthly_rate
        db_debt.amortization_type = debt.amortization_type.value
        db_debt.bullet_policy = debt.bullet_policy.value if debt.bullet_policy else None
        db_debt.total_installments = debt.total_installments
        db_debt.installments_paid = debt.installments_paid
        db_debt.start_date = debt.start_date
        db_debt.status = debt.status.value
        db_debt.linked_account_id = debt.linked_account_id

    def _get_record(self, debt_id: uuid.UUID, user_id: str) -> Optional[DebtRecord]:
        return (
            self.db.query(DebtRecord)
            .filter(DebtRecord.id == debt_id, DebtRecord.user_id == user_id)
            .first()
        )

    def get_by_id(self, debt_id: uuid.UUID, user_id: str) -> Optional[Debt]:
        record = self._get_record(debt_id, user_id)
        return debt_to_domain(record) if record else None

    def get_active_debts_linked_to_accounts(self, user_id: str) -> List[Debt]:
        """Active debts whose linked account is one of the user's active accounts"""
        records = (
            self.db.query(DebtRecord)
            .join(AccountRecord, AccountRecord.id == DebtRecord.linked_account_id)
            .filter(
                DebtRecord.user_id == user_id,
                DebtRecord.status == DebtStatus.ACTIVE.value,
                AccountRecord.user_id == user_id,
                AccountRecord.is_active.is_(True),
            )
            .order_by(DebtRecord.start_date)
            .all()
        )
        return [debt_to_domain(r) for r in records]

    def get_installments(self, debt_id: uuid.UUID) -> List[DebtInstallment]:
        records = (
            self.db.query(DebtInstallmentRecord)
            .filter(DebtInstallmentRecord.debt_id == debt_id)
            .order_by(DebtInstallmentRecord.number)
            .all()
        )
        return [installment_to_domain(r) for r in records]

    def save_installments(self, debt_id: uuid.UUID, installments: Sequence[DebtInstallment]) -> None:
        """Replace the whole schedule of a debt within the current unit of work"""
        self.db.query(DebtInstallmentRecord).filter(DebtInstallmentRecord.debt_id == debt_id).delete(
            synchronize_session="fetch"
        )
        for inst in installments:
            self.db.add(
                DebtInstallmentRecord(
                    debt_id=debt_id,
                    number=inst.number,
                    due_date=inst.due_date,
                    paid_date=inst.paid_date,
                    total_amount=inst.total_amount,
                    principal_amount=inst.principal_amount,
                    interest_amount=inst.interest_amount,
                    remaining_balance=inst.remaining_balance,
                    transaction_id=inst.transaction_id,
                )
            )
        self.db.flush()

    def save_installment_payment(self, debt_id: uuid.UUID, installment: DebtInstallment) -> None:
        """Only paid_date and transaction_id of a stored installment ever change"""
        record = (
            self.db.query(DebtInstallmentRecord)
            .filter(DebtInstallmentRecord.debt_id == debt_id, DebtInstallmentRecord.number == installment.number)
            .first()
        )
        if record is None:
            raise DataIntegrityError(f"Debt {debt_id} has no stored installment {installment.number}")
        record.paid_date = installment.paid_date
        record.transaction_id = installment.transaction_id
        self.db.flush()
