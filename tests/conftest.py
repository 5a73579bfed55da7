"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import uuid
from datetime import date
from decimal import Decimal
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from homeos_finance.api.dependencies import get_today
from homeos_finance.api.main import create_app
from homeos_finance.domain.models import (
    AmountType,
    Frequency,
    RecurringTransaction,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from homeos_finance.infrastructure.database.models import AccountRecord, Base
from homeos_finance.infrastructure.database.repositories import (
    AccountRepository,
    RecurringTransactionRepository,
    TransactionRepository,
)
from homeos_finance.infrastructure.database.session import build_engine, get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TODAY = date(2024, 3, 10)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def client(db: Session, today: date) -> TestClient:
    """Create FastAPI test client with test database and a fixed reference date"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: today
    return TestClient(app)


@pytest.fixture
def user_id() -> str:
    return "user_1"


@pytest.fixture
def account(db: Session, user_id: str) -> AccountRecord:
    """Checking account with 1000.00 opening balance and no ledger history"""
    record = AccountRepository(db).add(user_id, "Checking", Decimal("1000.00"))
    db.commit()
    return record


@pytest.fixture
def make_recurring(db: Session, user_id: str, account: AccountRecord) -> Callable[..., uuid.UUID]:
    """Factory persisting a recurring definition; defaults to a 3000.00 salary on day 1"""

    def _make(**overrides) -> uuid.UUID:
        fields = dict(
            id=uuid.uuid4(),
            description="Salary",
            type=TransactionType.INCOME,
            amount_type=AmountType.FIXED,
            amount=Decimal("3000.00"),
            frequency=Frequency.MONTHLY,
            start_date=date(2024, 1, 1),
            day_of_month=1,
            account_id=account.id,
        )
        fields.update(overrides)
        recurring = RecurringTransaction(**fields)
        RecurringTransactionRepository(db).add(user_id, recurring)
        db.commit()
        return recurring.id

    return _make


@pytest.fixture
def make_transaction(db: Session, user_id: str, account: AccountRecord) -> Callable[..., uuid.UUID]:
    """Factory persisting a ledger transaction on the default account"""

    def _make(
        amount: str,
        due_date: date,
        type: TransactionType = TransactionType.EXPENSE,
        status: TransactionStatus = TransactionStatus.PENDING,
        description: str = "Rent",
    ) -> uuid.UUID:
        transaction_id = TransactionRepository(db).insert(
            user_id,
            Transaction(
                id=uuid.uuid4(),
                description=description,
                amount=Decimal(amount),
                type=type,
                due_date=due_date,
                status=status,
                account_id=account.id,
            ),
        )
        db.commit()
        return transaction_id

    return _make
