"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from caixa_gateway.api.main import create_app
from caixa_gateway.api.dependencies import get_now
from caixa_gateway.infrastructure.database.models import (
    Base,
    Client,
    Entry,
    EntrySchedule,
    ExpenseRecord,
    Profile,
)
from caixa_gateway.infrastructure.database.session import build_engine, get_db, get_session_factory


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Pinned clock shared by every API test
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()

ACCOUNT_ID = "account-1"
USER_ID = "user-1"


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
def session_factory(db: Session) -> sessionmaker:
    """Factory for the per-read sessions of parallel snapshot reads"""
    return TestingSessionLocal


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database and a pinned clock"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_now] = lambda: NOW
    return TestClient(app)


@pytest.fixture
def owner_headers() -> dict:
    return {"X-User-Id": USER_ID, "X-Account-Id": ACCOUNT_ID}


@pytest.fixture
def admin_headers() -> dict:
    return {"X-User-Id": "admin-1", "X-Account-Id": ACCOUNT_ID, "X-User-Role": "admin"}


@pytest.fixture
def add_entry(db: Session):
    """Insert and commit an entry; returns the ORM row"""

    def _add(value: str, status: str = "pendente", entry_date: date = TODAY, **fields) -> Entry:
        row = Entry(
            account_id=fields.pop("account_id", ACCOUNT_ID),
            user_id=USER_ID,
            value=Decimal(value),
            status=status,
            date=entry_date,
            **fields,
        )
        db.add(row)
        db.commit()
        return row

    return _add


@pytest.fixture
def add_schedule(db: Session):
    """Insert and commit one schedule row for an entry"""

    def _add(entry: Entry, amount: str, due_date: date, status: str = "pendente", **fields) -> EntrySchedule:
        row = EntrySchedule(
            account_id=entry.account_id,
            user_id=USER_ID,
            entry_id=entry.id,
            schedule_type=fields.pop("schedule_type", "installment"),
            installment_number=fields.pop("installment_number", 1),
            installments_total=fields.pop("installments_total", 1),
            due_date=due_date,
            amount=Decimal(amount),
            status=status,
            **fields,
        )
        db.add(row)
        db.commit()
        return row

    return _add


@pytest.fixture
def add_expense(db: Session):
    """Insert and commit an expense"""

    def _add(value: str, expense_date: date = TODAY, kind: str = "variavel", category: str = "Outros",
             status: str = "pago") -> ExpenseRecord:
        row = ExpenseRecord(
            account_id=ACCOUNT_ID,
            user_id=USER_ID,
            type=kind,
            category=category,
            value=Decimal(value),
            date=expense_date,
            status=status,
        )
        db.add(row)
        db.commit()
        return row

    return _add


@pytest.fixture
def add_client(db: Session):
    def _add(name: str) -> Client:
        row = Client(account_id=ACCOUNT_ID, name=name)
        db.add(row)
        db.commit()
        return row

    return _add


@pytest.fixture
def add_profile(db: Session):
    def _add(user_id: str = USER_ID, **fields) -> Profile:
        row = Profile(user_id=user_id, **fields)
        db.add(row)
        db.commit()
        return row

    return _add
