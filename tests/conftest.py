"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real one. Tables are created before and dropped after every
test, so each test starts from an empty ledger.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import posting_engine.models  # noqa: F401  registers every table
from posting_engine.main import app
from posting_engine.models.base import Base, get_db
from posting_engine.schemas.chart import BankAccountCreate, CompanyCreate
from posting_engine.services.bank_service import BankService
from posting_engine.services.chart_service import ChartService


TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db_session):
    """
    Provide a test client with the test database.

    The get_db dependency is overridden so the app uses the
    test session instead of the real database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def company(db_session):
    """A company with no chart of accounts."""
    company = ChartService(db_session).create_company(CompanyCreate(name="Acme Trading"))
    db_session.commit()
    return company


@pytest.fixture
def chart(db_session, company):
    """The default chart for `company`, keyed by account code."""
    service = ChartService(db_session)
    service.seed_default_chart(company.id)
    db_session.commit()
    return {a.code: a for a in service.list_accounts(company.id)}


@pytest.fixture
def bank_account(db_session, company, chart):
    """A bank account posting to the 1100 Bank ledger, opening at 10000."""
    bank_account = BankService(db_session).create_bank_account(BankAccountCreate(
        company_id=company.id,
        account_name="Main Current Account",
        bank_name="First National",
        account_number="62001234567",
        ledger_account_id=chart["1100"].id,
        opening_balance=Decimal("10000.00"),
    ))
    db_session.commit()
    return bank_account
