import datetime as dt
import os
from decimal import Decimal

# Must be set before the application modules read their settings
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from expense_tracker.core.jwt import create_access_token
from expense_tracker.core.security import ACCESS_TOKEN_COOKIE, hash_password
from expense_tracker.database import get_session
from expense_tracker.main import app
from expense_tracker.models.expense import Expense
from expense_tracker.models.user import User


PASSWORD = "secret123"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    def _make_user(email: str, user_id: int = None) -> User:
        user = User(id=user_id, email=email, hashed_password=hash_password(PASSWORD))
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_expense(session):
    def _make_expense(user: User, amount: str, category: str, date: str, description: str = "") -> Expense:
        expense = Expense(
            user_id=user.id,
            amount=Decimal(amount),
            category=category,
            description=description,
            date=dt.date.fromisoformat(date),
        )
        session.add(expense)
        session.commit()
        session.refresh(expense)
        return expense

    return _make_expense


@pytest.fixture
def login_as(client):
    def _login_as(user: User) -> TestClient:
        client.cookies.set(ACCESS_TOKEN_COOKIE, create_access_token(user.id, user.email))
        return client

    return _login_as


@pytest.fixture
def alice(make_user):
    return make_user("alice@example.com")


@pytest.fixture
def bob(make_user):
    return make_user("bob@example.com")
