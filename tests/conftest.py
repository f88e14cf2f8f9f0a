"""Pytest fixtures for the checkout tests."""

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app import models  # noqa: F401  registers every table
from app.database import get_session
from app.main import app
from app.models.cart import CartItem
from app.models.coupon import Coupon
from app.models.product import Product
from app.models.user import User
from app.utils.token import create_access_token


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
def client(session):
    app.dependency_overrides[get_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


def _user(session, first_name, role):
    user = User(
        first_name=first_name,
        last_name="Test",
        email=f"{first_name.lower()}@campus.test",
        role=role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def buyer(session):
    return _user(session, "Ada", "buyer")


@pytest.fixture
def seller1(session):
    return _user(session, "Bola", "seller")


@pytest.fixture
def seller2(session):
    return _user(session, "Chidi", "seller")


@pytest.fixture
def make_product(session):
    def make(seller, price, stock=10, name=None):
        product = Product(
            seller_id=seller.id,
            name=name or f"Item {price}",
            price=price,
            stock=stock,
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return make


@pytest.fixture
def add_to_cart(session):
    def add(buyer, product, quantity=1):
        item = CartItem(user_id=buyer.id, product_id=product.id, quantity=quantity)
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    return add


@pytest.fixture
def make_coupon(session):
    def make(code="SAVE10", seller=None, discount_percent=10, **kwargs):
        coupon = Coupon(
            code=code,
            seller_id=seller.id if seller else None,
            discount_percent=discount_percent,
            **kwargs,
        )
        session.add(coupon)
        session.commit()
        session.refresh(coupon)
        return coupon

    return make


@pytest.fixture
def auth_headers():
    def headers(user):
        token = create_access_token({"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return headers
