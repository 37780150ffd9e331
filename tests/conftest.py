import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_ON_STARTUP"] = "0"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import get_db, init_db, make_engine
from main import app
from models import Product, User
from pricing import to_cents
from security import create_access_token, hash_password


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(username="alice", email=None, role="customer", status="active", password="secret1"):
        user = User(
            full_name=username.title(),
            username=username,
            email=email or f"{username}@example.com",
            password_hash=hash_password(password),
            role=role,
            status=status,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_product(db):
    def _make(name="Cat Food", price="10.00", discount=0, pet_type="cat", product_type="food", **extra):
        product = Product(
            name=name,
            description=extra.pop("description", f"{name} description"),
            price_cents=to_cents(price),
            category=extra.pop("category", product_type),
            pet_type=pet_type,
            product_type=product_type,
            discount=discount,
            **extra,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def auth():
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return _headers


@pytest.fixture
def customer(make_user):
    return make_user("alice")


@pytest.fixture
def admin(make_user):
    return make_user("admin", role="admin")
