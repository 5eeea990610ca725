"""Pytest configuration for storefront tests."""

import os
import tempfile

# Configure the app before any storefront module is imported.
_TMP_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = os.getenv(
    "TEST_DATABASE_URL",
    f"sqlite:///{os.path.join(_TMP_DIR, 'storefront.db')}"
)
os.environ["TELEMETRY_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_DATA"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["JWT_SECRET"] = "test-secret"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from storefront.auth import Identity, create_access_token, hash_password  # noqa: E402
from storefront.database import SessionLocal, engine  # noqa: E402
from storefront.main import app  # noqa: E402
from storefront.models import Base, Product, Role, User  # noqa: E402

PASSWORD = "smoothie123"


# ---------------------------------------------------------------------------
# Database isolation: every test starts from empty tables.
# ---------------------------------------------------------------------------

@pytest.fixture(scope="function", autouse=True)
def _reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    """HTTP client against the app; the lifespan is not run."""
    return TestClient(app)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(email=None, role=Role.CUSTOMER.value, name="Juan"):
        counter["n"] += 1
        user = User(
            email=email or f"customer{counter['n']}@jusas.ph",
            name=name,
            password=hash_password(PASSWORD),
            role=role
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_product(db):
    def _make_product(name="Mango Banana Boost", price=149.0, stock=10, **fields):
        product = Product(name=name, price=price, stock=stock, **fields)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make_product


@pytest.fixture
def customer(make_user):
    return make_user(email="juan@jusas.ph")


@pytest.fixture
def admin(make_user):
    return make_user(email="boss@jusas.ph", role=Role.ADMIN.value, name="Boss")


def identity_of(user):
    return Identity(id=user.id, email=user.email, role=user.role)


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(identity_of(user))}"}


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)
