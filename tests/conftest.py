import itertools
import os
import tempfile
from decimal import Decimal

# Base SQLite fichier dédiée : plusieurs connexions doivent voir les mêmes données
_tmp_dir = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'storefront-test.db')}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["ENVIRONMENT"] = "test"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["STOCK_ADJUST_BACKOFF_MS"] = "2"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.database import Base, SessionLocal, engine  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.main import app as api_app  # noqa: E402
from app.repositories.item_repo import ItemRepository  # noqa: E402
from app.repositories.user_repo import create_user  # noqa: E402

DEFAULT_PASSWORD = "Password123"


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def client():
    with TestClient(api_app) as test_client:
        yield test_client


@pytest.fixture()
def make_user(db):
    counter = itertools.count(1)

    def _make_user(role="user", email=None, password=DEFAULT_PASSWORD, name="Test User"):
        email = email or f"{role}{next(counter)}@example.com"
        return create_user(db, name=name, email=email, password=password, role=role)

    return _make_user


@pytest.fixture()
def make_item(db):
    def _make_item(quantity=50, **overrides):
        data = {
            "name": "Kaju Katli",
            "category": "Traditional",
            "price": Decimal("12.50"),
            "description": "Barfi à la noix de cajou",
            "quantity": quantity,
        }
        data.update(overrides)
        return ItemRepository(db).create_item(data)

    return _make_item


@pytest.fixture()
def user(make_user):
    return make_user(role="user")


@pytest.fixture()
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture()
def auth_headers():
    def _auth_headers(identity, **token_kwargs):
        return {"Authorization": f"Bearer {create_access_token(identity, **token_kwargs)}"}

    return _auth_headers
