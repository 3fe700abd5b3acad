import os

# Must be in place before the app and its settings are imported
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-storefront")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

import pytest
from decimal import Decimal
from httpx import ASGITransport, AsyncClient
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.database import Base
from models import Product, Inventory, ShippingRule
from services.blob_store import LocalBlobStore
from services.token_service import TokenService
from utils.deps import get_db, get_blob_store

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def blob_store(tmp_path) -> LocalBlobStore:
    return LocalBlobStore(
        root_dir=str(tmp_path / "blobs"),
        bucket="transfer-proofs",
        public_base_url="http://test/storage"
    )


def _override_dependencies(session: Session, blob_store: LocalBlobStore):
    def override_get_db():
        try:
            yield session
        finally:
            pass  # Session cleanup handled by session fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store


@pytest.fixture
async def client(session: Session, blob_store: LocalBlobStore):
    """
    Async HTTP client talking to the app with the test database and a
    temporary blob store.
    """
    _override_dependencies(session, blob_store)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sync_client(session: Session, blob_store: LocalBlobStore):
    """Synchronous client for code that drives the API with httpx.Client."""
    _override_dependencies(session, blob_store)

    with TestClient(app) as tc:
        yield tc

    app.dependency_overrides.clear()


@pytest.fixture
def catalog(session: Session) -> dict:
    """
    Hammer 10.00 (stock 10), Nails 2.50 (stock 100), an inactive product, and
    shipping rules for two cities.
    """
    hammer = Product(id="prod-hammer", name="Hammer", sku="HAM-001", price=Decimal("10.00"), is_active=True)
    nails = Product(id="prod-nails", name="Nails", sku="NAI-001", price=Decimal("2.50"), is_active=True)
    retired = Product(id="prod-retired", name="Old Saw", sku="SAW-001", price=Decimal("15.00"), is_active=False)
    session.add_all([hammer, nails, retired])
    session.flush()

    session.add_all([
        Inventory(product_id=hammer.id, quantity=10),
        Inventory(product_id=nails.id, quantity=100),
        Inventory(product_id=retired.id, quantity=5),
        ShippingRule(country="Venezuela", state="Miranda", city="Los Teques",
                     is_free=False, base_cost=Decimal("5.00"), is_active=True),
        ShippingRule(country="Venezuela", state="Distrito Capital", city="Caracas",
                     is_free=True, base_cost=Decimal("0.00"), is_active=True),
    ])
    session.commit()

    return {"hammer": hammer, "nails": nails, "retired": retired}


@pytest.fixture
def make_payload():
    """Builds a Create Order body for Los Teques; keyword args override fields."""
    def _make(items, **overrides):
        payload = {
            "customer_name": "Ana Pérez",
            "customer_email": "ana@example.com",
            "country": "Venezuela",
            "state": "Miranda",
            "city": "Los Teques",
            "address": "Calle 5, Casa 12",
            "cedula": "V-12345678",
            "items": [{"product_id": product_id, "quantity": quantity} for product_id, quantity in items],
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def auth_token() -> str:
    return TokenService.create_access_token(user_id="user-123", email="ana@example.com")


@pytest.fixture
def other_token() -> str:
    return TokenService.create_access_token(user_id="user-999", email="someone@example.com")


@pytest.fixture
def stock(session: Session):
    """Current committed inventory of a product."""
    def _stock(product_id: str) -> int:
        session.expire_all()
        return session.query(Inventory).filter(Inventory.product_id == product_id).one().quantity

    return _stock
