import os
import sys


# Allow running pytest from either the repo root or from within `backend/`.
# Tests import the flat modules (`database`, `crud.*`), which requires `backend/` on sys.path.
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

# Must be set before `database` is imported: the engine is built at import time.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_TO_FILE"] = "false"
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine, get_db
import models  # noqa: F401
from crud import customers as crud_customers
from models.access_rights import AccessRight
from models.user_groups import UserGroup
from schemas.customers import CustomerCreate
from schemas.sales_documents import SalesDocumentCreate
from utils.auth_utils import get_current_user
from utils.permissions import actions_to_flags

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"
USER = "tester"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def tenant_id():
    return TENANT


@pytest.fixture
def customer(db):
    return crud_customers.create_customer(
        db,
        CustomerCreate(code="c001", name="Acme Trading", credit_term_days=30, address1="1 Jalan Besar", address2="Ipoh"),
        TENANT,
        USER,
    )


@pytest.fixture
def make_group(db):
    """Create a user group holding ``permissions`` ({module: [actions]})."""
    def _make(code, permissions, tenant_id=TENANT):
        group = UserGroup(tenant_id=tenant_id, code=code, name=code.title(), created_by=USER)
        db.add(group)
        db.flush()
        for module_code, actions in permissions.items():
            db.add(AccessRight(group_id=group.id, module_code=module_code, function_code="ALL", **actions_to_flags(actions)))
        db.commit()
        return group
    return _make


@pytest.fixture
def document_payload(customer):
    """Build a SalesDocumentCreate for the fixture customer."""
    def _payload(lines=None, **header):
        header.setdefault("documentDate", date(2024, 3, 15))
        body = {
            "customerId": customer.id,
            "details": lines or [{"productCode": "ITEM-001", "description": "Office chair", "quantity": 10, "unitPrice": "100"}],
            **header,
        }
        return SalesDocumentCreate.model_validate(body)
    return _payload


class AuthState:
    """Claims returned by the overridden ``get_current_user``."""

    def __init__(self):
        self.claims = {"sub": "1", "username": USER, "groupId": None, "isAdmin": True}

    def login(self, group_id=None, is_admin=False, username=USER):
        self.claims = {"sub": "1", "username": username, "groupId": group_id, "isAdmin": is_admin}


@pytest.fixture
def auth():
    return AuthState()


@pytest.fixture
def client(db, auth):
    from main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: auth.claims
    # Group ids are reused across tests once tables are recreated.
    app.state.permission_cache.invalidate()
    with TestClient(app, headers={"X-Tenant-ID": TENANT}) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))
