import pytest

from crud import customers as crud_customers
from crud import sales_documents as crud_sales
from models.audit_log import AuditLog
from models.customers import Customer
from models.sales_documents import DocumentType
from schemas.customers import CustomerCreate, CustomerUpdate
from utils.errors import ConflictError, NotFoundError, ValidationError

from conftest import OTHER_TENANT, TENANT, USER


def test_create_upper_cases_code_and_audits(db, customer):
    assert customer.code == "C001"
    rows = db.query(AuditLog).filter(AuditLog.table_name == "customers").all()
    assert [row.action for row in rows] == ["CREATE"]


def test_duplicate_code_is_a_conflict_and_writes_nothing(db, customer):
    before = db.query(Customer).count()
    audit_before = db.query(AuditLog).count()

    with pytest.raises(ConflictError):
        crud_customers.create_customer(db, CustomerCreate(code="C001", name="Someone Else"), TENANT, USER)

    assert db.query(Customer).count() == before
    assert db.query(AuditLog).count() == audit_before
    assert crud_customers.get_customer(db, customer.id, TENANT).name == "Acme Trading"


def test_same_code_in_another_tenant_is_allowed(db, customer):
    other = crud_customers.create_customer(db, CustomerCreate(code="C001", name="Other"), OTHER_TENANT, USER)
    assert other.id != customer.id


def test_update_rechecks_code(db, customer):
    crud_customers.create_customer(db, CustomerCreate(code="C002", name="Beta"), TENANT, USER)
    with pytest.raises(ConflictError):
        crud_customers.update_customer(db, customer.id, CustomerUpdate(code="c002"), TENANT, USER)

    updated = crud_customers.update_customer(db, customer.id, CustomerUpdate(phone="05-1234567"), TENANT, USER)
    assert updated.phone == "05-1234567"
    assert updated.updated_by == USER


def test_delete_with_transactions_is_refused(db, customer, document_payload):
    crud_sales.create_document(db, DocumentType.QUOTATION, document_payload(), TENANT, USER)

    with pytest.raises(ConflictError, match="Deactivate instead"):
        crud_customers.delete_customer(db, customer.id, TENANT, USER)
    assert crud_customers.get_customer(db, customer.id, TENANT).deleted_at is None


def test_deleted_customer_is_hidden_but_code_stays_reserved(db, customer):
    crud_customers.delete_customer(db, customer.id, TENANT, USER)

    with pytest.raises(NotFoundError):
        crud_customers.get_customer(db, customer.id, TENANT)
    assert crud_customers.get_customer_by_code(db, "C001", TENANT) is None
    assert crud_customers.get_customer_by_code(db, "c001", TENANT, include_deleted=True) is not None
    with pytest.raises(ConflictError):
        crud_customers.create_customer(db, CustomerCreate(code="C001", name="Reuse"), TENANT, USER)


def test_list_hides_inactive_unless_asked(db, customer):
    crud_customers.create_customer(db, CustomerCreate(code="C002", name="Dormant", is_active=False), TENANT, USER)

    items, total = crud_customers.get_customers(db, TENANT)
    assert total == 1
    items, total = crud_customers.get_customers(db, TENANT, include_inactive=True)
    assert total == 2
    items, total = crud_customers.get_customers(db, TENANT, search="dorm", include_inactive=True)
    assert [c.code for c in items] == ["C002"]


def test_next_code_uses_highest_number_including_deleted(db, customer):
    crud_customers.create_customer(db, CustomerCreate(code="C009", name="Nine"), TENANT, USER)
    nine = crud_customers.get_customer_by_code(db, "C009", TENANT)
    crud_customers.delete_customer(db, nine.id, TENANT, USER)

    assert crud_customers.next_customer_code(db, TENANT, "c") == "C010"
    assert crud_customers.next_customer_code(db, TENANT, "X", width=4) == "X0001"


def test_next_code_needs_a_prefix(db):
    with pytest.raises(ValidationError):
        crud_customers.next_customer_code(db, TENANT, "  ")
