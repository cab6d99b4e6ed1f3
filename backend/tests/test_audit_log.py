import pytest
from pydantic import ValidationError as PydanticValidationError

from crud.audit_log import changed_fields, create_audit_log, get_audit_trail
from schemas.audit_log import AuditLogCreate

from conftest import OTHER_TENANT, TENANT, USER


def _entry(record_id, action="update", tenant_id=TENANT, **values):
    return AuditLogCreate(
        tenant_id=tenant_id, table_name="sales_documents", record_id=record_id,
        changed_by=USER, action=action, **values,
    )


def test_action_is_normalized_and_checked():
    assert _entry(1, action=" void ").action == "VOID"
    with pytest.raises(PydanticValidationError):
        _entry(1, action="ARCHIVE")


def test_changed_fields_ignores_bookkeeping_columns():
    old = {"net_total": "100.00", "status": "OPEN", "updated_at": "2024-03-01T10:00:00"}
    new = {"net_total": "120.00", "status": "OPEN", "updated_at": "2024-03-02T10:00:00", "reference": "PO-7"}

    assert changed_fields(old, new) == ["net_total", "reference"]
    assert changed_fields(None, new) == []


def test_trail_filters_by_record_and_tenant(db):
    create_audit_log(db, _entry(1, action="CREATE"))
    create_audit_log(db, _entry(1, action="VOID"))
    create_audit_log(db, _entry(2, action="CREATE"))
    create_audit_log(db, _entry(1, action="CREATE", tenant_id=OTHER_TENANT))
    db.commit()

    rows, total = get_audit_trail(db, TENANT, table_name="sales_documents", record_id=1)

    assert total == 2
    assert [r.action for r in rows] == ["VOID", "CREATE"]
    assert get_audit_trail(db, TENANT)[1] == 3


def test_audit_row_is_not_committed_on_its_own(db):
    create_audit_log(db, _entry(9, action="CREATE"))
    db.rollback()

    assert get_audit_trail(db, TENANT)[1] == 0
