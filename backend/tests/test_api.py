from datetime import date
from decimal import Decimal

from jose import jwt
from starlette.requests import Request

import pytest
from fastapi import HTTPException

from models.fiscal_periods import FiscalPeriod
from utils import auth_utils
from utils.permissions import SALES

from conftest import TENANT


def _invoice_body(customer_id, **extra):
    return {
        "customerId": customer_id,
        "docDate": "2024-03-15",
        "items": [{"productCode": "ITEM-001", "quantity": 10, "unitPrice": "100"}],
        **extra,
    }


def test_create_invoice_accepts_aliases_and_returns_envelope(client, customer):
    response = client.post("/sales/invoices", json=_invoice_body(customer.id))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["documentNo"] == "INV-000001"
    assert data["documentDate"] == "2024-03-15"
    assert data["isPosted"] is True
    assert data["status"] == "POSTED"
    assert data["arInvoiceId"] is not None
    assert Decimal(str(data["netTotal"])) == Decimal("1000")
    assert len(data["details"]) == 1
    assert Decimal(str(data["details"][0]["outstandingQty"])) == Decimal("10")


def test_list_is_paginated(client, customer):
    for _ in range(3):
        client.post("/sales/quotations", json=_invoice_body(customer.id))

    response = client.get("/sales/quotations", params={"page": 1, "pageSize": 2})

    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 2
    assert body["pagination"] == {
        "page": 1, "pageSize": 2, "total": 3, "totalPages": 2, "hasNext": True, "hasPrev": False,
    }


def test_transfer_endpoint_and_transferable_lines(client, customer):
    order = client.post("/sales/orders", json=_invoice_body(customer.id)).json()["data"]
    line_id = order["details"][0]["id"]

    response = client.post(
        f"/sales/orders/{order['id']}/transfer",
        json={"targetType": "DO", "lineTransfers": [{"lineId": line_id, "transferQty": 6}]},
    )
    assert response.status_code == 200
    delivery = response.json()["data"]
    assert delivery["documentType"] == "DELIVERY_ORDER"
    assert delivery["sourceId"] == order["id"]

    lines = client.get(f"/sales/orders/{order['id']}/transferable-lines").json()["data"]
    assert Decimal(str(lines[0]["outstandingQty"])) == Decimal("4")
    assert Decimal(str(lines[0]["transferredQty"])) == Decimal("6")


def test_second_full_transfer_is_a_conflict(client, customer):
    quotation = client.post("/sales/quotations", json=_invoice_body(customer.id)).json()["data"]
    assert client.post(f"/sales/quotations/{quotation['id']}/transfer", json={"targetType": "ORDER"}).status_code == 200

    response = client.post(f"/sales/quotations/{quotation['id']}/transfer", json={"targetType": "ORDER"})

    assert response.status_code == 409
    assert response.json()["success"] is False
    assert response.json()["error"]["code"] == "CONFLICT"


def test_delete_posted_invoice_points_to_void(client, customer):
    invoice = client.post("/sales/invoices", json=_invoice_body(customer.id)).json()["data"]

    response = client.delete(f"/sales/invoices/{invoice['id']}")
    assert response.status_code == 409
    assert "Void it instead" in response.json()["error"]["message"]

    voided = client.post(f"/sales/invoices/{invoice['id']}/void", json={"reason": "duplicate"})
    assert voided.status_code == 200
    assert voided.json()["data"]["status"] == "VOID"
    again = client.post(f"/sales/invoices/{invoice['id']}/void")
    assert again.status_code == 200


def test_locked_period_returns_period_locked(client, db, customer):
    db.add(FiscalPeriod(tenant_id=TENANT, start_date=date(2024, 3, 1), end_date=date(2024, 3, 31), is_locked=True))
    db.commit()

    response = client.post("/sales/quotations", json=_invoice_body(customer.id))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "PERIOD_LOCKED"


def test_malformed_body_is_a_validation_error(client, customer):
    response = client.post("/sales/quotations", json={"customerId": customer.id, "items": [{"quantity": -1}]})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_unknown_document_is_not_found(client):
    response = client.get("/sales/invoices/999")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_missing_tenant_header_is_rejected(client):
    response = client.get("/sales/quotations", headers={"X-Tenant-ID": ""})
    assert response.status_code == 400


def test_view_only_group_cannot_create(client, auth, make_group, customer):
    group = make_group("VIEWER", {SALES: ["view"]})
    auth.login(group_id=group.id)

    assert client.get("/sales/quotations").status_code == 200
    response = client.post("/sales/quotations", json=_invoice_body(customer.id))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


def test_admin_flag_bypasses_group(client, auth, make_group, customer):
    group = make_group("VIEWER", {SALES: ["view"]})
    auth.login(group_id=group.id, is_admin=True)

    assert client.post("/sales/quotations", json=_invoice_body(customer.id)).status_code == 201


def test_permission_update_takes_effect_immediately(client, auth, make_group, customer):
    viewer = make_group("VIEWER", {SALES: ["view"]})
    auth.login(group_id=viewer.id)
    assert client.post("/sales/quotations", json=_invoice_body(customer.id)).status_code == 403

    auth.login(is_admin=True)
    response = client.put(f"/access-rights/groups/{viewer.id}/permissions", json={"permissions": {"SALES": ["view", "create"]}})
    assert response.status_code == 200
    assert response.json()["data"]["permissions"]["SALES"] == ["view", "create"]

    auth.login(group_id=viewer.id)
    assert client.post("/sales/quotations", json=_invoice_body(customer.id)).status_code == 201


def test_my_permissions_include_derived_actions(client, auth, make_group):
    group = make_group("VIEWER", {SALES: ["view"]})
    auth.login(group_id=group.id)

    data = client.get("/access-rights/me").json()["data"]

    assert data["isAdmin"] is False
    assert data["permissions"]["SALES"] == ["export", "print", "view"]
    assert {m["code"] for m in data["modules"]} >= {"SALES", "AR", "USERS"}


def test_default_groups_endpoint(client):
    response = client.post("/access-rights/groups/defaults")

    assert response.status_code == 200
    codes = sorted(g["code"] for g in response.json()["data"])
    assert codes == ["ADMIN", "STAFF"]


def test_customer_endpoints(client):
    created = client.post("/customers/", json={"code": "k01", "name": "Kedai Runcit", "creditTermDays": 14})
    assert created.status_code == 201
    assert created.json()["data"]["code"] == "K01"

    duplicate = client.post("/customers/", json={"code": "K01", "name": "Again"})
    assert duplicate.status_code == 409

    next_code = client.get("/customers/next-code", params={"prefix": "k"})
    assert next_code.json()["data"]["code"] == "K002"
    next_code = client.get("/customers/next-code", params={"prefix": "k", "width": 2})
    assert next_code.json()["data"]["code"] == "K02"


def test_ar_payment_endpoint(client, customer):
    invoice = client.post("/sales/invoices", json=_invoice_body(customer.id)).json()["data"]

    response = client.post(
        f"/ar/invoices/{invoice['arInvoiceId']}/payments",
        json={"amount": "400", "paymentDate": "2024-03-20", "paymentMethod": "CASH"},
    )
    assert response.status_code == 201

    ar_invoice = client.get(f"/ar/invoices/{invoice['arInvoiceId']}").json()["data"]
    assert ar_invoice["status"] == "PARTIAL"
    assert Decimal(str(ar_invoice["outstandingAmount"])) == Decimal("600")
    assert len(ar_invoice["payments"]) == 1

    outstanding = client.get(f"/ar/customers/{customer.id}/outstanding").json()["data"]
    assert [d["documentNo"] for d in outstanding] == [ar_invoice["invoiceNo"]]


def _request(authorization=None):
    headers = [(b"authorization", authorization.encode())] if authorization else []
    return Request({"type": "http", "headers": headers})


def test_get_current_user_returns_token_claims():
    token = jwt.encode({"sub": "7", "username": "alice", "groupId": 3, "isAdmin": False}, auth_utils.JWT_SECRET, algorithm=auth_utils.JWT_ALGORITHM)

    claims = auth_utils.get_current_user(_request(f"Bearer {token}"))

    assert claims["username"] == "alice"
    assert claims["groupId"] == 3
    assert auth_utils.get_user_identifier(claims) == "alice"


@pytest.mark.parametrize("header", [None, "Token abc", "Bearer not-a-jwt"])
def test_get_current_user_rejects_bad_headers(header):
    with pytest.raises(HTTPException) as exc_info:
        auth_utils.get_current_user(_request(header))
    assert exc_info.value.status_code == 401


def test_token_signed_with_another_secret_is_rejected():
    token = jwt.encode({"sub": "7"}, "someone-elses-secret", algorithm="HS256")
    with pytest.raises(HTTPException):
        auth_utils.get_current_user(_request(f"Bearer {token}"))


def test_audit_log_shows_record_history(client, customer):
    client.put(f"/customers/{customer.id}", json={"phone": "05-1234567"})

    response = client.get("/audit-log/", params={"tableName": "customers", "recordId": customer.id})

    assert response.status_code == 200
    entries = response.json()["data"]
    assert [e["action"] for e in entries] == ["UPDATE", "CREATE"]
    assert entries[0]["changedFields"] == ["phone"]
    assert entries[0]["changedBy"] == "tester"
    assert entries[1]["changedFields"] == []


def test_audit_log_is_tenant_scoped(client, customer):
    response = client.get("/audit-log/", headers={"X-Tenant-ID": "tenant-b"})
    assert response.json()["data"] == []
    assert response.json()["pagination"]["total"] == 0
