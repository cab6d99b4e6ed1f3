from datetime import date
from decimal import Decimal

import pytest

from crud import ar_invoices as crud_ar_invoices
from crud import sales_documents as crud_sales
from models.ar_invoices import ARInvoice, ARInvoiceStatus
from models.ar_payments import ARPayment
from models.sales_documents import DocumentStatus, DocumentType, SalesDocument
from schemas.sales_documents import SalesDocumentUpdate
from utils.errors import ConflictError, ValidationError

from conftest import TENANT, USER, money


@pytest.fixture
def invoice(db, document_payload):
    return crud_sales.create_document(db, DocumentType.INVOICE, document_payload(), TENANT, USER)


def _ar(db, invoice):
    return db.query(ARInvoice).filter(ARInvoice.id == invoice.ar_invoice_id).one()


def test_derive_status_from_outstanding():
    assert crud_ar_invoices.derive_ar_status(Decimal("1000"), Decimal("0")) == (Decimal("1000.00"), ARInvoiceStatus.OPEN)
    assert crud_ar_invoices.derive_ar_status(Decimal("1000"), Decimal("400")) == (Decimal("600.00"), ARInvoiceStatus.PARTIAL)
    assert crud_ar_invoices.derive_ar_status(Decimal("1000"), Decimal("999.99"))[1] == ARInvoiceStatus.PAID
    assert crud_ar_invoices.derive_ar_status(Decimal("1000"), Decimal("1000"))[1] == ARInvoiceStatus.PAID


def test_invoice_creation_posts_ar_mirror(db, invoice):
    ar_invoice = _ar(db, invoice)

    assert invoice.is_posted
    assert invoice.status == DocumentStatus.POSTED
    assert money(ar_invoice.net_total) == money("1000")
    assert money(ar_invoice.outstanding_amount) == money("1000")
    assert ar_invoice.status == ARInvoiceStatus.OPEN
    assert ar_invoice.source_type == "SALES_INVOICE"
    assert ar_invoice.source_id == invoice.id
    assert ar_invoice.customer_code == invoice.customer_code
    assert ar_invoice.invoice_date == invoice.document_date
    assert ar_invoice.invoice_no == "ARI-000001"


def test_paid_invoice_stays_paid_after_unchanged_edit(db, invoice):
    ar_invoice = _ar(db, invoice)
    crud_ar_invoices.record_payment(db, ar_invoice.id, TENANT, Decimal("1000"), USER, payment_date=date(2024, 3, 20))
    assert _ar(db, invoice).status == ARInvoiceStatus.PAID

    crud_sales.update_document(
        db, invoice.id, DocumentType.INVOICE, SalesDocumentUpdate(description="delivered in full"), TENANT, USER
    )

    ar_invoice = _ar(db, invoice)
    assert money(ar_invoice.net_total) == money("1000")
    assert money(ar_invoice.paid_amount) == money("1000")
    assert money(ar_invoice.outstanding_amount) == money("0")
    assert ar_invoice.status == ARInvoiceStatus.PAID
    assert ar_invoice.description == "delivered in full"


def test_edit_syncs_totals_into_mirror(db, invoice):
    line_id = invoice.lines[0].id
    payload = SalesDocumentUpdate.model_validate({"items": [{"lineId": line_id, "quantity": 12, "unitPrice": "100"}]})

    crud_sales.update_document(db, invoice.id, DocumentType.INVOICE, payload, TENANT, USER)

    ar_invoice = _ar(db, invoice)
    assert money(ar_invoice.net_total) == money("1200")
    assert money(ar_invoice.outstanding_amount) == money("1200")
    assert db.query(ARInvoice).count() == 1


def test_edit_below_paid_amount_is_rejected(db, invoice):
    ar_invoice = _ar(db, invoice)
    crud_ar_invoices.record_payment(db, ar_invoice.id, TENANT, Decimal("800"), USER, payment_date=date(2024, 3, 20))
    line_id = invoice.lines[0].id

    payload = SalesDocumentUpdate.model_validate({"details": [{"lineId": line_id, "quantity": 5, "unitPrice": "100"}]})
    with pytest.raises(ValidationError):
        crud_sales.update_document(db, invoice.id, DocumentType.INVOICE, payload, TENANT, USER)

    assert money(crud_sales.get_document(db, invoice.id, TENANT).net_total) == money("1000")
    assert _ar(db, invoice).status == ARInvoiceStatus.PARTIAL


def test_partial_payment_then_settlement(db, invoice):
    ar_invoice = _ar(db, invoice)

    first = crud_ar_invoices.record_payment(db, ar_invoice.id, TENANT, "250.50", USER, payment_date=date(2024, 3, 20))
    assert first.payment_no == "ARP-000001"
    ar_invoice = _ar(db, invoice)
    assert ar_invoice.status == ARInvoiceStatus.PARTIAL
    assert money(ar_invoice.outstanding_amount) == money("749.50")

    crud_ar_invoices.record_payment(db, ar_invoice.id, TENANT, "749.50", USER, payment_date=date(2024, 3, 21))
    ar_invoice = crud_ar_invoices.get_ar_invoice(db, ar_invoice.id, TENANT)
    assert ar_invoice.status == ARInvoiceStatus.PAID
    assert len(ar_invoice.payments) == 2


def test_overpayment_is_rejected(db, invoice):
    ar_invoice = _ar(db, invoice)
    with pytest.raises(ValidationError):
        crud_ar_invoices.record_payment(db, ar_invoice.id, TENANT, Decimal("1000.01"), USER)
    assert db.query(ARPayment).count() == 0


def test_payment_on_void_invoice_is_rejected(db, invoice):
    crud_sales.void_document(db, invoice.id, DocumentType.INVOICE, TENANT, USER)
    with pytest.raises(ConflictError):
        crud_ar_invoices.record_payment(db, invoice.ar_invoice_id, TENANT, Decimal("10"), USER)


def test_posting_twice_is_rejected(db, invoice):
    with pytest.raises(ConflictError, match="already posted"):
        crud_sales.post_document(db, invoice.id, TENANT, USER)
    assert db.query(ARInvoice).count() == 1


def test_legacy_unposted_invoice_can_be_posted(db, customer):
    legacy = SalesDocument(
        tenant_id=TENANT, document_type=DocumentType.INVOICE, document_no="OLD-1",
        document_date=date(2024, 1, 2), customer_id=customer.id,
        customer_code=customer.code, customer_name=customer.name, currency_code="MYR",
        sub_total=Decimal("300"), net_total=Decimal("300"),
    )
    db.add(legacy)
    db.commit()

    posted = crud_sales.post_document(db, legacy.id, TENANT, USER)

    assert posted.is_posted
    ar_invoice = _ar(db, posted)
    assert money(ar_invoice.outstanding_amount) == money("300")
    assert ar_invoice.source_id == legacy.id


def test_sync_never_creates_a_mirror(db, customer):
    legacy = SalesDocument(
        tenant_id=TENANT, document_type=DocumentType.INVOICE, document_no="OLD-2",
        document_date=date(2024, 1, 2), customer_id=customer.id,
        customer_code=customer.code, customer_name=customer.name, currency_code="MYR",
    )
    db.add(legacy)
    db.commit()

    assert crud_ar_invoices.sync_invoice_on_update(db, legacy, USER) is None
    assert db.query(ARInvoice).count() == 0


def test_ar_invoice_list_filters_by_status(db, invoice, document_payload):
    second = crud_sales.create_document(db, DocumentType.INVOICE, document_payload(), TENANT, USER)
    crud_ar_invoices.record_payment(db, second.ar_invoice_id, TENANT, Decimal("1000"), USER)

    items, total = crud_ar_invoices.get_ar_invoices(db, TENANT, status=ARInvoiceStatus.OPEN)
    assert total == 1
    assert items[0].id == invoice.ar_invoice_id
