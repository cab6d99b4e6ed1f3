"""
Accounts receivable subledger.

Every posted sales INVOICE has exactly one ``ARInvoice`` mirror linked back
through ``source_type``/``source_id``. The functions that keep the mirror in
step with its sales document (``post_invoice``, ``sync_invoice_on_update``,
``void_cascade``) only flush; the sales engine commits them together with the
document change. Payment recording is a standalone operation and commits.
"""
import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from crud.audit_log import create_audit_log
from crud.document_series import AR_INVOICE, AR_PAYMENT, get_next_number
from crud.fiscal_periods import ensure_period_open
from models.ar_invoices import AR_SOURCE_SALES_INVOICE, ARInvoice, ARInvoiceStatus
from models.ar_payments import ARPayment
from models.sales_documents import DocumentStatus, DocumentType, SalesDocument
from schemas.audit_log import AuditLogCreate
from utils import local_today, sqlalchemy_to_dict
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.totals import ZERO, round_money, to_decimal

logger = logging.getLogger("ar_invoices")

# Outstanding balances at or below this count as settled.
PAID_TOLERANCE = Decimal("0.01")


def derive_ar_status(net_total, paid_amount) -> Tuple[Decimal, ARInvoiceStatus]:
    """Outstanding amount and status for a mirror with these figures."""
    paid = round_money(paid_amount)
    outstanding = round_money(to_decimal(net_total) - paid)
    if outstanding <= PAID_TOLERANCE:
        return outstanding, ARInvoiceStatus.PAID
    if paid > ZERO:
        return outstanding, ARInvoiceStatus.PARTIAL
    return outstanding, ARInvoiceStatus.OPEN


def _audit(db: Session, ar_invoice: ARInvoice, action: str, user_identifier: str, old_values=None):
    create_audit_log(db, AuditLogCreate(
        table_name="ar_invoices",
        record_id=ar_invoice.id,
        changed_by=user_identifier,
        action=action,
        tenant_id=ar_invoice.tenant_id,
        old_values=old_values,
        new_values=sqlalchemy_to_dict(ar_invoice),
    ))


def find_by_source(db: Session, document: SalesDocument) -> Optional[ARInvoice]:
    return db.query(ARInvoice).filter(
        ARInvoice.tenant_id == document.tenant_id,
        ARInvoice.source_type == AR_SOURCE_SALES_INVOICE,
        ARInvoice.source_id == document.id,
    ).with_for_update().first()


def find_linked_ar_invoice(db: Session, document: SalesDocument) -> Optional[ARInvoice]:
    """The mirror of ``document``, by direct link or, for old rows without one, by source."""
    if document.ar_invoice_id is not None:
        ar_invoice = db.query(ARInvoice).filter(
            ARInvoice.id == document.ar_invoice_id,
            ARInvoice.tenant_id == document.tenant_id,
        ).with_for_update().first()
        if ar_invoice is not None:
            return ar_invoice

    ar_invoice = find_by_source(db, document)
    if ar_invoice is not None:
        logger.warning(
            f"Sales invoice {document.document_no} (ID: {document.id}) has no direct AR link; "
            f"matched AR invoice {ar_invoice.invoice_no} by source for tenant {document.tenant_id}"
        )
    return ar_invoice


def post_invoice(db: Session, document: SalesDocument, user_identifier: str) -> ARInvoice:
    """Create the AR mirror of a sales invoice. Valid once per invoice."""
    if document.document_type != DocumentType.INVOICE:
        raise ValidationError(f"Only invoices can be posted to AR, not {document.document_type.value}")
    if document.ar_invoice_id is not None or document.is_posted:
        raise ConflictError(f"Invoice {document.document_no} already posted")
    if find_by_source(db, document) is not None:
        raise ConflictError(f"Invoice {document.document_no} already has an AR invoice")

    outstanding, status = derive_ar_status(document.net_total, ZERO)
    ar_invoice = ARInvoice(
        tenant_id=document.tenant_id,
        invoice_no=get_next_number(db, document.tenant_id, AR_INVOICE, document.document_date),
        invoice_date=document.document_date,
        due_date=document.due_date,
        customer_id=document.customer_id,
        customer_code=document.customer_code,
        customer_name=document.customer_name,
        reference=document.reference,
        description=document.description,
        sub_total=document.sub_total,
        discount_amount=document.discount_amount,
        tax_amount=document.tax_amount,
        net_total=document.net_total,
        paid_amount=ZERO,
        outstanding_amount=outstanding,
        currency_code=document.currency_code,
        exchange_rate=document.exchange_rate,
        status=status,
        source_type=AR_SOURCE_SALES_INVOICE,
        source_id=document.id,
        created_by=user_identifier,
    )
    db.add(ar_invoice)
    db.flush()
    _audit(db, ar_invoice, "CREATE", user_identifier)

    document.ar_invoice_id = ar_invoice.id
    document.is_posted = True
    document.status = DocumentStatus.POSTED
    logger.info(f"AR invoice {ar_invoice.invoice_no} posted from sales invoice {document.document_no} for tenant {document.tenant_id}")
    return ar_invoice


def sync_invoice_on_update(db: Session, document: SalesDocument, user_identifier: str) -> Optional[ARInvoice]:
    """Carry an edited sales invoice into its mirror. Never creates one; paid amount is kept."""
    ar_invoice = find_linked_ar_invoice(db, document)
    if ar_invoice is None:
        return None
    if ar_invoice.is_void:
        raise ConflictError(f"AR invoice {ar_invoice.invoice_no} is void and cannot be updated")

    paid = to_decimal(ar_invoice.paid_amount)
    if round_money(document.net_total) < round_money(paid):
        raise ValidationError(
            f"Net total {round_money(document.net_total)} is below the {round_money(paid)} already paid on AR invoice {ar_invoice.invoice_no}"
        )

    old_values = sqlalchemy_to_dict(ar_invoice)
    outstanding, status = derive_ar_status(document.net_total, paid)
    ar_invoice.invoice_date = document.document_date
    ar_invoice.due_date = document.due_date
    ar_invoice.reference = document.reference
    ar_invoice.description = document.description
    ar_invoice.sub_total = document.sub_total
    ar_invoice.discount_amount = document.discount_amount
    ar_invoice.tax_amount = document.tax_amount
    ar_invoice.net_total = document.net_total
    ar_invoice.outstanding_amount = outstanding
    ar_invoice.status = status
    ar_invoice.updated_by = user_identifier
    if document.ar_invoice_id is None:
        document.ar_invoice_id = ar_invoice.id
    db.flush()
    _audit(db, ar_invoice, "UPDATE", user_identifier, old_values)
    return ar_invoice


def void_cascade(db: Session, document: SalesDocument, user_identifier: str) -> Optional[ARInvoice]:
    ar_invoice = find_linked_ar_invoice(db, document)
    if ar_invoice is None or ar_invoice.is_void:
        return ar_invoice

    old_values = sqlalchemy_to_dict(ar_invoice)
    ar_invoice.is_void = True
    ar_invoice.status = ARInvoiceStatus.VOID
    ar_invoice.updated_by = user_identifier
    db.flush()
    _audit(db, ar_invoice, "VOID", user_identifier, old_values)
    logger.info(f"AR invoice {ar_invoice.invoice_no} voided with sales invoice {document.document_no} for tenant {document.tenant_id}")
    return ar_invoice


def get_ar_invoice(db: Session, ar_invoice_id: int, tenant_id: str) -> ARInvoice:
    ar_invoice = db.query(ARInvoice).options(selectinload(ARInvoice.payments)).filter(
        ARInvoice.id == ar_invoice_id, ARInvoice.tenant_id == tenant_id
    ).first()
    if ar_invoice is None:
        raise NotFoundError(f"AR invoice {ar_invoice_id} not found")
    return ar_invoice


def get_ar_invoices(
    db: Session,
    tenant_id: str,
    status: Optional[ARInvoiceStatus] = None,
    customer_id: Optional[int] = None,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[ARInvoice], int]:
    query = db.query(ARInvoice).filter(ARInvoice.tenant_id == tenant_id)
    if status:
        query = query.filter(ARInvoice.status == status)
    if customer_id:
        query = query.filter(ARInvoice.customer_id == customer_id)
    total = query.count()
    items = query.order_by(ARInvoice.invoice_date.desc(), ARInvoice.id.desc()).offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def record_payment(
    db: Session,
    ar_invoice_id: int,
    tenant_id: str,
    amount,
    user_identifier: str,
    payment_date=None,
    payment_method: Optional[str] = None,
    reference: Optional[str] = None,
) -> ARPayment:
    """Apply a receipt to one AR invoice and recompute its balance."""
    try:
        ar_invoice = db.query(ARInvoice).filter(
            ARInvoice.id == ar_invoice_id, ARInvoice.tenant_id == tenant_id
        ).with_for_update().first()
        if ar_invoice is None:
            raise NotFoundError(f"AR invoice {ar_invoice_id} not found")
        if ar_invoice.is_void:
            raise ConflictError(f"AR invoice {ar_invoice.invoice_no} is void")

        amount = round_money(amount)
        if amount <= ZERO:
            raise ValidationError("Payment amount must be greater than zero")
        if amount > round_money(ar_invoice.outstanding_amount):
            raise ValidationError(
                f"Payment {amount} exceeds outstanding {round_money(ar_invoice.outstanding_amount)} on {ar_invoice.invoice_no}"
            )

        payment_date = payment_date or local_today()
        ensure_period_open(db, tenant_id, payment_date)

        old_values = sqlalchemy_to_dict(ar_invoice)
        payment = ARPayment(
            tenant_id=tenant_id,
            payment_no=get_next_number(db, tenant_id, AR_PAYMENT, payment_date),
            payment_date=payment_date,
            ar_invoice_id=ar_invoice.id,
            amount=amount,
            payment_method=payment_method,
            reference=reference,
            created_by=user_identifier,
        )
        db.add(payment)

        ar_invoice.paid_amount = round_money(to_decimal(ar_invoice.paid_amount) + amount)
        ar_invoice.outstanding_amount, ar_invoice.status = derive_ar_status(ar_invoice.net_total, ar_invoice.paid_amount)
        ar_invoice.updated_by = user_identifier
        db.flush()
        _audit(db, ar_invoice, "PAYMENT", user_identifier, old_values)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payment)
    logger.info(
        f"Payment {payment.payment_no} of {amount} recorded against AR invoice {ar_invoice.invoice_no} "
        f"by user {user_identifier} for tenant {tenant_id}"
    )
    return payment


def get_outstanding_documents(db: Session, tenant_id: str, customer_id: int) -> List[dict]:
    """Open receivables of a customer: AR invoices plus credit notes (negative) and debit notes."""
    documents = []

    invoices = db.query(ARInvoice).filter(
        ARInvoice.tenant_id == tenant_id,
        ARInvoice.customer_id == customer_id,
        ARInvoice.status.in_([ARInvoiceStatus.OPEN, ARInvoiceStatus.PARTIAL]),
        ARInvoice.is_void.is_(False),
    ).all()
    for inv in invoices:
        documents.append({
            "id": inv.id,
            "document_type": DocumentType.INVOICE.value,
            "document_no": inv.invoice_no,
            "document_date": inv.invoice_date,
            "due_date": inv.due_date,
            "net_total": round_money(inv.net_total),
            "outstanding_amount": round_money(inv.outstanding_amount),
            "currency_code": inv.currency_code,
        })

    notes = db.query(SalesDocument).filter(
        SalesDocument.tenant_id == tenant_id,
        SalesDocument.customer_id == customer_id,
        SalesDocument.document_type.in_([DocumentType.CREDIT_NOTE, DocumentType.DEBIT_NOTE]),
        SalesDocument.status == DocumentStatus.OPEN,
        SalesDocument.is_void.is_(False),
    ).all()
    for note in notes:
        sign = -1 if note.document_type == DocumentType.CREDIT_NOTE else 1
        amount = round_money(note.net_total) * sign
        documents.append({
            "id": note.id,
            "document_type": note.document_type.value,
            "document_no": note.document_no,
            "document_date": note.document_date,
            "due_date": note.due_date,
            "net_total": amount,
            "outstanding_amount": amount,
            "currency_code": note.currency_code,
        })

    documents.sort(key=lambda d: (d["document_date"], d["id"]))
    return documents
