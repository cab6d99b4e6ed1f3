import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.ar_invoices import ARInvoice
from models.ar_payments import ARPayment
from models.document_series import DocumentSeries
from models.sales_documents import DocumentType, SalesDocument
from utils import local_today

logger = logging.getLogger("document_series")

AR_INVOICE = "AR_INVOICE"
AR_PAYMENT = "AR_PAYMENT"

DEFAULT_NUMBER_LENGTH = 6
# Upper bound on numbers skipped because a document already holds them.
MAX_SKIPS = 1000

SALES_TYPES = {t.value for t in DocumentType}

# Types whose first three letters would collide or read badly.
DEFAULT_PREFIXES = {AR_INVOICE: "ARI-", AR_PAYMENT: "ARP-"}


def format_document_no(series: DocumentSeries, number: int, on_date: Optional[date] = None) -> str:
    """prefix (with {YYYY}/{YY}/{MM} filled in) + zero padded number + suffix."""
    on_date = on_date or local_today()
    prefix = series.prefix or ""
    prefix = (
        prefix.replace("{YYYY}", f"{on_date.year:04d}")
        .replace("{YY}", f"{on_date.year % 100:02d}")
        .replace("{MM}", f"{on_date.month:02d}")
    )
    return f"{prefix}{str(number).zfill(series.number_length or DEFAULT_NUMBER_LENGTH)}{series.suffix or ''}"


def _document_count(db: Session, tenant_id: str, document_type: str) -> int:
    if document_type in SALES_TYPES:
        return db.query(SalesDocument).filter(
            SalesDocument.tenant_id == tenant_id,
            SalesDocument.document_type == DocumentType(document_type),
        ).count()
    if document_type == AR_INVOICE:
        return db.query(ARInvoice).filter(ARInvoice.tenant_id == tenant_id).count()
    if document_type == AR_PAYMENT:
        return db.query(ARPayment).filter(ARPayment.tenant_id == tenant_id).count()
    return 0


def _number_taken(db: Session, tenant_id: str, document_type: str, document_no: str) -> bool:
    if document_type in SALES_TYPES:
        query = db.query(SalesDocument.id).filter(
            SalesDocument.tenant_id == tenant_id,
            SalesDocument.document_type == DocumentType(document_type),
            SalesDocument.document_no == document_no,
        )
    elif document_type == AR_INVOICE:
        query = db.query(ARInvoice.id).filter(ARInvoice.tenant_id == tenant_id, ARInvoice.invoice_no == document_no)
    elif document_type == AR_PAYMENT:
        query = db.query(ARPayment.id).filter(ARPayment.tenant_id == tenant_id, ARPayment.payment_no == document_no)
    else:
        return False
    return query.first() is not None


def _lock_default_series(db: Session, tenant_id: str, document_type: str) -> Optional[DocumentSeries]:
    return db.query(DocumentSeries).filter(
        DocumentSeries.tenant_id == tenant_id,
        DocumentSeries.document_type == document_type,
        DocumentSeries.is_default.is_(True),
        DocumentSeries.is_active.is_(True),
    ).with_for_update().first()


def _create_default_series(db: Session, tenant_id: str, document_type: str) -> DocumentSeries:
    series = DocumentSeries(
        tenant_id=tenant_id,
        document_type=document_type,
        code="DEFAULT",
        prefix=DEFAULT_PREFIXES.get(document_type, f"{document_type[:3].upper()}-"),
        number_length=DEFAULT_NUMBER_LENGTH,
        next_number=_document_count(db, tenant_id, document_type) + 1,
        is_default=True,
        is_active=True,
        created_by="system",
    )
    try:
        with db.begin_nested():
            db.add(series)
    except IntegrityError:
        # Another request created it first; use theirs.
        series = _lock_default_series(db, tenant_id, document_type)
        if series is None:
            raise
        return series
    logger.info(f"Created default document series {series.prefix} for {document_type} (tenant {tenant_id})")
    return _lock_default_series(db, tenant_id, document_type)


def get_next_number(db: Session, tenant_id: str, document_type: str, on_date: Optional[date] = None) -> str:
    """
    Allocate the next document number for ``document_type``.

    The series row stays locked until the caller's transaction ends, so two
    concurrent allocations for the same type are serialized. The counter
    increment is only flushed; it commits or rolls back with the document.
    """
    series = _lock_default_series(db, tenant_id, document_type)
    if series is None:
        series = _create_default_series(db, tenant_id, document_type)

    number = series.next_number
    document_no = format_document_no(series, number, on_date)
    skipped = 0
    while _number_taken(db, tenant_id, document_type, document_no):
        skipped += 1
        if skipped > MAX_SKIPS:
            raise RuntimeError(f"Document series for {document_type} has no free number near {series.next_number}")
        number += 1
        document_no = format_document_no(series, number, on_date)
    if skipped:
        logger.warning(f"Skipped {skipped} taken number(s) in {document_type} series for tenant {tenant_id}")

    series.next_number = number + 1
    db.flush()
    return document_no
