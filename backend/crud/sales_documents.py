"""
Sales document engine.

Creates, edits, deletes, voids and transfers sales documents (quotation,
sales order, delivery order, invoice, cash sale, credit note, debit note) and
keeps the AR mirror of invoices in step. Each public mutation runs as one
transaction: it commits once at the end and rolls back everything on error,
so a failed transfer never leaves the source decremented without its target.
"""
import logging
import os
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from crud import ar_invoices as crud_ar_invoices
from crud.audit_log import create_audit_log
from crud.document_series import get_next_number
from crud.fiscal_periods import ensure_period_open
from models.customers import Customer
from models.sales_document_lines import SalesDocumentLine
from models.sales_documents import DocumentStatus, DocumentType, SalesDocument, TransferStatus
from schemas.audit_log import AuditLogCreate
from schemas.sales_documents import SalesDocumentCreate, SalesDocumentUpdate, TransferRequest
from utils import local_today, sqlalchemy_to_dict
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.totals import (
    ZERO,
    calculate_line_tax,
    calculate_totals,
    parse_discount,
    prorate,
    round_money,
    round_qty,
    to_decimal,
)

logger = logging.getLogger("sales_documents")

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "MYR")

# Names accepted for a transfer target.
TRANSFER_TARGET_ALIASES: Dict[str, DocumentType] = {
    "ORDER": DocumentType.SALES_ORDER,
    "SO": DocumentType.SALES_ORDER,
    "SALES_ORDER": DocumentType.SALES_ORDER,
    "DO": DocumentType.DELIVERY_ORDER,
    "DELIVERY_ORDER": DocumentType.DELIVERY_ORDER,
    "INVOICE": DocumentType.INVOICE,
}

# Source type -> target types it may be transferred into.
ALLOWED_TRANSFERS: Dict[DocumentType, Tuple[DocumentType, ...]] = {
    DocumentType.QUOTATION: (DocumentType.SALES_ORDER, DocumentType.DELIVERY_ORDER, DocumentType.INVOICE),
    DocumentType.SALES_ORDER: (DocumentType.DELIVERY_ORDER, DocumentType.INVOICE),
    DocumentType.DELIVERY_ORDER: (DocumentType.INVOICE,),
}


def resolve_target_type(source_type: DocumentType, target_type: str) -> DocumentType:
    target = TRANSFER_TARGET_ALIASES.get((target_type or "").strip().upper())
    if target is None:
        raise ValidationError(f"Unknown transfer target '{target_type}'")
    if target not in ALLOWED_TRANSFERS.get(source_type, ()):
        raise ValidationError(f"{source_type.value} cannot be transferred to {target.value}")
    return target


def _audit(db: Session, document: SalesDocument, action: str, user_identifier: str, old_values=None, new_values=None):
    create_audit_log(db, AuditLogCreate(
        table_name="sales_documents",
        record_id=document.id,
        changed_by=user_identifier,
        action=action,
        tenant_id=document.tenant_id,
        old_values=old_values,
        new_values=new_values if new_values is not None else sqlalchemy_to_dict(document),
    ))


def _line_values(data: dict, line_no: int, tenant_id: str) -> dict:
    """Column values of one line, with discount and tax derived where omitted."""
    quantity = round_qty(data["quantity"])
    uom_rate = to_decimal(data.get("uom_rate") or 1)
    unit_price = to_decimal(data.get("unit_price"))
    gross = quantity * unit_price

    if data.get("discount_amount") is not None:
        discount_amount = round_money(data["discount_amount"])
    else:
        discount_amount = parse_discount(data.get("discount_text"), gross)

    tax_rate = to_decimal(data.get("tax_rate"))
    if data.get("tax_amount") is not None:
        tax_amount = round_money(data["tax_amount"])
    else:
        tax_amount = calculate_line_tax(gross - discount_amount, tax_rate)

    return {
        "tenant_id": tenant_id,
        "line_no": line_no,
        "product_id": data.get("product_id"),
        "product_code": data.get("product_code"),
        "description": data.get("description"),
        "quantity": quantity,
        "uom_code": data.get("uom_code"),
        "uom_rate": uom_rate,
        "base_quantity": round_qty(quantity * uom_rate),
        "unit_price": unit_price,
        "discount_text": data.get("discount_text"),
        "discount_amount": discount_amount,
        "sub_total": round_money(gross - discount_amount),
        "tax_code": data.get("tax_code"),
        "tax_rate": tax_rate,
        "tax_amount": tax_amount,
        "unit_cost": to_decimal(data.get("unit_cost")),
        "outstanding_qty": quantity,
        "transferred_qty": ZERO,
        "source_line_id": data.get("source_line_id"),
    }


def _apply_totals(document: SalesDocument, lines) -> None:
    totals = calculate_totals(lines)
    document.sub_total = totals.sub_total
    document.discount_amount = totals.discount_amount
    document.tax_amount = totals.tax_amount
    document.net_total = totals.net_total
    document.net_total_local = round_money(totals.net_total * to_decimal(document.exchange_rate or 1))


def _apply_cash_payment(document: SalesDocument, paid_amount, change_amount) -> None:
    document.paid_amount = round_money(paid_amount)
    if change_amount is not None:
        document.change_amount = round_money(change_amount)
    else:
        document.change_amount = max(document.paid_amount - round_money(document.net_total), ZERO)


def _refresh_transfer_status(document: SalesDocument) -> None:
    lines = document.lines
    if not any(to_decimal(line.transferred_qty) > ZERO for line in lines):
        document.transfer_status = TransferStatus.NONE
        return
    if all(to_decimal(line.outstanding_qty) <= ZERO for line in lines):
        document.transfer_status = TransferStatus.TRANSFERRED
        document.status = DocumentStatus.TRANSFERRED
    else:
        document.transfer_status = TransferStatus.PARTIAL
        if document.status == DocumentStatus.TRANSFERRED:
            document.status = DocumentStatus.OPEN


def _invoice_due_date(document_date: date, customer: Customer) -> date:
    return document_date + timedelta(days=customer.credit_term_days or 0)


def _resolve_customer(db: Session, customer_id: int, tenant_id: str) -> Customer:
    customer = db.query(Customer).filter(Customer.id == customer_id, Customer.tenant_id == tenant_id).first()
    if customer is None:
        raise ValidationError("Customer not found")
    if not customer.is_active:
        raise ValidationError(f"Customer {customer.code} is inactive")
    return customer


def _lock_document(db: Session, document_id: int, tenant_id: str, document_type: Optional[DocumentType]) -> SalesDocument:
    query = db.query(SalesDocument).filter(SalesDocument.id == document_id, SalesDocument.tenant_id == tenant_id)
    if document_type is not None:
        query = query.filter(SalesDocument.document_type == document_type)
    document = query.with_for_update().first()
    if document is None:
        label = document_type.value.replace("_", " ").title() if document_type else "Sales document"
        raise NotFoundError(f"{label} {document_id} not found")
    return document


def _create_document(
    db: Session,
    tenant_id: str,
    document_type: DocumentType,
    customer: Customer,
    header: dict,
    lines: List[dict],
    user_identifier: str,
) -> SalesDocument:
    """Build and flush one document. Invoices are posted to AR straight away."""
    if not lines:
        raise ValidationError("At least one line item is required")

    document_date = header.get("document_date") or local_today()
    ensure_period_open(db, tenant_id, document_date)

    due_date = header.get("due_date")
    if due_date is None and document_type == DocumentType.INVOICE:
        due_date = _invoice_due_date(document_date, customer)

    line_values = [_line_values(line, idx, tenant_id) for idx, line in enumerate(lines, start=1)]

    document = SalesDocument(
        tenant_id=tenant_id,
        document_type=document_type,
        document_no=get_next_number(db, tenant_id, document_type.value, document_date),
        document_date=document_date,
        due_date=due_date,
        customer_id=customer.id,
        customer_code=header.get("customer_code") or customer.code,
        customer_name=header.get("customer_name") or customer.name,
        bill_to_address=header.get("bill_to_address") or customer.formatted_address() or None,
        ship_to_address=header.get("ship_to_address"),
        reference=header.get("reference"),
        description=header.get("description"),
        status=DocumentStatus.OPEN,
        transfer_status=TransferStatus.NONE,
        is_posted=False,
        is_void=False,
        source_type=header.get("source_type"),
        source_id=header.get("source_id"),
        currency_code=header.get("currency_code") or customer.currency_code or DEFAULT_CURRENCY,
        exchange_rate=to_decimal(header.get("exchange_rate") or 1),
        is_tax_inclusive=bool(header.get("is_tax_inclusive")),
        rounding_amount=round_money(header.get("rounding_amount")),
        paid_amount=ZERO,
        change_amount=ZERO,
        created_by=user_identifier,
    )
    _apply_totals(document, line_values)

    if document_type == DocumentType.CASH_SALE:
        if header.get("paid_amount") is None:
            raise ValidationError("paidAmount is required for cash sales", details={"fields": ["paidAmount"]})
        _apply_cash_payment(document, header["paid_amount"], header.get("change_amount"))
    elif header.get("paid_amount") is not None:
        document.paid_amount = round_money(header["paid_amount"])

    document.lines = [SalesDocumentLine(**values) for values in line_values]
    db.add(document)
    db.flush()
    _audit(db, document, "CREATE", user_identifier)

    if document_type == DocumentType.INVOICE:
        crud_ar_invoices.post_invoice(db, document, user_identifier)
        db.flush()
    return document


def get_document(db: Session, document_id: int, tenant_id: str, document_type: Optional[DocumentType] = None) -> SalesDocument:
    query = db.query(SalesDocument).options(selectinload(SalesDocument.lines)).filter(
        SalesDocument.id == document_id, SalesDocument.tenant_id == tenant_id
    )
    if document_type is not None:
        query = query.filter(SalesDocument.document_type == document_type)
    document = query.first()
    if document is None:
        label = document_type.value.replace("_", " ").title() if document_type else "Sales document"
        raise NotFoundError(f"{label} {document_id} not found")
    return document


def get_documents(
    db: Session,
    tenant_id: str,
    document_type: DocumentType,
    status: Optional[DocumentStatus] = None,
    customer_id: Optional[int] = None,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[SalesDocument], int]:
    query = db.query(SalesDocument).filter(
        SalesDocument.tenant_id == tenant_id,
        SalesDocument.document_type == document_type,
        SalesDocument.is_void.is_(False),
    )
    if status:
        query = query.filter(SalesDocument.status == status)
    if customer_id:
        query = query.filter(SalesDocument.customer_id == customer_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(SalesDocument.document_no.ilike(pattern), SalesDocument.customer_name.ilike(pattern)))
    if date_from:
        query = query.filter(SalesDocument.document_date >= date_from)
    if date_to:
        query = query.filter(SalesDocument.document_date <= date_to)

    total = query.count()
    items = query.order_by(SalesDocument.document_date.desc(), SalesDocument.id.desc()).offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def create_document(
    db: Session,
    document_type: DocumentType,
    payload: SalesDocumentCreate,
    tenant_id: str,
    user_identifier: str,
) -> SalesDocument:
    """Create a document of ``document_type``. Returns invoices in their posted state."""
    try:
        customer = _resolve_customer(db, payload.customer_id, tenant_id)
        header = payload.model_dump(exclude={"details", "customer_id"})
        lines = [line.model_dump(exclude={"line_id"}) for line in payload.details]
        document = _create_document(db, tenant_id, document_type, customer, header, lines, user_identifier)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"{document_type.value} {document.document_no} (ID: {document.id}) created for customer {document.customer_code} "
        f"by user {user_identifier} for tenant {tenant_id}"
    )
    return get_document(db, document.id, tenant_id)


def _merge_lines(document: SalesDocument, new_lines, tenant_id: str) -> List[SalesDocumentLine]:
    """
    Apply edited lines to ``document`` by line id.

    Lines keep the quantity already transferred out of them; an edit may not
    take a line below that quantity, nor drop a line that has been transferred.
    """
    existing = {line.id: line for line in document.lines}
    seen = set()
    merged = []

    for line_no, line_input in enumerate(new_lines, start=1):
        values = _line_values(line_input.model_dump(exclude={"line_id"}), line_no, tenant_id)
        if line_input.line_id is None:
            merged.append(SalesDocumentLine(**values))
            continue

        line = existing.get(line_input.line_id)
        if line is None:
            raise ValidationError(f"Line {line_input.line_id} does not belong to document {document.document_no}")
        if line.id in seen:
            raise ValidationError(f"Line {line.id} appears more than once")
        seen.add(line.id)

        transferred = to_decimal(line.transferred_qty)
        if values["quantity"] < transferred:
            raise ValidationError(
                f"Line {line.line_no}: quantity {values['quantity']} is below the {transferred} already transferred"
            )
        values["transferred_qty"] = transferred
        values["outstanding_qty"] = values["quantity"] - transferred
        values["source_line_id"] = line.source_line_id
        for key, value in values.items():
            setattr(line, key, value)
        merged.append(line)

    for line_id, line in existing.items():
        if line_id not in seen and to_decimal(line.transferred_qty) > ZERO:
            raise ValidationError(f"Line {line.line_no} has already been transferred and cannot be removed")

    if not merged:
        raise ValidationError("At least one line item is required")
    return merged


def update_document(
    db: Session,
    document_id: int,
    document_type: DocumentType,
    payload: SalesDocumentUpdate,
    tenant_id: str,
    user_identifier: str,
) -> SalesDocument:
    try:
        document = _lock_document(db, document_id, tenant_id, document_type)

        if document.is_void or document.status == DocumentStatus.VOID:
            raise ValidationError(f"Cannot edit {document.document_no}: document is void")
        if document_type in ALLOWED_TRANSFERS and document.status != DocumentStatus.OPEN:
            raise ValidationError(f"Cannot edit {document.document_no}: document is {document.status.value}")

        ensure_period_open(db, tenant_id, document.document_date)
        old_values = sqlalchemy_to_dict(document)
        changes = payload.model_dump(exclude_unset=True, exclude={"details"})

        if changes.get("document_date") and changes["document_date"] != document.document_date:
            ensure_period_open(db, tenant_id, changes["document_date"])
            document.document_date = changes["document_date"]
            if document_type == DocumentType.INVOICE and "due_date" not in changes:
                document.due_date = _invoice_due_date(document.document_date, document.customer)
        for field in ("due_date", "reference", "description", "bill_to_address", "ship_to_address", "currency_code"):
            if field in changes:
                setattr(document, field, changes[field])
        if changes.get("exchange_rate") is not None:
            document.exchange_rate = changes["exchange_rate"]
        if changes.get("is_tax_inclusive") is not None:
            document.is_tax_inclusive = changes["is_tax_inclusive"]
        if changes.get("rounding_amount") is not None:
            document.rounding_amount = round_money(changes["rounding_amount"])

        if payload.details is not None:
            document.lines = _merge_lines(document, payload.details, tenant_id)
            db.flush()
            _refresh_transfer_status(document)
        _apply_totals(document, document.lines)

        if document_type == DocumentType.CASH_SALE:
            paid = changes.get("paid_amount")
            _apply_cash_payment(document, paid if paid is not None else document.paid_amount, changes.get("change_amount"))
        elif changes.get("paid_amount") is not None:
            document.paid_amount = round_money(changes["paid_amount"])

        document.updated_by = user_identifier
        db.flush()
        _audit(db, document, "UPDATE", user_identifier, old_values=old_values)

        if document_type == DocumentType.INVOICE:
            crud_ar_invoices.sync_invoice_on_update(db, document, user_identifier)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"{document_type.value} {document.document_no} (ID: {document.id}) updated by user {user_identifier} for tenant {tenant_id}")
    return get_document(db, document_id, tenant_id)


def _void(db: Session, document: SalesDocument, user_identifier: str, reason: Optional[str] = None) -> None:
    old_values = sqlalchemy_to_dict(document)
    document.is_void = True
    document.status = DocumentStatus.VOID
    document.updated_by = user_identifier
    db.flush()
    new_values = sqlalchemy_to_dict(document)
    if reason:
        new_values["void_reason"] = reason
    _audit(db, document, "VOID", user_identifier, old_values=old_values, new_values=new_values)

    if document.document_type == DocumentType.INVOICE:
        crud_ar_invoices.void_cascade(db, document, user_identifier)


def void_document(
    db: Session,
    document_id: int,
    document_type: DocumentType,
    tenant_id: str,
    user_identifier: str,
    reason: Optional[str] = None,
) -> SalesDocument:
    """Void a document and, for invoices, its AR mirror. Voiding twice is a no-op."""
    try:
        document = _lock_document(db, document_id, tenant_id, document_type)
        if document.is_void:
            db.rollback()
            logger.info(f"{document_type.value} {document.document_no} (ID: {document.id}) already void; nothing to do")
            return get_document(db, document_id, tenant_id)

        ensure_period_open(db, tenant_id, document.document_date)
        _void(db, document, user_identifier, reason)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"{document_type.value} {document.document_no} (ID: {document.id}) voided by user {user_identifier} for tenant {tenant_id}")
    return get_document(db, document_id, tenant_id)


def delete_document(
    db: Session,
    document_id: int,
    document_type: DocumentType,
    tenant_id: str,
    user_identifier: str,
) -> bool:
    """
    Hard delete a document that was never transferred.

    Documents with downstream history are voided instead. Returns True when the
    row was deleted and False when it was voided.
    """
    try:
        document = _lock_document(db, document_id, tenant_id, document_type)

        if document_type == DocumentType.INVOICE and (document.is_posted or document.ar_invoice_id is not None):
            raise ConflictError(
                f"Invoice {document.document_no} is posted to AR and cannot be deleted. Void it instead."
            )
        ensure_period_open(db, tenant_id, document.document_date)

        if document.transfer_status == TransferStatus.NONE:
            _audit(db, document, "DELETE", user_identifier, old_values=sqlalchemy_to_dict(document), new_values={})
            document_no = document.document_no
            db.delete(document)
            db.commit()
            logger.info(f"{document_type.value} {document_no} (ID: {document_id}) deleted by user {user_identifier} for tenant {tenant_id}")
            return True

        if not document.is_void:
            _void(db, document, user_identifier, reason="delete requested after transfer")
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.warning(
        f"{document_type.value} {document.document_no} (ID: {document_id}) has been transferred; "
        f"delete by user {user_identifier} voided it instead for tenant {tenant_id}"
    )
    return False


def post_document(db: Session, document_id: int, tenant_id: str, user_identifier: str) -> SalesDocument:
    """Post an invoice that was stored without its AR mirror."""
    try:
        document = _lock_document(db, document_id, tenant_id, DocumentType.INVOICE)
        if document.is_void:
            raise ConflictError(f"Invoice {document.document_no} is void")
        ensure_period_open(db, tenant_id, document.document_date)

        old_values = sqlalchemy_to_dict(document)
        crud_ar_invoices.post_invoice(db, document, user_identifier)
        document.updated_by = user_identifier
        db.flush()
        _audit(db, document, "POST", user_identifier, old_values=old_values)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Invoice {document.document_no} (ID: {document.id}) posted by user {user_identifier} for tenant {tenant_id}")
    return get_document(db, document_id, tenant_id)


def get_transferable_lines(db: Session, document_id: int, document_type: DocumentType, tenant_id: str) -> List[SalesDocumentLine]:
    document = get_document(db, document_id, tenant_id, document_type)
    return [line for line in document.lines if to_decimal(line.outstanding_qty) > ZERO]


def _transfer_quantities(lines: List[SalesDocumentLine], request: TransferRequest) -> Dict[int, Decimal]:
    if not request.line_transfers:
        return {line.id: to_decimal(line.outstanding_qty) for line in lines if to_decimal(line.outstanding_qty) > ZERO}

    by_id = {line.id: line for line in lines}
    quantities = {}
    for item in request.line_transfers:
        line = by_id.get(item.line_id)
        if line is None:
            raise ValidationError(f"Line {item.line_id} does not belong to this document")
        if item.line_id in quantities:
            raise ValidationError(f"Line {item.line_id} appears more than once")
        qty = round_qty(item.transfer_qty)
        if qty > to_decimal(line.outstanding_qty):
            raise ValidationError(
                f"Line {line.line_no}: transfer quantity {qty} exceeds outstanding {to_decimal(line.outstanding_qty)}"
            )
        quantities[item.line_id] = qty
    return quantities


def transfer_document(
    db: Session,
    document_id: int,
    document_type: DocumentType,
    request: TransferRequest,
    tenant_id: str,
    user_identifier: str,
) -> SalesDocument:
    """
    Move outstanding quantity of a document into a new downstream document.

    Without ``line_transfers`` every line's full outstanding quantity moves.
    The source header and its lines stay locked until commit, so concurrent
    transfers of the same document are serialized.
    """
    try:
        source = _lock_document(db, document_id, tenant_id, document_type)
        if source.is_void:
            raise ConflictError(f"{source.document_no} is void and cannot be transferred")
        if source.transfer_status == TransferStatus.TRANSFERRED:
            raise ConflictError(f"{source.document_no} is already fully transferred; nothing to transfer")
        target_type = resolve_target_type(source.document_type, request.target_type)

        lines = db.query(SalesDocumentLine).filter(
            SalesDocumentLine.document_id == source.id
        ).order_by(SalesDocumentLine.line_no).with_for_update().all()

        quantities = _transfer_quantities(lines, request)
        moving = [(line, quantities[line.id]) for line in lines if quantities.get(line.id, ZERO) > ZERO]
        if not moving:
            raise ValidationError("No lines to transfer")

        new_lines = []
        for line, qty in moving:
            new_lines.append({
                "product_id": line.product_id,
                "product_code": line.product_code,
                "description": line.description,
                "quantity": qty,
                "uom_code": line.uom_code,
                "uom_rate": line.uom_rate,
                "unit_price": line.unit_price,
                "discount_amount": prorate(line.discount_amount, qty, line.quantity),
                "tax_code": line.tax_code,
                "tax_rate": line.tax_rate,
                "tax_amount": prorate(line.tax_amount, qty, line.quantity),
                "unit_cost": line.unit_cost,
                "source_line_id": line.id,
            })

        header = {
            "document_date": request.document_date,
            "customer_code": source.customer_code,
            "customer_name": source.customer_name,
            "bill_to_address": source.bill_to_address,
            "ship_to_address": source.ship_to_address,
            "reference": source.reference,
            "description": source.description,
            "currency_code": source.currency_code,
            "exchange_rate": source.exchange_rate,
            "is_tax_inclusive": source.is_tax_inclusive,
            "source_type": source.document_type.value,
            "source_id": source.id,
        }
        target = _create_document(db, tenant_id, target_type, source.customer, header, new_lines, user_identifier)

        old_values = sqlalchemy_to_dict(source)
        for line, qty in moving:
            line.transferred_qty = to_decimal(line.transferred_qty) + qty
            line.outstanding_qty = max(to_decimal(line.outstanding_qty) - qty, ZERO)
        db.flush()
        _refresh_transfer_status(source)
        source.updated_by = user_identifier
        db.flush()
        _audit(db, source, "TRANSFER", user_identifier, old_values=old_values, new_values={
            **sqlalchemy_to_dict(source),
            "target_type": target_type.value,
            "target_id": target.id,
            "target_no": target.document_no,
        })
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"{source.document_type.value} {source.document_no} (ID: {source.id}) transferred to {target_type.value} "
        f"{target.document_no} (ID: {target.id}) by user {user_identifier} for tenant {tenant_id}; source now {source.transfer_status.value}"
    )
    return get_document(db, target.id, tenant_id)
