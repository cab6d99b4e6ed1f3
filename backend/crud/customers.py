import logging
import re
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crud.audit_log import create_audit_log
from models.ar_invoices import ARInvoice
from models.customers import Customer
from models.sales_documents import SalesDocument
from schemas.audit_log import AuditLogCreate
from schemas.customers import CustomerCreate, CustomerUpdate
from utils import local_now, sqlalchemy_to_dict
from utils.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger("customers")

TRAILING_DIGITS = re.compile(r"(\d+)$")


def get_customer(db: Session, customer_id: int, tenant_id: str) -> Customer:
    customer = db.query(Customer).filter(Customer.id == customer_id, Customer.tenant_id == tenant_id).first()
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def get_customer_by_code(db: Session, code: str, tenant_id: str, include_deleted: bool = False) -> Optional[Customer]:
    return db.query(Customer).execution_options(include_deleted=include_deleted).filter(
        Customer.code == code.strip().upper(), Customer.tenant_id == tenant_id
    ).first()


def get_customers(
    db: Session,
    tenant_id: str,
    search: Optional[str] = None,
    include_inactive: bool = False,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[Customer], int]:
    # count() runs on a subquery the soft-delete listener does not filter
    query = db.query(Customer).filter(Customer.tenant_id == tenant_id, Customer.deleted_at.is_(None))
    if not include_inactive:
        query = query.filter(Customer.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Customer.code.ilike(pattern),
            Customer.name.ilike(pattern),
            Customer.contact_person.ilike(pattern),
            Customer.phone.ilike(pattern),
        ))
    total = query.count()
    items = query.order_by(Customer.code.asc()).offset((page - 1) * page_size).limit(page_size).all()
    return items, total


def create_customer(db: Session, customer: CustomerCreate, tenant_id: str, user_identifier: str) -> Customer:
    # Codes of deleted customers stay reserved; old documents still carry them.
    if get_customer_by_code(db, customer.code, tenant_id, include_deleted=True):
        raise ConflictError(f"Customer code '{customer.code}' already exists")

    db_customer = Customer(**customer.model_dump(), tenant_id=tenant_id, created_by=user_identifier)
    try:
        db.add(db_customer)
        db.flush()
        create_audit_log(db, AuditLogCreate(
            table_name="customers",
            record_id=db_customer.id,
            changed_by=user_identifier,
            action="CREATE",
            tenant_id=tenant_id,
            new_values=sqlalchemy_to_dict(db_customer),
        ))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Customer code '{customer.code}' already exists")
    except Exception:
        db.rollback()
        raise
    db.refresh(db_customer)
    logger.info(f"Customer '{db_customer.code}' created by user {user_identifier} for tenant {tenant_id}")
    return db_customer


def update_customer(db: Session, customer_id: int, changes: CustomerUpdate, tenant_id: str, user_identifier: str) -> Customer:
    db_customer = get_customer(db, customer_id, tenant_id)
    old_values = sqlalchemy_to_dict(db_customer)
    update_data = changes.model_dump(exclude_unset=True)

    new_code = update_data.get("code")
    if new_code and new_code != db_customer.code:
        if get_customer_by_code(db, new_code, tenant_id, include_deleted=True):
            raise ConflictError(f"Customer code '{new_code}' already exists")

    try:
        for key, value in update_data.items():
            setattr(db_customer, key, value)
        db_customer.updated_by = user_identifier
        db.flush()
        create_audit_log(db, AuditLogCreate(
            table_name="customers",
            record_id=db_customer.id,
            changed_by=user_identifier,
            action="UPDATE",
            tenant_id=tenant_id,
            old_values=old_values,
            new_values=sqlalchemy_to_dict(db_customer),
        ))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Customer code '{new_code}' already exists")
    except Exception:
        db.rollback()
        raise
    db.refresh(db_customer)
    logger.info(f"Customer '{db_customer.code}' updated by user {user_identifier} for tenant {tenant_id}")
    return db_customer


def delete_customer(db: Session, customer_id: int, tenant_id: str, user_identifier: str) -> None:
    db_customer = get_customer(db, customer_id, tenant_id)

    sales_count = db.query(SalesDocument).filter(
        SalesDocument.customer_id == customer_id, SalesDocument.tenant_id == tenant_id
    ).count()
    ar_count = db.query(ARInvoice).filter(
        ARInvoice.customer_id == customer_id, ARInvoice.tenant_id == tenant_id
    ).count()
    if sales_count + ar_count > 0:
        raise ConflictError(
            f"Cannot delete customer \"{db_customer.code}\" - has {sales_count + ar_count} transaction(s). Deactivate instead.",
            details={"salesDocuments": sales_count, "arInvoices": ar_count},
        )

    old_values = sqlalchemy_to_dict(db_customer)
    try:
        db_customer.deleted_at = local_now()
        db_customer.deleted_by = user_identifier
        db_customer.is_active = False
        create_audit_log(db, AuditLogCreate(
            table_name="customers",
            record_id=db_customer.id,
            changed_by=user_identifier,
            action="DELETE",
            tenant_id=tenant_id,
            old_values=old_values,
        ))
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Customer '{db_customer.code}' deleted by user {user_identifier} for tenant {tenant_id}")


def next_customer_code(db: Session, tenant_id: str, prefix: str, width: int = 3) -> str:
    """Next free code for ``prefix``: highest trailing number in use, plus one."""
    prefix = (prefix or "").strip().upper()
    if not prefix:
        raise ValidationError("Missing prefix")
    if width < 1:
        raise ValidationError("Width must be at least 1")

    codes = db.query(Customer.code).execution_options(include_deleted=True).filter(
        Customer.tenant_id == tenant_id,
        Customer.code.startswith(prefix),
    ).all()

    highest = 0
    for (code,) in codes:
        match = TRAILING_DIGITS.search(code)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}{str(highest + 1).zfill(width)}"
