from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from datetime import date, datetime, time
from models.audit_log import AuditLog
from schemas.audit_log import AuditLogCreate

# Bookkeeping columns that change on every write.
IGNORED_FIELDS = {"updated_at", "updated_by"}


def create_audit_log(db: Session, log_entry: AuditLogCreate) -> AuditLog:
    """Stage an audit row in the caller's transaction.

    The row is flushed, not committed: it lands together with the change it
    describes or not at all.
    """
    db_log_entry = AuditLog(**log_entry.model_dump())
    db.add(db_log_entry)
    db.flush()
    return db_log_entry


def changed_fields(old_values: Optional[dict], new_values: Optional[dict]) -> List[str]:
    if not old_values or not new_values:
        return []
    keys = (set(old_values) | set(new_values)) - IGNORED_FIELDS
    return sorted(k for k in keys if old_values.get(k) != new_values.get(k))


def get_audit_trail(
    db: Session,
    tenant_id: str,
    table_name: Optional[str] = None,
    record_id: Optional[int] = None,
    changed_by: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[AuditLog], int]:
    """Audit rows of a tenant, newest first."""
    query = db.query(AuditLog).filter(AuditLog.tenant_id == tenant_id)
    if table_name:
        query = query.filter(AuditLog.table_name == table_name)
    if record_id is not None:
        query = query.filter(AuditLog.record_id == record_id)
    if changed_by:
        query = query.filter(AuditLog.changed_by == changed_by)
    if date_from:
        query = query.filter(AuditLog.changed_at >= datetime.combine(date_from, time.min))
    if date_to:
        query = query.filter(AuditLog.changed_at <= datetime.combine(date_to, time.max))

    total = query.count()
    rows = query.order_by(AuditLog.changed_at.desc(), AuditLog.id.desc()).offset((page - 1) * page_size).limit(page_size).all()
    return rows, total
