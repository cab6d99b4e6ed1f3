from sqlalchemy import Column, Integer, String, DateTime, JSON, Index
from database import Base
from utils import local_now

# Actions written by the crud layer.
AUDIT_ACTIONS = ("CREATE", "UPDATE", "DELETE", "VOID", "TRANSFER", "POST", "PAYMENT", "REPLACE")


class AuditLog(Base):
    """One change to one row, written in the transaction that made the change."""
    __tablename__ = "audit_log"
    __table_args__ = (
        Index('ix_audit_log_record', 'tenant_id', 'table_name', 'record_id'),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, nullable=False)
    table_name = Column(String(50), nullable=False)
    record_id = Column(Integer, nullable=False)
    action = Column(String(20), nullable=False)
    changed_by = Column(String, nullable=False)
    changed_at = Column(DateTime(timezone=True), default=local_now, index=True)
    old_values = Column(JSON)  # row before the change; empty on CREATE
    new_values = Column(JSON)
