from sqlalchemy import Column, Integer, String, Boolean, UniqueConstraint
from database import Base
from models.audit_mixin import TimestampMixin

class DocumentSeries(Base, TimestampMixin):
    __tablename__ = "document_series"
    __table_args__ = (UniqueConstraint('tenant_id', 'document_type', 'code', name='_tenant_doc_series_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    document_type = Column(String(30), nullable=False, index=True)
    code = Column(String(20), nullable=False)
    prefix = Column(String(30), nullable=True)  # may contain {YYYY}, {YY}, {MM}
    suffix = Column(String(30), nullable=True)
    next_number = Column(Integer, default=1, nullable=False)
    number_length = Column(Integer, default=6, nullable=False)
    is_default = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
