from sqlalchemy import Column, Integer, String, Date, Boolean
from database import Base
from models.audit_mixin import TimestampMixin

class FiscalPeriod(Base, TimestampMixin):
    __tablename__ = "fiscal_periods"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    name = Column(String(50), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_locked = Column(Boolean, default=False, nullable=False)
    is_year_closed = Column(Boolean, default=False, nullable=False)
