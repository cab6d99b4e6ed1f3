from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, Enum, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import TimestampMixin

AR_SOURCE_SALES_INVOICE = "SALES_INVOICE"

class ARInvoiceStatus(enum.Enum):
    OPEN = "OPEN"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    VOID = "VOID"

class ARInvoice(Base, TimestampMixin):
    __tablename__ = "ar_invoices"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'invoice_no', name='_tenant_ar_invoice_no_uc'),
        # One AR mirror per source document.
        UniqueConstraint('tenant_id', 'source_type', 'source_id', name='_tenant_ar_source_uc'),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    invoice_no = Column(String(50), nullable=False)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    customer_code = Column(String(30), nullable=False)
    customer_name = Column(String(200), nullable=False)
    reference = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)

    sub_total = Column(Numeric(18, 2), default=0, nullable=False)
    discount_amount = Column(Numeric(18, 2), default=0, nullable=False)
    tax_amount = Column(Numeric(18, 2), default=0, nullable=False)
    net_total = Column(Numeric(18, 2), default=0, nullable=False)
    paid_amount = Column(Numeric(18, 2), default=0, nullable=False)
    outstanding_amount = Column(Numeric(18, 2), default=0, nullable=False)
    currency_code = Column(String(3), nullable=False)
    exchange_rate = Column(Numeric(18, 6), default=1, nullable=False)

    status = Column(Enum(ARInvoiceStatus), default=ARInvoiceStatus.OPEN, nullable=False)
    is_void = Column(Boolean, default=False, nullable=False)

    source_type = Column(String(30), nullable=True)
    source_id = Column(Integer, nullable=True)

    # Relationships
    payments = relationship("ARPayment", back_populates="ar_invoice", cascade="all, delete-orphan")
