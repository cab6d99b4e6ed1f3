from sqlalchemy import Column, Integer, String, Numeric, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin

class ARPayment(Base, TimestampMixin):
    __tablename__ = "ar_payments"
    __table_args__ = (UniqueConstraint('tenant_id', 'payment_no', name='_tenant_ar_payment_no_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    payment_no = Column(String(50), nullable=False)
    payment_date = Column(Date, nullable=False)
    ar_invoice_id = Column(Integer, ForeignKey("ar_invoices.id"), nullable=False, index=True)
    amount = Column(Numeric(18, 2), nullable=False)
    payment_method = Column(String(30), nullable=True)
    reference = Column(String(100), nullable=True)

    ar_invoice = relationship("ARInvoice", back_populates="payments")
