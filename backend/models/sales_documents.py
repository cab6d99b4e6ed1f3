from sqlalchemy import Column, Integer, String, Text, Numeric, Date, ForeignKey, Enum, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import TimestampMixin

class DocumentType(enum.Enum):
    QUOTATION = "QUOTATION"
    SALES_ORDER = "SALES_ORDER"
    DELIVERY_ORDER = "DELIVERY_ORDER"
    INVOICE = "INVOICE"
    CASH_SALE = "CASH_SALE"
    CREDIT_NOTE = "CREDIT_NOTE"
    DEBIT_NOTE = "DEBIT_NOTE"

class DocumentStatus(enum.Enum):
    OPEN = "OPEN"
    POSTED = "POSTED"
    TRANSFERRED = "TRANSFERRED"
    VOID = "VOID"

class TransferStatus(enum.Enum):
    NONE = "NONE"
    PARTIAL = "PARTIAL"
    TRANSFERRED = "TRANSFERRED"

class SalesDocument(Base, TimestampMixin):
    __tablename__ = "sales_documents"
    __table_args__ = (
        UniqueConstraint('tenant_id', 'document_type', 'document_no', name='_tenant_sales_doc_no_uc'),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    document_type = Column(Enum(DocumentType), nullable=False, index=True)
    document_no = Column(String(50), nullable=False)
    document_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)

    # Customer snapshot taken at creation; later renames do not flow in.
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    customer_code = Column(String(30), nullable=False)
    customer_name = Column(String(200), nullable=False)
    bill_to_address = Column(Text, nullable=True)
    ship_to_address = Column(Text, nullable=True)

    reference = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)

    status = Column(Enum(DocumentStatus), default=DocumentStatus.OPEN, nullable=False)
    transfer_status = Column(Enum(TransferStatus), default=TransferStatus.NONE, nullable=False)
    is_posted = Column(Boolean, default=False, nullable=False)
    is_void = Column(Boolean, default=False, nullable=False)

    source_type = Column(String(30), nullable=True)
    source_id = Column(Integer, nullable=True, index=True)
    ar_invoice_id = Column(Integer, ForeignKey("ar_invoices.id"), nullable=True)

    currency_code = Column(String(3), nullable=False)
    exchange_rate = Column(Numeric(18, 6), default=1, nullable=False)
    is_tax_inclusive = Column(Boolean, default=False, nullable=False)
    sub_total = Column(Numeric(18, 2), default=0, nullable=False)
    discount_amount = Column(Numeric(18, 2), default=0, nullable=False)
    tax_amount = Column(Numeric(18, 2), default=0, nullable=False)
    rounding_amount = Column(Numeric(18, 2), default=0, nullable=False)
    net_total = Column(Numeric(18, 2), default=0, nullable=False)
    net_total_local = Column(Numeric(18, 2), default=0, nullable=False)
    paid_amount = Column(Numeric(18, 2), default=0, nullable=False)
    change_amount = Column(Numeric(18, 2), default=0, nullable=False)

    # Relationships
    customer = relationship("Customer", back_populates="sales_documents")
    lines = relationship(
        "SalesDocumentLine",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="SalesDocumentLine.line_no",
    )
    ar_invoice = relationship("ARInvoice", foreign_keys=[ar_invoice_id])
