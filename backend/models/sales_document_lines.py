from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from database import Base

class SalesDocumentLine(Base):
    __tablename__ = "sales_document_lines"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    document_id = Column(Integer, ForeignKey("sales_documents.id", ondelete="CASCADE"), nullable=False, index=True)
    line_no = Column(Integer, nullable=False)

    product_id = Column(Integer, nullable=True)
    product_code = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)

    quantity = Column(Numeric(18, 4), nullable=False)
    uom_code = Column(String(20), nullable=True)
    uom_rate = Column(Numeric(18, 4), default=1, nullable=False)
    base_quantity = Column(Numeric(18, 4), nullable=False)

    unit_price = Column(Numeric(18, 4), default=0, nullable=False)
    discount_text = Column(String(50), nullable=True)
    discount_amount = Column(Numeric(18, 2), default=0, nullable=False)
    sub_total = Column(Numeric(18, 2), default=0, nullable=False)
    tax_code = Column(String(20), nullable=True)
    tax_rate = Column(Numeric(9, 4), default=0, nullable=False)
    tax_amount = Column(Numeric(18, 2), default=0, nullable=False)
    unit_cost = Column(Numeric(18, 4), default=0, nullable=False)

    # outstanding_qty + transferred_qty == quantity
    outstanding_qty = Column(Numeric(18, 4), nullable=False)
    transferred_qty = Column(Numeric(18, 4), default=0, nullable=False)
    source_line_id = Column(Integer, nullable=True)

    # Relationships
    document = relationship("SalesDocument", back_populates="lines")
