from sqlalchemy import Column, Integer, String, Numeric, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import AuditMixin

class Customer(Base, AuditMixin):
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint('tenant_id', 'code', name='_tenant_customer_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(30), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    contact_person = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(200), nullable=True)
    address1 = Column(String(200), nullable=True)
    address2 = Column(String(200), nullable=True)
    address3 = Column(String(200), nullable=True)
    address4 = Column(String(200), nullable=True)
    credit_term_days = Column(Integer, default=0, nullable=False)
    credit_limit = Column(Numeric(18, 2), default=0, nullable=False)
    currency_code = Column(String(3), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    sales_documents = relationship("SalesDocument", back_populates="customer")

    def formatted_address(self) -> str:
        return "\n".join(a for a in (self.address1, self.address2, self.address3, self.address4) if a)
