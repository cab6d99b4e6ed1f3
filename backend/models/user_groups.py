from sqlalchemy import Column, Integer, String, Text, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin

class UserGroup(Base, TimestampMixin):
    __tablename__ = "user_groups"
    __table_args__ = (UniqueConstraint('tenant_id', 'code', name='_tenant_user_group_code_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    code = Column(String(30), nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    users = relationship("User", back_populates="group")
    access_rights = relationship("AccessRight", back_populates="group", cascade="all, delete-orphan")
