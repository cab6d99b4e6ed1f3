from database import Base
from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from models.audit_mixin import TimestampMixin

class User(Base, TimestampMixin):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String, index=True, nullable=False)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, nullable=True)
    group_id = Column(Integer, ForeignKey("user_groups.id"), nullable=True)
    is_active = Column(Boolean, default=True)
    is_admin = Column(Boolean, default=False)

    group = relationship("UserGroup", back_populates="users")

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, group_id={self.group_id}, is_admin={self.is_admin})>"
