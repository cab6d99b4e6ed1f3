from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base

class AccessRight(Base):
    __tablename__ = "access_rights"
    __table_args__ = (
        UniqueConstraint('group_id', 'module_code', 'function_code', name='_group_module_function_uc'),
    )

    id = Column(Integer, primary_key=True, index=True)
    group_id = Column(Integer, ForeignKey("user_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    module_code = Column(String(30), nullable=False)
    function_code = Column(String(30), default="ALL", nullable=False)
    can_view = Column(Boolean, default=False, nullable=False)
    can_add = Column(Boolean, default=False, nullable=False)
    can_edit = Column(Boolean, default=False, nullable=False)
    can_delete = Column(Boolean, default=False, nullable=False)
    can_print = Column(Boolean, default=False, nullable=False)
    can_export = Column(Boolean, default=False, nullable=False)
    # Named extra actions, e.g. {"post": true, "void": false}
    custom_permissions = Column(JSON, nullable=True)

    group = relationship("UserGroup", back_populates="access_rights")
