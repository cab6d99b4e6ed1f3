from pydantic import Field, field_validator
from typing import Dict, List, Optional
from schemas.common import CamelModel


class UserGroupCreate(CamelModel):
    code: str = Field(..., min_length=1, max_length=30)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    copy_from_group_id: Optional[int] = None
    permissions: Optional[Dict[str, List[str]]] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class UserGroupUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class PermissionsUpdate(CamelModel):
    permissions: Dict[str, List[str]]


class UserGroup(CamelModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    is_active: bool
    user_count: int = 0
    permissions: Dict[str, List[str]] = {}


class ModulePermission(CamelModel):
    code: str
    name: str
    actions: List[str]


class MyPermissions(CamelModel):
    is_admin: bool
    group_id: Optional[int] = None
    permissions: Dict[str, List[str]]
    modules: List[ModulePermission]
