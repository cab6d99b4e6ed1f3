from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from utils.auth_utils import get_current_user, get_user_identifier
from utils.permissions import (
    MODULE_PERMISSIONS,
    USERS,
    PermissionCache,
    PermissionEvaluator,
    get_permission_cache,
    get_permission_evaluator,
    require_permission,
)
from utils.tenancy import get_tenant_id
from crud import access_rights as crud_access_rights
from schemas.common import ApiResponse
from schemas.access_rights import (
    ModulePermission,
    MyPermissions,
    PermissionsUpdate,
    UserGroup,
    UserGroupCreate,
    UserGroupUpdate,
)

router = APIRouter(prefix="/access-rights", tags=["Access Rights"])
logger = logging.getLogger("access_rights")


@router.get("/me", response_model=ApiResponse[MyPermissions])
def read_my_permissions(
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
):
    is_admin = bool(user.get("isAdmin"))
    group_id = user.get("groupId")
    # Admins are allowed everything; the permission map is left empty for them.
    permissions = {} if is_admin else evaluator.permissions_for(db, group_id).as_dict()
    return ApiResponse[MyPermissions](data=MyPermissions(
        is_admin=is_admin,
        group_id=group_id,
        permissions=permissions,
        modules=MODULE_PERMISSIONS,
    ))


@router.get("/modules", response_model=ApiResponse[List[ModulePermission]])
def read_modules(user: dict = Depends(get_current_user)):
    return ApiResponse[List[ModulePermission]](data=MODULE_PERMISSIONS)


@router.get("/groups", response_model=ApiResponse[List[UserGroup]])
def read_groups(
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(USERS, "manage")),
    tenant_id: str = Depends(get_tenant_id),
):
    groups = crud_access_rights.get_groups(db, tenant_id)
    return ApiResponse[List[UserGroup]](data=[crud_access_rights.group_to_dict(db, g) for g in groups])


@router.post("/groups/defaults", response_model=ApiResponse[List[UserGroup]])
def seed_default_groups(
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(USERS, "manage")),
    tenant_id: str = Depends(get_tenant_id),
    cache: PermissionCache = Depends(get_permission_cache),
):
    groups = crud_access_rights.ensure_default_groups(db, tenant_id)
    for group in groups.values():
        cache.invalidate(group.id)
    logger.info(f"Default user groups ensured by user {get_user_identifier(user)} for tenant {tenant_id}")
    return ApiResponse[List[UserGroup]](
        data=[crud_access_rights.group_to_dict(db, crud_access_rights.get_group(db, g.id, tenant_id)) for g in groups.values()]
    )


@router.get("/groups/{group_id}", response_model=ApiResponse[UserGroup])
def read_group(
    group_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(USERS, "manage")),
    tenant_id: str = Depends(get_tenant_id),
):
    group = crud_access_rights.get_group(db, group_id, tenant_id)
    return ApiResponse[UserGroup](data=crud_access_rights.group_to_dict(db, group))


@router.post("/groups", response_model=ApiResponse[UserGroup], status_code=status.HTTP_201_CREATED)
def create_group(
    group_in: UserGroupCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(USERS, "manage")),
    tenant_id: str = Depends(get_tenant_id),
):
    group = crud_access_rights.create_group(db, group_in, tenant_id, get_user_identifier(user))
    return ApiResponse[UserGroup](data=crud_access_rights.group_to_dict(db, group), message="User group created successfully")


@router.put("/groups/{group_id}", response_model=ApiResponse[UserGroup])
def update_group(
    group_id: int,
    group_in: UserGroupUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(USERS, "manage")),
    tenant_id: str = Depends(get_tenant_id),
):
    group = crud_access_rights.update_group(db, group_id, group_in, tenant_id, get_user_identifier(user))
    return ApiResponse[UserGroup](data=crud_access_rights.group_to_dict(db, group), message="User group updated successfully")


@router.delete("/groups/{group_id}", response_model=ApiResponse[None])
def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(USERS, "manage")),
    tenant_id: str = Depends(get_tenant_id),
    cache: PermissionCache = Depends(get_permission_cache),
):
    crud_access_rights.delete_group(db, group_id, tenant_id, get_user_identifier(user), cache)
    return ApiResponse[None](message="User group deleted successfully")


@router.put("/groups/{group_id}/permissions", response_model=ApiResponse[UserGroup])
def update_group_permissions(
    group_id: int,
    payload: PermissionsUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(require_permission(USERS, "manage")),
    tenant_id: str = Depends(get_tenant_id),
    cache: PermissionCache = Depends(get_permission_cache),
):
    crud_access_rights.replace_group_permissions(db, group_id, payload.permissions, tenant_id, get_user_identifier(user), cache)
    group = crud_access_rights.get_group(db, group_id, tenant_id)
    return ApiResponse[UserGroup](data=crud_access_rights.group_to_dict(db, group), message="Permissions updated successfully")
