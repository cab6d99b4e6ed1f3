import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from crud.audit_log import create_audit_log
from models.access_rights import AccessRight
from models.user_groups import UserGroup
from models.users import User
from schemas.access_rights import UserGroupCreate, UserGroupUpdate
from schemas.audit_log import AuditLogCreate
from utils import sqlalchemy_to_dict
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.permissions import (
    ADMIN_GROUP_CODE,
    ADMIN_PERMISSIONS,
    MODULE_PERMISSIONS,
    STAFF_GROUP_CODE,
    STAFF_PERMISSIONS,
    PermissionCache,
    access_right_actions,
    actions_to_flags,
)

logger = logging.getLogger("access_rights")

KNOWN_MODULES = {m["code"]: set(m["actions"]) for m in MODULE_PERMISSIONS}


def validate_permissions(permissions: Dict[str, Iterable[str]]) -> Dict[str, List[str]]:
    """Upper-case module codes and reject modules or actions outside the catalogue."""
    cleaned = {}
    for module_code, actions in permissions.items():
        code = module_code.strip().upper()
        allowed = KNOWN_MODULES.get(code)
        if allowed is None:
            raise ValidationError(f"Unknown module '{module_code}'")
        unknown = [a for a in actions if a not in allowed]
        if unknown:
            raise ValidationError(f"Module {code} has no action(s) {', '.join(unknown)}")
        cleaned[code] = list(dict.fromkeys(actions))
    return cleaned


def group_permissions(group: UserGroup) -> Dict[str, List[str]]:
    return {ar.module_code: access_right_actions(ar) for ar in group.access_rights}


def _user_count(db: Session, group_id: int) -> int:
    return db.query(func.count(User.id)).filter(User.group_id == group_id).scalar() or 0


def group_to_dict(db: Session, group: UserGroup) -> dict:
    return {
        "id": group.id,
        "code": group.code,
        "name": group.name,
        "description": group.description,
        "is_active": group.is_active,
        "user_count": _user_count(db, group.id),
        "permissions": group_permissions(group),
    }


def get_group(db: Session, group_id: int, tenant_id: str) -> UserGroup:
    group = db.query(UserGroup).options(selectinload(UserGroup.access_rights)).filter(
        UserGroup.id == group_id, UserGroup.tenant_id == tenant_id
    ).first()
    if group is None:
        raise NotFoundError("User group not found")
    return group


def get_groups(db: Session, tenant_id: str) -> List[UserGroup]:
    return db.query(UserGroup).options(selectinload(UserGroup.access_rights)).filter(
        UserGroup.tenant_id == tenant_id
    ).order_by(UserGroup.code.asc()).all()


def _add_access_rights(db: Session, group_id: int, permissions: Dict[str, List[str]]) -> None:
    for module_code, actions in permissions.items():
        db.add(AccessRight(group_id=group_id, module_code=module_code, function_code="ALL", **actions_to_flags(actions)))
    db.flush()


def create_group(db: Session, group_in: UserGroupCreate, tenant_id: str, user_identifier: str) -> UserGroup:
    existing = db.query(UserGroup).filter(UserGroup.tenant_id == tenant_id, UserGroup.code == group_in.code).first()
    if existing:
        raise ConflictError(f"Group code '{group_in.code}' already exists")

    if group_in.permissions is not None:
        permissions = validate_permissions(group_in.permissions)
    elif group_in.copy_from_group_id is not None:
        permissions = group_permissions(get_group(db, group_in.copy_from_group_id, tenant_id))
    else:
        permissions = STAFF_PERMISSIONS

    try:
        group = UserGroup(
            tenant_id=tenant_id,
            code=group_in.code,
            name=group_in.name,
            description=group_in.description,
            created_by=user_identifier,
        )
        db.add(group)
        db.flush()
        _add_access_rights(db, group.id, permissions)
        create_audit_log(db, AuditLogCreate(
            table_name="user_groups",
            record_id=group.id,
            changed_by=user_identifier,
            action="CREATE",
            tenant_id=tenant_id,
            new_values={**sqlalchemy_to_dict(group), "permissions": permissions},
        ))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Group code '{group_in.code}' already exists")
    except Exception:
        db.rollback()
        raise

    logger.info(f"User group '{group.code}' created by user {user_identifier} for tenant {tenant_id}")
    return get_group(db, group.id, tenant_id)


def update_group(db: Session, group_id: int, group_in: UserGroupUpdate, tenant_id: str, user_identifier: str) -> UserGroup:
    group = get_group(db, group_id, tenant_id)
    if group.code == ADMIN_GROUP_CODE and group_in.is_active is False:
        raise ValidationError("Cannot deactivate the ADMIN group")

    old_values = sqlalchemy_to_dict(group)
    try:
        for key, value in group_in.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(group, key, value)
        group.updated_by = user_identifier
        db.flush()
        create_audit_log(db, AuditLogCreate(
            table_name="user_groups",
            record_id=group.id,
            changed_by=user_identifier,
            action="UPDATE",
            tenant_id=tenant_id,
            old_values=old_values,
            new_values=sqlalchemy_to_dict(group),
        ))
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"User group '{group.code}' updated by user {user_identifier} for tenant {tenant_id}")
    return get_group(db, group_id, tenant_id)


def delete_group(db: Session, group_id: int, tenant_id: str, user_identifier: str, cache: PermissionCache) -> None:
    group = get_group(db, group_id, tenant_id)
    if group.code == ADMIN_GROUP_CODE:
        raise ValidationError("Cannot delete the ADMIN group")
    users = _user_count(db, group_id)
    if users > 0:
        raise ValidationError(f"Cannot delete group with {users} user(s). Reassign users first.")

    old_values = {**sqlalchemy_to_dict(group), "permissions": group_permissions(group)}
    try:
        # access rights go with the group (delete-orphan cascade)
        db.delete(group)
        create_audit_log(db, AuditLogCreate(
            table_name="user_groups",
            record_id=group_id,
            changed_by=user_identifier,
            action="DELETE",
            tenant_id=tenant_id,
            old_values=old_values,
        ))
        db.commit()
    except Exception:
        db.rollback()
        raise
    cache.invalidate(group_id)
    logger.info(f"User group '{old_values['code']}' deleted by user {user_identifier} for tenant {tenant_id}")


def replace_group_permissions(
    db: Session,
    group_id: int,
    permissions: Dict[str, List[str]],
    tenant_id: str,
    user_identifier: str,
    cache: PermissionCache,
) -> Dict[str, List[str]]:
    """
    Replace every access right of a group.

    Rows are deleted and recreated, never patched, so no action survives that
    the new map leaves out. The group's cache entry is evicted before this
    returns.
    """
    group = get_group(db, group_id, tenant_id)
    permissions = validate_permissions(permissions)
    old_permissions = group_permissions(group)

    try:
        group.access_rights.clear()
        db.flush()
        _add_access_rights(db, group_id, permissions)
        create_audit_log(db, AuditLogCreate(
            table_name="access_rights",
            record_id=group_id,
            changed_by=user_identifier,
            action="REPLACE",
            tenant_id=tenant_id,
            old_values=old_permissions,
            new_values=permissions,
        ))
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        cache.invalidate(group_id)

    logger.info(f"Permissions of group '{group.code}' replaced by user {user_identifier} for tenant {tenant_id}")
    return permissions


def seed_group_permissions(db: Session, group_id: int, permissions: Dict[str, List[str]]) -> int:
    """
    Insert one access right per module, skipping modules the group already has.

    Each row goes in its own savepoint; a duplicate only rolls back that row.
    Returns the number of rows inserted. The caller commits.
    """
    inserted = 0
    for module_code, actions in permissions.items():
        try:
            with db.begin_nested():
                db.add(AccessRight(group_id=group_id, module_code=module_code, function_code="ALL", **actions_to_flags(actions)))
            inserted += 1
        except IntegrityError:
            logger.warning(f"Access right {module_code} already exists for group {group_id}; skipped")
    return inserted


def ensure_default_groups(db: Session, tenant_id: str) -> Dict[str, UserGroup]:
    """ADMIN and STAFF groups for a tenant, created and seeded when missing."""
    groups = {}
    for code, name, description, permissions in (
        (ADMIN_GROUP_CODE, "Administrator", "Full system access", ADMIN_PERMISSIONS),
        (STAFF_GROUP_CODE, "Staff", "Limited access for general staff", STAFF_PERMISSIONS),
    ):
        group = db.query(UserGroup).filter(UserGroup.tenant_id == tenant_id, UserGroup.code == code).first()
        if group is None:
            group = UserGroup(tenant_id=tenant_id, code=code, name=name, description=description, created_by="system")
            db.add(group)
            db.flush()
        seed_group_permissions(db, group.id, permissions)
        groups[code] = group
    db.commit()
    return groups
