"""
Role based access control for the accounting modules.

A user group owns one ``AccessRight`` row per module. Each row stores boolean
capability flags plus a map of named custom actions; together they form the
set of actions the group may perform on that module. Sets are built once per
group and memoized in a ``PermissionCache`` that lives on ``app.state`` and is
evicted whenever the group's rights are written.
"""
import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from models.access_rights import AccessRight
from models.user_groups import UserGroup
from utils.auth_utils import get_current_user, get_user_identifier
from utils.errors import ForbiddenError

logger = logging.getLogger("permissions")

SALES = "SALES"
PURCHASE = "PURCHASE"
AR = "AR"
AP = "AP"
STOCK = "STOCK"
REPORTS = "REPORTS"
SETTINGS = "SETTINGS"
USERS = "USERS"

ADMIN_GROUP_CODE = "ADMIN"
STAFF_GROUP_CODE = "STAFF"

MODULE_PERMISSIONS = [
    {"code": SALES, "name": "Sales", "actions": ["view", "create", "edit", "delete", "post", "void"]},
    {"code": PURCHASE, "name": "Purchases", "actions": ["view", "create", "edit", "delete", "post", "void"]},
    {"code": AR, "name": "Accounts Receivable", "actions": ["view", "create", "edit", "delete"]},
    {"code": AP, "name": "Accounts Payable", "actions": ["view", "create", "edit", "delete"]},
    {"code": STOCK, "name": "Stock/Inventory", "actions": ["view", "adjust", "transfer"]},
    {"code": REPORTS, "name": "Reports", "actions": ["view"]},
    {"code": SETTINGS, "name": "Settings", "actions": ["view", "edit"]},
    {"code": USERS, "name": "User Management", "actions": ["manage"]},
]

ADMIN_PERMISSIONS: Dict[str, List[str]] = {m["code"]: list(m["actions"]) for m in MODULE_PERMISSIONS}

STAFF_PERMISSIONS: Dict[str, List[str]] = {
    SALES: ["view", "create", "edit"],
    PURCHASE: ["view", "create", "edit"],
    AR: ["view"],
    AP: ["view"],
    STOCK: ["view"],
    REPORTS: ["view"],
    SETTINGS: ["view"],
    USERS: [],
}

# Boolean columns on AccessRight and the action each one grants.
FLAG_ACTIONS = {
    "can_view": "view",
    "can_add": "create",
    "can_edit": "edit",
    "can_delete": "delete",
    "can_print": "print",
    "can_export": "export",
}

CUSTOM_ACTIONS = ("post", "void", "adjust", "transfer", "manage")

# Actions implied by holding another action.
DERIVED_ACTIONS: Mapping[str, tuple] = MappingProxyType({
    "view": ("print", "export"),
})


def expand_actions(actions: Iterable[str]) -> FrozenSet[str]:
    expanded = set(actions)
    for action in list(expanded):
        expanded.update(DERIVED_ACTIONS.get(action, ()))
    return frozenset(expanded)


def actions_to_flags(actions: Iterable[str]) -> dict:
    """Column values for an AccessRight row granting ``actions``."""
    granted = expand_actions(actions)
    flags = {column: action in granted for column, action in FLAG_ACTIONS.items()}
    flags["custom_permissions"] = {action: action in granted for action in CUSTOM_ACTIONS}
    return flags


def access_right_actions(access_right) -> List[str]:
    """Actions stored on a row, in catalogue order, without the derived ones."""
    actions = []
    for column in ("can_view", "can_add", "can_edit", "can_delete"):
        if getattr(access_right, column):
            actions.append(FLAG_ACTIONS[column])
    for action, allowed in (access_right.custom_permissions or {}).items():
        if allowed and action not in actions:
            actions.append(action)
    return actions


@dataclass(frozen=True)
class PermissionSet:
    """Immutable snapshot of one group's rights."""
    group_id: Optional[int]
    is_admin_group: bool = False
    modules: Mapping[str, FrozenSet[str]] = field(default_factory=lambda: MappingProxyType({}))

    def allows(self, module_code: str, action: str) -> bool:
        if self.is_admin_group:
            return True
        return action in self.modules.get(module_code, frozenset())

    def as_dict(self) -> Dict[str, List[str]]:
        return {module: sorted(actions) for module, actions in self.modules.items()}


def build_permission_set(group_id: Optional[int], access_rights: Iterable, is_admin_group: bool = False) -> PermissionSet:
    modules = {}
    for ar in access_rights:
        actions = {action for column, action in FLAG_ACTIONS.items() if getattr(ar, column)}
        actions.update(a for a, allowed in (ar.custom_permissions or {}).items() if allowed)
        modules[ar.module_code] = expand_actions(actions)
    return PermissionSet(group_id=group_id, is_admin_group=is_admin_group, modules=MappingProxyType(modules))


class PermissionCache:
    """
    Process-local memo of PermissionSet per group id.

    Entries are replaced, never mutated, so readers always see a complete
    snapshot. ``invalidate`` bumps a per-group generation; a load that started
    before the bump is not stored.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[int, PermissionSet] = {}
        self._generations: Dict[int, int] = {}

    def get(self, group_id: int, loader: Callable[[], PermissionSet]) -> PermissionSet:
        with self._lock:
            cached = self._entries.get(group_id)
            if cached is not None:
                return cached
            generation = self._generations.get(group_id, 0)

        loaded = loader()

        with self._lock:
            if self._generations.get(group_id, 0) == generation:
                self._entries[group_id] = loaded
        return loaded

    def invalidate(self, group_id: Optional[int] = None) -> None:
        with self._lock:
            if group_id is None:
                for key in list(self._generations) + list(self._entries):
                    self._generations[key] = self._generations.get(key, 0) + 1
                self._entries.clear()
            else:
                self._generations[group_id] = self._generations.get(group_id, 0) + 1
                self._entries.pop(group_id, None)
        logger.info(f"Permission cache invalidated for group {group_id if group_id is not None else 'ALL'}")

    def __contains__(self, group_id) -> bool:
        with self._lock:
            return group_id in self._entries


def load_group_permissions(db: Session, group_id: int) -> PermissionSet:
    group = db.query(UserGroup).filter(UserGroup.id == group_id).first()
    if group is None:
        return PermissionSet(group_id=group_id)
    rights = db.query(AccessRight).filter(AccessRight.group_id == group_id).all()
    return build_permission_set(group_id, rights, is_admin_group=group.code == ADMIN_GROUP_CODE)


class PermissionEvaluator:
    def __init__(self, cache: PermissionCache):
        self.cache = cache

    def permissions_for(self, db: Session, group_id: Optional[int]) -> PermissionSet:
        if group_id is None:
            return PermissionSet(group_id=None)
        return self.cache.get(group_id, lambda: load_group_permissions(db, group_id))

    def check(self, db: Session, user: dict, module_code: str, action: str) -> bool:
        if user.get("isAdmin"):
            return True
        return self.permissions_for(db, user.get("groupId")).allows(module_code, action)


def get_permission_cache(request: Request) -> PermissionCache:
    return request.app.state.permission_cache


def get_permission_evaluator(cache: PermissionCache = Depends(get_permission_cache)) -> PermissionEvaluator:
    return PermissionEvaluator(cache)


def require_permission(module_code: str, action: str):
    """
    Dependency factory guarding a route.

    Usage:
        @router.post("/", dependencies=[Depends(require_permission(SALES, "create"))])
    """
    def dependency(
        db: Session = Depends(get_db),
        user: dict = Depends(get_current_user),
        evaluator: PermissionEvaluator = Depends(get_permission_evaluator),
    ) -> dict:
        if not evaluator.check(db, user, module_code, action):
            logger.warning(f"User {get_user_identifier(user)} denied {action} on {module_code}")
            raise ForbiddenError(f"Access denied: You don't have {action} permission for {module_code}")
        return user

    return dependency
