from types import SimpleNamespace

import pytest

from crud import access_rights as crud_access_rights
from models.access_rights import AccessRight
from schemas.access_rights import UserGroupCreate
from utils.errors import ValidationError
from utils.permissions import (
    ADMIN_GROUP_CODE,
    SALES,
    STAFF_PERMISSIONS,
    PermissionCache,
    PermissionEvaluator,
    PermissionSet,
    actions_to_flags,
    build_permission_set,
    expand_actions,
)

from conftest import TENANT, USER


def test_view_implies_print_and_export():
    assert expand_actions(["view"]) == frozenset({"view", "print", "export"})
    assert expand_actions(["edit"]) == frozenset({"edit"})


def test_actions_to_flags_maps_columns_and_custom_actions():
    flags = actions_to_flags(["view", "create", "post"])

    assert flags["can_view"] is True
    assert flags["can_add"] is True
    assert flags["can_print"] is True
    assert flags["can_edit"] is False
    assert flags["custom_permissions"]["post"] is True
    assert flags["custom_permissions"]["void"] is False


def test_permission_set_combines_flags_and_custom_actions():
    rights = [
        SimpleNamespace(
            module_code=SALES,
            can_view=True, can_add=False, can_edit=True, can_delete=False, can_print=False, can_export=False,
            custom_permissions={"post": True, "void": False},
        )
    ]
    permissions = build_permission_set(7, rights)

    assert permissions.allows(SALES, "view")
    assert permissions.allows(SALES, "print")
    assert permissions.allows(SALES, "post")
    assert not permissions.allows(SALES, "create")
    assert not permissions.allows(SALES, "void")
    assert not permissions.allows("AR", "view")


def test_permission_set_is_read_only():
    permissions = build_permission_set(1, [])
    with pytest.raises(TypeError):
        permissions.modules[SALES] = frozenset({"view"})


def test_admin_group_set_allows_everything():
    assert PermissionSet(group_id=1, is_admin_group=True).allows(SALES, "void")


def test_cache_memoizes_until_invalidated():
    cache = PermissionCache()
    calls = []

    def loader():
        calls.append(1)
        return PermissionSet(group_id=5)

    first = cache.get(5, loader)
    second = cache.get(5, loader)
    assert first is second
    assert len(calls) == 1

    cache.invalidate(5)
    assert 5 not in cache
    cache.get(5, loader)
    assert len(calls) == 2


def test_cache_drops_load_that_raced_an_invalidation():
    cache = PermissionCache()

    def loader():
        # A permission write lands while this load is in flight.
        cache.invalidate(3)
        return PermissionSet(group_id=3)

    cache.get(3, loader)
    assert 3 not in cache


def test_invalidate_all_clears_every_group():
    cache = PermissionCache()
    cache.get(1, lambda: PermissionSet(group_id=1))
    cache.get(2, lambda: PermissionSet(group_id=2))

    cache.invalidate()

    assert 1 not in cache
    assert 2 not in cache


def test_view_only_group_is_denied_create(db, make_group):
    group = make_group("VIEWER", {SALES: ["view"]})
    evaluator = PermissionEvaluator(PermissionCache())
    user = {"username": "viewer", "groupId": group.id, "isAdmin": False}

    assert evaluator.check(db, user, SALES, "view")
    assert evaluator.check(db, user, SALES, "export")
    assert not evaluator.check(db, user, SALES, "create")


def test_admin_claim_bypasses_group_permissions(db, make_group):
    group = make_group("VIEWER", {SALES: ["view"]})
    evaluator = PermissionEvaluator(PermissionCache())
    user = {"username": "boss", "groupId": group.id, "isAdmin": True}

    assert evaluator.check(db, user, SALES, "create")


def test_admin_group_code_bypasses(db, make_group):
    group = make_group(ADMIN_GROUP_CODE, {})
    evaluator = PermissionEvaluator(PermissionCache())

    assert evaluator.check(db, {"groupId": group.id, "isAdmin": False}, SALES, "void")


def test_user_without_group_has_no_rights(db):
    evaluator = PermissionEvaluator(PermissionCache())
    assert not evaluator.check(db, {"username": "nobody"}, SALES, "view")


def test_replace_permissions_recreates_rows_and_invalidates_cache(db, make_group):
    group = make_group("CLERK", {SALES: ["view", "create", "void"]})
    cache = PermissionCache()
    evaluator = PermissionEvaluator(cache)
    user = {"groupId": group.id, "isAdmin": False}
    assert evaluator.check(db, user, SALES, "void")
    assert group.id in cache

    crud_access_rights.replace_group_permissions(db, group.id, {"sales": ["view"], "AR": ["view"]}, TENANT, USER, cache)

    assert group.id not in cache
    assert not evaluator.check(db, user, SALES, "void")
    assert evaluator.check(db, user, "AR", "view")
    rows = db.query(AccessRight).filter(AccessRight.group_id == group.id).all()
    assert sorted(r.module_code for r in rows) == ["AR", SALES]


def test_replace_permissions_rejects_unknown_module(db, make_group):
    group = make_group("CLERK", {SALES: ["view"]})
    with pytest.raises(ValidationError):
        crud_access_rights.replace_group_permissions(db, group.id, {"PAYROLL": ["view"]}, TENANT, USER, PermissionCache())
    assert db.query(AccessRight).filter(AccessRight.group_id == group.id).count() == 1


def test_replace_permissions_rejects_unknown_action(db, make_group):
    group = make_group("CLERK", {SALES: ["view"]})
    with pytest.raises(ValidationError):
        crud_access_rights.replace_group_permissions(db, group.id, {SALES: ["fly"]}, TENANT, USER, PermissionCache())


def test_create_group_defaults_to_staff_permissions(db):
    group = crud_access_rights.create_group(db, UserGroupCreate(code="sales", name="Sales team"), TENANT, USER)

    assert group.code == "SALES"
    permissions = crud_access_rights.group_permissions(group)
    assert permissions[SALES] == STAFF_PERMISSIONS[SALES]


def test_create_group_copies_another_group(db, make_group):
    source = make_group("CLERK", {SALES: ["view", "post"]})
    group = crud_access_rights.create_group(
        db, UserGroupCreate(code="clerk2", name="Clerk 2", copy_from_group_id=source.id), TENANT, USER
    )
    assert crud_access_rights.group_permissions(group) == {SALES: ["view", "post"]}


def test_seed_skips_modules_already_present(db, make_group):
    group = make_group("STAFF", {SALES: ["view"]})

    inserted = crud_access_rights.seed_group_permissions(db, group.id, {SALES: ["view", "create"], "AR": ["view"]})
    db.commit()

    assert inserted == 1
    rows = db.query(AccessRight).filter(AccessRight.group_id == group.id).all()
    assert sorted(r.module_code for r in rows) == ["AR", SALES]


def test_ensure_default_groups_is_repeatable(db):
    first = crud_access_rights.ensure_default_groups(db, TENANT)
    second = crud_access_rights.ensure_default_groups(db, TENANT)

    assert set(first) == {"ADMIN", "STAFF"}
    assert first["ADMIN"].id == second["ADMIN"].id
    staff_rows = db.query(AccessRight).filter(AccessRight.group_id == second["STAFF"].id).count()
    assert staff_rows == len(STAFF_PERMISSIONS)


def test_admin_group_cannot_be_deleted(db):
    groups = crud_access_rights.ensure_default_groups(db, TENANT)
    with pytest.raises(ValidationError):
        crud_access_rights.delete_group(db, groups["ADMIN"].id, TENANT, USER, PermissionCache())


def test_delete_group_removes_its_access_rights(db, make_group):
    group = make_group("CLERK", {SALES: ["view"], "AR": ["view"]})
    group_id = group.id
    cache = PermissionCache()
    cache.get(group_id, lambda: PermissionSet(group_id=group_id))

    crud_access_rights.delete_group(db, group_id, TENANT, USER, cache)

    assert db.query(AccessRight).filter(AccessRight.group_id == group_id).count() == 0
    assert group_id not in cache
