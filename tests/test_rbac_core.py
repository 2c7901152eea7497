"""
Pure RBAC helpers: grant union, literal membership, menu forest and the
parent-loop guard.
"""

import pytest

from rbac_admin.core.rbac import (
    ALL_RBAC_PERMISSIONS,
    MenuNode,
    ResolvedPermissions,
    build_menu_forest,
    normalize_keys,
    permission_for,
    union_role_grants,
    would_create_cycle,
)


def _node(id, parent_id=None, sort_order=0, **kwargs):
    return MenuNode(id=id, name=kwargs.pop("name", id), parent_id=parent_id, sort_order=sort_order, **kwargs)


# ==================== Permission keys ====================

def test_permission_for_builds_canonical_key():
    assert permission_for("role", "write") == "system:role:write"


def test_permission_for_rejects_unknown_resource_and_level():
    with pytest.raises(ValueError):
        permission_for("report", "read")
    with pytest.raises(ValueError):
        permission_for("role", "admin")


def test_all_rbac_permissions_cover_every_resource_and_audit():
    assert "system:audit:read" in ALL_RBAC_PERMISSIONS
    for resource in ("user", "role", "permission", "menu"):
        assert f"system:{resource}:read" in ALL_RBAC_PERMISSIONS
        assert f"system:{resource}:write" in ALL_RBAC_PERMISSIONS


def test_normalize_keys_strips_blanks_and_duplicates():
    assert normalize_keys([" menu:user ", "", "menu:role", "menu:user", None]) == ["menu:user", "menu:role"]
    assert normalize_keys(None) == []


# ==================== Resolution ====================

def test_union_role_grants_is_additive():
    grants = {
        "ADMIN": {"menu:user", "menu:role"},
        "VIEWER": {"menu:user", "menu:audit"},
    }
    assert union_role_grants(grants) == frozenset({"menu:user", "menu:role", "menu:audit"})


def test_union_role_grants_of_nothing_is_empty():
    assert union_role_grants({}) == frozenset()


def test_membership_is_literal():
    resolved = ResolvedPermissions(permissions=frozenset({"menu:user"}))

    assert resolved.has_permission("menu:user")
    assert not resolved.has_permission("menu:user:list")
    assert not resolved.has_permission("menu:*")
    assert not resolved.has_permission("MENU:USER")


def test_has_all_requires_every_key():
    resolved = ResolvedPermissions(permissions=frozenset({"a", "b"}))
    assert resolved.has_all(["a", "b"])
    assert not resolved.has_all(["a", "c"])
    assert resolved.has_all([])


def test_empty_resolution():
    resolved = ResolvedPermissions.empty()
    assert resolved.is_empty
    assert not resolved.has_permission("anything")


# ==================== Menu forest ====================

def test_build_menu_forest_links_children_and_sorts_siblings():
    menus = [
        _node("system", sort_order=1),
        _node("dashboard", sort_order=0),
        _node("roles", parent_id="system", sort_order=2),
        _node("users", parent_id="system", sort_order=1),
    ]

    roots = build_menu_forest(menus)

    assert [r.id for r in roots] == ["dashboard", "system"]
    assert [c.id for c in roots[1].children] == ["users", "roles"]


def test_build_menu_forest_sort_ties_break_on_name():
    roots = build_menu_forest([_node("b", name="Beta"), _node("a", name="Alpha")])
    assert [r.name for r in roots] == ["Alpha", "Beta"]


def test_build_menu_forest_promotes_orphans_to_roots():
    roots = build_menu_forest([_node("users", parent_id="system"), _node("audit")])
    assert {r.id for r in roots} == {"users", "audit"}


def test_build_menu_forest_drops_hidden_and_disabled_when_visible_only():
    menus = [
        _node("system"),
        _node("hidden", parent_id="system", is_visible=False),
        _node("disabled", parent_id="system", is_enabled=False),
        _node("users", parent_id="hidden"),
    ]

    roots = build_menu_forest(menus, visible_only=True)

    assert {r.id for r in roots} == {"system", "users"}
    assert all(r.children == [] for r in roots)


def test_build_menu_forest_admin_view_keeps_everything():
    menus = [_node("system"), _node("hidden", parent_id="system", is_visible=False)]
    roots = build_menu_forest(menus, visible_only=False)
    assert [c.id for c in roots[0].children] == ["hidden"]


def test_build_menu_forest_detaches_existing_loop():
    # a -> b -> a; neither is reachable from a root
    menus = [_node("a", parent_id="b"), _node("b", parent_id="a"), _node("c")]

    roots = build_menu_forest(menus, visible_only=False)

    reached = [n.id for root in roots for n in root.walk()]
    assert sorted(reached) == ["a", "b", "c"]
    assert len(reached) == len(set(reached))


def test_self_parented_menu_becomes_root():
    roots = build_menu_forest([_node("a", parent_id="a")])
    assert [r.id for r in roots] == ["a"]
    assert roots[0].children == []


# ==================== Cycle guard ====================

PARENTS = {"A": None, "B": "A", "C": "B", "D": None}


def test_reparent_under_own_descendant_is_a_cycle():
    assert would_create_cycle("A", "C", PARENTS)
    assert would_create_cycle("A", "B", PARENTS)


def test_reparent_under_itself_is_a_cycle():
    assert would_create_cycle("B", "B", PARENTS)


def test_reparent_to_root_or_unrelated_branch_is_fine():
    assert not would_create_cycle("C", None, PARENTS)
    assert not would_create_cycle("C", "D", PARENTS)
    assert not would_create_cycle("C", "A", PARENTS)


def test_reparent_to_unknown_parent_is_not_a_cycle():
    assert not would_create_cycle("C", "Z", PARENTS)


def test_guard_terminates_on_preexisting_loop():
    looped = {"X": "Y", "Y": "X", "M": None}
    assert not would_create_cycle("M", "X", looped)
