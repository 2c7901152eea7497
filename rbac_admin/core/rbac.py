"""
RBAC helpers and canonical permission definitions for the admin API.

Pure functions only: nothing here touches the database, so the resolver and
the menu service can share them and tests can exercise them directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable, Mapping, Optional

import structlog

logger = structlog.get_logger()


MANAGED_RESOURCES: tuple[str, ...] = (
    "user",
    "role",
    "permission",
    "menu",
)

AUDIT_READ_PERMISSION = "system:audit:read"

# Keys the admin API itself is gated on; seeded at startup.
ALL_RBAC_PERMISSIONS: tuple[str, ...] = tuple(
    f"system:{resource}:{level}"
    for resource in MANAGED_RESOURCES
    for level in ("read", "write")
) + (AUDIT_READ_PERMISSION,)


def permission_for(resource: str, level: str) -> str:
    """Canonical key for a managed resource, e.g. ``system:role:write``."""
    if resource not in MANAGED_RESOURCES:
        raise ValueError(f"Unknown managed resource: {resource}")
    if level not in ("read", "write"):
        raise ValueError(f"Unknown permission level: {level}")
    return f"system:{resource}:{level}"


def normalize_keys(keys: Optional[Iterable[str]]) -> list[str]:
    """Strip, drop blanks and deduplicate while keeping first-seen order."""
    seen: dict[str, None] = {}
    for key in keys or []:
        if key is None:
            continue
        cleaned = key.strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


@dataclass
class MenuNode:
    id: Any
    name: str
    path: Optional[str] = None
    icon: Optional[str] = None
    permission_key: Optional[str] = None
    parent_id: Any = None
    sort_order: int = 0
    is_visible: bool = True
    is_enabled: bool = True
    meta: dict = field(default_factory=dict)
    children: list["MenuNode"] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: Any) -> "MenuNode":
        return cls(
            id=record.id,
            name=record.name,
            path=record.path,
            icon=record.icon,
            permission_key=record.permission_key,
            parent_id=record.parent_id,
            sort_order=record.sort_order or 0,
            is_visible=record.is_visible,
            is_enabled=record.is_enabled,
            meta=dict(record.meta or {}),
        )

    def walk(self) -> Iterable["MenuNode"]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class ResolvedPermissions:
    """Effective set of a user: union over every active role."""

    roles: frozenset[str] = frozenset()
    permissions: frozenset[str] = frozenset()
    menus: tuple[MenuNode, ...] = ()

    @classmethod
    def empty(cls) -> "ResolvedPermissions":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not (self.roles or self.permissions or self.menus)

    def has_permission(self, permission_key: str) -> bool:
        # Literal membership only: "menu:user" does not grant "menu:user:list".
        return permission_key in self.permissions

    def has_all(self, permission_keys: Iterable[str]) -> bool:
        return all(self.has_permission(key) for key in permission_keys)

    def iter_menus(self) -> Iterable[MenuNode]:
        for root in self.menus:
            yield from root.walk()

    def has_menu_path(self, path: str) -> bool:
        return any(node.path == path for node in self.iter_menus())


def union_role_grants(grants: Mapping[str, Iterable[str]]) -> frozenset[str]:
    """Union the keys granted by each role; overlap is additive."""
    result: set[str] = set()
    for keys in grants.values():
        result.update(keys)
    return frozenset(result)


def _sort_key(node: MenuNode) -> tuple:
    return (node.sort_order, node.name or "")


def build_menu_forest(menus: Iterable[Any], *, visible_only: bool = True) -> list[MenuNode]:
    """
    Build a menu forest from a flat collection in one pass.

    Nodes are indexed by id, then attached to their parent through the
    parent-id map. A node whose parent is absent from the collection (filtered
    out, soft-deleted or dangling) becomes a root. With ``visible_only`` set,
    menus that are hidden or disabled are dropped before linking.
    """
    arena: dict[Hashable, MenuNode] = {}
    for menu in menus:
        node = menu if isinstance(menu, MenuNode) else MenuNode.from_record(menu)
        if visible_only and not (node.is_visible and node.is_enabled):
            continue
        node.children = []
        arena.setdefault(node.id, node)

    roots: list[MenuNode] = []
    for node in arena.values():
        parent = arena.get(node.parent_id) if node.parent_id is not None else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.children.append(node)

    # A corrupt parent loop leaves its members unreachable from any root.
    reachable = {id(n) for root in roots for n in root.walk()} if roots else set()
    for node in arena.values():
        if id(node) not in reachable:
            logger.warning("Menu detached from a parent loop", menu_id=str(node.id))
            parent = arena.get(node.parent_id)
            if parent is not None:
                parent.children.remove(node)
            node.parent_id = None
            roots.append(node)
            reachable.update(id(n) for n in node.walk())

    def _sort(nodes: list[MenuNode]) -> None:
        nodes.sort(key=_sort_key)
        for child in nodes:
            _sort(child.children)

    _sort(roots)
    return roots


def would_create_cycle(
    menu_id: Hashable,
    proposed_parent_id: Optional[Hashable],
    parent_index: Mapping[Hashable, Optional[Hashable]],
) -> bool:
    """
    Return True if making ``proposed_parent_id`` the parent of ``menu_id``
    would close a loop.

    ``parent_index`` maps each menu id to its current parent id. The walk up
    the proposed parent's ancestors is bounded by the index size, so a chain
    that already loops terminates.
    """
    if proposed_parent_id is None:
        return False
    if proposed_parent_id == menu_id:
        return True

    current = proposed_parent_id
    visited: set[Hashable] = set()
    for _ in range(len(parent_index) + 1):
        if current is None:
            return False
        if current == menu_id:
            return True
        if current in visited:
            logger.warning(
                "Existing menu parent chain already loops",
                menu_id=str(menu_id),
                proposed_parent_id=str(proposed_parent_id),
                loop_at=str(current),
            )
            return False
        visited.add(current)
        current = parent_index.get(current)
    return False
