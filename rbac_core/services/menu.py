"""Permission-filtered navigation tree and menu item administration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rbac_core.models.audit_log import AuditAction
from rbac_core.models.menu_item import MenuItem
from rbac_core.models.permission import Permission
from rbac_core.schemas.menu import MenuItemCreate, MenuItemUpdate
from rbac_core.services.audit import SYSTEM_ACTOR, AuditService
from rbac_core.services.errors import DuplicateNameError, NotFoundError, ValidationError
from rbac_core.services.records import MenuItemRecord, PermissionRecord
from rbac_core.services.resolver import PermissionResolver, get_permission_resolver
from rbac_core.services.store import RbacStore, translate_store_errors, unit_of_work

LOGGER = logging.getLogger("rbac_core.services.menu")


@dataclass(frozen=True)
class MenuNode:
    id: UUID
    label: str
    href: str
    icon: Optional[str]
    description: Optional[str]
    sort_order: int
    children: Tuple["MenuNode", ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "label": self.label,
            "href": self.href,
            "icon": self.icon,
            "description": self.description,
            "sort_order": self.sort_order,
            "children": [child.to_dict() for child in self.children],
        }


def _sort_key(item: MenuItemRecord) -> Tuple[int, str, str]:
    return item.sort_order, item.label, str(item.id)


class MenuTreeBuilder:
    """Turns flat menu definitions into the forest a user may see.

    An item is kept when it is active and either unguarded or guarded by a
    permission the caller holds. Parent edges are only drawn inside the kept
    set, so an item whose parent was filtered out becomes a root.
    """

    def build(
        self,
        items: Iterable[MenuItemRecord],
        permissions: Optional[Iterable[PermissionRecord]],
    ) -> List[MenuNode]:
        held = frozenset(permission.id for permission in permissions) if permissions is not None else frozenset()
        kept: Dict[UUID, MenuItemRecord] = {
            item.id: item
            for item in items
            if item.is_active and (item.permission_id is None or item.permission_id in held)
        }

        children: Dict[Optional[UUID], List[MenuItemRecord]] = {}
        for item in kept.values():
            parent_id = item.parent_id if item.parent_id in kept and item.parent_id != item.id else None
            children.setdefault(parent_id, []).append(item)
        for siblings in children.values():
            siblings.sort(key=_sort_key)

        visited: set[UUID] = set()
        roots = [self._attach(item, children, visited) for item in children.get(None, [])]

        # Items still unvisited sit on a parent cycle; cut each cycle at its first item by sort key.
        stranded = sorted((item for item in kept.values() if item.id not in visited), key=_sort_key)
        for item in stranded:
            if item.id in visited:
                continue
            LOGGER.warning("menu_cycle_broken", extra={"menu_item_id": str(item.id), "parent_id": str(item.parent_id)})
            roots.append(self._attach(item, children, visited))

        roots.sort(key=lambda node: (node.sort_order, node.label, str(node.id)))
        return roots

    def _attach(
        self,
        item: MenuItemRecord,
        children: Dict[Optional[UUID], List[MenuItemRecord]],
        visited: set[UUID],
    ) -> MenuNode:
        visited.add(item.id)
        nodes = tuple(
            self._attach(child, children, visited) for child in children.get(item.id, []) if child.id not in visited
        )
        return MenuNode(
            id=item.id,
            label=item.label,
            href=item.href,
            icon=item.icon,
            description=item.description,
            sort_order=item.sort_order,
            children=nodes,
        )


class MenuService:
    """Builds per-user navigation and administers menu items."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        resolver: Optional[PermissionResolver] = None,
        store: Optional[RbacStore] = None,
        audit_service: Optional[AuditService] = None,
        builder: Optional[MenuTreeBuilder] = None,
    ) -> None:
        self._session = session
        self._resolver = resolver or get_permission_resolver()
        self._store = store or RbacStore()
        self._audit = audit_service or AuditService(session)
        self._builder = builder or MenuTreeBuilder()
        self._logger = logging.getLogger("rbac_core.services.menu")

    async def build_menu_for_user(self, user_id: Optional[UUID]) -> List[MenuNode]:
        permissions = None
        if user_id is not None:
            permissions = await self._resolver.get_effective_permissions(user_id)
        items = await self._store.load_menu_items()
        return self._builder.build(items, permissions)

    async def list_menu_items(self) -> List[MenuItem]:
        with translate_store_errors("list_menu_items"):
            stmt = select(MenuItem).order_by(MenuItem.sort_order.asc(), MenuItem.label.asc(), MenuItem.id.asc())
            return list((await self._session.scalars(stmt)).all())

    async def create_menu_item(self, payload: MenuItemCreate, *, actor: Optional[str]) -> MenuItem:
        async with unit_of_work(self._session, "create_menu_item"):
            if payload.parent_id is not None:
                await self._get_item(payload.parent_id)
            if payload.permission_id is not None:
                await self._ensure_permission(payload.permission_id)
            await self._ensure_unique_href(payload.parent_id, payload.href)

            sort_order = payload.sort_order
            if sort_order is None:
                sort_order = await self._next_sort_order(payload.parent_id)

            item = MenuItem(
                parent_id=payload.parent_id,
                label=payload.label,
                href=payload.href,
                icon=payload.icon,
                description=payload.description,
                permission_id=payload.permission_id,
                sort_order=sort_order,
                is_active=True,
            )
            self._session.add(item)
            await self._session.flush()
            await self._audit.record(
                actor,
                AuditAction.CREATE_MENU_ITEM,
                "menu_item",
                item.id,
                {"label": item.label, "href": item.href, "parent_id": payload.parent_id},
            )

        self._logger.info("menu_item_created", extra={"menu_item_id": str(item.id), "actor": actor or SYSTEM_ACTOR})
        return item

    async def update_menu_item(self, item_id: UUID, payload: MenuItemUpdate, *, actor: Optional[str]) -> MenuItem:
        updates = payload.model_dump(exclude_unset=True)
        for key in ("label", "href", "sort_order", "is_active"):
            if key in updates and updates[key] is None:
                updates.pop(key)

        async with unit_of_work(self._session, "update_menu_item"):
            item = await self._get_item(item_id)
            new_parent = updates.get("parent_id", item.parent_id)
            if "parent_id" in updates and new_parent is not None:
                await self._get_item(new_parent)
                await self._ensure_acyclic(item.id, new_parent)
            if updates.get("permission_id") is not None:
                await self._ensure_permission(updates["permission_id"])
            new_href = updates.get("href", item.href)
            if new_parent != item.parent_id or new_href != item.href:
                await self._ensure_unique_href(new_parent, new_href, exclude_id=item.id)

            changes: Dict[str, Any] = {}
            for key, value in updates.items():
                if value != getattr(item, key):
                    changes[key] = {"from": getattr(item, key), "to": value}
                    setattr(item, key, value)
            await self._session.flush()
            await self._audit.record(actor, AuditAction.UPDATE_MENU_ITEM, "menu_item", item.id, {"changes": changes})

        self._logger.info("menu_item_updated", extra={"menu_item_id": str(item.id), "actor": actor or SYSTEM_ACTOR})
        return item

    async def delete_menu_item(self, item_id: UUID, *, actor: Optional[str]) -> None:
        """Delete an item; its children move up to the deleted item's parent."""

        async with unit_of_work(self._session, "delete_menu_item"):
            item = await self._get_item(item_id)
            new_parent = item.parent_id
            children = (
                await self._session.execute(select(MenuItem.id, MenuItem.href).where(MenuItem.parent_id == item.id))
            ).all()
            for _, href in children:
                await self._ensure_unique_href(new_parent, href, exclude_id=item.id)
            child_ids = [child_id for child_id, _ in children]

            # Delete first so a child may take over the deleted item's href.
            await self._session.delete(item)
            await self._session.flush()
            if child_ids:
                await self._session.execute(
                    update(MenuItem)
                    .where(MenuItem.id.in_(child_ids))
                    .values(parent_id=new_parent)
                    .execution_options(synchronize_session="fetch")
                )
            await self._audit.record(
                actor,
                AuditAction.DELETE_MENU_ITEM,
                "menu_item",
                item_id,
                {"label": item.label, "href": item.href, "reparented": [str(child) for child in child_ids]},
            )

        self._logger.info("menu_item_deleted", extra={"menu_item_id": str(item_id), "actor": actor or SYSTEM_ACTOR})

    async def _get_item(self, item_id: UUID) -> MenuItem:
        item = await self._session.get(MenuItem, item_id)
        if item is None:
            raise NotFoundError(f"Menu item {item_id} not found")
        return item

    async def _ensure_permission(self, permission_id: UUID) -> None:
        if await self._session.get(Permission, permission_id) is None:
            raise NotFoundError(f"Permission {permission_id} not found")

    async def _ensure_unique_href(self, parent_id: Optional[UUID], href: str, exclude_id: Optional[UUID] = None) -> None:
        parent_clause = MenuItem.parent_id.is_(None) if parent_id is None else MenuItem.parent_id == parent_id
        stmt = select(MenuItem.id).where(parent_clause, MenuItem.href == href)
        if exclude_id is not None:
            stmt = stmt.where(MenuItem.id != exclude_id)
        if await self._session.scalar(stmt) is not None:
            raise DuplicateNameError(f"Menu item with href '{href}' already exists under this parent")

    async def _next_sort_order(self, parent_id: Optional[UUID]) -> int:
        parent_clause = MenuItem.parent_id.is_(None) if parent_id is None else MenuItem.parent_id == parent_id
        current = await self._session.scalar(select(func.max(MenuItem.sort_order)).where(parent_clause))
        return 0 if current is None else int(current) + 1

    async def _ensure_acyclic(self, item_id: UUID, new_parent_id: UUID) -> None:
        seen: set[UUID] = set()
        cursor: Optional[UUID] = new_parent_id
        while cursor is not None:
            if cursor == item_id:
                raise ValidationError("Menu item cannot be moved beneath itself or one of its descendants")
            if cursor in seen:
                break
            seen.add(cursor)
            cursor = await self._session.scalar(select(MenuItem.parent_id).where(MenuItem.id == cursor))
