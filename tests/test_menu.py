from __future__ import annotations

import json
from typing import Optional
from uuid import UUID, uuid4

import pytest

from helpers import ADMIN_ACTOR, assign, create_role, permission_id, seed_baseline
from rbac_core.core.database import session_scope
from rbac_core.schemas.menu import MenuItemCreate, MenuItemUpdate
from rbac_core.services.errors import DuplicateNameError, NotFoundError, ValidationError
from rbac_core.services.menu import MenuService, MenuTreeBuilder
from rbac_core.services.records import MenuItemRecord, PermissionRecord


def _item(
    label: str,
    *,
    parent: Optional[MenuItemRecord] = None,
    guard: Optional[PermissionRecord] = None,
    sort_order: int = 0,
    active: bool = True,
    item_id: Optional[UUID] = None,
    parent_id: Optional[UUID] = None,
) -> MenuItemRecord:
    return MenuItemRecord(
        id=item_id or uuid4(),
        parent_id=parent.id if parent else parent_id,
        label=label,
        href=f"/{label.lower().replace(' ', '-')}",
        icon=None,
        description=None,
        permission_id=guard.id if guard else None,
        sort_order=sort_order,
        is_active=active,
    )


def _permission(name: str) -> PermissionRecord:
    resource, action = name.split(":")
    return PermissionRecord(
        id=uuid4(),
        name=name,
        display_name=name,
        resource=resource,
        action=action,
        module_id=None,
        is_system=True,
    )


def _labels(nodes) -> list:  # noqa: ANN001
    return [(node.label, _labels(node.children)) for node in nodes]


ADMIN_RBAC = _permission("admin:rbac")
CASES_CREATE = _permission("cases:create")


def test_anonymous_sees_only_unguarded_items() -> None:
    home = _item("Home", sort_order=0)
    cases = _item("Cases", sort_order=1)
    admin = _item("Admin", guard=ADMIN_RBAC, sort_order=2)
    new_case = _item("New Case", parent=cases, guard=CASES_CREATE)

    nodes = MenuTreeBuilder().build([admin, new_case, cases, home], None)

    assert _labels(nodes) == [("Home", []), ("Cases", [])]


def test_child_of_hidden_parent_becomes_root() -> None:
    admin = _item("Admin", guard=ADMIN_RBAC, sort_order=5)
    reports = _item("Reports", parent=admin, guard=CASES_CREATE, sort_order=0)
    users = _item("Users", parent=admin, sort_order=1)

    nodes = MenuTreeBuilder().build([admin, reports, users], [CASES_CREATE])

    assert _labels(nodes) == [("Reports", []), ("Users", [])]


def test_inactive_items_are_dropped() -> None:
    home = _item("Home")
    hidden = _item("Hidden", active=False)

    assert _labels(MenuTreeBuilder().build([home, hidden], [ADMIN_RBAC])) == [("Home", [])]


def test_siblings_sorted_by_sort_order_then_label() -> None:
    root = _item("Root")
    children = [
        _item("Zeta", parent=root, sort_order=1),
        _item("Alpha", parent=root, sort_order=1),
        _item("Last", parent=root, sort_order=9),
        _item("First", parent=root, sort_order=-1),
    ]

    nodes = MenuTreeBuilder().build([root, *children], [])

    assert _labels(nodes) == [("Root", [("First", []), ("Alpha", []), ("Zeta", []), ("Last", [])])]


def test_build_is_deterministic_for_any_input_order() -> None:
    root = _item("Dashboard")
    items = [root] + [_item(f"Item {index}", parent=root, sort_order=index % 3) for index in range(12)]
    builder = MenuTreeBuilder()

    first = json.dumps([node.to_dict() for node in builder.build(items, [ADMIN_RBAC])])
    second = json.dumps([node.to_dict() for node in builder.build(list(reversed(items)), [ADMIN_RBAC])])

    assert first == second


def test_cyclic_data_is_broken_deterministically() -> None:
    first_id, second_id = uuid4(), uuid4()
    first = _item("First", item_id=first_id, parent_id=second_id, sort_order=0)
    second = _item("Second", item_id=second_id, parent_id=first_id, sort_order=1)

    nodes = MenuTreeBuilder().build([second, first], None)

    assert _labels(nodes) == [("First", [("Second", [])])]


@pytest.mark.asyncio
async def test_menu_for_user_follows_effective_permissions() -> None:
    await seed_baseline()
    admin_guard = await permission_id("admin:rbac")

    async with session_scope() as session:
        service = MenuService(session)
        await service.create_menu_item(MenuItemCreate(label="Home", href="/"), actor=ADMIN_ACTOR)
        await service.create_menu_item(
            MenuItemCreate(label="RBAC", href="/admin/rbac", permission_id=admin_guard),
            actor=ADMIN_ACTOR,
        )

    admin = await create_role("admin", ["admin:rbac"])
    user_id = uuid4()
    await assign(user_id, admin)

    async with session_scope() as session:
        service = MenuService(session)
        anonymous = await service.build_menu_for_user(None)
        stranger = await service.build_menu_for_user(uuid4())
        administrator = await service.build_menu_for_user(user_id)

    assert [node.label for node in anonymous] == ["Home"]
    assert [node.label for node in stranger] == ["Home"]
    assert [node.label for node in administrator] == ["Home", "RBAC"]


@pytest.mark.asyncio
async def test_menu_item_writes_are_validated() -> None:
    async with session_scope() as session:
        service = MenuService(session)
        parent = await service.create_menu_item(MenuItemCreate(label="Cases", href="/cases"), actor=ADMIN_ACTOR)
        child = await service.create_menu_item(
            MenuItemCreate(label="Open", href="/cases/open", parent_id=parent.id),
            actor=ADMIN_ACTOR,
        )
        sibling = await service.create_menu_item(
            MenuItemCreate(label="Closed", href="/cases/closed", parent_id=parent.id),
            actor=ADMIN_ACTOR,
        )

        assert (child.sort_order, sibling.sort_order) == (0, 1)
        # Failed writes roll back and expire loaded rows, so hold on to plain ids.
        parent_id, child_id = parent.id, child.id
        with pytest.raises(DuplicateNameError):
            await service.create_menu_item(
                MenuItemCreate(label="Again", href="/cases/open", parent_id=parent_id),
                actor=ADMIN_ACTOR,
            )
        with pytest.raises(NotFoundError):
            await service.create_menu_item(
                MenuItemCreate(label="Orphan", href="/orphan", parent_id=uuid4()),
                actor=ADMIN_ACTOR,
            )
        with pytest.raises(ValidationError):
            await service.update_menu_item(parent_id, MenuItemUpdate(parent_id=child_id), actor=ADMIN_ACTOR)
        with pytest.raises(ValidationError):
            await service.update_menu_item(parent_id, MenuItemUpdate(parent_id=parent_id), actor=ADMIN_ACTOR)


@pytest.mark.asyncio
async def test_deleting_menu_item_reparents_children() -> None:
    async with session_scope() as session:
        service = MenuService(session)
        root = await service.create_menu_item(MenuItemCreate(label="Admin", href="/admin"), actor=ADMIN_ACTOR)
        middle = await service.create_menu_item(
            MenuItemCreate(label="People", href="/admin/people", parent_id=root.id),
            actor=ADMIN_ACTOR,
        )
        leaf = await service.create_menu_item(
            MenuItemCreate(label="Donors", href="/admin/people/donors", parent_id=middle.id),
            actor=ADMIN_ACTOR,
        )

        await service.delete_menu_item(middle.id, actor=ADMIN_ACTOR)
        items = {item.id: item for item in await service.list_menu_items()}

    assert middle.id not in items
    assert items[leaf.id].parent_id == root.id


@pytest.mark.asyncio
async def test_deleting_menu_item_rejects_href_clash_among_new_siblings() -> None:
    async with session_scope() as session:
        service = MenuService(session)
        top = await service.create_menu_item(MenuItemCreate(label="Admin", href="/admin"), actor=ADMIN_ACTOR)
        await service.create_menu_item(
            MenuItemCreate(label="Export", href="/admin/x", parent_id=top.id),
            actor=ADMIN_ACTOR,
        )
        middle = await service.create_menu_item(
            MenuItemCreate(label="Tools", href="/admin/tools", parent_id=top.id),
            actor=ADMIN_ACTOR,
        )
        await service.create_menu_item(
            MenuItemCreate(label="Export Again", href="/admin/x", parent_id=middle.id),
            actor=ADMIN_ACTOR,
        )
        middle_id = middle.id

        with pytest.raises(DuplicateNameError):
            await service.delete_menu_item(middle_id, actor=ADMIN_ACTOR)

        assert middle_id in {item.id for item in await service.list_menu_items()}


@pytest.mark.asyncio
async def test_child_may_take_over_deleted_parent_href() -> None:
    async with session_scope() as session:
        service = MenuService(session)
        parent = await service.create_menu_item(MenuItemCreate(label="Reports", href="/reports"), actor=ADMIN_ACTOR)
        child = await service.create_menu_item(
            MenuItemCreate(label="Overview", href="/reports", parent_id=parent.id),
            actor=ADMIN_ACTOR,
        )

        await service.delete_menu_item(parent.id, actor=ADMIN_ACTOR)
        items = {item.id: item for item in await service.list_menu_items()}

    assert list(items) == [child.id]
    assert items[child.id].parent_id is None
