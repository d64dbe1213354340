"""Navigation menu endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from rbac_core.api.dependencies import get_actor, get_menu_service
from rbac_core.schemas.menu import MenuItemCreate, MenuItemResponse, MenuItemUpdate, MenuNodeResponse
from rbac_core.services.menu import MenuService

router = APIRouter()


@router.get("", response_model=List[MenuNodeResponse])
async def build_menu(
    user_id: Optional[UUID] = Query(default=None),
    service: MenuService = Depends(get_menu_service),
) -> List[MenuNodeResponse]:
    nodes = await service.build_menu_for_user(user_id)
    return [MenuNodeResponse.model_validate(node.to_dict()) for node in nodes]


@router.get("/items", response_model=List[MenuItemResponse])
async def list_menu_items(service: MenuService = Depends(get_menu_service)) -> List[MenuItemResponse]:
    return [MenuItemResponse.model_validate(item) for item in await service.list_menu_items()]


@router.post("/items", response_model=MenuItemResponse, status_code=status.HTTP_201_CREATED)
async def create_menu_item(
    payload: MenuItemCreate,
    service: MenuService = Depends(get_menu_service),
    actor: Optional[str] = Depends(get_actor),
) -> MenuItemResponse:
    item = await service.create_menu_item(payload, actor=actor)
    return MenuItemResponse.model_validate(item)


@router.patch("/items/{item_id}", response_model=MenuItemResponse)
async def update_menu_item(
    item_id: UUID,
    payload: MenuItemUpdate,
    service: MenuService = Depends(get_menu_service),
    actor: Optional[str] = Depends(get_actor),
) -> MenuItemResponse:
    item = await service.update_menu_item(item_id, payload, actor=actor)
    return MenuItemResponse.model_validate(item)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_menu_item(
    item_id: UUID,
    service: MenuService = Depends(get_menu_service),
    actor: Optional[str] = Depends(get_actor),
) -> Response:
    await service.delete_menu_item(item_id, actor=actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
