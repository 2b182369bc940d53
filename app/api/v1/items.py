# ===================================
# app/api/v1/items.py
# ===================================
from typing import Any, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import require_route, require_route_body
from app.core.context import RequestContext
from app.core.database import get_db
from app.core.exceptions import ItemNotFound
from app.models.item import ItemCategory
from app.repositories.item_repo import ItemRepository
from app.schemas.item import (
    Item,
    ItemCreate,
    ItemUpdate,
    ItemResponse,
    ItemsListResponse,
)

router = APIRouter()


def _list_response(items, total: int, skip: int, limit: int) -> ItemsListResponse:
    return ItemsListResponse(
        count=len(items),
        data=[Item.from_orm(item) for item in items],
        total=total,
        page=(skip // limit) + 1,
        per_page=limit,
        has_more=(skip + limit) < total
    )


@router.get("/", response_model=ItemsListResponse)
def list_items(
    skip: int = Query(0, ge=0, description="Nombre d'éléments à ignorer"),
    limit: int = Query(20, ge=1, le=100, description="Nombre d'éléments à retourner"),
    category: Optional[ItemCategory] = Query(None, description="Filtrer par catégorie"),
    in_stock: Optional[bool] = Query(None, description="Filtrer par disponibilité"),
    db: Session = Depends(get_db)
) -> Any:
    """
    Récupérer la liste des articles avec filtres et pagination
    """
    items, total = ItemRepository(db).get_items(
        skip=skip,
        limit=limit,
        category=category.value if category else None,
        in_stock=in_stock
    )
    return _list_response(items, total, skip, limit)


@router.get("/available", response_model=ItemsListResponse)
def list_available_items(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
) -> Any:
    """
    Articles disponibles (en stock)
    """
    items, total = ItemRepository(db).get_items(skip=skip, limit=limit, in_stock=True)
    return _list_response(items, total, skip, limit)


@router.get("/category/{category}", response_model=ItemsListResponse)
def list_items_by_category(
    category: ItemCategory,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
) -> Any:
    """
    Articles d'une catégorie
    """
    items, total = ItemRepository(db).get_items(skip=skip, limit=limit, category=category.value)
    return _list_response(items, total, skip, limit)


@router.get("/{item_id}", response_model=ItemResponse)
def get_item(
    item_id: int,
    db: Session = Depends(get_db)
) -> Any:
    """
    Récupérer un article par son ID
    """
    item = ItemRepository(db).get_item_by_id(item_id)
    if not item:
        raise ItemNotFound(item_id)

    return ItemResponse(
        message="Article récupéré avec succès",
        data=Item.from_orm(item)
    )


@router.post("/", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
def create_item(
    item_data: ItemCreate = Depends(require_route_body("items:create", ItemCreate)),
    ctx: RequestContext = Depends(require_route("items:create")),
    db: Session = Depends(get_db)
) -> Any:
    """
    Créer un article avec son stock initial
    """
    item_dict = item_data.dict()
    item_dict["category"] = item_data.category.value
    item = ItemRepository(db).create_item(item_dict)

    return ItemResponse(
        message="Article créé avec succès",
        data=Item.from_orm(item)
    )


@router.put("/{item_id}", response_model=ItemResponse)
def update_item(
    item_id: int,
    item_update: ItemUpdate = Depends(require_route_body("items:update", ItemUpdate)),
    ctx: RequestContext = Depends(require_route("items:update")),
    db: Session = Depends(get_db)
) -> Any:
    """
    Mettre à jour les informations d'un article (hors stock)
    """
    update_data = item_update.dict(exclude_unset=True)
    if update_data.get("category") is not None:
        update_data["category"] = update_data["category"].value

    item = ItemRepository(db).update_item(item_id, update_data)
    if not item:
        raise ItemNotFound(item_id)

    return ItemResponse(
        message="Article mis à jour avec succès",
        data=Item.from_orm(item)
    )


@router.delete("/{item_id}", response_model=ItemResponse)
def delete_item(
    item_id: int,
    ctx: RequestContext = Depends(require_route("items:delete")),
    db: Session = Depends(get_db)
) -> Any:
    """
    Supprimer un article (Admin seulement)
    """
    item_repo = ItemRepository(db)
    item = item_repo.get_item_by_id(item_id)
    if not item:
        raise ItemNotFound(item_id)

    deleted = Item.from_orm(item)
    item_repo.delete_item(item_id)

    return ItemResponse(
        message="Article supprimé avec succès",
        data=deleted
    )
