# ===================================
# app/api/v1/inventory.py
# ===================================
from typing import Any
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import require_route, require_route_body
from app.core.context import RequestContext
from app.core.database import get_db
from app.services.inventory_service import InventoryService
from app.schemas.item import (
    Item,
    ItemResponse,
    LowStockResponse,
    StockChangeRequest,
    StockMovement,
    StockMovementsResponse,
)

router = APIRouter()


@router.post("/{item_id}/purchase", response_model=ItemResponse)
def purchase_item(
    item_id: int,
    stock_change: StockChangeRequest = Depends(require_route_body("inventory:purchase", StockChangeRequest)),
    ctx: RequestContext = Depends(require_route("inventory:purchase")),
    db: Session = Depends(get_db)
) -> Any:
    """Acheter une quantité d'un article"""
    item = InventoryService(db).purchase(item_id, stock_change.quantity, context=ctx)

    return ItemResponse(
        message=f"Achat de {stock_change.quantity} unité(s) effectué",
        data=Item.from_orm(item)
    )


@router.post("/{item_id}/restock", response_model=ItemResponse)
def restock_item(
    item_id: int,
    stock_change: StockChangeRequest = Depends(require_route_body("inventory:restock", StockChangeRequest)),
    ctx: RequestContext = Depends(require_route("inventory:restock")),
    db: Session = Depends(get_db)
) -> Any:
    """Réapprovisionner un article (Admin seulement)"""
    item = InventoryService(db).restock(item_id, stock_change.quantity, context=ctx)

    return ItemResponse(
        message=f"Réapprovisionnement de {stock_change.quantity} unité(s) effectué",
        data=Item.from_orm(item)
    )


@router.get("/low-stock", response_model=LowStockResponse)
def get_low_stock_items(
    threshold: int = Query(5, ge=0, description="Seuil de stock faible"),
    ctx: RequestContext = Depends(require_route("inventory:read")),
    db: Session = Depends(get_db)
) -> Any:
    """Articles en stock faible"""
    items = InventoryService(db).get_low_stock(threshold)

    return LowStockResponse(
        threshold=threshold,
        count=len(items),
        data=[Item.from_orm(item) for item in items]
    )


@router.get("/{item_id}/movements", response_model=StockMovementsResponse)
def get_item_movements(
    item_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    ctx: RequestContext = Depends(require_route("inventory:read")),
    db: Session = Depends(get_db)
) -> Any:
    """Historique des mouvements de stock d'un article"""
    movements, total = InventoryService(db).get_movements(item_id, skip=skip, limit=limit)

    return StockMovementsResponse(
        data=[StockMovement.from_orm(m) for m in movements],
        total=total
    )
