# ===================================
# app/schemas/item.py
# ===================================

from typing import Any, List, Optional
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field

from app.models.item import ItemCategory


class ItemBase(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    category: ItemCategory
    price: Decimal = Field(gt=0, decimal_places=2)
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = None


class ItemCreate(ItemBase):
    quantity: int = Field(default=0, ge=0, description="Stock initial")


class ItemUpdate(BaseModel):
    """Champs descriptifs uniquement : le stock ne change que par achat ou réapprovisionnement"""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    category: Optional[ItemCategory] = None
    price: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = None


class Item(ItemBase):
    id: int
    quantity: int
    in_stock: bool
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ItemResponse(BaseModel):
    success: bool = True
    message: str
    data: Item


class ItemsListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[Item]
    total: int
    page: int
    per_page: int
    has_more: bool = False


class StockChangeRequest(BaseModel):
    """Quantité laissée brute : la validation métier est faite par le service"""
    quantity: Any = None


class StockMovement(BaseModel):
    id: int
    item_id: int
    movement_type: str
    quantity: int
    quantity_before: int
    quantity_after: int
    version_after: int
    actor_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StockMovementsResponse(BaseModel):
    success: bool = True
    data: List[StockMovement]
    total: int


class LowStockResponse(BaseModel):
    success: bool = True
    threshold: int
    count: int
    data: List[Item]
