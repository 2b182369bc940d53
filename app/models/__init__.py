"""
Models package initialization.
This file imports all models to make them available to Alembic for autogeneration.
"""

# IMPORTANT: Utiliser la MÊME Base que celle de database.py
from app.core.database import Base

# Import all your models here so they are registered with Base.metadata
from .user import User, UserRole
from .item import Item, ItemCategory, StockMovement, StockMovementType

__all__ = ['Base', 'User', 'UserRole', 'Item', 'ItemCategory', 'StockMovement', 'StockMovementType']
