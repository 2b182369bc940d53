# ===================================
# app/models/item.py
# ===================================
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, DECIMAL, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.ext.hybrid import hybrid_property
from enum import Enum

from app.core.database import Base


class ItemCategory(str, Enum):
    """Catégories d'articles du catalogue"""
    TRADITIONAL = "Traditional"
    CHOCOLATE = "Chocolate"
    MILK_BASED = "Milk-based"
    DRY_FRUIT = "Dry Fruit"
    SUGAR_FREE = "Sugar-free"
    SEASONAL = "Seasonal"
    OTHER = "Other"


class StockMovementType(str, Enum):
    """Types de mouvements de stock"""
    PURCHASE = "purchase"         # Achat
    RESTOCK = "restock"           # Réapprovisionnement


class Item(Base):
    __tablename__ = "item"
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='check_item_quantity_positive'),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Informations principales
    name = Column(String(100), nullable=False, index=True)
    category = Column(String, nullable=False, index=True)  # ItemCategory
    price = Column(DECIMAL(10, 2), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)

    # Stock : seul le registre de stock écrit ces deux colonnes après la création
    quantity = Column(Integer, default=0, nullable=False)
    version = Column(Integer, default=1, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relations
    movements = relationship(
        "StockMovement", back_populates="item", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<Item(id={self.id}, name='{self.name}', qty={self.quantity}, v={self.version})>"

    @hybrid_property
    def in_stock(self):
        """Disponible à la vente : dérivé de la quantité, jamais stocké"""
        return self.quantity > 0


class StockMovement(Base):
    """Historique des mouvements de stock"""
    __tablename__ = "stock_movement"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey('item.id', ondelete='CASCADE'), nullable=False, index=True)

    # Type de mouvement
    movement_type = Column(String, nullable=False, index=True)  # StockMovementType

    # Quantités
    quantity = Column(Integer, nullable=False)  # Quantité du mouvement (+/-)
    quantity_before = Column(Integer, nullable=False)  # Stock avant mouvement
    quantity_after = Column(Integer, nullable=False)   # Stock après mouvement
    version_after = Column(Integer, nullable=False)

    # Auteur (pas de clé étrangère : l'historique survit à la suppression du compte)
    actor_id = Column(Integer, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Relations
    item = relationship("Item", back_populates="movements")

    def __repr__(self):
        return f"<StockMovement(id={self.id}, type='{self.movement_type}', qty={self.quantity})>"

    @hybrid_property
    def is_inbound(self):
        """Mouvement entrant (augmente le stock)"""
        return self.quantity > 0
