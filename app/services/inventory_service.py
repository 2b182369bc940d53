# ===================================
# app/services/inventory_service.py
# ===================================

from typing import List, Optional, Tuple
from sqlalchemy.orm import Session

from app.core.context import RequestContext
from app.core.exceptions import (
    FloorViolation,
    InsufficientStock,
    InvalidQuantity,
    ItemNotFound,
    OutOfStock,
)
from app.models.item import Item, StockMovement, StockMovementType
from app.repositories.item_repo import ItemRepository
from app.services.stock_ledger import StockLedger


class InventoryService:
    """
    Service pour la logique métier de l'inventaire.

    Les vérifications préalables (existence, rupture, stock suffisant) sont
    indicatives et donnent des erreurs précises ; la garantie réelle reste le
    plancher vérifié atomiquement par le registre de stock.
    """

    def __init__(self, db: Session, ledger: Optional[StockLedger] = None):
        self.db = db
        self.item_repo = ItemRepository(db)
        self.ledger = ledger or StockLedger(db)

    def purchase(self, item_id: int, quantity, context: Optional[RequestContext] = None) -> Item:
        """Acheter `quantity` unités d'un article"""
        quantity = self._validate_quantity(quantity)

        snapshot = self.item_repo.get_stock_snapshot(item_id)
        if snapshot is None:
            raise ItemNotFound(item_id)
        if snapshot.quantity == 0:
            raise OutOfStock()
        if snapshot.quantity < quantity:
            raise InsufficientStock(available=snapshot.quantity, requested=quantity)

        try:
            return self.ledger.adjust(
                item_id, -quantity, floor=0, context=context,
                movement_type=StockMovementType.PURCHASE
            )
        except FloorViolation as e:
            # La vérification préalable était périmée
            if e.available == 0:
                raise OutOfStock() from e
            raise InsufficientStock(available=e.available, requested=quantity) from e

    def restock(self, item_id: int, quantity, context: Optional[RequestContext] = None) -> Item:
        """Réapprovisionner un article ; un article à 0 redevient disponible"""
        quantity = self._validate_quantity(quantity)

        if self.item_repo.get_stock_snapshot(item_id) is None:
            raise ItemNotFound(item_id)

        return self.ledger.adjust(
            item_id, quantity, floor=None, context=context,
            movement_type=StockMovementType.RESTOCK
        )

    def get_movements(self, item_id: int, skip: int = 0,
                      limit: int = 50) -> Tuple[List[StockMovement], int]:
        """Historique des mouvements d'un article"""
        if self.item_repo.get_stock_snapshot(item_id) is None:
            raise ItemNotFound(item_id)
        return self.item_repo.get_movements(item_id, skip=skip, limit=limit)

    def get_low_stock(self, threshold: int) -> List[Item]:
        """Articles en stock faible (quantité <= seuil)"""
        if threshold < 0:
            raise InvalidQuantity("Le seuil ne peut pas être négatif")
        return self.item_repo.get_low_stock_items(threshold)

    @staticmethod
    def _validate_quantity(quantity) -> int:
        if quantity is None:
            raise InvalidQuantity("La quantité est requise")
        # bool est un int en Python, les flottants ne sont jamais acceptés
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidQuantity("La quantité doit être un nombre entier")
        if quantity <= 0:
            raise InvalidQuantity("La quantité doit être supérieure à 0")
        return quantity
