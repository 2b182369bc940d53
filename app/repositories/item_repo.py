from typing import List, NamedTuple, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import select, update, func, and_, desc

from app.models.item import Item, StockMovement


class StockSnapshot(NamedTuple):
    """Lecture ponctuelle de l'état de stock d'un article"""
    item_id: int
    quantity: int
    version: int


class ItemRepository:
    """Repository pour la gestion des articles et de leur stock"""

    def __init__(self, db: Session):
        self.db = db

    def get_item_by_id(self, item_id: int) -> Optional[Item]:
        """Récupérer un article par son ID (toujours relu depuis la base)"""
        return self.db.scalar(
            select(Item)
            .where(Item.id == item_id)
            .execution_options(populate_existing=True)
        )

    def get_stock_snapshot(self, item_id: int) -> Optional[StockSnapshot]:
        """Lire quantité et version sans passer par l'identity map de la session"""
        row = self.db.execute(
            select(Item.id, Item.quantity, Item.version).where(Item.id == item_id)
        ).first()
        if row is None:
            return None
        return StockSnapshot(item_id=row.id, quantity=row.quantity, version=row.version)

    def compare_and_set_quantity(self, item_id: int, expected_version: int,
                                 new_quantity: int) -> bool:
        """
        Écriture conditionnelle : n'applique la nouvelle quantité que si la
        version stockée est toujours celle lue. Ne valide pas la transaction.
        """
        result = self.db.execute(
            update(Item)
            .where(Item.id == item_id, Item.version == expected_version)
            .values(quantity=new_quantity, version=Item.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def add_movement(self, movement_data: dict) -> StockMovement:
        """Ajouter une ligne d'historique (dans la transaction courante)"""
        movement = StockMovement(**movement_data)
        self.db.add(movement)
        self.db.flush()
        return movement

    def get_movements(self, item_id: int, skip: int = 0,
                      limit: int = 50) -> Tuple[List[StockMovement], int]:
        """Historique des mouvements d'un article, du plus récent au plus ancien"""
        query = select(StockMovement).where(StockMovement.item_id == item_id)
        total = self.db.scalar(select(func.count()).select_from(query.subquery()))

        movements = self.db.scalars(
            query.order_by(desc(StockMovement.id)).offset(skip).limit(limit)
        ).all()
        return list(movements), total or 0

    def get_items(self, skip: int = 0, limit: int = 20,
                  category: Optional[str] = None,
                  in_stock: Optional[bool] = None) -> Tuple[List[Item], int]:
        """Récupérer les articles avec filtres et pagination"""
        query = select(Item)

        conditions = []
        if category:
            conditions.append(Item.category == category)
        if in_stock is not None:
            conditions.append(Item.in_stock if in_stock else ~Item.in_stock)

        if conditions:
            query = query.where(and_(*conditions))

        # Compter le total
        total = self.db.scalar(select(func.count()).select_from(query.subquery()))

        items = self.db.scalars(
            query.order_by(desc(Item.created_at), desc(Item.id))
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        ).all()

        return list(items), total or 0

    def get_low_stock_items(self, threshold: int, limit: int = 100) -> List[Item]:
        """Articles dont la quantité est inférieure ou égale au seuil"""
        return list(self.db.scalars(
            select(Item)
            .where(Item.quantity <= threshold)
            .order_by(Item.quantity, Item.id)
            .limit(limit)
            .execution_options(populate_existing=True)
        ))

    def create_item(self, item_data: dict) -> Item:
        """Créer un nouvel article"""
        item = Item(**item_data)
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def update_item(self, item_id: int, update_data: dict) -> Optional[Item]:
        """Mettre à jour les champs descriptifs d'un article"""
        item = self.get_item_by_id(item_id)
        if not item:
            return None

        # La quantité et la version ne passent jamais par ici
        for field in ("quantity", "version", "id"):
            update_data.pop(field, None)

        for field, value in update_data.items():
            if hasattr(item, field) and value is not None:
                setattr(item, field, value)

        self.db.commit()
        self.db.refresh(item)
        return item

    def delete_item(self, item_id: int) -> bool:
        """Supprimer un article et son historique"""
        item = self.get_item_by_id(item_id)
        if item:
            self.db.delete(item)
            self.db.commit()
            return True
        return False
