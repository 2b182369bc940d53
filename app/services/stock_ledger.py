# ===================================
# app/services/stock_ledger.py
# ===================================
"""
Registre de stock : seule source de vérité de `quantity` par article.

`adjust` est l'unique primitive d'écriture du stock. Elle exécute une boucle
lecture / calcul / écriture conditionnelle (compare-and-swap sur `version`)
avec un nombre borné de tentatives, sans verrou applicatif : plusieurs
instances du service peuvent partager la même base.

Chaque échec de l'écriture conditionnelle signifie qu'un autre écrivain a
validé entre notre lecture et notre écriture. Avec N écrivains concurrents sur
un article, `max_attempts >= N` suffit donc pour qu'aucun n'épuise ses
tentatives.
"""

import logging
import random
import time
from typing import Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from app.core.config import settings
from app.core.context import RequestContext
from app.core.exceptions import (
    ConcurrentModification,
    FloorViolation,
    ItemNotFound,
    PersistenceTimeout,
)
from app.models.item import Item, StockMovementType
from app.repositories.item_repo import ItemRepository

logger = logging.getLogger(__name__)


class StockLedger:
    """Ajustements atomiques du stock d'un article"""

    def __init__(self, db: Session, max_attempts: Optional[int] = None,
                 backoff_seconds: Optional[float] = None):
        self.db = db
        self.item_repo = ItemRepository(db)
        if max_attempts is None:
            max_attempts = settings.stock_adjust_max_attempts
        if max_attempts < 1:
            raise ValueError(f"max_attempts doit être >= 1 (reçu {max_attempts})")
        self.max_attempts = max_attempts
        if backoff_seconds is None:
            backoff_seconds = settings.stock_adjust_backoff_ms / 1000
        self.backoff_seconds = backoff_seconds

    def adjust(self, item_id: int, delta: int, floor: Optional[int] = None,
               context: Optional[RequestContext] = None,
               movement_type: Optional[StockMovementType] = None) -> Item:
        """
        Appliquer `delta` à la quantité de l'article.

        `floor=None` signifie pas de plancher (réapprovisionnement). Lève
        ItemNotFound, FloorViolation (aucune écriture), ConcurrentModification
        après épuisement des tentatives, PersistenceTimeout ou
        OperationCancelled si la requête est hors délai ou annulée.
        """
        context = context or RequestContext()
        if movement_type is None:
            movement_type = StockMovementType.RESTOCK if delta > 0 else StockMovementType.PURCHASE

        for attempt in range(1, self.max_attempts + 1):
            context.raise_if_done()

            try:
                committed = self._attempt(item_id, delta, floor, context, movement_type)
            except OperationalError as e:
                self.db.rollback()
                logger.warning(f"Article {item_id} : erreur de persistance transitoire ({e.orig})")
                raise PersistenceTimeout() from e
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception(f"Article {item_id} : erreur de persistance inattendue")
                raise
            except Exception:
                # Erreurs métier et annulation : rien ne doit rester en attente
                self.db.rollback()
                raise

            if committed is not None:
                logger.info(
                    f"Article {item_id} : {delta:+d} appliqué "
                    f"(quantité {committed.quantity}, tentative {attempt})"
                )
                return committed

            logger.warning(
                f"Article {item_id} : modification concurrente détectée "
                f"(tentative {attempt}/{self.max_attempts})"
            )
            if attempt < self.max_attempts:
                self._backoff(context)

        logger.error(f"Article {item_id} : tentatives épuisées ({self.max_attempts})")
        raise ConcurrentModification(item_id, self.max_attempts)

    def _attempt(self, item_id: int, delta: int, floor: Optional[int],
                 context: RequestContext, movement_type: StockMovementType) -> Optional[Item]:
        """Une lecture / calcul / écriture conditionnelle. None en cas de conflit."""
        snapshot = self.item_repo.get_stock_snapshot(item_id)
        if snapshot is None:
            raise ItemNotFound(item_id)

        new_quantity = snapshot.quantity + delta
        if floor is not None and new_quantity < floor:
            raise FloorViolation(item_id, available=snapshot.quantity, delta=delta, floor=floor)

        if not self.item_repo.compare_and_set_quantity(item_id, snapshot.version, new_quantity):
            self.db.rollback()
            return None

        self.item_repo.add_movement({
            "item_id": item_id,
            "movement_type": movement_type.value,
            "quantity": delta,
            "quantity_before": snapshot.quantity,
            "quantity_after": new_quantity,
            "version_after": snapshot.version + 1,
            "actor_id": context.actor_id,
        })

        # Dernier point d'abandon : après cette ligne l'écriture est visible
        context.raise_if_done()
        self.db.commit()

        # Renvoyer les valeurs validées par cette écriture, pas celles d'un
        # écrivain passé entre notre commit et la relecture
        item = self.item_repo.get_item_by_id(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        set_committed_value(item, "quantity", new_quantity)
        set_committed_value(item, "version", snapshot.version + 1)
        return item

    def _backoff(self, context: RequestContext) -> None:
        if self.backoff_seconds <= 0:
            return
        delay = random.uniform(0, self.backoff_seconds)
        remaining = context.remaining()
        if remaining is not None:
            delay = min(delay, max(remaining, 0))
        time.sleep(delay)
