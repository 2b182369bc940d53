# ===================================
# app/core/context.py
# ===================================
"""
Contexte explicite d'une requête : identité résolue par le contrôle d'accès,
échéance et annulation. Il est passé en paramètre jusqu'au registre de stock,
jamais stocké dans un état global.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from app.core.exceptions import OperationCancelled, PersistenceTimeout


@dataclass(frozen=True)
class CurrentIdentity:
    """Identité attachée à la requête (jamais le hash du mot de passe)"""
    id: int
    email: str
    role: str
    name: Optional[str] = None


@dataclass
class RequestContext:
    identity: Optional[CurrentIdentity] = None
    deadline: Optional[float] = None  # horloge time.monotonic()
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @classmethod
    def with_timeout(cls, seconds: Optional[float], identity: Optional[CurrentIdentity] = None):
        deadline = time.monotonic() + seconds if seconds is not None else None
        return cls(identity=identity, deadline=deadline)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Secondes restantes avant l'échéance (None si pas d'échéance)"""
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()

    def raise_if_done(self) -> None:
        """Lève une erreur transitoire si la requête est annulée ou hors délai"""
        if self.is_cancelled:
            raise OperationCancelled()
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise PersistenceTimeout("Échéance de la requête dépassée")

    @property
    def actor_id(self) -> Optional[int]:
        return self.identity.id if self.identity else None
