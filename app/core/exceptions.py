# ===================================
# app/core/exceptions.py
# ===================================
"""
Taxonomie des erreurs métier.

Chaque erreur porte un `kind` stable (exposé aux clients), un code HTTP et,
pour les rejets du contrôle d'accès, une `reason`. Toutes sont récupérées à la
frontière service / contrôle d'accès et rendues par un seul gestionnaire
(voir app/main.py). Tout ce qui n'en hérite pas est une erreur inattendue.
"""

from typing import Optional


class StorefrontError(Exception):
    """Base de toutes les erreurs métier attendues."""

    kind = "error"
    status_code = 500
    default_message = "Erreur"

    def __init__(self, message: Optional[str] = None, reason: Optional[str] = None):
        self.message = message or self.default_message
        self.reason = reason
        super().__init__(self.message)

    @property
    def headers(self) -> Optional[dict]:
        return None


# Entrées invalides
class InvalidInput(StorefrontError):
    kind = "invalid_input"
    status_code = 400
    default_message = "Données invalides"


class InvalidQuantity(InvalidInput):
    default_message = "La quantité doit être un entier strictement positif"


# Ressources absentes
class NotFound(StorefrontError):
    kind = "not_found"
    status_code = 404
    default_message = "Ressource non trouvée"


class ItemNotFound(NotFound):
    default_message = "Article non trouvé"

    def __init__(self, item_id=None, message: Optional[str] = None):
        self.item_id = item_id
        super().__init__(message)


class UserNotFound(NotFound):
    default_message = "Utilisateur non trouvé"


# Conflits de stock et d'unicité
class Conflict(StorefrontError):
    kind = "conflict"
    status_code = 400
    default_message = "Conflit"


class FloorViolation(Conflict):
    """Décrément qui ferait passer la quantité sous le plancher demandé."""

    default_message = "Stock insuffisant"

    def __init__(self, item_id, available: int, delta: int, floor: int):
        self.item_id = item_id
        self.available = available
        self.delta = delta
        self.floor = floor
        super().__init__(
            f"Ajustement {delta:+d} refusé : {available} en stock, plancher {floor}"
        )


class OutOfStock(Conflict):
    default_message = "Article en rupture de stock"


class InsufficientStock(Conflict):
    default_message = "Stock insuffisant"

    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Stock insuffisant : {available} disponible(s), {requested} demandé(s)"
        )


class EmailAlreadyRegistered(Conflict):
    default_message = "Un utilisateur avec cet email existe déjà"


# Authentification
class Unauthenticated(StorefrontError):
    kind = "unauthenticated"
    status_code = 401
    default_message = "Non authentifié"

    @property
    def headers(self) -> Optional[dict]:
        return {"WWW-Authenticate": "Bearer"}


class InvalidCredentials(Unauthenticated):
    default_message = "Email ou mot de passe incorrect"


class TokenError(Unauthenticated):
    """Échec de vérification d'un token (signature, expiration, format)."""

    default_message = "Token invalide"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, reason="InvalidToken")


class MalformedToken(TokenError):
    default_message = "Token mal formé"


class InvalidSignature(TokenError):
    default_message = "Signature du token invalide"


class TokenExpired(TokenError):
    default_message = "Token expiré"


# Autorisation
class Unauthorized(StorefrontError):
    kind = "unauthorized"
    status_code = 403
    default_message = "Accès refusé"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, reason="Forbidden")


# Erreurs transitoires (réessayables par l'appelant)
class Transient(StorefrontError):
    kind = "transient"
    status_code = 503
    default_message = "Service temporairement indisponible, veuillez réessayer"

    @property
    def headers(self) -> Optional[dict]:
        return {"Retry-After": "1"}


class PersistenceTimeout(Transient):
    default_message = "Délai dépassé lors de l'accès à la base de données"


class ConcurrentModification(Transient):
    default_message = "Trop de modifications concurrentes sur cet article"

    def __init__(self, item_id, attempts: int):
        self.item_id = item_id
        self.attempts = attempts
        super().__init__(
            f"Article {item_id} : conflit persistant après {attempts} tentative(s)"
        )


class OperationCancelled(Transient):
    default_message = "Opération annulée avant validation"
