# ===================================
# app/api/deps.py
# ===================================
"""
Contrôle d'accès des routes.

Pour chaque requête : extraction du token -> vérification -> résolution de
l'identité -> contrôle du rôle -> autorisé, ou rejet typé à n'importe quelle
étape. Les rôles autorisés par route sont des données (ROUTE_ROLES) consultées
par une seule vérification générique.
"""

import logging
import re
from datetime import timezone
from functools import lru_cache
from typing import Iterable, Optional, Type

from fastapi import Depends, Header, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.context import CurrentIdentity, RequestContext
from app.core.database import get_db
from app.core.exceptions import InvalidInput, TokenError, Unauthenticated, Unauthorized
from app.core.security import TokenClaims, decode_token
from app.models.user import User, UserRole
from app.repositories.user_repo import get_user_by_id

logger = logging.getLogger(__name__)

USER = UserRole.USER.value
ADMIN = UserRole.ADMIN.value

# Rôles autorisés par route protégée
ROUTE_ROLES = {
    "auth:self": frozenset({USER, ADMIN}),
    "users:admin": frozenset({ADMIN}),
    "items:create": frozenset({USER, ADMIN}),
    "items:update": frozenset({USER, ADMIN}),
    "items:delete": frozenset({ADMIN}),
    "inventory:purchase": frozenset({USER, ADMIN}),
    "inventory:restock": frozenset({ADMIN}),
    "inventory:read": frozenset({ADMIN}),
}

# Exactement "Bearer <token>" : un seul espace, aucun autre blanc
_BEARER_RE = re.compile(r"Bearer (\S+)")


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Extraire le token d'un en-tête Authorization, sans tolérance de format"""
    if not authorization:
        raise Unauthenticated("Non autorisé, aucun token fourni", reason="NoToken")

    match = _BEARER_RE.fullmatch(authorization)
    if not match:
        raise Unauthenticated("Non autorisé, en-tête Authorization mal formé", reason="NoToken")
    return match.group(1)


def _issued_before_credentials_change(claims: TokenClaims, user: User) -> bool:
    changed_at = user.credentials_changed_at
    if changed_at is None:
        return False
    if changed_at.tzinfo is None:
        changed_at = changed_at.replace(tzinfo=timezone.utc)
    # `iat` est à la seconde près
    return claims.issued_at.timestamp() < int(changed_at.timestamp())


def authenticate_request(db: Session, authorization: Optional[str]) -> CurrentIdentity:
    """Token -> claims vérifiés -> identité existante"""
    token = extract_bearer_token(authorization)

    try:
        claims = decode_token(token)
    except TokenError as e:
        logger.info(f"Token rejeté : {e.message}")
        raise Unauthenticated(f"Non autorisé, {e.message.lower()}", reason="InvalidToken") from e

    user = get_user_by_id(db, user_id=claims.identity_id)
    if user is None:
        raise Unauthenticated("Non autorisé, utilisateur introuvable", reason="UserNotFound")

    if settings.revoke_tokens_on_credential_change and _issued_before_credentials_change(claims, user):
        raise Unauthenticated(
            "Non autorisé, token émis avant un changement d'identifiants", reason="InvalidToken"
        )

    # Le rôle fait foi au moment de la requête, pas au moment de l'émission
    return CurrentIdentity(id=user.id, email=user.email, role=user.role, name=user.name)


def authorize_role(identity: CurrentIdentity, allowed_roles: Iterable[str]) -> CurrentIdentity:
    """Vérifier que le rôle de l'identité fait partie des rôles autorisés"""
    if identity.role not in allowed_roles:
        logger.info(f"Accès refusé à l'utilisateur {identity.id} (rôle '{identity.role}')")
        raise Unauthorized(
            f"Le rôle '{identity.role}' n'est pas autorisé à accéder à cette route"
        )
    return identity


@lru_cache()
def require_route(route_name: str):
    """
    Dépendance FastAPI générique protégeant une route déclarée dans ROUTE_ROLES.

    Une même route renvoie toujours la même fonction : FastAPI ne l'exécute
    alors qu'une fois par requête, même si plusieurs dépendances l'utilisent.
    """
    allowed_roles = ROUTE_ROLES[route_name]

    def gate(
        request: Request,
        authorization: Optional[str] = Header(None),
        db: Session = Depends(get_db)
    ) -> RequestContext:
        identity = authorize_role(authenticate_request(db, authorization), allowed_roles)
        request.state.identity = identity
        return RequestContext.with_timeout(settings.request_timeout_seconds, identity=identity)

    return gate


def require_route_body(route_name: str, schema: Type[BaseModel]):
    """
    Corps JSON d'une route protégée, lu seulement une fois l'accès accordé.

    Un paramètre `Body` classique est décodé par FastAPI avant toute
    dépendance : un token expiré accompagné d'un corps invalide donnerait
    alors 422 au lieu de 401.
    """
    gate = require_route(route_name)

    async def body(request: Request, ctx: RequestContext = Depends(gate)):
        try:
            payload = await request.json()
        except ValueError:
            raise InvalidInput("Corps de requête JSON invalide")

        try:
            return schema.parse_obj(payload)
        except ValidationError as e:
            raise RequestValidationError(
                [{**err, "loc": ("body", *err["loc"])} for err in e.errors()]
            )

    return body
