# ===================================
# app/core/security.py
# ===================================
"""
Hachage des mots de passe et service de tokens.

Les tokens sont des JWT signés et autoporteurs : aucune trace côté serveur des
tokens émis ou révoqués. `decode_token` est une fonction pure du token et du
secret, elle ne consulte jamais la base.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, ExpiredSignatureError, JWTError
from passlib.context import CryptContext

from app.core.config import settings
from app.core.exceptions import InvalidSignature, MalformedToken, TokenExpired

# Configuration du hachage des mots de passe
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ROLES = ("user", "admin")


@dataclass(frozen=True)
class TokenClaims:
    identity_id: int
    email: str
    role: str
    issued_at: datetime
    expires_at: datetime


def create_access_token(
    identity,
    expires_delta: Optional[timedelta] = None,
    issued_at: Optional[datetime] = None
) -> str:
    """Créer un token d'accès JWT pour une identité (id, email, role)"""
    issued_at = issued_at or datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    to_encode = {
        "sub": str(identity.id),
        "email": identity.email,
        "role": identity.role,
        "iat": issued_at,
        "exp": issued_at + expires_delta,
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def decode_token(token: str) -> TokenClaims:
    """Décoder et valider un token JWT"""
    # Un token qui ne se décode même pas est mal formé, quelle que soit sa signature
    try:
        jwt.get_unverified_claims(token)
    except JWTError:
        raise MalformedToken()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except ExpiredSignatureError:
        raise TokenExpired()
    except JWTError:
        raise InvalidSignature()

    return _claims_from_payload(payload)


def _claims_from_payload(payload: dict) -> TokenClaims:
    try:
        identity_id = int(payload["sub"])
        email = payload["email"]
        role = payload["role"]
        issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
    except (KeyError, TypeError, ValueError):
        raise MalformedToken("Claims du token incomplets")

    if not isinstance(email, str) or role not in ROLES:
        raise MalformedToken("Claims du token invalides")

    return TokenClaims(
        identity_id=identity_id,
        email=email,
        role=role,
        issued_at=issued_at,
        expires_at=expires_at,
    )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Vérifier un mot de passe"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hacher un mot de passe"""
    return pwd_context.hash(password, rounds=settings.password_hash_rounds)
