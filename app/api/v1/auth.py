# ===================================
# app/api/v1/auth.py
# ===================================
import logging
from typing import Any
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import require_route, require_route_body
from app.core.config import settings
from app.core.context import RequestContext
from app.core.database import get_db
from app.core.exceptions import EmailAlreadyRegistered, InvalidCredentials, InvalidInput, UserNotFound
from app.core.security import create_access_token, verify_password
from app.repositories.user_repo import create_user, get_user_by_email, get_user_by_id, set_password
from app.schemas.user import (
    UserCreate,
    LoginRequest,
    AuthResponse,
    Token,
    User,
    UserResponse,
    UserChangePassword
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserCreate,
    db: Session = Depends(get_db)
) -> Any:
    """
    Inscription d'un nouvel utilisateur (rôle "user")
    """
    # Vérifier si l'email existe déjà
    if get_user_by_email(db, email=user_data.email):
        raise EmailAlreadyRegistered()

    user = create_user(db, name=user_data.name, email=user_data.email, password=user_data.password)
    logger.info(f"Nouvel utilisateur inscrit: {user.id}")

    return UserResponse(
        message="Inscription réussie",
        data=User.from_orm(user)
    )


@router.post("/login", response_model=AuthResponse)
def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
) -> Any:
    """
    Connexion d'un utilisateur
    """
    user = get_user_by_email(db, email=login_data.email)

    if not user or not verify_password(login_data.password, user.password_hash):
        raise InvalidCredentials()

    access_token = create_access_token(user)

    token_data = Token(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=User.from_orm(user)
    )

    return AuthResponse(
        message="Connexion réussie",
        data=token_data
    )


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    ctx: RequestContext = Depends(require_route("auth:self")),
    db: Session = Depends(get_db)
) -> Any:
    """
    Récupérer les informations de l'utilisateur connecté
    """
    user = get_user_by_id(db, user_id=ctx.identity.id)
    return UserResponse(
        message="Profil utilisateur récupéré avec succès",
        data=User.from_orm(user)
    )


@router.post("/change-password", response_model=UserResponse)
def change_password(
    password_data: UserChangePassword = Depends(require_route_body("auth:self", UserChangePassword)),
    ctx: RequestContext = Depends(require_route("auth:self")),
    db: Session = Depends(get_db)
) -> Any:
    """
    Changer le mot de passe de l'utilisateur connecté
    """
    user = get_user_by_id(db, user_id=ctx.identity.id)
    if user is None:
        raise UserNotFound()

    if not verify_password(password_data.current_password, user.password_hash):
        raise InvalidInput("Mot de passe actuel incorrect")

    if verify_password(password_data.new_password, user.password_hash):
        raise InvalidInput("Le nouveau mot de passe doit être différent de l'actuel")

    user = set_password(db, user, password_data.new_password)

    return UserResponse(
        message="Mot de passe changé avec succès",
        data=User.from_orm(user)
    )
