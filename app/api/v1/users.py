# ===================================
# app/api/v1/users.py
# ===================================
from typing import Any, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import require_route, require_route_body
from app.core.context import RequestContext
from app.core.database import get_db
from app.core.exceptions import InvalidInput, UserNotFound
from app.models.user import UserRole
from app.repositories.user_repo import get_users, get_user_by_id, set_role, delete_user
from app.schemas.user import User, UserResponse, UsersListResponse, UserRoleUpdate

router = APIRouter()


@router.get("/", response_model=UsersListResponse)
def list_users(
    skip: int = Query(0, ge=0, description="Nombre d'éléments à ignorer"),
    limit: int = Query(20, ge=1, le=100, description="Nombre d'éléments à retourner"),
    role: Optional[UserRole] = Query(None, description="Filtrer par rôle"),
    ctx: RequestContext = Depends(require_route("users:admin")),
    db: Session = Depends(get_db)
) -> Any:
    """
    Récupérer la liste des utilisateurs (Admin seulement)
    """
    users, total = get_users(db=db, skip=skip, limit=limit, role=role.value if role else None)

    return UsersListResponse(
        data=[User.from_orm(user) for user in users],
        total=total,
        page=(skip // limit) + 1,
        per_page=limit
    )


@router.patch("/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    role_data: UserRoleUpdate = Depends(require_route_body("users:admin", UserRoleUpdate)),
    ctx: RequestContext = Depends(require_route("users:admin")),
    db: Session = Depends(get_db)
) -> Any:
    """
    Changer le rôle d'un utilisateur (Admin seulement)
    """
    user = get_user_by_id(db=db, user_id=user_id)
    if not user:
        raise UserNotFound()

    if user.id == ctx.identity.id and role_data.role != UserRole.ADMIN:
        raise InvalidInput("Un administrateur ne peut pas retirer son propre rôle")

    user = set_role(db, user, role_data.role.value)

    return UserResponse(
        message="Rôle mis à jour avec succès",
        data=User.from_orm(user)
    )


@router.delete("/{user_id}", status_code=status.HTTP_200_OK)
def remove_user(
    user_id: int,
    ctx: RequestContext = Depends(require_route("users:admin")),
    db: Session = Depends(get_db)
) -> Any:
    """
    Supprimer un utilisateur (Admin seulement).
    Ses tokens déjà émis sont ensuite rejetés par le contrôle d'accès.
    """
    if user_id == ctx.identity.id:
        raise InvalidInput("Un administrateur ne peut pas supprimer son propre compte")

    if not delete_user(db=db, user_id=user_id):
        raise UserNotFound()

    return {
        "success": True,
        "message": "Utilisateur supprimé avec succès"
    }
