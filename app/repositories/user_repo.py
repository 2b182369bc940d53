# ===================================
# app/repositories/user_repo.py
# ===================================
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import select, func, desc
from sqlalchemy.exc import IntegrityError
from datetime import datetime, timezone

from app.models.user import User, UserRole
from app.core.exceptions import EmailAlreadyRegistered
from app.core.security import get_password_hash


def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    """Récupérer un utilisateur par son ID"""
    return db.scalar(
        select(User)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Récupérer un utilisateur par son email (insensible à la casse)"""
    return db.scalar(select(User).where(User.email == email.strip().lower()))


def create_user(db: Session, name: str, email: str, password: str,
                role: str = UserRole.USER.value) -> User:
    """
    Créer un nouvel utilisateur.

    L'unicité de l'email est garantie par la base : si une inscription
    concurrente passe entre la vérification préalable et l'insertion,
    la violation de contrainte devient EmailAlreadyRegistered.
    """
    db_user = User(
        name=name,
        email=email.strip().lower(),
        password_hash=get_password_hash(password),
        role=role,
    )

    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise EmailAlreadyRegistered()
    db.refresh(db_user)
    return db_user


def get_users(db: Session, skip: int = 0, limit: int = 100,
              role: Optional[str] = None) -> Tuple[List[User], int]:
    """Récupérer la liste des utilisateurs"""
    query = select(User)
    if role:
        query = query.where(User.role == role)

    total = db.scalar(select(func.count()).select_from(query.subquery()))

    users = db.scalars(
        query.order_by(desc(User.id)).offset(skip).limit(limit)
    ).all()

    return list(users), total or 0


def set_password(db: Session, user: User, new_password: str) -> User:
    """Changer le mot de passe et dater le changement d'identifiants"""
    user.password_hash = get_password_hash(new_password)
    user.credentials_changed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return user


def set_role(db: Session, user: User, role: str) -> User:
    """Changer le rôle d'un utilisateur"""
    if user.role != role:
        user.role = role
        user.credentials_changed_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(user)
    return user


def delete_user(db: Session, user_id: int) -> bool:
    """Supprimer définitivement un utilisateur"""
    user = get_user_by_id(db, user_id)
    if user:
        db.delete(user)
        db.commit()
        return True
    return False
