"""Création ou promotion d'un compte administrateur.

Usage:
    python -m scripts.create_admin --email admin@example.com --name Admin --password 'Secret123'
    python -m scripts.create_admin --email admin@example.com --password 'Nouveau123' --reset-password
"""

import argparse
import logging
import sys

from app.core.database import SessionLocal, init_db
from app.models.user import UserRole
from app.repositories.user_repo import create_user, get_user_by_email, set_password, set_role
from app.schemas.user import check_password_strength

logger = logging.getLogger("create_admin")


def create_or_promote_admin(db, email: str, password: str, name: str = "Admin",
                            reset_password: bool = False):
    """Créer l'admin, ou promouvoir le compte existant (et changer son mot de passe si demandé)"""
    user = get_user_by_email(db, email=email)
    if user is None:
        user = create_user(db, name=name, email=email, password=password, role=UserRole.ADMIN.value)
        logger.info(f"✓ Administrateur créé: {user.email}")
        return user

    user = set_role(db, user, UserRole.ADMIN.value)
    if reset_password:
        user = set_password(db, user, password)
        logger.info(f"✓ Mot de passe réinitialisé pour {user.email}")
    logger.info(f"✓ {user.email} est administrateur")
    return user


def main(argv=None):
    parser = argparse.ArgumentParser(description="Créer ou promouvoir un administrateur")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default="Admin")
    parser.add_argument(
        "--reset-password",
        action="store_true",
        help="Remplacer le mot de passe si le compte existe déjà",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    try:
        check_password_strength(args.password)
    except ValueError as e:
        parser.error(str(e))

    init_db()
    with SessionLocal() as db:
        create_or_promote_admin(
            db,
            email=args.email,
            password=args.password,
            name=args.name,
            reset_password=args.reset_password,
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
