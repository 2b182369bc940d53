# ===================================
# app/core/database.py
# ===================================
import logging
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker
from typing import Generator

from app.core.config import settings

logger = logging.getLogger(__name__)


def _connect_args() -> dict:
    """
    Paramètres de connexion portant le délai max des appels de persistance
    """
    if settings.is_sqlite:
        # Attente max sur un verrou SQLite, sessions partagées entre threads du pool
        return {"timeout": settings.db_timeout_seconds, "check_same_thread": False}

    timeout_ms = int(settings.db_timeout_seconds * 1000)
    if settings.database_url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}"}
    return {}


# Configuration du moteur SQLAlchemy
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    echo=settings.database_echo,  # Log des requêtes SQL
    connect_args=_connect_args(),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()


def get_db() -> Generator:
    """
    Générateur de session de base de données pour l'injection de dépendance FastAPI
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Crée les tables déclarées par les modèles
    """
    import app.models  # noqa: F401  enregistre les modèles sur Base.metadata

    Base.metadata.create_all(bind=engine)
    logger.info("✓ Tables créées")


def check_db_connection() -> bool:
    """
    Vérifie la connexion à la base de données
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"❌ Erreur de connexion DB: {e}")
        return False
