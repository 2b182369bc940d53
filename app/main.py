# ===================================
# app/main.py
# ===================================
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.core.config import settings
from app.core.database import check_db_connection, init_db
from app.core.exceptions import StorefrontError
from app.api.v1 import auth, users, items, inventory

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Vérifie la base et crée les tables au démarrage"""
    logger.info(f"🚀 Démarrage de {settings.app_name} ({settings.environment})")

    if not check_db_connection():
        logger.error("❌ Base de données injoignable, arrêt du démarrage")
        raise RuntimeError("Database connection failed")
    init_db()

    yield

    logger.info(f"⏹️ Arrêt de {settings.app_name}")


def _error_response(status_code: int, error: dict, headers: Optional[dict] = None) -> JSONResponse:
    """Enveloppe commune de toutes les réponses d'erreur"""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": status_code, **error}},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        error = {"kind": exc.kind, "message": exc.message, "type": type(exc).__name__}
        if exc.reason:
            error["reason"] = exc.reason
        return _error_response(exc.status_code, error, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_response(422, {
            "kind": "invalid_input",
            "message": "Requête invalide",
            "type": "validation_error",
            "details": [
                {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
                for err in exc.errors()
            ],
        })

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return _error_response(
            exc.status_code,
            {"message": exc.detail, "type": "http_error"},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Erreur non gérée sur {request.method} {request.url.path}: {exc}", exc_info=True)
        return _error_response(500, {"message": "Erreur interne du serveur", "type": "internal_error"})


def create_app() -> FastAPI:
    """Construit l'application : middlewares, routes et gestionnaires d'erreurs"""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for module, prefix, tag in (
        (auth, "/auth", "Auth"),
        (users, "/users", "Users"),
        (items, "/items", "Items"),
        (inventory, "/inventory", "Inventory"),
    ):
        app.include_router(module.router, prefix=f"{settings.api_prefix}{prefix}", tags=[tag])

    @app.get("/health")
    def health_check():
        """État du service et de la base"""
        database_ok = check_db_connection()
        return {
            "status": "ok" if database_ok else "degraded",
            "database": "ok" if database_ok else "unreachable",
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.get("/")
    def root():
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "api": settings.api_prefix,
        }

    register_exception_handlers(app)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
