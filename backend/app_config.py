"""
Assemblage de l'application GestImmo : tables, middlewares, erreurs, routeurs, fichiers servis
"""
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from constants import APP_DESCRIPTION, APP_NAME, APP_VERSION
from controllers.auth_controller import router as auth_router
from database import engine
from error_handlers import register_exception_handlers
from middleware import AuditMiddleware
from scheduler import TrashSweepScheduler
from upload_service import get_storage
import collaborateur_routes
import demande_routes
import models
import property_routes
import upload_routes
import user_routes

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173"

health_router = APIRouter(tags=["Santé"])


@health_router.get("/health")
async def health(request: Request):
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "uptime": round(time.time() - request.app.state.started_at, 1),
    }


ROUTERS = (
    auth_router,
    property_routes.router,
    upload_routes.router,
    collaborateur_routes.router,
    user_routes.router,
    demande_routes.router,
    health_router,
)


def scheduler_enabled() -> bool:
    return os.getenv("SCHEDULER_ENABLED", "true").lower() != "false"


def cors_origins() -> list:
    raw = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """La purge quotidienne de la corbeille vit et meurt avec l'application"""
    sweeper = TrashSweepScheduler.from_env() if scheduler_enabled() else None
    if sweeper is not None:
        sweeper.start()
    app.state.started_at = time.time()
    try:
        yield
    finally:
        if sweeper is not None:
            await sweeper.stop()


class AppConfigurator:

    @staticmethod
    def create_app() -> FastAPI:
        models.Base.metadata.create_all(bind=engine)

        app = FastAPI(title=APP_NAME, version=APP_VERSION, description=APP_DESCRIPTION, lifespan=lifespan)
        # Sans lifespan (TestClient hors contexte), /health a quand même une origine
        app.state.started_at = time.time()

        AppConfigurator._configure_middlewares(app)
        register_exception_handlers(app)
        for router in ROUTERS:
            app.include_router(router)
        AppConfigurator._mount_uploads(app)
        return app

    @staticmethod
    def _configure_middlewares(app: FastAPI):
        # Ajouté en dernier = exécuté en premier : l'audit voit aussi les réponses CORS
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins(),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )
        app.add_middleware(AuditMiddleware)

    @staticmethod
    def _mount_uploads(app: FastAPI):
        """Fichiers téléversés servis tels quels sous /uploads"""
        root = get_storage().root
        root.mkdir(parents=True, exist_ok=True)
        app.mount("/uploads", StaticFiles(directory=str(root)), name="uploads")
