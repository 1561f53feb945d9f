"""
Middleware ASGI de traçabilité des requêtes HTTP
"""
import logging
import time
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt

from audit_logger import AuditLogger
from database import SessionLocal
from enums import ActionType, EntityType

logger = logging.getLogger(__name__)

# Préfixes jamais tracés en base
UNTRACKED_PREFIXES = ("/docs", "/redoc", "/openapi.json", "/favicon.ico", "/uploads/", "/health")

METHOD_ACTIONS = {
    "POST": ActionType.CREATE,
    "PUT": ActionType.UPDATE,
    "PATCH": ActionType.UPDATE,
    "DELETE": ActionType.DELETE,
}

# Premier fragment trouvé dans le chemin -> entité
PATH_ENTITIES = (
    ("/properties", EntityType.BIEN),
    ("/upload", EntityType.UPLOAD),
    ("/demandes", EntityType.DEMANDE),
    ("/auth/", EntityType.SESSION),
)


def entity_for_path(path: str) -> EntityType:
    for fragment, entity in PATH_ENTITIES:
        if fragment in path:
            return entity
    return EntityType.USER


def user_id_from_token(request: Request) -> Optional[int]:
    """Lecture du token sans nouvelle vérification des droits ; None si absent ou illisible"""
    from auth import ALGORITHM, SECRET_KEY

    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM]).get("id")
    except JWTError:
        return None


class AuditMiddleware:
    """
    Journalise chaque requête (logger) et enregistre en base les écritures
    ainsi que les réponses en erreur
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        response_status = {"code": 500}

        async def capture_status(message):
            if message["type"] == "http.response.start":
                response_status["code"] = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, capture_status)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            request = Request(scope)
            logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response_status["code"], elapsed_ms)
            if self.should_record(request, response_status["code"]):
                self.record(request, response_status["code"], elapsed_ms)

    @staticmethod
    def should_record(request: Request, status_code: int) -> bool:
        if request.url.path.startswith(UNTRACKED_PREFIXES):
            return False
        return request.method != "GET" or status_code >= 400

    @staticmethod
    def record(request: Request, status_code: int, elapsed_ms: float):
        summary = f"{request.method} {request.url.path}"
        if status_code >= 400:
            summary = f"{summary} - Erreur {status_code}"

        db = SessionLocal()
        try:
            AuditLogger.log_action(
                db=db,
                action=METHOD_ACTIONS.get(request.method, ActionType.READ),
                entity_type=entity_for_path(request.url.path),
                description=summary,
                user_id=user_id_from_token(request),
                details={
                    "query": str(request.query_params) or None,
                    "status_code": status_code,
                    "duree_ms": round(elapsed_ms, 2),
                },
                request=request,
                status_code=status_code
            )
        finally:
            db.close()
