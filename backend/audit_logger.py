"""
Journal d'audit des actions métier (table audit_logs)

Chaque entrée est commitée immédiatement : à appeler après la transaction
métier, jamais au milieu. Une erreur d'écriture est journalisée et n'est
jamais propagée à l'appelant.
"""
import enum
import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from enums import ActionType, EntityType
from models import AuditLog

logger = logging.getLogger(__name__)

DESCRIPTION_MAX_LENGTH = 500
USER_AGENT_MAX_LENGTH = 500
SENSITIVE_COLUMNS = ("mot_de_passe",)


def _request_context(request: Optional[Request]) -> Dict[str, Optional[str]]:
    """IP, user-agent, endpoint et méthode de la requête HTTP en cours"""
    if request is None:
        return {"ip_address": None, "user_agent": None, "endpoint": None, "method": None}
    user_agent = request.headers.get("user-agent")
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": user_agent[:USER_AGENT_MAX_LENGTH] if user_agent else None,
        "endpoint": request.url.path,
        "method": request.method,
    }


def _serialize_details(details: Optional[Dict[str, Any]]) -> Optional[str]:
    if not details:
        return None
    try:
        return json.dumps(details, default=str, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        return f"Détails non sérialisables: {e}"


class AuditLogger:
    """Enregistre qui a fait quoi, sur quelle entité, depuis quelle requête"""

    @staticmethod
    def log_action(
        db: Session,
        action: ActionType,
        entity_type: EntityType,
        description: str,
        user_id: Optional[int] = None,
        entity_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None,
        status_code: Optional[int] = None
    ):
        entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description[:DESCRIPTION_MAX_LENGTH],
            details=_serialize_details(details),
            status_code=status_code,
            **_request_context(request)
        )
        db.add(entry)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Audit non enregistré: %s %s (%s)", action.value, entity_type.value, description)

    @staticmethod
    def log_auth_action(db: Session, action: ActionType, user_id: int, description: str,
                        request: Request = None, details: Dict = None):
        """Connexion, déconnexion, changement de mot de passe"""
        AuditLogger.log_action(
            db=db,
            action=action,
            entity_type=EntityType.SESSION,
            description=description,
            user_id=user_id,
            entity_id=user_id,
            details=details,
            request=request,
            status_code=200
        )

    @staticmethod
    def log_crud_action(db: Session, action: ActionType, entity_type: EntityType,
                        entity_id: int, user_id: int, description: str,
                        before_data: Dict = None, after_data: Dict = None, request: Request = None):
        """Écriture sur une entité, avec l'état avant et/ou après"""
        details = {
            key: value
            for key, value in (("before", before_data), ("after", after_data))
            if value
        }
        AuditLogger.log_action(
            db=db,
            action=action,
            entity_type=entity_type,
            description=description,
            user_id=user_id,
            entity_id=entity_id,
            details=details,
            request=request,
            status_code=201 if action == ActionType.CREATE else 200
        )

    @staticmethod
    def log_bien_action(db: Session, action: ActionType, bien_id: int, user_id: int,
                        description: str, request: Request = None, **details):
        """Raccourci pour les opérations sur un bien (création, modification, corbeille)"""
        AuditLogger.log_crud_action(
            db=db,
            action=action,
            entity_type=EntityType.BIEN,
            entity_id=bien_id,
            user_id=user_id,
            description=description,
            before_data=details.pop("before", None),
            after_data=details or None,
            request=request
        )

    @staticmethod
    def log_error(db: Session, description: str, user_id: int = None,
                  error_details: Any = None, request: Request = None, status_code: int = 500):
        AuditLogger.log_action(
            db=db,
            action=ActionType.ERROR,
            entity_type=EntityType.SESSION if status_code == 401 else EntityType.USER,
            description=description,
            user_id=user_id,
            details={"error": error_details} if error_details else None,
            request=request,
            status_code=status_code
        )

    @staticmethod
    def log_access_denied(db: Session, description: str, user_id: int = None, request: Request = None):
        AuditLogger.log_action(
            db=db,
            action=ActionType.ACCESS_DENIED,
            entity_type=EntityType.USER,
            description=description,
            user_id=user_id,
            request=request,
            status_code=403
        )


def _json_value(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


def get_model_data(obj, exclude: Iterable[str] = SENSITIVE_COLUMNS) -> Dict[str, Any]:
    """Colonnes d'une ligne SQLAlchemy, sans les champs sensibles, prêtes pour json.dumps"""
    if obj is None:
        return {}
    return {
        column.name: _json_value(getattr(obj, column.name))
        for column in obj.__table__.columns
        if column.name not in exclude
    }
