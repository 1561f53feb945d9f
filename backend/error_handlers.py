"""
Erreurs métier et format commun des réponses d'erreur

Corps JSON : {"error": true, "message": ..., "error_code": ..., "details": {...}}
Les HTTPException gardent le format FastAPI {"detail": ...}.
"""
from typing import Any, Dict, Iterable, Optional
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DataError, IntegrityError
from pydantic import ValidationError

from constants import ERROR_MESSAGES

logger = logging.getLogger(__name__)


class ErrorResponse:
    def __init__(self, message: str, error_code: str = None, details: Dict[str, Any] = None, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": True, "message": self.message}
        if self.error_code:
            body["error_code"] = self.error_code
        if self.details:
            body["details"] = self.details
        return body

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


# ==================== ERREURS MÉTIER ====================

class DomainError(Exception):
    """Erreur métier : chaque sous-classe fixe son code HTTP et son error_code"""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "DOMAIN_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(self.message, self.error_code, self.details, self.status_code)


class OwnerNotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "OWNER_NOT_FOUND"

    def __init__(self, owner_id: Optional[int]):
        super().__init__(ERROR_MESSAGES["owner_not_found"].format(owner_id=owner_id), {"proprietaire_id": owner_id})
        self.owner_id = owner_id


class PropertyNotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "PROPERTY_NOT_FOUND"

    def __init__(self, bien_id: int):
        super().__init__(ERROR_MESSAGES["property_not_found"], {"bien_id": bien_id})


class ArchiveChangeForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "ARCHIVE_FORBIDDEN"

    def __init__(self):
        super().__init__(ERROR_MESSAGES["archive_forbidden"])


class ArchivedPropertyAccessError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "ARCHIVED_PROPERTY"

    def __init__(self, bien_id: int):
        super().__init__(ERROR_MESSAGES["archived_forbidden"], {"bien_id": bien_id})


class PropertyNotInTrashError(DomainError):
    error_code = "NOT_IN_TRASH"

    def __init__(self, bien_id: int):
        super().__init__(ERROR_MESSAGES["property_not_in_trash"], {"bien_id": bien_id})


class UploadRejectedError(DomainError):
    error_code = "UPLOAD_REJECTED"


# ==================== ERREURS BASE DE DONNÉES ====================

# (fragments du message du driver, code HTTP, error_code, message client)
# Messages MySQL/MariaDB et SQLite ; premier motif correspondant retenu
INTEGRITY_RULES = (
    (("duplicate entry", "email"), 409, "EMAIL_ALREADY_EXISTS", ERROR_MESSAGES["email_taken"]),
    (("unique constraint", "email"), 409, "EMAIL_ALREADY_EXISTS", ERROR_MESSAGES["email_taken"]),
    (("duplicate entry",), 409, "DUPLICATE_ENTRY", "Cette valeur existe déjà"),
    (("unique constraint",), 409, "DUPLICATE_ENTRY", "Cette valeur existe déjà"),
    (("foreign key constraint",), 400, "FOREIGN_KEY_VIOLATION", "Référence invalide: l'élément lié n'existe pas"),
)


def integrity_error_response(error: IntegrityError) -> ErrorResponse:
    driver_message = str(error.orig).lower()
    for fragments, code, error_code, message in INTEGRITY_RULES:
        if all(fragment in driver_message for fragment in fragments):
            return ErrorResponse(message, error_code, status_code=code)
    logger.error("Contrainte violée non reconnue: %s", error.orig)
    return ErrorResponse("Erreur de contrainte de base de données", "INTEGRITY_ERROR")


def data_error_response(error: DataError) -> ErrorResponse:
    if "data too long" in str(error.orig).lower():
        return ErrorResponse("Données trop longues pour le champ spécifié", "DATA_TOO_LONG")
    logger.error("Donnée refusée par la base: %s", error.orig)
    return ErrorResponse("Format de données incorrect", "DATA_ERROR")


def validation_error_response(errors: Iterable[Dict[str, Any]]) -> ErrorResponse:
    """Liste issue de .errors() -> 400 avec le champ fautif en notation pointée"""
    fields = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in errors
    ]
    return ErrorResponse(
        "Erreurs de validation des données",
        "VALIDATION_ERROR",
        {"validation_errors": fields, "error_count": len(fields)},
        status.HTTP_400_BAD_REQUEST
    )


# ==================== HANDLERS FASTAPI ====================

async def domain_exception_handler(request: Request, exc: DomainError):
    return exc.to_response().to_json_response()


async def validation_exception_handler(request: Request, exc):
    # RequestValidationError (entrée HTTP) et ValidationError (JSON du champ `data`)
    return validation_error_response(exc.errors()).to_json_response()


async def integrity_exception_handler(request: Request, exc: IntegrityError):
    return integrity_error_response(exc).to_json_response()


async def data_exception_handler(request: Request, exc: DataError):
    return data_error_response(exc).to_json_response()


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Erreur non gérée sur %s %s", request.method, request.url.path)
    return ErrorResponse(
        ERROR_MESSAGES["internal"], "INTERNAL_ERROR", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    ).to_json_response()


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(DomainError, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(DataError, data_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
