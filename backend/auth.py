"""
Mots de passe bcrypt, tokens JWT de session et dépendances de contrôle des rôles
"""
from datetime import datetime, timedelta
from typing import Optional
import logging
import os
import secrets

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import ValidationError
from sqlalchemy.orm import Session

from audit_logger import AuditLogger
from constants import ACCESS_TOKEN_EXPIRE_DAYS, ERROR_MESSAGES, JWT_ALGORITHM
from database import get_db
from enums import Role
from schemas import TokenUser
import models

logger = logging.getLogger(__name__)


def _load_secret_key() -> str:
    key = os.getenv("JWT_SECRET")
    if key:
        return key
    # Développement uniquement : les tokens ne survivent pas au redémarrage
    logger.warning("JWT_SECRET non définie, clé de signature temporaire générée")
    return secrets.token_urlsafe(32)


SECRET_KEY = _load_secret_key()
ALGORITHM = JWT_ALGORITHM

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login")


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Valeur stockée qui n'est pas un hash bcrypt
        return False


def create_access_token(user: models.Utilisateur, expires_delta: Optional[timedelta] = None) -> str:
    """Claims {id, email, role}, valables 7 jours sauf durée explicite"""
    lifetime = expires_delta if expires_delta is not None else timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)
    claims = {
        "sub": str(user.id),
        "id": user.id,
        "email": user.email,
        "role": user.role.value,
        "exp": datetime.utcnow() + lifetime,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> TokenUser:
    claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    return TokenUser(id=claims.get("id"), email=claims.get("email"), role=claims.get("role"))


def get_user_by_email(db: Session, email: str) -> Optional[models.Utilisateur]:
    return db.query(models.Utilisateur).filter(models.Utilisateur.email == email).first()


def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenUser:
    """Identité lue dans le token seul, sans requête en base"""
    try:
        return decode_access_token(token)
    except (JWTError, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token invalide ou expiré",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_roles(*roles: Role):
    """Dépendance FastAPI n'acceptant que les rôles donnés ; chaque refus est audité"""
    denied_message = ERROR_MESSAGES["admin_required"] if roles == (Role.ADMIN,) else ERROR_MESSAGES["role_required"]

    def role_checker(
        request: Request,
        current_user: TokenUser = Depends(get_current_user),
        db: Session = Depends(get_db)
    ) -> TokenUser:
        if current_user.role in roles:
            return current_user
        AuditLogger.log_access_denied(
            db=db,
            description=f"Rôle {current_user.role.value} refusé sur {request.url.path}",
            user_id=current_user.id,
            request=request
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=denied_message)

    return role_checker


is_admin = require_roles(Role.ADMIN)
is_collaborateur = require_roles(Role.COLLABORATEUR)
is_admin_or_collaborateur = require_roles(Role.ADMIN, Role.COLLABORATEUR)
