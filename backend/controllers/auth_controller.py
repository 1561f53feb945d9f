"""
Contrôleur d'authentification : compte administrateur initial, connexion, déconnexion, vérification du token
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from database import get_db, transaction
from auth import create_access_token, get_current_user, get_password_hash, get_user_by_email, verify_password
from models import Utilisateur
from enums import ActionType, EntityType, Role
from audit_logger import AuditLogger, get_model_data
from rate_limiter import check_rate_limit
from constants import ERROR_MESSAGES, SUCCESS_MESSAGES
import schemas

router = APIRouter(prefix="/api/auth", tags=["Authentification"])


def session_response(message: str, user: Utilisateur) -> dict:
    return {"message": message, "token": create_access_token(user), "user": user}


def reject_credentials():
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=ERROR_MESSAGES["invalid_credentials"],
        headers={"WWW-Authenticate": "Bearer"}
    )


@router.post("/signup", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(
    payload: schemas.SignupRequest,
    request: Request,
    db: Session = Depends(get_db),
    _: bool = Depends(check_rate_limit("signup"))
):
    """
    Ouvert uniquement sur une base vide : le premier compte est l'administrateur,
    les collaborateurs sont créés ensuite depuis /api/admin/collaborateurs.
    """
    if db.query(Utilisateur.id).first() is not None:
        AuditLogger.log_access_denied(db, f"Inscription fermée, tentative pour {payload.email}", request=request)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ERROR_MESSAGES["admin_exists"])
    if get_user_by_email(db, payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ERROR_MESSAGES["email_taken"])

    with transaction(db):
        admin = Utilisateur(
            email=payload.email,
            mot_de_passe=get_password_hash(payload.password),
            nom=payload.nom,
            prenom=payload.prenom,
            role=Role.ADMIN
        )
        db.add(admin)
    db.refresh(admin)

    AuditLogger.log_crud_action(
        db, ActionType.CREATE, EntityType.USER, admin.id, admin.id,
        f"Compte administrateur initial: {admin.email}",
        after_data=get_model_data(admin),
        request=request
    )
    return session_response("Administrateur créé avec succès", admin)


@router.post("/login", response_model=schemas.AuthResponse)
def login(
    payload: schemas.LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    _: bool = Depends(check_rate_limit("login"))
):
    user = get_user_by_email(db, payload.email)
    if user is None or not verify_password(payload.password, user.mot_de_passe):
        # Même réponse pour un email inconnu et un mauvais mot de passe
        AuditLogger.log_error(
            db, f"Connexion refusée pour {payload.email}",
            error_details="Identifiants incorrects", request=request, status_code=401
        )
        reject_credentials()

    AuditLogger.log_auth_action(db, ActionType.LOGIN, user.id, f"Connexion: {user.email}", request=request)
    return session_response("Connexion réussie", user)


@router.post("/logout", response_model=schemas.MessageOut)
def logout(
    request: Request,
    current_user: schemas.TokenUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Token sans état : rien à invalider côté serveur, seule la trace est gardée"""
    AuditLogger.log_auth_action(db, ActionType.LOGOUT, current_user.id, f"Déconnexion: {current_user.email}", request=request)
    return {"message": SUCCESS_MESSAGES["logout"]}


@router.get("/verify", response_model=schemas.TokenUser)
async def verify(current_user: schemas.TokenUser = Depends(get_current_user)):
    return current_user
