"""
Profil de l'utilisateur connecté
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy.orm import Session
from typing import Optional

from database import get_db, transaction
from auth import get_current_user, get_password_hash, verify_password, get_user_by_email
from audit_logger import AuditLogger
from constants import ERROR_MESSAGES, SUCCESS_MESSAGES, PROFILE_UPLOAD_FOLDER
from enums import ActionType, EntityType
from error_handlers import UploadRejectedError
from models import Utilisateur
from upload_service import UploadStorage, get_storage
import schemas

router = APIRouter(prefix="/api/user", tags=["Profil"])


def get_profile_or_404(db: Session, current_user: schemas.TokenUser) -> Utilisateur:
    user = db.query(Utilisateur).filter(Utilisateur.id == current_user.id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=ERROR_MESSAGES["user_not_found"])
    return user


@router.get("/profile", response_model=schemas.UserOut)
def get_profile(
    current_user: schemas.TokenUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return get_profile_or_404(db, current_user)


@router.put("/profile", response_model=schemas.UserOut)
def update_profile(
    request: Request,
    nom: Optional[str] = Form(None),
    prenom: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    photo_profil: Optional[UploadFile] = File(None, alias="photoProfil"),
    current_user: schemas.TokenUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: UploadStorage = Depends(get_storage)
):
    """
    Mise à jour du profil (multipart) ; la nouvelle photo remplace l'ancienne sur disque
    """
    user = get_profile_or_404(db, current_user)

    if email and email != user.email and get_user_by_email(db, email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ERROR_MESSAGES["email_taken"])

    if photo_profil is not None and photo_profil.filename:
        if not (photo_profil.content_type or "").startswith("image/"):
            raise UploadRejectedError("La photo de profil doit être une image")

    old_photo = user.photo_profil
    with storage.batch() as batch:
        new_photo = None
        if photo_profil is not None and photo_profil.filename:
            new_photo = batch.save(photo_profil, PROFILE_UPLOAD_FOLDER, prefix="pfp")
        with transaction(db):
            if nom is not None:
                user.nom = nom.strip()
            if prenom is not None:
                user.prenom = prenom.strip()
            if email:
                user.email = email.strip()
            if new_photo is not None:
                user.photo_profil = new_photo.url

    if new_photo is not None and old_photo:
        storage.delete_by_url(old_photo)

    AuditLogger.log_action(
        db=db,
        action=ActionType.UPDATE,
        entity_type=EntityType.USER,
        entity_id=user.id,
        user_id=user.id,
        description="Mise à jour du profil",
        request=request,
        status_code=200
    )
    return user


@router.put("/password", response_model=schemas.MessageOut)
def change_password(
    payload: schemas.PasswordChange,
    request: Request,
    current_user: schemas.TokenUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    user = get_profile_or_404(db, current_user)
    if not verify_password(payload.old_password, user.mot_de_passe):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Ancien mot de passe incorrect")

    with transaction(db):
        user.mot_de_passe = get_password_hash(payload.new_password)

    AuditLogger.log_auth_action(
        db=db,
        action=ActionType.UPDATE,
        user_id=user.id,
        description="Changement de mot de passe",
        request=request
    )
    return {"message": SUCCESS_MESSAGES["password_updated"]}
