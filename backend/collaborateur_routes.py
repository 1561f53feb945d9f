"""
Gestion des collaborateurs par l'administrateur
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db, transaction
from auth import is_admin, get_password_hash, get_user_by_email
from audit_logger import AuditLogger, get_model_data
from constants import ERROR_MESSAGES, SUCCESS_MESSAGES
from enums import ActionType, EntityType, Role
from models import Utilisateur, BienImmobilier
from services.property_service import FULL_LOAD_OPTIONS
import schemas

router = APIRouter(prefix="/api/admin/collaborateurs", tags=["Collaborateurs"])


def count_biens_crees(db: Session, user_id: int) -> int:
    return db.query(func.count(BienImmobilier.id)).filter(BienImmobilier.created_by_id == user_id).scalar() or 0


def to_collaborateur_out(user: Utilisateur, nb_biens: int) -> schemas.CollaborateurOut:
    return schemas.CollaborateurOut.model_validate(user).model_copy(update={"nb_biens_crees": nb_biens})


def get_user_or_404(db: Session, user_id: int) -> Utilisateur:
    user = db.query(Utilisateur).filter(Utilisateur.id == user_id).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=ERROR_MESSAGES["collaborator_not_found"])
    return user


@router.get("", response_model=schemas.CollaborateurList)
def list_collaborateurs(
    current_user: schemas.TokenUser = Depends(is_admin),
    db: Session = Depends(get_db)
):
    rows = db.query(Utilisateur, func.count(BienImmobilier.id)).outerjoin(
        BienImmobilier, BienImmobilier.created_by_id == Utilisateur.id
    ).filter(
        Utilisateur.role == Role.COLLABORATEUR
    ).group_by(Utilisateur.id).order_by(Utilisateur.date_creation.desc(), Utilisateur.id.desc()).all()

    collaborateurs = [to_collaborateur_out(user, count) for user, count in rows]
    return {"data": collaborateurs, "count": len(collaborateurs)}


@router.get("/{user_id}", response_model=schemas.CollaborateurOut)
def get_collaborateur(
    user_id: int,
    current_user: schemas.TokenUser = Depends(is_admin),
    db: Session = Depends(get_db)
):
    user = get_user_or_404(db, user_id)
    return to_collaborateur_out(user, count_biens_crees(db, user.id))


@router.get("/{user_id}/properties", response_model=schemas.BienList)
def list_collaborateur_properties(
    user_id: int,
    current_user: schemas.TokenUser = Depends(is_admin),
    db: Session = Depends(get_db)
):
    """Biens créés par ce collaborateur (hors corbeille)"""
    get_user_or_404(db, user_id)
    biens = db.query(BienImmobilier).options(*FULL_LOAD_OPTIONS).filter(
        BienImmobilier.created_by_id == user_id,
        BienImmobilier.deleted_at.is_(None)
    ).order_by(BienImmobilier.date_creation.desc(), BienImmobilier.id.desc()).all()
    return {"data": biens, "count": len(biens)}


@router.post("", response_model=schemas.CollaborateurOut, status_code=status.HTTP_201_CREATED)
def create_collaborateur(
    payload: schemas.CollaborateurCreate,
    request: Request,
    current_user: schemas.TokenUser = Depends(is_admin),
    db: Session = Depends(get_db)
):
    if get_user_by_email(db, payload.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ERROR_MESSAGES["email_taken"])

    with transaction(db):
        user = Utilisateur(
            email=payload.email,
            mot_de_passe=get_password_hash(payload.password),
            nom=payload.nom.strip(),
            prenom=payload.prenom.strip(),
            role=Role.COLLABORATEUR
        )
        db.add(user)
    db.refresh(user)

    AuditLogger.log_crud_action(
        db=db,
        action=ActionType.CREATE,
        entity_type=EntityType.USER,
        entity_id=user.id,
        user_id=current_user.id,
        description=f"Création du collaborateur: {user.email}",
        after_data=get_model_data(user),
        request=request
    )
    return to_collaborateur_out(user, 0)


@router.put("/{user_id}", response_model=schemas.CollaborateurOut)
def update_collaborateur(
    user_id: int,
    payload: schemas.CollaborateurUpdate,
    request: Request,
    current_user: schemas.TokenUser = Depends(is_admin),
    db: Session = Depends(get_db)
):
    user = get_user_or_404(db, user_id)
    before = get_model_data(user)

    if payload.email and payload.email != user.email:
        if get_user_by_email(db, payload.email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=ERROR_MESSAGES["email_taken"])

    with transaction(db):
        if payload.email:
            user.email = payload.email
        if payload.nom is not None:
            user.nom = payload.nom.strip()
        if payload.prenom is not None:
            user.prenom = payload.prenom.strip()
        if payload.password:
            user.mot_de_passe = get_password_hash(payload.password)

    AuditLogger.log_crud_action(
        db=db,
        action=ActionType.UPDATE,
        entity_type=EntityType.USER,
        entity_id=user.id,
        user_id=current_user.id,
        description=f"Modification du collaborateur: {user.email}",
        before_data=before,
        after_data=get_model_data(user),
        request=request
    )
    return to_collaborateur_out(user, count_biens_crees(db, user.id))


@router.delete("/{user_id}", response_model=schemas.MessageOut)
def delete_collaborateur(
    user_id: int,
    request: Request,
    current_user: schemas.TokenUser = Depends(is_admin),
    db: Session = Depends(get_db)
):
    """Les biens créés par le collaborateur sont conservés, sans créateur"""
    user = get_user_or_404(db, user_id)
    if user.role == Role.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Impossible de supprimer un administrateur")

    before = get_model_data(user)
    with transaction(db):
        db.delete(user)

    AuditLogger.log_crud_action(
        db=db,
        action=ActionType.DELETE,
        entity_type=EntityType.USER,
        entity_id=user_id,
        user_id=current_user.id,
        description=f"Suppression du collaborateur: {before.get('email')}",
        before_data=before,
        request=request
    )
    return {"message": SUCCESS_MESSAGES["collaborator_deleted"]}
