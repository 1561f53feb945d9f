"""
Demandes des clients, saisies par l'agence
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db, transaction
from auth import is_admin
from audit_logger import AuditLogger, get_model_data
from enums import ActionType, EntityType
from models import Demande
import schemas

router = APIRouter(prefix="/api/admin/demandes", tags=["Demandes"])


@router.post("", response_model=schemas.DemandeOut, status_code=status.HTTP_201_CREATED)
def create_demande(
    payload: schemas.DemandeCreate,
    request: Request,
    current_user: schemas.TokenUser = Depends(is_admin),
    db: Session = Depends(get_db)
):
    with transaction(db):
        demande = Demande(prenom=payload.prenom, nom=payload.nom, description=payload.description)
        db.add(demande)
    db.refresh(demande)

    AuditLogger.log_crud_action(
        db=db,
        action=ActionType.CREATE,
        entity_type=EntityType.DEMANDE,
        entity_id=demande.id,
        user_id=current_user.id,
        description=f"Nouvelle demande de {demande.prenom} {demande.nom}",
        after_data=get_model_data(demande),
        request=request
    )
    return demande


@router.get("", response_model=schemas.DemandeList)
def list_demandes(
    current_user: schemas.TokenUser = Depends(is_admin),
    db: Session = Depends(get_db)
):
    demandes = db.query(Demande).order_by(Demande.date_demande.desc(), Demande.id.desc()).all()
    return {"data": demandes, "count": len(demandes)}
