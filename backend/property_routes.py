"""
Routes API des biens immobiliers : formulaire de création, modification, corbeille
"""
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from sqlalchemy.orm import Session
from typing import List, Optional

from database import get_db
from auth import is_admin, is_admin_or_collaborateur
from audit_logger import AuditLogger
from constants import MAX_DOCUMENTS_PER_REQUEST, MAX_PHOTOS_PER_REQUEST, SUCCESS_MESSAGES
from enums import ActionType, StatutBien, TypeBien, TypeTransaction
from error_handlers import UploadRejectedError
from services.property_service import PropertyService
from services.trash_service import TrashService
from upload_service import UploadStorage, get_storage
import schemas

router = APIRouter(prefix="/api/properties", tags=["Biens"])


def get_property_service(db: Session = Depends(get_db), storage: UploadStorage = Depends(get_storage)) -> PropertyService:
    return PropertyService(db, storage)


def get_trash_service(db: Session = Depends(get_db), storage: UploadStorage = Depends(get_storage)) -> TrashService:
    return TrashService(db, storage)


def check_upload_counts(documents: List[UploadFile], photos: List[UploadFile]):
    if len(documents) > MAX_DOCUMENTS_PER_REQUEST:
        raise UploadRejectedError(f"Trop de documents (maximum {MAX_DOCUMENTS_PER_REQUEST})")
    if len(photos) > MAX_PHOTOS_PER_REQUEST:
        raise UploadRejectedError(f"Trop de photos (maximum {MAX_PHOTOS_PER_REQUEST})")


@router.get("", response_model=schemas.BienList)
def list_properties(
    statut: Optional[StatutBien] = None,
    transaction: Optional[TypeTransaction] = None,
    type: Optional[TypeBien] = None,
    q: Optional[str] = None,
    current_user: schemas.TokenUser = Depends(is_admin_or_collaborateur),
    service: PropertyService = Depends(get_property_service)
):
    """Biens actifs ; les collaborateurs ne voient pas les biens archivés"""
    biens = service.list_biens(current_user, statut=statut, transaction_type=transaction, type_bien=type, search=q)
    return {"data": biens, "count": len(biens)}


@router.get("/trash", response_model=schemas.BienList)
def list_trash(
    current_user: schemas.TokenUser = Depends(is_admin),
    service: TrashService = Depends(get_trash_service)
):
    biens = service.list_trash()
    return {"data": biens, "count": len(biens)}


@router.get("/{bien_id}", response_model=schemas.BienOut)
def get_property(
    bien_id: int,
    current_user: schemas.TokenUser = Depends(is_admin_or_collaborateur),
    service: PropertyService = Depends(get_property_service)
):
    return service.get_bien(bien_id, current_user)


@router.post("", response_model=schemas.BienOut, status_code=201)
def create_property(
    request: Request,
    data: str = Form(..., description="Formulaire complet du bien (JSON)"),
    documents: List[UploadFile] = File(default=[]),
    photos: List[UploadFile] = File(default=[]),
    current_user: schemas.TokenUser = Depends(is_admin_or_collaborateur),
    service: PropertyService = Depends(get_property_service)
):
    """
    Création d'un bien complet depuis le formulaire multi-étapes.
    Les fichiers dont le nom figure dans `piecesJointes` deviennent des pièces jointes.
    """
    payload = schemas.BienCreatePayload.model_validate_json(data)
    check_upload_counts(documents, photos)

    folder = UploadStorage.folder_for(payload.bien_immobilier.type)
    with service.storage.batch() as batch:
        uploaded = batch.save_all([*documents, *photos], folder)
        bien = service.create_bien(payload, uploaded, current_user)

    AuditLogger.log_bien_action(
        service.db, ActionType.CREATE, bien.id, current_user.id,
        f"Création du bien: {bien.titre}",
        request=request,
        titre=bien.titre,
        type=bien.type.value,
        fichiers=len(uploaded)
    )
    return bien


@router.put("/{bien_id}", response_model=schemas.BienOut)
def update_property(
    bien_id: int,
    request: Request,
    data: str = Form(..., description="Modifications du bien (JSON)"),
    documents: List[UploadFile] = File(default=[]),
    photos: List[UploadFile] = File(default=[]),
    current_user: schemas.TokenUser = Depends(is_admin_or_collaborateur),
    service: PropertyService = Depends(get_property_service)
):
    payload = schemas.BienUpdatePayload.model_validate_json(data)
    check_upload_counts(documents, photos)

    existing = service.get_bien(bien_id, current_user)
    folder = UploadStorage.folder_for(payload.bien_immobilier.type or existing.type)
    with service.storage.batch() as batch:
        uploaded = batch.save_all([*documents, *photos], folder)
        bien = service.update_bien(bien_id, payload, uploaded, current_user)

    AuditLogger.log_bien_action(
        service.db, ActionType.UPDATE, bien.id, current_user.id,
        f"Modification du bien: {bien.titre}",
        request=request,
        champs=sorted(payload.bien_immobilier.model_fields_set),
        fichiers_ajoutes=len(uploaded),
        fichiers_supprimes=len(payload.files_to_delete)
    )
    return bien


@router.delete("/{bien_id}", response_model=schemas.MessageOut)
def trash_property(
    bien_id: int,
    request: Request,
    current_user: schemas.TokenUser = Depends(is_admin),
    service: TrashService = Depends(get_trash_service)
):
    """Suppression logique : le bien part dans la corbeille"""
    bien = service.soft_delete(bien_id)
    AuditLogger.log_bien_action(
        service.db, ActionType.DELETE, bien_id, current_user.id,
        f"Bien mis à la corbeille: {bien.titre}",
        request=request
    )
    return {"message": SUCCESS_MESSAGES["property_trashed"]}


@router.put("/{bien_id}/restore", response_model=schemas.MessageOut)
def restore_property(
    bien_id: int,
    request: Request,
    current_user: schemas.TokenUser = Depends(is_admin),
    service: TrashService = Depends(get_trash_service)
):
    bien = service.restore(bien_id)
    AuditLogger.log_bien_action(
        service.db, ActionType.RESTORE, bien_id, current_user.id,
        f"Bien restauré: {bien.titre}",
        request=request
    )
    return {"message": SUCCESS_MESSAGES["property_restored"]}


@router.delete("/{bien_id}/permanent", response_model=schemas.MessageOut)
def delete_property_permanently(
    bien_id: int,
    request: Request,
    current_user: schemas.TokenUser = Depends(is_admin),
    service: TrashService = Depends(get_trash_service)
):
    removed_files = service.permanently_delete(bien_id)
    AuditLogger.log_bien_action(
        service.db, ActionType.PURGE, bien_id, current_user.id,
        f"Bien {bien_id} supprimé définitivement",
        request=request,
        before={"fichiers_supprimes": removed_files}
    )
    return {"message": SUCCESS_MESSAGES["property_purged"]}
