"""
Upload temporaire de fichiers (avant rattachement à un bien)
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy.orm import Session
from typing import List, Optional

from database import get_db
from auth import is_admin
from audit_logger import AuditLogger
from constants import MAX_TEMP_FILES_PER_REQUEST, TEMP_UPLOAD_FOLDER, DEFAULT_UPLOAD_FOLDER, SUCCESS_MESSAGES
from enums import ActionType, EntityType, TypeBien
from error_handlers import UploadRejectedError
from upload_service import UploadStorage, get_storage
import schemas

router = APIRouter(prefix="/api/upload", tags=["Uploads"])

# Dossiers dans lesquels un fichier temporaire peut être rangé puis recherché
TEMP_FOLDERS = [TEMP_UPLOAD_FOLDER] + [t.value for t in TypeBien] + [DEFAULT_UPLOAD_FOLDER]


@router.post("/temp", response_model=schemas.UploadResult, status_code=status.HTTP_201_CREATED)
def upload_temp(
    request: Request,
    files: List[UploadFile] = File(...),
    type: Optional[str] = Form(None, description="Dossier de destination (type de bien)"),
    current_user: schemas.TokenUser = Depends(is_admin),
    storage: UploadStorage = Depends(get_storage),
    db: Session = Depends(get_db)
):
    folder = (type or TEMP_UPLOAD_FOLDER).upper()
    if folder not in TEMP_FOLDERS:
        raise UploadRejectedError(f"Dossier de destination inconnu: {type}")
    if len(files) > MAX_TEMP_FILES_PER_REQUEST:
        raise UploadRejectedError(f"Trop de fichiers (maximum {MAX_TEMP_FILES_PER_REQUEST})")

    with storage.batch() as batch:
        batch.save_all(files, folder)
        stored_files = list(batch.stored)

    AuditLogger.log_action(
        db=db,
        action=ActionType.CREATE,
        entity_type=EntityType.UPLOAD,
        description=f"{len(stored_files)} fichier(s) uploadé(s) dans {folder}",
        user_id=current_user.id,
        request=request,
        status_code=201
    )

    return {
        "message": f"{len(stored_files)} fichier(s) uploadé(s)",
        "files": [
            {
                "url": stored.url,
                "filename": stored.filename,
                "originalname": stored.original_name,
                "size": stored.size,
                "mimetype": stored.content_type,
            }
            for stored in stored_files
        ],
    }


@router.delete("/temp/{filename}", response_model=schemas.MessageOut)
def delete_temp(
    filename: str,
    current_user: schemas.TokenUser = Depends(is_admin),
    storage: UploadStorage = Depends(get_storage)
):
    path = storage.find_file(filename, TEMP_FOLDERS)
    if path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fichier introuvable")
    path.unlink()
    return {"message": SUCCESS_MESSAGES["file_deleted"]}
