"""
Service de stockage des fichiers uploadés (photos, documents, photos de profil)

Arborescence : UPLOAD_DIR/<TYPE>/<timestamp>-<aléatoire>-<nom_nettoyé>
servie en statique sous /uploads.
"""
import logging
import os
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from fastapi import UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

from constants import (
    MAX_FILE_SIZE, ALLOWED_DOCUMENT_TYPES, DOCUMENT_MIME_KEYWORDS, DEFAULT_UPLOAD_FOLDER,
    UPLOADS_URL_PREFIX, IMAGE_MAX_DIMENSIONS, IMAGE_QUALITY, OPTIMIZABLE_IMAGE_FORMATS
)
from error_handlers import UploadRejectedError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass
class StoredFile:
    original_name: str
    filename: str
    folder: str
    path: Path
    url: str
    size: int
    content_type: str


def is_allowed_mime_type(content_type: Optional[str]) -> bool:
    """Images, PDF et documents Word / OpenXML"""
    if not content_type:
        return False
    if content_type.startswith("image/") or content_type in ALLOWED_DOCUMENT_TYPES:
        return True
    return any(keyword in content_type for keyword in DOCUMENT_MIME_KEYWORDS)


def sanitize_filename(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.]", "_", os.path.basename(filename or "fichier"))


def generate_filename(original_filename: str, prefix: Optional[str] = None) -> str:
    """Génère un nom de fichier unique"""
    timestamp = int(time.time() * 1000)
    unique_id = secrets.randbelow(10 ** 9)
    name = f"{timestamp}-{unique_id}-{sanitize_filename(original_filename)}"
    return f"{prefix}-{name}" if prefix else name


def optimize_image(path: Path) -> bool:
    """
    Réduit l'image dans un cadre 1920x1920 (sans agrandir), applique l'orientation EXIF
    et recompresse les JPEG/PNG/WebP. Un échec laisse le fichier d'origine en place.
    """
    try:
        with Image.open(path) as img:
            image_format = img.format
            if image_format not in OPTIMIZABLE_IMAGE_FORMATS:
                return False
            img = ImageOps.exif_transpose(img)
            img.thumbnail(IMAGE_MAX_DIMENSIONS, Image.Resampling.LANCZOS)
            if image_format == "JPEG" and img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            img.save(path, format=image_format, optimize=True, quality=IMAGE_QUALITY)
        return True
    except (OSError, UnidentifiedImageError, ValueError) as e:
        logger.warning("Optimisation impossible pour %s: %s", path, e)
        return False


class UploadStorage:
    """Stockage disque des fichiers uploadés"""

    def __init__(self, root, base_url: str = "", optimize_images: bool = True):
        self.root = Path(root).resolve()
        self.base_url = (base_url or "").rstrip("/")
        self.optimize_images = optimize_images
        self.max_file_size = MAX_FILE_SIZE

    @classmethod
    def from_env(cls) -> "UploadStorage":
        return cls(
            root=os.getenv("UPLOAD_DIR", "uploads"),
            base_url=os.getenv("APP_BASE_URL", ""),
            optimize_images=os.getenv("IMAGE_OPTIMIZATION", "true").lower() != "false",
        )

    @staticmethod
    def folder_for(type_bien) -> str:
        """Dossier de rangement : le type du bien, AUTRE à défaut"""
        if type_bien is None:
            return DEFAULT_UPLOAD_FOLDER
        return getattr(type_bien, "value", str(type_bien)) or DEFAULT_UPLOAD_FOLDER

    def folder_path(self, folder: str) -> Path:
        path = (self.root / folder).resolve()
        if path.parent != self.root:
            raise UploadRejectedError(f"Dossier invalide: {folder}")
        path.mkdir(parents=True, exist_ok=True)
        return path

    def public_url(self, folder: str, filename: str) -> str:
        return f"{self.base_url}{UPLOADS_URL_PREFIX}/{folder}/{filename}"

    def save(self, upload: UploadFile, folder: str, prefix: Optional[str] = None) -> Optional[StoredFile]:
        """
        Écrit le fichier sur disque. Retourne None si le type MIME n'est pas accepté
        (le fichier est ignoré) ; lève UploadRejectedError au-delà de la taille maximale.
        """
        if not is_allowed_mime_type(upload.content_type):
            logger.info("Fichier ignoré (type %s non autorisé): %s", upload.content_type, upload.filename)
            return None

        filename = generate_filename(upload.filename, prefix)
        path = self.folder_path(folder) / filename

        size = 0
        with open(path, "wb") as buffer:
            while True:
                chunk = upload.file.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > self.max_file_size:
                    buffer.close()
                    path.unlink(missing_ok=True)
                    raise UploadRejectedError(
                        f"Fichier trop volumineux: {upload.filename}. Taille maximale: {self.max_file_size // (1024 * 1024)}MB"
                    )
                buffer.write(chunk)

        if self.optimize_images and upload.content_type.startswith("image/"):
            optimize_image(path)
            size = path.stat().st_size

        return StoredFile(
            original_name=upload.filename,
            filename=filename,
            folder=folder,
            path=path,
            url=self.public_url(folder, filename),
            size=size,
            content_type=upload.content_type,
        )

    def local_path_from_url(self, url: Optional[str]) -> Optional[Path]:
        """
        Chemin disque d'une URL locale (/uploads/... éventuellement préfixée par APP_BASE_URL),
        None pour un lien externe ou un chemin sortant du dossier d'upload.
        """
        if not url:
            return None
        if self.base_url and url.startswith(self.base_url):
            url = url[len(self.base_url):]
        if not url.startswith(UPLOADS_URL_PREFIX + "/"):
            return None
        relative = url[len(UPLOADS_URL_PREFIX) + 1:]
        path = (self.root / relative).resolve()
        if self.root not in path.parents:
            return None
        return path

    def delete_by_url(self, url: Optional[str]) -> bool:
        """Suppression best-effort : les erreurs sont journalisées, jamais levées"""
        path = self.local_path_from_url(url)
        if path is None:
            return False
        try:
            path.unlink()
            logger.info("Fichier supprimé: %s", path)
            return True
        except FileNotFoundError:
            logger.warning("Fichier déjà absent du disque: %s", path)
        except OSError as e:
            logger.error("Suppression impossible de %s: %s", path, e)
        return False

    def find_file(self, filename: str, folders: Iterable[str]) -> Optional[Path]:
        if sanitize_filename(filename) != filename:
            raise UploadRejectedError("Nom de fichier invalide")
        for folder in folders:
            candidate = self.root / folder / filename
            if candidate.is_file():
                return candidate
        return None

    def batch(self) -> "UploadBatch":
        return UploadBatch(self)


class UploadBatch:
    """
    Fichiers écrits pour une requête. Si le bloc échoue (transaction annulée,
    validation...), les fichiers déjà écrits sont supprimés.

        with storage.batch() as batch:
            uploaded = batch.save_all(files, folder)
            service.create(payload, uploaded)
    """

    def __init__(self, storage: UploadStorage):
        self.storage = storage
        self.stored: List[StoredFile] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.discard()
        return False

    def save(self, upload: UploadFile, folder: str, prefix: Optional[str] = None) -> Optional[StoredFile]:
        stored = self.storage.save(upload, folder, prefix)
        if stored is not None:
            self.stored.append(stored)
        return stored

    def save_all(self, uploads: Iterable[UploadFile], folder: str) -> Dict[str, StoredFile]:
        """Retourne les fichiers acceptés, indexés par nom d'origine"""
        saved = {}
        for upload in uploads:
            stored = self.save(upload, folder)
            if stored is not None:
                saved[stored.original_name] = stored
        return saved

    def discard(self):
        for stored in self.stored:
            try:
                stored.path.unlink(missing_ok=True)
            except OSError as e:
                logger.error("Nettoyage impossible de %s: %s", stored.path, e)
        if self.stored:
            logger.info("%d fichier(s) uploadé(s) supprimé(s) après échec", len(self.stored))
        self.stored = []


storage = UploadStorage.from_env()


def get_storage() -> UploadStorage:
    """Dépendance FastAPI (surchargée dans les tests)"""
    return storage
