"""
Corbeille des biens : suppression logique, restauration, purge définitive

ACTIF -> (suppression) -> CORBEILLE -> (restauration) -> ACTIF
CORBEILLE -> (purge manuelle ou délai de rétention dépassé) -> supprimé
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from constants import TRASH_RETENTION_DAYS
from database import transaction
from error_handlers import PropertyNotFoundError, PropertyNotInTrashError
from models import BienImmobilier
from services.property_service import FULL_LOAD_OPTIONS
from upload_service import UploadStorage

logger = logging.getLogger(__name__)


class TrashService:

    def __init__(self, db: Session, storage: UploadStorage):
        self.db = db
        self.storage = storage

    def _get_or_404(self, bien_id: int) -> BienImmobilier:
        bien = self.db.query(BienImmobilier).filter(BienImmobilier.id == bien_id).first()
        if bien is None:
            raise PropertyNotFoundError(bien_id)
        return bien

    def list_trash(self) -> List[BienImmobilier]:
        return self.db.query(BienImmobilier).options(*FULL_LOAD_OPTIONS).filter(
            BienImmobilier.deleted_at.isnot(None)
        ).order_by(BienImmobilier.deleted_at.desc()).all()

    def soft_delete(self, bien_id: int) -> BienImmobilier:
        """Les fichiers restent sur disque tant que le bien est restaurable"""
        bien = self._get_or_404(bien_id)
        with transaction(self.db):
            bien.deleted_at = datetime.utcnow()
        return bien

    def restore(self, bien_id: int) -> BienImmobilier:
        bien = self._get_or_404(bien_id)
        if bien.deleted_at is None:
            raise PropertyNotInTrashError(bien_id)
        with transaction(self.db):
            bien.deleted_at = None
        return bien

    def permanently_delete(self, bien_id: int) -> int:
        bien = self._get_or_404(bien_id)
        return self._purge(bien)

    def _purge(self, bien: BienImmobilier) -> int:
        """
        Supprime les fichiers locaux (best-effort) puis la ligne du bien ;
        fiches, papiers, pièces jointes et suivi suivent par cascade.
        Retourne le nombre de fichiers effacés.
        """
        bien_id = bien.id
        removed = 0
        for piece in list(bien.pieces_jointes):
            if self.storage.delete_by_url(piece.url):
                removed += 1
        with transaction(self.db):
            self.db.delete(bien)
        logger.info("Bien %s supprimé définitivement (%d fichier(s) effacé(s))", bien_id, removed)
        return removed

    def purge_expired(self, now: Optional[datetime] = None, retention_days: int = TRASH_RETENTION_DAYS) -> int:
        """
        Purge les biens en corbeille depuis plus de `retention_days` jours.
        Un échec sur un bien est journalisé et n'empêche pas de traiter les suivants.
        Retourne le nombre de biens supprimés.
        """
        cutoff = (now or datetime.utcnow()) - timedelta(days=retention_days)
        expired = self.db.query(BienImmobilier).options(
            selectinload(BienImmobilier.pieces_jointes)
        ).filter(
            BienImmobilier.deleted_at.isnot(None),
            BienImmobilier.deleted_at < cutoff
        ).all()

        if not expired:
            logger.info("Corbeille: aucun bien à purger (avant le %s)", cutoff.isoformat())
            return 0

        purged = 0
        for bien in expired:
            bien_id = bien.id
            try:
                self._purge(bien)
                purged += 1
            except Exception:
                logger.exception("Corbeille: échec de la purge du bien %s", bien_id)

        logger.info("Corbeille: %d/%d bien(s) purgé(s)", purged, len(expired))
        return purged
