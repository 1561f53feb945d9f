"""
Service métier des biens immobiliers

Création et modification d'un bien complet (propriétaire, bien, fiche technique,
papiers, pièces jointes, suivi) dans une seule transaction.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Type

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from database import Base, transaction
from enums import TypeBien, Visibilite, StatutPapier
from error_handlers import (
    OwnerNotFoundError, PropertyNotFoundError, ArchiveChangeForbiddenError,
    ArchivedPropertyAccessError
)
from models import (
    BienImmobilier, Proprietaire, DetailAppartement, DetailTerrain, DetailVilla,
    DetailLocal, DetailImmeuble, Papier, PieceJointe, Suivi
)
from schemas import (
    TokenUser, BienCreatePayload, BienUpdatePayload, DetailPayloads, ProprietairePayload,
    PapierIn, PieceJointeIn, SuiviIn
)
from services.checklist import reconcile_papiers, persisted_id
from upload_service import StoredFile, UploadStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetailVariant:
    """Fiche technique associée à un type de bien"""
    model: Type[Base]
    relation: str  # attribut sur BienImmobilier et clé du payload
    creation_key: Optional[str] = None  # champ requis pour créer la fiche lors d'une modification


DETAIL_VARIANTS: Dict[TypeBien, DetailVariant] = {
    TypeBien.APPARTEMENT: DetailVariant(DetailAppartement, "detail_appartement"),
    TypeBien.TERRAIN: DetailVariant(DetailTerrain, "detail_terrain", "surface"),
    TypeBien.VILLA: DetailVariant(DetailVilla, "detail_villa", "surface"),
    TypeBien.LOCAL: DetailVariant(DetailLocal, "detail_local", "surface"),
    TypeBien.IMMEUBLE: DetailVariant(DetailImmeuble, "detail_immeuble", "surface"),
}

# Colonnes NOT NULL : une valeur null dans le payload est ignorée
REQUIRED_BIEN_FIELDS = {"titre", "type", "transaction", "statut"}
REQUIRED_SUIVI_FIELDS = {"est_visite", "priorite", "a_mandat"}

FULL_LOAD_OPTIONS = (
    selectinload(BienImmobilier.proprietaire),
    selectinload(BienImmobilier.createur),
    selectinload(BienImmobilier.detail_appartement),
    selectinload(BienImmobilier.detail_terrain),
    selectinload(BienImmobilier.detail_villa),
    selectinload(BienImmobilier.detail_local),
    selectinload(BienImmobilier.detail_immeuble),
    selectinload(BienImmobilier.papiers),
    selectinload(BienImmobilier.pieces_jointes),
    selectinload(BienImmobilier.suivi),
)


class PropertyService:
    """Service des biens, construit par requête avec sa session"""

    def __init__(self, db: Session, storage: UploadStorage):
        self.db = db
        self.storage = storage

    # ==================== LECTURE ====================

    def list_biens(
        self,
        current_user: TokenUser,
        statut=None,
        transaction_type=None,
        type_bien=None,
        search: Optional[str] = None
    ) -> List[BienImmobilier]:
        """Biens hors corbeille, sans les archives pour les collaborateurs, plus récents d'abord"""
        query = self.db.query(BienImmobilier).options(*FULL_LOAD_OPTIONS).filter(
            BienImmobilier.deleted_at.is_(None)
        )
        if not current_user.is_admin:
            query = query.filter(BienImmobilier.archive.is_(False))
        if statut:
            query = query.filter(BienImmobilier.statut == statut)
        if transaction_type:
            query = query.filter(BienImmobilier.transaction == transaction_type)
        if type_bien:
            query = query.filter(BienImmobilier.type == type_bien)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.outerjoin(BienImmobilier.proprietaire).filter(or_(
                BienImmobilier.titre.ilike(pattern),
                BienImmobilier.description.ilike(pattern),
                BienImmobilier.adresse.ilike(pattern),
                Proprietaire.nom.ilike(pattern),
                Proprietaire.prenom.ilike(pattern),
                Proprietaire.telephone.ilike(pattern),
            ))
        return query.order_by(BienImmobilier.date_creation.desc(), BienImmobilier.id.desc()).all()

    def load(self, bien_id: int) -> Optional[BienImmobilier]:
        return self.db.query(BienImmobilier).options(*FULL_LOAD_OPTIONS).filter(
            BienImmobilier.id == bien_id
        ).first()

    def get_bien(self, bien_id: int, current_user: TokenUser) -> BienImmobilier:
        bien = self.load(bien_id)
        if bien is None:
            raise PropertyNotFoundError(bien_id)
        if not current_user.is_admin:
            # La corbeille n'est visible que des administrateurs
            if bien.deleted_at is not None:
                raise PropertyNotFoundError(bien_id)
            if bien.archive:
                raise ArchivedPropertyAccessError(bien_id)
        return bien

    # ==================== CRÉATION ====================

    def create_bien(
        self,
        payload: BienCreatePayload,
        uploaded: Dict[str, StoredFile],
        current_user: TokenUser
    ) -> BienImmobilier:
        """
        Crée le bien complet. Toute erreur annule l'ensemble des écritures ;
        le nettoyage des fichiers incombe à l'UploadBatch de l'appelant.
        """
        with transaction(self.db):
            proprietaire = self._resolve_owner(payload.proprietaire)

            fields = payload.bien_immobilier.model_dump(exclude_none=True)
            if not current_user.is_admin:
                fields.pop("archive", None)
            bien = BienImmobilier(**fields, proprietaire=proprietaire, created_by_id=current_user.id)
            self.db.add(bien)

            self._create_detail(bien, payload)

            for papier in payload.papiers:
                bien.papiers.append(self._new_papier(bien, papier))

            for descriptor in payload.pieces_jointes:
                piece = self._new_piece_jointe(descriptor, uploaded)
                if piece is not None:
                    bien.pieces_jointes.append(piece)

            if payload.suivi is not None:
                bien.suivi = Suivi(**payload.suivi.model_dump(exclude_none=True))

            self.db.flush()
            bien_id = bien.id

        logger.info("Bien %s créé par l'utilisateur %s", bien_id, current_user.id)
        self.db.expire_all()
        return self.load(bien_id)

    def _resolve_owner(self, owner: ProprietairePayload) -> Proprietaire:
        if owner.is_new_owner:
            proprietaire = Proprietaire(**owner.owner_fields())
            self.db.add(proprietaire)
            return proprietaire

        proprietaire = None
        if owner.proprietaire_id is not None:
            proprietaire = self.db.query(Proprietaire).filter(Proprietaire.id == owner.proprietaire_id).first()
        if proprietaire is None:
            raise OwnerNotFoundError(owner.proprietaire_id)
        return proprietaire

    def _create_detail(self, bien: BienImmobilier, payload: DetailPayloads):
        variant = DETAIL_VARIANTS[bien.type]
        detail = getattr(payload, variant.relation)
        if detail is None:
            return
        setattr(bien, variant.relation, variant.model(**detail.model_dump(exclude_none=True)))

    @staticmethod
    def _new_papier(bien: BienImmobilier, papier: PapierIn) -> Papier:
        return Papier(
            nom=papier.nom,
            categorie=papier.categorie or bien.type.value,
            statut=papier.statut or StatutPapier.MANQUANT,
        )

    @staticmethod
    def _new_piece_jointe(descriptor: PieceJointeIn, uploaded: Dict[str, StoredFile]) -> Optional[PieceJointe]:
        """Fichier uploadé portant ce nom, sinon lien externe ; rien si aucun des deux"""
        stored = uploaded.get(descriptor.nom) if descriptor.nom else None
        if stored is not None:
            url = stored.url
        elif descriptor.url:
            url = descriptor.url
        else:
            return None
        return PieceJointe(
            type=descriptor.type,
            visibilite=descriptor.visibilite or Visibilite.INTERNE,
            nom=descriptor.nom,
            url=url,
            categorie=descriptor.categorie,
        )

    # ==================== MODIFICATION ====================

    def update_bien(
        self,
        bien_id: int,
        payload: BienUpdatePayload,
        uploaded: Dict[str, StoredFile],
        current_user: TokenUser
    ) -> BienImmobilier:
        bien = self.load(bien_id)
        if bien is None:
            raise PropertyNotFoundError(bien_id)

        requested_archive = payload.bien_immobilier.archive
        if (
            not current_user.is_admin
            and requested_archive is not None
            and requested_archive != bien.archive
        ):
            raise ArchiveChangeForbiddenError()

        with transaction(self.db):
            previous_type = bien.type
            self._update_core(bien, payload, current_user)
            if bien.type != previous_type:
                self._drop_detail(bien, previous_type)
            self._update_owner(bien, payload.proprietaire)
            self._upsert_detail(bien, payload)
            if payload.papiers is not None:
                self._reconcile_papiers(bien, payload.papiers)
            urls_to_remove = self._delete_pieces_jointes(bien, payload.files_to_delete)
            self._sync_pieces_jointes(bien, payload.pieces_jointes, uploaded)
            if payload.suivi is not None:
                self._upsert_suivi(bien, payload.suivi)

        # Fichiers supprimés du disque seulement une fois la transaction validée
        for url in urls_to_remove:
            self.storage.delete_by_url(url)

        logger.info("Bien %s modifié par l'utilisateur %s", bien_id, current_user.id)
        self.db.expire_all()
        return self.load(bien_id)

    def _update_core(self, bien: BienImmobilier, payload: BienUpdatePayload, current_user: TokenUser):
        fields = payload.bien_immobilier.model_dump(exclude_unset=True, exclude={"archive"})
        for key, value in fields.items():
            if value is None and key in REQUIRED_BIEN_FIELDS:
                continue
            setattr(bien, key, value)
        if current_user.is_admin and payload.bien_immobilier.archive is not None:
            bien.archive = payload.bien_immobilier.archive

    def _update_owner(self, bien: BienImmobilier, owner: Optional[ProprietairePayload]):
        if owner is None:
            return

        if owner.is_new_owner:
            bien.proprietaire = Proprietaire(**owner.owner_fields())
            return

        if owner.proprietaire_id is not None and owner.proprietaire_id != bien.proprietaire_id:
            bien.proprietaire = self._resolve_owner(owner)

        if owner.id is not None:
            proprietaire = self.db.query(Proprietaire).filter(Proprietaire.id == owner.id).first()
            if proprietaire is None:
                raise OwnerNotFoundError(owner.id)
            for key, value in owner.owner_fields().items():
                if key == "nom" and not value:
                    continue
                setattr(proprietaire, key, value)

    @staticmethod
    def _drop_detail(bien: BienImmobilier, previous_type: TypeBien):
        """Changement de type : l'ancienne fiche est supprimée (delete-orphan)"""
        relation = DETAIL_VARIANTS[previous_type].relation
        if getattr(bien, relation) is not None:
            logger.info("Bien %s: fiche %s supprimée (type %s -> %s)",
                        bien.id, relation, previous_type.value, bien.type.value)
            setattr(bien, relation, None)

    def _upsert_detail(self, bien: BienImmobilier, payload: DetailPayloads):
        """
        Création si la fiche n'existe pas, sinon mise à jour des seules valeurs non nulles.
        Sans surface, les fiches terrain/villa/local/immeuble ne sont pas créées.
        """
        variant = DETAIL_VARIANTS[bien.type]
        detail = getattr(payload, variant.relation)
        if detail is None:
            return

        values = detail.model_dump(exclude_none=True)
        existing = getattr(bien, variant.relation)
        if existing is None:
            if variant.creation_key and values.get(variant.creation_key) is None:
                logger.info("Fiche %s absente et sans %s pour le bien %s: ignorée",
                            variant.relation, variant.creation_key, bien.id)
                return
            setattr(bien, variant.relation, variant.model(**values))
            return

        for key, value in values.items():
            setattr(existing, key, value)

    def _reconcile_papiers(self, bien: BienImmobilier, incoming: List[PapierIn]):
        diff = reconcile_papiers(list(bien.papiers), incoming)
        for papier in diff.to_delete:
            bien.papiers.remove(papier)
        for papier, wanted in diff.to_update:
            papier.nom = wanted.nom
            if "categorie" in wanted.model_fields_set:
                papier.categorie = wanted.categorie or bien.type.value
            if wanted.statut is not None:
                papier.statut = wanted.statut
        for wanted in diff.to_create:
            bien.papiers.append(self._new_papier(bien, wanted))

    def _delete_pieces_jointes(self, bien: BienImmobilier, files_to_delete) -> List[str]:
        """Supprime les lignes demandées et retourne les URLs des fichiers à effacer après commit"""
        urls = []
        for raw_id in files_to_delete:
            piece_id = persisted_id(raw_id)
            if piece_id is None:
                logger.warning("Identifiant de fichier invalide ignoré: %r", raw_id)
                continue
            piece = next((p for p in bien.pieces_jointes if p.id == piece_id), None)
            if piece is None:
                logger.warning("Pièce jointe %s introuvable pour le bien %s", piece_id, bien.id)
                continue
            urls.append(piece.url)
            bien.pieces_jointes.remove(piece)
        return urls

    def _sync_pieces_jointes(self, bien: BienImmobilier, descriptors: List[PieceJointeIn],
                             uploaded: Dict[str, StoredFile]):
        for descriptor in descriptors:
            if descriptor.nom and descriptor.nom in uploaded:
                bien.pieces_jointes.append(self._new_piece_jointe(descriptor, uploaded))
                continue

            piece_id = persisted_id(descriptor.id)
            if piece_id is None:
                # Nouveau lien externe (localisation...)
                if descriptor.url:
                    bien.pieces_jointes.append(self._new_piece_jointe(descriptor, uploaded))
                continue

            piece = next((p for p in bien.pieces_jointes if p.id == piece_id), None)
            if piece is None:
                logger.warning("Pièce jointe %s introuvable pour le bien %s", piece_id, bien.id)
                continue
            if descriptor.visibilite is not None:
                piece.visibilite = descriptor.visibilite
            if "categorie" in descriptor.model_fields_set:
                piece.categorie = descriptor.categorie

    @staticmethod
    def _upsert_suivi(bien: BienImmobilier, suivi: SuiviIn):
        values = {
            key: value for key, value in suivi.model_dump(exclude_unset=True).items()
            if value is not None or key not in REQUIRED_SUIVI_FIELDS
        }
        if bien.suivi is None:
            bien.suivi = Suivi(**values)
            return
        for key, value in values.items():
            setattr(bien.suivi, key, value)
