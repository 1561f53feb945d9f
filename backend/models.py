from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Enum, DateTime, Text, Float, JSON, Index
from sqlalchemy.orm import relationship
from database import Base
import datetime

# Import centralisé des enums
from enums import (
    Role, TypeBien, TypeTransaction, StatutBien, StatutPapier, TypePieceJointe,
    Visibilite, Priorite, TypeIdentite, QualiteProprietaire, PrixType, PrixNature,
    PrixSource, PaiementVente, PaiementLocation, Chauffage, TypeActivite,
    ActionType, EntityType
)
from model_mixins import ContactMixin, TerrainMixin, ConstructionMixin


class Utilisateur(Base):
    __tablename__ = "utilisateurs"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    mot_de_passe = Column(String(255), nullable=False)  # hash bcrypt
    nom = Column(String(100), nullable=True)
    prenom = Column(String(100), nullable=True)
    photo_profil = Column(String(500), nullable=True)
    role = Column(Enum(Role), default=Role.COLLABORATEUR, nullable=False)
    date_creation = Column(DateTime, default=datetime.datetime.utcnow)

    # Sans cascade : à la suppression, created_by_id des biens passe à NULL
    biens_crees = relationship("BienImmobilier", back_populates="createur")


class Proprietaire(ContactMixin, Base):
    __tablename__ = "proprietaires"

    id = Column(Integer, primary_key=True, index=True)
    nom = Column(String(100), nullable=False)
    prenom = Column(String(100), nullable=True)
    type_identite = Column(Enum(TypeIdentite), nullable=True)
    num_identite = Column(String(100), nullable=True)
    qualite = Column(Enum(QualiteProprietaire), nullable=True)
    prix_type = Column(Enum(PrixType), nullable=True)
    prix_nature = Column(Enum(PrixNature), nullable=True)
    prix_source = Column(Enum(PrixSource), nullable=True)
    paiement_vente = Column(Enum(PaiementVente), nullable=True)
    paiement_location = Column(Enum(PaiementLocation), nullable=True)
    date_creation = Column(DateTime, default=datetime.datetime.utcnow)

    # Un propriétaire survit toujours à la suppression de ses biens
    biens = relationship("BienImmobilier", back_populates="proprietaire")


class BienImmobilier(Base):
    __tablename__ = "biens_immobiliers"

    id = Column(Integer, primary_key=True, index=True)
    titre = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(Enum(TypeBien), nullable=False)
    statut = Column(Enum(StatutBien), default=StatutBien.DISPONIBLE, nullable=False)
    transaction = Column(Enum(TypeTransaction), nullable=False)
    prix_vente = Column(Float, nullable=True)
    prix_location = Column(Float, nullable=True)
    adresse = Column(String(500), nullable=True)
    archive = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True, index=True)  # corbeille
    date_creation = Column(DateTime, default=datetime.datetime.utcnow, index=True)
    proprietaire_id = Column(Integer, ForeignKey("proprietaires.id"), nullable=False)
    created_by_id = Column(Integer, ForeignKey("utilisateurs.id", ondelete="SET NULL"), nullable=True)

    proprietaire = relationship("Proprietaire", back_populates="biens")
    createur = relationship("Utilisateur", back_populates="biens_crees")

    # Fiches techniques : une seule renseignée, celle du type du bien
    detail_appartement = relationship("DetailAppartement", back_populates="bien", uselist=False, cascade="all, delete-orphan")
    detail_terrain = relationship("DetailTerrain", back_populates="bien", uselist=False, cascade="all, delete-orphan")
    detail_villa = relationship("DetailVilla", back_populates="bien", uselist=False, cascade="all, delete-orphan")
    detail_local = relationship("DetailLocal", back_populates="bien", uselist=False, cascade="all, delete-orphan")
    detail_immeuble = relationship("DetailImmeuble", back_populates="bien", uselist=False, cascade="all, delete-orphan")

    papiers = relationship("Papier", back_populates="bien", cascade="all, delete-orphan", order_by="Papier.id")
    pieces_jointes = relationship("PieceJointe", back_populates="bien", cascade="all, delete-orphan", order_by="PieceJointe.id")
    suivi = relationship("Suivi", back_populates="bien", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_bien_corbeille_archive", "deleted_at", "archive"),
    )

    @property
    def photo_principale(self):
        """Première photo publiable, utilisée comme vignette dans les listes"""
        for piece in self.pieces_jointes:
            if piece.type == TypePieceJointe.PHOTO and piece.visibilite == Visibilite.PUBLIABLE:
                return piece
        return None


class DetailAppartement(Base):
    __tablename__ = "details_appartement"

    id = Column(Integer, primary_key=True, index=True)
    bien_id = Column(Integer, ForeignKey("biens_immobiliers.id", ondelete="CASCADE"), unique=True, nullable=False)
    type_appart = Column(String(50), nullable=True)  # F2, F3, studio...
    surface_total = Column(Float, nullable=True)
    surface_salon = Column(Float, nullable=True)
    surface_chambre = Column(Float, nullable=True)
    surface_cuisine = Column(Float, nullable=True)
    surface_sdb = Column(Float, nullable=True)
    etage = Column(Integer, nullable=True)
    finition = Column(String(255), nullable=True)
    annee_construction = Column(Integer, nullable=True)
    ascenseur = Column(Boolean, default=False)
    chauffage = Column(Enum(Chauffage), nullable=True)
    climatisation = Column(Boolean, default=False)
    cuisine_equipee = Column(Boolean, default=False)
    meuble = Column(Boolean, default=False)
    parking = Column(Boolean, default=False)
    gardinage = Column(Boolean, default=False)
    proximite_ecole = Column(Boolean, default=False)
    proximite_transport = Column(JSON, nullable=True)  # liste de Transport
    proximite_plage = Column(Boolean, default=False)
    proximite_aeroport = Column(Boolean, default=False)

    bien = relationship("BienImmobilier", back_populates="detail_appartement")


class DetailTerrain(TerrainMixin, Base):
    __tablename__ = "details_terrain"

    id = Column(Integer, primary_key=True, index=True)
    bien_id = Column(Integer, ForeignKey("biens_immobiliers.id", ondelete="CASCADE"), unique=True, nullable=False)

    bien = relationship("BienImmobilier", back_populates="detail_terrain")


class DetailVilla(ConstructionMixin, Base):
    __tablename__ = "details_villa"

    id = Column(Integer, primary_key=True, index=True)
    bien_id = Column(Integer, ForeignKey("biens_immobiliers.id", ondelete="CASCADE"), unique=True, nullable=False)

    bien = relationship("BienImmobilier", back_populates="detail_villa")


class DetailLocal(Base):
    __tablename__ = "details_local"

    id = Column(Integer, primary_key=True, index=True)
    bien_id = Column(Integer, ForeignKey("biens_immobiliers.id", ondelete="CASCADE"), unique=True, nullable=False)
    surface = Column(Float, nullable=True)
    type_activite = Column(Enum(TypeActivite), nullable=True)
    hauteur = Column(Float, nullable=True)
    facades = Column(Integer, nullable=True)

    bien = relationship("BienImmobilier", back_populates="detail_local")


class DetailImmeuble(ConstructionMixin, Base):
    __tablename__ = "details_immeuble"

    id = Column(Integer, primary_key=True, index=True)
    bien_id = Column(Integer, ForeignKey("biens_immobiliers.id", ondelete="CASCADE"), unique=True, nullable=False)
    nb_appartements = Column(Integer, nullable=True)
    surface_sol = Column(Float, nullable=True)

    bien = relationship("BienImmobilier", back_populates="detail_immeuble")


class Papier(Base):
    """Élément de la checklist juridique d'un bien"""
    __tablename__ = "papiers"

    id = Column(Integer, primary_key=True, index=True)
    bien_id = Column(Integer, ForeignKey("biens_immobiliers.id", ondelete="CASCADE"), nullable=False, index=True)
    nom = Column(String(255), nullable=False)
    categorie = Column(String(100), nullable=True)
    statut = Column(Enum(StatutPapier), default=StatutPapier.MANQUANT, nullable=False)

    bien = relationship("BienImmobilier", back_populates="papiers")


class PieceJointe(Base):
    __tablename__ = "pieces_jointes"

    id = Column(Integer, primary_key=True, index=True)
    bien_id = Column(Integer, ForeignKey("biens_immobiliers.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(TypePieceJointe), nullable=False)
    visibilite = Column(Enum(Visibilite), default=Visibilite.INTERNE, nullable=False)
    nom = Column(String(255), nullable=True)
    url = Column(String(1000), nullable=False)  # /uploads/... ou lien externe
    categorie = Column(String(255), nullable=True)  # nom du papier associé
    date_creation = Column(DateTime, default=datetime.datetime.utcnow)

    bien = relationship("BienImmobilier", back_populates="pieces_jointes")


class Suivi(Base):
    __tablename__ = "suivis"

    id = Column(Integer, primary_key=True, index=True)
    bien_id = Column(Integer, ForeignKey("biens_immobiliers.id", ondelete="CASCADE"), unique=True, nullable=False)
    est_visite = Column(Boolean, default=False, nullable=False)
    priorite = Column(Enum(Priorite), default=Priorite.NORMAL, nullable=False)
    a_mandat = Column(Boolean, default=False, nullable=False)
    url_google_sheet = Column(String(1000), nullable=True)
    url_google_photos = Column(String(1000), nullable=True)

    bien = relationship("BienImmobilier", back_populates="suivi")


class Demande(Base):
    """Demande d'un client enregistrée par l'agence"""
    __tablename__ = "demandes"

    id = Column(Integer, primary_key=True, index=True)
    prenom = Column(String(100), nullable=False)
    nom = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    date_demande = Column(DateTime, default=datetime.datetime.utcnow, index=True)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)  # pas de FK : l'historique survit à l'utilisateur
    action = Column(Enum(ActionType))  # Type d'action effectuée
    entity_type = Column(Enum(EntityType))  # Type d'entité concernée
    entity_id = Column(Integer, nullable=True)  # ID de l'entité concernée
    description = Column(String(500))  # Description de l'action
    details = Column(Text, nullable=True)  # Détails JSON de l'action (données avant/après)
    ip_address = Column(String(50), nullable=True)  # Adresse IP
    user_agent = Column(String(500), nullable=True)  # Navigateur/device
    endpoint = Column(String(200), nullable=True)  # Endpoint API appelé
    method = Column(String(10), nullable=True)  # GET, POST, PUT, DELETE
    status_code = Column(Integer, nullable=True)  # Code de réponse HTTP
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
