"""
Mixins pour les modèles SQLAlchemy
Colonnes partagées entre les différentes fiches techniques des biens
"""
from sqlalchemy import Column, String, Float, Integer, Boolean, Enum, Text

from enums import EtatVilla


class ContactMixin:
    """
    Mixin pour les informations de contact
    """
    telephone = Column(String(50), nullable=True, comment="Numéro de téléphone")
    email = Column(String(255), nullable=True, comment="Adresse email")
    adresse = Column(String(500), nullable=True, comment="Adresse postale")

    @property
    def nom_complet(self) -> str:
        return " ".join(part for part in [self.prenom, self.nom] if part)


class TerrainMixin:
    """
    Caractéristiques d'une parcelle (terrain nu ou bâti)
    """
    surface = Column(Float, nullable=True, comment="Surface en m²")
    vocation = Column(String(255), nullable=True)
    longueur = Column(Float, nullable=True)
    largeur = Column(Float, nullable=True)
    facades = Column(Integer, nullable=True)
    viabilise = Column(Boolean, default=False)
    statut_juridique = Column(String(255), nullable=True)


class ConstructionMixin(TerrainMixin):
    """
    Parcelle bâtie : villa ou immeuble
    """
    surface_batie = Column(Float, nullable=True)
    etages = Column(Integer, nullable=True)
    pieces = Column(Integer, nullable=True)
    etat = Column(Enum(EtatVilla), nullable=True)
    composition = Column(Text, nullable=True)
    jardin = Column(Boolean, default=False)
    garage = Column(Boolean, default=False)
    piscine = Column(Boolean, default=False)
