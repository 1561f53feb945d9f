import math
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import ClassVar, Optional, List, Tuple, Union
from datetime import datetime

# Import centralisé des enums
from enums import (
    Role, TypeBien, TypeTransaction, StatutBien, StatutPapier, TypePieceJointe,
    Visibilite, Priorite, TypeIdentite, QualiteProprietaire, PrixType, PrixNature,
    PrixSource, PaiementVente, PaiementLocation, Chauffage, EtatVilla, TypeActivite,
    Transport
)
from constants import MIN_PASSWORD_LENGTH, MAX_PASSWORD_LENGTH


def parse_float(value):
    """
    '' / None -> None, '12,5' ou '12.5' -> 12.5, valeur illisible -> None.
    Infini et NaN ('1e999', 'nan') sont refusés (erreur de validation).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            raise ValueError(f"Nombre hors limites: {value}")
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if not math.isfinite(number):
        raise ValueError(f"Nombre hors limites: {value}")
    return number


def parse_int(value):
    number = parse_float(value)
    return None if number is None else int(number)


def blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CamelModel(BaseModel):
    """Base des schémas : camelCase sur le fil, snake_case côté Python"""
    model_config = {"alias_generator": to_camel, "populate_by_name": True, "from_attributes": True}


# ==================== UTILISATEURS ====================

class LoginRequest(CamelModel):
    email: str = Field(..., min_length=1, description="Adresse email")
    password: str = Field(..., min_length=1, description="Mot de passe")


class SignupRequest(CamelModel):
    email: EmailStr = Field(..., description="Adresse email")
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)
    nom: Optional[str] = Field(None, max_length=100)
    prenom: Optional[str] = Field(None, max_length=100)


class UserOut(CamelModel):
    id: int
    email: str
    nom: Optional[str] = None
    prenom: Optional[str] = None
    photo_profil: Optional[str] = None
    role: Role
    date_creation: Optional[datetime] = None


class TokenUser(CamelModel):
    """Identité extraite du JWT (aucun accès base)"""
    id: int
    email: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class AuthResponse(CamelModel):
    message: str
    token: str
    user: UserOut


class CollaborateurCreate(CamelModel):
    email: EmailStr = Field(..., description="Adresse email")
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)
    nom: str = Field(..., min_length=1, max_length=100)
    prenom: str = Field(..., min_length=1, max_length=100)


class CollaborateurUpdate(CamelModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)
    nom: Optional[str] = Field(None, max_length=100)
    prenom: Optional[str] = Field(None, max_length=100)


class CollaborateurOut(UserOut):
    nb_biens_crees: int = 0


class PasswordChange(CamelModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)


class MessageOut(BaseModel):
    message: str


# ==================== DEMANDES ====================

class DemandeCreate(CamelModel):
    prenom: str = Field(..., max_length=100)
    nom: str = Field(..., max_length=100)
    description: str

    @field_validator("prenom", "nom", "description")
    @classmethod
    def strip_required(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Ce champ est requis")
        return v


class DemandeOut(CamelModel):
    id: int
    prenom: str
    nom: str
    description: str
    date_demande: datetime


# ==================== PROPRIÉTAIRES ====================

class ProprietaireFields(CamelModel):
    nom: Optional[str] = Field(None, max_length=100)
    prenom: Optional[str] = Field(None, max_length=100)
    telephone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)
    adresse: Optional[str] = Field(None, max_length=500)
    type_identite: Optional[TypeIdentite] = None
    num_identite: Optional[str] = Field(None, max_length=100)
    qualite: Optional[QualiteProprietaire] = None
    prix_type: Optional[PrixType] = None
    prix_nature: Optional[PrixNature] = None
    prix_source: Optional[PrixSource] = None
    paiement_vente: Optional[PaiementVente] = None
    paiement_location: Optional[PaiementLocation] = None

    @field_validator(
        "type_identite", "qualite", "prix_type", "prix_nature", "prix_source",
        "paiement_vente", "paiement_location", mode="before"
    )
    @classmethod
    def empty_enum(cls, v):
        return blank_to_none(v)


class ProprietairePayload(ProprietaireFields):
    """
    Propriétaire dans le formulaire d'un bien :
    - isNewOwner=true : création avec les champs fournis
    - sinon : référence à un propriétaire existant (proprietaireId)
    - id : mise à jour du propriétaire existant (modification d'un bien)
    """
    is_new_owner: bool = False
    proprietaire_id: Optional[int] = None
    id: Optional[int] = None

    @field_validator("proprietaire_id", "id", mode="before")
    @classmethod
    def parse_ids(cls, v):
        return parse_int(v)

    @model_validator(mode="after")
    def check_new_owner(self):
        if self.is_new_owner and not (self.nom and self.nom.strip()):
            raise ValueError("Le nom du propriétaire est requis")
        return self

    def owner_fields(self) -> dict:
        return self.model_dump(include=set(ProprietaireFields.model_fields), exclude_unset=True)


class ProprietaireSummary(CamelModel):
    id: int
    nom: str
    prenom: Optional[str] = None
    telephone: Optional[str] = None


class ProprietaireOut(ProprietaireFields):
    id: int
    nom: str
    date_creation: Optional[datetime] = None


# ==================== FICHES TECHNIQUES ====================

class DetailBase(CamelModel):
    """Les champs numériques arrivent souvent en chaîne depuis le formulaire"""
    FLOAT_FIELDS: ClassVar[Tuple[str, ...]] = ()
    INT_FIELDS: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def coerce_numbers(cls, data):
        if not isinstance(data, dict):
            return data
        coerced = {}
        for key, value in data.items():
            name = cls._field_name(key)
            if name in cls.FLOAT_FIELDS:
                value = parse_float(value)
            elif name in cls.INT_FIELDS:
                value = parse_int(value)
            else:
                value = blank_to_none(value)
            coerced[key] = value
        return coerced

    @classmethod
    def _field_name(cls, key: str) -> str:
        for name, field in cls.model_fields.items():
            if key == name or key == field.alias:
                return name
        return key


class DetailAppartementIn(DetailBase):
    FLOAT_FIELDS = ("surface_total", "surface_salon", "surface_chambre", "surface_cuisine", "surface_sdb")
    INT_FIELDS = ("etage", "annee_construction")

    type_appart: Optional[str] = Field(None, max_length=50)
    surface_total: Optional[float] = None
    surface_salon: Optional[float] = None
    surface_chambre: Optional[float] = None
    surface_cuisine: Optional[float] = None
    surface_sdb: Optional[float] = Field(None, alias="surfaceSDB")
    etage: Optional[int] = None
    finition: Optional[str] = None
    annee_construction: Optional[int] = None
    ascenseur: Optional[bool] = None
    chauffage: Optional[Chauffage] = None
    climatisation: Optional[bool] = None
    cuisine_equipee: Optional[bool] = None
    meuble: Optional[bool] = None
    parking: Optional[bool] = None
    gardinage: Optional[bool] = None
    proximite_ecole: Optional[bool] = None
    proximite_transport: Optional[List[Transport]] = None
    proximite_plage: Optional[bool] = None
    proximite_aeroport: Optional[bool] = None


class DetailTerrainIn(DetailBase):
    FLOAT_FIELDS = ("surface", "longueur", "largeur")
    INT_FIELDS = ("facades",)

    surface: Optional[float] = None
    vocation: Optional[str] = None
    longueur: Optional[float] = None
    largeur: Optional[float] = None
    facades: Optional[int] = None
    viabilise: Optional[bool] = None
    statut_juridique: Optional[str] = None


class DetailVillaIn(DetailTerrainIn):
    FLOAT_FIELDS = ("surface", "longueur", "largeur", "surface_batie")
    INT_FIELDS = ("facades", "etages", "pieces")

    surface_batie: Optional[float] = None
    etages: Optional[int] = None
    pieces: Optional[int] = None
    etat: Optional[EtatVilla] = None
    composition: Optional[str] = None
    jardin: Optional[bool] = None
    garage: Optional[bool] = None
    piscine: Optional[bool] = None


class DetailLocalIn(DetailBase):
    FLOAT_FIELDS = ("surface", "hauteur")
    INT_FIELDS = ("facades",)

    surface: Optional[float] = None
    type_activite: Optional[TypeActivite] = None
    hauteur: Optional[float] = None
    facades: Optional[int] = None


class DetailImmeubleIn(DetailVillaIn):
    FLOAT_FIELDS = ("surface", "longueur", "largeur", "surface_batie", "surface_sol")
    INT_FIELDS = ("facades", "etages", "pieces", "nb_appartements")

    nb_appartements: Optional[int] = None
    surface_sol: Optional[float] = None


class DetailAppartementOut(DetailAppartementIn):
    id: int
    bien_id: int


class DetailTerrainOut(DetailTerrainIn):
    id: int
    bien_id: int


class DetailVillaOut(DetailVillaIn):
    id: int
    bien_id: int


class DetailLocalOut(DetailLocalIn):
    id: int
    bien_id: int


class DetailImmeubleOut(DetailImmeubleIn):
    id: int
    bien_id: int


# ==================== PAPIERS / PIÈCES JOINTES / SUIVI ====================

class PapierIn(CamelModel):
    # entier pour un papier enregistré, "temp-..." pour un papier ajouté côté client
    id: Optional[Union[int, str]] = None
    nom: str = Field(..., min_length=1, max_length=255)
    categorie: Optional[str] = Field(None, max_length=100)
    statut: Optional[StatutPapier] = None


class PapierOut(CamelModel):
    id: int
    nom: str
    categorie: Optional[str] = None
    statut: StatutPapier


class PieceJointeIn(CamelModel):
    id: Optional[Union[int, str]] = None
    type: TypePieceJointe = TypePieceJointe.DOCUMENT
    visibilite: Optional[Visibilite] = None
    nom: Optional[str] = Field(None, max_length=255)
    url: Optional[str] = Field(None, max_length=1000)
    categorie: Optional[str] = Field(None, max_length=255)


class PieceJointeOut(CamelModel):
    id: int
    type: TypePieceJointe
    visibilite: Visibilite
    nom: Optional[str] = None
    url: str
    categorie: Optional[str] = None
    date_creation: Optional[datetime] = None


class SuiviIn(CamelModel):
    est_visite: Optional[bool] = None
    priorite: Optional[Priorite] = None
    a_mandat: Optional[bool] = None
    url_google_sheet: Optional[str] = Field(None, max_length=1000)
    url_google_photos: Optional[str] = Field(None, max_length=1000)

    @field_validator("priorite", mode="before")
    @classmethod
    def empty_priorite(cls, v):
        return blank_to_none(v)


class SuiviOut(CamelModel):
    id: int
    est_visite: bool
    priorite: Priorite
    a_mandat: bool
    url_google_sheet: Optional[str] = None
    url_google_photos: Optional[str] = None


# ==================== BIENS ====================

class BienFields(CamelModel):
    description: Optional[str] = None
    statut: Optional[StatutBien] = None
    prix_vente: Optional[float] = None
    prix_location: Optional[float] = None
    adresse: Optional[str] = Field(None, max_length=500)
    archive: Optional[bool] = None

    @field_validator("prix_vente", "prix_location", mode="before")
    @classmethod
    def parse_prices(cls, v):
        return parse_float(v)

    @field_validator("statut", mode="before")
    @classmethod
    def empty_statut(cls, v):
        return blank_to_none(v)


class BienCreate(BienFields):
    titre: str = Field(..., min_length=1, max_length=255)
    type: TypeBien
    transaction: TypeTransaction


class BienUpdate(BienFields):
    titre: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[TypeBien] = None
    transaction: Optional[TypeTransaction] = None


class DetailPayloads(CamelModel):
    detail_appartement: Optional[DetailAppartementIn] = None
    detail_terrain: Optional[DetailTerrainIn] = None
    detail_villa: Optional[DetailVillaIn] = None
    detail_local: Optional[DetailLocalIn] = None
    detail_immeuble: Optional[DetailImmeubleIn] = None


class BienCreatePayload(DetailPayloads):
    """Contenu du champ multipart `data` à la création"""
    proprietaire: ProprietairePayload
    bien_immobilier: BienCreate
    papiers: List[PapierIn] = []
    pieces_jointes: List[PieceJointeIn] = []
    suivi: Optional[SuiviIn] = None


class BienUpdatePayload(DetailPayloads):
    """Contenu du champ multipart `data` à la modification"""
    proprietaire: Optional[ProprietairePayload] = None
    bien_immobilier: BienUpdate = Field(default_factory=BienUpdate)
    # None : checklist inchangée ; [] : tous les papiers sont retirés
    papiers: Optional[List[PapierIn]] = None
    files_to_delete: List[Union[int, str]] = []
    pieces_jointes: List[PieceJointeIn] = []
    suivi: Optional[SuiviIn] = None


class UtilisateurSummary(CamelModel):
    id: int
    email: str
    nom: Optional[str] = None
    prenom: Optional[str] = None


class BienBase(CamelModel):
    id: int
    titre: str
    description: Optional[str] = None
    type: TypeBien
    statut: StatutBien
    transaction: TypeTransaction
    prix_vente: Optional[float] = None
    prix_location: Optional[float] = None
    adresse: Optional[str] = None
    archive: bool
    deleted_at: Optional[datetime] = None
    date_creation: Optional[datetime] = None
    proprietaire_id: int
    created_by_id: Optional[int] = None
    detail_appartement: Optional[DetailAppartementOut] = None
    detail_terrain: Optional[DetailTerrainOut] = None
    detail_villa: Optional[DetailVillaOut] = None
    detail_local: Optional[DetailLocalOut] = None
    detail_immeuble: Optional[DetailImmeubleOut] = None
    suivi: Optional[SuiviOut] = None


class BienListItem(BienBase):
    proprietaire: Optional[ProprietaireSummary] = None
    photo_principale: Optional[PieceJointeOut] = None


class BienOut(BienBase):
    proprietaire: Optional[ProprietaireOut] = None
    createur: Optional[UtilisateurSummary] = None
    papiers: List[PapierOut] = []
    pieces_jointes: List[PieceJointeOut] = []


class BienList(BaseModel):
    data: List[BienListItem]
    count: int


class CollaborateurList(BaseModel):
    data: List[CollaborateurOut]
    count: int


class DemandeList(BaseModel):
    data: List[DemandeOut]
    count: int


# ==================== UPLOADS ====================

class UploadedFileOut(BaseModel):
    url: str
    filename: str
    originalname: str
    size: int
    mimetype: str


class UploadResult(BaseModel):
    message: str
    files: List[UploadedFileOut]
