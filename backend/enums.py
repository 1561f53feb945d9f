"""
Enums partagés pour l'application GestImmo
Centralisation de toutes les énumérations pour éviter la duplication
"""
import enum


class Role(str, enum.Enum):
    """Rôles des utilisateurs de l'agence"""
    ADMIN = "ADMIN"
    COLLABORATEUR = "COLLABORATEUR"


class TypeBien(str, enum.Enum):
    """Types de biens immobiliers"""
    APPARTEMENT = "APPARTEMENT"
    TERRAIN = "TERRAIN"
    VILLA = "VILLA"
    LOCAL = "LOCAL"
    IMMEUBLE = "IMMEUBLE"


class TypeTransaction(str, enum.Enum):
    VENTE = "VENTE"
    LOCATION = "LOCATION"


class StatutBien(str, enum.Enum):
    DISPONIBLE = "DISPONIBLE"
    VENDU = "VENDU"
    LOUE = "LOUE"


class StatutPapier(str, enum.Enum):
    """Présence d'un document juridique (pas le fichier lui-même)"""
    DISPONIBLE = "DISPONIBLE"
    MANQUANT = "MANQUANT"
    EN_COURS = "EN_COURS"


class TypePieceJointe(str, enum.Enum):
    DOCUMENT = "DOCUMENT"
    PHOTO = "PHOTO"
    LOCALISATION = "LOCALISATION"  # lien externe (carte)


class Visibilite(str, enum.Enum):
    PUBLIABLE = "PUBLIABLE"
    INTERNE = "INTERNE"


class Priorite(str, enum.Enum):
    TRES_IMPORTANT = "TRES_IMPORTANT"
    IMPORTANT = "IMPORTANT"
    NORMAL = "NORMAL"


# ==================== PROPRIÉTAIRE ====================

class TypeIdentite(str, enum.Enum):
    CNI = "CNI"  # Carte nationale d'identité
    PC = "PC"    # Permis de conduire
    PP = "PP"    # Passeport


class QualiteProprietaire(str, enum.Enum):
    PROPRIETAIRE = "PROPRIETAIRE"
    HERITIER = "HERITIER"
    PROCUREUR = "PROCUREUR"


class PrixType(str, enum.Enum):
    DEMANDE = "DEMANDE"
    OFFERT = "OFFERT"


class PrixNature(str, enum.Enum):
    FERME = "FERME"
    FIXE = "FIXE"
    NEGOCIABLE = "NEGOCIABLE"


class PrixSource(str, enum.Enum):
    A_MON_NIVEAU = "A_MON_NIVEAU"
    AILLEURS = "AILLEURS"


class PaiementVente(str, enum.Enum):
    CREDIT = "CREDIT"
    CACHE = "CACHE"


class PaiementLocation(str, enum.Enum):
    ANNUEL = "ANNUEL"
    SEMESTRIEL = "SEMESTRIEL"
    JOURNALIER = "JOURNALIER"


# ==================== DÉTAILS PAR TYPE ====================

class Chauffage(str, enum.Enum):
    CENTRAL = "CENTRAL"
    BAINS = "BAINS"
    AUTRE = "AUTRE"


class EtatVilla(str, enum.Enum):
    RECENTE = "RECENTE"
    A_DEMOLIR = "A_DEMOLIR"
    A_REFAIRE = "A_REFAIRE"


class TypeActivite(str, enum.Enum):
    BUREAU = "BUREAU"
    OPEN_SPACE = "OPEN_SPACE"
    RDC = "RDC"
    AUTRE = "AUTRE"


class Transport(str, enum.Enum):
    BUS = "BUS"
    TRAMWAY = "TRAMWAY"
    METRO = "METRO"
    TRAIN = "TRAIN"


# ==================== AUDIT ====================

class ActionType(str, enum.Enum):
    """Types d'actions pour l'audit logging"""
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESTORE = "RESTORE"
    PURGE = "PURGE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    ACCESS_DENIED = "ACCESS_DENIED"
    ERROR = "ERROR"


class EntityType(str, enum.Enum):
    """Types d'entités dans l'application"""
    USER = "USER"
    SESSION = "SESSION"
    BIEN = "BIEN"
    PROPRIETAIRE = "PROPRIETAIRE"
    PIECE_JOINTE = "PIECE_JOINTE"
    DEMANDE = "DEMANDE"
    UPLOAD = "UPLOAD"
