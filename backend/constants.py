"""
Constantes centralisées pour l'application GestImmo
Standardisation des valeurs et conventions utilisées dans l'application
"""

# ==================== CONFIGURATION GÉNÉRALE ====================

APP_NAME = "GestImmo"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Gestion des annonces immobilières (biens, propriétaires, collaborateurs)"

# ==================== CONFIGURATION DE SÉCURITÉ ====================

# JWT
ACCESS_TOKEN_EXPIRE_DAYS = 7
JWT_ALGORITHM = "HS256"

# Mots de passe
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128

# Rate limiting
RATE_LIMITS = {
    "login": {"requests": 10, "window": 300},     # 10 tentatives par 5 minutes
    "signup": {"requests": 5, "window": 3600},    # 5 tentatives par heure
}

# ==================== CONFIGURATION DE FICHIERS ====================

# Upload
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
MAX_DOCUMENTS_PER_REQUEST = 20
MAX_PHOTOS_PER_REQUEST = 30
MAX_TEMP_FILES_PER_REQUEST = 50
ALLOWED_DOCUMENT_TYPES = {"application/pdf"}
# Word / OpenXML : les types MIME varient selon le navigateur
DOCUMENT_MIME_KEYWORDS = ("word", "officedocument")

# Dossiers (sous UPLOAD_DIR)
DEFAULT_UPLOAD_FOLDER = "AUTRE"
TEMP_UPLOAD_FOLDER = "TEMP"
PROFILE_UPLOAD_FOLDER = "PROFILES"
UPLOADS_URL_PREFIX = "/uploads"

# Optimisation des images
IMAGE_MAX_DIMENSIONS = (1920, 1920)
IMAGE_QUALITY = 80
OPTIMIZABLE_IMAGE_FORMATS = {"JPEG", "PNG", "WEBP"}

# ==================== RÈGLES MÉTIER ====================

# Identifiants générés côté client pour les papiers pas encore enregistrés
PLACEHOLDER_ID_PREFIX = "temp-"

# Corbeille
TRASH_RETENTION_DAYS = 30
TRASH_SWEEP_HOUR = 0
TRASH_SWEEP_MINUTE = 0

# ==================== MESSAGES STANDARDISÉS ====================

SUCCESS_MESSAGES = {
    "logout": "Déconnexion réussie",
    "property_trashed": "Bien déplacé dans la corbeille",
    "property_restored": "Bien restauré avec succès",
    "property_purged": "Bien supprimé définitivement",
    "collaborator_deleted": "Collaborateur supprimé avec succès",
    "password_updated": "Mot de passe mis à jour avec succès",
    "file_deleted": "Fichier supprimé",
}

ERROR_MESSAGES = {
    "property_not_found": "Bien introuvable",
    "owner_not_found": "Propriétaire avec l'ID {owner_id} introuvable",
    "property_not_in_trash": "Ce bien n'est pas dans la corbeille",
    "archive_forbidden": "Seul un administrateur peut archiver ou désarchiver un bien",
    "archived_forbidden": "Accès refusé à un bien archivé",
    "user_not_found": "Utilisateur introuvable",
    "collaborator_not_found": "Collaborateur introuvable",
    "email_taken": "Cette adresse email est déjà utilisée",
    "invalid_credentials": "Email ou mot de passe incorrect",
    "admin_exists": "Un administrateur existe déjà",
    "admin_required": "Accès réservé aux administrateurs",
    "role_required": "Accès refusé",
    "internal": "Erreur interne du serveur",
}
