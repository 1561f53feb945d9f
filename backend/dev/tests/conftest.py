"""
GestImmo - Fixtures partagées des tests
Base SQLite temporaire, stockage d'upload isolé, comptes et tokens de test.
"""

import io
import json
import os
import tempfile
from datetime import datetime

import pytest

# Environnement de test AVANT l'import de l'application
TEST_ROOT = tempfile.mkdtemp(prefix="gestimmo-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(TEST_ROOT, 'gestimmo_test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(TEST_ROOT, "uploads")
os.environ["JWT_SECRET"] = "gestimmo-test-secret"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["APP_BASE_URL"] = ""
os.environ.pop("REDIS_URL", None)

from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402

from main import app  # noqa: E402
from auth import create_access_token, get_password_hash  # noqa: E402
from database import Base, SessionLocal, engine  # noqa: E402
from enums import Role, TypeBien, TypeTransaction  # noqa: E402
from models import BienImmobilier, Proprietaire, Utilisateur  # noqa: E402
from rate_limiter import rate_limiter  # noqa: E402
from upload_service import UploadStorage, get_storage  # noqa: E402

ADMIN_PASSWORD = "admin-secret"
COLLAB_PASSWORD = "collab-secret"


# =============================================================================
# Base de données et application
# =============================================================================

@pytest.fixture(autouse=True)
def setup_test_database():
    """Tables recréées pour chaque test"""
    Base.metadata.create_all(bind=engine)
    rate_limiter.reset()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def storage(tmp_path):
    """Stockage d'upload dans un dossier propre au test"""
    test_storage = UploadStorage(tmp_path / "uploads", optimize_images=True)
    app.dependency_overrides[get_storage] = lambda: test_storage
    yield test_storage
    app.dependency_overrides.pop(get_storage, None)


@pytest.fixture
def client():
    return TestClient(app)


# =============================================================================
# Utilisateurs et authentification
# =============================================================================

def create_user(db, email, password, role, nom="Test", prenom="User"):
    user = Utilisateur(
        email=email,
        mot_de_passe=get_password_hash(password),
        nom=nom,
        prenom=prenom,
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def admin_user(db):
    return create_user(db, "admin@gestimmo.dz", ADMIN_PASSWORD, Role.ADMIN, nom="Haddad", prenom="Samia")


@pytest.fixture
def collab_user(db):
    return create_user(db, "collab@gestimmo.dz", COLLAB_PASSWORD, Role.COLLABORATEUR, nom="Meziane", prenom="Yacine")


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def collab_headers(collab_user):
    return auth_headers(collab_user)


# =============================================================================
# Biens et fichiers
# =============================================================================

@pytest.fixture
def owner(db):
    proprietaire = Proprietaire(nom="Benali", prenom="Karim", telephone="0550123456")
    db.add(proprietaire)
    db.commit()
    db.refresh(proprietaire)
    return proprietaire


def make_bien(db, owner, titre="F3 Bab Ezzouar", type_bien=TypeBien.APPARTEMENT,
              deleted_at=None, archive=False, created_by=None):
    """Bien minimal inséré directement en base"""
    bien = BienImmobilier(
        titre=titre,
        type=type_bien,
        transaction=TypeTransaction.VENTE,
        proprietaire_id=owner.id,
        deleted_at=deleted_at,
        archive=archive,
        created_by_id=created_by.id if created_by else None,
        date_creation=datetime.utcnow(),
    )
    db.add(bien)
    db.commit()
    db.refresh(bien)
    return bien


def property_payload(type_bien="APPARTEMENT", proprietaire=None, **sections):
    """Contenu du champ `data` du formulaire de création"""
    payload = {
        "proprietaire": proprietaire or {
            "isNewOwner": True,
            "nom": "Benali",
            "prenom": "Karim",
            "telephone": "0550123456",
        },
        "bienImmobilier": {
            "titre": "Bien de test",
            "type": type_bien,
            "transaction": "VENTE",
            "prixVente": "12500000",
            "adresse": "Cité 1000 logements, Alger",
        },
        "papiers": [],
        "piecesJointes": [],
    }
    payload.update(sections)
    return payload


def png_bytes(size=(40, 30), color=(200, 40, 40)):
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def post_property(client, headers, payload, files=None):
    return client.post(
        "/api/properties",
        data={"data": json.dumps(payload)},
        files=files or [],
        headers=headers,
    )


def put_property(client, headers, bien_id, payload, files=None):
    return client.put(
        f"/api/properties/{bien_id}",
        data={"data": json.dumps(payload)},
        files=files or [],
        headers=headers,
    )


def stored_files(storage):
    """Fichiers présents sous le dossier d'upload"""
    if not storage.root.exists():
        return []
    return sorted(p for p in storage.root.rglob("*") if p.is_file())
