"""
Modification d'un bien : archivage, fiches techniques, checklist, pièces jointes
"""

import pytest

from conftest import make_bien, png_bytes, post_property, property_payload, put_property, stored_files
from enums import TypeBien
from models import BienImmobilier, DetailTerrain, DetailVilla, PieceJointe, Proprietaire


@pytest.fixture
def villa(client, admin_headers):
    payload = property_payload(
        type_bien="VILLA",
        detailVilla={"surface": "450", "pieces": "6", "piscine": True},
        papiers=[{"nom": "Acte"}, {"nom": "Livret foncier"}],
        piecesJointes=[{"type": "PHOTO", "nom": "jardin.png", "visibilite": "PUBLIABLE"}],
    )
    files = [("photos", ("jardin.png", png_bytes(), "image/png"))]
    response = post_property(client, admin_headers, payload, files)
    assert response.status_code == 201
    return response.json()


# =============================================================================
# Archivage
# =============================================================================

def test_collaborator_cannot_change_archive(client, db, villa, collab_headers):
    response = put_property(client, collab_headers, villa["id"], {"bienImmobilier": {"archive": True, "titre": "Piraté"}})

    assert response.status_code == 403
    assert response.json()["error_code"] == "ARCHIVE_FORBIDDEN"
    bien = db.query(BienImmobilier).filter(BienImmobilier.id == villa["id"]).first()
    assert bien.archive is False
    assert bien.titre == "Bien de test"


def test_collaborator_may_resend_current_archive_value(client, villa, collab_headers):
    response = put_property(client, collab_headers, villa["id"], {"bienImmobilier": {"archive": False, "titre": "F5 Chéraga"}})

    assert response.status_code == 200
    assert response.json()["titre"] == "F5 Chéraga"


def test_admin_can_archive(client, villa, admin_headers, collab_headers):
    response = put_property(client, admin_headers, villa["id"], {"bienImmobilier": {"archive": True}})

    assert response.status_code == 200
    assert response.json()["archive"] is True
    assert client.get(f"/api/properties/{villa['id']}", headers=collab_headers).status_code == 403


# =============================================================================
# Champs du bien et propriétaire
# =============================================================================

def test_required_fields_are_not_nulled(client, villa, admin_headers):
    response = put_property(client, admin_headers, villa["id"], {
        "bienImmobilier": {"titre": None, "statut": "", "prixVente": "", "prixLocation": "45000"},
    })

    data = response.json()
    assert response.status_code == 200
    assert data["titre"] == "Bien de test"
    assert data["statut"] == "DISPONIBLE"
    assert data["prixVente"] is None
    assert data["prixLocation"] == 45000.0


def test_update_existing_owner_fields(client, db, villa, admin_headers):
    owner_id = villa["proprietaireId"]
    response = put_property(client, admin_headers, villa["id"], {
        "proprietaire": {"id": owner_id, "telephone": "0661000000", "qualite": "HERITIER"},
    })

    assert response.status_code == 200
    owner = db.query(Proprietaire).filter(Proprietaire.id == owner_id).first()
    assert owner.telephone == "0661000000"
    assert owner.qualite.value == "HERITIER"
    assert owner.nom == "Benali"


def test_switch_to_new_owner(client, db, villa, admin_headers):
    response = put_property(client, admin_headers, villa["id"], {
        "proprietaire": {"isNewOwner": True, "nom": "Cherif", "prenom": "Nadia"},
    })

    assert response.status_code == 200
    assert response.json()["proprietaire"]["nom"] == "Cherif"
    assert db.query(Proprietaire).count() == 2


def test_update_unknown_property(client, admin_headers):
    response = put_property(client, admin_headers, 4242, {"bienImmobilier": {"titre": "X"}})

    assert response.status_code == 404


# =============================================================================
# Fiche technique
# =============================================================================

def test_partial_detail_update_keeps_other_values(client, villa, admin_headers):
    response = put_property(client, admin_headers, villa["id"], {
        "detailVilla": {"pieces": "7", "surface": "", "garage": True},
    })

    detail = response.json()["detailVilla"]
    assert response.status_code == 200
    assert detail["pieces"] == 7
    assert detail["surface"] == 450.0
    assert detail["piscine"] is True
    assert detail["garage"] is True


def test_type_change_replaces_detail(client, db, villa, admin_headers):
    response = put_property(client, admin_headers, villa["id"], {
        "bienImmobilier": {"type": "TERRAIN"},
        "detailTerrain": {"surface": "300"},
    })

    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "TERRAIN"
    assert body["detailVilla"] is None
    assert body["detailTerrain"]["surface"] == 300.0
    assert db.query(DetailVilla).count() == 0
    assert db.query(DetailTerrain).count() == 1


def test_type_change_without_new_detail_drops_old_one(client, db, villa, admin_headers):
    response = put_property(client, admin_headers, villa["id"], {"bienImmobilier": {"type": "APPARTEMENT"}})

    assert response.status_code == 200
    assert response.json()["detailVilla"] is None
    assert response.json()["detailAppartement"] is None
    assert db.query(DetailVilla).count() == 0


def test_same_type_keeps_detail(client, db, villa, admin_headers):
    response = put_property(client, admin_headers, villa["id"], {"bienImmobilier": {"type": "VILLA", "titre": "Villa F6"}})

    assert response.json()["detailVilla"]["surface"] == 450.0
    assert db.query(DetailVilla).count() == 1


def test_missing_detail_needs_surface_to_be_created(client, db, owner, admin_headers):
    bien = make_bien(db, owner, type_bien=TypeBien.TERRAIN)

    response = put_property(client, admin_headers, bien.id, {"detailTerrain": {"facades": "2"}})
    assert response.json()["detailTerrain"] is None

    response = put_property(client, admin_headers, bien.id, {"detailTerrain": {"surface": "300", "facades": "2"}})
    assert response.json()["detailTerrain"]["surface"] == 300.0
    assert response.json()["detailTerrain"]["facades"] == 2


def test_missing_appartement_detail_is_created(client, db, owner, admin_headers):
    bien = make_bien(db, owner)

    response = put_property(client, admin_headers, bien.id, {"detailAppartement": {"etage": "2"}})

    assert response.json()["detailAppartement"]["etage"] == 2


# =============================================================================
# Checklist des papiers
# =============================================================================

def test_papiers_reconciliation(client, villa, admin_headers):
    acte, livret = villa["papiers"]
    response = put_property(client, admin_headers, villa["id"], {
        "papiers": [
            {"id": acte["id"], "nom": "Acte notarié", "statut": "DISPONIBLE"},
            {"id": "temp-1718000000000", "nom": "Certificat de conformité"},
        ],
    })

    papiers = response.json()["papiers"]
    assert response.status_code == 200
    assert [(p["id"], p["nom"], p["statut"]) for p in papiers[:1]] == [(acte["id"], "Acte notarié", "DISPONIBLE")]
    assert [p["nom"] for p in papiers] == ["Acte notarié", "Certificat de conformité"]
    assert livret["id"] not in [p["id"] for p in papiers]
    assert papiers[1]["categorie"] == "VILLA"


def test_papiers_untouched_when_omitted(client, villa, admin_headers):
    response = put_property(client, admin_headers, villa["id"], {"bienImmobilier": {"description": "Vue mer"}})

    assert [p["nom"] for p in response.json()["papiers"]] == ["Acte", "Livret foncier"]


def test_empty_papiers_list_clears_checklist(client, villa, admin_headers):
    response = put_property(client, admin_headers, villa["id"], {"papiers": []})

    assert response.json()["papiers"] == []


# =============================================================================
# Pièces jointes
# =============================================================================

def test_files_to_delete_removes_rows_and_files(client, db, storage, villa, admin_headers):
    piece = villa["piecesJointes"][0]
    path = storage.local_path_from_url(piece["url"])
    assert path.is_file()

    response = put_property(client, admin_headers, villa["id"], {"filesToDelete": [piece["id"], "temp-3", "abc"]})

    assert response.status_code == 200
    assert response.json()["piecesJointes"] == []
    assert not path.exists()
    assert db.query(PieceJointe).count() == 0


def test_files_to_delete_ignores_other_properties(client, db, storage, villa, admin_headers):
    other = post_property(
        client, admin_headers,
        property_payload(piecesJointes=[{"type": "PHOTO", "nom": "autre.png"}]),
        [("photos", ("autre.png", png_bytes(), "image/png"))],
    ).json()
    foreign_piece = other["piecesJointes"][0]

    response = put_property(client, admin_headers, villa["id"], {"filesToDelete": [foreign_piece["id"]]})

    assert response.status_code == 200
    assert db.query(PieceJointe).filter(PieceJointe.id == foreign_piece["id"]).count() == 1
    assert storage.local_path_from_url(foreign_piece["url"]).is_file()


def test_new_uploads_and_existing_visibility(client, storage, villa, admin_headers):
    existing = villa["piecesJointes"][0]
    response = put_property(
        client, admin_headers, villa["id"],
        {
            "piecesJointes": [
                {"id": existing["id"], "type": "PHOTO", "visibilite": "INTERNE"},
                {"type": "DOCUMENT", "nom": "plan.pdf", "categorie": "Plans"},
                {"type": "LOCALISATION", "nom": "Carte", "url": "https://maps.google.com/?q=1"},
            ],
        },
        [("documents", ("plan.pdf", b"%PDF-1.4 plan", "application/pdf"))],
    )

    pieces = {p["nom"]: p for p in response.json()["piecesJointes"]}
    assert response.status_code == 200
    assert pieces["jardin.png"]["visibilite"] == "INTERNE"
    assert pieces["plan.pdf"]["url"].startswith("/uploads/VILLA/")
    assert pieces["plan.pdf"]["categorie"] == "Plans"
    assert pieces["Carte"]["url"] == "https://maps.google.com/?q=1"


def test_failed_update_discards_new_uploads(client, db, storage, villa, admin_headers):
    before = stored_files(storage)

    response = put_property(
        client, admin_headers, villa["id"],
        {
            "proprietaire": {"proprietaireId": 999},
            "bienImmobilier": {"titre": "Jamais enregistré"},
            "piecesJointes": [{"type": "PHOTO", "nom": "cuisine.png"}],
        },
        [("photos", ("cuisine.png", png_bytes(), "image/png"))],
    )

    assert response.status_code == 404
    assert stored_files(storage) == before
    db.expire_all()
    assert db.query(BienImmobilier).filter(BienImmobilier.id == villa["id"]).first().titre == "Bien de test"
    assert db.query(PieceJointe).count() == 1


# =============================================================================
# Suivi
# =============================================================================

def test_suivi_created_then_updated(client, villa, admin_headers):
    response = put_property(client, admin_headers, villa["id"], {"suivi": {"aMandat": True, "priorite": ""}})
    suivi = response.json()["suivi"]
    assert suivi["aMandat"] is True
    assert suivi["priorite"] == "NORMAL"

    response = put_property(client, admin_headers, villa["id"], {"suivi": {"urlGoogleSheet": "https://docs.google.com/x"}})
    suivi = response.json()["suivi"]
    assert suivi["aMandat"] is True
    assert suivi["urlGoogleSheet"] == "https://docs.google.com/x"
