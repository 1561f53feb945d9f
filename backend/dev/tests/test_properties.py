"""
Création et consultation des biens immobiliers
"""

import pytest

from conftest import make_bien, png_bytes, post_property, property_payload, put_property, stored_files
from enums import TypeBien
from models import BienImmobilier, DetailAppartement, DetailVilla, Papier, PieceJointe, Proprietaire


# =============================================================================
# Création
# =============================================================================

def test_create_with_new_owner(client, db, admin_user, admin_headers):
    response = post_property(client, admin_headers, property_payload())

    assert response.status_code == 201
    data = response.json()
    owners = db.query(Proprietaire).all()
    assert len(owners) == 1
    assert data["proprietaireId"] == owners[0].id
    assert data["proprietaire"]["nom"] == "Benali"
    assert data["createdById"] == admin_user.id
    assert data["statut"] == "DISPONIBLE"
    assert data["archive"] is False
    assert data["prixVente"] == 12500000.0


def test_create_with_existing_owner(client, db, owner, admin_headers):
    payload = property_payload(proprietaire={"isNewOwner": False, "proprietaireId": owner.id})
    response = post_property(client, admin_headers, payload)

    assert response.status_code == 201
    assert response.json()["proprietaireId"] == owner.id
    assert db.query(Proprietaire).count() == 1


def test_create_missing_owner_writes_nothing(client, db, storage, admin_headers):
    payload = property_payload(
        proprietaire={"isNewOwner": False, "proprietaireId": 999},
        papiers=[{"nom": "Acte"}],
        piecesJointes=[{"type": "PHOTO", "nom": "salon.png", "visibilite": "PUBLIABLE"}],
    )
    files = [("photos", ("salon.png", png_bytes(), "image/png"))]

    response = post_property(client, admin_headers, payload, files)

    assert response.status_code == 404
    body = response.json()
    assert body["error_code"] == "OWNER_NOT_FOUND"
    assert "999" in body["message"]
    assert db.query(BienImmobilier).count() == 0
    assert db.query(Papier).count() == 0
    assert db.query(PieceJointe).count() == 0
    assert stored_files(storage) == []


def test_create_new_owner_requires_name(client, db, admin_headers):
    payload = property_payload(proprietaire={"isNewOwner": True, "telephone": "0550"})
    response = post_property(client, admin_headers, payload)

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"
    assert db.query(Proprietaire).count() == 0


def test_create_missing_title_is_rejected(client, db, admin_headers):
    payload = property_payload()
    del payload["bienImmobilier"]["titre"]

    response = post_property(client, admin_headers, payload)

    assert response.status_code == 400
    assert db.query(BienImmobilier).count() == 0


def test_create_keeps_only_matching_detail(client, db, admin_headers):
    payload = property_payload(
        type_bien="VILLA",
        detailVilla={"surface": "450", "surfaceBatie": "220,5", "pieces": "6", "piscine": True, "etat": ""},
        detailAppartement={"surfaceTotal": "95", "etage": "3"},
    )

    response = post_property(client, admin_headers, payload)

    assert response.status_code == 201
    data = response.json()
    assert data["detailVilla"]["surface"] == 450.0
    assert data["detailVilla"]["surfaceBatie"] == 220.5
    assert data["detailVilla"]["pieces"] == 6
    assert data["detailVilla"]["etat"] is None
    assert data["detailAppartement"] is None
    assert db.query(DetailVilla).count() == 1
    assert db.query(DetailAppartement).count() == 0


def test_create_appartement_detail(client, admin_headers):
    payload = property_payload(
        detailAppartement={
            "typeAppart": "F3",
            "surfaceTotal": "95",
            "surfaceSDB": "6.5",
            "etage": "3",
            "ascenseur": True,
            "proximiteTransport": ["BUS", "TRAMWAY"],
        },
    )

    response = post_property(client, admin_headers, payload)

    assert response.status_code == 201
    detail = response.json()["detailAppartement"]
    assert detail["surfaceTotal"] == 95.0
    assert detail["surfaceSDB"] == 6.5
    assert detail["etage"] == 3
    assert detail["proximiteTransport"] == ["BUS", "TRAMWAY"]


@pytest.mark.parametrize("detail", [
    {"etage": "1e999"},
    {"surfaceTotal": "inf"},
    {"surfaceSDB": "nan"},
])
def test_create_rejects_out_of_range_numbers(client, db, admin_headers, detail):
    response = post_property(client, admin_headers, property_payload(detailAppartement=detail))

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"
    assert db.query(BienImmobilier).count() == 0
    assert db.query(Proprietaire).count() == 0


def test_update_rejects_out_of_range_price(client, db, owner, admin_headers):
    bien = make_bien(db, owner)

    response = put_property(client, admin_headers, bien.id, {"bienImmobilier": {"prixVente": "1e999"}})

    assert response.status_code == 400
    db.expire_all()
    assert db.query(BienImmobilier).filter(BienImmobilier.id == bien.id).first().prix_vente is None


def test_create_papiers_defaults(client, admin_headers):
    payload = property_payload(papiers=[
        {"id": "temp-1", "nom": "Acte"},
        {"nom": "Livret foncier", "categorie": "Juridique", "statut": "DISPONIBLE"},
    ])

    response = post_property(client, admin_headers, payload)

    papiers = response.json()["papiers"]
    assert [(p["nom"], p["categorie"], p["statut"]) for p in papiers] == [
        ("Acte", "APPARTEMENT", "MANQUANT"),
        ("Livret foncier", "Juridique", "DISPONIBLE"),
    ]


def test_create_attaches_uploaded_files_and_links(client, storage, admin_headers):
    payload = property_payload(
        piecesJointes=[
            {"type": "PHOTO", "nom": "salon.png", "visibilite": "PUBLIABLE"},
            {"type": "DOCUMENT", "nom": "acte.pdf", "categorie": "Juridique"},
            {"type": "LOCALISATION", "nom": "Carte", "url": "https://maps.google.com/?q=36.7,3.1"},
            {"type": "PHOTO", "nom": "jamais-envoyee.jpg"},
        ],
        suivi={"estVisite": True, "priorite": "IMPORTANT"},
    )
    files = [
        ("photos", ("salon.png", png_bytes(), "image/png")),
        ("documents", ("acte.pdf", b"%PDF-1.4 acte", "application/pdf")),
    ]

    response = post_property(client, admin_headers, payload, files)

    assert response.status_code == 201
    data = response.json()
    pieces = {p["nom"]: p for p in data["piecesJointes"]}
    assert set(pieces) == {"salon.png", "acte.pdf", "Carte"}
    assert pieces["salon.png"]["url"].startswith("/uploads/APPARTEMENT/")
    assert pieces["salon.png"]["visibilite"] == "PUBLIABLE"
    assert pieces["acte.pdf"]["visibilite"] == "INTERNE"
    assert pieces["acte.pdf"]["categorie"] == "Juridique"
    assert pieces["Carte"]["url"] == "https://maps.google.com/?q=36.7,3.1"
    assert storage.local_path_from_url(pieces["salon.png"]["url"]).is_file()
    assert len(stored_files(storage)) == 2
    assert data["suivi"]["estVisite"] is True
    assert data["suivi"]["priorite"] == "IMPORTANT"
    assert data["suivi"]["aMandat"] is False


def test_create_ignores_disallowed_file_types(client, storage, admin_headers):
    payload = property_payload(piecesJointes=[{"type": "DOCUMENT", "nom": "script.sh"}])
    files = [("documents", ("script.sh", b"#!/bin/sh\necho", "application/x-sh"))]

    response = post_property(client, admin_headers, payload, files)

    assert response.status_code == 201
    assert response.json()["piecesJointes"] == []
    assert stored_files(storage) == []


def test_collaborator_create_cannot_archive(client, collab_user, collab_headers):
    payload = property_payload()
    payload["bienImmobilier"]["archive"] = True

    response = post_property(client, collab_headers, payload)

    assert response.status_code == 201
    assert response.json()["archive"] is False
    assert response.json()["createdById"] == collab_user.id


def test_create_requires_authentication(client, db):
    response = post_property(client, {}, property_payload())

    assert response.status_code == 401
    assert db.query(BienImmobilier).count() == 0


# =============================================================================
# Consultation
# =============================================================================

def test_list_hides_archived_from_collaborators(client, db, owner, admin_headers, collab_headers):
    make_bien(db, owner, titre="Visible")
    make_bien(db, owner, titre="Archivé", archive=True)

    collab_titles = [b["titre"] for b in client.get("/api/properties", headers=collab_headers).json()["data"]]
    admin_titles = [b["titre"] for b in client.get("/api/properties", headers=admin_headers).json()["data"]]

    assert collab_titles == ["Visible"]
    assert sorted(admin_titles) == ["Archivé", "Visible"]


def test_list_filters(client, db, owner, admin_headers):
    make_bien(db, owner, titre="F3 Kouba")
    make_bien(db, owner, titre="Villa Hydra", type_bien=TypeBien.VILLA)

    response = client.get("/api/properties", params={"type": "VILLA"}, headers=admin_headers)
    assert [b["titre"] for b in response.json()["data"]] == ["Villa Hydra"]

    response = client.get("/api/properties", params={"q": "kouba"}, headers=admin_headers)
    assert [b["titre"] for b in response.json()["data"]] == ["F3 Kouba"]

    response = client.get("/api/properties", params={"q": "Benali"}, headers=admin_headers)
    assert response.json()["count"] == 2


def test_list_exposes_main_photo(client, admin_headers):
    payload = property_payload(piecesJointes=[
        {"type": "DOCUMENT", "nom": "acte.pdf"},
        {"type": "PHOTO", "nom": "facade.png", "visibilite": "PUBLIABLE"},
    ])
    files = [
        ("documents", ("acte.pdf", b"%PDF-1.4", "application/pdf")),
        ("photos", ("facade.png", png_bytes(), "image/png")),
    ]
    post_property(client, admin_headers, payload, files)

    item = client.get("/api/properties", headers=admin_headers).json()["data"][0]

    assert item["photoPrincipale"]["nom"] == "facade.png"
    assert item["proprietaire"]["nom"] == "Benali"


def test_get_property_access_rules(client, db, owner, admin_headers, collab_headers):
    archived = make_bien(db, owner, archive=True)

    assert client.get(f"/api/properties/{archived.id}", headers=collab_headers).status_code == 403
    assert client.get(f"/api/properties/{archived.id}", headers=admin_headers).status_code == 200
    assert client.get("/api/properties/9999", headers=admin_headers).status_code == 404
    assert client.get("/api/properties/abc", headers=admin_headers).status_code == 400
