"""
Script pour créer un administrateur
Promeut un utilisateur existant ou crée un nouveau compte (utile une fois
l'inscription initiale fermée)
"""
import sys
from getpass import getpass

from sqlalchemy.orm import Session

from database import SessionLocal, engine, transaction
from models import Base, Utilisateur
from enums import Role
from auth import get_password_hash
from constants import MIN_PASSWORD_LENGTH


def create_or_promote_admin(db: Session, email: str, password: str = None, nom: str = None, prenom: str = None):
    """
    Retourne (utilisateur, créé). Un utilisateur existant est promu ADMIN,
    son mot de passe n'est remplacé que s'il est fourni.
    """
    user = db.query(Utilisateur).filter(Utilisateur.email == email).first()
    created = user is None
    with transaction(db):
        if created:
            if not password or len(password) < MIN_PASSWORD_LENGTH:
                raise ValueError(f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères")
            user = Utilisateur(email=email, nom=nom, prenom=prenom, mot_de_passe=get_password_hash(password))
            db.add(user)
        elif password:
            user.mot_de_passe = get_password_hash(password)
        user.role = Role.ADMIN
    return user, created


def main():
    print("=== CRÉATION ADMINISTRATEUR ===")
    Base.metadata.create_all(bind=engine)

    email = input("Email de l'administrateur: ").strip()
    if not email:
        print("[ERROR] Email requis")
        return 1

    db = SessionLocal()
    try:
        existing = db.query(Utilisateur).filter(Utilisateur.email == email).first()
        nom = prenom = None
        if existing:
            print(f"[INFO] Utilisateur trouvé ({existing.role.value}), il sera promu administrateur")
            password = getpass("Nouveau mot de passe (vide pour conserver l'actuel): ")
        else:
            nom = input("Nom: ").strip() or None
            prenom = input("Prénom: ").strip() or None
            password = getpass("Mot de passe: ")
            if password != getpass("Confirmation: "):
                print("[ERROR] Les mots de passe ne correspondent pas")
                return 1

        try:
            user, created = create_or_promote_admin(db, email, password or None, nom, prenom)
        except ValueError as e:
            print(f"[ERROR] {e}")
            return 1

        action = "créé" if created else "promu"
        print(f"[SUCCESS] Administrateur {action}: {user.email} (ID {user.id})")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
