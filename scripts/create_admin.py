"""
Create an admin user, or promote an existing user to admin.

Usage:
    python scripts/create_admin.py <phone> [name]
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dotenv import load_dotenv
load_dotenv()

from sqlalchemy.orm import Session

from tagsphere.config import settings
from tagsphere.db import Base, SessionLocal, engine
from tagsphere.models.models import User
from tagsphere.schemas.common import clean_phone
from tagsphere.services.encryption import hash_value


def ensure_admin(db: Session, phone: str, name: str = "Admin") -> tuple:
    """Returns (user, created)."""
    user = db.query(User).filter(User.phone_hash == hash_value(phone)).first()
    if user:
        user.role = "admin"
        db.commit()
        return user, False
    user = User(name=name, is_verified=True, role="admin")
    user.set_phone(phone)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user, True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create or promote an admin user")
    parser.add_argument("phone", help="10 digit mobile number")
    parser.add_argument("name", nargs="?", default="Admin")
    args = parser.parse_args(argv)

    try:
        phone = clean_phone(args.phone)
    except ValueError as e:
        parser.error(str(e))

    if settings.auto_create_db:
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        user, created = ensure_admin(db, phone, args.name)
        if created:
            print(f"Admin user created: {user.name}")
        else:
            print(f"User {user.name} upgraded to admin")
        print("Role: admin")
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
