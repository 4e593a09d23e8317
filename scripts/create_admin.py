#!/usr/bin/env python3
"""
Create an admin user (feedback triage) from the command line
Usage: python scripts/create_admin.py --email admin@example.com --username admin --password secret123
"""
import sys
import argparse
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv  # noqa: E402
load_dotenv(project_root / ".env")

from sqlalchemy.orm import Session  # noqa: E402
from app.db.postgres import SessionLocal  # noqa: E402
from app.db import models  # noqa: E402,F401
from app.db.models.user import User  # noqa: E402
from app.core.security import hash_password  # noqa: E402


def create_admin_user(email: str, username: str, password: str, full_name: str | None = None) -> User | None:
    db: Session = SessionLocal()
    try:
        existing = db.query(User).filter((User.email == email) | (User.username == username)).first()
        if existing:
            if existing.is_admin:
                print(f"User {existing.email} is already an admin.")
                return existing
            answer = input(f"User {existing.email} exists. Grant admin rights? (yes/no): ").strip().lower()
            if answer not in ("yes", "y"):
                print("Cancelled.")
                return None
            existing.is_admin = True
            db.commit()
            print(f"Granted admin rights to {existing.email} (id {existing.id}).")
            return existing

        admin_user = User(
            email=email,
            username=username,
            full_name=full_name,
            password_hash=hash_password(password),
            roles=[],
            risk_level=[],
            skills=[],
            is_admin=True,
        )
        db.add(admin_user)
        db.commit()
        db.refresh(admin_user)

        print("Admin user created.")
        print(f"   ID: {admin_user.id}")
        print(f"   Email: {admin_user.email}")
        print(f"   Username: {admin_user.username}")
        return admin_user
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create admin user from command line")
    parser.add_argument("--email", required=True, help="Admin email address")
    parser.add_argument("--username", required=True, help="Admin username")
    parser.add_argument("--password", required=True, help="Admin password")
    parser.add_argument("--full-name", help="Admin full name (optional)")
    args = parser.parse_args()

    create_admin_user(
        email=args.email.strip().lower(),
        username=args.username.strip(),
        password=args.password,
        full_name=args.full_name,
    )


if __name__ == "__main__":
    main()
