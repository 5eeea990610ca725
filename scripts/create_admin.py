#!/usr/bin/env python3
"""
Admin account creation script
Creates (or promotes) an administrator for the storefront dashboard
"""

import argparse
import getpass

from storefront.auth import hash_password
from storefront.database import Base, SessionLocal, engine, transaction
from storefront.models import Role, User


def create_admin(email, password, name="Administrator"):
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        email = email.lower()
        user = db.query(User).filter(User.email == email).first()

        if user and user.role == Role.ADMIN.value:
            print("Admin user already exists:")
            print(f"Email: {user.email}")
            print(f"Name: {user.name}")
            return

        with transaction(db):
            if user:
                print(f"Promoting {email} to admin...")
                user.role = Role.ADMIN.value
            else:
                print("Creating admin user...")
                db.add(User(
                    email=email,
                    name=name,
                    password=hash_password(password),
                    role=Role.ADMIN.value
                ))

        print("Admin user ready!")
        print(f"Email: {email}")
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a storefront administrator")
    parser.add_argument("email", help="Admin email address")
    parser.add_argument("--name", default="Administrator", help="Display name")
    args = parser.parse_args()

    create_admin(args.email, getpass.getpass("Password: "), args.name)
