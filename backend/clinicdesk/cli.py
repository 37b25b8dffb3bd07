"""Management CLI.

Usage:
    python -m clinicdesk.cli init-db                                # Create all tables (dev only; use alembic in prod)
    python -m clinicdesk.cli create-admin <email> <password> <name> # Add an administrator
    python -m clinicdesk.cli list-clinics                           # Show clinics and their tax rates
"""

import sys

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from clinicdesk.auth.password import hash_password
from clinicdesk.config import settings
from clinicdesk.database import Base
from clinicdesk.models import Clinic, User, UserRole


def get_engine():
    return create_engine(settings.database_url_sync)


def init_db():
    engine = get_engine()
    Base.metadata.create_all(engine)
    print(f"Created {len(Base.metadata.tables)} tables.")


def create_admin(email: str, password: str, full_name: str):
    if len(password) < 8:
        print("Password must be at least 8 characters.")
        sys.exit(1)

    with Session(get_engine()) as session:
        existing = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if existing:
            print(f"User {email} already exists.")
            sys.exit(1)

        session.add(User(
            email=email,
            hashed_password=hash_password(password),
            full_name=full_name,
            role=UserRole.ADMINISTRATOR,
            is_active=True,
        ))
        session.commit()
    print(f"  Administrator {email} created")


def list_clinics():
    with Session(get_engine()) as session:
        clinics = session.execute(select(Clinic).order_by(Clinic.name)).scalars().all()
    for c in clinics:
        rate = c.tax_rate if c.tax_rate is not None else settings.default_tax_rate
        flag = "" if c.is_active else " (inactive)"
        print(f"  {c.name:<30} {c.currency}  tax {float(rate) * 100:.2f}%{flag}")
    print(f"\n{len(clinics)} clinic(s)")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "init-db":
        init_db()
    elif cmd == "create-admin" and len(sys.argv) == 5:
        create_admin(sys.argv[2], sys.argv[3], sys.argv[4])
    elif cmd == "list-clinics":
        list_clinics()
    else:
        print("Usage: python -m clinicdesk.cli [init-db | create-admin <email> <password> <name> | list-clinics]")
