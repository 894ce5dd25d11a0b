# FILE: app/db/init_db.py
from __future__ import annotations

import argparse
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.security import hash_password
from app.db.base import Base
from app.db.session import engine
from app.models.user import User


def init_db(bind=None) -> None:
    """create_all for every model; existing tables are left alone."""
    Base.metadata.create_all(bind=bind or engine)


def ensure_super_admin(db: Session, email: str, password: str, name: str = "Super Admin") -> User:
    email = email.lower().strip()
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role="SUPER_ADMIN",
        company_id=None,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def run(fresh: bool = False, admin_email: Optional[str] = None,
        admin_password: Optional[str] = None) -> None:
    if fresh:
        print("WARNING: Dropping ALL tables (dev only) …")
        Base.metadata.drop_all(bind=engine)

    print("Creating all missing tables …")
    init_db()
    print("Tables:", sorted(inspect(engine).get_table_names()))

    if admin_email and admin_password:
        try:
            with Session(engine) as db:
                u = ensure_super_admin(db, admin_email, admin_password)
                print(f"Super admin ready: {u.email} (id={u.id})")
        except SQLAlchemyError as e:
            print("Super admin seed failed:", e)
            raise


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Initialize DB (create tables, optional super admin).")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Drop & recreate all tables (DEV ONLY).",
    )
    parser.add_argument("--admin-email", default=None)
    parser.add_argument("--admin-password", default=None)
    args = parser.parse_args()
    run(fresh=args.fresh, admin_email=args.admin_email, admin_password=args.admin_password)
