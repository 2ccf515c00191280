import os
import sys
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, func
from sqlalchemy.orm import Session, sessionmaker
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.squadron.models import Base, Role, User


@contextmanager
def _session_scope(database_url: str):
    engine = create_engine(database_url, future=True)
    sm = sessionmaker(bind=engine, class_=Session, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()


def seed_only(*, database_url: str | None = None, create_tables: bool = False) -> None:
    """
    Seed the first admin account in an idempotent way.
    Does NOT overwrite an existing admin user's password or role.
    """
    admin_username = (os.environ.get("ADMIN_USERNAME") or "admin").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    admin_full_name = (os.environ.get("ADMIN_FULL_NAME") or "Squadron Administrator").strip()

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///squadron.db").strip()

    if create_tables:
        engine = create_engine(db_url, future=True)
        Base.metadata.create_all(engine)
        engine.dispose()

    # Direct engine/session so this can run in release without importing app.wsgi.
    with _session_scope(db_url) as s:
        user = s.query(User).filter(func.lower(User.username) == admin_username).one_or_none()
        if not user:
            s.add(
                User(
                    username=admin_username,
                    full_name=admin_full_name,
                    password_hash=generate_password_hash(admin_password),
                    role=Role.ADMIN,
                    is_active=True,
                )
            )
            print(f"Created admin user: {admin_username}")
        else:
            print(f"Admin user already exists: {admin_username} (password unchanged)")

    print("Initialized database (seed_only).")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    # Local dev convenience: sqlite databases get their tables created directly.
    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///squadron.db").strip()
    seed_only(database_url=db_url, create_tables=db_url.startswith("sqlite"))


if __name__ == "__main__":
    main()
