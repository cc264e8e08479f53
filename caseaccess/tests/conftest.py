"""
Shared fixtures for access-control tests
"""

import os
from pathlib import Path

import pytest

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


@pytest.fixture
def sqlalchemy_db(tmp_path):
    """Configure a fresh SQLAlchemy SQLite DB for tests."""
    from caseaccess.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "case_access.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


@pytest.fixture
def db(sqlalchemy_db):
    """A session on the test DB. Closed after the test."""
    from caseaccess.db.session import SessionLocal, get_engine

    get_engine()
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def seed(sqlalchemy_db):
    """
    Two clients, two lawyers, an admin and two cases:
    - case_1 owned by client_1, lawyer_1 granted
    - case_2 owned by client_2, no grants
    """
    from caseaccess.db.session import get_db_session
    from caseaccess.db.models import User, Case, CaseAccess, UserRole
    from caseaccess.principal import get_password_hash

    with get_db_session() as session:
        password_hash = get_password_hash("secret123")
        users = {
            "client_1": User(email="client1@test.local", first_name="Client", last_name="One",
                             role=UserRole.CLIENT, password_hash=password_hash),
            "client_2": User(email="client2@test.local", first_name="Client", last_name="Two",
                             role=UserRole.CLIENT, password_hash=password_hash),
            "lawyer_1": User(email="lawyer1@test.local", first_name="Lawyer", last_name="One",
                             role=UserRole.LAWYER, password_hash=password_hash),
            "lawyer_2": User(email="lawyer2@test.local", first_name="Lawyer", last_name="Two",
                             role=UserRole.LAWYER, password_hash=password_hash),
            "admin": User(email="admin@test.local", first_name="Admin", last_name="User",
                          role=UserRole.ADMIN, password_hash=password_hash),
        }
        session.add_all(users.values())
        session.flush()

        case_1 = Case(owner_id=users["client_1"].id, title="Case One")
        case_2 = Case(owner_id=users["client_2"].id, title="Case Two")
        session.add_all([case_1, case_2])
        session.flush()

        session.add(CaseAccess(
            case_id=case_1.id,
            lawyer_id=users["lawyer_1"].id,
            granted_by=users["client_1"].id,
        ))

        ids = {key: user.id for key, user in users.items()}
        ids["case_1"] = case_1.id
        ids["case_2"] = case_2.id
        return ids


@pytest.fixture
def principal_for(db):
    """Build a Principal for a seeded user, read fresh from the DB."""
    from caseaccess.db.models import User
    from caseaccess.principal import Principal

    def _principal(user_id):
        user = db.query(User).filter(User.id == user_id).first()
        return Principal.from_user(user)

    return _principal
