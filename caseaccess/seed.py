"""
Demo Data
=========

Creates a small demo dataset when SEED_DEMO_DATA=true:
- client@demo.com (CLIENT) owning two cases
- lawyer1@demo.com, lawyer2@demo.com (LAWYER); lawyer1 is granted the first case
- admin@demo.com (ADMIN)

All demo accounts use the password "demo1234". Existing rows are left alone,
so seeding twice is harmless.
"""

import logging
from typing import Dict

from sqlalchemy.orm import Session

from .db.models import Case, CaseAccess, CaseCategory, User, UserRole
from .principal import get_password_hash

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "demo1234"

DEMO_USERS = [
    ("client@demo.com", "Dana", "Client", UserRole.CLIENT),
    ("lawyer1@demo.com", "Lior", "Levi", UserRole.LAWYER),
    ("lawyer2@demo.com", "Noa", "Cohen", UserRole.LAWYER),
    ("admin@demo.com", "Ari", "Admin", UserRole.ADMIN),
]

DEMO_CASES = [
    ("Lease dispute - Herzl St.", CaseCategory.REAL_ESTATE),
    ("Wrongful termination claim", CaseCategory.LABOR_LAW),
]


def _ensure_user(db: Session, email: str, first_name: str, last_name: str, role: UserRole) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user

    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        role=role,
        password_hash=get_password_hash(DEMO_PASSWORD),
        is_active=True,
    )
    db.add(user)
    db.flush()
    return user


def seed_demo_data(db: Session) -> Dict[str, User]:
    """Create demo users, cases and one grant. Returns users keyed by email."""
    users = {
        email: _ensure_user(db, email, first, last, role)
        for email, first, last, role in DEMO_USERS
    }
    client = users["client@demo.com"]

    cases = []
    for title, category in DEMO_CASES:
        case = db.query(Case).filter(Case.owner_id == client.id, Case.title == title).first()
        if not case:
            case = Case(owner_id=client.id, title=title, category=category)
            db.add(case)
            db.flush()
        cases.append(case)

    lawyer = users["lawyer1@demo.com"]
    granted = (
        db.query(CaseAccess)
        .filter(CaseAccess.case_id == cases[0].id, CaseAccess.lawyer_id == lawyer.id)
        .first()
    )
    if not granted:
        db.add(CaseAccess(case_id=cases[0].id, lawyer_id=lawyer.id, granted_by=client.id))

    db.commit()
    logger.warning(f"Demo data seeded ({len(users)} users, {len(cases)} cases); do not enable in production")
    return users
