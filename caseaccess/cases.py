"""
Case helpers.
"""

from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from .db.models import Case, CaseCategory, UserRole
from .errors import AccessControlError, ErrorKind
from .principal import Principal


def create_case(
    db: Session,
    owner: Principal,
    title: str,
    category: CaseCategory = CaseCategory.OTHER,
    description: Optional[str] = None,
    priority: int = 2,
) -> Case:
    # Only clients own cases; owner_id is fixed from here on
    if owner.role != UserRole.CLIENT:
        raise AccessControlError("Only clients can create cases", ErrorKind.FORBIDDEN)
    if not title or not title.strip():
        raise AccessControlError("Case title is required", ErrorKind.VALIDATION)

    case = Case(
        owner_id=owner.id,
        title=title.strip(),
        description=description,
        category=category,
        priority=priority,
    )
    db.add(case)
    db.commit()
    db.refresh(case)
    return case


def get_cases(db: Session, case_ids: Iterable[str]) -> List[Case]:
    ids = list(case_ids)
    if not ids:
        return []
    return (
        db.query(Case)
        .filter(Case.id.in_(ids))
        .order_by(Case.created_at.desc())
        .all()
    )


def get_case(db: Session, case_id: str) -> Optional[Case]:
    return db.query(Case).filter(Case.id == case_id).first()
