"""
Authorization Engine
====================

Decides, for a (principal, case) pair, whether an operation may proceed.

Rules:
- ADMIN: every existing case
- CLIENT: cases they own (case.owner_id == principal.id)
- LAWYER: cases with a live grant in case_access

Every check is a single query with role-conditioned predicates, so a missing
case and a denied case produce the same answer. Storage errors are logged and
treated as denial; nothing is raised across this boundary.
"""

import logging
from typing import Iterable, Optional, Set

from sqlalchemy import exists, true
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db.models import Case, CaseAccess, UserRole
from .principal import Principal

logger = logging.getLogger(__name__)


class AuthorizationService:
    """Access decisions over cases, backed by the database session"""

    def __init__(self, db: Session):
        self.db = db

    def _access_predicate(self, principal: Principal):
        """
        SQL predicate over Case selecting what the principal may access.

        Returns None when the principal gets nothing. Every UserRole member
        must have a branch here.
        """
        if not principal.is_active:
            return None

        role = principal.role
        if role == UserRole.ADMIN:
            return true()
        if role == UserRole.CLIENT:
            return Case.owner_id == principal.id
        if role == UserRole.LAWYER:
            return exists().where(
                CaseAccess.case_id == Case.id,
                CaseAccess.lawyer_id == principal.id,
            )

        logger.error(f"No access rule for role {role!r}; denying {principal.id}")
        return None

    def _fail_secure(self, operation: str, principal: Principal, error: Exception) -> None:
        logger.error(f"Authorization check {operation} failed for {principal.id}: {error}")
        try:
            self.db.rollback()
        except SQLAlchemyError as e:
            logger.error(f"Rollback after failed authorization check raised: {e}")

    def can_access(self, principal: Principal, case_id: str) -> bool:
        """Check if principal can access a specific case"""
        predicate = self._access_predicate(principal)
        if predicate is None or not case_id:
            return False

        try:
            found = (
                self.db.query(Case.id)
                .filter(Case.id == case_id, predicate)
                .first()
            )
        except SQLAlchemyError as e:
            self._fail_secure("can_access", principal, e)
            return False

        if found is None:
            logger.warning(
                f"Access denied: {principal.email} ({principal.role.value}) attempted to access case {case_id}"
            )
            return False
        return True

    def is_owner(self, principal: Principal, case_id: str) -> bool:
        """
        Check if principal owns a case.

        ADMIN counts as owner of every existing case. LAWYER never owns.
        """
        if not principal.is_active or not case_id:
            return False

        role = principal.role
        if role == UserRole.LAWYER:
            return False
        if role == UserRole.ADMIN:
            predicate = true()
        elif role == UserRole.CLIENT:
            predicate = Case.owner_id == principal.id
        else:
            logger.error(f"No ownership rule for role {role!r}; denying {principal.id}")
            return False

        try:
            found = (
                self.db.query(Case.id)
                .filter(Case.id == case_id, predicate)
                .first()
            )
        except SQLAlchemyError as e:
            self._fail_secure("is_owner", principal, e)
            return False

        if found is None:
            logger.warning(f"Ownership denied: {principal.email} is not owner of case {case_id}")
            return False
        return True

    def list_accessible_case_ids(self, principal: Principal) -> Set[str]:
        """
        Get ids of every case the principal can access.

        Used to scope listing queries upstream.
        """
        if not principal.is_active:
            return set()

        try:
            if principal.role == UserRole.LAWYER:
                rows = (
                    self.db.query(CaseAccess.case_id)
                    .filter(CaseAccess.lawyer_id == principal.id)
                    .all()
                )
            else:
                predicate = self._access_predicate(principal)
                if predicate is None:
                    return set()
                rows = self.db.query(Case.id).filter(predicate).all()
        except SQLAlchemyError as e:
            self._fail_secure("list_accessible_case_ids", principal, e)
            return set()

        return {row[0] for row in rows}

    def filter_accessible(self, principal: Principal, case_ids: Iterable[str]) -> Set[str]:
        """
        Batch variant of can_access.

        Returns the subset of case_ids the principal can access, in one query.
        """
        requested = {cid for cid in case_ids if cid}
        if not requested:
            return set()

        predicate = self._access_predicate(principal)
        if predicate is None:
            return set()

        try:
            rows = (
                self.db.query(Case.id)
                .filter(Case.id.in_(requested), predicate)
                .all()
            )
        except SQLAlchemyError as e:
            self._fail_secure("filter_accessible", principal, e)
            return set()

        allowed = {row[0] for row in rows}
        denied = len(requested) - len(allowed)
        if denied:
            logger.info(f"Batch access check: {principal.email} denied {denied} of {len(requested)} cases")
        return allowed


def principal_can_review(engine: AuthorizationService, principal: Optional[Principal], case_id: str) -> bool:
    """Reviewers of access requests: administrators and the case owner."""
    if principal is None:
        return False
    return engine.is_owner(principal, case_id)
