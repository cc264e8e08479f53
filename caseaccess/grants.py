"""
Access Grant Store
==================

CRUD over the case <-> lawyer grant relation (case_access table).

- grant() is idempotent: a second grant for the same pair reports
  ALREADY_GRANTED, and concurrent inserts collapse on the unique constraint.
- revoke() deletes the row immediately. There is no soft-delete tier.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .db.models import Case, CaseAccess, User, UserRole
from .errors import GrantOutcome, GrantResult, RevokeOutcome, RevokeResult, TransientStoreError

logger = logging.getLogger(__name__)


class CaseAccessStore:
    """Grant/revoke/check lawyer access to cases"""

    def __init__(self, db: Session):
        self.db = db

    def _find(self, case_id: str, lawyer_id: str) -> Optional[CaseAccess]:
        return (
            self.db.query(CaseAccess)
            .filter(CaseAccess.case_id == case_id, CaseAccess.lawyer_id == lawyer_id)
            .first()
        )

    def grant(
        self,
        case_id: str,
        lawyer_id: str,
        granted_by: Optional[str] = None,
        commit: bool = True,
    ) -> GrantResult:
        """
        Grant a lawyer access to a case.

        Args:
            case_id: Case to grant access to
            lawyer_id: User receiving access (must be an active LAWYER)
            granted_by: Principal performing the grant, if any
            commit: Commit on success. Pass False to run inside a caller's transaction.

        Returns:
            GrantResult with GRANTED or ALREADY_GRANTED and the grant row, or a
            precondition failure (CASE_NOT_FOUND, USER_NOT_FOUND, WRONG_ROLE, INACTIVE)
        """
        try:
            if self.db.query(Case.id).filter(Case.id == case_id).first() is None:
                return GrantResult(GrantOutcome.CASE_NOT_FOUND)

            lawyer = self.db.query(User).filter(User.id == lawyer_id).first()
            if lawyer is None:
                return GrantResult(GrantOutcome.USER_NOT_FOUND)
            if lawyer.role != UserRole.LAWYER:
                logger.warning(f"Grant refused: user {lawyer_id} has role {lawyer.role.value}")
                return GrantResult(GrantOutcome.WRONG_ROLE)
            if not lawyer.is_active:
                return GrantResult(GrantOutcome.INACTIVE)

            existing = self._find(case_id, lawyer_id)
            if existing is not None:
                return GrantResult(GrantOutcome.ALREADY_GRANTED, existing)

            access = CaseAccess(case_id=case_id, lawyer_id=lawyer_id, granted_by=granted_by)
            try:
                with self.db.begin_nested():
                    self.db.add(access)
                    self.db.flush()
            except IntegrityError:
                # Lost a race with a concurrent grant for the same pair
                logger.info(f"Concurrent grant for case {case_id} / lawyer {lawyer_id} collapsed")
                return GrantResult(GrantOutcome.ALREADY_GRANTED, self._find(case_id, lawyer_id))

            if commit:
                self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Grant failed for case {case_id} / lawyer {lawyer_id}: {e}")
            if commit:
                self.db.rollback()
            raise TransientStoreError("Access grant store unavailable") from e

        logger.info(f"Lawyer {lawyer_id} granted access to case {case_id}")
        return GrantResult(GrantOutcome.GRANTED, access)

    def revoke(self, case_id: str, lawyer_id: str) -> RevokeResult:
        """Remove a lawyer's access to a case."""
        try:
            deleted = (
                self.db.query(CaseAccess)
                .filter(CaseAccess.case_id == case_id, CaseAccess.lawyer_id == lawyer_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Revoke failed for case {case_id} / lawyer {lawyer_id}: {e}")
            self.db.rollback()
            raise TransientStoreError("Access grant store unavailable") from e

        if not deleted:
            return RevokeResult(RevokeOutcome.NOT_GRANTED)

        logger.info(f"Lawyer {lawyer_id} access to case {case_id} revoked")
        return RevokeResult(RevokeOutcome.REVOKED)

    def has_grant(self, case_id: str, lawyer_id: str) -> bool:
        try:
            return (
                self.db.query(CaseAccess.id)
                .filter(CaseAccess.case_id == case_id, CaseAccess.lawyer_id == lawyer_id)
                .first()
                is not None
            )
        except SQLAlchemyError as e:
            logger.error(f"Grant lookup failed for case {case_id} / lawyer {lawyer_id}: {e}")
            self.db.rollback()
            raise TransientStoreError("Access grant store unavailable") from e

    def list_case_grants(self, case_id: str) -> List[CaseAccess]:
        """Grants on a case, with the lawyer loaded, oldest first."""
        return (
            self.db.query(CaseAccess)
            .options(joinedload(CaseAccess.lawyer))
            .filter(CaseAccess.case_id == case_id)
            .order_by(CaseAccess.granted_at.asc())
            .all()
        )

    def list_lawyer_grants(self, lawyer_id: str) -> List[CaseAccess]:
        return (
            self.db.query(CaseAccess)
            .filter(CaseAccess.lawyer_id == lawyer_id)
            .order_by(CaseAccess.granted_at.desc())
            .all()
        )
