"""
Access Request Workflow
=======================

State machine for a lawyer's request for access to a case:

    PENDING --approve--> APPROVED   (grant created in the same transaction)
    PENDING --reject---> REJECTED
    PENDING --withdraw-> (row deleted)

APPROVED and REJECTED are terminal. Reviewing a terminal request reports
ALREADY_REVIEWED and changes nothing.

Re-request policy: a lawyer may request again after a REJECTED request once
the cooldown (ACCESS_REQUEST_COOLDOWN_HOURS) has passed since the review, and
after an APPROVED request whose grant was later revoked.
"""

import enum
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .authorization import AuthorizationService, principal_can_review
from .config import get_settings
from .db.models import Case, CaseAccessRequest, RequestStatus, User, UserRole
from .errors import (
    ReviewOutcome, ReviewResult,
    SubmitOutcome, SubmitResult,
    WithdrawOutcome, WithdrawResult,
    TransientStoreError,
)
from .grants import CaseAccessStore
from .principal import Principal

logger = logging.getLogger(__name__)


class ReviewDecision(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class AccessRequestWorkflow:
    """Submit, review and withdraw case access requests"""

    def __init__(
        self,
        db: Session,
        authz: Optional[AuthorizationService] = None,
        grants: Optional[CaseAccessStore] = None,
        cooldown_hours: Optional[int] = None,
    ):
        self.db = db
        self.authz = authz or AuthorizationService(db)
        self.grants = grants or CaseAccessStore(db)
        if cooldown_hours is None:
            cooldown_hours = get_settings().access_request_cooldown_hours
        self.cooldown = timedelta(hours=max(cooldown_hours, 0))

    def _pending(self, case_id: str, lawyer_id: str) -> Optional[CaseAccessRequest]:
        return (
            self.db.query(CaseAccessRequest)
            .filter(
                CaseAccessRequest.case_id == case_id,
                CaseAccessRequest.lawyer_id == lawyer_id,
                CaseAccessRequest.status == RequestStatus.PENDING,
            )
            .first()
        )

    def _last_rejection(self, case_id: str, lawyer_id: str) -> Optional[CaseAccessRequest]:
        return (
            self.db.query(CaseAccessRequest)
            .filter(
                CaseAccessRequest.case_id == case_id,
                CaseAccessRequest.lawyer_id == lawyer_id,
                CaseAccessRequest.status == RequestStatus.REJECTED,
            )
            .order_by(CaseAccessRequest.reviewed_at.desc())
            .first()
        )

    # -------------------------------------------------------------------------
    # Lawyer actions
    # -------------------------------------------------------------------------

    def submit(self, case_id: str, lawyer_id: str) -> SubmitResult:
        """Create a PENDING request for lawyer_id on case_id."""
        try:
            lawyer = self.db.query(User).filter(User.id == lawyer_id).first()
            if lawyer is None or lawyer.role != UserRole.LAWYER:
                return SubmitResult(SubmitOutcome.NOT_A_LAWYER)
            if not lawyer.is_active:
                return SubmitResult(SubmitOutcome.INACTIVE)

            if self.db.query(Case.id).filter(Case.id == case_id).first() is None:
                return SubmitResult(SubmitOutcome.CASE_NOT_FOUND)

            if self.grants.has_grant(case_id, lawyer_id):
                return SubmitResult(SubmitOutcome.ALREADY_GRANTED)

            pending = self._pending(case_id, lawyer_id)
            if pending is not None:
                return SubmitResult(SubmitOutcome.DUPLICATE_PENDING, pending)

            rejected = self._last_rejection(case_id, lawyer_id)
            if rejected is not None and rejected.reviewed_at is not None:
                if datetime.utcnow() - rejected.reviewed_at < self.cooldown:
                    return SubmitResult(SubmitOutcome.COOLDOWN_ACTIVE, rejected)

            request = CaseAccessRequest(case_id=case_id, lawyer_id=lawyer_id)
            try:
                with self.db.begin_nested():
                    self.db.add(request)
                    self.db.flush()
            except IntegrityError:
                # Concurrent submit won the partial unique index
                return SubmitResult(SubmitOutcome.DUPLICATE_PENDING, self._pending(case_id, lawyer_id))

            self.db.commit()
        except (SQLAlchemyError, TransientStoreError) as e:
            logger.error(f"Access request submit failed for case {case_id} / lawyer {lawyer_id}: {e}")
            self.db.rollback()
            raise TransientStoreError("Access request store unavailable") from e

        logger.info(f"Lawyer {lawyer_id} requested access to case {case_id}")
        return SubmitResult(SubmitOutcome.SUBMITTED, request)

    def withdraw(self, case_id: str, lawyer_id: str) -> WithdrawResult:
        """Delete the lawyer's PENDING request for a case."""
        try:
            deleted = (
                self.db.query(CaseAccessRequest)
                .filter(
                    CaseAccessRequest.case_id == case_id,
                    CaseAccessRequest.lawyer_id == lawyer_id,
                    CaseAccessRequest.status == RequestStatus.PENDING,
                )
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Access request withdraw failed for case {case_id} / lawyer {lawyer_id}: {e}")
            self.db.rollback()
            raise TransientStoreError("Access request store unavailable") from e

        if not deleted:
            return WithdrawResult(WithdrawOutcome.NO_PENDING_REQUEST)

        logger.info(f"Lawyer {lawyer_id} withdrew access request for case {case_id}")
        return WithdrawResult(WithdrawOutcome.WITHDRAWN)

    # -------------------------------------------------------------------------
    # Reviewer actions
    # -------------------------------------------------------------------------

    def review(self, request_id: str, reviewer: Principal, decision: ReviewDecision) -> ReviewResult:
        """
        Approve or reject a PENDING request.

        Only an ADMIN or the case owner may review. On APPROVE the status change
        and the grant insert commit together; if the grant cannot be created the
        whole transaction is rolled back and the request stays PENDING.
        """
        try:
            decision = ReviewDecision(decision)
        except ValueError:
            logger.warning(f"Review of request {request_id} refused: invalid decision {decision!r}")
            return ReviewResult(ReviewOutcome.INVALID_DECISION)

        try:
            request = (
                self.db.query(CaseAccessRequest)
                .filter(CaseAccessRequest.id == request_id)
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(f"Access request lookup failed for {request_id}: {e}")
            self.db.rollback()
            raise TransientStoreError("Access request store unavailable") from e

        if request is None:
            return ReviewResult(ReviewOutcome.NOT_FOUND)

        if not principal_can_review(self.authz, reviewer, request.case_id):
            logger.warning(
                f"Review denied: {reviewer.email} ({reviewer.role.value}) on request {request_id}"
            )
            return ReviewResult(ReviewOutcome.FORBIDDEN)

        if request.is_terminal:
            return ReviewResult(ReviewOutcome.ALREADY_REVIEWED, request)

        if decision == ReviewDecision.APPROVE:
            approve = True
            new_status = RequestStatus.APPROVED
        elif decision == ReviewDecision.REJECT:
            approve = False
            new_status = RequestStatus.REJECTED
        else:
            return ReviewResult(ReviewOutcome.INVALID_DECISION)

        try:
            # Compare-and-set: only one reviewer can move the row out of PENDING
            updated = (
                self.db.query(CaseAccessRequest)
                .filter(
                    CaseAccessRequest.id == request_id,
                    CaseAccessRequest.status == RequestStatus.PENDING,
                )
                .update(
                    {
                        CaseAccessRequest.status: new_status,
                        CaseAccessRequest.reviewed_at: datetime.utcnow(),
                        CaseAccessRequest.reviewed_by: reviewer.id,
                    },
                    synchronize_session=False,
                )
            )
            if not updated:
                self.db.rollback()
                return ReviewResult(ReviewOutcome.ALREADY_REVIEWED, request)

            if approve:
                grant_result = self.grants.grant(
                    request.case_id, request.lawyer_id, granted_by=reviewer.id, commit=False
                )
                if not grant_result.ok:
                    self.db.rollback()
                    logger.warning(
                        f"Approval of request {request_id} rolled back: grant {grant_result.outcome.value}"
                    )
                    return ReviewResult(ReviewOutcome.GRANT_FAILED, request, detail=grant_result.outcome)

            self.db.commit()
        except (SQLAlchemyError, TransientStoreError) as e:
            logger.error(f"Review of access request {request_id} failed: {e}")
            self.db.rollback()
            raise TransientStoreError("Access request store unavailable") from e

        self.db.refresh(request)
        logger.info(f"Access request {request_id} {new_status.value.lower()} by {reviewer.email}")
        outcome = ReviewOutcome.APPROVED if approve else ReviewOutcome.REJECTED
        return ReviewResult(outcome, request)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_request(self, request_id: str) -> Optional[CaseAccessRequest]:
        return self.db.query(CaseAccessRequest).filter(CaseAccessRequest.id == request_id).first()

    def pending_request_for(self, case_id: str, lawyer_id: str) -> Optional[CaseAccessRequest]:
        return self._pending(case_id, lawyer_id)

    def list_case_requests(
        self, case_id: str, status: Optional[RequestStatus] = None
    ) -> List[CaseAccessRequest]:
        """Requests on a case (owner view), newest first."""
        query = (
            self.db.query(CaseAccessRequest)
            .options(joinedload(CaseAccessRequest.lawyer))
            .filter(CaseAccessRequest.case_id == case_id)
        )
        if status:
            query = query.filter(CaseAccessRequest.status == status)
        return query.order_by(CaseAccessRequest.requested_at.desc()).all()

    def list_lawyer_requests(
        self, lawyer_id: str, status: Optional[RequestStatus] = None
    ) -> List[CaseAccessRequest]:
        """A lawyer's own requests, newest first."""
        query = (
            self.db.query(CaseAccessRequest)
            .options(joinedload(CaseAccessRequest.case))
            .filter(CaseAccessRequest.lawyer_id == lawyer_id)
        )
        if status:
            query = query.filter(CaseAccessRequest.status == status)
        return query.order_by(CaseAccessRequest.requested_at.desc()).all()
