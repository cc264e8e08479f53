"""
Error Taxonomy and Operation Results
====================================

Typed outcomes shared by the access-control components.

Error kinds:
- unauthenticated: no or invalid principal
- forbidden: principal resolved but lacks rights (also covers "case does not exist"
  on every accessibility check)
- validation: malformed grant/request input, e.g. granting to a non-lawyer
- conflict: duplicate pending request, already-reviewed request
- not_found: unknown access request id on an operator-facing path
- transient_store: backing store unreachable

The Authorization Engine and Request Guard never raise; they return booleans or
GuardResult. The Grant Store and Request Workflow return the granular results
below so that operator-facing callers can explain why an action failed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Any


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    TRANSIENT_STORE = "transient_store"


class AccessControlError(Exception):
    """Base class for errors raised by the access-control layer."""

    kind: ErrorKind = ErrorKind.FORBIDDEN

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class TransientStoreError(AccessControlError):
    """Raised by the grant store and workflow when the database is unreachable."""

    kind = ErrorKind.TRANSIENT_STORE


# =============================================================================
# OUTCOMES
# =============================================================================

class GrantOutcome(Enum):
    GRANTED = "granted"
    ALREADY_GRANTED = "already_granted"
    CASE_NOT_FOUND = "case_not_found"
    USER_NOT_FOUND = "user_not_found"
    WRONG_ROLE = "wrong_role"
    INACTIVE = "inactive"


class RevokeOutcome(Enum):
    REVOKED = "revoked"
    NOT_GRANTED = "not_granted"


class SubmitOutcome(Enum):
    SUBMITTED = "submitted"
    DUPLICATE_PENDING = "duplicate_pending"
    ALREADY_GRANTED = "already_granted"
    CASE_NOT_FOUND = "case_not_found"
    NOT_A_LAWYER = "not_a_lawyer"
    INACTIVE = "inactive"
    COOLDOWN_ACTIVE = "cooldown_active"


class WithdrawOutcome(Enum):
    WITHDRAWN = "withdrawn"
    NO_PENDING_REQUEST = "no_pending_request"


class ReviewOutcome(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    ALREADY_REVIEWED = "already_reviewed"
    GRANT_FAILED = "grant_failed"
    INVALID_DECISION = "invalid_decision"


# Outcome -> error kind. Outcomes missing from this map are successes.
ERROR_KINDS = {
    GrantOutcome.CASE_NOT_FOUND: ErrorKind.FORBIDDEN,
    GrantOutcome.USER_NOT_FOUND: ErrorKind.VALIDATION,
    GrantOutcome.WRONG_ROLE: ErrorKind.VALIDATION,
    GrantOutcome.INACTIVE: ErrorKind.VALIDATION,
    RevokeOutcome.NOT_GRANTED: ErrorKind.VALIDATION,
    SubmitOutcome.DUPLICATE_PENDING: ErrorKind.CONFLICT,
    SubmitOutcome.ALREADY_GRANTED: ErrorKind.CONFLICT,
    SubmitOutcome.CASE_NOT_FOUND: ErrorKind.FORBIDDEN,
    SubmitOutcome.NOT_A_LAWYER: ErrorKind.FORBIDDEN,
    SubmitOutcome.INACTIVE: ErrorKind.FORBIDDEN,
    SubmitOutcome.COOLDOWN_ACTIVE: ErrorKind.CONFLICT,
    WithdrawOutcome.NO_PENDING_REQUEST: ErrorKind.VALIDATION,
    ReviewOutcome.NOT_FOUND: ErrorKind.NOT_FOUND,
    ReviewOutcome.FORBIDDEN: ErrorKind.FORBIDDEN,
    ReviewOutcome.ALREADY_REVIEWED: ErrorKind.CONFLICT,
    ReviewOutcome.GRANT_FAILED: ErrorKind.VALIDATION,
    ReviewOutcome.INVALID_DECISION: ErrorKind.VALIDATION,
}

MESSAGES = {
    GrantOutcome.GRANTED: "Access granted",
    GrantOutcome.ALREADY_GRANTED: "Lawyer already has access to this case",
    GrantOutcome.CASE_NOT_FOUND: "Case not accessible",
    GrantOutcome.USER_NOT_FOUND: "Lawyer not found",
    GrantOutcome.WRONG_ROLE: "Access can only be granted to lawyers",
    GrantOutcome.INACTIVE: "Lawyer account is not active",
    RevokeOutcome.REVOKED: "Access revoked",
    RevokeOutcome.NOT_GRANTED: "Lawyer does not have access to this case",
    SubmitOutcome.SUBMITTED: "Access request submitted",
    SubmitOutcome.DUPLICATE_PENDING: "An access request for this case is already pending",
    SubmitOutcome.ALREADY_GRANTED: "You already have access to this case",
    SubmitOutcome.CASE_NOT_FOUND: "Case not accessible",
    SubmitOutcome.NOT_A_LAWYER: "Only lawyers can request case access",
    SubmitOutcome.INACTIVE: "Account is not active",
    SubmitOutcome.COOLDOWN_ACTIVE: "A recent request for this case was rejected; try again later",
    WithdrawOutcome.WITHDRAWN: "Access request withdrawn",
    WithdrawOutcome.NO_PENDING_REQUEST: "No pending access request for this case",
    ReviewOutcome.APPROVED: "Access request approved",
    ReviewOutcome.REJECTED: "Access request rejected",
    ReviewOutcome.NOT_FOUND: "Access request not found",
    ReviewOutcome.FORBIDDEN: "Only the case owner or an administrator can review requests",
    ReviewOutcome.ALREADY_REVIEWED: "Access request has already been reviewed",
    ReviewOutcome.GRANT_FAILED: "Access could not be granted; request left pending",
    ReviewOutcome.INVALID_DECISION: "Decision must be APPROVE or REJECT",
}


@dataclass
class OperationResult:
    """Outcome of a grant/revoke/submit/withdraw/review call, plus the affected row."""
    outcome: Enum
    record: Optional[Any] = None
    detail: Optional[Enum] = None

    @property
    def ok(self) -> bool:
        return self.outcome not in ERROR_KINDS

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return ERROR_KINDS.get(self.outcome)

    @property
    def message(self) -> str:
        text = MESSAGES.get(self.outcome, str(self.outcome.value))
        if self.detail is not None:
            text = f"{text} ({MESSAGES.get(self.detail, self.detail.value)})"
        return text


# Named aliases used in signatures
GrantResult = OperationResult
RevokeResult = OperationResult
SubmitResult = OperationResult
WithdrawResult = OperationResult
ReviewResult = OperationResult
