"""
Request Guards
==============

Decision functions wrapping protected operations. Each guard resolves the
principal, consults the Authorization Engine, and returns a GuardResult.

Guards never raise and have no side effects besides reads, so every guard is
safe to retry. Accessibility failures are always FORBIDDEN, never "not found".
"""

import enum
from dataclasses import dataclass
from typing import Iterable, Optional

from .authorization import AuthorizationService
from .db.models import UserRole
from .errors import ErrorKind
from .principal import Principal, PrincipalResolver


class GuardOutcome(str, enum.Enum):
    ALLOWED = "allowed"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class GuardResult:
    outcome: GuardOutcome
    principal: Optional[Principal] = None

    @property
    def allowed(self) -> bool:
        return self.outcome == GuardOutcome.ALLOWED

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        if self.outcome == GuardOutcome.UNAUTHENTICATED:
            return ErrorKind.UNAUTHENTICATED
        if self.outcome == GuardOutcome.FORBIDDEN:
            return ErrorKind.FORBIDDEN
        return None


def require_auth(resolver: PrincipalResolver, token: Optional[str]) -> GuardResult:
    principal = resolver.resolve(token)
    if principal is None:
        return GuardResult(GuardOutcome.UNAUTHENTICATED)
    return GuardResult(GuardOutcome.ALLOWED, principal)


def require_role(
    resolver: PrincipalResolver,
    token: Optional[str],
    roles: Iterable[UserRole],
) -> GuardResult:
    result = require_auth(resolver, token)
    if not result.allowed:
        return result
    if result.principal.role not in set(roles):
        return GuardResult(GuardOutcome.FORBIDDEN, result.principal)
    return result


def require_case_access(
    resolver: PrincipalResolver,
    engine: AuthorizationService,
    token: Optional[str],
    case_id: str,
) -> GuardResult:
    result = require_auth(resolver, token)
    if not result.allowed:
        return result
    if not engine.can_access(result.principal, case_id):
        return GuardResult(GuardOutcome.FORBIDDEN, result.principal)
    return result


def require_case_ownership(
    resolver: PrincipalResolver,
    engine: AuthorizationService,
    token: Optional[str],
    case_id: str,
) -> GuardResult:
    """Owner of the case, or any ADMIN (is_owner short-circuits for admins)."""
    result = require_auth(resolver, token)
    if not result.allowed:
        return result
    if not engine.is_owner(result.principal, case_id):
        return GuardResult(GuardOutcome.FORBIDDEN, result.principal)
    return result
