"""
Request Guard Tests
"""

from caseaccess.authorization import AuthorizationService
from caseaccess.db.models import User, UserRole
from caseaccess.errors import ErrorKind
from caseaccess.guards import (
    GuardOutcome, require_auth, require_role, require_case_access, require_case_ownership,
)
from caseaccess.principal import PrincipalResolver, create_access_token


def _token(db, user_id):
    return create_access_token(db.query(User).filter(User.id == user_id).first())


def test_require_auth(db, seed):
    resolver = PrincipalResolver(db)

    allowed = require_auth(resolver, _token(db, seed["client_1"]))
    assert allowed.allowed
    assert allowed.principal.id == seed["client_1"]
    assert allowed.error_kind is None

    denied = require_auth(resolver, None)
    assert denied.outcome == GuardOutcome.UNAUTHENTICATED
    assert denied.error_kind == ErrorKind.UNAUTHENTICATED
    assert denied.principal is None


def test_require_role(db, seed):
    resolver = PrincipalResolver(db)
    lawyer_token = _token(db, seed["lawyer_1"])

    assert require_role(resolver, lawyer_token, [UserRole.LAWYER]).allowed
    assert require_role(resolver, lawyer_token, [UserRole.CLIENT, UserRole.ADMIN]).outcome == GuardOutcome.FORBIDDEN
    assert require_role(resolver, "garbage", [UserRole.LAWYER]).outcome == GuardOutcome.UNAUTHENTICATED


def test_require_case_access(db, seed):
    resolver = PrincipalResolver(db)
    engine = AuthorizationService(db)

    assert require_case_access(resolver, engine, _token(db, seed["lawyer_1"]), seed["case_1"]).allowed
    assert require_case_access(resolver, engine, _token(db, seed["admin"]), seed["case_2"]).allowed

    denied = require_case_access(resolver, engine, _token(db, seed["lawyer_2"]), seed["case_1"])
    assert denied.outcome == GuardOutcome.FORBIDDEN
    assert denied.error_kind == ErrorKind.FORBIDDEN


def test_missing_case_is_forbidden_not_not_found(db, seed):
    resolver = PrincipalResolver(db)
    engine = AuthorizationService(db)

    result = require_case_access(resolver, engine, _token(db, seed["client_1"]), "no-such-case")
    assert result.outcome == GuardOutcome.FORBIDDEN


def test_require_case_ownership(db, seed):
    resolver = PrincipalResolver(db)
    engine = AuthorizationService(db)

    assert require_case_ownership(resolver, engine, _token(db, seed["client_1"]), seed["case_1"]).allowed
    assert require_case_ownership(resolver, engine, _token(db, seed["admin"]), seed["case_1"]).allowed
    # A granted lawyer can read the case but not manage it
    assert require_case_ownership(
        resolver, engine, _token(db, seed["lawyer_1"]), seed["case_1"]
    ).outcome == GuardOutcome.FORBIDDEN
    assert require_case_ownership(
        resolver, engine, _token(db, seed["client_2"]), seed["case_1"]
    ).outcome == GuardOutcome.FORBIDDEN
    assert require_case_ownership(
        resolver, engine, None, seed["case_1"]
    ).outcome == GuardOutcome.UNAUTHENTICATED


def test_guards_deny_when_store_fails(db, seed, monkeypatch):
    """Store errors resolve to denial, never to an exception"""
    from sqlalchemy.exc import OperationalError
    from caseaccess.db.session import SessionLocal

    token = _token(db, seed["admin"])
    db.commit()

    def boom(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is gone"))

    broken = SessionLocal()
    try:
        monkeypatch.setattr(broken, "query", boom)

        # Resolver cannot read the store
        resolver = PrincipalResolver(broken)
        assert require_auth(resolver, token).outcome == GuardOutcome.UNAUTHENTICATED
        assert require_role(resolver, token, [UserRole.ADMIN]).outcome == GuardOutcome.UNAUTHENTICATED

        # Resolver works, engine cannot read the store
        healthy = PrincipalResolver(db)
        engine = AuthorizationService(broken)
        assert require_case_access(healthy, engine, token, seed["case_1"]).outcome == GuardOutcome.FORBIDDEN
        assert require_case_ownership(healthy, engine, token, seed["case_1"]).outcome == GuardOutcome.FORBIDDEN
    finally:
        broken.close()
