"""
Principal Resolution Tests
==========================

Token decoding, revocation and role lookup.
"""

from datetime import timedelta

import jwt

from caseaccess.config import get_settings
from caseaccess.db.models import RevokedToken, User, UserRole
from caseaccess.principal import (
    PrincipalResolver, create_access_token, decode_token, extract_token,
    get_password_hash, verify_password, is_password_too_long,
)


def _user(db, user_id):
    return db.query(User).filter(User.id == user_id).first()


class TestExtractToken:
    def test_bearer_header(self):
        assert extract_token("Bearer abc.def") == "abc.def"

    def test_header_wins_over_cookie(self):
        assert extract_token("Bearer from-header", "from-cookie") == "from-header"

    def test_cookie_fallback(self):
        assert extract_token(None, "from-cookie") == "from-cookie"
        assert extract_token("Basic dXNlcjpwdw==", "from-cookie") == "from-cookie"

    def test_nothing(self):
        assert extract_token(None, None) is None
        assert extract_token("Bearer ", "  ") is None


class TestPasswords:
    def test_hash_and_verify(self):
        hashed = get_password_hash("secret123")
        assert verify_password("secret123", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_long_password_refused(self):
        assert is_password_too_long("x" * 73) is True
        assert verify_password("x" * 73, get_password_hash("short")) is False


class TestResolve:
    def test_valid_token_resolves(self, db, seed):
        token = create_access_token(_user(db, seed["lawyer_1"]))

        principal = PrincipalResolver(db).resolve(token)

        assert principal is not None
        assert principal.id == seed["lawyer_1"]
        assert principal.role == UserRole.LAWYER
        assert principal.is_lawyer

    def test_missing_or_garbage_token(self, db, seed):
        resolver = PrincipalResolver(db)
        assert resolver.resolve(None) is None
        assert resolver.resolve("") is None
        assert resolver.resolve("not-a-jwt") is None

    def test_expired_token(self, db, seed):
        token = create_access_token(_user(db, seed["client_1"]), expires_delta=timedelta(seconds=-5))
        assert PrincipalResolver(db).resolve(token) is None

    def test_wrong_signature(self, db, seed):
        settings = get_settings()
        token = jwt.encode(
            {"sub": seed["admin"], "type": "access", "jti": "forged"},
            "another-secret-key-that-does-not-match-the-server",
            algorithm=settings.jwt_algorithm,
        )
        assert PrincipalResolver(db).resolve(token) is None

    def test_role_comes_from_user_row_not_claims(self, db, seed):
        """A role claim in the token cannot escalate privileges"""
        settings = get_settings()
        token = jwt.encode(
            {"sub": seed["client_1"], "type": "access", "jti": "abc123", "role": "ADMIN"},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        principal = PrincipalResolver(db).resolve(token)
        assert principal.role == UserRole.CLIENT

    def test_non_access_token_type_rejected(self, db, seed):
        settings = get_settings()
        token = jwt.encode(
            {"sub": seed["client_1"], "type": "refresh", "jti": "abc123"},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        assert PrincipalResolver(db).resolve(token) is None

    def test_inactive_user_rejected(self, db, seed):
        user = _user(db, seed["client_1"])
        token = create_access_token(user)
        user.is_active = False
        db.commit()

        assert PrincipalResolver(db).resolve(token) is None

    def test_role_change_applies_to_existing_token(self, db, seed):
        user = _user(db, seed["lawyer_2"])
        token = create_access_token(user)
        user.role = UserRole.ADMIN
        db.commit()

        assert PrincipalResolver(db).resolve(token).role == UserRole.ADMIN


class TestAuthenticateAndRevoke:
    def test_authenticate(self, db, seed):
        resolver = PrincipalResolver(db)
        user = resolver.authenticate("client1@test.local", "secret123")
        assert user is not None
        assert user.last_login is not None

        assert resolver.authenticate("client1@test.local", "wrong") is None
        assert resolver.authenticate("nobody@test.local", "secret123") is None

    def test_revoked_token_no_longer_resolves(self, db, seed):
        resolver = PrincipalResolver(db)
        token = resolver.issue_token(_user(db, seed["client_1"]))
        assert resolver.resolve(token) is not None

        assert resolver.revoke(token) is True

        assert resolver.resolve(token) is None
        jti = decode_token(token)["jti"]
        assert db.query(RevokedToken).filter(RevokedToken.jti == jti).count() == 1

    def test_revoke_is_idempotent(self, db, seed):
        resolver = PrincipalResolver(db)
        token = resolver.issue_token(_user(db, seed["client_1"]))
        resolver.revoke(token)
        resolver.revoke(token)

        jti = decode_token(token)["jti"]
        assert db.query(RevokedToken).filter(RevokedToken.jti == jti).count() == 1

    def test_revoke_invalid_token(self, db, seed):
        assert PrincipalResolver(db).revoke("not-a-jwt") is False
