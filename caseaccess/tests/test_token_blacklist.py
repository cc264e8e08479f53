"""
Token Revocation List Tests
===========================

Redis is optional; the revoked_tokens table is the durable copy.
"""

from datetime import datetime, timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from caseaccess import token_blacklist
from caseaccess.db.models import RevokedToken


class FakeRedis:
    """In-memory stand-in for the few Redis calls the revocation list makes"""

    def __init__(self, fail=False):
        self.store = {}
        self.fail = fail

    def setex(self, key, ttl, value):
        if self.fail:
            raise RedisConnectionError("redis down")
        self.store[key] = (ttl, value)

    def exists(self, key):
        if self.fail:
            raise RedisConnectionError("redis down")
        return 1 if key in self.store else 0


@pytest.fixture(autouse=True)
def _reset_client():
    token_blacklist.reset_redis_client()
    yield
    token_blacklist.reset_redis_client()


def test_disabled_redis_falls_back_to_database(db, seed):
    assert token_blacklist.get_redis_client() is None
    assert token_blacklist.is_blacklisted("jti-1") is None

    token_blacklist.revoke_token(db, "jti-1", datetime.utcnow() + timedelta(hours=1))

    assert token_blacklist.is_token_revoked(db, "jti-1") is True
    assert token_blacklist.is_token_revoked(db, "jti-2") is False


def test_revocation_mirrored_to_redis(db, seed, monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(token_blacklist, "get_redis_client", lambda: fake)

    token_blacklist.revoke_token(db, "jti-1", datetime.utcnow() + timedelta(hours=1))

    ttl, value = fake.store[f"{token_blacklist.REVOKED_PREFIX}jti-1"]
    assert 60 <= ttl <= 3600
    assert value == "access"
    assert token_blacklist.is_blacklisted("jti-1") is True


def test_redis_failure_uses_database(db, seed, monkeypatch):
    monkeypatch.setattr(token_blacklist, "get_redis_client", lambda: FakeRedis(fail=True))

    token_blacklist.revoke_token(db, "jti-1", datetime.utcnow() + timedelta(hours=1))

    assert token_blacklist.is_blacklisted("jti-1") is None
    assert token_blacklist.is_token_revoked(db, "jti-1") is True


def test_expired_entries_removed_and_live_ones_synced(db, seed, monkeypatch):
    now = datetime.utcnow()
    db.add_all([
        RevokedToken(jti="old", expires_at=now - timedelta(hours=1)),
        RevokedToken(jti="live", expires_at=now + timedelta(hours=1)),
    ])
    db.commit()

    assert token_blacklist.remove_expired_entries(db) == 1
    assert db.query(RevokedToken).count() == 1

    fake = FakeRedis()
    monkeypatch.setattr(token_blacklist, "get_redis_client", lambda: fake)
    assert token_blacklist.sync_to_redis(db) == 1
    assert f"{token_blacklist.REVOKED_PREFIX}live" in fake.store


def test_malformed_redis_url_falls_back_to_database(db, seed, monkeypatch):
    from caseaccess.config import Settings
    from caseaccess.db.models import User
    from caseaccess.principal import PrincipalResolver, create_access_token

    broken = Settings(redis_enabled=True, redis_url="not-a-redis-url")
    monkeypatch.setattr(token_blacklist, "get_settings", lambda: broken)

    assert token_blacklist.get_redis_client() is None
    assert token_blacklist.is_blacklisted("jti-1") is None

    user = db.query(User).filter(User.id == seed["client_1"]).first()
    token = create_access_token(user)
    principal = PrincipalResolver(db).resolve(token)
    assert principal is not None
    assert principal.id == seed["client_1"]
