"""
Token Revocation List
=====================

Redis-backed revocation list for fast JWT logout checks. The revoked_tokens
table is the durable copy and is consulted whenever Redis has no definitive
answer, so no process ever keeps its own view of which tokens are live.
"""

import logging
from datetime import datetime
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy.orm import Session

from .config import get_settings
from .db.models import RevokedToken

logger = logging.getLogger(__name__)

REVOKED_PREFIX = "token:revoked:"

_redis_client: Optional[Redis] = None


def get_redis_client() -> Optional[Redis]:
    """Get Redis client (singleton). None when disabled or unreachable."""
    global _redis_client

    settings = get_settings()
    if not settings.redis_enabled:
        return None

    if _redis_client is None:
        try:
            client = Redis.from_url(settings.redis_url, decode_responses=True)
            client.ping()
            _redis_client = client
        except (RedisError, ValueError) as e:
            # ValueError: malformed REDIS_URL
            logger.warning(f"Redis connection failed: {e}. Using database fallback.")
            return None

    return _redis_client


def reset_redis_client() -> None:
    """Drop the cached client (tests, config reloads)."""
    global _redis_client
    _redis_client = None


def add_to_blacklist(jti: str, expires_at: datetime, token_type: str = "access") -> bool:
    """
    Add a token JTI to the Redis revocation list.

    Returns:
        True if stored in Redis, False if only the database copy will exist
    """
    redis = get_redis_client()

    if redis:
        try:
            # Keep the key until the token would have expired anyway
            ttl_seconds = max(int((expires_at - datetime.utcnow()).total_seconds()), 60)
            redis.setex(f"{REVOKED_PREFIX}{jti}", ttl_seconds, token_type)
            return True
        except RedisError as e:
            logger.warning(f"Redis revocation add failed: {e}")

    return False


def is_blacklisted(jti: str) -> Optional[bool]:
    """
    Check the Redis revocation list.

    Returns:
        True if revoked, None if the database must be consulted
    """
    redis = get_redis_client()

    if redis:
        try:
            if redis.exists(f"{REVOKED_PREFIX}{jti}"):
                return True
        except RedisError as e:
            logger.warning(f"Redis revocation check failed: {e}")

    return None


def is_token_revoked(db: Session, jti: str) -> bool:
    """Redis first, then the revoked_tokens table."""
    if is_blacklisted(jti) is True:
        return True
    return db.query(RevokedToken.id).filter(RevokedToken.jti == jti).first() is not None


def revoke_token(
    db: Session,
    jti: str,
    expires_at: datetime,
    user_id: Optional[str] = None,
    token_type: str = "access",
) -> None:
    """Persist a revocation and mirror it to Redis."""
    add_to_blacklist(jti, expires_at, token_type)

    existing = db.query(RevokedToken).filter(RevokedToken.jti == jti).first()
    if not existing:
        db.add(RevokedToken(
            jti=jti,
            token_type=token_type,
            user_id=user_id,
            expires_at=expires_at,
        ))
        db.commit()


def remove_expired_entries(db: Session) -> int:
    """
    Clean up expired revocation entries from the database.

    Should be run periodically (e.g., daily cron job).
    """
    result = db.query(RevokedToken).filter(
        RevokedToken.expires_at < datetime.utcnow()
    ).delete()

    db.commit()
    return result


def sync_to_redis(db: Session, max_entries: int = 10000) -> int:
    """
    Copy live revocations from the database to Redis.

    Useful on startup or after a Redis restart.
    """
    redis = get_redis_client()
    if not redis:
        return 0

    entries = db.query(RevokedToken).filter(
        RevokedToken.expires_at > datetime.utcnow()
    ).limit(max_entries).all()

    count = 0
    for entry in entries:
        if add_to_blacklist(entry.jti, entry.expires_at, entry.token_type):
            count += 1

    logger.info(f"Synced {count} revoked tokens to Redis")
    return count
