"""
Principal Resolution
====================

Turns a request's credential material into a verified Principal.

Credential material:
- `Authorization: Bearer <jwt>` header (preferred)
- `token` cookie

A token resolves only if:
1. The signature and expiry check out and it is an access token
2. Its jti is not on the revocation list (Redis, then database)
3. The user row still exists and is active

The role is always read from the user row, never from token claims. Nothing
is cached in-process; every resolution reads the shared store.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import get_settings
from .db.models import User, UserRole
from .token_blacklist import is_token_revoked, revoke_token

logger = logging.getLogger(__name__)


# =============================================================================
# PRINCIPAL
# =============================================================================

@dataclass(frozen=True)
class Principal:
    """Resolved, authenticated actor"""
    id: str
    email: str
    role: UserRole
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_lawyer(self) -> bool:
        return self.role == UserRole.LAWYER

    @property
    def is_client(self) -> bool:
        return self.role == UserRole.CLIENT

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(
            id=user.id,
            email=user.email,
            role=UserRole(user.role),
            is_active=bool(user.is_active),
        )


# =============================================================================
# PASSWORD HASHING
# =============================================================================

# bcrypt truncates passwords at 72 bytes; reject longer ones instead.
MAX_PASSWORD_BYTES = 72

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def is_password_too_long(password: str) -> bool:
    """Return True if password exceeds bcrypt 72-byte limit."""
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash"""
    if is_password_too_long(plain_password):
        logger.warning("Auth failed: password exceeds bcrypt 72-byte limit")
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.warning(f"Auth failed: invalid password format ({e})")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password"""
    if is_password_too_long(password):
        raise ValueError("Password exceeds bcrypt 72-byte limit")
    return pwd_context.hash(password)


# =============================================================================
# JWT TOKEN HANDLING
# =============================================================================

def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token for a user"""
    settings = get_settings()
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )
    to_encode = {
        "sub": user.id,
        "email": user.email,
        "role": UserRole(user.role).value,
        "exp": expire,
        "type": "access",
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token"""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.warning(f"Invalid JWT token: {e}")
        return None


def extract_token(authorization: Optional[str], cookie_token: Optional[str] = None) -> Optional[str]:
    """Pick the bearer token from the Authorization header, else the cookie."""
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        if token:
            return token
    if cookie_token:
        return cookie_token.strip() or None
    return None


# =============================================================================
# RESOLVER
# =============================================================================

class PrincipalResolver:
    """Resolves credentials into a Principal using the shared store"""

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, token: Optional[str]) -> Optional[Principal]:
        """
        Resolve a bearer token.

        Returns:
            Principal if the token is valid, unrevoked and its user is active,
            None otherwise. Never raises.
        """
        if not token:
            return None

        payload = decode_token(token)
        if not payload or payload.get("type") != "access":
            return None

        user_id = payload.get("sub")
        jti = payload.get("jti")
        if not user_id or not jti:
            logger.warning("Auth failed: token missing sub/jti")
            return None

        try:
            if is_token_revoked(self.db, jti):
                logger.warning(f"Auth failed: token {jti} has been revoked")
                return None

            user = self.db.query(User).filter(User.id == user_id).first()
        except SQLAlchemyError as e:
            logger.error(f"Principal resolution failed: {e}")
            self.db.rollback()
            return None

        if not user or not user.is_active:
            logger.warning(f"Auth failed: user {user_id} not found or inactive")
            return None

        return Principal.from_user(user)

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate a user by email and password.

        Returns:
            User if authentication succeeds, None otherwise
        """
        user = self.db.query(User).filter(User.email == email, User.is_active == True).first()  # noqa: E712
        if not user:
            logger.warning(f"Auth failed: email {email} not found")
            return None

        if not user.password_hash:
            logger.warning(f"Auth failed: user {user.id} has no password set")
            return None

        if not verify_password(password, user.password_hash):
            logger.warning(f"Auth failed: invalid password for user {user.id}")
            return None

        user.last_login = datetime.utcnow()
        self.db.commit()
        return user

    def issue_token(self, user: User) -> str:
        return create_access_token(user)

    def revoke(self, token: str) -> bool:
        """Revoke an access token (logout). Returns False if it was already invalid."""
        payload = decode_token(token)
        if not payload or not payload.get("jti"):
            return False

        exp = payload.get("exp")
        expires_at = datetime.utcfromtimestamp(exp) if exp else datetime.utcnow() + timedelta(hours=1)
        revoke_token(
            self.db,
            jti=payload["jti"],
            expires_at=expires_at,
            user_id=payload.get("sub"),
            token_type=payload.get("type", "access"),
        )
        return True
