"""
SQLAlchemy Models for Database
==============================

Schema for the case access-control core:
- Users (clients, lawyers, administrators)
- Cases (owned by a client)
- Case access grants (lawyer may read/act on a case)
- Case access requests (lawyer asks the owner for a grant)
- Revoked tokens (durable half of the logout list)

Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

import enum
from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Integer, Boolean, DateTime, Enum, ForeignKey,
    UniqueConstraint, Index, text
)
from sqlalchemy.orm import relationship, declarative_base
import uuid

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, enum.Enum):
    """Principal kinds. ADMIN is persisted like the other two."""
    CLIENT = "CLIENT"
    LAWYER = "LAWYER"
    ADMIN = "ADMIN"


class CaseStatus(str, enum.Enum):
    """Case lifecycle status"""
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    ARCHIVED = "ARCHIVED"


class CaseCategory(str, enum.Enum):
    """Area of law"""
    CRIMINAL_LAW = "CRIMINAL_LAW"
    CIVIL_LAW = "CIVIL_LAW"
    CORPORATE_LAW = "CORPORATE_LAW"
    FAMILY_LAW = "FAMILY_LAW"
    IMMIGRATION_LAW = "IMMIGRATION_LAW"
    INTELLECTUAL_PROPERTY = "INTELLECTUAL_PROPERTY"
    LABOR_LAW = "LABOR_LAW"
    REAL_ESTATE = "REAL_ESTATE"
    TAX_LAW = "TAX_LAW"
    OTHER = "OTHER"


class RequestStatus(str, enum.Enum):
    """Access request state. APPROVED and REJECTED are terminal."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# =============================================================================
# PRINCIPALS
# =============================================================================

class User(Base):
    """Registered principal"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    password_hash = Column(String(255), nullable=True)
    role = Column(Enum(UserRole), default=UserRole.CLIENT, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    owned_cases = relationship("Case", back_populates="owner", cascade="all, delete-orphan")
    case_grants = relationship(
        "CaseAccess", back_populates="lawyer", cascade="all, delete-orphan",
        foreign_keys="CaseAccess.lawyer_id",
    )
    access_requests = relationship(
        "CaseAccessRequest", back_populates="lawyer", cascade="all, delete-orphan",
        foreign_keys="CaseAccessRequest.lawyer_id",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# =============================================================================
# CASES
# =============================================================================

class Case(Base):
    """Protected resource. owner_id never changes after creation."""
    __tablename__ = "cases"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(Enum(CaseCategory), default=CaseCategory.OTHER, nullable=False)
    status = Column(Enum(CaseStatus), default=CaseStatus.OPEN, nullable=False)
    priority = Column(Integer, default=2, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_case_owner", "owner_id"),
        Index("ix_case_status", "status"),
        Index("ix_case_category", "category"),
    )

    # Relationships
    owner = relationship("User", back_populates="owned_cases")
    lawyer_access = relationship("CaseAccess", back_populates="case", cascade="all, delete-orphan")
    access_requests = relationship("CaseAccessRequest", back_populates="case", cascade="all, delete-orphan")


# =============================================================================
# ACCESS CONTROL
# =============================================================================

class CaseAccess(Base):
    """Live grant: this lawyer may read/act on this case"""
    __tablename__ = "case_access"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    lawyer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    granted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    granted_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # One grant per (case, lawyer); concurrent inserts collapse on this
    __table_args__ = (
        UniqueConstraint("case_id", "lawyer_id", name="uq_case_access_case_lawyer"),
        Index("ix_case_access_lawyer", "lawyer_id"),
    )

    # Relationships
    case = relationship("Case", back_populates="lawyer_access")
    lawyer = relationship("User", back_populates="case_grants", foreign_keys=[lawyer_id])


class CaseAccessRequest(Base):
    """A lawyer's request for a grant, and its review outcome"""
    __tablename__ = "case_access_requests"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    lawyer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(Enum(RequestStatus), default=RequestStatus.PENDING, nullable=False)
    requested_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # At most one PENDING request per (case, lawyer); terminal rows do not block
    __table_args__ = (
        Index(
            "uq_case_access_request_pending",
            "case_id", "lawyer_id",
            unique=True,
            sqlite_where=text("status = 'PENDING'"),
            postgresql_where=text("status = 'PENDING'"),
        ),
        Index("ix_case_access_request_lawyer", "lawyer_id"),
        Index("ix_case_access_request_status", "status"),
    )

    # Relationships
    case = relationship("Case", back_populates="access_requests")
    lawyer = relationship("User", back_populates="access_requests", foreign_keys=[lawyer_id])
    reviewer = relationship("User", foreign_keys=[reviewed_by])

    @property
    def is_terminal(self) -> bool:
        return self.status in (RequestStatus.APPROVED, RequestStatus.REJECTED)


# =============================================================================
# CREDENTIALS
# =============================================================================

class RevokedToken(Base):
    """Access token revoked by logout. Authoritative when Redis is unavailable."""
    __tablename__ = "revoked_tokens"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    jti = Column(String(64), nullable=False, unique=True, index=True)
    token_type = Column(String(20), default="access", nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, default=datetime.utcnow, nullable=False)
