"""
Pydantic Schemas for Case Access Service
========================================

Request/response models for the HTTP surface.
"""

from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime

from .access_requests import ReviewDecision
from .db.models import CaseCategory, CaseStatus, RequestStatus, UserRole


# =============================================================================
# AUTH
# =============================================================================

class LoginRequest(BaseModel):
    email: str = Field(..., description="Account email")
    password: str = Field(..., description="Account password")

    class Config:
        json_schema_extra = {
            "example": {"email": "client@demo.com", "password": "demo1234"}
        }


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class PrincipalResponse(BaseModel):
    """The resolved principal for the current request"""
    id: str
    email: str
    role: UserRole
    is_active: bool


# =============================================================================
# CASES
# =============================================================================

class CreateCaseRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: CaseCategory = CaseCategory.OTHER
    priority: int = Field(2, ge=1, le=5)


class CaseSummary(BaseModel):
    id: str
    title: str
    owner_id: str
    status: CaseStatus
    category: CaseCategory
    priority: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CaseListResponse(BaseModel):
    cases: List[CaseSummary]
    total: int


class CaseIdsRequest(BaseModel):
    case_ids: List[str] = Field(default_factory=list, description="Case ids to check")


class CaseIdsResponse(BaseModel):
    case_ids: List[str]


# =============================================================================
# GRANTS
# =============================================================================

class GrantAccessRequest(BaseModel):
    lawyer_id: str = Field(..., min_length=1, description="User id of the lawyer")


class GrantResponse(BaseModel):
    id: str
    case_id: str
    lawyer_id: str
    granted_at: datetime
    granted_by: Optional[str] = None
    lawyer_email: Optional[str] = None

    class Config:
        from_attributes = True


class GrantListResponse(BaseModel):
    case_id: str
    grants: List[GrantResponse]


class GrantActionResponse(BaseModel):
    message: str
    outcome: str
    grant: Optional[GrantResponse] = None


# =============================================================================
# ACCESS REQUESTS
# =============================================================================

class ReviewRequest(BaseModel):
    decision: ReviewDecision


class AccessRequestResponse(BaseModel):
    id: str
    case_id: str
    lawyer_id: str
    status: RequestStatus
    requested_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None

    class Config:
        from_attributes = True


class AccessRequestListResponse(BaseModel):
    requests: List[AccessRequestResponse]


class AccessRequestActionResponse(BaseModel):
    message: str
    outcome: str
    request: Optional[AccessRequestResponse] = None


class AccessInfoResponse(BaseModel):
    """A lawyer's standing on one case"""
    case_id: str
    has_access: bool
    pending_request: Optional[AccessRequestResponse] = None


class LawyerSummary(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str

    class Config:
        from_attributes = True


# =============================================================================
# GENERIC
# =============================================================================

class MessageResponse(BaseModel):
    message: str
    outcome: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error response"""
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
