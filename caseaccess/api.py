"""
Case Access Service API
=======================

FastAPI endpoints for case access control.

Auth:
- POST   /api/auth/login                                  - Issue access token
- POST   /api/auth/logout                                 - Revoke current token
- GET    /api/auth/me                                     - Current principal

Cases:
- GET    /api/cases                                       - Cases the caller can access
- POST   /api/cases                                       - Create case (CLIENT)
- POST   /api/cases/accessible                            - Batch access filter
- GET    /api/cases/{case_id}                             - Case detail (case access)

Grants (case owner or ADMIN):
- GET    /api/cases/{case_id}/access                      - Lawyers with access
- POST   /api/cases/{case_id}/access                      - Grant lawyer access
- DELETE /api/cases/{case_id}/access/{lawyer_id}          - Revoke lawyer access

Access requests:
- GET    /api/cases/{case_id}/request-access              - Own access + pending request (LAWYER)
- POST   /api/cases/{case_id}/request-access              - Submit (LAWYER)
- DELETE /api/cases/{case_id}/request-access              - Withdraw (LAWYER)
- GET    /api/cases/{case_id}/requests                    - List (owner or ADMIN)
- POST   /api/cases/{case_id}/requests/{request_id}/review - Approve/reject (owner or ADMIN)
- GET    /api/my-access-requests                          - Caller's requests (LAWYER)
- GET    /api/lawyers/available                           - Active lawyers (CLIENT or ADMIN)

Run with:
    uvicorn caseaccess.api:app --host 0.0.0.0 --port 8000
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Header, Cookie, Depends, APIRouter, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .access_requests import AccessRequestWorkflow
from .authorization import AuthorizationService
from .cases import create_case, get_case, get_cases
from .config import get_settings
from .db.models import CaseAccess, RequestStatus, User, UserRole
from .db.session import get_db, init_db, get_db_session
from .errors import AccessControlError, ErrorKind, OperationResult
from .grants import CaseAccessStore
from .guards import (
    GuardOutcome, GuardResult,
    require_auth, require_role, require_case_access, require_case_ownership,
)
from .principal import Principal, PrincipalResolver, extract_token
from .schemas import (
    LoginRequest, TokenResponse, PrincipalResponse,
    CreateCaseRequest, CaseSummary, CaseListResponse, CaseIdsRequest, CaseIdsResponse,
    GrantAccessRequest, GrantResponse, GrantListResponse, GrantActionResponse,
    ReviewRequest, AccessRequestResponse, AccessRequestListResponse, AccessRequestActionResponse,
    AccessInfoResponse, LawyerSummary, MessageResponse, ErrorResponse, HealthResponse,
)
from .token_blacklist import remove_expired_entries, sync_to_redis

settings = get_settings()

# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.TRANSIENT_STORE: 503,
}

GRANT_ERRORS = {
    400: {"model": ErrorResponse, "description": "Target is not an active lawyer, or no grant to revoke"},
    503: {"model": ErrorResponse, "description": "Access store unavailable"},
}

REQUEST_ERRORS = {
    400: {"model": ErrorResponse, "description": "No pending request to withdraw"},
    409: {"model": ErrorResponse, "description": "Duplicate, already granted, or cooldown active"},
    503: {"model": ErrorResponse, "description": "Access store unavailable"},
}

REVIEW_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid decision, or grant could not be created"},
    404: {"model": ErrorResponse, "description": "Access request not found on this case"},
    409: {"model": ErrorResponse, "description": "Access request already reviewed"},
    503: {"model": ErrorResponse, "description": "Access store unavailable"},
}


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="Case Access Service",
    description="Ownership, lawyer grants and access-request review for legal cases",
    version=settings.service_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

CORS_ALLOW_ORIGINS = settings.cors_origins()
logger.info(f"CORS allow origins: {CORS_ALLOW_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(AccessControlError)
async def access_control_error_handler(request: Request, exc: AccessControlError):
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(exc.kind, 500),
        content={"error": exc.kind.value, "detail": exc.message},
    )


# =============================================================================
# Dependencies
# =============================================================================

def get_token(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    token: Optional[str] = Cookie(None),
) -> Optional[str]:
    return extract_token(authorization, token)


def _raise_for_guard(result: GuardResult) -> Principal:
    if result.outcome == GuardOutcome.UNAUTHENTICATED:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if result.outcome == GuardOutcome.FORBIDDEN:
        raise HTTPException(status_code=403, detail="Forbidden")
    return result.principal


def _raise_for_result(result: OperationResult) -> None:
    if not result.ok:
        raise AccessControlError(result.message, result.error_kind)


def get_current_principal(
    token: Optional[str] = Depends(get_token),
    db: Session = Depends(get_db),
) -> Principal:
    return _raise_for_guard(require_auth(PrincipalResolver(db), token))


def role_required(*roles: UserRole):
    def checker(
        token: Optional[str] = Depends(get_token),
        db: Session = Depends(get_db),
    ) -> Principal:
        return _raise_for_guard(require_role(PrincipalResolver(db), token, roles))
    return checker


def case_access_required(
    case_id: str,
    token: Optional[str] = Depends(get_token),
    db: Session = Depends(get_db),
) -> Principal:
    return _raise_for_guard(
        require_case_access(PrincipalResolver(db), AuthorizationService(db), token, case_id)
    )


def case_owner_required(
    case_id: str,
    token: Optional[str] = Depends(get_token),
    db: Session = Depends(get_db),
) -> Principal:
    return _raise_for_guard(
        require_case_ownership(PrincipalResolver(db), AuthorizationService(db), token, case_id)
    )


def _grant_out(access: CaseAccess) -> GrantResponse:
    return GrantResponse(
        id=access.id,
        case_id=access.case_id,
        lawyer_id=access.lawyer_id,
        granted_at=access.granted_at,
        granted_by=access.granted_by,
        lawyer_email=access.lawyer.email if access.lawyer else None,
    )


# =============================================================================
# Health
# =============================================================================

@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health():
    return HealthResponse(
        status="healthy",
        version=settings.service_version,
        timestamp=datetime.utcnow(),
    )


api_router = APIRouter(prefix="/api")


# =============================================================================
# Auth
# =============================================================================

@api_router.post("/auth/login", response_model=TokenResponse, tags=["Auth"])
async def login(body: LoginRequest, response: Response, db: Session = Depends(get_db)):
    resolver = PrincipalResolver(db)
    user = resolver.authenticate(body.email, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = resolver.issue_token(user)
    response.set_cookie(
        "token", token,
        httponly=True,
        samesite="strict",
        max_age=settings.jwt_access_token_expire_minutes * 60,
    )
    return TokenResponse(access_token=token)


@api_router.post("/auth/logout", response_model=MessageResponse, tags=["Auth"])
async def logout(
    response: Response,
    token: Optional[str] = Depends(get_token),
    db: Session = Depends(get_db),
):
    if not token:
        raise HTTPException(status_code=401, detail="No token provided")

    revoked = PrincipalResolver(db).revoke(token)
    response.delete_cookie("token")
    # An already-invalid token is fine for logout
    return MessageResponse(message="Logged out", outcome="revoked" if revoked else "invalid_token")


@api_router.get("/auth/me", response_model=PrincipalResponse, tags=["Auth"])
async def me(principal: Principal = Depends(get_current_principal)):
    return PrincipalResponse(
        id=principal.id,
        email=principal.email,
        role=principal.role,
        is_active=principal.is_active,
    )


# =============================================================================
# Cases
# =============================================================================

@api_router.get("/cases", response_model=CaseListResponse, tags=["Cases"])
async def list_cases(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    case_ids = AuthorizationService(db).list_accessible_case_ids(principal)
    cases = get_cases(db, case_ids)
    return CaseListResponse(
        cases=[CaseSummary.model_validate(c) for c in cases],
        total=len(cases),
    )


@api_router.post("/cases", response_model=CaseSummary, status_code=201, tags=["Cases"])
async def create_case_endpoint(
    body: CreateCaseRequest,
    principal: Principal = Depends(role_required(UserRole.CLIENT)),
    db: Session = Depends(get_db),
):
    case = create_case(
        db, principal,
        title=body.title,
        category=body.category,
        description=body.description,
        priority=body.priority,
    )
    logger.info(f"Case {case.id} created by {principal.email}")
    return CaseSummary.model_validate(case)


@api_router.post("/cases/accessible", response_model=CaseIdsResponse, tags=["Cases"])
async def filter_accessible_cases(
    body: CaseIdsRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    allowed = AuthorizationService(db).filter_accessible(principal, body.case_ids)
    # Keep caller's order
    return CaseIdsResponse(case_ids=[cid for cid in dict.fromkeys(body.case_ids) if cid in allowed])


@api_router.get("/cases/{case_id}", response_model=CaseSummary, tags=["Cases"])
async def get_case_endpoint(
    case_id: str,
    principal: Principal = Depends(case_access_required),
    db: Session = Depends(get_db),
):
    case = get_case(db, case_id)
    if case is None:
        # Deleted between the guard and this read
        raise HTTPException(status_code=403, detail="Forbidden")
    return CaseSummary.model_validate(case)


# =============================================================================
# Grants
# =============================================================================

@api_router.get("/cases/{case_id}/access", response_model=GrantListResponse, tags=["Access"])
async def list_case_access(
    case_id: str,
    principal: Principal = Depends(case_owner_required),
    db: Session = Depends(get_db),
):
    grants = CaseAccessStore(db).list_case_grants(case_id)
    return GrantListResponse(case_id=case_id, grants=[_grant_out(g) for g in grants])


@api_router.post(
    "/cases/{case_id}/access",
    response_model=GrantActionResponse,
    tags=["Access"],
    responses=GRANT_ERRORS,
)
async def grant_case_access(
    case_id: str,
    body: GrantAccessRequest,
    principal: Principal = Depends(case_owner_required),
    db: Session = Depends(get_db),
):
    result = CaseAccessStore(db).grant(case_id, body.lawyer_id, granted_by=principal.id)
    _raise_for_result(result)
    logger.info(f"{principal.email} granted {body.lawyer_id} access to case {case_id}: {result.outcome.value}")
    return GrantActionResponse(
        message=result.message,
        outcome=result.outcome.value,
        grant=_grant_out(result.record) if result.record else None,
    )


@api_router.delete(
    "/cases/{case_id}/access/{lawyer_id}",
    response_model=MessageResponse,
    tags=["Access"],
    responses=GRANT_ERRORS,
)
async def revoke_case_access(
    case_id: str,
    lawyer_id: str,
    principal: Principal = Depends(case_owner_required),
    db: Session = Depends(get_db),
):
    result = CaseAccessStore(db).revoke(case_id, lawyer_id)
    _raise_for_result(result)
    logger.info(f"{principal.email} revoked {lawyer_id} access to case {case_id}")
    return MessageResponse(message=result.message, outcome=result.outcome.value)


# =============================================================================
# Access Requests
# =============================================================================

@api_router.get("/cases/{case_id}/request-access", response_model=AccessInfoResponse, tags=["Access Requests"])
async def case_access_info(
    case_id: str,
    principal: Principal = Depends(role_required(UserRole.LAWYER)),
    db: Session = Depends(get_db),
):
    """Caller's standing on a case: access, and any pending request"""
    pending = AccessRequestWorkflow(db).pending_request_for(case_id, principal.id)
    return AccessInfoResponse(
        case_id=case_id,
        has_access=AuthorizationService(db).can_access(principal, case_id),
        pending_request=AccessRequestResponse.model_validate(pending) if pending else None,
    )


@api_router.post(
    "/cases/{case_id}/request-access",
    response_model=AccessRequestActionResponse,
    tags=["Access Requests"],
    responses=REQUEST_ERRORS,
)
async def request_case_access(
    case_id: str,
    principal: Principal = Depends(role_required(UserRole.LAWYER)),
    db: Session = Depends(get_db),
):
    result = AccessRequestWorkflow(db).submit(case_id, principal.id)
    _raise_for_result(result)
    return AccessRequestActionResponse(
        message=result.message,
        outcome=result.outcome.value,
        request=AccessRequestResponse.model_validate(result.record),
    )


@api_router.delete(
    "/cases/{case_id}/request-access",
    response_model=MessageResponse,
    tags=["Access Requests"],
    responses=REQUEST_ERRORS,
)
async def withdraw_case_access_request(
    case_id: str,
    principal: Principal = Depends(role_required(UserRole.LAWYER)),
    db: Session = Depends(get_db),
):
    result = AccessRequestWorkflow(db).withdraw(case_id, principal.id)
    _raise_for_result(result)
    return MessageResponse(message=result.message, outcome=result.outcome.value)


@api_router.get("/cases/{case_id}/requests", response_model=AccessRequestListResponse, tags=["Access Requests"])
async def list_case_access_requests(
    case_id: str,
    status: Optional[RequestStatus] = Query(None),
    principal: Principal = Depends(case_owner_required),
    db: Session = Depends(get_db),
):
    requests = AccessRequestWorkflow(db).list_case_requests(case_id, status=status)
    return AccessRequestListResponse(
        requests=[AccessRequestResponse.model_validate(r) for r in requests]
    )


@api_router.post(
    "/cases/{case_id}/requests/{request_id}/review",
    response_model=AccessRequestActionResponse,
    tags=["Access Requests"],
    responses=REVIEW_ERRORS,
)
async def review_case_access_request(
    case_id: str,
    request_id: str,
    body: ReviewRequest,
    principal: Principal = Depends(case_owner_required),
    db: Session = Depends(get_db),
):
    workflow = AccessRequestWorkflow(db)
    existing = workflow.get_request(request_id)
    if existing is None or existing.case_id != case_id:
        raise AccessControlError("Access request not found", ErrorKind.NOT_FOUND)

    result = workflow.review(request_id, principal, body.decision)
    _raise_for_result(result)
    return AccessRequestActionResponse(
        message=result.message,
        outcome=result.outcome.value,
        request=AccessRequestResponse.model_validate(result.record),
    )


@api_router.get("/my-access-requests", response_model=AccessRequestListResponse, tags=["Access Requests"])
async def my_access_requests(
    status: Optional[RequestStatus] = Query(None),
    principal: Principal = Depends(role_required(UserRole.LAWYER)),
    db: Session = Depends(get_db),
):
    requests = AccessRequestWorkflow(db).list_lawyer_requests(principal.id, status=status)
    return AccessRequestListResponse(
        requests=[AccessRequestResponse.model_validate(r) for r in requests]
    )


@api_router.get("/lawyers/available", response_model=List[LawyerSummary], tags=["Access"])
async def available_lawyers(
    principal: Principal = Depends(role_required(UserRole.CLIENT, UserRole.ADMIN)),
    db: Session = Depends(get_db),
):
    lawyers = (
        db.query(User)
        .filter(User.role == UserRole.LAWYER, User.is_active == True)  # noqa: E712
        .order_by(User.last_name.asc(), User.first_name.asc())
        .all()
    )
    return [LawyerSummary.model_validate(u) for u in lawyers]


app.include_router(api_router)


# =============================================================================
# Startup
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    logger.info(f"Starting Case Access Service v{settings.service_version}")
    for warning in settings.validate_security_config():
        logger.warning(warning)

    init_db()

    with get_db_session() as db:
        removed = remove_expired_entries(db)
        if removed:
            logger.info(f"Removed {removed} expired token revocations")
        sync_to_redis(db)

        if settings.seed_demo_data:
            from .seed import seed_demo_data

            seed_demo_data(db)
