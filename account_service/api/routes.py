"""HTTP route definitions for the account service."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr, Field, field_validator

from ..config import get_settings
from ..domain.account import Account, Role, normalize_email
from ..domain.contracts import ProfileUpdate, RegisterInput
from ..domain.errors import (
    AccessDenied,
    AccountError,
    AccountNotFound,
    EmailAlreadyRegistered,
    HashingError,
    TokenExpired,
)
from ..domain.service import AccountService, TokenBundle
from ..security.rate_limiter import build_rate_limiter
from ..security.tokens import TokenClaims

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")

_bearer = HTTPBearer(auto_error=False)


class AccountResponse(BaseModel):
    """Serialised representation of an `Account`; the password hash is never included."""

    id: int
    email: str
    name: str
    role: Role
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            id=account.account_id,
            email=account.email,
            name=account.name,
            role=account.role,
            is_active=account.is_active,
            last_login_at=account.last_login_at,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class RegisterRequest(BaseModel):
    """Payload accepted when registering a new user."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=100)
    name: str = Field(..., min_length=1, max_length=50)

    @field_validator("password")
    @classmethod
    def _reject_nul(cls, value: str) -> str:
        if "\x00" in value:
            raise ValueError("password must not contain NUL characters")
        return value


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UpdateProfileRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=50)


class AuthResponse(BaseModel):
    """Account plus the bearer token issued for it."""

    account: AccountResponse
    access_token: str
    token_type: str = "bearer"
    expires_in: int

    @classmethod
    def build(cls, account: Account, bundle: TokenBundle) -> "AuthResponse":
        return cls(
            account=AccountResponse.from_domain(account),
            access_token=bundle.access_token,
            token_type=bundle.token_type,
            expires_in=bundle.expires_in,
        )


class AccountPageResponse(BaseModel):
    """Envelope for the paginated admin listing."""

    items: list[AccountResponse]
    page: int
    limit: int
    total: int
    pages: int


settings = get_settings()

rate_limiter = build_rate_limiter(settings)


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    service: AccountService = Depends(get_service),
) -> TokenClaims:
    """Authenticate the bearer token against the live account record."""
    if credentials is None or not credentials.credentials:
        raise _unauthorized("missing_token", "access token required")
    try:
        return service.authenticate(credentials.credentials)
    except TokenExpired as exc:
        raise _unauthorized(exc.code, str(exc), expired_at=exc.expired_at.isoformat()) from exc
    except AccountError as exc:
        raise _unauthorized(exc.code, str(exc)) from exc


def _enforce_rate_limit(key: str) -> None:
    if not rate_limiter.allow(key):
        logger.warning("rate limit exceeded key=%s", key.split(":", 1)[0])
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="rate limited")


@router.post("/users/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: Request,
    payload: RegisterRequest,
    service: AccountService = Depends(get_service),
) -> AuthResponse:
    """Register an account and return it with a fresh access token."""
    client = request.client.host if request.client else "unknown"
    _enforce_rate_limit(f"register:{client}")
    try:
        account = service.register(
            RegisterInput(email=payload.email, password=payload.password, name=payload.name)
        )
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return AuthResponse.build(account, service.issue_token(account))


@router.post("/users/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_service),
) -> AuthResponse:
    """Exchange email and password for an access token."""
    _enforce_rate_limit(f"login:{normalize_email(payload.email)}")
    try:
        account = service.login(payload.email, payload.password)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return AuthResponse.build(account, service.issue_token(account))


@router.get("/users/profile", response_model=AccountResponse)
def get_profile(
    claims: TokenClaims = Depends(current_claims),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    try:
        account = service.get_profile(claims, claims.subject_id)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return AccountResponse.from_domain(account)


@router.put("/users/profile", response_model=AccountResponse)
def update_profile(
    payload: UpdateProfileRequest,
    claims: TokenClaims = Depends(current_claims),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    try:
        account = service.update_profile(
            claims, claims.subject_id, ProfileUpdate(name=payload.name)
        )
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return AccountResponse.from_domain(account)


@router.get("/users", response_model=AccountPageResponse)
def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    claims: TokenClaims = Depends(current_claims),
    service: AccountService = Depends(get_service),
) -> AccountPageResponse:
    """Return a page of all accounts, newest first (admin only)."""
    try:
        result = service.list_accounts(claims, page=page, limit=limit)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return AccountPageResponse(
        items=[AccountResponse.from_domain(account) for account in result.items],
        page=result.page,
        limit=result.limit,
        total=result.total,
        pages=result.pages,
    )


@router.get("/users/{user_id}", response_model=AccountResponse)
def get_user(
    user_id: str,
    claims: TokenClaims = Depends(current_claims),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    """Fetch an account by id; users may only read their own."""
    try:
        account = service.get_profile(claims, user_id)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return AccountResponse.from_domain(account)


@router.post("/users/{user_id}/deactivate", response_model=AccountResponse)
def deactivate_user(
    user_id: str,
    claims: TokenClaims = Depends(current_claims),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    try:
        account = service.set_active(claims, user_id, False)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return AccountResponse.from_domain(account)


@router.post("/users/{user_id}/activate", response_model=AccountResponse)
def activate_user(
    user_id: str,
    claims: TokenClaims = Depends(current_claims),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    try:
        account = service.set_active(claims, user_id, True)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return AccountResponse.from_domain(account)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    claims: TokenClaims = Depends(current_claims),
    service: AccountService = Depends(get_service),
) -> Response:
    try:
        service.delete_account(claims, user_id)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _unauthorized(code: str, message: str, **extra: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": code, "message": message, **extra},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _http_error_from_account_error(exc: AccountError) -> HTTPException:
    if isinstance(exc, EmailAlreadyRegistered):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, AccessDenied):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, AccountNotFound):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, HashingError):
        logger.error("password hashing failed", exc_info=exc.__cause__)
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        # Credential and token failures.
        return _unauthorized(exc.code, str(exc))
    return HTTPException(status_code=status_code, detail={"code": exc.code, "message": str(exc)})
