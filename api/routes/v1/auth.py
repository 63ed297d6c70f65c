"""
api/routes/v1/auth.py -- Member account lifecycle endpoints.

Routes:
  POST /api/v1/auth/register         -- create a pending account; 201
  GET  /api/v1/auth/activate?token=  -- consume an activation link
  POST /api/v1/auth/login            -- password login; returns a bearer JWT
  POST /api/v1/auth/forgot-password  -- email a reset link (always succeeds)
  POST /api/v1/auth/reset-password   -- consume a reset token, set new password
  POST /api/v1/auth/logout           -- records the logout (requires auth)

Security:
  Register, login, forgot-password and reset-password are rate-limited per IP.
  Unknown email and wrong password return the same 401.
  forgot-password answers identically whether or not the email is registered.
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response

from api.dependencies import client_ip, t
from api.limiter import limiter
from api.models import (
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UserEnvelope,
    UserProfile,
)
from auth.accounts import AccountService
from auth.dependencies import get_current_user
from auth.models import OutsideLink, User
from core.config import get_settings

_settings = get_settings()

# Auth policy:
# - register, activate, login, forgot-password, reset-password: public
# - logout: requires auth (get_current_user)
router = APIRouter()


def _accounts(request: Request) -> AccountService:
    return request.app.state.accounts


@limiter.limit(_settings.register_rate_limit)
@router.post("/auth/register", response_model=UserEnvelope, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserEnvelope:
    """Create a PENDING account and send its activation email.

    A mail outage does not fail registration; the account exists and the
    user can ask for a new link later.
    """
    user = _accounts(request).register(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password=body.password,
        ip_address=client_ip(request),
        phone_number=body.phone_number,
        location=body.location,
        zipcode=body.zipcode,
        about=body.about,
        outside_links=[OutsideLink(title=link.title, url=link.url) for link in body.outside_links],
    )
    return UserEnvelope(message=t(request, "auth.register_success"), user=UserProfile.from_user(user))


@router.get("/auth/activate", response_model=UserEnvelope)
def activate(request: Request, token: str = Query("", max_length=256)) -> UserEnvelope:
    user = _accounts(request).activate(token)
    return UserEnvelope(message=t(request, "auth.account_activated"), user=UserProfile.from_user(user))


@limiter.limit(_settings.login_rate_limit)
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, response: Response, body: LoginRequest) -> LoginResponse:
    """Authenticate with email and password and return a session token."""
    token, user = _accounts(request).login(body.email, body.password, client_ip(request))
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(
        message=t(request, "auth.login_success"),
        access_token=token,
        expires_in=_settings.session_expire_seconds,
        user=UserProfile.from_user(user),
    )


@limiter.limit(_settings.forgot_password_rate_limit)
@router.post("/auth/forgot-password", response_model=MessageResponse)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    _accounts(request).forgot_password(body.email)
    return MessageResponse(message=t(request, "auth.password_reset_email_sent"))


@limiter.limit(_settings.reset_password_rate_limit)
@router.post("/auth/reset-password", response_model=MessageResponse)
def reset_password(request: Request, body: ResetPasswordRequest) -> MessageResponse:
    _accounts(request).reset_password(body.token, body.password)
    return MessageResponse(message=t(request, "auth.password_reset_success"))


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, current_user: User = Depends(get_current_user)) -> MessageResponse:
    """Sessions are stateless JWTs; the client discards its token."""
    _accounts(request).logout(current_user)
    return MessageResponse(message=t(request, "auth.logout_success"))
