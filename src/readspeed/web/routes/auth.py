"""Authentication endpoints.

Sessions are returned as an HTTP-only cookie. The same token is accepted
as a Bearer header by every other route.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from readspeed.config.app_config import load_app_config
from readspeed.core import auth
from readspeed.core.rate_limiting import client_ip
from readspeed.web.deps import CurrentUser, get_current_user, session_token
from readspeed.web.schemas import (
    AuthResponse,
    CredentialsRequest,
    EmailRequest,
    MessageResponse,
    OtpVerifyRequest,
    PasswordResetConfirm,
    PasswordUpdateRequest,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])

CODE_SENT_MESSAGE = "If an account exists for this email, a code has been sent"


async def auth_rate_limit(request: Request) -> None:
    """Stricter per-IP limit for credential and code endpoints."""
    limiter = request.app.state.auth_limiter
    peer = request.client.host if request.client else None
    result = await limiter.check(client_ip(request.headers, peer))
    if not result.allowed:
        message, _, _ = auth.RATE_LIMITED
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=message,
            headers=result.headers(),
        )


def _set_session_cookie(response: Response, session: auth.AuthSession) -> None:
    config = load_app_config()
    response.set_cookie(
        key=config.cookies.name,
        value=session.token,
        max_age=config.auth.session_ttl_hours * 3600,
        domain=config.cookies.domain,
        samesite=config.cookies.same_site,
        secure=config.cookies.secure,
        httponly=True,
        path="/",
    )


def _session_response(response: Response, session: auth.AuthSession) -> AuthResponse:
    _set_session_cookie(response, session)
    return AuthResponse(
        user_id=session.user_id,
        email=session.email,
        expires_at=session.expires_at,
    )


@router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
async def sign_up(body: CredentialsRequest, response: Response) -> AuthResponse:
    """Create an account. Signs in directly unless confirmation is required."""
    result = auth.sign_up(body.email, body.password)
    if result.session is None:
        return AuthResponse(
            user_id=result.user.id,
            email=result.user.email,
            requires_confirmation=True,
        )
    return _session_response(response, result.session)


@router.post("/signin", response_model=AuthResponse, dependencies=[Depends(auth_rate_limit)])
async def sign_in(body: CredentialsRequest, response: Response) -> AuthResponse:
    session = auth.sign_in(body.email, body.password)
    return _session_response(response, session)


@router.post("/signout", response_model=MessageResponse)
async def sign_out(request: Request, response: Response) -> MessageResponse:
    token = session_token(request)
    if token:
        auth.sign_out(token)
    config = load_app_config()
    response.delete_cookie(config.cookies.name, path="/", domain=config.cookies.domain)
    return MessageResponse(message="Signed out")


@router.get("/session", response_model=AuthResponse)
async def get_session(current: CurrentUser = Depends(get_current_user)) -> AuthResponse:
    """Return the signed-in user."""
    return AuthResponse(user_id=current.id, email=current.profile.email or "")


@router.post("/refresh", response_model=AuthResponse)
async def refresh(request: Request, response: Response) -> AuthResponse:
    """Extend the current session."""
    token = session_token(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    session = auth.refresh_session(token)
    return _session_response(response, session)


@router.post("/otp", response_model=MessageResponse, dependencies=[Depends(auth_rate_limit)])
async def request_otp(body: EmailRequest) -> MessageResponse:
    """Send a sign-in or confirmation code. Same answer for unknown emails."""
    auth.request_email_otp(body.email)
    return MessageResponse(message=CODE_SENT_MESSAGE)


@router.post("/otp/verify", response_model=AuthResponse, dependencies=[Depends(auth_rate_limit)])
async def verify_otp(body: OtpVerifyRequest, response: Response) -> AuthResponse:
    session = auth.verify_email_otp(body.email, body.code)
    return _session_response(response, session)


@router.post(
    "/password/reset",
    response_model=MessageResponse,
    dependencies=[Depends(auth_rate_limit)],
)
async def request_password_reset(body: EmailRequest) -> MessageResponse:
    auth.request_password_reset(body.email)
    return MessageResponse(message=CODE_SENT_MESSAGE)


@router.post(
    "/password/reset/confirm",
    response_model=AuthResponse,
    dependencies=[Depends(auth_rate_limit)],
)
async def confirm_password_reset(body: PasswordResetConfirm, response: Response) -> AuthResponse:
    session = auth.reset_password(body.email, body.code, body.new_password)
    return _session_response(response, session)


@router.put("/password", response_model=MessageResponse)
async def update_password(
    body: PasswordUpdateRequest,
    current: CurrentUser = Depends(get_current_user),
) -> MessageResponse:
    auth.update_password(current.id, body.password)
    return MessageResponse(message="Password updated")
