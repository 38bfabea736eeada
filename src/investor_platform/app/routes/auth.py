"""Authentication routes and per-role session dependencies.

Every role has its own /api/auth/{role}/... routes, session cookie and
session table.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.app.config import get_settings
from investor_platform.domain.enums import AuthRole, InvestorKind, Role
from investor_platform.domain.errors import DependencyFailure
from investor_platform.domain.schemas import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    RegisterRequest,
    RegisterResponse,
    VerifyEmailRequest,
)
from investor_platform.infra.database import get_db
from investor_platform.services.account_service import AccountService
from investor_platform.services.notification_service import NotificationService, get_notifier
from investor_platform.services.role_authenticator import (
    SESSION_COOKIES,
    AuthContext,
    RoleAuthenticator,
    extract_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


async def authenticate_request(request: Request, db: AsyncSession, role: Role) -> AuthContext:
    token = extract_token(request.headers, request.cookies, role)
    ctx = await RoleAuthenticator(db).authenticate(token, role)
    request.state.auth = ctx
    return ctx


def require_principal(role: Role):
    """Factory: dependency that authenticates the caller in ``role``'s namespace."""

    async def dependency(request: Request, db: AsyncSession = Depends(get_db)) -> AuthContext:
        return await authenticate_request(request, db, role)

    dependency.__name__ = f"require_{role.value}"
    return dependency


require_common_investor = require_principal(Role.COMMON_INVESTOR)
require_institutional_investor = require_principal(Role.INSTITUTIONAL_INVESTOR)
require_partner = require_principal(Role.PARTNER)
require_admin = require_principal(Role.ADMIN)


async def require_investor(
    kind: InvestorKind, request: Request, db: AsyncSession = Depends(get_db)
) -> AuthContext:
    """Dependency for /investors/{kind}/... routes."""
    return await authenticate_request(request, db, kind.role)


async def require_role_from_path(
    role: AuthRole, request: Request, db: AsyncSession = Depends(get_db)
) -> AuthContext:
    """Dependency for /auth/{role}/... routes."""
    return await authenticate_request(request, db, role.role)


def _set_session_cookie(response: Response, role: Role, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=SESSION_COOKIES[role],
        value=token,
        max_age=settings.session_ttl_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/{role}/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    role: AuthRole,
    data: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    principal, verification_token = await AccountService(db).register(role.role, data.model_dump())
    background_tasks.add_task(
        notifier.send_verification_email,
        principal.email,
        principal.first_name,
        role.role,
        verification_token,
    )
    return RegisterResponse(
        id=principal.id,
        user_type=role.role.value,
        is_active=bool(principal.is_active),
        verification_pending=True,
        approval_pending=not principal.is_active,
    )


@router.post("/{role}/login", response_model=LoginResponse)
async def login(
    role: AuthRole,
    data: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    principal, token, expires_at = await AccountService(db).login(
        role.role, data.username, data.password
    )
    _set_session_cookie(response, role.role, token)
    return LoginResponse(token=token, expires_at=expires_at, user=principal.summary())


@router.post("/{role}/logout", response_model=MessageResponse)
async def logout(
    role: AuthRole,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Always succeeds; unknown or missing tokens are ignored."""
    token = extract_token(request.headers, request.cookies, role.role)
    try:
        await AccountService(db).logout(token, role.role)
    except DependencyFailure:
        logger.warning("Could not revoke %s session during logout", role.value)
    response.delete_cookie(SESSION_COOKIES[role.role])
    return MessageResponse(message="Logged out")


@router.get("/{role}/me")
async def me(ctx: AuthContext = Depends(require_role_from_path)):
    return ctx.principal.summary()


@router.post("/{role}/verify-email", response_model=MessageResponse)
async def verify_email(role: AuthRole, data: VerifyEmailRequest, db: AsyncSession = Depends(get_db)):
    await AccountService(db).verify_email(role.role, data.token)
    return MessageResponse(message="Email verified")


@router.post("/{role}/password-reset/request", response_model=MessageResponse)
async def request_password_reset(
    role: AuthRole,
    data: PasswordResetRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    issued = await AccountService(db).request_password_reset(role.role, data.email)
    if issued is not None:
        principal, token = issued
        background_tasks.add_task(
            notifier.send_password_reset_email,
            principal.email,
            principal.first_name,
            role.role,
            token,
        )
    return MessageResponse(message="If that email is registered, a reset link has been sent")


@router.post("/{role}/password-reset/confirm", response_model=MessageResponse)
async def confirm_password_reset(
    role: AuthRole, data: PasswordResetConfirm, db: AsyncSession = Depends(get_db)
):
    await AccountService(db).confirm_password_reset(role.role, data.token, data.new_password)
    return MessageResponse(message="Password updated")
