"""Account service: registration, login, email verification, password reset
and admin approval of partner / institutional accounts.

Each role is its own namespace. The same username or email may exist once
per role table.
"""

import logging
import re
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.app.config import get_settings
from investor_platform.domain.clock import utcnow
from investor_platform.domain.enums import ApprovalStatus, Role
from investor_platform.domain.errors import (
    Forbidden,
    IllegalTransition,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from investor_platform.domain.models import PRINCIPAL_MODELS
from investor_platform.infra.repository import Repository
from investor_platform.services.credential_store import (
    CredentialStore,
    hash_password,
    new_token,
    token_digest,
    verify_password,
)

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

REQUIRED_FIELDS = ("username", "email", "password", "first_name", "last_name")
ROLE_REQUIRED_FIELDS: dict[Role, tuple[str, ...]] = {
    Role.INSTITUTIONAL_INVESTOR: ("institution_name", "job_title"),
}
ROLE_OPTIONAL_FIELDS: dict[Role, tuple[str, ...]] = {
    Role.INSTITUTIONAL_INVESTOR: ("work_phone",),
    Role.PARTNER: ("company",),
}
APPROVABLE_ROLES = (Role.INSTITUTIONAL_INVESTOR, Role.PARTNER)


def _clean(value) -> str:
    return str(value).strip() if value is not None else ""


class AccountService:
    def __init__(self, db: AsyncSession, credentials: CredentialStore | None = None):
        self.repo = Repository(db)
        self.credentials = credentials or CredentialStore(db)
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _validate_registration(self, role: Role, data: dict) -> dict:
        fields = {name: _clean(data.get(name)) for name in REQUIRED_FIELDS}
        for name in REQUIRED_FIELDS + ROLE_REQUIRED_FIELDS.get(role, ()):
            value = fields.get(name) if name in fields else _clean(data.get(name))
            if not value:
                raise ValidationError(f"{name} is required")
        fields["email"] = fields["email"].lower()
        if not _EMAIL_RE.match(fields["email"]):
            raise ValidationError("email is not a valid address")
        # Passwords are not stripped
        fields["password"] = str(data.get("password"))
        if len(fields["password"]) < self.settings.password_min_length:
            raise ValidationError(
                f"password must be at least {self.settings.password_min_length} characters"
            )
        for name in ROLE_REQUIRED_FIELDS.get(role, ()) + ROLE_OPTIONAL_FIELDS.get(role, ()):
            fields[name] = _clean(data.get(name)) or None
        fields["phone"] = _clean(data.get("phone")) or None
        return fields

    async def register(self, role: Role, data: dict):
        """Create a principal in ``role``'s namespace.

        Returns ``(principal, verification_token)``. Partners and
        institutional investors start inactive and pending admin approval.
        """
        if role == Role.ADMIN:
            raise Forbidden("Admin accounts cannot self-register")
        fields = self._validate_registration(role, data)

        model = PRINCIPAL_MODELS[role]
        verification_token = new_token()
        async with self.repo.transaction():
            if await self.repo.get_principal_by_username(role, fields["username"]):
                raise ValidationError("Username already taken")
            if await self.repo.get_principal_by_email(role, fields["email"]):
                raise ValidationError("Email already registered")

            password = fields.pop("password")
            principal = model(
                **fields,
                password_hash=hash_password(password),
                is_active=model.active_on_registration,
                email_verification_digest=token_digest(verification_token),
                email_verification_sent_at=utcnow(),
            )
            if hasattr(model, "approval_status"):
                principal.approval_status = ApprovalStatus.PENDING.value
            await self.repo.add(principal)

        logger.info(
            "Registered %s %s (%s)%s",
            role.value, principal.id, principal.username,
            "" if principal.is_active else ", pending approval",
        )
        return principal, verification_token

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    async def login(self, role: Role, username: str, password: str, now: datetime | None = None):
        """Return ``(principal, token, expires_at)`` or raise Unauthenticated.

        Unknown usernames still run a bcrypt verification so timing does not
        reveal whether the account exists.
        """
        identifier = _clean(username)
        principal = None
        if identifier:
            principal = await self.repo.get_principal_by_username(role, identifier)
            if principal is None and "@" in identifier:
                principal = await self.repo.get_principal_by_email(role, identifier.lower())

        if not verify_password(password or "", principal.password_hash if principal else None):
            logger.info("Failed %s login for %s", role.value, identifier)
            raise Unauthenticated("Invalid username or password")
        if not principal.is_active:
            logger.info("Login refused for inactive %s %s", role.value, principal.id)
            if getattr(principal, "approval_status", None) == ApprovalStatus.PENDING.value:
                raise Unauthenticated("Account is pending approval")
            raise Unauthenticated("Account is not active")

        async with self.repo.transaction():
            principal.last_login_at = utcnow()
            token, expires_at = await self.credentials.issue_session(principal.id, role, now)

        logger.info("%s %s logged in", role.value, principal.id)
        return principal, token, expires_at

    async def logout(self, token: str | None, role: Role | None = None) -> None:
        if not token:
            return
        async with self.repo.transaction():
            await self.credentials.revoke_session(token, role)
        logger.info("Session %s... revoked", token[:8])

    # ------------------------------------------------------------------
    # Email verification
    # ------------------------------------------------------------------

    async def verify_email(self, role: Role, token: str):
        if not token:
            raise ValidationError("Verification token is required")
        async with self.repo.transaction():
            principal = await self.repo.get_principal_by_verification_digest(
                role, token_digest(token)
            )
            if principal is None:
                raise ValidationError("Invalid or already used verification token")
            principal.email_verified = True
            principal.email_verified_at = utcnow()
            principal.email_verification_digest = None
        logger.info("Verified email for %s %s", role.value, principal.id)
        return principal

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    async def request_password_reset(self, role: Role, email: str):
        """Return ``(principal, token)``, or None when no account matches.

        Callers respond identically either way.
        """
        address = _clean(email).lower()
        if not address:
            raise ValidationError("email is required")
        principal = await self.repo.get_principal_by_email(role, address)
        if principal is None:
            logger.info("Password reset requested for unknown %s email", role.value)
            return None
        async with self.repo.transaction():
            token = await self.credentials.issue_password_reset(principal.id, role)
        return principal, token

    async def confirm_password_reset(self, role: Role, token: str, new_password: str):
        if len(new_password or "") < self.settings.password_min_length:
            raise ValidationError(
                f"password must be at least {self.settings.password_min_length} characters"
            )
        async with self.repo.transaction():
            try:
                principal_id = await self.credentials.redeem_password_reset(token, role)
            except NotFound:
                raise ValidationError("Reset token is invalid or expired") from None
            principal = await self.repo.get_principal_by_id(role, principal_id)
            if principal is None:
                raise ValidationError("Reset token is invalid or expired")
            principal.password_hash = hash_password(new_password)
            await self.credentials.revoke_all_sessions(principal.id, role)
        logger.info("Password reset for %s %s; existing sessions revoked", role.value, principal.id)
        return principal

    # ------------------------------------------------------------------
    # Admin approval
    # ------------------------------------------------------------------

    async def _load_approvable(self, role: Role, principal_id: str):
        if role not in APPROVABLE_ROLES:
            raise ValidationError(f"{role.value} accounts do not require approval")
        principal = await self.repo.get_principal_by_id(role, principal_id)
        if principal is None:
            raise NotFound("Account not found")
        return principal

    async def approve(self, role: Role, principal_id: str, admin):
        async with self.repo.transaction():
            principal = await self._load_approvable(role, principal_id)
            if principal.approval_status == ApprovalStatus.APPROVED.value:
                raise IllegalTransition(
                    principal.approval_status, ApprovalStatus.APPROVED.value,
                    "Account is already approved",
                )
            principal.approval_status = ApprovalStatus.APPROVED.value
            principal.is_active = True
            principal.approved_at = utcnow()
            principal.approved_by = admin.id
        logger.info("Admin %s approved %s %s", admin.id, role.value, principal_id)
        return principal

    async def reject(self, role: Role, principal_id: str, admin, reason: str | None = None):
        async with self.repo.transaction():
            principal = await self._load_approvable(role, principal_id)
            if principal.approval_status == ApprovalStatus.REJECTED.value:
                raise IllegalTransition(
                    principal.approval_status, ApprovalStatus.REJECTED.value,
                    "Account is already rejected",
                )
            principal.approval_status = ApprovalStatus.REJECTED.value
            principal.is_active = False
            if hasattr(principal, "rejection_reason"):
                principal.rejection_reason = reason
            await self.credentials.revoke_all_sessions(principal.id, role)
        logger.info("Admin %s rejected %s %s", admin.id, role.value, principal_id)
        return principal

    async def list_accounts(self, role: Role, approval_status: str | None = None) -> list:
        return await self.repo.get_principals(role, approval_status)

    async def create_admin(self, data: dict):
        """Bootstrap an admin account. Only reachable from the command line."""
        fields = self._validate_registration(Role.ADMIN, data)
        model = PRINCIPAL_MODELS[Role.ADMIN]
        async with self.repo.transaction():
            if await self.repo.get_principal_by_username(Role.ADMIN, fields["username"]):
                raise ValidationError("Username already taken")
            if await self.repo.get_principal_by_email(Role.ADMIN, fields["email"]):
                raise ValidationError("Email already registered")
            password = fields.pop("password")
            admin = await self.repo.add(
                model(
                    **fields,
                    password_hash=hash_password(password),
                    is_active=True,
                    email_verified=True,
                    email_verified_at=utcnow(),
                )
            )
        logger.info("Created admin %s (%s)", admin.id, admin.username)
        return admin
