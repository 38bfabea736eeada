"""Credential store: password hashing and per-role opaque session tokens."""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta

from passlib.context import CryptContext
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.app.config import get_settings
from investor_platform.domain.clock import as_naive_utc, utcnow
from investor_platform.domain.enums import Role
from investor_platform.domain.errors import NotFound
from investor_platform.domain.models import SESSION_MODELS, PasswordResetToken

logger = logging.getLogger(__name__)

settings = get_settings()
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.password_hash_rounds,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str | None) -> bool:
    """Constant-time check. A missing hash still burns one bcrypt round."""
    if not hashed:
        pwd_context.dummy_verify()
        return False
    return pwd_context.verify(plain, hashed)


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def new_token() -> str:
    return secrets.token_urlsafe(32)


class CredentialStore:
    """Issues, resolves and revokes sessions in role-partitioned tables.

    Unknown and expired tokens both resolve to ``NotFound``; callers cannot
    tell the two apart. Expired rows are not swept and persist until revoked.
    """

    def __init__(self, db: AsyncSession, session_ttl: timedelta | None = None):
        self.db = db
        self.session_ttl = session_ttl or timedelta(days=settings.session_ttl_days)

    hash_password = staticmethod(hash_password)
    verify_password = staticmethod(verify_password)

    async def issue_session(
        self,
        principal_id: str,
        role: Role,
        now: datetime | None = None,
    ) -> tuple[str, datetime]:
        model = SESSION_MODELS[role]
        token = new_token()
        expires_at = (as_naive_utc(now) or utcnow()) + self.session_ttl
        self.db.add(
            model(
                principal_id=principal_id,
                token_digest=token_digest(token),
                expires_at=expires_at,
            )
        )
        await self.db.flush()
        logger.info("Issued %s session %s... for %s", role.value, token[:8], principal_id)
        return token, expires_at

    async def resolve_session(
        self,
        token: str,
        role: Role,
        now: datetime | None = None,
    ) -> str:
        """Return the principal id for a live session or raise NotFound."""
        if not token:
            raise NotFound("Session not found")
        model = SESSION_MODELS[role]
        result = await self.db.execute(
            select(model).where(model.token_digest == token_digest(token))
        )
        session = result.scalar_one_or_none()
        if session is None:
            raise NotFound("Session not found")
        current = as_naive_utc(now) or utcnow()
        if current >= as_naive_utc(session.expires_at):
            raise NotFound("Session not found")
        return session.principal_id

    async def revoke_session(self, token: str, role: Role | None = None) -> None:
        """Delete the session. Unknown or already revoked tokens are a no-op."""
        if not token:
            return
        digest = token_digest(token)
        roles = [role] if role is not None else list(SESSION_MODELS)
        for r in roles:
            model = SESSION_MODELS[r]
            await self.db.execute(delete(model).where(model.token_digest == digest))
        await self.db.flush()

    async def revoke_all_sessions(self, principal_id: str, role: Role) -> None:
        model = SESSION_MODELS[role]
        await self.db.execute(delete(model).where(model.principal_id == principal_id))
        await self.db.flush()

    # ------------------------------------------------------------------
    # Password reset tokens
    # ------------------------------------------------------------------

    async def issue_password_reset(
        self,
        principal_id: str,
        role: Role,
        now: datetime | None = None,
    ) -> str:
        token = new_token()
        expires_at = (as_naive_utc(now) or utcnow()) + timedelta(
            minutes=settings.password_reset_ttl_minutes
        )
        self.db.add(
            PasswordResetToken(
                role=role.value,
                principal_id=principal_id,
                token_digest=token_digest(token),
                expires_at=expires_at,
            )
        )
        await self.db.flush()
        logger.info("Issued %s password reset token %s...", role.value, token[:8])
        return token

    async def redeem_password_reset(
        self,
        token: str,
        role: Role,
        now: datetime | None = None,
    ) -> str:
        """Mark the token used and return its principal id, or raise NotFound."""
        result = await self.db.execute(
            select(PasswordResetToken).where(
                PasswordResetToken.token_digest == token_digest(token or ""),
                PasswordResetToken.role == role.value,
            )
        )
        record = result.scalar_one_or_none()
        current = as_naive_utc(now) or utcnow()
        if record is None or record.used or current >= as_naive_utc(record.expires_at):
            raise NotFound("Reset token is invalid or expired")
        record.used = True
        record.used_at = current
        await self.db.flush()
        return record.principal_id
