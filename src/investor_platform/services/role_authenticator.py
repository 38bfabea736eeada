"""Role authenticator: resolves a request's session token to a principal.

Each role has its own cookie and its own session table. A token is only
ever looked up in the namespace of the route being called, so a partner
token cannot authenticate a common-investor route.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.domain.enums import Role
from investor_platform.domain.errors import Forbidden, NotFound, Unauthenticated
from investor_platform.infra.repository import Repository
from investor_platform.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

SESSION_COOKIES: dict[Role, str] = {
    Role.COMMON_INVESTOR: "common_investor_session",
    Role.INSTITUTIONAL_INVESTOR: "institutional_session",
    Role.PARTNER: "partner_session",
    Role.ADMIN: "admin_session",
}


@dataclass
class AuthContext:
    """The authenticated caller of a request."""

    principal: object
    role: Role
    token: str


def extract_token(headers, cookies, role: Role) -> str | None:
    """Bearer header first, then the role's session cookie."""
    auth_header = headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.removeprefix("Bearer ").strip()
        if token:
            return token
    return cookies.get(SESSION_COOKIES[role]) or None


class RoleAuthenticator:
    def __init__(self, db: AsyncSession, credentials: CredentialStore | None = None):
        self.repo = Repository(db)
        self.credentials = credentials or CredentialStore(db)

    async def authenticate(
        self,
        token: str | None,
        role: Role,
        now: datetime | None = None,
    ) -> AuthContext:
        """Return an AuthContext or raise Unauthenticated / Forbidden.

        Missing, unknown and expired tokens and deleted principals are all
        Unauthenticated. An inactive principal is Forbidden.
        """
        if not token:
            raise Unauthenticated("Authentication required")
        try:
            principal_id = await self.credentials.resolve_session(token, role, now)
        except NotFound:
            raise Unauthenticated("Invalid or expired session") from None

        principal = await self.repo.get_principal_by_id(role, principal_id)
        if principal is None:
            raise Unauthenticated("Invalid or expired session")
        if not principal.is_active:
            logger.info("Rejected session for inactive %s %s", role.value, principal.id)
            raise Forbidden("Account is not active")
        return AuthContext(principal=principal, role=role, token=token)
