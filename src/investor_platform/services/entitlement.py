"""Entitlement gate for subscription-gated resources (foreclosure listings)."""

import logging
from datetime import datetime

from investor_platform.domain.errors import SubscriptionRequired

logger = logging.getLogger(__name__)


def can_access_foreclosures(principal, now: datetime | None = None) -> bool:
    """Ask the principal itself; each role decides its own entitlement."""
    if principal is None:
        return False
    return principal.can_access_foreclosures(now)


def require_foreclosure_access(principal, now: datetime | None = None) -> None:
    if not can_access_foreclosures(principal, now):
        if principal is not None:
            logger.info(
                "Foreclosure access denied for %s %s", principal.role.value, principal.id
            )
        raise SubscriptionRequired()
