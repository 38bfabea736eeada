"""Payment processor interface and the simulated implementation used by default."""

import asyncio
import logging

from investor_platform.app.config import get_settings

logger = logging.getLogger(__name__)


class PaymentProcessor:
    """Charges a subscription plan. Returns False on decline, raises on outage."""

    async def charge(self, plan_id: str, amount, payment_method: dict | None) -> bool:
        raise NotImplementedError


class SimulatedPaymentProcessor(PaymentProcessor):
    """Approves or declines every charge based on configuration."""

    def __init__(self, approve: bool | None = None, delay_seconds: float = 0.0):
        if approve is None:
            approve = get_settings().payment_simulation_approve
        self.approve = approve
        self.delay_seconds = delay_seconds

    async def charge(self, plan_id: str, amount, payment_method: dict | None) -> bool:
        method = (payment_method or {}).get("type", "card")
        logger.info("Simulated charge of %s for plan %s via %s", amount, plan_id, method)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if not self.approve:
            logger.warning("Simulated charge declined for plan %s", plan_id)
        return self.approve


def get_payment_processor() -> PaymentProcessor:
    """FastAPI dependency."""
    return SimulatedPaymentProcessor()
