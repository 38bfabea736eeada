"""Subscription lifecycle manager for common investors' foreclosure access.

Entitlement is always derived from the flag plus the expiry on the investor
row; cancelling records the cancellation and lets access lapse at expiry.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.domain.clock import as_naive_utc, utcnow
from investor_platform.domain.enums import Role, SubscriptionPlanId, SubscriptionRequestStatus
from investor_platform.domain.errors import (
    DependencyFailure,
    IllegalTransition,
    NotFound,
    PaymentDeclined,
    ValidationError,
)
from investor_platform.domain.models import CommonInvestor, SubscriptionRequest
from investor_platform.infra.repository import Repository
from investor_platform.services.payment_processor import PaymentProcessor, SimulatedPaymentProcessor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionPlan:
    id: str
    name: str
    price: Decimal
    duration_days: int

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": str(self.price),
            "duration_days": self.duration_days,
        }


SUBSCRIPTION_PLANS: dict[str, SubscriptionPlan] = {
    SubscriptionPlanId.MONTHLY.value: SubscriptionPlan(
        SubscriptionPlanId.MONTHLY.value, "Monthly Foreclosure Updates", Decimal("29.99"), 30
    ),
    SubscriptionPlanId.QUARTERLY.value: SubscriptionPlan(
        SubscriptionPlanId.QUARTERLY.value, "Quarterly Foreclosure Updates", Decimal("79.99"), 90
    ),
    SubscriptionPlanId.YEARLY.value: SubscriptionPlan(
        SubscriptionPlanId.YEARLY.value, "Yearly Foreclosure Updates", Decimal("299.99"), 365
    ),
}


def get_plan(plan_id) -> SubscriptionPlan:
    plan = SUBSCRIPTION_PLANS.get(getattr(plan_id, "value", plan_id))
    if plan is None:
        raise ValidationError(
            f"Unknown plan '{plan_id}'. Choose one of: {', '.join(SUBSCRIPTION_PLANS)}"
        )
    return plan


def renewal_period_end(current_expiry: datetime | None, plan: SubscriptionPlan, now: datetime) -> datetime:
    """Renewing before expiry extends from the old expiry, otherwise from now."""
    start = now
    expiry = as_naive_utc(current_expiry)
    if expiry is not None and expiry > now:
        start = expiry
    return start + timedelta(days=plan.duration_days)


class SubscriptionService:
    def __init__(self, db: AsyncSession, payments: PaymentProcessor | None = None):
        self.repo = Repository(db)
        self.payments = payments or SimulatedPaymentProcessor()

    @staticmethod
    def list_plans() -> list[dict]:
        return [plan.as_dict() for plan in SUBSCRIPTION_PLANS.values()]

    async def _get_investor(self, investor_id: str) -> CommonInvestor:
        investor = await self.repo.get_principal_by_id(Role.COMMON_INVESTOR, investor_id)
        if investor is None:
            raise NotFound("Investor not found")
        return investor

    async def request_subscription(
        self, investor_id: str, plan_id, intake: dict | None = None
    ) -> SubscriptionRequest:
        plan = get_plan(plan_id)
        intake = intake or {}
        async with self.repo.transaction():
            await self._get_investor(investor_id)
            request = await self.repo.add(
                SubscriptionRequest(
                    investor_id=investor_id,
                    plan_id=plan.id,
                    status=SubscriptionRequestStatus.PENDING.value,
                    counties=list(intake.get("counties") or []),
                    contact_phone=intake.get("contact_phone"),
                    notes=intake.get("notes"),
                )
            )
        logger.info("Subscription request %s (%s) from investor %s", request.id, plan.id, investor_id)
        return request

    async def _apply_activation(self, investor: CommonInvestor, plan: SubscriptionPlan, period_end: datetime):
        investor.has_foreclosure_subscription = True
        investor.foreclosure_subscription_expiry = as_naive_utc(period_end)
        investor.subscription_plan = plan.id
        investor.subscription_cancelled_at = None
        await self.repo.db.flush()

    async def activate(self, investor_id: str, plan_id, period_end: datetime) -> CommonInvestor:
        """Grant access until ``period_end``. Re-activation overwrites the expiry."""
        plan = get_plan(plan_id)
        if period_end is None:
            raise ValidationError("period_end is required")
        async with self.repo.transaction():
            investor = await self._get_investor(investor_id)
            await self._apply_activation(investor, plan, period_end)
        logger.info(
            "Activated %s subscription for investor %s until %s",
            plan.id, investor_id, investor.foreclosure_subscription_expiry.isoformat(),
        )
        return investor

    async def cancel(self, investor_id: str) -> CommonInvestor:
        async with self.repo.transaction():
            investor = await self._get_investor(investor_id)
            if not investor.has_foreclosure_subscription:
                raise ValidationError("No active subscription to cancel")
            investor.subscription_cancelled_at = utcnow()
        logger.info("Investor %s cancelled subscription; access lapses at expiry", investor_id)
        return investor

    async def subscribe(self, investor_id: str, plan_id, payment_method: dict | None = None) -> CommonInvestor:
        """Charge for a plan, then activate or extend the subscription.

        No transaction is open while the processor is awaited: the existence
        check ends its read transaction before charging.
        """
        plan = get_plan(plan_id)
        await self._get_investor(investor_id)
        await self.repo.end_read()

        try:
            approved = await self.payments.charge(plan.id, plan.price, payment_method)
        except Exception as exc:
            logger.exception("Payment processor error for investor %s", investor_id)
            raise DependencyFailure("Payment processor unavailable, please retry") from exc
        if not approved:
            logger.info("Payment declined for investor %s plan %s", investor_id, plan.id)
            raise PaymentDeclined("Payment was declined")

        async with self.repo.transaction():
            investor = await self._get_investor(investor_id)
            period_end = renewal_period_end(
                investor.foreclosure_subscription_expiry, plan, utcnow()
            )
            await self._apply_activation(investor, plan, period_end)
        logger.info(
            "Investor %s subscribed to %s until %s", investor_id, plan.id, period_end.isoformat()
        )
        return investor

    async def _resolve_request(self, request_id: str, admin, new_status: str) -> SubscriptionRequest:
        request = await self.repo.get_subscription_request_by_id(request_id)
        if request is None:
            raise NotFound("Subscription request not found")
        if request.status != SubscriptionRequestStatus.PENDING.value:
            raise IllegalTransition(request.status, new_status, "Request was already resolved")
        request.status = new_status
        request.resolved_at = utcnow()
        request.resolved_by = admin.id
        return request

    async def approve_request(
        self, request_id: str, admin, period_end: datetime | None = None
    ) -> SubscriptionRequest:
        """Fulfil a pending request by activating its plan for the investor."""
        async with self.repo.transaction():
            request = await self._resolve_request(
                request_id, admin, SubscriptionRequestStatus.APPROVED.value
            )
            plan = get_plan(request.plan_id)
            investor = await self._get_investor(request.investor_id)
            if period_end is None:
                period_end = renewal_period_end(
                    investor.foreclosure_subscription_expiry, plan, utcnow()
                )
            await self._apply_activation(investor, plan, period_end)
        logger.info("Admin %s approved subscription request %s", admin.id, request_id)
        return request

    async def reject_request(self, request_id: str, admin) -> SubscriptionRequest:
        async with self.repo.transaction():
            request = await self._resolve_request(
                request_id, admin, SubscriptionRequestStatus.REJECTED.value
            )
        logger.info("Admin %s rejected subscription request %s", admin.id, request_id)
        return request

    async def list_requests(self, investor_id: str | None = None, status: str | None = None):
        return await self.repo.get_subscription_requests(investor_id=investor_id, status=status)

    async def status(self, investor_id: str, now: datetime | None = None) -> dict:
        investor = await self._get_investor(investor_id)
        now = as_naive_utc(now) or utcnow()
        entitled = investor.can_access_foreclosures(now)
        expiry = as_naive_utc(investor.foreclosure_subscription_expiry)
        days_remaining = None
        if entitled and expiry is not None:
            days_remaining = math.ceil((expiry - now).total_seconds() / 86400)
        return {
            "has_subscription": entitled,
            "plan": investor.subscription_plan,
            "expiry": expiry.isoformat() if expiry else None,
            "days_remaining": days_remaining,
            "cancelled": investor.subscription_cancelled_at is not None,
        }
