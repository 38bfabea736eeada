"""Foreclosure bid lifecycle manager."""

import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.domain.clock import utcnow
from investor_platform.domain.enums import BidStatus, ContactMethod, ExperienceLevel
from investor_platform.domain.errors import (
    Forbidden,
    IllegalTransition,
    NotFound,
    ValidationError,
)
from investor_platform.domain.models import ForeclosureBid, money
from investor_platform.infra.repository import Repository
from investor_platform.services.entitlement import require_foreclosure_access
from investor_platform.services.proposal_state_machine import bid_state_machine

logger = logging.getLogger(__name__)


def _amount(terms: dict, field: str) -> Decimal:
    try:
        value = Decimal(str(terms.get(field)))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number") from None
    if not value.is_finite():
        raise ValidationError(f"{field} must be a number")
    return value


def _enum_value(enum_cls, raw, field: str, required: bool):
    if raw is None or raw == "":
        if required:
            raise ValidationError(f"{field} is required")
        return None
    try:
        return enum_cls(getattr(raw, "value", raw)).value
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}") from None


def validate_bid_terms(terms: dict, starting_bid) -> dict:
    """Check max_bid_amount >= bid_amount >= starting_bid, or bid_amount > 0 with no starting bid."""
    bid_amount = _amount(terms, "bid_amount")
    max_bid_amount = _amount(terms, "max_bid_amount")

    starting = money(starting_bid)
    if starting is None:
        if bid_amount <= 0:
            raise ValidationError("bid_amount must be greater than 0")
    elif bid_amount < starting:
        raise ValidationError(f"bid_amount must be at least the starting bid of {starting}")
    if max_bid_amount < bid_amount:
        raise ValidationError("max_bid_amount must be greater than or equal to bid_amount")

    return {
        "bid_amount": bid_amount,
        "max_bid_amount": max_bid_amount,
        "experience_level": _enum_value(
            ExperienceLevel, terms.get("experience_level"), "experience_level", required=False
        ),
        "preferred_contact_method": _enum_value(
            ContactMethod, terms.get("preferred_contact_method"), "preferred_contact_method", required=True
        ),
        "timeframe": terms.get("timeframe") or None,
        "notes": terms.get("notes") or None,
    }


class BidService:
    def __init__(self, db: AsyncSession):
        self.repo = Repository(db)

    async def create(self, investor, listing_id: str, terms: dict) -> ForeclosureBid:
        if investor is None or not investor.is_investor():
            raise Forbidden("Only investors can place foreclosure bids")
        require_foreclosure_access(investor)

        async with self.repo.transaction():
            listing = await self.repo.get_foreclosure_listing_by_id(listing_id)
            if listing is None:
                raise NotFound("Foreclosure listing not found")
            if not listing.accepts_bids:
                raise ValidationError("Foreclosure listing is not accepting bids")
            clean = validate_bid_terms(terms, listing.starting_bid)
            bid = await self.repo.create_foreclosure_bid(
                ForeclosureBid(
                    listing_id=listing.id,
                    investor_role=investor.role.value,
                    investor_id=investor.id,
                    status=BidStatus.PENDING.value,
                    **clean,
                )
            )

        logger.info(
            "Foreclosure bid %s created by %s %s on listing %s",
            bid.id, investor.role.value, investor.id, listing_id,
        )
        return bid

    async def transition(self, bid_id: str, actor, new_status) -> ForeclosureBid:
        if actor is None or not actor.may_manage_bids():
            raise Forbidden("Only admins can update foreclosure bids")
        target = getattr(new_status, "value", new_status)

        async with self.repo.transaction():
            bid = await self.repo.get_foreclosure_bid_by_id(bid_id)
            if bid is None:
                raise NotFound("Foreclosure bid not found")
            bid_state_machine.validate_transition(bid.status, target)
            if not await self.repo.compare_and_set_bid_status(
                bid.id,
                bid.status,
                target,
                status_changed_at=utcnow(),
                status_changed_by=actor.id,
            ):
                raise IllegalTransition(bid.status, target, "Bid status changed concurrently")

        await self.repo.refresh(bid)
        logger.info("Foreclosure bid %s -> %s by admin %s", bid.id, target, actor.id)
        return bid

    async def list_by_investor(self, investor) -> list[ForeclosureBid]:
        return await self.repo.get_foreclosure_bids_by_investor_id(
            investor.role.value, investor.id
        )

    async def list_all(self, status: str | None = None) -> list[ForeclosureBid]:
        return await self.repo.get_all_foreclosure_bids(status=status)
