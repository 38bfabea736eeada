"""Offer lifecycle manager: create, respond to, and query purchase offers.

Accepting an offer and marking its property under contract happen in one
transaction, each as a guarded UPDATE on the expected current status. Of two
concurrent accepts on the same property exactly one commits.
"""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.domain.clock import utcnow
from investor_platform.domain.enums import (
    FinancingType,
    OfferParty,
    OfferStatus,
    PropertyStatus,
    Role,
)
from investor_platform.domain.errors import (
    Forbidden,
    IllegalTransition,
    NotFound,
    ValidationError,
)
from investor_platform.domain.models import Offer
from investor_platform.infra.repository import Repository
from investor_platform.services.proposal_state_machine import offer_state_machine

logger = logging.getLogger(__name__)


def _positive_amount(terms: dict, field: str) -> Decimal:
    raw = terms.get(field)
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number") from None
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    return value


def _closing_date(raw, today: date) -> date:
    if isinstance(raw, datetime):
        value = raw.date()
    elif isinstance(raw, date):
        value = raw
    else:
        try:
            value = date.fromisoformat(str(raw))
        except (TypeError, ValueError):
            raise ValidationError("closing_date must be an ISO date (YYYY-MM-DD)") from None
    if value <= today:
        raise ValidationError("closing_date must be after today")
    return value


def validate_offer_terms(terms: dict, today: date | None = None) -> dict:
    """Normalise offer terms or raise ValidationError."""
    today = today or utcnow().date()
    financing = terms.get("financing_type")
    try:
        financing = FinancingType(getattr(financing, "value", financing)).value
    except ValueError:
        allowed = ", ".join(f.value for f in FinancingType)
        raise ValidationError(f"financing_type must be one of: {allowed}") from None

    contingencies = terms.get("contingencies") or []
    if isinstance(contingencies, str):
        contingencies = [contingencies]
    # Set semantics: unique, order irrelevant
    contingencies = sorted({str(c).strip() for c in contingencies if str(c).strip()})

    return {
        "amount": _positive_amount(terms, "amount"),
        "earnest_money": _positive_amount(terms, "earnest_money"),
        "closing_date": _closing_date(terms.get("closing_date"), today),
        "financing_type": financing,
        "contingencies": contingencies,
        "message": terms.get("message") or None,
    }


class OfferService:
    def __init__(self, db: AsyncSession):
        self.repo = Repository(db)

    async def create(self, investor, property_id: str, terms: dict) -> Offer:
        if investor is None or not investor.is_investor():
            raise Forbidden("Only investors can make offers")
        clean = validate_offer_terms(terms)

        async with self.repo.transaction():
            prop = await self.repo.get_property_by_id(property_id)
            if prop is None:
                raise NotFound("Property not found")
            if not prop.is_offerable:
                raise ValidationError("Property is not available for offers")
            offer = await self.repo.add(
                Offer(
                    property_id=prop.id,
                    investor_role=investor.role.value,
                    investor_id=investor.id,
                    proposed_by=OfferParty.INVESTOR.value,
                    status=OfferStatus.PENDING.value,
                    **clean,
                )
            )

        logger.info(
            "Offer %s created by %s %s on property %s for %s",
            offer.id, investor.role.value, investor.id, property_id, clean["amount"],
        )
        return offer

    async def transition(
        self,
        offer_id: str,
        actor,
        new_status,
        counter_terms: dict | None = None,
    ) -> Offer:
        """Respond to a pending offer as its counterparty.

        Raises NotFound, Forbidden, IllegalTransition, or ValidationError
        (countering without terms).
        """
        target = getattr(new_status, "value", new_status)
        counter = None
        clean_counter = None
        if target == OfferStatus.COUNTERED.value and counter_terms:
            clean_counter = validate_offer_terms(counter_terms)

        async with self.repo.transaction():
            offer = await self.repo.get_offer_by_id(offer_id)
            if offer is None:
                raise NotFound("Offer not found")
            prop = await self.repo.get_property_by_id(offer.property_id)
            if not actor.may_respond_to_offer(offer, prop):
                raise Forbidden("Only the counterparty can respond to this offer")

            offer_state_machine.validate_transition(offer.status, target)

            if target == OfferStatus.COUNTERED.value and clean_counter is None:
                raise ValidationError("Counter terms are required to counter an offer")

            responded = {
                "responded_at": utcnow(),
                "responded_by_role": actor.role.value,
                "responded_by_id": actor.id,
            }
            if not await self.repo.compare_and_set_offer_status(
                offer.id, OfferStatus.PENDING.value, target, **responded
            ):
                raise IllegalTransition(
                    offer.status, target, "Offer was already responded to"
                )

            if target == OfferStatus.ACCEPTED.value:
                if not await self.repo.compare_and_set_property_status(
                    offer.property_id,
                    PropertyStatus.AVAILABLE.value,
                    PropertyStatus.UNDER_CONTRACT.value,
                ):
                    raise IllegalTransition(
                        offer.status, target, "Property is no longer available"
                    )

            if target == OfferStatus.COUNTERED.value:
                counter = await self.repo.add(
                    Offer(
                        property_id=offer.property_id,
                        investor_role=offer.investor_role,
                        investor_id=offer.investor_id,
                        proposed_by=self._counter_party(actor, offer),
                        counter_of_id=offer.id,
                        status=OfferStatus.PENDING.value,
                        **clean_counter,
                    )
                )

        await self.repo.refresh(offer)
        if prop is not None:
            await self.repo.refresh(prop)
        logger.info(
            "Offer %s -> %s by %s %s%s",
            offer.id, target, actor.role.value, actor.id,
            f" (counter {counter.id})" if counter else "",
        )
        return offer

    @staticmethod
    def _counter_party(actor, offer: Offer) -> str:
        if actor.is_investor():
            return OfferParty.INVESTOR.value
        if actor.role == Role.PARTNER:
            return OfferParty.SELLER.value
        # Admin answers on behalf of whichever side did not propose
        if offer.proposed_by == OfferParty.INVESTOR.value:
            return OfferParty.SELLER.value
        return OfferParty.INVESTOR.value

    async def get_counter_offer(self, offer_id: str) -> Offer | None:
        return await self.repo.get_counter_offer(offer_id)

    async def get_for_principal(self, offer_id: str, principal) -> Offer:
        """Fetch an offer visible to the caller (its investor, the owning partner or an admin)."""
        offer = await self.repo.get_offer_by_id(offer_id)
        if offer is None:
            raise NotFound("Offer not found")
        if principal.role == Role.ADMIN or offer.belongs_to(principal):
            return offer
        if principal.role == Role.PARTNER:
            prop = await self.repo.get_property_by_id(offer.property_id)
            if prop is not None and prop.partner_id == principal.id:
                return offer
        raise Forbidden("You do not have access to this offer")

    async def list_by_investor(self, investor) -> list[Offer]:
        return await self.repo.get_all_offers(
            investor_role=investor.role.value, investor_id=investor.id
        )

    async def list_by_property(self, property_id: str) -> list[Offer]:
        return await self.repo.get_all_offers(property_id=property_id)

    async def list_for_partner(self, partner) -> list[Offer]:
        return await self.repo.get_all_offers(partner_id=partner.id)

    async def list_all(self, status: str | None = None) -> list[Offer]:
        return await self.repo.get_all_offers(status=status)
