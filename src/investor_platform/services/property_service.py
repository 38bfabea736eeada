"""Listing management for standard properties and foreclosure auctions.

Partner listings wait in ``pending_review`` until an admin publishes or
rejects them; admin listings are published on creation.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.domain.clock import as_naive_utc, utcnow
from investor_platform.domain.enums import ForeclosureListingStatus, PropertyStatus, Role
from investor_platform.domain.errors import Forbidden, IllegalTransition, NotFound
from investor_platform.domain.models import ForeclosureListing, Property
from investor_platform.infra.repository import Repository

logger = logging.getLogger(__name__)


class PropertyService:
    def __init__(self, db: AsyncSession):
        self.repo = Repository(db)

    async def create_property(self, owner, data: dict) -> Property:
        """Create a listing.

        A partner's listing is theirs and waits for admin review; an admin
        listing is internal and published at once.
        """
        if owner.role not in (Role.PARTNER, Role.ADMIN):
            raise Forbidden("Only partners and admins can list properties")
        is_partner = owner.role == Role.PARTNER
        fields = {k: v for k, v in data.items() if v is not None}
        async with self.repo.transaction():
            prop = await self.repo.add(
                Property(
                    **fields,
                    partner_id=owner.id if is_partner else None,
                    source="partner" if is_partner else "internal",
                    status=(
                        PropertyStatus.PENDING_REVIEW.value
                        if is_partner
                        else PropertyStatus.AVAILABLE.value
                    ),
                    is_active=True,
                )
            )
        logger.info(
            "Property %s listed by %s %s (%s)", prop.id, owner.role.value, owner.id, prop.status
        )
        return prop

    async def review_property(
        self,
        property_id: str,
        admin,
        approve: bool,
        reason: Optional[str] = None,
    ) -> Property:
        """Publish a listing waiting for review, or reject it.

        Raises NotFound, or IllegalTransition when the listing is not pending review.
        """
        target = PropertyStatus.AVAILABLE.value if approve else PropertyStatus.REJECTED.value
        async with self.repo.transaction():
            prop = await self.repo.get_property_by_id(property_id)
            if prop is None:
                raise NotFound("Property not found")
            if not await self.repo.compare_and_set_property_status(
                prop.id,
                PropertyStatus.PENDING_REVIEW.value,
                target,
                reviewed_at=utcnow(),
                reviewed_by=admin.id,
                rejection_reason=None if approve else reason,
            ):
                raise IllegalTransition(prop.status, target, "Property is not awaiting review")
        await self.repo.refresh(prop)
        logger.info("Admin %s reviewed property %s -> %s", admin.id, property_id, target)
        return prop

    async def list_public(self) -> list[Property]:
        """Active listings that are still available."""
        return await self.repo.get_all_properties(
            active_only=True, status=PropertyStatus.AVAILABLE.value
        )

    async def get_public(self, property_id: str) -> Property:
        prop = await self.repo.get_property_by_id(property_id)
        if prop is None or not prop.is_active or not prop.is_published:
            raise NotFound("Property not found")
        return prop

    async def list_for_partner(self, partner) -> list[Property]:
        return await self.repo.get_all_properties(partner_id=partner.id)

    async def list_all(self, status: Optional[str] = None) -> list[Property]:
        return await self.repo.get_all_properties(status=status)

    # ------------------------------------------------------------------
    # Foreclosure listings
    # ------------------------------------------------------------------

    async def create_foreclosure_listing(self, data: dict) -> ForeclosureListing:
        fields = {k: v for k, v in data.items() if v is not None}
        fields["auction_date"] = as_naive_utc(fields["auction_date"])
        async with self.repo.transaction():
            listing = await self.repo.add(
                ForeclosureListing(
                    **fields,
                    status=ForeclosureListingStatus.UPCOMING.value,
                    is_active=True,
                )
            )
        logger.info("Foreclosure listing %s created (%s)", listing.id, listing.address)
        return listing

    async def list_foreclosure_listings(self, active_only: bool = True) -> list[ForeclosureListing]:
        return await self.repo.get_all_foreclosure_listings(active_only=active_only)

    async def get_foreclosure_listing(self, listing_id: str, active_only: bool = True) -> ForeclosureListing:
        listing = await self.repo.get_foreclosure_listing_by_id(listing_id)
        if listing is None or (active_only and not listing.is_active):
            raise NotFound("Foreclosure listing not found")
        return listing

    async def set_property_active(self, property_id: str, is_active: bool) -> Optional[Property]:
        async with self.repo.transaction():
            prop = await self.repo.update_property(property_id, is_active=is_active)
            if prop is None:
                raise NotFound("Property not found")
        await self.repo.refresh(prop)
        logger.info("Property %s is_active=%s", property_id, is_active)
        return prop
