"""Repository: the single persistence seam used by the lifecycle managers.

Lookups return ``None`` for missing ids instead of raising. Status changes
that must not race go through the ``compare_and_set_*`` methods, which issue
``UPDATE ... WHERE status = :expected`` and report whether a row changed.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy import event, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from investor_platform.domain.enums import Role
from investor_platform.domain.errors import DependencyFailure, ValidationError
from investor_platform.domain.models import (
    PRINCIPAL_MODELS,
    CommonInvestor,
    ForeclosureBid,
    ForeclosureListing,
    InstitutionalInvestor,
    Offer,
    Property,
    SubscriptionRequest,
)

logger = logging.getLogger(__name__)

# session.info key set once the current session transaction has written anything
_WROTE = "investor_platform.wrote"


@event.listens_for(Session, "after_flush")
def _note_flush(session, flush_context):
    session.info[_WROTE] = True


@event.listens_for(Session, "do_orm_execute")
def _note_statement(orm_execute_state):
    if orm_execute_state.is_insert or orm_execute_state.is_update or orm_execute_state.is_delete:
        orm_execute_state.session.info[_WROTE] = True


@event.listens_for(Session, "after_transaction_end")
def _clear_write_flag(session, transaction):
    if transaction.parent is None:
        session.info.pop(_WROTE, None)


class Repository:
    """CRUD access over one AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self):
        """Commit on success; undo the block's writes on any exception.

        Constraint violations become ValidationError; any other database
        error becomes DependencyFailure. The raw cause never reaches a client.

        A block that fails before writing anything only ends the transaction,
        so objects already loaded in the session stay usable.
        """
        try:
            yield self
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning("Transaction rolled back on constraint violation: %s", exc.orig)
            raise ValidationError("Record conflicts with existing data") from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.exception("Transaction rolled back after database error")
            raise DependencyFailure() from exc
        except BaseException:
            await self._end_failed()
            raise

    def has_writes(self) -> bool:
        """True when the open session transaction has written or will write rows."""
        return bool(
            self.db.info.get(_WROTE) or self.db.new or self.db.dirty or self.db.deleted
        )

    async def _end_failed(self) -> None:
        if self.has_writes():
            await self.db.rollback()
        else:
            await self.db.commit()

    async def end_read(self) -> None:
        """Close a read-only transaction without expiring loaded objects."""
        if self.has_writes():
            raise RuntimeError("end_read() called with uncommitted writes")
        await self.db.commit()

    async def add(self, obj):
        """Insert and reload, so SQL-side defaults such as created_at are populated."""
        self.db.add(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        return obj

    async def refresh(self, obj):
        await self.db.refresh(obj)
        return obj

    # ------------------------------------------------------------------
    # Principals
    # ------------------------------------------------------------------

    async def get_principal_by_id(self, role: Role, principal_id: str):
        model = PRINCIPAL_MODELS[role]
        result = await self.db.execute(select(model).where(model.id == principal_id))
        return result.scalar_one_or_none()

    async def get_principal_by_username(self, role: Role, username: str):
        model = PRINCIPAL_MODELS[role]
        result = await self.db.execute(select(model).where(model.username == username))
        return result.scalar_one_or_none()

    async def get_principal_by_email(self, role: Role, email: str):
        model = PRINCIPAL_MODELS[role]
        result = await self.db.execute(select(model).where(model.email == email))
        return result.scalar_one_or_none()

    async def get_principal_by_verification_digest(self, role: Role, digest: str):
        model = PRINCIPAL_MODELS[role]
        result = await self.db.execute(
            select(model).where(model.email_verification_digest == digest)
        )
        return result.scalar_one_or_none()

    async def get_principals(self, role: Role, approval_status: Optional[str] = None) -> list:
        model = PRINCIPAL_MODELS[role]
        query = select(model)
        if approval_status and hasattr(model, "approval_status"):
            query = query.where(model.approval_status == approval_status)
        result = await self.db.execute(query.order_by(model.created_at))
        return list(result.scalars().all())

    async def get_notifiable_common_investors(self) -> list[CommonInvestor]:
        result = await self.db.execute(
            select(CommonInvestor).where(
                CommonInvestor.is_active.is_(True),
                CommonInvestor.email_verified.is_(True),
            )
        )
        return list(result.scalars().all())

    async def get_active_institutional_investors(self) -> list[InstitutionalInvestor]:
        result = await self.db.execute(
            select(InstitutionalInvestor).where(InstitutionalInvestor.is_active.is_(True))
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    async def get_property_by_id(self, property_id: str) -> Property | None:
        result = await self.db.execute(select(Property).where(Property.id == property_id))
        return result.scalar_one_or_none()

    async def get_all_properties(
        self,
        active_only: bool = False,
        partner_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Property]:
        query = select(Property)
        if active_only:
            query = query.where(Property.is_active.is_(True))
        if partner_id:
            query = query.where(Property.partner_id == partner_id)
        if status:
            query = query.where(Property.status == status)
        result = await self.db.execute(query.order_by(Property.created_at.desc()))
        return list(result.scalars().all())

    async def update_property(self, property_id: str, **fields) -> Property | None:
        prop = await self.get_property_by_id(property_id)
        if prop is None:
            return None
        for key, value in fields.items():
            setattr(prop, key, value)
        await self.db.flush()
        return prop

    async def compare_and_set_property_status(
        self, property_id: str, expected: str, new: str, **fields
    ) -> bool:
        result = await self.db.execute(
            update(Property)
            .where(
                Property.id == property_id,
                Property.status == expected,
                Property.is_active.is_(True),
            )
            .values(status=new, **fields)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Offers
    # ------------------------------------------------------------------

    async def get_offer_by_id(self, offer_id: str) -> Offer | None:
        result = await self.db.execute(select(Offer).where(Offer.id == offer_id))
        return result.scalar_one_or_none()

    async def get_all_offers(
        self,
        property_id: Optional[str] = None,
        investor_role: Optional[str] = None,
        investor_id: Optional[str] = None,
        partner_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Offer]:
        query = select(Offer)
        if property_id:
            query = query.where(Offer.property_id == property_id)
        if investor_role and investor_id:
            query = query.where(
                Offer.investor_role == investor_role,
                Offer.investor_id == investor_id,
            )
        if partner_id:
            query = query.join(Property, Property.id == Offer.property_id).where(
                Property.partner_id == partner_id
            )
        if status:
            query = query.where(Offer.status == status)
        result = await self.db.execute(query.order_by(Offer.created_at, Offer.id))
        return list(result.scalars().all())

    async def get_counter_offer(self, offer_id: str) -> Offer | None:
        result = await self.db.execute(
            select(Offer).where(Offer.counter_of_id == offer_id).order_by(Offer.created_at.desc())
        )
        return result.scalars().first()

    async def update_offer(self, offer_id: str, **fields) -> Offer | None:
        offer = await self.get_offer_by_id(offer_id)
        if offer is None:
            return None
        for key, value in fields.items():
            setattr(offer, key, value)
        await self.db.flush()
        return offer

    async def compare_and_set_offer_status(
        self, offer_id: str, expected: str, new: str, **fields
    ) -> bool:
        result = await self.db.execute(
            update(Offer)
            .where(Offer.id == offer_id, Offer.status == expected)
            .values(status=new, **fields)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Foreclosures
    # ------------------------------------------------------------------

    async def get_foreclosure_listing_by_id(self, listing_id: str) -> ForeclosureListing | None:
        result = await self.db.execute(
            select(ForeclosureListing).where(ForeclosureListing.id == listing_id)
        )
        return result.scalar_one_or_none()

    async def get_all_foreclosure_listings(self, active_only: bool = True) -> list[ForeclosureListing]:
        query = select(ForeclosureListing)
        if active_only:
            query = query.where(ForeclosureListing.is_active.is_(True))
        result = await self.db.execute(
            query.order_by(ForeclosureListing.featured.desc(), ForeclosureListing.auction_date)
        )
        return list(result.scalars().all())

    async def create_foreclosure_bid(self, bid: ForeclosureBid) -> ForeclosureBid:
        return await self.add(bid)

    async def get_foreclosure_bid_by_id(self, bid_id: str) -> ForeclosureBid | None:
        result = await self.db.execute(select(ForeclosureBid).where(ForeclosureBid.id == bid_id))
        return result.scalar_one_or_none()

    async def get_foreclosure_bids_by_investor_id(
        self, investor_role: str, investor_id: str
    ) -> list[ForeclosureBid]:
        result = await self.db.execute(
            select(ForeclosureBid)
            .where(
                ForeclosureBid.investor_role == investor_role,
                ForeclosureBid.investor_id == investor_id,
            )
            .order_by(ForeclosureBid.created_at, ForeclosureBid.id)
        )
        return list(result.scalars().all())

    async def get_all_foreclosure_bids(self, status: Optional[str] = None) -> list[ForeclosureBid]:
        query = select(ForeclosureBid)
        if status:
            query = query.where(ForeclosureBid.status == status)
        result = await self.db.execute(query.order_by(ForeclosureBid.created_at, ForeclosureBid.id))
        return list(result.scalars().all())

    async def compare_and_set_bid_status(
        self, bid_id: str, expected: str, new: str, **fields
    ) -> bool:
        result = await self.db.execute(
            update(ForeclosureBid)
            .where(ForeclosureBid.id == bid_id, ForeclosureBid.status == expected)
            .values(status=new, **fields)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Subscription requests
    # ------------------------------------------------------------------

    async def get_subscription_request_by_id(self, request_id: str) -> SubscriptionRequest | None:
        result = await self.db.execute(
            select(SubscriptionRequest).where(SubscriptionRequest.id == request_id)
        )
        return result.scalar_one_or_none()

    async def get_subscription_requests(
        self,
        investor_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[SubscriptionRequest]:
        query = select(SubscriptionRequest)
        if investor_id:
            query = query.where(SubscriptionRequest.investor_id == investor_id)
        if status:
            query = query.where(SubscriptionRequest.status == status)
        result = await self.db.execute(query.order_by(SubscriptionRequest.created_at))
        return list(result.scalars().all())
