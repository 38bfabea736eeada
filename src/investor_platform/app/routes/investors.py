"""Investor routes for both common and institutional investors.

The {kind} path segment picks the session namespace; a common investor's
token never authenticates an institutional route.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.app.routes.auth import require_investor
from investor_platform.domain.enums import InvestorKind, OfferStatus
from investor_platform.domain.schemas import (
    ForeclosureBidCreate,
    ForeclosureBidResponse,
    ForeclosureListingResponse,
    OfferCreate,
    OfferResponse,
    OfferTransitionRequest,
    OfferTransitionResponse,
)
from investor_platform.infra.database import get_db
from investor_platform.services.bid_service import BidService
from investor_platform.services.entitlement import require_foreclosure_access
from investor_platform.services.offer_service import OfferService
from investor_platform.services.property_service import PropertyService
from investor_platform.services.role_authenticator import AuthContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/investors/{kind}", tags=["investors"])


async def offer_transition_response(
    service: OfferService, offer, requested_status
) -> OfferTransitionResponse:
    counter = None
    if requested_status == OfferStatus.COUNTERED:
        counter = await service.get_counter_offer(offer.id)
    return OfferTransitionResponse(
        offer=OfferResponse.model_validate(offer),
        counter_offer=OfferResponse.model_validate(counter) if counter else None,
    )


# ---------------------------------------------------------------------------
# Foreclosures (subscription-gated)
# ---------------------------------------------------------------------------


@router.get("/foreclosures", response_model=list[ForeclosureListingResponse])
async def list_foreclosures(
    kind: InvestorKind,
    ctx: AuthContext = Depends(require_investor),
    db: AsyncSession = Depends(get_db),
):
    require_foreclosure_access(ctx.principal)
    return await PropertyService(db).list_foreclosure_listings()


@router.get("/foreclosures/{listing_id}", response_model=ForeclosureListingResponse)
async def get_foreclosure(
    kind: InvestorKind,
    listing_id: str,
    ctx: AuthContext = Depends(require_investor),
    db: AsyncSession = Depends(get_db),
):
    require_foreclosure_access(ctx.principal)
    return await PropertyService(db).get_foreclosure_listing(listing_id)


@router.post(
    "/foreclosure-bids",
    response_model=ForeclosureBidResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_foreclosure_bid(
    kind: InvestorKind,
    data: ForeclosureBidCreate,
    ctx: AuthContext = Depends(require_investor),
    db: AsyncSession = Depends(get_db),
):
    terms = data.model_dump(exclude={"listing_id"})
    return await BidService(db).create(ctx.principal, data.listing_id, terms)


@router.get("/foreclosure-bids", response_model=list[ForeclosureBidResponse])
async def list_my_foreclosure_bids(
    kind: InvestorKind,
    ctx: AuthContext = Depends(require_investor),
    db: AsyncSession = Depends(get_db),
):
    return await BidService(db).list_by_investor(ctx.principal)


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------


@router.post("/offers", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def create_offer(
    kind: InvestorKind,
    data: OfferCreate,
    ctx: AuthContext = Depends(require_investor),
    db: AsyncSession = Depends(get_db),
):
    terms = data.model_dump(exclude={"property_id"})
    return await OfferService(db).create(ctx.principal, data.property_id, terms)


@router.get("/offers", response_model=list[OfferResponse])
async def list_my_offers(
    kind: InvestorKind,
    ctx: AuthContext = Depends(require_investor),
    db: AsyncSession = Depends(get_db),
):
    return await OfferService(db).list_by_investor(ctx.principal)


@router.get("/offers/{offer_id}", response_model=OfferResponse)
async def get_my_offer(
    kind: InvestorKind,
    offer_id: str,
    ctx: AuthContext = Depends(require_investor),
    db: AsyncSession = Depends(get_db),
):
    return await OfferService(db).get_for_principal(offer_id, ctx.principal)


@router.post("/offers/{offer_id}/transition", response_model=OfferTransitionResponse)
async def respond_to_counter_offer(
    kind: InvestorKind,
    offer_id: str,
    data: OfferTransitionRequest,
    ctx: AuthContext = Depends(require_investor),
    db: AsyncSession = Depends(get_db),
):
    """Accept, reject or counter a seller's counter offer."""
    service = OfferService(db)
    counter_terms = data.counter_terms.model_dump() if data.counter_terms else None
    offer = await service.transition(offer_id, ctx.principal, data.status, counter_terms)
    return await offer_transition_response(service, offer, data.status)
