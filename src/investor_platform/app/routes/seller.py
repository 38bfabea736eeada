"""Seller (partner) routes: list properties and answer offers on them."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.app.routes.auth import require_partner
from investor_platform.app.routes.investors import offer_transition_response
from investor_platform.domain.schemas import (
    OfferResponse,
    OfferTransitionRequest,
    OfferTransitionResponse,
    PropertyCreate,
    PropertyResponse,
)
from investor_platform.infra.database import get_db
from investor_platform.services.offer_service import OfferService
from investor_platform.services.property_service import PropertyService
from investor_platform.services.role_authenticator import AuthContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/seller", tags=["seller"])


@router.post("/properties", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
async def create_property(
    data: PropertyCreate,
    ctx: AuthContext = Depends(require_partner),
    db: AsyncSession = Depends(get_db),
):
    """Submit a listing. It stays out of the catalogue until an admin approves it."""
    return await PropertyService(db).create_property(ctx.principal, data.model_dump())


@router.get("/properties", response_model=list[PropertyResponse])
async def list_my_properties(
    ctx: AuthContext = Depends(require_partner),
    db: AsyncSession = Depends(get_db),
):
    return await PropertyService(db).list_for_partner(ctx.principal)


@router.get("/offers", response_model=list[OfferResponse])
async def list_offers_on_my_properties(
    ctx: AuthContext = Depends(require_partner),
    db: AsyncSession = Depends(get_db),
):
    return await OfferService(db).list_for_partner(ctx.principal)


@router.post("/offers/{offer_id}/transition", response_model=OfferTransitionResponse)
async def transition_offer(
    offer_id: str,
    data: OfferTransitionRequest,
    ctx: AuthContext = Depends(require_partner),
    db: AsyncSession = Depends(get_db),
):
    """Accept, reject or counter an investor's offer on one of your properties."""
    service = OfferService(db)
    counter_terms = data.counter_terms.model_dump() if data.counter_terms else None
    offer = await service.transition(offer_id, ctx.principal, data.status, counter_terms)
    return await offer_transition_response(service, offer, data.status)
