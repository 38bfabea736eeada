"""Admin routes: account approval, listings, offers, bids and subscriptions."""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.app.routes.auth import require_admin
from investor_platform.app.routes.investors import offer_transition_response
from investor_platform.domain.enums import AuthRole, PropertyStatus
from investor_platform.domain.schemas import (
    AccountRejectRequest,
    BidTransitionRequest,
    ForeclosureBidResponse,
    ForeclosureListingCreate,
    ForeclosureListingResponse,
    OfferResponse,
    OfferTransitionRequest,
    OfferTransitionResponse,
    PropertyActivation,
    PropertyCreate,
    PropertyRejectRequest,
    PropertyResponse,
    SubscriptionActivate,
    SubscriptionRequestApprove,
    SubscriptionRequestResponse,
)
from investor_platform.infra.database import get_db
from investor_platform.services.account_service import AccountService
from investor_platform.services.bid_service import BidService
from investor_platform.services.notification_service import NotificationService, get_notifier
from investor_platform.services.offer_service import OfferService
from investor_platform.services.property_service import PropertyService
from investor_platform.services.role_authenticator import AuthContext
from investor_platform.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@router.get("/accounts/{role}")
async def list_accounts(
    role: AuthRole,
    approval_status: Optional[str] = None,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    accounts = await AccountService(db).list_accounts(role.role, approval_status)
    return [account.summary() for account in accounts]


@router.post("/accounts/{role}/{principal_id}/approve")
async def approve_account(
    role: AuthRole,
    principal_id: str,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    principal = await AccountService(db).approve(role.role, principal_id, ctx.principal)
    return principal.summary()


@router.post("/accounts/{role}/{principal_id}/reject")
async def reject_account(
    role: AuthRole,
    principal_id: str,
    data: Optional[AccountRejectRequest] = None,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    reason = data.reason if data else None
    principal = await AccountService(db).reject(role.role, principal_id, ctx.principal, reason)
    return principal.summary()


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@router.post("/properties", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
async def create_property(
    data: PropertyCreate,
    background_tasks: BackgroundTasks,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    prop = await PropertyService(db).create_property(ctx.principal, data.model_dump())
    background_tasks.add_task(notifier.send_property_listing_notification, prop.id)
    return prop


@router.get("/properties", response_model=list[PropertyResponse])
async def list_properties(
    status: Optional[PropertyStatus] = None,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """All listings; `?status=pending_review` gives the review queue."""
    return await PropertyService(db).list_all(status.value if status else None)


@router.post("/properties/{property_id}/approve", response_model=PropertyResponse)
async def approve_property(
    property_id: str,
    background_tasks: BackgroundTasks,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    """Publish a partner listing and announce it to investors."""
    prop = await PropertyService(db).review_property(property_id, ctx.principal, approve=True)
    background_tasks.add_task(notifier.send_property_listing_notification, prop.id)
    return prop


@router.post("/properties/{property_id}/reject", response_model=PropertyResponse)
async def reject_property(
    property_id: str,
    data: Optional[PropertyRejectRequest] = None,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    reason = data.reason if data else None
    return await PropertyService(db).review_property(
        property_id, ctx.principal, approve=False, reason=reason
    )


@router.post("/properties/{property_id}/active", response_model=PropertyResponse)
async def set_property_active(
    property_id: str,
    data: PropertyActivation,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Hide a listing from the public catalogue, or restore it."""
    return await PropertyService(db).set_property_active(property_id, data.is_active)


@router.post(
    "/foreclosures",
    response_model=ForeclosureListingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_foreclosure_listing(
    data: ForeclosureListingCreate,
    background_tasks: BackgroundTasks,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    listing = await PropertyService(db).create_foreclosure_listing(data.model_dump())
    background_tasks.add_task(notifier.send_foreclosure_update_notification, listing.id)
    return listing


@router.get("/foreclosures", response_model=list[ForeclosureListingResponse])
async def list_foreclosure_listings(
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await PropertyService(db).list_foreclosure_listings(active_only=False)


# ---------------------------------------------------------------------------
# Offers and bids
# ---------------------------------------------------------------------------


@router.get("/offers", response_model=list[OfferResponse])
async def list_offers(
    status: Optional[str] = None,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await OfferService(db).list_all(status=status)


@router.post("/offers/{offer_id}/transition", response_model=OfferTransitionResponse)
async def transition_offer(
    offer_id: str,
    data: OfferTransitionRequest,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    service = OfferService(db)
    counter_terms = data.counter_terms.model_dump() if data.counter_terms else None
    offer = await service.transition(offer_id, ctx.principal, data.status, counter_terms)
    return await offer_transition_response(service, offer, data.status)


@router.get("/foreclosure-bids", response_model=list[ForeclosureBidResponse])
async def list_foreclosure_bids(
    status: Optional[str] = None,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await BidService(db).list_all(status=status)


@router.post("/foreclosure-bids/{bid_id}/transition", response_model=ForeclosureBidResponse)
async def transition_foreclosure_bid(
    bid_id: str,
    data: BidTransitionRequest,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await BidService(db).transition(bid_id, ctx.principal, data.status)


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


@router.get("/subscription-requests", response_model=list[SubscriptionRequestResponse])
async def list_subscription_requests(
    status: Optional[str] = None,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await SubscriptionService(db).list_requests(status=status)


@router.post(
    "/subscription-requests/{request_id}/approve",
    response_model=SubscriptionRequestResponse,
)
async def approve_subscription_request(
    request_id: str,
    data: Optional[SubscriptionRequestApprove] = None,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await SubscriptionService(db).approve_request(
        request_id, ctx.principal, data.period_end if data else None
    )


@router.post(
    "/subscription-requests/{request_id}/reject",
    response_model=SubscriptionRequestResponse,
)
async def reject_subscription_request(
    request_id: str,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await SubscriptionService(db).reject_request(request_id, ctx.principal)


@router.post("/subscriptions/activate")
async def activate_subscription(
    data: SubscriptionActivate,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    investor = await SubscriptionService(db).activate(data.investor_id, data.plan_id, data.period_end)
    logger.info("Admin %s manually activated subscription for %s", ctx.principal.id, investor.id)
    return investor.summary()
