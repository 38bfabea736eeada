"""Foreclosure subscription routes for common investors."""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from investor_platform.app.routes.auth import require_common_investor
from investor_platform.domain.schemas import (
    SubscribeRequest,
    SubscriptionRequestCreate,
    SubscriptionRequestResponse,
    SubscriptionStatusResponse,
)
from investor_platform.infra.database import get_db
from investor_platform.services.payment_processor import PaymentProcessor, get_payment_processor
from investor_platform.services.role_authenticator import AuthContext
from investor_platform.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


@router.get("/plans")
async def list_plans():
    return SubscriptionService.list_plans()


@router.post(
    "/requests",
    response_model=SubscriptionRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_subscription(
    data: SubscriptionRequestCreate,
    ctx: AuthContext = Depends(require_common_investor),
    db: AsyncSession = Depends(get_db),
):
    intake = data.model_dump(exclude={"plan_id"})
    return await SubscriptionService(db).request_subscription(ctx.principal.id, data.plan_id, intake)


@router.get("/requests", response_model=list[SubscriptionRequestResponse])
async def list_my_requests(
    ctx: AuthContext = Depends(require_common_investor),
    db: AsyncSession = Depends(get_db),
):
    return await SubscriptionService(db).list_requests(investor_id=ctx.principal.id)


@router.post("/subscribe", response_model=SubscriptionStatusResponse)
async def subscribe(
    data: SubscribeRequest,
    ctx: AuthContext = Depends(require_common_investor),
    db: AsyncSession = Depends(get_db),
    payments: PaymentProcessor = Depends(get_payment_processor),
):
    service = SubscriptionService(db, payments)
    await service.subscribe(ctx.principal.id, data.plan_id, data.payment_method)
    return await service.status(ctx.principal.id)


@router.get("/current", response_model=SubscriptionStatusResponse)
async def current_subscription(
    ctx: AuthContext = Depends(require_common_investor),
    db: AsyncSession = Depends(get_db),
):
    return await SubscriptionService(db).status(ctx.principal.id)


@router.post("/cancel", response_model=SubscriptionStatusResponse)
async def cancel_subscription(
    ctx: AuthContext = Depends(require_common_investor),
    db: AsyncSession = Depends(get_db),
):
    service = SubscriptionService(db)
    await service.cancel(ctx.principal.id)
    return await service.status(ctx.principal.id)
