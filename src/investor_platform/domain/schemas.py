"""Pydantic v2 schemas for API request/response validation."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from investor_platform.domain.enums import (
    BidStatus,
    ContactMethod,
    ExperienceLevel,
    FinancingType,
    OfferStatus,
    SubscriptionPlanId,
)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Registration payload. Role-specific fields are ignored for other roles."""

    username: str
    email: str
    password: str
    first_name: str
    last_name: str
    phone: str | None = None
    # institutional investors
    institution_name: str | None = None
    job_title: str | None = None
    work_phone: str | None = None
    # partners
    company: str | None = None


class RegisterResponse(BaseModel):
    id: str
    user_type: str
    is_active: bool
    verification_pending: bool = True
    approval_pending: bool = False


class LoginRequest(BaseModel):
    """Username or email plus password."""

    username: str
    password: str


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: dict


class VerifyEmailRequest(BaseModel):
    token: str


class PasswordResetRequest(BaseModel):
    email: str


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class PropertyActivation(BaseModel):
    is_active: bool


class PropertyRejectRequest(BaseModel):
    reason: str | None = None


class PropertyCreate(BaseModel):
    """Schema for a partner (or admin) creating a standard listing."""

    address: str = Field(min_length=1)
    neighborhood: str = Field(min_length=1)
    borough: str = Field(min_length=1)
    property_type: str = Field(min_length=1)
    price: Decimal = Field(gt=0)
    beds: int | None = Field(default=None, ge=0)
    baths: Decimal | None = Field(default=None, ge=0)
    sqft: int | None = Field(default=None, ge=0)
    units: int | None = Field(default=None, ge=0)
    arv: Decimal | None = None
    estimated_profit: Decimal | None = None
    condition: str | None = None
    access: str | None = None
    description: str | None = None


class PropertyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    partner_id: str | None = None
    address: str
    neighborhood: str
    borough: str
    property_type: str
    beds: int | None = None
    baths: Decimal | None = None
    sqft: int | None = None
    units: int | None = None
    price: Decimal
    arv: Decimal | None = None
    estimated_profit: Decimal | None = None
    condition: str | None = None
    access: str | None = None
    description: str | None = None
    source: str
    status: str
    is_active: bool
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime | None = None


class ForeclosureListingCreate(BaseModel):
    address: str = Field(min_length=1)
    county: str = Field(min_length=1)
    auction_date: datetime
    neighborhood: str | None = None
    borough: str | None = None
    starting_bid: Decimal | None = Field(default=None, gt=0)
    assessed_value: Decimal | None = None
    property_type: str | None = None
    beds: int | None = None
    baths: Decimal | None = None
    sqft: int | None = None
    year_built: int | None = None
    description: str | None = None
    docket_number: str | None = None
    plaintiff: str | None = None
    featured: bool = False


class ForeclosureListingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    address: str
    county: str
    neighborhood: str | None = None
    borough: str | None = None
    auction_date: datetime
    starting_bid: Decimal | None = None
    assessed_value: Decimal | None = None
    property_type: str | None = None
    beds: int | None = None
    baths: Decimal | None = None
    sqft: int | None = None
    year_built: int | None = None
    description: str | None = None
    docket_number: str | None = None
    plaintiff: str | None = None
    status: str
    is_active: bool
    featured: bool


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------


class OfferTerms(BaseModel):
    amount: Decimal
    earnest_money: Decimal
    closing_date: date
    financing_type: FinancingType
    contingencies: list[str] = Field(default_factory=list)
    message: str | None = None


class OfferCreate(OfferTerms):
    property_id: str


class OfferTransitionRequest(BaseModel):
    status: OfferStatus
    counter_terms: OfferTerms | None = None


class OfferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    property_id: str
    investor_role: str
    investor_id: str
    proposed_by: str
    counter_of_id: str | None = None
    amount: Decimal
    earnest_money: Decimal
    closing_date: date
    financing_type: str
    contingencies: list[str] = Field(default_factory=list)
    message: str | None = None
    status: str
    responded_at: datetime | None = None
    responded_by_role: str | None = None
    created_at: datetime | None = None


class OfferTransitionResponse(BaseModel):
    offer: OfferResponse
    counter_offer: OfferResponse | None = None


# ---------------------------------------------------------------------------
# Foreclosure bids
# ---------------------------------------------------------------------------


class ForeclosureBidCreate(BaseModel):
    listing_id: str
    bid_amount: Decimal
    max_bid_amount: Decimal
    preferred_contact_method: ContactMethod
    experience_level: ExperienceLevel | None = None
    timeframe: str | None = None
    notes: str | None = None


class BidTransitionRequest(BaseModel):
    status: BidStatus


class ForeclosureBidResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    listing_id: str
    investor_role: str
    investor_id: str
    bid_amount: Decimal
    max_bid_amount: Decimal
    experience_level: str | None = None
    preferred_contact_method: str
    timeframe: str | None = None
    notes: str | None = None
    status: str
    status_changed_at: datetime | None = None
    created_at: datetime | None = None


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


class SubscriptionRequestCreate(BaseModel):
    plan_id: SubscriptionPlanId
    counties: list[str] = Field(default_factory=list)
    contact_phone: str | None = None
    notes: str | None = None


class SubscriptionRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    investor_id: str
    plan_id: str
    status: str
    counties: list[str] = Field(default_factory=list)
    contact_phone: str | None = None
    notes: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime | None = None


class SubscribeRequest(BaseModel):
    plan_id: SubscriptionPlanId
    payment_method: dict | None = None


class SubscriptionActivate(BaseModel):
    """Manual activation by an admin."""

    investor_id: str
    plan_id: SubscriptionPlanId
    period_end: datetime


class SubscriptionRequestApprove(BaseModel):
    period_end: datetime | None = None


class SubscriptionStatusResponse(BaseModel):
    has_subscription: bool
    plan: str | None = None
    expiry: str | None = None
    days_remaining: int | None = None
    cancelled: bool = False


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


class AccountRejectRequest(BaseModel):
    reason: str | None = None


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
