"""SQLAlchemy ORM models for the investor marketplace.

All models use SQLite-compatible types:
- String(36) for UUID primary keys
- JSON for structured data (no JSONB)
- DateTime for timestamps, stored as naive UTC

Each principal role has its own table and its own session table, so
usernames, emails and session tokens are partitioned per role.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from investor_platform.domain.clock import as_naive_utc, utcnow
from investor_platform.domain.enums import (
    ApprovalStatus,
    BidStatus,
    ForeclosureListingStatus,
    OfferParty,
    OfferStatus,
    PropertyStatus,
    Role,
    SubscriptionRequestStatus,
)
from investor_platform.infra.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------


class PrincipalMixin:
    """Columns and behaviour shared by every authenticated actor.

    Subclasses set ``role`` and override the capability methods; callers ask
    the principal what it may do instead of comparing role strings.
    """

    role = None
    active_on_registration = True

    id = Column(String(36), primary_key=True, default=_uuid)
    username = Column(String(150), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(150), nullable=False)
    last_name = Column(String(150), nullable=False)
    phone = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    email_verification_digest = Column(String(64), nullable=True, index=True)
    email_verification_sent_at = Column(DateTime, nullable=True)
    email_verified_at = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def can_access_foreclosures(self, now: datetime | None = None) -> bool:
        return False

    def is_investor(self) -> bool:
        return False

    def may_respond_to_offer(self, offer: "Offer", prop: "Property") -> bool:
        return False

    def may_manage_bids(self) -> bool:
        return False

    def summary(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "user_type": self.role.value,
            "is_active": bool(self.is_active),
            "email_verified": bool(self.email_verified),
        }


class CommonInvestor(PrincipalMixin, Base):
    """Individual investor; foreclosure access depends on a paid subscription."""

    __tablename__ = "common_investors"

    role = Role.COMMON_INVESTOR

    has_foreclosure_subscription = Column(Boolean, nullable=False, default=False)
    foreclosure_subscription_expiry = Column(DateTime, nullable=True)
    subscription_plan = Column(String(30), nullable=True)
    subscription_cancelled_at = Column(DateTime, nullable=True)

    subscription_requests = relationship("SubscriptionRequest", back_populates="investor")

    def can_access_foreclosures(self, now: datetime | None = None) -> bool:
        # Flag and expiry can disagree; both must pass.
        if not self.has_foreclosure_subscription:
            return False
        expiry = as_naive_utc(self.foreclosure_subscription_expiry)
        if expiry is None:
            return True
        return expiry > (as_naive_utc(now) or utcnow())

    def is_investor(self) -> bool:
        return True

    def may_respond_to_offer(self, offer: "Offer", prop: "Property") -> bool:
        return offer.proposed_by == OfferParty.SELLER.value and offer.belongs_to(self)

    def summary(self) -> dict:
        data = super().summary()
        data["has_foreclosure_subscription"] = bool(self.has_foreclosure_subscription)
        data["subscription_plan"] = self.subscription_plan
        data["foreclosure_subscription_expiry"] = (
            self.foreclosure_subscription_expiry.isoformat()
            if self.foreclosure_subscription_expiry
            else None
        )
        return data


class InstitutionalInvestor(PrincipalMixin, Base):
    """Institutional buyer. Registers pending; an admin activates the account."""

    __tablename__ = "institutional_investors"

    role = Role.INSTITUTIONAL_INVESTOR
    active_on_registration = False

    institution_name = Column(String(255), nullable=False)
    job_title = Column(String(150), nullable=False)
    work_phone = Column(String(50), nullable=True)
    approval_status = Column(String(20), nullable=False, default=ApprovalStatus.PENDING.value)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(String(36), nullable=True)

    def can_access_foreclosures(self, now: datetime | None = None) -> bool:
        return True

    def is_investor(self) -> bool:
        return True

    def may_respond_to_offer(self, offer: "Offer", prop: "Property") -> bool:
        return offer.proposed_by == OfferParty.SELLER.value and offer.belongs_to(self)

    def summary(self) -> dict:
        data = super().summary()
        data["institution_name"] = self.institution_name
        data["job_title"] = self.job_title
        data["approval_status"] = self.approval_status
        return data


class Partner(PrincipalMixin, Base):
    """Selling partner who lists properties and answers offers on them."""

    __tablename__ = "partners"

    role = Role.PARTNER
    active_on_registration = False

    company = Column(String(255), nullable=True)
    approval_status = Column(String(20), nullable=False, default=ApprovalStatus.PENDING.value)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(String(36), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    properties = relationship("Property", back_populates="partner")

    def may_respond_to_offer(self, offer: "Offer", prop: "Property") -> bool:
        return (
            offer.proposed_by == OfferParty.INVESTOR.value
            and prop is not None
            and prop.partner_id == self.id
        )

    def summary(self) -> dict:
        data = super().summary()
        data["company"] = self.company
        data["approval_status"] = self.approval_status
        return data


class AdminUser(PrincipalMixin, Base):
    """Platform administrator. Created by script, never by self-registration."""

    __tablename__ = "admin_users"

    role = Role.ADMIN

    def can_access_foreclosures(self, now: datetime | None = None) -> bool:
        return True

    def may_respond_to_offer(self, offer: "Offer", prop: "Property") -> bool:
        return True

    def may_manage_bids(self) -> bool:
        return True


PRINCIPAL_MODELS: dict[Role, type] = {
    Role.COMMON_INVESTOR: CommonInvestor,
    Role.INSTITUTIONAL_INVESTOR: InstitutionalInvestor,
    Role.PARTNER: Partner,
    Role.ADMIN: AdminUser,
}


# ---------------------------------------------------------------------------
# Sessions (one table per role namespace)
# ---------------------------------------------------------------------------


class SessionMixin:
    """Opaque login session. Only the SHA-256 digest of the token is stored.

    Expired rows are never swept; they stay until revoked at logout.
    """

    id = Column(String(36), primary_key=True, default=_uuid)
    token_digest = Column(String(64), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=func.now())


class CommonInvestorSession(SessionMixin, Base):
    __tablename__ = "common_investor_sessions"

    principal_id = Column(
        String(36), ForeignKey("common_investors.id", ondelete="CASCADE"), nullable=False, index=True
    )


class InstitutionalSession(SessionMixin, Base):
    __tablename__ = "institutional_sessions"

    principal_id = Column(
        String(36), ForeignKey("institutional_investors.id", ondelete="CASCADE"), nullable=False, index=True
    )


class PartnerSession(SessionMixin, Base):
    __tablename__ = "partner_sessions"

    principal_id = Column(
        String(36), ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True
    )


class AdminSession(SessionMixin, Base):
    __tablename__ = "admin_sessions"

    principal_id = Column(
        String(36), ForeignKey("admin_users.id", ondelete="CASCADE"), nullable=False, index=True
    )


SESSION_MODELS: dict[Role, type] = {
    Role.COMMON_INVESTOR: CommonInvestorSession,
    Role.INSTITUTIONAL_INVESTOR: InstitutionalSession,
    Role.PARTNER: PartnerSession,
    Role.ADMIN: AdminSession,
}


class PasswordResetToken(Base):
    """Single-use password reset token scoped to one role namespace."""

    __tablename__ = "password_reset_tokens"

    id = Column(String(36), primary_key=True, default=_uuid)
    role = Column(String(30), nullable=False)
    principal_id = Column(String(36), nullable=False, index=True)
    token_digest = Column(String(64), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=func.now())


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class Property(Base):
    """Standard for-sale listing, optionally owned by a partner."""

    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, default=_uuid)
    partner_id = Column(String(36), ForeignKey("partners.id"), nullable=True, index=True)
    address = Column(String(500), nullable=False)
    neighborhood = Column(String(150), nullable=False)
    borough = Column(String(100), nullable=False)
    property_type = Column(String(100), nullable=False)
    beds = Column(Integer)
    baths = Column(Numeric(4, 1))
    sqft = Column(Integer)
    units = Column(Integer)
    price = Column(Numeric(14, 2), nullable=False)
    arv = Column(Numeric(14, 2))
    estimated_profit = Column(Numeric(14, 2))
    condition = Column(String(100))
    access = Column(String(150), default="Available with Appointment")
    description = Column(Text, nullable=True)
    source = Column(String(30), nullable=False, default="internal")  # internal, partner
    status = Column(String(30), nullable=False, default=PropertyStatus.AVAILABLE.value, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(String(36), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    partner = relationship("Partner", back_populates="properties")
    offers = relationship("Offer", back_populates="property_ref")

    @property
    def is_offerable(self) -> bool:
        return bool(self.is_active) and self.status == PropertyStatus.AVAILABLE.value

    @property
    def is_published(self) -> bool:
        return self.status not in (
            PropertyStatus.PENDING_REVIEW.value,
            PropertyStatus.REJECTED.value,
        )


class ForeclosureListing(Base):
    """Upcoming foreclosure auction; visible only to entitled investors."""

    __tablename__ = "foreclosure_listings"

    id = Column(String(36), primary_key=True, default=_uuid)
    address = Column(String(500), nullable=False)
    county = Column(String(100), nullable=False)
    neighborhood = Column(String(150))
    borough = Column(String(100))
    auction_date = Column(DateTime, nullable=False)
    starting_bid = Column(Numeric(14, 2), nullable=True)
    assessed_value = Column(Numeric(14, 2), nullable=True)
    property_type = Column(String(100))
    beds = Column(Integer)
    baths = Column(Numeric(4, 1))
    sqft = Column(Integer)
    year_built = Column(Integer)
    description = Column(Text)
    docket_number = Column(String(100))
    plaintiff = Column(String(255))
    status = Column(String(30), nullable=False, default=ForeclosureListingStatus.UPCOMING.value)
    is_active = Column(Boolean, nullable=False, default=True)
    featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    bids = relationship("ForeclosureBid", back_populates="listing")

    @property
    def accepts_bids(self) -> bool:
        return bool(self.is_active) and self.status == ForeclosureListingStatus.UPCOMING.value


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------


class Offer(Base):
    """Purchase offer on a standard listing. Terms are immutable once created.

    A counter creates a new Offer with ``counter_of_id`` pointing at the
    original and ``proposed_by = "seller"``.
    """

    __tablename__ = "offers"

    id = Column(String(36), primary_key=True, default=_uuid)
    property_id = Column(String(36), ForeignKey("properties.id"), nullable=False, index=True)
    investor_role = Column(String(30), nullable=False)
    investor_id = Column(String(36), nullable=False, index=True)
    proposed_by = Column(String(20), nullable=False, default=OfferParty.INVESTOR.value)
    counter_of_id = Column(String(36), ForeignKey("offers.id"), nullable=True)
    amount = Column(Numeric(14, 2), nullable=False)
    earnest_money = Column(Numeric(14, 2), nullable=False)
    closing_date = Column(Date, nullable=False)
    financing_type = Column(String(30), nullable=False)
    contingencies = Column(JSON, default=list)
    message = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=OfferStatus.PENDING.value, index=True)
    responded_at = Column(DateTime, nullable=True)
    responded_by_role = Column(String(30), nullable=True)
    responded_by_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    property_ref = relationship("Property", back_populates="offers")

    def belongs_to(self, principal) -> bool:
        return self.investor_role == principal.role.value and self.investor_id == principal.id


class ForeclosureBid(Base):
    """Bid service request on a foreclosure auction. Moves strictly forward."""

    __tablename__ = "foreclosure_bids"

    id = Column(String(36), primary_key=True, default=_uuid)
    listing_id = Column(String(36), ForeignKey("foreclosure_listings.id"), nullable=False, index=True)
    investor_role = Column(String(30), nullable=False)
    investor_id = Column(String(36), nullable=False, index=True)
    bid_amount = Column(Numeric(14, 2), nullable=False)
    max_bid_amount = Column(Numeric(14, 2), nullable=False)
    experience_level = Column(String(30), nullable=True)
    preferred_contact_method = Column(String(10), nullable=False)
    timeframe = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=BidStatus.PENDING.value, index=True)
    status_changed_at = Column(DateTime, nullable=True)
    status_changed_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    listing = relationship("ForeclosureListing", back_populates="bids")


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


class SubscriptionRequest(Base):
    """A common investor's request for a foreclosure plan, pending payment or review."""

    __tablename__ = "subscription_requests"

    id = Column(String(36), primary_key=True, default=_uuid)
    investor_id = Column(
        String(36), ForeignKey("common_investors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plan_id = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default=SubscriptionRequestStatus.PENDING.value)
    counties = Column(JSON, default=list)
    contact_phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=func.now())

    investor = relationship("CommonInvestor", back_populates="subscription_requests")


def money(value) -> Decimal | None:
    """Coerce a Numeric column value (Decimal/float/str) to Decimal."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
