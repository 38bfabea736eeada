"""Domain enumerations for the investor marketplace.

All enums use the (str, Enum) pattern to ensure JSON serialization compatibility.
"""

from enum import Enum


class Role(str, Enum):
    """Session namespace / principal kind. A principal's role never changes."""

    COMMON_INVESTOR = "common_investor"
    INSTITUTIONAL_INVESTOR = "institutional_investor"
    PARTNER = "partner"
    ADMIN = "admin"


class InvestorKind(str, Enum):
    """Path segment selecting which investor namespace a route authenticates against."""

    COMMON = "common"
    INSTITUTIONAL = "institutional"

    @property
    def role(self) -> Role:
        if self is InvestorKind.COMMON:
            return Role.COMMON_INVESTOR
        return Role.INSTITUTIONAL_INVESTOR


class ApprovalStatus(str, Enum):
    """Admin review state for partner and institutional accounts."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PropertyStatus(str, Enum):
    """Sale state of a standard listing.

    Partner listings start in PENDING_REVIEW and are published (AVAILABLE)
    or REJECTED by an admin.
    """

    PENDING_REVIEW = "pending_review"
    AVAILABLE = "available"
    UNDER_CONTRACT = "under_contract"
    SOLD = "sold"
    REJECTED = "rejected"


class ForeclosureListingStatus(str, Enum):
    """Auction state of a foreclosure listing."""

    UPCOMING = "upcoming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OfferStatus(str, Enum):
    """Status of a purchase offer."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COUNTERED = "countered"


class OfferParty(str, Enum):
    """Which side of the deal proposed an offer."""

    INVESTOR = "investor"
    SELLER = "seller"


class FinancingType(str, Enum):
    """How the buyer intends to pay."""

    CASH = "cash"
    CONVENTIONAL = "conventional"
    FHA = "fha"
    VA = "va"
    HARD_MONEY = "hard_money"
    OTHER = "other"


class BidStatus(str, Enum):
    """Status of a foreclosure bid service request."""

    PENDING = "pending"
    REVIEWED = "reviewed"
    CONTACTED = "contacted"
    WON = "won"
    LOST = "lost"


class ContactMethod(str, Enum):
    """Preferred way for the bid desk to reach an investor."""

    EMAIL = "email"
    PHONE = "phone"


class ExperienceLevel(str, Enum):
    """Self-reported investing experience."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    EXPERIENCED = "experienced"
    PROFESSIONAL = "professional"


class SubscriptionPlanId(str, Enum):
    """Foreclosure subscription plans."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class SubscriptionRequestStatus(str, Enum):
    """Status of a subscription request awaiting payment or admin review."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AuthRole(str, Enum):
    """Path segment used by the /api/auth/{role} routes."""

    COMMON = "common"
    INSTITUTIONAL = "institutional"
    PARTNER = "partner"
    ADMIN = "admin"

    @property
    def role(self) -> Role:
        return {
            AuthRole.COMMON: Role.COMMON_INVESTOR,
            AuthRole.INSTITUTIONAL: Role.INSTITUTIONAL_INVESTOR,
            AuthRole.PARTNER: Role.PARTNER,
            AuthRole.ADMIN: Role.ADMIN,
        }[self]
