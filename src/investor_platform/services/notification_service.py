"""SendGrid notifier for listing updates and account emails.

Runs after the request's transaction has committed (as a FastAPI background
task) and opens its own database session. Delivery failures are logged and
never raised to the caller. Uses asyncio.to_thread to wrap the synchronous
SendGrid client.
"""

import asyncio
import html
import logging

import sendgrid
from sendgrid.helpers.mail import Email, HtmlContent, Mail, To
from sqlalchemy.ext.asyncio import async_sessionmaker

from investor_platform.app.config import get_settings
from investor_platform.domain.enums import Role
from investor_platform.infra.repository import Repository

logger = logging.getLogger(__name__)


def _format_currency(value) -> str:
    """Format a number as $XX,XXX, or 'Not specified'."""
    if value is None:
        return "Not specified"
    try:
        return f"${int(float(value)):,}"
    except (ValueError, TypeError):
        return "Not specified"


def _build_property_html(prop, frontend_url: str) -> str:
    return f"""
<h2>New Property Available</h2>
<p><strong>Address:</strong> {html.escape(prop.address)}</p>
<p><strong>Neighborhood:</strong> {html.escape(prop.neighborhood or "")}</p>
<p><strong>Borough:</strong> {html.escape(prop.borough or "")}</p>
<p><strong>Price:</strong> {_format_currency(prop.price)}</p>
<p><strong>Property Type:</strong> {html.escape(prop.property_type or "")}</p>
<p><strong>Estimated Profit:</strong> {_format_currency(prop.estimated_profit)}</p>
<p><a href="{frontend_url}/properties/{prop.id}">View Property Details</a></p>
"""


def _build_foreclosure_html(listing, frontend_url: str) -> str:
    auction = listing.auction_date.strftime("%B %d, %Y") if listing.auction_date else "TBD"
    return f"""
<h2>New Foreclosure Listing</h2>
<p><strong>Address:</strong> {html.escape(listing.address)}</p>
<p><strong>County:</strong> {html.escape(listing.county or "")}</p>
<p><strong>Auction Date:</strong> {auction}</p>
<p><strong>Starting Bid:</strong> {_format_currency(listing.starting_bid)}</p>
<p><strong>Property Type:</strong> {html.escape(listing.property_type or "Not specified")}</p>
<p><strong>Assessed Value:</strong> {_format_currency(listing.assessed_value)}</p>
<p><a href="{frontend_url}/foreclosures/{listing.id}">View Foreclosure Details</a></p>
"""


class NotificationService:
    """Fire-and-forget email notifier.

    Listing notifications take ids, not ORM objects, because they run after
    the request session has closed.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker | None = None,
        api_key: str | None = None,
        from_email: str | None = None,
        from_name: str | None = None,
        frontend_url: str | None = None,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.api_key = settings.sendgrid_api_key if api_key is None else api_key
        self.from_email = from_email or settings.notification_from_email
        self.from_name = from_name or settings.notification_from_name
        self.frontend_url = (frontend_url or settings.frontend_url).rstrip("/")

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _send_mail(self, mail: Mail) -> bool:
        """Synchronous send via SendGrid. Returns True on success."""
        client = sendgrid.SendGridAPIClient(api_key=self.api_key)
        response = client.send(mail)
        if response.status_code in (200, 201, 202):
            return True
        logger.error(
            "SendGrid returned status %s: %s",
            response.status_code,
            response.body,
        )
        return False

    async def send_email(self, to: str, subject: str, body_html: str, recipient_name: str = "") -> bool:
        if not self.api_key:
            logger.info("SENDGRID_API_KEY not set, skipping email to %s: %s", to, subject)
            return False
        greeting = f"<p>Hello {html.escape(recipient_name)},</p>" if recipient_name else ""
        try:
            mail = Mail(
                from_email=Email(self.from_email, self.from_name),
                to_emails=To(to),
                subject=subject,
                html_content=HtmlContent(greeting + body_html),
            )
            return await asyncio.to_thread(self._send_mail, mail)
        except Exception:
            logger.exception("Failed to send email to %s", to)
            return False

    async def _broadcast(self, recipients, subject: str, body_html: str) -> int:
        sent = 0
        for investor in recipients:
            if await self.send_email(investor.email, subject, body_html, investor.first_name):
                sent += 1
        return sent

    # ------------------------------------------------------------------
    # Listing notifications
    # ------------------------------------------------------------------

    async def send_property_listing_notification(self, property_id: str) -> int:
        """Email every verified common investor and every active institutional investor."""
        try:
            async with self.session_factory() as db:
                repo = Repository(db)
                prop = await repo.get_property_by_id(property_id)
                if prop is None:
                    logger.warning("Property %s not found, no listing notification sent", property_id)
                    return 0
                recipients = await repo.get_notifiable_common_investors()
                recipients += await repo.get_active_institutional_investors()
                subject = f"New Property Listing: {prop.address}"
                body = _build_property_html(prop, self.frontend_url)

            sent = await self._broadcast(recipients, subject, body)
            logger.info(
                "Property listing notification for %s sent to %d/%d investors",
                property_id, sent, len(recipients),
            )
            return sent
        except Exception:
            logger.exception("Failed to send property listing notification for %s", property_id)
            return 0

    async def send_foreclosure_update_notification(self, listing_id: str) -> int:
        """Email institutional investors and common investors entitled to foreclosures."""
        try:
            async with self.session_factory() as db:
                repo = Repository(db)
                listing = await repo.get_foreclosure_listing_by_id(listing_id)
                if listing is None:
                    logger.warning("Foreclosure %s not found, no update notification sent", listing_id)
                    return 0
                recipients = await repo.get_active_institutional_investors()
                recipients += [
                    investor
                    for investor in await repo.get_notifiable_common_investors()
                    if investor.can_access_foreclosures()
                ]
                subject = f"New Foreclosure Listing: {listing.address}"
                body = _build_foreclosure_html(listing, self.frontend_url)

            sent = await self._broadcast(recipients, subject, body)
            logger.info(
                "Foreclosure update notification for %s sent to %d/%d investors",
                listing_id, sent, len(recipients),
            )
            return sent
        except Exception:
            logger.exception("Failed to send foreclosure update notification for %s", listing_id)
            return 0

    # ------------------------------------------------------------------
    # Account emails
    # ------------------------------------------------------------------

    async def send_verification_email(self, email: str, name: str, role: Role, token: str) -> bool:
        link = f"{self.frontend_url}/verify-email?role={role.value}&token={token}"
        body = (
            "<p>Please confirm your email address to finish setting up your account.</p>"
            f'<p><a href="{link}">Verify email</a></p>'
        )
        return await self.send_email(email, "Verify your email address", body, name)

    async def send_password_reset_email(self, email: str, name: str, role: Role, token: str) -> bool:
        link = f"{self.frontend_url}/reset-password?role={role.value}&token={token}"
        body = (
            "<p>We received a request to reset your password.</p>"
            f'<p><a href="{link}">Choose a new password</a></p>'
            "<p>If you did not request this, you can ignore this email.</p>"
        )
        return await self.send_email(email, "Reset your password", body, name)


def get_notifier() -> NotificationService:
    """FastAPI dependency."""
    from investor_platform.infra.database import get_session_factory

    return NotificationService(session_factory=get_session_factory())
