"""Entitlement gate: who may see foreclosure listings."""

from datetime import datetime, timedelta, timezone

import pytest

from investor_platform.domain.errors import SubscriptionRequired
from investor_platform.domain.models import AdminUser, CommonInvestor, InstitutionalInvestor, Partner
from investor_platform.services.entitlement import can_access_foreclosures, require_foreclosure_access

NOW = datetime(2026, 5, 1, 9, 30, 0)


def _common(flag: bool, expiry):
    return CommonInvestor(
        id="ci-1",
        has_foreclosure_subscription=flag,
        foreclosure_subscription_expiry=expiry,
    )


class TestCommonInvestor:
    def test_expired_one_second_ago(self):
        assert not can_access_foreclosures(_common(True, NOW - timedelta(seconds=1)), NOW)

    def test_expires_one_second_ahead(self):
        assert can_access_foreclosures(_common(True, NOW + timedelta(seconds=1)), NOW)

    def test_expiry_equal_to_now_is_expired(self):
        assert not can_access_foreclosures(_common(True, NOW), NOW)

    def test_flag_without_expiry_is_permanent(self):
        assert can_access_foreclosures(_common(True, None), NOW)

    def test_future_expiry_without_flag_is_denied(self):
        assert not can_access_foreclosures(_common(False, NOW + timedelta(days=30)), NOW)

    def test_aware_now_is_normalised(self):
        aware_now = NOW.replace(tzinfo=timezone.utc)
        assert can_access_foreclosures(_common(True, NOW + timedelta(seconds=1)), aware_now)

    def test_require_raises_subscription_required(self):
        with pytest.raises(SubscriptionRequired) as exc_info:
            require_foreclosure_access(_common(False, None), NOW)
        payload = exc_info.value.to_payload()
        assert exc_info.value.status_code == 403
        assert payload["code"] == "subscription_required"
        assert payload["subscription_required"] is True


class TestOtherRoles:
    def test_institutional_always_entitled(self):
        assert can_access_foreclosures(InstitutionalInvestor(id="ii-1"), NOW)

    def test_partner_never_entitled(self):
        with pytest.raises(SubscriptionRequired):
            require_foreclosure_access(Partner(id="p-1"), NOW)

    def test_admin_bypasses_gate(self):
        require_foreclosure_access(AdminUser(id="a-1"), NOW)

    def test_no_principal(self):
        assert can_access_foreclosures(None) is False
        with pytest.raises(SubscriptionRequired):
            require_foreclosure_access(None)
