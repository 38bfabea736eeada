"""Tests for password hashing and per-role session tokens."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from investor_platform.domain.enums import Role
from investor_platform.domain.errors import NotFound
from investor_platform.domain.models import CommonInvestorSession, PartnerSession
from investor_platform.services.credential_store import (
    CredentialStore,
    hash_password,
    token_digest,
    verify_password,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)


class TestPasswords:
    def test_hash_is_salted_and_verifies(self):
        first = hash_password("hunter22")
        second = hash_password("hunter22")
        assert first != second
        assert verify_password("hunter22", first)
        assert not verify_password("hunter23", first)

    def test_missing_hash_never_verifies(self):
        assert verify_password("anything", None) is False
        assert verify_password("anything", "") is False


class TestSessions:
    async def test_issue_then_resolve(self, db_session, make_common_investor):
        investor = await make_common_investor()
        store = CredentialStore(db_session)

        token, expires_at = await store.issue_session(investor.id, Role.COMMON_INVESTOR, now=NOW)

        assert expires_at == NOW + timedelta(days=30)
        assert await store.resolve_session(token, Role.COMMON_INVESTOR, now=NOW) == investor.id

    async def test_only_digest_is_stored(self, db_session, make_common_investor):
        investor = await make_common_investor()
        store = CredentialStore(db_session)
        token, _ = await store.issue_session(investor.id, Role.COMMON_INVESTOR)

        rows = (await db_session.execute(select(CommonInvestorSession))).scalars().all()
        assert len(rows) == 1
        assert rows[0].token_digest == token_digest(token)
        assert rows[0].token_digest != token

    async def test_expired_and_unknown_are_indistinguishable(self, db_session, make_common_investor):
        investor = await make_common_investor()
        store = CredentialStore(db_session)
        token, expires_at = await store.issue_session(investor.id, Role.COMMON_INVESTOR, now=NOW)

        with pytest.raises(NotFound) as expired:
            await store.resolve_session(token, Role.COMMON_INVESTOR, now=expires_at)
        with pytest.raises(NotFound) as unknown:
            await store.resolve_session("not-a-real-token", Role.COMMON_INVESTOR, now=NOW)

        assert str(expired.value) == str(unknown.value)

    async def test_valid_one_second_before_expiry(self, db_session, make_common_investor):
        investor = await make_common_investor()
        store = CredentialStore(db_session)
        token, expires_at = await store.issue_session(investor.id, Role.COMMON_INVESTOR, now=NOW)

        resolved = await store.resolve_session(
            token, Role.COMMON_INVESTOR, now=expires_at - timedelta(seconds=1)
        )
        assert resolved == investor.id

    async def test_expired_rows_are_not_swept(self, db_session, make_common_investor):
        investor = await make_common_investor()
        store = CredentialStore(db_session)
        token, expires_at = await store.issue_session(investor.id, Role.COMMON_INVESTOR, now=NOW)

        with pytest.raises(NotFound):
            await store.resolve_session(token, Role.COMMON_INVESTOR, now=expires_at + timedelta(days=1))

        rows = (await db_session.execute(select(CommonInvestorSession))).scalars().all()
        assert len(rows) == 1

    async def test_namespaces_are_partitioned(self, db_session, make_common_investor, make_partner):
        investor = await make_common_investor()
        partner = await make_partner()
        store = CredentialStore(db_session)

        partner_token, _ = await store.issue_session(partner.id, Role.PARTNER)
        investor_token, _ = await store.issue_session(investor.id, Role.COMMON_INVESTOR)

        with pytest.raises(NotFound):
            await store.resolve_session(partner_token, Role.COMMON_INVESTOR)
        with pytest.raises(NotFound):
            await store.resolve_session(investor_token, Role.PARTNER)

    async def test_revoke_is_idempotent(self, db_session, make_partner):
        partner = await make_partner()
        store = CredentialStore(db_session)
        token, _ = await store.issue_session(partner.id, Role.PARTNER)

        await store.revoke_session(token, Role.PARTNER)
        await store.revoke_session(token, Role.PARTNER)
        await store.revoke_session("never-issued")

        with pytest.raises(NotFound):
            await store.resolve_session(token, Role.PARTNER)

    async def test_revoke_without_role_clears_every_namespace(self, db_session, make_partner):
        partner = await make_partner()
        store = CredentialStore(db_session)
        token, _ = await store.issue_session(partner.id, Role.PARTNER)

        await store.revoke_session(token)

        rows = (await db_session.execute(select(PartnerSession))).scalars().all()
        assert rows == []


class TestPasswordResetTokens:
    async def test_single_use(self, db_session, make_common_investor):
        investor = await make_common_investor()
        store = CredentialStore(db_session)
        token = await store.issue_password_reset(investor.id, Role.COMMON_INVESTOR, now=NOW)

        assert await store.redeem_password_reset(token, Role.COMMON_INVESTOR, now=NOW) == investor.id
        with pytest.raises(NotFound):
            await store.redeem_password_reset(token, Role.COMMON_INVESTOR, now=NOW)

    async def test_expired_token_rejected(self, db_session, make_common_investor):
        investor = await make_common_investor()
        store = CredentialStore(db_session)
        token = await store.issue_password_reset(investor.id, Role.COMMON_INVESTOR, now=NOW)

        with pytest.raises(NotFound):
            await store.redeem_password_reset(
                token, Role.COMMON_INVESTOR, now=NOW + timedelta(hours=2)
            )

    async def test_token_scoped_to_role(self, db_session, make_common_investor):
        investor = await make_common_investor()
        store = CredentialStore(db_session)
        token = await store.issue_password_reset(investor.id, Role.COMMON_INVESTOR, now=NOW)

        with pytest.raises(NotFound):
            await store.redeem_password_reset(token, Role.PARTNER, now=NOW)
