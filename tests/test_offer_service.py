"""Offer lifecycle manager: creation rules, counterparty checks, accept dual-write."""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from investor_platform.domain.enums import OfferParty, OfferStatus, PropertyStatus
from investor_platform.domain.errors import (
    Forbidden,
    IllegalTransition,
    NotFound,
    ValidationError,
)
from investor_platform.domain.models import (
    CommonInvestor,
    InstitutionalInvestor,
    Offer,
    Partner,
    Property,
)
from investor_platform.infra.database import Base
from investor_platform.services.offer_service import OfferService, validate_offer_terms


def _terms(**overrides) -> dict:
    terms = {
        "amount": Decimal("500000"),
        "earnest_money": Decimal("25000"),
        "closing_date": (date.today() + timedelta(days=45)).isoformat(),
        "financing_type": "cash",
        "contingencies": ["inspection", "appraisal", "inspection"],
        "message": "Ready to move quickly.",
    }
    terms.update(overrides)
    return terms


@pytest.fixture
async def listing(make_partner, make_property):
    partner = await make_partner()
    prop = await make_property(partner_id=partner.id)
    return partner, prop


class TestValidateTerms:
    def test_contingencies_are_a_set(self):
        clean = validate_offer_terms(_terms())
        assert clean["contingencies"] == ["appraisal", "inspection"]

    @pytest.mark.parametrize("field", ["amount", "earnest_money"])
    @pytest.mark.parametrize("value", [0, -1, "abc", None])
    def test_amounts_must_be_positive(self, field, value):
        with pytest.raises(ValidationError):
            validate_offer_terms(_terms(**{field: value}))

    def test_closing_date_in_past(self):
        with pytest.raises(ValidationError):
            validate_offer_terms(_terms(closing_date="2020-01-01"))

    def test_closing_date_must_be_after_today(self):
        today = date(2026, 6, 1)
        with pytest.raises(ValidationError):
            validate_offer_terms(_terms(closing_date="2026-06-01"), today=today)
        clean = validate_offer_terms(_terms(closing_date="2026-06-02"), today=today)
        assert clean["closing_date"] == date(2026, 6, 2)

    def test_closing_date_not_iso(self):
        with pytest.raises(ValidationError):
            validate_offer_terms(_terms(closing_date="next tuesday"))

    def test_financing_type_enum(self):
        assert validate_offer_terms(_terms(financing_type="hard_money"))["financing_type"] == "hard_money"
        with pytest.raises(ValidationError):
            validate_offer_terms(_terms(financing_type="crypto"))


class TestCreate:
    async def test_creates_pending_offer(self, db_session, listing, make_common_investor):
        _, prop = listing
        investor = await make_common_investor()

        offer = await OfferService(db_session).create(investor, prop.id, _terms())

        assert offer.status == OfferStatus.PENDING.value
        assert offer.proposed_by == OfferParty.INVESTOR.value
        assert offer.investor_role == "common_investor"
        assert offer.amount == Decimal("500000")

    async def test_missing_property(self, db_session, make_common_investor):
        investor = await make_common_investor()
        with pytest.raises(NotFound):
            await OfferService(db_session).create(investor, "no-such-property", _terms())

    async def test_property_not_available(self, db_session, make_property, make_common_investor):
        prop = await make_property(status=PropertyStatus.UNDER_CONTRACT.value)
        investor = await make_common_investor()
        with pytest.raises(ValidationError):
            await OfferService(db_session).create(investor, prop.id, _terms())

    async def test_inactive_property(self, db_session, make_property, make_institutional_investor):
        prop = await make_property(is_active=False)
        investor = await make_institutional_investor()
        with pytest.raises(ValidationError):
            await OfferService(db_session).create(investor, prop.id, _terms())

    async def test_partner_cannot_make_offers(self, db_session, listing):
        partner, prop = listing
        with pytest.raises(Forbidden):
            await OfferService(db_session).create(partner, prop.id, _terms())


class TestTransition:
    async def test_owner_accepts_marks_property_under_contract(
        self, db_session, listing, make_common_investor
    ):
        partner, prop = listing
        investor = await make_common_investor()
        service = OfferService(db_session)
        offer = await service.create(investor, prop.id, _terms())

        accepted = await service.transition(offer.id, partner, OfferStatus.ACCEPTED)

        assert accepted.status == OfferStatus.ACCEPTED.value
        assert accepted.responded_by_role == "partner"
        await db_session.refresh(prop)
        assert prop.status == PropertyStatus.UNDER_CONTRACT.value

    async def test_second_accept_on_same_property_fails(
        self, db_session, listing, make_common_investor, make_institutional_investor
    ):
        partner, prop = listing
        service = OfferService(db_session)
        first = await service.create(await make_common_investor(), prop.id, _terms())
        second = await service.create(
            await make_institutional_investor(), prop.id, _terms(amount=Decimal("510000"))
        )

        await service.transition(first.id, partner, OfferStatus.ACCEPTED)
        with pytest.raises(IllegalTransition):
            await service.transition(second.id, partner, OfferStatus.ACCEPTED)

        # Rolled back: the losing offer is still pending
        await db_session.refresh(second)
        assert second.status == OfferStatus.PENDING.value

    async def test_terminal_offer_cannot_transition(self, db_session, listing, make_common_investor):
        partner, prop = listing
        service = OfferService(db_session)
        offer = await service.create(await make_common_investor(), prop.id, _terms())
        await service.transition(offer.id, partner, OfferStatus.REJECTED)

        for target in (OfferStatus.ACCEPTED, OfferStatus.REJECTED, OfferStatus.PENDING):
            with pytest.raises(IllegalTransition):
                await service.transition(offer.id, partner, target)

    async def test_other_partner_is_forbidden(
        self, db_session, listing, make_partner, make_common_investor
    ):
        _, prop = listing
        stranger = await make_partner()
        service = OfferService(db_session)
        offer = await service.create(await make_common_investor(), prop.id, _terms())

        with pytest.raises(Forbidden):
            await service.transition(offer.id, stranger, OfferStatus.ACCEPTED)

    async def test_investor_cannot_accept_own_offer(self, db_session, listing, make_common_investor):
        _, prop = listing
        investor = await make_common_investor()
        service = OfferService(db_session)
        offer = await service.create(investor, prop.id, _terms())

        with pytest.raises(Forbidden):
            await service.transition(offer.id, investor, OfferStatus.ACCEPTED)

    async def test_admin_can_respond(self, db_session, listing, make_admin, make_common_investor):
        _, prop = listing
        admin = await make_admin()
        service = OfferService(db_session)
        offer = await service.create(await make_common_investor(), prop.id, _terms())

        rejected = await service.transition(offer.id, admin, OfferStatus.REJECTED)
        assert rejected.status == OfferStatus.REJECTED.value

    async def test_missing_offer(self, db_session, make_admin):
        with pytest.raises(NotFound):
            await OfferService(db_session).transition("nope", await make_admin(), OfferStatus.ACCEPTED)

    async def test_counter_requires_terms(self, db_session, listing, make_common_investor):
        partner, prop = listing
        service = OfferService(db_session)
        offer = await service.create(await make_common_investor(), prop.id, _terms())

        with pytest.raises(ValidationError):
            await service.transition(offer.id, partner, OfferStatus.COUNTERED)
        await db_session.refresh(offer)
        assert offer.status == OfferStatus.PENDING.value


class TestCounterOffers:
    async def test_counter_creates_linked_seller_offer(
        self, db_session, listing, make_common_investor
    ):
        partner, prop = listing
        investor = await make_common_investor()
        service = OfferService(db_session)
        offer = await service.create(investor, prop.id, _terms())

        original = await service.transition(
            offer.id, partner, OfferStatus.COUNTERED, _terms(amount=Decimal("560000"))
        )
        counter = await service.get_counter_offer(offer.id)

        assert original.status == OfferStatus.COUNTERED.value
        assert counter.counter_of_id == offer.id
        assert counter.proposed_by == OfferParty.SELLER.value
        assert counter.status == OfferStatus.PENDING.value
        assert counter.investor_id == investor.id
        assert counter.amount == Decimal("560000")

    async def test_investor_accepts_counter(self, db_session, listing, make_common_investor):
        partner, prop = listing
        investor = await make_common_investor()
        service = OfferService(db_session)
        offer = await service.create(investor, prop.id, _terms())
        await service.transition(offer.id, partner, OfferStatus.COUNTERED, _terms(amount=Decimal("560000")))
        counter = await service.get_counter_offer(offer.id)

        # The partner proposed the counter, so only the investor (or admin) answers it
        with pytest.raises(Forbidden):
            await service.transition(counter.id, partner, OfferStatus.ACCEPTED)

        accepted = await service.transition(counter.id, investor, OfferStatus.ACCEPTED)
        assert accepted.status == OfferStatus.ACCEPTED.value
        await db_session.refresh(prop)
        assert prop.status == PropertyStatus.UNDER_CONTRACT.value

    async def test_other_investor_cannot_answer_counter(
        self, db_session, listing, make_common_investor
    ):
        partner, prop = listing
        investor = await make_common_investor()
        other = await make_common_investor()
        service = OfferService(db_session)
        offer = await service.create(investor, prop.id, _terms())
        await service.transition(offer.id, partner, OfferStatus.COUNTERED, _terms())
        counter = await service.get_counter_offer(offer.id)

        with pytest.raises(Forbidden):
            await service.transition(counter.id, other, OfferStatus.REJECTED)


class TestQueries:
    async def test_lists_are_scoped(
        self, db_session, make_partner, make_property, make_common_investor
    ):
        partner = await make_partner()
        mine = await make_property(partner_id=partner.id)
        other_prop = await make_property(address="9 Other St")
        investor = await make_common_investor()
        service = OfferService(db_session)

        first = await service.create(investor, mine.id, _terms())
        second = await service.create(investor, other_prop.id, _terms())

        assert {o.id for o in await service.list_by_investor(investor)} == {first.id, second.id}
        assert [o.id for o in await service.list_for_partner(partner)] == [first.id]
        assert [o.id for o in await service.list_by_property(other_prop.id)] == [second.id]
        assert len(await service.list_all()) == 2


@pytest.fixture
async def file_session_factory(tmp_path):
    """Sessions on a file database, each checking out its own connection."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'offers.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


def _principal(model, name: str, **extra):
    return model(
        username=name,
        email=f"{name}@example.com",
        password_hash="not-a-real-hash",
        first_name=name.capitalize(),
        last_name="Racer",
        is_active=True,
        **extra,
    )


class TestConcurrentAccepts:
    async def test_racing_accepts_commit_exactly_one(self, file_session_factory):
        async with file_session_factory() as db:
            partner = _principal(Partner, "seller", approval_status="approved")
            buyer = _principal(CommonInvestor, "buyer")
            fund = _principal(
                InstitutionalInvestor,
                "fund",
                institution_name="Harbor Capital",
                job_title="Acquisitions Lead",
                approval_status="approved",
            )
            db.add_all([partner, buyer, fund])
            await db.commit()
            prop = Property(
                address="123 Bergen St",
                neighborhood="Boerum Hill",
                borough="Brooklyn",
                property_type="Townhouse",
                price=Decimal("650000"),
                status=PropertyStatus.AVAILABLE.value,
                is_active=True,
                partner_id=partner.id,
            )
            db.add(prop)
            await db.commit()
            service = OfferService(db)
            first = await service.create(buyer, prop.id, _terms())
            second = await service.create(fund, prop.id, _terms(amount=Decimal("510000")))

        async def accept(offer_id: str) -> str:
            async with file_session_factory() as db:
                try:
                    await OfferService(db).transition(offer_id, partner, OfferStatus.ACCEPTED)
                except IllegalTransition:
                    return "illegal"
                return "ok"

        results = await asyncio.gather(accept(first.id), accept(second.id))

        assert sorted(results) == ["illegal", "ok"]
        async with file_session_factory() as db:
            statuses = (
                await db.execute(select(Offer.status).where(Offer.property_id == prop.id))
            ).scalars().all()
            assert sorted(statuses) == [OfferStatus.ACCEPTED.value, OfferStatus.PENDING.value]
            stored = await db.get(Property, prop.id)
            assert stored.status == PropertyStatus.UNDER_CONTRACT.value
