"""Tests for QuoteService with an in-memory store."""

from datetime import date
from decimal import Decimal

import pytest

from lawnly.exceptions.custom import NotFoundError, ValidationError
from lawnly.schemas.pricing import QuoteRequest
from lawnly.schemas.supabase import Address

PRICING_ROWS = [
    {"key": "fixed_base_price", "value": 45},
    {"key": "base_price_per_sqm", "value": 0.2},
    {"key": "slope_mild_multiplier", "value": 1.1},
    {"key": "grass_length_medium", "value": 1.2},
]


def _request(**overrides):
    data = {
        "addressId": "addr-1",
        "selectedDate": "2026-03-03",
        "grassLength": "medium",
        "clippingsRemoval": False,
    }
    data.update(overrides)
    return QuoteRequest(**data)


@pytest.fixture
def seeded(store):
    store.pricing_rows = PRICING_ROWS
    store.addresses["addr-1"] = Address(
        id="addr-1",
        user_id="customer-1",
        square_meters=Decimal("300"),
        slope="mild",
        tier_count=1,
        status="verified",
    )
    return store


async def test_verified_address_gives_binding_quote(seeded, quote_service):
    result = await quote_service.quote("customer-1", _request())

    assert result.is_preliminary is False
    assert result.quote.total == Decimal("138.60")


async def test_pending_address_gives_preliminary_quote(seeded, quote_service):
    seeded.addresses["addr-1"] = seeded.addresses["addr-1"].model_copy(update={"status": "pending"})

    result = await quote_service.quote("customer-1", _request())

    assert result.is_preliminary is True
    assert result.quote.total == Decimal("138.60")


async def test_rejected_address_is_refused(seeded, quote_service):
    seeded.addresses["addr-1"] = seeded.addresses["addr-1"].model_copy(update={"status": "rejected"})

    with pytest.raises(ValidationError, match="rejected"):
        await quote_service.quote("customer-1", _request())


async def test_missing_area_is_refused(seeded, quote_service):
    seeded.addresses["addr-1"] = seeded.addresses["addr-1"].model_copy(update={"square_meters": None})

    with pytest.raises(ValidationError, match="area"):
        await quote_service.quote("customer-1", _request())


async def test_address_of_another_user_is_not_found(seeded, quote_service):
    with pytest.raises(NotFoundError):
        await quote_service.quote("someone-else", _request())


async def test_quote_does_not_mutate_store(seeded, quote_service):
    before = (dict(seeded.addresses), list(seeded.pricing_rows), dict(seeded.bookings))

    await quote_service.quote("customer-1", _request(selectedDate="2026-03-07"))

    assert (dict(seeded.addresses), list(seeded.pricing_rows), dict(seeded.bookings)) == before


def test_request_parses_wire_names():
    request = _request(clippingsRemoval=True)

    assert request.address_id == "addr-1"
    assert request.selected_date == date(2026, 3, 3)
    assert request.clippings_removal is True
