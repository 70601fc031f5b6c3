import asyncio
import logging

from lawnly.exceptions.custom import NotFoundError, ValidationError
from lawnly.mappers.quote_calculator import calculate_quote
from lawnly.schemas.pricing import PricingSettings, QuoteRequest, QuoteResponse
from lawnly.schemas.supabase import AddressStatus
from lawnly.services.supabase import SupabaseService

logger = logging.getLogger(__name__)


class QuoteService:
    def __init__(self, supabase: SupabaseService) -> None:
        self._supabase = supabase

    async def load_pricing(self) -> PricingSettings:
        rows = await self._supabase.get_pricing_settings()
        return PricingSettings.from_rows(rows)

    async def quote(self, user_id: str, request: QuoteRequest) -> QuoteResponse:
        # Both reads are independent; neither touches what the other returns
        address, pricing = await asyncio.gather(
            self._supabase.get_address(request.address_id, user_id),
            self.load_pricing(),
        )

        if address is None:
            raise NotFoundError("Address not found or access denied")
        if address.status == AddressStatus.rejected:
            raise ValidationError("Address has been rejected")
        if not address.square_meters:
            raise ValidationError("Address lawn area not set")

        breakdown = calculate_quote(
            square_meters=address.square_meters,
            slope=address.slope,
            tier_count=address.tier_count,
            grass_length=request.grass_length,
            clippings_removal=request.clippings_removal,
            scheduled_date=request.selected_date,
            pricing=pricing,
        )
        is_preliminary = address.status != AddressStatus.verified

        logger.info(
            "Quote for address %s: total=%s preliminary=%s",
            address.id, breakdown.total, is_preliminary,
        )
        return QuoteResponse(quote=breakdown, is_preliminary=is_preliminary)
