from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from lawnly.schemas.pricing import PricingKey, PricingSettings, QuoteBreakdown, Slope

_CENT = Decimal("0.01")

_SLOPE_KEYS = {
    Slope.mild: PricingKey.slope_mild_multiplier,
    Slope.steep: PricingKey.slope_steep_multiplier,
}

# date.weekday(): Saturday is 5, Sunday is 6
_WEEKEND_KEYS = {
    5: PricingKey.saturday_surcharge,
    6: PricingKey.sunday_surcharge,
}


def round2(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def day_surcharge(scheduled_date: date, pricing: PricingSettings) -> Decimal:
    key = _WEEKEND_KEYS.get(scheduled_date.weekday())
    if key is None:
        return Decimal(1)
    return pricing.multiplier(key)


def calculate_quote(
    square_meters: Decimal,
    slope: Slope | str,
    tier_count: int,
    grass_length: str,
    clippings_removal: bool,
    scheduled_date: date,
    pricing: PricingSettings,
) -> QuoteBreakdown:
    """Price a mowing job from lawn attributes and a pricing snapshot.

    Rounds to cents three times: the area price, the subtotal and the
    total. Each rounded value feeds the next step, so the order of
    operations below fixes the final cent value.
    """
    base_price = pricing.amount(PricingKey.fixed_base_price)
    area_price = round2(Decimal(str(square_meters)) * pricing.amount(PricingKey.base_price_per_sqm))

    slope_key = _SLOPE_KEYS.get(Slope(slope))
    slope_multiplier = pricing.multiplier(slope_key) if slope_key else Decimal(1)

    tier_multiplier = 1 + (tier_count - 1) * pricing.amount(PricingKey.tier_multiplier)
    grass_multiplier = pricing.multiplier(f"grass_length_{grass_length}")
    clippings_cost = (
        pricing.amount(PricingKey.clipping_removal_cost) if clippings_removal else Decimal(0)
    )
    surcharge = day_surcharge(scheduled_date, pricing)

    subtotal = round2(
        (base_price + area_price) * slope_multiplier * tier_multiplier * grass_multiplier
    )
    total = round2(subtotal * surcharge + clippings_cost)

    return QuoteBreakdown(
        base_price=base_price,
        area_price=area_price,
        slope_multiplier=slope_multiplier,
        tier_multiplier=tier_multiplier,
        grass_length_multiplier=grass_multiplier,
        clippings_cost=clippings_cost,
        day_surcharge=surcharge,
        subtotal=subtotal,
        total=total,
    )
