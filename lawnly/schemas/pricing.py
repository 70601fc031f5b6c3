from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

# Decimals stay exact in Python and go out as JSON numbers.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class PricingKey(StrEnum):
    fixed_base_price = "fixed_base_price"
    base_price_per_sqm = "base_price_per_sqm"
    tier_multiplier = "tier_multiplier"
    slope_mild_multiplier = "slope_mild_multiplier"
    slope_steep_multiplier = "slope_steep_multiplier"
    grass_length_short = "grass_length_short"
    grass_length_medium = "grass_length_medium"
    grass_length_long = "grass_length_long"
    grass_length_very_long = "grass_length_very_long"
    clipping_removal_cost = "clipping_removal_cost"
    saturday_surcharge = "saturday_surcharge"
    sunday_surcharge = "sunday_surcharge"
    contractor_acceptance_hours = "contractor_acceptance_hours"


class Slope(StrEnum):
    flat = "flat"
    mild = "mild"
    steep = "steep"


class PricingSettings(BaseModel):
    """Immutable snapshot of the pricing_settings table.

    Unknown keys are kept but ignored by the calculator. Missing or zero
    multipliers read as 1, missing amounts read as 0.
    """

    model_config = ConfigDict(frozen=True)

    values: dict[str, Decimal] = {}

    @classmethod
    def from_rows(cls, rows: list[dict]) -> PricingSettings:
        return cls(values={row["key"]: Decimal(str(row["value"])) for row in rows})

    def multiplier(self, key: str) -> Decimal:
        return self.values.get(key) or Decimal(1)

    def amount(self, key: str) -> Decimal:
        return self.values.get(key) or Decimal(0)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuoteBreakdown(CamelModel):
    base_price: Money
    area_price: Money
    slope_multiplier: Money
    tier_multiplier: Money
    grass_length_multiplier: Money
    clippings_cost: Money
    day_surcharge: Money
    subtotal: Money
    total: Money


class QuoteRequest(CamelModel):
    address_id: str
    selected_date: date
    # Bands without a configured multiplier price at 1
    grass_length: str = Field(min_length=1)
    clippings_removal: bool = False


class QuoteResponse(CamelModel):
    quote: QuoteBreakdown
    is_preliminary: bool
