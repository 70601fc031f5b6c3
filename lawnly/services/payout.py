import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from lawnly.exceptions.custom import (
    ExternalServiceError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from lawnly.schemas.responses import PayoutResult
from lawnly.schemas.supabase import PayoutStatus
from lawnly.services.stripe import StripeService
from lawnly.services.supabase import SupabaseService

logger = logging.getLogger(__name__)


def contractor_earnings_cents(total_price: Decimal | None, platform_fee_rate: Decimal) -> int:
    total = Decimal(total_price or 0)
    if total <= 0:
        raise ValidationError("Invalid booking amount")
    cents = (total * (1 - platform_fee_rate) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(cents)


def payout_idempotency_key(booking_id: str) -> str:
    return f"payout-{booking_id}"


class PayoutCoordinator:
    """Releases held funds to the contractor who performed a booking.

    ``release`` is keyed on the booking id: the booking's payout_status is
    checked before any transfer, the provider call carries an idempotency
    key derived from the booking id, and the payout is recorded with a
    compare-and-set on payout_status. A booking that is already released
    reports success without another transfer.

    Provider failures are returned as ``released=False`` and leave
    payout_status at ``pending`` so a later retry can pick them up.
    """

    def __init__(
        self,
        supabase: SupabaseService,
        stripe: StripeService,
        currency: str = "aud",
        platform_fee_rate: float = 0.15,
    ) -> None:
        self._supabase = supabase
        self._stripe = stripe
        self._currency = currency
        self._fee_rate = Decimal(str(platform_fee_rate))

    async def release(self, booking_id: str) -> PayoutResult:
        booking = await self._supabase.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")

        if booking.payout_status == PayoutStatus.released:
            logger.info("Payout for booking %s already released", booking_id)
            return PayoutResult(
                booking_id=booking_id,
                released=True,
                payout_ref=booking.stripe_payout_id,
                already_released=True,
            )

        if booking.payout_status == PayoutStatus.frozen:
            logger.warning("Payout for booking %s is frozen by a dispute", booking_id)
            return PayoutResult(
                booking_id=booking_id,
                released=False,
                error="Payout is frozen pending dispute resolution",
            )

        if booking.payout_status != PayoutStatus.pending:
            # Refunded or partially refunded by dispute resolution
            logger.info(
                "Payout for booking %s already processed: %s", booking_id, booking.payout_status
            )
            return PayoutResult(
                booking_id=booking_id,
                released=False,
                error=f"Payout already processed ({booking.payout_status})",
            )

        contractor = None
        if booking.contractor_id:
            contractor = await self._supabase.get_contractor(booking.contractor_id)
        if contractor is None:
            raise NotFoundError("Contractor not found")

        if not contractor.stripe_account_id:
            logger.warning(
                "Contractor %s has no payment account, payout for booking %s deferred",
                contractor.id, booking_id,
            )
            return PayoutResult(
                booking_id=booking_id,
                released=False,
                error="Contractor has no payment account configured",
            )

        amount = contractor_earnings_cents(booking.total_price, self._fee_rate)
        logger.info(
            "Releasing payout for booking %s: total=%s earnings_cents=%d",
            booking_id, booking.total_price, amount,
        )

        try:
            payout = await self._stripe.create_payout(
                contractor.stripe_account_id,
                amount,
                self._currency,
                metadata={"booking_id": booking.id, "contractor_id": contractor.id},
                idempotency_key=payout_idempotency_key(booking.id),
            )
        except (ExternalServiceError, RateLimitError) as exc:
            logger.error("Stripe payout failed for booking %s: %s", booking_id, exc)
            return PayoutResult(booking_id=booking_id, released=False, error=str(exc))

        recorded = await self._supabase.update_booking(
            booking.id,
            {
                "payout_status": PayoutStatus.released.value,
                "payout_released_at": datetime.now(timezone.utc).isoformat(),
                "stripe_payout_id": payout.id,
            },
            match={"payout_status": PayoutStatus.pending.value},
        )
        if recorded is None:
            # A concurrent release recorded first; the shared idempotency key
            # means both saw the same provider payout.
            logger.info("Payout for booking %s was recorded concurrently", booking_id)
            return PayoutResult(
                booking_id=booking_id,
                released=True,
                payout_ref=payout.id,
                already_released=True,
            )

        return PayoutResult(booking_id=booking_id, released=True, payout_ref=payout.id)
