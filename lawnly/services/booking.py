import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal

from lawnly.exceptions.custom import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from lawnly.mappers.messages import (
    approval_email,
    approval_notification,
    dispute_email,
    dispute_notification,
    short_ref,
)
from lawnly.schemas.responses import ApproveJobResponse, PayoutResult
from lawnly.schemas.supabase import Booking, BookingStatus, Contractor, Dispute, PayoutStatus, Review
from lawnly.services.notifications import NotificationService
from lawnly.services.payout import PayoutCoordinator
from lawnly.services.supabase import SupabaseService
from lawnly.tasks import FireAndForget

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({
    BookingStatus.completed,
    BookingStatus.cancelled,
    BookingStatus.post_payment_dispute,
})

TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.pending_payment: frozenset({
        BookingStatus.confirmed,
        BookingStatus.cancelled,
    }),
    BookingStatus.confirmed: frozenset({
        BookingStatus.in_progress,
        BookingStatus.completed_pending_verification,
        BookingStatus.cancelled,
    }),
    BookingStatus.in_progress: frozenset({
        BookingStatus.completed_pending_verification,
        BookingStatus.cancelled,
    }),
    BookingStatus.completed_pending_verification: frozenset({
        BookingStatus.completed,
        BookingStatus.disputed,
        BookingStatus.cancelled,
    }),
    # A dispute is informational and never blocks completion
    BookingStatus.disputed: frozenset({
        BookingStatus.completed,
        BookingStatus.cancelled,
    }),
    BookingStatus.completed: frozenset(),
    BookingStatus.cancelled: frozenset(),
    BookingStatus.post_payment_dispute: frozenset(),
}

MIN_DISPUTE_DESCRIPTION = 20

PAYOUT_ELIGIBLE_STATUSES = (
    BookingStatus.completed_pending_verification,
    BookingStatus.completed,
)


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: BookingStatus, target: BookingStatus) -> None:
    if not can_transition(current, target):
        raise ConflictError(f"Cannot move booking from {current} to {target}")


class BookingStateMachine:
    def __init__(
        self,
        supabase: SupabaseService,
        payouts: PayoutCoordinator,
        notifier: NotificationService,
        dispatcher: FireAndForget,
    ) -> None:
        self._supabase = supabase
        self._payouts = payouts
        self._notifier = notifier
        self._dispatcher = dispatcher

    async def _load(self, booking_id: str) -> Booking:
        booking = await self._supabase.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    async def _load_owned(self, user_id: str, booking_id: str) -> Booking:
        booking = await self._load(booking_id)
        if booking.user_id != user_id:
            raise AuthorizationError("Not your booking")
        return booking

    async def _load_assigned(self, user_id: str, booking_id: str) -> tuple[Booking, Contractor]:
        contractor = await self._supabase.get_contractor_by_user(user_id)
        if contractor is None:
            raise AuthorizationError("Contractor profile not found")
        booking = await self._load(booking_id)
        if booking.contractor_id != contractor.id:
            raise AuthorizationError("You are not assigned to this booking")
        return booking, contractor

    async def _advance(
        self,
        booking: Booking,
        target: BookingStatus,
        fields: dict | None = None,
        match: dict | None = None,
    ) -> Booking:
        ensure_transition(booking.status, target)
        updated = await self._supabase.update_booking(
            booking.id,
            {"status": target.value, **(fields or {})},
            match={"status": booking.status.value, **(match or {})},
        )
        if updated is None:
            raise ConflictError("Booking status changed, please retry")
        logger.info("Booking %s: %s -> %s", booking.id, booking.status, target)
        return updated

    # -- contractor actions ------------------------------------------------

    async def start_job(self, user_id: str, booking_id: str) -> Booking:
        booking, _ = await self._load_assigned(user_id, booking_id)
        return await self._advance(booking, BookingStatus.in_progress)

    async def complete_job(self, user_id: str, booking_id: str) -> Booking:
        booking, _ = await self._load_assigned(user_id, booking_id)
        if booking.status not in (BookingStatus.confirmed, BookingStatus.in_progress):
            raise ConflictError("Booking must be confirmed or in progress to complete")

        updated = await self._advance(
            booking,
            BookingStatus.completed_pending_verification,
            {
                "completed_at": datetime.now(timezone.utc).isoformat(),
                "payout_status": PayoutStatus.pending.value,
            },
        )
        self._notifier.notify(
            booking.user_id,
            "Job completed",
            f"Your lawn service #{short_ref(booking.id)} is done. "
            "Please review the work and approve it to release payment.",
            booking_id=booking.id,
            type="info",
        )
        return updated

    # -- customer actions --------------------------------------------------

    async def cancel(self, user_id: str, booking_id: str) -> Booking:
        booking = await self._load_owned(user_id, booking_id)
        if booking.status in TERMINAL_STATUSES:
            raise ConflictError(f"Booking is already {booking.status}")
        return await self._advance(booking, BookingStatus.cancelled)

    async def release_payout(self, user_id: str, booking_id: str) -> PayoutResult:
        booking = await self._load_owned(user_id, booking_id)
        if booking.status not in PAYOUT_ELIGIBLE_STATUSES:
            raise ConflictError("Booking is not eligible for payout")
        return await self._payouts.release(booking.id)

    async def dispute(
        self,
        user_id: str,
        booking_id: str,
        reason: str,
        description: str,
        suggested_refund_amount: Decimal | None = None,
        photo_urls: list[str] | None = None,
    ) -> Booking:
        """Customer reports a problem before approving the work.

        The booking moves to ``disputed`` and its payout is frozen in the
        same conditional write, so a payout released in the meantime makes
        the dispute fail with a conflict instead of freezing paid money.
        """
        if not reason:
            raise ValidationError("Missing dispute reason")
        if len(description.strip()) < MIN_DISPUTE_DESCRIPTION:
            raise ValidationError(
                f"Description must be at least {MIN_DISPUTE_DESCRIPTION} characters"
            )

        booking = await self._load_owned(user_id, booking_id)
        if booking.status != BookingStatus.completed_pending_verification:
            raise ConflictError("Booking is not eligible for dispute")
        if booking.payout_status != PayoutStatus.pending:
            raise ConflictError("Payout already processed for this booking")
        if suggested_refund_amount is not None and not (
            0 <= suggested_refund_amount <= (booking.total_price or 0)
        ):
            raise ValidationError("Suggested refund amount is invalid")

        updated = await self._advance(
            booking,
            BookingStatus.disputed,
            {"payout_status": PayoutStatus.frozen.value},
            match={"payout_status": PayoutStatus.pending.value},
        )
        await self._supabase.insert_dispute(Dispute(
            booking_id=booking.id,
            description=description,
            dispute_reason=reason,
            customer_photos=photo_urls or [],
            suggested_refund_amount=suggested_refund_amount,
        ))

        if booking.contractor_id:
            self._dispatcher.spawn(
                self._notify_dispute(booking, user_id, description),
                f"dispute notification for {booking.id}",
            )
        return updated

    async def approve(
        self,
        user_id: str,
        booking_id: str,
        rating: int | None = None,
        comment: str | None = None,
    ) -> ApproveJobResponse:
        """Customer confirms the work: release payout, complete, review, notify.

        The payout is attempted first but its failure does not stop the
        booking from completing; payout_status stays pending for a retry.
        This lets status read ``completed`` before money has moved.
        """
        if rating is not None and not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")

        booking = await self._load_owned(user_id, booking_id)
        if booking.status != BookingStatus.completed_pending_verification:
            raise ConflictError("Booking is not awaiting verification")
        logger.info("Booking %s verified for approval", booking.id)

        contractor = None
        if booking.contractor_id:
            contractor = await self._supabase.get_contractor(booking.contractor_id)
        if contractor is None:
            raise NotFoundError("Contractor not found")

        payout_released = False
        try:
            payout = await self._payouts.release(booking.id)
            payout_released = payout.released
            if payout.released:
                logger.info("Payout released for booking %s: %s", booking.id, payout.payout_ref)
            else:
                logger.warning("Payout not released for booking %s: %s", booking.id, payout.error)
        except Exception:
            logger.exception("Payout release failed for booking %s", booking.id)

        # A replay that lost the race finds the booking already completed
        updated = await self._supabase.update_booking(
            booking.id,
            {"status": BookingStatus.completed.value},
            match={"status": PAYOUT_ELIGIBLE_STATUSES},
        )
        if updated is None:
            raise ConflictError("Booking status changed during approval")
        logger.info("Booking %s completed", booking.id)

        review_saved = None
        if rating is not None:
            review_saved = await self._save_review(user_id, contractor.id, booking.id, rating, comment)

        self._dispatcher.spawn(
            self._notify_approval(booking, contractor, user_id),
            f"approval notification for {booking.id}",
        )
        self._dispatcher.spawn(
            self._email_approval(booking, contractor, user_id, rating),
            f"approval email for {booking.id}",
        )

        return ApproveJobResponse(payout_released=payout_released, review_saved=review_saved)

    async def _save_review(
        self,
        user_id: str,
        contractor_id: str,
        booking_id: str,
        rating: int,
        comment: str | None,
    ) -> bool:
        review = Review(
            user_id=user_id,
            contractor_id=contractor_id,
            booking_id=booking_id,
            rating=rating,
            comment=comment or None,
        )
        try:
            await self._supabase.insert_review(review)
        except ConflictError:
            logger.warning("Review for booking %s already exists, skipping", booking_id)
            return False
        return True

    async def _names(self, customer_id: str, contractor: Contractor) -> tuple[str, str]:
        customer_name, contractor_name = await asyncio.gather(
            self._supabase.get_profile_name(customer_id),
            self._supabase.get_profile_name(contractor.user_id),
        )
        return customer_name or "Customer", contractor_name or "Contractor"

    async def _notify_approval(self, booking: Booking, contractor: Contractor, customer_id: str) -> None:
        customer_name, _ = await self._names(customer_id, contractor)
        title, message = approval_notification(customer_name, booking.id, booking.total_price)
        await self._notifier.send_in_app(contractor.user_id, title, message, booking_id=booking.id)

    async def _email_approval(
        self,
        booking: Booking,
        contractor: Contractor,
        customer_id: str,
        rating: int | None,
    ) -> None:
        customer_name, contractor_name = await self._names(customer_id, contractor)
        amount: Decimal | None = booking.total_price
        subject, html = approval_email(contractor_name, customer_name, booking.id, amount, rating)
        await self._notifier.send_email(contractor.user_id, subject, html)

    async def _notify_dispute(self, booking: Booking, customer_id: str, description: str) -> None:
        contractor = await self._supabase.get_contractor(booking.contractor_id)
        if contractor is None:
            logger.warning(
                "Contractor %s not found, dispute on %s not notified",
                booking.contractor_id, booking.id,
            )
            return
        customer_name, contractor_name = await self._names(customer_id, contractor)
        title, message = dispute_notification(customer_name, booking.id)
        await self._notifier.send_in_app(
            contractor.user_id, title, message, booking_id=booking.id, type="warning"
        )
        await self._notifier.send_email(
            contractor.user_id, *dispute_email(contractor_name, booking.id, description)
        )
