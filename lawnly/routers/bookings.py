from decimal import Decimal

from fastapi import APIRouter
from pydantic import Field

from lawnly.dependencies import BookingDep, CurrentUserDep
from lawnly.schemas.pricing import CamelModel
from lawnly.schemas.responses import ApproveJobResponse, BookingResponse, PayoutResult

router = APIRouter()


class ApproveJobRequest(CamelModel):
    booking_id: str
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = None


class ReleasePayoutRequest(CamelModel):
    booking_id: str


class DisputeRequest(CamelModel):
    reason: str
    description: str
    suggested_refund_amount: Decimal | None = None
    photo_urls: list[str] = []


@router.post("/approve_job", response_model=ApproveJobResponse)
async def approve_job(
    request: ApproveJobRequest,
    user: CurrentUserDep,
    service: BookingDep,
) -> ApproveJobResponse:
    return await service.approve(
        user.id, request.booking_id, rating=request.rating, comment=request.comment
    )


@router.post("/release_payout", response_model=PayoutResult)
async def release_payout(
    request: ReleasePayoutRequest,
    user: CurrentUserDep,
    service: BookingDep,
) -> PayoutResult:
    return await service.release_payout(user.id, request.booking_id)


@router.post("/bookings/{booking_id}/start", response_model=BookingResponse)
async def start_job(booking_id: str, user: CurrentUserDep, service: BookingDep) -> BookingResponse:
    booking = await service.start_job(user.id, booking_id)
    return BookingResponse(booking_id=booking.id, status=booking.status)


@router.post("/bookings/{booking_id}/complete", response_model=BookingResponse)
async def complete_job(booking_id: str, user: CurrentUserDep, service: BookingDep) -> BookingResponse:
    booking = await service.complete_job(user.id, booking_id)
    return BookingResponse(booking_id=booking.id, status=booking.status)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(booking_id: str, user: CurrentUserDep, service: BookingDep) -> BookingResponse:
    booking = await service.cancel(user.id, booking_id)
    return BookingResponse(booking_id=booking.id, status=booking.status)


@router.post("/bookings/{booking_id}/dispute", response_model=BookingResponse)
async def dispute_booking(
    booking_id: str,
    request: DisputeRequest,
    user: CurrentUserDep,
    service: BookingDep,
) -> BookingResponse:
    booking = await service.dispute(
        user.id,
        booking_id,
        reason=request.reason,
        description=request.description,
        suggested_refund_amount=request.suggested_refund_amount,
        photo_urls=request.photo_urls,
    )
    return BookingResponse(booking_id=booking.id, status=booking.status)
