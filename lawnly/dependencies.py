from typing import Annotated

from fastapi import Depends, Header, Request

from lawnly.exceptions.custom import AuthenticationError
from lawnly.jobs import JobStore
from lawnly.schemas.supabase import AuthUser
from lawnly.services.booking import BookingStateMachine
from lawnly.services.payment_accounts import PaymentAccountService
from lawnly.services.quote import QuoteService
from lawnly.services.stripe import StripeService
from lawnly.services.supabase import SupabaseService
from lawnly.services.tier_promotion import TierPromotionEvaluator


def get_supabase_service(request: Request) -> SupabaseService:
    return request.app.state.supabase_service


def get_quote_service(request: Request) -> QuoteService:
    return request.app.state.quote_service


def get_booking_service(request: Request) -> BookingStateMachine:
    return request.app.state.booking_service


def get_payment_account_service(request: Request) -> PaymentAccountService:
    return request.app.state.payment_account_service


def get_stripe_service(request: Request) -> StripeService:
    return request.app.state.stripe_service


def get_tier_promotion_service(request: Request) -> TierPromotionEvaluator:
    return request.app.state.tier_promotion_service


def get_job_store(request: Request) -> JobStore:
    return request.app.state.job_store


SupabaseDep = Annotated[SupabaseService, Depends(get_supabase_service)]
QuoteDep = Annotated[QuoteService, Depends(get_quote_service)]
BookingDep = Annotated[BookingStateMachine, Depends(get_booking_service)]
PaymentAccountDep = Annotated[PaymentAccountService, Depends(get_payment_account_service)]
StripeDep = Annotated[StripeService, Depends(get_stripe_service)]
TierPromotionDep = Annotated[TierPromotionEvaluator, Depends(get_tier_promotion_service)]
JobStoreDep = Annotated[JobStore, Depends(get_job_store)]


async def get_current_user(
    supabase: SupabaseDep,
    authorization: Annotated[str | None, Header()] = None,
) -> AuthUser:
    if not authorization:
        raise AuthenticationError("Not authenticated")
    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise AuthenticationError("Not authenticated")
    return await supabase.get_user(token)


CurrentUserDep = Annotated[AuthUser, Depends(get_current_user)]
