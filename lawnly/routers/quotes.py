from fastapi import APIRouter

from lawnly.dependencies import CurrentUserDep, QuoteDep
from lawnly.schemas.pricing import QuoteRequest, QuoteResponse

router = APIRouter()


@router.post("/calculate_quote", response_model=QuoteResponse)
async def calculate_quote(
    request: QuoteRequest,
    user: CurrentUserDep,
    service: QuoteDep,
) -> QuoteResponse:
    return await service.quote(user.id, request)
