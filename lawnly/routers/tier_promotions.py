import asyncio
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from lawnly.dependencies import JobStoreDep, TierPromotionDep
from lawnly.jobs import JobStore
from lawnly.schemas.responses import JobStatusResponse, JobSubmittedResponse, TierPromotionResponse
from lawnly.services.tier_promotion import TierPromotionEvaluator

logger = logging.getLogger(__name__)

router = APIRouter()

TASK_TYPE = "tier_promotions"


async def _run_tier_promotions(
    job_id: str,
    service: TierPromotionEvaluator,
    store: JobStore,
) -> None:
    store.mark_running(job_id)
    try:
        result = await service.run()
        store.mark_completed(job_id, result)
    except Exception as exc:
        logger.exception("Tier promotion job %s failed", job_id)
        store.mark_failed(job_id, str(exc))


@router.post("/tier_promotions", response_model=JobSubmittedResponse, status_code=202)
async def submit_tier_promotions(
    service: TierPromotionDep,
    store: JobStoreDep,
) -> JobSubmittedResponse:
    existing = store.has_active_job(TASK_TYPE)
    if existing:
        return JSONResponse(content={
            "job_id": existing.job_id,
            "status": "already_running",
            "message": "A tier promotion run is already in progress",
        })

    job = store.create_job(TASK_TYPE)
    asyncio.create_task(_run_tier_promotions(job.job_id, service, store))
    return JobSubmittedResponse(
        job_id=job.job_id,
        status=job.status,
        message="Tier promotion job submitted",
    )


@router.post("/tier_promotions/sync", response_model=TierPromotionResponse)
async def run_tier_promotions(service: TierPromotionDep) -> TierPromotionResponse:
    return await service.run()


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(job_id: str, store: JobStoreDep) -> JobStatusResponse:
    job = store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusResponse(**job.model_dump())
