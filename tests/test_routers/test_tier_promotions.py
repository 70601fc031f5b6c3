import asyncio

import respx
from httpx import AsyncClient, Response

SUPABASE_URL = "https://test.supabase.co"
BOOKINGS_URL = f"{SUPABASE_URL}/rest/v1/bookings"
CONTRACTORS_URL = f"{SUPABASE_URL}/rest/v1/contractors"
REVIEWS_URL = f"{SUPABASE_URL}/rest/v1/reviews"
NOTIFICATIONS_URL = f"{SUPABASE_URL}/rest/v1/notifications"


def _mock_counts(platform: int, contractor: int):
    def respond(request):
        total = contractor if "contractor_id" in request.url.params else platform
        return Response(200, json=[], headers={"Content-Range": f"*/{total}"})

    respx.get(BOOKINGS_URL).mock(side_effect=respond)


async def submit_and_wait(client: AsyncClient, timeout: float = 5.0):
    """POST /tier_promotions -> 202, then poll GET /jobs/{job_id}."""
    resp = await client.post("/tier_promotions")
    assert resp.status_code == 202

    data = resp.json()
    job_id = data["job_id"]
    assert data["status"] == "pending"

    deadline = asyncio.get_event_loop().time() + timeout
    while asyncio.get_event_loop().time() < deadline:
        await asyncio.sleep(0.05)
        status_resp = await client.get(f"/jobs/{job_id}")
        assert status_resp.status_code == 200
        job = status_resp.json()
        if job["status"] in ("completed", "failed"):
            return job

    raise TimeoutError(f"Job {job_id} did not complete within {timeout}s")


@respx.mock
async def test_sync_run_with_no_contractors(client):
    _mock_counts(platform=0, contractor=0)
    contractors = respx.get(CONTRACTORS_URL).mock(return_value=Response(200, json=[]))

    resp = await client.post("/tier_promotions/sync")

    assert resp.status_code == 200
    assert resp.json() == {
        "evaluated": 0,
        "platformCompletedJobs": 0,
        "promotions": [],
        "errors": 0,
    }
    assert contractors.calls.last.request.url.params["tier"] == "in.(probation)"


@respx.mock
async def test_sync_run_promotes_probation_contractor(client):
    _mock_counts(platform=12, contractor=5)
    respx.get(CONTRACTORS_URL).mock(return_value=Response(200, json=[{
        "id": "c1", "user_id": "pro-1", "tier": "probation", "approval_status": "approved",
    }]))
    respx.get(REVIEWS_URL).mock(return_value=Response(200, json=[{"rating": 5}, {"rating": 4}]))
    promote = respx.patch(CONTRACTORS_URL).mock(return_value=Response(200, json=[{
        "id": "c1", "user_id": "pro-1", "tier": "standard", "approval_status": "approved",
    }]))
    notification = respx.post(NOTIFICATIONS_URL).mock(return_value=Response(201))

    resp = await client.post("/tier_promotions/sync")
    from lawnly.main import app
    await app.state.dispatcher.drain()

    assert resp.json()["promotions"] == [{"contractorId": "c1", "from": "probation", "to": "standard"}]
    assert promote.calls.last.request.url.params["tier"] == "eq.probation"
    assert notification.called


@respx.mock
async def test_async_run_completes(client):
    _mock_counts(platform=60, contractor=0)
    contractors = respx.get(CONTRACTORS_URL).mock(return_value=Response(200, json=[]))

    job = await submit_and_wait(client)

    assert job["status"] == "completed"
    assert job["task_type"] == "tier_promotions"
    assert job["result"]["platformCompletedJobs"] == 60
    assert [call.request.url.params["tier"] for call in contractors.calls] == [
        "in.(probation)", "in.(standard)",
    ]


@respx.mock
async def test_async_run_failure_recorded(client):
    respx.get(BOOKINGS_URL).mock(return_value=Response(500, text="database unavailable"))

    job = await submit_and_wait(client)

    assert job["status"] == "failed"
    assert "database unavailable" in job["error"]


async def test_unknown_job(client):
    resp = await client.get("/jobs/nope")
    assert resp.status_code == 404
