import logging
from collections.abc import Iterable
from typing import Any

import httpx

from lawnly.exceptions.custom import (
    AuthenticationError,
    ConflictError,
    RateLimitError,
    SupabaseError,
)
from lawnly.schemas.supabase import (
    Address,
    AuthUser,
    Booking,
    BookingStatus,
    Contractor,
    ContractorTier,
    Dispute,
    Notification,
    Review,
)

logger = logging.getLogger(__name__)

REST_PATH = "/rest/v1"
AUTH_PATH = "/auth/v1"

# Jobs count as completed once the contractor has finished the work,
# whether or not the customer has verified it yet.
COMPLETED_STATUSES = (
    BookingStatus.completed,
    BookingStatus.completed_pending_verification,
)


def _in(values: Iterable[Any]) -> str:
    return "in.(" + ",".join(str(v) for v in values) + ")"


def match_filters(match: dict[str, Any]) -> dict[str, str]:
    """Translate {column: value | [values]} into PostgREST filter params."""
    filters: dict[str, str] = {}
    for column, value in match.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            filters[column] = _in(value)
        elif value is None:
            filters[column] = "is.null"
        elif isinstance(value, bool):
            filters[column] = f"eq.{str(value).lower()}"
        else:
            filters[column] = f"eq.{value}"
    return filters


def parse_content_range(header: str | None) -> int:
    # "0-0/57" or "*/0"
    if not header or "/" not in header:
        raise SupabaseError(f"Missing count in Content-Range: {header!r}")
    total = header.rsplit("/", 1)[1]
    if total == "*":
        raise SupabaseError("Exact count was not returned")
    return int(total)


class SupabaseService:
    def __init__(self, client: httpx.AsyncClient, base_url: str, service_key: str):
        self._client = client
        base = base_url.rstrip("/")
        self._rest_url = f"{base}{REST_PATH}"
        self._auth_url = f"{base}{AUTH_PATH}"
        self._api_key = service_key
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }

    @property
    def rest_url(self) -> str:
        return self._rest_url

    @property
    def auth_url(self) -> str:
        return self._auth_url

    def _check(self, resp: httpx.Response) -> None:
        if resp.status_code == 429:
            raise RateLimitError("Supabase")
        if resp.status_code == 409:
            raise ConflictError(resp.text)
        if resp.status_code >= 400:
            raise SupabaseError(resp.text, status_code=resp.status_code)

    # -- generic table access ---------------------------------------------

    async def _select(
        self,
        table: str,
        filters: dict[str, str],
        columns: str = "*",
        limit: int | None = None,
    ) -> list[dict]:
        params = {"select": columns, **filters}
        if limit is not None:
            params["limit"] = str(limit)
        resp = await self._client.get(
            f"{self._rest_url}/{table}", params=params, headers=self._headers
        )
        self._check(resp)
        return resp.json()

    async def _select_one(self, table: str, filters: dict[str, str], columns: str = "*") -> dict | None:
        rows = await self._select(table, filters, columns, limit=1)
        return rows[0] if rows else None

    async def _count(self, table: str, filters: dict[str, str], columns: str = "id") -> int:
        resp = await self._client.get(
            f"{self._rest_url}/{table}",
            params={"select": columns, "limit": "1", **filters},
            headers={**self._headers, "Prefer": "count=exact"},
        )
        self._check(resp)
        return parse_content_range(resp.headers.get("content-range"))

    async def _update(self, table: str, filters: dict[str, str], fields: dict) -> list[dict]:
        resp = await self._client.patch(
            f"{self._rest_url}/{table}",
            params=filters,
            json=fields,
            headers={**self._headers, "Prefer": "return=representation"},
        )
        self._check(resp)
        return resp.json()

    async def _insert(self, table: str, row: dict) -> None:
        resp = await self._client.post(
            f"{self._rest_url}/{table}",
            json=row,
            headers={**self._headers, "Prefer": "return=minimal"},
        )
        self._check(resp)

    # -- identity ----------------------------------------------------------

    async def get_user(self, access_token: str) -> AuthUser:
        resp = await self._client.get(
            f"{self._auth_url}/user",
            headers={"apikey": self._api_key, "Authorization": f"Bearer {access_token}"},
        )
        if resp.status_code in (401, 403):
            raise AuthenticationError("Invalid authentication")
        self._check(resp)
        data = resp.json()
        return AuthUser(id=data["id"], email=data.get("email"))

    async def get_user_email(self, user_id: str) -> str | None:
        resp = await self._client.get(
            f"{self._auth_url}/admin/users/{user_id}", headers=self._headers
        )
        if resp.status_code == 404:
            return None
        self._check(resp)
        return resp.json().get("email")

    async def get_profile_name(self, user_id: str) -> str | None:
        row = await self._select_one("profiles", match_filters({"user_id": user_id}), "full_name")
        return row.get("full_name") if row else None

    # -- quotes ------------------------------------------------------------

    async def get_address(self, address_id: str, user_id: str) -> Address | None:
        row = await self._select_one(
            "addresses",
            match_filters({"id": address_id, "user_id": user_id}),
            "id,user_id,square_meters,slope,tier_count,status",
        )
        return Address(**row) if row else None

    async def get_pricing_settings(self) -> list[dict]:
        return await self._select("pricing_settings", {}, "key,value")

    # -- bookings ----------------------------------------------------------

    async def get_booking(self, booking_id: str) -> Booking | None:
        row = await self._select_one("bookings", match_filters({"id": booking_id}))
        return Booking(**row) if row else None

    async def update_booking(
        self, booking_id: str, fields: dict, match: dict[str, Any] | None = None
    ) -> Booking | None:
        """Update a booking only while ``match`` still holds.

        Returns None when no row matched, i.e. another writer got there first.
        """
        filters = match_filters({"id": booking_id, **(match or {})})
        rows = await self._update("bookings", filters, fields)
        if not rows:
            return None
        logger.info("Updated booking %s: %s", booking_id, sorted(fields))
        return Booking(**rows[0])

    async def count_completed_bookings(self, contractor_id: str | None = None) -> int:
        match: dict[str, Any] = {"status": COMPLETED_STATUSES}
        if contractor_id is not None:
            match["contractor_id"] = contractor_id
        return await self._count("bookings", match_filters(match))

    # -- contractors -------------------------------------------------------

    async def get_contractor(self, contractor_id: str) -> Contractor | None:
        row = await self._select_one("contractors", match_filters({"id": contractor_id}))
        return Contractor(**row) if row else None

    async def get_contractor_by_user(self, user_id: str) -> Contractor | None:
        row = await self._select_one("contractors", match_filters({"user_id": user_id}))
        return Contractor(**row) if row else None

    async def list_contractors(self, tiers: Iterable[ContractorTier]) -> list[Contractor]:
        rows = await self._select(
            "contractors",
            match_filters({
                "tier": tuple(tiers),
                "is_active": True,
                "approval_status": "approved",
            }),
        )
        return [Contractor(**row) for row in rows]

    async def update_contractor(
        self, contractor_id: str, fields: dict, match: dict[str, Any] | None = None
    ) -> Contractor | None:
        filters = match_filters({"id": contractor_id, **(match or {})})
        rows = await self._update("contractors", filters, fields)
        if not rows:
            return None
        logger.info("Updated contractor %s: %s", contractor_id, sorted(fields))
        return Contractor(**rows[0])

    async def update_contractors_by_account(self, account_id: str, fields: dict) -> int:
        rows = await self._update(
            "contractors", match_filters({"stripe_account_id": account_id}), fields
        )
        return len(rows)

    async def get_review_ratings(self, contractor_id: str) -> list[int]:
        rows = await self._select("reviews", match_filters({"contractor_id": contractor_id}), "rating")
        return [int(row["rating"]) for row in rows]

    async def count_disputes(self, contractor_id: str) -> int:
        return await self._count(
            "disputes",
            {"bookings.contractor_id": f"eq.{contractor_id}"},
            columns="id,bookings!inner(contractor_id)",
        )

    # -- writes with uniqueness / side effects -----------------------------

    async def insert_review(self, review: Review) -> None:
        # (contractor_id, booking_id) is unique; a replay surfaces as 409
        await self._insert("reviews", review.model_dump(mode="json"))
        logger.info("Saved review for booking %s", review.booking_id)

    async def insert_dispute(self, dispute: Dispute) -> None:
        await self._insert("disputes", dispute.model_dump(mode="json"))
        logger.info("Recorded dispute for booking %s", dispute.booking_id)

    async def insert_notification(self, notification: Notification) -> None:
        await self._insert("notifications", notification.model_dump(mode="json"))
