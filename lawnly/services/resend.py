import logging

import httpx

from lawnly.exceptions.custom import RateLimitError, ResendError

logger = logging.getLogger(__name__)

EMAILS_URL = "https://api.resend.com/emails"


class ResendService:
    def __init__(self, client: httpx.AsyncClient, api_key: str, sender: str):
        self._client = client
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._sender = sender

    async def send_email(self, to: str, subject: str, html: str) -> str | None:
        payload = {"from": self._sender, "to": [to], "subject": subject, "html": html}
        resp = await self._client.post(EMAILS_URL, json=payload, headers=self._headers)

        if resp.status_code == 429:
            raise RateLimitError("Resend")
        if resp.status_code >= 400:
            raise ResendError(resp.text, status_code=resp.status_code)

        email_id = resp.json().get("id")
        logger.info("Sent email %s (%s)", email_id, subject)
        return email_id
