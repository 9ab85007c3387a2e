"""
Expo Push API client.

POSTs a JSON array of messages to the Expo push endpoint and maps the
response's `data` array to per-message tickets. Any transport error or
non-2xx status is a provider-level failure.
"""

from typing import Optional

import httpx

from pickup.core.config import get_settings
from pickup.core.exceptions import ProviderUnavailable
from pickup.core.logging import get_logger
from pickup.services.interfaces.push_provider import PushMessage, PushProvider, PushTicket

logger = get_logger(__name__)


class ExpoPushProvider(PushProvider):
    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        settings = get_settings()
        self.url = settings.EXPO_PUSH_URL
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if settings.EXPO_ACCESS_TOKEN:
            headers["Authorization"] = f"Bearer {settings.EXPO_ACCESS_TOKEN}"
        self._client = client or httpx.AsyncClient(
            headers=headers,
            timeout=settings.PUSH_TIMEOUT_SECONDS,
        )

    async def send(self, messages: list[PushMessage]) -> list[PushTicket]:
        if not messages:
            return []

        try:
            response = await self._client.post(self.url, json=[m.to_payload() for m in messages])
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("expo_push_rejected", status_code=e.response.status_code)
            raise ProviderUnavailable(f"Expo API error: {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("expo_push_failed", error=str(e))
            raise ProviderUnavailable(f"Expo API unreachable: {e}") from e

        return self._parse_tickets(body, len(messages))

    @staticmethod
    def _parse_tickets(body, expected: int) -> list[PushTicket]:
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list) or len(data) != expected:
            # No usable per-message detail; the call's success stands for the batch
            return []

        tickets = []
        for entry in data:
            if entry.get("status") == "ok":
                tickets.append(PushTicket(ok=True))
            else:
                details = entry.get("details") or {}
                tickets.append(PushTicket(ok=False, error=details.get("error") or entry.get("message") or "error"))
        return tickets

    async def close(self) -> None:
        await self._client.aclose()
