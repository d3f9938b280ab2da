"""Freshdesk v2 API client used by the sync engine and reply push."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import ValidationError

from ticketflow.core.config import settings
from ticketflow.schemas.freshdesk import RawTicket, RawTurn
from ticketflow.services.errors import ExternalFetchFailure

logger = logging.getLogger(__name__)


def _to_freshdesk_datetime(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class FreshdeskClient:
    """
    Thin synchronous client over httpx.

    Every call carries the configured timeout. Only the ticket list fetch
    raises; conversation fetches degrade to an empty thread and reply pushes
    are best-effort.
    """

    def __init__(
        self,
        *,
        domain: str,
        api_key: str,
        timeout: float = 30.0,
        page_size: int = 100,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.page_size = page_size
        self._client = httpx.Client(
            base_url=f"https://{domain}/api/v2",
            auth=(api_key, "X"),
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls) -> "FreshdeskClient":
        return cls(
            domain=settings.FRESHDESK_DOMAIN,
            api_key=settings.FRESHDESK_API_KEY,
            timeout=settings.FRESHDESK_TIMEOUT_SECONDS,
            page_size=settings.FRESHDESK_PAGE_SIZE,
        )

    def __enter__(self) -> "FreshdeskClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch_updated_since(self, watermark: datetime | None) -> list[RawTicket]:
        """
        Fetch the first page of tickets, newest update first.

        With a watermark only tickets updated at or after it are requested.
        """
        params: dict[str, Any] = {
            "order_by": "updated_at",
            "order_type": "desc",
            "per_page": self.page_size,
            "include": "description",
        }
        if watermark is not None:
            params["updated_since"] = _to_freshdesk_datetime(watermark)
            logger.info("Incremental ticket fetch since=%s", params["updated_since"])
        else:
            logger.info("Full ticket fetch (no watermark)")

        try:
            response = self._client.get("/tickets", params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise ExternalFetchFailure(f"Ticket list fetch timed out: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise ExternalFetchFailure(
                f"Ticket list fetch failed with HTTP {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ExternalFetchFailure(f"Ticket list fetch failed: {exc}") from exc

        if not isinstance(payload, list):
            raise ExternalFetchFailure("Ticket list response was not a JSON array")

        tickets: list[RawTicket] = []
        for item in payload:
            try:
                tickets.append(RawTicket.model_validate(item))
            except ValidationError:
                logger.warning("Skipping malformed ticket entry in list response")
        logger.info("Freshdesk returned tickets=%s", len(tickets))
        return tickets

    def fetch_conversation_thread(self, external_id: str) -> list[RawTurn]:
        """Return the conversation turns for a ticket; any failure yields []."""
        try:
            response = self._client.get(f"/tickets/{external_id}/conversations")
            response.raise_for_status()
            payload = response.json()
        except Exception as exc:
            logger.warning(
                "Conversation fetch failed external_id=%s error=%s", external_id, exc
            )
            return []

        if not isinstance(payload, list):
            return []

        turns: list[RawTurn] = []
        for item in payload:
            try:
                turns.append(RawTurn.model_validate(item))
            except ValidationError:
                continue
        return turns

    def push_reply(self, external_id: str, body: str | None) -> bool:
        """Post an accepted reply back to the ticket. Best-effort, never raises."""
        logger.info("Pushing reply to Freshdesk external_id=%s", external_id)
        try:
            response = self._client.post(
                f"/tickets/{external_id}/reply", json={"body": body or ""}
            )
            response.raise_for_status()
        except Exception as exc:
            logger.warning("Reply push failed external_id=%s error=%s", external_id, exc)
            return False
        return True
