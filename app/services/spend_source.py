from __future__ import annotations

import logging
from datetime import date
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)


class SpendSourceError(Exception):
    pass


class SpendSource(Protocol):
    async def total_spent(self, *, start: date, end: date, category: str | None = None) -> float:
        ...


def _receipt_date(raw: Any) -> date:
    # Backend sends either YYYY-MM-DD or a full ISO timestamp.
    return date.fromisoformat(str(raw)[:10])


def _same_category(a: str | None, b: str | None) -> bool:
    return (a or "").strip().casefold() == (b or "").strip().casefold()


def sum_receipts(receipts: list[dict[str, Any]], *, start: date, end: date, category: str | None = None) -> float:
    """Sum receipt amounts dated within [start, end], restricted to `category` when given."""
    total = 0.0
    for r in receipts:
        try:
            d = _receipt_date(r["date"])
            amount = float(r["amount"])
        except (KeyError, TypeError, ValueError) as e:
            raise SpendSourceError(f"Malformed receipt in response: {r!r}") from e
        if not start <= d <= end:
            continue
        if category and not _same_category(r.get("category"), category):
            continue
        total += amount
    return round(total, 2)


class ReceiptsApiClient:
    """
    Reads spend from the Fint receipts API (GET /api/receipts).

    Use as an async context manager to share one connection pool across
    concurrent calls; otherwise every call opens its own client.
    """

    def __init__(
        self,
        base_url: str,
        *,
        authorization: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or "").strip().rstrip("/")
        self.authorization = authorization
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _new_client(self) -> httpx.AsyncClient:
        headers = {"Authorization": self.authorization} if self.authorization else None
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def __aenter__(self) -> "ReceiptsApiClient":
        self._client = self._new_client()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _fetch(self, client: httpx.AsyncClient, params: dict[str, str]) -> list[dict[str, Any]]:
        try:
            r = await client.get("/api/receipts", params=params)
        except httpx.HTTPError as e:
            logger.warning("receipts_api_unreachable base=%s error=%s", self.base_url, e)
            raise SpendSourceError(f"Receipts API unreachable: {e!s}") from e
        try:
            body = r.json()
        except ValueError:
            body = None
        if r.status_code >= 300:
            detail = body.get("error") if isinstance(body, dict) else None
            logger.warning("receipts_api_failed status=%s detail=%s", r.status_code, detail)
            raise SpendSourceError(detail or f"Receipts API returned HTTP {r.status_code}")
        receipts = body.get("receipts") if isinstance(body, dict) else None
        if not isinstance(receipts, list):
            raise SpendSourceError("Receipts API response has no receipts list")
        return receipts

    async def total_spent(self, *, start: date, end: date, category: str | None = None) -> float:
        params = {"start_date": start.isoformat(), "end_date": end.isoformat()}
        if category:
            params["category"] = category
        if self._client is not None:
            receipts = await self._fetch(self._client, params)
        else:
            async with self._new_client() as client:
                receipts = await self._fetch(client, params)
        return sum_receipts(receipts, start=start, end=end, category=category)
