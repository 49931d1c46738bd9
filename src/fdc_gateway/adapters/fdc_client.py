"""USDA FoodData Central API client."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from fdc_gateway.adapters.fdc_transport import FdcTransport, HttpxFdcTransport
from fdc_gateway.domain.errors import UpstreamError
from fdc_gateway.domain.foods import (
    BulkFoodsRequest,
    FoodItem,
    FoodQueryOptions,
    ListFoodsRequest,
    SearchFoodsRequest,
)
from fdc_gateway.services.backoff import RetryPolicy
from fdc_gateway.services.limiter import RequestLimiter

if TYPE_CHECKING:
    from fdc_gateway.config import Settings

_logger = logging.getLogger(__name__)


class FdcClient(Protocol):
    """Interface for FoodData Central API interactions."""

    async def search_foods(self, request: SearchFoodsRequest) -> dict[str, object]:
        """Search foods and return the raw search payload."""

    async def get_food(
        self, fdc_id: int, options: FoodQueryOptions | None = None
    ) -> FoodItem:
        """Fetch one food by FDC id."""

    async def get_foods(self, request: BulkFoodsRequest) -> list[FoodItem]:
        """Fetch several foods in one batch call."""

    async def list_foods(self, request: ListFoodsRequest) -> list[FoodItem]:
        """List foods page by page."""


@dataclass
class HttpxFdcClient(FdcClient):
    """FDC client that schedules, retries and sends every call."""

    transport: FdcTransport
    limiter: RequestLimiter = field(default_factory=RequestLimiter)
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    sleep: Callable[[float], Awaitable[None]] = field(
        default=asyncio.sleep, repr=False
    )

    @classmethod
    def create(cls, settings: "Settings") -> "HttpxFdcClient":
        """Create a client with a managed httpx session from settings."""
        transport = HttpxFdcTransport.create(
            api_key=settings.usda_api_key,
            base_url=settings.usda_api_base_url,
            timeout_seconds=settings.request_timeout_seconds,
        )
        return cls(
            transport=transport,
            limiter=RequestLimiter(
                max_concurrent=settings.max_concurrent_requests,
                min_interval_ms=settings.min_request_interval_ms,
            ),
            retry_policy=RetryPolicy(
                max_retries=settings.max_retries,
                base_delay_ms=settings.retry_delay_ms,
            ),
        )

    async def search_foods(self, request: SearchFoodsRequest) -> dict[str, object]:
        """Search foods by query."""
        payload = await self._post("foods/search", request.to_payload())
        if not isinstance(payload, dict):
            raise UpstreamError(
                "Unexpected USDA search response format", retryable=False
            )
        return payload

    async def get_food(
        self, fdc_id: int, options: FoodQueryOptions | None = None
    ) -> FoodItem:
        """Fetch a food through the batch endpoint."""
        foods = await self.get_foods(BulkFoodsRequest.for_ids([fdc_id], options))
        if not foods:
            raise UpstreamError(
                f"FDC ID {fdc_id} not found", status=404, retryable=False
            )
        return foods[0]

    async def get_foods(self, request: BulkFoodsRequest) -> list[FoodItem]:
        """Fetch foods by FDC ids."""
        payload = await self._post("foods", request.to_payload())
        return normalize_bulk_response(payload)

    async def list_foods(self, request: ListFoodsRequest) -> list[FoodItem]:
        """List foods with paging and sorting."""
        payload = await self._post("foods/list", request.to_payload())
        if not isinstance(payload, list):
            raise UpstreamError("Unexpected USDA list response format", retryable=False)
        return payload

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        close = getattr(self.transport, "close", None)
        if close is not None:
            await close()

    async def _post(self, path: str, body: dict[str, object]) -> object:
        return await self.limiter.schedule(
            lambda: self._send_with_retries("POST", path, body)
        )

    async def _send_with_retries(
        self, method: str, path: str, body: dict[str, object]
    ) -> object:
        attempt = 0
        while True:
            try:
                return await self.transport.send(method, path, json_body=body)
            except UpstreamError as exc:
                if not self.retry_policy.should_retry(exc, attempt):
                    raise
                delay_ms = self.retry_policy.compute_delay(attempt)
                _logger.warning(
                    "Retrying USDA request (%s/%s) after %sms due to: %s",
                    attempt + 1,
                    self.retry_policy.max_retries,
                    delay_ms,
                    exc,
                )
                await self.sleep(delay_ms / 1000)
                attempt += 1


def normalize_bulk_response(payload: object) -> list[FoodItem]:
    """Accept the list and wrapped shapes the bulk endpoint returns."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        foods = payload.get("foods")
        if isinstance(foods, list):
            return foods
        error = payload.get("error")
        if isinstance(error, dict):
            code = error.get("code") if isinstance(error.get("code"), str) else None
            message = error.get("message")
            if not isinstance(message, str):
                message = "USDA error response"
            raise UpstreamError(
                f"USDA error {code}: {message}" if code else message,
                retryable=code == "OVER_RATE_LIMIT",
            )
        if not payload:
            return []
    raise UpstreamError("Unexpected USDA bulk foods response format", retryable=False)
