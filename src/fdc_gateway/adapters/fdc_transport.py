"""Single-attempt HTTP transport for the FoodData Central API."""

import asyncio
import json
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from math import ceil, isfinite
from typing import Protocol

import httpx

from fdc_gateway.domain.errors import UpstreamError

DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_BODY_CHARS = 2000

QueryValue = str | int | float | bool | list[str | int | float | bool]


class FdcTransport(Protocol):
    """Issues one upstream call and raises ``UpstreamError`` on failure."""

    async def send(
        self,
        method: str,
        path: str,
        json_body: object | None = None,
        query: dict[str, QueryValue] | None = None,
    ) -> object:
        """Send a request and return the decoded JSON body."""


@dataclass
class HttpxFdcTransport(FdcTransport):
    """HTTPX-backed transport with timeout and error classification."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def create(
        cls,
        api_key: str,
        base_url: str,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> "HttpxFdcTransport":
        """Create a transport with a managed httpx session."""
        return cls(
            api_key=api_key,
            base_url=base_url,
            http_client=httpx.AsyncClient(),
            timeout_seconds=timeout_seconds,
        )

    async def send(
        self,
        method: str,
        path: str,
        json_body: object | None = None,
        query: dict[str, QueryValue] | None = None,
    ) -> object:
        """Send one request; every failure surfaces as ``UpstreamError``."""
        url = httpx.URL(self.base_url).join(path)
        params = _build_params(self.api_key, query)
        try:
            async with asyncio.timeout(self.timeout_seconds):
                response = await self.http_client.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    timeout=self.timeout_seconds,
                )
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise UpstreamError(
                "FoodData Central request timed out", retryable=True
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(
                f"FoodData Central request failed: {exc}", retryable=True
            ) from exc

        if not response.is_success:
            raise _http_failure(response)

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(
                "FoodData Central returned a malformed response",
                status=response.status_code,
                retryable=False,
                raw_body=_truncate(response.text),
            ) from exc

        envelope_error = detect_error_envelope(data, response.status_code)
        if envelope_error is not None:
            raise envelope_error
        return data

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def is_retryable_status(status: int) -> bool:
    """429 and 5xx responses are worth retrying."""
    return status == 429 or 500 <= status < 600


def detect_error_envelope(
    payload: object, fallback_status: int | None = None
) -> UpstreamError | None:
    """Return an error for ``{"error": {...}}`` bodies, else None."""
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if not isinstance(error, dict):
        return None

    code = error.get("code") if isinstance(error.get("code"), str) else None
    message = error.get("message")
    if not isinstance(message, str):
        description = error.get("description")
        message = (
            description
            if isinstance(description, str)
            else "FoodData Central request failed."
        )
    status = _int_or_none(error.get("status"))
    if status is None:
        status = _int_or_none(error.get("httpStatus"))
    effective_status = status if status is not None else fallback_status
    retryable = code == "OVER_RATE_LIMIT" or (
        effective_status is not None and is_retryable_status(effective_status)
    )
    return UpstreamError(
        f"USDA error {code}: {message}" if code else message,
        status=effective_status,
        retryable=retryable,
        raw_body=_serialize(payload),
    )


def parse_retry_after_ms(value: str | None, now: datetime | None = None) -> int | None:
    """Parse a Retry-After header given as delta-seconds or an HTTP-date."""
    if not value:
        return None
    text = value.strip()
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not isfinite(seconds):
            return None
        return max(0, round(seconds * 1000))

    try:
        moment = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    reference = now or datetime.now(tz=UTC)
    return max(0, round((moment - reference).total_seconds() * 1000))


def format_duration_ms(value: int) -> str:
    """Render a millisecond duration as ``45s``, ``2m 5s`` or ``1h 30m``."""
    seconds = ceil(max(0, value) / 1000)
    if seconds < 60:
        return f"{seconds}s"
    minutes, remaining_seconds = divmod(seconds, 60)
    if minutes < 60:
        if remaining_seconds:
            return f"{minutes}m {remaining_seconds}s"
        return f"{minutes}m"
    hours, remaining_minutes = divmod(minutes, 60)
    return f"{hours}h {remaining_minutes}m" if remaining_minutes else f"{hours}h"


def _http_failure(response: httpx.Response) -> UpstreamError:
    body = response.text
    retry_after_ms = parse_retry_after_ms(response.headers.get("Retry-After"))
    parts = [
        f"FoodData Central request failed: {response.status_code} "
        f"{response.reason_phrase}".rstrip()
    ]
    code, detail = _parse_error_body(body)
    if code or detail:
        parts.append(" ".join(filter(None, ["USDA", code])))
        parts.append(detail or "")
    if retry_after_ms is not None:
        parts.append(f"Retry after {format_duration_ms(retry_after_ms)}.")
    return UpstreamError(
        " - ".join(part for part in parts if part),
        status=response.status_code,
        retryable=is_retryable_status(response.status_code),
        suggested_delay_ms=retry_after_ms,
        raw_body=_truncate(body),
    )


def _parse_error_body(body: str) -> tuple[str | None, str | None]:
    if not body:
        return None, None
    try:
        parsed = json.loads(body)
    except ValueError:
        return None, None
    if not isinstance(parsed, dict) or not isinstance(parsed.get("error"), dict):
        return None, None
    error = parsed["error"]
    code = error.get("code")
    message = error.get("message")
    return (
        code if isinstance(code, str) else None,
        message if isinstance(message, str) else None,
    )


def _build_params(
    api_key: str, query: dict[str, QueryValue] | None
) -> list[tuple[str, str]]:
    params: list[tuple[str, str]] = [("api_key", api_key)]
    for key, value in (query or {}).items():
        if value is None:
            continue
        items = value if isinstance(value, list) else [value]
        params.extend((key, _query_text(item)) for item in items)
    return params


def _query_text(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _int_or_none(value: object) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _serialize(payload: object) -> str:
    try:
        return _truncate(json.dumps(payload))
    except (TypeError, ValueError) as exc:
        return str(exc)


def _truncate(text: str) -> str:
    return text if len(text) <= MAX_BODY_CHARS else f"{text[:MAX_BODY_CHARS]}..."
