"""Opaque pagination cursors bound to the tool that issued them."""

import base64
import binascii
import json
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fdc_gateway.domain.errors import CursorError

SEARCH_FOODS_TOOL = "search-foods"
LIST_FOODS_TOOL = "list-foods"

DEFAULT_PAGE_SIZE = 50
# Upper bound for both page numbers and page sizes.
MAX_PAGE = 200
DEFAULT_PAGE_SIZES = MappingProxyType(
    {SEARCH_FOODS_TOOL: DEFAULT_PAGE_SIZE, LIST_FOODS_TOOL: DEFAULT_PAGE_SIZE}
)


class CursorPayload(BaseModel):
    """Decoded cursor contents."""

    model_config = ConfigDict(frozen=True)

    tool: str = Field(min_length=1)
    page: int = Field(ge=1, le=MAX_PAGE, strict=True)
    size: Any = None


@dataclass(frozen=True)
class CursorPage:
    page: int
    size: int


def encode_cursor(tool_name: str, page: int, page_size: int) -> str:
    """Serialize a page position into a URL-safe token."""
    if not tool_name:
        raise ValueError("tool_name is required")
    if not 1 <= page <= MAX_PAGE or not 1 <= page_size <= MAX_PAGE:
        raise ValueError(f"page and page_size must be between 1 and {MAX_PAGE}")
    raw = json.dumps(
        {"tool": tool_name, "page": page, "size": page_size}, separators=(",", ":")
    )
    token = base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")
    return token.rstrip("=")


def decode_cursor(
    cursor: str, expected_tool: str, default_page_size: int | None = None
) -> CursorPage:
    """Decode a cursor issued for ``expected_tool``.

    Every failure raises the same ``CursorError``; cursors are opaque and
    callers get no detail about what was wrong with one.
    """
    fallback_size = default_page_size or DEFAULT_PAGE_SIZES.get(
        expected_tool, DEFAULT_PAGE_SIZE
    )
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        payload = CursorPayload.model_validate_json(raw)
    except (binascii.Error, UnicodeError, ValueError, ValidationError) as exc:
        raise CursorError(expected_tool) from exc
    if payload.tool != expected_tool:
        raise CursorError(expected_tool)
    size = payload.size
    if isinstance(size, bool) or not isinstance(size, int):
        size = fallback_size
    elif not 1 <= size <= MAX_PAGE:
        size = fallback_size
    return CursorPage(page=payload.page, size=size)
