"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Annotated, Literal

from fastapi import FastAPI, Path, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from fdc_gateway.api.models import (
    BulkFoodsInput,
    ListFoodsInput,
    NutrientResolutionInput,
    SearchFoodsInput,
)
from fdc_gateway.app_logging import configure_logging
from fdc_gateway.config import describe_environment
from fdc_gateway.containers import AppContainer
from fdc_gateway.domain.errors import (
    CursorError,
    ResolutionIncompleteError,
    UpstreamError,
)
from fdc_gateway.domain.foods import FoodQueryOptions
from fdc_gateway.domain.nutrients import NUTRIENT_DEFINITIONS
from fdc_gateway.domain.resolution import AliasEntry
from fdc_gateway.services.cursors import (
    DEFAULT_PAGE_SIZES,
    LIST_FOODS_TOOL,
    MAX_PAGE,
    SEARCH_FOODS_TOOL,
    decode_cursor,
    encode_cursor,
)
from fdc_gateway.services.summaries import extract_macro_summary, to_food_summary

# Upstream credential failures surface as gateway errors.
_UPSTREAM_AUTH_STATUSES = frozenset({401, 403})

FdcIdPath = Annotated[int, Path(gt=0)]


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(
        request: Request, exc: UpstreamError
    ) -> JSONResponse:
        status = exc.status
        if (
            status is None
            or not 400 <= status < 500
            or status in _UPSTREAM_AUTH_STATUSES
        ):
            status = 502
        logger.warning("Upstream failure on %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status,
            content={
                "error": {
                    "message": exc.message,
                    "upstream_status": exc.status,
                    "retryable": exc.retryable,
                    "suggested_delay_ms": exc.suggested_delay_ms,
                }
            },
        )

    @app.exception_handler(CursorError)
    async def cursor_error_handler(request: Request, exc: CursorError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": {"message": str(exc)}})

    @app.exception_handler(ResolutionIncompleteError)
    async def resolution_error_handler(
        request: Request, exc: ResolutionIncompleteError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "error": {
                    "message": str(exc),
                    "fdc_id": exc.fdc_id,
                    "data_type": exc.data_type,
                    "missing": [key.value for key in exc.missing],
                }
            },
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/environment", response_class=PlainTextResponse)
    async def environment(request: Request) -> PlainTextResponse:
        """Describe the active upstream configuration."""
        state_container: AppContainer = request.app.state.container
        return PlainTextResponse(
            describe_environment(state_container.settings), media_type="text/markdown"
        )

    @app.post("/foods/search")
    async def search_foods(
        body: SearchFoodsInput, request: Request
    ) -> dict[str, object]:
        """Full-text search with cursor pagination."""
        state_container: AppContainer = request.app.state.container
        page, size = _page_position(body, SEARCH_FOODS_TOOL)
        results = await state_container.fdc_client.search_foods(
            body.to_request(page=page, size=size)
        )
        foods = results.get("foods")
        current_page = results.get("currentPage", page)
        total_pages = results.get("totalPages", 0)
        next_cursor = None
        if (
            isinstance(current_page, int)
            and isinstance(total_pages, int)
            and current_page < total_pages
            and current_page < MAX_PAGE
        ):
            next_cursor = encode_cursor(SEARCH_FOODS_TOOL, current_page + 1, size)
        return {
            "results": results,
            "summaries": [
                to_food_summary(food) for food in foods or [] if isinstance(food, dict)
            ],
            "next_cursor": next_cursor,
        }

    @app.post("/foods/list")
    async def list_foods(body: ListFoodsInput, request: Request) -> dict[str, object]:
        """Page through foods by data type or brand."""
        state_container: AppContainer = request.app.state.container
        page, size = _page_position(body, LIST_FOODS_TOOL)
        foods = await state_container.fdc_client.list_foods(
            body.to_request(page=page, size=size)
        )
        next_cursor = None
        if len(foods) >= size and page < MAX_PAGE:
            next_cursor = encode_cursor(LIST_FOODS_TOOL, page + 1, size)
        return {
            "foods": foods,
            "summaries": [to_food_summary(food) for food in foods],
            "next_cursor": next_cursor,
        }

    @app.post("/foods/batch")
    async def get_foods(body: BulkFoodsInput, request: Request) -> dict[str, object]:
        """Batch lookup with alias substitution for retired ids."""
        state_container: AppContainer = request.app.state.container
        batch = await state_container.food_lookup.get_foods(body.to_request())
        return {
            "foods": [resolved.food for resolved in batch.foods],
            "summaries": [to_food_summary(resolved.food) for resolved in batch.foods],
            "aliases": [_alias_payload(alias) for alias in batch.aliases],
            "missing_ids": batch.missing_ids,
        }

    @app.get("/foods/{fdc_id}")
    async def get_food(
        fdc_id: FdcIdPath,
        request: Request,
        format: Literal["abridged", "full"] | None = None,  # noqa: A002
        nutrients: list[int] | None = Query(default=None),
    ) -> dict[str, object]:
        """Look up one record by FDC id."""
        state_container: AppContainer = request.app.state.container
        options = FoodQueryOptions(
            format=format, nutrients=tuple(nutrients) if nutrients else None
        )
        resolved = await state_container.food_lookup.get_food(fdc_id, options)
        return {
            "food": resolved.food,
            "macros": extract_macro_summary(resolved.food),
            "alias": _alias_payload(resolved.alias),
        }

    @app.post("/foods/{fdc_id}/nutrients")
    async def resolve_nutrients(
        fdc_id: FdcIdPath, body: NutrientResolutionInput, request: Request
    ) -> dict[str, object]:
        """Resolve the requested nutrients for one record."""
        state_container: AppContainer = request.app.state.container
        resolution = await state_container.nutrient_engine.resolve(
            fdc_id, body.nutrients
        )
        return {
            "fdc_id": resolution.record.fdc_id,
            "food": resolution.record.food,
            "matches": {
                key.value: {
                    "value": match.value,
                    "unit": NUTRIENT_DEFINITIONS[key].unit.value,
                    "label": NUTRIENT_DEFINITIONS[key].label,
                    "source": match.source,
                    "source_id": match.source_id,
                    "field": match.field,
                }
                for key, match in resolution.matches.items()
            },
            "missing": [key.value for key in resolution.missing],
            "alias": _alias_payload(resolution.record.alias),
            "attempts": [
                {
                    "format": attempt.format,
                    "nutrient_ids": list(attempt.nutrient_ids or []),
                }
                for attempt in resolution.attempts
            ],
        }

    return app


def _page_position(body: ListFoodsInput, tool_name: str) -> tuple[int, int]:
    """Return the page and size to request, preferring the cursor."""
    if body.cursor:
        position = decode_cursor(body.cursor, tool_name)
        return position.page, position.size
    return body.page_number or 1, body.page_size or DEFAULT_PAGE_SIZES[tool_name]


def _alias_payload(alias: AliasEntry | None) -> dict[str, object] | None:
    return asdict(alias) if alias is not None else None
