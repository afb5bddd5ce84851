"""Dashboard statistics and result listing endpoints.

- GET /api/dashboard: Statistics for one filter state plus a page of results
- GET /api/results: Filtered, sorted, paginated result listing
- POST /api/reload: Re-scan the results file without restarting
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Request

from versus.aggregation import ALL, DashboardEngine, DashboardSnapshot, FilterState
from versus.api.dependencies import results_store
from versus.api.models import DashboardModel, PaginationParams
from versus.api.responses import (
    ADMIN_MODE_REQUIRED,
    RESULTS_UNAVAILABLE,
    VALIDATION_ERROR,
    raise_api_error,
    wrap_response,
)
from versus.utils.logging_config import get_logger

router = APIRouter(prefix="/api", tags=["dashboard"])
logger = get_logger(__name__)

SORT_PATTERN = "^(recency|popularity)$"


def get_filters(
    request: Request,
    subreddit: str = Query(ALL, description="Subreddit name or 'all'"),
    theme: str = Query(ALL, description="Theme tag or 'all'"),
    category: str = Query(ALL, description="Comparison category, group alias, or 'all'"),
    model: str = Query(ALL, description="Classifier model or 'all'"),
    quote_worthy: bool = Query(False, description="Only quote-worthy results"),
    sort: str = Query("recency", pattern=SORT_PATTERN, description="recency or popularity"),
    weighted: bool = Query(False, description="Weight statistics by comment score"),
    include_ignored: bool = Query(False, description="Include ignored results (admin mode only)"),
) -> FilterState:
    if include_ignored and not request.app.state.settings.admin_mode:
        raise_api_error(ADMIN_MODE_REQUIRED, "include_ignored is only available in admin mode")

    return FilterState(
        subreddit=subreddit,
        theme=theme,
        category=category,
        model=model,
        quote_worthy_only=quote_worthy,
        sort=sort,
        weighted=weighted,
        include_ignored=include_ignored,
    )


def _snapshot(engine: DashboardEngine, filters: FilterState) -> DashboardSnapshot:
    try:
        return engine.snapshot(filters)
    except ValueError as e:
        raise_api_error(VALIDATION_ERROR, str(e))


def _result_items(engine: DashboardEngine, snapshot: DashboardSnapshot, limit: int, offset: int):
    items = []
    for result in snapshot.results[offset:offset + limit]:
        item = result.to_record(engine.pair)
        item["ignored"] = engine.ignored.is_ignored(result)
        items.append(item)
    return items


def _dashboard_payload(
    engine: DashboardEngine,
    snapshot: DashboardSnapshot,
    limit: int,
    offset: int,
) -> Dict[str, Any]:
    filters = snapshot.filters
    payload = DashboardModel(
        filters={
            "subreddit": filters.subreddit,
            "theme": filters.theme,
            "category": filters.category,
            "model": filters.model,
            "quote_worthy": filters.quote_worthy_only,
            "sort": filters.sort,
            "weighted": filters.weighted,
            "include_ignored": filters.include_ignored,
        },
        total_results=snapshot.total_results,
        active_count=snapshot.active_count,
        ignored_count=snapshot.ignored_count,
        subreddits=snapshot.subreddits,
        themes=snapshot.themes,
        models=snapshot.models,
        categories=snapshot.categories,
        preference=snapshot.preference.to_dict(engine.pair),
        quote_worthy_count=snapshot.quote_worthy_count,
        results=_result_items(engine, snapshot, limit, offset),
    )
    return payload.model_dump()


@router.get("/dashboard")
async def get_dashboard(
    request: Request,
    filters: FilterState = Depends(get_filters),
    pagination: PaginationParams = Depends(),
) -> Dict[str, Any]:
    """Statistics for the filter state plus the first page of matching results.

    Example:
        GET /api/dashboard?subreddit=codex&weighted=true
    """
    engine: DashboardEngine = request.app.state.engine
    snapshot = _snapshot(engine, filters)

    return wrap_response(
        _dashboard_payload(engine, snapshot, pagination.limit, pagination.offset),
        total=len(snapshot.results),
    )


@router.get("/results")
async def list_results(
    request: Request,
    filters: FilterState = Depends(get_filters),
    pagination: PaginationParams = Depends(),
) -> Dict[str, Any]:
    engine: DashboardEngine = request.app.state.engine
    snapshot = _snapshot(engine, filters)

    return wrap_response(
        _result_items(engine, snapshot, pagination.limit, pagination.offset),
        total=len(snapshot.results),
    )


@router.post("/reload")
async def reload_results(request: Request) -> Dict[str, Any]:
    """Re-scan the results file; ignore state is kept.

    The current results stay loaded when the file cannot be read (503).
    """
    engine: DashboardEngine = request.app.state.engine
    store = results_store(request.app.state.settings)
    try:
        results = list(store.scan())
    except (OSError, UnicodeDecodeError) as e:
        logger.error("dashboard_reload_failed", path=str(store.path), error=str(e), error_type=type(e).__name__)
        raise_api_error(RESULTS_UNAVAILABLE, f"Results file could not be read: {store.path}")
    engine.replace_results(results)

    logger.info("dashboard_results_reloaded", results=len(engine.results), skipped_lines=store.skipped_lines)
    return wrap_response({"results": len(engine.results), "skipped_lines": store.skipped_lines})
