"""Pydantic models for the dashboard API.

Response Structure:
    Successful responses: {"data": ..., "meta": {"timestamp", "version", "total"?}}
    Error responses: {"error": {"code", "message"}}

Result items use the same camelCase field names as the persisted
sentiment_analysis.jsonl lines, plus an ``ignored`` flag.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MetaModel(BaseModel):
    """Metadata included in all successful responses.

    Attributes:
        timestamp: ISO 8601 UTC timestamp of the response
        version: API version string
        total: Total item count before pagination, where applicable
    """
    timestamp: str
    version: str
    total: Optional[int] = None


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorEnvelope(BaseModel):
    error: ErrorDetail


class PaginationParams(BaseModel):
    """limit/offset query parameters, used as a FastAPI dependency.

    Example:
        @router.get("/results")
        async def list_results(pagination: PaginationParams = Depends()):
            ...
    """
    limit: int = Field(default=50, ge=1, le=500, description="Maximum number of results to return")
    offset: int = Field(default=0, ge=0, description="Number of results to skip")


class CategoryCount(BaseModel):
    count: int
    score: int


class IgnoredModel(BaseModel):
    comments: List[str] = Field(default_factory=list)
    threads: List[str] = Field(default_factory=list)


class IgnoreToggleModel(BaseModel):
    id: str
    ignored: bool
    scope: str


class DashboardModel(BaseModel):
    """Statistics for one filter state (the listing is paginated separately)."""
    filters: Dict[str, Any]
    total_results: int
    active_count: int
    ignored_count: int
    subreddits: Dict[str, int]
    themes: Dict[str, int]
    models: Dict[str, int]
    categories: Dict[str, CategoryCount]
    preference: Dict[str, Any]
    quote_worthy_count: int
    results: List[Dict[str, Any]] = Field(default_factory=list)
