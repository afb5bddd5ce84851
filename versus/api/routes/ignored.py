"""Ignore-set endpoints (admin mode only).

- GET /api/ignored: Ignored comment and thread ids
- POST /api/ignored/comments/{comment_id}: Toggle one comment
- POST /api/ignored/threads/{post_id}: Toggle every comment of a thread

Toggles are written to the ignore file before the response is returned and
apply to the next dashboard request without reloading results.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from versus.aggregation import DashboardEngine
from versus.api.models import IgnoredModel, IgnoreToggleModel
from versus.api.responses import ADMIN_MODE_REQUIRED, raise_api_error, wrap_response
from versus.utils.logging_config import get_logger

logger = get_logger(__name__)


def require_admin_mode(request: Request) -> None:
    if not request.app.state.settings.admin_mode:
        logger.warning("admin_endpoint_rejected", path=request.url.path)
        raise_api_error(ADMIN_MODE_REQUIRED, "Ignore controls are only available in admin mode")


router = APIRouter(prefix="/api/ignored", tags=["ignored"], dependencies=[Depends(require_admin_mode)])


@router.get("")
async def get_ignored(request: Request) -> Dict[str, Any]:
    engine: DashboardEngine = request.app.state.engine
    ignored = IgnoredModel(**engine.ignored.to_dict())
    return wrap_response(ignored.model_dump(), total=len(ignored.comments) + len(ignored.threads))


@router.post("/comments/{comment_id}")
async def toggle_comment(comment_id: str, request: Request) -> Dict[str, Any]:
    engine: DashboardEngine = request.app.state.engine
    now_ignored = engine.ignored.toggle_comment(comment_id)
    return wrap_response(IgnoreToggleModel(id=comment_id, ignored=now_ignored, scope="comment").model_dump())


@router.post("/threads/{post_id}")
async def toggle_thread(post_id: str, request: Request) -> Dict[str, Any]:
    engine: DashboardEngine = request.app.state.engine
    now_ignored = engine.ignored.toggle_thread(post_id)
    return wrap_response(IgnoreToggleModel(id=post_id, ignored=now_ignored, scope="thread").model_dump())
