"""Recommendations router – exposes the engine via HTTP.

GET /recommendations/posts
    Ranked posts for a user.

GET /recommendations/users
    Suggested users to follow.

POST /recommendations/posts/{content_id}/view
    Record that a user viewed a post (best-effort, acknowledged immediately).

The requesting user arrives as ``user_id``; authentication happens in front
of this service.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request
from pydantic import BaseModel, Field

from ..errors import StoreUnavailableError
from ..models import Candidate, UserSummary

router = APIRouter(prefix="/recommendations", tags=["recommendations"])

logger = logging.getLogger(__name__)

MAX_LIMIT = 100


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class ContentRecommendationResponse(BaseModel):
    user_id: str
    posts: list[Candidate]


class UserRecommendationResponse(BaseModel):
    user_id: str
    users: list[UserSummary]


class ViewAck(BaseModel):
    status: str = Field("accepted", description="The view was queued for recording")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/posts", response_model=ContentRecommendationResponse)
async def recommended_posts(
    request: Request,
    user_id: str = Query(..., min_length=1, description="ID of the requesting user"),
    limit: int = Query(20, ge=1, le=MAX_LIMIT),
) -> ContentRecommendationResponse:
    engine = request.app.state.engine
    try:
        posts = await engine.get_recommended_content(user_id, limit)
    except StoreUnavailableError as exc:
        logger.error("Recommendations unavailable for user %s: %s", user_id, exc)
        raise HTTPException(status_code=503, detail="Recommendations temporarily unavailable") from exc
    return ContentRecommendationResponse(user_id=user_id, posts=posts)


@router.get("/users", response_model=UserRecommendationResponse)
async def recommended_users(
    request: Request,
    user_id: str = Query(..., min_length=1, description="ID of the requesting user"),
    limit: int = Query(20, ge=1, le=MAX_LIMIT),
) -> UserRecommendationResponse:
    engine = request.app.state.engine
    try:
        users = await engine.get_recommended_users(user_id, limit)
    except StoreUnavailableError as exc:
        logger.error("User recommendations unavailable for user %s: %s", user_id, exc)
        raise HTTPException(status_code=503, detail="Recommendations temporarily unavailable") from exc
    return UserRecommendationResponse(user_id=user_id, users=users)


@router.post("/posts/{content_id}/view", response_model=ViewAck, status_code=202)
async def record_post_view(
    request: Request,
    content_id: str,
    background_tasks: BackgroundTasks,
    user_id: str = Query(..., min_length=1, description="ID of the viewing user"),
) -> ViewAck:
    """Queue a view record; failures are logged by the engine, never returned."""
    background_tasks.add_task(request.app.state.engine.record_view, user_id, content_id)
    return ViewAck()
