"""Platform-wide reader path analytics routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from forkline.api.deps import get_story_store
from forkline.config import TOP_PATHS_CEILING, get_settings
from forkline.responses import success_response
from forkline.schemas.story import PathAnalyticsOut
from forkline.services import stories as stories_service
from forkline.store import StoryStoreBase

router = APIRouter()


@router.get("/analytics/paths")
def get_platform_path_analytics(
    store: Annotated[StoryStoreBase, Depends(get_story_store)],
    limit: int | None = Query(
        default=None, ge=1, le=TOP_PATHS_CEILING, description="Number of top paths"
    ),
) -> dict:
    """Path popularity, completion rate and average depth across all stories.

    Path keys are not scoped to a story, so identical choice sequences from
    different stories are counted together.
    """
    summary = stories_service.get_platform_analytics(
        store, top_n=limit or get_settings().analytics_top_paths
    )
    return success_response(PathAnalyticsOut.model_validate(summary).to_json())
