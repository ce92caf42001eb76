"""Story tree, export/import and duplication API routes.

Routes are transport-only: each calls exactly one service function and
wraps the result in the response envelope. The export route is the
exception to the envelope: it returns the bundle itself as a JSON file.

Response envelope: {"data": ...}
Error envelope: {"error": {"code": "...", "message": "...", "request_id": "..."}}
"""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from forkline.api.deps import get_story_store
from forkline.config import get_settings
from forkline.logging import set_story_context
from forkline.responses import success_response
from forkline.schemas.story import (
    DuplicateResultOut,
    ImportResultOut,
    PathAnalyticsOut,
    PathCoverageOut,
    StoryTreeOut,
    TreeNodeOut,
)
from forkline.services import bundle as bundle_service
from forkline.services import duplicate as duplicate_service
from forkline.services import stories as stories_service
from forkline.services.tree import count_nodes
from forkline.store import StoryStoreBase

router = APIRouter()


# =============================================================================
# Tree Endpoints
# =============================================================================


@router.get("/stories/{story_id}/tree")
def get_story_tree(
    story_id: UUID,
    store: Annotated[StoryStoreBase, Depends(get_story_store)],
) -> dict:
    """Get a story's ordered branching tree.

    Errors:
        E_STORY_NOT_FOUND (404): Story does not exist.
        E_TREE_STRUCTURE (422): Stored nodes violate a tree invariant.
    """
    set_story_context(str(story_id))
    story, tree = stories_service.get_story_tree(store, str(story_id))
    out = StoryTreeOut(
        story_id=story.id,
        node_count=count_nodes(tree),
        nodes=[TreeNodeOut.model_validate(node) for node in tree],
    )
    return success_response(out.to_json())


@router.get("/stories/{story_id}/nodes/by-path")
def get_node_by_path(
    story_id: UUID,
    store: Annotated[StoryStoreBase, Depends(get_story_store)],
    path: str = Query(..., description='Canonical path key, e.g. "A,B"'),
) -> dict:
    """Get the node a choice path leads to, with its subtree.

    Errors:
        E_INVALID_PATH (400): Path key is malformed or empty.
        E_STORY_NOT_FOUND (404): Story does not exist.
        E_NODE_NOT_FOUND (404): No node at this path.
    """
    set_story_context(str(story_id))
    node = stories_service.get_node_by_path(store, str(story_id), path)
    return success_response(TreeNodeOut.model_validate(node).to_json())


@router.get("/stories/{story_id}/paths")
def get_story_paths(
    story_id: UUID,
    store: Annotated[StoryStoreBase, Depends(get_story_store)],
) -> dict:
    """List every root-to-leaf path with how many readers ended on it."""
    set_story_context(str(story_id))
    coverage = stories_service.get_path_coverage(store, str(story_id))
    return success_response([PathCoverageOut.model_validate(item).to_json() for item in coverage])


@router.get("/stories/{story_id}/analytics")
def get_story_analytics(
    story_id: UUID,
    store: Annotated[StoryStoreBase, Depends(get_story_store)],
) -> dict:
    """Path popularity, completion rate and average depth for one story."""
    set_story_context(str(story_id))
    summary = stories_service.get_story_analytics(
        store, str(story_id), top_n=get_settings().analytics_top_paths
    )
    return success_response(PathAnalyticsOut.model_validate(summary).to_json())


# =============================================================================
# Export / Import Endpoints
# =============================================================================


@router.get("/stories/{story_id}/export")
def export_story(
    story_id: UUID,
    store: Annotated[StoryStoreBase, Depends(get_story_store)],
) -> JSONResponse:
    """Download a story as a portable JSON bundle.

    Errors:
        E_STORY_NOT_FOUND (404): Story does not exist.
        E_TREE_STRUCTURE (422): Stored nodes violate a tree invariant.
    """
    set_story_context(str(story_id))
    bundle = bundle_service.export_story(store, str(story_id))
    filename = bundle_service.export_filename(bundle.story.title, str(story_id))
    return JSONResponse(
        content=bundle.to_document(),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/stories/import", status_code=201)
def import_story(
    store: Annotated[StoryStoreBase, Depends(get_story_store)],
    author_id: UUID = Query(..., description="Owner of the imported story"),
    payload: Any = Body(...),
) -> dict:
    """Create a new draft story from a bundle.

    Groups that cannot be paired into branches are skipped and reported in
    "skipped" and "warnings"; they do not fail the import.

    Errors:
        E_INVALID_BUNDLE (400): Payload is not a usable bundle.
        E_STORE_ERROR (500): A write failed; nothing was kept.
    """
    result = bundle_service.import_story(store, str(author_id), payload)
    set_story_context(result.story_id)
    return success_response(ImportResultOut.model_validate(result).to_json())


# =============================================================================
# Duplicate Endpoint
# =============================================================================


@router.post("/stories/{story_id}/duplicate", status_code=201)
def duplicate_story(
    story_id: UUID,
    store: Annotated[StoryStoreBase, Depends(get_story_store)],
    author_id: UUID | None = Query(default=None, description="Owner of the copy"),
) -> dict:
    """Copy a story and all its nodes into a new draft story.

    Tag copy failures are reported in "warnings" and do not undo the copy.

    Errors:
        E_STORY_NOT_FOUND (404): Story does not exist.
        E_TREE_STRUCTURE (422): A node references a missing parent.
        E_STORE_ERROR (500): A write failed; nothing was kept.
    """
    set_story_context(str(story_id))
    result = duplicate_service.duplicate_story(
        store, str(story_id), author_id=str(author_id) if author_id else None
    )
    return success_response(DuplicateResultOut.model_validate(result).to_json())
