"""
Team Tag API Routes
List, inspect, create, update, delete and duplicate team tags.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from tagask.auth.verify import auth_dependency
from tagask.dependencies import get_tag_service
from tagask.infrastructure.observability.logging import get_logger
from tagask.models.api.question_request import CreateTagRequest, UpdateTagRequest
from tagask.models.api.question_response import (
    TagMemberResponse,
    TagResponse,
    TagUpdateResponse,
)
from tagask.services.graph.gateway import GraphAPIError
from tagask.services.tag_service import TagService

logger = get_logger(__name__)

router = APIRouter(prefix="/api/teamtag", tags=["teamtag"])


def _graph_failure(e: GraphAPIError, operation: str, **context) -> HTTPException:
    """404 from Graph stays 404; every other upstream failure is a 502."""
    logger.error(
        f"Tag {operation} failed",
        error=str(e),
        error_code=e.error_code,
        status_code=e.status_code,
        **context,
    )
    if e.status_code == 404:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tag not found")
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to {operation} tag"
    )


@router.get("/list", response_model=list[TagResponse])
async def list_tags(
    team_id: str = Query(..., min_length=1),
    caller: dict = Depends(auth_dependency),
    tags: TagService = Depends(get_tag_service),
):
    try:
        team_tags = await tags.list_tags(caller["access_token"], team_id)
    except GraphAPIError as e:
        raise _graph_failure(e, "list", team_id=team_id)
    return [TagResponse(**tag.to_dict()) for tag in team_tags]


@router.get("/tag", response_model=TagResponse)
async def get_tag(
    team_id: str = Query(..., min_length=1),
    tag_id: str = Query(..., min_length=1),
    caller: dict = Depends(auth_dependency),
    tags: TagService = Depends(get_tag_service),
):
    try:
        tag = await tags.get_tag(caller["access_token"], team_id, tag_id)
    except GraphAPIError as e:
        raise _graph_failure(e, "get", team_id=team_id, tag_id=tag_id)
    return TagResponse(**tag.to_dict())


@router.get("/{team_id}/tag/{tag_id}/members", response_model=list[TagMemberResponse])
async def list_tag_members(
    team_id: str,
    tag_id: str,
    caller: dict = Depends(auth_dependency),
    tags: TagService = Depends(get_tag_service),
):
    try:
        members = await tags.list_members(caller["access_token"], team_id, tag_id)
    except GraphAPIError as e:
        raise _graph_failure(e, "list members of", team_id=team_id, tag_id=tag_id)
    return [TagMemberResponse(**member.to_dict()) for member in members]


@router.post("/duplicate", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def duplicate_tag(
    team_id: str = Query(..., min_length=1),
    tag_id: str = Query(..., min_length=1),
    caller: dict = Depends(auth_dependency),
    tags: TagService = Depends(get_tag_service),
):
    """Copy a tag and its members as "<name> (1)"."""
    try:
        tag = await tags.duplicate_tag(caller["access_token"], team_id, tag_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except GraphAPIError as e:
        raise _graph_failure(e, "duplicate", team_id=team_id, tag_id=tag_id)
    return TagResponse(**tag.to_dict())


@router.post("/{team_id}", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(
    team_id: str,
    request: CreateTagRequest,
    caller: dict = Depends(auth_dependency),
    tags: TagService = Depends(get_tag_service),
):
    try:
        tag = await tags.create_tag(
            caller["access_token"],
            team_id,
            request.display_name,
            request.description,
            request.member_ids,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except GraphAPIError as e:
        raise _graph_failure(e, "create", team_id=team_id)
    return TagResponse(**tag.to_dict())


@router.patch("/{team_id}/update", response_model=TagUpdateResponse)
async def update_tag(
    team_id: str,
    request: UpdateTagRequest,
    caller: dict = Depends(auth_dependency),
    tags: TagService = Depends(get_tag_service),
):
    try:
        result = await tags.update_tag(
            caller["access_token"],
            team_id,
            request.id,
            request.display_name,
            request.description,
            add_user_ids=request.members_to_add,
            remove_membership_ids=request.members_to_remove,
        )
    except GraphAPIError as e:
        raise _graph_failure(e, "update", team_id=team_id, tag_id=request.id)

    return TagUpdateResponse(
        tag=TagResponse(**result.tag.to_dict()),
        added=result.added,
        removed=result.removed,
        failed_additions=result.failed_additions,
        failed_removals=result.failed_removals,
    )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tag(
    team_id: str = Query(..., min_length=1),
    tag_id: str = Query(..., min_length=1),
    caller: dict = Depends(auth_dependency),
    tags: TagService = Depends(get_tag_service),
):
    try:
        await tags.delete_tag(caller["access_token"], team_id, tag_id)
    except GraphAPIError as e:
        raise _graph_failure(e, "delete", team_id=team_id, tag_id=tag_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
