import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import get_current_user_id
from app.core.response import no_content_response, success_response
from app.db.deps import get_db
from app.schemas.tags import TagCreate, TagListOut, TagOut, TagUpdate
from app.services.tags.tag_service import TagService
from app.utils.enums import TagScope


router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("", response_model=TagListOut)
async def list_tags(
    scope: Optional[TagScope] = None,
    deck_id: Optional[int] = Query(None, gt=0),
    search: Optional[str] = Query(None, max_length=50),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Global tags plus the caller's deck tags, with usage counts, sorted by name."""
    rows = await TagService(db).list_tags(user_id, scope=scope, deck_id=deck_id, search=search)
    return success_response(TagListOut(data=[TagOut.from_tag(tag, count) for tag, count in rows]))


@router.post("", status_code=201, response_model=TagOut)
async def create_tag(
    payload: TagCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    tag = await TagService(db).create_tag(user_id, payload.name, payload.deck_id)
    return success_response(TagOut.from_tag(tag), status_code=201)


@router.patch("/{tag_id}", response_model=TagOut)
async def update_tag(
    tag_id: int,
    payload: TagUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    tag = await TagService(db).update_tag(user_id, tag_id, payload.name)
    return success_response(TagOut.from_tag(tag))


@router.delete("/{tag_id}", status_code=204)
async def delete_tag(
    tag_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await TagService(db).delete_tag(user_id, tag_id)
    return no_content_response()
