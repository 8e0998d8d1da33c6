import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import get_current_user_id
from app.core.response import no_content_response, success_response
from app.db.deps import get_db
from app.schemas.common import Pagination
from app.schemas.flashcards import (
    FlashcardCreate,
    FlashcardListOut,
    FlashcardOut,
    FlashcardTagsAdd,
    FlashcardUpdate,
)
from app.services.flashcards.flashcard_service import FlashcardService
from app.utils.enums import FlashcardSource, SortOrder


router = APIRouter(prefix="/flashcards", tags=["flashcards"])


@router.get("", response_model=FlashcardListOut)
async def list_flashcards(
    deck_id: Optional[int] = Query(None, gt=0),
    source: Optional[FlashcardSource] = None,
    tag_id: Optional[int] = Query(None, gt=0),
    search: Optional[str] = Query(None, max_length=200),
    sort: Literal["created_at", "updated_at"] = "created_at",
    order: SortOrder = SortOrder.desc,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    flashcards, total = await FlashcardService(db).list_flashcards(
        user_id,
        deck_id=deck_id,
        source=source,
        tag_id=tag_id,
        search=search,
        sort=sort,
        order=order,
        page=page,
        limit=limit,
    )
    return success_response(
        FlashcardListOut(
            data=[FlashcardOut.model_validate(card) for card in flashcards],
            pagination=Pagination.build(page, limit, total),
        )
    )


@router.post("", status_code=201, response_model=FlashcardOut)
async def create_flashcard(
    payload: FlashcardCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    flashcard = await FlashcardService(db).create_flashcard(
        user_id, payload.deck_id, payload.front, payload.back, payload.tag_ids
    )
    return success_response(FlashcardOut.model_validate(flashcard), status_code=201)


@router.get("/{flashcard_id}", response_model=FlashcardOut)
async def get_flashcard(
    flashcard_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    flashcard = await FlashcardService(db).get_flashcard(user_id, flashcard_id)
    return success_response(FlashcardOut.model_validate(flashcard))


@router.patch("/{flashcard_id}", response_model=FlashcardOut)
async def update_flashcard(
    flashcard_id: int,
    payload: FlashcardUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Edit a flashcard. Editing the text of an ai-full card makes it ai-edited."""
    flashcard = await FlashcardService(db).update_flashcard(
        user_id, flashcard_id, payload.model_dump(exclude_none=True)
    )
    return success_response(FlashcardOut.model_validate(flashcard))


@router.delete("/{flashcard_id}", status_code=204)
async def delete_flashcard(
    flashcard_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await FlashcardService(db).delete_flashcard(user_id, flashcard_id)
    return no_content_response()


@router.post("/{flashcard_id}/tags", response_model=FlashcardOut)
async def add_flashcard_tags(
    flashcard_id: int,
    payload: FlashcardTagsAdd,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    flashcard = await FlashcardService(db).add_tags(user_id, flashcard_id, payload.tag_ids)
    return success_response(FlashcardOut.model_validate(flashcard))


@router.delete("/{flashcard_id}/tags/{tag_id}", status_code=204)
async def remove_flashcard_tag(
    flashcard_id: int,
    tag_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await FlashcardService(db).remove_tag(user_id, flashcard_id, tag_id)
    return no_content_response()
