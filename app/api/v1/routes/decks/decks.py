import logging
import uuid
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import get_current_user_id
from app.core.response import success_response
from app.db.deps import get_db
from app.schemas.common import Pagination
from app.schemas.decks import DeckCreate, DeckDeletionOut, DeckListOut, DeckOut, DeckUpdate
from app.services.decks.deck_service import DeckService
from app.utils.enums import SortOrder


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/decks", tags=["decks"])


@router.get("", response_model=DeckListOut)
async def list_decks(
    search: Optional[str] = Query(None, max_length=100),
    sort: Literal["created_at", "updated_at", "name"] = "created_at",
    order: SortOrder = SortOrder.desc,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's decks with flashcard counts.

    Method/Path: GET /api/v1/decks
    """
    rows, total = await DeckService(db).list_decks(
        user_id, search=search, sort=sort, order=order, page=page, limit=limit
    )
    return success_response(
        DeckListOut(
            data=[DeckOut.from_deck(deck, count) for deck, count in rows],
            pagination=Pagination.build(page, limit, total),
        )
    )


@router.post("", status_code=201, response_model=DeckOut)
async def create_deck(
    payload: DeckCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    deck = await DeckService(db).create_deck(user_id, payload.name, payload.description)
    logger.info("User %s created deck %s", user_id, deck.id)
    return success_response(DeckOut.from_deck(deck), status_code=201)


@router.get("/default", response_model=DeckOut)
async def get_default_deck(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    service = DeckService(db)
    deck = await service.ensure_default_deck(user_id)
    return success_response(DeckOut.from_deck(deck, await service.count_flashcards(deck.id)))


@router.get("/{deck_id}", response_model=DeckOut)
async def get_deck(
    deck_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    service = DeckService(db)
    deck = await service.get_deck(user_id, deck_id)
    return success_response(DeckOut.from_deck(deck, await service.count_flashcards(deck.id)))


@router.patch("/{deck_id}", response_model=DeckOut)
async def update_deck(
    deck_id: int,
    payload: DeckUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    service = DeckService(db)
    deck = await service.update_deck(user_id, deck_id, payload.model_dump(exclude_unset=True))
    return success_response(DeckOut.from_deck(deck, await service.count_flashcards(deck.id)))


@router.delete("/{deck_id}", response_model=DeckDeletionOut)
async def delete_deck(
    deck_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete a deck, moving its flashcards to the default deck.

    Method/Path: DELETE /api/v1/decks/{deck_id}
    Returns: message, migrated_flashcards_count, migration_tag {id, name}
    Errors: 400 for the default deck, 404 when missing
    """
    result = await DeckService(db).delete_deck(user_id, deck_id)
    return success_response(DeckDeletionOut(**result))
