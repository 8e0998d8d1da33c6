"""
Default deck dependency for FastAPI routes.

Every authenticated user owns exactly one default deck ("Uncategorized").
It is created on the first authenticated request, so deck deletion always
has somewhere to move flashcards.
"""

import uuid

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import get_current_user_id
from app.db.deps import get_db
from app.services.decks.deck_service import DeckService


async def ensure_user_has_default_deck(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> uuid.UUID:
    await DeckService(db).ensure_default_deck(user_id)
    return user_id
