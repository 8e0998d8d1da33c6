import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.auth import get_current_user_id
from app.core.ai_config import ALLOWED_MODELS, get_recommended_models
from app.core.response import success_response
from app.db.deps import get_db
from app.schemas.common import Pagination
from app.schemas.flashcards import FlashcardOut
from app.schemas.generations import (
    AcceptRequest,
    AcceptResultOut,
    GenerateRequest,
    GenerationListOut,
    GenerationOut,
    GenerationResultOut,
    ModelListOut,
    ModelOut,
    RateLimitOut,
)
from app.services.ai_service.flashcard_ai_service import (
    FlashcardAIService,
    get_flashcard_ai_service,
)
from app.services.generations.generation_service import GenerationService
from app.services.generations.generation_workflow import GenerationWorkflow
from app.services.rate_limit.rate_limit_service import check_generation_limit
from app.utils.enums import SortOrder


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/generations", tags=["generations"])


@router.post("/generate", status_code=201, response_model=GenerationResultOut)
async def generate_flashcards(
    payload: GenerateRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    ai_service: FlashcardAIService = Depends(get_flashcard_ai_service),
):
    """Generate flashcard suggestions from source text.

    Method/Path: POST /api/v1/generations/generate
    Body: source_text (1000-10000 chars), model, deck_id
    Returns: generation metadata plus suggestions; nothing is saved as flashcards yet
    Errors: 429 with Retry-After when over the hourly limit, 400 invalid_deck,
    502/503 when the AI provider fails
    """
    result = await GenerationWorkflow(db, ai_service).generate(
        user_id, payload.deck_id, payload.model, payload.source_text
    )
    info = await check_generation_limit(db, user_id)
    return success_response(
        GenerationResultOut(**result), status_code=201, headers=info.to_headers()
    )


@router.get("/rate-limit", response_model=RateLimitOut)
async def get_rate_limit(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    info = await check_generation_limit(db, user_id)
    return success_response(RateLimitOut(**info.to_dict()), headers=info.to_headers())


@router.get("/models", response_model=ModelListOut)
async def list_models(recommended: bool = False):
    """Models accepted by POST /generations/generate; `recommended=true` narrows the list."""
    models = get_recommended_models() if recommended else list(ALLOWED_MODELS.values())
    return success_response(
        ModelListOut(data=[ModelOut.model_validate(model) for model in models])
    )


@router.get("", response_model=GenerationListOut)
async def list_generations(
    deck_id: Optional[int] = Query(None, gt=0),
    order: SortOrder = SortOrder.desc,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    generations, total = await GenerationService(db).list_generations(
        user_id, deck_id=deck_id, order=order, page=page, limit=limit
    )
    return success_response(
        GenerationListOut(
            data=[GenerationOut.model_validate(generation) for generation in generations],
            pagination=Pagination.build(page, limit, total),
        )
    )


@router.get("/{generation_id}", response_model=GenerationOut)
async def get_generation(
    generation_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    generation = await GenerationService(db).get_generation(user_id, generation_id)
    return success_response(GenerationOut.model_validate(generation))


@router.post("/{generation_id}/accept", status_code=201, response_model=AcceptResultOut)
async def accept_generation(
    generation_id: int,
    payload: AcceptRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Save chosen suggestions as flashcards (ai-full, or ai-edited when edited)."""
    result = await GenerationService(db).accept_generation(
        user_id, generation_id, [item.model_dump() for item in payload.flashcards]
    )
    return success_response(
        AcceptResultOut(
            accepted_count=result["accepted_count"],
            flashcards=[FlashcardOut.model_validate(card) for card in result["flashcards"]],
        ),
        status_code=201,
    )
