from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.ai_config import (
    DEFAULT_MODEL,
    MAX_FLASHCARDS,
    SOURCE_TEXT_MAX_LENGTH,
    SOURCE_TEXT_MIN_LENGTH,
)
from app.schemas.common import IdStr, Pagination, UtcDatetime
from app.schemas.flashcards import BackText, FlashcardOut, FrontText


class GenerateRequest(BaseModel):
    source_text: str
    model: str = Field(DEFAULT_MODEL, min_length=1)
    deck_id: int = Field(..., gt=0)

    @field_validator("source_text")
    @classmethod
    def _check_length(cls, value: str) -> str:
        trimmed = value.strip()
        if not SOURCE_TEXT_MIN_LENGTH <= len(trimmed) <= SOURCE_TEXT_MAX_LENGTH:
            raise ValueError(
                f"Source text must be between {SOURCE_TEXT_MIN_LENGTH} and "
                f"{SOURCE_TEXT_MAX_LENGTH} characters"
            )
        return trimmed


class Suggestion(BaseModel):
    front: str
    back: str


class GenerationResultOut(BaseModel):
    generation_id: IdStr
    model: str
    generated_count: int
    source_text_length: int
    generation_duration_ms: int
    suggestions: List[Suggestion]
    created_at: UtcDatetime


class AcceptedFlashcard(BaseModel):
    front: FrontText
    back: BackText
    edited: bool = False


class AcceptRequest(BaseModel):
    flashcards: List[AcceptedFlashcard] = Field(..., min_length=1, max_length=MAX_FLASHCARDS)


class AcceptResultOut(BaseModel):
    accepted_count: int
    flashcards: List[FlashcardOut]


class GenerationOut(BaseModel):
    id: IdStr
    deck_id: IdStr
    model: str
    generated_count: int
    accepted_unedited_count: int
    accepted_edited_count: int
    source_text_length: int
    generation_duration: int
    created_at: UtcDatetime
    updated_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)


class GenerationListOut(BaseModel):
    data: List[GenerationOut]
    pagination: Pagination


class RateLimitOut(BaseModel):
    limit: int
    remaining: int
    current_count: int
    reset_at: UtcDatetime


class ModelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    provider: str
    cost_per_1m_tokens: float
    recommended: bool


class ModelListOut(BaseModel):
    data: List[ModelOut]
    default_model: str = DEFAULT_MODEL
