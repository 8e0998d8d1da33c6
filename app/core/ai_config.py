# app/core/ai_config.py
"""Model allow-list and generation constraints for OpenRouter."""

from dataclasses import dataclass
from typing import Dict, List

from app.core.errors import UnsupportedModelError


@dataclass(frozen=True)
class ModelConfig:
    id: str
    name: str
    provider: str
    # Estimated USD per 1M tokens
    cost_per_1m_tokens: float
    # Seconds
    timeout: float
    recommended: bool


# Only these models can be used for flashcard generation
ALLOWED_MODELS: Dict[str, ModelConfig] = {
    "openai/gpt-4o-mini": ModelConfig(
        id="openai/gpt-4o-mini",
        name="GPT-4o Mini",
        provider="OpenAI",
        cost_per_1m_tokens=0.15,
        timeout=60.0,
        recommended=True,
    ),
    "anthropic/claude-3-haiku": ModelConfig(
        id="anthropic/claude-3-haiku",
        name="Claude 3 Haiku",
        provider="Anthropic",
        cost_per_1m_tokens=0.25,
        timeout=60.0,
        recommended=True,
    ),
    "google/gemini-flash-1.5": ModelConfig(
        id="google/gemini-flash-1.5",
        name="Gemini Flash 1.5",
        provider="Google",
        cost_per_1m_tokens=0.075,
        timeout=60.0,
        recommended=True,
    ),
    "anthropic/claude-3-5-sonnet": ModelConfig(
        id="anthropic/claude-3-5-sonnet",
        name="Claude 3.5 Sonnet",
        provider="Anthropic",
        cost_per_1m_tokens=3.0,
        timeout=90.0,
        recommended=False,
    ),
}

DEFAULT_MODEL = "openai/gpt-4o-mini"

# Sampling parameters sent with every generation request
DEFAULT_MODEL_PARAMETERS: Dict[str, float] = {
    "temperature": 0.7,
    "top_p": 1.0,
    "frequency_penalty": 0.0,
    "presence_penalty": 0.0,
}

SOURCE_TEXT_MIN_LENGTH = 1000
SOURCE_TEXT_MAX_LENGTH = 10000

MIN_FLASHCARDS = 3
MAX_FLASHCARDS = 20
MAX_FRONT_LENGTH = 200
MAX_BACK_LENGTH = 500

# Retry backoff (seconds)
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 8.0


def get_allowed_model_ids() -> List[str]:
    return list(ALLOWED_MODELS)


def is_valid_model(model_id: str) -> bool:
    return model_id in ALLOWED_MODELS


def get_model_config(model_id: str) -> ModelConfig:
    """Return the allow-listed config or raise UnsupportedModelError."""
    if not is_valid_model(model_id):
        raise UnsupportedModelError(model_id, get_allowed_model_ids())
    return ALLOWED_MODELS[model_id]


def get_recommended_models() -> List[ModelConfig]:
    return [model for model in ALLOWED_MODELS.values() if model.recommended]
