import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.core.ai_config import (
    DEFAULT_MODEL,
    DEFAULT_MODEL_PARAMETERS,
    MAX_BACK_LENGTH,
    MAX_FLASHCARDS,
    MAX_FRONT_LENGTH,
    MIN_FLASHCARDS,
    get_model_config,
)
from app.core.errors import (
    AIServiceError,
    AITimeoutError,
    AIUpstreamError,
    InvalidAIResponseError,
    UnexpectedAIError,
)
from app.services.ai_service.openrouter_client import OpenRouterClient, OpenRouterError
from app.services.ai_service.prompts import (
    FLASHCARD_RESPONSE_SCHEMA,
    FLASHCARD_SYSTEM_PROMPT,
    build_flashcard_prompt,
)

logger = logging.getLogger(__name__)


class FlashcardSuggestion(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    front: str = Field(..., min_length=1, max_length=MAX_FRONT_LENGTH)
    back: str = Field(..., min_length=1, max_length=MAX_BACK_LENGTH)


class FlashcardSuggestions(BaseModel):
    flashcards: List[FlashcardSuggestion] = Field(
        ..., min_length=MIN_FLASHCARDS, max_length=MAX_FLASHCARDS
    )


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.strip("`")
        start = text.find("{")
        end = text.rfind("}")
        if start != -1 and end != -1 and end > start:
            text = text[start : end + 1]
    return text


def validate_ai_suggestions(raw: str) -> List[Dict[str, str]]:
    """
    Parse and validate the model output.

    Raises:
        InvalidAIResponseError: malformed JSON or a schema violation, including
            fewer cards than the minimum. The raw text is attached for diagnostics.
    """
    try:
        data = json.loads(_strip_code_fences(raw))
    except (json.JSONDecodeError, TypeError) as exc:
        raise InvalidAIResponseError(
            f"AI response is not valid JSON: {exc}", raw_response=raw
        ) from exc

    try:
        parsed = FlashcardSuggestions.model_validate(data)
    except ValidationError as exc:
        raise InvalidAIResponseError(
            f"AI response failed schema validation ({exc.error_count()} errors)",
            raw_response=raw,
        ) from exc

    return [card.model_dump() for card in parsed.flashcards]


class FlashcardAIService:
    """Turns source text into validated ``{front, back}`` suggestions."""

    def __init__(
        self,
        client: Optional[OpenRouterClient] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._clock = clock

    def _get_client(self) -> OpenRouterClient:
        if self._client is None:
            try:
                self._client = OpenRouterClient()
            except OpenRouterError as exc:
                logger.error("OpenRouter client is not configured: %s", exc.code)
                raise UnexpectedAIError(exc.message) from exc
        return self._client

    async def generate_flashcards(
        self, source_text: str, model: str = DEFAULT_MODEL
    ) -> List[Dict[str, str]]:
        # Unknown models fail here, before any network traffic
        config = get_model_config(model)
        client = self._get_client()

        started = self._clock()
        try:
            payload = client.build_payload(
                user_message=build_flashcard_prompt(source_text),
                model=config.id,
                system_message=FLASHCARD_SYSTEM_PROMPT,
                parameters=DEFAULT_MODEL_PARAMETERS,
                response_format=FLASHCARD_RESPONSE_SCHEMA,
            )
            content = await asyncio.wait_for(
                client.send_chat_message(payload, timeout=config.timeout),
                timeout=config.timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error("Generation with %s exceeded %ss", config.id, config.timeout)
            raise AITimeoutError(f"Request exceeded {config.timeout}s timeout") from exc
        except OpenRouterError as exc:
            elapsed = self._clock() - started
            if elapsed >= config.timeout:
                logger.error("Generation with %s timed out after %.1fs", config.id, elapsed)
                raise AITimeoutError(f"Request exceeded {config.timeout}s timeout") from exc
            logger.error(
                "OpenRouter call failed: code=%s status=%s", exc.code, exc.status
            )
            raise AIUpstreamError(
                exc.message, upstream_code=exc.code, upstream_status=exc.status
            ) from exc
        except AIServiceError:
            raise
        except Exception as exc:
            logger.exception("Unexpected error during flashcard generation")
            raise UnexpectedAIError(str(exc)) from exc

        suggestions = validate_ai_suggestions(content)
        logger.info(
            "Generated %s suggestions with %s in %.2fs",
            len(suggestions),
            config.id,
            self._clock() - started,
        )
        return suggestions


def get_flashcard_ai_service() -> FlashcardAIService:
    return FlashcardAIService()
