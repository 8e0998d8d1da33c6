"""OpenRouter chat-completions client with retry/backoff."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from app.core.ai_config import RETRY_BASE_DELAY, RETRY_MAX_DELAY
from app.core.config import settings
from app.utils.retry import RetriesExhausted, backoff_delay, retry_async

logger = logging.getLogger(__name__)

# Permanent misconfiguration: retrying cannot help
NON_RETRYABLE_STATUSES = frozenset({400, 401})


class OpenRouterError(Exception):
    """Failure talking to OpenRouter. ``status`` is the HTTP status when there was one."""

    def __init__(self, message: str, code: str, status: Optional[int] = None):
        self.message = message
        self.code = code
        self.status = status
        super().__init__(message)


class ChatMessage(BaseModel):
    role: Literal["system", "user"]
    content: str = Field(..., min_length=1)


class ChatCompletionRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    temperature: Optional[float] = Field(None, ge=0, le=2)
    top_p: Optional[float] = Field(None, ge=0, le=1)
    frequency_penalty: Optional[float] = Field(None, ge=-2, le=2)
    presence_penalty: Optional[float] = Field(None, ge=-2, le=2)
    response_format: Optional[Dict[str, Any]] = None


class _ChoiceMessage(BaseModel):
    content: str
    role: str


class _Choice(BaseModel):
    message: _ChoiceMessage


class ChatCompletionResponse(BaseModel):
    choices: List[_Choice]


def upstream_code_for_status(status: int) -> str:
    if status == 400:
        return "invalid_request_error"
    if status == 401:
        return "authentication_error"
    if status == 402:
        return "insufficient_credits"
    if status == 429:
        return "rate_limit_error"
    if status >= 500:
        return "api_error"
    return "API_ERROR"


def is_retryable_openrouter_error(exc: BaseException) -> bool:
    """Everything is retried except provider 400/401 responses."""
    if isinstance(exc, OpenRouterError) and exc.status in NON_RETRYABLE_STATUSES:
        return False
    return True


def _extract_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP error {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    return f"HTTP error {response.status_code}"


class OpenRouterClient:
    """Thin async wrapper for POST {api_url}/chat/completions."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        api_key = api_key or settings.OPENROUTER_API_KEY
        if not api_key:
            raise OpenRouterError("OpenRouter API key is required", "MISSING_API_KEY")
        self._api_key = api_key
        self.api_url = (api_url or settings.OPENROUTER_API_URL).rstrip("/")
        self.timeout = timeout or settings.OPENROUTER_TIMEOUT_SECONDS
        self.max_retries = max_retries or settings.OPENROUTER_MAX_RETRIES
        self._transport = transport
        self._sleep = sleep

    @staticmethod
    def build_payload(
        *,
        user_message: str,
        model: str,
        system_message: Optional[str] = None,
        parameters: Optional[Dict[str, float]] = None,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Assemble the request body: optional system message first, then the user message."""
        if not user_message or not user_message.strip():
            raise OpenRouterError("User message cannot be empty", "INVALID_USER_MESSAGE")
        if not model or not model.strip():
            raise OpenRouterError("Model name cannot be empty", "INVALID_MODEL_NAME")

        messages: List[Dict[str, str]] = []
        if system_message:
            messages.append({"role": "system", "content": system_message})
        messages.append({"role": "user", "content": user_message})

        payload: Dict[str, Any] = {"messages": messages, "model": model, **(parameters or {})}
        if response_format:
            payload["response_format"] = {"type": "json_schema", "json_schema": response_format}
        return payload

    async def send_chat_message(
        self, payload: Dict[str, Any], *, timeout: Optional[float] = None
    ) -> str:
        """
        Send a chat completion request and return the first choice's content.

        Raises:
            OpenRouterError: on invalid payload, provider error, exhausted retries
                or a malformed provider envelope.
        """
        try:
            ChatCompletionRequest.model_validate(payload)
        except ValidationError as exc:
            first = exc.errors()[0]
            raise OpenRouterError(
                f"Validation error: {first.get('msg', 'invalid payload')}", "VALIDATION_ERROR"
            ) from exc

        request_timeout = timeout or self.timeout
        try:
            data = await retry_async(
                partial(self._post, payload, request_timeout),
                should_retry=is_retryable_openrouter_error,
                max_attempts=self.max_retries,
                delay_fn=partial(backoff_delay, base=RETRY_BASE_DELAY, cap=RETRY_MAX_DELAY),
                sleep=self._sleep,
            )
        except RetriesExhausted as exc:
            last = exc.last_error
            logger.error(
                "OpenRouter request failed after %s attempts (last status=%s)",
                exc.attempts,
                getattr(last, "status", None),
            )
            raise OpenRouterError(
                "Maximum retry attempts exceeded",
                "MAX_RETRIES_EXCEEDED",
                getattr(last, "status", None),
            ) from last
        except OpenRouterError as exc:
            logger.error("OpenRouter rejected request: status=%s code=%s", exc.status, exc.code)
            raise

        try:
            completion = ChatCompletionResponse.model_validate(data)
        except ValidationError as exc:
            raise OpenRouterError(
                "Unexpected response shape from OpenRouter", "INVALID_RESPONSE_SHAPE"
            ) from exc

        if not completion.choices:
            raise OpenRouterError("No response received from the model", "EMPTY_RESPONSE")
        return completion.choices[0].message.content

    async def _post(self, payload: Dict[str, Any], timeout: float) -> Any:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.api_url}/chat/completions"
        logger.info(
            "Calling OpenRouter model=%s messages=%s",
            payload.get("model"),
            len(payload.get("messages", [])),
        )
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise OpenRouterError("Request to OpenRouter timed out", "REQUEST_TIMEOUT") from exc
        except httpx.HTTPError as exc:
            raise OpenRouterError(f"Network error: {type(exc).__name__}", "NETWORK_ERROR") from exc

        if response.status_code >= 400:
            raise OpenRouterError(
                _extract_error_message(response),
                upstream_code_for_status(response.status_code),
                response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise OpenRouterError(
                "OpenRouter returned a non-JSON body", "INVALID_RESPONSE_BODY", response.status_code
            ) from exc
