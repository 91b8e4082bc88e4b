"""OpenAI-compatible chat completion provider."""
from __future__ import annotations

import logging
from typing import Optional

import openai

from diagram_ai.providers.base import (
    ChatChoice,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    ModelProvider,
    ProviderConnectionError,
    ProviderError,
    Usage,
)
from diagram_ai.providers.cancellation import CancellationToken
from diagram_ai.utils.config import settings
from diagram_ai.utils.openai_client import build_httpx_client, create_openai_client

logger = logging.getLogger(__name__)


def _to_response(completion) -> ChatCompletionResponse:
    choices = [
        ChatChoice(
            index=choice.index,
            message=ChatMessage(role=choice.message.role, content=choice.message.content or ""),
            finish_reason=choice.finish_reason,
        )
        for choice in completion.choices
    ]
    usage: Optional[Usage] = None
    if completion.usage is not None:
        usage = Usage(
            prompt_tokens=completion.usage.prompt_tokens,
            completion_tokens=completion.usage.completion_tokens,
            total_tokens=completion.usage.total_tokens,
        )
    return ChatCompletionResponse(id=completion.id, model=completion.model, choices=choices, usage=usage)


class OpenAIProvider(ModelProvider):
    """Chat completions over a per-request httpx client.

    Each request owns its transport so cancelling the request's token can
    close the connection and abort the call mid-flight.
    """

    name = "openai"

    def chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        token = request.cancellation_token or CancellationToken()
        token.raise_if_cancelled()
        if not settings.openai_api_key:
            raise ProviderError("OPENAI_API_KEY is not set", code="missing_api_key")

        params = {
            "model": request.model,
            "messages": [{"role": m.role, "content": m.content} for m in request.messages],
        }
        if request.temperature is not None:
            params["temperature"] = request.temperature
        if request.max_tokens is not None:
            params["max_tokens"] = request.max_tokens

        http_client = build_httpx_client()
        try:
            with token.on_cancel(http_client.close):
                client = create_openai_client(http_client)
                completion = client.chat.completions.create(**params)
        except openai.APIConnectionError as exc:
            token.raise_if_cancelled()
            logger.warning("Model provider unreachable", extra={"model": request.model, "error": str(exc)})
            raise ProviderConnectionError(str(exc)) from exc
        except openai.APIStatusError as exc:
            token.raise_if_cancelled()
            body = exc.body if isinstance(exc.body, dict) else {}
            code = body.get("code") or str(exc.status_code)
            raise ProviderError(exc.message, code=code, recoverable=exc.status_code >= 500) from exc
        finally:
            http_client.close()

        token.raise_if_cancelled()
        return _to_response(completion)
