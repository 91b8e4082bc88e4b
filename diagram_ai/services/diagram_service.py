"""Generate, modify and explain diagrams through a model provider."""
from __future__ import annotations

import logging
import math
import time
from typing import Callable, List, Optional

from diagram_ai import prompts
from diagram_ai.extraction.metadata import interpret_response
from diagram_ai.models import (
    DiagramGenerationRequest,
    DiagramGenerationResult,
    DiagramModificationRequest,
    DiagramModificationResult,
    DiagramType,
    IntentClassification,
    IntentDiagramType,
    ValidationResult,
)
from diagram_ai.providers.base import ChatCompletionRequest, ChatCompletionResponse, ChatMessage, ModelProvider
from diagram_ai.providers.cancellation import CancellationToken
from diagram_ai.providers.openai_provider import OpenAIProvider
from diagram_ai.services.intent import classify_intent
from diagram_ai.tools.syntax_validator import validate_mermaid_syntax
from diagram_ai.utils.config import settings

logger = logging.getLogger(__name__)

MAX_PROMPT_CHARS = 2000
CHARS_PER_TOKEN = 4


def sanitize_prompt(prompt: str) -> str:
    """Trim, cap and strip angle brackets from user input before sending it."""
    return prompt.strip()[:MAX_PROMPT_CHARS].replace("<", "").replace(">", "")


def estimate_token_count(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def resolve_diagram_type(
    classification: IntentClassification,
    current_type: Optional[DiagramType] = None,
) -> Optional[DiagramType]:
    """Turn the classifier's answer into a concrete diagram type.

    ``context`` keeps the type of the diagram being edited; with nothing open
    it falls back to a workflow.
    """
    if classification.diagram_type is None:
        return None
    if classification.diagram_type is IntentDiagramType.CONTEXT:
        return current_type or DiagramType.WORKFLOW
    return DiagramType(classification.diagram_type.value)


class DiagramAssistant:
    """Round-trips to the model for diagram generation and editing."""

    def __init__(
        self,
        provider: Optional[ModelProvider] = None,
        validator: Callable[[str], ValidationResult] = validate_mermaid_syntax,
    ):
        self.provider = provider or OpenAIProvider()
        self.validator = validator

    def _complete(
        self,
        messages: List[ChatMessage],
        token: Optional[CancellationToken],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ChatCompletionResponse:
        return self.provider.chat_completion(
            ChatCompletionRequest(
                model=settings.openai_model,
                messages=messages,
                temperature=settings.temperature if temperature is None else temperature,
                max_tokens=settings.max_tokens if max_tokens is None else max_tokens,
                cancellation_token=token,
            )
        )

    def generate_diagram(
        self,
        request: DiagramGenerationRequest,
        token: Optional[CancellationToken] = None,
    ) -> DiagramGenerationResult:
        messages = [ChatMessage(role="system", content=prompts.generation_prompt(request.type))]
        if request.context:
            messages.append(ChatMessage(role="system", content=f"Additional context: {request.context}"))
        messages.append(ChatMessage(role="user", content=sanitize_prompt(request.prompt)))

        started = time.perf_counter()
        response = self._complete(messages, token)
        latency_ms = int((time.perf_counter() - started) * 1000)

        interpreted = interpret_response(response.content)
        metadata = interpreted.metadata
        final_type = metadata.diagram_type or request.type
        if metadata.diagram_type and metadata.diagram_type is not request.type:
            logger.warning(
                "Model answered with a different diagram type",
                extra={"requested": request.type.value, "extracted": metadata.diagram_type.value},
            )

        result = DiagramGenerationResult(
            code=interpreted.code,
            explanation=interpreted.explanation,
            type=final_type,
            title=metadata.title,
            description=metadata.description,
            validation=self.validator(interpreted.code) if interpreted.code else None,
            provider=self.provider.name,
            model=response.model,
            tokens_used=response.usage.total_tokens if response.usage else estimate_token_count(response.content),
            latency_ms=latency_ms,
        )
        if final_type is DiagramType.ENDPOINT:
            result.http_method = metadata.http_method
            result.endpoint_path = metadata.endpoint_path
            result.request_payloads = metadata.request_payloads
            result.response_payloads = metadata.response_payloads
        elif final_type is DiagramType.WORKFLOW:
            result.workflow_actors = metadata.workflow_actors
            result.workflow_trigger = metadata.workflow_trigger

        logger.info(
            "Diagram generated",
            extra={
                "diagram_type": final_type.value,
                "has_code": bool(result.code),
                "tokens_used": result.tokens_used,
                "latency_ms": latency_ms,
            },
        )
        return result

    def modify_diagram(
        self,
        request: DiagramModificationRequest,
        token: Optional[CancellationToken] = None,
    ) -> DiagramModificationResult:
        user_prompt = (
            f"Current diagram:\n```mermaid\n{request.code}\n```\n\n"
            f"Instruction: {sanitize_prompt(request.instruction)}"
        )
        response = self._complete(
            [
                ChatMessage(role="system", content=prompts.MODIFY_BASE),
                ChatMessage(role="user", content=user_prompt),
            ],
            token,
        )
        interpreted = interpret_response(response.content)
        modified = interpreted.code or request.code
        return DiagramModificationResult(
            original_code=request.code,
            modified_code=modified,
            explanation=interpreted.explanation,
            validation=self.validator(interpreted.code) if interpreted.code else None,
        )

    def explain_diagram(self, code: str, token: Optional[CancellationToken] = None) -> str:
        response = self._complete(
            [
                ChatMessage(role="system", content=prompts.EXPLAIN_BASE),
                ChatMessage(role="user", content=f"```mermaid\n{code}\n```"),
            ],
            token,
            temperature=settings.explain_temperature,
            max_tokens=settings.explain_max_tokens,
        )
        return response.content.strip()

    def analyze_intent(
        self,
        message: str,
        context: Optional[str] = None,
        current_diagram: Optional[str] = None,
        current_type: Optional[DiagramType] = None,
        token: Optional[CancellationToken] = None,
    ) -> IntentClassification:
        return classify_intent(
            message,
            provider=self.provider,
            context=context,
            current_diagram=current_diagram,
            current_type=current_type,
            cancellation_token=token,
        )
