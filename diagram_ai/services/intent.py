"""Conversation intent detection."""
from __future__ import annotations

import json
import logging
import re
from typing import Optional

from diagram_ai.models import Confidence, DiagramType, IntentClassification, IntentDiagramType
from diagram_ai.prompts import INTENT_ANALYSIS_PROMPT
from diagram_ai.providers.base import ChatCompletionRequest, ChatMessage, ModelProvider
from diagram_ai.providers.cancellation import CancellationToken
from diagram_ai.providers.openai_provider import OpenAIProvider
from diagram_ai.utils.config import settings

logger = logging.getLogger(__name__)

ANALYSIS_FAILED_REASONING = "Analysis failed, using defaults"

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```", re.IGNORECASE)
_BARE_JSON_RE = re.compile(r"\{[\s\S]*\}")


def default_classification() -> IntentClassification:
    return IntentClassification(
        is_question=False,
        diagram_type=IntentDiagramType.WORKFLOW,
        confidence=Confidence.LOW,
        reasoning=ANALYSIS_FAILED_REASONING,
    )


def _load_json_object(raw: str) -> Optional[dict]:
    match = _FENCED_JSON_RE.search(raw) or _BARE_JSON_RE.search(raw)
    if not match:
        return None
    candidate = match.group(1) if match.re is _FENCED_JSON_RE else match.group(0)
    try:
        data = json.loads(candidate)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def parse_intent_reply(raw: str) -> IntentClassification:
    """Map the classifier's reply onto ``IntentClassification``; never raises."""
    data = _load_json_object(raw or "")
    if data is None:
        logger.warning("Intent reply was not JSON; using defaults", extra={"reply": (raw or "")[:200]})
        return default_classification()

    is_question = data.get("isQuestion")
    if not isinstance(is_question, bool):
        is_question = False

    diagram_type: Optional[IntentDiagramType]
    try:
        diagram_type = IntentDiagramType(str(data.get("diagramType")).strip().lower())
    except ValueError:
        diagram_type = None if is_question else IntentDiagramType.WORKFLOW

    try:
        confidence = Confidence(str(data.get("confidence")).strip().lower())
    except ValueError:
        confidence = Confidence.LOW

    reasoning = data.get("reasoning")
    return IntentClassification(
        is_question=is_question,
        diagram_type=diagram_type,
        confidence=confidence,
        reasoning=reasoning if isinstance(reasoning, str) else None,
    )


def _context_message(context: Optional[str], current_diagram: Optional[str], current_type: Optional[DiagramType]) -> Optional[str]:
    parts = []
    if context:
        parts.append(f"Recent conversation:\n{context}")
    if current_diagram:
        label = current_type.value if current_type else "unknown"
        parts.append(f"Current diagram being edited (type: {label}):\n```mermaid\n{current_diagram}\n```")
    return "\n\n".join(parts) or None


def classify_intent(
    message: str,
    provider: Optional[ModelProvider] = None,
    context: Optional[str] = None,
    current_diagram: Optional[str] = None,
    current_type: Optional[DiagramType] = None,
    cancellation_token: Optional[CancellationToken] = None,
) -> IntentClassification:
    """Label ``message`` as a question or a diagram request.

    Provider failures and cancellation propagate unchanged; only a malformed
    reply falls back to the default classification.
    """
    provider = provider or OpenAIProvider()
    messages = [ChatMessage(role="system", content=INTENT_ANALYSIS_PROMPT)]
    extra_context = _context_message(context, current_diagram, current_type)
    if extra_context:
        messages.append(ChatMessage(role="system", content=extra_context))
    messages.append(ChatMessage(role="user", content=message))

    response = provider.chat_completion(
        ChatCompletionRequest(
            model=settings.openai_model,
            messages=messages,
            temperature=settings.intent_temperature,
            max_tokens=settings.intent_max_tokens,
            cancellation_token=cancellation_token,
        )
    )
    classification = parse_intent_reply(response.content)
    logger.info(
        "Intent classified",
        extra={
            "is_question": classification.is_question,
            "diagram_type": classification.diagram_type.value if classification.diagram_type else None,
            "confidence": classification.confidence.value,
        },
    )
    return classification
