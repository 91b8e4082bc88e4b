"""HTTP surface for the interpretation pipeline and intent routing."""
from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import FastAPI, HTTPException

from diagram_ai.extraction.metadata import interpret_response
from diagram_ai.providers.base import ProviderConnectionError, ProviderError
from diagram_ai.providers.cancellation import RequestCancelled
from diagram_ai.renderers.mermaid_engine import MermaidEngineUnavailable
from diagram_ai.schemas import (
    CodeRequest,
    IntentRequest,
    IntentResponse,
    InterpretRequest,
    InterpretResponse,
    MetadataResponse,
    SanitizeResponse,
    ValidationResponse,
)
from diagram_ai.services.diagram_service import resolve_diagram_type
from diagram_ai.services.intent import classify_intent
from diagram_ai.tools.sanitizer import sanitize_mermaid
from diagram_ai.tools.syntax_validator import validate_mermaid_syntax
from diagram_ai.utils.config import settings

logger = logging.getLogger(__name__)

app = FastAPI(title="diagram-ai")


@app.get("/health")
async def health():
    return {"status": "ok", "model": settings.openai_model}


@app.post("/api/interpret", response_model=InterpretResponse)
def interpret_endpoint(payload: InterpretRequest):
    interpreted = interpret_response(payload.content)
    return InterpretResponse(
        metadata=MetadataResponse.model_validate(asdict(interpreted.metadata)),
        code=interpreted.code,
        explanation=interpreted.explanation,
        has_diagram=interpreted.has_diagram,
    )


@app.post("/api/sanitize", response_model=SanitizeResponse)
def sanitize_endpoint(payload: CodeRequest):
    return SanitizeResponse(code=sanitize_mermaid(payload.code))


@app.post("/api/validate", response_model=ValidationResponse)
def validate_endpoint(payload: CodeRequest):
    try:
        result = validate_mermaid_syntax(payload.code)
    except MermaidEngineUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return ValidationResponse(is_valid=result.is_valid, error=result.error)


@app.post("/api/intent", response_model=IntentResponse)
def intent_endpoint(payload: IntentRequest):
    try:
        classification = classify_intent(
            payload.message,
            context=payload.context,
            current_diagram=payload.current_diagram,
            current_type=payload.current_type,
        )
    except RequestCancelled as exc:
        raise HTTPException(status_code=499, detail=str(exc)) from exc
    except ProviderConnectionError as exc:
        logger.warning("Intent provider unreachable", extra={"error": str(exc)})
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ProviderError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return IntentResponse(
        is_question=classification.is_question,
        diagram_type=classification.diagram_type,
        resolved_type=resolve_diagram_type(classification, payload.current_type),
        confidence=classification.confidence,
        reasoning=classification.reasoning,
    )
