"""Pydantic schemas for API."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from diagram_ai.models import Confidence, DiagramType, IntentDiagramType


class InterpretRequest(BaseModel):
    content: str


class PayloadExampleResponse(BaseModel):
    status: str
    content_type: str
    json_example: str = Field(default="", alias="json")

    model_config = {"populate_by_name": True}


class MetadataResponse(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    diagram_type: Optional[DiagramType] = None
    http_method: Optional[str] = None
    endpoint_path: Optional[str] = None
    request_payloads: List[PayloadExampleResponse] = Field(default_factory=list)
    response_payloads: List[PayloadExampleResponse] = Field(default_factory=list)
    workflow_actors: Optional[str] = None
    workflow_trigger: Optional[str] = None


class InterpretResponse(BaseModel):
    metadata: MetadataResponse
    code: str
    explanation: str
    has_diagram: bool


class CodeRequest(BaseModel):
    code: str


class SanitizeResponse(BaseModel):
    code: str


class ValidationResponse(BaseModel):
    is_valid: bool
    error: Optional[str] = None


class IntentRequest(BaseModel):
    message: str = Field(min_length=1)
    context: Optional[str] = None
    current_diagram: Optional[str] = None
    current_type: Optional[DiagramType] = None


class IntentResponse(BaseModel):
    is_question: bool
    diagram_type: Optional[IntentDiagramType] = None
    resolved_type: Optional[DiagramType] = None
    confidence: Confidence
    reasoning: Optional[str] = None
