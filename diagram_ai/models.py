"""Value types shared by the interpretation pipeline and the assistant."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class DiagramType(str, Enum):
    WORKFLOW = "workflow"
    ENDPOINT = "endpoint"
    ARCHITECTURE = "architecture"
    SEQUENCE = "sequence"
    STATE = "state"
    OTHER = "other"


class IntentDiagramType(str, Enum):
    """Diagram types the intent classifier may answer with.

    ``CONTEXT`` means "keep the type of the diagram currently open"; callers
    resolve it before generating anything.
    """

    WORKFLOW = "workflow"
    ENDPOINT = "endpoint"
    SEQUENCE = "sequence"
    ARCHITECTURE = "architecture"
    STATE = "state"
    OTHER = "other"
    CONTEXT = "context"


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class PayloadExample:
    status: str
    content_type: str
    json: str = ""


@dataclass
class ExtractedMetadata:
    title: Optional[str] = None
    description: Optional[str] = None
    diagram_type: Optional[DiagramType] = None
    http_method: Optional[str] = None
    endpoint_path: Optional[str] = None
    request_payloads: List[PayloadExample] = field(default_factory=list)
    response_payloads: List[PayloadExample] = field(default_factory=list)
    workflow_actors: Optional[str] = None
    workflow_trigger: Optional[str] = None


@dataclass
class InterpretedResponse:
    metadata: ExtractedMetadata
    code: str
    explanation: str

    @property
    def has_diagram(self) -> bool:
        return bool(self.code)


@dataclass
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None


@dataclass
class IntentClassification:
    is_question: bool = False
    diagram_type: Optional[IntentDiagramType] = IntentDiagramType.WORKFLOW
    confidence: Confidence = Confidence.LOW
    reasoning: Optional[str] = None


@dataclass
class DiagramGenerationRequest:
    prompt: str
    type: DiagramType = DiagramType.WORKFLOW
    context: Optional[str] = None


@dataclass
class DiagramGenerationResult:
    code: str
    explanation: str
    type: DiagramType
    title: Optional[str] = None
    description: Optional[str] = None
    http_method: Optional[str] = None
    endpoint_path: Optional[str] = None
    request_payloads: List[PayloadExample] = field(default_factory=list)
    response_payloads: List[PayloadExample] = field(default_factory=list)
    workflow_actors: Optional[str] = None
    workflow_trigger: Optional[str] = None
    validation: Optional[ValidationResult] = None
    provider: str = ""
    model: str = ""
    tokens_used: int = 0
    latency_ms: int = 0


@dataclass
class DiagramModificationRequest:
    code: str
    instruction: str
    type: DiagramType = DiagramType.WORKFLOW


@dataclass
class DiagramModificationResult:
    original_code: str
    modified_code: str
    explanation: str
    validation: Optional[ValidationResult] = None
