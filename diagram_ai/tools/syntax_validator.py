"""Pass/fail syntax check delegated to the Mermaid engine."""
from __future__ import annotations

from typing import Optional

from diagram_ai.models import ValidationResult
from diagram_ai.renderers.mermaid_engine import MermaidEngine, MermaidSyntaxError, get_mermaid_engine

EMPTY_DIAGRAM_ERROR = "Diagram code is empty"


def validate_mermaid_syntax(code: str, engine: Optional[MermaidEngine] = None) -> ValidationResult:
    """Ask the engine whether ``code`` parses.

    Empty input is rejected without touching the engine. The engine's message
    is reported verbatim; nothing is repaired or retried here.
    """
    if not code or not code.strip():
        return ValidationResult(is_valid=False, error=EMPTY_DIAGRAM_ERROR)
    parser = engine if engine is not None else get_mermaid_engine()
    try:
        parser.parse(code)
    except MermaidSyntaxError as exc:
        return ValidationResult(is_valid=False, error=str(exc))
    return ValidationResult(is_valid=True)
