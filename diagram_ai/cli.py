"""CLI interface."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import typer

from diagram_ai.extraction.metadata import interpret_response
from diagram_ai.providers.base import ProviderError
from diagram_ai.renderers.mermaid_engine import MermaidEngineUnavailable
from diagram_ai.services.diagram_service import resolve_diagram_type
from diagram_ai.services.intent import classify_intent
from diagram_ai.tools.sanitizer import sanitize_mermaid
from diagram_ai.tools.syntax_validator import validate_mermaid_syntax
from diagram_ai.utils.config import settings

app = typer.Typer(add_completion=False)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at debug level.")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _read(file: Path) -> str:
    if str(file) == "-":
        return typer.get_text_stream("stdin").read()
    return file.read_text(encoding="utf-8")


def _echo(payload: dict) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


@app.command()
def interpret(file: Path = typer.Argument(..., help="Model reply to interpret ('-' for stdin).")):
    """Extract metadata, diagram code and explanation from a model reply."""
    interpreted = interpret_response(_read(file))
    payload = asdict(interpreted)
    payload["has_diagram"] = interpreted.has_diagram
    _echo(payload)


@app.command()
def sanitize(file: Path = typer.Argument(..., help="Mermaid source ('-' for stdin).")):
    """Apply the Mermaid repair rules and print the result."""
    typer.echo(sanitize_mermaid(_read(file)))


@app.command()
def validate(file: Path = typer.Argument(..., help="Mermaid source ('-' for stdin).")):
    """Check Mermaid source with mermaid-cli."""
    try:
        result = validate_mermaid_syntax(_read(file))
    except MermaidEngineUnavailable as exc:
        typer.echo(f"Mermaid engine unavailable: {exc}", err=True)
        raise typer.Exit(code=2)
    _echo(asdict(result))
    if not result.is_valid:
        raise typer.Exit(code=1)


@app.command()
def classify(
    message: str = typer.Argument(..., help="User message to classify."),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Recent conversation."),
    diagram: Optional[Path] = typer.Option(None, "--diagram", "-d", help="Diagram currently being edited."),
):
    """Classify a message as a question or a diagram request."""
    current_diagram = _read(diagram) if diagram else None
    try:
        classification = classify_intent(message, context=context, current_diagram=current_diagram)
    except ProviderError as exc:
        typer.echo(f"Provider error: {exc}", err=True)
        raise typer.Exit(code=2)
    resolved = resolve_diagram_type(classification)
    _echo(
        {
            "is_question": classification.is_question,
            "diagram_type": classification.diagram_type.value if classification.diagram_type else None,
            "resolved_type": resolved.value if resolved else None,
            "confidence": classification.confidence.value,
            "reasoning": classification.reasoning,
        }
    )


if __name__ == "__main__":
    app()
