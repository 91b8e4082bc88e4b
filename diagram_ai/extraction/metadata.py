"""Tolerant extraction of labelled fields from model replies.

Every extractor is a pure function of the reply text. A missing or malformed
field is reported as ``None`` (or an empty list for payload examples) and never
raises: the reply format is a request to the model, not a guarantee.
"""
from __future__ import annotations

import logging
import re
from typing import List, Optional

from diagram_ai.extraction.locator import locate_diagram_code
from diagram_ai.models import DiagramType, ExtractedMetadata, InterpretedResponse, PayloadExample

logger = logging.getLogger(__name__)

FALLBACK_EXPLANATION = "AI-generated diagram based on your request."
EXPLANATION_MIN_CHARS = 20
EXPLANATION_MAX_CHARS = 500

DEFAULT_REQUEST_STATUS = "Request Body"
DEFAULT_CONTENT_TYPE = "application/json"

# Optional list bullet / blockquote and markdown bold around a "Label:" prefix.
_LINE_PREFIX = r"^[ \t]*(?:[-*+>][ \t]+)?(?:\*\*|__)?"
_LABEL_SUFFIX = r"(?:\*\*|__)?:(?:\*\*|__)?[ \t]*"


def _label_re(label: str, flags: int = 0) -> re.Pattern[str]:
    """``Label: value`` at the start of a line, value captured up to end of line."""
    return re.compile(
        _LINE_PREFIX + label + r"(?:\*\*|__)?:(?:\*\*|__)?[ \t]*(?P<value>[^\n]*)$",
        re.MULTILINE | flags,
    )


_TITLE_RE = _label_re("Title")
_DESCRIPTION_RE = _label_re("Description")
_DIAGRAM_TYPE_RE = _label_re(r"Diagram[ \t]+Type", re.IGNORECASE)
_HTTP_METHOD_RE = _label_re(r"HTTP[ \t]+Method", re.IGNORECASE)
_ENDPOINT_PATH_RE = _label_re(r"Endpoint[ \t]+Path", re.IGNORECASE)
_ENDPOINT_COMBINED_RE = re.compile(
    _LINE_PREFIX + r"Endpoint" + _LABEL_SUFFIX + r"(?P<method>[A-Za-z]+)[ \t]+(?P<path>/[^\s]*)",
    re.MULTILINE | re.IGNORECASE,
)
_WORKFLOW_ACTORS_RE = _label_re(r"Workflow[ \t]+Actors", re.IGNORECASE)
_WORKFLOW_TRIGGER_RE = _label_re(r"Workflow[ \t]+Trigger", re.IGNORECASE)
# Models sometimes label workflow fields as endpoint fields.
_ENDPOINT_ACTORS_RE = _label_re(r"Endpoint[ \t]+Actors", re.IGNORECASE)
_ENDPOINT_TRIGGER_RE = _label_re(r"Endpoint[ \t]+Trigger", re.IGNORECASE)

_PAYLOAD_HEADER_RE = re.compile(
    _LINE_PREFIX
    + r"(?P<kind>Request|Response)[ \t]+Payload\b"
    + r"(?:[ \t]*\((?P<code>\d{3})\))?[^\n]*$",
    re.MULTILINE | re.IGNORECASE,
)
_STATUS_RE = _label_re("Status", re.IGNORECASE)
_CONTENT_TYPE_RE = _label_re("Content-Type", re.IGNORECASE)
_JSON_FENCE_RE = re.compile(r"```(?P<lang>json)?[ \t]*\n(?P<body>.*?)```", re.DOTALL | re.IGNORECASE)

_LABELLED_LINE_PATTERNS: tuple[re.Pattern[str], ...] = (
    _TITLE_RE,
    _DESCRIPTION_RE,
    _DIAGRAM_TYPE_RE,
    _HTTP_METHOD_RE,
    _ENDPOINT_PATH_RE,
    _WORKFLOW_ACTORS_RE,
    _WORKFLOW_TRIGGER_RE,
)
_FENCED_BLOCK_RE = re.compile(r"```.*?(?:```|\Z)", re.DOTALL)
_HORIZONTAL_RULE_RE = re.compile(r"^[ \t]*---+[ \t]*$", re.MULTILINE)
_BOLD_HEADING_RE = re.compile(r"^[ \t]*\*\*[^\n]*?\*\*:?[ \t]*", re.MULTILINE)
_HEADING_MARKER_RE = re.compile(r"^[ \t]*#+[ \t]+", re.MULTILINE)
_BLANK_LINES_RE = re.compile(r"\n\s*\n\s*(?:\n\s*)+")


def _clean_value(value: str) -> Optional[str]:
    value = value.strip().strip("*_`").strip()
    return value or None


def _first_value(pattern: re.Pattern[str], text: str) -> Optional[str]:
    for match in pattern.finditer(text):
        value = _clean_value(match.group("value"))
        if value:
            return value
    return None


def extract_title(text: str) -> Optional[str]:
    return _first_value(_TITLE_RE, text or "")


def extract_description(text: str) -> Optional[str]:
    return _first_value(_DESCRIPTION_RE, text or "")


def extract_diagram_type(text: str) -> Optional[DiagramType]:
    """Diagram type from a ``Diagram Type:`` line; unknown values are dropped."""
    value = _first_value(_DIAGRAM_TYPE_RE, text or "")
    if value is None:
        return None
    normalized = re.sub(r"\s+", " ", value.lower())
    if normalized.startswith("state machine"):
        return DiagramType.STATE
    token = re.split(r"[^a-z]", normalized, maxsplit=1)[0]
    try:
        return DiagramType(token)
    except ValueError:
        logger.debug("Ignoring unknown diagram type", extra={"diagram_type": value})
        return None


def extract_http_method(text: str) -> Optional[str]:
    text = text or ""
    value = _first_value(_HTTP_METHOD_RE, text)
    if value:
        method = re.match(r"[A-Za-z]+", value)
        if method:
            return method.group(0).upper()
    combined = _ENDPOINT_COMBINED_RE.search(text)
    return combined.group("method").upper() if combined else None


def extract_endpoint_path(text: str) -> Optional[str]:
    text = text or ""
    value = _first_value(_ENDPOINT_PATH_RE, text)
    if value:
        return value
    combined = _ENDPOINT_COMBINED_RE.search(text)
    return combined.group("path").strip() if combined else None


def _payload_blocks(text: str, kind: str):
    headers = list(_PAYLOAD_HEADER_RE.finditer(text))
    for index, header in enumerate(headers):
        if header.group("kind").lower() != kind:
            continue
        end = headers[index + 1].start() if index + 1 < len(headers) else len(text)
        yield header, text[header.end():end]


def _payload_json(block: str) -> str:
    for fence in _JSON_FENCE_RE.finditer(block):
        body = fence.group("body").strip()
        if fence.group("lang") or body.startswith(("{", "[")):
            return body
    return ""


def extract_request_payloads(text: str) -> List[PayloadExample]:
    """One record per well-formed ``Request Payload`` block."""
    payloads: List[PayloadExample] = []
    for _, block in _payload_blocks(text or "", "request"):
        status = _first_value(_STATUS_RE, block)
        content_type = _first_value(_CONTENT_TYPE_RE, block)
        if not status or not content_type:
            continue
        payloads.append(PayloadExample(status=status, content_type=content_type, json=_payload_json(block)))
    return payloads


def extract_response_payloads(text: str) -> List[PayloadExample]:
    """One record per well-formed ``Response Payload (<code>)`` block."""
    payloads: List[PayloadExample] = []
    for header, block in _payload_blocks(text or "", "response"):
        code = header.group("code")
        if not code:
            continue
        if not _first_value(_STATUS_RE, block):
            continue
        content_type = _first_value(_CONTENT_TYPE_RE, block)
        if not content_type:
            continue
        payloads.append(PayloadExample(status=code, content_type=content_type, json=_payload_json(block)))
    return payloads


def extract_workflow_actors(text: str) -> Optional[str]:
    text = text or ""
    return _first_value(_WORKFLOW_ACTORS_RE, text) or _first_value(_ENDPOINT_ACTORS_RE, text)


def extract_workflow_trigger(text: str) -> Optional[str]:
    text = text or ""
    return _first_value(_WORKFLOW_TRIGGER_RE, text) or _first_value(_ENDPOINT_TRIGGER_RE, text)


def extract_explanation(text: str) -> str:
    """Prose left after removing labelled lines, fences and markdown furniture."""
    residual = text or ""
    for pattern in _LABELLED_LINE_PATTERNS:
        residual = pattern.sub("", residual)
    residual = _FENCED_BLOCK_RE.sub("", residual)
    residual = _HORIZONTAL_RULE_RE.sub("", residual)
    residual = _BOLD_HEADING_RE.sub("", residual)
    residual = _HEADING_MARKER_RE.sub("", residual)
    residual = _BLANK_LINES_RE.sub("\n\n", residual).strip()
    if EXPLANATION_MIN_CHARS < len(residual) < EXPLANATION_MAX_CHARS:
        return residual
    return FALLBACK_EXPLANATION


def extract_metadata(text: str) -> ExtractedMetadata:
    return ExtractedMetadata(
        title=extract_title(text),
        description=extract_description(text),
        diagram_type=extract_diagram_type(text),
        http_method=extract_http_method(text),
        endpoint_path=extract_endpoint_path(text),
        request_payloads=extract_request_payloads(text),
        response_payloads=extract_response_payloads(text),
        workflow_actors=extract_workflow_actors(text),
        workflow_trigger=extract_workflow_trigger(text),
    )


def interpret_response(text: str) -> InterpretedResponse:
    """Metadata, sanitized code and explanation for one model reply.

    A reply without diagram code is an answer to a question, so the whole
    reply becomes the explanation.
    """
    text = text or ""
    code = locate_diagram_code(text)
    explanation = extract_explanation(text) if code else (text.strip() or FALLBACK_EXPLANATION)
    return InterpretedResponse(metadata=extract_metadata(text), code=code, explanation=explanation)
