"""Locate the Mermaid source embedded in a free-form model reply.

Models wrap diagram code inconsistently, so each known wrapping is handled by
one strategy. Strategies are tried in order and the first hit is sanitized.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, Optional, Sequence

from diagram_ai.tools.sanitizer import DIAGRAM_KEYWORDS, sanitize_mermaid

logger = logging.getLogger(__name__)

LocatorStrategy = Callable[[str], Optional[str]]

_KEYWORD_START_RE = re.compile(r"^(?:" + "|".join(DIAGRAM_KEYWORDS) + r")(?!\w)")
_TAG_KEYWORD_START_RE = re.compile(r"^(?:" + "|".join(DIAGRAM_KEYWORDS) + r")(?!\w)", re.IGNORECASE)
_DIRECTION_ONLY_RE = re.compile(r"^(?:TD|TB|BT|LR|RL)\s*$")

_FENCED_BLOCK_RE = re.compile(r"```(?P<info>[^\n]*)\n(?P<body>.*?)```", re.DOTALL)
_TAGGED_BLOCK_RE = re.compile(
    r"```(?:mermaid|flowchart|graph)[ \t]*\r?\n(?P<body>.*?)\r?\n?```",
    re.DOTALL | re.IGNORECASE,
)
_MARKDOWN_START_RE = re.compile(r"^(?:---|[*#]|__)")
_CLOSING_FENCE_RE = re.compile(r"^```\s*$")
_ESCAPES = (("\\r\\n", "\n"), ("\\n", "\n"), ("\\r", "\n"), ("\\t", "\t"))

DEFAULT_FLOWCHART_KEYWORD = "flowchart"


def _first_content_line(body: str) -> str:
    for line in body.splitlines():
        if line.strip():
            return line.strip()
    return ""


def _repair_direction(body: str) -> str:
    """Prefix a bare ``TD``/``LR`` first line with ``flowchart``."""
    lines = body.strip().splitlines()
    if lines and _DIRECTION_ONLY_RE.match(lines[0].strip()):
        lines[0] = f"{DEFAULT_FLOWCHART_KEYWORD} {lines[0].strip()}"
    return "\n".join(lines)


def fenced_keyword_block(text: str) -> Optional[str]:
    """First fenced block whose info string or first line opens a diagram."""
    for match in _FENCED_BLOCK_RE.finditer(text):
        info = match.group("info").strip()
        body = match.group("body")
        if _TAG_KEYWORD_START_RE.match(info):
            return f"{info}\n{body}".strip()
        if _KEYWORD_START_RE.match(_first_content_line(body)):
            return body.strip()
    return None


def last_tagged_block(text: str) -> Optional[str]:
    """Last block tagged ``mermaid``/``flowchart``/``graph`` that is not prose."""
    matches = list(_TAGGED_BLOCK_RE.finditer(text))
    if not matches:
        return None
    body = matches[-1].group("body").strip()
    if not body or _MARKDOWN_START_RE.match(body):
        return None
    return _repair_direction(body)


def unfenced_keyword_lines(text: str) -> Optional[str]:
    """Raw lines from the first diagram header up to a closing fence."""
    captured: list[str] = []
    for line in text.splitlines():
        if not captured:
            if _KEYWORD_START_RE.match(line.strip()):
                captured.append(line)
            continue
        if _CLOSING_FENCE_RE.match(line.strip()):
            break
        captured.append(line)
    if not captured:
        return None
    return "\n".join(captured).strip()


_PLAIN_STRATEGIES: tuple[LocatorStrategy, ...] = (
    fenced_keyword_block,
    last_tagged_block,
    unfenced_keyword_lines,
)


def escaped_text(text: str) -> Optional[str]:
    """Decode literal ``\\n``/``\\t`` escapes and retry the other strategies once."""
    if "\\n" not in text and "\\t" not in text and "\\r" not in text:
        return None
    decoded = text
    for escaped, real in _ESCAPES:
        decoded = decoded.replace(escaped, real)
    for strategy in _PLAIN_STRATEGIES:
        found = strategy(decoded)
        if found:
            return found
    return None


DEFAULT_STRATEGIES: tuple[LocatorStrategy, ...] = _PLAIN_STRATEGIES + (escaped_text,)


def locate_diagram_code(text: str, strategies: Sequence[LocatorStrategy] = DEFAULT_STRATEGIES) -> str:
    """Return sanitized diagram code, or ``""`` when the reply has none."""
    if not text or not text.strip():
        return ""
    for strategy in strategies:
        candidate = strategy(text)
        if not candidate:
            continue
        logger.debug("Diagram code located", extra={"strategy": getattr(strategy, "__name__", repr(strategy))})
        return sanitize_mermaid(candidate)
    logger.debug("No diagram code in reply; treating it as explanation only")
    return ""
