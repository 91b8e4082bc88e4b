"""Repairs for the systematic Mermaid mistakes language models make.

The sanitizer is an ordered list of small named rules. Every rule is a pure
``str -> str`` function that rewrites one family of known-bad patterns and
leaves everything else alone. Rules are applied until they stop changing the
text and the whole chain is repeated until a pass is a no-op, which makes
``sanitize_mermaid`` idempotent.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable

logger = logging.getLogger(__name__)

_MAX_PASSES = 64

DIAGRAM_KEYWORDS: tuple[str, ...] = (
    "flowchart",
    "graph",
    "sequenceDiagram",
    "classDiagram",
    "stateDiagram",
    "erDiagram",
    "gantt",
    "pie",
    "journey",
    "gitGraph",
    "mindmap",
    "timeline",
    "quadrantChart",
    "requirementDiagram",
    "C4Context",
)

RESERVED_CLASS_NAMES: tuple[str, ...] = ("end", "else", "alt", "loop", "opt", "par", "and", "note")
RESERVED_CLASS_SUFFIX = "Style"

# First line that opens a diagram, e.g. "flowchart TD" or "stateDiagram-v2".
HEADER_RE = re.compile(
    r"^[ \t]*(?P<keyword>" + "|".join(DIAGRAM_KEYWORDS) + r")(?!\w)",
    re.MULTILINE,
)

_NODE_REF = r"\w+(?:\[[^\]\n]*\])?"
_RESERVED = "|".join(RESERVED_CLASS_NAMES)

_REVERSE_ARROW_RE = re.compile(rf"(?P<target>{_NODE_REF})[ \t]*<--[ \t]*(?P<source>{_NODE_REF})")

_FRONTMATTER_RE = re.compile(r"^---[ \t]*\n.*?\n---[ \t]*(?:\n|\Z)", re.MULTILINE | re.DOTALL)
_STRAY_CONFIG_LINE_RE = re.compile(r"^[ \t]*(?:config\b|Note over\b).*(?:\n|\Z)", re.MULTILINE)

_SUBGRAPH_SHAPE_RE = re.compile(
    r"\b(?P<prefix>subgraph[ \t]+)(?P<id>\w+)"
    r"[\[({][^\n]*?[\])}]"         # shape decoration glued to the id
    r"(?=[ \t]*$)",
    re.MULTILINE,
)

_MARKUP_TAG_RE = re.compile(
    r"</?(?:br|b|i|u|em|strong|span|p|div|sub|sup|small|code)\b[^<>\n]*>",
    re.IGNORECASE,
)

_MIXED_SHAPE_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    # A[[text)  -> A([text])
    (re.compile(r"(?P<id>\w+)\[\[(?P<label>[^\[\]()\n]*)\)"), r"\g<id>([\g<label>])"),
    # A([text]] -> A([text])
    (re.compile(r"(?P<id>\w+)\(\[(?P<label>[^\[\]()\n]*)\]\]"), r"\g<id>([\g<label>])"),
    # A[text]]  -> A[text]
    (re.compile(r"(?P<id>\w+)\[(?P<label>[^\[\]()\n]+)\]\]"), r"\g<id>[\g<label>]"),
)

# Plain rectangle and diamond labels only; compound shapes such as [(db)],
# [[sub]], [/io/] and {{hex}} are excluded via negative lookahead.
_RECT_LABEL_RE = re.compile(
    r"(?P<id>\w+)"
    r"\[(?![(\[/\\])"
    r"(?P<label>[^\]\n]+)"
    r"\]"
)
_DIAMOND_LABEL_RE = re.compile(
    r"(?P<id>\w+)"
    r"\{(?!\{)"
    r"(?P<label>[^{}\n]+)"
    r"\}"
)
_DASHED_EDGE_LABEL_RE = re.compile(r"(?P<open>--[ \t]+)(?P<label>[^\n>]*?\|[^\n>]*?)(?P<close>[ \t]+-->)")
_ESCAPE_RE = re.compile(r"\\[nrt]")
_BRACED_RE = re.compile(r"\{[^{}\n]*\}")
_ASIDE_RE = re.compile(r"\((?P<aside>[^()\n]*)\)")
_WHITESPACE_RE = re.compile(r"\s+")

_MISPLACED_CLASS_RE = re.compile(
    r"^(?P<indent>[ \t]*)(?P<nodes>[A-Za-z0-9_,]+(?:[ \t]+[A-Za-z0-9_,]+)*)[ \t]+class[ \t]+(?P<name>\w+)",
    re.MULTILINE,
)
_RESERVED_USAGE_RE = re.compile(rf":::(?P<name>{_RESERVED})\b")
_RESERVED_DEFINITION_RE = re.compile(rf"\b(?P<prefix>classDef[ \t]+)(?P<name>{_RESERVED})\b")
_RESERVED_ASSIGNMENT_RE = re.compile(
    rf"^(?P<prefix>[ \t]*class[ \t]+[^;\n]+?[ \t]+)(?P<name>{_RESERVED})(?=[ \t]*;?[ \t]*$)",
    re.MULTILINE,
)

_BARE_MESSAGE_RE = re.compile(
    r"^(?P<indent>[ \t]*)(?!(?:title|accTitle|accDescr)\b)(?P<actor>\w+):[ \t]+(?P<text>[^\n>-]+?)[ \t]*$",
    re.MULTILINE,
)
_STATE_NOTE_REPEAT_RE = re.compile(
    r"^(?P<head>[ \t]*note[ \t]+(?:right|left)[ \t]+of[ \t]+)(?P<state>\w+)[ \t]*\n[ \t]*(?P=state)[ \t]+",
    re.MULTILINE,
)

_NESTED_STATE_RE = re.compile(
    r"(?P<block>state[ \t]+(?P<state>\w+)[ \t]*\{[^}]*?)\b(?P=state)(?P<arrow>[ \t]*-->)"
)

_EDGE_LABEL_RE = re.compile(r"(?P<arrow>[-=.]{2,}[>ox]?[ \t]*\|)(?P<label>[^|\n]*)(?P<close>\|)")

_INLINE_WHITESPACE_RE = re.compile(r"[^\S\n]+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n")


def _until_stable(rewrite: Callable[[str], str], text: str) -> str:
    for _ in range(_MAX_PASSES):
        updated = rewrite(text)
        if updated == text:
            return updated
        text = updated
    logger.debug("Rewrite did not settle after %d passes", _MAX_PASSES)
    return text


def _find_header(code: str) -> re.Match[str] | None:
    return HEADER_RE.search(code)


def fix_reverse_arrows(code: str) -> str:
    """``A <-- B`` becomes ``B --> A``."""
    return _REVERSE_ARROW_RE.sub(r"\g<source> --> \g<target>", code)


def strip_config_preamble(code: str) -> str:
    """Drop ``---`` frontmatter and stray config lines before the diagram header."""
    code = _FRONTMATTER_RE.sub("", code)
    header = _find_header(code)
    if header is None:
        return code
    preamble = _STRAY_CONFIG_LINE_RE.sub("", code[: header.start()])
    return preamble + code[header.start():]


def fix_subgraph_shapes(code: str) -> str:
    return _SUBGRAPH_SHAPE_RE.sub(r"\g<prefix>\g<id>", code)


def strip_markup_tags(code: str) -> str:
    return _MARKUP_TAG_RE.sub(" ", code)


def fix_mixed_shapes(code: str) -> str:
    for pattern, replacement in _MIXED_SHAPE_RULES:
        code = pattern.sub(replacement, code)
    return code


def _unquote_braces(label: str) -> str:
    return _BRACED_RE.sub(lambda m: m.group(0).replace('"', "").replace("'", ""), label)


def _asides_to_suffix(label: str) -> str:
    return _until_stable(lambda text: _ASIDE_RE.sub(r"- \g<aside>", text), label)


def _clean_rect_label(label: str) -> str:
    label = _unquote_braces(label)
    label = _ESCAPE_RE.sub(" ", label)
    label = label.replace("|", "/")
    label = _asides_to_suffix(label)
    return _WHITESPACE_RE.sub(" ", label).strip()


def _clean_diamond_label(label: str) -> str:
    label = _ESCAPE_RE.sub(" ", label)
    label = label.replace("|", "/")
    return _WHITESPACE_RE.sub(" ", label).strip()


def clean_label_text(code: str) -> str:
    """Normalize text inside rectangle, diamond and dashed edge labels."""
    code = _RECT_LABEL_RE.sub(lambda m: f"{m.group('id')}[{_clean_rect_label(m.group('label'))}]", code)
    code = _DIAMOND_LABEL_RE.sub(lambda m: f"{m.group('id')}{{{_clean_diamond_label(m.group('label'))}}}", code)
    return _DASHED_EDGE_LABEL_RE.sub(
        lambda m: f"{m.group('open')}{m.group('label').replace('|', '/')}{m.group('close')}",
        code,
    )


def fix_reserved_class_names(code: str) -> str:
    """Suffix class names that collide with Mermaid keywords, e.g. ``end``."""
    code = _MISPLACED_CLASS_RE.sub(r"\g<indent>class \g<nodes> \g<name>", code)
    code = _RESERVED_USAGE_RE.sub(rf":::\g<name>{RESERVED_CLASS_SUFFIX}", code)
    code = _RESERVED_DEFINITION_RE.sub(rf"\g<prefix>\g<name>{RESERVED_CLASS_SUFFIX}", code)
    return _RESERVED_ASSIGNMENT_RE.sub(rf"\g<prefix>\g<name>{RESERVED_CLASS_SUFFIX}", code)


def fix_sequence_notes(code: str) -> str:
    """Turn ``Actor: text`` lines into notes and drop repeated state names in notes."""
    code = _STATE_NOTE_REPEAT_RE.sub(r"\g<head>\g<state>\n  ", code)
    header = _find_header(code)
    if header is None or header.group("keyword") != "sequenceDiagram":
        return code
    head, body = code[: header.end()], code[header.end():]
    return head + _BARE_MESSAGE_RE.sub(r"\g<indent>Note over \g<actor>: \g<text>", body)


def fix_nested_state_cycles(code: str) -> str:
    """Inside ``state S { ... }`` a transition out of ``S`` starts from ``[*]``."""
    return _NESTED_STATE_RE.sub(r"\g<block>[*]\g<arrow>", code)


def _strip_edge_asides(match: re.Match[str]) -> str:
    label = match.group("label")
    if not _ASIDE_RE.search(label):
        return match.group(0)
    stripped = _until_stable(lambda text: _ASIDE_RE.sub("", text), label)
    if not stripped.strip():
        # keep the words rather than leave an empty label
        stripped = _until_stable(lambda text: _ASIDE_RE.sub(r"\g<aside>", text), label)
    stripped = _WHITESPACE_RE.sub(" ", stripped).strip()
    return f"{match.group('arrow')}{stripped}{match.group('close')}"


def strip_edge_label_asides(code: str) -> str:
    return _EDGE_LABEL_RE.sub(_strip_edge_asides, code)


def normalize_whitespace(code: str) -> str:
    code = _INLINE_WHITESPACE_RE.sub(" ", code)
    code = _BLANK_LINES_RE.sub("\n", code)
    return code.strip()


@dataclass(frozen=True)
class SanitizationRule:
    name: str
    rewrite: Callable[[str], str]

    def __call__(self, code: str) -> str:
        return _until_stable(self.rewrite, code)


SANITIZE_RULES: tuple[SanitizationRule, ...] = (
    SanitizationRule("reverse_arrows", fix_reverse_arrows),
    SanitizationRule("config_preamble", strip_config_preamble),
    SanitizationRule("subgraph_shapes", fix_subgraph_shapes),
    SanitizationRule("markup_tags", strip_markup_tags),
    SanitizationRule("mixed_shapes", fix_mixed_shapes),
    SanitizationRule("label_text", clean_label_text),
    SanitizationRule("reserved_class_names", fix_reserved_class_names),
    SanitizationRule("sequence_notes", fix_sequence_notes),
    SanitizationRule("nested_state_cycles", fix_nested_state_cycles),
    SanitizationRule("edge_label_asides", strip_edge_label_asides),
    SanitizationRule("whitespace", normalize_whitespace),
)


def sanitize_mermaid(code: str, rules: Iterable[SanitizationRule] = SANITIZE_RULES) -> str:
    """Apply every rule in order until the code stops changing."""
    if not code:
        return ""
    rules = tuple(rules)

    def _single_pass(text: str) -> str:
        for rule in rules:
            text = rule(text)
        return text

    sanitized = _until_stable(_single_pass, code)
    if sanitized != code:
        logger.debug("Sanitized diagram code", extra={"before": len(code), "after": len(sanitized)})
    return sanitized
