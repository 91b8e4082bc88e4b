import re

from hypothesis import given, settings
from hypothesis import strategies as st

from diagram_ai.tools.sanitizer import RESERVED_CLASS_NAMES, RESERVED_CLASS_SUFFIX, sanitize_mermaid

KEYWORDS = {"class", "classDef", "end", "state", "note", "subgraph", "graph", "flowchart", "style"}
node_ids = st.from_regex(r"[A-Za-z][A-Za-z0-9_]{0,8}", fullmatch=True).filter(
    lambda name: name not in KEYWORDS and name.lower() not in RESERVED_CLASS_NAMES
)
reserved = st.sampled_from(RESERVED_CLASS_NAMES)
label_text = st.text(alphabet=st.sampled_from(list("ab xy()|{}\"'\\nt<>/-:[")), max_size=16)


@st.composite
def diagram_lines(draw):
    a, b = draw(node_ids), draw(node_ids)
    label = draw(label_text)
    kw = draw(reserved)
    template = draw(
        st.sampled_from(
            [
                f"{a} --> {b}",
                f"{a} <-- {b}",
                f"{a}[{label}] --> {b}",
                f"{a}{{{label}}}",
                f"{a} -->|{label}| {b}",
                f"{a} -- {label} --> {b}",
                f"{a}[[{label})",
                f"{a}([{label}]]",
                f"class {a},{b} {kw}",
                f"{a},{b} class {kw}",
                f"classDef {kw} fill:#f9f",
                f"{a}:::{kw}",
                f"subgraph {a}[{label}]",
                "end",
                f"{a}: {label}",
                f"note right of {a}",
                f"{a} {label}",
                f"state {a} {{",
                f"{a} --> {b}",
                "}",
                "---",
                "config: x",
                f"Note over {a}: {label}",
                f"<b>{label}</b><br/>",
            ]
        )
    )
    return draw(st.sampled_from(["", "  ", "\t"])) + template


@st.composite
def diagrams(draw):
    header = draw(st.sampled_from(["flowchart TD", "graph LR", "sequenceDiagram", "stateDiagram-v2", ""]))
    lines = draw(st.lists(diagram_lines(), max_size=12))
    separator = draw(st.sampled_from(["\n", "\n\n", "\n  "]))
    return separator.join([header] + lines)


@settings(max_examples=200, deadline=None)
@given(diagrams())
def test_sanitize_is_idempotent_on_diagram_shaped_text(code):
    once = sanitize_mermaid(code)
    assert sanitize_mermaid(once) == once


SYNTAX_TOKENS = list("AB[](){}|<>-:;*\"'\\nt \n.=ox") + [
    "class ",
    "classDef ",
    ":::",
    "<--",
    "-->",
    "end",
    "subgraph ",
    "Note over ",
    "note right of ",
    "state ",
    "[*]",
    "---\n",
    "flowchart TD\n",
    "sequenceDiagram\n",
    "stateDiagram-v2\n",
]
syntax_soup = st.lists(st.sampled_from(SYNTAX_TOKENS), max_size=60).map("".join)


@settings(max_examples=500, deadline=None)
@given(syntax_soup)
def test_sanitize_is_idempotent_on_arbitrary_syntax_soup(code):
    once = sanitize_mermaid(code)
    assert sanitize_mermaid(once) == once


@given(node_ids, node_ids)
def test_reverse_arrow_always_flipped(a, b):
    result = sanitize_mermaid(f"flowchart LR\n  {a} <-- {b}")
    assert "<--" not in result
    assert f"{b} --> {a}" in result


@given(reserved, node_ids, node_ids)
def test_reserved_class_names_always_suffixed(kw, a, b):
    code = f"flowchart TD\n  {a} --> {b}\n  classDef {kw} fill:#f9f\n  {a}:::{kw}\n  class {a},{b} {kw}"
    result = sanitize_mermaid(code)
    suffixed = f"{kw}{RESERVED_CLASS_SUFFIX}"
    assert f"classDef {suffixed} fill:#f9f" in result
    assert f":::{suffixed}" in result
    assert re.search(rf"^ class {a},{b} {suffixed}$", result, re.MULTILINE)
