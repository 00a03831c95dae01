"""Markdown-lite rendering for chat bubbles.

Only the handful of constructs the assistant actually produces are
understood: ``**bold**``, ``*italic*``, ```code```, line breaks and ``* item``
bullet lines. Anything else is passed through as escaped text.
"""
import re
from enum import Enum

from markupsafe import escape


class Span(Enum):
    TEXT = "text"
    BOLD = "bold"
    ITALIC = "italic"
    CODE = "code"


class LineKind(Enum):
    TEXT = "text"
    LIST_ITEM = "list_item"


_TAGS = {Span.BOLD: "strong", Span.ITALIC: "em", Span.CODE: "code"}

_LINE_BREAK = re.compile(r"\r\n|\n|\r")
_LIST_ITEM = re.compile(r"^\s*\*\s+(.*)$")


def _find_single_star(text, start):
    # skip over "**" pairs, they belong to bold spans
    pos = start
    while True:
        pos = text.find("*", pos)
        if pos < 0:
            return -1
        if text.startswith("**", pos):
            pos += 2
            continue
        return pos


def _open_span(text, i):
    """Return ``(span, inner, end)`` for a span opening at ``i``, or ``None``."""
    if text[i] == "`":
        close = text.find("`", i + 1)
        if close > i + 1:
            return Span.CODE, text[i + 1:close], close + 1
    elif text.startswith("**", i):
        close = text.find("**", i + 2)
        if close > i + 2:
            return Span.BOLD, text[i + 2:close], close + 2
    elif text[i] == "*":
        close = _find_single_star(text, i + 1)
        if close > i + 1:
            return Span.ITALIC, text[i + 1:close], close + 1
    return None


def tokenize_inline(text):
    """Split one line into ``(Span, value)`` tokens.

    TEXT and CODE values are strings; BOLD and ITALIC values are nested token
    lists. Markers without a closing partner stay literal text.
    """
    tokens = []
    buf = []
    i = 0
    while i < len(text):
        opened = _open_span(text, i)
        if opened is None:
            buf.append(text[i])
            i += 1
            continue
        span, inner, end = opened
        if buf:
            tokens.append((Span.TEXT, "".join(buf)))
            buf = []
        if span is Span.CODE:
            tokens.append((span, inner))
        else:
            tokens.append((span, tokenize_inline(inner)))
        i = end
    if buf:
        tokens.append((Span.TEXT, "".join(buf)))
    return tokens


def classify_lines(text):
    lines = []
    for line in _LINE_BREAK.split(text):
        m = _LIST_ITEM.match(line)
        if m:
            lines.append((LineKind.LIST_ITEM, m.group(1).strip()))
        else:
            lines.append((LineKind.TEXT, line))
    return lines


def _next_is_item(lines, start):
    for kind, content in lines[start:]:
        if kind is LineKind.LIST_ITEM:
            return True
        if content.strip():
            return False
    return False


def group_blocks(lines):
    """Merge runs of list items into single blocks.

    Blank lines between two list items do not end the run.
    """
    blocks = []
    i = 0
    while i < len(lines):
        kind, content = lines[i]
        if kind is LineKind.TEXT:
            blocks.append((kind, content))
            i += 1
            continue
        items = []
        while i < len(lines):
            kind, content = lines[i]
            if kind is LineKind.LIST_ITEM:
                items.append(content)
            elif content.strip() or not _next_is_item(lines, i):
                break
            i += 1
        blocks.append((LineKind.LIST_ITEM, items))
    return blocks


def _render_tokens(tokens):
    out = []
    for span, value in tokens:
        if span is Span.TEXT:
            out.append(str(escape(value)))
        elif span is Span.CODE:
            out.append(f"<code>{escape(value)}</code>")
        else:
            tag = _TAGS[span]
            out.append(f"<{tag}>{_render_tokens(value)}</{tag}>")
    return "".join(out)


def render_inline(text):
    return _render_tokens(tokenize_inline(text))


def render(text):
    if not text:
        return ""
    html = []
    previous = None
    for kind, value in group_blocks(classify_lines(text)):
        if kind is LineKind.TEXT:
            if previous is LineKind.TEXT:
                html.append("<br />")
            html.append(render_inline(value))
        else:
            items = "".join(f"<li>{render_inline(item)}</li>" for item in value)
            html.append(f"<ul>{items}</ul>")
        previous = kind
    return "".join(html)
