"""Markdown renderer — source text to HTML.

Uses Patitas with the table plugin.  Line breaks on a single newline are off,
raw HTML in the source passes through untouched (the file is local and
trusted), and no typographic substitution is applied.

On top of standard Markdown, a paragraph may start with one attribute tag::

    {.note} Rendered as <p class="note">
    {#warn} Rendered as <p id="warn">

The tag is removed from the visible text along with the whitespace after it.
Tags are recognised on the parsed tree, and only when the paragraph's first
source line literally starts with one: ``\\{.note}``, ``&#123;.note}``, code,
headings and raw HTML blocks are left as written.  Paragraphs at the top level
and inside block quotes can be tagged.
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from functools import cache
from html import escape
from typing import TYPE_CHECKING

from patitas.nodes import BlockQuote, Document, Paragraph, Text
from patitas.renderers.html import HtmlRenderer

if TYPE_CHECKING:
    from patitas import Markdown
    from patitas.nodes import Block, Inline

_IDENT = r"[A-Za-z_][A-Za-z0-9_-]*"

# One {.ident} or {#ident} tag plus the whitespace after it.
_TAG_RE = re.compile(r"\{([.#])(" + _IDENT + r")\}[ \t]*")

# Block-quote markers and indentation in front of a paragraph's first line.
_CONTAINER_PREFIX_RE = re.compile(r"(?:[ \t]*>)*[ \t]*")

_TAG_ATTRIBUTES = {".": "class", "#": "id"}


@dataclass(frozen=True, slots=True)
class TaggedParagraph(Paragraph):
    """A paragraph that carries one ``class`` or ``id`` attribute."""

    attribute: str = "class"
    value: str = ""


class _TaggedHtmlRenderer(HtmlRenderer):
    """Patitas HTML renderer that writes the attribute of a TaggedParagraph."""

    __slots__ = ()

    def _render_paragraph(self, para, sb, ctx) -> None:  # noqa: ANN001
        if not isinstance(para, TaggedParagraph):
            super()._render_paragraph(para, sb, ctx)
            return
        sb.append(f'<p {para.attribute}="{escape(para.value)}">')
        self._render_inlines(para.children, sb, ctx)
        sb.append("</p>\n")


@cache
def _markdown() -> Markdown:
    from patitas import Markdown

    return Markdown(plugins=["table"])


def _source_line(lines: list[str], lineno: int) -> str:
    if not 0 < lineno <= len(lines):
        return ""
    line = lines[lineno - 1]
    return line[_CONTAINER_PREFIX_RE.match(line).end():]


def _strip_leading(children: tuple[Inline, ...], count: int) -> tuple[Inline, ...]:
    """Drop *count* characters from the leading Text nodes of *children*."""
    result: list[Inline] = []
    for index, child in enumerate(children):
        if count == 0 or not isinstance(child, Text):
            result.extend(children[index:])
            break
        if len(child.content) > count:
            result.append(dataclasses.replace(child, content=child.content[count:]))
            count = 0
        else:
            count -= len(child.content)
    return tuple(result)


def _tag_paragraph(para: Paragraph, lines: list[str]) -> Paragraph:
    raw = _TAG_RE.match(_source_line(lines, para.location.lineno))
    if raw is None:
        return para

    # The parsed text must start with the same tag the source line does.
    leading: list[str] = []
    for child in para.children:
        if not isinstance(child, Text):
            break
        leading.append(child.content)
    parsed = _TAG_RE.match("".join(leading))
    if parsed is None or parsed.group(1, 2) != raw.group(1, 2):
        return para

    return TaggedParagraph(
        location=para.location,
        children=_strip_leading(para.children, parsed.end()),
        attribute=_TAG_ATTRIBUTES[parsed.group(1)],
        value=parsed.group(2),
    )


def _tag_blocks(blocks: tuple[Block, ...], lines: list[str]) -> tuple[Block, ...]:
    tagged: list[Block] = []
    for block in blocks:
        if isinstance(block, Paragraph):
            block = _tag_paragraph(block, lines)
        elif isinstance(block, BlockQuote):
            block = dataclasses.replace(block, children=_tag_blocks(block.children, lines))
        tagged.append(block)
    return tuple(tagged)


def tag_paragraphs(doc: Document, source: str) -> Document:
    """Turn paragraphs whose source starts with ``{.x}`` / ``{#x}`` into TaggedParagraphs."""
    return dataclasses.replace(doc, children=_tag_blocks(doc.children, source.splitlines()))


def render(source: str) -> str:
    """Render Markdown *source* to an HTML string.

    Deterministic and side-effect free: the same text always yields the
    same HTML.
    """
    from patitas import create_default_registry, create_default_role_registry

    doc = tag_paragraphs(_markdown().parse(source), source)
    renderer = _TaggedHtmlRenderer(
        source=source,
        directive_registry=create_default_registry(),
        role_registry=create_default_role_registry(),
    )
    return renderer.render(doc)
