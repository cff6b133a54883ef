"""
Markup parser / serializer for section content.

Dialect: h1-h6, p, ul, ol, li, text, and the atomic inline tag
``<bible-verse reference="John 3:16">John 3:16</bible-verse>`` (``<verse>`` is
accepted as an alias on input). Parsing never raises:

* unknown tags are transparent containers, their children are still parsed;
* a verse tag that is not closed before the next block or verse tag is kept
  as a degraded text run holding the raw markup, serialised as
  ``<span class="verse-unparsed">`` so it reads back as the same run;
* a verse tag without a reference becomes an invalid VerseReference, which
  serialises as ``<span class="verse-error">`` so its text is never lost.
"""

import html
import logging
import re
from typing import List, Optional

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from app.utils.document_model import (
    INVALID_VERSE_LABEL,
    Document,
    Heading,
    InlineContainer,
    ListContainer,
    ListItem,
    Paragraph,
    TextRun,
    VerseReference,
)
from app.utils.reference_scanner import scan_references

logger = logging.getLogger(__name__)

VERSE_TAG = "bible-verse"
VERSE_TAG_ALIASES = {"bible-verse", "verse"}
VERSE_ERROR_CLASS = "verse-error"
VERSE_UNPARSED_CLASS = "verse-unparsed"
HEADING_TAGS = {f"h{level}": level for level in range(1, 7)}
LIST_TAGS = {"ul", "ol"}
ITEM_BLOCK_TAGS = set(HEADING_TAGS) | LIST_TAGS | {"p"}
BLOCK_TAGS = set(HEADING_TAGS) | LIST_TAGS | {
    "p", "li", "div", "section", "article", "blockquote", "pre", "table", "hr", "header", "footer",
}

# Internal marker for a verse tag that could not be parsed; never serialised
_DEGRADED_TAG = "x-verse-degraded"

_TAG_PATTERN = re.compile(r"""<(?P<close>/?)(?P<name>[A-Za-z][\w:-]*)(?P<attrs>(?:[^>"']|"[^"]*"|'[^']*')*)>""")


class VerseAttributeMissing(ValueError):
    """A verse tag carries no usable reference attribute."""


# ---------------------------------------------------------------------------
# Parse
# ---------------------------------------------------------------------------

def _isolate_malformed_verse_tags(markup: str) -> str:
    """Wrap unclosed verse tags so the tree builder cannot auto-close them.

    A verse tag is well formed when its closing tag appears before any block
    tag or any other verse tag. Otherwise the raw text from the opening tag up
    to the offending tag is kept as literal text.
    """
    tags = list(_TAG_PATTERN.finditer(markup))
    if not any(m.group("name").lower() in VERSE_TAG_ALIASES for m in tags):
        return markup

    out: List[str] = []
    cursor = 0
    i = 0
    while i < len(tags):
        match = tags[i]
        name = match.group("name").lower()
        is_open = not match.group("close") and not match.group("attrs").rstrip().endswith("/")
        if name not in VERSE_TAG_ALIASES or not is_open:
            i += 1
            continue

        stop = len(markup)
        closed = False
        j = i + 1
        while j < len(tags):
            other = tags[j]
            other_name = other.group("name").lower()
            if other_name == name and other.group("close"):
                closed = True
                break
            if other_name in VERSE_TAG_ALIASES or other_name in BLOCK_TAGS:
                stop = other.start()
                break
            j += 1

        if closed:
            i = j + 1
            continue

        raw = markup[match.start():stop]
        logger.warning("Unclosed verse tag kept as text: %r", raw[:80])
        out.append(markup[cursor:match.start()])
        out.append(f"<{_DEGRADED_TAG}>{html.escape(raw, quote=False)}</{_DEGRADED_TAG}>")
        cursor = stop
        while j < len(tags) and tags[j].start() < stop:
            j += 1
        i = j

    out.append(markup[cursor:])
    return "".join(out)


def _reference_attribute(tag: Tag) -> str:
    reference = tag.get("reference")
    if reference is None or not reference.strip():
        raise VerseAttributeMissing(f"<{tag.name}> without a reference attribute")
    return reference


def _verse_from_tag(tag: Tag) -> VerseReference:
    label = tag.get_text()
    try:
        reference = _reference_attribute(tag)
    except VerseAttributeMissing as e:
        logger.warning("%s; rendering error marker", e)
        return VerseReference(reference=None, label=label)
    return VerseReference.create(reference, label=label)


def _has_span_class(tag: Tag, css_class: str) -> bool:
    return tag.name == "span" and css_class in (tag.get("class") or [])


def _strip_edges(block: InlineContainer) -> None:
    """Trim the layout whitespace around loose text that had no block tag."""
    inlines = block.inlines
    if inlines and isinstance(inlines[0], TextRun) and not inlines[0].degraded:
        inlines[0] = TextRun(inlines[0].text.lstrip())
        if not inlines[0].text:
            inlines.pop(0)
    if inlines and isinstance(inlines[-1], TextRun) and not inlines[-1].degraded:
        inlines[-1] = TextRun(inlines[-1].text.rstrip())
        if not inlines[-1].text:
            inlines.pop()


class _MarkupWalker:
    """Builds the document from a soup, tolerating any nesting it meets."""

    def __init__(self) -> None:
        self.document = Document()
        self._pending: Optional[InlineContainer] = None
        self._pending_explicit = False

    # -- block level --------------------------------------------------------

    def _flush(self) -> None:
        if self._pending is not None and not self._pending_explicit:
            _strip_edges(self._pending)
        if self._pending is not None and (self._pending_explicit or not self._pending.is_blank()):
            self.document.append_block(self._pending)
        self._pending = None
        self._pending_explicit = False

    def _open(self, block: InlineContainer) -> None:
        self._flush()
        self._pending = block
        self._pending_explicit = True

    def _target(self) -> InlineContainer:
        if self._pending is None:
            self._pending = Paragraph()
            self._pending_explicit = False
        return self._pending

    def walk(self, nodes) -> None:
        for node in list(nodes):
            if isinstance(node, PreformattedString):
                continue
            if isinstance(node, NavigableString):
                text = str(node)
                if self._pending is None and not text.strip():
                    continue
                self._target().append(TextRun(text))
                continue
            if not isinstance(node, Tag):
                continue

            name = node.name.lower()
            if name == "p" or name in HEADING_TAGS:
                self._open(Heading(level=HEADING_TAGS[name]) if name in HEADING_TAGS else Paragraph())
                self.walk(node.contents)
                self._flush()
            elif name in LIST_TAGS:
                self._flush()
                self.document.append_block(_parse_list(node))
            elif name == "li":
                # stray list item outside any list: keep its content as a paragraph
                self._open(Paragraph())
                self.walk(node.contents)
                self._flush()
            else:
                inline = _inline_leaf(node)
                if inline is not None:
                    self._target().append(inline)
                else:
                    self.walk(node.contents)

    def finish(self) -> Document:
        self._flush()
        return self.document


def _inline_leaf(node: Tag):
    """Return the inline node for leaf-like tags, None for containers."""
    name = node.name.lower()
    if name in VERSE_TAG_ALIASES or _has_span_class(node, VERSE_ERROR_CLASS):
        if name in VERSE_TAG_ALIASES:
            return _verse_from_tag(node)
        return VerseReference(reference=None, label=node.get_text())
    if name == _DEGRADED_TAG or _has_span_class(node, VERSE_UNPARSED_CLASS):
        return TextRun(node.get_text(), degraded=True)
    if name == "br":
        return TextRun("\n")
    return None


def _is_item_layout(node: NavigableString) -> bool:
    """Whitespace that only separates an item's text from a nested block tag."""
    if node.strip():
        return False
    neighbours = (node.previous_sibling, node.next_sibling)
    return any(isinstance(n, Tag) and n.name.lower() in ITEM_BLOCK_TAGS for n in neighbours)


def _collect_into_item(item: ListItem, nodes) -> None:
    for node in list(nodes):
        if isinstance(node, PreformattedString):
            continue
        if isinstance(node, NavigableString):
            text = str(node)
            if _is_item_layout(node):
                continue
            item.append(TextRun(text))
            continue
        if not isinstance(node, Tag):
            continue
        name = node.name.lower()
        if name in LIST_TAGS:
            item.append_list(_parse_list(node))
        elif name == "p" or name in HEADING_TAGS:
            # editors wrap item text in <p>; successive paragraphs are joined by a space
            if item.inlines and not InlineContainer.plain_text(item)[-1:].isspace():
                item.append(TextRun(" "))
            _collect_into_item(item, node.contents)
        else:
            inline = _inline_leaf(node)
            if inline is not None:
                item.append(inline)
            else:
                _collect_into_item(item, node.contents)


def _parse_list(node: Tag) -> ListContainer:
    container = ListContainer(ordered=node.name.lower() == "ol")
    for child in list(node.contents):
        if isinstance(child, PreformattedString):
            continue
        if isinstance(child, NavigableString):
            if str(child).strip():
                item = ListItem()
                item.append(TextRun(str(child)))
                container.append(item)
            continue
        if not isinstance(child, Tag):
            continue
        name = child.name.lower()
        if name in LIST_TAGS and container.items:
            # <ul><li>a</li><ul>..</ul></ul>: the nested list belongs to the previous item
            container.items[-1].append_list(_parse_list(child))
            continue
        item = ListItem()
        if name == "li":
            _collect_into_item(item, child.contents)
        else:
            _collect_into_item(item, [child])
        container.append(item)
    return container


def parse_markup(markup: Optional[str]) -> Document:
    """Parse section markup into a document tree. Never raises."""
    if not markup or not markup.strip():
        return Document()
    prepared = _isolate_malformed_verse_tags(markup)
    soup = BeautifulSoup(prepared, "html.parser")
    walker = _MarkupWalker()
    walker.walk(soup.contents)
    return walker.finish()


# ---------------------------------------------------------------------------
# Serialize
# ---------------------------------------------------------------------------

def _serialize_inline(inline) -> str:
    if isinstance(inline, TextRun):
        text = html.escape(inline.text, quote=False)
        if inline.degraded:
            return f'<span class="{VERSE_UNPARSED_CLASS}">{text}</span>'
        return text
    if inline.is_valid:
        return (
            f'<{VERSE_TAG} reference="{html.escape(inline.reference, quote=True)}">'
            f"{html.escape(inline.display_label, quote=False)}</{VERSE_TAG}>"
        )
    label = inline.label if inline.label is not None else INVALID_VERSE_LABEL
    return f'<span class="{VERSE_ERROR_CLASS}">{html.escape(label, quote=False)}</span>'


def _serialize_inlines(container: InlineContainer) -> str:
    return "".join(_serialize_inline(inline) for inline in container.inlines)


def _serialize_item_text(item: ListItem) -> str:
    text = _serialize_inlines(item)
    last = item.inlines[-1] if item.inlines else None
    if item.sublists and isinstance(last, TextRun) and not last.degraded and not last.text.strip():
        # whitespace right before a nested list would read back as layout
        text = text[:-len(last.text)] + f"<span>{last.text}</span>"
    return text


def _serialize_list(container: ListContainer) -> str:
    tag = "ol" if container.ordered else "ul"
    items = []
    for item in container.items:
        nested = "".join(_serialize_list(sub) for sub in item.sublists)
        items.append(f"<li>{_serialize_item_text(item)}{nested}</li>")
    return f"<{tag}>{''.join(items)}</{tag}>"


def serialize_document(document: Document) -> str:
    parts = []
    for block in document.blocks:
        if isinstance(block, Heading):
            parts.append(f"<h{block.level}>{_serialize_inlines(block)}</h{block.level}>")
        elif isinstance(block, Paragraph):
            parts.append(f"<p>{_serialize_inlines(block)}</p>")
        else:
            parts.append(_serialize_list(block))
    return "".join(parts)


def normalize_markup(markup: Optional[str]) -> str:
    """One parse/serialize pass; stable under repetition."""
    return serialize_document(parse_markup(markup))


# ---------------------------------------------------------------------------
# Reference auto-linking
# ---------------------------------------------------------------------------

def link_references(document: Document) -> int:
    """Turn references found in plain text runs into VerseReference nodes.

    Returns the number of nodes created. Existing verse nodes and degraded
    runs are left alone.
    """
    created = 0
    for container in document.iter_inline_containers():
        rebuilt: List = []
        for inline in container.inlines:
            if not isinstance(inline, TextRun) or inline.degraded:
                rebuilt.append(inline)
                continue
            cursor = 0
            for found in scan_references(inline.text):
                if found.start > cursor:
                    rebuilt.append(TextRun(inline.text[cursor:found.start]))
                rebuilt.append(VerseReference.create(found.reference, label=inline.text[found.start:found.end]))
                cursor = found.end
                created += 1
            if cursor < len(inline.text):
                rebuilt.append(TextRun(inline.text[cursor:]))
        container.inlines = []
        container.extend(rebuilt)
    return created


def annotate_markup(markup: Optional[str]) -> str:
    """Normalise markup and link any untagged references in it."""
    document = parse_markup(markup)
    link_references(document)
    return serialize_document(document)
