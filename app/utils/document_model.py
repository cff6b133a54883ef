"""
Document tree for one study section.

Blocks: Heading, Paragraph, ListContainer (ordered/unordered) and ListItem.
Inlines: TextRun and the atomic VerseReference.

Every construction method checks the node grammar and raises StructureError
instead of building an invalid tree. Adjacent plain text runs are merged on
append, so two trees with the same content always compare equal.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union


class StructureError(ValueError):
    """A tree mutation would violate the node grammar."""


# Visible text of an invalid verse node that carries no label of its own
INVALID_VERSE_LABEL = "Invalid Verse"


# ---------------------------------------------------------------------------
# Inline nodes
# ---------------------------------------------------------------------------

@dataclass
class TextRun:
    text: str
    # Raw markup kept as text because a verse tag could not be parsed
    degraded: bool = False

    def plain_text(self) -> str:
        return self.text

    def to_dict(self) -> Dict[str, Any]:
        node: Dict[str, Any] = {"type": "text", "text": self.text}
        if self.degraded:
            node["degraded"] = True
        return node


@dataclass
class VerseReference:
    """Atomic scripture citation.

    ``reference`` is the canonical citation used for lookups; ``label`` is the
    visible text and is only stored when it differs from the reference.
    A node without a reference is invalid and renders as an error marker.
    """

    reference: Optional[str]
    label: Optional[str] = None

    def __post_init__(self):
        if self.label is not None and (not self.label.strip() or self.label == self.reference):
            self.label = None
        if not self.is_valid and self.label == INVALID_VERSE_LABEL:
            self.label = None

    @classmethod
    def create(cls, reference: str, label: Optional[str] = None) -> "VerseReference":
        _require_reference(reference)
        return cls(reference=reference, label=label)

    @property
    def is_valid(self) -> bool:
        return bool(self.reference and self.reference.strip())

    @property
    def display_label(self) -> str:
        if self.label is not None:
            return self.label
        return self.reference if self.is_valid else ""

    def set_reference(self, reference: str) -> None:
        _require_reference(reference)
        if self.label == reference:
            self.label = None
        self.reference = reference

    def plain_text(self) -> str:
        return self.display_label

    def to_dict(self) -> Dict[str, Any]:
        node: Dict[str, Any] = {"type": "bibleVerse", "attrs": {"reference": self.reference}}
        if self.label is not None:
            node["label"] = self.label
        if not self.is_valid:
            node["invalid"] = True
        return node


Inline = Union[TextRun, VerseReference]


def _require_reference(reference: str) -> None:
    if not isinstance(reference, str) or not reference.strip():
        raise StructureError("A verse reference needs a non-empty reference attribute")


# ---------------------------------------------------------------------------
# Block nodes
# ---------------------------------------------------------------------------

@dataclass
class InlineContainer:
    inlines: List[Inline] = field(default_factory=list)

    def append(self, inline: Inline) -> None:
        if not isinstance(inline, (TextRun, VerseReference)):
            raise StructureError(f"{type(inline).__name__} cannot be placed inside {type(self).__name__}")
        if isinstance(inline, TextRun):
            if not inline.text:
                return
            last = self.inlines[-1] if self.inlines else None
            if isinstance(last, TextRun) and not last.degraded and not inline.degraded:
                self.inlines[-1] = TextRun(last.text + inline.text)
                return
        self.inlines.append(inline)

    def extend(self, inlines: List[Inline]) -> None:
        for inline in inlines:
            self.append(inline)

    def plain_text(self) -> str:
        return "".join(inline.plain_text() for inline in self.inlines)

    def is_blank(self) -> bool:
        return not self.plain_text().strip() and not any(
            isinstance(inline, VerseReference) for inline in self.inlines
        )


@dataclass
class Paragraph(InlineContainer):
    def to_dict(self) -> Dict[str, Any]:
        return {"type": "paragraph", "content": [i.to_dict() for i in self.inlines]}


@dataclass
class Heading(InlineContainer):
    level: int = 3

    def __post_init__(self):
        if not 1 <= self.level <= 6:
            raise StructureError(f"Heading level must be 1-6, got {self.level}")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "heading", "attrs": {"level": self.level}, "content": [i.to_dict() for i in self.inlines]}


@dataclass
class ListItem(InlineContainer):
    sublists: List["ListContainer"] = field(default_factory=list)

    def append_list(self, container: "ListContainer") -> None:
        if not isinstance(container, ListContainer):
            raise StructureError(f"{type(container).__name__} cannot be nested inside a list item")
        self.sublists.append(container)

    def plain_text(self) -> str:
        parts = [super().plain_text()]
        parts.extend(sub.plain_text() for sub in self.sublists)
        return "\n".join(p for p in parts if p)

    def to_dict(self) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = [{"type": "paragraph", "content": [i.to_dict() for i in self.inlines]}]
        content.extend(sub.to_dict() for sub in self.sublists)
        return {"type": "listItem", "content": content}


@dataclass
class ListContainer:
    ordered: bool = False
    items: List[ListItem] = field(default_factory=list)

    def append(self, item: ListItem) -> None:
        if not isinstance(item, ListItem):
            raise StructureError(f"{type(item).__name__} cannot be placed directly inside a list")
        self.items.append(item)

    def plain_text(self) -> str:
        return "\n".join(item.plain_text() for item in self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "orderedList" if self.ordered else "bulletList",
            "content": [item.to_dict() for item in self.items],
        }


Block = Union[Heading, Paragraph, ListContainer]
ROOT_BLOCK_TYPES = (Heading, Paragraph, ListContainer)


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

@dataclass
class Document:
    blocks: List[Block] = field(default_factory=list)

    def append_block(self, block: Block) -> Block:
        if not isinstance(block, ROOT_BLOCK_TYPES):
            raise StructureError(f"{type(block).__name__} cannot be placed at the document root")
        self.blocks.append(block)
        return block

    def append_inline(self, block: InlineContainer, inline: Inline) -> None:
        if not isinstance(block, InlineContainer):
            raise StructureError(f"{type(block).__name__} cannot hold inline content")
        block.append(inline)

    def iter_inline_containers(self) -> Iterator[InlineContainer]:
        def walk_list(container: ListContainer) -> Iterator[InlineContainer]:
            for item in container.items:
                yield item
                for sub in item.sublists:
                    yield from walk_list(sub)

        for block in self.blocks:
            if isinstance(block, ListContainer):
                yield from walk_list(block)
            else:
                yield block

    def verse_references(self) -> List[VerseReference]:
        return [
            inline
            for container in self.iter_inline_containers()
            for inline in container.inlines
            if isinstance(inline, VerseReference)
        ]

    def replace_reference(self, index: int, reference: str) -> VerseReference:
        """Point the ``index``-th verse node (document order) at another reference."""
        nodes = self.verse_references()
        if not 0 <= index < len(nodes):
            raise StructureError(f"No verse reference at position {index}")
        nodes[index].set_reference(reference)
        return nodes[index]

    def plain_text(self) -> str:
        return "\n".join(block.plain_text() for block in self.blocks)

    def is_empty(self) -> bool:
        return not self.blocks

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "doc", "content": [block.to_dict() for block in self.blocks]}
