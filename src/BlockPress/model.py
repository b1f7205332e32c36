from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

JATS = "jats"
BITS = "bits"
EXPORT_FORMATS = (JATS, BITS)

JOURNAL = "journal"
BOOK = "book"

MATTER_FRONT = "front"
MATTER_BODY = "body"
MATTER_BACK = "back"
MATTER_CHAPTER = "chapter"

KIND_ORDERED_LIST = "ordered_list"
KIND_UNORDERED_LIST = "unordered_list"
KIND_TABLE = "table"
KIND_IMAGE = "image"


@dataclass
class ListAttributes:
    style: str | None = None
    start: int | None = None
    reversed: bool = False

    def merged(self, override: "ListAttributes | None") -> "ListAttributes":
        """Field-wise overlay of ``override`` on top of these attributes."""
        if override is None:
            return ListAttributes(self.style, self.start, self.reversed)
        return ListAttributes(
            style=override.style if override.style is not None else self.style,
            start=override.start if override.start is not None else self.start,
            reversed=override.reversed or self.reversed,
        )


@dataclass
class Block:
    """One unit of document content as emitted by the editing surface."""

    id: int
    style: str
    content: str = ""
    level: int = 0
    list_attributes: ListAttributes | None = None
    # Set on fragments produced by pagination splitting.
    origin: Optional["Block"] = field(default=None, compare=False, repr=False)

    @property
    def is_fragment(self) -> bool:
        return self.origin is not None


@dataclass
class PageBreakMarker:
    """Synthetic break inserted by pagination; carries the page it ends."""

    page_number: int


Item = Union[Block, PageBreakMarker]


@dataclass
class VisualSettings:
    font_family: str = "Helvetica"
    font_size: float = 16.0
    line_height: float = 1.4
    bold: bool = False
    italic: bool = False
    space_before: float = 0.0
    space_after: float = 8.0
    text_align: str = "left"


@dataclass
class StyleDefinition:
    key: str
    tags: Dict[str, str]
    name: str = ""
    wrappers: Dict[str, str] = field(default_factory=dict)
    heading_level: int | None = None
    matter: str | None = None
    kind: str | None = None
    default_list_attributes: ListAttributes | None = None
    attributes: Dict[str, str] = field(default_factory=dict)
    page_break_before: bool = False
    visual: VisualSettings = field(default_factory=VisualSettings)

    def tag_for(self, fmt: str) -> str:
        return self.tags.get(fmt) or "p"

    def wrapper_for(self, fmt: str) -> str | None:
        return self.wrappers.get(fmt) or None

    @property
    def is_heading(self) -> bool:
        return self.heading_level is not None

    @property
    def is_list(self) -> bool:
        return self.kind in (KIND_ORDERED_LIST, KIND_UNORDERED_LIST)

    @property
    def is_table(self) -> bool:
        return self.kind == KIND_TABLE

    @property
    def is_image(self) -> bool:
        return self.kind == KIND_IMAGE

    @property
    def is_structured(self) -> bool:
        """Content is a JSON payload rather than inline markup."""
        return self.is_table or self.is_image


@dataclass
class TableCell:
    content: str = ""
    colspan: int = 1
    rowspan: int = 1
    is_hidden: bool = False


@dataclass
class TableData:
    caption: str
    rows: List[List[TableCell]]


@dataclass
class ImageData:
    src: str
    caption: str = ""
    source: str = ""
    width: float | None = None
    height: float | None = None


@dataclass
class Footnote:
    id: str
    content: str


@dataclass
class Author:
    first_name: str
    last_name: str


@dataclass
class JournalMetadata:
    title: str = ""
    subtitle: str | None = None
    authors: List[Author] = field(default_factory=list)
    journal_id: str | None = None
    issn: str | None = None


@dataclass
class BookMetadata(JournalMetadata):
    p_isbn: str | None = None
    e_isbn: str | None = None
    publication_date: str | None = None
    edition: str | None = None
    book_type: str | None = None
    cover_image_src: str | None = None
    description: str | None = None


@dataclass
class Document:
    blocks: List[Block]
    metadata: JournalMetadata | None = None
    document_type: str = JOURNAL


ISSUE_UNKNOWN_STYLE = "unknown_style"
ISSUE_MALFORMED_PAYLOAD = "malformed_payload"
ISSUE_DEGENERATE_GEOMETRY = "degenerate_geometry"
ISSUE_OVERSIZED_BLOCK = "oversized_block"
ISSUE_KEEP_WITH_NEXT = "keep_with_next_overflow"
ISSUE_MISSING_BODY_STYLE = "missing_body_style"


@dataclass
class Issue:
    """A recoverable problem reported alongside a result instead of raised."""

    kind: str
    message: str
    block_id: int | None = None
