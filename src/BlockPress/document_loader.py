from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .errors import DocumentFormatError
from .model import BOOK, JOURNAL, Author, Block, BookMetadata, Document, JournalMetadata
from .styles import list_attributes_from_mapping

DOCUMENT_TYPES = (JOURNAL, BOOK)
PAYLOAD_KEYS = ("table", "image")

_JOURNAL_FIELDS = ("title", "subtitle", "journal_id", "issn")
_BOOK_FIELDS = _JOURNAL_FIELDS + (
    "p_isbn",
    "e_isbn",
    "publication_date",
    "edition",
    "book_type",
    "cover_image_src",
    "description",
)


def load_document(path: str | Path) -> Document:
    return parse_document(Path(path).read_text(encoding="utf-8"))


def parse_document(text: str) -> Document:
    """Parse a YAML (or JSON) document description into a ``Document``.

    The root is a mapping with an optional ``type`` (``journal`` or
    ``book``), optional ``metadata`` and a ``blocks`` list. Each block
    entry needs a ``style``; ``id``, ``content``, ``level`` and ``list``
    are optional. Tables and images may be written as ``table:`` /
    ``image:`` mappings instead of a JSON ``content`` string.
    """
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise DocumentFormatError(f"Document is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise DocumentFormatError("Document root must be a mapping with defined fields.")

    document_type = str(data.get("type") or JOURNAL)
    if document_type not in DOCUMENT_TYPES:
        raise DocumentFormatError(f"Unknown document type {document_type!r}; expected one of {DOCUMENT_TYPES}.")

    entries = data.get("blocks") or []
    if not isinstance(entries, list):
        raise DocumentFormatError("'blocks' must be a list.")

    return Document(
        blocks=_parse_blocks(entries),
        metadata=_parse_metadata(data.get("metadata"), document_type),
        document_type=document_type,
    )


def _parse_blocks(entries: List[Any]) -> List[Block]:
    blocks: List[Block] = []
    seen: set[int] = set()
    pending: List[int] = []
    for index, entry in enumerate(entries):
        if isinstance(entry, dict) and entry.get("page_break"):
            # Page breaks are recomputed by pagination.
            continue
        block = _block_from_entry(index, entry)
        if block.id is not None:
            if block.id in seen:
                raise DocumentFormatError(f"Duplicate block id {block.id}.")
            seen.add(block.id)
        else:
            pending.append(len(blocks))
        blocks.append(block)

    next_id = max(seen, default=0) + 1
    for position in pending:
        blocks[position].id = next_id
        next_id += 1
    return blocks


def _block_from_entry(index: int, entry: Any) -> Block:
    if not isinstance(entry, dict):
        raise DocumentFormatError(f"Block #{index} must be a mapping.")
    style = entry.get("style")
    if not style:
        raise DocumentFormatError(f"Block #{index} has no style.")

    raw_id = entry.get("id")
    try:
        block_id = int(raw_id) if raw_id is not None else None
        level = int(entry.get("level") or 0)
    except (TypeError, ValueError) as exc:
        raise DocumentFormatError(f"Block #{index}: {exc}") from exc

    try:
        list_attributes = list_attributes_from_mapping(entry.get("list"))
    except (AttributeError, TypeError, ValueError) as exc:
        raise DocumentFormatError(f"Block #{index}: invalid list attributes ({exc})") from exc

    return Block(
        id=block_id,
        style=str(style),
        content=_content(index, entry),
        level=level,
        list_attributes=list_attributes,
    )


def _content(index: int, entry: Dict[str, Any]) -> str:
    for key in PAYLOAD_KEYS:
        if key in entry:
            if "content" in entry:
                raise DocumentFormatError(f"Block #{index} has both 'content' and '{key}'.")
            if not isinstance(entry[key], dict):
                raise DocumentFormatError(f"Block #{index}: '{key}' must be a mapping.")
            return json.dumps(entry[key], ensure_ascii=False)
    content = entry.get("content")
    return "" if content is None else str(content)


def _parse_metadata(value: Any, document_type: str) -> JournalMetadata:
    if value is None:
        return BookMetadata() if document_type == BOOK else JournalMetadata()
    if not isinstance(value, dict):
        raise DocumentFormatError("'metadata' must be a mapping.")

    fields = _BOOK_FIELDS if document_type == BOOK else _JOURNAL_FIELDS
    kwargs: Dict[str, Any] = {}
    for name in fields:
        if value.get(name) is not None:
            kwargs[name] = str(value[name])
    kwargs["authors"] = [_author(item) for item in value.get("authors") or []]
    if document_type == BOOK:
        return BookMetadata(**kwargs)
    return JournalMetadata(**kwargs)


def _author(value: Any) -> Author:
    if isinstance(value, str):
        first, _, last = value.rpartition(" ")
        return Author(first_name=first, last_name=last)
    if not isinstance(value, dict):
        raise DocumentFormatError("Authors must be names or first_name/last_name mappings.")
    return Author(
        first_name=str(value.get("first_name") or ""),
        last_name=str(value.get("last_name") or ""),
    )
