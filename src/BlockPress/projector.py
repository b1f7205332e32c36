"""Structural projection of a flat block sequence into a JATS or BITS tree."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from .errors import PayloadError
from .inline_formatter import FootnoteRegistry, collect_footnotes, format_inline
from .list_tree import build_list_tree
from .model import (
    BITS,
    EXPORT_FORMATS,
    ISSUE_MALFORMED_PAYLOAD,
    ISSUE_UNKNOWN_STYLE,
    MATTER_BACK,
    MATTER_CHAPTER,
    MATTER_FRONT,
    Block,
    ImageData,
    Issue,
    StyleDefinition,
    TableCell,
    TableData,
)
from .styles import StyleRegistry
from .xml_tree import XmlNode, markup_node, text_node

logger = logging.getLogger(__name__)

ROOT_LEVEL = -1
DEFAULT_SECTION_TAG = "sec"
CHAPTER_TAG = "chapter"
IMAGE_DIR = "Images"


@dataclass
class ProjectionResult:
    nodes: List[XmlNode]
    footnotes: FootnoteRegistry
    attachments: Dict[str, str] = field(default_factory=dict)
    issues: List[Issue] = field(default_factory=list)


@dataclass
class ProjectedDocument:
    """Front, body and back trees of one export, sharing footnotes and attachments."""

    front: List[XmlNode]
    body: List[XmlNode]
    back: List[XmlNode]
    footnotes: FootnoteRegistry
    attachments: Dict[str, str]
    issues: List[Issue]


def project(
    blocks: Sequence[Block],
    fmt: str,
    styles: StyleRegistry,
    footnotes: FootnoteRegistry | None = None,
    attachments: Dict[str, str] | None = None,
) -> ProjectionResult:
    """Nest ``blocks`` into an element tree for ``fmt``.

    Blocks with unknown styles and structured blocks whose payload cannot be
    parsed are skipped and reported in ``issues``; the rest of the sequence
    is still projected.
    """
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unknown export format {fmt!r}; expected one of {EXPORT_FORMATS}.")
    if footnotes is None:
        footnotes = FootnoteRegistry()
        collect_document_footnotes(blocks, styles, footnotes)
    result = ProjectionResult(nodes=[], footnotes=footnotes, attachments=attachments if attachments is not None else {})

    root = XmlNode(tag="#root", level=ROOT_LEVEL)
    stack: List[XmlNode] = [root]

    i = 0
    while i < len(blocks):
        block = blocks[i]
        style = styles.lookup(block.style)
        if style is None:
            _skip(result, block, ISSUE_UNKNOWN_STYLE, f"unknown style {block.style!r}")
            i += 1
            continue
        top = stack[-1]

        if style.is_list:
            end = i + 1
            while end < len(blocks) and blocks[end].style == block.style:
                end += 1
            top.children.extend(build_list_tree(blocks[i:end], style, footnotes))
            i = end
            continue

        if style.is_structured:
            try:
                if style.is_table:
                    top.append(table_node(block, style, fmt, footnotes))
                else:
                    top.append(image_node(block, style, fmt, result.attachments))
            except PayloadError as exc:
                _skip(result, block, ISSUE_MALFORMED_PAYLOAD, exc.reason)
            i += 1
            continue

        element = markup_node(style.tag_for(fmt), format_inline(block.content, footnotes), style.attributes)
        wrapper = style.wrapper_for(fmt)

        if style.is_heading:
            while len(stack) > 1 and style.heading_level <= stack[-1].level:
                stack.pop()
            section = XmlNode(tag=_section_tag(style, fmt), level=style.heading_level)
            section.append(element)
            stack[-1].append(section)
            stack.append(section)
        elif wrapper:
            last = top.last_child
            if last is not None and _is_open_wrapper(last, wrapper):
                last.append(element)
            else:
                top.append(XmlNode(tag=wrapper, children=[element]))
        else:
            top.append(element)
        i += 1

    result.nodes = root.children
    return result


def project_document(blocks: Sequence[Block], fmt: str, styles: StyleRegistry) -> ProjectedDocument:
    """Partition by matter class and project each part for ``fmt``.

    Footnotes are numbered over the whole flat sequence before any part is
    projected, so numbering follows reading order rather than part order.
    """
    footnotes = FootnoteRegistry()
    collect_document_footnotes(blocks, styles, footnotes)
    attachments: Dict[str, str] = {}
    issues: List[Issue] = []

    def run(part: Sequence[Block]) -> List[XmlNode]:
        result = project(part, fmt, styles, footnotes, attachments)
        issues.extend(result.issues)
        return result.nodes

    front, body, back = partition_matter(blocks, styles)
    front_nodes = run(front)
    if fmt == BITS:
        prefix, chapters = group_chapters(body, styles)
        body_nodes = run(prefix)
        for chapter in chapters:
            body_nodes.extend(run(chapter))
    else:
        body_nodes = run(body)
    back_nodes = run(back)
    return ProjectedDocument(front_nodes, body_nodes, back_nodes, footnotes, attachments, issues)


def partition_matter(
    blocks: Sequence[Block], styles: StyleRegistry
) -> Tuple[List[Block], List[Block], List[Block]]:
    """Split into front, body and back matter, keeping the original order in each."""
    front: List[Block] = []
    body: List[Block] = []
    back: List[Block] = []
    for block in blocks:
        style = styles.lookup(block.style)
        matter = style.matter if style is not None else None
        if matter == MATTER_FRONT:
            front.append(block)
        elif matter == MATTER_BACK:
            back.append(block)
        else:
            body.append(block)
    return front, body, back


def group_chapters(body: Sequence[Block], styles: StyleRegistry) -> Tuple[List[Block], List[List[Block]]]:
    """Blocks before the first chapter heading, then one group per chapter."""
    prefix: List[Block] = []
    chapters: List[List[Block]] = []
    for block in body:
        style = styles.lookup(block.style)
        if style is not None and style.matter == MATTER_CHAPTER:
            chapters.append([block])
        elif chapters:
            chapters[-1].append(block)
        else:
            prefix.append(block)
    return prefix, chapters


def collect_document_footnotes(blocks: Sequence[Block], styles: StyleRegistry, footnotes: FootnoteRegistry) -> None:
    """Register footnotes in flat reading order, exactly as projection will meet them."""
    for block in blocks:
        style = styles.lookup(block.style)
        if style is None or style.is_image:
            continue
        if style.is_table:
            try:
                data = parse_table_data(block)
            except PayloadError:
                continue
            collect_footnotes(data.caption, footnotes)
            for row in data.rows:
                for cell in row:
                    if not cell.is_hidden:
                        collect_footnotes(cell.content, footnotes)
        else:
            collect_footnotes(block.content, footnotes)


# Structured payloads ---------------------------------------------------------


def parse_table_data(block: Block) -> TableData:
    payload = _load_payload(block)
    rows = payload.get("rows", [])
    if not isinstance(rows, list) or not all(isinstance(row, list) for row in rows):
        raise PayloadError(block.id, "table rows must be a list of lists")
    try:
        parsed = [[_table_cell(cell) for cell in row] for row in rows]
    except (TypeError, ValueError, AttributeError) as exc:
        raise PayloadError(block.id, f"invalid table cell: {exc}") from exc
    return TableData(caption=str(payload.get("caption") or ""), rows=parsed)


def parse_image_data(block: Block) -> ImageData:
    payload = _load_payload(block)
    src = payload.get("src")
    if not isinstance(src, str) or not src:
        raise PayloadError(block.id, "image payload has no src")
    try:
        return ImageData(
            src=src,
            caption=str(payload.get("caption") or ""),
            source=str(payload.get("source") or ""),
            width=_optional_float(payload.get("width")),
            height=_optional_float(payload.get("height")),
        )
    except (TypeError, ValueError) as exc:
        raise PayloadError(block.id, f"invalid image size: {exc}") from exc


def table_node(block: Block, style: StyleDefinition, fmt: str, footnotes: FootnoteRegistry) -> XmlNode:
    data = parse_table_data(block)
    wrap = XmlNode(tag=style.tag_for(fmt), attributes=dict(style.attributes))
    caption = wrap.append(XmlNode(tag="caption"))
    caption.append(markup_node("p", format_inline(data.caption, footnotes)))

    table = wrap.append(XmlNode(tag="table"))
    if data.rows:
        thead = table.append(XmlNode(tag="thead"))
        thead.append(_table_row(data.rows[0], "th", footnotes))
    if len(data.rows) > 1:
        tbody = table.append(XmlNode(tag="tbody"))
        for row in data.rows[1:]:
            tbody.append(_table_row(row, "td", footnotes))
    return wrap


def image_node(block: Block, style: StyleDefinition, fmt: str, attachments: Dict[str, str]) -> XmlNode:
    data = parse_image_data(block)
    href = data.src
    embedded = split_data_uri(data.src)
    if embedded is not None:
        extension, payload = embedded
        filename = f"image-{block.id}.{extension}"
        attachments[filename] = payload
        href = f"{IMAGE_DIR}/{filename}"

    fig = XmlNode(tag=style.tag_for(fmt), attributes=dict(style.attributes))
    fig.append(XmlNode(tag="graphic", attributes={"xlink:href": href}))
    caption = fig.append(XmlNode(tag="caption"))
    caption.append(text_node("p", data.caption))
    if data.source:
        fig.append(text_node("attrib", data.source))
    return fig


def split_data_uri(src: str) -> Tuple[str, str] | None:
    """``(extension, base64 payload)`` of a base64 data URI, else None."""
    if not src.startswith("data:") or ";base64," not in src:
        return None
    header, payload = src.split(",", 1)
    mime = header[len("data:") : header.index(";")]
    subtype = mime.split("/", 1)[1] if "/" in mime else ""
    extension = subtype.split("+", 1)[0] or "png"
    return extension, payload


def _table_row(cells: Sequence[TableCell], cell_tag: str, footnotes: FootnoteRegistry) -> XmlNode:
    row = XmlNode(tag="tr")
    for cell in cells:
        if cell.is_hidden:
            continue
        attrs: Dict[str, str] = {}
        if cell.colspan > 1:
            attrs["colspan"] = str(cell.colspan)
        if cell.rowspan > 1:
            attrs["rowspan"] = str(cell.rowspan)
        node = row.append(XmlNode(tag=cell_tag, attributes=attrs))
        node.append(markup_node("p", format_inline(cell.content, footnotes)))
    return row


def _table_cell(cell: Any) -> TableCell:
    if isinstance(cell, str):
        return TableCell(content=cell)
    return TableCell(
        content=str(cell.get("content") or ""),
        colspan=int(cell.get("colspan") or 1),
        rowspan=int(cell.get("rowspan") or 1),
        is_hidden=bool(cell.get("isHidden", cell.get("is_hidden", False))),
    )


def _load_payload(block: Block) -> Dict[str, Any]:
    try:
        payload = json.loads(block.content)
    except (TypeError, ValueError) as exc:
        raise PayloadError(block.id, f"invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise PayloadError(block.id, "payload must be a JSON object")
    return payload


def _optional_float(value: Any) -> float | None:
    return float(value) if value not in (None, "") else None


def _section_tag(style: StyleDefinition, fmt: str) -> str:
    if fmt == BITS and style.matter == MATTER_CHAPTER:
        return CHAPTER_TAG
    return style.wrapper_for(fmt) or DEFAULT_SECTION_TAG


def _is_open_wrapper(node: XmlNode, tag: str) -> bool:
    # Sections carry a level; run-length wrappers never do.
    return node.tag == tag and node.level is None and not node.content and bool(node.children)


def _skip(result: ProjectionResult, block: Block, kind: str, reason: str) -> None:
    logger.warning("Skipping block %s: %s", block.id, reason)
    result.issues.append(Issue(kind=kind, message=reason, block_id=block.id))
