from __future__ import annotations

import base64
import binascii
import dataclasses
import logging
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import List, Sequence

from docx import Document as DocxDocument
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.image.exceptions import InvalidImageStreamError, UnexpectedEndOfFileError, UnrecognizedImageError
from docx.shared import Pt

from .errors import PayloadError
from .inline_formatter import FootnoteRegistry, format_inline, iter_runs
from .model import (
    ISSUE_MALFORMED_PAYLOAD,
    ISSUE_UNKNOWN_STYLE,
    KIND_ORDERED_LIST,
    Block,
    Issue,
    Item,
    ListAttributes,
    PageBreakMarker,
    StyleDefinition,
    VisualSettings,
)
from .page_format import (
    PageGeometry,
    apply_page_layout,
    apply_paragraph_format,
    geometry_from_settings,
    px_to_pt,
    set_run_font,
)
from .pagination import strip_markers
from .projector import collect_document_footnotes, parse_image_data, parse_table_data, split_data_uri
from .styles import StyleRegistry, default_registry

logger = logging.getLogger(__name__)

LIST_INDENT_PX = 24.0
BULLETS = {"disc": "•", "circle": "◦", "square": "▪", "none": ""}
ROMAN_NUMERALS = [
    (1000, "m"), (900, "cm"), (500, "d"), (400, "cd"), (100, "c"), (90, "xc"),
    (50, "l"), (40, "xl"), (10, "x"), (9, "ix"), (5, "v"), (4, "iv"), (1, "i"),
]


@dataclass
class RenderState:
    styles: StyleRegistry
    footnotes: FootnoteRegistry
    content_width: float
    asset_root: Path | None = None
    list_style: str | None = None
    list_counters: list[int] = field(default_factory=list)
    last_list_block: int | None = None
    issues: List[Issue] = field(default_factory=list)


def render_document(
    items: Sequence[Item],
    output_path: str | Path,
    styles: StyleRegistry | None = None,
    geometry: PageGeometry | None = None,
    asset_root: Path | None = None,
    footnotes: bool = True,
) -> List[Issue]:
    """Write a paginated block sequence to DOCX, one explicit page break per marker."""
    output_path = Path(output_path)
    styles = styles if styles is not None else default_registry()
    geometry = geometry if geometry is not None else geometry_from_settings()

    registry = FootnoteRegistry()
    collect_document_footnotes(strip_markers(items), styles, registry)
    state = RenderState(
        styles=styles,
        footnotes=registry,
        content_width=geometry.content_width,
        asset_root=asset_root,
    )
    docx = DocxDocument()
    apply_page_layout(docx, geometry)

    for item in items:
        if isinstance(item, PageBreakMarker):
            docx.add_page_break()
        else:
            _dispatch_block(docx, item, state)

    if footnotes and len(registry):
        _render_footnotes(docx, registry)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    docx.save(output_path)
    return state.issues


def _dispatch_block(docx: DocxDocument, block: Block, state: RenderState) -> None:
    style = state.styles.lookup(block.style)
    if style is None:
        _report(state, ISSUE_UNKNOWN_STYLE, f"unknown style {block.style!r}; rendered as plain text", block.id)
        _reset_list(state)
        _render_paragraph(docx, block.content, VisualSettings(), state)
        return

    if style.is_list:
        _render_list_item(docx, block, style, state)
        return
    _reset_list(state)

    try:
        if style.is_table:
            _render_table_block(docx, block, style, state)
        elif style.is_image:
            _render_image_block(docx, block, style, state)
        elif style.is_heading:
            _render_heading(docx, block, style, state)
        else:
            _render_paragraph(docx, block.content, style.visual, state)
    except PayloadError as exc:
        _report(state, ISSUE_MALFORMED_PAYLOAD, exc.reason, block.id)


def _render_heading(docx: DocxDocument, block: Block, style: StyleDefinition, state: RenderState) -> None:
    level = min(max(style.heading_level or 0, 0), 9)
    paragraph = docx.add_heading(level=level)
    _add_runs(paragraph, format_inline(block.content, state.footnotes), style.visual)
    apply_paragraph_format(paragraph, style.visual)


def _render_paragraph(docx: DocxDocument, markup: str, visual: VisualSettings, state: RenderState, prefix: str = "", indent_px: float = 0.0):
    paragraph = docx.add_paragraph()
    if prefix:
        set_run_font(paragraph.add_run(prefix), visual)
    _add_runs(paragraph, format_inline(markup, state.footnotes), visual)
    apply_paragraph_format(paragraph, visual, indent_px=indent_px)
    return paragraph


def _add_runs(paragraph, neutral: str, visual: VisualSettings) -> None:
    for piece in iter_runs(neutral):
        run = paragraph.add_run(piece.text)
        set_run_font(run, visual, bold=piece.bold, italic=piece.italic, superscript=piece.superscript)


def _render_list_item(docx: DocxDocument, block: Block, style: StyleDefinition, state: RenderState) -> None:
    level = max(block.level, 0)
    if block.is_fragment and state.last_list_block == block.id:
        # Continuation of an item split across pages: no second marker.
        _render_paragraph(docx, block.content, style.visual, state, indent_px=LIST_INDENT_PX * (level + 1))
        return

    if state.list_style != style.key:
        _reset_list(state)
        state.list_style = style.key
    del state.list_counters[level + 1 :]
    while len(state.list_counters) <= level:
        state.list_counters.append(0)
    state.list_counters[level] += 1

    attrs = (style.default_list_attributes or ListAttributes()).merged(block.list_attributes)
    ordered = style.kind == KIND_ORDERED_LIST
    start = attrs.start if attrs.start is not None else 1
    offset = state.list_counters[level] - 1
    number = start - offset if attrs.reversed else start + offset
    marker = list_marker(attrs.style, number, ordered)
    _render_paragraph(
        docx,
        block.content,
        style.visual,
        state,
        prefix=f"{marker}\t" if marker else "",
        indent_px=LIST_INDENT_PX * (level + 1),
    )
    state.last_list_block = block.id


def list_marker(list_style: str | None, number: int, ordered: bool) -> str:
    """Visible marker for one list item, e.g. ``"3."``, ``"c."`` or ``"•"``."""
    if not ordered or list_style in BULLETS:
        return BULLETS.get(list_style or "disc", BULLETS["disc"])
    if list_style in ("lower-alpha", "upper-alpha") and number > 0:
        label = _alpha(number)
    elif list_style in ("lower-roman", "upper-roman") and number > 0:
        label = _roman(number)
    else:
        label = str(number)
    if list_style and list_style.startswith("upper-"):
        label = label.upper()
    return f"{label}."


def _alpha(number: int) -> str:
    letters = ""
    while number > 0:
        number, rest = divmod(number - 1, 26)
        letters = chr(ord("a") + rest) + letters
    return letters


def _roman(number: int) -> str:
    parts = []
    for value, numeral in ROMAN_NUMERALS:
        count, number = divmod(number, value)
        parts.append(numeral * count)
    return "".join(parts)


def _reset_list(state: RenderState) -> None:
    state.list_style = None
    state.list_counters = []
    state.last_list_block = None


def _render_table_block(docx: DocxDocument, block: Block, style: StyleDefinition, state: RenderState) -> None:
    data = parse_table_data(block)
    if data.caption:
        _render_paragraph(docx, data.caption, style.visual, state)
    if not data.rows:
        return

    row_count = len(data.rows)
    col_count = max(len(row) for row in data.rows) or 1
    table = docx.add_table(rows=row_count, cols=col_count)
    table.style = "Table Grid"
    table.alignment = WD_TABLE_ALIGNMENT.LEFT

    for r_idx, row in enumerate(data.rows):
        for c_idx, cell_data in enumerate(row):
            if cell_data.is_hidden:
                continue
            cell = table.cell(r_idx, c_idx)
            if cell_data.colspan > 1 or cell_data.rowspan > 1:
                corner = table.cell(
                    min(r_idx + cell_data.rowspan - 1, row_count - 1),
                    min(c_idx + cell_data.colspan - 1, col_count - 1),
                )
                cell = cell.merge(corner)
            paragraph = cell.paragraphs[0]
            visual = style.visual
            if r_idx == 0:
                visual = dataclasses.replace(visual, bold=True)
            _add_runs(paragraph, format_inline(cell_data.content, state.footnotes), visual)


def _render_image_block(docx: DocxDocument, block: Block, style: StyleDefinition, state: RenderState) -> None:
    data = parse_image_data(block)
    paragraph = docx.add_paragraph()
    paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
    run = paragraph.add_run()

    width = None
    if data.width:
        width = Pt(px_to_pt(min(data.width, state.content_width)))
    embedded = split_data_uri(data.src)
    try:
        if embedded is not None:
            _, payload = embedded
            run.add_picture(BytesIO(base64.b64decode(payload, validate=True)), width=width)
        else:
            run.add_picture(str(_image_path(data.src, state.asset_root)), width=width)
    except (
        FileNotFoundError,
        InvalidImageStreamError,
        UnexpectedEndOfFileError,
        UnrecognizedImageError,
        binascii.Error,
    ) as exc:
        label = f"image-{block.id}" if embedded is not None else data.src
        logger.warning("Cannot embed image for block %s: %s", block.id, exc)
        run.add_text(f"[Missing image: {label}]")
    set_run_font(run, style.visual)

    if data.caption:
        caption = _render_paragraph(docx, data.caption, style.visual, state)
        caption.alignment = WD_ALIGN_PARAGRAPH.CENTER
    if data.source:
        source = docx.add_paragraph()
        set_run_font(source.add_run(data.source), style.visual, italic=True)
        source.alignment = WD_ALIGN_PARAGRAPH.CENTER


def _image_path(src: str, asset_root: Path | None) -> Path:
    image_path = Path(src)
    if asset_root:
        candidate = asset_root / src
        if candidate.exists():
            image_path = candidate
    return image_path


def _render_footnotes(docx: DocxDocument, footnotes: FootnoteRegistry) -> None:
    visual = VisualSettings(font_size=12.0, space_after=4.0)
    docx.add_paragraph()
    for number, note in enumerate(footnotes, start=1):
        paragraph = docx.add_paragraph()
        set_run_font(paragraph.add_run(str(number)), visual, superscript=True)
        set_run_font(paragraph.add_run(f" {note.content}"), visual)
        apply_paragraph_format(paragraph, visual)


def _report(state: RenderState, kind: str, message: str, block_id: int) -> None:
    logger.warning("Block %s: %s", block_id, message)
    state.issues.append(Issue(kind=kind, message=message, block_id=block_id))
