"""Height oracle for pagination, built on reportlab flowables.

Blocks are laid out at the page's content width with a ``ParagraphStyle``
derived from each style's visual settings. Vertical spacing between
neighbouring blocks collapses to the larger of the two margins, the way the
editing surface renders it.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Tuple
from xml.sax.saxutils import escape

from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY, TA_LEFT, TA_RIGHT
from reportlab.lib.styles import ParagraphStyle
from reportlab.platypus import Paragraph, Table, TableStyle

from .errors import PayloadError
from .inline_formatter import format_inline, iter_runs
from .model import Block, StyleDefinition, VisualSettings
from .page_format import PT_PER_PX, px_to_pt
from .projector import parse_image_data, parse_table_data
from .styles import StyleRegistry

logger = logging.getLogger(__name__)

UNBOUNDED_PT = 1e9
DEFAULT_LIST_INDENT_PX = 24.0
DEFAULT_IMAGE_HEIGHT_PX = 200.0

_ALIGNMENTS = {"left": TA_LEFT, "center": TA_CENTER, "right": TA_RIGHT, "justify": TA_JUSTIFY}
_FONT_FAMILIES = {
    "helvetica": ("Helvetica", "Helvetica-Bold", "Helvetica-Oblique", "Helvetica-BoldOblique"),
    "times": ("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"),
    "courier": ("Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique"),
}


class ReportLabMeasurer:
    """Callable ``measure_height`` oracle: blocks in, laid-out height in px out."""

    def __init__(
        self,
        styles: StyleRegistry,
        content_width: float,
        list_indent: float = DEFAULT_LIST_INDENT_PX,
        default_image_height: float = DEFAULT_IMAGE_HEIGHT_PX,
    ):
        self.styles = styles
        self.content_width = content_width
        self.list_indent = list_indent
        self.default_image_height = default_image_height
        self._paragraph_styles: Dict[str, ParagraphStyle] = {}
        self._heights: Dict[Tuple[str, str, int], float] = {}

    def __call__(self, blocks: Sequence[Block]) -> float:
        total = 0.0
        previous_after: float | None = None
        for block in blocks:
            visual = self._visual(block)
            if previous_after is None:
                total += visual.space_before
            else:
                total += max(previous_after, visual.space_before)
            total += self.block_height(block)
            previous_after = visual.space_after
        return total

    def block_height(self, block: Block) -> float:
        """Height of one block's own box in px, without its vertical margins."""
        key = (block.style, block.content, block.level)
        if key not in self._heights:
            self._heights[key] = self._measure_block(block)
        return self._heights[key]

    def _measure_block(self, block: Block) -> float:
        style = self.styles.lookup(block.style)
        visual = style.visual if style is not None else VisualSettings()
        try:
            if style is not None and style.is_table:
                return self._table_height(block, visual)
            if style is not None and style.is_image:
                return self._image_height(block, visual)
        except PayloadError as exc:
            logger.debug("Measuring %s as empty: %s", block.id, exc.reason)
            return 0.0
        indent = self.list_indent * max(block.level, 0) if style is not None and style.is_list else 0.0
        return self._text_height(block.content, visual, self.content_width - indent)

    def _text_height(self, markup: str, visual: VisualSettings, width: float) -> float:
        paragraph_style = self._paragraph_style(visual)
        text = reportlab_markup(markup)
        if not text.strip():
            return paragraph_style.leading / PT_PER_PX
        paragraph = Paragraph(text, paragraph_style)
        _, height = paragraph.wrap(px_to_pt(max(width, 1.0)), UNBOUNDED_PT)
        return height / PT_PER_PX

    def _table_height(self, block: Block, visual: VisualSettings) -> float:
        data = parse_table_data(block)
        height = self._text_height(data.caption, visual, self.content_width) if data.caption else 0.0
        if not data.rows:
            return height
        columns = max(len(row) for row in data.rows) or 1
        paragraph_style = self._paragraph_style(visual)
        cells: List[List[object]] = []
        commands: List[tuple] = []
        for r, row in enumerate(data.rows):
            rendered: List[object] = []
            for c, cell in enumerate(row):
                if cell.is_hidden or not cell.content:
                    rendered.append("")
                else:
                    rendered.append(Paragraph(reportlab_markup(cell.content), paragraph_style))
                if not cell.is_hidden and (cell.colspan > 1 or cell.rowspan > 1):
                    end_c = min(c + cell.colspan - 1, columns - 1)
                    end_r = min(r + cell.rowspan - 1, len(data.rows) - 1)
                    commands.append(("SPAN", (c, r), (end_c, end_r)))
            rendered.extend([""] * (columns - len(rendered)))
            cells.append(rendered)
        width_pt = px_to_pt(self.content_width)
        table = Table(cells, colWidths=[width_pt / columns] * columns, style=TableStyle(commands))
        _, table_height = table.wrap(width_pt, UNBOUNDED_PT)
        return height + table_height / PT_PER_PX

    def _image_height(self, block: Block, visual: VisualSettings) -> float:
        data = parse_image_data(block)
        if data.height:
            scale = 1.0
            if data.width and data.width > self.content_width:
                scale = self.content_width / data.width
            height = data.height * scale
        else:
            height = self.default_image_height
        if data.caption:
            height += self._text_height(data.caption, visual, self.content_width)
        return height

    def _visual(self, block: Block) -> VisualSettings:
        style: StyleDefinition | None = self.styles.lookup(block.style)
        return style.visual if style is not None else VisualSettings()

    def _paragraph_style(self, visual: VisualSettings) -> ParagraphStyle:
        cache_key = repr(visual)
        if cache_key not in self._paragraph_styles:
            font_size = px_to_pt(visual.font_size)
            self._paragraph_styles[cache_key] = ParagraphStyle(
                name=f"bp-{len(self._paragraph_styles)}",
                fontName=font_name(visual),
                fontSize=font_size,
                leading=font_size * visual.line_height,
                alignment=_ALIGNMENTS.get(visual.text_align, TA_LEFT),
                spaceBefore=0,
                spaceAfter=0,
            )
        return self._paragraph_styles[cache_key]


def font_name(visual: VisualSettings) -> str:
    """Map a family name onto one of reportlab's built-in fonts."""
    family = visual.font_family.lower()
    if "times" in family or "serif" in family and "sans" not in family:
        faces = _FONT_FAMILIES["times"]
    elif "courier" in family or "mono" in family:
        faces = _FONT_FAMILIES["courier"]
    else:
        faces = _FONT_FAMILIES["helvetica"]
    return faces[(1 if visual.bold else 0) + (2 if visual.italic else 0)]


def reportlab_markup(markup: str) -> str:
    """Inline markup as reportlab paragraph markup (``<b>``, ``<i>``, ``<super>``)."""
    parts: List[str] = []
    for run in iter_runs(format_inline(markup)):
        text = escape(run.text)
        if run.superscript:
            text = f"<super>{text}</super>"
        if run.italic:
            text = f"<i>{text}</i>"
        if run.bold:
            text = f"<b>{text}</b>"
        parts.append(text)
    return "".join(parts)
