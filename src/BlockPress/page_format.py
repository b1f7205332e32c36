from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from .errors import InvalidGeometryError
from .model import VisualSettings

CSS_PX_PER_INCH = 96.0
PT_PER_PX = 0.75

A4_WIDTH = "210mm"
A4_HEIGHT = "297mm"
DEFAULT_MARGIN = "2cm"

DEFAULT_LAYOUT = {
    "paper_width": A4_WIDTH,
    "paper_height": A4_HEIGHT,
    "margin_top": DEFAULT_MARGIN,
    "margin_right": DEFAULT_MARGIN,
    "margin_bottom": DEFAULT_MARGIN,
    "margin_left": DEFAULT_MARGIN,
}

_PX_PER_UNIT = {
    "px": 1.0,
    "in": CSS_PX_PER_INCH,
    "cm": CSS_PX_PER_INCH / 2.54,
    "mm": CSS_PX_PER_INCH / 25.4,
    "pt": CSS_PX_PER_INCH / 72.0,
    "pc": CSS_PX_PER_INCH / 6.0,
}
_LENGTH_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*([a-z]*)\s*$")

_ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
    "justify": WD_ALIGN_PARAGRAPH.JUSTIFY,
}


@dataclass
class PageGeometry:
    """Page size and margins in CSS pixels."""

    width: float
    height: float
    margin_top: float = 0.0
    margin_right: float = 0.0
    margin_bottom: float = 0.0
    margin_left: float = 0.0

    def validate(self) -> None:
        for name in ("width", "height", "margin_top", "margin_right", "margin_bottom", "margin_left"):
            if getattr(self, name) < 0:
                raise InvalidGeometryError(f"Page {name.replace('_', ' ')} must not be negative.")

    @property
    def content_height(self) -> float:
        return self.height - self.margin_top - self.margin_bottom

    @property
    def content_width(self) -> float:
        return self.width - self.margin_left - self.margin_right


def to_px(value: Any) -> float:
    """Convert a CSS length such as ``"297mm"`` (or a bare number of px) to px."""
    if isinstance(value, (int, float)):
        return float(value)
    match = _LENGTH_RE.match(str(value))
    if match is None:
        raise InvalidGeometryError(f"Cannot parse length {value!r}.")
    number, unit = match.groups()
    factor = _PX_PER_UNIT.get(unit or "px")
    if factor is None:
        raise InvalidGeometryError(f"Unsupported unit {unit!r} in {value!r}.")
    return float(number) * factor


def px_to_pt(px: float) -> float:
    return px * PT_PER_PX


def geometry_from_settings(settings: Mapping[str, Any] | None = None) -> PageGeometry:
    merged = dict(DEFAULT_LAYOUT)
    merged.update({key: value for key, value in (settings or {}).items() if value is not None})
    geometry = PageGeometry(
        width=to_px(merged["paper_width"]),
        height=to_px(merged["paper_height"]),
        margin_top=to_px(merged["margin_top"]),
        margin_right=to_px(merged["margin_right"]),
        margin_bottom=to_px(merged["margin_bottom"]),
        margin_left=to_px(merged["margin_left"]),
    )
    geometry.validate()
    return geometry


def load_layout_settings(path: str | Path | None = None) -> PageGeometry:
    """Read ``paper_*`` / ``margin_*`` lengths from YAML; A4 with 2cm margins by default."""
    if path is None:
        return geometry_from_settings()
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise InvalidGeometryError("Layout file must be a mapping of lengths.")
    unknown = sorted(set(data) - set(DEFAULT_LAYOUT))
    if unknown:
        raise InvalidGeometryError(f"Unknown layout settings: {', '.join(unknown)}.")
    return geometry_from_settings(data)


def apply_page_layout(doc, geometry: PageGeometry) -> None:
    """Apply page size and margins to the first DOCX section."""
    section = doc.sections[0]
    section.page_width = Pt(px_to_pt(geometry.width))
    section.page_height = Pt(px_to_pt(geometry.height))
    section.top_margin = Pt(px_to_pt(geometry.margin_top))
    section.right_margin = Pt(px_to_pt(geometry.margin_right))
    section.bottom_margin = Pt(px_to_pt(geometry.margin_bottom))
    section.left_margin = Pt(px_to_pt(geometry.margin_left))


def apply_paragraph_format(paragraph, visual: VisualSettings, indent_px: float = 0.0) -> None:
    fmt = paragraph.paragraph_format
    paragraph.alignment = _ALIGNMENTS.get(visual.text_align, WD_ALIGN_PARAGRAPH.LEFT)
    fmt.space_before = Pt(px_to_pt(visual.space_before))
    fmt.space_after = Pt(px_to_pt(visual.space_after))
    fmt.line_spacing = visual.line_height
    if indent_px:
        fmt.left_indent = Pt(px_to_pt(indent_px))


def set_run_font(run, visual: VisualSettings, bold: bool = False, italic: bool = False, superscript: bool = False) -> None:
    run.font.name = visual.font_family
    run.font.size = Pt(px_to_pt(visual.font_size))
    run.bold = bold or visual.bold
    run.italic = italic or visual.italic
    if superscript:
        run.font.superscript = True
