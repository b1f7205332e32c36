import json

import pytest

from BlockPress.layout import ReportLabMeasurer, font_name, reportlab_markup
from BlockPress.model import Block, VisualSettings
from BlockPress.page_format import geometry_from_settings
from BlockPress.pagination import paginate
from BlockPress.styles import default_registry

LONG = " ".join(["measured"] * 120)


@pytest.fixture
def measurer():
    return ReportLabMeasurer(default_registry(), content_width=600)


def test_longer_text_is_taller(measurer):
    short = measurer.block_height(Block(id=1, style="body", content="short"))
    long = measurer.block_height(Block(id=2, style="body", content=LONG))
    assert 0 < short < long


def test_empty_block_keeps_one_line(measurer):
    assert measurer.block_height(Block(id=1, style="body", content="")) > 0


def test_vertical_margins_collapse(measurer):
    a = Block(id=1, style="body", content="first")
    b = Block(id=2, style="body", content="second")
    body = default_registry().lookup("body").visual
    expected = measurer.block_height(a) + measurer.block_height(b) + max(body.space_after, body.space_before)
    assert measurer([a, b]) == pytest.approx(expected + body.space_before)
    assert measurer([]) == 0


def test_list_indent_narrows_the_line(measurer):
    flat = measurer.block_height(Block(id=1, style="unordered_list_item", content=LONG, level=0))
    deep = measurer.block_height(Block(id=2, style="unordered_list_item", content=LONG, level=6))
    assert deep >= flat


def test_image_scales_to_content_width(measurer):
    payload = {"src": "plot.png", "width": 1200, "height": 400}
    assert measurer.block_height(Block(id=1, style="image", content=json.dumps(payload))) == pytest.approx(200)
    no_size = Block(id=2, style="image", content=json.dumps({"src": "plot.png"}))
    assert measurer.block_height(no_size) == pytest.approx(measurer.default_image_height)


def test_table_with_spans_has_height(measurer):
    payload = {
        "caption": "Caption",
        "rows": [
            [{"content": "Head", "colspan": 2}, {"content": "", "isHidden": True}],
            [{"content": "a"}, {"content": "b"}],
        ],
    }
    table = Block(id=1, style="table", content=json.dumps(payload))
    caption_only = Block(id=2, style="table", content=json.dumps({"caption": "Caption", "rows": []}))
    assert measurer.block_height(table) > measurer.block_height(caption_only) > 0


def test_markup_and_fonts():
    assert reportlab_markup("<strong>a</strong> & b") == "<b>a</b> &amp; b"
    assert font_name(VisualSettings(bold=True, italic=True)) == "Helvetica-BoldOblique"
    assert font_name(VisualSettings(font_family="Times New Roman")) == "Times-Roman"


def test_paginates_a_long_document_on_a4():
    styles = default_registry()
    geometry = geometry_from_settings()
    measurer = ReportLabMeasurer(styles, geometry.content_width)
    blocks = [Block(id=i, style="body", content=LONG) for i in range(1, 16)]
    result = paginate(blocks, geometry, measurer, styles=styles)
    assert result.page_count > 1
    page = []
    for item in result.blocks + [None]:
        if isinstance(item, Block):
            page.append(item)
        else:
            assert measurer(page) <= geometry.content_height
            page = []
