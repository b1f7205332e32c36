import json

import pytest

from BlockPress.errors import InvalidGeometryError
from BlockPress.model import (
    ISSUE_DEGENERATE_GEOMETRY,
    ISSUE_KEEP_WITH_NEXT,
    ISSUE_MISSING_BODY_STYLE,
    ISSUE_OVERSIZED_BLOCK,
    Block,
    PageBreakMarker,
)
from BlockPress.page_format import PageGeometry
from BlockPress.pagination import paginate, strip_markers
from BlockPress.styles import default_registry

WORDS = " ".join(["word"] * 30)  # 149 characters, spaces every fifth


def by_id(heights):
    return lambda blocks: sum(heights[block.id] for block in blocks)


def by_length(blocks):
    return sum(len(block.content) for block in blocks)


def _page(height, margin=0.0):
    return PageGeometry(width=500, height=height, margin_top=margin, margin_bottom=margin)


def _shape(items):
    return ["|" if isinstance(item, PageBreakMarker) else item.id for item in items]


def test_three_blocks_of_300_on_700px_pages():
    blocks = [Block(id=i, style="body", content=c) for i, c in enumerate("abc", start=1)]
    result = paginate(blocks, _page(800, 50), by_id({1: 300, 2: 300, 3: 300}))
    assert _shape(result.blocks) == [1, 2, "|", 3]
    assert result.page_count == 2
    assert result.markers == [PageBreakMarker(page_number=1)]
    assert result.issues == []


def test_repagination_is_idempotent_and_markers_are_additive():
    blocks = [Block(id=i, style="body", content=str(i)) for i in range(1, 8)]
    measure = by_id({i: 40 * i for i in range(1, 8)})
    first = paginate(blocks, _page(300), measure)
    assert strip_markers(first.blocks) == blocks
    assert paginate(strip_markers(first.blocks), _page(300), measure) == first
    assert paginate(first.blocks, _page(300), measure) == first


def test_heading_is_carried_to_the_next_page():
    blocks = [
        Block(id=1, style="body", content="a" * 60),
        Block(id=2, style="section_heading_1", content="H"),
        Block(id=3, style="body", content="b" * 60),
    ]
    result = paginate(blocks, _page(100), by_length)
    assert _shape(result.blocks) == [1, "|", 2, 3]


def test_no_page_ends_with_a_heading():
    styles = default_registry()
    pattern = ["body", "section_heading_1", "section_heading_2", "body", "body", "section_heading_1", "body"]
    blocks = [Block(id=i, style=style, content="x" * (15 + 7 * i)) for i, style in enumerate(pattern * 3, start=1)]
    result = paginate(blocks, _page(120), by_length, styles=styles)
    assert result.page_count > 1
    for index, item in enumerate(result.blocks):
        if isinstance(item, PageBreakMarker):
            assert not styles.lookup(result.blocks[index - 1].style).is_heading


def test_oversized_text_block_is_split_at_a_word_boundary():
    block = Block(id=1, style="body", content=WORDS)
    result = paginate([block], _page(100), by_length)
    head, marker, tail = result.blocks
    assert isinstance(marker, PageBreakMarker)
    assert head.content == WORDS[:100]
    assert head.content.endswith(" ")
    assert head.content + tail.content == WORDS
    assert head.id == tail.id == 1
    assert result.page_count == 2
    assert strip_markers(result.blocks) == [block]


def test_block_is_split_to_fill_a_page_after_a_heading():
    blocks = [Block(id=1, style="section_heading_1", content="Title"), Block(id=2, style="body", content=WORDS)]
    result = paginate(blocks, _page(100), by_length)
    assert _shape(result.blocks) == [1, 2, "|", 2]
    assert len(result.blocks[1].content) <= 95
    assert strip_markers(result.blocks) == blocks


def test_split_heading_remainder_is_demoted_to_body():
    block = Block(id=1, style="section_heading_1", content=WORDS)
    result = paginate([block], _page(100), by_length)
    assert result.blocks[0].style == "section_heading_1"
    assert result.blocks[-1].style == "body"
    assert strip_markers(result.blocks) == [block]


def test_split_heading_keeps_style_without_body_style():
    styles = default_registry()
    styles.remove("body")
    result = paginate([Block(id=1, style="section_heading_1", content=WORDS)], _page(100), by_length, styles=styles)
    assert result.blocks[-1].style == "section_heading_1"
    assert [issue.kind for issue in result.issues] == [ISSUE_MISSING_BODY_STYLE]


def test_unsplittable_oversized_block_overflows_with_issue():
    table = Block(id=1, style="table", content=json.dumps({"rows": [["a"]]}))
    result = paginate([table, Block(id=2, style="body", content="x")], _page(100), by_id({1: 250, 2: 10}))
    assert _shape(result.blocks) == [1, "|", 2]
    assert [(issue.kind, issue.block_id) for issue in result.issues] == [(ISSUE_OVERSIZED_BLOCK, 1)]


def test_heading_keeps_unsplittable_block_and_reports_overflow():
    blocks = [
        Block(id=1, style="section_heading_1", content="Results"),
        Block(id=2, style="table", content=json.dumps({"rows": [["a"]]})),
    ]
    result = paginate(blocks, _page(100), by_id({1: 30, 2: 90}))
    assert _shape(result.blocks) == [1, 2]
    assert result.issues[0].kind == ISSUE_KEEP_WITH_NEXT


def test_break_before_style_starts_a_new_page():
    blocks = [
        Block(id=1, style="kapitel", content="One"),
        Block(id=2, style="body", content="text"),
        Block(id=3, style="kapitel", content="Two"),
    ]
    result = paginate(blocks, _page(1000), by_id({1: 10, 2: 10, 3: 10}))
    assert _shape(result.blocks) == [1, 2, "|", 3]


def test_start_page_numbers_markers():
    blocks = [Block(id=i, style="body", content=str(i)) for i in range(1, 4)]
    result = paginate(blocks, _page(100), by_id({1: 80, 2: 80, 3: 80}), start_page=5)
    assert [marker.page_number for marker in result.markers] == [5, 6]
    with pytest.raises(ValueError):
        paginate(blocks, _page(100), by_id({1: 80, 2: 80, 3: 80}), start_page=0)


def test_degenerate_geometry_returns_clean_sequence():
    blocks = [Block(id=1, style="body", content="a"), PageBreakMarker(page_number=1), Block(id=2, style="body", content="b")]
    result = paginate(blocks, _page(100, 50), by_id({1: 10, 2: 10}))
    assert _shape(result.blocks) == [1, 2]
    assert result.page_count == 1
    assert result.issues[0].kind == ISSUE_DEGENERATE_GEOMETRY


def test_negative_geometry_is_rejected():
    with pytest.raises(InvalidGeometryError):
        paginate([], PageGeometry(width=500, height=800, margin_top=-1), by_length)
