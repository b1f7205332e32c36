import textwrap

import pytest

from BlockPress.errors import InvalidGeometryError
from BlockPress.page_format import PageGeometry, geometry_from_settings, load_layout_settings, px_to_pt, to_px


def test_length_units_convert_to_css_pixels():
    assert to_px("96px") == 96
    assert to_px("1in") == 96
    assert to_px("2.54cm") == pytest.approx(96)
    assert to_px("72pt") == pytest.approx(96)
    assert to_px(12) == 12.0
    assert px_to_pt(96) == 72


@pytest.mark.parametrize("value", ["ten", "10furlongs", ""])
def test_bad_lengths_are_rejected(value):
    with pytest.raises(InvalidGeometryError):
        to_px(value)


def test_default_layout_is_a4_with_2cm_margins():
    geometry = load_layout_settings()
    assert geometry.width == pytest.approx(210 * 96 / 25.4)
    assert geometry.height == pytest.approx(297 * 96 / 25.4)
    assert geometry.margin_left == pytest.approx(2 * 96 / 2.54)
    assert geometry.content_height == pytest.approx((297 - 40) * 96 / 25.4)


def test_layout_file_overrides_defaults(tmp_path):
    path = tmp_path / "layout.yaml"
    path.write_text(
        textwrap.dedent(
            """
            paper_height: 800px
            margin_top: 50px
            margin_bottom: 50px
            """
        ),
        encoding="utf-8",
    )
    geometry = load_layout_settings(path)
    assert geometry.content_height == 700


def test_unknown_layout_keys_and_negative_margins(tmp_path):
    path = tmp_path / "layout.yaml"
    path.write_text("gutter: 1cm\n", encoding="utf-8")
    with pytest.raises(InvalidGeometryError):
        load_layout_settings(path)
    with pytest.raises(InvalidGeometryError):
        geometry_from_settings({"margin_left": "-1cm"})
    with pytest.raises(InvalidGeometryError):
        PageGeometry(width=-1, height=10).validate()
