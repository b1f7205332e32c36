import textwrap

import pytest

from BlockPress.errors import StyleConfigError
from BlockPress.model import JATS, BITS, ListAttributes, StyleDefinition
from BlockPress.styles import StyleRegistry, default_registry, load_style_registry, parse_style_registry


def test_default_registry_has_headings_and_body():
    styles = default_registry()
    assert "body" in styles
    levels = [style.heading_level for style in styles.headings()]
    assert levels == sorted(levels)
    assert styles.lookup("kapitel").page_break_before
    assert styles.lookup("ordered_list_item").is_list
    assert styles.lookup("table").is_structured


def test_tag_and_wrapper_per_format():
    kapitel = default_registry().lookup("kapitel")
    assert kapitel.tag_for(JATS) == "title"
    assert kapitel.wrapper_for(JATS) == "sec"
    assert kapitel.wrapper_for(BITS) == "chapter"
    assert default_registry().lookup("body").wrapper_for(JATS) is None


def test_register_replaces_and_unknown_lookup_is_none():
    styles = StyleRegistry([StyleDefinition(key="p", tags={JATS: "p", BITS: "p"})])
    styles.register(StyleDefinition(key="p", tags={JATS: "para", BITS: "p"}))
    assert len(styles) == 1
    assert styles.lookup("p").tag_for(JATS) == "para"
    assert styles.lookup("missing") is None


def test_parse_registry_from_yaml():
    text = textwrap.dedent(
        """
        styles:
          - key: numbered
            tags: {jats: list-item, bits: list-item}
            kind: ordered_list
            list: {style: lower-roman, start: 3}
            visual: {font_size: 12, bold: true}
        """
    )
    style = parse_style_registry(text).lookup("numbered")
    assert style.default_list_attributes == ListAttributes(style="lower-roman", start=3)
    assert style.visual.font_size == 12.0
    assert style.visual.bold


@pytest.mark.parametrize(
    "entry",
    [
        "key: x",
        "tags: {jats: p, bits: p}",
        "key: x\n    tags: {jats: p}",
        "key: x\n    tags: {jats: p, bits: p}\n    matter: sidebar",
        "key: x\n    tags: {jats: p, bits: p}\n    kind: poem",
        "key: x\n    tags: {jats: p, bits: p}\n    list: {style: zigzag}",
    ],
)
def test_invalid_style_entries_are_rejected(entry):
    with pytest.raises(StyleConfigError):
        parse_style_registry(f"styles:\n  - {entry}\n")


def test_style_file_needs_styles_list(tmp_path):
    path = tmp_path / "styles.yaml"
    path.write_text("body: {}\n", encoding="utf-8")
    with pytest.raises(StyleConfigError):
        load_style_registry(path)
