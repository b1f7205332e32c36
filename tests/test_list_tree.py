from BlockPress.inline_formatter import FootnoteRegistry
from BlockPress.list_tree import build_list_tree, list_attributes
from BlockPress.model import Block, ListAttributes
from BlockPress.styles import default_registry


def _items(levels, style="unordered_list_item"):
    return [Block(id=i, style=style, content=f"item {i}", level=level) for i, level in enumerate(levels, start=1)]


def test_level_sequence_builds_exact_shape():
    style = default_registry().lookup("unordered_list_item")
    roots = build_list_tree(_items([0, 0, 1, 1, 0]), style, FootnoteRegistry())

    assert len(roots) == 1
    root = roots[0]
    assert root.tag == "list"
    assert [item.tag for item in root.children] == ["list-item"] * 3

    first, second, third = root.children
    assert [child.tag for child in first.children] == ["p"]
    assert [child.tag for child in third.children] == ["p"]
    assert [child.tag for child in second.children] == ["p", "list"]
    nested = second.children[1]
    assert [item.children[0].content for item in nested.children] == ["item 3", "item 4"]


def test_deeper_jump_nests_inside_previous_item():
    style = default_registry().lookup("ordered_list_item")
    root = build_list_tree(_items([0, 2, 0], "ordered_list_item"), style, FootnoteRegistry())[0]
    assert len(root.children) == 2
    nested = root.children[0].children[1]
    assert nested.tag == "list"
    assert nested.children[0].children[0].content == "item 2"


def test_list_attributes_merge_defaults_and_overrides():
    style = default_registry().lookup("ordered_list_item")
    block = Block(id=1, style=style.key, list_attributes=ListAttributes(start=4, reversed=True))
    assert list_attributes(block, style) == {"list-type": "order", "specific-use": "decimal reversed start-at-4"}
    bullet = default_registry().lookup("unordered_list_item")
    assert list_attributes(Block(id=2, style=bullet.key), bullet) == {"list-type": "bullet", "specific-use": "disc"}
