from __future__ import annotations

from typing import Dict, List, Sequence

from .inline_formatter import FootnoteRegistry, format_inline
from .model import KIND_ORDERED_LIST, Block, ListAttributes, StyleDefinition
from .xml_tree import XmlNode, markup_node


def list_attributes(block: Block, style: StyleDefinition) -> Dict[str, str]:
    """JATS/BITS attributes for a list opened by ``block``."""
    defaults = style.default_list_attributes or ListAttributes()
    attrs = defaults.merged(block.list_attributes)
    result = {"list-type": "order" if style.kind == KIND_ORDERED_LIST else "bullet"}
    uses: List[str] = []
    if attrs.style:
        uses.append(attrs.style)
    if attrs.reversed:
        uses.append("reversed")
    if attrs.start and attrs.start != 1:
        uses.append(f"start-at-{attrs.start}")
    if uses:
        result["specific-use"] = " ".join(uses)
    return result


def build_list_tree(
    run: Sequence[Block],
    style: StyleDefinition,
    footnotes: FootnoteRegistry,
) -> List[XmlNode]:
    """Nest a contiguous run of same-style list blocks by their level.

    The first block opens the root list whatever its level. A deeper block
    opens a sub-list inside the preceding list item, never beside it; a
    shallower one closes lists until one at or below its level is on top.
    """
    if not run:
        return []
    first = run[0]
    root = XmlNode(tag="list", attributes=list_attributes(first, style), level=_level(first))
    stack: List[XmlNode] = [root]

    for block in run:
        level = _level(block)
        while len(stack) > 1 and level < stack[-1].level:
            stack.pop()
        parent = stack[-1]

        item = XmlNode(tag="list-item")
        item.append(markup_node("p", format_inline(block.content, footnotes)))

        if level > parent.level and parent.children:
            nested = XmlNode(tag="list", attributes=list_attributes(block, style), level=level)
            nested.append(item)
            parent.last_child.append(nested)
            stack.append(nested)
        else:
            parent.append(item)

    return [root]


def _level(block: Block) -> int:
    return max(block.level or 0, 0)
