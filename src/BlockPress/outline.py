from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Sequence

from .inline_formatter import plain_text
from .model import Block, Item
from .pagination import strip_markers
from .styles import StyleRegistry


@dataclass
class OutlineEntry:
    block: Block
    level: int
    children: List["OutlineEntry"] = field(default_factory=list)

    @property
    def title(self) -> str:
        return plain_text(self.block.content)


def build_outline(blocks: Sequence[Item], styles: StyleRegistry) -> List[OutlineEntry]:
    """Table of contents: heading blocks nested by heading level.

    A heading closes every open entry at the same or a deeper level, so a
    level-3 heading directly under a level-1 heading nests one step deep.
    """
    root = OutlineEntry(block=Block(id=-1, style=""), level=-1)
    stack: List[OutlineEntry] = [root]
    for block in strip_markers(blocks):
        style = styles.lookup(block.style)
        if style is None or not style.is_heading:
            continue
        while len(stack) > 1 and style.heading_level <= stack[-1].level:
            stack.pop()
        entry = OutlineEntry(block=block, level=style.heading_level)
        stack[-1].children.append(entry)
        stack.append(entry)
    return root.children


def walk_outline(entries: Sequence[OutlineEntry], depth: int = 0) -> Iterator[tuple[int, OutlineEntry]]:
    for entry in entries:
        yield depth, entry
        yield from walk_outline(entry.children, depth + 1)
