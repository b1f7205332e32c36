"""Pagination reflow.

Given page geometry and a height oracle, decide where page breaks go in a
flat block sequence. Every run starts from the clean sequence (markers
removed, split fragments merged back), so the result depends only on the
content and the geometry.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from .inline_formatter import content_units, snap_to_word_boundary, split_markup
from .model import (
    ISSUE_DEGENERATE_GEOMETRY,
    ISSUE_KEEP_WITH_NEXT,
    ISSUE_MISSING_BODY_STYLE,
    ISSUE_OVERSIZED_BLOCK,
    Block,
    Issue,
    Item,
    PageBreakMarker,
    StyleDefinition,
)
from .page_format import PageGeometry
from .styles import StyleRegistry, default_registry

logger = logging.getLogger(__name__)

MeasureHeight = Callable[[Sequence[Block]], float]

DEFAULT_BODY_STYLE = "body"


@dataclass
class PaginationResult:
    blocks: List[Item]
    page_count: int
    issues: List[Issue] = field(default_factory=list)

    @property
    def markers(self) -> List[PageBreakMarker]:
        return [item for item in self.blocks if isinstance(item, PageBreakMarker)]


def strip_markers(items: Sequence[Item]) -> List[Block]:
    """Drop page-break markers and merge split fragments back into their block."""
    clean: List[Block] = []
    for item in items:
        if isinstance(item, PageBreakMarker):
            continue
        if item.origin is None:
            clean.append(item)
        elif not (clean and clean[-1].id == item.id and clean[-1] == item.origin):
            clean.append(item.origin)
    return clean


def paginate(
    blocks: Sequence[Item],
    geometry: PageGeometry,
    measure_height: MeasureHeight,
    styles: StyleRegistry | None = None,
    start_page: int = 1,
    body_style: str = DEFAULT_BODY_STYLE,
) -> PaginationResult:
    """Insert page-break markers so no page's measured content overflows.

    ``measure_height`` receives the blocks of a candidate page and returns
    their laid-out height in the same units as ``geometry``. Raises
    ``InvalidGeometryError`` for negative dimensions; a page without room
    for content is reported as an issue and leaves the sequence unbroken.
    """
    geometry.validate()
    if start_page < 1:
        raise ValueError("start_page must be at least 1")
    clean = strip_markers(blocks)
    available = geometry.content_height
    if available <= 0:
        message = f"no room for content: page height {geometry.height} minus margins is {available}"
        logger.warning("Pagination refused: %s", message)
        return PaginationResult(clean, 1, [Issue(kind=ISSUE_DEGENERATE_GEOMETRY, message=message)])

    paginator = _Paginator(
        available=available,
        measure=measure_height,
        styles=styles if styles is not None else default_registry(),
        page_number=start_page,
        body_style=body_style,
    )
    paginator.run(clean)
    logger.debug("Paginated %d blocks into %d pages", len(clean), paginator.page_count)
    return PaginationResult(paginator.out, paginator.page_count, paginator.issues)


@dataclass
class _Paginator:
    available: float
    measure: MeasureHeight
    styles: StyleRegistry
    page_number: int
    body_style: str
    out: List[Item] = field(default_factory=list)
    page: List[Block] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)
    markers: int = 0

    @property
    def page_count(self) -> int:
        return self.markers + 1

    def run(self, clean: Sequence[Block]) -> None:
        for block in clean:
            pending: Block | None = block
            while pending is not None:
                pending = self._place(pending)
        self.out.extend(self.page)
        self.page = []

    def _place(self, block: Block) -> Block | None:
        """Put ``block`` (or part of it) on the current page.

        Returns whatever still has to be placed: the block itself after a
        page was closed, a split remainder, or None once it is committed.
        """
        if self.page and self._breaks_before(block):
            self._close_page()
            return block

        if self._fits(self.page + [block]):
            self.page.append(block)
            return None

        if not self.page:
            return self._place_on_fresh_page(block)

        trailing = self._trailing_headings()
        if trailing and len(trailing) < len(self.page):
            # Never end a page on a heading: carry the headings over with the block.
            del self.page[-len(trailing) :]
            self._close_page()
            self.page.extend(trailing)
            return block

        headings_only = bool(trailing)
        if self._splittable(block) and (headings_only or not self._fits([block])):
            remainder = self._split_onto_page(block)
            if remainder is not None:
                return remainder

        if headings_only:
            self._report(
                ISSUE_KEEP_WITH_NEXT,
                f"block {block.id} does not fit after heading {trailing[-1].id}; page overflows",
                block.id,
            )
            self.page.append(block)
            return None

        self._close_page()
        return block

    def _place_on_fresh_page(self, block: Block) -> Block | None:
        if self._splittable(block):
            remainder = self._split_onto_page(block)
            if remainder is not None:
                return remainder
        self._report(ISSUE_OVERSIZED_BLOCK, f"block {block.id} is taller than a page and cannot be split", block.id)
        self.page.append(block)
        return None

    def _split_onto_page(self, block: Block) -> Block | None:
        """Fill the rest of the page with a prefix of ``block`` and close the page.

        Returns the remainder, or None when not even one word fits (nothing
        is placed in that case).
        """
        units = content_units(block.content)
        low, high, best = 1, units - 1, 0
        while low <= high:
            mid = (low + high) // 2
            head, _ = split_markup(block.content, mid)
            if self._fits(self.page + [self._fragment(block, head, block.style)]):
                best = mid
                low = mid + 1
            else:
                high = mid - 1
        cut = snap_to_word_boundary(block.content, best) if best else 0
        if cut <= 0:
            return None

        head, tail = split_markup(block.content, cut)
        self.page.append(self._fragment(block, head, block.style))
        self._close_page()
        return self._fragment(block, tail, self._remainder_style(block))

    def _remainder_style(self, block: Block) -> str:
        if not self._is_heading(block):
            return block.style
        if self.body_style in self.styles:
            return self.body_style
        self._report(
            ISSUE_MISSING_BODY_STYLE,
            f"body style {self.body_style!r} is not registered; split heading {block.id} keeps {block.style!r}",
            block.id,
        )
        return block.style

    def _fragment(self, block: Block, content: str, style: str) -> Block:
        origin = block.origin if block.origin is not None else block
        return dataclasses.replace(block, content=content, style=style, origin=origin)

    def _close_page(self) -> None:
        self.out.extend(self.page)
        self.out.append(PageBreakMarker(page_number=self.page_number))
        self.page_number += 1
        self.markers += 1
        self.page = []

    def _fits(self, blocks: Sequence[Block]) -> bool:
        return self.measure(blocks) <= self.available

    def _trailing_headings(self) -> List[Block]:
        count = 0
        while count < len(self.page) and self._is_heading(self.page[-1 - count]):
            count += 1
        return self.page[len(self.page) - count :]

    def _style(self, block: Block) -> StyleDefinition | None:
        return self.styles.lookup(block.style)

    def _is_heading(self, block: Block) -> bool:
        style = self._style(block)
        return style is not None and style.is_heading

    def _breaks_before(self, block: Block) -> bool:
        style = self._style(block)
        return style is not None and style.page_break_before and not block.is_fragment

    def _splittable(self, block: Block) -> bool:
        style = self._style(block)
        if style is not None and style.is_structured:
            return False
        return content_units(block.content) > 1

    def _report(self, kind: str, message: str, block_id: int | None = None) -> None:
        logger.warning("Pagination: %s", message)
        self.issues.append(Issue(kind=kind, message=message, block_id=block_id))
