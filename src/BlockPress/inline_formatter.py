"""Inline markup handling.

Block content arrives as the editor's inline HTML (``<strong>``, ``<em>``,
footnote ``<sup>`` references). The tokenizer only recognises raw HTML tags
and entities, so characters such as ``*``, ``_`` or ``\\`` stay literal text.
The formatter turns the markup into the neutral tag set used by the XML
tree: ``<bold>``, ``<italic>`` and ``<xref>``. Everything else is reduced to
escaped text.
"""
from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List

from markdown_it import MarkdownIt
from xml.sax.saxutils import escape, unescape

from .model import Footnote

FOOTNOTE_ID_ATTR = "data-footnote-id"
FOOTNOTE_CONTENT_ATTR = "data-footnote-content"

BOLD = "bold"
ITALIC = "italic"
XREF = "xref"
NEUTRAL_TAGS = (BOLD, ITALIC, XREF)

_HTML_TO_NEUTRAL = {"strong": BOLD, "b": BOLD, "em": ITALIC, "i": ITALIC}
_VOID_HTML = {"br", "img", "hr", "wbr", "input", "col", "area", "source"}
_TEXT_TOKENS = ("text", "text_special")

_ZERO_WIDTH_RE = re.compile("[\u200b-\u200d\ufeff]")
_TAG_RE = re.compile(r"^<\s*(/)?\s*([A-Za-z][\w:-]*)(.*?)(/)?\s*>$", re.S)
_ATTR_RE = re.compile(r"""([A-Za-z_:][\w:.-]*)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'=<>`]+))""")
_NEUTRAL_RE = re.compile(r"<(/?)(bold|italic|xref)\b[^>]*>")
# Quoted attribute values may contain ">".
_PIECE_RE = re.compile(
    r"""(</?[A-Za-z](?:[^>"']|"[^"]*"|'[^']*')*>)|(&#?[0-9A-Za-z]+;)|([^<&]|[<&])""",
    re.S,
)

_ENTITIES = {'"': "&quot;", "'": "&apos;"}
_UNENTITIES = {"&quot;": '"', "&apos;": "'"}

_md = MarkdownIt("zero", {"html": True}).enable(["html_inline", "entity"])


class FootnoteRegistry:
    """Footnotes in first-appearance order; re-registering an id is a no-op."""

    def __init__(self) -> None:
        self._notes: Dict[str, Footnote] = {}
        self._numbers: Dict[str, int] = {}

    def register(self, footnote_id: str, content: str) -> int:
        if footnote_id not in self._notes:
            self._notes[footnote_id] = Footnote(id=footnote_id, content=content)
            self._numbers[footnote_id] = len(self._notes)
        return self._numbers[footnote_id]

    def number(self, footnote_id: str) -> int | None:
        return self._numbers.get(footnote_id)

    def footnotes(self) -> List[Footnote]:
        return list(self._notes.values())

    def __contains__(self, footnote_id: object) -> bool:
        return footnote_id in self._notes

    def __iter__(self) -> Iterator[Footnote]:
        return iter(self._notes.values())

    def __len__(self) -> int:
        return len(self._notes)


def escape_text(text: str) -> str:
    """Escape the five XML-reserved characters and drop zero-width characters."""
    return escape(_ZERO_WIDTH_RE.sub("", text), _ENTITIES)


def format_inline(markup: str, footnotes: FootnoteRegistry | None = None) -> str:
    """Translate inline markup into escaped text with neutral bold/italic/xref tags."""
    if footnotes is None:
        footnotes = FootnoteRegistry()
    state = _InlineState(footnotes=footnotes)
    for token in _inline_tokens(markup):
        kind = token.type
        if kind in _TEXT_TOKENS:
            state.text(token.content)
        elif kind == "html_inline":
            state.html_tag(token.content)
    return state.finish()


def collect_footnotes(markup: str, footnotes: FootnoteRegistry) -> None:
    """Register the footnotes referenced by ``markup`` without formatting it."""
    for token in _inline_tokens(markup):
        if token.type != "html_inline":
            continue
        tag = _parse_tag(token.content)
        if tag is not None and not tag.closing and tag.name == "sup":
            note = _footnote_of(tag)
            if note is not None:
                footnotes.register(*note)


def plain_text(markup: str) -> str:
    """Visible text of ``markup`` with every tag and footnote reference removed."""
    parts: List[str] = []
    suppress = 0
    for token in _inline_tokens(markup):
        if token.type in _TEXT_TOKENS:
            if not suppress:
                parts.append(token.content)
        elif token.type == "html_inline":
            tag = _parse_tag(token.content)
            if tag is None or tag.name != "sup":
                continue
            if tag.closing:
                suppress = max(0, suppress - 1)
            elif suppress or _footnote_of(tag) is not None:
                suppress += 1
    return _ZERO_WIDTH_RE.sub("", "".join(parts)).strip()


@dataclass
class Run:
    text: str
    bold: bool = False
    italic: bool = False
    superscript: bool = False


def iter_runs(neutral: str) -> Iterator[Run]:
    """Split formatter output into unescaped text runs with their formatting."""
    depth = {BOLD: 0, ITALIC: 0, XREF: 0}
    pos = 0
    for match in _NEUTRAL_RE.finditer(neutral):
        if match.start() > pos:
            yield _run(neutral[pos : match.start()], depth)
        depth[match.group(2)] += -1 if match.group(1) else 1
        pos = match.end()
    if pos < len(neutral):
        yield _run(neutral[pos:], depth)


def _run(raw: str, depth: Dict[str, int]) -> Run:
    return Run(
        text=unescape(raw, _UNENTITIES),
        bold=depth[BOLD] > 0,
        italic=depth[ITALIC] > 0,
        superscript=depth[XREF] > 0,
    )


# Markup splitting -----------------------------------------------------------


@dataclass
class _Piece:
    raw: str
    # None for a content unit, otherwise the lower-cased tag name.
    tag: str | None = None
    closing: bool = False
    opening: bool = False
    space: bool = False

    @property
    def is_unit(self) -> bool:
        return self.tag is None


def content_units(markup: str) -> int:
    """Number of cut points' worth of visible units in ``markup``."""
    return sum(1 for piece in _pieces(markup) if piece.is_unit)


def snap_to_word_boundary(markup: str, cut: int) -> int:
    """Largest unit offset ``<= cut`` that does not fall inside a word, or 0."""
    units = [piece for piece in _pieces(markup) if piece.is_unit]
    cut = min(cut, len(units) - 1)
    for k in range(cut, 0, -1):
        if units[k - 1].space or units[k].space:
            return k
    return 0


def split_markup(markup: str, cut: int) -> tuple[str, str]:
    """Split after ``cut`` content units, keeping both halves tag-balanced.

    Formatting tags still open at the cut are closed at the end of the prefix
    and reopened at the start of the remainder.
    """
    pieces = _pieces(markup)
    open_tags: List[_Piece] = []
    seen = 0
    index = 0
    while index < len(pieces) and seen < cut:
        piece = pieces[index]
        if piece.is_unit:
            seen += 1
        else:
            _track(open_tags, piece)
        index += 1
    # Closing tags that directly follow the cut belong to the prefix.
    while index < len(pieces) and pieces[index].closing:
        _track(open_tags, pieces[index])
        index += 1

    head = "".join(piece.raw for piece in pieces[:index])
    tail = "".join(piece.raw for piece in pieces[index:])
    closers = "".join(f"</{piece.tag}>" for piece in reversed(open_tags))
    openers = "".join(piece.raw for piece in open_tags)
    return head + closers, openers + tail


def _track(open_tags: List[_Piece], piece: _Piece) -> None:
    if piece.opening:
        open_tags.append(piece)
    elif piece.closing:
        for position in range(len(open_tags) - 1, -1, -1):
            if open_tags[position].tag == piece.tag:
                del open_tags[position]
                break


def _pieces(markup: str) -> List[_Piece]:
    pieces: List[_Piece] = []
    matches = list(_PIECE_RE.finditer(markup))
    index = 0
    while index < len(matches):
        match = matches[index]
        raw = match.group(0)
        index += 1
        if match.group(1) is None:
            pieces.append(_Piece(raw=raw, space=raw.isspace()))
            continue
        tag = _parse_tag(raw)
        if tag is None:
            pieces.append(_Piece(raw=raw))
            continue
        if tag.name == "sup" and not tag.closing and _footnote_of(tag) is not None:
            # A footnote reference is one indivisible unit.
            depth = 1
            parts = [raw]
            while index < len(matches) and depth:
                inner = matches[index].group(0)
                index += 1
                parts.append(inner)
                inner_tag = _parse_tag(inner) if matches[index - 1].group(1) else None
                if inner_tag is not None and inner_tag.name == "sup":
                    depth += -1 if inner_tag.closing else 1
            pieces.append(_Piece(raw="".join(parts)))
            continue
        void = tag.self_closing or tag.name in _VOID_HTML
        pieces.append(
            _Piece(
                raw=raw,
                tag=tag.name,
                closing=tag.closing,
                opening=not tag.closing and not void,
            )
        )
    return pieces


# Tokenizing -----------------------------------------------------------------


@dataclass
class _Tag:
    name: str
    closing: bool
    self_closing: bool
    attrs: Dict[str, str] = field(default_factory=dict)


def _inline_tokens(markup: str) -> Iterable:
    if not markup:
        return []
    tokens = _md.parseInline(markup)
    children: List = []
    for token in tokens:
        children.extend(token.children or [])
    return children


def _parse_tag(raw: str) -> _Tag | None:
    match = _TAG_RE.match(raw.strip())
    if match is None:
        return None
    attrs = {}
    for attr in _ATTR_RE.finditer(match.group(3) or ""):
        value = next((group for group in attr.groups()[1:] if group is not None), "")
        attrs[attr.group(1).lower()] = html.unescape(value)
    return _Tag(
        name=match.group(2).lower(),
        closing=bool(match.group(1)),
        self_closing=bool(match.group(4)),
        attrs=attrs,
    )


def _footnote_of(tag: _Tag) -> tuple[str, str] | None:
    footnote_id = tag.attrs.get(FOOTNOTE_ID_ATTR)
    content = tag.attrs.get(FOOTNOTE_CONTENT_ATTR)
    if footnote_id and content:
        return footnote_id, content
    return None


@dataclass
class _InlineState:
    footnotes: FootnoteRegistry
    out: List[str] = field(default_factory=list)
    open_tags: List[str] = field(default_factory=list)
    html_stack: List[tuple[str, str | None]] = field(default_factory=list)
    suppress: int = 0

    def text(self, value: str) -> None:
        if not self.suppress and value:
            self.out.append(escape_text(value))

    def open(self, neutral: str) -> None:
        self.open_tags.append(neutral)
        self.out.append(f"<{neutral}>")

    def close(self, neutral: str) -> None:
        if neutral not in self.open_tags:
            return
        reopen: List[str] = []
        while self.open_tags:
            top = self.open_tags.pop()
            self.out.append(f"</{top}>")
            if top == neutral:
                break
            reopen.append(top)
        for tag in reversed(reopen):
            self.open(tag)

    def html_tag(self, raw: str) -> None:
        tag = _parse_tag(raw)
        if tag is None:
            return
        if self.suppress:
            if tag.name == "sup":
                self.suppress += -1 if tag.closing else 1
            return
        if tag.closing:
            self._close_html(tag.name)
            return
        if tag.self_closing or tag.name in _VOID_HTML:
            return
        if tag.name == "sup":
            note = _footnote_of(tag)
            if note is not None:
                number = self.footnotes.register(*note)
                rid = escape(note[0], _ENTITIES)
                self.out.append(f'<xref ref-type="fn" rid="{rid}">{number}</xref>')
                self.suppress = 1
                return
        neutral = _HTML_TO_NEUTRAL.get(tag.name)
        self.html_stack.append((tag.name, neutral))
        if neutral:
            self.open(neutral)

    def _close_html(self, name: str) -> None:
        for position in range(len(self.html_stack) - 1, -1, -1):
            opened, neutral = self.html_stack[position]
            if opened == name:
                del self.html_stack[position]
                if neutral:
                    self.close(neutral)
                return

    def finish(self) -> str:
        while self.open_tags:
            self.out.append(f"</{self.open_tags.pop()}>")
        return "".join(self.out)
