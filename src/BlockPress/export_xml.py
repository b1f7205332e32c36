from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from .inline_formatter import FootnoteRegistry, plain_text
from .model import (
    BITS,
    BOOK,
    EXPORT_FORMATS,
    JATS,
    BookMetadata,
    Document,
    Issue,
    JournalMetadata,
)
from .projector import IMAGE_DIR, ProjectedDocument, project_document, split_data_uri
from .styles import StyleRegistry, default_registry
from .xml_tree import XmlNode, render_xml, text_node

logger = logging.getLogger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
JATS_DOCTYPE = (
    '<!DOCTYPE article PUBLIC "-//NLM//DTD JATS (Z39.96) Journal Publishing DTD v1.2 20190208//EN" '
    '"JATS-journalpublishing1.dtd">'
)
BITS_DOCTYPE = (
    '<!DOCTYPE book PUBLIC "-//NLM//DTD BITS Book Interchange DTD v2.0 20151225//EN" "BITS-book2.dtd">'
)
XLINK_NS = "http://www.w3.org/1999/xlink"
BOOK_TYPE_META_NAME = "Bogtype"


@dataclass
class ExportResult:
    xml: str
    attachments: Dict[str, str] = field(default_factory=dict)
    issues: List[Issue] = field(default_factory=list)
    footnote_count: int = 0


def export_document(document: Document, fmt: str | None = None, styles: StyleRegistry | None = None) -> ExportResult:
    """Export ``document`` as JATS or BITS; the format defaults from the document type."""
    fmt = fmt or (BITS if document.document_type == BOOK else JATS)
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"Unknown export format {fmt!r}; expected one of {EXPORT_FORMATS}.")
    styles = styles if styles is not None else default_registry()
    if fmt == JATS:
        return generate_jats_xml(document, styles)
    return generate_bits_xml(document, styles)


def generate_jats_xml(document: Document, styles: StyleRegistry) -> ExportResult:
    projected = project_document(document.blocks, JATS, styles)
    meta = document.metadata or JournalMetadata()

    article = XmlNode(tag="article", attributes={"xmlns:xlink": XLINK_NS, "article-type": "research-article"})
    front = article.append(XmlNode(tag="front"))
    if meta.journal_id or meta.issn:
        journal_meta = front.append(XmlNode(tag="journal-meta"))
        if meta.journal_id:
            journal_meta.append(text_node("journal-id", meta.journal_id))
        if meta.issn:
            journal_meta.append(text_node("issn", meta.issn))

    article_meta = front.append(XmlNode(tag="article-meta"))
    article_meta.append(_title_group("title-group", "article-title", meta))
    contribs = _contrib_group(meta)
    if contribs is not None:
        article_meta.append(contribs)
    if projected.front:
        article_meta.append(XmlNode(tag="abstract", children=projected.front))

    article.append(XmlNode(tag="body", children=projected.body))
    back = _back_matter("back", projected)
    if back.children:
        article.append(back)

    return _result(JATS_DOCTYPE, article, projected, projected.attachments)


def generate_bits_xml(document: Document, styles: StyleRegistry) -> ExportResult:
    projected = project_document(document.blocks, BITS, styles)
    meta = document.metadata or BookMetadata()
    attachments = dict(projected.attachments)

    book = XmlNode(tag="book", attributes={"xmlns:xlink": XLINK_NS})
    book_meta = book.append(XmlNode(tag="book-meta"))
    book_meta.append(_title_group("book-title-group", "book-title", meta))
    contribs = _contrib_group(meta)
    if contribs is not None:
        book_meta.append(contribs)

    if isinstance(meta, BookMetadata):
        _book_details(book_meta, meta, attachments)
    book_meta.children.extend(projected.front)

    book.append(XmlNode(tag="book-body", children=projected.body))
    book.append(_back_matter("book-back", projected))
    return _result(BITS_DOCTYPE, book, projected, attachments)


def footnote_group(footnotes: FootnoteRegistry) -> XmlNode | None:
    if not len(footnotes):
        return None
    group = XmlNode(tag="fn-group")
    for note in footnotes:
        fn = group.append(XmlNode(tag="fn", attributes={"id": note.id}))
        fn.append(text_node("p", note.content))
    return group


def _book_details(book_meta: XmlNode, meta: BookMetadata, attachments: Dict[str, str]) -> None:
    if meta.p_isbn:
        book_meta.append(text_node("isbn", meta.p_isbn, {"publication-format": "print"}))
    if meta.e_isbn:
        book_meta.append(text_node("isbn", meta.e_isbn, {"publication-format": "electronic"}))
    pub_date = _pub_date(meta.publication_date)
    if pub_date is not None:
        book_meta.append(pub_date)
    if meta.edition:
        book_meta.append(text_node("edition", meta.edition))

    custom: List[XmlNode] = []
    if meta.book_type:
        custom.append(_custom_meta(BOOK_TYPE_META_NAME, meta.book_type))
    if meta.cover_image_src:
        embedded = split_data_uri(meta.cover_image_src)
        if embedded is not None:
            extension, payload = embedded
            filename = f"cover.{extension}"
            attachments[filename] = payload
            custom.append(_custom_meta("cover-image", f"{IMAGE_DIR}/{filename}"))
        else:
            custom.append(_custom_meta("cover-image", meta.cover_image_src))
    if custom:
        book_meta.append(XmlNode(tag="custom-meta-group", children=custom))

    if meta.description:
        abstract = book_meta.append(XmlNode(tag="abstract", attributes={"abstract-type": "description"}))
        abstract.append(text_node("p", meta.description))


def _pub_date(value: str | None) -> XmlNode | None:
    if not value:
        return None
    parts = value.split("-")
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        logger.warning("Ignoring publication date %r; expected YYYY-MM-DD", value)
        return None
    year, month, day = parts
    return XmlNode(
        tag="pub-date",
        children=[text_node("day", day), text_node("month", month), text_node("year", year)],
    )


def _custom_meta(name: str, value: str) -> XmlNode:
    return XmlNode(tag="custom-meta", children=[text_node("meta-name", name), text_node("meta-value", value)])


def _title_group(group_tag: str, title_tag: str, meta: JournalMetadata) -> XmlNode:
    group = XmlNode(tag=group_tag)
    group.append(text_node(title_tag, plain_text(meta.title or "")))
    if meta.subtitle:
        group.append(text_node("subtitle", plain_text(meta.subtitle)))
    return group


def _contrib_group(meta: JournalMetadata) -> XmlNode | None:
    if not meta.authors:
        return None
    group = XmlNode(tag="contrib-group")
    for author in meta.authors:
        contrib = group.append(XmlNode(tag="contrib", attributes={"contrib-type": "author"}))
        name = contrib.append(XmlNode(tag="name"))
        name.append(text_node("surname", author.last_name))
        name.append(text_node("given-names", author.first_name))
    return group


def _back_matter(tag: str, projected: ProjectedDocument) -> XmlNode:
    back = XmlNode(tag=tag, children=list(projected.back))
    notes = footnote_group(projected.footnotes)
    if notes is not None:
        back.append(notes)
    return back


def _result(doctype: str, root: XmlNode, projected: ProjectedDocument, attachments: Dict[str, str]) -> ExportResult:
    xml = "\n".join([XML_DECLARATION, doctype, render_xml([root])]) + "\n"
    for issue in projected.issues:
        logger.info("Export issue (%s) for block %s: %s", issue.kind, issue.block_id, issue.message)
    return ExportResult(
        xml=xml,
        attachments=attachments,
        issues=list(projected.issues),
        footnote_count=len(projected.footnotes),
    )
