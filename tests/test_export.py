import xml.etree.ElementTree as ET

import pytest

from BlockPress.export_xml import BITS_DOCTYPE, JATS_DOCTYPE, export_document
from BlockPress.model import BOOK, Author, Block, BookMetadata, Document, JournalMetadata

XLINK = "{http://www.w3.org/1999/xlink}"
NOTE = '<sup data-footnote-id="n1" data-footnote-content="See &amp; compare">1</sup>'


def _parse(xml: str) -> ET.Element:
    return ET.fromstring(xml.encode("utf-8"))


def test_jats_article_structure():
    document = Document(
        blocks=[
            Block(id=1, style="abstract", content="Short summary."),
            Block(id=2, style="section_heading_1", content="Introduction"),
            Block(id=3, style="body", content="Body text" + NOTE),
            Block(id=4, style="reference", content="Doe, J. (2020)."),
        ],
        metadata=JournalMetadata(
            title="A <em>study</em>",
            authors=[Author(first_name="Ada", last_name="Lovelace")],
            journal_id="J1",
            issn="1234-5678",
        ),
    )
    result = export_document(document)
    assert result.xml.splitlines()[1] == JATS_DOCTYPE
    root = _parse(result.xml)

    assert root.tag == "article"
    assert root.findtext("front/journal-meta/issn") == "1234-5678"
    assert root.findtext("front/article-meta/title-group/article-title") == "A study"
    assert root.findtext("front/article-meta/contrib-group/contrib/name/surname") == "Lovelace"
    assert root.findtext("front/article-meta/abstract/p") == "Short summary."
    assert root.findtext("body/sec/title") == "Introduction"
    assert root.find("body/sec/p/xref").get("rid") == "n1"
    assert root.findtext("back/ref-list/ref") == "Doe, J. (2020)."
    assert root.findtext("back/fn-group/fn/p") == "See & compare"
    assert result.footnote_count == 1


def test_jats_omits_empty_back_and_journal_meta():
    result = export_document(Document(blocks=[Block(id=1, style="body", content="only")]))
    root = _parse(result.xml)
    assert root.find("back") is None
    assert root.find("front/journal-meta") is None


def test_bits_book_metadata_and_cover_attachment():
    metadata = BookMetadata(
        title="Book",
        p_isbn="978-0-00-000000-1",
        e_isbn="978-0-00-000000-2",
        publication_date="2024-05-01",
        edition="2",
        book_type="Lærebog",
        cover_image_src="data:image/jpeg;base64,/9j/4AAQ",
        description="About the book.",
    )
    document = Document(
        blocks=[
            Block(id=1, style="kapitel", content="Chapter"),
            Block(id=2, style="body", content="Text"),
        ],
        metadata=metadata,
        document_type=BOOK,
    )
    result = export_document(document)
    assert result.xml.splitlines()[1] == BITS_DOCTYPE
    root = _parse(result.xml)

    assert root.tag == "book"
    isbns = {node.get("publication-format"): node.text for node in root.findall("book-meta/isbn")}
    assert isbns == {"print": "978-0-00-000000-1", "electronic": "978-0-00-000000-2"}
    assert [root.findtext(f"book-meta/pub-date/{part}") for part in ("day", "month", "year")] == ["01", "05", "2024"]
    metas = {
        meta.findtext("meta-name"): meta.findtext("meta-value")
        for meta in root.findall("book-meta/custom-meta-group/custom-meta")
    }
    assert metas == {"Bogtype": "Lærebog", "cover-image": "Images/cover.jpeg"}
    assert result.attachments == {"cover.jpeg": "/9j/4AAQ"}
    assert root.findtext("book-body/chapter/title") == "Chapter"
    assert root.findtext("book-body/chapter/p") == "Text"


def test_image_reference_uses_xlink_namespace():
    block = Block(id=3, style="image", content='{"src": "data:image/png;base64,AAAA", "caption": "Plot"}')
    result = export_document(Document(blocks=[block]), fmt="bits")
    graphic = _parse(result.xml).find("book-body/fig/graphic")
    assert graphic.get(f"{XLINK}href") == "Images/image-3.png"
    assert result.attachments == {"image-3.png": "AAAA"}


def test_unknown_format_is_rejected():
    with pytest.raises(ValueError):
        export_document(Document(blocks=[]), fmt="docbook")
