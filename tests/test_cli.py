import base64
import textwrap
from pathlib import Path

import pytest
from docx import Document as DocxReader

from BlockPress.cli import main

DOCUMENT = textwrap.dedent(
    """
    type: journal
    metadata:
      title: CLI test
    blocks:
      - {style: section_heading_1, content: Overview}
      - {style: body, content: "Some text."}
      - style: image
        image: {src: "data:image/png;base64,%s", caption: Dot}
      - {style: section_heading_2, content: Details}
    """
)
PNG = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="


@pytest.fixture
def document_path(tmp_path: Path) -> Path:
    path = tmp_path / "doc.yaml"
    path.write_text(DOCUMENT % PNG, encoding="utf-8")
    return path


def test_export_writes_xml_and_images(document_path: Path, tmp_path: Path):
    out = tmp_path / "out" / "article.xml"
    main(["export", str(document_path), "-o", str(out), "--format", "jats"])
    xml = out.read_text(encoding="utf-8")
    assert "<article-title>CLI test</article-title>" in xml
    assert (out.parent / "Images" / "image-3.png").read_bytes() == base64.b64decode(PNG)


def test_paginate_prints_pages_and_writes_docx(document_path: Path, tmp_path: Path, capsys):
    docx_path = tmp_path / "doc.docx"
    main(["paginate", str(document_path), "--start-page", "3", "--docx", str(docx_path)])
    assert capsys.readouterr().out.splitlines() == ["page 3: 1 2 3 4"]
    assert "Overview" in [p.text for p in DocxReader(docx_path).paragraphs]


def test_outline_prints_indented_headings(document_path: Path, capsys):
    main(["outline", str(document_path)])
    assert capsys.readouterr().out.splitlines() == ["Overview", "  Details"]


def test_invalid_document_exits_with_error(tmp_path: Path):
    path = tmp_path / "bad.yaml"
    path.write_text("type: newsletter\n", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        main(["outline", str(path)])
    assert excinfo.value.code == 1


def test_missing_input_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        main(["export", str(tmp_path / "missing.yaml")])
