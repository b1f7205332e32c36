from __future__ import annotations

import argparse
import logging
from pathlib import Path

from . import export_xml, renderer_docx
from .document_loader import load_document
from .errors import BlockPressError
from .layout import ReportLabMeasurer
from .model import EXPORT_FORMATS, Block
from .outline import build_outline, walk_outline
from .page_format import load_layout_settings
from .pagination import paginate
from .styles import load_style_registry
from .utils import configure_logging, resolve_output_path, write_attachments


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blockpress",
        description="Export block documents to JATS/BITS XML and paginate them for print.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--styles", type=str, help="Style registry YAML (defaults to the bundled styles)")
    commands = parser.add_subparsers(dest="command", required=True)

    export = commands.add_parser("export", help="Write JATS or BITS XML")
    export.add_argument("input", type=str, help="Path to document YAML/JSON")
    export.add_argument("-o", "--output", type=str, help="Output XML path")
    export.add_argument("--format", choices=EXPORT_FORMATS, help="Export format (default from document type)")

    pages = commands.add_parser("paginate", help="Compute page breaks and optionally write DOCX")
    pages.add_argument("input", type=str, help="Path to document YAML/JSON")
    pages.add_argument("--layout", type=str, help="Layout settings YAML (default A4, 2cm margins)")
    pages.add_argument("--start-page", type=int, default=1, help="Number of the first page")
    pages.add_argument("--docx", type=str, help="Write the paginated document to this DOCX path")

    outline = commands.add_parser("outline", help="Print the heading outline")
    outline.add_argument("input", type=str, help="Path to document YAML/JSON")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)
    input_path = Path(args.input).expanduser()
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    try:
        styles = load_style_registry(args.styles)
        logging.info("Reading %s", input_path)
        document = load_document(input_path)
        logging.debug("Loaded %d blocks", len(document.blocks))
        if args.command == "export":
            _export(args, input_path, document, styles)
        elif args.command == "paginate":
            _paginate(args, input_path, document, styles)
        else:
            _outline(document, styles)
    except BlockPressError as exc:
        logging.error("%s", exc)
        raise SystemExit(1) from exc


def _export(args, input_path: Path, document, styles) -> None:
    result = export_xml.export_document(document, fmt=args.format, styles=styles)
    output_path = resolve_output_path(input_path, args.output, ".xml")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(result.xml, encoding="utf-8")
    for path in write_attachments(result.attachments, output_path.parent):
        logging.info("Wrote attachment %s", path)
    for issue in result.issues:
        logging.warning("%s: %s", issue.kind, issue.message)
    logging.info("Done. Saved to %s", output_path)


def _paginate(args, input_path: Path, document, styles) -> None:
    geometry = load_layout_settings(args.layout)
    measurer = ReportLabMeasurer(styles, geometry.content_width)
    result = paginate(document.blocks, geometry, measurer, styles=styles, start_page=args.start_page)
    for issue in result.issues:
        logging.warning("%s: %s", issue.kind, issue.message)

    page, ids = args.start_page, []
    for item in result.blocks:
        if isinstance(item, Block):
            ids.append(str(item.id))
        else:
            print(f"page {page}: {' '.join(ids)}")
            page, ids = page + 1, []
    print(f"page {page}: {' '.join(ids)}")

    if args.docx:
        logging.info("Rendering DOCX to %s", args.docx)
        renderer_docx.render_document(
            result.blocks,
            output_path=args.docx,
            styles=styles,
            geometry=geometry,
            asset_root=input_path.parent,
        )
    logging.info("%d pages", result.page_count)


def _outline(document, styles) -> None:
    for depth, entry in walk_outline(build_outline(document.blocks, styles)):
        print(f"{'  ' * depth}{entry.title}")


if __name__ == "__main__":
    main()
