from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Dict, Optional

from .projector import IMAGE_DIR


def configure_logging(verbose: bool = False) -> None:
    """Configure a simple console logger."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(message)s",
    )


def resolve_output_path(input_path: Path, output: Optional[str], suffix: str) -> Path:
    if output:
        out_path = Path(output)
        if out_path.is_dir():
            out_path = out_path / f"{input_path.stem}{suffix}"
        return out_path
    return input_path.with_suffix(suffix)


def write_attachments(attachments: Dict[str, str], directory: Path) -> list[Path]:
    """Decode base64 attachments into ``directory/Images``."""
    if not attachments:
        return []
    image_dir = directory / IMAGE_DIR
    image_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for filename, payload in attachments.items():
        target = image_dir / filename
        target.write_bytes(base64.b64decode(payload))
        written.append(target)
    return written
