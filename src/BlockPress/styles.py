from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping

import yaml

from .errors import StyleConfigError
from .model import (
    EXPORT_FORMATS,
    KIND_IMAGE,
    KIND_ORDERED_LIST,
    KIND_TABLE,
    KIND_UNORDERED_LIST,
    MATTER_BACK,
    MATTER_BODY,
    MATTER_CHAPTER,
    MATTER_FRONT,
    ListAttributes,
    StyleDefinition,
    VisualSettings,
)

logger = logging.getLogger(__name__)

DEFAULT_STYLES_PATH = Path(__file__).with_name("default_styles.yaml")

MATTER_CLASSES = {MATTER_FRONT, MATTER_BODY, MATTER_BACK, MATTER_CHAPTER}
STYLE_KINDS = {KIND_ORDERED_LIST, KIND_UNORDERED_LIST, KIND_TABLE, KIND_IMAGE}
LIST_STYLES = {
    "disc",
    "circle",
    "square",
    "decimal",
    "lower-alpha",
    "lower-roman",
    "upper-alpha",
    "upper-roman",
    "none",
}


class StyleRegistry:
    """Style definitions keyed by style key; registering a key replaces it."""

    def __init__(self, styles: Iterable[StyleDefinition] = ()):
        self._styles: Dict[str, StyleDefinition] = {}
        for style in styles:
            self.register(style)

    def lookup(self, key: str) -> StyleDefinition | None:
        return self._styles.get(key)

    def register(self, style: StyleDefinition) -> None:
        if style.key in self._styles:
            logger.debug("Replacing style definition %r", style.key)
        self._styles[style.key] = style

    def remove(self, key: str) -> None:
        self._styles.pop(key, None)

    def headings(self) -> List[StyleDefinition]:
        """Heading styles ordered from most to least senior."""
        found = [style for style in self._styles.values() if style.is_heading]
        return sorted(found, key=lambda style: style.heading_level)

    def __contains__(self, key: object) -> bool:
        return key in self._styles

    def __iter__(self) -> Iterator[StyleDefinition]:
        return iter(self._styles.values())

    def __len__(self) -> int:
        return len(self._styles)


def load_style_registry(path: str | Path | None = None) -> StyleRegistry:
    """Load a registry from YAML; without a path the bundled defaults are used."""
    source = Path(path) if path is not None else DEFAULT_STYLES_PATH
    logger.debug("Loading styles from %s", source)
    return parse_style_registry(source.read_text(encoding="utf-8"))


def default_registry() -> StyleRegistry:
    return load_style_registry()


def parse_style_registry(text: str) -> StyleRegistry:
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict) or not isinstance(data.get("styles"), list):
        raise StyleConfigError("Style file must be a mapping with a 'styles' list.")
    return StyleRegistry(style_from_mapping(entry) for entry in data["styles"])


def style_from_mapping(entry: Any) -> StyleDefinition:
    if not isinstance(entry, dict):
        raise StyleConfigError(f"Style entry must be a mapping, got {type(entry).__name__}.")
    key = entry.get("key")
    if not key or not isinstance(key, str):
        raise StyleConfigError("Style entry is missing a string 'key'.")

    tags = _format_mapping(key, "tags", entry.get("tags"))
    missing = [fmt for fmt in EXPORT_FORMATS if fmt not in tags]
    if missing:
        raise StyleConfigError(f"Style {key!r} has no output tag for {', '.join(missing)}.")
    wrappers = _format_mapping(key, "wrappers", entry.get("wrappers") or {})

    matter = entry.get("matter")
    if matter is not None and matter not in MATTER_CLASSES:
        raise StyleConfigError(f"Style {key!r}: unknown matter class {matter!r}.")
    kind = entry.get("kind")
    if kind is not None and kind not in STYLE_KINDS:
        raise StyleConfigError(f"Style {key!r}: unknown kind {kind!r}.")

    heading_level = entry.get("heading_level")
    if heading_level is not None and not isinstance(heading_level, int):
        raise StyleConfigError(f"Style {key!r}: heading_level must be an integer.")

    attributes = entry.get("attributes") or {}
    if not isinstance(attributes, dict):
        raise StyleConfigError(f"Style {key!r}: attributes must be a mapping.")

    return StyleDefinition(
        key=key,
        name=str(entry.get("name") or key),
        tags=tags,
        wrappers=wrappers,
        heading_level=heading_level,
        matter=matter,
        kind=kind,
        default_list_attributes=list_attributes_from_mapping(entry.get("list")),
        attributes={str(k): str(v) for k, v in attributes.items()},
        page_break_before=bool(entry.get("page_break_before", False)),
        visual=_visual_from_mapping(key, entry.get("visual") or {}),
    )


def list_attributes_from_mapping(data: Mapping[str, Any] | None) -> ListAttributes | None:
    if not data:
        return None
    style = data.get("style")
    if style is not None and style not in LIST_STYLES:
        raise StyleConfigError(f"Unknown list style {style!r}.")
    start = data.get("start")
    return ListAttributes(
        style=style,
        start=int(start) if start is not None else None,
        reversed=bool(data.get("reversed", False)),
    )


def _format_mapping(key: str, field_name: str, value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        raise StyleConfigError(f"Style {key!r}: {field_name} must map formats to tags.")
    unknown = [fmt for fmt in value if fmt not in EXPORT_FORMATS]
    if unknown:
        raise StyleConfigError(f"Style {key!r}: unknown export format(s) {unknown}.")
    return {fmt: str(tag) for fmt, tag in value.items() if tag}


def _visual_from_mapping(key: str, data: Mapping[str, Any]) -> VisualSettings:
    defaults = VisualSettings()
    try:
        return VisualSettings(
            font_family=str(data.get("font_family", defaults.font_family)),
            font_size=float(data.get("font_size", defaults.font_size)),
            line_height=float(data.get("line_height", defaults.line_height)),
            bold=bool(data.get("bold", defaults.bold)),
            italic=bool(data.get("italic", defaults.italic)),
            space_before=float(data.get("space_before", defaults.space_before)),
            space_after=float(data.get("space_after", defaults.space_after)),
            text_align=str(data.get("text_align", defaults.text_align)),
        )
    except (TypeError, ValueError) as exc:
        raise StyleConfigError(f"Style {key!r}: invalid visual settings ({exc}).") from exc
