from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from xml.sax.saxutils import escape

from .inline_formatter import escape_text

logger = logging.getLogger(__name__)

VOID_TAGS = {"graphic", "inline-graphic"}
INDENT = "  "

_ATTR_ENTITIES = {'"': "&quot;", "'": "&apos;"}


@dataclass
class XmlNode:
    """Element of the projected tree.

    ``content`` is either plain text (escaped when rendered) or, with
    ``is_markup`` set, inline formatter output that is emitted verbatim.
    """

    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    content: str | None = None
    children: List["XmlNode"] = field(default_factory=list)
    is_markup: bool = False
    # Section depth used by the projector's stack; never rendered.
    level: int | None = field(default=None, compare=False, repr=False)

    def append(self, child: "XmlNode") -> "XmlNode":
        self.children.append(child)
        return child

    @property
    def last_child(self) -> "XmlNode | None":
        return self.children[-1] if self.children else None

    def find_all(self, tag: str) -> List["XmlNode"]:
        """Depth-first list of descendants (and self) carrying ``tag``."""
        found = [self] if self.tag == tag else []
        for child in self.children:
            found.extend(child.find_all(tag))
        return found


def text_node(tag: str, text: str | None, attributes: Dict[str, str] | None = None) -> XmlNode:
    return XmlNode(tag=tag, attributes=dict(attributes or {}), content=text or "")


def markup_node(tag: str, markup: str, attributes: Dict[str, str] | None = None) -> XmlNode:
    return XmlNode(tag=tag, attributes=dict(attributes or {}), content=markup, is_markup=True)


def render_xml(nodes: Iterable[XmlNode], indent: str = "") -> str:
    """Serialize nodes depth first, one element per line, two-space indentation."""
    return "\n".join(_render_node(node, indent) for node in nodes)


def _render_node(node: XmlNode, indent: str) -> str:
    attrs = _render_attributes(node.attributes)
    if node.children:
        if node.content:
            logger.warning("Node <%s> has both content and children; dropping content", node.tag)
        inner = render_xml(node.children, indent + INDENT)
        return f"{indent}<{node.tag}{attrs}>\n{inner}\n{indent}</{node.tag}>"
    if node.tag in VOID_TAGS and not node.content:
        return f"{indent}<{node.tag}{attrs}/>"
    content = node.content or ""
    if not node.is_markup:
        content = escape_text(content)
    return f"{indent}<{node.tag}{attrs}>{content}</{node.tag}>"


def _render_attributes(attributes: Dict[str, str]) -> str:
    if not attributes:
        return ""
    rendered = " ".join(f'{key}="{escape(str(value), _ATTR_ENTITIES)}"' for key, value in attributes.items())
    return f" {rendered}"
