"""Exception hierarchy for BlockPress.

Recoverable data problems (unknown styles, broken table payloads, pages
that cannot be filled cleanly) are reported as ``Issue`` records on the
result objects. The exceptions below are reserved for input that must be
rejected before any work starts.
"""


class BlockPressError(Exception):
    """Base exception for all BlockPress errors."""


class StyleConfigError(BlockPressError, ValueError):
    """Raised when a style registry file has an invalid structure."""


class DocumentFormatError(BlockPressError, ValueError):
    """Raised when a document file cannot be turned into blocks."""


class InvalidGeometryError(BlockPressError, ValueError):
    """Raised when page dimensions or margins are negative or unparsable."""


class PayloadError(BlockPressError):
    """Raised when a table or image block carries a malformed JSON payload."""

    def __init__(self, block_id: int, reason: str):
        self.block_id = block_id
        self.reason = reason
        super().__init__(f"Block {block_id}: malformed payload ({reason})")
