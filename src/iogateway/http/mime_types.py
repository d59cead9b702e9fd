"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Maps asset names to Content-Type header values.

The gateway serves a small web UI (HTML page, script, stylesheet and a
few images), so the table only covers what such a UI is made of. Names
with an unknown extension are served as HTML, the same as every page the
gateway has always served.

    page.html     →  text/html; charset=UTF-8
    piface.js     →  text/javascript; charset=UTF-8
    board.png     →  image/png
    README        →  text/html; charset=UTF-8   (default)

=============================================================================
"""

from pathlib import Path
from typing import Optional


MIME_TYPES = {
    # Text
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".json": "application/json",
    ".txt": "text/plain",
    ".svg": "image/svg+xml",

    # Binary images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".ico": "image/x-icon",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
}

DEFAULT_MIME_TYPE = "text/html"

# Charset spelling used on every text response the gateway writes
DEFAULT_CHARSET = "UTF-8"


def get_mime_type(name: str | Path, default: Optional[str] = None) -> str:
    """
    Get the MIME type for an asset name based on its extension.

    Examples:
        >>> get_mime_type("board.png")
        'image/png'

        >>> get_mime_type("index")
        'text/html'
    """
    extension = Path(name).suffix.lower()
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    """Check if a MIME type represents text content (gets a charset)."""
    if mime_type.startswith("text/"):
        return True
    return mime_type in {"application/json", "image/svg+xml"}


def get_content_type(name: str | Path, charset: str = DEFAULT_CHARSET) -> str:
    """
    Get the full Content-Type header value for an asset.

    Examples:
        >>> get_content_type("index.html")
        'text/html; charset=UTF-8'

        >>> get_content_type("board.png")
        'image/png'
    """
    mime_type = get_mime_type(name)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
