"""
=============================================================================
RESOURCE RESOLVER
=============================================================================

Decides what a GET path refers to. Only the last path segment matters:

    /                        →  index.html          (default document)
    /index.html              →  index.html
    /ui/piface.js            →  piface.js
    /events.qif              →  events.qif          (pseudo-file)
    /set_bit.qif             →  set_bit.qif         (pseudo-file)

=============================================================================
RESOURCE KINDS
=============================================================================

    ┌──────────────────┬─────────────────────────┬────────────────────────┐
    │ Kind             │ Which names             │ Body                   │
    ├──────────────────┼─────────────────────────┼────────────────────────┤
    │ STATIC_BINARY    │ .png .jpg .gif .ico ... │ raw bytes from store   │
    │ PSEUDO           │ *.qif                   │ computed in-process    │
    │ TEXT             │ everything else         │ store bytes, expanded  │
    │ NOT_FOUND        │ missing or unsafe name  │ fixed 404 page         │
    └──────────────────┴─────────────────────────┴────────────────────────┘

Pseudo-files never touch the store:

    events.qif   the event stream; the dispatcher takes over the connection
    <name>.qif   a computed endpoint registered with add_computed()
    other .qif   not found

=============================================================================
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Callable, Optional

from ..errors import AssetNotFound
from ..http.mime_types import get_content_type
from ..http.response import HTML_CONTENT_TYPE, TEXT_CONTENT_TYPE, NOT_FOUND_PAGE
from .assets import AssetStore


logger = logging.getLogger(__name__)


DEFAULT_DOCUMENT = "index.html"

PSEUDO_EXTENSION = ".qif"

# Pseudo-file that opens the event stream
EVENT_STREAM_ENDPOINT = "events"

STATIC_BINARY_EXTENSIONS = frozenset({
    ".png", ".jpg", ".jpeg", ".gif", ".ico", ".bmp", ".webp",
})


class ResourceKind(Enum):
    STATIC_BINARY = "static_binary"
    PSEUDO = "pseudo"
    TEXT = "text"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Resolution:
    """
    Result of resolving a path.

    Attributes:
        kind:         What the name turned out to be.
        name:         The extracted resource name.
        body:         Bytes to send (empty for the event stream).
        content_type: Content-Type for the body.
        is_stream:    True for the event-stream pseudo-file.
    """

    kind: ResourceKind
    name: str
    body: bytes = b""
    content_type: str = HTML_CONTENT_TYPE
    is_stream: bool = False

    @property
    def found(self) -> bool:
        return self.kind is not ResourceKind.NOT_FOUND


ComputedHandler = Callable[[], bytes]


def extract_name(path: str) -> str:
    """
    Return the text after the final "/" of a path.

        >>> extract_name("/ui/piface.js")
        'piface.js'
        >>> extract_name("/")
        'index.html'
    """
    name = path.rsplit("/", 1)[-1]
    return name or DEFAULT_DOCUMENT


def is_safe_name(name: str) -> bool:
    """A bare file name: no separators, no NUL, not "." or ".."."""
    if name in (".", ".."):
        return False
    return not any(c in name for c in ("/", "\\", "\x00"))


def expand_text(body: bytes) -> bytes:
    """
    Hook for server-side expansion of text assets.

    Text assets are currently served unchanged.
    """
    return body


def not_found_resolution(name: str) -> Resolution:
    return Resolution(kind=ResourceKind.NOT_FOUND, name=name, body=NOT_FOUND_PAGE)


class ResourceResolver:
    """
    Maps request paths to Resolutions.

    Usage:
        resolver = ResourceResolver(DirectoryAssetStore("www"))
        resolver.add_computed("state", lambda: b"0000000000000000")

        resolver.resolve("/")            # TEXT, index.html
        resolver.resolve("/state.qif")   # PSEUDO, computed body
        resolver.resolve("/events.qif")  # PSEUDO, is_stream=True
    """

    def __init__(self, store: AssetStore):
        self.store = store
        self._computed: dict[str, tuple[ComputedHandler, str]] = {}

    def add_computed(
        self,
        stem: str,
        handler: ComputedHandler,
        content_type: str = TEXT_CONTENT_TYPE,
    ) -> None:
        """
        Register a computed pseudo-file, reachable as "<stem>.qif".

        The handler runs on every request. Exceptions it raises propagate
        to the caller of resolve().
        """
        if stem == EVENT_STREAM_ENDPOINT:
            raise ValueError(f"{stem}{PSEUDO_EXTENSION} is reserved for the event stream")
        self._computed[stem] = (handler, content_type)

    @property
    def computed_endpoints(self) -> list[str]:
        return [f"{stem}{PSEUDO_EXTENSION}" for stem in sorted(self._computed)]

    def resolve(self, path: str) -> Resolution:
        """
        Resolve a request path (without its query string).

        Raises:
            Whatever a computed handler raises (DeviceError for state.qif).
        """
        name = extract_name(path)

        if not is_safe_name(name):
            logger.warning(f"Refusing unsafe resource name: {name!r}")
            return not_found_resolution(name)

        extension = PurePosixPath(name).suffix.lower()

        if extension == PSEUDO_EXTENSION:
            return self._resolve_pseudo(name)

        try:
            body = self.store.load(name)
        except AssetNotFound:
            logger.debug(f"Asset not found: {name}")
            return not_found_resolution(name)

        if extension in STATIC_BINARY_EXTENSIONS:
            return Resolution(
                kind=ResourceKind.STATIC_BINARY,
                name=name,
                body=body,
                content_type=get_content_type(name),
            )

        return Resolution(
            kind=ResourceKind.TEXT,
            name=name,
            body=expand_text(body),
            content_type=get_content_type(name),
        )

    def _resolve_pseudo(self, name: str) -> Resolution:
        stem = name[:-len(PSEUDO_EXTENSION)]

        if stem == EVENT_STREAM_ENDPOINT:
            return Resolution(kind=ResourceKind.PSEUDO, name=name, is_stream=True)

        entry: Optional[tuple[ComputedHandler, str]] = self._computed.get(stem)
        if entry is None:
            logger.debug(f"Unknown pseudo-file: {name}")
            return not_found_resolution(name)

        handler, content_type = entry
        return Resolution(
            kind=ResourceKind.PSEUDO,
            name=name,
            body=handler(),
            content_type=content_type,
        )
