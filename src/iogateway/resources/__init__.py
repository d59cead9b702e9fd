"""
Resources: asset stores and the resolver that maps a path to an asset,
a computed pseudo-file or the not-found page.
"""

from .assets import AssetStore, DirectoryAssetStore, MemoryAssetStore
from .resolver import (
    ResourceResolver,
    Resolution,
    ResourceKind,
    DEFAULT_DOCUMENT,
    EVENT_STREAM_ENDPOINT,
    STATIC_BINARY_EXTENSIONS,
    extract_name,
    expand_text,
)

__all__ = [
    "AssetStore",
    "DirectoryAssetStore",
    "MemoryAssetStore",
    "ResourceResolver",
    "Resolution",
    "ResourceKind",
    "DEFAULT_DOCUMENT",
    "EVENT_STREAM_ENDPOINT",
    "STATIC_BINARY_EXTENSIONS",
    "extract_name",
    "expand_text",
]
