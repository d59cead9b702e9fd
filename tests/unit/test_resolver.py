"""
Unit tests for asset stores and the resource resolver.
"""

import pytest

from iogateway.errors import AssetNotFound, DeviceError
from iogateway.http.response import NOT_FOUND_PAGE
from iogateway.resources import (
    DirectoryAssetStore,
    MemoryAssetStore,
    ResourceResolver,
    ResourceKind,
    extract_name,
    expand_text,
)


class TestExtractName:

    @pytest.mark.parametrize("path, name", [
        ("/", "index.html"),
        ("", "index.html"),
        ("/index.html", "index.html"),
        ("/ui/piface.js", "piface.js"),
        ("/deep/er/board.png", "board.png"),
        ("/events.qif", "events.qif"),
        ("/ui/", "index.html"),
    ])
    def test_last_segment(self, path: str, name: str):
        assert extract_name(path) == name


class TestExpandText:

    def test_pass_through(self):
        body = b"<html>{{not a template}}</html>"

        assert expand_text(body) == body


class TestMemoryAssetStore:

    def test_load(self):
        store = MemoryAssetStore({"a.html": "<p>á</p>"})

        assert store.load("a.html") == "<p>á</p>".encode("utf-8")

    def test_missing(self):
        with pytest.raises(AssetNotFound) as exc_info:
            MemoryAssetStore().load("nope.html")

        assert exc_info.value.name == "nope.html"

    def test_contains(self):
        store = MemoryAssetStore({"a.html": b""})

        assert "a.html" in store
        assert "b.html" not in store


class TestDirectoryAssetStore:

    def test_load_file(self, tmp_path):
        (tmp_path / "index.html").write_bytes(b"<html></html>")
        store = DirectoryAssetStore(tmp_path)

        assert store.load("index.html") == b"<html></html>"

    def test_missing_file(self, tmp_path):
        with pytest.raises(AssetNotFound):
            DirectoryAssetStore(tmp_path).load("missing.html")

    def test_directory_is_not_an_asset(self, tmp_path):
        (tmp_path / "sub").mkdir()

        with pytest.raises(AssetNotFound):
            DirectoryAssetStore(tmp_path).load("sub")

    def test_traversal_refused(self, tmp_path):
        root = tmp_path / "www"
        root.mkdir()
        (tmp_path / "secret.txt").write_bytes(b"secret")

        with pytest.raises(AssetNotFound):
            DirectoryAssetStore(root).load("../secret.txt")

    def test_subdirectory_not_reachable(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "page.html").write_bytes(b"x")

        with pytest.raises(AssetNotFound):
            DirectoryAssetStore(tmp_path).load("sub/page.html")


class TestResourceResolver:

    def test_text_asset(self, resolver):
        resolution = resolver.resolve("/index.html")

        assert resolution.kind is ResourceKind.TEXT
        assert resolution.body.startswith(b"<html>")
        assert resolution.content_type == "text/html; charset=UTF-8"

    def test_default_document(self, resolver, assets):
        resolution = resolver.resolve("/")

        assert resolution.name == "index.html"
        assert resolution.body == assets.load("index.html")

    def test_binary_asset_exact_bytes(self, resolver, assets):
        resolution = resolver.resolve("/board.png")

        assert resolution.kind is ResourceKind.STATIC_BINARY
        assert resolution.body == assets.load("board.png")
        assert resolution.content_type == "image/png"

    def test_script_content_type(self, resolver):
        assert resolver.resolve("/piface.js").content_type == "text/javascript; charset=UTF-8"

    def test_missing_asset(self, resolver):
        resolution = resolver.resolve("/missing.html")

        assert resolution.kind is ResourceKind.NOT_FOUND
        assert resolution.found is False
        assert resolution.body == NOT_FOUND_PAGE

    @pytest.mark.parametrize("path", ["/..", "/.", "/a\\..\\b.html", "/nul\x00.html"])
    def test_unsafe_names(self, resolver, path):
        assert resolver.resolve(path).kind is ResourceKind.NOT_FOUND

    def test_events_pseudo_file(self, resolver):
        resolution = resolver.resolve("/events.qif")

        assert resolution.kind is ResourceKind.PSEUDO
        assert resolution.is_stream is True
        assert resolution.body == b""

    def test_state_pseudo_file(self, resolver, device, bridge):
        device.set_inputs(0b00000001)
        bridge.write_bit(3, 1)

        resolution = resolver.resolve("/state.qif")

        assert resolution.kind is ResourceKind.PSEUDO
        assert resolution.body == b"1000000000010000"
        assert resolution.content_type.startswith("text/plain")

    def test_unknown_pseudo_file(self, resolver):
        resolution = resolver.resolve("/set_bit.qif")

        assert resolution.kind is ResourceKind.NOT_FOUND
        assert resolution.body == NOT_FOUND_PAGE

    def test_pseudo_file_never_touches_store(self):
        store = MemoryAssetStore({"other.qif": b"on disk"})
        resolver = ResourceResolver(store)

        assert resolver.resolve("/other.qif").kind is ResourceKind.NOT_FOUND

    def test_computed_handler_errors_propagate(self, resolver, device):
        device.fail_reads = True

        with pytest.raises(DeviceError):
            resolver.resolve("/state.qif")

    def test_events_name_reserved(self, assets):
        resolver = ResourceResolver(assets)

        with pytest.raises(ValueError):
            resolver.add_computed("events", lambda: b"")

    def test_computed_endpoints_listing(self, resolver):
        assert resolver.computed_endpoints == ["state.qif"]
