"""
Unit tests for the per-connection state machine.

Each test writes a request on the client end of a socket pair, runs the
handler on the server end and inspects what came back.
"""

import json
import logging
import socket
import threading

import pytest

from conftest import INDEX_HTML, BOARD_PNG, recv_all, recv_until
from iogateway.accesslog import AccessLog
from iogateway.events import EventRegistry
from iogateway.handlers import ConnectionHandler, HandlerState
from iogateway.http.response import NOT_FOUND_PAGE
from iogateway.http.status_codes import HTTPStatus


def run(handler, socket_pair, raw: bytes):
    conn, client = socket_pair
    client.sendall(raw)
    outcome = handler.handle(conn)
    return outcome, recv_all(client)


class TestServing:

    def test_get_index(self, handler, socket_pair, sample_get_request):
        outcome, reply = run(handler, socket_pair, sample_get_request)

        assert outcome.state is HandlerState.SERVING
        assert outcome.status is HTTPStatus.OK
        assert reply.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Content-Type: text/html; charset=UTF-8\r\n" in reply
        assert reply.endswith(b"\r\n\r\n" + INDEX_HTML)
        assert outcome.bytes_sent == len(reply)

    def test_default_document(self, handler, socket_pair):
        _, reply = run(handler, socket_pair, b"GET / HTTP/1.1\r\n\r\n")

        assert reply.endswith(INDEX_HTML)

    def test_binary_asset_verbatim(self, handler, socket_pair):
        _, reply = run(handler, socket_pair, b"GET /img/board.png HTTP/1.1\r\n\r\n")

        assert b"Content-Type: image/png\r\n" in reply
        assert reply.split(b"\r\n\r\n", 1)[1] == BOARD_PNG

    def test_not_found(self, handler, socket_pair):
        outcome, reply = run(handler, socket_pair, b"GET /nope.html HTTP/1.1\r\n\r\n")

        assert outcome.status is HTTPStatus.NOT_FOUND
        assert reply.startswith(b"HTTP/1.1 404 Not Found\r\n")
        assert reply.endswith(NOT_FOUND_PAGE)

    def test_legacy_not_found(self, resolver, registry, bridge, socket_pair):
        handler = ConnectionHandler(resolver, registry, bridge, legacy_not_found=True)

        outcome, reply = run(handler, socket_pair, b"GET /nope.html HTTP/1.1\r\n\r\n")

        assert outcome.status is HTTPStatus.OK
        assert reply.startswith(b"HTTP/1.1 200 OK\r\n")
        assert reply.endswith(NOT_FOUND_PAGE)

    def test_state_snapshot(self, handler, socket_pair, device, bridge):
        device.set_inputs(0b1)
        bridge.write_bit(7, 1)

        _, reply = run(handler, socket_pair, b"GET /state.qif HTTP/1.1\r\n\r\n")

        assert reply.endswith(b"\r\n\r\n1000000000000001")

    def test_state_snapshot_device_error(self, handler, socket_pair, device):
        device.fail_reads = True

        outcome, reply = run(handler, socket_pair, b"GET /state.qif HTTP/1.1\r\n\r\n")

        assert outcome.status is HTTPStatus.INTERNAL_SERVER_ERROR
        assert reply.startswith(b"HTTP/1.1 500 ")

    def test_query_ignored_for_get(self, handler, socket_pair):
        _, reply = run(handler, socket_pair, b"GET /index.html?x=1 HTTP/1.1\r\n\r\n")

        assert reply.endswith(INDEX_HTML)


class TestMutating:

    def test_put_sets_bit(self, handler, socket_pair, sample_put_request, device, registry):
        outcome, reply = run(handler, socket_pair, sample_put_request)

        assert outcome.state is HandlerState.MUTATING
        assert outcome.status is HTTPStatus.OK
        assert reply.startswith(b"HTTP/1.1 200 OK\r\n")
        assert reply.endswith(b"Content-Length: 0\r\n\r\n")
        assert device.outputs == 0b00001000
        assert registry.outputs == 0b00001000

    def test_put_marks_subscribers_before_reply(self, handler, socket_pair, sample_put_request, registry):
        class Handle:
            id = "watcher"

        subscriber = registry.register(Handle())
        _, reply = run(handler, socket_pair, sample_put_request)

        assert reply
        assert registry.take_pending_outputs(subscriber) == 0b00001000

    def test_put_device_error(self, handler, socket_pair, sample_put_request, device, bridge):
        device.fail_writes = True

        outcome, reply = run(handler, socket_pair, sample_put_request)

        assert outcome.status is HTTPStatus.INTERNAL_SERVER_ERROR
        assert reply.startswith(b"HTTP/1.1 500 ")
        assert bridge.outputs == 0

    @pytest.mark.parametrize("target", [
        b"/set_bit.qif",
        b"/set_bit.qif?t9=1",
        b"/set_bit.qif?t3=5",
        b"/set_bit.qif?t",
    ])
    def test_bad_query_closes_silently(self, handler, socket_pair, device, target):
        outcome, reply = run(handler, socket_pair, b"PUT " + target + b" HTTP/1.1\r\n\r\n")

        assert outcome.state is HandlerState.REJECTED
        assert reply == b""
        assert device.writes == []


class TestRejected:

    @pytest.mark.parametrize("raw", [
        b"GET /",
        b"GET index.html HTTP/1.1\r\n\r\n",
        b"DELETE /index.html HTTP/1.1\r\n\r\n",
        b"POST /set_bit.qif?t3=1 HTTP/1.1\r\n\r\n",
        b"\x00\x01\x02\x03\x04\x05\x06\x07\x08\x09\x0a\x0b",
    ])
    def test_no_reply(self, handler, socket_pair, raw):
        outcome, reply = run(handler, socket_pair, raw)

        assert outcome.state is HandlerState.REJECTED
        assert outcome.status is None
        assert reply == b""

    def test_empty_connection(self, handler, socket_pair):
        conn, client = socket_pair
        client.shutdown(socket.SHUT_WR)

        outcome = handler.handle(conn)

        assert outcome.state is HandlerState.REJECTED
        assert conn.is_closed


class TestSubscribing:

    def test_stream_until_registry_closes(self, handler, socket_pair, registry):
        conn, client = socket_pair
        client.sendall(b"GET /events.qif HTTP/1.1\r\n\r\n")
        result = {}

        runner = threading.Thread(target=lambda: result.update(outcome=handler.handle(conn)))
        runner.start()

        data = recv_until(client, b"\n\n")
        assert data.startswith(b"HTTP/1.1 200 OK\r\nContent-Type: text/event-stream")
        assert b"event: piface\ndata: 00000000\n\n" in data
        assert len(registry) == 1

        registry.close()
        runner.join(timeout=5.0)

        outcome = result["outcome"]
        assert outcome.state is HandlerState.SUBSCRIBING
        assert outcome.events_sent >= 1
        assert len(registry) == 0

    def test_registry_full(self, resolver, bridge, socket_pair):
        class Handle:
            id = "occupant"

        registry = EventRegistry(capacity=1)
        occupant = registry.register(Handle())
        handler = ConnectionHandler(resolver, registry, bridge)

        outcome, reply = run(handler, socket_pair, b"GET /events.qif HTTP/1.1\r\n\r\n")

        assert outcome.status is HTTPStatus.SERVICE_UNAVAILABLE
        assert reply.startswith(b"HTTP/1.1 503 Service Unavailable\r\n")
        assert registry.subscribers() == [occupant]

    def test_id_already_streaming(self, handler, socket_pair, registry):
        conn, _ = socket_pair

        class Handle:
            id = conn.id

        occupant = registry.register(Handle())

        outcome, reply = run(handler, socket_pair, b"GET /events.qif HTTP/1.1\r\n\r\n")

        assert outcome.state is HandlerState.SUBSCRIBING
        assert outcome.status is HTTPStatus.SERVICE_UNAVAILABLE
        assert reply.startswith(b"HTTP/1.1 503 Service Unavailable\r\n")
        assert registry.subscribers() == [occupant]


class TestAccessLog:

    def test_json_entry(self, resolver, registry, bridge, socket_pair, sample_get_request, caplog):
        handler = ConnectionHandler(resolver, registry, bridge, access_log=AccessLog("json"))
        caplog.set_level(logging.INFO, logger="iogateway.access")

        run(handler, socket_pair, sample_get_request)

        records = [r for r in caplog.records if r.name == "iogateway.access"]
        assert len(records) == 1
        entry = json.loads(records[0].getMessage())
        assert entry["method"] == "GET"
        assert entry["target"] == "/index.html"
        assert entry["status_code"] == 200
        assert entry["state"] == "serving"

    def test_rejected_not_logged(self, resolver, registry, bridge, socket_pair, caplog):
        handler = ConnectionHandler(resolver, registry, bridge, access_log=AccessLog())
        caplog.set_level(logging.INFO, logger="iogateway.access")

        run(handler, socket_pair, b"DELETE /index.html HTTP/1.1\r\n\r\n")

        assert not [r for r in caplog.records if r.name == "iogateway.access"]
