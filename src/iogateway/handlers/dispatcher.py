"""
=============================================================================
CONNECTION HANDLER
=============================================================================

Runs on a worker thread, once per accepted connection. Every connection
carries exactly one request and is closed afterwards; an events.qif
request keeps it open until the stream ends.

=============================================================================
STATE MACHINE
=============================================================================

    ACCEPTED
       │
       ▼
    PARSING ── too short / no target / not GET or PUT ──► REJECTED
       │                                                    (no reply)
       ├── GET, events.qif ──► SUBSCRIBING ── registry full ──► 503
       │                           │
       │                           └── header, events every tick until
       │                               the peer leaves or shutdown
       │
       ├── GET, anything else ──► SERVING ── found ──────► 200 + body
       │                              ├──── not found ───► 404 page
       │                              └──── device error ► 500
       │
       └── PUT ──► MUTATING ── bad query ────► REJECTED (no reply)
                     ├──────── device error ─► 500
                     └──────── written ──────► 200, empty body
                                  │
                                  ▼
                               CLOSED

Each stage returns an Outcome instead of raising. The `with connection:`
block around the whole machine closes the socket exactly once, on every
path, including unexpected exceptions (which propagate to the worker and
are logged there).

=============================================================================
"""

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from ..accesslog import AccessLog, RequestLog, timestamp
from ..core.connection import Connection, ConnectionState
from ..device import HardwareBridge
from ..errors import DeviceError, MalformedRequest, RegistryFull
from ..events import EventRegistry, EventStream, DEFAULT_TICK
from ..http.request import Request, RequestMethod, RequestParser
from ..http.response import (
    HTTPResponse,
    ok,
    not_found,
    internal_error,
    service_unavailable,
)
from ..http.status_codes import HTTPStatus
from ..resources import ResourceResolver
from .mutation import parse_bit_mutation, apply_mutation


logger = logging.getLogger(__name__)


class HandlerState(Enum):
    ACCEPTED = "accepted"
    PARSING = "parsing"
    SERVING = "serving"
    SUBSCRIBING = "subscribing"
    MUTATING = "mutating"
    REJECTED = "rejected"
    CLOSED = "closed"


@dataclass(frozen=True)
class Outcome:
    """
    What happened to one connection.

    Attributes:
        state:       The branch taken before CLOSED.
        status:      Status line sent, or None when nothing was sent.
        delivered:   False if the client was gone before the reply was written.
        bytes_sent:  Total bytes written (filled in after close).
        events_sent: Number of events written on an event stream.
        reason:      Short explanation for REJECTED.
    """

    state: HandlerState
    status: Optional[HTTPStatus] = None
    delivered: bool = True
    bytes_sent: int = 0
    events_sent: int = 0
    reason: str = ""


class ConnectionHandler:
    """
    Dispatches one connection through the state machine.

    Shared by all worker threads: it holds no per-connection state.
    """

    def __init__(
        self,
        resolver: ResourceResolver,
        registry: EventRegistry,
        bridge: HardwareBridge,
        parser: Optional[RequestParser] = None,
        access_log: Optional[AccessLog] = None,
        tick: float = DEFAULT_TICK,
        legacy_not_found: bool = False,
    ):
        """
        Args:
            resolver: Maps GET paths to assets and pseudo-files.
            registry: Event-stream subscribers and the shared outputs.
            bridge: Serialized access to the I/O board.
            parser: Request parser (default RequestParser()).
            access_log: Where to record each connection (None = no log).
            tick: Seconds between events on a stream.
            legacy_not_found: Send the not-found page with "200 OK".
        """
        self.resolver = resolver
        self.registry = registry
        self.bridge = bridge
        self.parser = parser or RequestParser()
        self.access_log = access_log
        self.tick = tick
        self.legacy_not_found = legacy_not_found

    def handle(self, connection: Connection) -> Outcome:
        """Run the state machine for one connection and close it."""
        start_time = time.time()

        with connection:
            logger.debug(f"[{connection.id}] {HandlerState.ACCEPTED.value} from {connection.client_ip}")
            outcome, request = self._dispatch(connection)

        outcome = replace(outcome, bytes_sent=connection.bytes_sent)
        self._record(connection, request, outcome, start_time)
        return outcome

    # =========================================================================
    # STAGES
    # =========================================================================

    def _dispatch(self, connection: Connection) -> tuple[Outcome, Optional[Request]]:
        """PARSING: read, parse and pick a branch."""
        data = connection.read_request()
        connection.state = ConnectionState.PROCESSING

        try:
            request = self.parser.parse(data, connection.address)
        except MalformedRequest as e:
            return Outcome(HandlerState.REJECTED, reason=str(e)), None

        if request.method is RequestMethod.UNKNOWN:
            return Outcome(HandlerState.REJECTED, reason="Unsupported method"), request

        if request.method is RequestMethod.PUT:
            return self._mutate(connection, request), request

        return self._serve(connection, request), request

    def _serve(self, connection: Connection, request: Request) -> Outcome:
        """SERVING: one-shot GET, or hand over to SUBSCRIBING."""
        try:
            resolution = self.resolver.resolve(request.path)
        except DeviceError as e:
            logger.error(f"[{connection.id}] Device error serving {request.path}: {e}")
            return self._respond(connection, HandlerState.SERVING, internal_error("Device error"))

        if resolution.is_stream:
            return self._subscribe(connection)

        if not resolution.found:
            response = not_found(legacy=self.legacy_not_found)
        else:
            response = ok(resolution.body, resolution.content_type)

        return self._respond(connection, HandlerState.SERVING, response)

    def _subscribe(self, connection: Connection) -> Outcome:
        """SUBSCRIBING: register, then stream until the peer or server stops."""
        try:
            subscriber = self.registry.register(connection)
        except RegistryFull:
            return self._respond(
                connection,
                HandlerState.SUBSCRIBING,
                service_unavailable("Event stream capacity reached"),
            )
        except ValueError as e:
            logger.error(f"[{connection.id}] Event stream not registered: {e}")
            return self._respond(
                connection,
                HandlerState.SUBSCRIBING,
                service_unavailable("Event stream unavailable"),
            )

        stream = EventStream(connection, self.registry, self.bridge, subscriber, self.tick)
        events_sent = stream.run()

        return Outcome(
            HandlerState.SUBSCRIBING,
            status=HTTPStatus.OK,
            delivered=events_sent > 0,
            events_sent=events_sent,
        )

    def _mutate(self, connection: Connection, request: Request) -> Outcome:
        """MUTATING: decode the query, write the bit, acknowledge."""
        try:
            mutation = parse_bit_mutation(request.query)
        except MalformedRequest as e:
            return Outcome(HandlerState.REJECTED, reason=str(e))

        try:
            apply_mutation(self.bridge, mutation)
        except DeviceError:
            return self._respond(connection, HandlerState.MUTATING, internal_error("Device write failed"))

        return self._respond(connection, HandlerState.MUTATING, ok())

    def _respond(
        self,
        connection: Connection,
        state: HandlerState,
        response: HTTPResponse,
    ) -> Outcome:
        delivered = connection.send_response(response.to_bytes())
        return Outcome(state, status=response.status, delivered=delivered)

    # =========================================================================
    # LOGGING
    # =========================================================================

    def _record(
        self,
        connection: Connection,
        request: Optional[Request],
        outcome: Outcome,
        start_time: float,
    ) -> None:
        if outcome.state is HandlerState.REJECTED:
            logger.debug(f"[{connection.id}] Rejected {connection.client_ip}: {outcome.reason}")
            return

        if self.access_log is None:
            return

        self.access_log.record(RequestLog(
            request_id=connection.id,
            method=request.method.value if request else "-",
            target=request.target if request else "-",
            client_ip=connection.client_ip,
            status_code=int(outcome.status) if outcome.status is not None else None,
            bytes_sent=outcome.bytes_sent,
            duration_ms=(time.time() - start_time) * 1000,
            state=outcome.state.value,
            timestamp=timestamp(),
        ))
