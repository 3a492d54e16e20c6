"""
Line-oriented TCP request dispatcher.

Each accepted connection is served by its own thread. A connection reads one
newline-terminated request at a time, routes it to the registered handler and
writes the handler's response line back before reading the next request.
"""

import socket
import threading
from collections.abc import Callable, Mapping
from types import MappingProxyType

import structlog

from powgate.errors import BindFailed, MalformedRequest, UnknownOperation
from powgate.middleware.logging import connection_context
from powgate.schemas.protocol import Request, Response, parse_request

logger = structlog.get_logger()

# payload, sender -> response
Handler = Callable[[str, str], Response]

DEFAULT_MAX_LINE_BYTES = 4096
ACCEPT_POLL_INTERVAL = 0.2


class DispatcherBuilder:
    """Collects handlers before a dispatcher is built. Last registration wins."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register_handler(self, name: str, handler: Handler) -> "DispatcherBuilder":
        if not name or " " in name:
            raise ValueError(f"Invalid operation name {name!r}")
        self._handlers[name] = handler
        return self

    def build(self, *, max_line_bytes: int = DEFAULT_MAX_LINE_BYTES) -> "Dispatcher":
        return Dispatcher(self._handlers, max_line_bytes=max_line_bytes)


class Dispatcher:
    def __init__(
        self,
        handlers: Mapping[str, Handler],
        *,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
    ):
        self._handlers = MappingProxyType(dict(handlers))
        self._max_line_bytes = max_line_bytes

        self._listener: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None
        self._quit = threading.Event()

        # Guards the live connection and worker registries
        self._lock = threading.Lock()
        self._connections: set[socket.socket] = set()
        self._workers: set[threading.Thread] = set()

    @property
    def handlers(self) -> Mapping[str, Handler]:
        return self._handlers

    @property
    def address(self) -> tuple[str, int]:
        if self._listener is None:
            raise RuntimeError("Dispatcher is not listening")
        host, port = self._listener.getsockname()[:2]
        return host, port

    def listen(self, host: str, port: int) -> tuple[str, int]:
        """Bind the listener and start accepting connections in the background."""
        if self._listener is not None:
            raise RuntimeError("Dispatcher is already listening")

        try:
            listener = socket.create_server((host, port), family=socket.AF_INET)
        except OSError as e:
            raise BindFailed(f"listening tcp {host}:{port}: {e}") from e

        listener.settimeout(ACCEPT_POLL_INTERVAL)
        self._listener = listener
        self._accept_thread = threading.Thread(
            target=self._accept_loop, args=(listener,), name="powgate-accept", daemon=True
        )
        self._accept_thread.start()

        bound_host, bound_port = self.address
        logger.info("server_listening", host=bound_host, port=bound_port)
        return bound_host, bound_port

    def shutdown(self) -> None:
        """
        Stop serving and wait for every connection worker to exit.

        Workers finish the request they are handling; blocked reads are woken by
        half-closing the read side of each live connection.
        """
        with self._lock:
            if self._quit.is_set():
                return
            self._quit.set()

        if self._accept_thread is not None:
            self._accept_thread.join()
        if self._listener is not None:
            self._listener.close()

        with self._lock:
            connections = list(self._connections)
            workers = list(self._workers)

        for conn in connections:
            try:
                conn.shutdown(socket.SHUT_RD)
            except OSError as e:
                # Peer already gone
                logger.debug("connection_shutdown_skipped", error=str(e))

        for worker in workers:
            worker.join()

        logger.info("server_stopped", drained=len(workers))

    def _accept_loop(self, listener: socket.socket) -> None:
        while not self._quit.is_set():
            try:
                conn, addr = listener.accept()
            except TimeoutError:
                continue
            except OSError as e:
                if not self._quit.is_set():
                    logger.error("accept_failed", error=str(e))
                return

            conn.settimeout(None)
            worker = threading.Thread(
                target=self._serve_connection,
                args=(conn, addr[0]),
                name=f"powgate-conn-{addr[0]}:{addr[1]}",
                daemon=True,
            )
            with self._lock:
                if self._quit.is_set():
                    conn.close()
                    return
                self._connections.add(conn)
                self._workers.add(worker)
            worker.start()

    def _serve_connection(self, conn: socket.socket, remote: str) -> None:
        try:
            with conn, connection_context(remote):
                reader = conn.makefile("rb")
                writer = conn.makefile("wb")
                try:
                    self._serve_lines(reader, writer, remote)
                except OSError as e:
                    if not self._quit.is_set():
                        logger.warning("connection_error", error=str(e))
                finally:
                    reader.close()
                    writer.close()
        finally:
            with self._lock:
                self._connections.discard(conn)
                self._workers.discard(threading.current_thread())

    def _serve_lines(self, reader, writer, remote: str) -> None:
        while not self._quit.is_set():
            raw = reader.readline(self._max_line_bytes)
            if not raw.endswith(b"\n"):
                if len(raw) >= self._max_line_bytes:
                    self._reject(writer, MalformedRequest("request line too long"))
                # End of stream; a trailing partial line is dropped
                return

            try:
                request = self._route(raw)
            except (MalformedRequest, UnknownOperation) as e:
                self._reject(writer, e)
                return

            response = self._dispatch(request, remote)
            self._write(writer, response)

    def _route(self, raw: bytes) -> Request:
        try:
            line = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedRequest("request is not valid utf-8") from e

        logger.info("request_received", value=line.rstrip("\n"))

        request = parse_request(line)
        if request.op not in self._handlers:
            raise UnknownOperation(f"unknown handler {request.op}")
        return request

    def _dispatch(self, request: Request, remote: str) -> Response:
        handler = self._handlers[request.op]
        try:
            return handler(request.payload, remote)
        except Exception:
            logger.exception("handler_failed", op=request.op)
            return Response.error("internal error")

    def _reject(self, writer, error: Exception) -> None:
        logger.warning("request_rejected", error=str(error))
        self._write(writer, Response.error(str(error)))

    @staticmethod
    def _write(writer, response: Response) -> None:
        writer.write(response.to_line().encode("utf-8"))
        writer.flush()
