"""A threaded caching HTTP proxy for GET requests."""

from __future__ import annotations

import logging
import re
import socket
import sys
import threading
import time

from cacheproxy.cache import DEFAULT_CAPACITY, DEFAULT_MAX_ELEMENT_SIZE, LRUCache
from cacheproxy.httpparse import ParsedRequest, ParseError, parse_request

MAX_BYTES = 4096
MAX_CLIENTS = 400
DEFAULT_PORT = 8080
DEFAULT_REMOTE_PORT = 80

log = logging.getLogger(__name__)

_REASONS = {
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    500: "Internal Server Error",
    501: "Not Implemented",
    505: "HTTP Version Not Supported",
}
_BODY_EXTRA = {403: "<br>Permission Denied"}
_CONTENT_TYPE_FIRST = {403, 404}

_INTEGER_PREFIX = re.compile(r"\s*([+-]?\d+)")


def _port_number(port: str | None) -> int:
    if port is None:
        return DEFAULT_REMOTE_PORT
    match = _INTEGER_PREFIX.match(port)
    if match is None:
        raise ValueError(f"invalid port: {port!r}")
    return int(match.group(1))


def error_response(status_code: int) -> bytes:
    """Build the full HTTP error response for a supported status code."""
    try:
        reason = _REASONS[status_code]
    except KeyError:
        raise ValueError(f"unsupported status code: {status_code}") from None

    title = f"{status_code} {reason}"
    body = (
        f"<HTML><HEAD><TITLE>{title}</TITLE></HEAD>\n"
        f"<BODY><H1>{title}</H1>{_BODY_EXTRA.get(status_code, '')}\n</BODY></HTML>"
    )
    date = time.strftime("%a, %d %b %Y %H:%M:%S GMT", time.gmtime())
    content_type = "Content-Type: text/html\r\n"
    connection = "Connection: keep-alive\r\n"
    middle = (
        content_type + connection
        if status_code in _CONTENT_TYPE_FIRST
        else connection + content_type
    )
    head = (
        f"HTTP/1.1 {title}\r\n"
        f"Content-Length: {len(body)}\r\n"
        f"{middle}"
        f"Date: {date}\r\n"
        "Server: ProxyServer/1.0\r\n\r\n"
    )
    return (head + body).encode("latin-1")


def check_http_version(version: str) -> bool:
    """Return True for the HTTP versions the proxy forwards."""
    return version in ("HTTP/1.1", "HTTP/1.0")


def create_cache_key(method: str, host: str, path: str, port: int) -> str:
    """Build the normalised cache key for a request."""
    return f"{method}:{host}:{port}:{path}"


class ProxyServer:
    """Accepts client connections and serves GET requests through a cache."""

    def __init__(self, port: int = DEFAULT_PORT, cache: LRUCache | None = None) -> None:
        self.port = port
        self.cache = cache if cache is not None else LRUCache(
            DEFAULT_CAPACITY, DEFAULT_MAX_ELEMENT_SIZE
        )
        self._slots = threading.BoundedSemaphore(MAX_CLIENTS)

    def connect_remote(self, host: str, port: int) -> socket.socket:
        """Open a TCP connection to the origin server."""
        try:
            address = socket.gethostbyname(host)
        except OSError as exc:
            raise OSError(f"no such host exists: {host}") from exc
        remote = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            remote.connect((address, port))
        except OSError:
            remote.close()
            raise
        return remote

    def handle_request(
        self, client: socket.socket, request: ParsedRequest, cache_key: str
    ) -> bytes:
        """Fetch the request from the origin, relay it to the client and cache it."""
        log.info("Requesting to the remote server")
        outgoing = f"GET {request.path} {request.version}\r\n"

        request.set_header("Connection", "close")
        if request.get_header("Host") is None:
            request.set_header("Host", request.host)

        if request.headers_len() <= MAX_BYTES - len(outgoing):
            outgoing += request.unparse_headers()

        with self.connect_remote(request.host, _port_number(request.port)) as remote:
            remote.sendall(outgoing.encode("latin-1"))
            chunks = []
            while chunk := remote.recv(MAX_BYTES - 1):
                client.sendall(chunk)
                chunks.append(chunk)

        response = b"".join(chunks)
        self.cache.put(cache_key, response)
        log.info("Response cached with key: %s", cache_key)
        return response

    def _receive_request(self, client: socket.socket) -> bytes:
        data = b""
        while len(data) < MAX_BYTES - 1:
            chunk = client.recv(MAX_BYTES - 1 - len(data))
            if not chunk:
                break
            data += chunk
            if b"\r\n\r\n" in data.split(b"\0", 1)[0]:
                break
        return data

    def _serve(self, client: socket.socket, data: bytes) -> None:
        try:
            request = parse_request(data)
        except ParseError as exc:
            log.info("Parsing failed: %s", exc)
            client.sendall(error_response(400))
            return

        if request.method != "GET":
            log.info("Only GET is supported")
            client.sendall(error_response(501))
            return

        if not (request.host and request.path and check_http_version(request.version)):
            log.info("Invalid request components")
            client.sendall(error_response(500))
            return

        cache_key = create_cache_key(
            request.method, request.host, request.path, _port_number(request.port)
        )
        log.info("Generated cache key: %s", cache_key)

        cached = self.cache.get(cache_key)
        if cached:
            log.info("Data retrieved from cache")
            client.sendall(cached)
            return

        log.info("Cache MISS - fetching from server")
        try:
            self.handle_request(client, request, cache_key)
        except (OSError, ValueError) as exc:
            log.error("Fetching from origin failed: %s", exc)
            client.sendall(error_response(500))

    def handle_client(self, client: socket.socket) -> None:
        """Serve one client connection, then close it."""
        with self._slots:
            try:
                try:
                    data = self._receive_request(client)
                except OSError as exc:
                    log.error("Error in receiving from client: %s", exc)
                    return
                if not data:
                    log.info("Client disconnected")
                    return
                self._serve(client, data)
            finally:
                try:
                    client.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass
                client.close()

    def serve_forever(self) -> None:
        """Listen on the configured port and serve each client on its own thread."""
        log.info("Setting proxy server port: %d", self.port)
        log.info(
            "Cache configuration: max size = %d MB, max element size = %d MB",
            DEFAULT_CAPACITY // (1024 * 1024),
            DEFAULT_MAX_ELEMENT_SIZE // (1024 * 1024),
        )
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            try:
                listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            except OSError as exc:
                log.error("setsockopt(SO_REUSEADDR) failed: %s", exc)
            listener.bind(("", self.port))
            log.info("Binding on port: %d", self.port)
            listener.listen(MAX_CLIENTS)
            log.info("Proxy server started and listening")

            while True:
                try:
                    client, (client_ip, client_port) = listener.accept()
                except OSError as exc:
                    log.error("Error in accepting connection: %s", exc)
                    continue
                log.info("Client connected from %s:%d", client_ip, client_port)
                threading.Thread(
                    target=self.handle_client, args=(client,), daemon=True
                ).start()


def main(argv: list[str] | None = None) -> int:
    """Run the proxy; the optional single argument is the port to listen on."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) > 1:
        print(f"Usage: {sys.argv[0]} [port_number]")
        return 1

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        port = int(args[0]) if args else DEFAULT_PORT
        ProxyServer(port).serve_forever()
    except (OSError, ValueError, OverflowError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())