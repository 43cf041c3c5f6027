"""Parsing and re-serialising of absolute-URI HTTP GET requests."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

MIN_REQUEST_LEN = 4
MAX_REQUEST_LEN = 65535
ROOT_PATH = "/"

_INTEGER_PREFIX = re.compile(r"\s*[+-]?\d")


class ParseError(ValueError):
    """Raised when a request buffer cannot be parsed."""


def _tokenize(text: str, delimiters: str) -> tuple[str | None, str]:
    """Split off the next token, skipping leading delimiters.

    Returns the token (or None if nothing is left) and the text that follows
    the single delimiter that ended it.
    """
    stripped = text.lstrip(delimiters)
    if not stripped:
        return None, ""
    for index, char in enumerate(stripped):
        if char in delimiters:
            return stripped[:index], stripped[index + 1:]
    return stripped, ""


@dataclass
class ParsedRequest:
    """A parsed request line together with its ordered headers."""

    method: str
    protocol: str
    host: str
    path: str
    version: str
    port: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    def set_header(self, key: str, value: str) -> None:
        """Set a header; an existing header of that name moves to the end."""
        self.headers.pop(key, None)
        self.headers[key] = value

    def get_header(self, key: str) -> str | None:
        """Return the value of a header, or None if it is absent."""
        return self.headers.get(key)

    def remove_header(self, key: str) -> None:
        """Remove a header; raise KeyError if it is absent."""
        try:
            del self.headers[key]
        except KeyError:
            raise KeyError(key) from None

    def request_line(self) -> str:
        """Return the request line, terminated by CRLF."""
        authority = self.host if self.port is None else f"{self.host}:{self.port}"
        return f"{self.method} {self.protocol}://{authority}{self.path} {self.version}\r\n"

    def unparse_headers(self) -> str:
        """Return the headers followed by the blank terminating line."""
        lines = "".join(f"{key}: {value}\r\n" for key, value in self.headers.items())
        return lines + "\r\n"

    def unparse(self) -> str:
        """Return the whole request: request line, headers and blank line."""
        return self.request_line() + self.unparse_headers()

    def headers_len(self) -> int:
        """Length of the serialised headers including the final CRLF."""
        return sum(len(key) + len(value) + 4 for key, value in self.headers.items()) + 2

    def total_len(self) -> int:
        """Length of the whole serialised request."""
        return len(self.request_line()) + self.headers_len()


def _parse_header_line(line: str) -> tuple[str, str]:
    colon = line.find(":")
    if colon < 0:
        raise ParseError("no colon found in header line")
    # The value is taken to start after the ": " separator.
    return line[:colon], line[colon + 2:]


def parse_request(data: bytes | str) -> ParsedRequest:
    """Parse a GET request with an absolute URI, ending in a blank line."""
    if len(data) < MIN_REQUEST_LEN or len(data) > MAX_REQUEST_LEN:
        raise ParseError(f"invalid request length {len(data)}")

    text = data.decode("latin-1") if isinstance(data, (bytes, bytearray)) else data
    text = text.split("\0", 1)[0]

    if "\r\n\r\n" not in text:
        raise ParseError("invalid request line, no end of header")

    line, header_block = text.split("\r\n", 1)

    method, rest = _tokenize(line, " ")
    if method is None:
        raise ParseError("invalid request line, no whitespace")
    if method != "GET":
        raise ParseError(f"invalid request line, method not 'GET': {method}")

    full_addr, version = _tokenize(rest, " ")
    if full_addr is None:
        raise ParseError("invalid request line, no full address")
    if not version.startswith("HTTP/"):
        raise ParseError(f"invalid request line, unsupported version {version!r}")

    protocol, after_protocol = _tokenize(full_addr, ":/")
    if protocol is None:
        raise ParseError("invalid request line, missing host")
    remainder = full_addr[len(protocol) + 3:]

    authority, after_host = _tokenize(after_protocol, "/")
    if authority is None:
        raise ParseError("invalid request line, missing host")
    if len(authority) == len(remainder):
        raise ParseError("invalid request line, missing absolute path")

    path_token, _ = _tokenize(after_host, " ")
    if path_token is None:
        path = ROOT_PATH
    elif path_token.startswith(ROOT_PATH):
        raise ParseError("invalid request line, path cannot begin with two slash characters")
    else:
        path = ROOT_PATH + path_token

    host, after_name = _tokenize(authority, ":")
    if host is None:
        raise ParseError("invalid request line, missing host")
    port, _ = _tokenize(after_name, "/")
    if port is not None and not _INTEGER_PREFIX.match(port):
        raise ParseError(f"invalid request line, bad port: {port}")

    request = ParsedRequest(
        method=method,
        protocol=protocol,
        host=host,
        path=path,
        version=version,
        port=port,
    )

    for header_line in header_block.split("\r\n"):
        if not header_line:
            break
        key, value = _parse_header_line(header_line)
        request.set_header(key, value)

    return request