# cacheproxy

cacheproxy is a small HTTP forward proxy that caches responses. It accepts
absolute-form `GET` requests, such as `GET http://host:port/path HTTP/1.1`.
It forwards each request to the origin server with `Connection: close` set and
adds a `Host` header if the client sent none. It streams the reply back to the
client and keeps a copy in an in-memory LRU cache. Later requests with the
same method, host, port and path are answered from the cache.

## Running

```
cacheproxy            # listens on port 8080
cacheproxy 3128       # listens on the given port
```

The same entry point can be run as `python -m cacheproxy.server [port]`.
Progress is logged to standard error at INFO level.

Point a client at it, for example:

```
curl -x http://localhost:8080 http://example.com/
```

Behaviour:

- Only `GET` with an absolute URI is accepted. Other methods, and requests that
  cannot be parsed, get `400 Bad Request`.
- Versions other than `HTTP/1.0` and `HTTP/1.1` get `500 Internal Server Error`.
- A failure to reach the origin server also gets `500 Internal Server Error`.
- The cache holds at most 200 MB in total. A single entry may be at most 10 MB.
  Each entry counts as the length of its key, plus the length of its data, plus
  a fixed overhead of 88 bytes. When room is needed, the least recently used
  entries are evicted first.
- Up to 400 clients are served at the same time, each on its own thread.

## What it does not do

- It has no `CONNECT` support, so it cannot tunnel HTTPS.
- Cached entries never expire and are never revalidated against the origin.
  An entry stays until it is evicted for space or the process exits.
- The cache lives in memory only. Nothing is written to disk.

## Library use

### Parsing requests

```python
from cacheproxy.httpparse import parse_request, ParseError

req = parse_request(
    b"GET http://www.example.com:80/index.html HTTP/1.0\r\n"
    b"If-Modified-Since: Sat, 29 Oct 1994 19:43:31 GMT\r\n\r\n"
)
req.host, req.port, req.path          # ('www.example.com', '80', '/index.html')
req.get_header("If-Modified-Since")   # 'Sat, 29 Oct 1994 19:43:31 GMT'
req.set_header("Connection", "close")
req.remove_header("If-Modified-Since")  # KeyError if absent
req.unparse()                         # request line, headers and blank line
req.unparse_headers()                 # headers and blank line only
req.total_len(), req.headers_len()
```

`parse_request` accepts `bytes` or `str` and raises `ParseError`, a subclass of
`ValueError`, for malformed input.

### The cache on its own

```python
from cacheproxy.cache import LRUCache

cache = LRUCache(capacity=1 << 20, max_element_size=1 << 16)
cache.put("GET:example.com:80:/", b"...")   # False if the entry is too large
cache.get("GET:example.com:80:/")           # the bytes, or None
len(cache), cache.current_size()
```

The cache is safe to use from several threads.

### Helpers

The module `cacheproxy.server` has these helpers:

- `create_cache_key(method, host, path, port)` builds keys of the form
  `GET:host:80:/path`.
- `check_http_version(version)` checks the request version.
- `error_response(status_code)` builds a full error reply for 400, 403, 404,
  500, 501 or 505.

The `ProxyServer(port, cache)` class in the same module can be embedded and
started with `serve_forever()`. Its `handle_client(sock)` method serves a
single accepted connection.

## Tests

```
pip install -e .[test]
pytest
```