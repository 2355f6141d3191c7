import asyncio
import gzip
import io
import os
import socket
import threading
import time
import typing

import httpx
import pytest
from uvicorn.config import Config
from uvicorn.server import Server

import streamget

ENVIRONMENT_VARIABLES = {
    "SSL_CERT_FILE",
    "SSL_CERT_DIR",
    "HTTP_PROXY",
    "HTTPS_PROXY",
    "ALL_PROXY",
    "NO_PROXY",
    "SSLKEYLOGFILE",
    "FORCE_COLOR",
}

Message = typing.Dict[str, typing.Any]
Receive = typing.Callable[[], typing.Awaitable[Message]]
Send = typing.Callable[
    [typing.Dict[str, typing.Any]], typing.Coroutine[None, None, None]
]
Scope = typing.Dict[str, typing.Any]

GZIP_PAYLOAD = b"".join(b"line %05d of a compressible body\n" % i for i in range(2000))


async def app(scope: Scope, receive: Receive, send: Send) -> None:
    assert scope["type"] == "http"
    if scope["path"].startswith("/slow_response"):
        await slow_response(scope, receive, send)
    elif scope["path"].startswith("/gzip"):
        await gzip_body(scope, receive, send)
    elif scope["path"].startswith("/chunked"):
        await chunked_body(scope, receive, send)
    elif scope["path"].startswith("/cookies"):
        await repeated_headers(scope, receive, send)
    elif scope["path"].startswith("/status"):
        await status_code(scope, receive, send)
    elif scope["path"].startswith("/redirect_301"):
        await redirect_301(scope, receive, send)
    else:
        await hello_world(scope, receive, send)


async def hello_world(scope: Scope, receive: Receive, send: Send) -> None:
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [[b"content-type", b"text/plain"], [b"content-length", b"11"]],
        }
    )
    await send({"type": "http.response.body", "body": b"hello world"})


async def gzip_body(scope: Scope, receive: Receive, send: Send) -> None:
    accept = dict(scope.get("headers", [])).get(b"accept-encoding", b"")
    headers = [[b"content-type", b"text/plain"]]
    body = GZIP_PAYLOAD
    if b"gzip" in accept:
        headers.append([b"content-encoding", b"gzip"])
        body = gzip.compress(GZIP_PAYLOAD)
    await send({"type": "http.response.start", "status": 200, "headers": headers})
    await send({"type": "http.response.body", "body": body})


async def chunked_body(scope: Scope, receive: Receive, send: Send) -> None:
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [[b"content-type", b"text/plain"]],
        }
    )
    for size in (1, 40000, 5):
        await send({"type": "http.response.body", "body": b"x" * size, "more_body": True})
    await send({"type": "http.response.body", "body": b""})


async def slow_response(scope: Scope, receive: Receive, send: Send) -> None:
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [[b"content-type", b"text/plain"]],
        }
    )
    await send({"type": "http.response.body", "body": b"first\n", "more_body": True})
    await asyncio.sleep(0.9)  # Long enough to be flagged.
    await send({"type": "http.response.body", "body": b"second\n"})


async def repeated_headers(scope: Scope, receive: Receive, send: Send) -> None:
    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [
                [b"set-cookie", b"a=1"],
                [b"content-type", b"text/plain"],
                [b"set-cookie", b"b=2"],
            ],
        }
    )
    await send({"type": "http.response.body", "body": b"ok"})


async def status_code(scope: Scope, receive: Receive, send: Send) -> None:
    status_code = int(scope["path"].replace("/status/", ""))
    await send(
        {
            "type": "http.response.start",
            "status": status_code,
            "headers": [[b"content-type", b"text/plain"]],
        }
    )
    await send({"type": "http.response.body", "body": b"Hello, world!"})


async def redirect_301(scope: Scope, receive: Receive, send: Send) -> None:
    await send(
        {"type": "http.response.start", "status": 301, "headers": [[b"location", b"/"]]}
    )
    await send({"type": "http.response.body"})


@pytest.fixture(scope="function", autouse=True)
def clean_environ():
    """Keeps os.environ clean for every test without having to mock os.environ"""
    original_environ = os.environ.copy()
    os.environ.clear()
    os.environ.update(
        {
            k: v
            for k, v in original_environ.items()
            if k not in ENVIRONMENT_VARIABLES and k.upper() not in ENVIRONMENT_VARIABLES
        }
    )
    yield
    os.environ.clear()
    os.environ.update(original_environ)


class TestServer(Server):
    @property
    def url(self) -> httpx.URL:
        protocol = "https" if self.config.is_ssl else "http"
        port = self.servers[0].sockets[0].getsockname()[1]
        return httpx.URL(f"{protocol}://{self.config.host}:{port}/")


def serve_in_thread(server: TestServer) -> typing.Iterator[TestServer]:
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    try:
        deadline = time.monotonic() + 10
        while not server.started:
            if time.monotonic() > deadline or not thread.is_alive():
                raise RuntimeError("Server failed to start within 10 seconds")
            time.sleep(1e-3)
        yield server
    finally:
        server.should_exit = True
        thread.join(timeout=5)


@pytest.fixture(scope="session")
def server() -> typing.Iterator[TestServer]:
    config = Config(app=app, lifespan="off", loop="asyncio", host="127.0.0.1", port=0)
    server = TestServer(config=config)
    yield from serve_in_thread(server)


@pytest.fixture
def unreachable_url() -> str:
    """A local URL nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"http://127.0.0.1:{port}/"


class OutputCapture:
    """A presenter wired to in-memory streams."""

    def __init__(self, no_color: bool = True) -> None:
        self.stdout = io.TextIOWrapper(io.BytesIO(), encoding="utf-8", newline="\n")
        self.stderr = io.StringIO()
        self.presenter = streamget.Presenter(
            no_color=no_color, stdout=self.stdout, stderr=self.stderr
        )

    @property
    def stdout_bytes(self) -> bytes:
        self.stdout.flush()
        return self.stdout.buffer.getvalue()  # type: ignore[attr-defined]

    @property
    def stderr_text(self) -> str:
        return self.stderr.getvalue()


@pytest.fixture
def output() -> OutputCapture:
    return OutputCapture()


class TrackingStream(httpx.SyncByteStream):
    """Yields the given chunks, optionally failing afterwards, and records close()."""

    def __init__(
        self,
        chunks: typing.Iterable[bytes],
        error: typing.Optional[Exception] = None,
    ) -> None:
        self.chunks = list(chunks)
        self.error = error
        self.closed = False

    def __iter__(self) -> typing.Iterator[bytes]:
        yield from self.chunks
        if self.error is not None:
            raise self.error

    def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, *times: float) -> None:
        self._times = iter(times)

    def __call__(self) -> float:
        return next(self._times)


def respond(
    status_code: int,
    body: bytes = b"",
    headers: typing.Optional[typing.Any] = None,
) -> httpx.Response:
    """A response whose body is still unread, as a real transport returns it."""
    return httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(body))
