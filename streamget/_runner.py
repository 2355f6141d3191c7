from __future__ import annotations

import logging
import time
import typing

import httpx

from ._exceptions import (
    BodyWriteError,
    RequestConstructionError,
    TransportError,
    describe,
)
from ._models import Options
from ._presenter import Presenter
from ._streams import iter_chunks, open_body_reader
from ._timing import ElapsedTimeReporter

logger = logging.getLogger("streamget.runner")

# No overall deadline: stalls between chunks are reported, not aborted.
DEFAULT_TIMEOUT = httpx.Timeout(None, connect=30.0)


class StreamingRunner:
    """Runs one GET exchange, streaming the body to the presenter as it arrives.

    The steps are strictly sequential: validate the URL, build and send the
    request, print the status line and headers, then copy the (possibly
    gzip-decoded) body chunk by chunk. With timing enabled an event is
    reported after the headers, after every chunk and at the end.
    """

    def __init__(
        self,
        presenter: Presenter,
        *,
        transport: httpx.BaseTransport | None = None,
        clock: typing.Callable[[], float] = time.monotonic,
    ) -> None:
        self.presenter = presenter
        self._transport = transport
        self._clock = clock

    def build_request(
        self, client: httpx.Client, url: httpx.URL, compress: bool = False
    ) -> httpx.Request:
        try:
            request = client.build_request("GET", url)
        except (httpx.InvalidURL, ValueError, TypeError) as exc:
            raise RequestConstructionError(
                f"failed to create request: {describe(exc)}"
            ) from exc

        request.headers["Connection"] = "keep-alive"
        if compress:
            request.headers["Accept-Encoding"] = "gzip"
        elif "Accept-Encoding" in request.headers:
            # Compression is opt-in; drop the client's default header.
            del request.headers["Accept-Encoding"]
        return request

    def run(self, options: Options) -> None:
        url = options.parse_url()
        with httpx.Client(
            transport=self._transport,
            follow_redirects=True,
            timeout=DEFAULT_TIMEOUT,
        ) as client:
            request = self.build_request(client, url, options.compress)

            reporter: ElapsedTimeReporter | None = None
            if options.verbose:
                reporter = ElapsedTimeReporter(self.presenter, clock=self._clock)
                reporter.start()

            logger.debug("Sending %s %s", request.method, request.url)
            try:
                response = client.send(request, stream=True)
            except (httpx.HTTPError, UnicodeError, OSError) as exc:
                # Name resolution can fail with UnicodeError for malformed hosts.
                raise TransportError(
                    f"failed to send request: {describe(exc)}"
                ) from exc

            try:
                self._stream(response, reporter)
            finally:
                response.close()

    def _stream(
        self, response: httpx.Response, reporter: ElapsedTimeReporter | None
    ) -> None:
        logger.debug(
            "Received %s %s from %s",
            response.status_code,
            response.reason_phrase,
            response.url,
        )
        try:
            self.presenter.response_head(response)
        except OSError as exc:
            raise BodyWriteError(
                f"failed to write response headers: {describe(exc)}"
            ) from exc

        if reporter is not None:
            reporter.report("HEADERS")

        reader = open_body_reader(response)
        for chunk in iter_chunks(reader):
            try:
                self.presenter.write_body(chunk)
            except OSError as exc:
                raise BodyWriteError(
                    f"failed to write response body: {describe(exc)}"
                ) from exc

            if reporter is not None:
                reporter.reportf("CHUNK: bytes=%d", len(chunk))

        if reporter is not None:
            reporter.report("END")
        logger.debug("Body complete, %d bytes received", response.num_bytes_downloaded)


def run(
    options: Options,
    presenter: Presenter | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
) -> None:
    """Run a single exchange with a presenter built from ``options``."""
    if presenter is None:
        presenter = Presenter(no_color=options.no_color)
    StreamingRunner(presenter, transport=transport).run(options)
