from __future__ import annotations

import typing

import httpx
from rich.console import Console
from rich.text import Text

from ._timing import format_duration

LONG_STYLE = "bold bright_white on red"


def _status_color(status_code: int) -> str:
    """Return a rich color name based on HTTP status category."""
    if status_code < 200:
        return "cyan"
    elif status_code < 300:
        return "green"
    elif status_code < 400:
        return "yellow"
    elif status_code < 500:
        return "red"
    else:
        return "bold red"


class Presenter:
    """Writes everything a run shows the user.

    Standard output carries the response rendered as HTTP text: status
    line, headers, a blank line, then the raw body bytes. The diagnostic
    stream carries timing reports and the final error line only.

    A custom ``stdout`` must expose a binary ``.buffer`` (like ``sys.stdout``)
    since body bytes bypass text encoding.
    """

    def __init__(
        self,
        no_color: bool = False,
        stdout: typing.TextIO | None = None,
        stderr: typing.TextIO | None = None,
    ) -> None:
        if stdout is not None and not hasattr(stdout, "buffer"):
            raise TypeError(
                "stdout must be a text stream with a binary .buffer for body bytes"
            )
        color_system: typing.Any = None if no_color else "auto"
        self.console = Console(
            file=stdout,
            color_system=color_system,
            highlight=False,
            markup=False,
            emoji=False,
            soft_wrap=True,
        )
        self.error_console = Console(
            file=stderr,
            stderr=True,
            color_system=color_system,
            highlight=False,
            markup=False,
            emoji=False,
            soft_wrap=True,
        )

    def response_head(self, response: httpx.Response) -> None:
        """Print the status line, one line per header value, then a blank line."""
        color = _status_color(response.status_code)
        status_line = Text(style="cyan")
        status_line.append(f"{response.http_version} ")
        status_line.append(f"{response.status_code}", style=f"bold {color}")
        if response.reason_phrase:
            status_line.append(f" {response.reason_phrase}")
        self.console.print(status_line)

        encoding = response.headers.encoding
        for raw_key, raw_value in response.headers.raw:
            # Only the key is styled; the value is written verbatim.
            self.console.print(Text(raw_key.decode(encoding), style="cyan"), end="")
            self.console.file.write(f": {raw_value.decode(encoding)}\n")

        self.console.print()

    def write_body(self, chunk: bytes) -> None:
        stream = self.console.file
        stream.flush()
        stream.buffer.write(chunk)  # type: ignore[attr-defined]
        stream.buffer.flush()  # type: ignore[attr-defined]

    def timing(
        self,
        message: str,
        *,
        from_last: float,
        from_start: float,
        long: bool = False,
    ) -> None:
        text = Text(style="red")
        text.append(f"\n{message}: from_last={format_duration(from_last)}")
        if long:
            text.append(" ")
            text.append("(LONG)", style=LONG_STYLE)
            text.append(" ")
        text.append(f", from_start={format_duration(from_start)}")
        self.error_console.print(text)

    def error(self, message: str) -> None:
        self.error_console.print(Text(f"error: {message}"))
