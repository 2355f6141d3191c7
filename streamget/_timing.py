from __future__ import annotations

import time
import typing

if typing.TYPE_CHECKING:
    from ._presenter import Presenter

# Inter-event delay (seconds) above which a report is marked LONG.
LONG_THRESHOLD = 0.75

_UNITS = (
    (1.0, "s"),
    (1e-3, "ms"),
    (1e-6, "µs"),
)


def format_duration(seconds: float) -> str:
    """Render a duration in its most natural unit, e.g. ``12.5ms`` or ``1.204s``."""
    if seconds == 0:
        return "0s"
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)
    for scale, unit in _UNITS:
        if seconds >= scale:
            value = f"{seconds / scale:.3f}".rstrip("0").rstrip(".")
            return f"{sign}{value}{unit}"
    return f"{sign}{round(seconds * 1e9)}ns"


class ElapsedTimeReporter:
    """Reports the time elapsed between named events of one exchange.

    Each report carries the delta since the previous event and since
    :meth:`start`, and is written to the presenter's diagnostic stream.
    Deltas above :data:`LONG_THRESHOLD` are flagged.
    """

    def __init__(
        self,
        presenter: Presenter,
        clock: typing.Callable[[], float] = time.monotonic,
    ) -> None:
        self._presenter = presenter
        self._clock = clock
        self.start_time: float | None = None
        self.last_time: float | None = None

    def start(self) -> None:
        self.start_time = self.last_time = self._clock()

    def report(self, message: str) -> None:
        now = self._clock()
        if self.start_time is None or self.last_time is None:
            self.start_time = self.last_time = now

        from_last = now - self.last_time
        from_start = now - self.start_time
        self._presenter.timing(
            message,
            from_last=from_last,
            from_start=from_start,
            long=from_last > LONG_THRESHOLD,
        )
        self.last_time = now

    def reportf(self, format: str, *args: typing.Any) -> None:
        self.report(format % args)
