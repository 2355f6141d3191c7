from .__version__ import __description__, __title__, __version__
from ._exceptions import (
    BodyIOError,
    BodyReadError,
    BodyWriteError,
    DecodingError,
    InputError,
    RequestConstructionError,
    StreamGetError,
    TransportError,
)
from ._models import Options
from ._presenter import Presenter
from ._runner import StreamingRunner, run
from ._streams import CHUNK_SIZE, BodyReader, GzipReader, iter_chunks, open_body_reader
from ._timing import LONG_THRESHOLD, ElapsedTimeReporter, format_duration
from .cli import main

_EXCLUDED_FROM_ALL = {"cli"}

__all__ = sorted(
    (
        member
        for member in list(vars().keys())
        if (
            not member.startswith("_")
            or member in ["__description__", "__title__", "__version__"]
        )
        and member not in _EXCLUDED_FROM_ALL
    ),
    key=str.casefold,
)
