"""
Pull-based body readers.

The transport hands us an iterator of raw byte chunks of whatever size the
network produced. :class:`BodyReader` turns that into bounded ``read()``
calls, :class:`GzipReader` inflates on top of it, and :func:`iter_chunks`
exposes either one as a lazy sequence of non-empty chunks.
"""

from __future__ import annotations

import gzip
import logging
import typing
import zlib

import httpx

from ._exceptions import BodyReadError, DecodingError, describe

logger = logging.getLogger("streamget.streams")

# Upper bound on the bytes returned by a single read.
CHUNK_SIZE = 16 * 1024

_GZIP_MAGIC = b"\x1f\x8b"
_GZIP_DEFLATE = 8
_GZIP_HEADER_SIZE = 10
_GZIP_WBITS = zlib.MAX_WBITS | 16

# Header flag bits (RFC 1952).
_FHCRC = 0x02
_FEXTRA = 0x04
_FNAME = 0x08
_FCOMMENT = 0x10
_FRESERVED = 0xE0

# Failures that may surface while pulling body bytes.
READ_ERRORS = (httpx.TransportError, httpx.StreamError, zlib.error, EOFError, OSError)


class Reader(typing.Protocol):
    @property
    def at_eof(self) -> bool: ...

    def read(self, size: int = CHUNK_SIZE) -> bytes: ...


class BodyReader:
    """Bounded reads over an iterator of raw byte chunks.

    ``read()`` returns at most ``size`` bytes. An empty result means either
    end of stream (``at_eof`` is then true) or an empty chunk from the
    underlying iterator.
    """

    def __init__(self, raw: typing.Iterable[bytes]) -> None:
        self._raw = iter(raw)
        self._pending = b""
        self._at_eof = False

    @property
    def at_eof(self) -> bool:
        return self._at_eof

    def read(self, size: int = CHUNK_SIZE) -> bytes:
        if not self._pending:
            if self._at_eof:
                return b""
            try:
                self._pending = next(self._raw)
            except StopIteration:
                self._at_eof = True
                return b""

        chunk, self._pending = self._pending[:size], self._pending[size:]
        return chunk


class GzipReader:
    """Inflates a gzip stream read from another reader.

    The member header is validated on construction, so a body that is not
    gzip at all fails before anything is written. Output per ``read()`` is
    bounded by ``size`` regardless of the compression ratio. Concatenated
    gzip members are decoded one after another.
    """

    def __init__(self, source: Reader) -> None:
        self._source = source
        self._decompressor = zlib.decompressobj(_GZIP_WBITS)
        self._buffer = self._read_header()
        self._at_eof = False

    def _read_more(self, header: bytes, size: int) -> bytes:
        while len(header) < size:
            data = self._source.read(CHUNK_SIZE)
            if not data:
                if self._source.at_eof:
                    raise EOFError("unexpected end of stream in gzip header")
                continue
            header += data
        return header

    def _read_until_nul(self, header: bytes, start: int) -> tuple[bytes, int]:
        while True:
            end = header.find(b"\x00", start)
            if end >= 0:
                return header, end + 1
            header = self._read_more(header, len(header) + 1)

    def _read_header(self) -> bytes:
        header = self._read_more(b"", _GZIP_HEADER_SIZE)
        if header[:2] != _GZIP_MAGIC:
            raise gzip.BadGzipFile(f"Not a gzipped file ({header[:2]!r})")
        if header[2] != _GZIP_DEFLATE:
            raise gzip.BadGzipFile("Unknown compression method")

        flags = header[3]
        if flags & _FRESERVED:
            raise gzip.BadGzipFile("Invalid header flags")

        offset = _GZIP_HEADER_SIZE
        if flags & _FEXTRA:
            header = self._read_more(header, offset + 2)
            extra_size = int.from_bytes(header[offset : offset + 2], "little")
            offset += 2 + extra_size
            header = self._read_more(header, offset)
        if flags & _FNAME:
            header, offset = self._read_until_nul(header, offset)
        if flags & _FCOMMENT:
            header, offset = self._read_until_nul(header, offset)
        if flags & _FHCRC:
            offset += 2
            header = self._read_more(header, offset)
        # The decompressor parses the header again; hand it everything read.
        return header

    @property
    def at_eof(self) -> bool:
        return self._at_eof

    def read(self, size: int = CHUNK_SIZE) -> bytes:
        if self._at_eof:
            return b""

        if self._decompressor.unconsumed_tail:
            data = self._decompressor.unconsumed_tail
        elif self._buffer:
            data, self._buffer = self._buffer, b""
        else:
            data = self._source.read(CHUNK_SIZE)

        if not data:
            if not self._source.at_eof:
                return b""
            if not self._decompressor.eof:
                # zlib may still hold output for input it already consumed.
                output = self._decompressor.decompress(b"", size)
                if output:
                    return output
                raise EOFError(
                    "Compressed file ended before the end-of-stream marker was reached"
                )
            self._at_eof = True
            return b""

        if self._decompressor.eof:
            # Start of the next gzip member.
            self._decompressor = zlib.decompressobj(_GZIP_WBITS)

        output = self._decompressor.decompress(data, size)
        if self._decompressor.eof and self._decompressor.unused_data:
            self._buffer = self._decompressor.unused_data
        return output


def open_body_reader(response: httpx.Response) -> Reader:
    """Select the reader for a streamed response.

    Only an exact ``Content-Encoding: gzip`` (first value, as received) is
    decoded. Any other encoding is passed through untouched.
    """
    reader = BodyReader(response.iter_raw())
    encodings = response.headers.get_list("content-encoding")
    if not encodings or encodings[0] != "gzip":
        return reader

    logger.debug("Decoding gzip response body")
    try:
        return GzipReader(reader)
    except READ_ERRORS as exc:
        raise DecodingError(f"failed to create gzip reader: {describe(exc)}") from exc


def iter_chunks(reader: Reader, size: int = CHUNK_SIZE) -> typing.Iterator[bytes]:
    """Yield the body as non-empty chunks of at most ``size`` bytes."""
    while True:
        try:
            chunk = reader.read(size)
        except READ_ERRORS as exc:
            raise BodyReadError(f"failed to read response body: {describe(exc)}") from exc

        if chunk:
            yield chunk
        elif reader.at_eof:
            return
