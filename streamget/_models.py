from __future__ import annotations

from typing import Any

import httpx

from ._exceptions import InputError


class Options:
    """Settings for a single run, built once from the command line."""

    __slots__ = ("url", "verbose", "no_color", "compress")

    def __init__(
        self,
        url: str | None = None,
        verbose: bool = True,
        no_color: bool = False,
        compress: bool = False,
    ) -> None:
        object.__setattr__(self, "url", url or "")
        object.__setattr__(self, "verbose", verbose)
        object.__setattr__(self, "no_color", no_color)
        object.__setattr__(self, "compress", compress)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def parse_url(self) -> httpx.URL:
        if not self.url:
            raise InputError("missing URL argument")
        try:
            return httpx.URL(self.url)
        except httpx.InvalidURL as exc:
            raise InputError(f"invalid URL: {exc}") from exc

    def __repr__(self) -> str:
        pieces = [f"url={self.url!r}"]
        if not self.verbose:
            pieces.append("verbose=False")
        if self.no_color:
            pieces.append("no_color=True")
        if self.compress:
            pieces.append("compress=True")
        return f"Options({', '.join(pieces)})"
