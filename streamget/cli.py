from __future__ import annotations

import logging
import sys

import click
from rich.logging import RichHandler

from .__version__ import __title__, __version__
from ._exceptions import StreamGetError
from ._models import Options
from ._presenter import Presenter
from ._runner import run


def configure_logging(presenter: Presenter) -> None:
    """Send debug logs (ours and the transport's) to the diagnostic console."""
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=presenter.error_console, show_path=False)],
        force=True,
    )


@click.command(help="Stream the response to a GET request, timing every chunk.")
@click.argument("url", required=False, default="")
@click.option(
    "--verbose/--quiet",
    default=True,
    help="Report per-stage timing on stderr (on by default).",
)
@click.option(
    "--no-color", is_flag=True, default=False, help="Disable colored output."
)
@click.option(
    "--compress", is_flag=True, default=False, help="Request a gzip-encoded response."
)
@click.option("--debug", is_flag=True, default=False, help="Log each stage to stderr.")
@click.version_option(__version__, prog_name=__title__)
def main(
    url: str,
    verbose: bool,
    no_color: bool,
    compress: bool,
    debug: bool,
) -> None:
    options = Options(url=url, verbose=verbose, no_color=no_color, compress=compress)
    presenter = Presenter(no_color=no_color)

    if debug:
        configure_logging(presenter)

    try:
        run(options, presenter)
    except StreamGetError as exc:
        presenter.error(str(exc))
        sys.exit(1)
