import logging
import sys

import click


_STATUS_COLORS = {
    "OK": "green",
    "WARN": "yellow",
    "WARNING": "yellow",
    "ERROR": "red",
    "INFO": "cyan",
    "SKIP": None,
    "CANCELLED": "magenta",
}


def setup_logging(verbosity: int = 0) -> None:
    level = logging.INFO
    if verbosity >= 1:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def status_prefix(status: str) -> str:
    label = "WARN" if status.upper() == "WARNING" else status.upper()
    return f"[{label}]"


def echo_status(status: str, message: str, *, err: bool = False) -> None:
    """
    운영자에게 보여줄 한 줄 메시지를 `[OK]`, `[WARN]`, `[ERROR]` 같은 접두어와 함께 출력한다.
    """
    color = _STATUS_COLORS.get(status.upper())
    click.echo(click.style(status_prefix(status), fg=color) + f" {message}", err=err)
