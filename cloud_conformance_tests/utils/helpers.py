import contextlib
import logging
import random
import signal
import string
import typing as tp

import cloud_conformance_tests.utils.types as ttypes

LOGGER = logging.getLogger(__name__)


@contextlib.contextmanager
def ignore_interrupt() -> tp.Iterator[None]:
    """Ignore the KeyboardInterrupt signal."""
    orig_handler = None
    try:
        orig_handler = signal.signal(signal.SIGINT, signal.SIG_IGN)
    except ValueError as exc:
        if "signal only works in main thread" not in str(exc):
            raise

    if orig_handler is None:
        yield
        return

    try:
        yield
    finally:
        signal.signal(signal.SIGINT, orig_handler)


def get_rand_str(length: int = 8) -> str:
    """Return random string."""
    if length < 1:
        return ""
    return "".join(random.choice(string.ascii_lowercase) for i in range(length))


def read_text_lines(filename: ttypes.FileType) -> str:
    """Return file content with every line terminated by a newline."""
    with open(filename, encoding="utf-8") as in_fp:
        return "".join(f"{line}\n" for line in in_fp.read().splitlines())
