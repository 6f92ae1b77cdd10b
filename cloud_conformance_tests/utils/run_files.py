"""Directories and files shared by the pytest workers of a single conformance run.

With `pytest-xdist`, every worker has its own base temporary directory inside a common root.
Bookkeeping of the whole run (the session lock, running-session markers, handles of shared
resources) lives in the shared directory of the root. The `framework.log` is per worker.
"""

import contextlib
import dataclasses
import functools
import logging
import pathlib as pl
import tempfile
import time
import typing as tp

from _pytest.tmpdir import TempPathFactory
from filelock import FileLock

from cloud_conformance_tests.utils import configuration

# Suppress messages from filelock
logging.getLogger("filelock").setLevel(logging.WARNING)

FRAMEWORK_LOG_NAME = "framework.log"
SHARED_DIR_NAME = "tmp"


@dataclasses.dataclass(frozen=True)
class RunDirs:
    worker_dir: pl.Path
    root_dir: pl.Path
    shared_dir: pl.Path

    @classmethod
    def from_worker_dir(cls, worker_dir: pl.Path, is_xdist: bool) -> "RunDirs":
        root_dir = worker_dir.parent if is_xdist else worker_dir
        shared_dir = root_dir / SHARED_DIR_NAME
        shared_dir.mkdir(parents=True, exist_ok=True)
        return cls(worker_dir=worker_dir, root_dir=root_dir, shared_dir=shared_dir)


_run_dirs: RunDirs | None = None


def init_run_dirs(tmp_path_factory: TempPathFactory) -> RunDirs:
    """Set up run directories from the pytest base temp dir of this worker."""
    global _run_dirs
    _run_dirs = RunDirs.from_worker_dir(
        worker_dir=pl.Path(tmp_path_factory.getbasetemp()), is_xdist=configuration.IS_XDIST
    )
    return _run_dirs


def get_run_dirs() -> RunDirs:
    if _run_dirs is None:
        msg = "Run directories are not initialized"
        raise RuntimeError(msg)
    return _run_dirs


@functools.cache
def get_session_basetemp() -> pl.Path:
    """Return directory that outlives pytest temp dirs, for the interrupted-run marker."""
    basetemp = pl.Path(tempfile.gettempdir()) / "cloud-conformance-tests"
    basetemp.mkdir(mode=0o700, parents=True, exist_ok=True)
    return basetemp


def lock_if_xdist(lock_file: str | pl.Path) -> tp.ContextManager:
    """Return lock on `lock_file` when running with multiple workers, no-op lock otherwise."""
    if not configuration.IS_XDIST:
        return contextlib.nullcontext()
    return FileLock(str(lock_file))


class _UTCFormatter(logging.Formatter):
    converter = time.gmtime  # type: ignore[assignment]


def get_framework_log_path() -> pl.Path:
    return get_run_dirs().worker_dir / FRAMEWORK_LOG_NAME


@functools.cache
def framework_logger() -> logging.Logger:
    """Return logger writing to the `framework.log` file of this worker.

    Meant for events that need attention after the run, like shared resources that couldn't
    be removed.
    """
    handler = logging.FileHandler(get_framework_log_path())
    handler.setFormatter(_UTCFormatter("%(asctime)s %(levelname)s %(message)s"))

    logger = logging.getLogger("framework")
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    return logger
