import logging
import typing as tp

import allure
import pytest
from _pytest.fixtures import FixtureRequest
from _pytest.tmpdir import TempPathFactory

from cloud_conformance_tests.resource_management import resource_management
from cloud_conformance_tests.run_management import run_context
from cloud_conformance_tests.run_management import test_run
from cloud_conformance_tests.utils import configuration
from cloud_conformance_tests.utils import helpers
from cloud_conformance_tests.utils import run_files

LOGGER = logging.getLogger(__name__)
INTERRUPTED_NAME = ".session_interrupted"
RUNNING_SESSION_GLOB = ".running_session"
SESSION_LOCK = ".session.lock"


def pytest_addoption(parser: tp.Any) -> None:
    parser.addoption(
        "--inclusions",
        action="store",
        default=None,
        help="Comma-separated suites or `Suite.test` names to run (overrides `TEST_INCLUSIONS`)",
    )
    parser.addoption(
        "--exclusions",
        action="store",
        default=None,
        help="Comma-separated `Suite.test` names to skip (overrides `TEST_EXCLUSIONS`)",
    )


@pytest.hookimpl(tryfirst=True)
def pytest_keyboard_interrupt() -> None:
    """Create a status file indicating that the test run was interrupted."""
    session_basetemp = run_files.get_session_basetemp()
    (session_basetemp / INTERRUPTED_NAME).touch()


@pytest.fixture(scope="session")
def run_dirs(tmp_path_factory: TempPathFactory) -> run_files.RunDirs:
    return run_files.init_run_dirs(tmp_path_factory=tmp_path_factory)


def _report_teardown_failures(failures: list[resource_management.TeardownFailure]) -> None:
    """Record shared resources that were left behind in the `framework.log`."""
    if not failures:
        return

    flogger = run_files.framework_logger()
    for failure in failures:
        handle = failure.handle
        flogger.error(
            f"Failed to remove {handle.kind.value} '{handle.resource_id}' "
            f"(label '{handle.label}', {handle.scope}): {failure.error}"
        )
    LOGGER.error(
        f"{len(failures)} shared resource(s) couldn't be removed, "
        f"see '{run_files.get_framework_log_path()}'"
    )


@pytest.fixture(scope="session")
def conformance_run(
    worker_id: str, request: FixtureRequest, run_dirs: run_files.RunDirs
) -> tp.Generator[test_run.TestRun, None, None]:
    """Setup and teardown the test run."""
    pytest_root_tmp = run_dirs.root_dir
    session_basetemp = run_files.get_session_basetemp()
    session_lock = run_dirs.shared_dir / SESSION_LOCK

    test_run_obj = test_run.TestRun.from_configuration(
        inclusions=request.config.getoption("inclusions"),
        exclusions=request.config.getoption("exclusions"),
        handle_dir=run_dirs.shared_dir if configuration.IS_XDIST else None,
        worker_id=worker_id,
    )
    try:
        test_run_obj.init()
    except Exception as exc:
        run_files.framework_logger().error(f"Failed to initialize the test run: {exc}")
        raise

    with run_files.lock_if_xdist(session_lock):
        # Remove dangling files from previous interrupted test run
        (session_basetemp / INTERRUPTED_NAME).unlink(missing_ok=True)

        # Create file indicating that testing session on this worker is running
        (pytest_root_tmp / f"{RUNNING_SESSION_GLOB}_{worker_id}").touch()

    yield test_run_obj

    failures: list[resource_management.TeardownFailure] = []
    with run_files.lock_if_xdist(session_lock):
        # Remove file indicating that testing session on this worker is running
        (pytest_root_tmp / f"{RUNNING_SESSION_GLOB}_{worker_id}").unlink()

        # Don't remove anything on keyboard interrupt
        interrupted = (session_basetemp / INTERRUPTED_NAME).exists()

        # Shared resources are removed by the last running pytest worker
        is_last = not list(pytest_root_tmp.glob(f"{RUNNING_SESSION_GLOB}_*"))
        remove_resources = is_last and not interrupted and not configuration.KEEP_RESOURCES

        with helpers.ignore_interrupt():
            failures = test_run_obj.clean_up(remove_resources=remove_resources)

    _report_teardown_failures(failures)


def _get_suite_name(request: FixtureRequest) -> str:
    if request.cls is not None:
        return str(request.cls.__name__)
    return str(request.module.__name__).rsplit(".", maxsplit=1)[-1]


@pytest.fixture(scope="class")
def run_ctx(
    conformance_run: test_run.TestRun, request: FixtureRequest
) -> tp.Generator[run_context.RunContext, None, None]:
    """Return `RunContext` for the test suite (test class)."""
    ctx = conformance_run.open_context(suite=_get_suite_name(request))
    yield ctx
    ctx.close()


@pytest.fixture(autouse=True)
def run_ctx_lifecycle(
    run_ctx: run_context.RunContext, request: FixtureRequest
) -> tp.Generator[None, None, None]:
    """Begin and end every test, skip tests that were not selected to run."""
    allure.dynamic.suite(run_ctx.suite)

    run_ctx.begin(name=request.node.originalname)
    try:
        if run_ctx.is_test_skipped():
            pytest.skip(f"deselected by inclusions/exclusions: {run_ctx.suite}.{run_ctx.name}")
        yield
    finally:
        run_ctx.end()
