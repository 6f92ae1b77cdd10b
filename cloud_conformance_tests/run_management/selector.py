"""Selection of tests to run.

Tests are selected with inclusions and exclusions. Both are comma-separated lists of suite names
(e.g. "StatelessVMTests") or suite-qualified test names (e.g. "StatelessVMTests.listVms").
Matching is case insensitive, and exact: a suite name never matches as a prefix of another.

A test runs unless there are inclusions and the test is not among them, or there are exclusions
and the test is among them. Conflicts between inclusions and exclusions are resolved in favor
of running the test:

    TEST_INCLUSIONS=StatelessVMTests.listVms,StatelessDCTests

runs only the `listVms` test from `StatelessVMTests` and all of `StatelessDCTests`.
"""

import dataclasses
import logging
import typing as tp

LOGGER = logging.getLogger(__name__)


def parse_selection(value: str | None) -> frozenset[str] | None:
    """Parse comma-separated list of tokens. Empty or missing list means "not configured"."""
    if not value:
        return None
    tokens = {t.strip().lower() for t in value.split(",")}
    tokens.discard("")
    return frozenset(tokens) if tokens else None


def _normalize(tokens: tp.Iterable[str] | None) -> frozenset[str] | None:
    if tokens is None:
        return None
    if isinstance(tokens, str):
        msg = "`tokens` cannot be a string"
        raise TypeError(msg)
    return frozenset(t.lower() for t in tokens)


@dataclasses.dataclass(frozen=True)
class TestSelector:
    """Decides whether a test should run or be skipped."""

    __test__ = False

    inclusions: frozenset[str] | None = None
    exclusions: frozenset[str] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "inclusions", _normalize(self.inclusions))
        object.__setattr__(self, "exclusions", _normalize(self.exclusions))

    @classmethod
    def from_strings(cls, inclusions: str | None, exclusions: str | None) -> "TestSelector":
        return cls(inclusions=parse_selection(inclusions), exclusions=parse_selection(exclusions))

    @property
    def is_configured(self) -> bool:
        return self.inclusions is not None or self.exclusions is not None

    def _skip(self, on_skip: tp.Callable[[], None] | None) -> bool:
        if on_skip is not None:
            on_skip()
        return True

    def should_skip(
        self,
        suite: str,
        test: str | None = None,
        on_skip: tp.Callable[[], None] | None = None,
    ) -> bool:
        """Check if the test (or the whole suite, when `test` is not given) should be skipped.

        The `on_skip` callback is called once when the test is to be skipped.
        """
        if self.inclusions is None and self.exclusions is None:
            return False

        s = suite.lower()
        t = test.lower() if test is not None else None
        full_name = f"{s}.{t}" if t is not None else None

        suite_included = False
        test_included = False

        if self.inclusions is not None:
            suite_included = s in self.inclusions
            test_included = full_name is not None and full_name in self.inclusions
            if not (suite_included or test_included):
                return self._skip(on_skip)

        if self.exclusions is not None:
            if full_name is not None and full_name in self.exclusions:
                if not test_included:
                    return self._skip(on_skip)
                LOGGER.debug(f"Executing (a) {s}.{t} ->\n\t{self.inclusions}\n\t{self.exclusions}")
                # conflict goes to not skipping
                return False
            if s in self.exclusions:
                if test_included:
                    LOGGER.debug(
                        f"Executing (b) {s}.{t} ->\n\t{self.inclusions}\n\t{self.exclusions}"
                    )
                    # specific test inclusion overrides suite exclusion
                    return False
                if suite_included:
                    LOGGER.debug(
                        f"Executing (c) {s}.{t} ->\n\t{self.inclusions}\n\t{self.exclusions}"
                    )
                    return False
                # suite exclusion on its own doesn't skip the test

        LOGGER.debug(f"Executing {s}.{t} ->\n\t{self.inclusions}\n\t{self.exclusions}")
        return False
