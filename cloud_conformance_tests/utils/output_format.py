"""Formatting of the line-oriented records emitted while tests are running."""

import typing as tp

# The prefix is cut to its last `PREFIX_MAX_LEN` characters, or padded to `PREFIX_WIDTH`
PREFIX_MAX_LEN = 44
PREFIX_WIDTH = 46
# Keys of key/value records are cut to `KEY_MAX_LEN` characters, or padded to `KEY_WIDTH`
KEY_MAX_LEN = 36
KEY_WIDTH = 38

BEGIN_MARKER = f">>> BEGIN {'-' * 94}>>>"
END_MARKER = f"<<< END   {'-' * 94}<<<"


def get_suite_display_name(suite: str) -> str:
    """Return suite name without the trailing "Test" or "Tests"."""
    if suite.endswith("Test"):
        return suite[:-4]
    if suite.endswith("Tests"):
        return suite[:-5]
    return suite


def get_prefix(
    provider_name: str, cloud_name: str, suite: str, test_name: str | None = None
) -> str:
    """Return fixed-width prefix identifying the provider, cloud, suite and test."""
    prefix = f"{provider_name}/{cloud_name}.{get_suite_display_name(suite)}"
    if test_name is not None:
        prefix = f"{prefix}.{test_name}"

    if len(prefix) > PREFIX_MAX_LEN:
        return f"{prefix[-PREFIX_MAX_LEN:]}> "
    return f"{prefix}> ".ljust(PREFIX_WIDTH)


def format_value(value: tp.Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def format_key_value(key: str, value: tp.Any) -> str:
    """Return key/value record with the key aligned to a fixed width."""
    if len(key) > KEY_MAX_LEN:
        key_str = f"{key[:KEY_MAX_LEN]}: "
    else:
        key_str = f"{key}: ".ljust(KEY_WIDTH)
    return f"{key_str}{format_value(value)}"
