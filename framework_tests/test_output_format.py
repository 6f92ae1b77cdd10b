import hypothesis
import hypothesis.strategies as st
import pytest

from cloud_conformance_tests.tests import common
from cloud_conformance_tests.utils import output_format


@pytest.mark.parametrize(
    ("suite", "expected"),
    (
        ("StatelessVMTests", "StatelessVM"),
        ("StatefulVolumeTest", "StatefulVolume"),
        ("Networks", "Networks"),
        ("Tests", ""),
    ),
)
def test_suite_display_name(suite: str, expected: str):
    assert output_format.get_suite_display_name(suite) == expected


def test_short_prefix():
    prefix = output_format.get_prefix(
        provider_name="AWS", cloud_name="EC2", suite="StatelessVMTests", test_name="listVms"
    )
    assert prefix == "AWS/EC2.StatelessVM.listVms> ".ljust(output_format.PREFIX_WIDTH)


def test_long_prefix():
    prefix = output_format.get_prefix(
        provider_name="Provider",
        cloud_name="Cloud",
        suite="StatefulNetworkFirewallTests",
        test_name="createFirewallInVlan",
    )
    full = "Provider/Cloud.StatefulNetworkFirewall.createFirewallInVlan"
    assert prefix == f"{full[-output_format.PREFIX_MAX_LEN :]}> "


@hypothesis.given(
    provider_name=st.text(min_size=1, max_size=30),
    suite=st.text(min_size=1, max_size=40),
    test_name=st.none() | st.text(max_size=40),
)
@common.hypothesis_settings(max_examples=300)
def test_prefix_width(provider_name: str, suite: str, test_name: str | None):
    prefix = output_format.get_prefix(
        provider_name=provider_name, cloud_name="cloud", suite=suite, test_name=test_name
    )
    assert len(prefix) == output_format.PREFIX_WIDTH
    assert prefix.rstrip(" ").endswith(">")


@pytest.mark.parametrize(
    ("value", "expected"),
    (
        (None, "null"),
        (True, "true"),
        (False, "false"),
        (42, "42"),
        (1.5, "1.5"),
        ("text", "text"),
        (["a"], "['a']"),
    ),
)
def test_format_value(value: object, expected: str):
    assert output_format.format_key_value(key="Key", value=value) == (
        f"{'Key: '.ljust(output_format.KEY_WIDTH)}{expected}"
    )


def test_long_key():
    key = "k" * 50
    line = output_format.format_key_value(key=key, value=1)
    assert line == f"{'k' * output_format.KEY_MAX_LEN}: 1"
