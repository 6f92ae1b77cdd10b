"""Per-suite coordination of test execution.

A `RunContext` is created once per test suite (test class). It is reset for every test by
`begin` and `end`, decides whether the current test should be skipped, emits the prefixed
records that make up the test log, and gives test bodies identifiers of shared resources.
"""

import collections
import dataclasses
import logging
import time
import typing as tp

from cloud_conformance_tests.providers import base as providers_base
from cloud_conformance_tests.resource_management import labels
from cloud_conformance_tests.resource_management import manager
from cloud_conformance_tests.run_management import selector as sel
from cloud_conformance_tests.utils import output_format
from cloud_conformance_tests.utils.exceptions import ConfigurationError

LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class TestSummary:
    """Summary of a finished test."""

    __test__ = False

    test_name: str | None
    duration: float
    api_calls: dict[str, int]

    @property
    def total_calls(self) -> int:
        return sum(self.api_calls.values())


class RunContext:
    """Coordinator of tests of a single suite."""

    def __init__(
        self,
        suite: str,
        provider_factory: tp.Callable[[], providers_base.ProviderConnection],
        selector: sel.TestSelector,
        resource_manager: manager.SharedResourceManager,
        api_audit: collections.Counter | None = None,
    ) -> None:
        self.suite = suite
        self.selector = selector
        self.resource_manager = resource_manager
        # API call counts aggregated over all tests of the run
        self.api_audit: collections.Counter = (
            api_audit if api_audit is not None else collections.Counter()
        )

        self.name: str | None = None
        self.start_timestamp = 0.0

        provider = provider_factory()
        if not provider.is_connected:
            msg = f"Provider connection for suite '{suite}' is not available"
            raise ConfigurationError(msg)
        self.provider = provider

        self.prefix = ""
        self._change_prefix()

    def _change_prefix(self) -> None:
        self.prefix = output_format.get_prefix(
            provider_name=self.provider.provider_name,
            cloud_name=self.provider.cloud_name,
            suite=self.suite,
            test_name=self.name,
        )

    @property
    def provider_context(self) -> providers_base.ProviderConfig:
        ctx = self.provider.context
        if ctx is None:
            msg = "Provider context went away"
            raise ConfigurationError(msg)
        return ctx

    def begin(self, name: str) -> None:
        """Start a test."""
        self.name = name
        self.provider.api_trace.report("Setup")
        self.provider.api_trace.reset()
        self._change_prefix()
        self.start_timestamp = time.time()
        self.out("")
        self.out(output_format.BEGIN_MARKER)

    def end(self) -> TestSummary:
        """Finish the current test and report API calls it made."""
        trace = self.provider.api_trace
        provider_name = self.provider.provider_name
        cloud_name = self.provider.cloud_name

        api_calls: dict[str, int] = {}
        calls = trace.list_apis(provider_name=provider_name, cloud_name=cloud_name)
        if calls:
            self.out("---------- API Log ----------")
            for call in calls:
                count = trace.get_api_count_across_accounts(
                    provider_name=provider_name, cloud_name=cloud_name, call=call
                )
                api_calls[call] = count
                self.api_audit[call] += count
                self.out_value(f"---> {call}", count)
            self.out_value("---> Total Calls", sum(api_calls.values()))

        duration = time.time() - self.start_timestamp
        self.out_value("Duration", f"{duration:.3f} seconds")
        self.out(output_format.END_MARKER)
        self.out("")
        trace.report(self.prefix)
        trace.reset()

        summary = TestSummary(test_name=self.name, duration=duration, api_calls=api_calls)
        self.name = None
        self._change_prefix()
        return summary

    def is_test_skipped(self) -> bool:
        """Check if the current test is supposed to be skipped."""
        return self.selector.should_skip(suite=self.suite, test=self.name, on_skip=self.skip)

    def close(self) -> None:
        self.provider.close()

    def out(self, message: str) -> None:
        LOGGER.info(f"{self.prefix}{message}")

    def out_value(self, key: str, value: tp.Any) -> None:
        self.out(output_format.format_key_value(key=key, value=value))

    def ok(self, message: str) -> None:
        LOGGER.info(f"{self.prefix}{message} (OK)")

    def warn(self, message: str) -> None:
        LOGGER.warning(f"{self.prefix}WARNING: {message}")

    def error(self, message: str) -> None:
        LOGGER.error(f"{self.prefix} ERROR: {message}")

    def skip(self) -> None:
        self.out("SKIPPING")

    def get_default_data_center_id(self, stateless: bool) -> str | None:
        return self.resource_manager.get_default_data_center_id(stateless=stateless)

    def get_test_vm_product_id(self) -> str | None:
        return self.resource_manager.get_product_id(kind=labels.ResourceKind.VM)

    def get_test_volume_product_id(self) -> str | None:
        return self.resource_manager.get_product_id(kind=labels.ResourceKind.VOLUME)

    def get_test_vm_id(
        self,
        label: str,
        desired_state: str | None = None,
        provision_if_absent: bool = False,
        data_center_id: str | None = None,
    ) -> str | None:
        return self.resource_manager.get_or_provision(
            kind=labels.ResourceKind.VM,
            label=label,
            scope=labels.Scope(data_center_id=data_center_id, desired_state=desired_state),
            provision_if_absent=provision_if_absent,
        )

    def get_test_volume_id(
        self,
        label: str,
        provision_if_absent: bool = False,
        preferred_format: str | None = None,
        data_center_id: str | None = None,
    ) -> str | None:
        return self.resource_manager.get_or_provision(
            kind=labels.ResourceKind.VOLUME,
            label=label,
            scope=labels.Scope(data_center_id=data_center_id, preferred_format=preferred_format),
            provision_if_absent=provision_if_absent,
        )

    def get_test_image_id(self, label: str, provision_if_absent: bool = False) -> str | None:
        return self.resource_manager.get_or_provision(
            kind=labels.ResourceKind.IMAGE, label=label, provision_if_absent=provision_if_absent
        )

    def get_test_snapshot_id(self, label: str, provision_if_absent: bool = False) -> str | None:
        return self.resource_manager.get_or_provision(
            kind=labels.ResourceKind.SNAPSHOT, label=label, provision_if_absent=provision_if_absent
        )

    def get_test_keypair_id(self, label: str, provision_if_absent: bool = False) -> str | None:
        return self.resource_manager.get_or_provision(
            kind=labels.ResourceKind.KEYPAIR, label=label, provision_if_absent=provision_if_absent
        )

    def get_test_static_ip_id(
        self, label: str, provision_if_absent: bool = False, ip_version: str | None = None
    ) -> str | None:
        return self.resource_manager.get_or_provision(
            kind=labels.ResourceKind.STATIC_IP,
            label=label,
            scope=labels.Scope(preferred_format=ip_version),
            provision_if_absent=provision_if_absent,
        )

    def get_test_vlan_id(
        self, label: str, provision_if_absent: bool = False, data_center_id: str | None = None
    ) -> str | None:
        return self.resource_manager.get_or_provision(
            kind=labels.ResourceKind.VLAN,
            label=label,
            scope=labels.Scope(data_center_id=data_center_id),
            provision_if_absent=provision_if_absent,
        )

    def get_test_subnet_id(
        self,
        label: str,
        provision_if_absent: bool = False,
        vlan_id: str | None = None,
        data_center_id: str | None = None,
    ) -> str | None:
        return self.resource_manager.get_or_provision(
            kind=labels.ResourceKind.SUBNET,
            label=label,
            scope=labels.Scope(data_center_id=data_center_id, vlan_id=vlan_id),
            provision_if_absent=provision_if_absent,
        )

    def get_test_general_firewall_id(
        self, label: str, provision_if_absent: bool = False
    ) -> str | None:
        return self.resource_manager.get_or_provision(
            kind=labels.ResourceKind.FIREWALL, label=label, provision_if_absent=provision_if_absent
        )

    def get_test_vlan_firewall_id(
        self, label: str, provision_if_absent: bool = False, vlan_id: str | None = None
    ) -> str | None:
        """Get identifier of a firewall that belongs to the VLAN.

        When no VLAN is given, the "stateless" VLAN is used for "stateless" firewalls, otherwise
        the "stateful" VLAN is used (and provisioned if needed).
        """
        if vlan_id is None:
            if label == labels.Labels.STATELESS:
                vlan_id = self.get_test_vlan_id(label=labels.Labels.STATELESS)
            else:
                vlan_id = self.get_test_vlan_id(
                    label=labels.Labels.STATEFUL, provision_if_absent=True
                )
            if vlan_id is None:
                return None

        return self.resource_manager.get_scoped_resource_id(
            kind=labels.ResourceKind.FIREWALL,
            label=label,
            scope=labels.Scope(vlan_id=vlan_id),
            provision_if_absent=provision_if_absent,
        )

    def get_test_any_firewall_id(
        self, label: str, provision_if_absent: bool = False
    ) -> str | None:
        """Get identifier of a firewall of any type the cloud supports.

        General firewalls are preferred, VLAN firewalls are used when the cloud has only those.
        """
        try:
            capabilities = self.provider.get_firewall_capabilities()
        except Exception as exc:
            LOGGER.warning(f"{self.prefix}Firewall support check failed: {exc}")
            return None

        if not (capabilities and capabilities.subscribed):
            return None
        if capabilities.general_firewalls:
            return self.get_test_general_firewall_id(
                label=label, provision_if_absent=provision_if_absent
            )
        if capabilities.vlan_firewalls:
            return self.get_test_vlan_firewall_id(
                label=labels.Labels.REMOVED, provision_if_absent=True
            )
        return None
