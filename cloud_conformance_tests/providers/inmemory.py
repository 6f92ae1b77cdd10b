"""Provider that simulates a cloud in memory.

Useful for testing the framework itself, and as an example for provider authors.

Recognized custom properties:
* `dataCenters`: comma-separated data center IDs, default `dc-1,dc-2`
* `firewallSupport`: `general` (default), `vlan` or `none`
* `unsupportedKinds`: comma-separated resource kinds (e.g. `snapshot,image`) the cloud doesn't have
* `seedStateless`: `false` to not create any pre-existing ("stateless") resources
"""

import dataclasses
import logging
import threading

from cloud_conformance_tests.providers import base
from cloud_conformance_tests.resource_management import labels
from cloud_conformance_tests.resource_management import provisioners as prov
from cloud_conformance_tests.utils import helpers

LOGGER = logging.getLogger(__name__)

DEFAULT_DATA_CENTERS = "dc-1,dc-2"

_DEFAULT_STATES = {
    labels.ResourceKind.VM: "running",
    labels.ResourceKind.VOLUME: "available",
    labels.ResourceKind.STATIC_IP: "available",
    labels.ResourceKind.IMAGE: "active",
    labels.ResourceKind.SNAPSHOT: "available",
}

_PRODUCTS = {
    labels.ResourceKind.VM: "small",
    labels.ResourceKind.VOLUME: "standard",
}


@dataclasses.dataclass
class InMemoryResource:
    kind: labels.ResourceKind
    resource_id: str
    label: str
    data_center_id: str | None = None
    parent_id: str | None = None
    state: str | None = None
    resource_format: str | None = None
    preexisting: bool = False


class CloudState:
    """Resources existing in a single simulated cloud."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.resources: dict[str, InMemoryResource] = {}
        self.seeded = False

    def mark_seeded(self) -> bool:
        """Mark the cloud as seeded, return `False` if it was already seeded."""
        with self._lock:
            if self.seeded:
                return False
            self.seeded = True
            return True

    def add(self, resource: InMemoryResource) -> InMemoryResource:
        with self._lock:
            self.resources[resource.resource_id] = resource
        return resource

    def get(self, resource_id: str) -> InMemoryResource | None:
        with self._lock:
            return self.resources.get(resource_id)

    def remove(self, resource_id: str) -> None:
        with self._lock:
            if resource_id not in self.resources:
                msg = f"Resource '{resource_id}' doesn't exist"
                raise LookupError(msg)
            del self.resources[resource_id]

    def find(self, kind: labels.ResourceKind, scope: labels.Scope) -> list[InMemoryResource]:
        """Return pre-existing resources of the kind that match the scope."""
        with self._lock:
            candidates = [r for r in self.resources.values() if r.kind == kind and r.preexisting]
        return [
            r
            for r in candidates
            if (scope.data_center_id is None or r.data_center_id == scope.data_center_id)
            and (scope.vlan_id is None or r.parent_id == scope.vlan_id)
            and (scope.desired_state is None or r.state == scope.desired_state)
            and (scope.preferred_format is None or r.resource_format == scope.preferred_format)
        ]


_CLOUDS: dict[str, CloudState] = {}
_CLOUDS_LOCK = threading.Lock()


def get_cloud_state(cloud_name: str) -> CloudState:
    """Return state of the simulated cloud, shared by all connections to it."""
    with _CLOUDS_LOCK:
        return _CLOUDS.setdefault(cloud_name, CloudState())


def reset_clouds() -> None:
    """Forget all simulated clouds."""
    with _CLOUDS_LOCK:
        _CLOUDS.clear()


class InMemoryProvisioner(prov.BaseProvisioner):
    def __init__(self, provider: "InMemoryProvider", kind: labels.ResourceKind) -> None:
        self.provider = provider
        self.kind = kind

    @property
    def state(self) -> CloudState:
        return get_cloud_state(self.provider.cloud_name)

    def provision(self, label: str, scope: labels.Scope) -> str:
        self.provider.record_call(f"{self.kind.value}.create")
        data_center_id = scope.data_center_id or self.provider.get_test_data_center_id(
            stateless=False
        )
        if data_center_id not in self.provider.data_centers:
            msg = f"Unknown data center '{data_center_id}'"
            raise ValueError(msg)

        resource = InMemoryResource(
            kind=self.kind,
            resource_id=f"{self.kind.value}-{helpers.get_rand_str(10)}",
            label=label,
            data_center_id=data_center_id,
            parent_id=scope.vlan_id,
            state=scope.desired_state or _DEFAULT_STATES.get(self.kind),
            resource_format=scope.preferred_format,
        )
        return self.state.add(resource).resource_id

    def find_existing(self, label: str, scope: labels.Scope) -> str | None:  # noqa: ARG002
        self.provider.record_call(f"{self.kind.value}.list")
        found = self.state.find(kind=self.kind, scope=scope)
        return found[0].resource_id if found else None

    def describe(self, resource_id: str) -> prov.ResourceInfo | None:
        self.provider.record_call(f"{self.kind.value}.get")
        resource = self.state.get(resource_id)
        if resource is None:
            return None
        return prov.ResourceInfo(
            resource_id=resource.resource_id, parent_id=resource.parent_id, state=resource.state
        )

    def remove(self, resource_id: str) -> None:
        self.provider.record_call(f"{self.kind.value}.delete")
        self.state.remove(resource_id)


class InMemoryProvider(base.ProviderConnection):
    default_provider_name = "InMemory"
    default_cloud_name = "local"

    @property
    def data_centers(self) -> list[str]:
        value = self.config.custom_properties.get("dataCenters") or DEFAULT_DATA_CENTERS
        return [dc.strip() for dc in value.split(",") if dc.strip()]

    @property
    def supported_kinds(self) -> list[labels.ResourceKind]:
        unsupported = self.config.custom_properties.get("unsupportedKinds") or ""
        unsupported_kinds = {k.strip() for k in unsupported.split(",") if k.strip()}
        return [k for k in labels.ResourceKind if k.value not in unsupported_kinds]

    def _seed(self, state: CloudState) -> None:
        """Create resources that exist in the cloud independently of the test run."""
        kinds = self.supported_kinds
        for data_center_id in self.data_centers:
            vlan_id = None
            if labels.ResourceKind.VLAN in kinds:
                vlan_id = f"{labels.ResourceKind.VLAN.value}-existing-{data_center_id}"

            for kind in kinds:
                in_vlan = kind in (labels.ResourceKind.FIREWALL, labels.ResourceKind.SUBNET)
                state.add(
                    InMemoryResource(
                        kind=kind,
                        resource_id=f"{kind.value}-existing-{data_center_id}",
                        label=labels.Labels.STATELESS,
                        data_center_id=data_center_id,
                        parent_id=vlan_id if in_vlan else None,
                        state=_DEFAULT_STATES.get(kind),
                        preexisting=True,
                    )
                )

    def _connect(self) -> None:
        state = get_cloud_state(self.cloud_name)
        seed = (self.config.custom_properties.get("seedStateless") or "true").lower() != "false"
        if seed and state.mark_seeded():
            self._seed(state)

    def get_provisioners(self) -> list[prov.BaseProvisioner]:
        return [InMemoryProvisioner(provider=self, kind=k) for k in self.supported_kinds]

    def get_firewall_capabilities(self) -> prov.FirewallCapabilities | None:
        self.record_call("firewall.capabilities")
        support = self.config.custom_properties.get("firewallSupport") or "general"
        if support == "none":
            return prov.FirewallCapabilities(subscribed=False)
        return prov.FirewallCapabilities(
            subscribed=True,
            general_firewalls=support == "general",
            vlan_firewalls=True,
        )

    def get_test_data_center_id(self, stateless: bool) -> str | None:  # noqa: ARG002
        data_centers = self.data_centers
        return data_centers[0] if data_centers else None

    def get_test_product_id(self, kind: labels.ResourceKind) -> str | None:
        return _PRODUCTS.get(kind)
