"""Interface of the provider-specific collaborators that create and remove shared resources.

Every provider supplies one provisioner per resource kind it supports. The shared resource manager
uses provisioners only through this interface; how the resources are actually created in a cloud
is up to the provider.
"""

import dataclasses

from cloud_conformance_tests.resource_management import labels


@dataclasses.dataclass(frozen=True)
class ResourceInfo:
    """Current state of an existing resource as reported by the provider."""

    resource_id: str
    parent_id: str | None = None
    state: str | None = None


@dataclasses.dataclass(frozen=True)
class FirewallCapabilities:
    """What kinds of firewalls can be created in the cloud."""

    subscribed: bool = False
    general_firewalls: bool = False
    vlan_firewalls: bool = False


class BaseProvisioner:
    """Base class for resource provisioners."""

    kind: labels.ResourceKind

    def provision(self, label: str, scope: labels.Scope) -> str:
        """Create a new resource and return its identifier."""
        raise NotImplementedError

    def find_existing(
        self,
        label: str,  # noqa: ARG002
        scope: labels.Scope,  # noqa: ARG002
    ) -> str | None:
        """Return identifier of an already existing resource matching the scope.

        Used for the "stateless" resources, which are never provisioned by the framework.
        """
        return None

    def describe(self, resource_id: str) -> ResourceInfo | None:
        """Return info about the resource, or `None` when the resource doesn't exist."""
        raise NotImplementedError

    def remove(self, resource_id: str) -> None:
        """Remove the resource."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.kind.value})"
