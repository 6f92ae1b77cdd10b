import dataclasses
import enum
import re
import typing as tp


class Labels:
    """Labels that classify the role of a shared resource.

    Any other string is a custom label that scopes a resource to exclusive use by one test.
    """

    # Resource persists and is reused by all tests within a run
    STATEFUL: tp.Final[str] = "stateful"
    # Resource is expected to already exist; it is looked up, never provisioned nor removed
    STATELESS: tp.Final[str] = "stateless"
    # Resource is provisioned for tests that exercise the deletion paths
    REMOVED: tp.Final[str] = "removed"
    RESERVED: tp.Final[tuple[str, ...]] = (STATEFUL, STATELESS, REMOVED)


class ResourceKind(enum.Enum):
    VM = "vm"
    VOLUME = "volume"
    FIREWALL = "firewall"
    SUBNET = "subnet"
    VLAN = "vlan"
    STATIC_IP = "static_ip"
    IMAGE = "image"
    SNAPSHOT = "snapshot"
    KEYPAIR = "keypair"


# Resources are removed in this order, so dependent resources go before their parents
TEARDOWN_ORDER: tp.Final[tuple[ResourceKind, ...]] = (
    ResourceKind.VM,
    ResourceKind.SNAPSHOT,
    ResourceKind.IMAGE,
    ResourceKind.VOLUME,
    ResourceKind.STATIC_IP,
    ResourceKind.FIREWALL,
    ResourceKind.SUBNET,
    ResourceKind.VLAN,
    ResourceKind.KEYPAIR,
)


@dataclasses.dataclass(frozen=True)
class Scope:
    """Additional fields of a resource lookup key. `None` means "any"."""

    data_center_id: str | None = None
    vlan_id: str | None = None
    desired_state: str | None = None
    preferred_format: str | None = None


ANY_SCOPE: tp.Final[Scope] = Scope()


def derive_label(label: str, attempt: int) -> str:
    """Return label for the `attempt`-th re-provisioning of a parent-scoped resource."""
    return f"{label}{'a' * attempt}"


_SANITIZE_RE = re.compile("[^a-zA-Z0-9_-]+")


def sanitize_label(s: str) -> str:
    """Sanitize label so it can be used as a part of file name."""
    sanitized = _SANITIZE_RE.sub("_", s).strip()[0:20]
    return sanitized
