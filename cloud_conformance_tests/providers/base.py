"""Connection to a cloud provider and the configuration it is constructed from."""

import dataclasses
import json
import logging
import os
import typing as tp

from cloud_conformance_tests.resource_management import labels
from cloud_conformance_tests.resource_management import provisioners as prov
from cloud_conformance_tests.utils import api_trace
from cloud_conformance_tests.utils import configuration
from cloud_conformance_tests.utils import helpers
from cloud_conformance_tests.utils.exceptions import ConfigurationError

LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ProviderConfig:
    """Provider context options. Options that were not configured are `None`."""

    account_number: str | None = None
    access_public: bytes | None = None
    access_private: bytes | None = None
    x509_cert: bytes | None = None
    x509_key: bytes | None = None
    endpoint: str | None = None
    cloud_name: str | None = None
    provider_name: str | None = None
    region_id: str | None = None
    custom_properties: tp.Mapping[str, str] = dataclasses.field(default_factory=dict)


def _read_material(path: str) -> bytes:
    """Read certificate or key material from a file."""
    try:
        return helpers.read_text_lines(path).encode("utf-8")
    except FileNotFoundError as exc:
        msg = f"No such file: {path}"
        raise ConfigurationError(msg) from exc
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Failed to read file '{path}': {exc}"
        raise ConfigurationError(msg) from exc


def parse_custom_properties(value: str) -> dict[str, str]:
    """Parse custom properties supplied as a JSON object with string values."""
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as exc:
        msg = f"Failed to understand custom properties JSON: {exc}"
        raise ConfigurationError(msg) from exc

    if not isinstance(parsed, dict):
        msg = f"Custom properties must be a JSON object, got: {value}"
        raise ConfigurationError(msg)

    non_str = sorted(k for k, v in parsed.items() if not isinstance(v, str))
    if non_str:
        msg = f"Custom properties must have string values, offending keys: {non_str}"
        raise ConfigurationError(msg)

    return parsed


def load_provider_config(environ: tp.Mapping[str, str] | None = None) -> ProviderConfig:
    """Construct provider configuration from environment variables.

    Missing or empty variables are simply omitted.
    """
    env = os.environ if environ is None else environ
    values = {f: env.get(var) or None for f, var in configuration.PROVIDER_ENV_VARS.items()}

    access_public = values["access_public"]
    access_private = values["access_private"]
    cert_file = values["x509_cert_file"]
    key_file = values["x509_key_file"]
    custom_properties = values["custom_properties"]

    return ProviderConfig(
        account_number=values["account_number"],
        access_public=access_public.encode("utf-8") if access_public else None,
        access_private=access_private.encode("utf-8") if access_private else None,
        x509_cert=_read_material(cert_file) if cert_file else None,
        x509_key=_read_material(key_file) if key_file else None,
        endpoint=values["endpoint"],
        cloud_name=values["cloud_name"],
        provider_name=values["provider_name"],
        region_id=values["region_id"],
        custom_properties=parse_custom_properties(custom_properties) if custom_properties else {},
    )


class ProviderConnection:
    """Base class for connections to a cloud provider.

    Subclasses supply the provisioners for the resource kinds the cloud supports, and answer
    capability queries.
    """

    default_provider_name: tp.ClassVar[str] = ""
    default_cloud_name: tp.ClassVar[str] = ""
    # `ProviderConfig` fields that must be set, checked in `connect`
    required_fields: tp.ClassVar[tuple[str, ...]] = ()

    def __init__(self, config: ProviderConfig, trace: api_trace.ApiTrace | None = None) -> None:
        self.config = config
        self.api_trace = trace or api_trace.ApiTrace()
        self._connected = False

    @property
    def provider_name(self) -> str:
        return self.config.provider_name or self.default_provider_name

    @property
    def cloud_name(self) -> str:
        return self.config.cloud_name or self.default_cloud_name

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def context(self) -> ProviderConfig | None:
        """Return configuration of the connected provider, `None` when not connected."""
        return self.config if self._connected else None

    def connect(self) -> None:
        """Connect to the cloud."""
        missing = [f for f in self.required_fields if not getattr(self.config, f)]
        if missing:
            msg = f"Provider '{self.provider_name}' requires: {', '.join(missing)}"
            raise ConfigurationError(msg)
        self._connect()
        self._connected = True
        LOGGER.debug(f"Connected to {self.provider_name}/{self.cloud_name}")

    def _connect(self) -> None:
        """Provider-specific part of `connect`."""

    def close(self) -> None:
        self._connected = False

    def record_call(self, call: str) -> None:
        """Record an API call made to the cloud."""
        self.api_trace.record(
            provider_name=self.provider_name,
            cloud_name=self.cloud_name,
            account=self.config.account_number or "",
            call=call,
        )

    def get_provisioners(self) -> list[prov.BaseProvisioner]:
        raise NotImplementedError

    def get_firewall_capabilities(self) -> prov.FirewallCapabilities | None:
        """Return firewall capabilities, `None` when the cloud has no network services."""
        return None

    def get_test_data_center_id(
        self,
        stateless: bool,  # noqa: ARG002
    ) -> str | None:
        """Return data center to use for tests."""
        return None

    def get_test_product_id(
        self,
        kind: labels.ResourceKind,  # noqa: ARG002
    ) -> str | None:
        """Return product (size, flavor) to use for resources of the given kind."""
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {self.provider_name}/{self.cloud_name}>"
