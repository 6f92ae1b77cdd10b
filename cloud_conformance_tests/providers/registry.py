"""Registry of provider implementations.

Provider is selected by a key from configuration (`PROVIDER_CLASS`). Providers shipped with the
framework are registered here; other providers register themselves with `register_provider`.
"""

import logging
import typing as tp

from cloud_conformance_tests.providers import base
from cloud_conformance_tests.providers import inmemory
from cloud_conformance_tests.utils import api_trace
from cloud_conformance_tests.utils.exceptions import ConfigurationError

LOGGER = logging.getLogger(__name__)

TProvider = tp.TypeVar("TProvider", bound=type[base.ProviderConnection])

PROVIDERS: dict[str, type[base.ProviderConnection]] = {
    "inmemory": inmemory.InMemoryProvider,
}


def register_provider(key: str) -> tp.Callable[[TProvider], TProvider]:
    """Register provider class under the given key - class decorator."""

    def decorator(cls: TProvider) -> TProvider:
        existing = PROVIDERS.get(key)
        if existing and existing is not cls:
            msg = f"Provider key '{key}' already registered for {existing.__name__}"
            raise ValueError(msg)
        PROVIDERS[key] = cls
        return cls

    return decorator


def get_provider_class(key: str) -> type[base.ProviderConnection]:
    if not key:
        msg = "Provider is not configured, set `PROVIDER_CLASS`"
        raise ConfigurationError(msg)

    provider_cls = PROVIDERS.get(key)
    if provider_cls is None:
        msg = f"Unknown provider '{key}', known providers: {', '.join(sorted(PROVIDERS))}"
        raise ConfigurationError(msg)

    return provider_cls


def construct_provider(
    config: base.ProviderConfig,
    key: str,
    trace: api_trace.ApiTrace | None = None,
) -> base.ProviderConnection:
    """Construct and connect a provider."""
    provider_cls = get_provider_class(key)
    provider = provider_cls(config=config, trace=trace)

    try:
        provider.connect()
    except ConfigurationError:
        raise
    except Exception as exc:
        msg = f"Failed to connect to provider '{key}': {exc}"
        raise ConfigurationError(msg) from exc

    if not provider.is_connected:
        msg = f"Provider '{key}' is not connected"
        raise ConfigurationError(msg)

    return provider
