"""Accounting of cloud API calls made by providers.

Providers record every API call they make. The run coordinator reads the counts for a
(provider, cloud) pair at the end of each test and aggregates them into a per-run audit.
"""

import collections
import logging
import threading

LOGGER = logging.getLogger(__name__)


class ApiTrace:
    """Thread safe counter of API calls keyed by provider, cloud, account and call name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        # {(provider, cloud): {account: Counter({call: count})}}
        self._calls: dict[tuple[str, str], dict[str, collections.Counter]] = {}

    def record(self, provider_name: str, cloud_name: str, account: str, call: str) -> None:
        """Record single API call."""
        with self._lock:
            accounts = self._calls.setdefault((provider_name, cloud_name), {})
            accounts.setdefault(account, collections.Counter())[call] += 1

    def list_apis(self, provider_name: str, cloud_name: str) -> list[str]:
        """Return names of API calls recorded for the provider and cloud."""
        with self._lock:
            accounts = self._calls.get((provider_name, cloud_name)) or {}
            return sorted({call for counter in accounts.values() for call in counter})

    def get_api_count_across_accounts(self, provider_name: str, cloud_name: str, call: str) -> int:
        """Return number of times the API call was made, summed over all accounts."""
        with self._lock:
            accounts = self._calls.get((provider_name, cloud_name)) or {}
            return sum(counter[call] for counter in accounts.values())

    def report(self, prefix: str) -> None:
        """Log all recorded API calls."""
        with self._lock:
            snapshot = {k: {a: dict(c) for a, c in v.items()} for k, v in self._calls.items()}

        for (provider_name, cloud_name), accounts in snapshot.items():
            for account, calls in accounts.items():
                for call, count in sorted(calls.items()):
                    LOGGER.debug(
                        f"{prefix}: {provider_name}/{cloud_name}/{account or '-'} {call}={count}"
                    )

    def reset(self) -> None:
        """Forget all recorded API calls."""
        with self._lock:
            self._calls = {}
