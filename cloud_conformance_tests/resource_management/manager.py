"""Management of cloud resources shared by many tests.

This module provides the `SharedResourceManager` class. Instead of creating their own virtual
machines, volumes, firewalls, etc., tests ask the manager for an identifier of a resource with
a given label and scope. The manager returns the identifier of a resource that was already
provisioned for the same label and scope, or provisions a new one using the provider-specific
provisioner. At most one resource is provisioned for each (kind, label, scope) key during a test
run. At the end of the run the manager removes all the resources it knows about, except the
"stateless" ones that existed before the run.
"""

import contextlib
import dataclasses
import datetime
import logging
import pathlib as pl
import typing as tp

from cloud_conformance_tests.providers import base as providers_base
from cloud_conformance_tests.resource_management import cache
from cloud_conformance_tests.resource_management import handle_files
from cloud_conformance_tests.resource_management import labels
from cloud_conformance_tests.resource_management import provisioners as prov
from cloud_conformance_tests.utils import configuration
from cloud_conformance_tests.utils import run_files
from cloud_conformance_tests.utils.exceptions import ProvisioningError

LOGGER = logging.getLogger(__name__)

LOG_LOCK = ".manager_log.lock"


@dataclasses.dataclass(frozen=True)
class TeardownFailure:
    """A shared resource that couldn't be removed at the end of the run."""

    handle: cache.ResourceHandle
    error: str


class SharedResourceManager:
    """Set of management methods for shared cloud resources."""

    def __init__(
        self,
        provisioners: tp.Iterable[prov.BaseProvisioner] = (),
        handle_dir: pl.Path | None = None,
        worker_id: str = "master",
    ) -> None:
        self.worker_id = worker_id
        # when set, handles are shared with other pytest workers through files in this dir
        self.handle_dir = handle_dir
        self.log_lock = f"{handle_dir}/{LOG_LOCK}" if handle_dir else ""

        self.caches = {kind: cache.ResourceLabelCache(kind=kind) for kind in labels.ResourceKind}
        self.provisioners: dict[labels.ResourceKind, prov.BaseProvisioner] = {}
        for provisioner in provisioners:
            self.register_provisioner(provisioner)

        self._data_center_ids: dict[bool, str | None] = {}
        self._product_ids: dict[labels.ResourceKind, str | None] = {}

    def log(self, msg: str) -> None:
        """Log a message to the scheduling log."""
        LOGGER.debug(msg)
        if not configuration.SCHEDULING_LOG:
            return

        log_lock: tp.ContextManager = contextlib.nullcontext()
        if self.log_lock:
            log_lock = run_files.lock_if_xdist(self.log_lock)
        with (
            log_lock,
            open(configuration.SCHEDULING_LOG, "a", encoding="utf-8") as logfile,
        ):
            logfile.write(
                f"{datetime.datetime.now(tz=datetime.timezone.utc)} on {self.worker_id}: {msg}\n"
            )

    def register_provisioner(self, provisioner: prov.BaseProvisioner) -> None:
        """Register provisioner for the kind of resources it handles."""
        if provisioner.kind in self.provisioners:
            msg = f"Provisioner for {provisioner.kind.value} already registered"
            raise ValueError(msg)
        self.provisioners[provisioner.kind] = provisioner

    def init(self, provider: providers_base.ProviderConnection) -> None:
        """Get provisioners and defaults from a connected provider.

        **IMPORTANT**: This method must be called before any resource lookup.
        """
        for provisioner in provider.get_provisioners():
            self.register_provisioner(provisioner)

        self._data_center_ids = {
            stateless: provider.get_test_data_center_id(stateless=stateless)
            for stateless in (True, False)
        }
        self._product_ids = {
            kind: provider.get_test_product_id(kind=kind)
            for kind in (labels.ResourceKind.VM, labels.ResourceKind.VOLUME)
        }
        self.log(
            f"initialized with provisioners for {sorted(k.value for k in self.provisioners)}, "
            f"data centers {self._data_center_ids}"
        )

    def get_default_data_center_id(self, stateless: bool) -> str | None:
        return self._data_center_ids.get(stateless)

    def get_product_id(self, kind: labels.ResourceKind) -> str | None:
        return self._product_ids.get(kind)

    def handles(self, kind: labels.ResourceKind | None = None) -> list[cache.ResourceHandle]:
        """Return handles recorded by this manager."""
        kinds = [kind] if kind else list(labels.ResourceKind)
        return [h for k in kinds for h in self.caches[k].handles()]

    def _key_file_lock(
        self, kind: labels.ResourceKind, label: str, scope: labels.Scope
    ) -> tp.ContextManager:
        if not self.handle_dir:
            return contextlib.nullcontext()
        lock_file = handle_files.get_handle_lock_file(
            handle_dir=self.handle_dir, kind=kind, label=label, scope=scope
        )
        return run_files.lock_if_xdist(lock_file)

    def _find_existing(
        self, provisioner: prov.BaseProvisioner, label: str, scope: labels.Scope
    ) -> str | None:
        try:
            return provisioner.find_existing(label=label, scope=scope)
        except Exception as exc:
            LOGGER.warning(
                f"Lookup of existing {provisioner.kind.value} {scope} failed, "
                f"treating as unavailable: {exc}"
            )
            return None

    def _provision(
        self, provisioner: prov.BaseProvisioner, label: str, scope: labels.Scope
    ) -> str:
        kind = provisioner.kind
        try:
            resource_id = provisioner.provision(label=label, scope=scope)
        except Exception as exc:
            msg = f"Failed to provision {kind.value} '{label}' {scope}: {exc}"
            raise ProvisioningError(msg, kind=kind.value, label=label) from exc

        if not resource_id:
            msg = f"Provisioning of {kind.value} '{label}' {scope} returned no identifier"
            raise ProvisioningError(msg, kind=kind.value, label=label)

        self.log(f"provisioned {kind.value} '{label}' {scope}: {resource_id}")
        return resource_id

    def get_or_provision(
        self,
        kind: labels.ResourceKind,
        label: str,
        scope: labels.Scope | None = None,
        provision_if_absent: bool = False,
    ) -> str | None:
        """Get identifier of a resource with given label and scope, provision it if needed.

        Returns `None` when the resource is not available and it was not requested to provision
        it, or when the provider doesn't support resources of the kind. The caller is expected to
        skip the test in such case.

        Resources labelled "stateless" are looked up and never provisioned.
        """
        scope = scope or labels.ANY_SCOPE
        label_cache = self.caches[kind]

        handle = label_cache.get(label=label, scope=scope)
        if handle:
            return handle.resource_id

        provisioner = self.provisioners.get(kind)
        if provisioner is None:
            LOGGER.debug(f"No provisioner for {kind.value}, resource '{label}' is not available")
            return None

        with (
            label_cache.key_lock(label=label, scope=scope),
            self._key_file_lock(kind=kind, label=label, scope=scope),
        ):
            # the resource may have been recorded while waiting for the lock
            handle = label_cache.get(label=label, scope=scope)
            if handle:
                return handle.resource_id

            if self.handle_dir:
                handle = handle_files.load_handle(
                    handle_dir=self.handle_dir, kind=kind, label=label, scope=scope
                )
                if handle:
                    label_cache.record(label=label, scope=scope, resource_id=handle.resource_id)
                    return handle.resource_id

            if label == labels.Labels.STATELESS:
                resource_id = self._find_existing(provisioner=provisioner, label=label, scope=scope)
            elif provision_if_absent:
                resource_id = self._provision(provisioner=provisioner, label=label, scope=scope)
            else:
                resource_id = None

            if not resource_id:
                return None

            handle = label_cache.record(label=label, scope=scope, resource_id=resource_id)
            if self.handle_dir:
                handle_files.save_handle(handle_dir=self.handle_dir, handle=handle)

        return resource_id

    def get_scoped_resource_id(
        self,
        kind: labels.ResourceKind,
        label: str,
        scope: labels.Scope,
        provision_if_absent: bool = False,
        max_retries: int | None = None,
    ) -> str | None:
        """Get identifier of a resource that must belong to the parent given by `scope.vlan_id`.

        When the resource belongs to a different parent, a fresh one is provisioned under a derived
        label. A mismatched identifier is never returned.
        """
        if not scope.vlan_id:
            msg = "Parent-scoped lookup requires `scope.vlan_id`"
            raise ValueError(msg)

        provisioner = self.provisioners.get(kind)
        if provisioner is None:
            return None

        if max_retries is None:
            max_retries = configuration.SCOPED_RETRIES

        curr_label = label
        for attempt in range(max_retries + 1):
            resource_id = self.get_or_provision(
                kind=kind, label=curr_label, scope=scope, provision_if_absent=provision_if_absent
            )
            if not resource_id:
                return None

            try:
                info = provisioner.describe(resource_id)
            except Exception as exc:
                LOGGER.warning(
                    f"Cannot verify parent of {kind.value} '{resource_id}', using it as is: {exc}"
                )
                return resource_id

            if info is None:
                LOGGER.warning(f"The {kind.value} '{resource_id}' no longer exists")
                return None
            if info.parent_id == scope.vlan_id:
                return resource_id

            self.log(
                f"{kind.value} '{resource_id}' ('{curr_label}') belongs to '{info.parent_id}', "
                f"expected '{scope.vlan_id}'"
            )
            curr_label = labels.derive_label(label=label, attempt=attempt + 1)

        LOGGER.warning(
            f"Failed to get {kind.value} '{label}' in '{scope.vlan_id}' "
            f"after {max_retries} retries"
        )
        return None

    def _pop_handles(self) -> dict[labels.ResourceKind, list[cache.ResourceHandle]]:
        """Forget all handles and return them grouped by kind, oldest first."""
        all_handles = [h for c in self.caches.values() for h in c.clear()]

        if self.handle_dir:
            # include handles recorded by other workers
            known = {(h.kind, h.label, h.scope) for h in all_handles}
            for handle in handle_files.load_handles(handle_dir=self.handle_dir):
                if (handle.kind, handle.label, handle.scope) not in known:
                    all_handles.append(handle)
            handle_files.rm_handle_files(handle_dir=self.handle_dir)

        by_kind: dict[labels.ResourceKind, list[cache.ResourceHandle]] = {}
        for handle in all_handles:
            by_kind.setdefault(handle.kind, []).append(handle)
        return by_kind

    def close(self) -> list[TeardownFailure]:
        """Remove all shared resources except the "stateless" ones.

        Removal is best effort. Every resource is attempted, failures are logged and returned.
        """
        self.log("called `close`")
        failures: list[TeardownFailure] = []

        by_kind = self._pop_handles()
        for kind in labels.TEARDOWN_ORDER:
            for handle in reversed(by_kind.get(kind, [])):
                if handle.label == labels.Labels.STATELESS:
                    continue

                provisioner = self.provisioners.get(kind)
                if provisioner is None:
                    msg = f"no provisioner for {kind.value}"
                    LOGGER.warning(f"Cannot remove {kind.value} '{handle.resource_id}': {msg}")
                    failures.append(TeardownFailure(handle=handle, error=msg))
                    continue

                try:
                    provisioner.remove(handle.resource_id)
                except Exception as exc:
                    LOGGER.warning(
                        f"Failed to remove {kind.value} '{handle.resource_id}' "
                        f"('{handle.label}'): {exc}"
                    )
                    failures.append(TeardownFailure(handle=handle, error=str(exc)))
                else:
                    self.log(f"removed {kind.value} '{handle.resource_id}' ('{handle.label}')")

        return failures
