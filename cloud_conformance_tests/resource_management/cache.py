import contextlib
import dataclasses
import threading
import typing as tp

from cloud_conformance_tests.resource_management import labels


@dataclasses.dataclass(frozen=True)
class ResourceHandle:
    """Identifier of a provisioned (or looked up) resource together with its lookup key."""

    kind: labels.ResourceKind
    label: str
    scope: labels.Scope
    resource_id: str


class ResourceLabelCache:
    """Cache of resource handles of a single kind.

    Handles are keyed by label and scope. A changed scope is a new key, a recorded handle is never
    updated in place.
    """

    def __init__(self, kind: labels.ResourceKind) -> None:
        self.kind = kind
        # guards `_handles` and `_key_locks`, never held while provisioning
        self._lock = threading.Lock()
        self._handles: dict[tuple[str, labels.Scope], ResourceHandle] = {}
        self._key_locks: dict[tuple[str, labels.Scope], threading.Lock] = {}

    def get(self, label: str, scope: labels.Scope) -> ResourceHandle | None:
        with self._lock:
            return self._handles.get((label, scope))

    def record(self, label: str, scope: labels.Scope, resource_id: str) -> ResourceHandle:
        """Record a new handle."""
        key = (label, scope)
        with self._lock:
            existing = self._handles.get(key)
            if existing:
                if existing.resource_id != resource_id:
                    msg = (
                        f"Handle for {self.kind.value} '{label}' {scope} already recorded "
                        f"with id '{existing.resource_id}'"
                    )
                    raise RuntimeError(msg)
                return existing

            handle = ResourceHandle(
                kind=self.kind, label=label, scope=scope, resource_id=resource_id
            )
            self._handles[key] = handle
            return handle

    @contextlib.contextmanager
    def key_lock(self, label: str, scope: labels.Scope) -> tp.Iterator[None]:
        """Hold the lock of a single key - context manager.

        The check-provision-record sequence for a key runs under this lock, keys of the same kind
        don't block each other.
        """
        key = (label, scope)
        with self._lock:
            lock = self._key_locks.setdefault(key, threading.Lock())
        with lock:
            yield

    def handles(self) -> list[ResourceHandle]:
        """Return recorded handles, oldest first."""
        with self._lock:
            return list(self._handles.values())

    def clear(self) -> list[ResourceHandle]:
        """Forget all handles and return them, oldest first."""
        with self._lock:
            handles = list(self._handles.values())
            self._handles = {}
            self._key_locks = {}
        return handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.kind.value}, handles={len(self)})"
