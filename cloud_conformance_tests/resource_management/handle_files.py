"""Handles of shared resources persisted as files.

When tests run on multiple pytest workers, every worker has its own `SharedResourceManager`.
Handle files are created in the single temp directory shared by all workers, so a resource
provisioned by one worker is reused by the others, and the worker that finishes last can remove
all the resources.

Components of handle file names:
* `_@@<kind>@@_`: resource kind
* `_%%<label>%%_`: sanitized label, for humans only
* `_<hash>`: hash of the whole lookup key (kind, label, scope)
"""

import dataclasses
import hashlib
import json
import pathlib as pl
import time

from cloud_conformance_tests.resource_management import cache
from cloud_conformance_tests.resource_management import labels

HANDLE_GLOB = ".handle"


def get_key_hash(kind: labels.ResourceKind, label: str, scope: labels.Scope) -> str:
    key_str = json.dumps(
        {"kind": kind.value, "label": label, "scope": dataclasses.asdict(scope)}, sort_keys=True
    )
    return hashlib.sha1(key_str.encode("utf-8")).hexdigest()[:16]


def get_handle_file(
    handle_dir: pl.Path, kind: labels.ResourceKind, label: str, scope: labels.Scope
) -> pl.Path:
    """Return the file for a handle of the given lookup key."""
    key_hash = get_key_hash(kind=kind, label=label, scope=scope)
    sanitized = labels.sanitize_label(label)
    return handle_dir / f"{HANDLE_GLOB}_@@{kind.value}@@_%%{sanitized}%%_{key_hash}.json"


def get_handle_lock_file(
    handle_dir: pl.Path, kind: labels.ResourceKind, label: str, scope: labels.Scope
) -> pl.Path:
    """Return the lock file guarding provisioning of the given lookup key."""
    return get_handle_file(handle_dir=handle_dir, kind=kind, label=label, scope=scope).with_suffix(
        ".lock"
    )


def save_handle(handle_dir: pl.Path, handle: cache.ResourceHandle) -> pl.Path:
    """Persist the handle."""
    handle_file = get_handle_file(
        handle_dir=handle_dir, kind=handle.kind, label=handle.label, scope=handle.scope
    )
    content = {
        "kind": handle.kind.value,
        "label": handle.label,
        "scope": dataclasses.asdict(handle.scope),
        "resource_id": handle.resource_id,
        "created": time.time(),
    }
    # write to temp file first so other workers never see a partially written file
    tmp_file = handle_file.with_suffix(".tmp")
    tmp_file.write_text(json.dumps(content, indent=4), encoding="utf-8")
    tmp_file.replace(handle_file)
    return handle_file


def _load_content(handle_file: pl.Path) -> dict:
    with open(handle_file, encoding="utf-8") as in_fp:
        content: dict = json.load(in_fp)
    return content


def _handle_from_content(content: dict) -> cache.ResourceHandle:
    return cache.ResourceHandle(
        kind=labels.ResourceKind(content["kind"]),
        label=content["label"],
        scope=labels.Scope(**content["scope"]),
        resource_id=content["resource_id"],
    )


def load_handle(
    handle_dir: pl.Path, kind: labels.ResourceKind, label: str, scope: labels.Scope
) -> cache.ResourceHandle | None:
    """Return persisted handle for the given lookup key, if any."""
    handle_file = get_handle_file(handle_dir=handle_dir, kind=kind, label=label, scope=scope)
    if not handle_file.exists():
        return None
    return _handle_from_content(_load_content(handle_file))


def list_handle_files(
    handle_dir: pl.Path, kind: labels.ResourceKind | None = None
) -> list[pl.Path]:
    """List handle files, optionally only for the given resource kind."""
    kind_glob = kind.value if kind else "*"
    return list(handle_dir.glob(f"{HANDLE_GLOB}_@@{kind_glob}@@_*.json"))


def load_handles(handle_dir: pl.Path) -> list[cache.ResourceHandle]:
    """Return all persisted handles, oldest first."""
    contents = [_load_content(p) for p in list_handle_files(handle_dir=handle_dir)]
    contents.sort(key=lambda c: c.get("created") or 0)
    return [_handle_from_content(c) for c in contents]


def rm_handle_files(handle_dir: pl.Path) -> None:
    """Remove all handle files and their lock files."""
    for handle_file in list_handle_files(handle_dir=handle_dir):
        handle_file.unlink(missing_ok=True)
        handle_file.with_suffix(".lock").unlink(missing_ok=True)
