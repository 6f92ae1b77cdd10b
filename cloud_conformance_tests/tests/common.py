import logging
import typing as tp

import pytest

from cloud_conformance_tests.resource_management import resource_management
from cloud_conformance_tests.run_management import run_context

LOGGER = logging.getLogger(__name__)


def get_provisioner(
    run_ctx: run_context.RunContext, kind: resource_management.ResourceKind
) -> resource_management.BaseProvisioner:
    """Return provisioner for the resource kind, skip the test if the kind is not supported."""
    provisioner = run_ctx.resource_manager.provisioners.get(kind)
    if provisioner is None:
        pytest.skip(f"The provider doesn't support resources of kind '{kind.value}'")
    return provisioner


def describe(
    run_ctx: run_context.RunContext, kind: resource_management.ResourceKind, resource_id: str
) -> resource_management.ResourceInfo | None:
    return get_provisioner(run_ctx=run_ctx, kind=kind).describe(resource_id)


def get_or_skip(resource_id: str | None, what: str) -> str:
    """Return the resource identifier, or skip the test when the resource is not available."""
    if resource_id is None:
        pytest.skip(f"The provider doesn't support {what}")
    return resource_id


def hypothesis_settings(max_examples: int = 100) -> tp.Any:
    import hypothesis

    return hypothesis.settings(
        max_examples=max_examples,
        deadline=None,
        suppress_health_check=(
            hypothesis.HealthCheck.too_slow,
            hypothesis.HealthCheck.function_scoped_fixture,
        ),
    )
