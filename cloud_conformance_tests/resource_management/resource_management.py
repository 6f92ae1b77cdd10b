"""Module for exposing useful components of shared resource management.

Conformance tests need cloud resources to test against: virtual machines, volumes, firewalls,
networks, etc. Creating them is slow and costly, so tests share them.

Key concepts:
    - **Labels**: Every resource is requested by a label. A "stateful" resource is provisioned
      on the first request and reused by all tests of the run. A "stateless" resource must
      already exist in the cloud; it is only looked up and never removed. A "removed" resource
      is there for tests that exercise deletion. Any other label gives a resource for the
      exclusive use of a single test.
    - **Scope**: Data center, parent network (VLAN), desired state and preferred format further
      narrow a lookup. A different scope means a different resource.
    - **Provisioners**: Provider-specific collaborators that create, describe and remove
      resources of a single kind.
    - **`SharedResourceManager`**: Returns identifiers of already provisioned resources, or
      provisions new ones. At most one resource is provisioned for each (kind, label, scope)
      in a run, even when tests run concurrently. At the end of the run it removes all the
      resources, best effort.
"""

# flake8: noqa
from cloud_conformance_tests.resource_management.cache import ResourceHandle
from cloud_conformance_tests.resource_management.labels import Labels
from cloud_conformance_tests.resource_management.labels import ResourceKind
from cloud_conformance_tests.resource_management.labels import Scope
from cloud_conformance_tests.resource_management.manager import SharedResourceManager
from cloud_conformance_tests.resource_management.manager import TeardownFailure
from cloud_conformance_tests.resource_management.provisioners import BaseProvisioner
from cloud_conformance_tests.resource_management.provisioners import ResourceInfo
