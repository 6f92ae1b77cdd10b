"""Test run and provider configuration."""

import os
import pathlib as pl

from cloud_conformance_tests.utils.exceptions import ConfigurationError

IS_XDIST = bool(os.environ.get("PYTEST_XDIST_TESTRUNUID"))

# Registry key of the provider implementation, see `providers.registry`
PROVIDER_CLASS = os.environ.get("PROVIDER_CLASS") or ""

# Comma-separated `suite` or `suite.test` tokens, empty string means "not configured"
TEST_INCLUSIONS = os.environ.get("TEST_INCLUSIONS") or ""
TEST_EXCLUSIONS = os.environ.get("TEST_EXCLUSIONS") or ""

# Number of times a parent-scoped resource (e.g. firewall in VLAN) is re-provisioned under
# a derived label when the provisioned resource belongs to a different parent
SCOPED_RETRIES = int(os.environ.get("SCOPED_RETRIES") or 1)
if SCOPED_RETRIES < 0:
    msg = f"Invalid SCOPED_RETRIES '{SCOPED_RETRIES}': must be >= 0"
    raise ConfigurationError(msg)

# Shared resources are kept after tests finish. Removing them would need to be handled manually.
KEEP_RESOURCES = bool(os.environ.get("KEEP_RESOURCES"))

# Resolve SCHEDULING_LOG
SCHEDULING_LOG: str | pl.Path = os.environ.get("SCHEDULING_LOG") or ""
if SCHEDULING_LOG:
    SCHEDULING_LOG = pl.Path(SCHEDULING_LOG).expanduser().resolve()

# Provider context fields and the env variables they are read from
PROVIDER_ENV_VARS = {
    "account_number": "ACCOUNT_NUMBER",
    "access_public": "ACCESS_PUBLIC",
    "access_private": "ACCESS_PRIVATE",
    "x509_cert_file": "X509_CERT_FILE",
    "x509_key_file": "X509_KEY_FILE",
    "endpoint": "ENDPOINT",
    "cloud_name": "CLOUD_NAME",
    "provider_name": "PROVIDER_NAME",
    "region_id": "REGION_ID",
    "custom_properties": "CUSTOM_PROPERTIES",
}
