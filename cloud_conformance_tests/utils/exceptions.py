"""Exceptions raised by the test-execution coordinator."""


class ConformanceError(Exception):
    """Base class for coordinator errors."""


class ConfigurationError(ConformanceError):
    """Test run cannot be constructed from the given configuration.

    Always fatal, the run is aborted.
    """


class ProvisioningError(ConformanceError):
    """A provisioner failed to create a requested resource."""

    def __init__(self, msg: str, kind: str = "", label: str = "") -> None:
        super().__init__(msg)
        self.kind = kind
        self.label = label
