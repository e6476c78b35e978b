"""Errors raised while provisioning test network participants."""


class ProvisioningError(Exception):
    """Base error carrying the participant name and the failing artifact or operation."""

    def __init__(self, msg: str, *, participant: str = "", artifact: str = "") -> None:
        self.participant = participant
        self.artifact = artifact
        prefix = f"{participant}: " if participant else ""
        super().__init__(f"{prefix}{msg}")


class ConfigurationError(ProvisioningError):
    """Malformed caller input, raised before any side effect."""


class StagingError(ProvisioningError):
    """Failure to write a file into the local staging directory."""


class RemoteProvisioningError(ProvisioningError):
    """Failure reported by the cluster-instance API while preparing an instance."""


class StartError(ProvisioningError):
    """Instance failed to start or to reach the running state."""


class AddressUnavailableError(ProvisioningError):
    """The runtime can't report IP address of the instance."""


class PortNotForwardedError(ProvisioningError):
    """Local proxy address requested, but the port was never forwarded."""


class LifecycleError(ProvisioningError):
    """Operation called in a wrong state of the participant lifecycle."""
