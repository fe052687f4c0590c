"""Domain errors for pgselfhost."""

from typing import Optional, Sequence


class ProvisionerError(RuntimeError):
    """Raised when provisioning cannot continue safely."""


class ValidationError(ProvisionerError):
    """Raised for malformed directories, addresses or conflicting inputs."""


class NetworkProbeFailure(ProvisionerError):
    """Raised by a single address-echo probe; recovered by the next probe."""


class RandomSourceError(ProvisionerError):
    """Raised when the operating system entropy source is unavailable."""


class UserCancelled(ProvisionerError):
    """Raised when the operator declines before anything is written."""


class FileSystemError(ProvisionerError):
    """Raised when an artifact cannot be written to the install directory."""

    def __init__(
        self,
        message: str,
        artifact: Optional[str] = None,
        completed: Sequence[str] = (),
    ):
        super().__init__(message)
        self.artifact = artifact
        self.completed = list(completed)
