"""WPFortify exception hierarchy.

All public exceptions inherit from WPFortifyError, giving callers a single
base class to catch when they want to handle any WPFortify-specific failure
without swallowing unrelated errors.

The verification engine never lets one of these escape a component: the
scanner catches them at component (or item) granularity and records them
in the job, so a failure in one component never stops its siblings.
"""


class WPFortifyError(Exception):
    """Base exception for all WPFortify errors."""


# ---------------------------------------------------------------------------
# Manifest retrieval
# ---------------------------------------------------------------------------


class ManifestError(WPFortifyError):
    """Raised when the expected checksum manifest cannot be obtained.

    Covers transport failures, unexpected HTTP statuses, unparsable or
    empty responses, and errors reported by the remote authority itself.
    """


class TransportError(ManifestError):
    """The request never produced a response (DNS, TLS, timeout...)."""


class UnexpectedStatusError(ManifestError):
    """The remote authority answered with a non-200 status."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnparsableResponseError(ManifestError):
    """The response body was not a JSON object."""


class EmptyManifestError(ManifestError):
    """The response parsed but carried no usable checksum map."""


class RemoteReportedError(ManifestError):
    """The remote authority returned a structured error message."""


# ---------------------------------------------------------------------------
# Local metadata and filesystem
# ---------------------------------------------------------------------------


class InsufficientMetadataError(WPFortifyError):
    """Raised when a version, slug or directory cannot be resolved locally."""


class FileCheckError(WPFortifyError):
    """Raised when a single file cannot be hashed for comparison."""

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class FileReadError(FileCheckError):
    """The file exists but could not be opened for reading."""


class FileHashError(FileCheckError):
    """The file was opened but computing its digest failed."""


# ---------------------------------------------------------------------------
# Jobs, storage and configuration
# ---------------------------------------------------------------------------


class JobStateError(WPFortifyError):
    """Raised for failures of the transient job state."""


class JobNotFoundError(JobStateError):
    """The job identifier is unknown or its state has expired."""


class InvalidStateKeyError(JobStateError):
    """A state key contains characters the store cannot accept."""


class HistoryError(WPFortifyError):
    """Raised when the result history cannot be read or written."""


class BaselineError(WPFortifyError):
    """Raised when a local baseline cannot be generated or loaded."""


class ConfigError(WPFortifyError):
    """Raised when the settings file is malformed or holds invalid values."""
