"""Error types raised by the convergence engine."""

from typing import Optional


class KeelError(Exception):
    """Base error.

    When a cause is given the message is rendered as ``"<step>: <cause>"`` so
    the whole chain of failed steps reads left to right in a single log line.
    Raise with ``from cause`` to keep the traceback chain as well.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.step = message
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ApplySpecError(KeelError):
    """Apply spec could not be read, written or resolved."""


class BundleError(KeelError):
    """Bundle install/enable/disable/uninstall failure."""


class BlobstoreError(KeelError):
    """Blob could not be fetched or failed verification."""


class SupervisorError(KeelError):
    """Job supervisor registration failure."""


class NetworkError(KeelError):
    """Network configuration failure."""


class JobApplierError(KeelError):
    """Job apply/configure/keep-only failure."""
