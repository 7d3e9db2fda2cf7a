"""Custom exceptions for cert-searcher.

This module defines the exception hierarchy raised while locating and
decoding certificate secrets, so callers can tell a timeout apart from a
broken backend or a malformed secret and pick their own retry policy.
"""


class CertSearcherError(Exception):
    """Base exception for all cert-searcher errors.

    All custom exceptions in this package inherit from this class,
    allowing callers to catch every search failure with a single
    except clause if desired.
    """

    pass


class InvalidConfigError(CertSearcherError):
    """Raised when the Searcher is constructed with a missing dependency.

    This is a startup error and is never recovered internally.
    """

    pass


class ExecutionFailedError(CertSearcherError):
    """Raised when watching secrets fails before a match is found."""

    pass


class BackendError(ExecutionFailedError):
    """Raised when the secret store reports an error.

    This can occur when:
    - The watch request cannot be opened
    - The watch stream delivers an error event
    - The API server rejects the request (RBAC, expired resource version)
    """

    pass


class ClosedChannelError(ExecutionFailedError):
    """Raised when the watch stream ends without a match or an error.

    Cancelling a search closes its stream, so callers relying on
    cancellation should treat this error as possibly meaning "cancelled".
    """

    pass


class WatchTimeoutError(CertSearcherError):
    """Raised when no matching secret appears within the watch timeout."""

    pass


class InvalidSecretError(CertSearcherError):
    """Raised when a delivered secret fails validation.

    This typically means:
    - The cluster ID or certificate label does not match the request
    - One of the "ca", "crt" or "key" data entries is missing
    """

    pass


class WrongTypeError(CertSearcherError):
    """Raised when a watch event carries something other than a secret."""

    pass


class ClusterConnectionError(CertSearcherError):
    """Raised when connection to the Kubernetes cluster fails.

    This can occur when:
    - The kubeconfig is invalid or missing
    - The requested context does not exist
    - The cluster is unreachable
    """

    pass
