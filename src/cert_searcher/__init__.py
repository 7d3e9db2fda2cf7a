"""cert-searcher: find cluster TLS certificates stored as Kubernetes secrets.

This package waits for certificate secrets labeled with a cluster ID and a
certificate kind, validates them and returns the decoded CA, certificate
and private key, one by one or as the bundle an operator needs.

Example usage:
    from cert_searcher import Cluster, Searcher, get_logger

    cluster = Cluster()
    searcher = Searcher(store=cluster.secret_store(), logger=get_logger("app"))

    certs = searcher.search_cluster_operator("c-abc12")
    certs.api_server.crt
"""

__version__ = "0.1.0"

from cert_searcher.cli import cli
from cert_searcher.cluster import Cluster
from cert_searcher.console import configure_logging, get_logger
from cert_searcher.exceptions import (
    BackendError,
    CertSearcherError,
    ClosedChannelError,
    ClusterConnectionError,
    ExecutionFailedError,
    InvalidConfigError,
    InvalidSecretError,
    WatchTimeoutError,
    WrongTypeError,
)
from cert_searcher.labels import SECRET_NAMESPACE, label_selector, secret_labels, secret_name
from cert_searcher.models import (
    ALL_CERTS,
    TLS,
    AppOperator,
    Cert,
    ClusterOperator,
    Draining,
    Monitoring,
    SecretRecord,
)
from cert_searcher.searcher import DEFAULT_WATCH_TIMEOUT, Searcher
from cert_searcher.store import KubernetesSecretStore, SecretStore

__all__ = [
    # Version
    "__version__",
    # Main CLI
    "cli",
    # Classes
    "Cluster",
    "Searcher",
    "KubernetesSecretStore",
    "SecretStore",
    "DEFAULT_WATCH_TIMEOUT",
    # Models
    "Cert",
    "ALL_CERTS",
    "TLS",
    "SecretRecord",
    "AppOperator",
    "ClusterOperator",
    "Draining",
    "Monitoring",
    # Naming
    "SECRET_NAMESPACE",
    "secret_name",
    "secret_labels",
    "label_selector",
    # Logging
    "configure_logging",
    "get_logger",
    # Exceptions
    "CertSearcherError",
    "InvalidConfigError",
    "ExecutionFailedError",
    "BackendError",
    "ClosedChannelError",
    "WatchTimeoutError",
    "InvalidSecretError",
    "WrongTypeError",
    "ClusterConnectionError",
]
