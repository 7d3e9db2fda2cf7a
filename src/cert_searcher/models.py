"""Data models for cert-searcher.

This module provides the certificate kinds, the decoded TLS material,
the store-neutral secret and watch event shapes, and the bundle types
that group certificates needed together by one operator.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple


class Cert(str, Enum):
    """Certificate kinds issued for a cluster.

    Inherits from str so the value can be used directly as a label value
    and in secret names.
    """

    API = "api"
    APP_OPERATOR_API = "app-operator-api"
    CALICO = "calico"
    CALICO_ETCD_CLIENT = "calico-etcd-client"
    CLUSTER_OPERATOR_API = "cluster-operator-api"
    ETCD = "etcd"
    FLANNELD_ETCD_CLIENT = "flanneld-etcd-client"
    NODE_OPERATOR = "node-operator"
    PROMETHEUS = "prometheus"
    SERVICE_ACCOUNT = "service-account"
    WORKER = "worker"

    def __str__(self) -> str:
        return self.value


# All certificates that can be created by the certificate operator.
ALL_CERTS: tuple[Cert, ...] = tuple(Cert)


@dataclass(frozen=True, slots=True)
class TLS:
    """Decoded certificate material.

    Attributes:
        ca: The CA certificate, PEM encoded.
        crt: The certificate, PEM encoded.
        key: The private key, PEM encoded.

    """

    ca: bytes
    crt: bytes
    key: bytes

    def __repr__(self) -> str:
        return f"TLS(ca=<{len(self.ca)} bytes>, crt=<{len(self.crt)} bytes>, key=<redacted>)"


@dataclass(frozen=True, slots=True)
class SecretRecord:
    """A secret as delivered by the secret store.

    Attributes:
        name: The secret name.
        labels: The secret labels.
        data: The decoded secret data.

    """

    name: str
    labels: Mapping[str, str] = field(default_factory=dict)
    data: Mapping[str, bytes] = field(default_factory=dict)


class WatchEventType(str, Enum):
    """Event types delivered by a watch stream."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    ERROR = "ERROR"
    BOOKMARK = "BOOKMARK"


class WatchEvent(NamedTuple):
    """A single watch event.

    Attributes:
        type: The event type.
        object: A SecretRecord for data events, the error for ERROR events.

    """

    type: WatchEventType
    object: Any


@dataclass(frozen=True, slots=True)
class AppOperator:
    """Certificates needed by the app operator."""

    api_server: TLS


@dataclass(frozen=True, slots=True)
class ClusterOperator:
    """Certificates needed by the cluster operator."""

    api_server: TLS


@dataclass(frozen=True, slots=True)
class Draining:
    """Certificates needed by the node draining operator."""

    node_operator: TLS


@dataclass(frozen=True, slots=True)
class Monitoring:
    """Certificates needed by the monitoring stack."""

    prometheus: TLS


Bundle = AppOperator | ClusterOperator | Draining | Monitoring

# Bundle type -> (field name, certificate) members searched together.
BUNDLE_CERTS: dict[type, tuple[tuple[str, Cert], ...]] = {
    AppOperator: (("api_server", Cert.APP_OPERATOR_API),),
    ClusterOperator: (("api_server", Cert.CLUSTER_OPERATOR_API),),
    Draining: (("node_operator", Cert.NODE_OPERATOR),),
    Monitoring: (("prometheus", Cert.PROMETHEUS),),
}
