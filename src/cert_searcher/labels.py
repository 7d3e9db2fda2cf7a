"""Secret naming and labelling scheme.

Producers of certificate secrets and the Searcher both use these helpers,
so they agree on where a certificate for a given cluster lives.
"""

from cert_searcher.models import Cert

# Labels identifying the certificate and the cluster a secret belongs to.
CERTIFICATE_LABEL = "giantswarm.io/certificate"
CLUSTER_ID_LABEL = "giantswarm.io/cluster-id"

# Older secrets only carry these. Still written so consumers that filter on
# them keep working.
LEGACY_CERTIFICATE_LABEL = "clusterComponent"
LEGACY_CLUSTER_ID_LABEL = "clusterID"

SECRET_NAMESPACE = "default"


def secret_name(cluster_id: str, cert: Cert) -> str:
    """Return the secret name for a cluster certificate.

    Args:
        cluster_id: The cluster ID.
        cert: The certificate kind.

    Returns:
        The secret name, "<cluster_id>-<cert>".

    """
    return f"{cluster_id}-{cert.value}"


def secret_labels(cluster_id: str, cert: Cert) -> dict[str, str]:
    """Return the full label set a cluster certificate secret carries.

    Args:
        cluster_id: The cluster ID.
        cert: The certificate kind.

    Returns:
        Current and legacy labels for the secret.

    """
    return {
        CERTIFICATE_LABEL: cert.value,
        CLUSTER_ID_LABEL: cluster_id,
        LEGACY_CERTIFICATE_LABEL: cert.value,
        LEGACY_CLUSTER_ID_LABEL: cluster_id,
    }


def label_selector(cluster_id: str, cert: Cert) -> str:
    """Return the label selector matching a cluster certificate secret."""
    return f"{CERTIFICATE_LABEL}={cert.value},{CLUSTER_ID_LABEL}={cluster_id}"
