"""Kubernetes cluster connection utilities.

This module provides the Cluster class which resolves the kube context to
work with and builds the secret store the Searcher watches.
"""

import click
import questionary
from icecream import ic
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from questionary import Style
from urllib3.exceptions import MaxRetryError

from cert_searcher import console
from cert_searcher.exceptions import ClusterConnectionError
from cert_searcher.labels import SECRET_NAMESPACE
from cert_searcher.store import KubernetesSecretStore

PROMPT_STYLE = Style(
    [
        ("qmark", "fg:#5fafff bold"),
        ("question", "bold"),
        ("answer", "fg:#87d787 bold"),
        ("pointer", "fg:#87d787 bold"),
        ("highlighted", "fg:#1c1c1c bg:#87d787 bold"),
        ("instruction", "fg:#6c6c6c italic"),
    ]
)


class Cluster:
    """Connection to the Kubernetes cluster holding certificate secrets.

    Attributes:
        context: The active Kubernetes context name.
        core_v1_api: CoreV1 API client bound to the context.

    """

    def __init__(self, *, context: str | None = None, select_context: bool = False) -> None:
        """Initialize Cluster and load the kubeconfig.

        Args:
            context: Context to use. Defaults to the current context.
            select_context: If True, prompt the user to select a context.
                            Takes precedence over context.

        Raises:
            ClusterConnectionError: If the kubeconfig is invalid or missing.

        """
        self.context: str = self._resolve_context(context=context, select_context=select_context)
        try:
            api_client = config.new_client_from_config(context=self.context)
        except ConfigException as e:
            raise ClusterConnectionError(f"Failed to load context {self.context!r}: {e}") from e
        self.core_v1_api: client.CoreV1Api = client.CoreV1Api(api_client)

    @staticmethod
    def _resolve_context(*, context: str | None, select_context: bool) -> str:
        """Return the kube context to work with.

        Raises:
            ClusterConnectionError: If kubeconfig is invalid or the context is unknown.
            click.Abort: If user cancels context selection.

        """
        try:
            contexts, current_context = config.list_kube_config_contexts()
        except ConfigException as e:
            raise ClusterConnectionError(f"Invalid or missing kubeconfig: {e}") from e
        context_names: list[str] = [c["name"] for c in contexts]
        ic(context_names)

        if select_context:
            selected: str | None = questionary.select(
                "Select context to work with",
                choices=context_names,
                style=PROMPT_STYLE,
            ).ask()
            if selected is None:
                console.warning("Context selection cancelled.")
                raise click.Abort()
            context = selected
        elif context is None:
            context = str(current_context["name"])
        elif context not in context_names:
            raise ClusterConnectionError(f"Context {context!r} not found in kubeconfig")

        console.action(f"Working with {console.highlight(context)} cluster")
        return context

    def ensure_reachable(self) -> None:
        """Check that secrets in the certificate namespace can be listed.

        Raises:
            ClusterConnectionError: If the cluster is unreachable or access is denied.

        """
        try:
            self.core_v1_api.list_namespaced_secret(SECRET_NAMESPACE, limit=1)
        except MaxRetryError as e:
            raise ClusterConnectionError(f"Failed to connect to the Kubernetes cluster: {e.reason}") from e
        except ApiException as e:
            raise ClusterConnectionError(
                f"Failed to list secrets in {SECRET_NAMESPACE!r}: {e.status} {e.reason}"
            ) from e

    def secret_store(self) -> KubernetesSecretStore:
        """Return a secret store watching this cluster."""
        return KubernetesSecretStore(self.core_v1_api)

    def __repr__(self) -> str:
        return f"Cluster(context={self.context!r})"
