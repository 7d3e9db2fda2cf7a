"""Certificate secret searcher.

This module provides the Searcher class which waits for certificate
secrets of a cluster to show up in the secret store and decodes them into
TLS material, one certificate at a time or as a bundle of certificates
searched concurrently.
"""

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TypeVar

from cert_searcher.exceptions import (
    BackendError,
    ClosedChannelError,
    InvalidConfigError,
    InvalidSecretError,
    WatchTimeoutError,
    WrongTypeError,
)
from cert_searcher.labels import CERTIFICATE_LABEL, CLUSTER_ID_LABEL, SECRET_NAMESPACE, label_selector
from cert_searcher.models import (
    BUNDLE_CERTS,
    TLS,
    AppOperator,
    Cert,
    ClusterOperator,
    Draining,
    Monitoring,
    SecretRecord,
    WatchEventType,
)
from cert_searcher.store import SecretStore

# Seconds to wait on a watch before giving up.
DEFAULT_WATCH_TIMEOUT = 3.0

_REQUIRED_KEYS = ("ca", "crt", "key")

B = TypeVar("B", AppOperator, ClusterOperator, Draining, Monitoring)


def tls_from_secret(secret: SecretRecord, cluster_id: str, cert: Cert) -> TLS:
    """Validate a secret and decode its certificate material.

    Args:
        secret: The secret delivered by the store.
        cluster_id: The cluster ID that was searched for.
        cert: The certificate kind that was searched for.

    Returns:
        The TLS material held by the secret.

    Raises:
        InvalidSecretError: If a label does not match the request or a
            data key is missing.

    """
    actual = secret.labels.get(CLUSTER_ID_LABEL, "")
    if actual != cluster_id:
        raise InvalidSecretError(f"secret {secret.name!r}: expected cluster = {cluster_id!r}, got {actual!r}")
    actual = secret.labels.get(CERTIFICATE_LABEL, "")
    if actual != cert.value:
        raise InvalidSecretError(f"secret {secret.name!r}: expected certificate = {cert.value!r}, got {actual!r}")

    for key in _REQUIRED_KEYS:
        if key not in secret.data:
            raise InvalidSecretError(f"secret {secret.name!r}: {key!r} key missing")

    return TLS(ca=secret.data["ca"], crt=secret.data["crt"], key=secret.data["key"])


class Searcher:
    """Finds cluster certificates stored as labeled secrets.

    Every search opens its own watch session and releases it before
    returning. Nothing is cached or shared between calls.

    Attributes:
        store: The secret store to watch.
        logger: Logger for search diagnostics.
        watch_timeout: Seconds a single search waits for its secret.

    """

    def __init__(
        self,
        store: SecretStore | None,
        logger: logging.Logger | None,
        watch_timeout: float | None = None,
    ) -> None:
        """Initialize the Searcher.

        Args:
            store: The secret store to watch. Required.
            logger: Logger for search diagnostics. Required.
            watch_timeout: Seconds to wait per search. Defaults to
                DEFAULT_WATCH_TIMEOUT when None or 0.

        Raises:
            InvalidConfigError: If a required dependency is missing or the
                timeout is negative.

        """
        if store is None:
            raise InvalidConfigError("Searcher store must not be empty")
        if logger is None:
            raise InvalidConfigError("Searcher logger must not be empty")
        if not watch_timeout:
            watch_timeout = DEFAULT_WATCH_TIMEOUT
        if watch_timeout < 0:
            raise InvalidConfigError(f"Searcher watch_timeout must be positive, got {watch_timeout}")

        self.store = store
        self.logger = logger
        self.watch_timeout = float(watch_timeout)

    def __repr__(self) -> str:
        return f"Searcher(store={self.store!r}, watch_timeout={self.watch_timeout!r})"

    def search_tls(self, cluster_id: str, cert: Cert, cancel: threading.Event | None = None) -> TLS:
        """Search a single certificate of a cluster.

        Args:
            cluster_id: The cluster ID.
            cert: The certificate kind.
            cancel: Optional event aborting the search when set.

        Returns:
            The decoded TLS material.

        Raises:
            BackendError: If the watch failed or reported an error.
            ClosedChannelError: If the watch ended without a match.
            WatchTimeoutError: If no secret appeared within the timeout.
            InvalidSecretError: If the delivered secret is malformed.
            WrongTypeError: If the watch delivered something else than a secret.

        """
        secret = self._search(cluster_id, cert, cancel)
        return tls_from_secret(secret, cluster_id, cert)

    def search_app_operator(self, cluster_id: str, cancel: threading.Event | None = None) -> AppOperator:
        """Search the certificates needed by the app operator."""
        return self.search_bundle(AppOperator, cluster_id, cancel)

    def search_cluster_operator(self, cluster_id: str, cancel: threading.Event | None = None) -> ClusterOperator:
        """Search the certificates needed by the cluster operator."""
        return self.search_bundle(ClusterOperator, cluster_id, cancel)

    def search_draining(self, cluster_id: str, cancel: threading.Event | None = None) -> Draining:
        """Search the certificates needed by the node draining operator."""
        return self.search_bundle(Draining, cluster_id, cancel)

    def search_monitoring(self, cluster_id: str, cancel: threading.Event | None = None) -> Monitoring:
        """Search the certificates needed by the monitoring stack."""
        return self.search_bundle(Monitoring, cluster_id, cancel)

    def search_bundle(self, bundle: type[B], cluster_id: str, cancel: threading.Event | None = None) -> B:
        """Search all certificates of a bundle concurrently.

        All searches run to completion. If any of them failed, the first
        failure to complete is raised and the other results are dropped.

        Args:
            bundle: The bundle type, a key of BUNDLE_CERTS.
            cluster_id: The cluster ID.
            cancel: Optional event aborting the searches when set.

        Returns:
            The bundle with every certificate field populated.

        """
        members = BUNDLE_CERTS[bundle]
        found: dict[str, TLS] = {}
        first_error: Exception | None = None

        with ThreadPoolExecutor(max_workers=len(members), thread_name_prefix=f"search-{cluster_id}") as executor:
            futures = {
                executor.submit(self.search_tls, cluster_id, cert, cancel): field_name
                for field_name, cert in members
            }
            for future in as_completed(futures):
                try:
                    found[futures[future]] = future.result()
                except Exception as err:
                    if first_error is None:
                        first_error = err
                    else:
                        self.logger.debug("Discarding additional bundle error: %s", err)

        if first_error is not None:
            raise first_error

        self.logger.info("Found %s certificates for cluster %s", bundle.__name__, cluster_id)
        return bundle(**found)

    def _search(self, cluster_id: str, cert: Cert, cancel: threading.Event | None) -> SecretRecord:
        selector = label_selector(cluster_id, cert)

        try:
            session = self.store.watch(SECRET_NAMESPACE, selector, self.watch_timeout, cancel=cancel)
        except BackendError as err:
            raise BackendError(f"watching secrets, selector = {selector!r}: {err}") from err

        self.logger.debug("Watching secrets, selector = %r", selector)
        deadline = time.monotonic() + self.watch_timeout

        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise WatchTimeoutError(f"waiting secrets, selector = {selector!r}")
                try:
                    event = session.next_event(timeout=remaining)
                except queue.Empty:
                    raise WatchTimeoutError(f"waiting secrets, selector = {selector!r}") from None

                if event is None:
                    raise ClosedChannelError(f"watching secrets, selector = {selector!r}: unexpected closed channel")

                match event.type:
                    case WatchEventType.ADDED:
                        if not isinstance(event.object, SecretRecord):
                            raise WrongTypeError(
                                f"expected {SecretRecord.__name__!r}, got {type(event.object).__name__!r}"
                            )
                        self.logger.debug("Found secret %r, selector = %r", event.object.name, selector)
                        return event.object
                    case WatchEventType.ERROR:
                        raise BackendError(f"watching secrets, selector = {selector!r}: {event.object}")
                    case _:
                        # Deletions are handled by the certificate operator.
                        self.logger.debug("Ignoring %s event, selector = %r", event.type.value, selector)
        finally:
            session.stop()
