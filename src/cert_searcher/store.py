"""Secret store access.

This module defines the watch interface the Searcher consumes and its
Kubernetes implementation. A watch session reads the Kubernetes watch
response in a pump thread and hands events over through a queue, so the
Searcher can wait on it with a timeout.
"""

import base64
import binascii
import math
import queue
import threading
from typing import Any, Protocol

from kubernetes import client, watch
from kubernetes.client.rest import ApiException
from kubernetes.watch.watch import iter_resp_lines
from urllib3.exceptions import HTTPError

from cert_searcher.console import get_logger
from cert_searcher.models import SecretRecord, WatchEvent, WatchEventType

# Seconds a watch request outlives the search it serves. The server ends the
# stream only after the search deadline, so a search never sees a closed
# stream where it should time out.
WATCH_SLACK_SECONDS = 1

# Connect timeout of a watch request.
WATCH_CONNECT_TIMEOUT_SECONDS = 10

_CANCEL_POLL_INTERVAL = 0.05

logger = get_logger(__name__)


class WatchSession(Protocol):
    """An open subscription to secret events."""

    def next_event(self, timeout: float) -> WatchEvent | None:
        """Wait for the next event.

        Args:
            timeout: Seconds to wait.

        Returns:
            The next event, or None once the stream has closed.

        Raises:
            queue.Empty: If no event arrived within the timeout.

        """
        ...

    def stop(self) -> None:
        """Release the subscription."""
        ...


class SecretStore(Protocol):
    """A label addressed secret store with a watch primitive."""

    def watch(
        self,
        namespace: str,
        label_selector: str,
        timeout: float,
        cancel: threading.Event | None = None,
    ) -> WatchSession:
        """Open a watch on secrets matching the selector.

        Args:
            namespace: The namespace to watch.
            label_selector: Equality based label selector.
            timeout: Seconds the caller will wait on the session. The store
                must keep the stream open at least this long.
            cancel: Optional event closing the session when set.

        Raises:
            BackendError: If the watch cannot be opened.

        """
        ...


def secret_record_from_k8s(secret: client.V1Secret) -> SecretRecord:
    """Convert a Kubernetes secret into a SecretRecord.

    Args:
        secret: The secret as deserialized by the Kubernetes client.

    Returns:
        A SecretRecord with base64 decoded data.

    Raises:
        ValueError: If a data value is not valid base64.

    """
    metadata = secret.metadata or client.V1ObjectMeta()
    name = metadata.name or ""
    data: dict[str, bytes] = {}
    for key, value in (secret.data or {}).items():
        try:
            data[key] = base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise ValueError(f"secret {name!r}: malformed base64 in {key!r}: {e}") from e
    return SecretRecord(name=name, labels=dict(metadata.labels or {}), data=data)


def _status_message(status: Any) -> str:
    if isinstance(status, dict):
        return f"{status.get('code')} {status.get('reason')}: {status.get('message')}"
    return str(status)


def _to_event(raw: dict[str, Any]) -> WatchEvent:
    event_type = WatchEventType(raw["type"])
    obj = raw["object"]
    if event_type is WatchEventType.ERROR:
        return WatchEvent(type=event_type, object=_status_message(obj))
    if isinstance(obj, client.V1Secret):
        obj = secret_record_from_k8s(obj)
    return WatchEvent(type=event_type, object=obj)


class KubernetesWatchSession:
    """Watch session reading a Kubernetes secret watch response.

    Events are pushed into a queue by a daemon thread. A None sentinel
    marks the end of the stream: server side timeout, stop() or the
    caller's cancel event being set. stop() closes the HTTP response,
    which ends the pump thread.

    """

    def __init__(
        self,
        core_v1_api: client.CoreV1Api,
        namespace: str,
        label_selector: str,
        *,
        timeout_seconds: int,
        cancel: threading.Event | None = None,
    ) -> None:
        self.label_selector = label_selector
        self.timeout_seconds = timeout_seconds
        self._decoder = watch.Watch()
        self._events: queue.Queue[WatchEvent | None] = queue.Queue()
        self._stopped = threading.Event()
        self._closed = False
        self._resp: Any = None
        self._lock = threading.Lock()

        self._pump = threading.Thread(
            target=self._run,
            args=(core_v1_api, namespace),
            name=f"secret-watch[{label_selector}]",
            daemon=True,
        )
        self._pump.start()

        if cancel is not None:
            threading.Thread(
                target=self._stop_on_cancel,
                args=(cancel,),
                name=f"secret-watch-cancel[{label_selector}]",
                daemon=True,
            ).start()

    def __repr__(self) -> str:
        return f"KubernetesWatchSession(label_selector={self.label_selector!r}, stopped={self._stopped.is_set()})"

    @property
    def alive(self) -> bool:
        """Whether the pump thread is still reading the stream."""
        return self._pump.is_alive()

    def _open(self, core_v1_api: client.CoreV1Api, namespace: str) -> Any:
        return core_v1_api.list_namespaced_secret(
            namespace,
            label_selector=self.label_selector,
            watch=True,
            timeout_seconds=self.timeout_seconds,
            _preload_content=False,
            _request_timeout=(WATCH_CONNECT_TIMEOUT_SECONDS, self.timeout_seconds + WATCH_SLACK_SECONDS),
        )

    def _run(self, core_v1_api: client.CoreV1Api, namespace: str) -> None:
        resp = None
        try:
            resp = self._open(core_v1_api, namespace)
            with self._lock:
                self._resp = resp
                if self._stopped.is_set():
                    return
            for line in iter_resp_lines(resp):
                raw = self._decoder.unmarshal_event(line, "V1Secret")
                if raw is None:
                    continue
                self._events.put(_to_event(raw))
        except (ApiException, HTTPError, ValueError) as err:
            # ValueError covers unknown event types and undecodable secrets.
            if not self._stopped.is_set():
                self._events.put(WatchEvent(type=WatchEventType.ERROR, object=err))
        except Exception as err:
            # Reads fail in various ways once stop() closed the response.
            if not self._stopped.is_set():
                raise
            logger.debug("Watch %r ended after stop: %s", self.label_selector, err)
        finally:
            if resp is not None:
                resp.close()
                resp.release_conn()
            self._close()

    def _stop_on_cancel(self, cancel: threading.Event) -> None:
        while not cancel.wait(_CANCEL_POLL_INTERVAL):
            if self._stopped.is_set():
                return
        logger.debug("Watch %r cancelled", self.label_selector)
        self.stop()

    def _close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._events.put(None)

    def next_event(self, timeout: float) -> WatchEvent | None:
        return self._events.get(timeout=timeout)

    def stop(self) -> None:
        with self._lock:
            self._stopped.set()
            resp = self._resp
        if resp is not None:
            resp.close()
        self._close()


class KubernetesSecretStore:
    """SecretStore implementation using the Kubernetes CoreV1 API.

    Attributes:
        core_v1_api: The API client used for watch requests.

    """

    def __init__(self, core_v1_api: client.CoreV1Api) -> None:
        self.core_v1_api = core_v1_api

    def __repr__(self) -> str:
        return f"KubernetesSecretStore(core_v1_api={self.core_v1_api!r})"

    def watch(
        self,
        namespace: str,
        label_selector: str,
        timeout: float,
        cancel: threading.Event | None = None,
    ) -> KubernetesWatchSession:
        """Open a watch on secrets in a namespace.

        The server side timeout of the request is the caller's timeout plus
        WATCH_SLACK_SECONDS, so the stream outlives the caller's deadline.
        Failures to reach the API server surface as an ERROR event on the
        returned session, since the request is sent by the pump thread.

        Args:
            namespace: The namespace to watch.
            label_selector: Equality based label selector.
            timeout: Seconds the caller will wait on the session.
            cancel: Optional event closing the session when set.

        Returns:
            The running watch session.

        """
        timeout_seconds = math.ceil(timeout) + WATCH_SLACK_SECONDS
        logger.debug(
            "Opening watch on secrets in %s, selector = %r, timeout = %ss", namespace, label_selector, timeout_seconds
        )
        return KubernetesWatchSession(
            self.core_v1_api,
            namespace,
            label_selector,
            timeout_seconds=timeout_seconds,
            cancel=cancel,
        )
