"""Shared test fixtures for cert-searcher tests."""

import logging
import queue
import threading
from unittest.mock import MagicMock, patch

import pytest

from cert_searcher.labels import secret_labels
from cert_searcher.models import Cert, SecretRecord, WatchEvent, WatchEventType
from cert_searcher.searcher import Searcher

TEST_WATCH_TIMEOUT = 0.2


class FakeWatchSession:
    """In-memory watch session replaying scripted events."""

    def __init__(self, events: list[WatchEvent], *, close: bool = False, delay: float = 0.0) -> None:
        self.stop_calls = 0
        self._events: queue.Queue[WatchEvent | None] = queue.Queue()
        pending: list[WatchEvent | None] = [*events, None] if close else list(events)
        if delay:
            threading.Timer(delay, self._load, args=(pending,)).start()
        else:
            self._load(pending)

    def _load(self, pending: list[WatchEvent | None]) -> None:
        for event in pending:
            self._events.put(event)

    def next_event(self, timeout: float) -> WatchEvent | None:
        return self._events.get(timeout=timeout)

    def stop(self) -> None:
        self.stop_calls += 1


class FakeSecretStore:
    """In-memory secret store keyed by label selector.

    Selectors without scripted events get a session that never delivers
    anything, so searches on them time out.
    """

    def __init__(self) -> None:
        self.scripts: dict[str, dict] = {}
        self.watch_calls: list[tuple[str, str, float]] = []
        self.sessions: list[FakeWatchSession] = []
        self.open_error: Exception | None = None
        self._lock = threading.Lock()

    def add(self, selector: str, events: list[WatchEvent], *, close: bool = False, delay: float = 0.0) -> None:
        self.scripts[selector] = {"events": events, "close": close, "delay": delay}

    def watch(
        self,
        namespace: str,
        label_selector: str,
        timeout: float,
        cancel: threading.Event | None = None,
    ) -> FakeWatchSession:
        with self._lock:
            self.watch_calls.append((namespace, label_selector, timeout))
        if self.open_error is not None:
            raise self.open_error
        script = self.scripts.get(label_selector, {"events": [], "close": False, "delay": 0.0})
        close = script["close"] or (cancel is not None and cancel.is_set())
        session = FakeWatchSession(script["events"], close=close, delay=script["delay"])
        with self._lock:
            self.sessions.append(session)
        return session


def make_secret(
    cluster_id: str,
    cert: Cert,
    data: dict[str, bytes] | None = None,
    labels: dict[str, str] | None = None,
) -> SecretRecord:
    """Build a well-formed certificate secret, overridable per test."""
    if data is None:
        data = {"ca": b"CA==", "crt": b"CRT==", "key": b"KEY=="}
    if labels is None:
        labels = secret_labels(cluster_id, cert)
    return SecretRecord(name=f"{cluster_id}-{cert.value}", labels=labels, data=data)


def added(secret: object) -> WatchEvent:
    return WatchEvent(type=WatchEventType.ADDED, object=secret)


def deleted(secret: object) -> WatchEvent:
    return WatchEvent(type=WatchEventType.DELETED, object=secret)


@pytest.fixture
def store():
    """Empty fake secret store."""
    return FakeSecretStore()


@pytest.fixture
def test_logger():
    """Logger passed to the Searcher under test."""
    return logging.getLogger("cert_searcher.tests")


@pytest.fixture
def searcher(store, test_logger):
    """Searcher over the fake store with a short watch timeout."""
    return Searcher(store=store, logger=test_logger, watch_timeout=TEST_WATCH_TIMEOUT)


@pytest.fixture
def mock_kube_contexts():
    """Mock kubernetes config contexts."""
    with patch("kubernetes.config.list_kube_config_contexts") as mock:
        mock.return_value = (
            [{"name": "test-context"}, {"name": "other-context"}],
            {"name": "test-context"},
        )
        yield mock


@pytest.fixture
def mock_new_client():
    """Mock API client creation from kubeconfig."""
    with patch("kubernetes.config.new_client_from_config") as mock:
        yield mock


@pytest.fixture
def mock_core_v1_api():
    """Mock CoreV1Api construction."""
    with patch("kubernetes.client.CoreV1Api") as mock:
        api_instance = MagicMock()
        mock.return_value = api_instance
        yield api_instance


@pytest.fixture
def cluster_mocks(mock_kube_contexts, mock_new_client, mock_core_v1_api):
    """Combined fixture for creating a Cluster instance without cluster access."""
    return {
        "contexts": mock_kube_contexts,
        "new_client": mock_new_client,
        "core_api": mock_core_v1_api,
    }
