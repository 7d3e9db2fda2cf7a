"""Tests for cli.py module."""

import stat
from unittest.mock import MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from cert_searcher import __version__
from cert_searcher.cli import build_searcher, cli, write_tls
from cert_searcher.exceptions import ClusterConnectionError, WatchTimeoutError
from cert_searcher.models import TLS, Cert, ClusterOperator, Monitoring
from cert_searcher.searcher import Searcher

SAMPLE_TLS = TLS(ca=b"-----CA-----", crt=b"-----CRT-----", key=b"-----KEY-----")


@pytest.fixture
def mock_searcher():
    """Patch searcher construction in CLI commands."""
    with patch("cert_searcher.cli.build_searcher") as mock:
        searcher = MagicMock(spec=Searcher)
        mock.return_value = searcher
        yield searcher


class TestCliVersion:
    """Tests for version option."""

    @pytest.mark.parametrize("flag", ["--version", "-v"])
    def test_version_flag(self, flag):
        """Test version flags print the version."""
        result = CliRunner().invoke(cli, [flag])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestCliHelp:
    """Tests for help output."""

    def test_help_flag(self):
        """Test --help flag shows commands and options."""
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "Find cluster TLS certificates" in result.output
        for text in ("--debug", "--select", "--context", "--timeout", "search", "bundle", "labels", "certs"):
            assert text in result.output


class TestCliCerts:
    """Tests for the certs command."""

    def test_lists_all_certs(self):
        """Test every certificate kind is printed."""
        result = CliRunner().invoke(cli, ["certs"])

        assert result.exit_code == 0
        assert result.output.split() == [cert.value for cert in Cert]


class TestCliLabels:
    """Tests for the labels command."""

    def test_prints_naming_contract(self):
        """Test name, namespace and labels are printed as YAML."""
        result = CliRunner().invoke(cli, ["labels", "c-abc12", "cluster-operator-api"])

        assert result.exit_code == 0
        assert yaml.safe_load(result.output) == {
            "name": "c-abc12-cluster-operator-api",
            "namespace": "default",
            "labels": {
                "giantswarm.io/certificate": "cluster-operator-api",
                "giantswarm.io/cluster-id": "c-abc12",
                "clusterComponent": "cluster-operator-api",
                "clusterID": "c-abc12",
            },
        }

    def test_rejects_unknown_cert(self):
        """Test unknown certificate kinds are a usage error."""
        result = CliRunner().invoke(cli, ["labels", "c-abc12", "kube-proxy"])

        assert result.exit_code == 2


class TestCliSearch:
    """Tests for the search command."""

    def test_search(self, mock_searcher):
        """Test a single certificate search."""
        mock_searcher.search_tls.return_value = SAMPLE_TLS

        with patch("cert_searcher.cli.console.summary_panel") as mock_panel:
            result = CliRunner().invoke(cli, ["search", "c-abc12", "etcd"])

        assert result.exit_code == 0
        mock_searcher.search_tls.assert_called_once_with("c-abc12", Cert.ETCD)
        mock_panel.assert_called_once_with("Certificate etcd", {"c-abc12-etcd": SAMPLE_TLS})

    def test_search_shows_spinner(self, mock_searcher):
        """Test the wait on the secret runs under a spinner."""
        mock_searcher.search_tls.return_value = SAMPLE_TLS

        with patch("cert_searcher.cli.console.spinner") as mock_spinner:
            result = CliRunner().invoke(cli, ["search", "c-abc12", "etcd"])

        assert result.exit_code == 0
        mock_spinner.assert_called_once_with("Waiting for c-abc12-etcd...")

    def test_search_writes_pem_files(self, mock_searcher, tmp_path):
        """Test --output-dir writes the material with a private key file."""
        mock_searcher.search_tls.return_value = SAMPLE_TLS

        result = CliRunner().invoke(cli, ["search", "c-abc12", "etcd", "--output-dir", str(tmp_path)])

        assert result.exit_code == 0
        target = tmp_path / "c-abc12-etcd"
        assert (target / "ca.pem").read_bytes() == SAMPLE_TLS.ca
        assert (target / "crt.pem").read_bytes() == SAMPLE_TLS.crt
        assert (target / "key.pem").read_bytes() == SAMPLE_TLS.key
        assert stat.S_IMODE((target / "key.pem").stat().st_mode) == 0o600

    def test_search_failure(self, mock_searcher):
        """Test search errors exit with status 1."""
        mock_searcher.search_tls.side_effect = WatchTimeoutError("waiting secrets, selector = 'x'")

        with patch("cert_searcher.cli.console.error") as mock_error:
            result = CliRunner().invoke(cli, ["search", "c-abc12", "etcd"])

        assert result.exit_code == 1
        mock_error.assert_called_once_with("waiting secrets, selector = 'x'")

    def test_cluster_connection_failure(self):
        """Test connection errors exit with status 1."""
        with (
            patch("cert_searcher.cli.build_searcher") as mock_build,
            patch("cert_searcher.cli.console.error") as mock_error,
        ):
            mock_build.side_effect = ClusterConnectionError("Invalid or missing kubeconfig")
            result = CliRunner().invoke(cli, ["search", "c-abc12", "etcd"])

        assert result.exit_code == 1
        assert "Cluster connection failed" in mock_error.call_args[0][0]


class TestCliBundle:
    """Tests for the bundle command."""

    def test_bundle(self, mock_searcher, tmp_path):
        """Test bundle results are reported per secret name."""
        mock_searcher.search_bundle.return_value = Monitoring(prometheus=SAMPLE_TLS)

        result = CliRunner().invoke(cli, ["bundle", "monitoring", "c-abc12", "-o", str(tmp_path)])

        assert result.exit_code == 0
        mock_searcher.search_bundle.assert_called_once_with(Monitoring, "c-abc12")
        assert (tmp_path / "c-abc12-prometheus" / "crt.pem").read_bytes() == SAMPLE_TLS.crt

    def test_bundle_choices(self, mock_searcher):
        """Test every operator bundle is selectable."""
        mock_searcher.search_bundle.return_value = ClusterOperator(api_server=SAMPLE_TLS)

        result = CliRunner().invoke(cli, ["bundle", "cluster-operator", "c-abc12"])

        assert result.exit_code == 0
        mock_searcher.search_bundle.assert_called_once_with(ClusterOperator, "c-abc12")

    def test_unknown_bundle(self):
        """Test unknown bundles are a usage error."""
        result = CliRunner().invoke(cli, ["bundle", "ingress", "c-abc12"])

        assert result.exit_code == 2


class TestBuildSearcher:
    """Tests for wiring the Searcher from CLI options."""

    def test_build_searcher(self):
        """Test the searcher uses the cluster's store and the timeout option."""
        ctx = MagicMock()
        ctx.obj = {"context": "test-context", "select": False, "timeout": 7.5}

        with patch("cert_searcher.cli.Cluster") as mock_cluster:
            searcher = build_searcher(ctx)

        mock_cluster.assert_called_once_with(context="test-context", select_context=False)
        mock_cluster.return_value.ensure_reachable.assert_called_once()
        assert searcher.store is mock_cluster.return_value.secret_store.return_value
        assert searcher.watch_timeout == 7.5

    def test_timeout_from_environment(self):
        """Test the timeout can be configured through the environment."""
        with patch("cert_searcher.cli.build_searcher") as mock_build:
            mock_build.return_value.search_tls.return_value = SAMPLE_TLS
            result = CliRunner().invoke(cli, ["search", "c-abc12", "etcd"], env={"CERT_SEARCHER_TIMEOUT": "9"})

        assert result.exit_code == 0
        assert mock_build.call_args[0][0].obj["timeout"] == 9.0


class TestWriteTLS:
    """Tests for PEM file output."""

    def test_overwrites_existing_files(self, tmp_path):
        """Test existing files are replaced and the key stays private."""
        write_tls(tmp_path, "c-abc12-etcd", TLS(ca=b"old", crt=b"old", key=b"old"))

        target = write_tls(tmp_path, "c-abc12-etcd", SAMPLE_TLS)

        assert (target / "key.pem").read_bytes() == SAMPLE_TLS.key
        assert stat.S_IMODE((target / "key.pem").stat().st_mode) == 0o600
