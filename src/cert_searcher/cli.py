#!/usr/bin/env python
"""Command-line interface for cert-searcher.

This module provides the CLI entry point for looking up cluster
certificate secrets, printing their naming contract and writing found
certificates to disk.
"""

import sys
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

import click
import yaml
from icecream import ic

from cert_searcher import __version__, console
from cert_searcher.cluster import Cluster
from cert_searcher.exceptions import CertSearcherError, ClusterConnectionError
from cert_searcher.labels import SECRET_NAMESPACE, secret_labels, secret_name
from cert_searcher.models import BUNDLE_CERTS, TLS, AppOperator, Cert, ClusterOperator, Draining, Monitoring
from cert_searcher.searcher import DEFAULT_WATCH_TIMEOUT, Searcher

BUNDLES: dict[str, type] = {
    "app-operator": AppOperator,
    "cluster-operator": ClusterOperator,
    "draining": Draining,
    "monitoring": Monitoring,
}

CERT_CHOICE = click.Choice([cert.value for cert in Cert])


def write_tls(output_dir: Path, name: str, tls: TLS) -> Path:
    """Write TLS material as PEM files.

    Args:
        output_dir: Base directory.
        name: Subdirectory name, usually the secret name.
        tls: The material to write.

    Returns:
        The directory holding ca.pem, crt.pem and key.pem.

    """
    target = output_dir / name
    target.mkdir(parents=True, exist_ok=True)
    (target / "ca.pem").write_bytes(tls.ca)
    (target / "crt.pem").write_bytes(tls.crt)

    key_path = target / "key.pem"
    key_path.touch(mode=0o600, exist_ok=True)
    key_path.chmod(0o600)
    key_path.write_bytes(tls.key)
    return target


def build_searcher(ctx: click.Context) -> Searcher:
    """Connect to the cluster and build a Searcher from the CLI options.

    Args:
        ctx: The click context holding the group options.

    Returns:
        A Searcher watching the selected cluster.

    """
    opts = ctx.obj
    cluster = Cluster(context=opts["context"], select_context=opts["select"])
    cluster.ensure_reachable()
    ic(cluster)
    return Searcher(
        store=cluster.secret_store(),
        logger=console.get_logger("cli"),
        watch_timeout=opts["timeout"],
    )


@contextmanager
def _errors_to_exit() -> Generator[None, None, None]:
    """Turn search failures into an error message and exit status 1."""
    try:
        yield
    except ClusterConnectionError as e:
        console.error(f"Cluster connection failed: {e}")
        sys.exit(1)
    except CertSearcherError as e:
        console.error(str(e))
        sys.exit(1)


def _report(found: dict[str, TLS], title: str, output_dir: Path | None) -> None:
    console.summary_panel(title, found)
    if output_dir is None:
        return
    for name, tls in found.items():
        path = write_tls(output_dir, name, tls)
        console.success(f"Saved to {console.highlight(str(path))}")


@click.group(help="Find cluster TLS certificates stored as Kubernetes secrets")
@click.version_option(__version__, "--version", "-v", message="%(version)s")
@click.option("--debug", is_flag=True, help="print debug information")
@click.option("--select", is_flag=True, default=False, help="prompt for context select")
@click.option("--context", envvar="CERT_SEARCHER_CONTEXT", help="kube context to use")
@click.option(
    "--timeout",
    envvar="CERT_SEARCHER_TIMEOUT",
    type=click.FloatRange(min=0, min_open=True),
    default=DEFAULT_WATCH_TIMEOUT,
    show_default=True,
    help="seconds to wait for each secret",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, select: bool, context: str | None, timeout: float) -> None:
    """Process global options.

    Args:
        ctx: The click context.
        debug: Enable debug output.
        select: Prompt for Kubernetes context selection.
        context: Kubernetes context name.
        timeout: Watch timeout in seconds.

    """
    if debug:
        ic.enable()
    else:
        ic.disable()
    console.configure_logging(debug=debug)
    ctx.obj = {"select": select, "context": context, "timeout": timeout}


@cli.command(name="certs", help="list known certificate kinds")
def list_certs() -> None:
    """Print every certificate kind, one per line."""
    for cert in Cert:
        click.echo(cert.value)


@cli.command(help="print the secret name and labels for a certificate")
@click.argument("cluster_id")
@click.argument("cert", type=CERT_CHOICE)
def labels(cluster_id: str, cert: str) -> None:
    """Print the naming contract shared by secret producers and the searcher.

    Args:
        cluster_id: The cluster ID.
        cert: The certificate kind.

    """
    kind = Cert(cert)
    document = {
        "name": secret_name(cluster_id, kind),
        "namespace": SECRET_NAMESPACE,
        "labels": secret_labels(cluster_id, kind),
    }
    click.echo(yaml.safe_dump(document, sort_keys=False), nl=False)


@cli.command(help="search a single certificate of a cluster")
@click.argument("cluster_id")
@click.argument("cert", type=CERT_CHOICE)
@click.option("--output-dir", "-o", type=click.Path(file_okay=False, path_type=Path), help="write PEM files here")
@click.pass_context
def search(ctx: click.Context, cluster_id: str, cert: str, output_dir: Path | None) -> None:
    """Search one certificate and report it.

    Args:
        ctx: The click context.
        cluster_id: The cluster ID.
        cert: The certificate kind.
        output_dir: Optional directory to write PEM files to.

    """
    kind = Cert(cert)
    with _errors_to_exit():
        searcher = build_searcher(ctx)
        with console.spinner(f"Waiting for {secret_name(cluster_id, kind)}..."):
            tls = searcher.search_tls(cluster_id, kind)
    _report({secret_name(cluster_id, kind): tls}, f"Certificate {kind.value}", output_dir)


@cli.command(help="search all certificates an operator needs")
@click.argument("bundle_name", metavar="BUNDLE", type=click.Choice(list(BUNDLES)))
@click.argument("cluster_id")
@click.option("--output-dir", "-o", type=click.Path(file_okay=False, path_type=Path), help="write PEM files here")
@click.pass_context
def bundle(ctx: click.Context, bundle_name: str, cluster_id: str, output_dir: Path | None) -> None:
    """Search a certificate bundle and report it.

    Args:
        ctx: The click context.
        bundle_name: The bundle name.
        cluster_id: The cluster ID.
        output_dir: Optional directory to write PEM files to.

    """
    bundle_type = BUNDLES[bundle_name]
    with _errors_to_exit():
        searcher = build_searcher(ctx)
        with console.spinner(f"Waiting for {bundle_name} certificates..."):
            result = searcher.search_bundle(bundle_type, cluster_id)
    ic(result)

    found = {
        secret_name(cluster_id, cert): getattr(result, field_name)
        for field_name, cert in BUNDLE_CERTS[bundle_type]
    }
    _report(found, f"Bundle {bundle_name}", output_dir)


if __name__ == "__main__":
    cli()
