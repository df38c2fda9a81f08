"""kubedeps command-line interface.

``serve`` runs the REST service; ``graph``, ``crds`` and ``describe`` run a
single computation against the current kubeconfig context and print the
result to stdout.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click

from kubedeps.config import load_config
from kubedeps.export.base import ExportError, ExportFormat
from kubedeps.models.config import KubeDepsConfig
from kubedeps.models.resources import ResourceNotFoundError, UnsupportedKindError
from kubedeps.observability.logging import setup_logging

_T = TypeVar("_T")

_FORMATS = click.Choice([f.value for f in ExportFormat], case_sensitive=False)


def _with_client(config: KubeDepsConfig, work: Callable[[Any], Awaitable[_T]]) -> _T:
    """Run *work* with a live cluster client, closing it afterwards."""

    async def runner() -> _T:
        from kubedeps.app import load_kubernetes_config
        from kubedeps.cluster.kubernetes import KubernetesClusterClient

        await load_kubernetes_config()
        client = KubernetesClusterClient()
        try:
            return await work(client)
        finally:
            await client.close()

    return asyncio.run(runner())


def _setup(log_level: str | None) -> KubeDepsConfig:
    config = load_config()
    # Exports go to stdout; diagnostics stay on stderr and quiet unless asked.
    setup_logging(log_level or "warning", json_output=False)
    return config


@click.group()
@click.version_option(package_name="kubedeps")
def cli() -> None:
    """Dependency graphs for Kubernetes resources and CRD schemas."""


@cli.command()
def serve() -> None:
    """Run the REST API until interrupted."""
    from kubedeps.app import main

    asyncio.run(main())


@cli.command()
@click.option("--namespace", "-n", default=None, help="Restrict the graph to one namespace.")
@click.option("--format", "fmt", type=_FORMATS, default="json", show_default=True)
@click.option("--include-custom", is_flag=True, help="Include custom resource instances.")
@click.option("--max-nodes", type=click.IntRange(min=1), default=None, help="Lower the node limit.")
@click.option("--log-level", default=None, help="Log level for stderr diagnostics.")
def graph(namespace: str | None, fmt: str, include_custom: bool, max_nodes: int | None, log_level: str | None) -> None:
    """Print the resource dependency graph."""
    from kubedeps.export.graph_export import GraphExporter
    from kubedeps.graph.builder import DependencyGraphBuilder

    config = _setup(log_level)

    async def work(client: Any) -> str:
        builder = DependencyGraphBuilder(client, config)
        result = await builder.build_graph(namespace=namespace, include_custom=include_custom, max_nodes=max_nodes)
        exporter = GraphExporter(config.export.report_max_nodes, config.export.report_max_edges)
        return exporter.export(result, ExportFormat(fmt.lower())).content

    try:
        click.echo(_with_client(config, work))
    except ExportError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@click.option("--api-group", "api_groups", multiple=True, help="Only analyze CRDs of this group (repeatable).")
@click.option("--format", "fmt", type=_FORMATS, default="json", show_default=True)
@click.option("--max-crds", type=click.IntRange(min=1), default=None)
@click.option("--depth", default=None, help="Schema walk depth: a number, 'shallow' or 'deep'.")
@click.option("--no-native", is_flag=True, help="Leave built-in kinds out of the graph.")
@click.option("--log-level", default=None, help="Log level for stderr diagnostics.")
def crds(
    api_groups: tuple[str, ...],
    fmt: str,
    max_crds: int | None,
    depth: str | None,
    no_native: bool,
    log_level: str | None,
) -> None:
    """Print the CRD schema relationship analysis."""
    from kubedeps.export.crd_export import CRDExporter
    from kubedeps.schema.service import CRDAnalysisService

    config = _setup(log_level)
    export_format = ExportFormat(fmt.lower())

    async def work(client: Any) -> str:
        service = CRDAnalysisService(client, config)
        analysis = await service.analyze(
            api_groups=list(api_groups),
            max_crds=max_crds,
            include_native=not no_native,
            depth=depth,
        )
        counts = await service.instance_counts(analysis.crds) if export_format is ExportFormat.CSV else None
        exporter = CRDExporter(config.export.report_max_nodes, config.export.report_max_edges)
        return exporter.export(analysis, export_format, instance_counts=counts).content

    try:
        click.echo(_with_client(config, work))
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--depth") from exc
    except ExportError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@click.argument("kind")
@click.argument("name")
@click.option("--namespace", "-n", default=None)
@click.option("--log-level", default=None, help="Log level for stderr diagnostics.")
def describe(kind: str, name: str, namespace: str | None, log_level: str | None) -> None:
    """Print the dependencies of a single resource as JSON."""
    from kubedeps.graph.builder import DependencyGraphBuilder

    config = _setup(log_level)

    async def work(client: Any) -> dict[str, Any]:
        report = await DependencyGraphBuilder(client, config).describe_resource(kind, name, namespace)
        return report.to_dict()

    try:
        click.echo(json.dumps(_with_client(config, work), indent=2, default=str))
    except (UnsupportedKindError, ResourceNotFoundError) as exc:
        raise click.ClickException(str(exc)) from exc


if __name__ == "__main__":
    cli()
