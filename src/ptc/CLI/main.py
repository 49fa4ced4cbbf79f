"""
Command Line Interface for PTC.
"""
import click
import os
import time
from docker.errors import DockerException
from pydantic import ValidationError

from ..errors import ClusterError
from ..MANAGERS.cluster_orchestrator import PulsarCluster
from ..MANAGERS.topology import plan_nodes
from ..MODELS.settings import ClusterSettings
from ..PARSERS.topology_parser import load_topology
from ..UTILS.logging import configure_logging


@click.group()
@click.option('--file', '-f', default='topology.yml', help='Topology file path')
@click.pass_context
def cli(ctx, file):
    """
    PTC - Pulsar Test Cluster.

    Runs throwaway Pulsar clusters in containers for integration tests.
    """
    ctx.ensure_object(dict)
    ctx.obj['file'] = file
    settings = ClusterSettings()
    ctx.obj['settings'] = settings
    configure_logging(settings.log_level, settings.log_format)
    if os.path.exists(file):
        try:
            ctx.obj['spec'] = load_topology(file)
        except (ValidationError, ValueError) as e:
            ctx.obj['error'] = f"invalid topology {file}: {e}"


def _spec_or_fail(ctx):
    spec = ctx.obj.get('spec')
    if spec is None:
        raise click.ClickException(ctx.obj.get('error') or f"{ctx.obj['file']} not found.")
    return spec


@cli.command()
@click.pass_context
def plan(ctx):
    """Show the nodes a topology would run, without starting anything."""
    spec = _spec_or_fail(ctx)
    click.echo(f"Cluster: {spec.cluster_name} (functions runtime: {spec.function_runtime_type.value})")
    click.echo(f"{'NODE':30} {'ROLE':20} ENVIRONMENT")
    click.echo("-" * 72)
    for role, name, env in plan_nodes(spec):
        env_text = " ".join(f"{k}={v}" for k, v in sorted(env.items()))
        click.echo(f"{name:30} {role.value:20} {env_text}")


@cli.command()
@click.option('--namespace', '-n', multiple=True, help='Namespace to create once the cluster is up')
@click.pass_context
def up(ctx, namespace):
    """Start the cluster and keep it running until Ctrl+C."""
    spec = _spec_or_fail(ctx)
    try:
        cluster = PulsarCluster.for_spec(spec, settings=ctx.obj['settings'])
    except DockerException as e:
        raise click.ClickException(f"Cannot reach Docker: {e}")
    try:
        cluster.start()
        click.echo(f"Pulsar cluster {spec.cluster_name} is up.")
        click.echo(f"  Binary Service Url : {cluster.get_plain_text_service_url()}")
        click.echo(f"  Http Service Url   : {cluster.get_http_service_url()}")
        click.echo(f"  ZooKeeper          : {cluster.get_zk_conn_string()}")

        for ns in namespace:
            result = cluster.create_namespace(ns)
            status = "created" if result.succeeded else f"failed ({result.exit_code}): {result.stderr.strip()}"
            click.echo(f"Namespace {ns} {status}")

        click.echo("Running... Press Ctrl+C to stop.")
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        click.echo("\nStopping cluster...")
    except ClusterError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    finally:
        cluster.stop()
        click.echo("Cluster stopped.")


def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})


if __name__ == '__main__':
    main()
