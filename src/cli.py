#!/usr/bin/env python3
"""
CLI tool for the Harvester provider
Provides kubectl-like interface for applying Harvester resources
"""

import asyncio
import json
import logging
import os
import sys

import click
import yaml
from tabulate import tabulate

from config import get_config
from errors import ProviderError
from kinds.registry import get_registry, register_builtin_kinds
from provider import Provider


def _load_manifests(filename):
    """Read one or more manifests from a YAML/JSON file"""
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            documents = [doc for doc in yaml.safe_load_all(f) if doc is not None]
        else:
            data = json.load(f)
            documents = data if isinstance(data, list) else [data]
    return documents


def _run(coro):
    """Run a provider coroutine, turning provider errors into CLI errors"""
    try:
        return asyncio.run(coro)
    except (ProviderError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _registry():
    registry = get_registry()
    if not registry.list_kinds():
        register_builtin_kinds(registry)
    return registry


def _print_record(data, output):
    record = {"id": data.id, **data.to_dict()}
    if output == "json":
        click.echo(json.dumps(record, indent=2))
    elif output == "yaml":
        click.echo(yaml.dump(record, default_flow_style=False))
    else:
        rows = [
            [key, json.dumps(value) if isinstance(value, (dict, list)) else value]
            for key, value in record.items()
        ]
        click.echo(tabulate(rows, headers=["Field", "Value"], tablefmt="grid"))


@click.group()
@click.option("--log-level", default=None, help="Logging level (default: LOG_LEVEL)")
def cli(log_level):
    """Harvester provider CLI - kubectl-like interface for Harvester resources"""
    logging.basicConfig(
        level=(log_level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _provider():
    try:
        config = get_config()
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    return Provider(config=config, registry=_registry())


@cli.command()
def kinds():
    """List the resource kinds this provider manages"""
    registry = _registry()
    rows = []
    for name in registry.list_kinds():
        info = registry.get_kind_info(name)
        rows.append([info["name"], info["api_version"], info["kind"]])
    click.echo(tabulate(rows, headers=["Name", "API Version", "Kind"], tablefmt="grid"))


@cli.command()
@click.argument("kind")
def schema(kind):
    """Show the configuration fields of a resource kind"""
    registry = _registry()
    try:
        resource_kind = registry.get_kind(kind)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    rows = []
    for field in resource_kind.schema:
        flags = []
        if field.required:
            flags.append("required")
        if field.computed:
            flags.append("computed")
        rows.append(
            [
                field.name,
                field.type.value,
                ", ".join(flags),
                "" if field.computed else json.dumps(field.zero_value()),
                field.description,
            ]
        )
    click.echo(
        tabulate(
            rows,
            headers=["Field", "Type", "Flags", "Default", "Description"],
            tablefmt="grid",
        )
    )


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
def apply(filename):
    """Apply resources from a YAML/JSON file"""
    provider = _provider()

    async def apply_all(manifests):
        results = []
        for manifest in manifests:
            results.append(await provider.apply(manifest))
        return results

    for data in _run(apply_all(_load_manifests(filename))):
        click.echo(f"{data.id} applied (state: {data.get('state') or 'unknown'})")


@cli.command()
@click.argument("kind")
@click.argument("identifier")
@click.option(
    "--output", "-o", type=click.Choice(["table", "json", "yaml"]), default="table"
)
def get(kind, identifier, output):
    """Show the observed configuration of a resource (NAMESPACE/NAME)"""
    provider = _provider()

    data = _run(provider.get(kind, identifier))
    if data is None:
        click.echo(f"{kind} {identifier} not found", err=True)
        sys.exit(1)
    _print_record(data, output)


@cli.command()
@click.argument("kind")
@click.argument("identifier")
@click.option("--wait/--no-wait", default=True, help="Wait until the resource is gone")
@click.confirmation_option(prompt="Are you sure you want to delete this resource?")
def delete(kind, identifier, wait):
    """Delete a resource (NAMESPACE/NAME)"""
    provider = _provider()

    _run(provider.destroy(kind, identifier, wait=wait))
    click.echo(f"{identifier} deleted")


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
def drift(filename):
    """Compare resources in a YAML/JSON file against the cluster"""
    provider = _provider()

    async def drift_all(manifests):
        return [(m, await provider.drift(m)) for m in manifests]

    rows = []
    drifted = False
    for manifest, result in _run(drift_all(_load_manifests(filename))):
        drifted = drifted or result.has_drift
        rows.append(
            [
                manifest.get("kind"),
                f"{manifest.get('namespace', provider.config.kinds.default_namespace)}"
                f"/{manifest.get('name')}",
                "✗" if result.has_drift else "✓",
                result.drift_details,
            ]
        )
    click.echo(tabulate(rows, headers=["Kind", "ID", "In Sync", "Details"], tablefmt="grid"))
    if drifted:
        sys.exit(2)


if __name__ == "__main__":
    cli()
