"""Command line interface for kvflow workflows."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Optional, TypeVar

import requests
import typer
from azure.core.exceptions import HttpResponseError

from kvflow import get_repository, get_services
from kvflow.config import KvflowConfig, load_config
from kvflow.contracts import CleanupReport, WorkflowResult
from kvflow.errors import AuthenticationError, ConfigurationError
from kvflow.samples import keyvault, weather
from kvflow.services import ServiceBundle

T = TypeVar("T")

app = typer.Typer(help="CLI for kvflow Key Vault workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for inspecting workflow runs")

app.add_typer(workflow_app, name="workflow")

ConfigOption = typer.Option(None, "--config", help="Path to a YAML config file")
BackendOption = typer.Option(
    None, "--backend", help="Service backend: azure (default) or inmemory"
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """kvflow CLI entry point."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(config_path: Optional[Path]) -> KvflowConfig:
    return load_config(str(config_path) if config_path else None)


def _fail(message: str) -> typer.Exit:
    typer.secho(message, fg=typer.colors.RED)
    return typer.Exit(code=1)


async def _with_services(services: ServiceBundle, work: Awaitable[T]) -> T:
    try:
        return await work
    finally:
        await services.close()


def _echo_cleanup(report: CleanupReport) -> None:
    for attempt in report.attempts:
        if attempt.status == "deleted":
            typer.echo(f"Successfully deleted {attempt.resource}")
        else:
            typer.secho(
                f"Error occurred in deleting {attempt.resource}: {attempt.error}",
                fg=typer.colors.RED,
            )
    if report.error:
        typer.secho(report.error, fg=typer.colors.RED)


async def _provision(
    config: KvflowConfig, services: ServiceBundle, repository, keep: bool
) -> tuple[keyvault.KeyVaultSample, WorkflowResult, Optional[CleanupReport]]:
    sample, result = await keyvault.provision(config, services, repository)
    report = None
    if result.succeeded and not keep:
        report = await keyvault.cleanup(
            services, sample.resource_group_name, sample.key_vault_name
        )
    return sample, result, report


@app.command("provision")
def provision(
    config_path: Optional[Path] = ConfigOption,
    backend: Optional[str] = BackendOption,
    location: Optional[str] = typer.Option(None, help="Azure region for new resources"),
    keep: bool = typer.Option(
        True,
        "--keep/--cleanup-on-success",
        help="Keep the resources after a successful run or delete them right away",
    ),
) -> None:
    """
    Provision a resource group and key vault, then exercise keys, secrets and access policies.

    On failure every resource created so far is deleted, most recent first.
    On success the resources are kept and the cleanup command is printed,
    unless --cleanup-on-success is given.

    Example:
        kvflow provision
        kvflow provision --location westeurope --backend inmemory
        kvflow provision --cleanup-on-success
    """
    config = _load(config_path)
    if location:
        config.provisioning.location = location

    try:
        services = get_services(backend, config)
        repository = get_repository(config=config)
        sample, result, report = asyncio.run(
            _with_services(services, _provision(config, services, repository, keep))
        )
    except (ConfigurationError, AuthenticationError) as e:
        raise _fail(str(e))

    typer.echo(f"Workflow {result.correlation_id}: {result.status}")
    if result.succeeded:
        for resource in result.resources:
            typer.echo(f"- created {resource}")
        if report is not None:
            _echo_cleanup(report)
            if not report.succeeded:
                raise typer.Exit(code=1)
            return
        typer.echo("Please execute the following for cleanup:")
        typer.echo(sample.cleanup_command())
        return

    typer.secho(
        f"Error occurred in step {result.failed_step}: {result.error}",
        fg=typer.colors.RED,
    )
    if result.cleanup is not None:
        _echo_cleanup(result.cleanup)
    raise typer.Exit(code=1)


@app.command("cleanup")
def cleanup(
    resource_group_name: Optional[str] = typer.Argument(None),
    key_vault_name: Optional[str] = typer.Argument(None),
    run: Optional[str] = typer.Option(
        None, "--run", help="Delete the resources recorded for this correlation id"
    ),
    config_path: Optional[Path] = ConfigOption,
    backend: Optional[str] = BackendOption,
) -> None:
    """
    Delete a key vault and then its resource group.

    Example:
        kvflow cleanup testrg1234 testkv5678
        kvflow cleanup --run abc123-def456-789
    """
    if run is None and not (resource_group_name and key_vault_name):
        raise _fail(
            "Please provide the resource group and the key vault name by executing "
            'the command as follows: "kvflow cleanup <resourceGroupName> <keyVaultName>".'
        )

    config = _load(config_path)
    try:
        config.require("azure.subscription_id")
        services = get_services(backend, config)
        if run is not None:
            instance = asyncio.run(get_repository(config=config).get_workflow(run))
            if instance is None:
                asyncio.run(services.close())
                raise _fail("Workflow not found")
            report = asyncio.run(
                _with_services(services, keyvault.cleanup_run(services, instance))
            )
        else:
            typer.echo(
                "Deleting the resource group can take a few minutes, so please be patient."
            )
            report = asyncio.run(
                _with_services(
                    services,
                    keyvault.cleanup(services, resource_group_name, key_vault_name),
                )
            )
    except (ConfigurationError, AuthenticationError) as e:
        raise _fail(str(e))

    _echo_cleanup(report)
    if not report.attempts:
        typer.echo("Nothing to clean up")
    if not report.succeeded:
        raise typer.Exit(code=1)


@app.command("weather")
def weather_lookup(
    vault_name: str,
    city: str,
    config_path: Optional[Path] = ConfigOption,
    backend: Optional[str] = BackendOption,
) -> None:
    """
    Print current weather for a city using the API key stored in a key vault.

    Example:
        kvflow weather testkv1234 Seattle
    """
    config = _load(config_path)
    try:
        config.require(*weather.REQUIRED_SETTINGS)
        services = get_services(backend, config.weather_identity())
        report = asyncio.run(
            _with_services(
                services, weather.lookup_weather(config, services, vault_name, city)
            )
        )
    except (ConfigurationError, AuthenticationError) as e:
        raise _fail(str(e))
    except HttpResponseError as e:
        raise _fail(f"Could not read the API key from {vault_name}: {e.message}")
    except requests.RequestException as e:
        raise _fail(f"Got error: {e}")

    typer.echo(report.summary())


@workflow_app.command("list")
def workflow_list() -> None:
    """
    List all recorded workflow runs with their status.

    Statuses: in_progress, completed, compensated (failed, cleanup succeeded),
    failed (failed, cleanup incomplete).

    Example:
        kvflow workflow list
        # Output: abc123-def456-789    completed
        #         xyz789-uvw012-345    compensated
    """
    repo = get_repository()
    workflows = asyncio.run(repo.list_workflows())
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        typer.echo(f"{wf.correlation_id}\t{wf.status}")


@workflow_app.command("show")
def workflow_show(correlation_id: str) -> None:
    """
    Show detailed information for a specific workflow run.

    Displays status, recorded resources and the step-by-step history.

    Example:
        kvflow workflow show abc123-def456-789
    """
    repo = get_repository()
    wf = asyncio.run(repo.get_workflow(correlation_id))
    if wf is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {wf.correlation_id}: {wf.status}")
    if wf.payload:
        typer.echo(f"Payload: {wf.payload}")
    for resource in wf.resources:
        typer.echo(f"Resource: {resource.get('kind')} {resource.get('name')}")
    for step in wf.steps:
        typer.echo(
            f"- {step.step_name}: {step.status}"
            + (
                f" ({step.started_at} -> {step.completed_at})"
                if step.started_at or step.completed_at
                else ""
            )
        )


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
