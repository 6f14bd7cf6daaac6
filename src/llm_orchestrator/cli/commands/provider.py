"""
Provider management commands: list, switch, set-key and cheapest.

Every command boots a fresh application context, so selections and keys are
read from (and written to) the settings file shared between invocations.
"""

import typer

from llm_orchestrator.cli.commands.common import (
    LOG_LEVEL_HELP,
    SETTINGS_FILE_HELP,
    exit_with_error,
    resolve_log_level,
)
from llm_orchestrator.core.bootstrap import bootstrap
from llm_orchestrator.core.error_handler import safe_entrypoint
from llm_orchestrator.core.exceptions import CLIError
from llm_orchestrator.providers.exceptions import ProviderError
from llm_orchestrator.utils.logging import get_logger

app = typer.Typer(name="provider", help="Manage LLM providers")
log = get_logger("cli.provider")


@app.command(name="list")
@safe_entrypoint("cli.provider.list")
def list_providers(
    models: bool = typer.Option(False, "--models", "-m", help="Show model catalogs"),
    settings_file: str | None = typer.Option(None, "--settings-file", help=SETTINGS_FILE_HELP),
    log_level: str = typer.Option("WARNING", "--log-level", help=LOG_LEVEL_HELP),
) -> None:
    """List providers, their availability and the current selection."""
    try:
        level = resolve_log_level(log_level)
    except CLIError as e:
        exit_with_error(e)
    ctx = bootstrap(settings_file, log_level=level)
    status = ctx.orchestrator.current_provider()

    typer.echo(f"Current: {status['provider']} ({status['model']})")
    typer.echo(f"{'Name':<10} {'Status':<14} {'Default model'}")
    typer.echo("-" * 60)
    for name, available in status["available"].items():
        default = next(
            (m["id"] for m in status["models"][name] if m["default"]),
            ctx.orchestrator.registry.default_model_for(name),
        )
        state = "available" if available else "not configured"
        typer.echo(f"{name:<10} {state:<14} {default}")
        if models:
            for model in status["models"][name]:
                typer.echo(f"    - {model['id']} ({model['name']})")


@app.command()
@safe_entrypoint("cli.provider.switch")
def switch(
    name: str = typer.Argument(..., help="Provider to make current"),
    model: str | None = typer.Option(None, "--model", help="Model to use"),
    settings_file: str | None = typer.Option(None, "--settings-file", help=SETTINGS_FILE_HELP),
    log_level: str = typer.Option("WARNING", "--log-level", help=LOG_LEVEL_HELP),
) -> None:
    """Switch the current provider (and optionally model)."""
    try:
        ctx = bootstrap(settings_file, log_level=resolve_log_level(log_level))
        session = ctx.orchestrator.switch_provider(name, model)
    except (CLIError, ProviderError) as e:
        exit_with_error(e)
    typer.echo(f"Switched to {session.provider.value} ({session.model})")


@app.command(name="set-key")
@safe_entrypoint("cli.provider.set_key")
def set_key(
    name: str = typer.Argument(..., help="Provider (aliases like 'anthropic' accepted)"),
    api_key: str = typer.Option(
        ..., "--api-key", prompt=True, hide_input=True, help="API key for the provider"
    ),
    save_env: bool = typer.Option(
        False, "--save-env", help="Also write the key to .env.local"
    ),
    settings_file: str | None = typer.Option(None, "--settings-file", help=SETTINGS_FILE_HELP),
    log_level: str = typer.Option("WARNING", "--log-level", help=LOG_LEVEL_HELP),
) -> None:
    """Store an API key for one provider."""
    try:
        ctx = bootstrap(settings_file, log_level=resolve_log_level(log_level))
        ctx.orchestrator.update_api_key(name, api_key)
    except (CLIError, ProviderError, ValueError) as e:
        exit_with_error(e)

    backend = ctx.orchestrator.registry.get_backend(name)
    if save_env:
        path = ctx["env"].save_to_env_file(backend.api_key_envs[0], api_key)
        typer.echo(f"Saved {backend.api_key_envs[0]} to {path}")
    log.debug("Key updated", extra={"provider": backend.name.value})
    typer.echo(f"{backend.label} API key updated")


@app.command()
@safe_entrypoint("cli.provider.cheapest")
def cheapest(
    settings_file: str | None = typer.Option(None, "--settings-file", help=SETTINGS_FILE_HELP),
    log_level: str = typer.Option("WARNING", "--log-level", help=LOG_LEVEL_HELP),
) -> None:
    """Show the cheapest configured provider for bulk work."""
    try:
        level = resolve_log_level(log_level)
    except CLIError as e:
        exit_with_error(e)
    ctx = bootstrap(settings_file, log_level=level)
    choice = ctx.orchestrator.cost_effective_provider()
    typer.echo(f"{choice.provider.value} ({choice.model})")
