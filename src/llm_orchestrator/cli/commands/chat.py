"""Send a single prompt through the chat orchestrator."""

import asyncio

import typer
from pydantic import ValidationError

from llm_orchestrator.cli.commands.common import (
    LOG_LEVEL_HELP,
    SETTINGS_FILE_HELP,
    exit_with_error,
    resolve_log_level,
)
from llm_orchestrator.core.bootstrap import bootstrap
from llm_orchestrator.core.error_handler import safe_entrypoint
from llm_orchestrator.core.exceptions import CLIError
from llm_orchestrator.providers.base import ChatMessage, ChatRequest
from llm_orchestrator.providers.exceptions import AllProvidersFailedError


@safe_entrypoint("cli.chat")
def chat(
    prompt: str = typer.Argument(..., help="The user message to send"),
    provider: str | None = typer.Option(None, "--provider", "-p", help="Provider to use"),
    model: str | None = typer.Option(None, "--model", help="Model to use"),
    system: str | None = typer.Option(None, "--system", "-s", help="System instruction"),
    temperature: float = typer.Option(0.7, "--temperature", "-t", min=0.0),
    max_tokens: int = typer.Option(1024, "--max-tokens", min=1),
    agent_id: str | None = typer.Option(
        None, "--agent-id", help="Correlation id for the interaction log"
    ),
    interaction_db: str | None = typer.Option(
        None, "--interaction-db", help="SQLite file recording interactions"
    ),
    settings_file: str | None = typer.Option(
        None, "--settings-file", help=SETTINGS_FILE_HELP
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show provider and usage"),
    log_level: str = typer.Option("WARNING", "--log-level", help=LOG_LEVEL_HELP),
) -> None:
    """Send PROMPT to the current (or given) provider, falling back on failure."""
    try:
        level = resolve_log_level(log_level)
        request = _build_request(
            prompt,
            system_prompt=system,
            provider=provider,
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            agent_id=agent_id,
        )
    except CLIError as e:
        exit_with_error(e)

    ctx = bootstrap(settings_file, log_level=level, interaction_db=interaction_db)
    orchestrator = ctx.orchestrator

    async def _run():
        try:
            return await orchestrator.chat(request)
        finally:
            await orchestrator.drain()

    try:
        result = asyncio.run(_run())
    except AllProvidersFailedError as e:
        typer.echo(f"Error: {e.user_message}", err=True)
        raise typer.Exit(code=1) from e

    if result.fallback_from is not None:
        typer.echo(
            f"({result.fallback_from.value} failed, answered by {result.provider.value})",
            err=True,
        )
    typer.echo(result.text)
    if verbose:
        typer.echo(f"\nProvider: {result.provider.value}  Model: {result.model}")
        if result.usage:
            typer.echo(f"Usage: {result.usage}")


def _build_request(prompt: str, **options) -> ChatRequest:
    """Single-turn request from command line options.

    Raises:
        CLIError: If an option value is rejected by the request model
    """
    try:
        return ChatRequest(messages=(ChatMessage(role="user", content=prompt),), **options)
    except ValidationError as e:
        raise CLIError(f"invalid request: {e.errors()[0]['msg']}") from e
