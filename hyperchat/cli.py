"""
CLI entrypoint for Hyperchat.

Provides a dual-mode command-line interface with:
- Human-friendly output: Rich spinner, tables and colored text
- Agent-friendly output: Structured JSON for scripts
- Quiet mode: Tab-separated minimal output

Commands:
    run: Open a conversation window, warm every session and send a prompt
    validate: Validate configuration without launching a browser
    services: List configured services, optionally fetching favicons

Exit codes:
    0: Success - every session submitted (or became ready)
    1: Configuration error (missing file, invalid YAML or schema)
    3: Partial failure (some sessions failed)
    4: Complete failure (no session succeeded)

Examples:
    # Ask every enabled service at once and keep the window open
    hyperchat run "Compare Rust and Go for CLI tools"

    # Headless, exit once the prompt has been dispatched
    hyperchat run "What is a monad?" --headless --no-wait --format json

    # Check a configuration file
    hyperchat validate --config hyperchat.yaml
"""

import asyncio
import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as package_version
from pathlib import Path
from typing import Any

import typer
from rich.traceback import install as install_rich_traceback

from hyperchat import __version__
from hyperchat.app import Hyperchat
from hyperchat.config.constants import WARMUP_TIMEOUT_SECONDS
from hyperchat.config.loader import load_config, resolve_config_path
from hyperchat.config.schema import HyperchatConfig
from hyperchat.engine.playwright_engine import PlaywrightEnginePool
from hyperchat.exceptions import (
    ConfigFileNotFoundError,
    ConfigValidationError,
    PromptValidationError,
)
from hyperchat.favicons import FaviconFetcher
from hyperchat.utils.console import (
    error,
    info,
    output_mode,
    print_banner,
    print_service_table,
    print_session_table,
    spinner,
    success,
    warning,
)
from hyperchat.utils.logging import setup_logging
from hyperchat.windows import InMemoryWindowHost

# Install Rich tracebacks for better error messages
install_rich_traceback(show_locals=False)

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0  # Every session succeeded
EXIT_CONFIG_ERROR = 1  # Config loading or validation failed
EXIT_PARTIAL_FAILURE = 3  # Some sessions failed
EXIT_COMPLETE_FAILURE = 4  # No session succeeded

# Warm-up gets one retry, so readiness can take two full timeouts
READY_WAIT_SECONDS = 2 * WARMUP_TIMEOUT_SECONDS + 5

# Create Typer app
app = typer.Typer(
    name="hyperchat",
    help="Send one prompt to several AI chat services side by side",
    add_completion=False,
)


def _load_or_exit(config: Path | None, verbose: bool = False) -> HyperchatConfig:
    """Load configuration or exit with EXIT_CONFIG_ERROR."""
    try:
        with spinner("Loading configuration..."):
            runtime_config = load_config(config)
    except ConfigFileNotFoundError as e:
        error(f"Configuration file not found: {e}")
        output_mode.flush_json()
        raise typer.Exit(EXIT_CONFIG_ERROR)
    except ConfigValidationError as e:
        error(f"Configuration validation failed: {e}")
        if verbose:
            logger.exception("Configuration validation failed")
        output_mode.flush_json()
        raise typer.Exit(EXIT_CONFIG_ERROR)
    return runtime_config


def _exit_code(statuses: list[dict[str, Any]], prompt_sent: bool) -> int:
    """
    Map per-session statuses to an exit code.

    With a prompt, a session succeeds when it submitted; without one, when
    it became ready.
    """
    if not statuses:
        return EXIT_COMPLETE_FAILURE
    if prompt_sent:
        succeeded = sum(1 for status in statuses if status["submitted"])
    else:
        succeeded = sum(1 for status in statuses if status["state"] == "ready")

    if succeeded == 0:
        return EXIT_COMPLETE_FAILURE
    if succeeded < len(statuses):
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS


async def _run_window(
    runtime_config: HyperchatConfig,
    prompt: str | None,
    overlay: bool,
    wait: bool,
) -> list[dict[str, Any]]:
    pool = PlaywrightEnginePool(
        runtime_config.engine,
        viewport=(runtime_config.window.width, runtime_config.window.height),
    )
    hyperchat = Hyperchat(runtime_config, pool, InMemoryWindowHost())

    try:
        if prompt is not None:
            window_id = await hyperchat.request_prompt(prompt)
        else:
            window_id = await hyperchat.activate()
            if overlay:
                await hyperchat.controller.enter_overlay(window_id)

        orchestrator = hyperchat.orchestrators[window_id]
        with spinner(f"Warming up {len(orchestrator.sessions)} session(s)..."):
            ready = await orchestrator.wait_until_ready(timeout=READY_WAIT_SECONDS)
        if not ready:
            warning("Some sessions did not settle in time")

        with spinner("Dispatching prompt..." if prompt else "Waiting for sessions..."):
            await orchestrator.wait_for_dispatches()

        statuses = orchestrator.status()
        print_session_table(statuses)

        if wait:
            info("Window is open, press Ctrl+C to quit")
            await asyncio.Event().wait()
        return statuses
    finally:
        await hyperchat.shutdown()


@app.command()
def run(
    prompt: str | None = typer.Argument(
        None,
        help="Prompt to send to every enabled service",
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file (defaults to $HYPERCHAT_CONFIG)",
    ),
    headless: bool | None = typer.Option(
        None,
        "--headless/--headed",
        help="Override the configured browser headless setting",
    ),
    overlay: bool = typer.Option(
        False,
        "--overlay",
        help="Open the window in overlay mode even without a prompt",
    ),
    wait: bool = typer.Option(
        True,
        "--wait/--no-wait",
        help="Keep the window open until interrupted",
    ),
    format: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: 'text' (human-friendly) or 'json' (machine-readable)",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Minimal output (tab-separated values)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
):
    """
    Open a conversation window and send a prompt to every service.

    This command will:
    1. Load your configuration (services, engine, window)
    2. Launch the browser and create one session per enabled service
    3. Warm every session up (pre-load its home page)
    4. Send the prompt once all sessions settled
    5. Print a per-service status table

    Exit codes:
      0: Every session submitted
      1: Configuration error
      3: Partial failure (some sessions failed)
      4: Complete failure (no session succeeded)
    """
    output_mode.format = format
    output_mode.quiet = quiet
    setup_logging(verbose=verbose)

    print_banner(_read_version())
    runtime_config = _load_or_exit(config, verbose)

    if headless is not None:
        runtime_config = runtime_config.model_copy(
            update={"engine": runtime_config.engine.model_copy(update={"headless": headless})}
        )

    enabled = runtime_config.enabled_services()
    success(f"Loaded {len(enabled)} enabled service(s): {', '.join(s.id for s in enabled)}")

    try:
        statuses = asyncio.run(_run_window(runtime_config, prompt, overlay, wait))
    except PromptValidationError as e:
        error(f"Invalid prompt: {e}")
        output_mode.flush_json()
        raise typer.Exit(EXIT_CONFIG_ERROR)
    except KeyboardInterrupt:
        info("Interrupted, all sessions closed")
        output_mode.flush_json()
        raise typer.Exit(EXIT_SUCCESS)

    code = _exit_code(statuses, prompt_sent=prompt is not None)
    if code == EXIT_SUCCESS:
        success("All sessions succeeded")
    elif code == EXIT_PARTIAL_FAILURE:
        warning("Some sessions failed")
    else:
        error("No session succeeded")

    output_mode.add_json("exit_code", code)
    output_mode.flush_json()
    raise typer.Exit(code)


@app.command()
def validate(
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file (defaults to $HYPERCHAT_CONFIG)",
    ),
    format: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: 'text' or 'json'",
    ),
):
    """
    Validate configuration without launching a browser.

    Exit codes:
      0: Configuration is valid
      1: Configuration is invalid
    """
    output_mode.format = format

    source = resolve_config_path(config)
    runtime_config = _load_or_exit(config)

    success("Configuration is valid")
    info(f"Source: {source or 'built-in defaults'}")
    info(f"Services: {len(runtime_config.services)} ({len(runtime_config.enabled_services())} enabled)")
    info(f"Browser: {runtime_config.engine.browser} (headless={runtime_config.engine.headless})")

    if output_mode.is_agent():
        output_mode.add_json("valid", True)
        output_mode.add_json("source", str(source) if source else None)
        output_mode.add_json("services_count", len(runtime_config.services))
        output_mode.add_json("enabled_count", len(runtime_config.enabled_services()))

    print_service_table(runtime_config.services)
    output_mode.flush_json()
    raise typer.Exit(EXIT_SUCCESS)


@app.command()
def services(
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration file (defaults to $HYPERCHAT_CONFIG)",
    ),
    favicons: bool = typer.Option(
        False,
        "--favicons",
        help="Fetch each service's favicon",
    ),
    format: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: 'text' or 'json'",
    ),
):
    """List configured services in column order."""
    output_mode.format = format
    runtime_config = _load_or_exit(config)
    ordered = sorted(runtime_config.services, key=lambda s: (s.order, s.id))

    icons = None
    if favicons:
        with spinner("Fetching favicons..."):
            icons = asyncio.run(FaviconFetcher().fetch_all(ordered))

    print_service_table(ordered, icons)
    output_mode.flush_json()
    raise typer.Exit(EXIT_SUCCESS)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
    ),
):
    """
    Hyperchat - one prompt, every assistant, side by side.

    Use 'hyperchat COMMAND --help' for detailed command documentation.
    """
    if version:
        from rich.console import Console

        Console().print(f"[bold cyan]hyperchat[/bold cyan] version {_read_version()}")
        raise typer.Exit(EXIT_SUCCESS)

    if ctx.invoked_subcommand is None:
        from rich.console import Console

        console = Console()
        console.print("[yellow]Use --help to see available commands[/yellow]")
        console.print()
        console.print("Commands:")
        console.print("  run       Send a prompt to every enabled service")
        console.print("  validate  Validate configuration")
        console.print("  services  List configured services")


def _read_version() -> str:
    """Read the installed package version, falling back to hyperchat.__version__."""
    try:
        return package_version("hyperchat")
    except PackageNotFoundError:
        return __version__


if __name__ == "__main__":
    app()
