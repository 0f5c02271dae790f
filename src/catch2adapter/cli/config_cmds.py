# src/catch2adapter/cli/config_cmds.py

from pathlib import Path

import click
import structlog
from rich.pretty import pretty_repr

from catch2adapter.cli.utils import config_path_option, logging_options, setup_logging_from_context
from catch2adapter.config import load_config
from catch2adapter.exceptions import ConfigurationError
from catch2adapter.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.config")


@click.group(name="config")
def config_cli():
    """Commands for inspecting and validating configuration."""
    pass


@config_cli.command(name="show")
@config_path_option
@logging_options
@click.pass_context
def show_config(ctx: click.Context, config_path: Path, **kwargs):
    """Load, validate, and display the configuration."""
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
        default_log_level="WARNING",
        headless_mode=True,
    )
    log.info("Executing 'config show' command", config_path=str(config_path))

    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        log.error("Failed to load or validate configuration", error=str(e))
        click.echo(f"Error: Configuration problem in '{config_path}':\n{e}", err=True)
        ctx.exit(1)

    # Echoed as a plain string so the output is easy to capture in tests.
    click.echo(pretty_repr(config, expand_all=True))

    if not config.adapter.executables:
        log.warning("No usable executables entries configured.")
    else:
        log.info("Configuration is valid.", executables=len(config.adapter.executables))


# 🔼⚙️
