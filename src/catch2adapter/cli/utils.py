# src/catch2adapter/cli/utils.py

import logging
from pathlib import Path

import click
import structlog

from catch2adapter.config import Catch2AdapterConfig, load_config
from catch2adapter.exceptions import ConfigurationError
from catch2adapter.telemetry.logger import setup_logging as core_setup_logging

log = structlog.get_logger("cli.utils")

LOG_LEVEL_CHOICES = click.Choice(list(logging._nameToLevel.keys()), case_sensitive=False)
DEFAULT_CONFIG_PATH = Path("catch2adapter.toml")


def logging_options(f):
    """Decorator to add logging options to any command."""
    f = click.option(
        "-l",
        "--log-level",
        type=LOG_LEVEL_CHOICES,
        default=None,
        envvar="CATCH2ADAPTER_LOG_LEVEL",
        help="Set the logging level (overrides config file).",
    )(f)
    f = click.option(
        "--log-file",
        type=click.Path(dir_okay=False, writable=True, resolve_path=True),
        default=None,
        envvar="CATCH2ADAPTER_LOG_FILE",
        help="Path to write logs to a file (JSON format).",
    )(f)
    f = click.option(
        "--json-logs",
        is_flag=True,
        default=None,
        envvar="CATCH2ADAPTER_JSON_LOGS",
        help="Output console logs as JSON.",
    )(f)
    return f


def config_path_option(f):
    """Decorator adding the shared -c/--config-path option."""
    return click.option(
        "-c",
        "--config-path",
        type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
        default=DEFAULT_CONFIG_PATH,
        show_default=True,
        envvar="CATCH2ADAPTER_CONF",
        help="Path to the catch2adapter configuration file (env var CATCH2ADAPTER_CONF).",
        show_envvar=True,
    )(f)


def setup_logging_from_context(
    ctx: click.Context,
    local_log_level: str | None = None,
    local_log_file: str | None = None,
    local_json_logs: bool | None = None,
    default_log_level: str = "INFO",
    headless_mode: bool = False,
) -> None:
    """
    Setup logging using context values, allowing local overrides.
    """
    log_level_str = local_log_level or ctx.obj.get("LOG_LEVEL") or default_log_level
    log_file_path = local_log_file or ctx.obj.get("LOG_FILE")
    use_json_logs = local_json_logs if local_json_logs is not None else ctx.obj.get("JSON_LOGS", False)

    numeric_level = logging.getLevelName(log_level_str.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
        log_level_str = "INFO"

    core_setup_logging(
        level=numeric_level,
        json_logs=use_json_logs,
        log_file=log_file_path,
        headless_mode=headless_mode,
    )

    log.debug(
        "CLI logging initialized via utils",
        level=log_level_str,
        file=log_file_path or "console",
        json=use_json_logs,
        headless=headless_mode,
    )


def setup_command_logging(ctx: click.Context, **kwargs) -> None:
    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
        default_log_level="WARNING",
        headless_mode=True,
    )


def load_cli_config(ctx: click.Context, config_path: Path, **kwargs) -> Catch2AdapterConfig:
    """
    Loads the configuration for a command, exiting with status 1 when it is
    unusable. The file's log level applies unless one was given on the
    command line or in the environment.
    """
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        log.error("Failed to load or validate configuration", error=str(e))
        click.echo(f"Error: Configuration problem in '{config_path}':\n{e}", err=True)
        ctx.exit(1)

    if not (kwargs.get("log_level") or ctx.obj.get("LOG_LEVEL")):
        setup_logging_from_context(
            ctx,
            local_log_level=config.global_config.log_level,
            local_log_file=kwargs.get("log_file"),
            local_json_logs=kwargs.get("json_logs"),
            headless_mode=True,
        )
    return config


# ⚙️🛠️
