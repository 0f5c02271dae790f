# src/catch2adapter/cli/watch_cmds.py
#

import asyncio
import logging
import sys
from functools import partial
from pathlib import Path

import click
import structlog
from rich.console import Console

from catch2adapter.cli.render import print_tree
from catch2adapter.cli.utils import config_path_option, load_cli_config, logging_options, setup_command_logging
from catch2adapter.config import load_config
from catch2adapter.events import LoadEvent, LoadEventKind
from catch2adapter.protocols import MonitoredEvent
from catch2adapter.runtime.orchestrator import TestOrchestrator
from catch2adapter.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.watch")


def _print_on_reload(console: Console, orchestrator: TestOrchestrator, event: LoadEvent) -> None:
    if event.kind is not LoadEventKind.FINISHED:
        return
    if event.error:
        console.print(f"[bold red]Reload failed:[/] {event.error}")
        return
    console.rule("Tests reloaded")
    print_tree(console, orchestrator.root)


async def _watch(orchestrator: TestOrchestrator, config_path: Path) -> None:
    reloads: set[asyncio.Task] = set()

    def on_config_change(event: MonitoredEvent) -> None:
        if event.event_type == "deleted":
            return
        log.info("Configuration file modified, reloading.", emoji_key="watch")
        task = asyncio.create_task(orchestrator.reload_config())
        reloads.add(task)
        task.add_done_callback(reloads.discard)

    try:
        await orchestrator.load()
        config_file = config_path.resolve()
        handle = orchestrator.filesystem.watch(str(config_file), str(config_file.parent), on_config_change)
        try:
            # Runs until cancelled by asyncio.run on CTRL-C.
            await asyncio.Event().wait()
        finally:
            handle.dispose()
    finally:
        for task in reloads:
            task.cancel()
        await orchestrator.close()


@click.command(name="watch")
@config_path_option
@logging_options
@click.pass_context
def watch_cli(ctx: click.Context, config_path: Path, **kwargs):
    """Load the tests and keep the tree current as executables change (non-interactive)."""
    setup_command_logging(ctx, **kwargs)
    config = load_cli_config(ctx, config_path, **kwargs)
    log.info("Initializing watch command...", config_path=str(config_path))

    console = Console()
    orchestrator = TestOrchestrator(
        config.adapter,
        config_loader=lambda: load_config(config_path).adapter,
        watch=True,
    )
    orchestrator.emitter.subscribe_load(partial(_print_on_reload, console, orchestrator))

    exit_code = 0
    try:
        asyncio.run(_watch(orchestrator, config_path))
    except KeyboardInterrupt:
        log.warning("Shutdown initiated by KeyboardInterrupt (CTRL-C).")
        exit_code = 130
    except Exception:
        log.critical("Watch exited with an unhandled exception.", exc_info=True)
        exit_code = 1
    finally:
        logging.shutdown()

    log.info("'watch' command finished.")
    if exit_code != 0:
        sys.exit(exit_code)


# 🔼⚙️
