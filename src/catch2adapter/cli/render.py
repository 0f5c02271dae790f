# src/catch2adapter/cli/render.py

"""
Plain rich renderings of the test tree and of run results for the CLI.
"""

from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from catch2adapter.events import Outcome, RunEvent, RunEventKind
from catch2adapter.tree import TestNode

OUTCOME_STYLES: dict[Outcome, tuple[str, str]] = {
    Outcome.PASSED: ("✅", "green"),
    Outcome.FAILED: ("❌", "red"),
    Outcome.SKIPPED: ("⏭️", "yellow"),
    Outcome.ERRORED: ("💥", "bold red"),
}


def _node_label(node: TestNode) -> str:
    label = escape(node.label)
    if node.is_error:
        return f"[bold red]{label}[/]"
    if node.is_suite:
        return f"[bold]{label}[/] [dim]({sum(1 for _ in node.leaves())} tests)[/]"
    extras = []
    if node.tags:
        extras.append(escape("".join(node.tags)))
    if node.file is not None:
        extras.append(escape(f"{node.file}:{node.line}" if node.line is not None else node.file))
    text = f"[dim]{label}[/]" if node.skipped else label
    return f"{text} [dim]{' '.join(extras)}[/]" if extras else text


def build_tree(node: TestNode, tree: Tree | None = None) -> Tree:
    branch = Tree(_node_label(node)) if tree is None else tree.add(_node_label(node))
    for child in node.children:
        build_tree(child, branch)
    return branch


def print_tree(console: Console, root: TestNode) -> None:
    if not root.children:
        console.print("[yellow]No Catch2 executables found.[/]")
        return
    console.print(build_tree(root))


class ResultPrinter:
    """Run listener that prints one line per result and keeps a tally."""

    def __init__(self, console: Console, verbose: bool = False):
        self.console = console
        self.verbose = verbose
        self.counts: dict[Outcome, int] = dict.fromkeys(Outcome, 0)

    @property
    def failed(self) -> bool:
        return bool(self.counts[Outcome.FAILED] or self.counts[Outcome.ERRORED])

    def __call__(self, event: RunEvent) -> None:
        if event.kind is RunEventKind.SUITE_RUNNING and event.suite is not None:
            self.console.print(f"[bold]{escape(event.suite.label)}[/]")
        elif event.kind is RunEventKind.TEST_RESULT and event.test is not None and event.outcome is not None:
            self.counts[event.outcome] += 1
            emoji, style = OUTCOME_STYLES[event.outcome]
            duration = f" [dim]({event.duration_seconds}s)[/]" if event.duration_seconds is not None else ""
            self.console.print(f"  {emoji} [{style}]{event.outcome.value.upper()}[/] {escape(event.test.label)}{duration}")
            if self.verbose or event.outcome in (Outcome.FAILED, Outcome.ERRORED):
                for line in event.message.rstrip().splitlines():
                    self.console.print(f"      {escape(line)}", highlight=False)

    def summary(self) -> str:
        return ", ".join(f"{count} {outcome.value}" for outcome, count in self.counts.items())


# 🔼⚙️
