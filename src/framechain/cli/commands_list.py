"""`framechain list` command."""

from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.table import Table

from framechain.actions.base import SingleFrameAction
from framechain.config.loader import register_plugins
from framechain.pipeline.registry import create_default_registry


@dataclass(slots=True)
class ListCommand:
    """List registered actions and their declared parameters."""

    plugins: tuple[str, ...] = ()


def _describe_parameters(action: SingleFrameAction) -> str:
    declared = action.parameters
    if not declared:
        return "-"
    parts = []
    for name, parameter in declared.items():
        text = f"{name}: {parameter.kind.value} = {parameter.default!r}"
        if parameter.values:
            text += f" ({' | '.join(parameter.values)})"
        parts.append(text)
    return "\n".join(parts)


def build_table(actions: list[SingleFrameAction]) -> Table:
    table = Table(expand=True, show_header=True, pad_edge=False)
    table.add_column("#", justify="right")
    table.add_column("Action")
    table.add_column("Parameters")
    for idx, action in enumerate(actions, start=1):
        table.add_row(str(idx), action.name, _describe_parameters(action))
    return table


def execute(command: ListCommand, console: Console | None = None) -> None:
    registry = create_default_registry()
    register_plugins(registry, command.plugins)
    (console or Console()).print(build_table(registry.list()))
