"""`framechain run` command."""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
import signal
import threading
from typing import Any, Iterator

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
import tyro

from framechain.annotation.session import dump_session, load_session
from framechain.config.loader import load_run_config, register_plugins
from framechain.errors import ArgumentError, DataError
from framechain.pipeline.executor import RunOutcome, run_actions
from framechain.pipeline.parameters import parse_parameter_string
from framechain.pipeline.registry import create_default_registry
from framechain.storage.events import EventJournal


@dataclass(slots=True)
class RunCommand:
    """Run an action chain over a session file and commit the result."""

    session: tyro.conf.Positional[Path]
    chain: tuple[str, ...] = ()
    params: tuple[str, ...] = ()
    frame_from: int | None = None
    frame_to: int | None = None
    filters: tuple[str, ...] = ()
    plugins: tuple[str, ...] = ()
    config: str | None = None
    output: Path | None = None
    journal: Path | None = None


def chain_parameters(raw: tuple[str, ...], chain_length: int) -> list[dict[str, str]]:
    """One parameter mapping per chain position; empty when none were given."""

    if not raw:
        return [{} for _ in range(chain_length)]
    if len(raw) != chain_length:
        raise ArgumentError(
            f"Expected {chain_length} --params entries (one per action), got {len(raw)}"
        )
    return [parse_parameter_string(item) for item in raw]


@contextmanager
def cancel_on_signal() -> Iterator[threading.Event]:
    """Set the yielded event on SIGINT/SIGTERM, restoring handlers afterwards."""

    stop_event = threading.Event()

    def _handle_signal(_signum: int, _frame: object) -> None:
        stop_event.set()

    previous: dict[int, Any] = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handle_signal)
    try:
        yield stop_event
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def execute(command: RunCommand, console: Console | None = None) -> RunOutcome:
    console = console or Console()
    config = load_run_config(command.config)

    registry = create_default_registry()
    register_plugins(registry, command.plugins)
    if not command.chain:
        raise ArgumentError("At least one --chain action name is required")
    chain = [registry.get(name) for name in command.chain]
    parameters = chain_parameters(command.params, len(chain))

    journal = EventJournal(command.journal) if command.journal is not None else None
    session = load_session(command.session, journal=journal)
    numbers = session.frames.numbers
    if not numbers:
        raise DataError(f"Session has no frames: {command.session}")
    frame_from = numbers[0] if command.frame_from is None else command.frame_from
    frame_to = numbers[-1] if command.frame_to is None else command.frame_to

    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    )
    with cancel_on_signal() as stop_event, progress:
        task_id = progress.add_task("Starting", total=100)

        def on_progress(message: str, percent: int) -> None:
            progress.update(task_id, description=message, completed=percent)

        outcome = asyncio.run(
            run_actions(
                session,
                chain,
                parameters,
                frame_from,
                frame_to,
                list(command.filters),
                on_progress,
                stop_event.is_set,
                config=config,
            )
        )

    if not outcome.committed:
        console.print("run cancelled, session left unchanged")
        return outcome

    target = command.output or command.session
    dump_session(session, target)
    console.print(
        f"committed frames={outcome.frames_processed} skipped={outcome.frames_skipped} "
        f"handled={outcome.shapes_handled} carried={outcome.shapes_carried} path={target}"
    )
    return outcome
