"""Single-frame action chain executor.

A run walks `frame_from..frame_to`, pipes each retained frame's filtered
shapes through the chain, and replaces the session's annotations with the
combined result in one commit. Cancellation is polled at fixed checkpoints
and never interrupts an action mid-call; actions are always destroyed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
import logging
import time
from typing import Any, Callable, Mapping, Sequence

from framechain.actions.base import (
    SingleFrameAction,
    SingleFrameActionInput,
    SingleFrameActionOutput,
    is_action,
)
from framechain.annotation.schema import (
    FrameCollection,
    FrameMeta,
    ObjectType,
    SerializedCollection,
    Shape,
    strip_identifiers,
)
from framechain.annotation.session import Session
from framechain.config.schema import RunConfig
from framechain.errors import ArgumentError, DataError, ScriptingError
from framechain.observability.logging import get_logger, log_event
from framechain.pipeline.parameters import resolve_parameters
from framechain.pipeline.progress import (
    COMMIT_MESSAGE,
    INIT_MESSAGE,
    RUNNING_MESSAGE,
    ProgressCallback,
    ProgressReporter,
)
from framechain.storage.events import AuditEvent


_LOGGER = get_logger("framechain.executor")


class RunState(str, Enum):
    """Stages of one pipeline run."""

    INIT = "init"
    ITERATING = "iterating"
    COMMITTING = "committing"
    FINALIZING = "finalizing"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class RunOutcome:
    """Summary of a finished or cancelled run."""

    state: RunState = RunState.INIT
    frames_processed: int = 0
    frames_skipped: int = 0
    shapes_handled: int = 0
    shapes_carried: int = 0
    duration_seconds: float = 0.0

    @property
    def committed(self) -> bool:
        return self.state is RunState.DONE


@dataclass(slots=True)
class _RunContext:
    """Transient per-run state, discarded when the run ends."""

    frame_from: int
    frame_to: int
    filters: list[str]
    event: AuditEvent
    started: float = field(default_factory=time.perf_counter)
    handled_ids: set[int] = field(default_factory=set)
    handled_shapes: list[Shape] = field(default_factory=list)
    outcome: RunOutcome = field(default_factory=RunOutcome)

    @property
    def total_frames(self) -> int:
        return self.frame_to - self.frame_from + 1


def _validate_run(
    actions_chain: Sequence[Any],
    action_parameters: Sequence[Mapping[str, str]],
    frame_from: int,
    frame_to: int,
) -> None:
    if frame_from < 0:
        raise ArgumentError(f"frame_from must be >= 0, got {frame_from}")
    if frame_from > frame_to:
        raise ArgumentError(
            f"frame_from must not exceed frame_to, got {frame_from} > {frame_to}"
        )
    if len(action_parameters) != len(actions_chain):
        raise ArgumentError(
            "Expected one parameter set per chain position, got "
            f"{len(action_parameters)} for {len(actions_chain)} actions"
        )
    for position, supplied in enumerate(action_parameters):
        if not isinstance(supplied, Mapping):
            raise ArgumentError(
                f"Parameter set at chain position {position} must be a mapping, "
                f"got {type(supplied).__name__}"
            )
    for position, action in enumerate(actions_chain):
        if not is_action(action):
            raise ArgumentError(
                f"Chain position {position} is not a single-frame action: "
                f"{type(action).__name__}"
            )


def _progress_percent(completed: int, total: int) -> int:
    return -(-completed * 100 // total)


def _index_snapshot(snapshot: SerializedCollection) -> dict[int, int]:
    """Map each snapshot shape's client id to its position."""

    positions: dict[int, int] = {}
    for position, shape in enumerate(snapshot.shapes):
        client_id = shape.get("client_id")
        if not isinstance(client_id, int) or isinstance(client_id, bool):
            raise DataError(f"Exported shape at position {position} has no integer client_id")
        if client_id in positions:
            raise DataError(f"Exported collection holds duplicate client_id {client_id}")
        positions[client_id] = position
    return positions


def _slice_snapshot(
    snapshot: SerializedCollection,
    positions: dict[int, int],
    frame_ids: set[int],
) -> FrameCollection:
    picked = sorted(positions[client_id] for client_id in frame_ids if client_id in positions)
    return FrameCollection(shapes=[snapshot.shapes[position] for position in picked])


async def _init_actions(
    session: Session,
    actions_chain: Sequence[SingleFrameAction],
    action_parameters: Sequence[Mapping[str, str]],
) -> None:
    results = await asyncio.gather(
        *(
            action.init(session, resolve_parameters(action.parameters, supplied))
            for action, supplied in zip(actions_chain, action_parameters)
        ),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result


async def _destroy_actions(
    actions_chain: Sequence[SingleFrameAction],
    *,
    raise_errors: bool,
) -> None:
    results = await asyncio.gather(
        *(action.destroy() for action in actions_chain),
        return_exceptions=True,
    )
    errors: list[BaseException] = []
    for action, result in zip(actions_chain, results):
        if not isinstance(result, BaseException):
            continue
        errors.append(result)
        log_event(
            _LOGGER,
            "action_destroy_failed",
            level=logging.WARNING,
            action=action.name,
            error=f"{type(result).__name__}: {result}",
        )
    if errors and raise_errors:
        raise errors[0]


async def _apply_chain(
    session: Session,
    actions_chain: Sequence[SingleFrameAction],
    collection: FrameCollection,
    frame: FrameMeta,
) -> FrameCollection:
    for action in actions_chain:
        output = await action.run(
            session,
            SingleFrameActionInput(collection=collection, frame=frame),
        )
        if not isinstance(output, SingleFrameActionOutput) or not isinstance(
            output.collection, FrameCollection
        ):
            raise ScriptingError(
                f'Action "{action.name}" must return SingleFrameActionOutput, '
                f"got {type(output).__name__}"
            )
        collection = output.collection
    return collection


def _cancel(context: _RunContext, reached_from: RunState) -> RunOutcome:
    context.outcome.state = RunState.CANCELLED
    context.outcome.duration_seconds = time.perf_counter() - context.started
    context.event.close("cancelled", stage=reached_from.value)
    log_event(
        _LOGGER,
        "run_cancelled",
        stage=reached_from.value,
        frames_processed=context.outcome.frames_processed,
    )
    return context.outcome


async def _execute(
    *,
    session: Session,
    actions_chain: Sequence[SingleFrameAction],
    action_parameters: Sequence[Mapping[str, str]],
    context: _RunContext,
    progress: ProgressReporter,
    cancelled: Callable[[], bool],
    config: RunConfig,
) -> RunOutcome:
    outcome = context.outcome

    await progress.pause(INIT_MESSAGE, 0, config.init_pause)
    if cancelled():
        return _cancel(context, RunState.INIT)

    await _init_actions(session, actions_chain, action_parameters)
    snapshot = session.annotations.export()
    positions = _index_snapshot(snapshot)

    outcome.state = RunState.ITERATING
    for frame in range(context.frame_from, context.frame_to + 1):
        frame_data = await session.frames.get(frame)
        if frame_data.deleted:
            outcome.frames_skipped += 1
            continue
        if frame_data.number != frame:
            raise DataError(f"Frame provider returned frame {frame_data.number} for {frame}")

        states = await session.states.get_states(
            frame,
            include_deleted=False,
            filters=context.filters,
            group_filter=None,
        )
        frame_ids = {
            state.client_id for state in states if state.object_type is ObjectType.SHAPE
        }
        frame_collection = await _apply_chain(
            session,
            actions_chain,
            _slice_snapshot(snapshot, positions, frame_ids),
            FrameMeta(width=frame_data.width, height=frame_data.height, number=frame_data.number),
        )

        progress.report(
            RUNNING_MESSAGE,
            _progress_percent(frame - context.frame_from + 1, context.total_frames),
        )
        if cancelled():
            return _cancel(context, RunState.ITERATING)

        context.handled_shapes.extend(strip_identifiers(shape) for shape in frame_collection.shapes)
        context.handled_ids.update(frame_ids)
        outcome.frames_processed += 1

    outcome.state = RunState.COMMITTING
    await progress.pause(COMMIT_MESSAGE, 100, config.commit_pause)
    if cancelled():
        return _cancel(context, RunState.COMMITTING)

    carried = [
        shape for shape in snapshot.shapes if shape["client_id"] not in context.handled_ids
    ]
    if cancelled():
        return _cancel(context, RunState.COMMITTING)

    outcome.state = RunState.FINALIZING
    outcome.shapes_handled = len(context.handled_shapes)
    outcome.shapes_carried = len(carried)
    await session.annotations.clear()
    await session.history.clear()
    await session.annotations.import_collection(
        SerializedCollection(
            shapes=[*context.handled_shapes, *carried],
            tracks=snapshot.tracks,
            tags=snapshot.tags,
        )
    )

    outcome.state = RunState.DONE
    outcome.duration_seconds = time.perf_counter() - context.started
    context.event.close(
        "succeeded",
        frames_processed=outcome.frames_processed,
        shapes_handled=outcome.shapes_handled,
        shapes_carried=outcome.shapes_carried,
    )
    log_event(
        _LOGGER,
        "run_committed",
        frames_processed=outcome.frames_processed,
        frames_skipped=outcome.frames_skipped,
        shapes_handled=outcome.shapes_handled,
        shapes_carried=outcome.shapes_carried,
        duration_seconds=outcome.duration_seconds,
    )
    return outcome


async def run_actions(
    session: Session,
    actions_chain: Sequence[SingleFrameAction],
    action_parameters: Sequence[Mapping[str, str]],
    frame_from: int,
    frame_to: int,
    filters: Sequence[str],
    on_progress: ProgressCallback,
    cancelled: Callable[[], bool],
    *,
    config: RunConfig | None = None,
) -> RunOutcome:
    """Apply an action chain to frames `frame_from..frame_to` and commit once.

    Returns a cancelled outcome without touching the store when `cancelled`
    reports True at a checkpoint. Errors from actions or collaborators
    propagate after every action has been destroyed.
    """

    config = config or RunConfig()
    chain = list(actions_chain)
    parameters = list(action_parameters)
    _validate_run(chain, parameters, frame_from, frame_to)

    chain_label = config.chain_separator.join(action.name for action in chain)
    event = session.logger.log(
        config.audit_event,
        {"from": frame_from, "to": frame_to, "chain": chain_label},
    )
    context = _RunContext(
        frame_from=frame_from,
        frame_to=frame_to,
        filters=list(filters),
        event=event,
    )
    progress = ProgressReporter(on_progress, config)
    log_event(
        _LOGGER,
        "run_started",
        frame_from=frame_from,
        frame_to=frame_to,
        chain=chain_label,
        filters=context.filters,
    )

    failure: BaseException | None = None
    try:
        return await _execute(
            session=session,
            actions_chain=chain,
            action_parameters=parameters,
            context=context,
            progress=progress,
            cancelled=cancelled,
            config=config,
        )
    except BaseException as exc:
        failure = exc
        error = f"{type(exc).__name__}: {exc}"
        event.close("failed", stage=context.outcome.state.value, error=error)
        log_event(
            _LOGGER,
            "run_failed",
            level=logging.ERROR,
            stage=context.outcome.state.value,
            error=error,
        )
        raise
    finally:
        try:
            progress.finish()
        finally:
            await _destroy_actions(chain, raise_errors=failure is None)
