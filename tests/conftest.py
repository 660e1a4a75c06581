import asyncio
import json
from pathlib import Path
from typing import Any, Callable

import pytest

from framechain.actions.base import (
    ActionParameters,
    SingleFrameActionInput,
    SingleFrameActionOutput,
)
from framechain.annotation.schema import FrameCollection, FrameData, SerializedCollection
from framechain.annotation.session import InMemorySession
from framechain.config.schema import RunConfig
from framechain.pipeline.executor import run_actions


REPO_ROOT = Path(__file__).resolve().parents[1]

FAST_CONFIG = RunConfig(progress_interval=0.0, init_pause=0.0, commit_pause=0.0)


def make_shape(client_id, frame, label="car", points=None, **extra):
    shape = {
        "client_id": client_id,
        "type": "rectangle",
        "frame": frame,
        "label": label,
        "points": points if points is not None else [10.0, 10.0, 20.0, 20.0],
    }
    shape.update(extra)
    return shape


def build_session(frame_count=5, deleted=(), shapes=None, tracks=(), tags=()):
    if shapes is None:
        shapes = []
        next_id = 1
        for frame in range(frame_count):
            shapes.append(make_shape(next_id, frame, label="car"))
            shapes.append(make_shape(next_id + 1, frame, label="person"))
            next_id += 2
    frames = [
        FrameData(width=100, height=50, number=number, deleted=number in deleted)
        for number in range(frame_count)
    ]
    collection = SerializedCollection(shapes=list(shapes), tracks=list(tracks), tags=list(tags))
    return InMemorySession(frames=frames, collection=collection)


def canonical(shape):
    """Shape content without identifiers, for order-free comparisons."""

    return json.dumps(
        {key: value for key, value in shape.items() if key not in {"id", "client_id"}},
        sort_keys=True,
    )


class RecordingAction:
    """Test action that records every hook call."""

    def __init__(
        self,
        name="Record",
        parameters: ActionParameters | None = None,
        transform: Callable[[list[dict[str, Any]]], list[dict[str, Any]]] | None = None,
        fail_on_frame=None,
        fail_init=False,
        fail_destroy=False,
    ):
        self.name = name
        self.parameters = parameters
        self.transform = transform
        self.fail_on_frame = fail_on_frame
        self.fail_init = fail_init
        self.fail_destroy = fail_destroy
        self.inits: list[dict[str, Any]] = []
        self.runs: list[SingleFrameActionInput] = []
        self.destroys = 0

    async def init(self, session, parameters):
        self.inits.append(parameters)
        if self.fail_init:
            raise RuntimeError(f"{self.name} init failed")

    async def run(self, session, action_input):
        self.runs.append(action_input)
        if action_input.frame.number == self.fail_on_frame:
            raise RuntimeError(f"{self.name} failed on frame {action_input.frame.number}")
        shapes = list(action_input.collection.shapes)
        if self.transform is not None:
            shapes = self.transform(shapes)
        return SingleFrameActionOutput(collection=FrameCollection(shapes=shapes))

    async def destroy(self):
        self.destroys += 1
        if self.fail_destroy:
            raise ValueError(f"{self.name} destroy failed")


def run_chain(
    session,
    chain,
    params=None,
    frame_from=0,
    frame_to=4,
    filters=(),
    cancelled=lambda: False,
    config=FAST_CONFIG,
):
    calls: list[tuple[str, int]] = []
    outcome = asyncio.run(
        run_actions(
            session,
            chain,
            params if params is not None else [{} for _ in chain],
            frame_from,
            frame_to,
            list(filters),
            lambda message, percent: calls.append((message, percent)),
            cancelled,
            config=config,
        )
    )
    return outcome, calls


@pytest.fixture
def session():
    return build_session()
