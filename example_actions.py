"""Example external actions for framechain.

Register them with `framechain run ... --plugins example_actions.py:ACTIONS`.
"""

from __future__ import annotations

import math
from typing import Any

from framechain.actions.base import (
    ActionParameter,
    ActionParameters,
    ParameterKind,
    SingleFrameActionInput,
    SingleFrameActionOutput,
)
from framechain.annotation.schema import FrameCollection


class ShiftShapes:
    """Translate shape points by a fixed offset."""

    name = "Shift shapes"
    parameters: ActionParameters | None = {
        "dx": ActionParameter(kind=ParameterKind.NUMBER, default="0"),
        "dy": ActionParameter(kind=ParameterKind.NUMBER, default="0"),
        "units": ActionParameter(
            kind=ParameterKind.SELECT,
            default="pixels",
            values=("pixels", "percent"),
        ),
    }

    def __init__(self) -> None:
        self._dx = 0.0
        self._dy = 0.0
        self._units = "pixels"

    async def init(self, session: Any, parameters: dict[str, str | float]) -> None:
        self._dx = float(parameters["dx"])
        self._dy = float(parameters["dy"])
        self._units = str(parameters["units"])
        if math.isnan(self._dx) or math.isnan(self._dy):
            raise ValueError("Shift offsets must be numbers")

    async def run(
        self, session: Any, action_input: SingleFrameActionInput
    ) -> SingleFrameActionOutput:
        dx, dy = self._dx, self._dy
        if self._units == "percent":
            dx = action_input.frame.width * dx / 100.0
            dy = action_input.frame.height * dy / 100.0

        shifted = []
        for shape in action_input.collection.shapes:
            points = shape.get("points", [])
            moved = [
                value + (dx if idx % 2 == 0 else dy) for idx, value in enumerate(points)
            ]
            shifted.append({**shape, "points": moved})
        return SingleFrameActionOutput(collection=FrameCollection(shapes=shifted))

    async def destroy(self) -> None:
        self._dx = 0.0
        self._dy = 0.0


class ClampToFrame:
    """Clip shape points to the frame bounds."""

    name = "Clamp to frame"
    parameters: ActionParameters | None = None

    async def init(self, session: Any, parameters: dict[str, str | float]) -> None:
        return None

    async def run(
        self, session: Any, action_input: SingleFrameActionInput
    ) -> SingleFrameActionOutput:
        width = float(action_input.frame.width)
        height = float(action_input.frame.height)
        clamped = []
        for shape in action_input.collection.shapes:
            points = shape.get("points", [])
            bounded = [
                min(max(value, 0.0), width if idx % 2 == 0 else height)
                for idx, value in enumerate(points)
            ]
            clamped.append({**shape, "points": bounded})
        return SingleFrameActionOutput(collection=FrameCollection(shapes=clamped))

    async def destroy(self) -> None:
        return None


ACTIONS = [ShiftShapes, ClampToFrame]
