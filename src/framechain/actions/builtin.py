"""Actions that ship with framechain."""

from __future__ import annotations

from typing import Any

from framechain.actions.base import (
    ActionParameters,
    SingleFrameActionInput,
    SingleFrameActionOutput,
)
from framechain.annotation.schema import FrameCollection


class RemoveFilteredShapes:
    """Drop every shape that reaches this action."""

    name = "Remove filtered shapes"
    parameters: ActionParameters | None = None

    async def init(self, session: Any, parameters: dict[str, str | float]) -> None:
        return None

    async def run(
        self, session: Any, action_input: SingleFrameActionInput
    ) -> SingleFrameActionOutput:
        return SingleFrameActionOutput(collection=FrameCollection(shapes=[]))

    async def destroy(self) -> None:
        return None


def builtin_actions() -> list[RemoveFilteredShapes]:
    return [RemoveFilteredShapes()]
