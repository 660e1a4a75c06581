"""Single-frame action contract and parameter declarations."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
import inspect
from typing import Any, Protocol, runtime_checkable

from framechain.annotation.schema import FrameCollection, FrameMeta


class ParameterKind(str, Enum):
    """Value kind of a declared action parameter."""

    SELECT = "select"
    NUMBER = "number"


@dataclass(frozen=True, slots=True)
class ActionParameter:
    """Declared parameter: kind, allowed values and default."""

    kind: ParameterKind
    default: str
    values: tuple[str, ...] = field(default_factory=tuple)


ActionParameters = dict[str, ActionParameter]


@dataclass(slots=True)
class SingleFrameActionInput:
    """Shapes of one frame plus that frame's metadata."""

    collection: FrameCollection
    frame: FrameMeta


@dataclass(slots=True)
class SingleFrameActionOutput:
    """Shapes an action hands to the next action in the chain."""

    collection: FrameCollection


@runtime_checkable
class SingleFrameAction(Protocol):
    """Interface every registered action must provide.

    `init` runs once per pipeline run with resolved parameters, `run` once per
    retained frame and `destroy` once after the run, including failed and
    cancelled runs. Instances are not reentrant.
    """

    @property
    def name(self) -> str:
        ...

    @property
    def parameters(self) -> ActionParameters | None:
        ...

    async def init(self, session: Any, parameters: dict[str, str | float]) -> None:
        ...

    async def run(
        self, session: Any, action_input: SingleFrameActionInput
    ) -> SingleFrameActionOutput:
        ...

    async def destroy(self) -> None:
        ...


_HOOKS = ("init", "run", "destroy")


def is_action(candidate: object) -> bool:
    """Return True when `candidate` fully provides the action interface."""

    if isinstance(candidate, type):
        return False
    try:
        name = getattr(candidate, "name")
        parameters = getattr(candidate, "parameters")
    except Exception:
        return False

    if not isinstance(name, str) or not name:
        return False
    if parameters is not None:
        if not isinstance(parameters, Mapping):
            return False
        if not all(isinstance(item, ActionParameter) for item in parameters.values()):
            return False

    for hook in _HOOKS:
        method = getattr(candidate, hook, None)
        if method is None or not inspect.iscoroutinefunction(method):
            return False
    return True
