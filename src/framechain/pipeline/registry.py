"""Action registry."""

from __future__ import annotations

import logging

from framechain.actions.base import SingleFrameAction, is_action
from framechain.actions.builtin import builtin_actions
from framechain.errors import ArgumentError
from framechain.observability.logging import get_logger, log_event


_LOGGER = get_logger("framechain.registry")


class ActionRegistry:
    """Ordered catalog of actions with unique, case-sensitive names.

    The registry only grows: there is no way to unregister an action.
    """

    def __init__(self) -> None:
        self._actions: list[SingleFrameAction] = []

    def __len__(self) -> int:
        return len(self._actions)

    def __contains__(self, name: object) -> bool:
        return any(action.name == name for action in self._actions)

    def list(self) -> list[SingleFrameAction]:
        """Return a snapshot of registered actions in registration order."""

        return list(self._actions)

    def names(self) -> list[str]:
        return [action.name for action in self._actions]

    def get(self, name: str) -> SingleFrameAction:
        """Look up an action by exact name."""

        for action in self._actions:
            if action.name == name:
                return action
        known = ", ".join(repr(item) for item in self.names())
        raise ArgumentError(f"Unknown action {name!r}. Registered actions: {known}")

    def register(self, action: object) -> None:
        """Append an action, rejecting invalid objects and duplicate names."""

        if not is_action(action):
            raise ArgumentError(
                f"Provided object is not a single-frame action: {type(action).__name__}"
            )
        name = action.name  # type: ignore[attr-defined]
        if name in self:
            raise ArgumentError(f'Action name must be unique. Name "{name}" already exists')

        self._actions.append(action)  # type: ignore[arg-type]
        log_event(
            _LOGGER,
            "action_registered",
            level=logging.DEBUG,
            action=name,
            count=len(self._actions),
        )


def create_default_registry() -> ActionRegistry:
    """Build a registry holding the built-in actions."""

    registry = ActionRegistry()
    for action in builtin_actions():
        registry.register(action)
    return registry
