import pytest

from conftest import RecordingAction
from framechain.actions.base import ActionParameter, ParameterKind, is_action
from framechain.actions.builtin import RemoveFilteredShapes
from framechain.errors import ArgumentError
from framechain.pipeline.registry import ActionRegistry, create_default_registry


def test_default_registry_holds_builtin_action():
    registry = create_default_registry()

    assert registry.names() == ["Remove filtered shapes"]
    assert isinstance(registry.list()[0], RemoveFilteredShapes)


def test_register_preserves_order():
    registry = create_default_registry()
    registry.register(RecordingAction(name="Zoom"))
    registry.register(RecordingAction(name="Align"))

    assert registry.names() == ["Remove filtered shapes", "Zoom", "Align"]
    assert len(registry) == 3
    assert "Zoom" in registry


def test_duplicate_name_keeps_first_registration():
    registry = ActionRegistry()
    first = RecordingAction(name="Shift")
    registry.register(first)

    with pytest.raises(ArgumentError, match='"Shift" already exists'):
        registry.register(RecordingAction(name="Shift"))

    assert registry.list() == [first]
    assert registry.get("Shift") is first


def test_names_are_case_sensitive():
    registry = ActionRegistry()
    registry.register(RecordingAction(name="shift"))
    registry.register(RecordingAction(name="Shift"))

    assert registry.names() == ["shift", "Shift"]


def test_list_returns_a_copy():
    registry = create_default_registry()

    snapshot = registry.list()
    snapshot.clear()

    assert len(registry) == 1


def test_get_unknown_action_raises():
    registry = create_default_registry()

    with pytest.raises(ArgumentError, match="Unknown action 'Nope'"):
        registry.get("Nope")


class _SyncHooks:
    name = "Sync"
    parameters = None

    def init(self, session, parameters):
        return None

    def run(self, session, action_input):
        return None

    def destroy(self):
        return None


class _MissingDestroy:
    name = "Partial"
    parameters = None

    async def init(self, session, parameters):
        return None

    async def run(self, session, action_input):
        return None


class _AbstractName:
    parameters = None

    @property
    def name(self):
        raise NotImplementedError

    async def init(self, session, parameters):
        return None

    async def run(self, session, action_input):
        return None

    async def destroy(self):
        return None


class _BrokenParameters(_AbstractName):
    name = "Broken"

    @property
    def parameters(self):
        raise RuntimeError("parameter catalog unavailable")

@pytest.mark.parametrize(
    "candidate",
    [
        object(),
        RemoveFilteredShapes,
        _SyncHooks(),
        _MissingDestroy(),
        _AbstractName(),
        _BrokenParameters(),
        RecordingAction(name=""),
        RecordingAction(name="Bad params", parameters={"n": "5"}),
    ],
)
def test_register_rejects_objects_without_the_action_interface(candidate):
    registry = ActionRegistry()

    assert not is_action(candidate)
    with pytest.raises(ArgumentError, match="not a single-frame action"):
        registry.register(candidate)
    assert len(registry) == 0


def test_register_accepts_declared_parameters():
    registry = ActionRegistry()
    action = RecordingAction(
        name="Threshold",
        parameters={"value": ActionParameter(kind=ParameterKind.NUMBER, default="0.5")},
    )

    registry.register(action)

    assert registry.get("Threshold") is action
