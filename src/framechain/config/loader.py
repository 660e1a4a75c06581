"""Load run configs and external actions from Python references."""

from __future__ import annotations

import importlib
import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Any, Iterable

from framechain.actions.base import is_action
from framechain.config.schema import RunConfig
from framechain.errors import ArgumentError
from framechain.pipeline.registry import ActionRegistry


def _load_module(module_ref: str) -> ModuleType:
    path_candidate = Path(module_ref).expanduser()
    if path_candidate.exists():
        module_name = f"_framechain_ref_{path_candidate.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path_candidate)
        if spec is None or spec.loader is None:
            raise RuntimeError(f"Could not load module from path: {path_candidate}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module
    return importlib.import_module(module_ref)


def _resolve_attr(obj: Any, attr_path: str) -> Any:
    value = obj
    for part in attr_path.split("."):
        value = getattr(value, part)
    return value


def load_object(reference: str) -> Any:
    """Load object by `module_or_path:attribute` reference."""

    if ":" not in reference:
        raise ValueError("Reference must be in form 'module_or_path:attribute'.")
    module_ref, attr = reference.rsplit(":", maxsplit=1)
    module = _load_module(module_ref)
    return _resolve_attr(module, attr)


def load_run_config(config_ref: str | None) -> RunConfig:
    """Load a RunConfig from reference or create a default."""

    if config_ref is None:
        return RunConfig()

    loaded = load_object(config_ref)
    if not isinstance(loaded, RunConfig):
        type_name = type(loaded).__name__
        raise TypeError(f"Config reference must resolve to RunConfig, got {type_name}.")
    return loaded


def _expand_plugin(loaded: Any, reference: str) -> list[Any]:
    if isinstance(loaded, type):
        return [loaded()]
    if is_action(loaded):
        return [loaded]
    if isinstance(loaded, (list, tuple)):
        expanded: list[Any] = []
        for item in loaded:
            expanded.extend(_expand_plugin(item, reference))
        return expanded
    raise ArgumentError(
        f"Plugin reference {reference!r} must resolve to an action, an action class "
        f"or a list of them, got {type(loaded).__name__}"
    )


def register_plugins(registry: ActionRegistry, references: Iterable[str]) -> list[str]:
    """Register the actions behind each reference; return their names."""

    registered: list[str] = []
    for reference in references:
        for action in _expand_plugin(load_object(reference), reference):
            registry.register(action)
            registered.append(action.name)
    return registered
