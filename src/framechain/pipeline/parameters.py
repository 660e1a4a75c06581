"""Resolution of caller-supplied action parameters against declarations."""

from __future__ import annotations

from collections.abc import Mapping
import re

from framechain.actions.base import ActionParameters, ParameterKind
from framechain.errors import ArgumentError


_DECIMAL = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_INFINITY = re.compile(r"^([+-]?)Infinity$")
_RADIX = re.compile(r"^0([xXoObB])([0-9a-fA-F]+)$")
_RADIX_BASES = {"x": 16, "o": 8, "b": 2}


def to_number(value: str) -> float:
    """Coerce a parameter string to a float, yielding NaN instead of failing.

    Accepts signed decimal literals, `Infinity` and unsigned `0x`/`0o`/`0b`
    integers. Anything else, including an empty (or whitespace-only) string,
    is NaN; callers validate values before they reach the pipeline.
    """

    text = str(value).strip()
    if _DECIMAL.match(text):
        return float(text)
    infinity = _INFINITY.match(text)
    if infinity:
        return float("-inf") if infinity.group(1) == "-" else float("inf")
    radix = _RADIX.match(text)
    if radix:
        try:
            return float(int(radix.group(2), _RADIX_BASES[radix.group(1).lower()]))
        except ValueError:
            return float("nan")
    return float("nan")


def resolve_parameters(
    declared: ActionParameters | None,
    supplied: Mapping[str, str],
) -> dict[str, str | float]:
    """Merge supplied values with declared defaults and coerce by kind.

    Keys that are not declared are ignored.
    """

    if declared is None:
        return {}

    resolved: dict[str, str | float] = {}
    for name, parameter in declared.items():
        raw = supplied[name] if name in supplied else parameter.default
        if parameter.kind is ParameterKind.NUMBER:
            resolved[name] = to_number(raw)
        else:
            resolved[name] = raw
    return resolved


def parse_parameter_string(text: str) -> dict[str, str]:
    """Parse `key=value,key2=value2` into a flat string mapping."""

    parsed: dict[str, str] = {}
    for item in text.split(","):
        if not item.strip():
            continue
        if "=" not in item:
            raise ArgumentError(f"Parameter must be in form key=value, got {item!r}")
        key, value = item.split("=", maxsplit=1)
        key = key.strip()
        if not key:
            raise ArgumentError(f"Parameter name is empty in {item!r}")
        parsed[key] = value.strip()
    return parsed
