"""Minimal filter expressions over serialized annotation objects."""

from __future__ import annotations

from dataclasses import dataclass
import operator
import re
from typing import Any, Callable, Iterable

from framechain.errors import ArgumentError


_EXPRESSION = re.compile(
    r"^\s*(?P<field>[A-Za-z_][A-Za-z0-9_.]*)\s*(?P<op>==|!=|<=|>=|<|>)\s*(?P<value>.*?)\s*$"
)

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

_MISSING = object()


@dataclass(frozen=True, slots=True)
class FilterExpression:
    """Parsed `field op value` comparison."""

    field: str
    op: str
    value: str | float

    def matches(self, item: dict[str, Any]) -> bool:
        actual = _lookup(item, self.field)
        if actual is _MISSING:
            return False
        expected: Any = self.value
        if isinstance(expected, float):
            if isinstance(actual, bool) or not isinstance(actual, (int, float)):
                return False
        elif isinstance(actual, bool):
            actual = "true" if actual else "false"
        else:
            actual = str(actual)
        return _OPERATORS[self.op](actual, expected)


def _lookup(item: dict[str, Any], dotted: str) -> Any:
    value: Any = item
    for part in dotted.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _coerce_value(raw: str) -> str | float:
    text = raw.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in {"'", '"'}:
        return text[1:-1]
    try:
        return float(text)
    except ValueError:
        return text


def parse_filter(expression: str) -> FilterExpression:
    """Parse a filter like `label == car` or `attributes.occluded != true`."""

    match = _EXPRESSION.match(expression)
    if match is None or not match.group("value"):
        raise ArgumentError(f"Malformed filter expression: {expression!r}")
    return FilterExpression(
        field=match.group("field"),
        op=match.group("op"),
        value=_coerce_value(match.group("value")),
    )


def parse_filters(expressions: Iterable[str]) -> list[FilterExpression]:
    return [parse_filter(expression) for expression in expressions]


def matches_all(item: dict[str, Any], filters: Iterable[FilterExpression]) -> bool:
    """Return True when every filter matches; an empty filter list matches all."""

    return all(expression.matches(item) for expression in filters)
