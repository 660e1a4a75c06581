"""Annotation collection models shared by the pipeline and sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from framechain.errors import DataError


Shape = dict[str, Any]

IDENTIFIER_FIELDS = ("id", "client_id")


class ObjectType(str, Enum):
    """Kind of annotation object reported for a frame."""

    SHAPE = "shape"
    TRACK = "track"
    TAG = "tag"


@dataclass(slots=True)
class SerializedCollection:
    """Full annotation state of a session."""

    shapes: list[Shape] = field(default_factory=list)
    tracks: list[dict[str, Any]] = field(default_factory=list)
    tags: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "shapes": [dict(item) for item in self.shapes],
            "tracks": [dict(item) for item in self.tracks],
            "tags": [dict(item) for item in self.tags],
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> SerializedCollection:
        members: dict[str, list[dict[str, Any]]] = {}
        for key in ("shapes", "tracks", "tags"):
            items = payload.get(key, [])
            if not isinstance(items, list):
                raise DataError(f"Collection member '{key}' must be a list.")
            for item in items:
                if not isinstance(item, dict):
                    raise DataError(f"Collection member '{key}' must hold objects.")
            members[key] = [dict(item) for item in items]
        return cls(**members)


@dataclass(slots=True)
class FrameCollection:
    """Shapes visible on one frame."""

    shapes: list[Shape] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class FrameData:
    """Frame record returned by a frame provider."""

    width: int
    height: int
    number: int
    deleted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "number": self.number,
            "deleted": self.deleted,
        }


@dataclass(frozen=True, slots=True)
class FrameMeta:
    """Read-only frame metadata handed to actions."""

    width: int
    height: int
    number: int


@dataclass(frozen=True, slots=True)
class ObjectState:
    """One filtered object visible on a frame."""

    object_type: ObjectType
    client_id: int


def strip_identifiers(shape: Shape) -> Shape:
    """Return a copy of a shape without server or client identifiers."""

    return {key: value for key, value in shape.items() if key not in IDENTIFIER_FIELDS}
