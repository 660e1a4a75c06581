"""Collaborator contracts consumed by the pipeline and an in-memory session."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Iterable, Protocol

from framechain.annotation.filters import FilterExpression, matches_all, parse_filters
from framechain.annotation.schema import (
    FrameData,
    ObjectState,
    ObjectType,
    SerializedCollection,
)
from framechain.errors import DataError
from framechain.storage.atomic import atomic_write_json, read_json
from framechain.storage.events import AuditEvent, EventJournal


class AnnotationStore(Protocol):
    def export(self) -> SerializedCollection:
        ...

    async def import_collection(self, collection: SerializedCollection) -> None:
        ...

    async def clear(self) -> None:
        ...


class ActionHistory(Protocol):
    async def clear(self) -> None:
        ...


class FrameProvider(Protocol):
    async def get(self, frame: int) -> FrameData:
        ...


class StateEvaluator(Protocol):
    async def get_states(
        self,
        frame: int,
        *,
        include_deleted: bool = False,
        filters: Iterable[str] = (),
        group_filter: Any = None,
    ) -> list[ObjectState]:
        ...


class EventLog(Protocol):
    def log(self, event_type: str, payload: dict[str, Any]) -> AuditEvent:
        ...


class Session(Protocol):
    """Job or task handle handed to the pipeline and to every action."""

    annotations: AnnotationStore
    history: ActionHistory
    frames: FrameProvider
    states: StateEvaluator
    logger: EventLog


class InMemoryAnnotations:
    """Annotation store holding one collection and assigning client ids."""

    def __init__(self, history: InMemoryHistory) -> None:
        self._history = history
        self._collection = SerializedCollection()
        self._next_client_id = 1

    @property
    def collection(self) -> SerializedCollection:
        return self._collection

    def export(self) -> SerializedCollection:
        return copy.deepcopy(self._collection)

    async def import_collection(self, collection: SerializedCollection) -> None:
        self.load(collection)
        self._history.record("import")

    async def clear(self) -> None:
        self._collection = SerializedCollection()
        self._history.record("clear")

    def load(self, collection: SerializedCollection) -> None:
        """Merge a collection into the store, numbering objects without ids."""

        incoming = copy.deepcopy(collection)
        used = {
            item["client_id"]
            for group in (incoming.shapes, incoming.tracks, incoming.tags)
            for item in group
            if _is_client_id(item.get("client_id"))
        }
        if used:
            self._next_client_id = max(self._next_client_id, max(used) + 1)

        for group in (incoming.shapes, incoming.tracks, incoming.tags):
            for item in group:
                if not _is_client_id(item.get("client_id")):
                    item["client_id"] = self._next_client_id
                    self._next_client_id += 1

        self._collection.shapes.extend(incoming.shapes)
        self._collection.tracks.extend(incoming.tracks)
        self._collection.tags.extend(incoming.tags)


class InMemoryHistory:
    """Undo history stand-in: a list of operation names."""

    def __init__(self) -> None:
        self.entries: list[str] = []

    def record(self, operation: str) -> None:
        self.entries.append(operation)

    async def clear(self) -> None:
        self.entries.clear()


class InMemoryFrames:
    def __init__(self, frames: Iterable[FrameData]) -> None:
        self._frames = {frame.number: frame for frame in frames}

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def numbers(self) -> list[int]:
        return sorted(self._frames)

    def records(self) -> list[FrameData]:
        return [self._frames[number] for number in sorted(self._frames)]

    async def get(self, frame: int) -> FrameData:
        try:
            return self._frames[frame]
        except KeyError:
            raise DataError(f"Frame {frame} does not exist in this session") from None


class InMemoryStates:
    """Reports filtered objects visible on a frame from the live store."""

    def __init__(self, annotations: InMemoryAnnotations) -> None:
        self._annotations = annotations

    async def get_states(
        self,
        frame: int,
        *,
        include_deleted: bool = False,
        filters: Iterable[str] = (),
        group_filter: Any = None,
    ) -> list[ObjectState]:
        parsed = parse_filters(filters)
        collection = self._annotations.collection
        states: list[ObjectState] = []

        for track in collection.tracks:
            if int(track.get("frame", 0)) > frame:
                continue
            if self._visible(track, parsed, include_deleted, group_filter):
                states.append(ObjectState(ObjectType.TRACK, track["client_id"]))
        for shape in collection.shapes:
            if shape.get("frame") != frame:
                continue
            if self._visible(shape, parsed, include_deleted, group_filter):
                states.append(ObjectState(ObjectType.SHAPE, shape["client_id"]))
        for tag in collection.tags:
            if tag.get("frame") != frame:
                continue
            if self._visible(tag, parsed, include_deleted, group_filter):
                states.append(ObjectState(ObjectType.TAG, tag["client_id"]))
        return states

    @staticmethod
    def _visible(
        item: dict[str, Any],
        filters: list[FilterExpression],
        include_deleted: bool,
        group_filter: Any,
    ) -> bool:
        if not include_deleted and (item.get("outside") or item.get("deleted")):
            return False
        if group_filter is not None and item.get("group") != group_filter:
            return False
        return matches_all(item, filters)


class InMemorySession:
    """Self-contained session implementing every collaborator contract."""

    def __init__(
        self,
        frames: Iterable[FrameData],
        collection: SerializedCollection | None = None,
        journal: EventJournal | None = None,
    ) -> None:
        self.history = InMemoryHistory()
        self.annotations = InMemoryAnnotations(self.history)
        self.frames = InMemoryFrames(frames)
        self.states = InMemoryStates(self.annotations)
        self.logger = journal if journal is not None else EventJournal()
        if collection is not None:
            self.annotations.load(collection)

    def to_dict(self) -> dict[str, Any]:
        return {
            "frames": [frame.to_dict() for frame in self.frames.records()],
            "annotations": self.annotations.collection.to_dict(),
        }


def _is_client_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _frame_from_dict(payload: Any, index: int) -> FrameData:
    if not isinstance(payload, dict):
        raise DataError(f"Frame entry {index} must be an object")
    try:
        return FrameData(
            width=int(payload["width"]),
            height=int(payload["height"]),
            number=int(payload.get("number", index)),
            deleted=bool(payload.get("deleted", False)),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise DataError(f"Malformed frame entry {index}: {exc}") from exc


def session_from_dict(
    payload: dict[str, Any],
    journal: EventJournal | None = None,
) -> InMemorySession:
    """Build a session from `{"frames": [...], "annotations": {...}}`."""

    frames = payload.get("frames")
    if not isinstance(frames, list):
        raise DataError("Session payload must contain a 'frames' list")
    annotations = payload.get("annotations", {})
    if not isinstance(annotations, dict):
        raise DataError("Session 'annotations' must be an object")

    return InMemorySession(
        frames=[_frame_from_dict(item, index) for index, item in enumerate(frames)],
        collection=SerializedCollection.from_dict(annotations),
        journal=journal,
    )


def load_session(path: Path, journal: EventJournal | None = None) -> InMemorySession:
    """Load a JSON session file."""

    if not path.exists():
        raise FileNotFoundError(f"Session file does not exist: {path}")
    payload = read_json(path)
    if not isinstance(payload, dict):
        raise DataError(f"Session file must hold a JSON object: {path}")
    return session_from_dict(payload, journal=journal)


def dump_session(session: InMemorySession, path: Path) -> None:
    """Write a session back to disk atomically."""

    atomic_write_json(path, session.to_dict())
