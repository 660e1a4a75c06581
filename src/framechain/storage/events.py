"""Append-only audit journal for pipeline runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
import time
from typing import Any, Iterator
from uuid import uuid4


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class AuditEvent:
    """An open journal entry, closed once with a final status."""

    journal: EventJournal
    event_type: str
    event_id: str
    payload: dict[str, Any]
    started: float = field(default_factory=time.perf_counter)
    status: str | None = None

    @property
    def closed(self) -> bool:
        return self.status is not None

    def close(self, status: str = "succeeded", **fields: Any) -> None:
        """Record the event outcome. Closing twice has no effect."""

        if self.closed:
            return
        self.status = status
        self.journal.append(
            {
                "event": self.event_type,
                "event_id": self.event_id,
                "phase": "closed",
                "status": status,
                "duration_seconds": time.perf_counter() - self.started,
                **fields,
            }
        )


class EventJournal:
    """Keeps audit records in memory and optionally appends them to JSONL."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self.records: list[dict[str, Any]] = []

    def log(self, event_type: str, payload: dict[str, Any]) -> AuditEvent:
        """Open a bracketing event; the caller closes it when work ends."""

        event = AuditEvent(
            journal=self,
            event_type=event_type,
            event_id=uuid4().hex,
            payload=dict(payload),
        )
        self.append(
            {
                "event": event_type,
                "event_id": event.event_id,
                "phase": "opened",
                **payload,
            }
        )
        return event

    def append(self, payload: dict[str, Any]) -> dict[str, Any]:
        envelope: dict[str, Any] = {"ts": _now(), **payload}
        self.records.append(envelope)
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(envelope, sort_keys=True) + "\n")
        return envelope


def iter_journal(path: Path) -> Iterator[dict[str, Any]]:
    """Iterate parsed records from a JSONL journal file."""

    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            text = line.strip()
            if not text:
                continue
            payload = json.loads(text)
            if not isinstance(payload, dict):
                raise TypeError(f"Journal line is not a JSON object: {path}")
            yield payload
