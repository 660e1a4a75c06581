"""Dataclass-based configuration schema for framechain."""

from dataclasses import dataclass


@dataclass(slots=True)
class RunConfig:
    """Timing and formatting options for one pipeline run."""

    progress_interval: float = 0.1
    init_pause: float = 0.5
    commit_pause: float = 1.5
    chain_separator: str = " => "
    audit_event: str = "annotations:action"

