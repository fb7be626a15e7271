"""Data models describing a concatenation job and its segments."""
from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

_EMBEDDED_INTEGER_RE = re.compile(r"(\d+)")


def segment_order_key(name: str) -> int:
    """First integer embedded in ``name``; ``0`` when there is none."""

    match = _EMBEDDED_INTEGER_RE.search(name or "")
    return int(match.group(1)) if match else 0


class JobState(str, Enum):
    STAGING = "staging"
    INVOKING = "invoking"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class Segment:
    """One staged input file contributing to the concatenated output.

    ``source_url`` is set for segments downloaded from a remote URL and
    ``None`` for uploaded files.
    """

    original_name: str
    local_path: Path
    size_bytes: int
    sequence_index: int
    source_url: Optional[str] = None

    @property
    def order_key(self) -> int:
        return segment_order_key(self.original_name)


@dataclass(slots=True)
class Job:
    id: str
    work_dir: Path
    segments: List[Segment] = field(default_factory=list)
    state: JobState = JobState.STAGING
    created_at: float = field(default_factory=time.monotonic)
    diagnostic: Optional[str] = None
    cleaned_up: bool = False

    @property
    def manifest_path(self) -> Path:
        return self.work_dir / "manifest.txt"

    @property
    def output_path(self) -> Path:
        return self.work_dir / f"audiobook_{self.id}.mp3"

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.created_at) * 1000


@dataclass(frozen=True, slots=True)
class Succeeded:
    output_path: Path


@dataclass(frozen=True, slots=True)
class Failed:
    diagnostic: str
    timed_out: bool = False


TransformResult = Union[Succeeded, Failed]
