"""Bulk stream-to-recording matching.

Pure functions: no storage access, no database access. The caller provides
the unmatched streams and the artifacts from a channel listing; the result
says which stream gets which session path.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Optional

from livecast.core.storage import StorageObject
from livecast.modules.recording.paths import (
    MinuteKey,
    RecordingPath,
    is_manifest_key,
    parse_recording_key,
    to_utc,
)


@dataclass(frozen=True)
class StreamCandidate:
    """An OFFLINE stream that still lacks a recording."""
    id: Any
    started_at: datetime

    @property
    def minute_key(self) -> MinuteKey:
        started = to_utc(self.started_at)
        return (started.year, started.month, started.day, started.hour, started.minute)

    @property
    def started_on(self) -> date:
        return to_utc(self.started_at).date()


@dataclass(frozen=True)
class RecordingArtifact:
    """A manifest observed in storage. Not persisted."""
    path: RecordingPath
    last_modified: datetime
    size: int = 0

    @property
    def key(self) -> str:
        return self.path.manifest_key

    @property
    def session_path(self) -> str:
        return self.path.session_path

    @property
    def modified_on(self) -> date:
        return to_utc(self.last_modified).date()


@dataclass
class MatchResult:
    """Outcome of a matching pass."""
    assignments: dict[Any, str] = field(default_factory=dict)
    exact: list[Any] = field(default_factory=list)
    same_day: list[Any] = field(default_factory=list)
    orphaned: list[str] = field(default_factory=list)

    @property
    def matched_count(self) -> int:
        return len(self.assignments)


def collect_artifacts(
    entries: Iterable[StorageObject],
    base_prefix: str,
) -> list[RecordingArtifact]:
    """Turn listing entries into artifacts.

    Only manifest keys that parse under ``base_prefix`` are kept; a session
    seen twice is kept once.
    """
    artifacts: list[RecordingArtifact] = []
    seen: set[str] = set()
    for entry in entries:
        if not is_manifest_key(entry.key):
            continue
        parsed = parse_recording_key(entry.key, base_prefix)
        if parsed is None or parsed.session_path in seen:
            continue
        seen.add(parsed.session_path)
        artifacts.append(RecordingArtifact(
            path=parsed,
            last_modified=to_utc(entry.last_modified),
            size=entry.size,
        ))
    return artifacts


def _artifact_order(artifact: RecordingArtifact) -> tuple[datetime, str]:
    return (to_utc(artifact.last_modified), artifact.key)


def match_recordings(
    streams: Iterable[StreamCandidate],
    artifacts: Iterable[RecordingArtifact],
    allow_fallback: bool = True,
) -> MatchResult:
    """Assign artifacts to streams one-to-one.

    The exact pass runs over every artifact first: an artifact whose
    path-embedded minute has exactly one unassigned stream gets that
    stream. Leftover artifacts then go to the unassigned stream that
    started on the artifact's last-modified day, closest in time, lowest
    id on a tie. Artifacts that find no stream are orphaned.

    Args:
        streams: Unmatched streams
        artifacts: Parsed manifests from storage
        allow_fallback: Run the same-day pass (disabled for partial listings)

    Returns:
        MatchResult: Stream id to session path, plus per-strategy detail
    """
    ordered = sorted(artifacts, key=_artifact_order)

    by_minute: dict[MinuteKey, list[StreamCandidate]] = defaultdict(list)
    by_day: dict[date, list[StreamCandidate]] = defaultdict(list)
    for stream in streams:
        by_minute[stream.minute_key].append(stream)
        by_day[stream.started_on].append(stream)

    result = MatchResult()
    leftovers: list[RecordingArtifact] = []

    for artifact in ordered:
        bucket = [s for s in by_minute.get(artifact.path.minute_key, ()) if s.id not in result.assignments]
        if len(bucket) == 1:
            stream = bucket[0]
            result.assignments[stream.id] = artifact.session_path
            result.exact.append(stream.id)
        else:
            leftovers.append(artifact)

    for artifact in leftovers:
        stream = None
        if allow_fallback:
            stream = _closest_same_day(artifact, by_day, result.assignments)
        if stream is None:
            result.orphaned.append(artifact.session_path)
            continue
        result.assignments[stream.id] = artifact.session_path
        result.same_day.append(stream.id)

    return result


def _closest_same_day(
    artifact: RecordingArtifact,
    by_day: dict[date, list[StreamCandidate]],
    assigned: dict[Any, str],
) -> Optional[StreamCandidate]:
    modified = to_utc(artifact.last_modified)
    candidates = [s for s in by_day.get(artifact.modified_on, ()) if s.id not in assigned]
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda s: (abs((to_utc(s.started_at) - modified).total_seconds()), str(s.id)),
    )
