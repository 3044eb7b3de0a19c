"""Recording discovery: path parsing, single-stream lookup and bulk matching."""

from livecast.modules.recording.locator import LocatedRecording, RecordingLocator
from livecast.modules.recording.matcher import (
    MatchResult,
    RecordingArtifact,
    StreamCandidate,
    collect_artifacts,
    match_recordings,
)
from livecast.modules.recording.paths import (
    ChannelIdentity,
    RecordingPath,
    build_playback_url,
    parse_recording_key,
)

__all__ = [
    "ChannelIdentity",
    "LocatedRecording",
    "MatchResult",
    "RecordingArtifact",
    "RecordingLocator",
    "RecordingPath",
    "StreamCandidate",
    "build_playback_url",
    "collect_artifacts",
    "match_recordings",
    "parse_recording_key",
]
