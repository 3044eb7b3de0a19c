"""Recording path parsing and prefix construction.

The managed video service writes each recording session to

    {root}/{account_id}/{channel_id}/{year}/{month}/{day}/{hour}/{minute}/{session_id}/media/hls/master.m3u8

where month, day, hour and minute are sometimes zero-padded and sometimes
not. Keys are parsed into named fields here; anything that does not have the
expected shape is rejected rather than indexed blindly.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

MANIFEST_SUBPATH = "media/hls/master.m3u8"
MANIFEST_SUFFIX = "/" + MANIFEST_SUBPATH

# (year, month, day, hour, minute) in UTC
MinuteKey = tuple[int, int, int, int, int]

# year, month, day, hour, minute, session_id
_SESSION_SEGMENT_COUNT = 6


@dataclass(frozen=True)
class ChannelIdentity:
    """Account/channel pair that owns every recording of this deployment."""
    account_id: str
    channel_id: str
    root_prefix: str = "ivs/v1"

    @property
    def base_prefix(self) -> str:
        """Listing prefix for the whole channel history, with trailing slash."""
        root = self.root_prefix.strip("/")
        return f"{root}/{self.account_id}/{self.channel_id}/"


@dataclass(frozen=True)
class RecordingPath:
    """A manifest key broken into its path-embedded fields."""
    base_prefix: str
    year: int
    month: int
    day: int
    hour: int
    minute: int
    session_id: str
    raw_segments: tuple[str, ...]

    @property
    def session_path(self) -> str:
        """Storage-relative directory that holds the recording (no manifest suffix)."""
        return self.base_prefix + "/".join(self.raw_segments)

    @property
    def manifest_key(self) -> str:
        return self.session_path + MANIFEST_SUFFIX

    @property
    def minute_key(self) -> MinuteKey:
        return (self.year, self.month, self.day, self.hour, self.minute)

    @property
    def recorded_on(self) -> date:
        return date(self.year, self.month, self.day)

    @property
    def started_at(self) -> datetime:
        """Session start as encoded in the path, minute precision, UTC."""
        return datetime(
            self.year, self.month, self.day, self.hour, self.minute,
            tzinfo=timezone.utc,
        )


def _parse_int(segment: str, low: int, high: int) -> Optional[int]:
    if not segment.isdigit():
        return None
    value = int(segment)
    if value < low or value > high:
        return None
    return value


def parse_recording_key(key: str, base_prefix: str) -> Optional[RecordingPath]:
    """Parse a manifest key (or a bare session path) under ``base_prefix``.

    Returns None for keys outside the prefix, keys with an unexpected number
    of segments, non-numeric or out-of-range date parts, and impossible
    calendar dates.
    """
    if not base_prefix.endswith("/"):
        base_prefix += "/"
    if not key.startswith(base_prefix):
        return None

    relative = key[len(base_prefix):]
    if relative.endswith(MANIFEST_SUFFIX):
        relative = relative[: -len(MANIFEST_SUFFIX)]
    relative = relative.strip("/")

    segments = tuple(relative.split("/")) if relative else ()
    if len(segments) != _SESSION_SEGMENT_COUNT:
        return None

    year_s, month_s, day_s, hour_s, minute_s, session_id = segments
    year = _parse_int(year_s, 1970, 9999)
    month = _parse_int(month_s, 1, 12)
    day = _parse_int(day_s, 1, 31)
    hour = _parse_int(hour_s, 0, 23)
    minute = _parse_int(minute_s, 0, 59)
    if None in (year, month, day, hour, minute) or not session_id:
        return None

    try:
        date(year, month, day)
    except ValueError:
        return None

    return RecordingPath(
        base_prefix=base_prefix,
        year=year,
        month=month,
        day=day,
        hour=hour,
        minute=minute,
        session_id=session_id,
        raw_segments=segments,
    )


def is_manifest_key(key: str) -> bool:
    return key.endswith(MANIFEST_SUFFIX)


def to_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_prefixes(base_prefix: str, instant: datetime) -> list[str]:
    """Day-level prefixes for ``instant``: non-padded first, then zero-padded."""
    instant = to_utc(instant)
    if not base_prefix.endswith("/"):
        base_prefix += "/"

    plain = f"{base_prefix}{instant.year}/{instant.month}/{instant.day}/"
    padded = f"{base_prefix}{instant.year}/{instant.month:02d}/{instant.day:02d}/"
    return [plain] if plain == padded else [plain, padded]


def minute_prefixes(base_prefix: str, instant: datetime) -> list[str]:
    """Minute-level prefixes for ``instant``.

    Month/day and hour/minute are padded independently, so up to four
    variants come back, ordered from fully non-padded to fully padded.
    """
    instant = to_utc(instant)
    prefixes: list[str] = []
    time_forms = (
        (str(instant.hour), str(instant.minute)),
        (f"{instant.hour:02d}", f"{instant.minute:02d}"),
    )
    for day_prefix in day_prefixes(base_prefix, instant):
        for hour, minute in time_forms:
            candidate = f"{day_prefix}{hour}/{minute}/"
            if candidate not in prefixes:
                prefixes.append(candidate)
    return prefixes


def build_playback_url(recording_path: str, public_base_url: str) -> str:
    """Public HLS URL of a recording.

    Idempotent: passing a path that already ends with the manifest, or the
    URL this function returned, yields the same URL.
    """
    base = public_base_url.rstrip("/")
    path = recording_path
    if path.startswith(base + "/"):
        path = path[len(base) + 1:]
    path = path.strip("/")
    if not path.endswith(MANIFEST_SUBPATH):
        path = f"{path}/{MANIFEST_SUBPATH}"
    return f"{base}/{path}"
