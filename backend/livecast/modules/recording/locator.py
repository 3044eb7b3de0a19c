"""Single-stream recording lookup.

Given a channel and the approximate start of a broadcast, find the session
directory that holds the finished manifest. Recordings show up minutes after
a broadcast ends, so "not found" is a normal answer, not an error.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import AbstractSet, Optional

from livecast.core.logging import log_info, log_warning
from livecast.core.metrics import RECORDING_LOOKUPS_TOTAL, RECORDING_STORAGE_ERRORS_TOTAL
from livecast.core.storage import MAX_KEYS_PER_PAGE, StorageAccessError, StorageService
from livecast.core.tracing import add_span_attributes, create_span
from livecast.modules.recording.paths import (
    ChannelIdentity,
    MinuteKey,
    RecordingPath,
    day_prefixes,
    is_manifest_key,
    minute_prefixes,
    parse_recording_key,
    to_utc,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocatedRecording:
    """A manifest that was observed in a listing response."""
    path: RecordingPath
    matched_prefix: str
    broadened: bool = False

    @property
    def session_path(self) -> str:
        return self.path.session_path


class RecordingLocator:
    """Searches object storage for the manifest of one broadcast."""

    def __init__(
        self,
        storage: StorageService,
        page_size: int = MAX_KEYS_PER_PAGE,
        max_pages: Optional[int] = None,
        broaden_to_day: bool = True,
    ):
        self.storage = storage
        self.page_size = page_size
        self.max_pages = max_pages
        self.broaden_to_day = broaden_to_day

    async def locate(
        self,
        channel: ChannelIdentity,
        started_at: datetime,
        exclude: AbstractSet[str] = frozenset(),
        reserved_minutes: AbstractSet[MinuteKey] = frozenset(),
        broaden: Optional[bool] = None,
    ) -> Optional[LocatedRecording]:
        """Find the recording for a broadcast that started around ``started_at``.

        Minute-level prefixes are tried first in every padding variant. When
        none holds a manifest, the whole day is scanned and the manifest whose
        path-embedded start is closest to ``started_at`` wins. Session paths
        in ``exclude`` belong to other streams and are never returned. The
        day scan also skips manifests whose minute is in ``reserved_minutes``:
        those are exact matches for other streams still waiting for theirs. If
        another of them started in the same minute as this one, nothing is
        returned and the bulk pass decides.

        Storage failures are logged and reported as "not found".

        Args:
            channel: Channel whose recordings are searched
            started_at: Approximate broadcast start
            exclude: Session paths already claimed by other streams
            reserved_minutes: Start minutes of other unmatched streams
            broaden: Override ``broaden_to_day`` for this call

        Returns:
            Optional[LocatedRecording]: The manifest found, or None
        """
        started_at = to_utc(started_at)
        base_prefix = channel.base_prefix
        if broaden is None:
            broaden = self.broaden_to_day
        own_minute = (
            started_at.year, started_at.month, started_at.day,
            started_at.hour, started_at.minute,
        )

        with create_span(
            "recording.locate",
            attributes={
                "recording.channel_id": channel.channel_id,
                "recording.started_at": started_at.isoformat(),
            },
        ):
            try:
                located = None
                # Another waiting stream shares this minute: leave it to the bulk pass
                if own_minute not in reserved_minutes:
                    located = await self._locate_exact(base_prefix, started_at, exclude)
                    if located is None and broaden:
                        located = await self._locate_same_day(
                            base_prefix, started_at, exclude, reserved_minutes
                        )
            except StorageAccessError as e:
                RECORDING_LOOKUPS_TOTAL.labels(outcome="storage_error").inc()
                RECORDING_STORAGE_ERRORS_TOTAL.labels(operation=e.operation).inc()
                log_warning(
                    logger,
                    "Recording lookup failed, treating as not found",
                    channel_id=channel.channel_id,
                    started_at=started_at.isoformat(),
                    prefix=e.prefix,
                    error=e.message,
                )
                return None

            if located is None:
                RECORDING_LOOKUPS_TOTAL.labels(outcome="not_found").inc()
                add_span_attributes({"recording.found": False})
                log_info(
                    logger,
                    "Recording not available yet",
                    channel_id=channel.channel_id,
                    started_at=started_at.isoformat(),
                )
                return None

            RECORDING_LOOKUPS_TOTAL.labels(outcome="found").inc()
            add_span_attributes({
                "recording.found": True,
                "recording.broadened": located.broadened,
            })
            log_info(
                logger,
                "Recording located",
                session_path=located.session_path,
                matched_prefix=located.matched_prefix,
                broadened=located.broadened,
            )
            return located

    async def _manifests_under(self, prefix: str, base_prefix: str) -> list[RecordingPath]:
        """Every parseable manifest under ``prefix``, in listing order."""
        manifests: list[RecordingPath] = []
        async for page in self.storage.iter_pages(
            prefix, max_keys=self.page_size, max_pages=self.max_pages
        ):
            for entry in page.entries:
                if not is_manifest_key(entry.key):
                    continue
                parsed = parse_recording_key(entry.key, base_prefix)
                if parsed is not None:
                    manifests.append(parsed)
        return manifests

    async def _locate_exact(
        self,
        base_prefix: str,
        started_at: datetime,
        exclude: AbstractSet[str],
    ) -> Optional[LocatedRecording]:
        for prefix in minute_prefixes(base_prefix, started_at):
            for manifest in await self._manifests_under(prefix, base_prefix):
                if manifest.session_path not in exclude:
                    return LocatedRecording(path=manifest, matched_prefix=prefix)
        return None

    async def _locate_same_day(
        self,
        base_prefix: str,
        started_at: datetime,
        exclude: AbstractSet[str],
        reserved_minutes: AbstractSet[MinuteKey],
    ) -> Optional[LocatedRecording]:
        best: Optional[tuple[float, str, RecordingPath, str]] = None
        for prefix in day_prefixes(base_prefix, started_at):
            for manifest in await self._manifests_under(prefix, base_prefix):
                if manifest.session_path in exclude or manifest.minute_key in reserved_minutes:
                    continue
                distance = abs((manifest.started_at - started_at).total_seconds())
                candidate = (distance, manifest.session_path, manifest, prefix)
                if best is None or candidate[:2] < best[:2]:
                    best = candidate

        if best is None:
            return None
        _, _, manifest, prefix = best
        return LocatedRecording(path=manifest, matched_prefix=prefix, broadened=True)
