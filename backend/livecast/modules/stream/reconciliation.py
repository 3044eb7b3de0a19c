"""Recording reconciliation for streams.

Bridges the pure recording logic (locator, matcher) and the stream tables:
single-stream backfill after a broadcast ends, and the bulk pass that scans
the whole channel history.
"""

import logging
import time
from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError

from livecast.core.config import settings
from livecast.core.logging import log_info, log_warning
from livecast.core.metrics import (
    RECORDING_MATCHES_TOTAL,
    RECORDING_RECONCILE_DURATION_SECONDS,
    RECORDING_STORAGE_ERRORS_TOTAL,
)
from livecast.core.storage import (
    StorageAccessError,
    StorageObject,
    StorageService,
    get_storage_service,
)
from livecast.core.tracing import add_span_attributes, create_span
from livecast.modules.recording.locator import RecordingLocator
from livecast.modules.recording.matcher import (
    StreamCandidate,
    collect_artifacts,
    match_recordings,
)
from livecast.modules.recording.paths import ChannelIdentity, build_playback_url
from livecast.modules.stream.models import Stream
from livecast.modules.stream.repository import StreamRepository

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Summary of a bulk pass."""
    matched: int = 0
    exact: int = 0
    same_day: int = 0
    artifacts: int = 0
    orphaned: int = 0
    pages: int = 0
    partial: bool = False
    truncated: bool = False
    skipped: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class ReconciliationService:
    """Finds recordings in storage and writes them onto streams."""

    def __init__(
        self,
        storage: StorageService,
        channel: Optional[ChannelIdentity],
        public_base_url: Optional[str],
        page_size: int = 1000,
        max_pages: Optional[int] = None,
    ):
        self.storage = storage
        self.channel = channel
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.page_size = page_size
        self.max_pages = max_pages
        self.locator = RecordingLocator(storage, page_size=page_size, max_pages=max_pages)

    @property
    def is_configured(self) -> bool:
        return self.channel is not None

    def playback_url_for(self, recording_path: Optional[str]) -> Optional[str]:
        """Public manifest URL, or None when there is no confirmed path."""
        if not recording_path or not self.public_base_url:
            return None
        return build_playback_url(recording_path, self.public_base_url)

    async def backfill_stream(
        self,
        stream: Stream,
        repository: StreamRepository,
        broaden: bool = True,
    ) -> bool:
        """Look up and attach the recording of a single ended stream.

        Recordings already on a stream, and manifests in the start minute of
        another stream still waiting for its recording, are never taken.

        Args:
            stream: OFFLINE stream without a recording
            repository: Stream repository
            broaden: Scan the whole day when the start minute holds nothing

        Returns:
            bool: True if a recording was attached
        """
        if not self.is_configured or not stream.needs_recording():
            return False

        claimed = await repository.get_claimed_recording_paths()
        reserved = await repository.get_pending_start_minutes(exclude_stream_id=stream.id)
        located = await self.locator.locate(
            self.channel,
            stream.started_at,
            exclude=claimed,
            reserved_minutes=reserved,
            broaden=broaden,
        )
        if located is None:
            return False

        if not await self._attach(repository, stream, located.session_path):
            return False
        log_info(
            logger,
            "Recording attached to stream",
            stream_id=str(stream.id),
            recording_path=located.session_path,
        )
        return True

    async def _attach(
        self, repository: StreamRepository, stream: Stream, session_path: str
    ) -> bool:
        """Write the recording; losing a race on the unique path index is a miss."""
        try:
            await repository.set_recording(
                stream, session_path, self.playback_url_for(session_path)
            )
        except IntegrityError:
            log_warning(
                logger,
                "Recording already attached to another stream",
                stream_id=str(stream.id),
                recording_path=session_path,
            )
            return False
        return True

    async def _list_channel(self, result: ReconciliationResult) -> list[StorageObject]:
        entries: list[StorageObject] = []
        next_token = None
        try:
            async for page in self.storage.iter_pages(
                self.channel.base_prefix,
                max_keys=self.page_size,
                max_pages=self.max_pages,
            ):
                result.pages += 1
                entries.extend(page.entries)
                next_token = page.next_continuation_token
        except StorageAccessError as e:
            result.partial = True
            RECORDING_STORAGE_ERRORS_TOTAL.labels(operation=e.operation).inc()
            log_warning(
                logger,
                "Channel listing failed part way, matching exact keys only",
                prefix=e.prefix,
                pages=result.pages,
                entries=len(entries),
                error=e.message,
            )
        if next_token and not result.partial:
            # Page cap reached with keys left: the rest of the history is unseen
            result.partial = True
            result.truncated = True
            log_warning(
                logger,
                "Channel listing hit the page cap, matching exact keys only",
                pages=result.pages,
                max_pages=self.max_pages,
            )
        return entries

    async def reconcile_channel(self, repository: StreamRepository) -> ReconciliationResult:
        """Match every unmatched OFFLINE stream against the channel history.

        Listing pages are collected in full before matching. If a page
        fails, or the page cap is hit with keys left, the entries collected
        so far are matched by exact minute only and the result is flagged
        partial. A write that loses the unique path race is skipped.
        """
        result = ReconciliationResult()
        if not self.is_configured:
            result.skipped = True
            return result

        started = time.perf_counter()
        base_prefix = self.channel.base_prefix
        with create_span(
            "recording.reconcile",
            attributes={"recording.channel_id": self.channel.channel_id},
        ):
            entries = await self._list_channel(result)

            claimed = await repository.get_claimed_recording_paths()
            artifacts = [
                artifact
                for artifact in collect_artifacts(entries, base_prefix)
                if artifact.session_path not in claimed
            ]
            streams = await repository.get_offline_without_recording()
            by_id = {stream.id: stream for stream in streams if stream.started_at is not None}
            candidates = [
                StreamCandidate(id=stream.id, started_at=stream.started_at)
                for stream in by_id.values()
            ]

            match = match_recordings(candidates, artifacts, allow_fallback=not result.partial)
            persisted = set()
            for stream_id, session_path in match.assignments.items():
                if await self._attach(repository, by_id[stream_id], session_path):
                    persisted.add(stream_id)

            result.artifacts = len(artifacts)
            result.matched = len(persisted)
            result.exact = sum(1 for stream_id in match.exact if stream_id in persisted)
            result.same_day = sum(1 for stream_id in match.same_day if stream_id in persisted)
            result.orphaned = len(match.orphaned)

            RECORDING_MATCHES_TOTAL.labels(strategy="exact").inc(result.exact)
            RECORDING_MATCHES_TOTAL.labels(strategy="same_day").inc(result.same_day)
            add_span_attributes({
                "recording.pages": result.pages,
                "recording.matched": result.matched,
                "recording.partial": result.partial,
            })

        RECORDING_RECONCILE_DURATION_SECONDS.observe(time.perf_counter() - started)
        log_info(
            logger,
            "Recording reconciliation finished",
            pending_streams=len(candidates),
            **result.to_dict(),
        )
        return result


def resolve_public_base_url(storage: StorageService) -> Optional[str]:
    """Configured recording base URL, else the bucket's public root."""
    if settings.RECORDING_PUBLIC_BASE_URL:
        return settings.RECORDING_PUBLIC_BASE_URL.rstrip("/")
    base = storage.public_url("").rstrip("/")
    return base or None


def channel_from_settings() -> Optional[ChannelIdentity]:
    if not settings.IVS_ACCOUNT_ID or not settings.IVS_CHANNEL_ID:
        return None
    return ChannelIdentity(
        account_id=settings.IVS_ACCOUNT_ID,
        channel_id=settings.IVS_CHANNEL_ID,
        root_prefix=settings.RECORDING_ROOT_PREFIX,
    )


def get_reconciliation_service() -> ReconciliationService:
    """Build the reconciler from settings."""
    storage = get_storage_service()
    return ReconciliationService(
        storage=storage,
        channel=channel_from_settings(),
        public_base_url=resolve_public_base_url(storage),
        page_size=settings.RECORDING_LIST_PAGE_SIZE,
        max_pages=settings.RECORDING_LIST_MAX_PAGES or None,
    )
