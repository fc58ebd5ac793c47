"""DownloadCoordinator: full or incremental, paginated prompt snapshots."""
import logging

from promptsync.models.payloads import DownloadResult, PromptRecord
from promptsync.store.base import PromptStore
from promptsync.sync.clock import Clock, utcnow
from promptsync.sync.queries import DownloadQuery

logger = logging.getLogger(__name__)


class DownloadCoordinator:
    """Read-only; safe to call concurrently and repeatedly."""

    def __init__(self, store: PromptStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    def download(self, user_id: str, query: DownloadQuery) -> DownloadResult:
        """
        Return one page of the user's prompts.

        Without query.last_sync this is a full sync; with it, only prompts
        whose updated_at is strictly after the watermark. sync_timestamp is
        taken before the read so the client can pass it as the next lastSync
        without missing writes that land while this page is being built.
        """
        sync_timestamp = self.clock()

        if query.incremental:
            page = self.store.get_updated_since(
                user_id, query.last_sync, offset=query.offset, limit=query.limit
            )
        else:
            page = self.store.get_all_for_sync(
                user_id, offset=query.offset, limit=query.limit
            )

        logger.info(
            "Download user=%s mode=%s offset=%d limit=%d returned=%d total=%d",
            user_id,
            "incremental" if query.incremental else "full",
            query.offset,
            query.limit,
            len(page.records),
            page.total,
        )

        return DownloadResult(
            prompts=[PromptRecord.model_validate(p) for p in page.records],
            total=page.total,
            offset=query.offset,
            limit=query.limit,
            last_sync=query.last_sync_raw,
            sync_timestamp=sync_timestamp,
        )
