"""
Push records to a target adapter in fixed-size batches
"""

from typing import List, Any, Optional
import logging

from core.config import settings
from ingestion.events import EventLog
from ingestion.retry import RetryPolicy
from schemas.pipeline import ErrorHandling

logger = logging.getLogger(__name__)


class BatchLoader:
    """
    Upload records sequentially in batches.

    Each batch gets its own retry sequence. With fail_on_error off a batch
    that never succeeds is skipped and loading continues with the next one.
    """

    def __init__(
        self,
        adapter: Any,
        error_handling: ErrorHandling,
        events: EventLog,
        batch_size: Optional[int] = None
    ):
        self.adapter = adapter
        self.events = events
        self.retry = RetryPolicy(error_handling, events)
        self.batch_size = batch_size or settings.DEFAULT_ITEMS_PER_PAGE

    async def load(self, records: List[Any]) -> int:
        """
        Upload records in order.

        Returns:
            Number of records in batches that were uploaded successfully

        Raises:
            Exception: The adapter's last error when fail_on_error is on
        """
        loaded = 0

        for offset in range(0, len(records), self.batch_size):
            batch = records[offset:offset + self.batch_size]

            outcome = await self.retry.execute(
                lambda: self.adapter.upload(batch),
                "upload"
            )
            if not outcome.succeeded:
                logger.warning(f"Skipping batch at offset {offset} ({len(batch)} records)")
                continue

            loaded += len(batch)
            self.events.load(
                f"Uploaded batch at offset {offset}, count: {len(batch)}",
                len(batch)
            )

        logger.info(f"Loaded {loaded}/{len(records)} records in batches of {self.batch_size}")
        return loaded
