"""
Paginated extraction: drives a source adapter through repeated page fetches.

This module provides:
- Offset and cursor pagination behind one Offset union (Position | Cursor)
- Page-size negotiation between connector and adapter
- Total-item cap with tail truncation
- Wall-clock timeout checked before every fetch attempt (graceful truncation)
- Per-page retry via RetryPolicy and request spacing via RateLimiter
"""

from dataclasses import dataclass
from typing import List, Any, Optional, Union, Callable
import logging

from core.config import settings
from core.exceptions import DownloadTimeoutError
from ingestion.base import PageOptions, PageResult, PaginationType
from ingestion.events import EventLog
from ingestion.retry import RetryPolicy
from ingestion.timing import RateLimiter, now_ms
from schemas.connector import Connector
from schemas.pipeline import ErrorHandling, RateLimiting

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Position:
    """Numeric offset computed by the engine as a running total"""
    value: int = 0

    def advance(self, page_size: int) -> "Position":
        return Position(self.value + page_size)

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Cursor:
    """Opaque next-page token supplied by the adapter; None requests the first page"""
    value: Any = None

    def __str__(self) -> str:
        return str(self.value)


Offset = Union[Position, Cursor]


def parse_position(raw: Optional[str]) -> int:
    """Numeric value of a configured offset; anything unparseable starts at 0"""
    if raw is None:
        return 0
    try:
        return int(str(raw).strip())
    except ValueError:
        return 0


def initial_offset(pagination_type: Optional[PaginationType], page_offset_key: Optional[str]) -> Offset:
    if pagination_type == PaginationType.CURSOR:
        return Cursor(page_offset_key)
    return Position(parse_position(page_offset_key))


def pagination_type_of(adapter: Any) -> Optional[PaginationType]:
    raw = getattr(adapter, "pagination_type", None)
    if raw is None:
        return None
    return PaginationType(raw)


def coerce_page(result: Any) -> PageResult:
    """Accept PageResult or the {"data": [...], "options": {"nextOffset": ...}} shape"""
    if isinstance(result, PageResult):
        if result.next_offset is None and result.options:
            next_offset = result.options.get("nextOffset", result.options.get("next_offset"))
            return PageResult(data=list(result.data), next_offset=next_offset, options=result.options)
        return result

    if isinstance(result, dict):
        options = result.get("options") or {}
        next_offset = result.get("next_offset", options.get("nextOffset", options.get("next_offset")))
        return PageResult(data=list(result.get("data") or []), next_offset=next_offset, options=options)

    raise TypeError(f"Adapter download returned unsupported page type {type(result).__name__}")


class PaginatedExtractor:
    """
    Fetches every record a connector asks for from one source adapter.

    Stop conditions:
    - adapter declares no pagination type (single fetch)
    - accumulated records reach the connector limit
    - cursor adapter reports no next offset
    - offset adapter returns a page whose size differs from the page size
    - the timeout elapsed before a fetch attempt
    - a page could not be fetched and fail_on_error is off

    Attributes:
        page_size: Effective items per page after negotiation
        total_limit: Maximum number of records returned
        timeout_ms: Extraction budget, measured from the start of fetch_all
    """

    def __init__(
        self,
        connector: Connector,
        adapter: Any,
        error_handling: ErrorHandling,
        rate_limiting: Optional[RateLimiting],
        events: EventLog,
        timeout_ms: Optional[int] = None,
        clock: Callable[[], float] = now_ms
    ):
        self.connector = connector
        self.adapter = adapter
        self.events = events
        self.pagination_type = pagination_type_of(adapter)
        self.retry = RetryPolicy(error_handling, events)
        self.limiter = RateLimiter(
            rate_limiting.requests_per_second if rate_limiting else float("inf"),
            clock=clock
        )
        self.page_size = self.resolve_page_size()
        self.total_limit = (
            connector.limit if connector.limit is not None else settings.TOTAL_ITEMS_LIMIT
        )
        if timeout_ms is None:
            timeout_ms = connector.timeout if connector.timeout is not None else settings.DOWNLOAD_TIMEOUT_MS
        self.timeout_ms = timeout_ms
        self._clock = clock
        self._started_at: Optional[float] = None

    def resolve_page_size(self) -> int:
        """Connector page size clamped to the adapter maximum, with fallbacks"""
        requested = self.connector.items_per_page
        adapter_max = getattr(self.adapter, "max_items_per_page", None)

        if requested is None:
            if adapter_max:
                self.events.info(
                    f"Since the number of items per page was not defined, the maximum items "
                    f"per page defined by the adapter ({adapter_max}) will be used instead."
                )
                return adapter_max
            return settings.DEFAULT_ITEMS_PER_PAGE

        if adapter_max and requested > adapter_max:
            self.events.info(
                f"The number of items per page ({requested}) is greater than the maximum "
                f"allowed by the adapter ({adapter_max}), so it will be reduced to the "
                f"maximum allowed by the adapter"
            )
            return adapter_max

        return requested

    def elapsed_ms(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    def _check_timeout(self, attempt: int) -> None:
        if self.elapsed_ms() >= self.timeout_ms:
            raise DownloadTimeoutError(
                f"Download timeout exceeded ({self.timeout_ms}ms)",
                context={"connector_id": self.connector.id, "attempt": attempt + 1}
            )

    async def _download(self, page: PageOptions) -> PageResult:
        return coerce_page(await self.adapter.download(page))

    async def fetch_all(self) -> List[Any]:
        """
        Run the fetch loop to completion.

        Returns:
            Records in fetch order, at most total_limit of them

        Raises:
            Exception: The adapter's last error when fail_on_error is on
        """
        self._started_at = self._clock()
        records: List[Any] = []
        offset = initial_offset(self.pagination_type, self.connector.page_offset_key)

        if self.total_limit == 0:
            self.events.info("Total items limit is 0, nothing to fetch")
            return records

        while True:
            waited = await self.limiter.wait()
            if waited > 0:
                self.events.info(f"Rate limiting: waited {waited:.0f}ms")
            self.limiter.mark()

            page = PageOptions(limit=self.page_size, offset=offset.value)
            try:
                outcome = await self.retry.execute(
                    lambda: self._download(page),
                    "download",
                    before_attempt=self._check_timeout
                )
            except DownloadTimeoutError as e:
                self.events.error(e.message)
                break

            if not outcome.succeeded:
                self.events.info(
                    f"Stopping extraction after failed page at offset {offset}; "
                    f"keeping {len(records)} records"
                )
                break

            result = outcome.value
            records.extend(result.data)

            if self.pagination_type is None:
                self.events.info("Search without pagination finished")
                break

            if self.pagination_type == PaginationType.CURSOR and result.next_offset is not None:
                self.events.extract(f"Extracted page with cursor {result.next_offset}", len(result.data))
            else:
                self.events.extract(f"Extracted page at offset {offset}", len(result.data))

            if len(records) >= self.total_limit:
                self.events.info(f"Reached total items limit of {self.total_limit}")
                break

            if self.pagination_type == PaginationType.CURSOR:
                if result.next_offset is None:
                    self.events.info("No more data to fetch")
                    break
                offset = Cursor(result.next_offset)
                self.events.info(f"Next cursor set to {offset}")
            else:
                # Only a full page means the adapter honored the page size
                if len(result.data) != self.page_size:
                    if not result.data:
                        self.events.info("No more data to fetch")
                    elif len(result.data) < self.page_size:
                        self.events.info(
                            f"Received {len(result.data)} items, less than {self.page_size}, "
                            f"so it's the last page"
                        )
                    else:
                        self.events.info(
                            f"Received {len(result.data)} items, more than {self.page_size}; "
                            f"adapter ignores the page size, so pagination stops"
                        )
                    break
                offset = offset.advance(self.page_size)
                self.events.info(f"Next offset incremented to {offset}")

        if len(records) > self.total_limit:
            del records[self.total_limit:]

        logger.info(
            f"Fetched {len(records)} records for connector {self.connector.id} "
            f"in {self.elapsed_ms():.0f}ms"
        )
        return records


async def fetch_all(
    connector: Connector,
    adapter: Any,
    error_handling: ErrorHandling,
    rate_limiting: Optional[RateLimiting],
    events: EventLog,
    timeout_ms: Optional[int] = None
) -> List[Any]:
    """Convenience wrapper around PaginatedExtractor.fetch_all"""
    extractor = PaginatedExtractor(
        connector, adapter, error_handling, rate_limiting, events, timeout_ms=timeout_ms
    )
    return await extractor.fetch_all()
