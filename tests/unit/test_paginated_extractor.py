"""
Unit tests for the paginated fetch loop
"""

import math
import pytest

from conftest import FakeAdapter, make_records
from ingestion.base import PageOptions, PageResult, PaginationType
from ingestion.events import EventLog
from ingestion.extractors.paginated import (
    Cursor,
    PaginatedExtractor,
    Position,
    coerce_page,
    fetch_all,
    initial_offset,
    parse_position,
)
from schemas.pipeline import ErrorHandling, EventType, RateLimiting


def build(connector, adapter, recorder, error_handling=None, rate_limiting=None, **kwargs):
    return PaginatedExtractor(
        connector=connector,
        adapter=adapter,
        error_handling=error_handling or ErrorHandling(max_retries=0, retry_interval=0, fail_on_error=True),
        rate_limiting=rate_limiting,
        events=EventLog("test", recorder),
        **kwargs
    )


class TestOffsetPagination:
    """Offset-style paging computed by the engine"""

    @pytest.mark.asyncio
    async def test_issues_ceil_n_over_page_size_calls(self, make_connector, mock_auth, recorder):
        connector = make_connector()
        adapter = FakeAdapter(connector, mock_auth, records=make_records(12))

        records = await build(connector, adapter, recorder).fetch_all()

        assert len(records) == 12
        assert len(adapter.download_calls) == math.ceil(12 / 5)
        assert [call.offset for call in adapter.download_calls] == [0, 5, 10]
        assert all(call.limit == 5 for call in adapter.download_calls)

    @pytest.mark.asyncio
    async def test_exact_multiple_needs_one_empty_page(self, make_connector, mock_auth, recorder):
        connector = make_connector()
        adapter = FakeAdapter(connector, mock_auth, records=make_records(10))

        records = await build(connector, adapter, recorder).fetch_all()

        assert len(records) == 10
        assert [call.offset for call in adapter.download_calls] == [0, 5, 10]
        assert "No more data to fetch" in recorder.messages(EventType.INFO)

    @pytest.mark.asyncio
    async def test_starts_from_configured_offset(self, make_connector, mock_auth, recorder):
        connector = make_connector(pagination={"itemsPerPage": 5, "pageOffsetKey": "5"})
        adapter = FakeAdapter(connector, mock_auth, records=make_records(12))

        records = await build(connector, adapter, recorder).fetch_all()

        assert [r["id"] for r in records] == list(range(6, 13))
        assert [call.offset for call in adapter.download_calls] == [5, 10]

    @pytest.mark.asyncio
    async def test_oversized_page_stops_without_duplicates(self, make_connector, mock_auth, recorder):
        """An adapter that ignores the page size ends pagination after one page"""

        class IgnoresLimitAdapter(FakeAdapter):
            async def download(self, page):
                self.download_calls.append(page)
                return PageResult(data=self.records[page.offset:page.offset + 10])

        connector = make_connector()
        adapter = IgnoresLimitAdapter(connector, mock_auth, records=make_records(12))

        records = await build(connector, adapter, recorder).fetch_all()

        assert [r["id"] for r in records] == list(range(1, 11))
        assert len(adapter.download_calls) == 1
        assert any("more than 5" in m for m in recorder.messages(EventType.INFO))

    @pytest.mark.asyncio
    async def test_logs_extract_event_per_page(self, make_connector, mock_auth, recorder):
        connector = make_connector()
        adapter = FakeAdapter(connector, mock_auth, records=make_records(6))

        await build(connector, adapter, recorder).fetch_all()

        counts = [event.data_count for event in recorder.of_type(EventType.EXTRACT)]
        assert counts == [5, 1]
        assert recorder.of_type(EventType.EXTRACT)[0].message == "Extracted page at offset 0"


class TestCursorPagination:
    """Cursor-style paging driven by the adapter's next offset"""

    @pytest.mark.asyncio
    async def test_stops_when_next_offset_missing(self, make_connector, mock_auth, recorder):
        connector = make_connector(pagination={"itemsPerPage": 2})
        pages = [[{"id": 1}, {"id": 2}], [{"id": 3}, {"id": 4}], [{"id": 5}]]
        adapter = FakeAdapter(connector, mock_auth, pages=pages, pagination_type="cursor")

        records = await build(connector, adapter, recorder).fetch_all()

        assert [r["id"] for r in records] == [1, 2, 3, 4, 5]
        assert len(adapter.download_calls) == 3
        assert [call.offset for call in adapter.download_calls] == [None, "page-1", "page-2"]

    @pytest.mark.asyncio
    async def test_full_page_without_cursor_is_last(self, make_connector, mock_auth, recorder):
        connector = make_connector(pagination={"itemsPerPage": 2})
        adapter = FakeAdapter(connector, mock_auth, pages=[[{"id": 1}, {"id": 2}]], pagination_type="cursor")

        await build(connector, adapter, recorder).fetch_all()

        assert len(adapter.download_calls) == 1
        assert "No more data to fetch" in recorder.messages(EventType.INFO)

    @pytest.mark.asyncio
    async def test_logs_cursor_in_extract_event(self, make_connector, mock_auth, recorder):
        connector = make_connector(pagination={"itemsPerPage": 2})
        pages = [[{"id": 1}, {"id": 2}], [{"id": 3}]]
        adapter = FakeAdapter(connector, mock_auth, pages=pages, pagination_type="cursor")

        await build(connector, adapter, recorder).fetch_all()

        messages = recorder.messages(EventType.EXTRACT)
        assert messages[0] == "Extracted page with cursor page-1"


class TestLimitsAndPageSize:

    @pytest.mark.asyncio
    async def test_truncates_to_limit(self, make_connector, mock_auth, recorder):
        connector = make_connector(limit=7)
        adapter = FakeAdapter(connector, mock_auth, records=make_records(20))

        records = await build(connector, adapter, recorder).fetch_all()

        assert len(records) == 7
        assert records[-1]["id"] == 7
        assert len(adapter.download_calls) == 2
        assert "Reached total items limit of 7" in recorder.messages(EventType.INFO)

    @pytest.mark.asyncio
    async def test_zero_limit_fetches_nothing(self, make_connector, mock_auth, recorder):
        connector = make_connector(limit=0)
        adapter = FakeAdapter(connector, mock_auth, records=make_records(3))

        records = await build(connector, adapter, recorder).fetch_all()

        assert records == []
        assert adapter.download_calls == []

    def test_page_size_clamped_to_adapter_max(self, make_connector, mock_auth, recorder):
        connector = make_connector(pagination={"itemsPerPage": 50})
        adapter = FakeAdapter(connector, mock_auth, max_items_per_page=20)

        extractor = build(connector, adapter, recorder)

        assert extractor.page_size == 20

    def test_page_size_kept_when_below_adapter_max(self, make_connector, mock_auth, recorder):
        connector = make_connector(pagination={"itemsPerPage": 10})
        adapter = FakeAdapter(connector, mock_auth, max_items_per_page=20)

        assert build(connector, adapter, recorder).page_size == 10

    def test_page_size_defaults_to_adapter_max(self, make_connector, mock_auth, recorder):
        connector = make_connector(pagination=None)
        adapter = FakeAdapter(connector, mock_auth, max_items_per_page=25)

        assert build(connector, adapter, recorder).page_size == 25

    def test_page_size_defaults_to_engine_default(self, make_connector, mock_auth, recorder):
        connector = make_connector(pagination=None)
        adapter = FakeAdapter(connector, mock_auth)

        assert build(connector, adapter, recorder).page_size == 100

    @pytest.mark.asyncio
    async def test_non_paginated_adapter_fetches_once(self, make_connector, mock_auth, recorder):
        connector = make_connector()
        adapter = FakeAdapter(connector, mock_auth, records=make_records(8), pagination_type=None)

        records = await build(connector, adapter, recorder).fetch_all()

        assert len(records) == 8
        assert len(adapter.download_calls) == 1
        assert "Search without pagination finished" in recorder.messages(EventType.INFO)


class TestRetriesAndTimeout:

    @pytest.mark.asyncio
    async def test_retry_then_success(self, make_connector, mock_auth, recorder, no_delay):
        connector = make_connector()
        adapter = FakeAdapter(connector, mock_auth, records=make_records(1), download_failures=2)
        policy = ErrorHandling(max_retries=3, retry_interval=1000, fail_on_error=False)

        records = await build(connector, adapter, recorder, error_handling=policy).fetch_all()

        assert records == [{"id": 1, "name": "Item1"}]
        assert len(adapter.download_calls) == 3
        assert recorder.messages(EventType.ERROR) == [
            "Attempt 1 failed in download: Attempt 1 failed",
            "Attempt 2 failed in download: Attempt 2 failed",
        ]
        no_delay.assert_awaited_with(1000)

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_original_error(self, make_connector, mock_auth, recorder, no_delay):
        connector = make_connector()
        adapter = FakeAdapter(connector, mock_auth, records=make_records(3), download_failures=5)
        policy = ErrorHandling(max_retries=1, retry_interval=0, fail_on_error=True)

        with pytest.raises(RuntimeError, match="Attempt 2 failed"):
            await build(connector, adapter, recorder, error_handling=policy).fetch_all()

        assert len(adapter.download_calls) == 2

    @pytest.mark.asyncio
    async def test_gives_up_and_keeps_accumulated_records(self, make_connector, mock_auth, recorder, no_delay):
        connector = make_connector()
        adapter = FakeAdapter(connector, mock_auth, records=make_records(12))
        policy = ErrorHandling(max_retries=1, retry_interval=0, fail_on_error=False)
        original_download = adapter.download

        async def fail_after_first_page(page):
            if page.offset:
                adapter.download_calls.append(page)
                raise RuntimeError("page unavailable")
            return await original_download(page)

        adapter.download = fail_after_first_page

        records = await build(connector, adapter, recorder, error_handling=policy).fetch_all()

        assert len(records) == 5
        assert len(recorder.of_type(EventType.ERROR)) == 2

    @pytest.mark.asyncio
    async def test_timeout_truncates_gracefully(self, make_connector, mock_auth, recorder, no_delay):
        ticks = iter(range(0, 10_000, 400))
        connector = make_connector(timeout=1000)
        adapter = FakeAdapter(connector, mock_auth, records=make_records(50))

        extractor = build(connector, adapter, recorder, clock=lambda: next(ticks))
        records = await extractor.fetch_all()

        assert 0 < len(records) < 50
        errors = recorder.messages(EventType.ERROR)
        assert errors == ["Download timeout exceeded (1000ms)"]

    @pytest.mark.asyncio
    async def test_explicit_zero_timeout_is_honored(self, make_connector, mock_auth, recorder):
        connector = make_connector(timeout=60_000)
        adapter = FakeAdapter(connector, mock_auth, records=make_records(3))

        extractor = build(connector, adapter, recorder, timeout_ms=0)
        records = await extractor.fetch_all()

        assert extractor.timeout_ms == 0
        assert records == []
        assert adapter.download_calls == []
        assert recorder.messages(EventType.ERROR) == ["Download timeout exceeded (0ms)"]

    def test_timeout_falls_back_to_connector_then_settings(self, make_connector, mock_auth, recorder):
        with_timeout = make_connector(timeout=2500)
        without_timeout = make_connector()

        assert build(with_timeout, FakeAdapter(with_timeout, mock_auth), recorder).timeout_ms == 2500
        assert build(without_timeout, FakeAdapter(without_timeout, mock_auth), recorder).timeout_ms == 30_000

    @pytest.mark.asyncio
    async def test_rate_limit_spaces_requests(self, make_connector, mock_auth, recorder):
        connector = make_connector()
        adapter = FakeAdapter(connector, mock_auth, records=make_records(7))

        await build(
            connector, adapter, recorder,
            rate_limiting=RateLimiting(requests_per_second=1)
        ).fetch_all()

        assert len(adapter.download_times) == 2
        assert adapter.download_times[1] - adapter.download_times[0] >= 0.99
        assert any(m.startswith("Rate limiting") for m in recorder.messages(EventType.INFO))

    @pytest.mark.asyncio
    async def test_module_level_fetch_all(self, make_connector, mock_auth, recorder):
        connector = make_connector()
        adapter = FakeAdapter(connector, mock_auth, records=make_records(3))
        policy = ErrorHandling(max_retries=0, retry_interval=0, fail_on_error=True)

        records = await fetch_all(connector, adapter, policy, None, EventLog("test", recorder))

        assert len(records) == 3


class TestOffsets:

    def test_parse_position(self):
        assert parse_position("15") == 15
        assert parse_position(None) == 0
        assert parse_position("abc") == 0

    def test_initial_offset_by_pagination_type(self):
        assert initial_offset(PaginationType.OFFSET, "10") == Position(10)
        assert initial_offset(None, None) == Position(0)
        assert initial_offset(PaginationType.CURSOR, "abc") == Cursor("abc")
        assert initial_offset(PaginationType.CURSOR, None) == Cursor(None)

    def test_position_advance(self):
        assert Position(5).advance(5) == Position(10)

    def test_coerce_page_accepts_mapping(self):
        page = coerce_page({"data": [{"id": 1}], "options": {"nextOffset": "abc"}})

        assert page.data == [{"id": 1}]
        assert page.next_offset == "abc"

    def test_coerce_page_reads_options_of_page_result(self):
        page = coerce_page(PageResult(data=[], options={"nextOffset": 3}))

        assert page.next_offset == 3

    def test_coerce_page_rejects_other_types(self):
        with pytest.raises(TypeError):
            coerce_page([1, 2, 3])

    def test_page_options_defaults(self):
        assert PageOptions() == PageOptions(limit=None, offset=None)
