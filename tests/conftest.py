"""
Pytest configuration, fake adapters and fixtures
"""

import time
from typing import Any, List, Optional
from unittest.mock import AsyncMock, patch

import pytest

from ingestion.base import PageOptions, PageResult, SourceAdapter, TargetAdapter
from schemas.auth import ApiKeyAuth, OAuth2Auth
from schemas.connector import Connector
from schemas.pipeline import EventType


class FakeAdapter(SourceAdapter, TargetAdapter):
    """
    In-memory adapter recording every call made to it.

    Offset mode slices `records`; cursor mode walks `pages`, handing out
    "page-N" cursors until the last page.
    """

    def __init__(
        self,
        connector,
        auth,
        records: Optional[List[Any]] = None,
        pages: Optional[List[List[Any]]] = None,
        pagination_type: Optional[str] = "offset",
        max_items_per_page: Optional[int] = None,
        download_failures: int = 0,
        upload_failures: int = 0,
        disconnect_error: Optional[Exception] = None
    ):
        super().__init__(connector, auth)
        self.records = records or []
        self.pages = pages
        self.pagination_type = pagination_type
        self.max_items_per_page = max_items_per_page
        self.download_failures = download_failures
        self.upload_failures = upload_failures
        self.disconnect_error = disconnect_error

        self.connect_calls = 0
        self.disconnect_calls = 0
        self.download_calls: List[PageOptions] = []
        self.download_times: List[float] = []
        self.upload_calls: List[List[Any]] = []

    async def connect(self):
        self.connect_calls += 1

    async def disconnect(self):
        self.disconnect_calls += 1
        if self.disconnect_error:
            raise self.disconnect_error

    async def download(self, page: PageOptions) -> PageResult:
        self.download_calls.append(page)
        self.download_times.append(time.monotonic())

        if len(self.download_calls) <= self.download_failures:
            raise RuntimeError(f"Attempt {len(self.download_calls)} failed")

        if self.pages is not None:
            index = 0 if page.offset is None else int(str(page.offset).split("-")[1])
            next_offset = f"page-{index + 1}" if index + 1 < len(self.pages) else None
            return PageResult(data=list(self.pages[index]), next_offset=next_offset)

        start = page.offset or 0
        if self.pagination_type is None:
            return PageResult(data=list(self.records))
        return PageResult(data=self.records[start:start + page.limit])

    async def upload(self, records: List[Any]) -> None:
        self.upload_calls.append(list(records))
        if len(self.upload_calls) <= self.upload_failures:
            raise RuntimeError(f"Upload {len(self.upload_calls)} failed")


class SourceOnlyAdapter(SourceAdapter):
    """Adapter without an upload capability"""

    def __init__(self, connector, auth):
        super().__init__(connector, auth)
        self.disconnect_calls = 0

    async def disconnect(self):
        self.disconnect_calls += 1

    async def download(self, page: PageOptions) -> PageResult:
        return PageResult(data=[{"id": 1}])


class AdapterFactorySpy:
    """Adapter factory that remembers every instance it built"""

    def __init__(self, adapter_cls=FakeAdapter, **options):
        self.adapter_cls = adapter_cls
        self.options = options
        self.instances: List[Any] = []

    def __call__(self, connector, auth):
        adapter = self.adapter_cls(connector, auth, **self.options)
        self.instances.append(adapter)
        return adapter


class EventRecorder:
    """Pipeline logging callback that keeps every event"""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def of_type(self, type: EventType):
        return [event for event in self.events if event.type == type]

    def messages(self, type: Optional[EventType] = None):
        return [event.message for event in self.events if type is None or event.type == type]


def make_records(count: int) -> List[dict]:
    return [{"id": i, "name": f"Item{i}"} for i in range(1, count + 1)]


@pytest.fixture
def mock_auth():
    return ApiKeyAuth(id="mock-auth", credentials={"api_key": "test"})


@pytest.fixture
def vault(mock_auth):
    return {"mock-auth": mock_auth}


@pytest.fixture
def oauth_auth():
    """OAuth2 credential with an expired access token and a refresh token"""
    return OAuth2Auth(
        id="oauth-auth",
        credentials={
            "client_id": "client",
            "client_secret": "secret",
            "refresh_token": "refresh-1",
            "access_token": "stale",
            "token_url": "https://auth.example.com/token",
        },
        expires_at="2020-01-01T00:00:00Z",
    )


@pytest.fixture
def make_connector():
    def _make(**overrides) -> Connector:
        data = {
            "id": "mock-source",
            "adapter_id": "mockAdapter",
            "endpoint_id": "test",
            "credential_id": "mock-auth",
            "fields": ["id", "name"],
            "pagination": {"itemsPerPage": 5, "pageOffsetKey": "0"},
        }
        data.update(overrides)
        return Connector(**data)
    return _make


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def no_delay():
    """Make retry and rate-limit waits return immediately"""
    with patch("ingestion.timing.delay", new=AsyncMock()) as mock_delay:
        yield mock_delay
