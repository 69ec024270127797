"""
Adapter contracts consumed by the pipeline engine
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Callable, Union
import enum

from schemas.auth import ApiKeyAuth, OAuth2Auth, BasicAuth
from schemas.connector import Connector


class PaginationType(str, enum.Enum):
    """How an adapter advances between pages"""
    CURSOR = "cursor"
    OFFSET = "offset"


@dataclass(frozen=True)
class PageOptions:
    """
    Arguments for one download call.

    offset is an int for offset pagination and an adapter-defined opaque
    value (or None for the first page) for cursor pagination.
    """
    limit: Optional[int] = None
    offset: Any = None


@dataclass
class PageResult:
    """One page of records plus the adapter's pointer to the next page"""
    data: List[Any] = field(default_factory=list)
    # Cursor adapters set this; None means exhausted
    next_offset: Any = None
    options: Dict[str, Any] = field(default_factory=dict)


class Adapter(ABC):
    """
    Provider-specific adapter instance, created fresh for each pipeline run.

    Subclasses implement SourceAdapter, TargetAdapter or both. connect and
    disconnect default to no-ops.
    """

    pagination_type: Optional[PaginationType] = None
    max_items_per_page: Optional[int] = None

    def __init__(self, connector: Connector, auth: Union[ApiKeyAuth, OAuth2Auth, BasicAuth]):
        self.connector = connector
        self.auth = auth

    async def connect(self) -> None:
        """Open connections / sessions"""
        return None

    async def disconnect(self) -> None:
        """Release connections / sessions"""
        return None


class SourceAdapter(Adapter):
    """Adapter that can be used as a pipeline source"""

    @abstractmethod
    async def download(self, page: PageOptions) -> PageResult:
        """
        Fetch one page of records.

        Args:
            page: Page size and position requested by the engine

        Returns:
            PageResult with the records and, for cursor adapters, next_offset
        """
        pass


class TargetAdapter(Adapter):
    """Adapter that can be used as a pipeline target"""

    @abstractmethod
    async def upload(self, records: List[Any]) -> None:
        """Push one batch of records to the target system"""
        pass


# (connector, auth) -> adapter instance; must raise synchronously on bad config
AdapterFactory = Callable[[Connector, Union[ApiKeyAuth, OAuth2Auth, BasicAuth]], Adapter]


def supports_download(adapter: Any) -> bool:
    return isinstance(adapter, SourceAdapter) or callable(getattr(adapter, "download", None))


def supports_upload(adapter: Any) -> bool:
    return isinstance(adapter, TargetAdapter) or callable(getattr(adapter, "upload", None))
