"""
Registry of adapter factories keyed by adapter id
"""

from typing import Dict, Optional, Iterator, Type
import logging

from core.exceptions import AdapterNotFoundError
from ingestion.base import AdapterFactory

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """
    Maps adapter ids to factories.

    Shared read-mostly state: registration normally happens at startup,
    lookups happen once per connector per pipeline run.
    """

    def __init__(self, factories: Optional[Dict[str, AdapterFactory]] = None):
        self._factories: Dict[str, AdapterFactory] = {}
        for adapter_id, factory in (factories or {}).items():
            self.register(adapter_id, factory)

    def register(self, adapter_id: str, factory: AdapterFactory) -> None:
        """Register (or replace) the factory for adapter_id"""
        if adapter_id in self._factories:
            logger.info(f"Replacing adapter factory for {adapter_id}")
        self._factories[adapter_id] = factory

    def get(
        self,
        adapter_id: str,
        error_cls: Type[AdapterNotFoundError] = AdapterNotFoundError,
        role: str = "Adapter"
    ) -> AdapterFactory:
        """
        Look up a factory.

        Raises:
            error_cls: When nothing is registered under adapter_id
        """
        factory = self._factories.get(adapter_id)
        if factory is None:
            raise error_cls(
                f"{role} {adapter_id} not found",
                context={"adapter_id": adapter_id}
            )
        return factory

    def __contains__(self, adapter_id: str) -> bool:
        return adapter_id in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(self._factories)

    def __len__(self) -> int:
        return len(self._factories)
