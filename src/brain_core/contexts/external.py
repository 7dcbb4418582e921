"""External sources context: search service interface and its bus adapter."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..bus import ContextId, MessageBus, MessageType


@dataclass
class ExternalRef:
    """A search hit from an external knowledge source."""
    title: str
    source: str
    content: str
    url: Optional[str] = None
    source_type: str = ""
    relevance_score: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ExternalSourceService(ABC):
    """Search over external knowledge sources (encyclopedia, news, ...)."""

    @abstractmethod
    async def search(self, query: str, limit: int = 3) -> List[ExternalRef]:
        """Search all enabled sources for ``query``."""
        pass


class ExternalSourcesMessagingAdapter:
    """Serves ``EXTERNAL_SOURCES_SEARCH`` and follows the enabled status.

    ``{"query", "limit"?}`` -> ``{"results": [ExternalRef]}``. While the
    sources are disabled through ``EXTERNAL_SOURCES_STATUS``, searches
    return no results without calling the service.
    """

    def __init__(
        self,
        bus: MessageBus,
        service: ExternalSourceService,
        enabled: bool = True,
        default_limit: int = 3,
    ):
        self.bus = bus
        self.service = service
        self.enabled = enabled
        self.default_limit = default_limit
        self._unsubscribers: List[Callable[[], bool]] = []

    def register(self) -> None:
        if self._unsubscribers:
            return
        self._unsubscribers = [
            self.bus.subscribe(
                ContextId.EXTERNAL_SOURCES, MessageType.EXTERNAL_SOURCES_SEARCH, self._handle_search,
            ),
            self.bus.subscribe(
                ContextId.EXTERNAL_SOURCES, MessageType.EXTERNAL_SOURCES_STATUS, self._handle_status,
            ),
        ]
        logger.debug("ExternalSourcesMessagingAdapter: Registered external source handlers")

    def unregister(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def _handle_search(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        query = payload.get("query")
        if not isinstance(query, str):
            raise ValueError("externalSources.search requires a 'query' string")
        if not self.enabled:
            logger.debug("ExternalSourcesMessagingAdapter: Sources disabled, skipping search")
            return {"results": []}
        results = await self.service.search(query, payload.get("limit", self.default_limit))
        return {"results": results}

    def _handle_status(self, payload: Dict[str, Any]) -> None:
        self.enabled = bool(payload.get("enabled", False))
        logger.info(f"ExternalSourcesMessagingAdapter: External sources enabled={self.enabled}")
