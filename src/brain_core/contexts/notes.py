"""Notes context: search service interface and its bus adapter."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..bus import ContextId, MessageBus, MessageFactory, MessageType


@dataclass
class NoteRef:
    """A note as seen by the query pipeline."""
    id: str
    title: str
    content: str
    tags: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class NoteSearchService(ABC):
    """Read access to the user's notes."""

    @abstractmethod
    async def search_notes(self, query: str, limit: int = 5) -> List[NoteRef]:
        """Search notes relevant to ``query``, best match first."""
        pass

    @abstractmethod
    async def get_related_notes(self, note_id: str, limit: int = 5) -> List[NoteRef]:
        """Get notes related to ``note_id``, excluding the note itself."""
        pass

    @abstractmethod
    async def get_note(self, note_id: str) -> Optional[NoteRef]:
        """Get a single note, None if it does not exist."""
        pass


class NotesMessagingAdapter:
    """Serves notes requests on the bus and publishes note lifecycle events.

    Requests:
        ``NOTES_SEARCH``  ``{"query", "limit"?}`` -> ``{"notes": [NoteRef]}``
        ``NOTES_RELATED`` ``{"note_id", "limit"?}`` -> ``{"notes": [NoteRef]}``
        ``NOTE_BY_ID``    ``{"note_id"}`` -> ``{"note": NoteRef | None}``
    """

    def __init__(self, bus: MessageBus, service: NoteSearchService, default_limit: int = 5):
        self.bus = bus
        self.service = service
        self.default_limit = default_limit
        self._unsubscribers: List[Callable[[], bool]] = []

    def register(self) -> None:
        """Subscribe the request handlers."""
        if self._unsubscribers:
            return
        self._unsubscribers = [
            self.bus.subscribe(ContextId.NOTES, MessageType.NOTES_SEARCH, self._handle_search),
            self.bus.subscribe(ContextId.NOTES, MessageType.NOTES_RELATED, self._handle_related),
            self.bus.subscribe(ContextId.NOTES, MessageType.NOTE_BY_ID, self._handle_get),
        ]
        logger.debug("NotesMessagingAdapter: Registered notes handlers")

    def unregister(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def _handle_search(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        query = payload.get("query")
        if not isinstance(query, str):
            raise ValueError("notes.search requires a 'query' string")
        notes = await self.service.search_notes(query, payload.get("limit", self.default_limit))
        logger.debug(f"NotesMessagingAdapter: Found {len(notes)} notes")
        return {"notes": notes}

    async def _handle_related(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        note_id = payload.get("note_id")
        if not note_id:
            raise ValueError("notes.related requires a 'note_id'")
        notes = await self.service.get_related_notes(note_id, payload.get("limit", self.default_limit))
        return {"notes": notes}

    async def _handle_get(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        note_id = payload.get("note_id")
        if not note_id:
            raise ValueError("notes.byId requires a 'note_id'")
        return {"note": await self.service.get_note(note_id)}

    def publish_created(self, note: NoteRef):
        return self.bus.notify(MessageFactory.notification(
            ContextId.NOTES, MessageType.NOTE_CREATED, {"note": note},
        ))

    def publish_updated(self, note: NoteRef):
        return self.bus.notify(MessageFactory.notification(
            ContextId.NOTES, MessageType.NOTE_UPDATED, {"note": note},
        ))

    def publish_deleted(self, note_id: str):
        return self.bus.notify(MessageFactory.notification(
            ContextId.NOTES, MessageType.NOTE_DELETED, {"note_id": note_id},
        ))
