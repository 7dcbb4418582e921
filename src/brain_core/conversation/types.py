"""
Conversation data types.

A conversation keeps its turns in three tiers of decreasing fidelity:
active turns, summaries and archived turns.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def _new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Turn:
    """One query/response exchange."""
    query: str
    response: str
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=_now)

    def frozen_copy(self) -> "Turn":
        """Copy with detached metadata, used when a turn is archived."""
        return replace(self, metadata=dict(self.metadata))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "query": self.query,
            "response": self.response,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "metadata": dict(self.metadata),
        }


@dataclass
class Summary:
    """Condensed text covering a contiguous run of turns."""
    conversation_id: str
    content: str
    covered_turn_ids: List[str] = field(default_factory=list)
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "covered_turn_ids": list(self.covered_turn_ids),
        }


@dataclass
class Conversation:
    """Conversation bound to an interface and room."""
    interface_type: str
    room_id: str
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    active_turns: List[Turn] = field(default_factory=list)
    summaries: List[Summary] = field(default_factory=list)
    archived_turns: List[Turn] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def touch(self) -> None:
        self.updated_at = _now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "interface_type": self.interface_type,
            "room_id": self.room_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "active_turns": [t.to_dict() for t in self.active_turns],
            "summaries": [s.to_dict() for s in self.summaries],
            "archived_turns": [t.to_dict() for t in self.archived_turns],
            "metadata": dict(self.metadata),
        }


@dataclass
class ConversationInfo:
    """Lightweight listing entry for a conversation."""
    id: str
    interface_type: str
    room_id: str
    started_at: datetime
    updated_at: datetime
    turn_count: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchCriteria:
    """Filters for ``ConversationStorage.find_conversations``.

    ``query`` matches case-insensitively against turn queries and responses.
    Results are ordered by most recent update.
    """
    interface_type: Optional[str] = None
    room_id: Optional[str] = None
    query: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: Optional[int] = None
    offset: int = 0

    def __post_init__(self):
        """Validate pagination."""
        if self.limit is not None and self.limit < 0:
            raise ValueError("limit must be non-negative")
        if self.offset < 0:
            raise ValueError("offset must be non-negative")


@dataclass
class TieredHistory:
    """Snapshot of the three tiers of one conversation."""
    active_turns: List[Turn] = field(default_factory=list)
    summaries: List[Summary] = field(default_factory=list)
    archived_turns: List[Turn] = field(default_factory=list)

    @property
    def total_turns(self) -> int:
        covered = sum(len(s.covered_turn_ids) for s in self.summaries)
        return len(self.active_turns) + covered + len(self.archived_turns)
