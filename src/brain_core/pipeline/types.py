"""Types shared by the query pipeline."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..contexts.external import ExternalRef
from ..contexts.notes import NoteRef
from ..contexts.profile import ProfileRef
from .schema import OutputSchema


DEFAULT_QUERY = "What information do you have in this brain?"


@dataclass
class QueryConfig:
    """Settings of the query pipeline. Timeouts are in seconds."""
    default_query: str = DEFAULT_QUERY
    default_user_id: str = "user"
    default_user_name: str = "User"

    note_search_limit: int = 5
    related_notes_limit: int = 3
    external_search_limit: int = 3
    external_sources_enabled: bool = False

    notes_timeout: float = 5.0
    profile_timeout: float = 5.0
    external_timeout: float = 10.0

    # None uses the memory manager's token budget
    history_max_tokens: Optional[int] = None

    # Profile relevance thresholds
    profile_inclusion_threshold: float = 0.5
    profile_response_threshold: float = 0.5
    high_profile_relevance_threshold: float = 0.6
    medium_profile_relevance_threshold: float = 0.3

    def __post_init__(self):
        """Validate configuration."""
        if not self.default_query.strip():
            raise ValueError("default_query must not be empty")
        for name in ("notes_timeout", "profile_timeout", "external_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


@dataclass
class QueryOptions:
    """Per-query options."""
    room_id: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    schema: Optional[OutputSchema] = None


@dataclass
class Citation:
    """Reference from an answer to a note used as context."""
    note_id: str
    note_title: str
    excerpt: str


@dataclass
class GatheredContext:
    """Everything collected from the contexts for one query."""
    notes: List[NoteRef] = field(default_factory=list)
    related_notes: List[NoteRef] = field(default_factory=list)
    profile: Optional[ProfileRef] = None
    external: List[ExternalRef] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)


@dataclass
class QueryResult:
    """Answer to a query together with the material it is based on."""
    answer: str
    citations: List[Citation] = field(default_factory=list)
    related_notes: List[NoteRef] = field(default_factory=list)
    object: Any = None
    profile: Optional[ProfileRef] = None
    external_sources: Optional[List[ExternalRef]] = None
    conversation_id: Optional[str] = None
