"""Context service interfaces and their bus adapters."""

from .external import ExternalRef, ExternalSourceService, ExternalSourcesMessagingAdapter
from .notes import NoteRef, NoteSearchService, NotesMessagingAdapter
from .profile import ProfileMessagingAdapter, ProfileRef, ProfileService

__all__ = [
    "ExternalRef",
    "ExternalSourceService",
    "ExternalSourcesMessagingAdapter",
    "NoteRef",
    "NoteSearchService",
    "NotesMessagingAdapter",
    "ProfileMessagingAdapter",
    "ProfileRef",
    "ProfileService",
]
