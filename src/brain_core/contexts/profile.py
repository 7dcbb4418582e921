"""Profile context: profile service interface and its bus adapter."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..bus import ContextId, MessageBus, MessageFactory, MessageType


@dataclass
class ProfileRef:
    """The user's profile as seen by the query pipeline."""
    display_name: str
    headline: Optional[str] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    current_roles: List[str] = field(default_factory=list)
    past_roles: List[str] = field(default_factory=list)
    projects: List[str] = field(default_factory=list)
    skills: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


class ProfileService(ABC):
    """Read access to the user's profile."""

    @abstractmethod
    async def get_profile(self) -> Optional[ProfileRef]:
        """Get the profile, None if the user has none."""
        pass


class ProfileMessagingAdapter:
    """Serves ``PROFILE_DATA`` requests: ``{}`` -> ``{"profile": ProfileRef | None}``."""

    def __init__(self, bus: MessageBus, service: ProfileService):
        self.bus = bus
        self.service = service
        self._unsubscribe: Optional[Callable[[], bool]] = None

    def register(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.bus.subscribe(
                ContextId.PROFILE, MessageType.PROFILE_DATA, self._handle_profile,
            )
            logger.debug("ProfileMessagingAdapter: Registered profile handler")

    def unregister(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _handle_profile(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"profile": await self.service.get_profile()}

    def publish_updated(self, profile: ProfileRef):
        return self.bus.notify(MessageFactory.notification(
            ContextId.PROFILE, MessageType.PROFILE_UPDATED, {"profile": profile},
        ))
