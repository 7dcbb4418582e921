"""Builds system and user prompts from the gathered context."""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from ..contexts.external import ExternalRef
from ..contexts.notes import NoteRef
from ..contexts.profile import ProfileRef
from ..llm.prompts import PromptManager
from .types import Citation, QueryConfig


_PROFILE_QUERY = re.compile(r"profile|about\s+me|who\s+am\s+i|my\s+background", re.IGNORECASE)


@dataclass
class ProfileAnalysis:
    """How much a query is about the user."""
    is_profile_query: bool
    relevance: float


def analyze_profile_relevance(query: str) -> ProfileAnalysis:
    """Keyword-based estimate of a query's profile relevance."""
    is_profile_query = bool(_PROFILE_QUERY.search(query))
    return ProfileAnalysis(is_profile_query, 0.9 if is_profile_query else 0.1)


def excerpt(content: str, max_length: int = 150) -> str:
    """Shorten ``content`` at a word boundary."""
    text = " ".join(content.split())
    if len(text) <= max_length:
        return text
    cut = text[:max_length].rsplit(" ", 1)[0] or text[:max_length]
    return cut.rstrip(".,;:") + "..."


@dataclass
class FormattedPrompt:
    system_prompt: str
    user_prompt: str
    citations: List[Citation] = field(default_factory=list)


class PromptFormatter:
    """Renders the query, history and context material into prompts."""

    def __init__(self, prompt_manager: Optional[PromptManager] = None, config: Optional[QueryConfig] = None):
        self.prompt_manager = prompt_manager or PromptManager()
        self.config = config or QueryConfig()

    def format(
        self,
        query: str,
        history: str = "",
        notes: Optional[List[NoteRef]] = None,
        external: Optional[List[ExternalRef]] = None,
        profile: Optional[ProfileRef] = None,
        analysis: Optional[ProfileAnalysis] = None,
    ) -> FormattedPrompt:
        """Build the prompts for one query.

        Args:
            query: User query, already defaulted
            history: Rendered conversation history
            notes: Retrieved notes, best match first
            external: External search results
            profile: Profile to include, None to leave it out
            analysis: Profile relevance of the query

        Returns:
            System prompt, user prompt and one citation per note
        """
        notes = notes or []
        external = external or []
        analysis = analysis or analyze_profile_relevance(query)

        return FormattedPrompt(
            system_prompt=self.get_system_prompt(analysis, has_external=bool(external)),
            user_prompt=self.format_user_prompt(query, history, notes, external, profile, analysis.relevance),
            citations=[
                Citation(note_id=note.id, note_title=note.title, excerpt=excerpt(note.content))
                for note in notes
            ],
        )

    def get_system_prompt(self, analysis: ProfileAnalysis, has_external: bool = False) -> str:
        """Pick the system prompt variant for the available material."""
        if analysis.is_profile_query:
            name = "system_profile_with_external" if has_external else "system_profile_only"
        elif has_external and analysis.relevance < self.config.profile_response_threshold:
            name = "system_notes_with_external"
        elif analysis.relevance > self.config.high_profile_relevance_threshold:
            name = "system_high_profile_relevance"
        elif analysis.relevance > self.config.medium_profile_relevance_threshold:
            name = "system_medium_profile_relevance"
        else:
            name = "system_notes_only"

        external_guidelines = ""
        if has_external:
            external_guidelines = (
                "\n7. When using external information, clearly indicate the source"
                "\n8. Integrate external knowledge with personal insights when appropriate"
            )
        return self.prompt_manager.get_prompt(name, external_guidelines=external_guidelines)

    def format_user_prompt(
        self,
        query: str,
        history: str,
        notes: List[NoteRef],
        external: List[ExternalRef],
        profile: Optional[ProfileRef],
        relevance: float = 1.0,
    ) -> str:
        sections = []
        if history.strip():
            sections.append(f"Recent Conversation History:\n{history}")
        if profile is not None:
            sections.append(self.format_profile(profile, relevance))

        for index, note in enumerate(notes, start=1):
            tags = f"Tags: {', '.join(note.tags)}\n" if note.tags else ""
            sections.append(f"INTERNAL CONTEXT [{index}]:\nTitle: {note.title}\n{tags}{note.content}")

        if external:
            blocks = [
                f"EXTERNAL SOURCE [{index}]:\nTitle: {item.title}\nSource: {item.source}\n{item.content}"
                for index, item in enumerate(external, start=1)
            ]
            sections.append("--- EXTERNAL INFORMATION ---\n" + "\n\n".join(blocks))

        context_text = "\n\n".join(sections)
        return (
            f"{self._prefix(bool(notes), bool(external), profile is not None)}\n\n"
            f"{context_text}\n\n"
            f"Based on this information, please answer my question:\n{query}"
        )

    @staticmethod
    def _prefix(has_notes: bool, has_external: bool, has_profile: bool) -> str:
        if has_profile and has_notes and has_external:
            return "I have the following information from my personal knowledge base, my profile, and external sources:"
        if has_profile and has_notes:
            return "I have the following information in my personal knowledge base, including my profile and relevant notes:"
        if has_profile and has_external:
            return "I have the following information from my profile and external sources:"
        if has_notes and has_external:
            return "I have the following information from my personal knowledge base and external sources:"
        if has_profile:
            return "I have the following information about my profile in my personal knowledge base:"
        if has_notes:
            return "I have the following information in my personal knowledge base:"
        if has_external:
            return "I have the following information from external sources:"
        return "I have limited information in my personal knowledge base:"

    @staticmethod
    def format_profile(profile: ProfileRef, relevance: float = 1.0) -> str:
        """Render the profile; past roles and projects only for relevance above 0.5."""
        lines = ["PROFILE INFORMATION:", f"Display Name: {profile.display_name}"]
        if profile.headline:
            lines.append(f"Headline: {profile.headline}")
        if profile.location:
            lines.append(f"Location: {profile.location}")
        if profile.summary:
            lines.append(f"Summary:\n{profile.summary}")
        if profile.current_roles:
            lines.append("Current Work:\n" + "\n".join(f"- {role}" for role in profile.current_roles))

        if relevance > 0.5:
            if profile.past_roles:
                lines.append("Past Experience:\n" + "\n".join(f"- {role}" for role in profile.past_roles[:5]))
            if profile.projects:
                lines.append("Projects:\n" + "\n".join(f"- {p}" for p in profile.projects[:3]))

        if profile.skills:
            lines.append(f"Skills:\n{', '.join(profile.skills)}")
        return "\n".join(lines)
