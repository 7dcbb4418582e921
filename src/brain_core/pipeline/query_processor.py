"""
Query processor.

Answers a query in fixed stages: receive, ensure conversation, gather
context, build prompt, invoke model, validate, persist, notify, return.
Context comes from the other contexts over the message bus; history comes
from the tiered memory manager.
"""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger

from ..bus import ContextId, DeliveryReport, MessageBus, MessageFactory, MessageType
from ..contexts.external import ExternalRef
from ..contexts.notes import NoteRef
from ..contexts.profile import ProfileRef
from ..conversation.manager import ConversationManager
from ..conversation.types import Turn
from ..errors import (
    ContextUnavailableError,
    ConversationNotInitializedError,
    ModelInvocationError,
    ValidationError,
)
from ..llm.adapter import LanguageModelAdapter
from ..llm.base import LLMProviderError
from ..memory.tiered import TieredMemoryManager
from .prompt_formatter import PromptFormatter, analyze_profile_relevance
from .types import GatheredContext, QueryConfig, QueryOptions, QueryResult


FALLBACK_ANSWER = "I apologize, but I wasn't able to generate a proper response."


def _partial_answer(raw_object: Any) -> Optional[str]:
    """Non-empty ``answer`` string of an object that failed validation."""
    if isinstance(raw_object, dict):
        answer = raw_object.get("answer")
        if isinstance(answer, str) and answer.strip():
            return answer
    return None


def _answer_text(obj: Any) -> str:
    if isinstance(obj, dict):
        answer = obj.get("answer")
        if isinstance(answer, str):
            return answer
        return json.dumps(obj, ensure_ascii=False, default=str)
    return FALLBACK_ANSWER


class QueryProcessor:
    """Orchestrates one query from question to persisted answer."""

    def __init__(
        self,
        bus: MessageBus,
        memory: TieredMemoryManager,
        conversations: ConversationManager,
        model: LanguageModelAdapter,
        formatter: Optional[PromptFormatter] = None,
        config: Optional[QueryConfig] = None,
    ):
        """Initialize the query processor.

        Args:
            bus: Message bus connecting the contexts
            memory: Tiered memory manager for history and persistence
            conversations: Room and active conversation tracking
            model: Language model adapter
            formatter: Prompt builder
            config: Pipeline settings
        """
        self.bus = bus
        self.memory = memory
        self.conversations = conversations
        self.model = model
        self.config = config or QueryConfig()
        self.formatter = formatter or PromptFormatter(config=self.config)

        self._external_enabled = self.config.external_sources_enabled
        self._initialized = False
        self._unsubscribers: List[Callable[[], bool]] = []

        # Statistics
        self.total_queries = 0
        self.total_failures = 0
        self.total_context_failures = 0

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Register the conversation history handler on the bus."""
        if self._initialized:
            return
        self._unsubscribers.append(self.bus.subscribe(
            ContextId.CONVERSATION, MessageType.CONVERSATION_HISTORY, self._handle_history_request,
        ))
        self._initialized = True
        logger.info("QueryProcessor: Initialized")

    async def shutdown(self) -> None:
        """Unregister from the bus and wait for queued notifications."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._initialized = False
        await self.bus.drain()
        logger.info("QueryProcessor: Shut down")

    @property
    def external_sources_enabled(self) -> bool:
        return self._external_enabled

    async def set_external_sources_enabled(self, enabled: bool) -> DeliveryReport:
        """Toggle external search and publish the new status on the bus.

        The flag changes only once the status notification is queued.

        Returns:
            Delivery report of the status notification
        """
        delivery = self.bus.notify(MessageFactory.notification(
            ContextId.QUERY, MessageType.EXTERNAL_SOURCES_STATUS, {"enabled": enabled},
        ))
        self._external_enabled = enabled
        logger.info(f"QueryProcessor: External sources {'enabled' if enabled else 'disabled'}")
        return await delivery

    async def process_query(self, query: str, options: Optional[QueryOptions] = None) -> QueryResult:
        """Answer ``query``.

        Args:
            query: User query; empty or blank queries are replaced by
                ``config.default_query``
            options: Room, user and output schema

        Returns:
            Answer with citations, related notes and optional profile,
            external sources and structured object

        Raises:
            ConversationNotInitializedError: Called before ``initialize()``
            ContextUnavailableError: The schema requires the profile and it
                could not be fetched
            ModelInvocationError: The model call failed
            ValidationError: The structured output does not match the schema
        """
        if not self._initialized:
            raise ConversationNotInitializedError(
                "QueryProcessor.initialize() must be called before processing queries"
            )
        options = options or QueryOptions()
        self.total_queries += 1

        # Receive
        if not query or not query.strip():
            logger.warning("QueryProcessor: Empty query received, using default question")
            query = self.config.default_query
        logger.debug(f"QueryProcessor: Processing query: {query!r}")

        try:
            return await self._run(query, options)
        except Exception:
            self.total_failures += 1
            raise

    async def _run(self, query: str, options: QueryOptions) -> QueryResult:
        # Ensure conversation
        if options.room_id:
            conversation_id = await self.conversations.set_current_room(options.room_id)
        else:
            conversation_id = await self.conversations.initialize_conversation()

        # Gather context
        analysis = analyze_profile_relevance(query)
        requires_profile = options.schema is not None and options.schema.requires_profile
        context = await self._gather_context(query, requires_profile)
        history = await self.memory.get_context_for_prompt(conversation_id, self.config.history_max_tokens)

        # Build prompt
        include_profile = context.profile is not None and (
            analysis.is_profile_query
            or analysis.relevance > self.config.profile_inclusion_threshold
            or requires_profile
        )
        prompt = self.formatter.format(
            query,
            history=history,
            notes=context.notes,
            external=context.external,
            profile=context.profile if include_profile else None,
            analysis=analysis,
        )

        # Invoke model
        schema = options.schema
        try:
            completion = await self.model.complete(
                prompt.system_prompt,
                prompt.user_prompt,
                schema=schema.schema if schema else None,
            )
        except LLMProviderError as e:
            logger.error(f"QueryProcessor: Model invocation failed: {e}")
            raise ModelInvocationError(f"Model invocation failed: {e}") from e

        # Validate
        obj = completion.object
        if schema is not None:
            try:
                obj = schema.validate(obj)
            except ValidationError as e:
                logger.error(f"QueryProcessor: {e} ({len(e.errors)} errors)")
                partial = _partial_answer(completion.object)
                if partial is not None:
                    await self._persist(conversation_id, query, partial, options)
                raise

        # Persist and notify
        answer = _answer_text(obj)
        await self._persist(conversation_id, query, answer, options)

        include_profile_in_result = context.profile is not None and (
            analysis.is_profile_query
            or analysis.relevance > self.config.profile_response_threshold
            or requires_profile
        )
        return QueryResult(
            answer=answer,
            citations=prompt.citations,
            related_notes=context.related_notes,
            object=obj,
            profile=context.profile if include_profile_in_result else None,
            external_sources=context.external or None,
            conversation_id=conversation_id,
        )

    async def _gather_context(self, query: str, requires_profile: bool) -> GatheredContext:
        """Query the contexts concurrently; failures degrade to empty results."""
        lookups = [self._search_notes(query), self._fetch_profile()]
        if self._external_enabled:
            lookups.append(self._search_external(query))

        results = await asyncio.gather(*lookups, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        context = GatheredContext()

        notes_result = results[0]
        if isinstance(notes_result, Exception):
            self._record_failure(context, "notes", notes_result)
        else:
            context.notes, context.related_notes = notes_result

        profile_result = results[1]
        if isinstance(profile_result, Exception):
            self._record_failure(context, "profile", profile_result)
            if requires_profile:
                raise ContextUnavailableError("profile", str(profile_result)) from profile_result
        else:
            context.profile = profile_result
            if profile_result is None and requires_profile:
                raise ContextUnavailableError("profile", "no profile available")

        if len(results) > 2:
            if isinstance(results[2], Exception):
                self._record_failure(context, "externalSources", results[2])
            else:
                context.external = results[2]

        logger.debug(
            f"QueryProcessor: Gathered {len(context.notes)} notes, "
            f"{len(context.external)} external results, profile={'yes' if context.profile else 'no'}"
        )
        return context

    def _record_failure(self, context: GatheredContext, name: str, error: Exception) -> None:
        self.total_context_failures += 1
        context.failures[name] = str(error) or type(error).__name__
        logger.warning(f"QueryProcessor: {name} context unavailable, continuing without it: {error!r}")

    async def _search_notes(self, query: str) -> Tuple[List[NoteRef], List[NoteRef]]:
        response = await self.bus.send_request(
            MessageFactory.request(ContextId.QUERY, MessageType.NOTES_SEARCH, {
                "query": query,
                "limit": self.config.note_search_limit,
            }),
            timeout=self.config.notes_timeout,
        )
        notes = list(response.payload.get("notes", []))
        if not notes:
            return notes, []

        try:
            related = await self.bus.send_request(
                MessageFactory.request(ContextId.QUERY, MessageType.NOTES_RELATED, {
                    "note_id": notes[0].id,
                    "limit": self.config.related_notes_limit,
                }),
                timeout=self.config.notes_timeout,
            )
        except Exception as e:
            logger.warning(f"QueryProcessor: Related notes unavailable: {e!r}")
            return notes, []
        return notes, list(related.payload.get("notes", []))

    async def _fetch_profile(self) -> Optional[ProfileRef]:
        response = await self.bus.send_request(
            MessageFactory.request(ContextId.QUERY, MessageType.PROFILE_DATA),
            timeout=self.config.profile_timeout,
        )
        return response.payload.get("profile")

    async def _search_external(self, query: str) -> List[ExternalRef]:
        response = await self.bus.send_request(
            MessageFactory.request(ContextId.QUERY, MessageType.EXTERNAL_SOURCES_SEARCH, {
                "query": query,
                "limit": self.config.external_search_limit,
            }),
            timeout=self.config.external_timeout,
        )
        return list(response.payload.get("results", []))

    async def _persist(self, conversation_id: str, query: str, answer: str, options: QueryOptions) -> None:
        """Append the turn and publish ``CONVERSATION_UPDATED``.

        A storage failure is logged and the notification skipped; the answer
        is still returned to the caller.
        """
        turn = Turn(
            query=query,
            response=answer,
            user_id=options.user_id or self.config.default_user_id,
            user_name=options.user_name or self.config.default_user_name,
        )
        try:
            turn_id = await self.memory.add_turn(conversation_id, turn)
        except Exception as e:
            logger.error(f"QueryProcessor: Failed to persist turn for conversation {conversation_id}: {e}")
            return

        self.bus.notify(MessageFactory.notification(
            ContextId.CONVERSATION, MessageType.CONVERSATION_UPDATED, {
                "conversation_id": conversation_id,
                "turn_id": turn_id,
                "room_id": options.room_id or self.conversations.current_room_id,
            },
        ))

    async def _handle_history_request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        conversation_id = payload.get("conversation_id") or self.conversations.current_conversation_id
        if conversation_id is None:
            return {"conversation_id": None, "history": ""}
        history = await self.memory.get_context_for_prompt(conversation_id, payload.get("max_tokens"))
        return {"conversation_id": conversation_id, "history": history}

    def get_stats(self) -> Dict[str, Any]:
        """Get pipeline statistics."""
        return {
            "initialized": self._initialized,
            "external_sources_enabled": self._external_enabled,
            "total_queries": self.total_queries,
            "total_failures": self.total_failures,
            "total_context_failures": self.total_context_failures,
        }
