"""Error taxonomy for brain-core.

Bus errors are raised by :class:`~brain_core.bus.mediator.MessageBus`,
pipeline errors by :class:`~brain_core.pipeline.query_processor.QueryProcessor`.
``SummarizationError`` never leaves the memory manager.
"""

from typing import Any, Dict, List, Optional


class BrainError(Exception):
    """Base exception for all brain-core errors."""
    pass


# Bus errors

class BusError(BrainError):
    """Base exception for message bus errors."""
    pass


class NoHandlerError(BusError):
    """Raised when a request has no handler for its target and type."""

    def __init__(self, target_context: str, message_type: str):
        self.target_context = target_context
        self.message_type = message_type
        super().__init__(
            f"No handler registered for {message_type} on context {target_context}"
        )


class RequestTimeoutError(BusError, TimeoutError):
    """Raised when a request receives no response within its timeout."""

    def __init__(self, correlation_id: str, timeout: float):
        self.correlation_id = correlation_id
        self.timeout = timeout
        super().__init__(f"Request {correlation_id} timed out after {timeout:.3f}s")


# Memory errors

class SummarizationError(BrainError):
    """Raised by summarizers; the memory manager retries on the next turn."""
    pass


# Pipeline errors

class PipelineError(BrainError):
    """Base exception for query pipeline errors."""
    pass


class ConversationNotInitializedError(PipelineError):
    """Raised when a query is processed before ``initialize()``."""
    pass


class ContextUnavailableError(PipelineError):
    """Raised when a context declared mandatory could not be gathered."""

    def __init__(self, context: str, reason: Optional[str] = None):
        self.context = context
        self.reason = reason
        message = f"Required context '{context}' is unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ModelInvocationError(PipelineError):
    """Raised when the language model call fails or returns unusable output."""
    pass


class ValidationError(ModelInvocationError):
    """Raised when structured model output does not satisfy its schema."""

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        raw_object: Any = None,
    ):
        self.errors = errors or []
        self.raw_object = raw_object
        super().__init__(message)
