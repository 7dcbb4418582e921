"""In-process message bus connecting the brain contexts.

The bus offers two interaction styles:

* notifications, fanned out to every subscriber of a message type;
* correlated request/response, routed to the single handler registered for
  ``(target_context, message_type)``.

Handlers receive the message payload only. Request handlers return the
response payload; the bus wraps it into a response message.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from loguru import logger

from ..errors import NoHandlerError, RequestTimeoutError
from .messages import ContextId, Message, MessageFactory, MessageKind, MessageType


Payload = Dict[str, Any]
NotificationHandler = Callable[[Payload], Union[None, Awaitable[None]]]
RequestHandler = Callable[[Payload], Awaitable[Optional[Payload]]]
Handler = Union[NotificationHandler, RequestHandler]
Unsubscribe = Callable[[], bool]


@dataclass
class DeliveryReport:
    """Outcome of delivering one notification to its subscribers."""
    message_id: str
    message_type: MessageType
    delivered: List[ContextId] = field(default_factory=list)
    failed: Dict[ContextId, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        """True when no handler raised."""
        return not self.failed

    @property
    def recipients(self) -> List[ContextId]:
        """Every context the notification was handed to."""
        return self.delivered + list(self.failed)


class MessageBus:
    """Mediator for context-to-context communication.

    A context subscribes at most one handler per message type; subscribing
    again replaces the previous handler. Request types may only be served by
    the context that owns them.
    """

    def __init__(self, default_timeout: float = 5.0):
        """Initialize the bus.

        Args:
            default_timeout: Seconds ``send_request`` waits when no timeout is given
        """
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        self.default_timeout = default_timeout

        # Insertion order of the inner dict is the delivery order
        self._subscriptions: Dict[MessageType, Dict[ContextId, Handler]] = {}
        self._pending: Dict[str, asyncio.Future] = {}

        # Last queued delivery per source, to keep per-source program order
        self._source_tails: Dict[ContextId, asyncio.Task] = {}
        self._delivery_tasks: Set[asyncio.Task] = set()
        self._handler_tasks: Set[asyncio.Task] = set()

        # Statistics
        self.total_notifications = 0
        self.total_requests = 0
        self.total_responses = 0
        self.total_timeouts = 0
        self.total_handler_errors = 0
        self.total_discarded_responses = 0

        logger.debug(f"MessageBus: Initialized with default_timeout={default_timeout}s")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def subscribe(
        self,
        context_id: ContextId,
        message_type: MessageType,
        handler: Handler,
    ) -> Unsubscribe:
        """Subscribe ``context_id`` to ``message_type``.

        Args:
            context_id: Subscribing context
            message_type: Message type to handle
            handler: Notification or request handler

        Returns:
            Callable removing this subscription; it returns False when the
            handler has since been replaced or removed
        """
        if message_type.is_request and message_type.owner is not context_id:
            raise ValueError(
                f"Context {context_id.value} cannot serve {message_type.value}, "
                f"owned by {message_type.owner.value}"
            )

        handlers = self._subscriptions.setdefault(message_type, {})
        if context_id in handlers:
            logger.warning(
                f"MessageBus: Replacing handler of {context_id.value} for {message_type.value}"
            )
        handlers[context_id] = handler
        logger.debug(f"MessageBus: {context_id.value} subscribed to {message_type.value}")

        def unsubscribe() -> bool:
            current = self._subscriptions.get(message_type, {})
            if current.get(context_id) is not handler:
                return False
            del current[context_id]
            logger.debug(f"MessageBus: {context_id.value} unsubscribed from {message_type.value}")
            return True

        return unsubscribe

    def get_subscribers(self, message_type: MessageType) -> List[ContextId]:
        """Contexts subscribed to ``message_type`` in delivery order."""
        return list(self._subscriptions.get(message_type, {}))

    def get_registered_contexts(self) -> List[ContextId]:
        """Every context holding at least one subscription."""
        contexts: List[ContextId] = []
        for handlers in self._subscriptions.values():
            for context_id in handlers:
                if context_id not in contexts:
                    contexts.append(context_id)
        return contexts

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------
    def notify(self, notification: Message) -> "asyncio.Task[DeliveryReport]":
        """Queue a notification for delivery.

        Subscribers are resolved now; the handlers run on the event loop
        afterwards, one at a time, in subscription order. Deliveries from the
        same source run in the order ``notify`` was called.

        Args:
            notification: Notification message

        Returns:
            Task resolving to the delivery report; awaiting it is optional
        """
        if notification.kind is not MessageKind.NOTIFICATION:
            raise ValueError("notify() only accepts notification messages")

        handlers = list(self._subscriptions.get(notification.message_type, {}).items())
        if notification.target_context is not None:
            handlers = [
                (context_id, handler) for context_id, handler in handlers
                if context_id is notification.target_context
            ]

        self.total_notifications += 1
        if not handlers:
            logger.debug(f"MessageBus: No subscribers for {notification.message_type.value}")

        previous = self._source_tails.get(notification.source_context)
        task = asyncio.get_running_loop().create_task(
            self._deliver(notification, handlers, previous)
        )
        self._source_tails[notification.source_context] = task
        self._delivery_tasks.add(task)
        task.add_done_callback(self._delivery_tasks.discard)
        return task

    async def _deliver(
        self,
        notification: Message,
        handlers: List[tuple],
        previous: Optional[asyncio.Task],
    ) -> DeliveryReport:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        report = DeliveryReport(
            message_id=notification.id,
            message_type=notification.message_type,
        )
        for context_id, handler in handlers:
            try:
                result = handler(notification.payload)
                if inspect.isawaitable(result):
                    await result
                report.delivered.append(context_id)
            except Exception as e:
                self.total_handler_errors += 1
                report.failed[context_id] = str(e)
                logger.error(
                    f"MessageBus: {context_id.value} failed handling "
                    f"{notification.message_type.value}: {e}"
                )

        if self._source_tails.get(notification.source_context) is asyncio.current_task():
            del self._source_tails[notification.source_context]

        if report.failed:
            logger.warning(
                f"MessageBus: {notification.message_type.value} delivered to "
                f"{len(report.delivered)} of {len(handlers)} subscribers"
            )
        return report

    async def drain(self) -> None:
        """Wait until every queued notification has been delivered."""
        while self._delivery_tasks:
            await asyncio.gather(*list(self._delivery_tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------
    async def send_request(self, request: Message, timeout: Optional[float] = None) -> Message:
        """Send a request and wait for its response.

        Args:
            request: Request message
            timeout: Seconds to wait, defaults to ``default_timeout``

        Returns:
            The first response carrying the request's correlation id

        Raises:
            NoHandlerError: Nobody serves ``(target_context, message_type)``
            RequestTimeoutError: No response within ``timeout``; the handler
                keeps running and its late response is discarded
            Exception: Whatever the request handler raised
        """
        if request.kind is not MessageKind.REQUEST:
            raise ValueError("send_request() only accepts request messages")

        target = request.target_context or request.message_type.owner
        handler = self._subscriptions.get(request.message_type, {}).get(target)
        if handler is None:
            logger.warning(
                f"MessageBus: No handler for {request.message_type.value} on {target.value}"
            )
            raise NoHandlerError(target.value, request.message_type.value)

        correlation_id = request.correlation_id or request.id
        if correlation_id in self._pending:
            raise ValueError(f"Request {correlation_id} is already pending")

        wait = self.default_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._pending[correlation_id] = future
        self.total_requests += 1

        task = loop.create_task(self._run_request_handler(request, correlation_id, handler))
        self._handler_tasks.add(task)
        task.add_done_callback(self._handler_tasks.discard)

        logger.debug(
            f"MessageBus: Forwarding {request.message_type.value} from "
            f"{request.source_context.value} to {target.value}"
        )
        try:
            return await asyncio.wait_for(future, timeout=wait)
        except asyncio.TimeoutError:
            self.total_timeouts += 1
            logger.warning(
                f"MessageBus: {request.message_type.value} to {target.value} "
                f"timed out after {wait}s ({correlation_id})"
            )
            raise RequestTimeoutError(correlation_id, wait) from None
        finally:
            if self._pending.get(correlation_id) is future:
                del self._pending[correlation_id]

    async def _run_request_handler(
        self,
        request: Message,
        correlation_id: str,
        handler: Handler,
    ) -> None:
        try:
            result = handler(request.payload)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            self.total_handler_errors += 1
            logger.error(
                f"MessageBus: Handler for {request.message_type.value} raised: {e}"
            )
            future = self._pending.pop(correlation_id, None)
            if future is None or future.done():
                logger.warning(f"MessageBus: Discarding late failure for request {correlation_id}")
                return
            future.set_exception(e)
            return

        if result is None:
            payload: Payload = {}
        elif isinstance(result, dict):
            payload = result
        else:
            payload = {"result": result}
        self.respond(MessageFactory.response(request, payload))

    def respond(self, response: Message) -> bool:
        """Resolve the pending request matching ``response.correlation_id``.

        Only the first response per correlation id is accepted.

        Returns:
            True if a pending request was resolved
        """
        if response.kind is not MessageKind.RESPONSE:
            raise ValueError("respond() only accepts response messages")

        future = self._pending.get(response.correlation_id)
        if future is None or future.done():
            self.total_discarded_responses += 1
            logger.warning(
                f"MessageBus: Ignoring response for unknown or completed request "
                f"{response.correlation_id}"
            )
            return False

        del self._pending[response.correlation_id]
        future.set_result(response)
        self.total_responses += 1
        return True

    @property
    def pending_request_count(self) -> int:
        return len(self._pending)

    def get_stats(self) -> Dict[str, Any]:
        """Get bus statistics."""
        return {
            "subscriptions": sum(len(h) for h in self._subscriptions.values()),
            "pending_requests": len(self._pending),
            "queued_deliveries": len(self._delivery_tasks),
            "running_request_handlers": len(self._handler_tasks),
            "total_notifications": self.total_notifications,
            "total_requests": self.total_requests,
            "total_responses": self.total_responses,
            "total_timeouts": self.total_timeouts,
            "total_handler_errors": self.total_handler_errors,
            "total_discarded_responses": self.total_discarded_responses,
        }
