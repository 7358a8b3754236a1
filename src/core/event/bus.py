"""
Pathway EventBus: async pub/sub for progression side effects.

Purpose
-------
Decouple the progression engine from whatever reacts to its outcomes
(notifications, analytics, cache invalidation). Services publish after their
transaction commits; listeners never take part in the award itself.

Responsibilities
----------------
- Register/unregister listeners with priorities (exact names or wildcards)
- Publish events to every matching listener in priority order
- Isolate listener failures: one failing listener never blocks the others
  and never propagates to the publisher
- Protect the publisher from hung listeners with a per-listener timeout

Design Notes
------------
- Instance-based: each ServiceContainer owns its bus, tests build their own
- Listeners run sequentially (priority, then registration order) so event
  handling is deterministic
- Sync callbacks run in the default executor to avoid blocking the loop
- Listener timeout comes from ConfigManager key
  ``core.event.listener_timeout_seconds`` (default 5.0, <= 0 disables)
"""

from __future__ import annotations

import asyncio
import inspect
from typing import TYPE_CHECKING, Any, Optional

from src.core.event.router import EventRouter
from src.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from src.core.logging.logger import get_logger

if TYPE_CHECKING:
    from src.core.config.manager import ConfigManager

logger = get_logger(__name__)

DEFAULT_LISTENER_TIMEOUT = 5.0


class EventBus:
    """
    Async EventBus with priority ordering and error isolation.

    Designed for single-threaded asyncio usage. All methods must be called
    from the same event loop.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("progression.leveled_up", on_level_up)
    >>> await bus.publish("progression.leveled_up", {"user_id": "u-1", "new_level": 3})
    """

    def __init__(
        self,
        config_manager: Optional["ConfigManager"] = None,
        *,
        router: Optional[EventRouter] = None,
        listener_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._router = router or EventRouter()
        self._listeners: dict[str, list[EventListener]] = {}
        self._published: dict[str, int] = {}
        self._errors: dict[str, int] = {}

        if listener_timeout_seconds is not None:
            self._timeout = float(listener_timeout_seconds)
        elif config_manager is not None:
            self._timeout = float(
                config_manager.get(
                    "core.event.listener_timeout_seconds", DEFAULT_LISTENER_TIMEOUT
                )
            )
        else:
            self._timeout = DEFAULT_LISTENER_TIMEOUT

        logger.debug(
            "EventBus initialized",
            extra={"listener_timeout_seconds": self._timeout},
        )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        """Reject callbacks that cannot take exactly one payload argument."""
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            # C-level callables may not expose a signature
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            callback_name = getattr(callback, "__qualname__", None) or repr(callback)
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{callback_name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns:
            The listener identifier (for unsubscribing later). Subscribing the
            same identifier twice for one event is a no-op.

        Raises:
            ValueError: If the callback signature is invalid
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        bucket = self._listeners.setdefault(event_name, [])
        if any(existing.identifier == listener.identifier for existing in bucket):
            logger.warning(
                "EventBus: duplicate listener prevented",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        bucket.append(listener)
        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
                "once": listener.once,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        """Remove a listener; returns True if one was removed."""
        bucket = self._listeners.get(event_name, [])
        remaining = [lst for lst in bucket if lst.identifier != identifier]
        removed = len(remaining) != len(bucket)

        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)

        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        """Remove all listeners (tests and shutdown)."""
        total = sum(len(bucket) for bucket in self._listeners.values())
        self._listeners.clear()
        logger.info(
            "EventBus: cleared all listeners",
            extra={"previous_listener_count": total},
        )

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    def _extract_listeners(self, event_name: str) -> list[EventListener]:
        """Collect matching listeners in execution order and drop once=True ones."""
        matched: list[tuple[int, int, EventListener]] = []
        sequence = 0
        for key, bucket in list(self._listeners.items()):
            if not self._router.matches(event_name, key):
                continue
            for listener in bucket:
                matched.append((listener.priority.value, sequence, listener))
                sequence += 1
            one_shot = [lst for lst in bucket if lst.once]
            if one_shot:
                for listener in one_shot:
                    self.unsubscribe(key, listener.identifier)

        matched.sort(key=lambda item: (item[0], item[1]))
        return [listener for _, _, listener in matched]

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Publish an event to all matching listeners.

        Returns:
            Listener results in execution order (None for failed listeners).
        """
        self._published[event_name] = self._published.get(event_name, 0) + 1

        listeners = self._extract_listeners(event_name)
        if not listeners:
            logger.debug(
                "EventBus: no listeners for event",
                extra={"event_name": event_name},
            )
            return []

        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "payload_keys": list(data.keys()),
                "listener_count": len(listeners),
            },
        )

        results = []
        for listener in listeners:
            results.append(await self._run_listener(listener, event_name, data))
        return results

    async def _run_listener(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
    ) -> Any:
        try:
            if asyncio.iscoroutinefunction(listener.callback):
                call = listener.callback(payload)
            else:
                loop = asyncio.get_running_loop()
                call = loop.run_in_executor(None, listener.callback, payload)

            if self._timeout > 0:
                return await asyncio.wait_for(call, timeout=self._timeout)
            return await call

        except asyncio.TimeoutError:
            self._errors[event_name] = self._errors.get(event_name, 0) + 1
            logger.error(
                "EventBus listener timeout",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "timeout_seconds": self._timeout,
                },
            )
            return None

        except Exception as exc:
            # Listener failures stay inside the bus
            self._errors[event_name] = self._errors.get(event_name, 0) + 1
            logger.error(
                "EventBus listener error",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "priority": listener.priority.name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        """Total listeners, or listeners that would receive ``event_name``."""
        if event_name is None:
            return sum(len(bucket) for bucket in self._listeners.values())
        return sum(
            len(bucket)
            for key, bucket in self._listeners.items()
            if self._router.matches(event_name, key)
        )

    def get_all_events(self) -> list[str]:
        return sorted(self._listeners)

    def get_metrics_summary(self) -> dict[str, Any]:
        total_published = sum(self._published.values())
        total_errors = sum(self._errors.values())
        return {
            "total_events_published": total_published,
            "events_by_type": dict(self._published),
            "total_errors": total_errors,
            "errors_by_event": dict(self._errors),
            "total_listeners": self.get_listener_count(),
        }
