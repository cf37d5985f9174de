# SPDX-License-Identifier: Apache-2.0

"""
In-process domain events.

The request ledger publishes events; the lifecycle coordinator subscribes.
Dispatch is synchronous and handler failures are returned to the publisher
instead of being raised, so the publisher decides how a failed reaction is
reported.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnsuspensionApproved:
    """An unsuspension request was approved; the business must be reinstated."""
    request_id: str
    business_id: str
    admin_id: str


@dataclass
class HandlerFailure:
    """A subscriber that raised while handling an event."""
    handler: str
    error: Exception


class NoSubscriberError(LookupError):
    """An event was published that nothing is subscribed to."""


@dataclass
class DispatchOutcome:
    """
    Result of publishing one event.

    An event no handler processed is a failure: the reaction the publisher
    relies on never happened.
    """
    event: Any
    handled: int = 0
    failures: List[HandlerFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.handled > 0 and not self.failures

    @property
    def first_error(self) -> Optional[Exception]:
        if self.failures:
            return self.failures[0].error
        if not self.handled:
            return NoSubscriberError(f"No subscriber handled {type(self.event).__name__}")
        return None


class EventBus:
    """Synchronous publish/subscribe dispatcher keyed by event class."""

    def __init__(self):
        self._handlers: Dict[Type, List[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, event_type: Type, handler: Callable[[Any], None]) -> None:
        """Register ``handler`` for events of ``event_type``."""
        self._handlers[event_type].append(handler)

    def publish(self, event: Any) -> DispatchOutcome:
        """Deliver ``event`` to every subscriber, collecting failures."""
        outcome = DispatchOutcome(event=event)

        for handler in self._handlers.get(type(event), []):
            name = getattr(handler, "__qualname__", repr(handler))
            try:
                handler(event)
                outcome.handled += 1
            except Exception as e:
                logger.error(
                    f"Event handler {name} failed",
                    extra={"event_type": type(event).__name__, "handler": name, "error": str(e)}
                )
                outcome.failures.append(HandlerFailure(handler=name, error=e))

        return outcome
