"""EventBus — publish/subscribe channel for progress and status events.

Events emitted by the tools:

``progress``
    ``tool``, ``current``, ``total``, ``message`` — one per processed state.
``completed``
    ``tool``, ``message`` — once per successful run.
``log``
    ``tool``, ``message`` — free-form information (dry runs).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

EventHandler = Callable[..., Any]


class EventBus:
    """Decouples tools from whatever reports on them (CLI, tests)."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event: str, handler: EventHandler) -> None:
        """Register *handler* to be called with the keyword payload of *event*."""
        self._handlers[event].append(handler)

    def emit(self, event: str, **kwargs: Any) -> None:
        """Fire *event*, calling every subscribed handler in order.

        A failing handler is logged and does not stop the others, nor the
        tool that emitted the event.
        """
        for handler in self._handlers.get(event, ()):
            try:
                handler(**kwargs)
            except Exception:
                logger.exception("Error in handler %r for event %r", handler, event)
