"""Hook bus the storage adapter reports its operations on.

Events are named ``storage:<operation>`` and carry keyword payloads such as
``path`` or ``visibility``. Subscribers are plain callables taking
``(event, payload)``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

HookHandler = Callable[[str, Dict[str, object]], None]


class HookBus:
    def __init__(self) -> None:
        self._by_event: Dict[str, List[HookHandler]] = defaultdict(list)
        self._catch_all: List[HookHandler] = []

    def subscribe(self, event: str, handler: HookHandler) -> None:
        self._by_event[event].append(handler)

    def subscribe_all(self, handler: HookHandler) -> None:
        self._catch_all.append(handler)

    def unsubscribe(self, handler: HookHandler) -> None:
        for handlers in [*self._by_event.values(), self._catch_all]:
            while handler in handlers:
                handlers.remove(handler)

    def emit(self, event: str, **payload: object) -> None:
        # A failing subscriber is logged and skipped; the storage call has already succeeded.
        for handler in [*self._by_event.get(event, ()), *self._catch_all]:
            try:
                handler(event, payload)
            except Exception as exc:
                logger.debug(f"Hook handler for {event} failed", exc_info=exc)


hooks = HookBus()


def _log_handler(event: str, payload: Dict[str, object]) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("hook %s payload=%s", event, payload)


hooks.subscribe_all(_log_handler)
