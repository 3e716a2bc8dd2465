from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Callback = Callable[[str, Dict[str, Any]], None]

EVENTS = ("step", "terminated", "reset")


class Hooks:
    """Synchronous observer registry owned by a single model.

    Callbacks run on the caller's thread right after the engine mutation that
    triggered them. A failing callback is logged and skipped so observers can
    never interrupt a step.
    """

    def __init__(self) -> None:
        self._subs: List[Callback] = []

    def subscribe(self, cb: Callback) -> Callable[[], None]:
        self._subs.append(cb)
        return lambda: self.unsubscribe(cb)

    def unsubscribe(self, cb: Callback) -> None:
        try:
            self._subs.remove(cb)
        except ValueError:
            pass

    def publish(self, event: str, payload: Dict[str, Any]) -> None:
        for cb in list(self._subs):
            try:
                cb(event, payload)
            except Exception:
                logger.warning("Observer %r failed on '%s'", cb, event, exc_info=True)

    def __len__(self) -> int:
        return len(self._subs)
