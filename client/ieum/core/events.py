"""
Small publish/subscribe primitives.

Every ``subscribe``/``add`` call hands back a ``Subscription``; disposing it is
the only way to unregister, so a screen can drop all of its listeners by
disposing the handles it collected.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Subscription:
    def __init__(self, dispose: Callable[[], None]):
        self._dispose = dispose
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def dispose(self) -> None:
        if not self._active:
            return
        self._active = False
        self._dispose()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.dispose()


def combine(*subscriptions: Subscription) -> Subscription:
    """Bundle several handles so one ``dispose()`` releases all of them."""

    def _dispose_all() -> None:
        for sub in subscriptions:
            sub.dispose()

    return Subscription(_dispose_all)


class Listeners:
    """Ordered set of plain callbacks."""

    def __init__(self):
        self._callbacks: list[Callable[..., Any]] = []

    def add(self, callback: Callable[..., Any]) -> Subscription:
        self._callbacks.append(callback)
        return Subscription(lambda: self.remove(callback))

    def remove(self, callback: Callable[..., Any]) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    def clear(self) -> None:
        self._callbacks.clear()

    def notify(self, *args: Any) -> None:
        for callback in list(self._callbacks):
            try:
                callback(*args)
            except Exception:
                logger.exception("Listener %r failed", callback)

    def __len__(self) -> int:
        return len(self._callbacks)
