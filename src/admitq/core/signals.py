"""
Lifecycle signals for queue observers.

The scheduler announces state transitions (``full``, ``empty``, ``drain``,
``error``) the moment they happen, in the same scheduling step that caused
them. Delivery is therefore synchronous; coroutine handlers are scheduled
as tasks on the running loop.

Handler exceptions are logged and never propagate back into the scheduler.

Example::

    signals = SignalEmitter()

    def on_drain():
        print("idle")

    signals.on("drain", on_drain)
    signals.emit("drain")
"""

from __future__ import annotations

import asyncio
import inspect
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from admitq.core.logging import get_logger

__all__ = ["SignalEmitter", "SignalHandler", "Subscription"]

logger = get_logger(__name__)

SignalHandler = Callable[..., Any]


@dataclass
class Subscription:
    """Internal subscription record."""

    id: str
    signal: str
    handler: SignalHandler
    once: bool = False


class SignalEmitter:
    """Synchronous signal registry with per-signal subscriptions."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._pending: set[asyncio.Task[Any]] = set()

    def on(self, signal: str, handler: SignalHandler) -> str:
        """Subscribe ``handler`` to ``signal``.

        Returns:
            Subscription ID, accepted by :meth:`off`.
        """
        return self._add(signal, handler, once=False)

    def once(self, signal: str, handler: SignalHandler) -> str:
        """Subscribe ``handler`` for the next emission of ``signal`` only."""
        return self._add(signal, handler, once=True)

    def off(self, signal: str, handler: SignalHandler | None = None) -> int:
        """Remove subscriptions.

        ``handler`` may be the handler itself or a subscription ID. When it
        is omitted every subscription for ``signal`` is removed.

        Returns:
            Number of subscriptions removed.
        """
        doomed = [
            sub.id
            for sub in self._subscriptions.values()
            if sub.signal == signal
            and (handler is None or sub.id == handler or sub.handler == handler)
        ]
        for sub_id in doomed:
            del self._subscriptions[sub_id]
        return len(doomed)

    def listener_count(self, signal: str) -> int:
        """Number of handlers subscribed to ``signal``."""
        return sum(1 for sub in self._subscriptions.values() if sub.signal == signal)

    def emit(self, signal: str, *args: Any) -> bool:
        """Deliver ``signal`` to its handlers in subscription order.

        Returns:
            True if at least one handler was subscribed.
        """
        subs = [sub for sub in self._subscriptions.values() if sub.signal == signal]
        if not subs:
            return False

        for sub in subs:
            if sub.once:
                self._subscriptions.pop(sub.id, None)
            try:
                outcome = sub.handler(*args)
            except Exception as e:
                logger.warning(
                    "signal.handler_error",
                    signal=signal,
                    subscription_id=sub.id,
                    error=str(e),
                )
                continue
            if inspect.isawaitable(outcome):
                self._schedule(signal, sub.id, outcome)
        return True

    def _add(self, signal: str, handler: SignalHandler, *, once: bool) -> str:
        sub_id = f"sig_{uuid.uuid4().hex[:12]}"
        self._subscriptions[sub_id] = Subscription(
            id=sub_id,
            signal=signal,
            handler=handler,
            once=once,
        )
        return sub_id

    def _schedule(self, signal: str, sub_id: str, awaitable: Any) -> None:
        async def safe_call() -> None:
            try:
                await awaitable
            except Exception as e:
                logger.warning(
                    "signal.handler_error",
                    signal=signal,
                    subscription_id=sub_id,
                    error=str(e),
                )

        task = asyncio.ensure_future(safe_call())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
