"""FIFO action queue that keeps one paced action in flight at a time."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class ActionStep:
    """One sub-step of an action: optional work, then an optional pause."""

    name: str
    run: Callable[[], Any] | None = None
    delay: float = 0.0


@dataclass
class Action:
    kind: str
    steps: list[ActionStep] = field(default_factory=list)
    on_complete: Callable[[], Any] | None = None
    player_id: str | None = None


class ActionQueue:
    """Strictly FIFO queue drained synchronously by the first caller.

    Enqueueing while an action is in flight (for example from a completion
    callback that schedules the next AI move) only appends; the outer drain
    loop picks the new action up once the current one has fully finished.
    Delays go through the injected ``sleep`` so headless runs can skip them.
    """

    def __init__(
        self, sleep: Callable[[float], Any] = time.sleep, speed_factor: float = 1.0
    ) -> None:
        if speed_factor <= 0:
            raise ValueError("speed_factor must be positive.")
        self._sleep = sleep
        self.speed_factor = speed_factor
        self._queue: deque[Action] = deque()
        self._processing = False
        self.completed = 0

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def in_flight(self) -> bool:
        return self._processing

    def enqueue(self, action: Action) -> None:
        self._queue.append(action)
        logger.debug(
            "action_enqueued",
            extra={"kind": action.kind, "player": action.player_id, "pending": len(self._queue)},
        )
        if not self._processing:
            self._drain()

    def clear(self) -> None:
        """Drop actions that have not started; the in-flight one still finishes."""
        self._queue.clear()

    def _drain(self) -> None:
        self._processing = True
        try:
            while self._queue:
                self._run(self._queue.popleft())
        finally:
            self._processing = False

    def _run(self, action: Action) -> None:
        for step in action.steps:
            try:
                if step.run is not None:
                    step.run()
            except Exception:
                logger.exception(
                    "action_step_failed",
                    extra={"kind": action.kind, "step": step.name, "player": action.player_id},
                )
                self._queue.clear()
                raise
            if step.delay > 0:
                self._sleep(step.delay / self.speed_factor)
        if action.on_complete is not None:
            action.on_complete()
        self.completed += 1
