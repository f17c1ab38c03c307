"""
Cooperative scheduler

Delayed callbacks on a virtual clock, advanced explicitly by the game
loop. Single-threaded: callbacks run inside update().
"""
import heapq
from typing import Any, Callable, List, Tuple


class ScheduledTask:
    """Handle for a pending callback."""

    def __init__(self, due: float, callback: Callable, args: Tuple[Any, ...]):
        self.due = due
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.done = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.done)

    def __repr__(self):
        name = getattr(self.callback, "__name__", repr(self.callback))
        return f"ScheduledTask({name}, due={self.due:.3f}, active={self.active})"


class Scheduler:
    """Min-heap of tasks ordered by due time, FIFO on ties."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self._queue: List[Tuple[float, int, ScheduledTask]] = []
        self._counter = 0  # Tie-breaker for equal due times

    def clock(self) -> float:
        """Current virtual time in seconds."""
        return self.now

    def call_later(self, delay: float, callback: Callable, *args) -> ScheduledTask:
        """Run callback(*args) once `delay` seconds have elapsed."""
        task = ScheduledTask(self.now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (task.due, self._counter, task))
        self._counter += 1
        return task

    def update(self, dt: float) -> int:
        """Advance the clock by dt and run every task that became due.

        Tasks scheduled by a running callback also run if they fall due
        within this step. Returns the number of callbacks run.
        """
        target = self.now + dt
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, task = heapq.heappop(self._queue)
            if task.cancelled:
                continue
            self.now = max(self.now, due)
            task.done = True
            task.callback(*task.args)
            ran += 1
        self.now = target
        return ran

    def cancel_all(self) -> None:
        for _, _, task in self._queue:
            task.cancel()
        self._queue.clear()

    @property
    def pending(self) -> int:
        """Number of tasks still waiting to run."""
        return sum(1 for _, _, task in self._queue if task.active)
