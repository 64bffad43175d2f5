"""Timer bookkeeping: timers ordered by fire time and fired when due."""

from __future__ import annotations

import bisect
import itertools
import threading
import time
from dataclasses import dataclass, field
from enum import IntFlag
from typing import Callable

TimerCallback = Callable[[int], None]

_ID_MODULUS = 2**32


class TimerFlag(IntFlag):
    """How a timer behaves after it fires."""

    NONE = 0
    SINGLE_SHOT = 1


def current_time_ms() -> int:
    """Milliseconds from a monotonic clock."""
    return time.monotonic_ns() // 1_000_000


@dataclass
class _Timer:
    when: int
    timer_id: int
    flags: TimerFlag
    interval: int
    callback: TimerCallback
    seq: int = field(default=0)

    @property
    def key(self) -> tuple[int, int]:
        return (self.when, self.seq)


class TimerQueue:
    """Timers keyed by id and kept sorted by the time they are due.

    Timers due at the same time fire in the order they were scheduled.
    Callbacks run without the internal lock held, so they may register
    or unregister timers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_id: dict[int, _Timer] = {}
        self._keys: list[tuple[int, int]] = []
        self._by_key: dict[tuple[int, int], _Timer] = {}
        self._next_id = 0
        self._seq = itertools.count()

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def __contains__(self, timer_id: object) -> bool:
        with self._lock:
            return timer_id in self._by_id

    def _insert(self, timer: _Timer) -> None:
        timer.seq = next(self._seq)
        key = timer.key
        bisect.insort(self._keys, key)
        self._by_key[key] = timer

    def _remove_sorted(self, timer: _Timer) -> None:
        key = timer.key
        index = bisect.bisect_left(self._keys, key)
        if index >= len(self._keys) or self._keys[index] != key:
            raise RuntimeError(f"Found timer {timer.timer_id} by id but not by timeout")
        del self._keys[index]
        del self._by_key[key]

    def register(
        self,
        callback: TimerCallback,
        timeout: int,
        flags: TimerFlag = TimerFlag.NONE,
        now: int | None = None,
    ) -> int:
        """Schedule ``callback`` to fire ``timeout`` ms from ``now``; return its id."""
        if now is None:
            now = current_time_ms()
        with self._lock:
            while True:
                self._next_id = (self._next_id + 1) % _ID_MODULUS
                if self._next_id not in self._by_id:
                    break
            timer = _Timer(
                when=now + timeout,
                timer_id=self._next_id,
                flags=TimerFlag(flags),
                interval=timeout,
                callback=callback,
            )
            self._by_id[timer.timer_id] = timer
            self._insert(timer)
            return timer.timer_id

    def unregister(self, timer_id: int) -> bool:
        """Drop the timer with ``timer_id``; return whether it existed."""
        with self._lock:
            timer = self._by_id.pop(timer_id, None)
            if timer is None:
                return False
            self._remove_sorted(timer)
            return True

    def next_timeout(self, now: int | None = None) -> int | None:
        """Milliseconds until the earliest timer is due (never negative), or None."""
        if now is None:
            now = current_time_ms()
        with self._lock:
            if not self._keys:
                return None
            return max(self._keys[0][0] - now, 0)

    def fire_due(self, now: int | None = None) -> bool:
        """Fire every timer due at ``now``, each at most once; return whether any fired.

        Single-shot timers are removed before they fire; repeating timers are
        rescheduled one interval after the time they were due.
        """
        if now is None:
            now = current_time_ms()
        fired: set[int] = set()
        while True:
            with self._lock:
                timer = next(
                    (
                        self._by_key[key]
                        for key in self._keys
                        if self._by_key[key].timer_id not in fired
                    ),
                    None,
                )
                if timer is None or timer.when > now:
                    return bool(fired)
                self._remove_sorted(timer)
                if timer.flags & TimerFlag.SINGLE_SHOT:
                    del self._by_id[timer.timer_id]
                else:
                    timer.when += timer.interval
                    self._insert(timer)
                callback = timer.callback
                timer_id = timer.timer_id
                fired.add(timer_id)
            callback(timer_id)

    def clear(self) -> None:
        """Remove all timers and restart id numbering."""
        with self._lock:
            self._by_id.clear()
            self._keys.clear()
            self._by_key.clear()
            self._next_id = 0