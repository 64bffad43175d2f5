"""System CPU load estimated from idle ticks sampled once a second."""

from __future__ import annotations

import os
import threading

from .timers import current_time_ms

SAMPLE_INTERVAL_MS = 1000


def read_idle_ticks(stat_path: str | os.PathLike[str] = "/proc/stat") -> int:
    """Idle tick count from the first line of a /proc/stat style file.

    Raises OSError if the file cannot be read and ValueError if it is malformed.
    """
    with open(stat_path, encoding="ascii", errors="replace") as handle:
        line = handle.readline()
    fields = line.split()
    if len(fields) < 5:
        raise ValueError(f"unexpected stat line: {line!r}")
    try:
        int(fields[1]), int(fields[2]), int(fields[3])
        return int(fields[4])
    except ValueError as exc:
        raise ValueError(f"unexpected stat line: {line!r}") from exc


def _clock_ticks() -> float:
    try:
        return float(os.sysconf("SC_CLK_TCK"))
    except (AttributeError, ValueError, OSError):
        return 100.0


def _online_cores() -> int:
    try:
        return int(os.sysconf("SC_NPROCESSORS_ONLN"))
    except (AttributeError, ValueError, OSError):
        return os.cpu_count() or 1


class CpuUsage:
    """CPU usage over the last sample period, from 0 (idle) to 1 (busy).

    The first call to ``usage`` starts a background thread that samples
    idle ticks; sampling stops when the counter cannot be read.
    """

    def __init__(
        self,
        stat_path: str | os.PathLike[str] = "/proc/stat",
        hz: float | None = None,
        cores: int | None = None,
    ) -> None:
        self._stat_path = stat_path
        self._hz = float(hz) if hz is not None else _clock_ticks()
        self._cores = cores if cores is not None else _online_cores()
        self._lock = threading.Lock()
        self._idle = 0.0
        self._last_usage = 0
        self._last_time = 0
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()

    def sample(self, usage: int, now_ms: int) -> None:
        """Feed an idle tick count read at ``now_ms``; times must increase."""
        with self._lock:
            if now_ms <= self._last_time:
                raise ValueError("sample times must increase")
            if self._last_time > 0:
                if self._last_usage > usage:
                    # counter wrapped
                    self._idle = 0.0
                else:
                    delta_usage = usage - self._last_usage
                    delta_time = now_ms - self._last_time
                    time_ratio = delta_time / SAMPLE_INTERVAL_MS
                    self._idle = (delta_usage / self._hz / self._cores) / time_ratio
            self._last_usage = usage
            self._last_time = now_ms

    def usage(self) -> float:
        """Current usage estimate; starts sampling on first use."""
        self.start()
        with self._lock:
            return 1.0 - self._idle

    def start(self) -> None:
        """Start the sampling thread once."""
        with self._lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._collect, daemon=True)
            self._thread.start()

    def stop(self) -> None:
        """Stop the sampling thread and wait for it."""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _collect(self) -> None:
        while not self._stop.is_set():
            try:
                ticks = read_idle_ticks(self._stat_path)
                self.sample(ticks, current_time_ms())
            except (OSError, ValueError):
                return
            if self._stop.wait(SAMPLE_INTERVAL_MS / 1000):
                return