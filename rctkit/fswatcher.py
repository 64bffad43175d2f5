"""Watch files and directories and report added, removed and modified paths."""

from __future__ import annotations

import logging
import os
import threading
from enum import IntFlag
from typing import Any, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .timers import TimerFlag

PathCallback = Callable[[str], None]

_log = logging.getLogger(__name__)


class ChangeType(IntFlag):
    """Kinds of change, combinable when processing pending changes."""

    ADD = 0x1
    REMOVE = 0x2
    MODIFIED = 0x4
    ALL = 0x7


_ORDER = (ChangeType.ADD, ChangeType.REMOVE, ChangeType.MODIFIED)


class _Handler(FileSystemEventHandler):
    def __init__(self, watcher: FileSystemWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def dispatch(self, event: FileSystemEvent) -> None:
        self._watcher._on_event(event)


def _as_dir(path: str) -> str:
    return path if path.endswith(os.sep) else path + os.sep


class FileSystemWatcher:
    """Collects file-system changes and hands them to callbacks.

    Callbacks are appended to ``added``, ``removed`` and ``modified``; each is
    called with a path. Removals are held back for ``remove_delay`` ms so that
    a remove followed by an add of the same path is reported as a modification.
    Watched paths are stored absolute; directories end with a separator.
    """

    def __init__(self, remove_delay: int = 1000, loop: Any = None, observer: Any = None) -> None:
        self.remove_delay = remove_delay
        self._loop = loop
        self._observer = observer if observer is not None else Observer()
        self._started = False
        self._lock = threading.Lock()
        self._watched: dict[str, bool] = {}
        self._schedules: dict[str, list[Any]] = {}
        self._handler = _Handler(self)
        self._pending: dict[ChangeType, set[str]] = {change: set() for change in _ORDER}
        self._timer: Any = None
        self.added: list[PathCallback] = []
        self.removed: list[PathCallback] = []
        self.modified: list[PathCallback] = []

    def __enter__(self) -> FileSystemWatcher:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _callbacks(self, change: ChangeType) -> list[PathCallback]:
        if change is ChangeType.ADD:
            return self.added
        if change is ChangeType.REMOVE:
            return self.removed
        return self.modified

    def _schedule(self, directory: str) -> bool:
        entry = self._schedules.get(directory)
        if entry is not None:
            entry[1] += 1
            return True
        try:
            handle = self._observer.schedule(self._handler, directory, recursive=False)
        except OSError as exc:
            _log.error("FileSystemWatcher::watch() watch failed for '%s' %s", directory, exc)
            return False
        self._schedules[directory] = [handle, 1]
        if not self._started:
            self._observer.start()
            self._started = True
        return True

    def _unschedule(self, directory: str) -> None:
        entry = self._schedules.get(directory)
        if entry is None:
            return
        entry[1] -= 1
        if entry[1] <= 0:
            del self._schedules[directory]
            try:
                self._observer.unschedule(entry[0])
            except (KeyError, OSError):
                pass

    def watch(self, path: str | os.PathLike[str]) -> bool:
        """Start watching a file or directory; False if not watchable or already watched."""
        path = os.fspath(path)
        if not path:
            return False
        absolute = os.path.abspath(path)
        if os.path.isdir(absolute):
            key, is_dir, directory = _as_dir(absolute), True, absolute
        elif os.path.isfile(absolute):
            key, is_dir, directory = absolute, False, os.path.dirname(absolute)
        else:
            _log.error("FileSystemWatcher::watch() '%s' doesn't seem to be watchable", path)
            return False
        with self._lock:
            if key in self._watched:
                return False
            if not self._schedule(directory):
                return False
            self._watched[key] = is_dir
            return True

    def _watched_key(self, path: str) -> str | None:
        absolute = os.path.abspath(path)
        if absolute in self._watched:
            return absolute
        as_dir = _as_dir(absolute)
        return as_dir if as_dir in self._watched else None

    def unwatch(self, path: str | os.PathLike[str]) -> bool:
        """Stop watching ``path``; return whether it was watched."""
        path = os.fspath(path)
        if not path:
            return False
        with self._lock:
            key = self._watched_key(path)
            if key is None:
                return False
            is_dir = self._watched.pop(key)
            directory = key.rstrip(os.sep) or os.sep if is_dir else os.path.dirname(key)
            self._unschedule(directory)
            return True

    def clear(self) -> None:
        """Stop watching everything."""
        with self._lock:
            for handle, _count in self._schedules.values():
                try:
                    self._observer.unschedule(handle)
                except (KeyError, OSError):
                    pass
            self._schedules.clear()
            self._watched.clear()

    def watched_paths(self) -> set[str]:
        """The watched paths; directories end with a separator."""
        with self._lock:
            return set(self._watched)

    def _record(self, change: ChangeType, path: str) -> None:
        added = self._pending[ChangeType.ADD]
        removed = self._pending[ChangeType.REMOVE]
        if change is ChangeType.ADD:
            if path in removed:
                removed.discard(path)
                self._pending[ChangeType.MODIFIED].add(path)
            else:
                added.add(path)
        elif change is ChangeType.REMOVE:
            if path in added:
                added.discard(path)
            else:
                removed.add(path)
        elif change is ChangeType.MODIFIED:
            self._pending[ChangeType.MODIFIED].add(path)
        else:
            raise ValueError(f"not a single change type: {change!r}")

    def record(self, change: ChangeType, path: str) -> None:
        """Note a change; an add cancels a pending remove and the reverse."""
        with self._lock:
            self._record(ChangeType(change), path)

    def _relevant(self, path: str) -> str | None:
        if self._watched.get(path) is False:
            return path
        as_dir = _as_dir(path)
        if as_dir in self._watched:
            return as_dir
        if self._watched.get(_as_dir(os.path.dirname(path))):
            return path
        return None

    def _on_event(self, event: FileSystemEvent) -> None:
        kind = event.event_type
        src = os.fsdecode(event.src_path)
        candidates: list[tuple[ChangeType, str]] = []
        if kind == "created":
            candidates.append((ChangeType.ADD, src))
        elif kind == "deleted":
            candidates.append((ChangeType.REMOVE, src))
        elif kind == "moved":
            candidates.append((ChangeType.REMOVE, src))
            dest = os.fsdecode(getattr(event, "dest_path", "") or "")
            if dest:
                candidates.append((ChangeType.ADD, dest))
        elif kind in ("modified", "closed"):
            candidates.append((ChangeType.MODIFIED, src))
        else:
            return
        recorded = False
        with self._lock:
            for change, path in candidates:
                name = self._relevant(path)
                if name is None:
                    continue
                if (
                    change is ChangeType.MODIFIED
                    and event.is_directory
                    and self._watched.get(name) is True
                ):
                    continue
                self._record(change, name)
                recorded = True
        if not recorded:
            return
        if self._loop is not None:
            self._loop.call_later(self.process_changes)
        else:
            self.process_changes()

    def _emit(self, types: ChangeType) -> None:
        for change in _ORDER:
            if not types & change:
                continue
            with self._lock:
                paths, self._pending[change] = self._pending[change], set()
            for path in sorted(paths):
                for callback in list(self._callbacks(change)):
                    callback(path)

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is None:
            return
        if isinstance(timer, int):
            if self._loop is not None:
                self._loop.unregister_timer(timer)
        else:
            timer.cancel()

    def _restart_timer(self) -> None:
        with self._lock:
            self._cancel_timer()
            if self._loop is not None:
                self._timer = self._loop.register_timer(
                    lambda _timer_id: self._emit(ChangeType.REMOVE),
                    self.remove_delay,
                    TimerFlag.SINGLE_SHOT,
                )
            else:
                timer = threading.Timer(
                    self.remove_delay / 1000, self._emit, args=(ChangeType.REMOVE,)
                )
                timer.daemon = True
                timer.start()
                self._timer = timer

    def process_changes(self, types: ChangeType | None = None) -> None:
        """Report pending changes of ``types``.

        Without ``types``, adds and modifications are reported at once and
        removals after ``remove_delay`` ms (or at once if the delay is 0).
        """
        if types is None:
            if self.remove_delay > 0:
                self._emit(ChangeType.ADD | ChangeType.MODIFIED)
                with self._lock:
                    has_removed = bool(self._pending[ChangeType.REMOVE])
                if has_removed:
                    self._restart_timer()
            else:
                self._emit(ChangeType.ALL)
            return
        types = ChangeType(types)
        if not types:
            raise ValueError("no change types given")
        self._emit(types)

    def close(self) -> None:
        """Stop the removal timer and all watching."""
        with self._lock:
            self._cancel_timer()
        self.clear()
        if self._started:
            self._observer.stop()
            self._observer.join()
            self._started = False