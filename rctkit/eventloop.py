"""Event loop running posted calls, timers and socket callbacks on one thread."""

from __future__ import annotations

import selectors
import signal
import socket
import sys
import threading
import weakref
from collections import deque
from dataclasses import dataclass
from enum import IntFlag
from typing import Any, Callable

from .timers import TimerCallback, TimerFlag, TimerQueue

SocketCallback = Callable[[int, "SocketMode"], None]


class LoopFlag(IntFlag):
    """Options given to EventLoop.init."""

    NONE = 0x0
    MAIN_EVENT_LOOP = 0x1
    ENABLE_SIGINT_HANDLER = 0x2
    ENABLE_SIGTERM_HANDLER = 0x4


class SocketMode(IntFlag):
    """What a socket is watched for, and what happened to it."""

    NONE = 0x0
    READ = 0x1
    WRITE = 0x2
    ONE_SHOT = 0x4
    ERROR = 0x8
    LEVEL_TRIGGERED = 0x10


class ExecResult(IntFlag):
    """Why EventLoop.exec returned."""

    SUCCESS = 0x100
    GENERAL_ERROR = 0x200
    TIMEOUT = 0x400


_STOP_BITS = int(ExecResult.SUCCESS | ExecResult.GENERAL_ERROR | ExecResult.TIMEOUT)
_SOCKET_BITS = 0xFF

_local = threading.local()
_main_lock = threading.Lock()
_main_loop: weakref.ReferenceType[EventLoop] | None = None
_signal_pipe: socket.socket | None = None


def _signal_handler(signum: int, frame: Any) -> None:
    pipe = _signal_pipe
    if pipe is not None:
        try:
            pipe.send(b"q")
        except OSError:
            pass


def _selector_events(mode: int) -> int:
    events = 0
    if mode & SocketMode.READ:
        events |= selectors.EVENT_READ
    if mode & SocketMode.WRITE:
        events |= selectors.EVENT_WRITE
    return events


def _mode_from_mask(mask: int) -> SocketMode:
    mode = SocketMode.NONE
    if mask & selectors.EVENT_READ:
        mode |= SocketMode.READ
    if mask & selectors.EVENT_WRITE:
        mode |= SocketMode.WRITE
    return mode


def _fileno(fd: Any) -> int:
    return fd if isinstance(fd, int) else fd.fileno()


@dataclass
class _Socket:
    mode: SocketMode
    callback: SocketCallback


class EventLoop:
    """Runs posted calls, due timers and socket callbacks until told to quit.

    Sockets are watched level-triggered; a one-shot socket is disarmed after
    it fires until ``update_socket`` arms it again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()
        self._timers = TimerQueue()
        self._sockets: dict[int, _Socket] = {}
        self._selector: selectors.BaseSelector | None = None
        self._wake_recv: socket.socket | None = None
        self._wake_send: socket.socket | None = None
        self._pipe_fd = -1
        self._thread_id: int | None = None
        self._stop = False
        self._timed_out = False
        self._flags = LoopFlag.NONE
        self._previous_handlers: dict[int, Any] = {}
        self.inactivity_timeout = 0

    def __enter__(self) -> EventLoop:
        return self

    def __exit__(self, *exc: object) -> None:
        self.cleanup()

    @property
    def flags(self) -> LoopFlag:
        return self._flags

    @property
    def thread_id(self) -> int | None:
        return self._thread_id

    def _require_init(self) -> selectors.BaseSelector:
        if self._selector is None:
            raise RuntimeError("event loop is not initialised")
        return self._selector

    def init(self, flags: LoopFlag = LoopFlag.NONE) -> None:
        """Set up the wakeup pipe and make this the current thread's loop."""
        global _main_loop, _signal_pipe
        if self._selector is not None:
            raise RuntimeError("event loop is already initialised")
        flags = LoopFlag(flags)
        signal_flags = LoopFlag.ENABLE_SIGINT_HANDLER | LoopFlag.ENABLE_SIGTERM_HANDLER
        with self._lock:
            self._flags = flags
            self._thread_id = threading.get_ident()
            self._wake_recv, self._wake_send = socket.socketpair()
            self._wake_recv.setblocking(False)
            self._wake_send.setblocking(False)
            self._pipe_fd = self._wake_recv.fileno()
            self._selector = selectors.DefaultSelector()
            self._selector.register(self._pipe_fd, selectors.EVENT_READ)

        if flags & signal_flags:
            if _signal_pipe is not None:
                self.cleanup()
                raise RuntimeError("another event loop already handles signals")
            _signal_pipe = self._wake_send
            wanted = []
            if flags & LoopFlag.ENABLE_SIGINT_HANDLER:
                wanted.append(signal.SIGINT)
            if flags & LoopFlag.ENABLE_SIGTERM_HANDLER:
                wanted.append(signal.SIGTERM)
            try:
                for signum in wanted:
                    self._previous_handlers[signum] = signal.signal(signum, _signal_handler)
            except (ValueError, OSError):
                self.cleanup()
                raise

        _local.loop = weakref.ref(self)
        if flags & LoopFlag.MAIN_EVENT_LOOP:
            with _main_lock:
                _main_loop = weakref.ref(self)

    def cleanup(self) -> None:
        """Drop pending events, timers and sockets and release the loop's resources."""
        global _main_loop, _signal_pipe
        ref = getattr(_local, "loop", None)
        if ref is not None and ref() is self:
            _local.loop = None
        with self._lock:
            self._events.clear()
            self._sockets.clear()
        self._timers.clear()

        for signum, handler in self._previous_handlers.items():
            try:
                signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
            except (ValueError, OSError):
                pass
        self._previous_handlers.clear()
        if _signal_pipe is not None and _signal_pipe is self._wake_send:
            _signal_pipe = None

        if self._selector is not None:
            self._selector.close()
            self._selector = None
        for sock in (self._wake_recv, self._wake_send):
            if sock is not None:
                sock.close()
        self._wake_recv = self._wake_send = None
        self._pipe_fd = -1

        if self._flags & LoopFlag.MAIN_EVENT_LOOP:
            with _main_lock:
                if _main_loop is not None and _main_loop() is self:
                    _main_loop = None

    @staticmethod
    def main_event_loop() -> EventLoop | None:
        """The loop initialised with MAIN_EVENT_LOOP, if it still exists."""
        with _main_lock:
            return _main_loop() if _main_loop is not None else None

    @staticmethod
    def event_loop() -> EventLoop | None:
        """This thread's loop, falling back to the main loop."""
        ref = getattr(_local, "loop", None)
        loop = ref() if ref is not None else None
        if loop is None:
            loop = EventLoop.main_event_loop()
        return loop

    @staticmethod
    def is_main_thread() -> bool:
        """Whether the calling thread runs the main loop."""
        main = EventLoop.main_event_loop()
        return main is not None and main.thread_id == threading.get_ident()

    def post(self, func: Callable[..., Any], *args: Any) -> None:
        """Queue ``func(*args)`` to run on the loop's thread."""
        with self._lock:
            self._events.append((func, args))
            self.wakeup()

    def call_later(self, func: Callable[..., Any], *args: Any) -> None:
        """Queue ``func(*args)`` to run on the loop's thread."""
        self.post(func, *args)

    def wakeup(self) -> None:
        """Interrupt a wait in progress; does nothing on the loop's own thread."""
        if threading.get_ident() == self._thread_id:
            return
        sender = self._wake_send
        if sender is None:
            return
        try:
            sender.send(b"w")
        except OSError:
            pass

    def quit(self) -> None:
        """Make exec return at its next turn."""
        with self._lock:
            self._stop = True
            self.wakeup()

    def _send_posted_events(self) -> bool:
        with self._lock:
            if not self._events:
                return False
        while True:
            with self._lock:
                if not self._events:
                    return True
                func, args = self._events.popleft()
            func(*args)

    def register_timer(
        self, callback: TimerCallback, timeout: int, flags: TimerFlag = TimerFlag.NONE
    ) -> int:
        """Call ``callback(timer_id)`` after ``timeout`` ms; return the timer's id."""
        timer_id = self._timers.register(callback, timeout, flags)
        self.wakeup()
        return timer_id

    def unregister_timer(self, timer_id: int) -> bool:
        """Remove a timer; return whether it existed."""
        return self._timers.unregister(timer_id)

    def _arm(self, fd: int, mode: SocketMode) -> None:
        selector = self._require_init()
        events = _selector_events(mode)
        try:
            selector.get_key(fd)
            registered = True
        except KeyError:
            registered = False
        if not events:
            if registered:
                selector.unregister(fd)
        elif registered:
            selector.modify(fd, events)
        else:
            selector.register(fd, events)

    def register_socket(self, fd: Any, mode: SocketMode, callback: SocketCallback) -> None:
        """Watch ``fd`` and call ``callback(fd, mode)`` when it becomes ready."""
        fd = _fileno(fd)
        mode = SocketMode(mode)
        with self._lock:
            self._arm(fd, mode)
            self._sockets[fd] = _Socket(mode, callback)
            self.wakeup()

    def update_socket(self, fd: Any, mode: SocketMode) -> None:
        """Change what a watched ``fd`` is watched for; raises KeyError if unknown."""
        fd = _fileno(fd)
        mode = SocketMode(mode)
        with self._lock:
            entry = self._sockets.get(fd)
            if entry is None:
                raise KeyError(f"Unable to find socket to update {fd}")
            entry.mode = mode
            self._arm(fd, mode)
            self.wakeup()

    def unregister_socket(self, fd: Any) -> None:
        """Stop watching ``fd``; unknown descriptors are ignored."""
        fd = _fileno(fd)
        with self._lock:
            if self._sockets.pop(fd, None) is None:
                return
            if self._selector is not None:
                try:
                    self._selector.unregister(fd)
                except (KeyError, ValueError):
                    pass
            self.wakeup()

    def _fire_socket(self, fd: int, mode: SocketMode) -> int:
        with self._lock:
            entry = self._sockets.get(fd)
            if entry is None:
                return 0
            callback = entry.callback
            if entry.mode & SocketMode.ONE_SHOT and self._selector is not None:
                try:
                    self._selector.unregister(fd)
                except (KeyError, ValueError):
                    pass
        callback(fd, mode)
        return int(mode)

    def _drain_pipe(self) -> int | None:
        receiver = self._wake_recv
        if receiver is None:
            return None
        while True:
            try:
                data = receiver.recv(4096)
            except (BlockingIOError, InterruptedError):
                return None
            except OSError as exc:
                print(f"Error reading from event pipe: {exc}", file=sys.stderr)
                return int(ExecResult.GENERAL_ERROR)
            if not data:
                return None
            if b"q" in data:
                return int(ExecResult.SUCCESS)

    def _process_events(self, events: list[tuple[int, SocketMode]]) -> int:
        fired = 0
        for fd, mode in events:
            if not mode:
                continue
            if fd == self._pipe_fd:
                result = self._drain_pipe()
                if result is not None:
                    return result
            else:
                fired |= self._fire_socket(fd, mode)
        return fired

    def process_socket(self, fd: Any, timeout: int | None = None) -> SocketMode:
        """Wait up to ``timeout`` ms for ``fd`` alone and fire its callback.

        Returns the mode the callback was fired with, or NONE.
        """
        fd = _fileno(fd)
        with selectors.DefaultSelector() as selector:
            selector.register(fd, selectors.EVENT_READ | selectors.EVENT_WRITE)
            wait = None if timeout is None or timeout < 0 else timeout / 1000
            ready = selector.select(wait)
        if not ready:
            return SocketMode.NONE
        result = self._process_events([(key.fd, _mode_from_mask(mask)) for key, mask in ready])
        return SocketMode(result & _SOCKET_BITS)

    def exec(self, timeout: int | None = None) -> ExecResult:
        """Run until quit, a signal, an error or ``timeout`` ms pass."""
        selector = self._require_init()
        quit_timer: int | None = None
        if timeout is not None and timeout >= 0:

            def on_timeout(_timer_id: int) -> None:
                self._timed_out = True
                self.quit()

            quit_timer = self.register_timer(on_timeout, timeout, TimerFlag.SINGLE_SHOT)

        result = ExecResult.SUCCESS
        try:
            while True:
                while self._send_posted_events() or self._timers.fire_due():
                    pass
                with self._lock:
                    if self._stop:
                        self._stop = False
                        if self._timed_out:
                            self._timed_out = False
                            result = ExecResult.TIMEOUT
                        else:
                            result = ExecResult.SUCCESS
                        break
                wait = self._timers.next_timeout()
                waiting_for_inactivity = False
                if wait is None and self.inactivity_timeout > 0:
                    wait = self.inactivity_timeout
                    waiting_for_inactivity = True
                try:
                    ready = selector.select(None if wait is None else wait / 1000)
                except OSError:
                    result = ExecResult.GENERAL_ERROR
                    break
                if ready:
                    outcome = self._process_events(
                        [(key.fd, _mode_from_mask(mask)) for key, mask in ready]
                    )
                    if outcome & _STOP_BITS:
                        result = ExecResult(outcome & _STOP_BITS)
                        break
                elif waiting_for_inactivity:
                    self._timed_out = True
                    self.quit()
        finally:
            if quit_timer is not None:
                self._timers.unregister(quit_timer)
        return result