import signal
import socket
import threading
import time

import pytest

from rctkit.eventloop import EventLoop, ExecResult, LoopFlag, SocketMode
from rctkit.timers import TimerFlag


@pytest.fixture
def loop():
    event_loop = EventLoop()
    event_loop.init()
    yield event_loop
    event_loop.cleanup()


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    yield a, b
    a.close()
    b.close()


def test_post_runs_with_args_and_quit_returns_success(loop):
    calls = []

    def record(x, y):
        calls.append((x, y))
        loop.quit()

    loop.post(record, 1, 2)
    assert loop.exec(timeout=2000) == ExecResult.SUCCESS
    assert calls == [(1, 2)]


def test_call_later_runs_in_order(loop):
    calls = []
    loop.call_later(calls.append, "a")
    loop.call_later(calls.append, "b")
    loop.call_later(loop.quit)
    assert loop.exec(timeout=2000) == ExecResult.SUCCESS
    assert calls == ["a", "b"]


def test_exec_times_out_when_idle(loop):
    assert loop.exec(timeout=20) == ExecResult.TIMEOUT


def test_single_shot_timer_fires_once(loop):
    fired = []
    timer_id = loop.register_timer(fired.append, 0, TimerFlag.SINGLE_SHOT)
    loop.register_timer(lambda _id: loop.quit(), 40, TimerFlag.SINGLE_SHOT)
    assert loop.exec(timeout=2000) == ExecResult.SUCCESS
    assert fired == [timer_id]
    assert loop.unregister_timer(timer_id) is False


def test_repeating_timer_keeps_firing(loop):
    fired = []

    def tick(timer_id):
        fired.append(timer_id)
        if len(fired) == 3:
            loop.quit()

    timer_id = loop.register_timer(tick, 5)
    assert loop.exec(timeout=2000) == ExecResult.SUCCESS
    assert fired == [timer_id] * 3
    assert loop.unregister_timer(timer_id) is True


def test_unregister_unknown_timer(loop):
    assert loop.unregister_timer(12345) is False


def test_unregistered_timer_does_not_fire(loop):
    fired = []
    timer_id = loop.register_timer(fired.append, 0, TimerFlag.SINGLE_SHOT)
    loop.unregister_timer(timer_id)
    assert loop.exec(timeout=20) == ExecResult.TIMEOUT
    assert fired == []


def test_socket_read_callback(loop, pair):
    reader, writer = pair
    seen = []

    def on_ready(fd, mode):
        seen.append((fd, mode, reader.recv(16)))
        loop.quit()

    loop.register_socket(reader, SocketMode.READ, on_ready)
    writer.send(b"x")
    assert loop.exec(timeout=2000) == ExecResult.SUCCESS
    assert seen == [(reader.fileno(), SocketMode.READ, b"x")]


def test_one_shot_socket_fires_once_until_rearmed(loop, pair):
    reader, writer = pair
    seen = []
    loop.register_socket(reader, SocketMode.READ | SocketMode.ONE_SHOT,
                         lambda fd, mode: seen.append(mode))
    writer.send(b"x")
    loop.register_timer(lambda _id: loop.quit(), 50, TimerFlag.SINGLE_SHOT)
    loop.exec(timeout=2000)
    assert len(seen) == 1

    loop.update_socket(reader, SocketMode.READ | SocketMode.ONE_SHOT)
    loop.register_timer(lambda _id: loop.quit(), 50, TimerFlag.SINGLE_SHOT)
    loop.exec(timeout=2000)
    assert len(seen) == 2


def test_unregistered_socket_is_not_fired(loop, pair):
    reader, writer = pair
    seen = []
    loop.register_socket(reader, SocketMode.READ, lambda fd, mode: seen.append(mode))
    loop.unregister_socket(reader)
    writer.send(b"x")
    assert loop.exec(timeout=30) == ExecResult.TIMEOUT
    assert seen == []


def test_update_unknown_socket_raises(loop, pair):
    reader, _ = pair
    with pytest.raises(KeyError):
        loop.update_socket(reader, SocketMode.READ)


def test_process_socket_fires_callback(loop, pair):
    reader, writer = pair
    seen = []
    loop.register_socket(reader, SocketMode.READ, lambda fd, mode: seen.append(mode))
    writer.send(b"x")
    result = loop.process_socket(reader, 1000)
    assert SocketMode.READ in result
    assert SocketMode.WRITE in result
    assert seen == [result]


def test_process_socket_unregistered_returns_none(loop, pair):
    reader, writer = pair
    writer.send(b"x")
    assert loop.process_socket(reader, 1000) == SocketMode.NONE


def test_event_loop_lookup_and_cleanup():
    loop = EventLoop()
    loop.init()
    try:
        assert EventLoop.event_loop() is loop
    finally:
        loop.cleanup()
    assert EventLoop.event_loop() is None


def test_main_event_loop_seen_from_other_thread():
    loop = EventLoop()
    loop.init(LoopFlag.MAIN_EVENT_LOOP)
    try:
        assert EventLoop.main_event_loop() is loop
        assert EventLoop.is_main_thread() is True
        seen = {}

        def worker():
            seen["loop"] = EventLoop.event_loop()
            seen["main"] = EventLoop.is_main_thread()

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()
        assert seen == {"loop": loop, "main": False}
        assert loop.flags == LoopFlag.MAIN_EVENT_LOOP
    finally:
        loop.cleanup()
    assert EventLoop.main_event_loop() is None


def test_post_from_other_thread_wakes_loop(loop):
    calls = []

    def worker():
        time.sleep(0.05)
        loop.post(calls.append, "done")
        loop.quit()

    thread = threading.Thread(target=worker)
    thread.start()
    result = loop.exec(timeout=5000)
    thread.join()
    assert result == ExecResult.SUCCESS
    assert calls == ["done"]


def test_inactivity_timeout(loop):
    loop.inactivity_timeout = 20
    assert loop.exec() == ExecResult.TIMEOUT


def test_exec_without_init_raises():
    with pytest.raises(RuntimeError):
        EventLoop().exec(timeout=10)


def test_double_init_raises(loop):
    with pytest.raises(RuntimeError):
        loop.init()


def test_sigint_handler_stops_loop():
    previous = signal.getsignal(signal.SIGINT)
    loop = EventLoop()
    loop.init(LoopFlag.ENABLE_SIGINT_HANDLER)
    try:
        loop.register_timer(lambda _id: signal.raise_signal(signal.SIGINT), 10,
                            TimerFlag.SINGLE_SHOT)
        assert loop.exec(timeout=2000) == ExecResult.SUCCESS
    finally:
        loop.cleanup()
    assert signal.getsignal(signal.SIGINT) == previous


def test_context_manager_cleans_up():
    with EventLoop() as loop:
        loop.init()
        assert EventLoop.event_loop() is loop
    assert EventLoop.event_loop() is None
    with pytest.raises(RuntimeError):
        loop.exec(timeout=10)