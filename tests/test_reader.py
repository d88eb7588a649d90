import asyncio
import os

import pytest

from shared.channel import ensure_channel
from shared.protocol import TransportError
from subscriber.core import Backoff, ChannelReader


class RecordingReader(ChannelReader):
    """Replaces the timed wait with a hook so tests control what happens between attempts."""

    def __init__(self, *args, on_pause=None, early=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.pauses = []
        self.watched = []
        self.on_pause = on_pause
        self.early = early

    async def _pause(self, delay, watch=True):
        self.pauses.append(delay)
        self.watched.append(watch)
        if self.on_pause:
            self.on_pause(len(self.pauses))
        await asyncio.sleep(0)
        return self.early and watch


def _fifo(tmp_path):
    return ensure_channel(tmp_path / "in-fifo").path


def _open_writer(path):
    return os.open(path, os.O_WRONLY | os.O_NONBLOCK)


async def _collect(reader):
    return [line async for line in reader.lines()]


def test_backoff_doubles_up_to_cap_and_resets():
    backoff = Backoff(0.1, 0.35)
    assert [backoff.next() for _ in range(4)] == [0.1, 0.2, 0.35, 0.35]
    backoff.reset()
    assert backoff.next() == 0.1


def test_backoff_without_maximum_is_fixed():
    backoff = Backoff(0.3)
    assert [backoff.next() for _ in range(3)] == [0.3, 0.3, 0.3]


def test_readiness_waits_for_first_byte(tmp_path):
    path = _fifo(tmp_path)
    writer = {}

    def on_pause(count):
        if count == 3:
            writer["fd"] = _open_writer(path)
        if count == 5:
            os.write(writer["fd"], b"x")

    reader = RecordingReader(path, poll_interval=0.01, max_poll_interval=0.04, on_pause=on_pause)
    reader.open()
    try:
        assert asyncio.run(reader.wait_ready()) is True
    finally:
        reader.close()
        os.close(writer["fd"])

    # no writer (3 empty reads), writer without data (2 would-block reads), then data
    assert reader.attempts == 6
    assert reader.pauses == [0.01, 0.02, 0.04, 0.04, 0.04]


def test_readiness_stops_when_stop_event_is_set(tmp_path):
    path = _fifo(tmp_path)
    stop_event = asyncio.Event()

    def on_pause(count):
        if count == 2:
            stop_event.set()

    reader = RecordingReader(path, poll_interval=0.01, stop_event=stop_event, on_pause=on_pause)
    reader.open()
    try:
        assert asyncio.run(reader.wait_ready()) is False
    finally:
        reader.close()
    assert len(reader.pauses) == 2


def test_early_wakeup_is_followed_by_plain_sleep():
    reader = RecordingReader("/nonexistent", poll_interval=0.01, early=True)

    async def scenario():
        for _ in range(4):
            await reader._wait()

    asyncio.run(scenario())
    assert reader.watched == [True, False, True, False]


def test_data_after_early_wakeup_restores_watched_wait():
    reader = RecordingReader("/nonexistent", poll_interval=0.01, early=True)

    async def scenario():
        await reader._wait()
        reader._accept(b"line\n")
        await reader._wait()

    asyncio.run(scenario())
    assert reader.watched == [True, True]


def test_lines_until_end_of_stream(tmp_path):
    path = _fifo(tmp_path)
    reader = ChannelReader(path, poll_interval=0.01)
    reader.open()
    fd = _open_writer(path)
    os.write(fd, b"a\n\nb\nc")
    os.close(fd)
    try:

        async def scenario():
            assert await reader.wait_ready()
            return await _collect(reader)

        lines = asyncio.run(scenario())
    finally:
        reader.close()
    assert lines == [b"a", b"", b"b", b"c"]


def test_would_block_mid_stream_waits_and_resumes(tmp_path):
    path = _fifo(tmp_path)
    fd = None

    def on_pause(count):
        os.write(fd, b"second\n")
        os.close(fd)

    reader = RecordingReader(path, poll_interval=0.01, on_pause=on_pause)
    reader.open()
    fd = _open_writer(path)
    os.write(fd, b"first\n")
    try:

        async def scenario():
            assert await reader.wait_ready()
            return await _collect(reader)

        lines = asyncio.run(scenario())
    finally:
        reader.close()
    assert lines == [b"first", b"second"]
    assert len(reader.pauses) == 1


def test_oversized_frames_are_dropped_when_lenient(tmp_path):
    path = _fifo(tmp_path)
    reader = ChannelReader(path, poll_interval=0.01, max_frame_size=8)
    reader.open()
    fd = _open_writer(path)
    os.write(fd, b"0123456789abcdef\nok\n")
    os.close(fd)
    try:

        async def scenario():
            assert await reader.wait_ready()
            return await _collect(reader)

        lines = asyncio.run(scenario())
    finally:
        reader.close()
    assert lines == [b"ok"]
    assert reader.discarded_frames == 1


def test_pause_wakes_early_when_data_is_available(tmp_path):
    path = _fifo(tmp_path)
    reader = ChannelReader(path)
    reader.open()
    fd = _open_writer(path)
    os.write(fd, b"x")
    try:
        woke_early = asyncio.run(asyncio.wait_for(reader._pause(30.0), timeout=5))
    finally:
        os.close(fd)
        reader.close()
    assert woke_early is True


def test_line_after_early_wakeup_arrives_without_full_poll_interval(tmp_path):
    path = _fifo(tmp_path)
    reader = ChannelReader(path, poll_interval=1.0, max_poll_interval=1.0)
    reader.open()
    fd = _open_writer(path)

    async def scenario():
        loop = asyncio.get_running_loop()
        loop.call_later(0.05, os.write, fd, b"a\n")
        assert await reader.wait_ready()
        lines = reader.lines()
        assert await anext(lines) == b"a"
        started = loop.time()
        loop.call_later(0.05, os.write, fd, b"b\n")
        assert await anext(lines) == b"b"
        elapsed = loop.time() - started
        await lines.aclose()
        return elapsed

    try:
        elapsed = asyncio.run(asyncio.wait_for(scenario(), timeout=5))
    finally:
        os.close(fd)
        reader.close()
    assert elapsed < 0.5


def test_pause_returns_when_stopped(tmp_path):
    path = _fifo(tmp_path)
    stop_event = asyncio.Event()
    stop_event.set()
    reader = ChannelReader(path, stop_event=stop_event)
    reader.open()
    try:
        woke_early = asyncio.run(asyncio.wait_for(reader._pause(30.0, watch=False), timeout=5))
    finally:
        reader.close()
    assert woke_early is False


def test_reading_closed_channel_is_a_transport_error(tmp_path):
    reader = ChannelReader(_fifo(tmp_path))
    with pytest.raises(TransportError):
        asyncio.run(reader.wait_ready())


def test_open_missing_channel_is_a_transport_error(tmp_path):
    reader = ChannelReader(tmp_path / "missing")
    with pytest.raises(TransportError):
        reader.open()
