import asyncio
import io
import json

from publisher.main import run_publisher
from publisher.sources import StreamSource, SyntheticSource
from shared.protocol import Envelope
from shared.settings import Settings
from subscriber.main import run_subscriber
from subscriber.storage import FileSink

HELLO_DIGEST = "b10a8db164e0754105b7a99be72e3fe5"


def _settings(tmp_path, **overrides):
    values = dict(
        input_path=tmp_path / "pub-in-fifo",
        output_path=tmp_path / "pub-out-file",
        poll_interval=0.01,
        max_poll_interval=0.05,
    )
    values.update(overrides)
    return Settings(**values)


async def _exchange(settings, source):
    subscriber = asyncio.create_task(run_subscriber(settings))
    # the subscriber provisions the channel and sits in its readiness loop first
    await asyncio.sleep(0.1)
    published = await run_publisher(settings, source=source)
    received = await asyncio.wait_for(subscriber, timeout=5)
    return published, received


def test_hello_world_end_to_end(tmp_path):
    settings = _settings(tmp_path)
    published, received = asyncio.run(_exchange(settings, StreamSource(io.StringIO("Hello World\n"))))

    assert published.sent == 1
    assert received.forwarded == 1
    lines = settings.output_path.read_bytes().splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["content"] == "Hello World"
    assert record["checksum"] == HELLO_DIGEST
    assert list(record) == ["content", "checksum", "created_at"]


def test_bounded_synthetic_run_forwards_everything(tmp_path):
    settings = _settings(tmp_path, message_count=25, min_length=50, max_length=100)
    published, received = asyncio.run(_exchange(settings, SyntheticSource(50, 100)))

    assert published.sent == 25
    assert received.forwarded == 25
    assert received.rejected == 0
    envelopes = [Envelope.from_frame(line) for line in settings.output_path.read_bytes().splitlines()]
    assert len(envelopes) == 25
    assert all(e.is_valid() for e in envelopes)
    assert envelopes[-1].digest == published.last_checksum


def test_output_is_appended_across_runs(tmp_path):
    settings = _settings(tmp_path)
    asyncio.run(_exchange(settings, StreamSource(io.StringIO("first\n"))))
    asyncio.run(_exchange(settings, StreamSource(io.StringIO("second\n"))))

    contents = [json.loads(line)["content"] for line in settings.output_path.read_bytes().splitlines()]
    assert contents == ["first", "second"]


def test_file_sink_appends_and_counts(tmp_path):
    path = tmp_path / "out"
    path.write_bytes(b"existing\n")
    sink = FileSink(path)
    assert asyncio.run(sink.open())
    sink.write(b"one\n")
    sink.write(b"two\n")
    sink.close()

    assert sink.records == 2
    assert path.read_bytes() == b"existing\none\ntwo\n"
