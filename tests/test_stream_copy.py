"""Tests for the bounded-memory stream copier."""
import asyncio
import os
import threading

import pytest

from streamupload.errors import StreamIOError
from streamupload.services import stream_copy
from streamupload.services.stream_copy import StreamCopier, write_all

PREFIX = b"--Boundary-TEST\r\nContent-Type: image/jpeg\r\n\r\n"
SUFFIX = b"\r\n--Boundary-TEST--\r\n"


class TrickleSink:
    """Sink that accepts at most `step` bytes per write."""

    def __init__(self, step):
        self.step = step
        self.data = bytearray()
        self.calls = 0

    def write(self, chunk):
        self.calls += 1
        taken = bytes(chunk[: self.step])
        self.data += taken
        return len(taken)


class StalledSink:
    def __init__(self, accept_first=0):
        self.accept_first = accept_first

    def write(self, chunk):
        taken = min(self.accept_first, len(chunk))
        self.accept_first -= taken
        return taken


class TestWriteAll:
    def test_retries_partial_writes(self):
        sink = TrickleSink(step=3)
        assert write_all(sink, b"0123456789") == 10
        assert bytes(sink.data) == b"0123456789"
        assert sink.calls == 4

    def test_empty_data_does_not_write(self):
        sink = TrickleSink(step=3)
        assert write_all(sink, b"") == 0
        assert sink.calls == 0

    def test_zero_byte_write_is_fatal(self):
        with pytest.raises(StreamIOError, match="stalled"):
            write_all(StalledSink(), b"abc")

    def test_zero_byte_write_after_progress_is_fatal(self):
        with pytest.raises(StreamIOError, match="after 2 of 5 bytes"):
            write_all(StalledSink(accept_first=2), b"abcde")

    def test_none_write_is_fatal(self):
        class NonBlockingSink:
            def write(self, chunk):
                return None

        with pytest.raises(StreamIOError):
            write_all(NonBlockingSink(), b"abc")


class TestStreamCopier:
    @pytest.fixture
    def copier(self, tmp_path):
        staging = tmp_path / "staging"
        staging.mkdir()
        return StreamCopier(staging, chunk_size=1024)

    @pytest.mark.parametrize("size", [0, 1, 1023, 1024, 1025, 10 * 1024 + 7])
    def test_byte_exact_copy(self, copier, tmp_path, size):
        source = tmp_path / "source.bin"
        payload = os.urandom(size)
        source.write_bytes(payload)

        staged = copier.copy_with_framing(source, PREFIX, SUFFIX)

        content = staged.path.read_bytes()
        assert content == PREFIX + payload + SUFFIX
        assert staged.size == len(PREFIX) + size + len(SUFFIX)
        assert staged.path.stat().st_size == staged.size
        staged.release()

    def test_destination_is_new_temp_file(self, copier, tmp_path):
        source = tmp_path / "source.bin"
        source.write_bytes(b"data")

        first = copier.copy_with_framing(source, PREFIX, SUFFIX)
        second = copier.copy_with_framing(source, PREFIX, SUFFIX)

        assert first.path != second.path
        assert first.path.suffix == ".tmp"
        assert first.path.parent == tmp_path / "staging"
        assert source.read_bytes() == b"data"

    def test_writes_never_exceed_chunk_size(self, copier, tmp_path, monkeypatch):
        source = tmp_path / "source.bin"
        source.write_bytes(os.urandom(50 * 1024 + 3))
        sizes = []
        real_write_all = stream_copy.write_all

        def spy(sink, data):
            sizes.append(len(data))
            return real_write_all(sink, data)

        monkeypatch.setattr(stream_copy, "write_all", spy)

        staged = copier.copy_with_framing(source, PREFIX, SUFFIX)

        body_writes = sizes[1:-1]
        assert sizes[0] == len(PREFIX)
        assert sizes[-1] == len(SUFFIX)
        assert max(body_writes) <= copier.chunk_size
        assert sum(body_writes) == 50 * 1024 + 3
        staged.release()

    def test_missing_source_raises_and_leaves_nothing(self, copier, tmp_path):
        with pytest.raises(StreamIOError):
            copier.copy_with_framing(tmp_path / "missing.mov", PREFIX, SUFFIX)

        assert list((tmp_path / "staging").iterdir()) == []

    def test_write_fault_removes_partial_file(self, copier, tmp_path, monkeypatch):
        source = tmp_path / "source.bin"
        source.write_bytes(b"x" * 4096)
        calls = {"n": 0}
        real_write_all = stream_copy.write_all

        def failing(sink, data):
            calls["n"] += 1
            if calls["n"] == 3:
                raise StreamIOError("Write stalled")
            return real_write_all(sink, data)

        monkeypatch.setattr(stream_copy, "write_all", failing)

        with pytest.raises(StreamIOError):
            copier.copy_with_framing(source, PREFIX, SUFFIX)

        assert list((tmp_path / "staging").iterdir()) == []

    def test_missing_staging_dir_raises(self, tmp_path):
        source = tmp_path / "source.bin"
        source.write_bytes(b"data")
        copier = StreamCopier(tmp_path / "does-not-exist")

        with pytest.raises(StreamIOError):
            copier.copy_with_framing(source, PREFIX, SUFFIX)

    def test_rejects_bad_chunk_size(self):
        with pytest.raises(ValueError):
            StreamCopier(chunk_size=0)

    @pytest.mark.asyncio
    async def test_copy_async_runs_off_loop(self, copier, tmp_path):
        source = tmp_path / "source.bin"
        source.write_bytes(b"async payload")
        loop_thread = None

        real_copy = copier.copy_with_framing

        def record_thread(*args):
            nonlocal loop_thread
            loop_thread = threading.current_thread()
            return real_copy(*args)

        copier.copy_with_framing = record_thread

        staged = await copier.copy_async(source, PREFIX, SUFFIX)

        assert loop_thread is not threading.main_thread()
        assert staged.path.read_bytes() == PREFIX + b"async payload" + SUFFIX
        staged.release()

    @pytest.mark.asyncio
    async def test_cancelled_copy_releases_staged_file(self, copier, tmp_path, monkeypatch):
        source = tmp_path / "source.bin"
        source.write_bytes(b"video bytes")
        staging = tmp_path / "staging"
        started = threading.Event()
        resume = threading.Event()
        real_write_all = stream_copy.write_all

        def gated(sink, data):
            started.set()
            resume.wait(5)
            return real_write_all(sink, data)

        monkeypatch.setattr(stream_copy, "write_all", gated)

        task = asyncio.create_task(copier.copy_async(source, PREFIX, SUFFIX))
        assert await asyncio.to_thread(started.wait, 5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(list(staging.iterdir())) == 1

        resume.set()
        for _ in range(200):
            if not list(staging.iterdir()):
                break
            await asyncio.sleep(0.01)

        assert list(staging.iterdir()) == []
