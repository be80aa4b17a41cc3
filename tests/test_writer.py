"""Tests for SequentialStoreWriter and BytePipe."""

import gc
import subprocess
import sys
import textwrap
import threading
import time

import pytest
from obstore.store import MemoryStore

from obspec_stream.errors import BackendError
from obspec_stream.readers import SeekableStoreReader
from obspec_stream.writers import BytePipe, SequentialStoreWriter

from .mocks import RejectingStore, StalledStore, StreamingStore, read_to_end


def payload(n: int) -> bytes:
    return bytes(i % 251 for i in range(n))


# =============================================================================
# Round trips
# =============================================================================


@pytest.mark.parametrize("n", [0, 1, 4096, 100_000])
def test_round_trip(n):
    """Bytes written through the writer read back identically."""
    store = StreamingStore(chunk_size=1000)
    data = payload(n)

    with SequentialStoreWriter(store, "out.bin", pipe_capacity=1024) as writer:
        for i in range(0, n, 777):
            assert writer.write(data[i : i + 777]) == len(data[i : i + 777])

    assert store.put_calls == ["out.bin"]
    reader = SeekableStoreReader(store, "out.bin")
    assert reader.size() == n
    assert read_to_end(reader) == data


@pytest.mark.parametrize("n", [1, 4096, 3 * 1024 * 1024])
def test_round_trip_memory_store(n):
    memstore = MemoryStore()
    data = payload(n)

    writer = SequentialStoreWriter(memstore, "out.bin", pipe_capacity=64 * 1024)
    view = memoryview(data)
    for i in range(0, n, 50_000):
        writer.write(view[i : i + 50_000])
    writer.close()

    with SeekableStoreReader(memstore, "out.bin") as reader:
        assert reader.read(-1) == data


def test_write_accepts_buffers():
    store = StreamingStore()
    with SequentialStoreWriter(store, "out.bin") as writer:
        writer.write(b"ab")
        writer.write(bytearray(b"cd"))
        writer.write(memoryview(b"xefx")[1:3])
    assert store.data["out.bin"] == b"abcdef"


def test_close_waits_for_upload():
    """A successful close means the object is stored."""
    store = StreamingStore()
    store.put_delay = 0.2

    writer = SequentialStoreWriter(store, "out.bin")
    writer.write(b"hello")
    writer.close()

    assert store.put_finished.is_set()
    assert store.data["out.bin"] == b"hello"


def test_put_kwargs_are_forwarded():
    seen = {}

    class KwargsStore(StreamingStore):
        def put(self, path, file, **kwargs):
            seen.update(kwargs)
            return super().put(path, file, **kwargs)

    store = KwargsStore()
    with SequentialStoreWriter(
        store, "out.bin", attributes={"Content-Type": "text/plain"}
    ) as writer:
        writer.write(b"x")
    assert seen == {"attributes": {"Content-Type": "text/plain"}}


# =============================================================================
# Failures
# =============================================================================


class TestFailures:
    def test_upload_failure_raised_on_close(self):
        store = StreamingStore()
        store.fail_put = True

        writer = SequentialStoreWriter(store, "out.bin")
        writer.write(b"data")
        with pytest.raises(BackendError, match="upload of 'out.bin' failed") as excinfo:
            writer.close()

        assert isinstance(excinfo.value.__cause__, PermissionError)
        assert "out.bin" not in store.data

    def test_close_twice_after_failure_is_noop(self):
        store = StreamingStore()
        store.fail_put = True

        writer = SequentialStoreWriter(store, "out.bin")
        with pytest.raises(BackendError):
            writer.close()
        writer.close()
        assert writer.closed

    def test_write_after_rejection_raises_upload_error(self):
        """A write blocked on a full pipe wakes up with the upload's error."""
        store = RejectingStore()
        writer = SequentialStoreWriter(store, "out.bin", pipe_capacity=16)

        with pytest.raises(BackendError, match="upload of 'out.bin' failed"):
            writer.write(b"x" * 64)
        with pytest.raises(BackendError):
            writer.write(b"x")
        assert isinstance(writer.error, BackendError)

        with pytest.raises(BackendError):
            writer.close()

    def test_write_after_close(self):
        store = StreamingStore()
        writer = SequentialStoreWriter(store, "out.bin")
        writer.close()
        with pytest.raises(ValueError, match="closed file"):
            writer.write(b"x")

    def test_exception_in_with_block_aborts_upload(self):
        store = StreamingStore()

        with pytest.raises(RuntimeError, match="boom"):
            with SequentialStoreWriter(store, "out.bin") as writer:
                writer.write(b"partial")
                raise RuntimeError("boom")

        assert writer.closed
        assert "out.bin" not in store.data

    def test_abort_twice(self):
        store = StreamingStore()
        writer = SequentialStoreWriter(store, "out.bin")
        writer.abort()
        writer.abort()
        writer.close()
        assert "out.bin" not in store.data


# =============================================================================
# Abandoned writers and concurrent shutdown
# =============================================================================


def test_unclosed_writer_does_not_block_interpreter_exit():
    script = textwrap.dedent(
        """
        from obstore.store import MemoryStore
        from obspec_stream.writers import SequentialStoreWriter

        writer = SequentialStoreWriter(MemoryStore(), "x.bin")
        writer.write(b"abc")
        print("done")
        """
    )
    result = subprocess.run(
        [sys.executable, "-c", script], capture_output=True, timeout=30
    )
    assert result.returncode == 0, result.stderr
    assert result.stdout == b"done\n"


def test_garbage_collected_writer_aborts_upload():
    store = StreamingStore()
    writer = SequentialStoreWriter(store, "out.bin")
    writer.write(b"partial")

    del writer
    gc.collect()

    assert store.put_finished.wait(timeout=5)
    assert store.put_calls == ["out.bin"]
    assert "out.bin" not in store.data


def test_abort_wakes_write_blocked_on_full_pipe():
    """abort() from another thread is not held up by a write waiting for room."""
    store = StalledStore()
    writer = SequentialStoreWriter(store, "out.bin", pipe_capacity=4)
    errors = []

    def produce():
        try:
            writer.write(b"x" * 64)
        except ValueError as e:
            errors.append(e)

    producer = threading.Thread(target=produce)
    producer.start()
    time.sleep(0.1)

    aborter = threading.Thread(target=writer.abort)
    aborter.start()
    producer.join(timeout=5)
    assert not producer.is_alive()
    assert len(errors) == 1
    assert "closed file" in str(errors[0])

    store.release.set()
    aborter.join(timeout=5)
    assert not aborter.is_alive()
    assert writer.closed
    assert "out.bin" not in store.data


def test_concurrent_writes_stay_contiguous():
    store = StreamingStore()
    with SequentialStoreWriter(store, "out.bin", pipe_capacity=7) as writer:
        threads = [
            threading.Thread(target=writer.write, args=(bytes([i]) * 100,))
            for i in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    body = store.data["out.bin"]
    assert len(body) == 800
    runs = [body[i : i + 100] for i in range(0, 800, 100)]
    assert sorted(run[0] for run in runs) == list(range(8))
    assert all(run == bytes([run[0]]) * 100 for run in runs)


def test_file_like_flags():
    writer = SequentialStoreWriter(StreamingStore(), "out.bin")
    assert writer.writable()
    assert not writer.readable()
    assert not writer.seekable()
    assert writer.path == "out.bin"
    writer.close()


# =============================================================================
# BytePipe
# =============================================================================


class TestBytePipe:
    def test_chunks_in_order(self):
        pipe = BytePipe(capacity=4)
        received = []

        consumer = threading.Thread(target=lambda: received.extend(pipe))
        consumer.start()
        assert pipe.write(b"hello world") == 11
        pipe.close_write()
        consumer.join(timeout=5)

        assert b"".join(received) == b"hello world"
        assert all(len(chunk) <= 4 for chunk in received)

    def test_write_blocks_when_full(self):
        pipe = BytePipe(capacity=4)
        done = threading.Event()

        def produce():
            pipe.write(b"12345678")
            done.set()

        producer = threading.Thread(target=produce)
        producer.start()
        time.sleep(0.1)
        assert not done.is_set()

        chunks = iter(pipe)
        assert next(chunks) == b"1234"
        producer.join(timeout=5)
        assert done.is_set()
        pipe.close_write()
        assert list(chunks) == [b"5678"]

    def test_close_read_breaks_writers(self):
        pipe = BytePipe(capacity=2)
        pipe.close_read()
        with pytest.raises(BrokenPipeError):
            pipe.write(b"abc")

    def test_write_after_close_write(self):
        pipe = BytePipe()
        pipe.close_write()
        with pytest.raises(ValueError):
            pipe.write(b"a")
        assert list(pipe) == []

    def test_close_write_with_error(self):
        pipe = BytePipe()
        pipe.write(b"abc")
        pipe.close_write(RuntimeError("stop"))
        with pytest.raises(RuntimeError, match="stop"):
            list(pipe)

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            BytePipe(capacity=0)
