"""Unit tests for core/watch.py"""

import threading
import time

import pytest

from mdxport.core.errors import CompileError, WatchError
from mdxport.core.watch import WatchState, WatchSupervisor


def _wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture(name="source")
def source_fixture(tmp_path):
    path = tmp_path / "doc.md"
    path.write_text("# Doc\n")
    return path


def test_burst_of_events_coalesces_into_one_build(source, tmp_path):
    dest = tmp_path / "doc.pdf"
    calls = []
    built = threading.Event()

    def build(path):
        calls.append(path)
        return b"pdf"

    with WatchSupervisor(build, debounce_ms=80, observe=False, on_built=lambda s, d: built.set()) as sup:
        sup.watch(source, dest)
        for _ in range(5):
            sup.notify(source)
            time.sleep(0.01)
        assert built.wait(3)
        time.sleep(0.2)
        assert sup.state(source) == WatchState.idle

    assert calls == [source]
    assert dest.read_bytes() == b"pdf"


def test_event_during_compile_discards_stale_result(source, tmp_path):
    dest = tmp_path / "doc.pdf"
    started, release = threading.Event(), threading.Event()
    outputs = iter([b"stale", b"fresh"])
    written = []

    def build(path):
        data = next(outputs)
        if data == b"stale":
            started.set()
            release.wait(3)
        return data

    def on_built(src, dst):
        written.append(dst.read_bytes())

    with WatchSupervisor(build, debounce_ms=20, observe=False, on_built=on_built) as sup:
        sup.watch(source, dest)
        sup.notify(source)
        assert started.wait(3)
        assert sup.state(source) == WatchState.compiling
        sup.notify(source)
        release.set()
        assert _wait_for(lambda: written)

    assert written == [b"fresh"]
    assert dest.read_bytes() == b"fresh"


def test_build_errors_are_reported_and_loop_continues(source, tmp_path):
    dest = tmp_path / "doc.pdf"
    results = iter([CompileError("boom"), b"ok"])
    errors, built = [], threading.Event()

    def build(path):
        result = next(results)
        if isinstance(result, Exception):
            raise result
        return result

    with WatchSupervisor(
        build, debounce_ms=10, observe=False,
        on_error=lambda s, e: errors.append(e), on_built=lambda s, d: built.set(),
    ) as sup:
        sup.watch(source, dest)
        sup.notify(source)
        assert _wait_for(lambda: errors)
        assert not dest.exists()
        sup.notify(source)
        assert built.wait(3)

    assert isinstance(errors[0], CompileError)
    assert dest.read_bytes() == b"ok"


def test_removed_source_reports_watch_error(source, tmp_path):
    errors = []
    with WatchSupervisor(lambda p: b"", debounce_ms=10_000, observe=False,
                         on_error=lambda s, e: errors.append(e)) as sup:
        worker = sup.watch(source, tmp_path / "doc.pdf")
        sup.notify(source)
        assert sup.state(source) == WatchState.debouncing
        worker.removed()
        assert sup.state(source) == WatchState.idle

    assert len(errors) == 1
    assert isinstance(errors[0], WatchError)


def test_stop_ends_a_pending_debounce(source, tmp_path):
    calls = []
    sup = WatchSupervisor(calls.append, debounce_ms=10_000, observe=False)
    worker = sup.watch(source, tmp_path / "doc.pdf")
    sup.notify(source)
    sup.stop()
    assert not worker.thread.is_alive()
    assert calls == []
    assert sup.wait(0)


def test_unknown_and_duplicate_paths(source, tmp_path):
    with WatchSupervisor(lambda p: b"", observe=False) as sup:
        with pytest.raises(WatchError):
            sup.notify(tmp_path / "other.md")
        sup.watch(source, tmp_path / "doc.pdf")
        with pytest.raises(WatchError):
            sup.watch(source, tmp_path / "again.pdf")


def test_filesystem_change_triggers_rebuild(source, tmp_path):
    """A real write to the watched file reaches the worker through watchdog."""
    dest = tmp_path / "doc.pdf"
    built = threading.Event()
    with WatchSupervisor(lambda p: p.read_bytes(), debounce_ms=50,
                         on_built=lambda s, d: built.set()) as sup:
        sup.watch(source, dest)
        time.sleep(0.2)
        source.write_text("# Changed\n")
        assert built.wait(5)

    assert dest.read_bytes() == b"# Changed\n"
