"""Watch mode: debounced, per-path rebuilds driven by watchdog events"""

import logging
import os
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from mdxport.core.errors import WatchError
from mdxport.core.utils.fs import atomic_write


logger = logging.getLogger(__name__)

Builder = Callable[[Path], bytes]
ErrorReporter = Callable[[Path, Exception], None]
BuiltReporter = Callable[[Path, Path], None]


class WatchState(str, Enum):
    idle       = "idle"
    debouncing = "debouncing"
    compiling  = "compiling"


def _log_error(source: Path, error: Exception) -> None:
    logger.error("%s: %s", source, error)


def _log_built(source: Path, dest: Path) -> None:
    logger.info("%s -> %s", source, dest)


class PathWorker:
    """Debounce loop for a single source file.

    Every event bumps `generation`. A compile records the generation it started
    for; its result is written only if no event arrived in the meantime.
    """

    def __init__(
        self,
        source: Path,
        dest: Path,
        build: Builder,
        debounce: float,
        on_error: ErrorReporter,
        on_built: BuiltReporter,
        ):
        self.source = source
        self.dest = dest
        self.build = build
        self.debounce = debounce
        self.on_error = on_error
        self.on_built = on_built

        self.cond = threading.Condition()
        self.state = WatchState.idle
        self.generation = 0
        self.handled = 0
        self.last_event = 0.0
        self.stopped = False
        self.thread = threading.Thread(target=self._run, name=f"mdxport-watch:{source.name}", daemon=True)

    def start(self) -> None:
        self.thread.start()

    def notify(self) -> None:
        with self.cond:
            self.generation += 1
            self.last_event = time.monotonic()
            if self.state == WatchState.idle:
                self.state = WatchState.debouncing
            self.cond.notify_all()

    def removed(self) -> None:
        """Drop pending work for a deleted source; a later create starts over."""
        with self.cond:
            self.generation += 1
            self.handled = self.generation
            if self.state == WatchState.debouncing:
                self.state = WatchState.idle
            self.cond.notify_all()
        self.on_error(self.source, WatchError(f"{self.source} was removed"))

    def stop(self) -> None:
        with self.cond:
            self.stopped = True
            self.cond.notify_all()

    def join(self, timeout: float = None) -> None:
        if self.thread.is_alive():
            self.thread.join(timeout)

    def _wait_quiet(self) -> bool:
        """Block until debounce seconds pass without events, or pending work is dropped. Call with cond held."""
        while not self.stopped:
            if self.generation == self.handled:
                return True
            remaining = self.last_event + self.debounce - time.monotonic()
            if remaining <= 0:
                return True
            self.cond.wait(remaining)
        return False

    def _run(self) -> None:
        while True:
            with self.cond:
                while not self.stopped and self.generation == self.handled:
                    self.cond.wait()
                if self.stopped or not self._wait_quiet():
                    return
                if self.generation == self.handled:
                    self.state = WatchState.idle
                    continue
                generation = self.handled = self.generation
                self.state = WatchState.compiling

            try:
                data, error = self.build(self.source), None
            except Exception as e:
                data, error = None, e

            with self.cond:
                if self.stopped:
                    return
                if self.generation != generation:
                    logger.debug("%s changed during build; discarding result", self.source)
                    self.state = WatchState.debouncing if self.generation != self.handled else WatchState.idle
                    continue
                if error is None:
                    try:
                        atomic_write(self.dest, data)
                    except OSError as e:
                        error = e
                self.state = WatchState.idle

            if error is None:
                self.on_built(self.source, self.dest)
            else:
                self.on_error(self.source, error)


class SourceEventHandler(FileSystemEventHandler):
    """Forward events for one file in a non-recursively watched directory."""

    def __init__(self, worker: PathWorker):
        super().__init__()
        self.worker = worker
        self.path = worker.source.resolve()

    def _matches(self, raw_path) -> bool:
        return bool(raw_path) and Path(os.fsdecode(raw_path)).resolve() == self.path

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self.worker.notify()

    on_created = on_modified

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if self._matches(event.dest_path):
            self.worker.notify()
        elif self._matches(event.src_path):
            self.worker.removed()

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self.worker.removed()


class WatchSupervisor:
    """Rebuild each watched file after a quiet window, one worker and observer per path."""

    def __init__(
        self,
        build: Builder,
        debounce_ms: int = 300,
        on_error: ErrorReporter = _log_error,
        on_built: BuiltReporter = _log_built,
        observe: bool = True,
        ):
        self.build = build
        self.debounce = debounce_ms / 1000
        self.on_error = on_error
        self.on_built = on_built
        self.observe = observe
        self.workers: dict[Path, PathWorker] = {}
        self.observers: list = []
        self._stopped = threading.Event()

    def watch(self, source: Path, dest: Path) -> PathWorker:
        """Start a worker (and, when observing, a watchdog observer) for source."""
        key = source.resolve()
        if key in self.workers:
            raise WatchError(f"{source} is already being watched")
        worker = PathWorker(source, dest, self.build, self.debounce, self.on_error, self.on_built)
        self.workers[key] = worker
        worker.start()
        if self.observe:
            observer = Observer()
            observer.schedule(SourceEventHandler(worker), str(key.parent), recursive=False)
            observer.start()
            self.observers.append(observer)
        logger.info("watching %s -> %s", source, dest)
        return worker

    def _worker(self, source: Path) -> PathWorker:
        try:
            return self.workers[source.resolve()]
        except KeyError:
            raise WatchError(f"{source} is not being watched") from None

    def notify(self, source: Path) -> None:
        """Record a change to source, as a filesystem event would."""
        self._worker(source).notify()

    def state(self, source: Path) -> WatchState:
        return self._worker(source).state

    def stop(self) -> None:
        self._stopped.set()
        for observer in self.observers:
            observer.stop()
        for worker in self.workers.values():
            worker.stop()
        for observer in self.observers:
            observer.join()
        for worker in self.workers.values():
            worker.join()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stop() is called (or timeout passes)."""
        return self._stopped.wait(timeout)

    def __enter__(self) -> "WatchSupervisor":
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
