"""Filesystem watcher with debounced rebuilds.

The watchdog observer thread never builds anything: its handler only drops
a token into a single-slot queue. The thread that calls Watcher.run takes
tokens off the queue, waits until the source tree has been quiet for the
debounce delay, then rebuilds. Bursts of events (an editor saving several
files, a git checkout) therefore produce a single rebuild.

Every directory under the source root gets its own non-recursive watch.
Creating, deleting or moving a directory flags a rescan, and the
registrations are rebuilt before the next debounce starts.
"""

from __future__ import annotations

import enum
import os
import queue
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from watchdog.events import (
    EVENT_TYPE_CLOSED_NO_WRITE,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MOVED,
    EVENT_TYPE_OPENED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .errors import WatchRegistrationError

DEFAULT_DELAY = 0.2
REGISTER_ATTEMPTS = 10
REGISTER_RETRY_DELAY = 0.1

# Reads don't change the tree; the build itself opens every source file.
_IGNORED_EVENT_TYPES = {EVENT_TYPE_OPENED, EVENT_TYPE_CLOSED_NO_WRITE}
_RESCAN_EVENT_TYPES = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED}


class WatchState(enum.Enum):
    IDLE = "idle"
    WATCHING = "watching"
    EVENT_PENDING = "event_pending"
    DEBOUNCING = "debouncing"
    REBUILDING = "rebuilding"
    FAILED = "failed"


class _SignalHandler(FileSystemEventHandler):
    def __init__(self, watcher: Watcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        self.watcher.notify(event)


class Watcher:
    """Watches a source tree and rebuilds after changes settle.

    Attributes:
        root: Source root to watch.
        rebuild: Called with no arguments to rebuild the site.
        ignore: Paths whose events are discarded (the output directory).
        delay: Quiet period, in seconds, required before a rebuild.
        state: Current WatchState.
        rebuilds: Number of rebuilds completed.
    """

    def __init__(
        self,
        root: Path | str,
        rebuild: Callable[[], Any],
        ignore: Iterable[Path | str] = (),
        delay: float = DEFAULT_DELAY,
        observer_factory: Callable[[], Any] = Observer,
        attempts: int = REGISTER_ATTEMPTS,
        retry_delay: float = REGISTER_RETRY_DELAY,
    ):
        self.root = Path(root).absolute()
        self.rebuild = rebuild
        self.ignore = [Path(p).absolute() for p in ignore]
        self.delay = delay
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.state = WatchState.IDLE
        self.rebuilds = 0
        self.signals: queue.Queue[bool] = queue.Queue(maxsize=1)
        self._rescan = threading.Event()
        self._stopped = threading.Event()
        self._handler = _SignalHandler(self)
        self._observer = observer_factory()
        self._started = False

    def is_ignored(self, path: Path) -> bool:
        return any(path == p or p in path.parents for p in self.ignore)

    def signal(self) -> None:
        """Offer a rebuild token; dropped when one is already pending."""
        try:
            self.signals.put_nowait(True)
        except queue.Full:
            pass

    def notify(self, event: FileSystemEvent) -> None:
        """Handle a watchdog event. Runs on the observer thread."""
        if event.event_type in _IGNORED_EVENT_TYPES:
            return
        path = Path(os.fsdecode(event.src_path)).absolute()
        if self.is_ignored(path):
            return
        if event.is_directory and event.event_type in _RESCAN_EVENT_TYPES:
            self._rescan.set()
        self.signal()

    def _schedule(self, directory: Path) -> None:
        error: OSError | None = None
        for attempt in range(self.attempts):
            try:
                self._observer.schedule(self._handler, str(directory), recursive=False)
                return
            except OSError as exc:
                error = exc
                if attempt + 1 < self.attempts:
                    time.sleep(self.retry_delay)
        raise WatchRegistrationError(
            f"Could not watch directory after {self.attempts} attempts: {error}",
            str(directory),
        )

    def watch_dirs(self) -> list[Path]:
        """(Re)register one watch per directory under the root, breadth first.

        Returns:
            The watched directories.

        Raises:
            WatchRegistrationError: If a directory can't be watched.
        """
        self._observer.unschedule_all()
        watched: list[Path] = []
        pending = deque([self.root])
        while pending:
            directory = pending.popleft()
            if self.is_ignored(directory):
                continue
            self._schedule(directory)
            watched.append(directory)
            try:
                children = sorted(directory.iterdir())
            except FileNotFoundError:
                continue
            pending.extend(child for child in children if child.is_dir())
        return watched

    def _take_rescan(self) -> None:
        if self._rescan.is_set():
            self._rescan.clear()
            self.watch_dirs()

    def run_once(self, timeout: float | None = None) -> bool:
        """Wait for one token, debounce, then rebuild.

        Args:
            timeout: Seconds to wait for the first token; None waits forever.

        Returns:
            True if a rebuild ran, False if no token arrived in time.

        Raises:
            WatchRegistrationError: If a rescan fails.
            Exception: Whatever the rebuild raises.
        """
        try:
            self.signals.get(timeout=timeout)
        except queue.Empty:
            return False
        try:
            self.state = WatchState.EVENT_PENDING
            self._take_rescan()
            self.state = WatchState.DEBOUNCING
            while True:
                try:
                    self.signals.get(timeout=self.delay)
                except queue.Empty:
                    break
                self._take_rescan()
            self.state = WatchState.REBUILDING
            self.rebuild()
        except Exception:
            self.state = WatchState.FAILED
            self.close()
            raise
        self.rebuilds += 1
        self.state = WatchState.WATCHING
        return True

    def start(self) -> None:
        """Register the watches, start the observer and queue the initial build."""
        try:
            watched = self.watch_dirs()
        except WatchRegistrationError:
            self.state = WatchState.FAILED
            raise
        self._observer.start()
        self._started = True
        self.state = WatchState.WATCHING
        print(f"Watching {self.root} ({len(watched)} directories)")
        self.signal()

    def run(self, poll: float = 0.5) -> None:
        """Build once, then rebuild on every settled change until stopped.

        Raises:
            WatchRegistrationError: If the watches can't be registered.
            Exception: Whatever a rebuild raises; watching stops first.
        """
        self.start()
        try:
            while not self._stopped.is_set():
                self.run_once(timeout=poll)
        finally:
            self.close()

    def stop(self) -> None:
        """Ask a running loop to exit after the current cycle."""
        self._stopped.set()

    def close(self) -> None:
        if self._started:
            self._observer.stop()
            self._observer.join()
            self._started = False
        if self.state is not WatchState.FAILED:
            self.state = WatchState.IDLE
