"""Filesystem watching for Banana.

Two threads cooperate while watching:

- the watchdog observer, which turns filesystem events into rebuild signals;
- a rebuild worker, which takes one signal at a time and calls the listener.

They share a queue with room for a single signal. A signal that arrives
while one is already pending is dropped, so a burst of events (an editor
saving several files, a git checkout) costs one rebuild rather than many.

Key classes:
- Watcher: Closable subscription over a fixed list of directories.

Key functions:
- watch_targets: Directories of a project that need watching.
- watch: Create and start a Watcher.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .content import PAGES_DIR, POSTS_DIR
from .errors import BananaError, WatchError
from .protocols import ChangeListener, EventObserver
from .templates import LAYOUTS_DIR
from .utils import STATIC_DIR, iter_dirs

logger = logging.getLogger(__name__)

WATCHED_EVENTS = frozenset(
    {EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED}
)


def watch_targets(base: Path) -> list[Path]:
    """Return every directory of a project that must be watched.

    Watches are not recursive, so nested directories of ``pages/`` and
    ``static/`` are listed one by one. Missing directories are left out.

    Args:
        base: Project root.

    Returns:
        Sorted, de-duplicated list of existing directories.
    """
    targets: set[Path] = set()
    if base.is_dir():
        targets.add(base)
    for name in (LAYOUTS_DIR, POSTS_DIR):
        path = base / name
        if path.is_dir():
            targets.add(path)
    for name in (PAGES_DIR, STATIC_DIR):
        targets.update(iter_dirs(base / name))
    return sorted(targets)


class _ChangeHandler(FileSystemEventHandler):
    """Forwards relevant watchdog events to a Watcher."""

    def __init__(self, watcher: Watcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            if event.event_type not in WATCHED_EVENTS:
                return
            # a directory listing changed; the entry's own event follows
            if event.is_directory and event.event_type == EVENT_TYPE_MODIFIED:
                return
            paths = [os.fsdecode(event.src_path)]
            dest = getattr(event, "dest_path", "")
            if dest:
                paths.append(os.fsdecode(dest))
            if all(self.watcher.is_ignored(Path(p)) for p in paths):
                return
            logger.debug("%s %s", event.event_type, paths[0])
            self.watcher.notify()
        except Exception as exc:
            error = WatchError(f"Failed to handle {event.event_type} event: {exc}", None, exc)
            logger.error("Watch error: %s", error)


class Watcher:
    """Rebuild trigger over a fixed set of directories.

    Attributes:
        directories: Directories watched (non-recursively).
        ignore: Paths whose events never trigger a rebuild, e.g. the output.
    """

    def __init__(
        self,
        directories: Iterable[Path],
        listener: Callable[[], Any] | ChangeListener,
        ignore: Iterable[Path] = (),
        observer_factory: Callable[[], EventObserver] = Observer,
    ):
        """Initialize the watcher. Nothing runs until start().

        Args:
            directories: Directories to watch.
            listener: Called (or its on_change called) for each coalesced
                change. Exceptions are logged, never raised.
            ignore: Paths (and everything below them) to disregard.
            observer_factory: Builds the watchdog observer.
        """
        self.directories = [Path(d) for d in directories]
        if isinstance(listener, ChangeListener):
            self._callback = listener.on_change
        else:
            self._callback = listener
        self.ignore = [Path(p).resolve() for p in ignore]
        self._observer_factory = observer_factory
        self._observer: EventObserver | None = None
        self._worker: threading.Thread | None = None
        self._signals: queue.Queue[bool] = queue.Queue(maxsize=1)
        self._closed = threading.Event()
        self._close_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def pending(self) -> bool:
        """Whether a rebuild is waiting for the worker."""
        return self._signals.full()

    def is_ignored(self, path: Path) -> bool:
        resolved = path.resolve()
        return any(resolved == p or p in resolved.parents for p in self.ignore)

    def start(self) -> Watcher:
        """Start the rebuild worker and the observer.

        Raises:
            WatchError: If a directory cannot be watched.
        """
        if self._worker is not None or self.closed:
            raise WatchError("Watcher cannot be started twice")
        self._worker = threading.Thread(
            target=self._run, name="banana-rebuild", daemon=True
        )
        self._worker.start()

        handler = _ChangeHandler(self)
        current: Path | None = None
        try:
            observer = self._observer_factory()
            for current in self.directories:
                if not current.is_dir():
                    raise FileNotFoundError(f"No such directory: {current}")
                observer.schedule(handler, str(current), recursive=False)
            current = None
            observer.start()
        except OSError as exc:
            self.close()
            raise WatchError(f"Cannot watch directory: {exc}", current, exc) from exc
        except Exception:
            self.close()
            raise
        self._observer = observer
        logger.debug("Watching %d directories", len(self.directories))
        return self

    def notify(self) -> bool:
        """Signal that a rebuild is wanted.

        Returns:
            True if the signal was queued, False if one was already pending
            or the watcher is closed.
        """
        if self.closed:
            return False
        try:
            self._signals.put_nowait(True)
        except queue.Full:
            return False
        return True

    def _run(self) -> None:
        while True:
            self._signals.get()
            if self.closed:
                return
            try:
                self._callback()
            except BananaError as exc:
                logger.error("Rebuild failed: %s", exc)
            except Exception:
                logger.exception("Rebuild failed")

    def close(self) -> None:
        """Stop watching and release the observer.

        A rebuild already running is allowed to finish; no rebuild starts
        after close() returns. Calling close() again does nothing.
        """
        with self._close_lock:
            if self.closed:
                return
            self._closed.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        try:
            self._signals.put_nowait(False)
        except queue.Full:
            pass  # the pending signal wakes the worker instead
        if self._worker is not None and self._worker is not threading.current_thread():
            self._worker.join()

    def __enter__(self) -> Watcher:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def watch(
    directories: Iterable[Path],
    listener: Callable[[], Any] | ChangeListener,
    ignore: Iterable[Path] = (),
) -> Watcher:
    """Start watching directories, calling listener after changes.

    Returns:
        The started Watcher; close it (or use it as a context manager) to
        stop watching.
    """
    return Watcher(directories, listener, ignore=ignore).start()
