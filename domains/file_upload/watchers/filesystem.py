"""
File system watcher for the File Upload domain.

Monitors one configured directory for completely written files and routes
them to the uploader's event queue. Uses watchdog library for file system event
monitoring: only write-close and moved-into notifications are considered, so a
file is reported once the writer has closed it or once it was renamed into
place.
"""

import os
import queue
import sys
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from service.utils.errors import (
    InvalidPatternError,
    WatchDirectoryNotFoundError,
    WatchNotADirectoryError,
    WatchSubscriptionError,
)
from service.utils.helpers import compile_name_pattern, match_name


@dataclass(frozen=True)
class FileEvent:
    """A file in a watched directory is ready to be uploaded."""

    task_id: int
    path: str


class WatcherState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


def new_observer() -> Observer:
    """
    Create the observer for one watched directory.

    On Linux the inotify observer runs with full events, so a file moved in
    from an unwatched directory arrives as a move with an empty source path
    instead of a creation.
    """
    if sys.platform.startswith("linux"):
        from watchdog.observers.inotify import InotifyObserver

        return InotifyObserver(generate_full_events=True)
    return Observer()


class UploadEventHandler(FileSystemEventHandler):
    """Watchdog handler forwarding completed files to a DirectoryWatcher."""

    def __init__(self, watcher: "DirectoryWatcher"):
        super().__init__()
        self.watcher = watcher

    def on_closed(self, event: FileSystemEvent):
        """Handle a file closed after writing."""
        if event.is_directory:
            return
        self.watcher.route(os.fsdecode(event.src_path))

    def on_moved(self, event: FileSystemEvent):
        """Handle a file renamed within or moved into the watched directory."""
        if event.is_directory:
            return
        dest = os.fsdecode(event.dest_path)
        # Moved out of the directory: dest is empty or elsewhere.
        if not dest or os.path.dirname(dest) != self.watcher.directory:
            return
        self.watcher.route(dest)


class DirectoryWatcher:
    """Watches one directory on behalf of one upload task."""

    def __init__(
        self,
        task_id: int,
        events: queue.Queue,
        directory: str,
        file_patterns: Sequence[str] = (),
        put_timeout: float = 0.1,
    ):
        """
        Validate the directory and subscribe to its notifications.

        Args:
            task_id: Id of the owning upload task
            events: Shared event queue of the uploader
            directory: Directory to watch
            file_patterns: Case-insensitive glob patterns of file names to report
            put_timeout: How often a blocked put re-checks for stop requests

        Raises:
            TaskConstructionError: If the directory can't be watched
        """
        self.task_id = task_id
        self.directory = os.path.abspath(os.fspath(directory))
        self.file_patterns = list(file_patterns)
        self._events = events
        self._put_timeout = put_timeout

        if not os.path.exists(self.directory):
            raise WatchDirectoryNotFoundError(self.directory)
        if not os.path.isdir(self.directory):
            raise WatchNotADirectoryError(self.directory)
        if not os.access(self.directory, os.R_OK | os.X_OK):
            raise WatchSubscriptionError(self.directory, "permission denied")

        self._name_patterns = []
        for pattern in self.file_patterns:
            try:
                self._name_patterns.append(compile_name_pattern(pattern))
            except ValueError:
                raise InvalidPatternError(self.directory, pattern) from None

        self._state = WatcherState.IDLE
        self._lock = threading.Lock()
        self._stopping = threading.Event()

        self._observer = new_observer()
        self._observer.daemon = True
        try:
            self._observer.schedule(UploadEventHandler(self), self.directory, recursive=False)
        except OSError as e:
            raise WatchSubscriptionError(self.directory, str(e)) from e

    @property
    def state(self) -> WatcherState:
        return self._state

    def start(self):
        """Start receiving notifications."""
        with self._lock:
            if self._state is not WatcherState.IDLE:
                logger.warning(f"Watcher [{self.task_id}] can't be started: {self._state.value}")
                return
            logger.debug(f"Starting watcher [{self.task_id}] ({self.directory})")
            try:
                self._observer.start()
            except OSError as e:
                logger.warning(f"Can't watch {self.directory}: {e}")
                self._state = WatcherState.STOPPED
                self._stopping.set()
                return
            self._state = WatcherState.RUNNING

    def stop(self):
        """Stop watching; returns once the observer thread has exited."""
        with self._lock:
            if self._state is WatcherState.STOPPED:
                return
            was_running = self._state is WatcherState.RUNNING
            self._state = WatcherState.STOPPED

        logger.debug(f"Stopping watcher [{self.task_id}] ({self.directory})")
        self._stopping.set()
        # An observer that was never started holds no inotify watch yet.
        if was_running:
            self._observer.stop()
            self._observer.join()
        logger.debug(f"Watcher [{self.task_id}] stopped")

    def matches(self, name: str) -> bool:
        """Check a file name against the watcher's patterns."""
        return match_name(name, self._name_patterns)

    def route(self, path: str) -> bool:
        """
        Forward a completed file to the event queue if its name matches.

        Blocks while the queue is full, unless the watcher is stopping.

        Returns:
            True if an event was queued
        """
        logger.trace(f"Watcher [{self.task_id}] event: {path}")
        if self._stopping.is_set() or not self.matches(os.path.basename(path)):
            return False

        event = FileEvent(task_id=self.task_id, path=path)
        while not self._stopping.is_set():
            try:
                self._events.put(event, timeout=self._put_timeout)
                return True
            except queue.Full:
                continue
        return False
