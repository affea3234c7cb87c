"""
File uploader for the File Upload domain.

Owns the upload tasks of one configuration: a watcher per configured
directory feeding a single bounded event queue, and one loop thread that
checks, tags and uploads files one at a time.
"""

import os
import queue
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from domains.file_upload.delivery.bot import Bot
from domains.file_upload.taggers.strategies import Tagger, build_taggers
from domains.file_upload.watchers.filesystem import DirectoryWatcher, FileEvent
from service.models.schemas import UploaderConfig
from service.utils.config import Settings, get_settings
from service.utils.errors import (
    ConfigError,
    DeliveryCancelledError,
    DeliveryError,
    TaskConstructionError,
    TransientFileError,
)
from service.utils.helpers import format_bytes
from service.utils.telegram_client import ChatId

MAX_UPLOAD_SIZE = 50 * 1024 * 1024  # Telegram Bot API file size limit


@dataclass
class Task:
    """One watched directory and the rules for its files."""

    id: int
    watcher: DirectoryWatcher
    chat_id: ChatId
    document: bool = False
    min_size: int = 0
    max_size: int = MAX_UPLOAD_SIZE
    taggers: List[Tagger] = field(default_factory=list)

    @property
    def directory(self) -> str:
        return self.watcher.directory

    def tags(self, path: str) -> List[str]:
        """Collect the tags of all taggers, in order."""
        tags = []
        for tagger in self.taggers:
            tags.extend(tagger.tags(path))
        return tags


class Uploader:
    """Watches directories and uploads new files to Telegram."""

    def __init__(
        self,
        config: UploaderConfig,
        settings: Optional[Settings] = None,
        bot: Optional[Bot] = None,
        poll_interval: float = 0.2,
    ):
        """
        Build upload tasks from configuration.

        Args:
            config: Validated upload configuration
            settings: Process settings, defaults to get_settings()
            bot: Bot to upload with; created from the configured token if omitted
            poll_interval: How often the idle loop checks for stop requests

        Raises:
            ConfigError: If the configuration can't be used
        """
        settings = settings or get_settings()
        token = config.telegram.token
        if not token:
            raise ConfigError("telegram bot token is not set or empty")

        self.events: queue.Queue = queue.Queue(maxsize=settings.event_buffer_size)
        self.tasks: List[Task] = []
        self._poll_interval = poll_interval

        try:
            for upload in config.uploads:
                self._add_task(upload)
            if not self.tasks:
                raise ConfigError("no directories to watch for new files")
            self._owns_bot = bot is None
            self.bot = bot if bot is not None else Bot.from_settings(token, settings)
        except ConfigError:
            for task in self.tasks:
                task.watcher.stop()
            raise

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._stopped = threading.Event()
        self._started = False
        self._stopping = False
        self._thread: Optional[threading.Thread] = None

    def _add_task(self, upload):
        min_size = int(upload.min_size)
        max_size = int(upload.max_size) or MAX_UPLOAD_SIZE
        if min_size > max_size:
            raise ConfigError(
                f"max upload size ({max_size}) must not be less than min size ({min_size})"
            )

        try:
            taggers = build_taggers(upload.tags)
        except ConfigError as e:
            raise ConfigError(f"{upload.directory}: {e}") from e

        task_id = len(self.tasks)
        try:
            watcher = DirectoryWatcher(task_id, self.events, upload.directory, upload.file_patterns)
        except TaskConstructionError as e:
            logger.warning(f"{e}")
            return

        self.tasks.append(Task(
            id=task_id,
            watcher=watcher,
            chat_id=upload.chat_id,
            document=upload.document,
            min_size=min_size,
            max_size=max_size,
            taggers=taggers,
        ))

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """Start all watchers and the upload loop; returns immediately."""
        with self._lock:
            if self._started:
                logger.warning("File uploader already started")
                return
            self._started = True
            if self._stopping:
                logger.warning("File uploader already stopped")
                return

            for task in self.tasks:
                task.watcher.start()

            self._thread = threading.Thread(target=self._run, name="uploader", daemon=True)
            self._thread.start()

        logger.info(f"File uploader started, watching {len(self.tasks)} directories")

    def stop(self):
        """Stop all watchers and the upload loop; returns once everything has exited."""
        with self._lock:
            if self._stopping:
                first = False
            else:
                self._stopping = True
                first = True

        if not first:
            self._stopped.wait()
            return

        logger.info("Stopping file uploader...")
        try:
            for task in self.tasks:
                task.watcher.stop()
        finally:
            self._stop_event.set()
            try:
                if self._thread is not None:
                    self._thread.join()
                if self._owns_bot:
                    self.bot.close()
            finally:
                # Concurrent callers wait on this even if teardown failed.
                self._stopped.set()
        logger.info("File uploader stopped")

    def _run(self):
        while not self._stop_event.is_set():
            try:
                event = self.events.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            if self._stop_event.is_set():
                break
            try:
                self.handle_event(event)
            except Exception:
                logger.exception(f"Unexpected error processing {event.path}")

        dropped = 0
        while True:
            try:
                self.events.get_nowait()
            except queue.Empty:
                break
            dropped += 1
        if dropped:
            logger.warning(f"Dropped {dropped} pending file(s) on stop")

    def handle_event(self, event: FileEvent) -> bool:
        """
        Check, tag and upload one file.

        Returns:
            True if the file was uploaded
        """
        task = self.tasks[event.task_id]
        path = event.path
        logger.debug(f"New file to upload: {path}")

        try:
            size = self._file_size(path)
        except TransientFileError as e:
            logger.error(f"Can't stat file to upload {e}")
            return False

        if size < task.min_size:
            logger.info(f"Skipping uploading of too small file ({format_bytes(size)}): {path}")
            return False
        if size > task.max_size:
            logger.warning(f"Skipping uploading of too big file ({format_bytes(size)}): {path}")
            return False

        tags = task.tags(path)

        try:
            self.bot.upload_file(task.chat_id, path, task.document, tags, cancel=self._stop_event)
        except DeliveryCancelledError:
            logger.warning(f"Upload of {path} cancelled")
            return False
        except DeliveryError as e:
            logger.error(f"Can't upload file {path} to chat {task.chat_id}: {e}")
            return False
        return True

    @staticmethod
    def _file_size(path: str) -> int:
        try:
            return os.stat(path).st_size
        except OSError as e:
            raise TransientFileError(path, e.strerror or str(e)) from e
