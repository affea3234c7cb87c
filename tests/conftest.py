import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path

import pytest
from loguru import logger

from domains.file_upload.delivery.bot import Bot
from domains.file_upload.delivery.rate_limit import RateLimiter
from service.models.schemas import UploaderConfig
from service.utils.config import Settings
from service.utils.telegram_client import TelegramAPIError

linux_only = pytest.mark.skipif(
    not sys.platform.startswith("linux"),
    reason="write-close notifications require inotify",
)


@dataclass
class SentFile:
    kind: str
    chat_id: object
    path: str
    caption: str


class RecordingClient:
    """Stands in for TelegramClient and remembers every upload."""

    def __init__(self):
        self.sent: list[SentFile] = []
        self.fail_paths: set[str] = set()
        self.closed = False
        self._lock = threading.Lock()

    def send_media(self, kind, chat_id, path, caption=""):
        if str(path) in self.fail_paths:
            raise TelegramAPIError("sendDocument", "Bad Request: file is broken", 400)
        with self._lock:
            self.sent.append(SentFile(kind.value, chat_id, str(path), caption))
            return {"message_id": len(self.sent)}

    def close(self):
        self.closed = True


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def make_config(*uploads: dict, token: str = "123:abc") -> UploaderConfig:
    return UploaderConfig.model_validate({"telegram": {"token": token}, "uploads": list(uploads)})


def write_file(path: Path, size: int) -> Path:
    path.write_bytes(b"x" * size)
    return path


@pytest.fixture
def recording_client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def bot(recording_client) -> Bot:
    return Bot(recording_client, RateLimiter(rate=1000.0, burst=1000))


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, event_buffer_size=10)


@pytest.fixture
def log_messages():
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="TRACE")
    yield messages
    logger.remove(handler_id)
