"""
Delivery of files to Telegram chats.

Picks the message type from the file extension, turns tags into a hashtag
caption and sends the file through the Bot API, one rate limiter token per
request.
"""

import threading
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from domains.file_upload.delivery.rate_limit import RateLimiter
from service.utils.config import Settings
from service.utils.errors import ConfigError
from service.utils.helpers import is_file_extension_matched
from service.utils.telegram_client import ChatId, MediaKind, TelegramAPIError, TelegramClient

AUDIO_EXTENSIONS = ("mp3", "m4a")
VIDEO_EXTENSIONS = ("mp4",)
PHOTO_EXTENSIONS = ("jpg", "jpeg", "png", "gif")


def build_caption(tags: Sequence[str]) -> str:
    """Join tags into a caption, every tag after the first as a hashtag."""
    return " #".join(tags)


def select_media_kind(path: str, document: bool = False) -> MediaKind:
    """
    Choose the message type for a file.

    Args:
        path: File path
        document: Always send as a generic document

    Returns:
        Media kind matching the file extension, DOCUMENT if none matches
    """
    if document:
        return MediaKind.DOCUMENT
    name = Path(path).name
    if is_file_extension_matched(name, *AUDIO_EXTENSIONS):
        return MediaKind.AUDIO
    if is_file_extension_matched(name, *VIDEO_EXTENSIONS):
        return MediaKind.VIDEO
    if is_file_extension_matched(name, *PHOTO_EXTENSIONS):
        return MediaKind.PHOTO
    return MediaKind.DOCUMENT


class Bot:
    """Uploads files to Telegram chats."""

    def __init__(self, client: TelegramClient, rate_limiter: Optional[RateLimiter] = None):
        """
        Initialize bot.

        Args:
            client: Bot API client
            rate_limiter: Limiter shared by all uploads of this bot
        """
        self.client = client
        self.rate_limiter = rate_limiter or RateLimiter()

    @classmethod
    def from_settings(cls, token: str, settings: Settings) -> "Bot":
        """
        Create a bot and verify its token.

        Raises:
            ConfigError: If the token is rejected or the Bot API is unreachable
        """
        client = TelegramClient(
            token,
            api_url=settings.telegram_api_url,
            timeout=settings.telegram_timeout,
        )
        try:
            client.connect()
        except TelegramAPIError as e:
            client.close()
            raise ConfigError(f"can't create telegram bot: {e}") from e

        rate_limiter = RateLimiter(
            rate=settings.rate_limit_per_second,
            burst=settings.rate_limit_burst,
        )
        return cls(client, rate_limiter)

    def upload_file(
        self,
        chat_id: ChatId,
        path: str,
        document: bool = False,
        tags: Sequence[str] = (),
        cancel: Optional[threading.Event] = None,
    ):
        """
        Upload one file.

        Args:
            chat_id: Destination chat
            path: File to upload
            document: Send as a generic document regardless of extension
            tags: Tags for the caption
            cancel: Event aborting the rate limiter wait

        Raises:
            DeliveryError: If the upload fails or is cancelled
        """
        logger.debug(f"Uploading file {path} with tags {list(tags)} to chat {chat_id}")

        caption = build_caption(tags)
        kind = select_media_kind(path, document)

        self.rate_limiter.acquire(cancel)
        self.client.send_media(kind, chat_id, path, caption)

        logger.info(f"Uploaded {path} to chat {chat_id} as {kind.value}")

    def close(self):
        """Release the Bot API client."""
        self.client.close()
