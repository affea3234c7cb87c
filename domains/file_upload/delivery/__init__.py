"""Rate-limited delivery of files to Telegram chats."""

from domains.file_upload.delivery.bot import Bot, build_caption, select_media_kind
from domains.file_upload.delivery.rate_limit import RateLimiter

__all__ = ["Bot", "RateLimiter", "build_caption", "select_media_kind"]
