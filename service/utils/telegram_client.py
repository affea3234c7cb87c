"""
Telegram Bot API client.

Provides:
- Token verification (getMe)
- Multipart file uploads as audio, video, photo or document messages
- Error handling that turns HTTP and API failures into DeliveryError
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx
from loguru import logger

from service.utils.errors import DeliveryError

ChatId = Union[int, str]


class MediaKind(str, Enum):
    """Message type a file is sent as."""
    AUDIO = "audio"
    VIDEO = "video"
    PHOTO = "photo"
    DOCUMENT = "document"


# kind -> (Bot API method, multipart field name)
_SEND_METHODS = {
    MediaKind.AUDIO: ("sendAudio", "audio"),
    MediaKind.VIDEO: ("sendVideo", "video"),
    MediaKind.PHOTO: ("sendPhoto", "photo"),
    MediaKind.DOCUMENT: ("sendDocument", "document"),
}


class TelegramAPIError(DeliveryError):
    """Raised when the Bot API rejects a request or can't be reached."""

    def __init__(self, method: str, reason: str, status_code: Optional[int] = None):
        self.method = method
        self.reason = reason
        self.status_code = status_code
        status = f" (HTTP {status_code})" if status_code else ""
        super().__init__(f"telegram {method} failed{status}: {reason}")


class TelegramClient:
    """Thin synchronous client for the Telegram Bot API."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.telegram.org",
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize Telegram client.

        Args:
            token: Bot token
            api_url: Bot API server base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self.bot_info: Dict[str, Any] = {}

    @property
    def client(self) -> httpx.Client:
        """Get HTTP client, creating it if necessary."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=f"{self.api_url}/bot{self.token}/",
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def connect(self) -> Dict[str, Any]:
        """
        Verify the bot token.

        Returns:
            Bot user info as returned by getMe

        Raises:
            TelegramAPIError: If the token is rejected or the API is unreachable
        """
        self.bot_info = self._call("getMe")
        logger.info(f"Connected to Telegram as @{self.bot_info.get('username', 'unknown')}")
        return self.bot_info

    def close(self):
        """Close HTTP connections."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def send_media(
        self,
        kind: MediaKind,
        chat_id: ChatId,
        path: Union[str, Path],
        caption: str = "",
    ) -> Dict[str, Any]:
        """
        Upload a file to a chat.

        Args:
            kind: Message type to send the file as
            chat_id: Destination chat id or @channel username
            path: File to upload
            caption: Optional message caption

        Returns:
            The sent message

        Raises:
            TelegramAPIError: If the upload fails
        """
        method, field = _SEND_METHODS[MediaKind(kind)]
        path = Path(path)
        data = {"chat_id": str(chat_id)}
        if caption:
            data["caption"] = caption

        try:
            with path.open("rb") as f:
                return self._call(method, data=data, files={field: (path.name, f)})
        except OSError as e:
            raise TelegramAPIError(method, f"can't read {path}: {e}") from e

    def _call(
        self,
        method: str,
        data: Optional[Dict[str, str]] = None,
        files: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Call a Bot API method and return its result."""
        try:
            response = self.client.post(method, data=data, files=files)
        except httpx.HTTPError as e:
            raise TelegramAPIError(method, str(e)) from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_error or not payload.get("ok"):
            reason = payload.get("description") or response.reason_phrase or "unknown error"
            raise TelegramAPIError(method, reason, response.status_code)

        return payload.get("result")
