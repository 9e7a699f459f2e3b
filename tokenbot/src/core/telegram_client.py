from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.telegram.org"
MAX_RETRIES = 2
RETRY_BASE_DELAY = 1.0  # seconds
RETRY_MAX_DELAY = 10.0  # seconds

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class ParseMode(str, enum.Enum):
    markdown = "Markdown"
    markdown_v2 = "MarkdownV2"
    html = "HTML"
    plain = "plain"


class TelegramError(Exception):
    """A Bot API call failed."""

    def __init__(self, message: str, original_error: Exception | None = None, *, retryable: bool = False) -> None:
        self.original_error = original_error
        self.retryable = retryable
        super().__init__(message)


class MessageSender(Protocol):
    async def send_text(
        self,
        account_id: int,
        text: str,
        *,
        silent: bool = False,
        parse_mode: ParseMode = ParseMode.markdown,
    ) -> None: ...

    async def send_easter_egg(self, account_id: int) -> None: ...


class TelegramBotClient:
    """Minimal Telegram Bot API client: text messages, one sticker, webhook setup."""

    def __init__(
        self,
        token: str,
        *,
        sticker_id: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = API_BASE_URL,
        timeout: float = 10.0,
    ) -> None:
        self.token = token
        self.sticker_id = sticker_id
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def __repr__(self) -> str:
        return f"TelegramBotClient(token='***{self.token[-4:]}', base_url={self.base_url!r})"

    async def send_text(
        self,
        account_id: int,
        text: str,
        *,
        silent: bool = False,
        parse_mode: ParseMode = ParseMode.markdown,
    ) -> None:
        payload: dict[str, Any] = {
            "chat_id": account_id,
            "text": text,
            "disable_notification": silent,
        }
        if parse_mode != ParseMode.plain:
            payload["parse_mode"] = parse_mode.value
        await self._call("sendMessage", payload)

    async def send_easter_egg(self, account_id: int) -> None:
        if self.sticker_id is None:
            raise TelegramError("No easter egg sticker configured")
        await self._call("sendSticker", {"chat_id": account_id, "sticker": self.sticker_id})

    async def set_webhook(self, url: str, secret_token: str | None = None) -> None:
        payload: dict[str, Any] = {"url": url, "allowed_updates": ["message"]}
        if secret_token:
            payload["secret_token"] = secret_token
        await self._call("setWebhook", payload)
        logger.info("Webhook registered at %s", url)

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        """POST a Bot API method with retry on rate limits and server errors."""
        url = f"{self.base_url}/bot{self.token}/{method}"
        for attempt in range(MAX_RETRIES + 1):
            try:
                response = await self._http.post(url, json=payload)
            except httpx.TransportError as e:
                if attempt < MAX_RETRIES:
                    delay = self._backoff(attempt)
                    logger.warning("Telegram %s attempt %d failed: %s. Retrying in %.1fs", method, attempt + 1, e, delay)
                    await asyncio.sleep(delay)
                    continue
                raise TelegramError(f"Telegram {method} failed: {e}", original_error=e, retryable=True) from e

            data = self._json(response)
            if response.status_code == 200 and data.get("ok"):
                return data.get("result")

            retryable = response.status_code in _RETRYABLE_STATUS
            description = data.get("description") or response.reason_phrase
            if retryable and attempt < MAX_RETRIES:
                retry_after = (data.get("parameters") or {}).get("retry_after")
                delay = min(float(retry_after), RETRY_MAX_DELAY) if retry_after else self._backoff(attempt)
                logger.warning(
                    "Telegram %s attempt %d returned %d (%s). Retrying in %.1fs",
                    method, attempt + 1, response.status_code, description, delay,
                )
                await asyncio.sleep(delay)
                continue
            raise TelegramError(f"Telegram {method} failed: {response.status_code} {description}", retryable=retryable)
        # Unreachable: the last attempt either returns or raises
        raise TelegramError(f"Telegram {method} failed after {MAX_RETRIES + 1} attempts")

    @staticmethod
    def _backoff(attempt: int) -> float:
        return min(RETRY_BASE_DELAY * (2 ** attempt), RETRY_MAX_DELAY)

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
