"""
app/services/telegram_service.py

Purpose: Telegram Bot API message sending

- Sends text, photo and document messages
- Deletes stale prompt messages
- Answers callback queries
- Delivers payloads built by utils/telegram_utils.py
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class TelegramService:
    """Service for calling the Telegram Bot API"""

    def __init__(
        self,
        token: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        transport=None
    ):
        self.token = token if token is not None else settings.TELEGRAM_BOT_TOKEN
        self.api_base = (api_base or settings.TELEGRAM_API_BASE).rstrip("/")
        self.timeout = timeout or settings.TELEGRAM_TIMEOUT_SECONDS
        self._transport = transport

    def _url(self, method: str) -> str:
        return f"{self.api_base}/bot{self.token}/{method}"

    async def _call(
        self,
        method: str,
        data: Dict[str, Any],
        files: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Calls a Bot API method.

        Returns:
            {
                "success": True/False,
                "message_id": 123 (when the result is a message),
                "error": "Optional error message"
            }
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                if files:
                    response = await client.post(self._url(method), data=data, files=files)
                else:
                    response = await client.post(self._url(method), json=data)

            try:
                body = response.json()
            except ValueError:
                body = {}

            if response.status_code == 200 and body.get("ok"):
                result = body.get("result")
                message_id = result.get("message_id") if isinstance(result, dict) else None
                logger.debug(f"Telegram {method} ok")
                return {"success": True, "message_id": message_id}

            description = body.get("description") or response.text[:200]
            logger.error(f"❌ Telegram API error on {method}: {response.status_code} - {description}")
            return {"success": False, "error": f"Telegram API error: {response.status_code} {description}"}

        except httpx.TimeoutException:
            logger.error(f"Telegram API timeout on {method}")
            return {"success": False, "error": "Telegram API timeout"}
        except httpx.RequestError as e:
            logger.error(f"Telegram network error on {method}: {e}")
            return {"success": False, "error": str(e)}

    async def send_message(
        self,
        chat_id,
        text: str,
        reply_markup: Optional[Dict[str, Any]] = None,
        parse_mode: Optional[str] = "Markdown"
    ) -> Dict[str, Any]:
        data: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_markup:
            data["reply_markup"] = reply_markup
        if parse_mode:
            data["parse_mode"] = parse_mode
        return await self._call("sendMessage", data)

    async def _send_file(
        self,
        method: str,
        field: str,
        chat_id,
        path: str,
        filename: Optional[str],
        caption: Optional[str],
        reply_markup: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        data: Dict[str, Any] = {"chat_id": str(chat_id)}
        if caption:
            data["caption"] = caption
        if reply_markup:
            data["reply_markup"] = json.dumps(reply_markup)

        file_path = Path(path)
        with file_path.open("rb") as handle:
            files = {field: (filename or file_path.name, handle.read())}
        return await self._call(method, data, files=files)

    async def send_photo(
        self,
        chat_id,
        photo_path: str,
        caption: Optional[str] = None,
        reply_markup: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        return await self._send_file("sendPhoto", "photo", chat_id, photo_path, None, caption, reply_markup)

    async def send_document(
        self,
        chat_id,
        document_path: str,
        filename: Optional[str] = None,
        caption: Optional[str] = None,
        reply_markup: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        logger.info(f"📤 Sending document {filename or document_path} to {chat_id}")
        return await self._send_file(
            "sendDocument", "document", chat_id, document_path, filename, caption, reply_markup
        )

    async def delete_message(self, chat_id, message_id: int) -> Dict[str, Any]:
        return await self._call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> Dict[str, Any]:
        data: Dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            data["text"] = text
        return await self._call("answerCallbackQuery", data)

    async def send_payload(self, chat_id, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Sends a payload created by utils.telegram_utils.
        """
        kind = payload.get("type", "text")

        if kind == "photo":
            return await self.send_photo(
                chat_id, payload["path"], payload.get("caption"), payload.get("reply_markup")
            )
        if kind == "document":
            return await self.send_document(
                chat_id,
                payload["path"],
                payload.get("filename"),
                payload.get("caption"),
                payload.get("reply_markup"),
            )
        return await self.send_message(
            chat_id, payload["text"], payload.get("reply_markup"), payload.get("parse_mode")
        )

    def is_configured(self) -> bool:
        """Check if the bot token is set"""
        return bool(self.token)


# Singleton instance
telegram_service = TelegramService()
