"""
app/api/webhook.py

Purpose: Telegram webhook endpoint

- Verifies the secret token header set with setWebhook
- Parses update payloads and normalizes them
- Hands processing to the flow dispatcher in the background
- Always acknowledges accepted updates so Telegram does not retry
"""

import hmac
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Request

from app.core.config import settings
from app.core.exceptions import AuthenticationError
from app.core.logging import get_logger
from app.flow.dispatcher import dispatch_update
from app.schemas.response import WebhookAck
from app.schemas.telegram import parse_update

logger = get_logger(__name__)
router = APIRouter()

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def verify_secret(received: Optional[str]) -> None:
    expected = settings.TELEGRAM_WEBHOOK_SECRET
    if not expected:
        return
    if not received or not hmac.compare_digest(received, expected):
        raise AuthenticationError("Invalid webhook secret")


@router.post("/telegram/webhook", response_model=WebhookAck)
async def telegram_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    secret_token: Optional[str] = Header(None, alias=SECRET_HEADER),
):
    """
    Receives one Telegram update.

    Unsupported update types are acknowledged and ignored.
    """
    verify_secret(secret_token)

    try:
        update = await request.json()
    except ValueError:
        logger.error("Webhook body is not JSON")
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    if not isinstance(update, dict):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    message = parse_update(update)
    if message is None:
        logger.debug(f"Ignoring update {update.get('update_id')}")
        return WebhookAck()

    logger.info(f"📱 Telegram update {message.update_id} ({message.kind}) from chat {message.chat_id}")
    background_tasks.add_task(dispatch_update, message, request.app.state.flow)

    return WebhookAck()


@router.get("/telegram/webhook")
async def webhook_verification():
    """
    Lets operators check that the endpoint is reachable.
    """
    return {"status": "ok", "message": "Webhook endpoint is active"}
