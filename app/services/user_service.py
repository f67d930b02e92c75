"""
app/services/user_service.py

Purpose: User data management

- Create or refresh user records on every contact
- Complete registration with the shared phone number
- Build the profile status shown to the user
"""

from typing import Optional, Dict, Any

from pymongo import ReturnDocument

from app.db.mongo import get_users_collection
from app.core.logging import get_logger, LogContext
from app.models.user import TelegramProfile, ProfileStatus
from app.services.quota_service import QuotaLedger, get_quota_ledger
from utils.time_utils import utc_now

logger = get_logger(__name__)


async def register_user(profile: TelegramProfile) -> Dict[str, Any]:
    """
    Creates the user on first contact, otherwise refreshes name and handle.

    Args:
        profile: Sender identity from the update

    Returns:
        User document (after the update)
    """
    telegram_id = str(profile.id)

    with LogContext(user_id=telegram_id):
        users = get_users_collection()
        now = utc_now()

        user = await users.find_one_and_update(
            {"telegram_id": telegram_id},
            {
                "$set": {
                    "first_name": profile.first_name or "",
                    "username": profile.username,
                    "updated_at": now,
                },
                "$setOnInsert": {
                    "telegram_id": telegram_id,
                    "phone_number": None,
                    "created_at": now,
                    "quota_lock": 0,
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER
        )

        logger.debug("User registered/refreshed")
        return user


async def get_user_by_telegram_id(telegram_id) -> Optional[Dict[str, Any]]:
    """
    Retrieves a user by Telegram ID.

    Returns:
        User document or None if not found
    """
    users = get_users_collection()
    return await users.find_one({"telegram_id": str(telegram_id)})


def is_registration_completed(user: Optional[Dict[str, Any]]) -> bool:
    return bool(user and user.get("phone_number"))


async def complete_registration(telegram_id, phone_number: str) -> Optional[Dict[str, Any]]:
    """
    Stores the phone number, which marks the registration as completed.

    Args:
        telegram_id: Telegram user ID
        phone_number: Phone number from the shared contact

    Returns:
        Updated user document or None if the user does not exist
    """
    telegram_id = str(telegram_id)

    with LogContext(user_id=telegram_id):
        users = get_users_collection()

        user = await users.find_one_and_update(
            {"telegram_id": telegram_id},
            {
                "$set": {
                    "phone_number": phone_number.strip(),
                    "updated_at": utc_now(),
                }
            },
            return_document=ReturnDocument.AFTER
        )

        if user:
            logger.info("✅ Registration completed")
        else:
            logger.warning("Registration attempted for unknown user")

        return user


async def get_profile_status(
    telegram_id,
    ledger: Optional[QuotaLedger] = None
) -> Optional[ProfileStatus]:
    """
    Combines the user record with current quota usage.

    Returns:
        ProfileStatus or None if the user does not exist
    """
    user = await get_user_by_telegram_id(telegram_id)
    if not user:
        return None

    ledger = ledger or get_quota_ledger()
    quota = await ledger.check_availability(user["_id"])

    return ProfileStatus(
        first_name=user.get("first_name"),
        username=user.get("username"),
        phone_number=user.get("phone_number"),
        used_in_window=quota.used_in_window,
        remaining=quota.remaining,
        limit=quota.limit,
        next_available_at=quota.next_available_at,
    )
