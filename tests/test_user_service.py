from app.models.user import TelegramProfile
from app.services.user_service import (
    complete_registration,
    get_profile_status,
    get_user_by_telegram_id,
    is_registration_completed,
    register_user,
)


async def test_register_user_is_idempotent(db):
    first = await register_user(TelegramProfile(id=42, first_name="Aziz", username="aziz"))
    second = await register_user(TelegramProfile(id=42, first_name="Aziz B.", username=None))

    assert first["_id"] == second["_id"]
    assert second["first_name"] == "Aziz B."
    assert second["username"] is None
    assert second["quota_lock"] == 0
    assert await db.users.count_documents({}) == 1
    assert not is_registration_completed(second)


async def test_complete_registration(db):
    await register_user(TelegramProfile(id=42, first_name="Aziz"))

    user = await complete_registration(42, " +998901112233 ")

    assert user["phone_number"] == "+998901112233"
    assert is_registration_completed(await get_user_by_telegram_id("42"))


async def test_complete_registration_unknown_user(db):
    assert await complete_registration(7, "+1") is None


async def test_profile_status(db, ledger, clock):
    user = await register_user(TelegramProfile(id=42, first_name="Aziz", username="aziz"))
    await complete_registration(42, "+998901112233")
    for _ in range(3):
        await ledger.reserve(user["_id"])

    status = await get_profile_status(42, ledger=ledger)

    assert status.first_name == "Aziz"
    assert status.username == "aziz"
    assert status.phone_number == "+998901112233"
    assert status.used_in_window == 3
    assert status.remaining == 0
    assert status.limit == 3
    assert status.next_available_at == clock.now + ledger.window


async def test_profile_status_unknown_user(db, ledger):
    assert await get_profile_status(99, ledger=ledger) is None
