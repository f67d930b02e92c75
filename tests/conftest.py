from datetime import datetime, timedelta

import pytest
from mongomock_motor import AsyncMongoMockClient

import app.db.mongo as mongo
from app.services.quota_service import QuotaLedger
from utils.time_utils import utc_now


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 18, 12, 0, 0))


@pytest.fixture
def db(monkeypatch):
    database = AsyncMongoMockClient()["slidebot_test"]
    monkeypatch.setattr(mongo, "_database", database)
    return database


@pytest.fixture
def ledger(db, clock):
    return QuotaLedger(
        database=db,
        limit=3,
        window=timedelta(hours=24),
        use_transactions=False,
        clock=clock,
        instance_id="test-instance",
    )


@pytest.fixture
async def user_id(db):
    result = await db.users.insert_one({
        "telegram_id": "1001",
        "first_name": "Dilnoza",
        "username": "dilnoza",
        "phone_number": "+998901234567",
        "created_at": utc_now(),
        "updated_at": utc_now(),
        "quota_lock": 0,
    })
    return result.inserted_id
