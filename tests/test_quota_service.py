import asyncio
from datetime import timedelta

import pytest
from bson import ObjectId

from app.core.exceptions import ResourceNotFoundError, ValidationError
from app.models.generation import GenerationStatus
from app.services.quota_service import QuotaLedger


async def test_reserve_grants_until_limit(ledger, user_id):
    first = await ledger.reserve(user_id, {"prompt": "Climate policy"})
    assert first.allowed
    assert first.reservation_id
    assert first.used_in_window == 1
    assert first.remaining == 2

    await ledger.reserve(user_id)
    third = await ledger.reserve(user_id)
    assert third.allowed
    assert third.remaining == 0

    blocked = await ledger.reserve(user_id)
    assert not blocked.allowed
    assert blocked.reservation_id is None
    assert blocked.used_in_window == 3


async def test_concurrent_reservations_never_exceed_limit(ledger, user_id, db):
    results = await asyncio.gather(*[ledger.reserve(user_id) for _ in range(8)])

    granted = [r for r in results if r.allowed]
    assert len(granted) == 3
    assert len({r.reservation_id for r in granted}) == 3
    assert await db.generations.count_documents({"user_id": user_id}) == 3


async def test_pending_record_carries_metadata(ledger, user_id, db, clock):
    reservation = await ledger.reserve(user_id, {"prompt": "Solar energy", "page_count": 4})

    record = await db.generations.find_one({"_id": ObjectId(reservation.reservation_id)})
    assert record["status"] == "pending"
    assert record["metadata"] == {"prompt": "Solar energy", "page_count": 4}
    assert record["created_at"] == clock.now
    assert record["instance_id"] == "test-instance"
    assert record["finalized_at"] is None


async def test_failed_records_do_not_count(ledger, user_id):
    for _ in range(3):
        reservation = await ledger.reserve(user_id)
        await ledger.finalize(reservation.reservation_id, GenerationStatus.FAILED)

    status = await ledger.check_availability(user_id)
    assert status.allowed
    assert status.used_in_window == 0
    assert status.remaining == 3


async def test_pending_records_count(ledger, user_id):
    for _ in range(3):
        await ledger.reserve(user_id)

    status = await ledger.check_availability(user_id)
    assert not status.allowed
    assert status.used_in_window == 3


async def test_next_available_is_oldest_plus_window(ledger, user_id, clock):
    start = clock.now
    for _ in range(3):
        reservation = await ledger.reserve(user_id)
        await ledger.finalize(reservation.reservation_id, "completed")
        clock.advance(hours=1)

    status = await ledger.check_availability(user_id)
    assert not status.allowed
    assert status.next_available_at == start + ledger.window

    clock.now = start + ledger.window
    assert not (await ledger.check_availability(user_id)).allowed

    clock.advance(seconds=1)
    status = await ledger.check_availability(user_id)
    assert status.allowed
    assert status.used_in_window == 2
    assert status.next_available_at is None


async def test_check_availability_for_new_user(ledger, user_id):
    status = await ledger.check_availability(user_id)
    assert status.allowed
    assert status.used_in_window == 0
    assert status.remaining == 3
    assert status.limit == 3


async def test_reserve_unknown_user(ledger):
    with pytest.raises(ResourceNotFoundError):
        await ledger.reserve(ObjectId())


async def test_reserve_invalid_user_id(ledger):
    with pytest.raises(ValidationError):
        await ledger.reserve("not-an-object-id")


async def test_finalize_merges_metadata(ledger, user_id, db):
    reservation = await ledger.reserve(user_id, {"prompt": "Solar energy"})
    await ledger.finalize(reservation.reservation_id, "completed", {"output_filename": "solar-energy.pdf"})

    record = await db.generations.find_one({"_id": ObjectId(reservation.reservation_id)})
    assert record["status"] == "completed"
    assert record["metadata"]["prompt"] == "Solar energy"
    assert record["metadata"]["output_filename"] == "solar-energy.pdf"
    assert record["finalized_at"] is not None


async def test_finalize_rejects_pending(ledger, user_id):
    reservation = await ledger.reserve(user_id)
    with pytest.raises(ValueError):
        await ledger.finalize(reservation.reservation_id, "pending")


async def test_finalize_missing_reservation(ledger):
    with pytest.raises(ResourceNotFoundError):
        await ledger.finalize(str(ObjectId()), "failed")


async def test_mark_failed_if_pending_only_touches_pending(ledger, user_id, db):
    reservation = await ledger.reserve(user_id)
    await ledger.finalize(reservation.reservation_id, "completed")

    assert await ledger.mark_failed_if_pending(reservation.reservation_id, reason="late") is False
    record = await db.generations.find_one({"_id": ObjectId(reservation.reservation_id)})
    assert record["status"] == "completed"

    pending = await ledger.reserve(user_id)
    assert await ledger.mark_failed_if_pending(pending.reservation_id, reason="RuntimeError") is True
    record = await db.generations.find_one({"_id": ObjectId(pending.reservation_id)})
    assert record["status"] == "failed"
    assert record["metadata"]["failure_reason"] == "RuntimeError"


async def test_recover_orphaned_is_idempotent(ledger, user_id, db):
    done = await ledger.reserve(user_id)
    await ledger.finalize(done.reservation_id, "completed")
    await ledger.reserve(user_id)
    await ledger.reserve(user_id)

    assert await ledger.recover_orphaned_on_startup() == 2
    assert await ledger.recover_orphaned_on_startup() == 0

    assert await db.generations.count_documents({"status": "pending"}) == 0
    orphan = await db.generations.find_one({"status": "failed"})
    assert orphan["metadata"]["failure_reason"] == "orphaned"
    assert orphan["recovered_by"] == "test-instance"

    status = await ledger.check_availability(user_id)
    assert status.used_in_window == 1


async def test_reservation_bumps_user_lock(ledger, user_id, db):
    await ledger.reserve(user_id)
    await ledger.reserve(user_id)
    user = await db.users.find_one({"_id": user_id})
    assert user["quota_lock"] == 2


class FakeSession:
    def __init__(self):
        self.transactions = 0
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    async def with_transaction(self, callback):
        self.transactions += 1
        return await callback(self)


class FakeClient:
    def __init__(self):
        self.sessions = []

    async def start_session(self):
        session = FakeSession()
        self.sessions.append(session)
        return session


class SessionRecordingCollection:
    """Delegates to a mongomock collection and records the session of each call."""

    def __init__(self, collection, calls):
        self._collection = collection
        self._calls = calls

    def _record(self, name, kwargs):
        self._calls.append((name, kwargs.pop("session", None)))

    async def find_one_and_update(self, *args, **kwargs):
        self._record("find_one_and_update", kwargs)
        return await self._collection.find_one_and_update(*args, **kwargs)

    async def insert_one(self, *args, **kwargs):
        self._record("insert_one", kwargs)
        return await self._collection.insert_one(*args, **kwargs)

    def aggregate(self, *args, **kwargs):
        self._record("aggregate", kwargs)
        return self._collection.aggregate(*args, **kwargs)


class TransactionalDatabase:
    def __init__(self, database):
        self._database = database
        self.client = FakeClient()
        self.calls = []

    def __getitem__(self, name):
        return SessionRecordingCollection(self._database[name], self.calls)


async def test_reserve_runs_every_statement_in_the_transaction(db, clock, user_id):
    database = TransactionalDatabase(db)
    ledger = QuotaLedger(
        database=database,
        limit=1,
        window=timedelta(hours=24),
        use_transactions=True,
        clock=clock,
        instance_id="test-instance",
    )

    granted = await ledger.reserve(user_id, {"prompt": "Climate policy"})

    assert granted.allowed
    session = database.client.sessions[0]
    assert session.transactions == 1
    assert session.closed
    assert [name for name, _ in database.calls] == ["find_one_and_update", "aggregate", "insert_one"]
    assert all(used is session for _, used in database.calls)

    database.calls.clear()
    blocked = await ledger.reserve(user_id)

    assert not blocked.allowed
    second = database.client.sessions[1]
    assert [name for name, _ in database.calls] == ["find_one_and_update", "aggregate"]
    assert all(used is second for _, used in database.calls)
    user = await db.users.find_one({"_id": user_id})
    assert user["quota_lock"] == 2
