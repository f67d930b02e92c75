"""
app/services/quota_service.py

Purpose: Quota reservation ledger

- Enforces "at most N non-failed generations per user per rolling window"
- Reserves a slot (pending record) before any generation work starts
- Finalizes reservations exactly once (completed / failed)
- Sweeps reservations orphaned by a crashed process on startup

Reservations for one user are serialized twice: by an in-process lock
co-located with the writer, and (when MongoDB transactions are enabled)
by writing the user's document first inside the transaction, which
holds that document's write lock until commit. A concurrent transaction
for the same user hits a write conflict and is retried by
``with_transaction`` after the first one commits.
"""

import asyncio
import uuid
import weakref
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple, Union

from bson import ObjectId
from bson.errors import InvalidId

from app.core.config import settings
from app.core.exceptions import ResourceNotFoundError, ValidationError
from app.core.logging import get_logger, LogContext
from app.db.mongo import get_database, USERS_COLLECTION, GENERATIONS_COLLECTION
from app.models.generation import GenerationStatus, QuotaStatus, Reservation
from utils.constants import DAILY_GENERATION_LIMIT, GENERATION_WINDOW
from utils.time_utils import utc_now, window_start

logger = get_logger(__name__)

# Provenance marker stored on every reservation created by this process
INSTANCE_ID = uuid.uuid4().hex


def _as_object_id(value: Union[str, ObjectId]) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError) as e:
        raise ValidationError(f"Invalid id: {value!r}") from e


class QuotaLedger:
    """
    Rolling-window reservation ledger backed by the ``generations`` collection.
    """

    def __init__(
        self,
        database=None,
        limit: int = DAILY_GENERATION_LIMIT,
        window: timedelta = GENERATION_WINDOW,
        use_transactions: Optional[bool] = None,
        clock: Callable[[], datetime] = utc_now,
        instance_id: str = INSTANCE_ID,
    ):
        self._database = database
        self.limit = limit
        self.window = window
        self._use_transactions = (
            settings.MONGODB_USE_TRANSACTIONS if use_transactions is None else use_transactions
        )
        self._clock = clock
        self.instance_id = instance_id
        self._locks: "weakref.WeakValueDictionary[ObjectId, asyncio.Lock]" = weakref.WeakValueDictionary()

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------

    @property
    def _db(self):
        return self._database if self._database is not None else get_database()

    @property
    def _users(self):
        return self._db[USERS_COLLECTION]

    @property
    def _generations(self):
        return self._db[GENERATIONS_COLLECTION]

    @staticmethod
    def _session_kwargs(session) -> Dict[str, Any]:
        return {"session": session} if session is not None else {}

    def _user_lock(self, user_oid: ObjectId) -> asyncio.Lock:
        lock = self._locks.get(user_oid)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_oid] = lock
        return lock

    async def _window_usage(
        self,
        user_oid: ObjectId,
        now: datetime,
        session=None
    ) -> Tuple[int, Optional[datetime]]:
        """
        Count and oldest ``created_at`` of non-failed records inside the window.
        """
        pipeline = [
            {
                "$match": {
                    "user_id": user_oid,
                    "created_at": {"$gte": window_start(now, self.window)},
                    "status": {"$ne": GenerationStatus.FAILED.value},
                }
            },
            {
                "$group": {
                    "_id": None,
                    "count": {"$sum": 1},
                    "oldest": {"$min": "$created_at"},
                }
            },
        ]
        cursor = self._generations.aggregate(pipeline, **self._session_kwargs(session))
        rows = await cursor.to_list(length=1)
        if not rows:
            return 0, None
        return int(rows[0]["count"]), rows[0].get("oldest")

    def _build_status(self, count: int, oldest: Optional[datetime], now: datetime) -> QuotaStatus:
        allowed = count < self.limit
        next_available_at = None
        if not allowed:
            next_available_at = (oldest + self.window) if oldest else (now + self.window)

        return QuotaStatus(
            allowed=allowed,
            used_in_window=count,
            remaining=max(self.limit - count, 0),
            limit=self.limit,
            next_available_at=next_available_at,
        )

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    async def check_availability(self, user_id: Union[str, ObjectId]) -> QuotaStatus:
        """
        Read-only view of the user's usage in the current window.

        Args:
            user_id: Internal user id (users._id)

        Returns:
            QuotaStatus
        """
        user_oid = _as_object_id(user_id)
        now = self._clock()
        count, oldest = await self._window_usage(user_oid, now)
        return self._build_status(count, oldest, now)

    async def reserve(
        self,
        user_id: Union[str, ObjectId],
        metadata: Optional[Dict[str, Any]] = None
    ) -> Reservation:
        """
        Atomically claims a quota slot by inserting a pending record.

        Args:
            user_id: Internal user id (users._id)
            metadata: Free-form generation parameters stored on the record

        Returns:
            Reservation with ``reservation_id`` set when allowed

        Raises:
            ResourceNotFoundError: If the user does not exist
        """
        user_oid = _as_object_id(user_id)

        with LogContext(user_id=str(user_oid)):
            lock = self._user_lock(user_oid)
            async with lock:
                if not self._use_transactions:
                    return await self._reserve_locked(user_oid, metadata or {}, None)

                client = self._db.client
                async with await client.start_session() as session:
                    return await session.with_transaction(
                        lambda s: self._reserve_locked(user_oid, metadata or {}, s)
                    )

    async def _reserve_locked(
        self,
        user_oid: ObjectId,
        metadata: Dict[str, Any],
        session
    ) -> Reservation:
        kwargs = self._session_kwargs(session)
        now = self._clock()

        # Touch the user document first: inside a transaction this takes its write lock
        user = await self._users.find_one_and_update(
            {"_id": user_oid},
            {"$inc": {"quota_lock": 1}},
            projection={"_id": 1},
            **kwargs
        )
        if user is None:
            raise ResourceNotFoundError("User is not registered.")

        count, oldest = await self._window_usage(user_oid, now, session)
        if count >= self.limit:
            status = self._build_status(count, oldest, now)
            logger.info(
                f"Reservation blocked: {count}/{self.limit} used in window",
                extra={"user_id": str(user_oid)}
            )
            return Reservation(**status.model_dump())

        document = {
            "user_id": user_oid,
            "created_at": now,
            "status": GenerationStatus.PENDING.value,
            "metadata": dict(metadata),
            "instance_id": self.instance_id,
            "finalized_at": None,
        }
        result = await self._generations.insert_one(document, **kwargs)
        reservation_id = str(result.inserted_id)

        used = count + 1
        status = self._build_status(used, oldest or now, now)
        logger.info(
            f"Reservation granted: {used}/{self.limit} used in window",
            extra={"user_id": str(user_oid), "reservation_id": reservation_id}
        )

        return Reservation(
            allowed=True,
            reservation_id=reservation_id,
            used_in_window=used,
            remaining=status.remaining,
            limit=self.limit,
            next_available_at=status.next_available_at,
        )

    async def finalize(
        self,
        reservation_id: str,
        status: Union[str, GenerationStatus],
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Unconditionally moves a reservation to a terminal status.

        Args:
            reservation_id: Id returned by ``reserve``
            status: ``completed`` or ``failed``
            metadata: Extra metadata fields to merge (e.g. output filename)

        Raises:
            ValueError: If ``status`` is not terminal
            ResourceNotFoundError: If the reservation does not exist
        """
        status = GenerationStatus(status)
        if not status.is_terminal:
            raise ValueError(f"Cannot finalize a reservation as {status.value}")

        fields: Dict[str, Any] = {
            "status": status.value,
            "finalized_at": self._clock(),
        }
        for key, value in (metadata or {}).items():
            fields[f"metadata.{key}"] = value

        with LogContext(reservation_id=reservation_id):
            result = await self._generations.update_one(
                {"_id": _as_object_id(reservation_id)},
                {"$set": fields}
            )
            if result.matched_count == 0:
                raise ResourceNotFoundError(f"Reservation {reservation_id} not found")

            logger.info(f"Reservation finalized as {status.value}")

    async def mark_failed_if_pending(self, reservation_id: str, reason: Optional[str] = None) -> bool:
        """
        Fails a reservation only if nothing finalized it yet.

        Returns:
            True if the record was still pending and is now failed
        """
        fields: Dict[str, Any] = {
            "status": GenerationStatus.FAILED.value,
            "finalized_at": self._clock(),
        }
        if reason:
            fields["metadata.failure_reason"] = reason

        result = await self._generations.update_one(
            {"_id": _as_object_id(reservation_id), "status": GenerationStatus.PENDING.value},
            {"$set": fields}
        )

        changed = result.modified_count > 0
        if changed:
            logger.warning(
                "Pending reservation marked as failed",
                extra={"reservation_id": reservation_id}
            )
        return changed

    async def recover_orphaned_on_startup(self) -> int:
        """
        Fails every reservation still pending when the process starts.

        Every pending record is treated as orphaned, including those created
        by other live instances; run one writer per database.

        Returns:
            Number of recovered reservations
        """
        now = self._clock()
        result = await self._generations.update_many(
            {"status": GenerationStatus.PENDING.value},
            {
                "$set": {
                    "status": GenerationStatus.FAILED.value,
                    "finalized_at": now,
                    "metadata.failure_reason": "orphaned",
                    "recovered_by": self.instance_id,
                }
            }
        )

        recovered = result.modified_count
        if recovered:
            logger.warning(f"Recovered {recovered} orphaned pending reservation(s)")
        else:
            logger.info("No orphaned reservations found")
        return recovered


# Global ledger instance
_quota_ledger: Optional[QuotaLedger] = None


def get_quota_ledger() -> QuotaLedger:
    """Get or create the global quota ledger."""
    global _quota_ledger
    if _quota_ledger is None:
        _quota_ledger = QuotaLedger(
            limit=settings.GENERATION_LIMIT,
            window=timedelta(hours=settings.GENERATION_WINDOW_HOURS),
        )
    return _quota_ledger
