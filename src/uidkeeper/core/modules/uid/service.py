import math
from typing import Any

import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from uidkeeper.core.core import Service
from uidkeeper.core.db import store_errors
from uidkeeper.core.modules.uid.models import SECONDS_PER_HOUR, UidRecord, UidStatistics, UidView
from uidkeeper.errors import ConflictError, ValidationError
from uidkeeper.utils import unix_now

logger = structlog.get_logger(__name__)


def normalize_uid(uid: str) -> str:
    """Strip surrounding whitespace, rejecting empty identifiers."""
    uid = uid.strip() if isinstance(uid, str) else ""
    if not uid:
        raise ValidationError("UID is required")
    return uid


def validate_hours(hours: float) -> float:
    """Hours may be fractional but must be a finite number of at least 1."""
    if isinstance(hours, bool) or not isinstance(hours, int | float) or not math.isfinite(hours):
        raise ValidationError("Hours must be a number")
    if hours < 1:
        raise ValidationError("Hours must be at least 1")
    return hours


class UidService(Service):
    """UID ledger: the only owner of uid → expiry state.

    Every mutation is a single store call (upsert, delete, delete_many), so a
    cancelled request never leaves partial state and concurrent extensions of
    the same uid resolve as last-write-wins. Read operations take ``now`` once
    per call and derive every status from it.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("uids")

    async def on_start(self) -> None:
        await self._collection.create_index([("uid", 1)], unique=True)
        await self._collection.create_index([("expiry", 1)])

    async def add_uid(self, uid: str, hours: float) -> UidView:
        """Set the expiry of ``uid`` to now + hours, creating it if missing."""
        uid = normalize_uid(uid)
        hours = validate_hours(hours)
        now = unix_now()
        record = UidRecord(uid=uid, expiry=now + int(hours * SECONDS_PER_HOUR))
        async with store_errors("add_uid"):
            await self._collection.update_one({"uid": uid}, {"$set": record.model_dump()}, upsert=True)
        logger.info("uid_added", uid=uid, hours=hours, expiry=record.expiry)
        return UidView.from_record(record, now)

    async def create_uid(self, uid: str, hours: float) -> UidView:
        """Insert ``uid`` only if it does not exist yet.

        Existence check and insert are one atomic upsert with ``$setOnInsert``,
        so two concurrent creates cannot both succeed.
        """
        uid = normalize_uid(uid)
        hours = validate_hours(hours)
        now = unix_now()
        record = UidRecord(uid=uid, expiry=now + int(hours * SECONDS_PER_HOUR))
        async with store_errors("create_uid"):
            try:
                result = await self._collection.update_one({"uid": uid}, {"$setOnInsert": record.model_dump()}, upsert=True)
            except DuplicateKeyError as e:
                # Lost a race with a concurrent upsert of the same uid
                raise ConflictError(f"UID '{uid}' already exists") from e
        if result.upserted_id is None:
            raise ConflictError(f"UID '{uid}' already exists")
        logger.info("uid_created", uid=uid, hours=hours, expiry=record.expiry)
        return UidView.from_record(record, now)

    async def remove_uid(self, uid: str) -> bool:
        """Delete ``uid``. Returns False when there was nothing to delete."""
        uid = normalize_uid(uid)
        async with store_errors("remove_uid"):
            result = await self._collection.delete_one({"uid": uid})
        removed = result.deleted_count > 0
        logger.info("uid_removed", uid=uid, removed=removed)
        return removed

    async def get_uid(self, uid: str) -> UidView | None:
        uid = normalize_uid(uid)
        async with store_errors("get_uid"):
            doc = await self._collection.find_one({"uid": uid})
        if doc is None:
            return None
        return UidView.from_record(UidRecord.model_validate(doc), unix_now())

    async def list_all_uids(self) -> list[UidView]:
        """Snapshot of every uid. Order is not meaningful."""
        return await self._list_views({})

    async def list_active_uids(self) -> list[UidView]:
        now = unix_now()
        return await self._list_views({"expiry": {"$gt": now}}, now)

    async def list_expired_uids(self) -> list[UidView]:
        now = unix_now()
        return await self._list_views({"expiry": {"$lte": now}}, now)

    async def cleanup_expired_uids(self) -> int:
        """Delete every uid whose expiry is at or before the cutoff taken at call start."""
        cutoff = unix_now()
        async with store_errors("cleanup_expired_uids"):
            result = await self._collection.delete_many({"expiry": {"$lte": cutoff}})
        logger.info("expired_uids_cleaned", deleted_count=result.deleted_count, cutoff=cutoff)
        return int(result.deleted_count)

    async def clear_all_uids(self) -> int:
        """Delete the whole whitelist."""
        async with store_errors("clear_all_uids"):
            result = await self._collection.delete_many({})
        logger.warning("all_uids_cleared", deleted_count=result.deleted_count)
        return int(result.deleted_count)

    async def get_statistics(self) -> UidStatistics:
        """Count total/active/expired from one scan so the parts always add up."""
        now = unix_now()
        async with store_errors("get_statistics"):
            expiries = [int(doc["expiry"]) async for doc in self._collection.find({}, {"expiry": 1})]
        return UidStatistics.from_expiries(expiries, now)

    async def _list_views(self, query: dict[str, Any], now: int | None = None) -> list[UidView]:
        if now is None:
            now = unix_now()
        async with store_errors("list_uids"):
            records = [UidRecord.model_validate(doc) async for doc in self._collection.find(query)]
        return [UidView.from_record(record, now) for record in records]
