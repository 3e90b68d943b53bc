"""
Mint Queue Repository

MongoDB access for the operator-visible queue of stuck receipt mints.
"""

from datetime import datetime

from pymongo import ASCENDING, ReturnDocument

from edufund_api.database.models import MintQueueMongo
from edufund_api.database.repositories.base import MintQueueRepository
from edufund_api.domain import MintQueueEntry


def entry_from_raw(raw: dict) -> MintQueueEntry:
    raw.pop("_id", None)
    return MintQueueEntry.model_validate(raw)


class MongoMintQueueRepository(MintQueueRepository):
    """Mint queue repository backed by the ``mint_queue`` collection"""

    def __init__(self, database):
        self.database = database

    def _collection(self):
        return self.database.get_collection(MintQueueMongo.Settings.name)

    async def enqueue(self, entry: MintQueueEntry) -> MintQueueEntry:
        raw = await self._collection().find_one_and_update(
            {"donation_id": entry.donation_id},
            {
                "$set": {
                    "reason": entry.reason.value,
                    "attempts": entry.attempts,
                    "last_error": entry.last_error,
                    "resolved_at": None,
                },
                "$setOnInsert": {"enqueued_at": entry.enqueued_at},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return entry_from_raw(raw)

    async def get(self, donation_id: str) -> MintQueueEntry | None:
        raw = await self._collection().find_one({"donation_id": donation_id})
        return entry_from_raw(raw) if raw else None

    async def resolve(self, donation_id: str, now: datetime) -> MintQueueEntry | None:
        raw = await self._collection().find_one_and_update(
            {"donation_id": donation_id, "resolved_at": None},
            {"$set": {"resolved_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        return entry_from_raw(raw) if raw else None

    async def list_unresolved(self, limit: int = 100) -> list[MintQueueEntry]:
        cursor = self._collection().find({"resolved_at": None}).sort("enqueued_at", ASCENDING).limit(limit)
        return [entry_from_raw(raw) for raw in await cursor.to_list(length=limit)]
