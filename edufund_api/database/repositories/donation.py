"""
Donation Repository

MongoDB access for donations. Inserts go through the Beanie document so the
schema is validated; every status change is a single ``find_one_and_update``
whose filter includes the expected current state.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from edufund_api.database.models import DonationMongo
from edufund_api.database.repositories.base import DonationRepository
from edufund_api.domain import Donation, LeaderboardEntry
from edufund_api.enums import DonationStatus
from edufund_api.exceptions import ConflictError


def to_mongo_value(value: Any) -> Any:
    """Convert domain values (enums, nested models) to MongoDB-native values"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value


def donation_from_raw(raw: dict) -> Donation:
    raw["id"] = raw.pop("_id")
    return Donation.model_validate(raw)


class MongoDonationRepository(DonationRepository):
    """Donation repository backed by the ``donations`` collection"""

    def __init__(self, database):
        self.database = database

    def _collection(self):
        return self.database.get_collection(DonationMongo.Settings.name)

    async def insert(self, donation: Donation) -> Donation:
        data = {key: to_mongo_value(value) for key, value in donation.model_dump().items()}
        try:
            await DonationMongo(**data).insert()
        except DuplicateKeyError as e:
            raise ConflictError(f"Donation already recorded for transaction {donation.transaction_hash}") from e
        return donation

    async def get(self, donation_id: str) -> Donation | None:
        raw = await self._collection().find_one({"_id": donation_id})
        return donation_from_raw(raw) if raw else None

    async def get_by_transaction_hash(self, transaction_hash: str) -> Donation | None:
        raw = await self._collection().find_one({"transaction_hash": transaction_hash.lower()})
        return donation_from_raw(raw) if raw else None

    async def _update(self, query: dict, update: dict) -> Donation | None:
        raw = await self._collection().find_one_and_update(query, update, return_document=ReturnDocument.AFTER)
        return donation_from_raw(raw) if raw else None

    async def transition(
        self, donation_id: str, from_status: DonationStatus, to_status: DonationStatus, **fields
    ) -> Donation | None:
        changes = {key: to_mongo_value(value) for key, value in fields.items()}
        changes["status"] = to_status.value
        return await self._update({"_id": donation_id, "status": from_status.value}, {"$set": changes})

    async def claim_for_mint(self, donation_id: str, now: datetime, stale_before: datetime) -> Donation | None:
        return await self._update(
            {
                "_id": donation_id,
                "status": DonationStatus.CONFIRMED.value,
                "$or": [{"mint_claimed_at": None}, {"mint_claimed_at": {"$lt": stale_before}}],
            },
            {"$set": {"mint_claimed_at": now, "updated_at": now}, "$inc": {"mint_attempts": 1}},
        )

    async def release_mint_claim(self, donation_id: str, error: str | None) -> Donation | None:
        return await self._update(
            {"_id": donation_id},
            {"$set": {"mint_claimed_at": None, "last_mint_error": error}},
        )

    async def claim_funding(self, donation_id: str, now: datetime, stale_before: datetime) -> Donation | None:
        return await self._update(
            {
                "_id": donation_id,
                "funding_applied": False,
                "$or": [{"funding_claimed_at": None}, {"funding_claimed_at": {"$lt": stale_before}}],
            },
            {"$set": {"funding_claimed_at": now}},
        )

    async def release_funding_claim(self, donation_id: str) -> Donation | None:
        return await self._update(
            {"_id": donation_id, "funding_applied": False},
            {"$set": {"funding_claimed_at": None}},
        )

    async def mark_funding_applied(self, donation_id: str) -> Donation | None:
        return await self._update(
            {"_id": donation_id, "funding_applied": False},
            {"$set": {"funding_applied": True, "funding_claimed_at": None}},
        )

    async def list_mintable(self, max_attempts: int, stale_before: datetime, limit: int = 100) -> list[Donation]:
        cursor = (
            self._collection()
            .find(
                {
                    "status": DonationStatus.CONFIRMED.value,
                    "mint_attempts": {"$lt": max_attempts},
                    "confirmed_at": {"$lt": stale_before},
                    "$or": [{"mint_claimed_at": None}, {"mint_claimed_at": {"$lt": stale_before}}],
                }
            )
            .sort("confirmed_at", ASCENDING)
            .limit(limit)
        )
        return [donation_from_raw(raw) for raw in await cursor.to_list(length=limit)]

    async def list_funding_unapplied(self, confirmed_before: datetime, limit: int = 100) -> list[Donation]:
        cursor = (
            self._collection()
            .find(
                {
                    "status": {"$in": [DonationStatus.CONFIRMED.value, DonationStatus.NFT_MINTED.value]},
                    "funding_applied": False,
                    "confirmed_at": {"$lt": confirmed_before},
                }
            )
            .sort("confirmed_at", ASCENDING)
            .limit(limit)
        )
        return [donation_from_raw(raw) for raw in await cursor.to_list(length=limit)]

    async def list_by_project(self, project_id: str, statuses: list[DonationStatus], limit: int = 100) -> list[Donation]:
        cursor = (
            self._collection()
            .find({"project_id": project_id, "status": {"$in": [s.value for s in statuses]}})
            .sort("created_at", DESCENDING)
            .limit(limit)
        )
        return [donation_from_raw(raw) for raw in await cursor.to_list(length=limit)]

    async def list_by_donor_address(self, donor_address: str, skip: int = 0, limit: int = 20) -> list[Donation]:
        cursor = (
            self._collection()
            .find({"donor_address": donor_address})
            .sort("created_at", DESCENDING)
            .skip(skip)
            .limit(limit)
        )
        return [donation_from_raw(raw) for raw in await cursor.to_list(length=limit)]

    async def leaderboard(self, statuses: list[DonationStatus], limit: int = 10) -> list[LeaderboardEntry]:
        pipeline = [
            {"$match": {"status": {"$in": [s.value for s in statuses]}}},
            {
                "$group": {
                    "_id": "$donor_id",
                    "donor_address": {"$first": "$donor_address"},
                    "total_amount_lovelace": {"$sum": "$amount_lovelace"},
                    "donation_count": {"$sum": 1},
                }
            },
            {"$sort": {"total_amount_lovelace": -1, "_id": 1}},
            {"$limit": limit},
        ]
        rows = await self._collection().aggregate(pipeline).to_list(length=limit)
        return [
            LeaderboardEntry(
                donor_id=row["_id"],
                donor_address=row.get("donor_address"),
                total_amount_lovelace=row["total_amount_lovelace"],
                donation_count=row["donation_count"],
            )
            for row in rows
        ]
