"""
NFT Repository

MongoDB access for receipt NFT records, keyed by asset ID.
"""

from datetime import datetime

from pymongo import DESCENDING, ReturnDocument

from edufund_api.database.models import NFTMongo
from edufund_api.database.repositories.base import NFTRepository
from edufund_api.domain import NFTReceipt, utcnow
from edufund_api.enums import NFTStatus


def nft_from_raw(raw: dict) -> NFTReceipt:
    raw.pop("_id", None)
    return NFTReceipt.model_validate(raw)


class MongoNFTRepository(NFTRepository):
    """NFT repository backed by the ``nfts`` collection"""

    def __init__(self, database):
        self.database = database

    def _collection(self):
        return self.database.get_collection(NFTMongo.Settings.name)

    async def upsert(self, receipt: NFTReceipt) -> NFTReceipt:
        data = receipt.model_dump(exclude={"created_at"})
        data["status"] = receipt.status.value
        data["updated_at"] = utcnow()

        raw = await self._collection().find_one_and_update(
            {"asset_id": receipt.asset_id},
            {"$set": data, "$setOnInsert": {"created_at": receipt.created_at}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return nft_from_raw(raw)

    async def get_by_asset_id(self, asset_id: str) -> NFTReceipt | None:
        raw = await self._collection().find_one({"asset_id": asset_id})
        return nft_from_raw(raw) if raw else None

    async def get_by_donation_id(self, donation_id: str) -> NFTReceipt | None:
        raw = await self._collection().find_one({"donation_id": donation_id})
        return nft_from_raw(raw) if raw else None

    async def list_by_owner(self, owner: str, limit: int = 100) -> list[NFTReceipt]:
        cursor = self._collection().find({"owner": owner}).sort("created_at", DESCENDING).limit(limit)
        return [nft_from_raw(raw) for raw in await cursor.to_list(length=limit)]

    async def update_status(
        self,
        asset_id: str,
        status: NFTStatus,
        tx_hash: str | None = None,
        error_message: str | None = None,
        minted_at: datetime | None = None,
    ) -> NFTReceipt | None:
        changes = {"status": status.value, "error_message": error_message, "updated_at": utcnow()}
        if tx_hash is not None:
            changes["blockchain_data.tx_hash"] = tx_hash
        if minted_at is not None:
            changes["blockchain_data.minted_at"] = minted_at

        raw = await self._collection().find_one_and_update(
            {"asset_id": asset_id}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        return nft_from_raw(raw) if raw else None
