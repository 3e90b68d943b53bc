"""
Receipt Service

Read access to receipt NFTs and on-chain verification of their mint status.
"""

import logging
from dataclasses import dataclass

from edufund_api.chain.ledger_provider import LedgerAsset, LedgerProvider
from edufund_api.database.repositories.base import NFTRepository
from edufund_api.domain import NFTReceipt, utcnow
from edufund_api.enums import NFTStatus
from edufund_api.exceptions import NotFoundError
from edufund_api.services.retry import call_provider


logger = logging.getLogger(__name__)


@dataclass
class ReceiptVerification:
    receipt: NFTReceipt
    on_chain: bool
    asset: LedgerAsset | None = None


class ReceiptService:
    """Receipt NFT lookups"""

    def __init__(self, ledger: LedgerProvider, nfts: NFTRepository, timeout: float = 20.0):
        self.ledger = ledger
        self.nfts = nfts
        self.timeout = timeout

    async def get_by_asset(self, asset_id: str) -> NFTReceipt:
        receipt = await self.nfts.get_by_asset_id(asset_id)
        if receipt is None:
            raise NotFoundError(f"NFT not found: {asset_id}")
        return receipt

    async def get_by_donation(self, donation_id: str) -> NFTReceipt:
        receipt = await self.nfts.get_by_donation_id(donation_id)
        if receipt is None:
            raise NotFoundError(f"No NFT receipt for donation {donation_id}")
        return receipt

    async def list_by_owner(self, owner_address: str, limit: int = 100) -> list[NFTReceipt]:
        return await self.nfts.list_by_owner(owner_address, max(1, min(limit, 100)))

    async def verify(self, asset_id: str) -> ReceiptVerification:
        """
        Check a receipt against the chain.

        A record still in ``minting`` or ``failed`` whose asset exists on-chain
        is promoted to ``minted`` with the initial mint transaction. A record
        whose asset is not on-chain is returned unchanged.

        Raises:
            NotFoundError: No receipt record for ``asset_id``
            ProviderUnavailable: Ledger provider failure or timeout
        """
        receipt = await self.get_by_asset(asset_id)

        asset = await call_provider(self.ledger.get_asset(asset_id), self.timeout)
        if asset is None:
            return ReceiptVerification(receipt=receipt, on_chain=False)

        if receipt.status != NFTStatus.MINTED:
            updated = await self.nfts.update_status(
                asset_id,
                NFTStatus.MINTED,
                tx_hash=asset.initial_mint_tx_hash,
                minted_at=utcnow(),
            )
            logger.info(f"Receipt {asset_id} found on-chain, {receipt.status.value} -> minted")
            receipt = updated or receipt

        return ReceiptVerification(receipt=receipt, on_chain=True, asset=asset)
