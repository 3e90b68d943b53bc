"""
NFT Receipt Minter

Mints one CIP-25 receipt NFT per confirmed donation.

Minting is idempotent: the asset name is derived from the donation's receipt
number, so every attempt for the same donation targets the same asset ID. If
that asset already exists on-chain, the earlier mint is reported as success
and nothing is submitted.
"""

import logging
from dataclasses import dataclass

from pydantic import BaseModel

from edufund_api.chain.ledger_provider import LedgerProvider, MintRequest
from edufund_api.database.repositories.base import NFTRepository
from edufund_api.domain import (
    BlockchainData,
    Donation,
    NFTAttribute,
    NFTMetadata,
    NFTReceipt,
    utcnow,
)
from edufund_api.enums import NFTStatus
from edufund_api.exceptions import MalformedMetadata, MintFailure, PolicyExpired
from edufund_api.services.retry import call_provider
from edufund_api.utils.metadata import (
    MAX_ASSET_NAME_BYTES,
    MAX_STRING_BYTES,
    prepare_cip25_metadata,
    truncate_utf8,
    validate_metadata_size,
)


logger = logging.getLogger(__name__)


# ============================================================================
# Idempotency Key
# ============================================================================


@dataclass(frozen=True)
class MintIdempotencyKey:
    """
    Identity of a donation's receipt NFT.

    Example:
        >>> key = MintIdempotencyKey.for_receipt("20261019-ABCDEF012345", "ab" * 28, "EDUFUND")
        >>> key.asset_name
        'EDUFUND20261019ABCDEF012345'
    """

    policy_id: str
    asset_name: str

    @classmethod
    def for_receipt(cls, receipt_number: str, policy_id: str, prefix: str) -> "MintIdempotencyKey":
        name = truncate_utf8(f"{prefix}{receipt_number.replace('-', '')}", MAX_ASSET_NAME_BYTES)
        return cls(policy_id=policy_id, asset_name=name)

    @property
    def asset_name_hex(self) -> str:
        return self.asset_name.encode("utf-8").hex()

    @property
    def asset_id(self) -> str:
        """Policy ID followed by the hex-encoded asset name"""
        return f"{self.policy_id}{self.asset_name_hex}"


class MintResult(BaseModel):
    asset_id: str
    policy_id: str
    asset_name: str
    metadata: NFTMetadata
    tx_hash: str | None = None
    already_minted: bool = False


# ============================================================================
# Metadata
# ============================================================================


def build_receipt_metadata(
    donation: Donation,
    image_url: str,
    external_url_base: str | None = None,
    max_description_bytes: int = 256,
) -> NFTMetadata:
    """
    Build the receipt metadata for a donation.

    Name and description are truncated by UTF-8 bytes, so donor messages in
    any script stay within ledger limits.
    """
    description = f"Thank you for your generous donation of {donation.formatted_amount} ADA to support education."
    if donation.message:
        description = f"{description} Message: {donation.message}"

    external_url = None
    if external_url_base:
        external_url = f"{external_url_base.rstrip('/')}/{donation.id}"

    return NFTMetadata(
        name=truncate_utf8(f"EduFund Donation #{donation.receipt_number}", MAX_STRING_BYTES),
        description=truncate_utf8(description, max_description_bytes),
        image=image_url,
        external_url=external_url,
        attributes=[
            NFTAttribute(trait_type="Donation Amount", value=f"{donation.formatted_amount} ADA"),
            NFTAttribute(trait_type="Category", value=donation.category.value),
            NFTAttribute(trait_type="Donation Date", value=donation.created_at.date().isoformat()),
            NFTAttribute(trait_type="Receipt Number", value=donation.receipt_number),
            NFTAttribute(trait_type="Transaction Hash", value=donation.transaction_hash),
        ],
    )


# ============================================================================
# Minter
# ============================================================================


class NFTMinter:
    """Mints receipt NFTs through the ledger provider"""

    def __init__(
        self,
        ledger: LedgerProvider,
        nfts: NFTRepository,
        asset_name_prefix: str = "EDUFUND",
        metadata_label: int = 721,
        default_image_url: str = "",
        external_url_base: str | None = None,
        max_description_bytes: int = 256,
        timeout: float = 20.0,
    ):
        self.ledger = ledger
        self.nfts = nfts
        self.asset_name_prefix = asset_name_prefix
        self.metadata_label = metadata_label
        self.default_image_url = default_image_url
        self.external_url_base = external_url_base
        self.max_description_bytes = max_description_bytes
        self.timeout = timeout

    def key_for(self, donation: Donation) -> MintIdempotencyKey:
        return MintIdempotencyKey.for_receipt(
            donation.receipt_number, self.ledger.policy.policy_id, self.asset_name_prefix
        )

    async def mint(self, donation: Donation, owner_address: str | None = None, image_url: str | None = None) -> MintResult:
        """
        Mint the receipt NFT for a donation.

        Args:
            donation: Confirmed donation
            owner_address: Receiving address (defaults to the donor address)
            image_url: Receipt image (defaults to the configured image)

        Returns:
            MintResult for the donation's asset, minted now or previously

        Raises:
            PolicyExpired: Asset not on-chain yet and the policy window has passed
            MalformedMetadata: Metadata exceeds ledger limits, nothing submitted
            MintFailure: Ledger rejected the mint
            ProviderUnavailable: Provider failure or timeout; outcome unknown
        """
        owner = owner_address or donation.donor_address
        policy = self.ledger.policy
        key = self.key_for(donation)
        metadata = build_receipt_metadata(
            donation,
            image_url or self.default_image_url,
            self.external_url_base,
            self.max_description_bytes,
        )

        # An asset already on-chain is a completed mint, even if the policy window has closed since
        existing = await call_provider(self.ledger.get_asset(key.asset_id), self.timeout)
        if existing is not None:
            logger.info(f"Asset {key.asset_id} already minted for donation {donation.id}, skipping submission")
            await self._record(key, donation, owner, metadata, NFTStatus.MINTED, existing.initial_mint_tx_hash)
            return MintResult(
                asset_id=key.asset_id,
                policy_id=key.policy_id,
                asset_name=key.asset_name,
                metadata=metadata,
                tx_hash=existing.initial_mint_tx_hash,
                already_minted=True,
            )

        current_slot = await call_provider(self.ledger.current_slot(), self.timeout)
        if policy.is_expired(current_slot):
            raise PolicyExpired(policy.expiry_slot, current_slot)

        if not self.ledger.verify_address(owner):
            raise MintFailure(f"Invalid owner address for network: {owner}")

        onchain_metadata = prepare_cip25_metadata(self.metadata_label, key.policy_id, key.asset_name, metadata)
        is_valid, error = validate_metadata_size(onchain_metadata)
        if not is_valid:
            raise MalformedMetadata(error)

        await self._record(key, donation, owner, metadata, NFTStatus.MINTING)

        request = MintRequest(
            policy=policy,
            asset_name=key.asset_name,
            metadata=onchain_metadata,
            owner_address=owner,
            current_slot=current_slot,
        )
        try:
            tx_hash = await call_provider(self.ledger.submit_mint_transaction(request), self.timeout)
        except MintFailure as e:
            await self.nfts.update_status(key.asset_id, NFTStatus.FAILED, error_message=str(e))
            raise

        await self.nfts.update_status(key.asset_id, NFTStatus.MINTED, tx_hash=tx_hash, minted_at=utcnow())
        logger.info(f"Minted receipt {key.asset_id} for donation {donation.id} in tx {tx_hash}")

        return MintResult(
            asset_id=key.asset_id,
            policy_id=key.policy_id,
            asset_name=key.asset_name,
            metadata=metadata,
            tx_hash=tx_hash,
        )

    async def _record(
        self,
        key: MintIdempotencyKey,
        donation: Donation,
        owner: str,
        metadata: NFTMetadata,
        status: NFTStatus,
        tx_hash: str | None = None,
    ) -> NFTReceipt:
        receipt = NFTReceipt(
            asset_id=key.asset_id,
            policy_id=key.policy_id,
            asset_name=key.asset_name,
            donation_id=donation.id,
            owner=owner,
            metadata=metadata,
            blockchain_data=BlockchainData(
                tx_hash=tx_hash,
                minted_at=utcnow() if status == NFTStatus.MINTED else None,
            ),
            status=status,
        )
        return await self.nfts.upsert(receipt)
