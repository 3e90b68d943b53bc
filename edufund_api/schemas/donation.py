"""
Donation Schemas

Pydantic models for donation-related API requests and responses.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from edufund_api.domain import Donation, LeaderboardEntry, MintQueueEntry, NFTMetadata, NFTReceipt
from edufund_api.enums import (
    DonationCategory,
    DonationStatus,
    MintQueueReason,
    NFTStatus,
    VerificationStatus,
)


TX_HASH_REGEX = r"^[0-9a-fA-F]{64}$"


# ============================================================================
# Request Schemas
# ============================================================================


class DonationCreateRequest(BaseModel):
    """Request to record a donation after the donor has paid on-chain"""

    donor: str = Field(min_length=1, description="Donor user ID")
    donor_address: str = Field(min_length=1, description="Donor's Cardano address (receives the NFT receipt)")
    amount: int = Field(gt=0, description="Donated amount in lovelace (minimum 1 ADA = 1,000,000 lovelace)")
    transaction_hash: str = Field(pattern=TX_HASH_REGEX, description="Payment transaction hash (64 hex characters)")
    project: str = Field(min_length=1, description="Project ID")
    message: str | None = Field(None, max_length=500, description="Optional message to the student")
    category: DonationCategory = Field(DonationCategory.GENERAL, description="Donation category")


class DonationConfirmRequest(BaseModel):
    """Request to verify a pending donation on-chain"""

    tx_hash: str = Field(pattern=TX_HASH_REGEX, description="Payment transaction hash")


class MintRetryRequest(BaseModel):
    """Operator request to retry a receipt mint"""

    image_url: str | None = Field(None, description="Override the receipt image")


# ============================================================================
# Response Schemas
# ============================================================================


class DonationResponse(BaseModel):
    """Donation as returned by the API"""

    id: str
    donor_id: str
    donor_address: str
    project_id: str
    amount_lovelace: int
    amount_ada: float
    transaction_hash: str
    receipt_number: str
    status: DonationStatus
    category: DonationCategory
    message: str | None = None
    block_number: int | None = None
    failure_reason: str | None = None
    nft_asset_id: str | None = None
    nft_policy_id: str | None = None
    nft_metadata: NFTMetadata | None = None
    mint_attempts: int = 0
    last_mint_error: str | None = None
    created_at: datetime
    confirmed_at: datetime | None = None
    nft_minted_at: datetime | None = None

    @classmethod
    def from_domain(cls, donation: Donation) -> "DonationResponse":
        return cls(amount_ada=donation.amount_ada, **donation.model_dump())


class NFTResponse(BaseModel):
    """Public receipt NFT info"""

    asset_id: str
    policy_id: str
    asset_name: str
    owner: str
    status: NFTStatus
    metadata: NFTMetadata
    tx_hash: str | None = Field(None, description="Mint transaction hash")
    minted_at: datetime | None = None

    @classmethod
    def from_domain(cls, receipt: NFTReceipt) -> "NFTResponse":
        return cls(
            asset_id=receipt.asset_id,
            policy_id=receipt.policy_id,
            asset_name=receipt.asset_name,
            owner=receipt.owner,
            status=receipt.status,
            metadata=receipt.metadata,
            tx_hash=receipt.blockchain_data.tx_hash,
            minted_at=receipt.blockchain_data.minted_at,
        )


class VerificationResponse(BaseModel):
    verified: bool
    status: VerificationStatus
    message: str
    block_height: int | None = None
    confirmations: int | None = None


class DonationEnvelope(BaseModel):
    """Donation with its receipt and any non-fatal warning"""

    success: bool = True
    donation: DonationResponse
    nft: NFTResponse | None = None
    warning: str | None = None
    verification: VerificationResponse | None = None


class LeaderboardEntryResponse(BaseModel):
    rank: int
    donor_id: str
    donor_address: str | None = None
    total_amount_lovelace: int
    total_amount_ada: float
    donation_count: int

    @classmethod
    def from_domain(cls, rank: int, entry: LeaderboardEntry) -> "LeaderboardEntryResponse":
        return cls(rank=rank, total_amount_ada=entry.total_amount_ada, **entry.model_dump())


class LeaderboardResponse(BaseModel):
    leaderboard: list[LeaderboardEntryResponse]


class ProjectDonationsResponse(BaseModel):
    project_id: str
    donations: list[DonationResponse]
    count: int


class MintQueueEntryResponse(BaseModel):
    donation_id: str
    reason: MintQueueReason
    attempts: int
    last_error: str | None = None
    enqueued_at: datetime

    @classmethod
    def from_domain(cls, entry: MintQueueEntry) -> "MintQueueEntryResponse":
        return cls(**entry.model_dump(exclude={"resolved_at"}))


class StuckMintsResponse(BaseModel):
    entries: list[MintQueueEntryResponse]
    count: int


class DonorDonationsResponse(BaseModel):
    wallet_address: str
    donations: list[DonationResponse]
    page: int
    limit: int
    count: int
