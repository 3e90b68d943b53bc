"""
Domain Models

Pydantic models the services operate on. Database documents in
``edufund_api.database.models`` mirror these and repositories convert between
the two, so services and tests never need an initialized Beanie collection.
"""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from edufund_api.enums import (
    DonationCategory,
    DonationStatus,
    MintQueueReason,
    NFTStatus,
    ProjectStatus,
)


LOVELACE_PER_ADA = 1_000_000


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in MongoDB"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


def make_receipt_number(transaction_hash: str, created_at: datetime) -> str:
    """
    Derive the donation receipt number.

    Deterministic in the payment transaction and creation date, so the same
    donation always maps to the same receipt and therefore the same NFT asset.

    Example:
        >>> make_receipt_number("ab" * 32, datetime(2026, 10, 19))
        '20261019-ABABABABABAB'
    """
    return f"{created_at:%Y%m%d}-{transaction_hash[:12].upper()}"


# ============================================================================
# NFT Metadata
# ============================================================================


class NFTAttribute(BaseModel):
    trait_type: str
    value: str


class NFTMetadata(BaseModel):
    """Receipt metadata as stored off-chain (already truncated to ledger limits)"""

    name: str
    description: str
    image: str
    external_url: str | None = None
    attributes: list[NFTAttribute] = Field(default_factory=list)


class BlockchainData(BaseModel):
    tx_hash: str | None = None
    block_number: int | None = None
    confirmations: int = 0
    minted_at: datetime | None = None


# ============================================================================
# Donation
# ============================================================================


class Donation(BaseModel):
    """A donor payment towards a project and, once minted, its NFT receipt"""

    id: str = Field(default_factory=new_id)
    donor_id: str
    donor_address: str
    project_id: str
    amount_lovelace: int
    transaction_hash: str
    receipt_number: str = ""
    status: DonationStatus = DonationStatus.PENDING
    category: DonationCategory = DonationCategory.GENERAL
    message: str | None = None

    # Confirmation
    block_number: int | None = None
    failure_reason: str | None = None

    # NFT receipt
    nft_asset_id: str | None = None
    nft_policy_id: str | None = None
    nft_metadata: NFTMetadata | None = None

    # Mint bookkeeping
    mint_attempts: int = 0
    mint_claimed_at: datetime | None = None
    last_mint_error: str | None = None

    # Project credit bookkeeping
    funding_applied: bool = False
    funding_claimed_at: datetime | None = None

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    confirmed_at: datetime | None = None
    nft_minted_at: datetime | None = None

    @property
    def amount_ada(self) -> float:
        return self.amount_lovelace / LOVELACE_PER_ADA

    @property
    def formatted_amount(self) -> str:
        """Amount in ADA without trailing zeros, e.g. ``2`` or ``2.5``"""
        whole, fraction = divmod(self.amount_lovelace, LOVELACE_PER_ADA)
        if not fraction:
            return str(whole)
        return f"{whole}.{fraction:06d}".rstrip("0")


# ============================================================================
# Project
# ============================================================================


class Project(BaseModel):
    """Funding view of a student research project"""

    id: str = Field(default_factory=new_id)
    title: str = ""
    category: str = "Other"
    funding_goal_lovelace: int
    current_funding_lovelace: int = 0
    backers_count: int = 0
    deadline: datetime
    status: ProjectStatus = ProjectStatus.DRAFT
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def funding_progress(self) -> float:
        """Percentage of the goal reached, capped at 100"""
        if self.funding_goal_lovelace == 0:
            return 0.0
        return min(self.current_funding_lovelace / self.funding_goal_lovelace * 100, 100.0)


# ============================================================================
# NFT Receipt
# ============================================================================


class NFTReceipt(BaseModel):
    """Off-chain record of a receipt NFT, one per minted donation"""

    asset_id: str
    policy_id: str
    asset_name: str
    donation_id: str
    owner: str
    metadata: NFTMetadata
    blockchain_data: BlockchainData = Field(default_factory=BlockchainData)
    status: NFTStatus = NFTStatus.MINTING
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Mint Queue
# ============================================================================


class MintQueueEntry(BaseModel):
    """A confirmed donation whose receipt needs operator attention"""

    donation_id: str
    reason: MintQueueReason
    attempts: int
    last_error: str | None = None
    enqueued_at: datetime = Field(default_factory=utcnow)
    resolved_at: datetime | None = None


class LeaderboardEntry(BaseModel):
    donor_id: str
    donor_address: str | None = None
    total_amount_lovelace: int
    donation_count: int

    @property
    def total_amount_ada(self) -> float:
        return self.total_amount_lovelace / LOVELACE_PER_ADA
