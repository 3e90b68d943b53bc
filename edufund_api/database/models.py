"""
Database Models for EduFund Donations

MongoDB/Beanie Document models. Enum fields are stored as plain strings and
nested metadata as native MongoDB objects; repositories convert documents to
and from the domain models in ``edufund_api.domain``.
"""

from datetime import datetime, timezone
from typing import Annotated

from beanie import Document, Indexed
from pydantic import Field as BeanieField
from pymongo import ASCENDING, DESCENDING, IndexModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# Donations
# ============================================================================


class DonationMongo(Document):
    """
    Donation records

    Lifecycle: PENDING → CONFIRMED → NFT_MINTED, or PENDING → FAILED.
    ``transaction_hash`` is unique: one donation per on-chain payment.
    """

    id: str  # Donation ID (uuid hex) - MongoDB _id
    donor_id: Annotated[str, Indexed()]
    donor_address: str
    project_id: Annotated[str, Indexed()]
    amount_lovelace: int
    transaction_hash: Annotated[str, Indexed(unique=True)]  # 64-char hex, lower-case
    receipt_number: str
    status: str = "pending"  # DonationStatus as string
    category: str = "general"  # DonationCategory as string
    message: str | None = None

    # Confirmation
    block_number: int | None = None
    failure_reason: str | None = None

    # NFT receipt
    nft_asset_id: str | None = None
    nft_policy_id: str | None = None
    nft_metadata: dict | None = None

    # Mint bookkeeping
    mint_attempts: int = 0
    mint_claimed_at: datetime | None = None
    last_mint_error: str | None = None

    # Project credit bookkeeping
    funding_applied: bool = False
    funding_claimed_at: datetime | None = None

    # Timestamps
    created_at: datetime = BeanieField(default_factory=_utcnow)
    updated_at: datetime = BeanieField(default_factory=_utcnow)
    confirmed_at: datetime | None = None
    nft_minted_at: datetime | None = None

    class Settings:
        name = "donations"
        indexes = [
            IndexModel([("transaction_hash", ASCENDING)], unique=True),
            IndexModel([("project_id", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("status", ASCENDING), ("mint_attempts", ASCENDING)]),
            IndexModel([("status", ASCENDING), ("funding_applied", ASCENDING)]),
            IndexModel([("donor_id", ASCENDING), ("status", ASCENDING)]),
            IndexModel([("donor_address", ASCENDING), ("created_at", DESCENDING)]),
        ]


# ============================================================================
# Projects
# ============================================================================


class ProjectMongo(Document):
    """
    Funding view of a research project

    ``current_funding_lovelace`` never exceeds ``funding_goal_lovelace``; the
    funding update clamps it with ``$min``.
    """

    id: str  # Project ID - MongoDB _id
    title: str = ""
    category: str = "Other"
    funding_goal_lovelace: int
    current_funding_lovelace: int = 0
    backers_count: int = 0
    deadline: datetime
    status: Annotated[str, Indexed()] = "draft"  # ProjectStatus as string

    created_at: datetime = BeanieField(default_factory=_utcnow)
    updated_at: datetime = BeanieField(default_factory=_utcnow)

    class Settings:
        name = "projects"


# ============================================================================
# NFT Receipts
# ============================================================================


class NFTMongo(Document):
    """
    Receipt NFT records, one per minted donation

    ``asset_id`` is policy ID + hex asset name and is unique.
    """

    asset_id: Annotated[str, Indexed(unique=True)]
    policy_id: str
    asset_name: str
    donation_id: Annotated[str, Indexed()]
    owner: Annotated[str, Indexed()]

    metadata: dict = {}
    blockchain_data: dict = {}

    status: str = "minting"  # NFTStatus as string
    error_message: str | None = None

    created_at: datetime = BeanieField(default_factory=_utcnow)
    updated_at: datetime = BeanieField(default_factory=_utcnow)

    class Settings:
        name = "nfts"
        indexes = [
            IndexModel([("owner", ASCENDING), ("created_at", DESCENDING)]),
        ]


# ============================================================================
# Mint Queue
# ============================================================================


class MintQueueMongo(Document):
    """
    Confirmed donations whose receipt could not be minted automatically

    Entries stay until an operator retry succeeds (``resolved_at`` set).
    """

    donation_id: Annotated[str, Indexed(unique=True)]
    reason: str  # MintQueueReason as string
    attempts: int = 0
    last_error: str | None = None
    enqueued_at: datetime = BeanieField(default_factory=_utcnow)
    resolved_at: datetime | None = None

    class Settings:
        name = "mint_queue"
        indexes = [
            IndexModel([("resolved_at", ASCENDING), ("enqueued_at", ASCENDING)]),
        ]


DOCUMENT_MODELS = [DonationMongo, ProjectMongo, NFTMongo, MintQueueMongo]
