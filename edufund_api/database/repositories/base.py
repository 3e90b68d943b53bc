"""
Repository Contracts

Storage interfaces the services depend on. Every state change is expressed as
a conditional update that succeeds only if the stored document still matches
the expected state, so concurrent callers can never both win the same
transition. Methods return None when the condition did not match.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from edufund_api.domain import (
    Donation,
    LeaderboardEntry,
    MintQueueEntry,
    NFTReceipt,
    Project,
)
from edufund_api.enums import DonationStatus, NFTStatus


class DonationRepository(ABC):
    """Donation storage"""

    @abstractmethod
    async def insert(self, donation: Donation) -> Donation:
        """
        Insert a new donation.

        Raises:
            ConflictError: A donation with the same transaction hash exists
        """

    @abstractmethod
    async def get(self, donation_id: str) -> Donation | None:
        pass

    @abstractmethod
    async def get_by_transaction_hash(self, transaction_hash: str) -> Donation | None:
        pass

    @abstractmethod
    async def transition(
        self, donation_id: str, from_status: DonationStatus, to_status: DonationStatus, **fields
    ) -> Donation | None:
        """Move ``from_status`` to ``to_status`` and set ``fields`` in one conditional update"""

    @abstractmethod
    async def claim_for_mint(self, donation_id: str, now: datetime, stale_before: datetime) -> Donation | None:
        """
        Claim a confirmed donation for a mint attempt.

        Matches only when the donation is confirmed and has no claim newer than
        ``stale_before``. Sets ``mint_claimed_at`` and increments ``mint_attempts``.
        """

    @abstractmethod
    async def release_mint_claim(self, donation_id: str, error: str | None) -> Donation | None:
        """Clear the mint claim and record the last mint error"""

    @abstractmethod
    async def claim_funding(self, donation_id: str, now: datetime, stale_before: datetime) -> Donation | None:
        """
        Claim an uncredited donation before crediting its project.

        Matches only when ``funding_applied`` is False and there is no funding
        claim newer than ``stale_before``. Sets ``funding_claimed_at``.
        """

    @abstractmethod
    async def release_funding_claim(self, donation_id: str) -> Donation | None:
        pass

    @abstractmethod
    async def mark_funding_applied(self, donation_id: str) -> Donation | None:
        """Flip ``funding_applied`` from False to True and clear the funding claim"""

    @abstractmethod
    async def list_mintable(self, max_attempts: int, stale_before: datetime, limit: int = 100) -> list[Donation]:
        """Donations confirmed before ``stale_before``, below the attempt cap, with no live claim"""

    @abstractmethod
    async def list_funding_unapplied(self, confirmed_before: datetime, limit: int = 100) -> list[Donation]:
        """Confirmed or minted donations, confirmed before ``confirmed_before``, not yet credited"""

    @abstractmethod
    async def list_by_project(self, project_id: str, statuses: list[DonationStatus], limit: int = 100) -> list[Donation]:
        """Most recent first"""

    @abstractmethod
    async def list_by_donor_address(self, donor_address: str, skip: int = 0, limit: int = 20) -> list[Donation]:
        """Every donation paid from ``donor_address``, most recent first"""

    @abstractmethod
    async def leaderboard(self, statuses: list[DonationStatus], limit: int = 10) -> list[LeaderboardEntry]:
        """Donors ranked by total amount over donations in ``statuses``"""


class ProjectRepository(ABC):
    """Project funding storage"""

    @abstractmethod
    async def insert(self, project: Project) -> Project:
        pass

    @abstractmethod
    async def get(self, project_id: str) -> Project | None:
        pass

    @abstractmethod
    async def apply_donation(self, project_id: str, amount_lovelace: int, now: datetime) -> Project | None:
        """
        Atomically credit ``amount_lovelace`` to the project.

        Funding is clamped to the goal, ``backers_count`` is incremented and
        the status is recomputed in the same update.
        """


class NFTRepository(ABC):
    """NFT receipt storage, keyed by asset ID"""

    @abstractmethod
    async def upsert(self, receipt: NFTReceipt) -> NFTReceipt:
        """Insert or replace the receipt for ``receipt.asset_id``, keeping ``created_at``"""

    @abstractmethod
    async def get_by_asset_id(self, asset_id: str) -> NFTReceipt | None:
        pass

    @abstractmethod
    async def get_by_donation_id(self, donation_id: str) -> NFTReceipt | None:
        pass

    @abstractmethod
    async def list_by_owner(self, owner: str, limit: int = 100) -> list[NFTReceipt]:
        """Most recent first"""

    @abstractmethod
    async def update_status(
        self,
        asset_id: str,
        status: NFTStatus,
        tx_hash: str | None = None,
        error_message: str | None = None,
        minted_at: datetime | None = None,
    ) -> NFTReceipt | None:
        pass


class MintQueueRepository(ABC):
    """Donations whose receipts need operator attention"""

    @abstractmethod
    async def enqueue(self, entry: MintQueueEntry) -> MintQueueEntry:
        """Insert or refresh the entry for ``entry.donation_id`` and mark it unresolved"""

    @abstractmethod
    async def get(self, donation_id: str) -> MintQueueEntry | None:
        pass

    @abstractmethod
    async def resolve(self, donation_id: str, now: datetime) -> MintQueueEntry | None:
        pass

    @abstractmethod
    async def list_unresolved(self, limit: int = 100) -> list[MintQueueEntry]:
        """Oldest first"""
