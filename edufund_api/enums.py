"""
Shared Enums

Single source of truth for enums used across domain models, database documents,
API schemas and business logic. Status enums carry their own transition tables
so every state change can be checked against one place.
"""

from enum import Enum


# ============================================================================
# Blockchain Enums
# ============================================================================


class VerificationStatus(str, Enum):
    """
    Outcome of checking a donor payment on-chain

    - PENDING: Transaction not (yet) in a block, check again later
    - CONFIRMED: Transaction is in a block and pays the recipient enough
    - FAILED: Transaction exists but does not match the donation (terminal)
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


# ============================================================================
# Donation Enums
# ============================================================================


class DonationStatus(str, Enum):
    """
    Donation lifecycle status

    Lifecycle:
    - PENDING: Recorded off-chain, payment not yet verified on-chain
    - CONFIRMED: Payment verified and credited to the project. A donation may
      rest here indefinitely when its NFT receipt could not be minted; the
      money is real, only the reward is missing.
    - NFT_MINTED: Receipt NFT minted (terminal)
    - FAILED: Payment verification failed terminally (terminal)
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    NFT_MINTED = "nft_minted"
    FAILED = "failed"

    def can_transition_to(self, target: "DonationStatus") -> bool:
        """Check whether ``target`` is reachable from this status in one step"""
        return target in DONATION_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not DONATION_TRANSITIONS[self]


DONATION_TRANSITIONS: dict[DonationStatus, frozenset[DonationStatus]] = {
    DonationStatus.PENDING: frozenset({DonationStatus.CONFIRMED, DonationStatus.FAILED}),
    DonationStatus.CONFIRMED: frozenset({DonationStatus.NFT_MINTED}),
    DonationStatus.NFT_MINTED: frozenset(),
    DonationStatus.FAILED: frozenset(),
}


class DonationCategory(str, Enum):
    """What a donation is earmarked for"""

    EDUCATION = "education"
    INFRASTRUCTURE = "infrastructure"
    SCHOLARSHIP = "scholarship"
    RESEARCH = "research"
    GENERAL = "general"


# ============================================================================
# Project Enums
# ============================================================================


class ProjectStatus(str, Enum):
    """
    Research project status

    - DRAFT / PENDING: Not yet open for donations
    - ACTIVE: Accepting donations
    - FUNDED: Funding goal reached
    - EXPIRED: Deadline passed while still active
    - CANCELLED: Withdrawn by the platform or the student
    """

    DRAFT = "draft"
    PENDING = "pending"
    ACTIVE = "active"
    FUNDED = "funded"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @property
    def accepts_donations(self) -> bool:
        return self is ProjectStatus.ACTIVE


# ============================================================================
# NFT Enums
# ============================================================================


class NFTStatus(str, Enum):
    """
    Receipt NFT status

    - MINTING: Mint submitted or about to be, outcome not yet known
    - MINTED: Mint transaction accepted by the ledger
    - FAILED: Mint rejected for a reason retrying will not fix
    """

    MINTING = "minting"
    MINTED = "minted"
    FAILED = "failed"


class MintQueueReason(str, Enum):
    """Why a confirmed donation was parked for operator attention"""

    POLICY_EXPIRED = "policy_expired"
    RETRIES_EXHAUSTED = "retries_exhausted"
    MALFORMED_METADATA = "malformed_metadata"
