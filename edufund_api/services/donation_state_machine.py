"""
Donation State Machine

Owns every status change of a donation. Transitions follow
``DONATION_TRANSITIONS`` and are persisted as conditional updates keyed on the
current status, so a transition either happens exactly once or reports a
conflict.

    pending ──► confirmed ──► nft_minted
       │
       └──────► failed

``confirmed`` is a valid resting state: the payment is real even when the
receipt NFT could not be minted. Such donations are retried by the sweep and,
once retries run out or the failure is fatal, parked in the mint queue.
"""

import logging
from datetime import timedelta

from edufund_api.database.repositories.base import DonationRepository, MintQueueRepository
from edufund_api.domain import Donation, MintQueueEntry, make_receipt_number, utcnow
from edufund_api.enums import DonationStatus, MintQueueReason
from edufund_api.exceptions import (
    ConflictError,
    DonationError,
    MalformedMetadata,
    NotFoundError,
    PolicyExpired,
    ValidationError,
)
from edufund_api.services.nft_minter import NFTMinter
from edufund_api.utils.validation import is_valid_transaction_hash, parse_cardano_address


logger = logging.getLogger(__name__)


class DonationStateMachine:
    """Guards and persists donation status transitions"""

    def __init__(
        self,
        donations: DonationRepository,
        mint_queue: MintQueueRepository,
        minter: NFTMinter,
        min_donation_lovelace: int = 1_000_000,
        max_message_length: int = 500,
        mint_max_attempts: int = 5,
        mint_claim_lease_seconds: int = 600,
    ):
        self.donations = donations
        self.mint_queue = mint_queue
        self.minter = minter
        self.min_donation_lovelace = min_donation_lovelace
        self.max_message_length = max_message_length
        self.mint_max_attempts = mint_max_attempts
        self.mint_claim_lease = timedelta(seconds=mint_claim_lease_seconds)

    # ------------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------------

    def validate(self, donation: Donation) -> None:
        """
        Check a new donation's shape.

        Raises:
            ValidationError: On the first violated rule
        """
        if isinstance(donation.amount_lovelace, bool) or not isinstance(donation.amount_lovelace, int):
            raise ValidationError("Donation amount must be an integer number of lovelace")
        if donation.amount_lovelace < self.min_donation_lovelace:
            raise ValidationError(
                f"Minimum donation amount is {self.min_donation_lovelace} lovelace, got {donation.amount_lovelace}"
            )
        if not is_valid_transaction_hash(donation.transaction_hash):
            raise ValidationError("Transaction hash must be 64 hexadecimal characters")
        if parse_cardano_address(donation.donor_address) is None:
            raise ValidationError(f"Invalid Cardano address: {donation.donor_address}")
        if not donation.donor_id:
            raise ValidationError("Donor is required")
        if not donation.project_id:
            raise ValidationError("Project is required")
        if donation.message and len(donation.message) > self.max_message_length:
            raise ValidationError(f"Message cannot exceed {self.max_message_length} characters")

    async def create(self, donation: Donation) -> Donation:
        """
        Persist a new donation as ``pending``.

        Raises:
            ValidationError: Bad amount or shape, nothing persisted
            ConflictError: Transaction hash already used by another donation
        """
        self.validate(donation)

        now = utcnow()
        tx_hash = donation.transaction_hash.lower()
        donation = donation.model_copy(
            update={
                "transaction_hash": tx_hash,
                "receipt_number": make_receipt_number(tx_hash, now),
                "status": DonationStatus.PENDING,
                "created_at": now,
                "updated_at": now,
            }
        )

        created = await self.donations.insert(donation)
        logger.info(f"Donation {created.id} created for project {created.project_id} (tx {tx_hash})")
        return created

    # ------------------------------------------------------------------------
    # Verification outcome
    # ------------------------------------------------------------------------

    async def _transition(self, donation_id: str, target: DonationStatus, **fields) -> Donation:
        donation = await self.donations.get(donation_id)
        if donation is None:
            raise NotFoundError(f"Donation not found: {donation_id}")
        if not donation.status.can_transition_to(target):
            raise ConflictError(f"Donation {donation_id} is {donation.status.value}, cannot become {target.value}")

        updated = await self.donations.transition(
            donation_id, donation.status, target, updated_at=utcnow(), **fields
        )
        if updated is None:
            # Another caller moved the donation first
            current = await self.donations.get(donation_id)
            state = current.status.value if current else "missing"
            raise ConflictError(f"Donation {donation_id} is {state}, cannot become {target.value}")

        logger.info(f"Donation {donation_id}: {donation.status.value} -> {target.value}")
        return updated

    async def confirm(self, donation_id: str, block_number: int | None) -> Donation:
        """
        Mark a pending donation confirmed.

        Raises:
            NotFoundError: Unknown donation
            ConflictError: Donation is not pending
        """
        return await self._transition(
            donation_id,
            DonationStatus.CONFIRMED,
            block_number=block_number,
            confirmed_at=utcnow(),
        )

    async def fail(self, donation_id: str, reason: str) -> Donation:
        """Mark a pending donation failed after terminal verification failure"""
        return await self._transition(donation_id, DonationStatus.FAILED, failure_reason=reason)

    async def claim_funding(self, donation_id: str) -> Donation | None:
        """Claim the project credit of a donation; None if credited or claimed elsewhere"""
        now = utcnow()
        return await self.donations.claim_funding(donation_id, now, now - self.mint_claim_lease)

    async def mark_funding_applied(self, donation_id: str) -> Donation | None:
        """Record that the donation has been credited; None if it already was"""
        return await self.donations.mark_funding_applied(donation_id)

    # ------------------------------------------------------------------------
    # Minting
    # ------------------------------------------------------------------------

    async def attempt_mint(self, donation_id: str, image_url: str | None = None) -> Donation:
        """
        Try to mint the receipt NFT of a confirmed donation.

        The donation is claimed first, so concurrent attempts (inline, sweep,
        operator) never submit twice. A claim older than the lease is treated
        as abandoned.

        Returns:
            The donation in ``nft_minted``

        Raises:
            NotFoundError: Unknown donation
            ConflictError: Donation not confirmed, or a mint is already in flight
            PolicyExpired / MintFailure / ProviderUnavailable: Mint failed; the
                donation stays confirmed
        """
        donation = await self.donations.get(donation_id)
        if donation is None:
            raise NotFoundError(f"Donation not found: {donation_id}")
        if donation.status != DonationStatus.CONFIRMED:
            raise ConflictError(f"Donation {donation_id} is {donation.status.value}, only confirmed donations are minted")

        now = utcnow()
        claimed = await self.donations.claim_for_mint(donation_id, now, now - self.mint_claim_lease)
        if claimed is None:
            raise ConflictError(f"Mint already in progress for donation {donation_id}")

        try:
            result = await self.minter.mint(claimed, image_url=image_url)
        except DonationError as e:
            await self._record_mint_failure(claimed, e)
            raise

        minted = await self.donations.transition(
            donation_id,
            DonationStatus.CONFIRMED,
            DonationStatus.NFT_MINTED,
            nft_asset_id=result.asset_id,
            nft_policy_id=result.policy_id,
            nft_metadata=result.metadata,
            nft_minted_at=utcnow(),
            mint_claimed_at=None,
            last_mint_error=None,
            updated_at=utcnow(),
        )
        if minted is None:
            raise ConflictError(f"Donation {donation_id} left confirmed while minting")

        logger.info(f"Donation {donation_id}: confirmed -> nft_minted (asset {result.asset_id})")
        return minted

    async def _record_mint_failure(self, donation: Donation, error: DonationError) -> None:
        released = await self.donations.release_mint_claim(donation.id, str(error))
        attempts = released.mint_attempts if released else donation.mint_attempts

        if isinstance(error, PolicyExpired):
            reason = MintQueueReason.POLICY_EXPIRED
        elif isinstance(error, MalformedMetadata):
            reason = MintQueueReason.MALFORMED_METADATA
        elif attempts >= self.mint_max_attempts:
            reason = MintQueueReason.RETRIES_EXHAUSTED
        else:
            logger.warning(f"Mint attempt {attempts} for donation {donation.id} failed: {str(error)}")
            return

        logger.error(f"Donation {donation.id} queued for operator attention ({reason.value}): {str(error)}")
        await self.mint_queue.enqueue(
            MintQueueEntry(donation_id=donation.id, reason=reason, attempts=attempts, last_error=str(error))
        )
