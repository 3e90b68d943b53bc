"""
Donation Service

Orchestrates the donation lifecycle:

    create -> verify -> confirm -> credit project -> mint receipt -> notify

The database and the blockchain fail independently, so every step after
confirmation is best-effort and resumable. A confirmed donation whose project
credit or receipt mint did not complete is picked up again by ``sweep()``,
which the API runs periodically.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from edufund_api.chain.ledger_provider import LedgerProvider
from edufund_api.database.repositories.base import (
    DonationRepository,
    MintQueueRepository,
    NFTRepository,
    ProjectRepository,
)
from edufund_api.domain import Donation, LeaderboardEntry, MintQueueEntry, NFTReceipt, Project, utcnow
from edufund_api.enums import DonationCategory, DonationStatus, VerificationStatus
from edufund_api.exceptions import (
    ConflictError,
    DonationError,
    NotFoundError,
    ProviderUnavailable,
    ValidationError,
    VerificationFailure,
)
from edufund_api.services.donation_state_machine import DonationStateMachine
from edufund_api.services.funding_aggregator import FundingAggregator
from edufund_api.services.receipt_notifier import ReceiptNotifier
from edufund_api.services.retry import RetryPolicy
from edufund_api.services.transaction_verifier import TransactionVerifier, VerificationResult


logger = logging.getLogger(__name__)

PUBLIC_DONATION_STATUSES = [DonationStatus.CONFIRMED, DonationStatus.NFT_MINTED]


@dataclass
class DonationOutcome:
    """Donation after an operation, with its receipt and any non-fatal warning"""

    donation: Donation
    nft: NFTReceipt | None = None
    warning: str | None = None
    verification: VerificationResult | None = None


@dataclass
class SweepReport:
    funding_reconciled: int = 0
    minted: int = 0
    mint_failures: int = 0
    skipped: int = 0


class DonationService:
    """Donation lifecycle orchestrator"""

    def __init__(
        self,
        ledger: LedgerProvider,
        donations: DonationRepository,
        projects: ProjectRepository,
        nfts: NFTRepository,
        mint_queue: MintQueueRepository,
        state_machine: DonationStateMachine,
        verifier: TransactionVerifier,
        aggregator: FundingAggregator,
        notifier: ReceiptNotifier,
        recipient_address: str,
        verify_retry: RetryPolicy | None = None,
        mint_max_attempts: int = 5,
        settle_grace_seconds: int = 600,
        mint_backoff: RetryPolicy | None = None,
    ):
        self.ledger = ledger
        self.donations = donations
        self.projects = projects
        self.nfts = nfts
        self.mint_queue = mint_queue
        self.state_machine = state_machine
        self.verifier = verifier
        self.aggregator = aggregator
        self.notifier = notifier
        self.recipient_address = recipient_address
        self.verify_retry = verify_retry or RetryPolicy()
        self.mint_max_attempts = mint_max_attempts
        self.settle_grace = timedelta(seconds=settle_grace_seconds)
        self.mint_backoff = mint_backoff or RetryPolicy(
            max_attempts=mint_max_attempts, base_delay=300.0, max_delay=3600.0
        )

    # ========================================================================
    # Submission and confirmation
    # ========================================================================

    async def submit_donation(
        self,
        donor_id: str,
        donor_address: str,
        project_id: str,
        amount_lovelace: int,
        transaction_hash: str,
        message: str | None = None,
        category: DonationCategory = DonationCategory.GENERAL,
    ) -> DonationOutcome:
        """
        Record a donation and try to settle it right away.

        The donation is always persisted as ``pending`` first. A single inline
        verification follows; if the transaction is not in a block yet, or the
        provider is unavailable, the donation stays pending and the caller is
        told to confirm later.

        Raises:
            NotFoundError: Unknown project
            ValidationError: Bad input or project not accepting donations
            ConflictError: Transaction hash already used
        """
        project = await self._get_project(project_id)
        if not project.status.accepts_donations:
            raise ValidationError(f"Project is not accepting donations (status: {project.status.value})")
        if project.deadline <= utcnow():
            raise ValidationError("Project funding deadline has passed")
        if not self.ledger.verify_address(donor_address):
            raise ValidationError(f"Invalid Cardano address for this network: {donor_address}")

        donation = await self.state_machine.create(
            Donation(
                donor_id=donor_id,
                donor_address=donor_address,
                project_id=project_id,
                amount_lovelace=amount_lovelace,
                transaction_hash=transaction_hash,
                message=message,
                category=category,
            )
        )

        try:
            result = await self.verifier.verify(
                donation.transaction_hash, donation.amount_lovelace, self.recipient_address
            )
        except ProviderUnavailable as e:
            logger.warning(f"Inline verification of donation {donation.id} deferred: {str(e)}")
            return DonationOutcome(
                donation=donation,
                warning="Blockchain verification temporarily unavailable; confirm the donation later",
            )

        if result.status == VerificationStatus.PENDING:
            return DonationOutcome(
                donation=donation,
                warning="Transaction not yet confirmed on blockchain; confirm the donation later",
                verification=result,
            )

        if result.status == VerificationStatus.FAILED:
            failed = await self.state_machine.fail(donation.id, result.message)
            return DonationOutcome(
                donation=failed,
                warning=f"Transaction verification failed: {result.message}",
                verification=result,
            )

        return await self._settle(donation, result)

    async def confirm_donation(self, donation_id: str, tx_hash: str) -> DonationOutcome:
        """
        Verify a pending donation's payment and settle it.

        Returns:
            Outcome with ``verification.status == pending`` while the
            transaction is not in a block, otherwise the settled donation

        Raises:
            NotFoundError: Unknown donation
            ValidationError: ``tx_hash`` does not belong to the donation
            ConflictError: Donation is not pending
            VerificationFailure: Payment does not match; donation marked failed
            ProviderUnavailable: Provider still failing after retries
        """
        donation = await self._get_donation(donation_id)
        if tx_hash.lower() != donation.transaction_hash:
            raise ValidationError("Transaction hash does not match the donation")
        if donation.status != DonationStatus.PENDING:
            raise ConflictError(f"Donation is already {donation.status.value}")

        result = await self.verify_retry.run(
            lambda: self.verifier.verify(donation.transaction_hash, donation.amount_lovelace, self.recipient_address),
            f"Verification of donation {donation_id}",
        )

        if result.status == VerificationStatus.PENDING:
            return DonationOutcome(donation=donation, verification=result)

        if result.status == VerificationStatus.FAILED:
            await self.state_machine.fail(donation_id, result.message)
            raise VerificationFailure(result.message)

        return await self._settle(donation, result)

    async def _settle(self, donation: Donation, result: VerificationResult) -> DonationOutcome:
        """Confirm, credit the project, then mint and notify best-effort"""
        confirmed = await self.state_machine.confirm(donation.id, result.block_height)
        confirmed, _ = await self._apply_funding(confirmed)

        outcome = await self._mint_best_effort(confirmed)
        outcome.verification = result
        await self._notify(outcome)
        return outcome

    async def _apply_funding(self, donation: Donation) -> tuple[Donation, bool]:
        """
        Credit a confirmed donation to its project at most once.

        The donation is claimed before the project is touched and flagged
        after, so a second caller (another sweep, another worker) sees the
        claim and backs off. A failed credit releases the claim for the next
        sweep.

        Returns:
            The current donation and whether this call credited it
        """
        claimed = await self.state_machine.claim_funding(donation.id)
        if claimed is None:
            current = await self.donations.get(donation.id) or donation
            return current, False

        try:
            await self.aggregator.apply_donation(donation.project_id, donation.amount_lovelace)
        except Exception as e:
            logger.error(f"Crediting donation {donation.id} to project {donation.project_id} failed: {str(e)}")
            released = await self.donations.release_funding_claim(donation.id)
            return released or claimed, False

        marked = await self.state_machine.mark_funding_applied(donation.id)
        return marked or claimed, True

    async def _mint_best_effort(self, donation: Donation) -> DonationOutcome:
        try:
            minted = await self.state_machine.attempt_mint(donation.id)
        except ConflictError as e:
            current = await self.donations.get(donation.id) or donation
            return DonationOutcome(donation=current, warning=str(e))
        except DonationError as e:
            logger.warning(f"Receipt NFT for donation {donation.id} not minted: {str(e)}")
            current = await self.donations.get(donation.id) or donation
            return DonationOutcome(
                donation=current,
                warning="Donation confirmed but NFT minting failed; it will be retried automatically",
            )

        nft = await self.nfts.get_by_asset_id(minted.nft_asset_id)
        return DonationOutcome(donation=minted, nft=nft)

    async def _notify(self, outcome: DonationOutcome) -> None:
        try:
            await self.notifier.notify_receipt(outcome.donation, outcome.nft)
        except Exception as e:
            logger.warning(f"Receipt notification for donation {outcome.donation.id} failed: {str(e)}")

    # ========================================================================
    # Operator actions
    # ========================================================================

    async def retry_mint(self, donation_id: str, image_url: str | None = None) -> DonationOutcome:
        """
        Manually retry the receipt mint of a confirmed donation.

        Ignores the automatic attempt cap and resolves the donation's mint
        queue entry on success. Already-minted donations are returned as is.

        Raises:
            NotFoundError: Unknown donation
            ConflictError: Donation not confirmed, or a mint is in flight
            PolicyExpired / MintFailure / ProviderUnavailable: Mint failed again
        """
        donation = await self._get_donation(donation_id)

        if donation.status == DonationStatus.NFT_MINTED:
            await self.mint_queue.resolve(donation_id, utcnow())
            return DonationOutcome(donation=donation, nft=await self.nfts.get_by_donation_id(donation_id))

        minted = await self.state_machine.attempt_mint(donation_id, image_url=image_url)
        await self.mint_queue.resolve(donation_id, utcnow())

        outcome = DonationOutcome(donation=minted, nft=await self.nfts.get_by_asset_id(minted.nft_asset_id))
        await self._notify(outcome)
        return outcome

    async def sweep(self) -> SweepReport:
        """
        Resume interrupted settlements.

        Credits confirmed donations whose project update never landed, then
        retries receipt mints for confirmed donations below the attempt cap.
        Donations touched within the grace period are left alone so an
        in-flight request can finish its own work, and a donation whose last
        mint attempt failed waits out ``mint_backoff`` before the next one.
        """
        report = SweepReport()
        now = utcnow()

        for donation in await self.donations.list_funding_unapplied(now - self.settle_grace):
            _, credited = await self._apply_funding(donation)
            if credited:
                report.funding_reconciled += 1

        for donation in await self.donations.list_mintable(self.mint_max_attempts, now - self.settle_grace):
            if not self._mint_retry_due(donation, now):
                report.skipped += 1
                continue
            try:
                minted = await self.state_machine.attempt_mint(donation.id)
            except ConflictError:
                report.skipped += 1
                continue
            except DonationError as e:
                logger.warning(f"Sweep mint for donation {donation.id} failed: {str(e)}")
                report.mint_failures += 1
                continue

            report.minted += 1
            await self._notify(
                DonationOutcome(donation=minted, nft=await self.nfts.get_by_asset_id(minted.nft_asset_id))
            )

        if report.funding_reconciled or report.minted or report.mint_failures:
            logger.info(
                f"Sweep: {report.funding_reconciled} credited, {report.minted} minted, "
                f"{report.mint_failures} mint failures"
            )
        return report

    def _mint_retry_due(self, donation: Donation, now: datetime) -> bool:
        # updated_at is stamped when a mint attempt claims the donation
        if donation.mint_attempts == 0:
            return True
        delay = timedelta(seconds=self.mint_backoff.backoff(donation.mint_attempts))
        return donation.updated_at <= now - delay

    # ========================================================================
    # Reads
    # ========================================================================

    async def get_donation(self, donation_id: str) -> DonationOutcome:
        donation = await self._get_donation(donation_id)
        nft = await self.nfts.get_by_donation_id(donation_id) if donation.nft_asset_id else None
        return DonationOutcome(donation=donation, nft=nft)

    async def leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        """Donors ranked by total confirmed (or minted) donation amount"""
        return await self.donations.leaderboard(PUBLIC_DONATION_STATUSES, max(1, min(limit, 100)))

    async def project_donations(self, project_id: str, limit: int = 100) -> list[Donation]:
        await self._get_project(project_id)
        return await self.donations.list_by_project(project_id, PUBLIC_DONATION_STATUSES, max(1, min(limit, 100)))

    async def donor_donations(self, wallet_address: str, page: int = 1, limit: int = 20) -> list[Donation]:
        """
        A donor's donation history, most recent first, in every status.

        Raises:
            ValidationError: Address is not valid on this network
        """
        if not self.ledger.verify_address(wallet_address):
            raise ValidationError(f"Invalid Cardano address for this network: {wallet_address}")
        limit = max(1, min(limit, 100))
        return await self.donations.list_by_donor_address(wallet_address, skip=(max(page, 1) - 1) * limit, limit=limit)

    async def list_stuck(self, limit: int = 100) -> list[MintQueueEntry]:
        return await self.mint_queue.list_unresolved(limit)

    async def _get_donation(self, donation_id: str) -> Donation:
        donation = await self.donations.get(donation_id)
        if donation is None:
            raise NotFoundError(f"Donation not found: {donation_id}")
        return donation

    async def _get_project(self, project_id: str) -> Project:
        project = await self.projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project not found: {project_id}")
        return project
