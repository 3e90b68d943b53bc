"""
Donation State Machine Tests

Transition guards, conditional updates and the mint claim.
"""

import asyncio
from datetime import timedelta

import pytest

from edufund_api.domain import utcnow
from edufund_api.enums import DonationStatus, MintQueueReason
from edufund_api.exceptions import (
    ConflictError,
    MalformedMetadata,
    NotFoundError,
    PolicyExpired,
    ProviderUnavailable,
    ValidationError,
)
from edufund_api.tests.factories import DonationFactory


@pytest.fixture
def state_machine(service):
    return service.state_machine


async def _confirmed(state_machine, project_id: str, **kwargs):
    donation = await state_machine.create(DonationFactory.create(project_id=project_id, **kwargs))
    return await state_machine.confirm(donation.id, block_number=1_000_000)


@pytest.mark.unit
class TestTransitionTable:
    def test_allowed_transitions(self):
        assert DonationStatus.PENDING.can_transition_to(DonationStatus.CONFIRMED)
        assert DonationStatus.PENDING.can_transition_to(DonationStatus.FAILED)
        assert DonationStatus.CONFIRMED.can_transition_to(DonationStatus.NFT_MINTED)

    def test_forbidden_transitions(self):
        assert not DonationStatus.PENDING.can_transition_to(DonationStatus.NFT_MINTED)
        assert not DonationStatus.CONFIRMED.can_transition_to(DonationStatus.PENDING)
        assert not DonationStatus.CONFIRMED.can_transition_to(DonationStatus.FAILED)
        assert not DonationStatus.FAILED.can_transition_to(DonationStatus.CONFIRMED)

    def test_terminal_states(self):
        assert DonationStatus.NFT_MINTED.is_terminal
        assert DonationStatus.FAILED.is_terminal
        assert not DonationStatus.CONFIRMED.is_terminal


@pytest.mark.unit
class TestCreate:
    @pytest.mark.asyncio
    async def test_create_pending_with_receipt_number(self, state_machine, repositories):
        tx_hash = "AB" * 32
        donation = await state_machine.create(DonationFactory.create(project_id="p1", transaction_hash=tx_hash))

        assert donation.status == DonationStatus.PENDING
        assert donation.transaction_hash == tx_hash.lower()
        assert donation.receipt_number == f"{donation.created_at:%Y%m%d}-ABABABABABAB"
        assert await repositories.donations.get(donation.id) is not None

    @pytest.mark.asyncio
    async def test_amount_below_minimum_persists_nothing(self, state_machine, repositories):
        with pytest.raises(ValidationError):
            await state_machine.create(DonationFactory.create(project_id="p1", amount_lovelace=999_999))

        assert repositories.donations.items == {}

    @pytest.mark.asyncio
    async def test_minimum_amount_accepted(self, state_machine):
        donation = await state_machine.create(DonationFactory.create(project_id="p1", amount_lovelace=1_000_000))

        assert donation.amount_lovelace == 1_000_000

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"transaction_hash": "abc123"},
            {"donor_address": "not-an-address"},
            {"message": "x" * 501},
        ],
    )
    async def test_bad_shapes_rejected(self, state_machine, repositories, overrides):
        with pytest.raises(ValidationError):
            await state_machine.create(DonationFactory.create(project_id="p1", **overrides))

        assert repositories.donations.items == {}

    @pytest.mark.asyncio
    async def test_duplicate_transaction_hash_conflicts(self, state_machine, repositories):
        tx_hash = "cd" * 32
        await state_machine.create(DonationFactory.create(project_id="p1", transaction_hash=tx_hash))

        with pytest.raises(ConflictError):
            await state_machine.create(DonationFactory.create(project_id="p2", transaction_hash=tx_hash.upper()))

        assert len(repositories.donations.items) == 1


@pytest.mark.unit
class TestConfirmAndFail:
    @pytest.mark.asyncio
    async def test_confirm_sets_block_and_timestamp(self, state_machine):
        donation = await _confirmed(state_machine, "p1")

        assert donation.status == DonationStatus.CONFIRMED
        assert donation.block_number == 1_000_000
        assert donation.confirmed_at is not None

    @pytest.mark.asyncio
    async def test_second_confirm_conflicts_and_keeps_first_effect(self, state_machine, repositories):
        donation = await _confirmed(state_machine, "p1")

        with pytest.raises(ConflictError):
            await state_machine.confirm(donation.id, block_number=2_000_000)

        stored = await repositories.donations.get(donation.id)
        assert stored.block_number == 1_000_000
        assert stored.confirmed_at == donation.confirmed_at

    @pytest.mark.asyncio
    async def test_concurrent_confirms_single_winner(self, state_machine):
        donation = await state_machine.create(DonationFactory.create(project_id="p1"))

        results = await asyncio.gather(
            *(state_machine.confirm(donation.id, block_number=i) for i in range(5)), return_exceptions=True
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert sum(1 for r in results if isinstance(r, ConflictError)) == 4

    @pytest.mark.asyncio
    async def test_fail_only_from_pending(self, state_machine):
        pending = await state_machine.create(DonationFactory.create(project_id="p1"))
        failed = await state_machine.fail(pending.id, "Amount mismatch")
        confirmed = await _confirmed(state_machine, "p1")

        assert failed.status == DonationStatus.FAILED
        assert failed.failure_reason == "Amount mismatch"
        with pytest.raises(ConflictError):
            await state_machine.fail(confirmed.id, "too late")
        with pytest.raises(ConflictError):
            await state_machine.confirm(failed.id, block_number=1)

    @pytest.mark.asyncio
    async def test_unknown_donation(self, state_machine):
        with pytest.raises(NotFoundError):
            await state_machine.confirm("missing", block_number=1)

    @pytest.mark.asyncio
    async def test_mark_funding_applied_once(self, state_machine):
        donation = await _confirmed(state_machine, "p1")

        assert (await state_machine.mark_funding_applied(donation.id)).funding_applied is True
        assert await state_machine.mark_funding_applied(donation.id) is None


@pytest.mark.unit
class TestAttemptMint:
    @pytest.mark.asyncio
    async def test_confirm_then_mint(self, state_machine, ledger):
        donation = await _confirmed(state_machine, "p1")

        minted = await state_machine.attempt_mint(donation.id)

        assert minted.status == DonationStatus.NFT_MINTED
        assert minted.nft_asset_id is not None
        assert minted.nft_policy_id == ledger.policy.policy_id
        assert minted.nft_minted_at is not None
        assert minted.mint_attempts == 1
        assert minted.mint_claimed_at is None

    @pytest.mark.asyncio
    async def test_mint_requires_confirmed(self, state_machine):
        pending = await state_machine.create(DonationFactory.create(project_id="p1"))

        with pytest.raises(ConflictError):
            await state_machine.attempt_mint(pending.id)

    @pytest.mark.asyncio
    async def test_minted_donation_cannot_be_minted_again(self, state_machine, ledger):
        donation = await _confirmed(state_machine, "p1")
        await state_machine.attempt_mint(donation.id)

        with pytest.raises(ConflictError):
            await state_machine.attempt_mint(donation.id)

        assert len(ledger.submitted) == 1

    @pytest.mark.asyncio
    async def test_transient_failure_then_retry_same_asset(self, state_machine, ledger, repositories):
        donation = await _confirmed(state_machine, "p1")
        ledger.land_before_error = True
        ledger.submit_errors.append(ProviderUnavailable("timeout"))

        with pytest.raises(ProviderUnavailable):
            await state_machine.attempt_mint(donation.id)

        after_failure = await repositories.donations.get(donation.id)
        assert after_failure.status == DonationStatus.CONFIRMED
        assert after_failure.mint_claimed_at is None
        assert after_failure.last_mint_error == "timeout"

        minted = await state_machine.attempt_mint(donation.id)

        assert len(ledger.assets) == 1
        assert minted.nft_asset_id == next(iter(ledger.assets))
        assert minted.mint_attempts == 2

    @pytest.mark.asyncio
    async def test_concurrent_attempts_submit_once(self, state_machine, ledger):
        donation = await _confirmed(state_machine, "p1")

        results = await asyncio.gather(
            *(state_machine.attempt_mint(donation.id) for _ in range(3)), return_exceptions=True
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        assert len(winners) == 1
        assert all(isinstance(r, ConflictError) for r in results if isinstance(r, Exception))
        assert len(ledger.submitted) == 1

    @pytest.mark.asyncio
    async def test_live_claim_blocks_and_stale_claim_is_taken_over(self, state_machine, repositories):
        donation = await _confirmed(state_machine, "p1")
        repositories.donations.items[donation.id] = repositories.donations.items[donation.id].model_copy(
            update={"mint_claimed_at": utcnow()}
        )

        with pytest.raises(ConflictError):
            await state_machine.attempt_mint(donation.id)

        repositories.donations.items[donation.id] = repositories.donations.items[donation.id].model_copy(
            update={"mint_claimed_at": utcnow() - timedelta(hours=1)}
        )
        minted = await state_machine.attempt_mint(donation.id)

        assert minted.status == DonationStatus.NFT_MINTED

    @pytest.mark.asyncio
    async def test_retries_exhausted_enqueues(self, state_machine, ledger, repositories):
        donation = await _confirmed(state_machine, "p1")
        ledger.submit_errors.extend(ProviderUnavailable("503") for _ in range(3))

        for _ in range(3):
            with pytest.raises(ProviderUnavailable):
                await state_machine.attempt_mint(donation.id)

        entry = await repositories.mint_queue.get(donation.id)
        assert entry.reason == MintQueueReason.RETRIES_EXHAUSTED
        assert entry.attempts == 3
        assert (await repositories.donations.get(donation.id)).status == DonationStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_failure_below_cap_not_enqueued(self, state_machine, ledger, repositories):
        donation = await _confirmed(state_machine, "p1")
        ledger.submit_errors.append(ProviderUnavailable("503"))

        with pytest.raises(ProviderUnavailable):
            await state_machine.attempt_mint(donation.id)

        assert await repositories.mint_queue.get(donation.id) is None

    @pytest.mark.asyncio
    async def test_expired_policy_enqueues_immediately(self, state_machine, ledger, repositories):
        donation = await _confirmed(state_machine, "p1")
        ledger.slot = ledger.policy.expiry_slot + 1

        with pytest.raises(PolicyExpired):
            await state_machine.attempt_mint(donation.id)

        entry = await repositories.mint_queue.get(donation.id)
        assert entry.reason == MintQueueReason.POLICY_EXPIRED
        assert entry.attempts == 1

    @pytest.mark.asyncio
    async def test_malformed_metadata_enqueues_immediately(self, state_machine, repositories):
        donation = await _confirmed(state_machine, "p1")
        state_machine.minter.max_description_bytes = 50_000
        repositories.donations.items[donation.id] = repositories.donations.items[donation.id].model_copy(
            update={"message": "x" * 20_000}
        )

        with pytest.raises(MalformedMetadata):
            await state_machine.attempt_mint(donation.id)

        entry = await repositories.mint_queue.get(donation.id)
        assert entry.reason == MintQueueReason.MALFORMED_METADATA
