"""
Receipt Service Tests

Receipt NFT lookups and on-chain verification.
"""

import pytest

from edufund_api.enums import NFTStatus
from edufund_api.exceptions import NotFoundError, ProviderUnavailable
from edufund_api.tests.factories import CardanoAddressFactory, TransactionFactory


async def _settle(service, ledger, recipient_address, project_id, donor_address=None):
    tx_hash = TransactionFactory.create_tx_hash()
    ledger.add_transaction(TransactionFactory.create_payment(tx_hash, recipient_address, 10_000_000))
    outcome = await service.submit_donation(
        donor_id="donor-1",
        donor_address=donor_address or CardanoAddressFactory.create_testnet_address(),
        project_id=project_id,
        amount_lovelace=10_000_000,
        transaction_hash=tx_hash,
    )
    return outcome.donation


@pytest.mark.unit
class TestReceiptLookups:
    @pytest.mark.asyncio
    async def test_get_by_asset_and_donation(self, service, receipt_service, ledger, project, recipient_address):
        donation = await _settle(service, ledger, recipient_address, project.id)

        by_asset = await receipt_service.get_by_asset(donation.nft_asset_id)
        by_donation = await receipt_service.get_by_donation(donation.id)

        assert by_asset.donation_id == donation.id
        assert by_donation.asset_id == donation.nft_asset_id

    @pytest.mark.asyncio
    async def test_unknown_asset(self, receipt_service):
        with pytest.raises(NotFoundError):
            await receipt_service.get_by_asset("ab" * 28 + "00")

    @pytest.mark.asyncio
    async def test_donation_without_receipt(self, receipt_service):
        with pytest.raises(NotFoundError):
            await receipt_service.get_by_donation("missing")

    @pytest.mark.asyncio
    async def test_list_by_owner(self, service, receipt_service, ledger, project, recipient_address):
        owner = CardanoAddressFactory.create_testnet_address()
        first = await _settle(service, ledger, recipient_address, project.id, donor_address=owner)
        second = await _settle(service, ledger, recipient_address, project.id, donor_address=owner)
        await _settle(service, ledger, recipient_address, project.id)

        receipts = await receipt_service.list_by_owner(owner)

        assert [r.donation_id for r in receipts] == [second.id, first.id]
        assert all(r.owner == owner for r in receipts)


@pytest.mark.unit
class TestReceiptVerification:
    @pytest.mark.asyncio
    async def test_landed_asset_promotes_minting_record(
        self, service, receipt_service, ledger, repositories, project, recipient_address
    ):
        ledger.land_before_error = True
        ledger.submit_errors.append(ProviderUnavailable("timeout after submit"))
        donation = await _settle(service, ledger, recipient_address, project.id)
        record = await repositories.nfts.get_by_donation_id(donation.id)
        assert record.status == NFTStatus.MINTING

        result = await receipt_service.verify(record.asset_id)

        assert result.on_chain is True
        assert result.asset.quantity == 1
        assert result.receipt.status == NFTStatus.MINTED
        assert result.receipt.blockchain_data.tx_hash == ledger.assets[record.asset_id].initial_mint_tx_hash
        assert (await repositories.nfts.get_by_asset_id(record.asset_id)).status == NFTStatus.MINTED

    @pytest.mark.asyncio
    async def test_asset_not_on_chain_leaves_record(
        self, service, receipt_service, ledger, repositories, project, recipient_address
    ):
        ledger.submit_errors.append(ProviderUnavailable("503"))
        donation = await _settle(service, ledger, recipient_address, project.id)
        record = await repositories.nfts.get_by_donation_id(donation.id)

        result = await receipt_service.verify(record.asset_id)

        assert result.on_chain is False
        assert result.asset is None
        assert result.receipt.status == NFTStatus.MINTING

    @pytest.mark.asyncio
    async def test_minted_record_is_unchanged(self, service, receipt_service, ledger, project, recipient_address):
        donation = await _settle(service, ledger, recipient_address, project.id)
        before = await receipt_service.get_by_asset(donation.nft_asset_id)

        result = await receipt_service.verify(donation.nft_asset_id)

        assert result.on_chain is True
        assert result.receipt.updated_at == before.updated_at

    @pytest.mark.asyncio
    async def test_unknown_asset(self, receipt_service):
        with pytest.raises(NotFoundError):
            await receipt_service.verify("ab" * 28 + "00")
