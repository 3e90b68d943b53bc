"""
Service Dependencies

FastAPI dependencies for the donation and receipt services built during
application startup.
"""

from fastapi import HTTPException, Request

from edufund_api.chain.ledger_provider import LedgerProvider
from edufund_api.config import Settings, settings
from edufund_api.database.repositories import (
    MongoDonationRepository,
    MongoMintQueueRepository,
    MongoNFTRepository,
    MongoProjectRepository,
)
from edufund_api.services.donation_service import DonationService
from edufund_api.services.donation_state_machine import DonationStateMachine
from edufund_api.services.funding_aggregator import FundingAggregator
from edufund_api.services.nft_minter import NFTMinter
from edufund_api.services.receipt_notifier import LoggingReceiptNotifier
from edufund_api.services.receipt_service import ReceiptService
from edufund_api.services.retry import RetryPolicy
from edufund_api.services.transaction_verifier import TransactionVerifier


def get_donation_service(request: Request) -> DonationService:
    """
    Get the donation service from application state.

    Raises:
        HTTPException: 503 while the service has not been initialized
    """
    service: DonationService | None = getattr(request.app.state, "donation_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Donation service not initialized")
    return service


def get_receipt_service(request: Request) -> ReceiptService:
    service: ReceiptService | None = getattr(request.app.state, "receipt_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Receipt service not initialized")
    return service


def build_donation_service(ledger: LedgerProvider, database, app_settings: Settings = settings) -> DonationService:
    """
    Wire the donation service and its collaborators from settings.

    Args:
        ledger: Initialized ledger provider
        database: Initialized Motor database
        app_settings: Settings to read limits and NFT options from
    """
    donations = MongoDonationRepository(database)
    projects = MongoProjectRepository(database)
    nfts = MongoNFTRepository(database)
    mint_queue = MongoMintQueueRepository(database)

    minter = NFTMinter(
        ledger,
        nfts,
        asset_name_prefix=app_settings.nft_asset_name_prefix,
        metadata_label=app_settings.nft_metadata_label,
        default_image_url=app_settings.nft_default_image_url,
        external_url_base=app_settings.nft_external_url_base,
        max_description_bytes=app_settings.nft_max_description_bytes,
        timeout=app_settings.provider_timeout_seconds,
    )
    state_machine = DonationStateMachine(
        donations,
        mint_queue,
        minter,
        min_donation_lovelace=app_settings.min_donation_lovelace,
        max_message_length=app_settings.max_message_length,
        mint_max_attempts=app_settings.mint_max_attempts,
        mint_claim_lease_seconds=app_settings.mint_claim_lease_seconds,
    )

    return DonationService(
        ledger=ledger,
        donations=donations,
        projects=projects,
        nfts=nfts,
        mint_queue=mint_queue,
        state_machine=state_machine,
        verifier=TransactionVerifier(ledger, timeout=app_settings.provider_timeout_seconds),
        aggregator=FundingAggregator(projects),
        notifier=LoggingReceiptNotifier(),
        recipient_address=app_settings.recipient_address,
        verify_retry=RetryPolicy(
            max_attempts=app_settings.verify_max_attempts,
            base_delay=app_settings.retry_base_delay_seconds,
            max_delay=app_settings.retry_max_delay_seconds,
        ),
        mint_max_attempts=app_settings.mint_max_attempts,
        settle_grace_seconds=app_settings.mint_claim_lease_seconds,
        mint_backoff=RetryPolicy(
            max_attempts=app_settings.mint_max_attempts,
            base_delay=app_settings.mint_retry_base_delay_seconds,
            max_delay=app_settings.mint_retry_max_delay_seconds,
        ),
    )


def build_receipt_service(ledger: LedgerProvider, database, app_settings: Settings = settings) -> ReceiptService:
    return ReceiptService(ledger, MongoNFTRepository(database), timeout=app_settings.provider_timeout_seconds)
