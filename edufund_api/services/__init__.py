"""Donation lifecycle services"""

from .donation_service import DonationOutcome, DonationService, SweepReport
from .donation_state_machine import DonationStateMachine
from .funding_aggregator import FundingAggregator
from .nft_minter import MintIdempotencyKey, MintResult, NFTMinter, build_receipt_metadata
from .receipt_notifier import LoggingReceiptNotifier, ReceiptNotifier
from .retry import RetryPolicy, call_provider
from .transaction_verifier import TransactionVerifier, VerificationResult


__all__ = [
    "DonationOutcome",
    "DonationService",
    "DonationStateMachine",
    "FundingAggregator",
    "LoggingReceiptNotifier",
    "MintIdempotencyKey",
    "MintResult",
    "NFTMinter",
    "ReceiptNotifier",
    "RetryPolicy",
    "SweepReport",
    "TransactionVerifier",
    "VerificationResult",
    "build_receipt_metadata",
    "call_provider",
]
