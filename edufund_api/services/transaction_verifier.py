"""
Transaction Verifier

Checks that a donor's payment transaction exists on-chain and pays at least
the donated amount to the platform's recipient address. Read-only: it never
writes to the ledger or the database.
"""

import logging

from pydantic import BaseModel

from edufund_api.chain.ledger_provider import LedgerProvider
from edufund_api.enums import VerificationStatus
from edufund_api.services.retry import call_provider


logger = logging.getLogger(__name__)


class VerificationResult(BaseModel):
    verified: bool
    status: VerificationStatus
    message: str
    block_height: int | None = None
    confirmations: int | None = None


class TransactionVerifier:
    """Verifies donor payments against the ledger"""

    def __init__(self, ledger: LedgerProvider, timeout: float = 20.0):
        self.ledger = ledger
        self.timeout = timeout

    async def verify(self, tx_hash: str, expected_amount: int, recipient_address: str) -> VerificationResult:
        """
        Verify a payment transaction.

        Args:
            tx_hash: Payment transaction hash
            expected_amount: Minimum lovelace the recipient must receive
            recipient_address: Platform address the donation was sent to

        Returns:
            ``pending`` while the transaction is unknown or not yet in a block,
            ``failed`` when it exists but does not match the donation,
            ``confirmed`` otherwise

        Raises:
            ProviderUnavailable: Provider failure or timeout; outcome unknown
        """
        tx = await call_provider(self.ledger.get_transaction(tx_hash), self.timeout)

        if tx is None or not tx.block:
            logger.info(f"Transaction {tx_hash} not yet in a block")
            return VerificationResult(
                verified=False,
                status=VerificationStatus.PENDING,
                message="Transaction not yet confirmed on blockchain",
            )

        if tx.total_output_lovelace < expected_amount:
            logger.warning(
                f"Transaction {tx_hash} outputs {tx.total_output_lovelace} lovelace, expected {expected_amount}"
            )
            return VerificationResult(
                verified=False,
                status=VerificationStatus.FAILED,
                message=f"Amount mismatch: expected {expected_amount} lovelace, got {tx.total_output_lovelace}",
                block_height=tx.block_height,
            )

        if not tx.has_output_to(recipient_address):
            logger.warning(f"Transaction {tx_hash} has no output to the recipient address")
            return VerificationResult(
                verified=False,
                status=VerificationStatus.FAILED,
                message="Recipient address mismatch",
                block_height=tx.block_height,
            )

        received = tx.lovelace_to(recipient_address)
        if received < expected_amount:
            logger.warning(f"Transaction {tx_hash} pays recipient {received} lovelace, expected {expected_amount}")
            return VerificationResult(
                verified=False,
                status=VerificationStatus.FAILED,
                message=f"Amount mismatch: recipient received {received} lovelace, expected {expected_amount}",
                block_height=tx.block_height,
            )

        return VerificationResult(
            verified=True,
            status=VerificationStatus.CONFIRMED,
            message="Transaction verified successfully",
            block_height=tx.block_height,
            confirmations=1,
        )
