"""
Receipt Notifier

Tells the donor their receipt is ready. Delivery (email or otherwise) lives
outside this service; the default notifier only logs.
"""

import logging
from abc import ABC, abstractmethod

from edufund_api.domain import Donation, NFTReceipt


logger = logging.getLogger(__name__)


class ReceiptNotifier(ABC):
    @abstractmethod
    async def notify_receipt(self, donation: Donation, receipt: NFTReceipt | None) -> None:
        """Send the donation receipt; ``receipt`` is None when no NFT was minted yet"""


class LoggingReceiptNotifier(ReceiptNotifier):
    async def notify_receipt(self, donation: Donation, receipt: NFTReceipt | None) -> None:
        if receipt is None:
            logger.info(f"Receipt #{donation.receipt_number} ready for donor {donation.donor_id} (NFT pending)")
        else:
            logger.info(
                f"Receipt #{donation.receipt_number} ready for donor {donation.donor_id} (NFT {receipt.asset_id})"
            )
