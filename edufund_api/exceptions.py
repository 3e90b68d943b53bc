"""
Donation Errors

Exception taxonomy shared by the services and the routers.

- ValidationError / NotFoundError / ConflictError: returned to the caller
  synchronously, nothing external has been touched.
- VerificationFailure: the on-chain payment does not match the donation.
- ProviderUnavailable: the ledger provider failed or timed out; the outcome of
  the call is unknown and it is safe to retry.
- PolicyExpired / MintFailure / MalformedMetadata: minting problems. They never
  undo a confirmed donation.
"""


class DonationError(Exception):
    """Base exception for donation lifecycle errors"""

    pass


class ValidationError(DonationError):
    """Malformed input, rejected before any external call"""

    pass


class NotFoundError(DonationError):
    """Donation or project does not exist"""

    pass


class ConflictError(DonationError):
    """State transition attempted from the wrong state, or duplicate submission"""

    pass


class VerificationFailure(DonationError):
    """On-chain transaction does not pay the expected amount to the recipient"""

    pass


class ProviderUnavailable(DonationError):
    """Transient ledger provider fault (network error, rate limit, timeout)"""

    pass


class PolicyExpired(DonationError):
    """Minting policy time window has passed; a new policy is required"""

    def __init__(self, expiry_slot: int, current_slot: int):
        self.expiry_slot = expiry_slot
        self.current_slot = current_slot
        super().__init__(f"Minting policy expired at slot {expiry_slot} (current slot {current_slot})")


class MintFailure(DonationError):
    """Minting failed for a reason not covered by the other errors"""

    pass


class MalformedMetadata(MintFailure):
    """Receipt metadata cannot be encoded within ledger limits"""

    pass
