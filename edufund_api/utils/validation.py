"""
Input Validation Helpers

Shape checks applied before any blockchain call is made.
"""

import re

import pycardano as pc


TX_HASH_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")


def is_valid_transaction_hash(tx_hash: str) -> bool:
    """Transaction hashes are 64 hex characters (32-byte blake2b digest)"""
    return bool(TX_HASH_PATTERN.match(tx_hash or ""))


def parse_cardano_address(address: str) -> pc.Address | None:
    """
    Parse a bech32 Cardano address.

    Args:
        address: Address string (addr1..., addr_test1...)

    Returns:
        Parsed address, or None if the string is not a valid address
    """
    if not address or not address.startswith("addr"):
        return None
    try:
        return pc.Address.from_primitive(address)
    except Exception:
        return None
