"""
Time-Locked Minting Policy

Native script policy used for receipt NFTs: minting requires the policy key's
signature and must happen before ``expiry_slot``. Once the slot passes, no
asset can ever be minted under the policy again.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import pycardano as pc


@dataclass(frozen=True)
class TimeLockedPolicy:
    """ScriptAll[ScriptPubkey(key), InvalidHereAfter(expiry_slot)]"""

    signing_key: pc.PaymentSigningKey
    expiry_slot: int

    @classmethod
    def generate(cls, signing_key: pc.PaymentSigningKey, current_slot: int, ttl_slots: int) -> "TimeLockedPolicy":
        """Create a policy that expires ``ttl_slots`` after ``current_slot``"""
        return cls(signing_key=signing_key, expiry_slot=current_slot + ttl_slots)

    @property
    def key_hash(self) -> pc.VerificationKeyHash:
        return self.signing_key.to_verification_key().hash()

    @property
    def script(self) -> pc.ScriptAll:
        return pc.ScriptAll([pc.ScriptPubkey(self.key_hash), pc.InvalidHereAfter(self.expiry_slot)])

    @property
    def script_hash(self) -> pc.ScriptHash:
        return self.script.hash()

    @property
    def policy_id(self) -> str:
        """Policy ID as 56 hex characters"""
        return self.script_hash.payload.hex()

    def is_expired(self, current_slot: int) -> bool:
        """Minting is only valid strictly before the expiry slot"""
        return current_slot >= self.expiry_slot

    def save(self, path: str | Path, network: str) -> None:
        """
        Persist the policy description (not the signing key) as JSON.

        Args:
            path: Target file
            network: Network name, recorded for operators
        """
        data = {
            "policy_id": self.policy_id,
            "expiry_slot": self.expiry_slot,
            "key_hash": self.key_hash.payload.hex(),
            "network": network,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))

    @classmethod
    def load(cls, path: str | Path, signing_key: pc.PaymentSigningKey) -> "TimeLockedPolicy":
        """
        Load a policy saved with :meth:`save`.

        Raises:
            ValueError: If the file was written for a different signing key
        """
        data = json.loads(Path(path).read_text())
        policy = cls(signing_key=signing_key, expiry_slot=int(data["expiry_slot"]))

        if data.get("key_hash") and data["key_hash"] != policy.key_hash.payload.hex():
            raise ValueError(f"Policy file {path} does not belong to the configured minting key")
        if data.get("policy_id") and data["policy_id"] != policy.policy_id:
            raise ValueError(f"Policy file {path} has policy ID {data['policy_id']}, expected {policy.policy_id}")

        return policy
