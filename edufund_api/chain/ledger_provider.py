"""
Ledger Provider

Black-box access to the Cardano ledger: look up transactions and assets,
validate addresses, read the current slot and submit receipt mint transactions.

``LedgerProvider`` is the contract the services depend on.
``BlockfrostLedgerProvider`` implements it with Blockfrost for queries and
PyCardano for building and signing. Instances are constructed explicitly and
go through ``initialize()`` before use; there is no module-level singleton.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import pycardano as pc
from blockfrost import ApiError
from pycardano.utils import min_lovelace_post_alonzo

from edufund_api.chain.chain_context import CardanoChainContext
from edufund_api.chain.policy import TimeLockedPolicy
from edufund_api.exceptions import MintFailure, ProviderUnavailable
from edufund_api.utils.metadata import prepare_custom_metadata
from edufund_api.utils.validation import parse_cardano_address


logger = logging.getLogger(__name__)

# Validity window of a single mint transaction
MINT_TX_VALIDITY_SLOTS = 3_600


# ============================================================================
# Ledger Data
# ============================================================================


@dataclass
class LedgerOutput:
    address: str
    lovelace: int
    assets: dict[str, int] = field(default_factory=dict)


@dataclass
class LedgerTransaction:
    """A transaction as seen by the indexer"""

    tx_hash: str
    block: str | None
    block_height: int | None = None
    slot: int | None = None
    outputs: list[LedgerOutput] = field(default_factory=list)

    @property
    def total_output_lovelace(self) -> int:
        return sum(output.lovelace for output in self.outputs)

    def has_output_to(self, address: str) -> bool:
        return any(output.address == address for output in self.outputs)

    def lovelace_to(self, address: str) -> int:
        """Total lovelace credited to ``address`` across all outputs"""
        return sum(output.lovelace for output in self.outputs if output.address == address)


@dataclass
class LedgerAsset:
    asset_id: str
    policy_id: str
    asset_name_hex: str
    quantity: int
    initial_mint_tx_hash: str | None = None


@dataclass
class MintRequest:
    """Everything needed to mint one receipt NFT"""

    policy: TimeLockedPolicy
    asset_name: str
    metadata: dict[str, Any]
    owner_address: str
    current_slot: int


# ============================================================================
# Provider Contract
# ============================================================================


class LedgerProvider(ABC):
    """Contract for the external ledger provider"""

    @abstractmethod
    async def initialize(self) -> None:
        """Connect to the ledger and load the minting policy"""

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """True once ``initialize()`` has completed"""

    @property
    @abstractmethod
    def policy(self) -> TimeLockedPolicy:
        """Active receipt minting policy"""

    @abstractmethod
    async def get_transaction(self, tx_hash: str) -> LedgerTransaction | None:
        """Transaction by hash, or None if the ledger does not know it yet"""

    @abstractmethod
    def verify_address(self, address: str) -> bool:
        """Whether ``address`` is a valid address on the configured network"""

    @abstractmethod
    async def current_slot(self) -> int:
        """Slot of the latest block"""

    @abstractmethod
    async def get_asset(self, asset_id: str) -> LedgerAsset | None:
        """Native asset by ID (policy ID + hex asset name), or None if never minted"""

    @abstractmethod
    async def submit_mint_transaction(self, request: MintRequest) -> str:
        """Build, sign and submit a mint transaction; returns its hash"""

    async def close(self) -> None:
        """Release provider resources"""


# ============================================================================
# Blockfrost Implementation
# ============================================================================


class BlockfrostLedgerProvider(LedgerProvider):
    """
    Ledger provider backed by Blockfrost and PyCardano.

    Blockfrost's client is synchronous, so every call runs in a worker thread.
    Transport failures, rate limits and 5xx responses surface as
    ``ProviderUnavailable``; a ledger rejection of a mint surfaces as
    ``MintFailure``.
    """

    def __init__(
        self,
        network: str,
        blockfrost_project_id: str,
        minting_skey_path: str,
        policy_path: str,
        policy_ttl_slots: int,
    ):
        self.network = network
        self.blockfrost_project_id = blockfrost_project_id
        self.minting_skey_path = Path(minting_skey_path)
        self.policy_path = Path(policy_path)
        self.policy_ttl_slots = policy_ttl_slots

        self._chain_context: CardanoChainContext | None = None
        self._signing_key: pc.PaymentSigningKey | None = None
        self._policy: TimeLockedPolicy | None = None
        self._ready = False

    async def initialize(self) -> None:
        """
        Connect to Blockfrost, load the minting key and load or create the policy.

        A new policy is generated (and written to ``policy_path``) only when no
        policy file exists yet.

        Raises:
            ValueError: Missing configuration or mismatched policy file
            ProviderUnavailable: Blockfrost unreachable while generating a policy
        """
        if self._ready:
            return

        logger.info(f"Initializing Blockfrost ledger provider (network={self.network})")
        self._chain_context = CardanoChainContext(self.network, self.blockfrost_project_id)

        if not self.minting_skey_path.exists():
            raise ValueError(f"Minting signing key not found: {self.minting_skey_path}")
        self._signing_key = pc.PaymentSigningKey.load(str(self.minting_skey_path))

        if self.policy_path.exists():
            self._policy = TimeLockedPolicy.load(self.policy_path, self._signing_key)
            logger.info(f"Loaded NFT policy {self._policy.policy_id} (expires at slot {self._policy.expiry_slot})")
        else:
            slot = await self._call("block_latest", self._chain_context.get_api().block_latest)
            self._policy = TimeLockedPolicy.generate(self._signing_key, slot.slot, self.policy_ttl_slots)
            self._policy.save(self.policy_path, self.network)
            logger.info(f"Generated NFT policy {self._policy.policy_id} (expires at slot {self._policy.expiry_slot})")

        self._ready = True
        logger.info("Ledger provider initialized successfully")

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def policy(self) -> TimeLockedPolicy:
        self._ensure_ready()
        return self._policy

    @property
    def chain_context(self) -> CardanoChainContext:
        self._ensure_ready()
        return self._chain_context

    def _ensure_ready(self) -> None:
        if not self._ready:
            raise ProviderUnavailable("Ledger provider not initialized")

    async def _call(self, operation: str, fn: Callable, *args, not_found_ok: bool = False) -> Any:
        """
        Run a blocking Blockfrost call in a worker thread.

        Returns None for a 404 when ``not_found_ok`` is set.
        """
        try:
            return await asyncio.to_thread(fn, *args)
        except ApiError as e:
            if not_found_ok and e.status_code == 404:
                return None
            logger.warning(f"Blockfrost {operation} failed with status {e.status_code}: {e.message}")
            raise ProviderUnavailable(f"Ledger provider error during {operation}: {e.status_code}") from e
        except Exception as e:
            logger.warning(f"Blockfrost {operation} failed: {str(e)}")
            raise ProviderUnavailable(f"Ledger provider unreachable during {operation}: {str(e)}") from e

    async def get_transaction(self, tx_hash: str) -> LedgerTransaction | None:
        self._ensure_ready()
        api = self._chain_context.get_api()

        tx = await self._call("transaction", api.transaction, tx_hash, not_found_ok=True)
        if tx is None:
            return None

        utxos = await self._call("transaction_utxos", api.transaction_utxos, tx_hash, not_found_ok=True)
        outputs = []
        for utxo in getattr(utxos, "outputs", None) or []:
            lovelace = 0
            assets = {}
            for amount in utxo.amount:
                if amount.unit == "lovelace":
                    lovelace += int(amount.quantity)
                else:
                    assets[amount.unit] = int(amount.quantity)
            outputs.append(LedgerOutput(address=utxo.address, lovelace=lovelace, assets=assets))

        return LedgerTransaction(
            tx_hash=tx.hash,
            block=getattr(tx, "block", None),
            block_height=getattr(tx, "block_height", None),
            slot=getattr(tx, "slot", None),
            outputs=outputs,
        )

    def verify_address(self, address: str) -> bool:
        parsed = parse_cardano_address(address)
        if parsed is None:
            return False
        expected = pc.Network.MAINNET if self.network == "mainnet" else pc.Network.TESTNET
        return parsed.network == expected

    async def current_slot(self) -> int:
        self._ensure_ready()
        block = await self._call("block_latest", self._chain_context.get_api().block_latest)
        return int(block.slot)

    async def get_asset(self, asset_id: str) -> LedgerAsset | None:
        self._ensure_ready()
        asset = await self._call("asset", self._chain_context.get_api().asset, asset_id, not_found_ok=True)
        if asset is None:
            return None
        return LedgerAsset(
            asset_id=asset.asset,
            policy_id=asset.policy_id,
            asset_name_hex=asset.asset_name or "",
            quantity=int(asset.quantity),
            initial_mint_tx_hash=getattr(asset, "initial_mint_tx_hash", None),
        )

    async def submit_mint_transaction(self, request: MintRequest) -> str:
        """
        Mint one unit of ``request.asset_name`` to ``request.owner_address``.

        The minting key also pays the fees and the min-ADA of the receipt output.

        Raises:
            MintFailure: Ledger rejected the transaction or the minting wallet is underfunded
            ProviderUnavailable: Blockfrost failed or was unreachable
        """
        self._ensure_ready()
        try:
            tx_hash = await asyncio.to_thread(self._build_and_submit_mint, request)
        except (pc.TransactionFailedException, pc.UTxOSelectionException, pc.InsufficientUTxOBalanceException) as e:
            logger.error(f"Mint transaction rejected for {request.asset_name}: {str(e)}")
            raise MintFailure(f"Mint transaction rejected: {str(e)}") from e
        except ApiError as e:
            if e.status_code == 400:
                raise MintFailure(f"Mint transaction rejected: {e.message}") from e
            raise ProviderUnavailable(f"Ledger provider error during mint: {e.status_code}") from e
        except Exception as e:
            raise ProviderUnavailable(f"Ledger provider unreachable during mint: {str(e)}") from e

        logger.info(f"Submitted mint transaction {tx_hash} for asset {request.asset_name}")
        return tx_hash

    def _build_and_submit_mint(self, request: MintRequest) -> str:
        context = self._chain_context.get_context()
        policy = request.policy

        payer_address = pc.Address(
            payment_part=self._signing_key.to_verification_key().hash(),
            network=self._chain_context.cardano_network,
        )

        receipt = pc.MultiAsset({policy.script_hash: pc.Asset({pc.AssetName(request.asset_name.encode("utf-8")): 1})})

        builder = pc.TransactionBuilder(context)
        builder.add_input_address(payer_address)
        builder.mint = receipt
        builder.native_scripts = [policy.script]
        builder.ttl = min(policy.expiry_slot, request.current_slot + MINT_TX_VALIDITY_SLOTS)
        builder.auxiliary_data = prepare_custom_metadata(request.metadata)

        output = pc.TransactionOutput(pc.Address.from_primitive(request.owner_address), pc.Value(0, receipt))
        output.amount.coin = min_lovelace_post_alonzo(output, context)
        builder.add_output(output)

        signed_tx = builder.build_and_sign([self._signing_key], change_address=payer_address)
        context.submit_tx(signed_tx)

        return str(signed_tx.id)

    async def close(self) -> None:
        self._ready = False
