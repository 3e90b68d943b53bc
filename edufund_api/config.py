"""
API Configuration

Centralized settings for the FastAPI application.
API metadata is hardcoded, while environment-specific settings load from .env file.
"""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


# Get the project root directory (one level up from edufund_api/)
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """
    Application settings for the EduFund Donations API

    API metadata (title, description, version, contact) are hardcoded.
    Environment-specific settings are loaded from .env file.
    """

    # ============================================================================
    # API Metadata (hardcoded - versioned with code)
    # ============================================================================

    api_title: str = "EduFund Donations API"
    api_description: str = (
        "Donation lifecycle API for the EduFund platform. "
        "Verifies donor payments on the Cardano blockchain, credits student research "
        "projects and mints an NFT receipt for every confirmed donation."
    )
    api_version: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # Contact information
    contact_name: str = "EduFund"
    contact_url: str = "https://edufund.io"

    # ============================================================================
    # Environment Settings (loaded from .env)
    # ============================================================================

    environment: str = "development"  # development, staging, production
    log_level: str = "INFO"

    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "edufund"

    # Cardano / Blockfrost
    network: str = "testnet"  # testnet, mainnet
    blockfrost_project_id: str = ""
    recipient_address: str = ""  # Platform address donors pay into

    # Donation rules
    min_donation_lovelace: int = 1_000_000  # 1 ADA
    max_message_length: int = 500

    # NFT receipts
    nft_asset_name_prefix: str = "EDUFUND"
    nft_metadata_label: int = 721  # CIP-25
    nft_default_image_url: str = "https://edufund.io/static/nft/default-receipt.png"
    nft_external_url_base: str = "https://edufund.io/donation"
    nft_max_description_bytes: int = 256
    minting_skey_path: str = str(PROJECT_ROOT / "keys" / "minting.skey")
    nft_policy_path: str = str(PROJECT_ROOT / "keys" / "nft-policy.json")
    nft_policy_ttl_slots: int = 31_536_000  # ~1 year of 1s slots

    # Provider calls and retries
    provider_timeout_seconds: float = 20.0
    verify_max_attempts: int = 3
    mint_max_attempts: int = 5
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0
    mint_claim_lease_seconds: int = 600
    # Sweep waits base * 2^(attempts-1) seconds after a failed mint, capped at max
    mint_retry_base_delay_seconds: float = 300.0
    mint_retry_max_delay_seconds: float = 3600.0
    mint_sweep_interval_minutes: int = 5

    # Operator endpoints (manual mint retry, stuck queue)
    operator_api_key: str = ""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"), env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @property
    def contact(self) -> dict[str, str]:
        """FastAPI contact information"""
        return {"name": self.contact_name, "url": self.contact_url}


# ============================================================================
# Global settings instance
# ============================================================================

settings = Settings()
