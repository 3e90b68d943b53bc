"""
Transaction Metadata Utilities

This module prepares NFT receipt metadata for the ledger:
- UTF-8 byte-accurate truncation and chunking (every metadata string is capped
  at 64 bytes on-chain, and multi-byte characters count for more than one)
- CIP-25 payload construction (label 721)
- PyCardano AuxiliaryData conversion and size validation

Reference:
- CIP-25: https://cips.cardano.org/cips/cip25/
- Cardano Metadata: https://developers.cardano.org/docs/transaction-metadata/
"""

from typing import Any

import pycardano as pc

from edufund_api.domain import NFTMetadata


# Metadata validation constants
MAX_METADATA_SIZE = 16_384  # 16KB max per transaction
MAX_STRING_BYTES = 64  # Hard ledger limit per metadata string
MAX_ASSET_NAME_BYTES = 32  # Hard ledger limit per asset name


def truncate_utf8(text: str, max_bytes: int) -> str:
    """
    Truncate text so its UTF-8 encoding fits in ``max_bytes``.

    Never splits a multi-byte character: a partial trailing sequence is dropped.

    Example:
        >>> truncate_utf8("añb", 2)
        'a'
    """
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


def split_utf8(text: str, max_bytes: int = MAX_STRING_BYTES) -> list[str]:
    """
    Split text into chunks whose UTF-8 encodings are each at most ``max_bytes``.

    Args:
        text: Text to split
        max_bytes: Maximum bytes per chunk (default 64)

    Returns:
        List of chunks, in order, that join back to ``text``
    """
    chunks = []
    current = []
    current_bytes = 0

    for char in text:
        char_bytes = len(char.encode("utf-8"))
        if current and current_bytes + char_bytes > max_bytes:
            chunks.append("".join(current))
            current = []
            current_bytes = 0
        current.append(char)
        current_bytes += char_bytes

    if current or not chunks:
        chunks.append("".join(current))

    return chunks


def to_metadatum_string(text: str) -> str | list[str]:
    """Plain string when it fits the 64-byte limit, CIP-25 string array otherwise"""
    if len(text.encode("utf-8")) <= MAX_STRING_BYTES:
        return text
    return split_utf8(text)


def convert_metadata_keys(metadata: dict) -> dict:
    """
    Convert string keys to integers for PyCardano metadata.

    PyCardano requires all top-level metadata keys to be integers. This function
    recursively converts string representations of integers to actual integers.

    Example:
        >>> convert_metadata_keys({"721": {"version": "1.0"}})
        {721: {'version': '1.0'}}
    """

    def convert_dict(d: Any) -> Any:
        if isinstance(d, dict):
            return {
                (int(k) if isinstance(k, str) and k.isdigit() else k): convert_dict(v)
                for k, v in d.items()
            }
        elif isinstance(d, list):
            return [convert_dict(item) for item in d]
        return d

    return convert_dict(metadata)


def prepare_cip25_metadata(
    label: int,
    policy_id: str,
    asset_name: str,
    metadata: NFTMetadata,
) -> dict:
    """
    Build the CIP-25 metadata payload for a single receipt NFT.

    Args:
        label: Metadata label (721 for CIP-25)
        policy_id: Minting policy ID (hex)
        asset_name: Asset name as UTF-8 text
        metadata: Receipt metadata

    Returns:
        Metadata dictionary ready for ``prepare_custom_metadata``

    CIP-25 Format:
        {
            "721": {
                "<policy_id>": {
                    "<asset_name>": {"name": ..., "image": ..., ...}
                },
                "version": "1.0"
            }
        }
    """
    asset_metadata: dict[str, Any] = {
        "name": to_metadatum_string(metadata.name),
        "description": to_metadatum_string(metadata.description),
        "image": to_metadatum_string(metadata.image),
        "mediaType": "image/png",
        "attributes": [
            {"trait_type": to_metadatum_string(a.trait_type), "value": to_metadatum_string(a.value)}
            for a in metadata.attributes
        ],
    }
    if metadata.external_url:
        asset_metadata["external_url"] = to_metadatum_string(metadata.external_url)

    return {
        str(label): {
            policy_id: {asset_name: asset_metadata},
            "version": "1.0",
        }
    }


def prepare_custom_metadata(metadata_dict: dict) -> pc.AuxiliaryData:
    """
    Wrap a metadata dictionary into PyCardano auxiliary data.

    Args:
        metadata_dict: Dictionary with metadata structure.
                      Keys can be string numbers (will be converted to int)

    Returns:
        AuxiliaryData ready to attach to transaction
    """
    converted_metadata = convert_metadata_keys(metadata_dict)

    metadata_obj = pc.Metadata(converted_metadata)
    alonzo_metadata = pc.AlonzoMetadata(metadata=metadata_obj)

    return pc.AuxiliaryData(alonzo_metadata)


def validate_metadata_size(metadata: dict) -> tuple[bool, str]:
    """
    Validate that metadata doesn't exceed Cardano limits.

    Args:
        metadata: Metadata dictionary to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        aux_data = prepare_custom_metadata(metadata)
        cbor_size = len(aux_data.to_cbor())

        if cbor_size > MAX_METADATA_SIZE:
            return False, f"Metadata size ({cbor_size} bytes) exceeds maximum ({MAX_METADATA_SIZE} bytes)"

        return True, ""
    except Exception as e:
        return False, f"Metadata validation error: {str(e)}"
