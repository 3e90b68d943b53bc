"""
Metadata Utility Tests

UTF-8 byte limits and CIP-25 payload construction.
"""

import pytest

from edufund_api.domain import NFTAttribute, NFTMetadata
from edufund_api.tests.assertions import assert_utf8_within
from edufund_api.utils.metadata import (
    MAX_STRING_BYTES,
    convert_metadata_keys,
    prepare_cip25_metadata,
    split_utf8,
    to_metadatum_string,
    truncate_utf8,
    validate_metadata_size,
)


POLICY_ID = "ab" * 28


def _metadata(**overrides) -> NFTMetadata:
    values = {
        "name": "EduFund Donation #20261019-ABCDEF012345",
        "description": "Thank you for your generous donation of 10 ADA to support education.",
        "image": "https://edufund.io/static/nft/default-receipt.png",
        "external_url": "https://edufund.io/donation/abc",
        "attributes": [NFTAttribute(trait_type="Category", value="research")],
    }
    values.update(overrides)
    return NFTMetadata(**values)


@pytest.mark.unit
class TestUtf8Limits:
    def test_truncate_keeps_short_text(self):
        assert truncate_utf8("hello", 64) == "hello"

    def test_truncate_never_splits_a_character(self):
        assert truncate_utf8("añb", 2) == "a"
        assert truncate_utf8("añb", 3) == "añ"

    def test_truncate_counts_bytes_not_characters(self):
        text = "研究" * 40  # 3 bytes per character
        truncated = truncate_utf8(text, 64)

        assert_utf8_within(truncated, 64)
        assert len(truncated) == 21

    def test_split_chunks_fit_and_rejoin(self):
        text = "Gracias por apoyar la educación 🎓 " * 10
        chunks = split_utf8(text)

        assert len(chunks) > 1
        assert "".join(chunks) == text
        for chunk in chunks:
            assert_utf8_within(chunk, MAX_STRING_BYTES)

    def test_split_empty_string(self):
        assert split_utf8("") == [""]

    def test_metadatum_string_form(self):
        assert to_metadatum_string("short") == "short"
        assert isinstance(to_metadatum_string("x" * 65), list)


@pytest.mark.unit
class TestCip25Metadata:
    def test_payload_structure(self):
        payload = prepare_cip25_metadata(721, POLICY_ID, "EDUFUND20261019ABCDEF012345", _metadata())

        assert set(payload) == {"721"}
        assert payload["721"]["version"] == "1.0"
        asset = payload["721"][POLICY_ID]["EDUFUND20261019ABCDEF012345"]
        assert asset["name"] == "EduFund Donation #20261019-ABCDEF012345"
        assert asset["mediaType"] == "image/png"
        assert asset["attributes"] == [{"trait_type": "Category", "value": "research"}]
        assert asset["external_url"] == "https://edufund.io/donation/abc"

    def test_long_strings_become_chunk_arrays(self):
        description = "Merci beaucoup pour votre don généreux " * 5
        payload = prepare_cip25_metadata(721, POLICY_ID, "EDUFUND1", _metadata(description=description))

        chunks = payload["721"][POLICY_ID]["EDUFUND1"]["description"]
        assert isinstance(chunks, list)
        assert "".join(chunks) == description

    def test_external_url_omitted_when_missing(self):
        payload = prepare_cip25_metadata(721, POLICY_ID, "EDUFUND1", _metadata(external_url=None))

        assert "external_url" not in payload["721"][POLICY_ID]["EDUFUND1"]

    def test_label_keys_become_integers(self):
        assert convert_metadata_keys({"721": {"version": "1.0"}}) == {721: {"version": "1.0"}}

    def test_valid_payload_passes_size_check(self):
        payload = prepare_cip25_metadata(721, POLICY_ID, "EDUFUND1", _metadata())

        is_valid, error = validate_metadata_size(payload)

        assert is_valid, error

    def test_oversized_payload_fails_size_check(self):
        attributes = [NFTAttribute(trait_type=f"Trait {i}", value="v" * 60) for i in range(400)]
        payload = prepare_cip25_metadata(721, POLICY_ID, "EDUFUND1", _metadata(attributes=attributes))

        is_valid, error = validate_metadata_size(payload)

        assert not is_valid
        assert "exceeds" in error
