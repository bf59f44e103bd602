"""Tests for context accessors on signed claims."""

import pytest

from claimgate.engine.context import (
    get_context_address_from_proof,
    get_context_message_from_proof,
    get_provider_from_proof,
)
from claimgate.errors import ContextTooShortError, InvalidContextAddressError
from claimgate.models.claim import ClaimInfo, SignedClaim


ADDRESS = "0x" + "aB" * 20


def _claim(context: str) -> SignedClaim:
    return SignedClaim(
        claim_info=ClaimInfo(provider="http", parameters="{}", context=context),
        owner="0x" + "00" * 20,
        timestamp_s=1,
        epoch_id=1,
        signatures=(),
    )


class TestContext:
    def test_provider(self) -> None:
        assert get_provider_from_proof(_claim("")) == "http"

    def test_address_returned_verbatim(self) -> None:
        assert get_context_address_from_proof(_claim(ADDRESS + "hello")) == ADDRESS

    def test_message_is_remainder(self) -> None:
        assert get_context_message_from_proof(_claim(ADDRESS + "hello")) == "hello"

    def test_exact_length_has_empty_message(self) -> None:
        assert get_context_message_from_proof(_claim(ADDRESS)) == ""

    def test_too_short(self) -> None:
        with pytest.raises(ContextTooShortError):
            get_context_address_from_proof(_claim(ADDRESS[:-1]))
        with pytest.raises(ContextTooShortError):
            get_context_message_from_proof(_claim(""))

    def test_prefix_not_an_address(self) -> None:
        with pytest.raises(InvalidContextAddressError):
            get_context_address_from_proof(_claim("z" * 42 + "message"))
