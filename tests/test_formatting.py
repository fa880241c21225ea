"""
Amount formatting, address helpers, network metadata and the token registry.
"""

from decimal import Decimal

import pytest

from quorumvault.addresses import checksum, is_valid_address, is_zero_address, same_address
from quorumvault.constants import ZERO_ADDRESS
from quorumvault.formatting import format_units, parse_units, truncate_address
from quorumvault.networks import explorer_tx_url, get_network_name, is_supported_chain
from quorumvault.tokens import TokenInfo, TokenRegistry, TokenRegistryError

from conftest import ALICE, USDC


class TestFormatUnits:

    @pytest.mark.parametrize("raw,decimals,expected", [
        (1_000_000, 6, "1.0"),
        (1_234_500, 6, "1.2345"),
        (1, 6, "0.000001"),
        (0, 18, "0.0"),
        (10 ** 18, 18, "1.0"),
        (42, 0, "42.0"),
        (-1_500_000, 6, "-1.5"),
    ])
    def test_format(self, raw, decimals, expected):
        assert format_units(raw, decimals) == expected

    def test_negative_decimals(self):
        with pytest.raises(ValueError):
            format_units(1, -1)


class TestParseUnits:

    @pytest.mark.parametrize("amount,decimals,expected", [
        ("1.5", 6, 1_500_000),
        ("1", 18, 10 ** 18),
        ("0.000001", 6, 1),
        (" 2 ", 6, 2_000_000),
        (Decimal("3.25"), 2, 325),
        (7, 0, 7),
    ])
    def test_parse(self, amount, decimals, expected):
        assert parse_units(amount, decimals) == expected

    @pytest.mark.parametrize("amount", ["", "abc", "-1", "NaN", "Infinity", "0.0000001", 1.5])
    def test_rejected(self, amount):
        with pytest.raises(ValueError):
            parse_units(amount, 6)

    def test_inverse_of_format(self):
        assert parse_units(format_units(123_456_789, 6), 6) == 123_456_789


class TestAddresses:

    def test_truncate(self):
        assert truncate_address(USDC) == "0x036C...CF7e"
        assert truncate_address("") == ""
        assert truncate_address("0x1234") == "0x1234"

    def test_validity(self):
        assert is_valid_address(ALICE)
        assert not is_valid_address("0x1234")
        assert not is_valid_address(None)

    def test_same_address_ignores_case(self):
        assert same_address(USDC, USDC.lower())
        assert not same_address(USDC, None)
        assert not same_address("junk", "junk")

    def test_zero_address(self):
        assert is_zero_address(ZERO_ADDRESS)
        assert is_zero_address(None)
        assert not is_zero_address(ALICE)

    def test_checksum_rejects_invalid(self):
        assert checksum(USDC.lower()) == USDC
        with pytest.raises(ValueError):
            checksum("0xzz")


class TestNetworks:

    def test_names(self):
        assert get_network_name(84532) == "Base Sepolia"
        assert get_network_name("0x2105") == "Base"
        assert get_network_name(1) == "Unknown Network"

    def test_supported(self):
        assert is_supported_chain("42161")
        assert not is_supported_chain("mainnet")
        assert not is_supported_chain(None)

    def test_explorer_links(self):
        assert explorer_tx_url(8453, "0xabc") == "https://basescan.org/tx/0xabc"
        assert explorer_tx_url(1, "0xabc") is None
        assert explorer_tx_url(1, "0xabc", base_url="https://etherscan.io/") == "https://etherscan.io/tx/0xabc"


class TestTokenRegistry:

    def test_native_under_zero_address(self, tokens):
        assert tokens.get(ZERO_ADDRESS).native
        assert tokens.resolve(None).symbol == "ETH"

    def test_lookup_is_case_insensitive(self, tokens):
        assert tokens.get(USDC.lower()).decimals == 6

    def test_unknown_falls_back(self, tokens):
        info = tokens.resolve(ALICE)
        assert (info.symbol, info.decimals) == ("Tokens", 18)
        assert not tokens.is_known(ALICE)

    def test_token_context_never_resolves_to_native(self, tokens):
        for address in (None, ZERO_ADDRESS):
            info = tokens.resolve_token(address)
            assert not info.native
            assert (info.symbol, info.decimals) == ("Tokens", 18)
        assert tokens.resolve_token(USDC).symbol == "USDC"

    def test_amount_str(self, tokens):
        assert str(tokens.resolve(USDC).amount(1_500_000)) == "1.5 USDC"

    def test_zero_address_reserved(self):
        with pytest.raises(TokenRegistryError):
            TokenRegistry([TokenInfo("Fake", "FAKE", ZERO_ADDRESS, 18)])

    def test_invalid_definition(self):
        with pytest.raises(TokenRegistryError):
            TokenInfo.from_dict({"symbol": "X", "address": "0x12"})
        with pytest.raises(TokenRegistryError):
            TokenInfo("X", "X", USDC, 99)

    def test_custom_native(self):
        registry = TokenRegistry(native_symbol="CELO", native_decimals=18)
        assert registry.all_tokens()[0].symbol == "CELO"
        assert registry.count == 0
