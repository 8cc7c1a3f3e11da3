"""
Tests for resolving the version of deployed Safes.
"""
import pytest
from unittest.mock import MagicMock
from eth_utils import keccak

from safe_protocol_sdk.exceptions import GatewayError
from safe_protocol_sdk.registry import DeploymentRegistry
from safe_protocol_sdk.version_matcher import NOT_FOUND, VersionMatch, VersionMatcher, match_code_hash

from conftest import SINGLETON_141, SINGLETON_L2_130, TEST_CHAIN_ID, TEST_SAFE_ADDRESS

CUSTOM_MASTERCOPY = "0x7777777777777777777777777777777777777777"
MASTERCOPY_CODE = bytes.fromhex("6080604052") + b"custom safe"
CODE_HASH = keccak(MASTERCOPY_CODE)


@pytest.fixture
def registry():
    return DeploymentRegistry()


def make_matcher(gateway, registry, **kwargs):
    return VersionMatcher(gateway, registry, TEST_CHAIN_ID, **kwargs)


class TestMatchCodeHash:

    def test_unlisted_hash(self, registry):
        assert match_code_hash(registry, CODE_HASH, TEST_CHAIN_ID) is None

    def test_newest_version_first(self, registry):
        registry = registry.with_fingerprints("1.1.1", l1=[CODE_HASH]).with_fingerprints("1.3.0", l1=[CODE_HASH])
        assert match_code_hash(registry, CODE_HASH, TEST_CHAIN_ID) == ("1.3.0", False)

    def test_l1_before_l2(self, registry):
        registry = registry.with_fingerprints("1.3.0", l1=[CODE_HASH], l2=[CODE_HASH])
        assert match_code_hash(registry, CODE_HASH, TEST_CHAIN_ID) == ("1.3.0", False)
        assert match_code_hash(registry, CODE_HASH, TEST_CHAIN_ID, prefer_l2=True) == ("1.3.0", True)

    def test_hex_hash(self, registry):
        registry = registry.with_fingerprints("1.2.0", l1=["0x" + CODE_HASH.hex()])
        assert match_code_hash(registry, "0x" + CODE_HASH.hex(), TEST_CHAIN_ID) == ("1.2.0", False)

    def test_chain_scoped_fingerprints(self, registry):
        registry = registry.with_fingerprints("1.4.1", l2=[CODE_HASH], chain_id=10)
        assert match_code_hash(registry, CODE_HASH, 10) == ("1.4.1", True)
        assert match_code_hash(registry, CODE_HASH, TEST_CHAIN_ID) is None


class TestVersionMatcher:

    def test_known_singleton(self, fake_gateway, registry):
        fake_gateway.set_storage(TEST_SAFE_ADDRESS, 0, bytes.fromhex(SINGLETON_141[2:]))
        result = make_matcher(fake_gateway, registry).resolve(TEST_SAFE_ADDRESS)

        assert result == VersionMatch("1.4.1", False, SINGLETON_141)
        assert not result.by_fingerprint

    def test_known_l2_singleton(self, fake_gateway, registry):
        fake_gateway.set_storage(TEST_SAFE_ADDRESS, 0, bytes.fromhex(SINGLETON_L2_130[2:]))
        result = make_matcher(fake_gateway, registry).resolve(TEST_SAFE_ADDRESS)

        assert result.version == "1.3.0"
        assert result.is_l2

    def test_custom_singleton_from_registry(self, fake_gateway, registry):
        registry = registry.with_deployment("1.2.0", chain_id=TEST_CHAIN_ID, safeSingleton=CUSTOM_MASTERCOPY)
        fake_gateway.set_storage(TEST_SAFE_ADDRESS, 0, bytes.fromhex(CUSTOM_MASTERCOPY[2:]))

        assert make_matcher(fake_gateway, registry).resolve(TEST_SAFE_ADDRESS).version == "1.2.0"

    def test_fingerprint_fallback(self, fake_gateway, registry):
        registry = registry.with_fingerprints("1.1.1", l1=[CODE_HASH])
        fake_gateway.set_storage(TEST_SAFE_ADDRESS, 0, bytes.fromhex(CUSTOM_MASTERCOPY[2:]))
        fake_gateway.set_code(CUSTOM_MASTERCOPY, MASTERCOPY_CODE)

        result = make_matcher(fake_gateway, registry).resolve(TEST_SAFE_ADDRESS)
        assert result == VersionMatch("1.1.1", False, CUSTOM_MASTERCOPY, by_fingerprint=True)

    def test_prefer_l2_hint(self, fake_gateway, registry):
        registry = registry.with_fingerprints("1.4.1", l1=[CODE_HASH], l2=[CODE_HASH])
        fake_gateway.set_storage(TEST_SAFE_ADDRESS, 0, bytes.fromhex(CUSTOM_MASTERCOPY[2:]))
        fake_gateway.set_code(CUSTOM_MASTERCOPY, MASTERCOPY_CODE)

        assert not make_matcher(fake_gateway, registry).resolve(TEST_SAFE_ADDRESS).is_l2
        assert make_matcher(fake_gateway, registry, prefer_l2=True).resolve(TEST_SAFE_ADDRESS).is_l2

    def test_copy_of_known_singleton(self, fake_gateway, registry):
        """A mastercopy with the same code as a registry singleton resolves to its version"""
        fake_gateway.set_code(SINGLETON_141, MASTERCOPY_CODE)
        fake_gateway.set_storage(TEST_SAFE_ADDRESS, 0, bytes.fromhex(CUSTOM_MASTERCOPY[2:]))
        fake_gateway.set_code(CUSTOM_MASTERCOPY, MASTERCOPY_CODE)

        result = make_matcher(fake_gateway, registry).resolve(TEST_SAFE_ADDRESS)
        assert result == VersionMatch("1.4.1", False, CUSTOM_MASTERCOPY, by_fingerprint=True)

    def test_copy_of_known_l2_singleton(self, fake_gateway, registry):
        fake_gateway.set_code(SINGLETON_L2_130, MASTERCOPY_CODE)
        fake_gateway.set_storage(TEST_SAFE_ADDRESS, 0, bytes.fromhex(CUSTOM_MASTERCOPY[2:]))
        fake_gateway.set_code(CUSTOM_MASTERCOPY, MASTERCOPY_CODE)

        result = make_matcher(fake_gateway, registry).resolve(TEST_SAFE_ADDRESS)
        assert result == VersionMatch("1.3.0", True, CUSTOM_MASTERCOPY, by_fingerprint=True)

    def test_listed_fingerprint_wins_over_singleton_code(self, fake_gateway, registry):
        registry = registry.with_fingerprints("1.1.1", l1=[CODE_HASH])
        fake_gateway.set_code(SINGLETON_141, MASTERCOPY_CODE)
        fake_gateway.set_storage(TEST_SAFE_ADDRESS, 0, bytes.fromhex(CUSTOM_MASTERCOPY[2:]))
        fake_gateway.set_code(CUSTOM_MASTERCOPY, MASTERCOPY_CODE)

        assert make_matcher(fake_gateway, registry).resolve(TEST_SAFE_ADDRESS).version == "1.1.1"

    def test_unknown_code_is_not_found(self, fake_gateway, registry):
        fake_gateway.set_storage(TEST_SAFE_ADDRESS, 0, bytes.fromhex(CUSTOM_MASTERCOPY[2:]))
        fake_gateway.set_code(CUSTOM_MASTERCOPY, MASTERCOPY_CODE)

        result = make_matcher(fake_gateway, registry).resolve(TEST_SAFE_ADDRESS)
        assert result is NOT_FOUND
        assert not result
        assert repr(result) == "NOT_FOUND"

    def test_empty_code_is_not_found(self, fake_gateway, registry):
        assert make_matcher(fake_gateway, registry).resolve(TEST_SAFE_ADDRESS) is NOT_FOUND

    def test_unknown_mastercopy_logged_once(self, fake_gateway, registry, mock_logger):
        fake_gateway.set_storage(TEST_SAFE_ADDRESS, 0, bytes.fromhex(CUSTOM_MASTERCOPY[2:]))
        fake_gateway.set_code(CUSTOM_MASTERCOPY, MASTERCOPY_CODE)
        matcher = make_matcher(fake_gateway, registry, logger=mock_logger)

        matcher.resolve(TEST_SAFE_ADDRESS)
        matcher.resolve(TEST_SAFE_ADDRESS)
        assert mock_logger.warning.call_count == 1

    def test_gateway_error_propagates(self, registry):
        gateway = MagicMock()
        gateway.read_storage.side_effect = GatewayError("read_storage failed", operation="read_storage")

        with pytest.raises(GatewayError) as exc_info:
            make_matcher(gateway, registry).resolve(TEST_SAFE_ADDRESS)
        assert exc_info.value.operation == "read_storage"
