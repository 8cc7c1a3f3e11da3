"""
Pytest fixtures for the Safe protocol SDK tests.
"""
import pytest
from typing import Any, Callable, Dict, Tuple, Union
from unittest.mock import MagicMock

from eth_abi import encode
from eth_account import Account as EthAccount
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from safe_protocol_sdk._rate_limited_log import clear_rate_limit_cache
from safe_protocol_sdk.config import DeploymentConfig
from safe_protocol_sdk.exceptions import GatewayError
from safe_protocol_sdk.models import Account
from safe_protocol_sdk.signer import LocalSigner

# Deterministic owner keys
OWNER_KEYS = [
    "0x" + "11" * 32,
    "0x" + "22" * 32,
    "0x" + "33" * 32,
    "0x" + "44" * 32,
]
TEST_SAFE_ADDRESS = "0x1234567890123456789012345678901234567890"
TEST_NESTED_SAFE_ADDRESS = "0x0987654321098765432109876543210987654321"
TEST_CHAIN_ID = 11155111

SINGLETON_141 = to_checksum_address("0x41675c099f32341bf84bfc5382af534df5c7461a")
SINGLETON_L2_130 = to_checksum_address("0x3e5c63644e683549055b9be8653de26e0b4cd36e")
MULTI_SEND_141 = to_checksum_address("0x38869bf66a61cf6bdb996a6ae40d5853fd43b526")
MULTI_SEND_CALL_ONLY_141 = to_checksum_address("0x9641d764fc13c8b624c04430c7356c1c7c8102e2")


def selector(signature: str) -> bytes:
    return function_signature_to_4byte_selector(signature)


Handler = Union[bytes, Exception, Callable[[bytes], bytes]]


class FakeGateway:
    """
    In-memory ChainGateway.

    Calls are answered by handlers registered per (address, selector); a
    handler is raw return data, an exception to raise, or a callable taking
    the calldata.
    """

    def __init__(self, chain_id: int = TEST_CHAIN_ID):
        self.chain_id = chain_id
        self.storage: Dict[Tuple[str, int], bytes] = {}
        self.code: Dict[str, bytes] = {}
        self.handlers: Dict[Tuple[str, bytes], Handler] = {}
        self.calls = []
        self.sent = []
        self.account = None
        self.receipt: Dict[str, Any] = {
            "transactionHash": bytes.fromhex("ab" * 32),
            "blockNumber": 12345,
            "blockHash": bytes.fromhex("cd" * 32),
            "status": 1,
            "gasUsed": 85000,
            "logs": [],
        }

    def set_storage(self, address: str, slot: int, value: bytes) -> None:
        self.storage[(address.lower(), slot)] = value.rjust(32, b"\x00")

    def set_code(self, address: str, code: bytes) -> None:
        self.code[address.lower()] = code

    def on_call(self, address: str, signature: str, handler: Handler) -> None:
        self.handlers[(address.lower(), selector(signature))] = handler

    def read_storage(self, address: str, slot: int) -> bytes:
        return self.storage.get((address.lower(), slot), b"\x00" * 32)

    def read_code(self, address: str) -> bytes:
        return self.code.get(address.lower(), b"")

    def call(self, to: str, data: bytes) -> bytes:
        self.calls.append((to, data))
        handler = self.handlers.get((to.lower(), bytes(data[:4])))
        if handler is None:
            raise GatewayError(f"call reverted: no handler for {to}", operation="call", reverted=True)
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(bytes(data))
        return handler

    def send_transaction(self, tx: Dict[str, Any]) -> Dict[str, Any]:
        self.sent.append(tx)
        receipt = dict(self.receipt)
        receipt["from"] = tx.get("from")
        receipt["to"] = tx.get("to")
        return receipt


def install_safe(
    gateway: FakeGateway,
    account: Account,
    singleton: str = SINGLETON_141,
    approved: Tuple[str, ...] = ()
) -> None:
    """Make ``gateway`` answer the reads of a deployed Safe"""
    gateway.set_storage(account.address, 0, bytes.fromhex(singleton[2:]))
    gateway.on_call(account.address, "getOwners()", encode(["address[]"], [list(account.owners)]))
    gateway.on_call(account.address, "getThreshold()", encode(["uint256"], [account.threshold]))
    gateway.on_call(account.address, "nonce()", encode(["uint256"], [account.nonce]))

    approvers = {owner.lower() for owner in approved}

    def approved_hashes(data: bytes) -> bytes:
        owner = "0x" + data[4 + 12:4 + 32].hex()
        return encode(["uint256"], [1 if owner in approvers else 0])

    gateway.on_call(account.address, "approvedHashes(address,bytes32)", approved_hashes)


@pytest.fixture(autouse=True)
def _reset_caches():
    """Every test starts with a fresh deployment cache and log rate limiter"""
    DeploymentConfig.reset_cache()
    clear_rate_limit_cache()
    yield
    DeploymentConfig.reset_cache()
    clear_rate_limit_cache()


@pytest.fixture
def owner_accounts():
    return [EthAccount.from_key(key) for key in OWNER_KEYS]


@pytest.fixture
def owner_signers(owner_accounts):
    return [LocalSigner(account) for account in owner_accounts]


@pytest.fixture
def safe_account(owner_accounts):
    """2-of-3 Safe owned by the first three test keys"""
    return Account(
        address=TEST_SAFE_ADDRESS,
        owners=[account.address for account in owner_accounts[:3]],
        threshold=2,
        nonce=7,
        chain_id=TEST_CHAIN_ID,
        version="1.4.1",
    )


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def mock_logger():
    return MagicMock()
