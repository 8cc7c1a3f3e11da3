"""
Chain access used by the SDK.

Everything that touches a node goes through a ChainGateway, so the hashing
and encoding code can be used and tested without one.
"""
import logging
import urllib.parse
from typing import Any, Dict, Optional, Protocol, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import ContractLogicError

from .exceptions import GatewayError, ValidationError
from .utils import checksum_address, to_hex

DEFAULT_RECEIPT_TIMEOUT = 120


class ChainGateway(Protocol):
    """Protocol for chain readers and transaction senders"""

    chain_id: int

    def read_storage(self, address: str, slot: int) -> bytes:
        """Return the 32-byte word stored at ``slot``"""
        ...

    def read_code(self, address: str) -> bytes:
        """Return the runtime bytecode at ``address`` (empty if none)"""
        ...

    def call(self, to: str, data: bytes) -> bytes:
        """Execute a read-only call and return the raw result"""
        ...

    def send_transaction(self, tx: Dict[str, Any]) -> Dict[str, Any]:
        """Submit a transaction and return its receipt"""
        ...


def validate_rpc_url(rpc_url: str) -> None:
    """
    Raises:
        ValidationError: If the URL does not use https and is not local
    """
    parsed = urllib.parse.urlparse(rpc_url)
    host = parsed.netloc.split(':')[0] if parsed.netloc else ''
    is_local = host in ('localhost', '127.0.0.1')
    if parsed.scheme != 'https' and not is_local:
        raise ValidationError(f"rpc_url must use https:// for security (got: {parsed.scheme}://)")


class Web3Gateway:
    """
    ChainGateway on top of web3.py.

    Provider failures are raised as GatewayError naming the operation, with
    the provider exception chained. Nothing is retried here.
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        w3: Optional[Web3] = None,
        priv_key: Optional[str] = None,
        account: Optional[LocalAccount] = None,
        receipt_timeout: int = DEFAULT_RECEIPT_TIMEOUT,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the gateway

        Args:
            rpc_url: Ethereum RPC endpoint URL (ignored if ``w3`` is given)
            w3: Preconfigured Web3 instance
            priv_key: Private key used to sign submitted transactions
            account: Local account used to sign submitted transactions
            receipt_timeout: Seconds to wait for a transaction receipt
            logger: Optional logger instance

        Raises:
            ValueError: If neither rpc_url nor w3 is provided
            ValidationError: If rpc_url does not use https (unless it is local)
        """
        if w3 is None:
            if not rpc_url:
                raise ValueError("Either rpc_url or w3 must be provided")
            validate_rpc_url(rpc_url)
            w3 = Web3(Web3.HTTPProvider(rpc_url))

        self.w3 = w3
        self.account = account or (Account.from_key(priv_key) if priv_key else None)
        self.receipt_timeout = receipt_timeout
        self.logger = logger or logging.getLogger(__name__)
        self._chain_id: Optional[int] = None

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self._run("chain_id", lambda: self.w3.eth.chain_id)
        return self._chain_id

    def _run(self, operation: str, fn):
        try:
            return fn()
        except GatewayError:
            raise
        except Exception as e:
            self.logger.error(f"Gateway {operation} failed: {e}")
            raise GatewayError(f"{operation} failed: {str(e)}", operation=operation) from e

    def read_storage(self, address: str, slot: int) -> bytes:
        address = checksum_address(address)
        return bytes(self._run("read_storage", lambda: self.w3.eth.get_storage_at(address, slot)))

    def read_code(self, address: str) -> bytes:
        address = checksum_address(address)
        return bytes(self._run("read_code", lambda: self.w3.eth.get_code(address)))

    def call(self, to: str, data: Union[bytes, str]) -> bytes:
        tx = {"to": checksum_address(to), "data": data if isinstance(data, str) else to_hex(data)}
        try:
            return bytes(self.w3.eth.call(tx))
        except ContractLogicError as e:
            self.logger.debug(f"Call to {tx['to']} reverted: {e}")
            raise GatewayError(f"call reverted: {str(e)}", operation="call", reverted=True) from e
        except Exception as e:
            self.logger.error(f"Gateway call failed: {e}")
            raise GatewayError(f"call failed: {str(e)}", operation="call") from e

    def send_transaction(self, tx: Dict[str, Any]) -> Dict[str, Any]:
        """
        Sign (if a local account is configured), send and wait for the receipt.

        Returns:
            The receipt as a dict
        """
        return self._run("send_transaction", lambda: self._send(dict(tx)))

    def _send(self, tx: Dict[str, Any]) -> Dict[str, Any]:
        if isinstance(tx.get("data"), bytes):
            tx["data"] = to_hex(tx["data"])
        tx["to"] = checksum_address(tx["to"])
        tx.setdefault("value", 0)

        if self.account is not None:
            tx.setdefault("from", self.account.address)
            tx.setdefault("nonce", self.w3.eth.get_transaction_count(self.account.address))
            tx.setdefault("chainId", self.chain_id)
            if "gas" not in tx:
                tx["gas"] = self.w3.eth.estimate_gas(tx)
            if "gasPrice" not in tx and "maxFeePerGas" not in tx:
                tx["gasPrice"] = self.w3.eth.gas_price
            signed_tx = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        else:
            tx_hash = self.w3.eth.send_transaction(tx)

        self.logger.info(f"Transaction sent: {tx_hash.hex()}")
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        return dict(receipt)
