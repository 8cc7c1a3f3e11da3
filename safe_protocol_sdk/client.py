"""
SafeClient - signing and execution facade for one Safe account.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

from .config import DeploymentConfig
from .constants import EIP1271_MAGIC_VALUE, L1_SINGLETON_CHAIN_IDS, ZKSYNC_MAINNET, ZKSYNC_TESTNET
from .eip712 import (
    encode_transaction_data,
    forwarded_message_data,
    generate_typed_data,
    hash_safe_message,
    hash_safe_transaction,
    message_envelope_hash,
)
from .exceptions import (
    AuthorizationError,
    GatewayError,
    UnsupportedVersionError,
    ValidationError,
)
from .models import (
    Account,
    MetaTransactionData,
    SafeAccountConfig,
    SafeDeploymentConfig,
    SafeTransactionData,
    TxReceipt,
    parse_model,
)
from .multisend import build_batch_transaction
from .predict import (
    encode_create_proxy_with_nonce,
    encode_setup_call_data,
    get_chain_specific_default_salt_nonce,
    get_proxy_creation_code,
    predict_safe_address,
)
from .readiness import Readiness, check, get_owners_who_approved_tx, require_ready
from .registry import Deployment, DeploymentRegistry, VersionRegistry
from .signatures import SafeSignature, SigningMethod, generate_pre_validated_signature
from .signer import Signer, SignerKind
from .transaction import SafeMessage, SafeTransaction
from .utils import checksum_address, hex_to_bytes, to_hex
from .version_matcher import VersionMatcher
from .versions import SafeFeature, require_safe_feature

GET_OWNERS_SELECTOR = function_signature_to_4byte_selector("getOwners()")
GET_THRESHOLD_SELECTOR = function_signature_to_4byte_selector("getThreshold()")
NONCE_SELECTOR = function_signature_to_4byte_selector("nonce()")
APPROVE_HASH_SELECTOR = function_signature_to_4byte_selector("approveHash(bytes32)")
IS_VALID_SIGNATURE_SELECTOR = function_signature_to_4byte_selector("isValidSignature(bytes32,bytes)")
EXEC_TRANSACTION_SIGNATURE = (
    "execTransaction(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,bytes)"
)


@dataclass(frozen=True)
class PredictedSafe:
    """Setup parameters of a Safe that is not deployed yet"""
    account_config: SafeAccountConfig
    deployment_config: SafeDeploymentConfig
    factory: str
    singleton: str
    fallback_handler: Optional[str] = None

    @property
    def salt_nonce(self) -> Optional[int]:
        return self.deployment_config.salt_nonce


class SafeClient:
    """
    Client for creating, signing and executing transactions of one Safe.

    The account is either deployed (see ``load``) or counterfactual (see
    ``predicted``). All hashing and signing happens locally; the gateway is
    only needed for chain reads and for execution.
    """

    def __init__(
        self,
        account: Account,
        gateway=None,
        registry: Optional[VersionRegistry] = None,
        logger: Optional[logging.Logger] = None,
        predicted: Optional[PredictedSafe] = None
    ):
        """
        Initialize the SafeClient

        Args:
            account: The Safe account
            gateway: ChainGateway used for reads and execution (optional for
                offline signing)
            registry: VersionRegistry with the contract deployments (the
                packaged deployments by default)
            logger: Optional logger instance to use for debug/info logging
            predicted: Setup parameters when the account is counterfactual
        """
        self.account = account
        self.gateway = gateway
        self.registry = registry if registry is not None else DeploymentRegistry()
        self.logger = logger or logging.getLogger(__name__)
        self.predicted_safe = predicted
        self.deployment: Optional[Deployment] = self.registry.lookup(account.version, account.chain_id)

    @property
    def address(self) -> str:
        return self.account.address

    @property
    def is_predicted(self) -> bool:
        return self.predicted_safe is not None

    @classmethod
    def load(
        cls,
        gateway,
        address: str,
        registry: Optional[VersionRegistry] = None,
        chain_id: Optional[int] = None,
        prefer_l2: bool = False,
        logger: Optional[logging.Logger] = None
    ) -> "SafeClient":
        """
        Create a client for a deployed Safe, reading its state from chain.

        Args:
            gateway: ChainGateway for the Safe's chain
            address: Safe address
            registry: VersionRegistry (packaged deployments by default)
            chain_id: Chain id (read from the gateway by default)
            prefer_l2: Try L2 fingerprints first when matching by code
            logger: Optional logger instance

        Raises:
            ValidationError: If the address is malformed
            UnsupportedVersionError: If the Safe version cannot be resolved
            GatewayError: If a chain read fails
        """
        address = checksum_address(address)
        registry = registry if registry is not None else DeploymentRegistry()
        chain_id = chain_id if chain_id is not None else gateway.chain_id

        match = VersionMatcher(gateway, registry, chain_id, prefer_l2, logger).resolve(address)
        if not match:
            raise UnsupportedVersionError(f"Could not resolve the version of Safe {address}")

        owners = _decode_call(gateway, address, GET_OWNERS_SELECTOR, "address[]", "getOwners")
        threshold = _decode_call(gateway, address, GET_THRESHOLD_SELECTOR, "uint256", "getThreshold")
        nonce = _decode_call(gateway, address, NONCE_SELECTOR, "uint256", "nonce")

        account = parse_model(Account, {
            "address": address,
            "owners": owners,
            "threshold": threshold,
            "nonce": nonce,
            "chain_id": chain_id,
            "version": match.version,
        })
        return cls(account, gateway=gateway, registry=registry, logger=logger)

    @classmethod
    def predicted(
        cls,
        config: Union[SafeAccountConfig, Dict[str, Any]],
        deployment_config: Union[SafeDeploymentConfig, Dict[str, Any], None] = None,
        chain_id: Optional[int] = None,
        registry: Optional[VersionRegistry] = None,
        gateway=None,
        proxy_creation_code: Union[str, bytes, None] = None,
        logger: Optional[logging.Logger] = None
    ) -> "SafeClient":
        """
        Create a client for a counterfactual Safe.

        The L1 singleton is used on L1 chains or when ``is_l1_safe_singleton``
        is set, the L2 singleton otherwise.

        Raises:
            ValidationError: On invalid owners, threshold or salt nonce, or when
                the proxy creation code is needed and there is no gateway
            UnsupportedVersionError: Below v1.3.0, or without a deployment
        """
        config = parse_model(SafeAccountConfig, config)
        if deployment_config is None:
            deployment_config = {"safe_version": DeploymentConfig.get_default_version()}
        deployment_config = parse_model(SafeDeploymentConfig, deployment_config)
        version = deployment_config.safe_version
        require_safe_feature(SafeFeature.ACCOUNT_ABSTRACTION, version)

        if chain_id is None:
            if gateway is None:
                raise ValidationError("chain_id is required without a gateway")
            chain_id = gateway.chain_id

        registry = registry if registry is not None else DeploymentRegistry()
        deployment = registry.lookup(version, chain_id)
        if deployment is None or deployment.proxy_factory is None:
            raise UnsupportedVersionError(f"No deployment for Safe v{version} on chain {chain_id}", version=version)

        is_l1 = chain_id in L1_SINGLETON_CHAIN_IDS or deployment_config.is_l1_safe_singleton
        singleton = deployment.singleton(is_l2=not is_l1) or deployment.safe_singleton
        if singleton is None:
            raise UnsupportedVersionError(f"No singleton for Safe v{version} on chain {chain_id}", version=version)

        if proxy_creation_code is None and chain_id not in (ZKSYNC_MAINNET, ZKSYNC_TESTNET):
            if gateway is None:
                raise ValidationError("proxy_creation_code is required without a gateway")
            proxy_creation_code = get_proxy_creation_code(gateway, deployment.proxy_factory)

        address = predict_safe_address(
            config,
            deployment_config,
            chain_id,
            deployment.proxy_factory,
            singleton,
            proxy_creation_code or b"",
            deployment.fallback_handler,
        )
        account = Account(
            address=address,
            owners=config.owners,
            threshold=config.threshold,
            nonce=0,
            chain_id=chain_id,
            version=version,
        )
        predicted = PredictedSafe(
            account_config=config,
            deployment_config=deployment_config,
            factory=deployment.proxy_factory,
            singleton=singleton,
            fallback_handler=deployment.fallback_handler,
        )
        return cls(account, gateway=gateway, registry=registry, logger=logger, predicted=predicted)

    def get_deployment_transaction(self) -> Dict[str, Any]:
        """
        Transaction deploying this counterfactual Safe through the proxy factory.

        Raises:
            ValidationError: If the Safe is already deployed
        """
        if self.predicted_safe is None:
            raise ValidationError("Safe is already deployed")
        predicted = self.predicted_safe
        version = self.account.version
        salt_nonce = predicted.salt_nonce
        if salt_nonce is None:
            salt_nonce = get_chain_specific_default_salt_nonce(self.account.chain_id)
        initializer = encode_setup_call_data(predicted.account_config, version, predicted.fallback_handler)
        return {
            "to": predicted.factory,
            "value": 0,
            "data": encode_create_proxy_with_nonce(predicted.singleton, initializer, salt_nonce),
        }

    def create_transaction(
        self,
        transactions: Sequence[Union[MetaTransactionData, Dict[str, Any]]],
        only_calls: bool = False,
        options: Optional[Dict[str, Any]] = None
    ) -> SafeTransaction:
        """
        Create an unsigned Safe transaction.

        One call is used as is; several calls are batched through MultiSend
        (MultiSendCallOnly with ``only_calls``).

        Args:
            transactions: Calls to execute, in order
            only_calls: Batch through MultiSendCallOnly
            options: SafeTransactionData fields such as nonce or gas settings;
                the nonce defaults to the account nonce

        Raises:
            ValidationError: If there are no calls
            UnsupportedVersionError: If the batch contract is not deployed for this version
        """
        if not transactions:
            raise ValidationError("Invalid empty array of transactions")
        options = dict(options or {})
        options.setdefault("nonce", self.account.nonce)

        if len(transactions) > 1:
            multi_send = None
            if self.deployment is not None:
                multi_send = self.deployment.multi_send_call_only if only_calls else self.deployment.multi_send
            if multi_send is None:
                contract = "MultiSendCallOnly" if only_calls else "MultiSend"
                raise UnsupportedVersionError(
                    f"{contract} is not deployed for Safe v{self.account.version} on chain {self.account.chain_id}",
                    version=self.account.version,
                )
            data = build_batch_transaction(transactions, multi_send, only_calls, options)
        else:
            call = parse_model(MetaTransactionData, transactions[0])
            data = parse_model(SafeTransactionData, {**call.model_dump(), **options})

        self.logger.debug(f"Created Safe transaction to {data.to} with nonce {data.nonce}")
        return SafeTransaction(data)

    def create_rejection_transaction(self, nonce: int) -> SafeTransaction:
        """Create a transaction that invalidates the pending ones with ``nonce``."""
        data = parse_model(SafeTransactionData, {
            "to": self.address,
            "value": 0,
            "data": b"",
            "nonce": nonce,
            "safe_tx_gas": 0,
        })
        return SafeTransaction(data)

    def create_message(self, message: Union[str, Dict[str, Any]]) -> SafeMessage:
        return SafeMessage(message)

    def get_transaction_hash(self, tx: Union[SafeTransaction, SafeTransactionData]) -> bytes:
        data = tx.data if isinstance(tx, SafeTransaction) else tx
        return hash_safe_transaction(self.address, data, self.account.version, self.account.chain_id)

    def get_safe_message_hash(self, message_hash: Union[str, bytes]) -> bytes:
        """Wrap an EIP-191/EIP-712 message hash into this Safe's SafeMessage hash."""
        return message_envelope_hash(self.address, message_hash, self.account.version, self.account.chain_id)

    def _check_owner(self, signer: Signer) -> None:
        if not self.account.is_owner(signer.address):
            raise AuthorizationError("Transactions can only be signed by Safe owners", signer=signer.address)

    def _sign(
        self,
        signer: Signer,
        method: SigningMethod,
        safe_hash: bytes,
        typed_data_source: Union[SafeTransactionData, str, Dict[str, Any]],
        preimage: bytes
    ) -> SafeSignature:
        version = self.account.version
        if signer.kind == SignerKind.CONTRACT:
            require_safe_feature(SafeFeature.ETH_SIGN, version)
            return signer.sign(safe_hash, preimage)
        if signer.kind == SignerKind.PASSKEY:
            require_safe_feature(SafeFeature.PASSKEY_SIGNER, version)
            return signer.sign(safe_hash, preimage)

        if method == SigningMethod.ETH_SIGN:
            require_safe_feature(SafeFeature.ETH_SIGN, version)
            return signer.sign_hash(safe_hash)
        if method == SigningMethod.SAFE_SIGNATURE:
            raise ValidationError(f"{method.value} needs a contract signer, got {signer!r}")
        typed_data = generate_typed_data(self.address, version, self.account.chain_id, typed_data_source)
        return signer.sign_typed_data(typed_data, method)

    def sign_transaction(
        self,
        tx: SafeTransaction,
        signer: Signer,
        method: SigningMethod = SigningMethod.ETH_SIGN_TYPED_DATA_V4
    ) -> SafeTransaction:
        """
        Add an owner's signature to a transaction.

        Direct signers use ``method``. Contract signers collect their own
        owners' signatures and passkey signers run their authenticator.

        Returns:
            A new SafeTransaction; ``tx`` is not modified

        Raises:
            AuthorizationError: If the signer is not an owner
            UnsupportedVersionError: If the signing method is not available for
                this Safe version
        """
        self._check_owner(signer)
        version = self.account.version
        chain_id = self.account.chain_id
        tx_hash = hash_safe_transaction(self.address, tx.data, version, chain_id)
        preimage = encode_transaction_data(self.address, tx.data, version, chain_id)

        signature = self._sign(signer, method, tx_hash, tx.data, preimage)
        self.logger.debug(f"{signature.signer} signed Safe tx 0x{tx_hash.hex()} ({signature.scheme.value})")
        return tx.add_signature(signature)

    def sign_message(
        self,
        message: SafeMessage,
        signer: Signer,
        method: SigningMethod = SigningMethod.ETH_SIGN_TYPED_DATA_V4
    ) -> SafeMessage:
        """
        Add an owner's signature to an off-chain message.

        Raises:
            AuthorizationError: If the signer is not an owner
            UnsupportedVersionError: If the signing method is not available for
                this Safe version
        """
        self._check_owner(signer)
        version = self.account.version
        chain_id = self.account.chain_id
        raw_hash = hash_safe_message(message.data)
        safe_hash = message_envelope_hash(self.address, raw_hash, version, chain_id)
        preimage = forwarded_message_data(self.address, raw_hash, version, chain_id)

        signature = self._sign(signer, method, safe_hash, message.data, preimage)
        self.logger.debug(f"{signature.signer} signed Safe message 0x{safe_hash.hex()}")
        return message.add_signature(signature)

    def get_owners_who_approved_tx(self, tx_hash: Union[str, bytes]) -> List[str]:
        """
        Raises:
            ValidationError: Without a gateway
            GatewayError: If a read fails
        """
        if self.gateway is None:
            raise ValidationError("A gateway is required to read on-chain approvals")
        return get_owners_who_approved_tx(self.gateway, self.address, self.account.owners, tx_hash)

    def _on_chain_approvals(self, tx: Union[SafeTransaction, SafeMessage]) -> List[str]:
        # approvedHashes only exists for transaction hashes
        if self.gateway is None or self.is_predicted or isinstance(tx, SafeMessage):
            return []
        return self.get_owners_who_approved_tx(self.get_transaction_hash(tx))

    def check_readiness(
        self,
        tx: Union[SafeTransaction, SafeMessage],
        nested_accounts: Optional[Iterable[Account]] = None
    ) -> Readiness:
        """
        Whether the signatures reach the threshold.

        Owners that approved a transaction hash on chain count as signers.
        Messages only count their collected signatures.
        """
        return check(
            tx.signatures,
            self.account.owners,
            self.account.threshold,
            self._on_chain_approvals(tx),
            nested_accounts,
        )

    def _default_sender(self) -> Optional[str]:
        gateway_account = getattr(self.gateway, "account", None)
        return gateway_account.address if gateway_account is not None else None

    def approve_transaction_hash(
        self,
        tx_hash: Union[str, bytes, SafeTransaction],
        sender: Optional[str] = None
    ) -> TxReceipt:
        """
        Approve a transaction hash on chain with approveHash.

        The approval counts as the sender's signature once the transaction
        is executed.

        Args:
            tx_hash: Safe transaction hash, or the transaction itself
            sender: Owner sending the approval (the gateway account by default)

        Raises:
            ValidationError: If the Safe is not deployed, there is no gateway
                or the hash is not 32 bytes
            AuthorizationError: If the sender is not an owner
            GatewayError: If submission fails
        """
        if self.is_predicted or self.gateway is None:
            raise ValidationError("Safe is not deployed")
        if isinstance(tx_hash, SafeTransaction):
            tx_hash = self.get_transaction_hash(tx_hash)
        hash_bytes = hex_to_bytes(tx_hash)
        if len(hash_bytes) != 32:
            raise ValidationError(f"Transaction hash must be 32 bytes, got {len(hash_bytes)}")

        if sender is None:
            sender = self._default_sender()
        if sender is None or not self.account.is_owner(sender):
            raise AuthorizationError("Transaction hashes can only be approved by Safe owners", signer=sender)

        transaction = {
            "to": self.address,
            "value": 0,
            "data": APPROVE_HASH_SELECTOR + encode(["bytes32"], [hash_bytes]),
            "from": checksum_address(sender),
        }
        self.logger.info(f"{sender} approving Safe tx 0x{hash_bytes.hex()} on {self.address}")
        receipt = self.gateway.send_transaction(transaction)
        return self._convert_receipt(receipt)

    def encode_exec_transaction(self, tx: SafeTransaction) -> bytes:
        """Calldata for execTransaction with the encoded signatures."""
        data = tx.data
        return function_signature_to_4byte_selector(EXEC_TRANSACTION_SIGNATURE) + encode(
            ["address", "uint256", "bytes", "uint8", "uint256", "uint256", "uint256", "address", "address", "bytes"],
            [
                data.to,
                data.value,
                data.data,
                int(data.operation),
                data.safe_tx_gas,
                data.base_gas,
                data.gas_price,
                data.gas_token,
                data.refund_receiver,
                tx.encoded_signatures(),
            ],
        )

    def execute_transaction(
        self,
        tx: SafeTransaction,
        sender: Optional[str] = None,
        nested_accounts: Optional[Iterable[Account]] = None
    ) -> TxReceipt:
        """
        Execute a transaction that reaches the threshold.

        Owners that approved the hash on chain get a pre-validated signature,
        and so does ``sender`` if it is an owner and signatures are missing.

        Args:
            tx: The signed transaction
            sender: Address submitting the transaction (the gateway account by default)
            nested_accounts: Known nested Safes, see ``check_readiness``

        Returns:
            Transaction receipt

        Raises:
            ValidationError: If the Safe is not deployed or there is no gateway
            InsufficientSignaturesError: If the threshold is not reached
            GatewayError: If submission fails
        """
        if self.is_predicted or self.gateway is None:
            raise ValidationError("Safe is not deployed")

        if sender is None:
            sender = self._default_sender()

        signed_tx = tx
        for owner in self._on_chain_approvals(tx):
            signed_tx = signed_tx.add_signature(generate_pre_validated_signature(owner))

        if (
            sender is not None
            and self.account.is_owner(sender)
            and len(signed_tx.signatures) < self.account.threshold
        ):
            signed_tx = signed_tx.add_signature(generate_pre_validated_signature(sender))

        require_ready(signed_tx.signatures, self.account.owners, self.account.threshold, (), nested_accounts)

        transaction: Dict[str, Any] = {
            "to": self.address,
            "value": 0,
            "data": self.encode_exec_transaction(signed_tx),
        }
        if sender is not None:
            transaction["from"] = checksum_address(sender)

        self.logger.info(f"Executing Safe tx with nonce {tx.data.nonce} on {self.address}")
        receipt = self.gateway.send_transaction(transaction)
        return self._convert_receipt(receipt)

    def is_valid_signature(
        self,
        message_hash: Union[str, bytes],
        signature: Union[str, bytes, SafeMessage] = b""
    ) -> bool:
        """
        Ask the Safe (through its fallback handler) whether a signature is valid.

        An empty signature checks whether the hash was signed on chain with signMessage.

        Raises:
            ValidationError: Without a gateway
            GatewayError: If the call fails for a reason other than a revert
        """
        if self.gateway is None:
            raise ValidationError("A gateway is required to validate signatures")
        if isinstance(signature, SafeMessage):
            signature = signature.encoded_signatures()

        call_data = IS_VALID_SIGNATURE_SELECTOR + encode(
            ["bytes32", "bytes"],
            [hex_to_bytes(message_hash), hex_to_bytes(signature)],
        )
        try:
            result = self.gateway.call(self.address, call_data)
        except GatewayError as e:
            if e.reverted:
                self.logger.debug(f"isValidSignature reverted on {self.address}: {e}")
                return False
            raise
        return result[:4] == hex_to_bytes(EIP1271_MAGIC_VALUE)

    def _convert_receipt(self, receipt: Dict[str, Any]) -> TxReceipt:
        """
        Convert a gateway receipt to our TxReceipt model
        """
        receipt_dict = dict(receipt)

        # Convert bytes to hex strings
        for key, value in list(receipt_dict.items()):
            if isinstance(value, bytes):
                receipt_dict[key] = to_hex(value)
        receipt_dict["logs"] = [dict(log) for log in receipt_dict.get("logs", [])]

        return TxReceipt.model_validate(receipt_dict)


def _decode_call(gateway, address: str, selector: bytes, abi_type: str, name: str) -> Any:
    result = gateway.call(address, selector)
    try:
        (value,) = decode([abi_type], result)
    except Exception as e:
        raise GatewayError(f"Malformed {name} result: {str(e)}", operation="call") from e
    return value
