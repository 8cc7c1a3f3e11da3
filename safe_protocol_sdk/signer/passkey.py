"""
Signer backed by a WebAuthn credential (passkey).

The authenticator ceremony itself happens outside the SDK: callers hand in
a callable that takes the challenge and returns the assertion.
"""
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address

from ..exceptions import GatewayError, ValidationError
from ..signatures import SafeSignature, SigningScheme
from ..utils import address_to_int, checksum_address
from .base import AddressIdentity, SignerKind

logger = logging.getLogger(__name__)

GET_SIGNER_SELECTOR = function_signature_to_4byte_selector("getSigner(uint256,uint256,uint176)")
CREATE_SIGNER_SELECTOR = function_signature_to_4byte_selector("createSigner(uint256,uint256,uint176)")

CLIENT_DATA_PATTERN = re.compile(
    r'^\{"type":"webauthn.get","challenge":"[A-Za-z0-9\-_]{43}",(.*)\}$',
    re.DOTALL,
)


@dataclass(frozen=True)
class PasskeyCoordinates:
    """P-256 public key of the credential"""
    x: int
    y: int


@dataclass(frozen=True)
class AuthenticatorAssertion:
    """The parts of an AuthenticatorAssertionResponse the verifier needs"""
    authenticator_data: bytes
    client_data_json: bytes
    signature: bytes


Authenticator = Callable[[bytes], AuthenticatorAssertion]


def extract_client_data_fields(client_data_json: Union[bytes, str]) -> bytes:
    """
    Return the client data JSON fields that follow ``type`` and ``challenge``.

    The verifier rebuilds the JSON from the challenge and these fields.

    Raises:
        ValidationError: If the JSON does not start with the expected fields
    """
    if isinstance(client_data_json, bytes):
        client_data_json = client_data_json.decode("utf-8")
    match = CLIENT_DATA_PATTERN.match(client_data_json)
    if not match:
        raise ValidationError("challenge not found in client data JSON")
    return match.group(1).encode("utf-8")


def extract_signature(der_signature: bytes) -> Tuple[int, int]:
    """
    Decode a DER encoded ECDSA signature into (r, s).

    Raises:
        ValidationError: If the encoding is invalid
    """
    try:
        r, s = decode_dss_signature(der_signature)
    except ValueError as e:
        raise ValidationError(f"invalid signature encoding: {str(e)}") from e
    if r >= 2 ** 256 or s >= 2 ** 256:
        raise ValidationError("invalid signature encoding")
    return r, s


def encode_passkey_signature(assertion: AuthenticatorAssertion) -> bytes:
    """ABI encode (bytes authenticatorData, bytes clientDataFields, uint256[2] rs)."""
    if not assertion.authenticator_data:
        raise ValidationError("Failed to sign data with passkey Signer")
    r, s = extract_signature(assertion.signature)
    return encode(
        ["bytes", "bytes", "uint256[2]"],
        [assertion.authenticator_data, extract_client_data_fields(assertion.client_data_json), [r, s]],
    )


def resolve_passkey_address(
    gateway,
    factory_address: str,
    coordinates: PasskeyCoordinates,
    verifier_address: str
) -> str:
    """
    Ask the WebAuthn signer factory for the signer contract address of a passkey.

    The address is deterministic; the signer contract may not be deployed yet.

    Raises:
        GatewayError: If the call fails or returns malformed data
    """
    call_data = GET_SIGNER_SELECTOR + encode(
        ["uint256", "uint256", "uint176"],
        [coordinates.x, coordinates.y, address_to_int(verifier_address)],
    )
    result = gateway.call(factory_address, call_data)
    try:
        (signer_address,) = decode(["address"], result)
    except Exception as e:
        raise GatewayError(f"Malformed getSigner result: {str(e)}", operation="call") from e
    return to_checksum_address(signer_address)


class PasskeySigner(AddressIdentity):
    """
    Passkey owner of a Safe (v1.3.0 and later).

    Its address is that of the WebAuthn signer contract bound to the public
    key and verifier; signatures are contract signatures checked by it.
    """

    kind = SignerKind.PASSKEY

    def __init__(
        self,
        address: str,
        coordinates: PasskeyCoordinates,
        verifier_address: str,
        authenticator: Authenticator,
        raw_id: bytes = b""
    ):
        self.address = checksum_address(address)
        self.coordinates = coordinates
        self.verifier_address = checksum_address(verifier_address)
        self.authenticator = authenticator
        self.raw_id = raw_id

    @classmethod
    def resolve(
        cls,
        gateway,
        factory_address: str,
        coordinates: PasskeyCoordinates,
        verifier_address: str,
        authenticator: Authenticator,
        raw_id: bytes = b""
    ) -> "PasskeySigner":
        """Create a signer, looking up its address through the signer factory."""
        address = resolve_passkey_address(gateway, factory_address, coordinates, verifier_address)
        logger.debug(f"Resolved passkey signer address {address}")
        return cls(address, coordinates, verifier_address, authenticator, raw_id)

    def __repr__(self) -> str:
        return f"PasskeySigner({self.address})"

    def sign(self, message_hash: bytes, preimage: Optional[bytes] = None) -> SafeSignature:
        """
        Run the authenticator over the challenge and encode the assertion.

        The signer contract verifies ``keccak(preimage)`` when the Safe passes
        a preimage, so that is the challenge in that case.
        """
        challenge = keccak(preimage) if preimage is not None else message_hash
        assertion = self.authenticator(challenge)
        data = encode_passkey_signature(assertion)
        return SafeSignature(self.address, data, SigningScheme.PASSKEY)

    def encode_create_signer(self) -> bytes:
        """Calldata deploying the signer contract through the factory."""
        return CREATE_SIGNER_SELECTOR + encode(
            ["uint256", "uint256", "uint176"],
            [self.coordinates.x, self.coordinates.y, address_to_int(self.verifier_address)],
        )
