"""
Tests for local and passkey signers.
"""
import base64
import json

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from eth_abi import decode, encode
from eth_account import Account as EthAccount
from eth_account.messages import encode_defunct
from eth_utils import keccak

from safe_protocol_sdk.exceptions import GatewayError, ValidationError
from safe_protocol_sdk.signatures import SigningMethod, SigningScheme
from safe_protocol_sdk.signer import (
    AuthenticatorAssertion,
    LocalSigner,
    PasskeyCoordinates,
    PasskeySigner,
    SignerKind,
    encode_passkey_signature,
    extract_client_data_fields,
    extract_signature,
    resolve_passkey_address,
)
from safe_protocol_sdk.signer.passkey import CREATE_SIGNER_SELECTOR

from conftest import OWNER_KEYS

MESSAGE_HASH = keccak(text="hello safe")
FACTORY = "0x4444444444444444444444444444444444444444"
VERIFIER = "0x5555555555555555555555555555555555555555"
PASSKEY_SIGNER_ADDRESS = "0x6666666666666666666666666666666666666666"
AUTHENTICATOR_DATA = bytes.fromhex("49960de5880e8c687434170f6476605b8fe4aeb9a28632c7995cf3ba831d9763") + b"\x05" + bytes(4)


def make_authenticator(private_key):
    """Authenticator that signs like a platform authenticator would"""
    challenges = []

    def authenticate(challenge: bytes) -> AuthenticatorAssertion:
        challenges.append(challenge)
        encoded = base64.urlsafe_b64encode(challenge).rstrip(b"=").decode()
        client_data = json.dumps(
            {"type": "webauthn.get", "challenge": encoded, "origin": "https://app.safe.global", "crossOrigin": False},
            separators=(",", ":"),
        ).encode()
        signed = AUTHENTICATOR_DATA + keccak(client_data)
        der = private_key.sign(signed, ec.ECDSA(hashes.SHA256()))
        return AuthenticatorAssertion(AUTHENTICATOR_DATA, client_data, der)

    authenticate.challenges = challenges
    return authenticate


@pytest.fixture
def p256_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def coordinates(p256_key):
    numbers = p256_key.public_key().public_numbers()
    return PasskeyCoordinates(numbers.x, numbers.y)


class TestLocalSigner:

    def test_from_key(self):
        signer = LocalSigner(OWNER_KEYS[0])
        assert signer.address == EthAccount.from_key(OWNER_KEYS[0]).address
        assert signer.kind == SignerKind.DIRECT

    def test_invalid_key(self):
        with pytest.raises(ValidationError):
            LocalSigner("0x1234")

    def test_sign_hash_uses_eth_sign(self, owner_signers):
        signer = owner_signers[0]
        signature = signer.sign_hash(MESSAGE_HASH)

        assert signature.scheme == SigningScheme.EOA_PERSONAL_SIGN
        assert signature.data[64] in (31, 32)
        # The contract subtracts 4 and recovers over the prefixed hash
        raw = signature.data[:64] + bytes([signature.data[64] - 4])
        assert EthAccount.recover_message(encode_defunct(primitive=MESSAGE_HASH), signature=raw) == signer.address

    def test_sign_ignores_preimage(self, owner_signers):
        signer = owner_signers[0]
        assert signer.sign(MESSAGE_HASH, b"preimage") == signer.sign_hash(MESSAGE_HASH)

    def test_sign_hash_length(self, owner_signers):
        with pytest.raises(ValidationError):
            owner_signers[0].sign_hash(b"\x01" * 31)

    def test_sign_typed_data(self, owner_signers):
        typed = {
            "types": {
                "EIP712Domain": [{"name": "verifyingContract", "type": "address"}],
                "SafeMessage": [{"name": "message", "type": "bytes"}],
            },
            "primaryType": "SafeMessage",
            "domain": {"verifyingContract": PASSKEY_SIGNER_ADDRESS},
            "message": {"message": MESSAGE_HASH},
        }
        signature = owner_signers[1].sign_typed_data(typed, SigningMethod.ETH_SIGN_TYPED_DATA_V3)
        assert signature.scheme == SigningScheme.EOA_TYPED_V3
        assert signature.data[64] in (27, 28)

    def test_sign_typed_data_rejects_eth_sign(self, owner_signers):
        with pytest.raises(ValidationError):
            owner_signers[0].sign_typed_data({}, SigningMethod.ETH_SIGN)

    def test_equality_by_address(self, owner_accounts):
        assert LocalSigner(owner_accounts[0]) == LocalSigner(OWNER_KEYS[0])
        assert len({LocalSigner(owner_accounts[0]), LocalSigner(OWNER_KEYS[0])}) == 1


class TestPasskeyEncoding:

    def test_extract_client_data_fields(self):
        client_data = '{"type":"webauthn.get","challenge":"' + "A" * 43 + '","origin":"https://safe.global"}'
        assert extract_client_data_fields(client_data) == b'"origin":"https://safe.global"'

    def test_extract_client_data_fields_invalid(self):
        with pytest.raises(ValidationError):
            extract_client_data_fields('{"type":"webauthn.create","challenge":"abc"}')

    def test_extract_signature(self, p256_key):
        der = p256_key.sign(b"data", ec.ECDSA(hashes.SHA256()))
        assert extract_signature(der) == decode_dss_signature(der)

    def test_extract_signature_invalid(self):
        with pytest.raises(ValidationError):
            extract_signature(b"\x30\x01\x02")

    def test_encode_passkey_signature(self, p256_key):
        assertion = make_authenticator(p256_key)(MESSAGE_HASH)
        encoded = encode_passkey_signature(assertion)

        authenticator_data, fields, rs = decode(["bytes", "bytes", "uint256[2]"], encoded)
        assert authenticator_data == AUTHENTICATOR_DATA
        assert fields == b'"origin":"https://app.safe.global","crossOrigin":false'
        assert tuple(rs) == decode_dss_signature(assertion.signature)

    def test_encode_requires_authenticator_data(self, p256_key):
        assertion = make_authenticator(p256_key)(MESSAGE_HASH)
        empty = AuthenticatorAssertion(b"", assertion.client_data_json, assertion.signature)
        with pytest.raises(ValidationError):
            encode_passkey_signature(empty)


class TestPasskeySigner:

    def test_sign_uses_hash_as_challenge(self, p256_key, coordinates):
        authenticator = make_authenticator(p256_key)
        signer = PasskeySigner(PASSKEY_SIGNER_ADDRESS, coordinates, VERIFIER, authenticator)
        signature = signer.sign(MESSAGE_HASH)

        assert authenticator.challenges == [MESSAGE_HASH]
        assert signature.scheme == SigningScheme.PASSKEY
        assert signature.is_contract_signature
        assert signature.signer == PASSKEY_SIGNER_ADDRESS

    def test_sign_with_preimage(self, p256_key, coordinates):
        authenticator = make_authenticator(p256_key)
        signer = PasskeySigner(PASSKEY_SIGNER_ADDRESS, coordinates, VERIFIER, authenticator)
        signer.sign(MESSAGE_HASH, b"preimage")

        assert authenticator.challenges == [keccak(b"preimage")]

    def test_resolve(self, fake_gateway, p256_key, coordinates):
        fake_gateway.on_call(
            FACTORY,
            "getSigner(uint256,uint256,uint176)",
            encode(["address"], [PASSKEY_SIGNER_ADDRESS]),
        )
        signer = PasskeySigner.resolve(fake_gateway, FACTORY, coordinates, VERIFIER, make_authenticator(p256_key))

        assert signer.address == PASSKEY_SIGNER_ADDRESS
        assert signer.kind == SignerKind.PASSKEY
        _, calldata = fake_gateway.calls[0]
        x, y, verifiers = decode(["uint256", "uint256", "uint176"], calldata[4:])
        assert (x, y) == (coordinates.x, coordinates.y)
        assert verifiers == int(VERIFIER, 16)

    def test_resolve_malformed_result(self, fake_gateway, coordinates):
        fake_gateway.on_call(FACTORY, "getSigner(uint256,uint256,uint176)", b"\x01")
        with pytest.raises(GatewayError):
            resolve_passkey_address(fake_gateway, FACTORY, coordinates, VERIFIER)

    def test_encode_create_signer(self, p256_key, coordinates):
        signer = PasskeySigner(PASSKEY_SIGNER_ADDRESS, coordinates, VERIFIER, make_authenticator(p256_key))
        calldata = signer.encode_create_signer()

        assert calldata[:4] == CREATE_SIGNER_SELECTOR
        assert decode(["uint256", "uint256", "uint176"], calldata[4:]) == (coordinates.x, coordinates.y, int(VERIFIER, 16))
