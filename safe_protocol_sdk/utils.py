"""
Utility functions for the Safe protocol SDK.
"""
from typing import Union

from eth_utils import is_address, to_bytes, to_checksum_address

from .exceptions import ValidationError

HexOrBytes = Union[str, bytes, bytearray]


def normalize_address(address: str) -> str:
    """
    Normalize an address to its canonical lower-case form.

    This is the single point where addresses enter any address-keyed map.

    Args:
        address: Hex address, with or without checksum

    Returns:
        Lower-case 0x-prefixed address

    Raises:
        ValidationError: If the value is not a 20-byte hex address
    """
    if not isinstance(address, str) or not is_address(address):
        raise ValidationError(f"Invalid address: {address!r}")
    return address.lower()


def checksum_address(address: str) -> str:
    """Return the EIP-55 checksummed form of an address."""
    return to_checksum_address(normalize_address(address))


def same_address(left: str, right: str) -> bool:
    return normalize_address(left) == normalize_address(right)


def address_to_int(address: str) -> int:
    """Interpret an address as an unsigned big-endian integer."""
    return int(normalize_address(address), 16)


def address_to_bytes(address: str) -> bytes:
    return bytes.fromhex(normalize_address(address)[2:])


def pad32(value: bytes) -> bytes:
    """Left-pad a byte string to 32 bytes."""
    if len(value) > 32:
        raise ValidationError(f"Value longer than 32 bytes: {len(value)}")
    return value.rjust(32, b"\x00")


def uint256(value: int) -> bytes:
    """Encode a non-negative integer as a 32-byte big-endian word."""
    if value < 0 or value >= 2 ** 256:
        raise ValidationError(f"Value out of uint256 range: {value}")
    return value.to_bytes(32, "big")


def hex_to_bytes(value: HexOrBytes) -> bytes:
    """
    Convert a hex string (with or without 0x) or bytes to bytes.

    Raises:
        ValidationError: If the string is not valid hex
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise ValidationError(f"Expected hex string or bytes, got {type(value).__name__}")
    if value in ("", "0x"):
        return b""
    try:
        return to_bytes(hexstr=value)
    except ValueError as e:
        raise ValidationError(f"Invalid hex data: {str(e)}") from e


def to_hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()
