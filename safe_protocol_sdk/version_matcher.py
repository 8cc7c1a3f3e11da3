"""
Resolve the protocol version of a deployed Safe.

The proxy keeps its mastercopy (singleton) address in storage slot 0. A known
singleton address gives the version directly. Otherwise the singleton's
runtime code is hashed and compared with the fingerprints of known versions,
then with the code deployed at the known singletons.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from eth_utils import keccak, to_checksum_address

from ._rate_limited_log import rate_limited_log
from .registry import VersionRegistry, find_singleton_version
from .utils import checksum_address, hex_to_bytes, same_address
from .versions import SUPPORTED_VERSIONS

logger = logging.getLogger(__name__)

MASTERCOPY_STORAGE_SLOT = 0


class _NotFound:
    """Result of a resolution that matched no known version"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()


@dataclass(frozen=True)
class VersionMatch:
    version: str
    is_l2: bool
    mastercopy: str
    by_fingerprint: bool = False


def match_code_hash(
    registry: VersionRegistry,
    code_hash: Union[str, bytes],
    chain_id: int,
    prefer_l2: bool = False
) -> Optional[Tuple[str, bool]]:
    """
    Compare a code hash with the known fingerprints, newest version first.

    Within a version the L1 singleton is tried before the L2 one, unless
    ``prefer_l2`` is set.

    Returns:
        (version, is_l2) of the first match, or None
    """
    code_hash = hex_to_bytes(code_hash)
    flavors = (True, False) if prefer_l2 else (False, True)
    for version in SUPPORTED_VERSIONS:
        deployment = registry.lookup(version, chain_id)
        if deployment is None:
            continue
        for is_l2 in flavors:
            fingerprints = deployment.l2_fingerprints if is_l2 else deployment.l1_fingerprints
            if code_hash in fingerprints:
                return version, is_l2
    return None


class VersionMatcher:
    """
    Resolves Safe versions through a ChainGateway and a VersionRegistry.

    Gateway failures propagate as GatewayError; an unknown Safe is NOT_FOUND.
    """

    def __init__(
        self,
        gateway,
        registry: VersionRegistry,
        chain_id: int,
        prefer_l2: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        self.gateway = gateway
        self.registry = registry
        self.chain_id = chain_id
        self.prefer_l2 = prefer_l2
        self.logger = logger or logging.getLogger(__name__)
        self._singleton_code_hashes: Dict[str, bytes] = {}

    def get_mastercopy_address(self, safe_address: str) -> str:
        word = self.gateway.read_storage(checksum_address(safe_address), MASTERCOPY_STORAGE_SLOT)
        return to_checksum_address(bytes(word)[-20:].rjust(20, b"\x00"))

    def resolve(self, safe_address: str) -> Union[VersionMatch, _NotFound]:
        """
        Resolve the version of the Safe at ``safe_address``

        Returns:
            VersionMatch, or NOT_FOUND if neither the singleton address nor its
            code fingerprint is known
        """
        mastercopy = self.get_mastercopy_address(safe_address)

        found = find_singleton_version(self.registry, mastercopy, self.chain_id)
        if found is not None:
            version, is_l2 = found
            self.logger.debug(f"Safe {safe_address} uses v{version} singleton {mastercopy}")
            return VersionMatch(version, is_l2, mastercopy)

        return self._resolve_by_fingerprint(safe_address, mastercopy)

    def _resolve_by_fingerprint(self, safe_address: str, mastercopy: str) -> Union[VersionMatch, _NotFound]:
        code = self.gateway.read_code(mastercopy)
        if not code:
            rate_limited_log(
                f"Mastercopy {mastercopy} of Safe {safe_address} has no code on chain {self.chain_id}",
                logger_instance=self.logger,
            )
            return NOT_FOUND

        code_hash = keccak(bytes(code))
        found = match_code_hash(self.registry, code_hash, self.chain_id, self.prefer_l2)
        if found is None:
            found = self._match_singleton_code(code_hash, mastercopy)
        if found is None:
            rate_limited_log(
                f"Unknown mastercopy {mastercopy} (code hash 0x{code_hash.hex()}) on chain {self.chain_id}",
                logger_instance=self.logger,
            )
            return NOT_FOUND

        version, is_l2 = found
        self.logger.warning(
            f"Safe {safe_address} resolved to v{version} by code fingerprint of mastercopy {mastercopy}"
        )
        return VersionMatch(version, is_l2, mastercopy, by_fingerprint=True)

    def _singleton_code_hash(self, singleton: str) -> bytes:
        key = singleton.lower()
        if key not in self._singleton_code_hashes:
            code = self.gateway.read_code(singleton)
            self._singleton_code_hashes[key] = keccak(bytes(code)) if code else b""
        return self._singleton_code_hashes[key]

    def _match_singleton_code(self, code_hash: bytes, mastercopy: str) -> Optional[Tuple[str, bool]]:
        """
        Compare ``code_hash`` with the code deployed at the registry's own
        singletons on this chain, in the same order as ``match_code_hash``.

        Covers mastercopies that are byte-identical copies of a known singleton
        when no fingerprint list names their hash.
        """
        flavors = (True, False) if self.prefer_l2 else (False, True)
        for version in SUPPORTED_VERSIONS:
            deployment = self.registry.lookup(version, self.chain_id)
            if deployment is None:
                continue
            for is_l2 in flavors:
                singleton = deployment.singleton(is_l2)
                if singleton is None or same_address(singleton, mastercopy):
                    continue
                if self._singleton_code_hash(singleton) == code_hash:
                    return version, is_l2
        return None
