"""
Protocol constants shared across the SDK.
"""

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# keccak256(toUtf8Bytes('Safe Account Abstraction'))
PREDETERMINED_SALT_NONCE = "0xb1073742015cbcf5a3a4d9d1ae33ecf619439710b89475f92e2abd2117e90f90"

# keccak256(toUtf8Bytes('zksyncCreate2'))
ZKSYNC_CREATE2_PREFIX = "0x2020dba91b30cc0006188af794c2fb30dd8520db7e2c088b7fc7c103c00ca494"
ZKSYNC_MAINNET = 324
ZKSYNC_TESTNET = 280

# bytes4(keccak256("isValidSignature(bytes32,bytes)"))
EIP1271_MAGIC_VALUE = "0x1626ba7e"

SIGNATURE_LENGTH_BYTES = 65

# Chains where the L1 singleton is the default for new Safes
L1_SINGLETON_CHAIN_IDS = (1,)
