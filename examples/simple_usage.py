#!/usr/bin/env python3
"""
Simple example of using the Safe protocol SDK.
"""
import os

from safe_protocol_sdk import LocalSigner, SafeClient, Web3Gateway


def main():
    """
    Demonstrate basic usage of the SafeClient.

    This example shows how to:
    1. Load a deployed Safe
    2. Create a transfer and collect two owner signatures
    3. Execute it once the threshold is reached
    """
    # Read configuration from environment
    RPC_URL = os.environ.get("RPC_URL", "https://ethereum-sepolia-rpc.publicnode.com")
    SAFE_ADDRESS = os.environ.get("SAFE_ADDRESS")
    OWNER_KEY_1 = os.environ.get("OWNER_KEY_1")
    OWNER_KEY_2 = os.environ.get("OWNER_KEY_2")
    RECIPIENT = os.environ.get("RECIPIENT")

    # Verify configuration
    if not SAFE_ADDRESS or not RECIPIENT:
        print("ERROR: SAFE_ADDRESS and RECIPIENT environment variables are required")
        return

    if not OWNER_KEY_1 or not OWNER_KEY_2:
        print("ERROR: OWNER_KEY_1 and OWNER_KEY_2 environment variables are required")
        return

    # The first owner also pays for the execution
    gateway = Web3Gateway(rpc_url=RPC_URL, priv_key=OWNER_KEY_1)
    client = SafeClient.load(gateway, SAFE_ADDRESS)
    print(f"Safe v{client.account.version}: {client.account.threshold} of {len(client.account.owners)} owners")

    tx = client.create_transaction([{"to": RECIPIENT, "value": 10**15}])
    print(f"Safe tx hash: 0x{client.get_transaction_hash(tx).hex()}")

    for key in (OWNER_KEY_1, OWNER_KEY_2):
        tx = client.sign_transaction(tx, LocalSigner(key))

    readiness = client.check_readiness(tx)
    if not readiness:
        print(readiness.message)
        return

    try:
        tx_receipt = client.execute_transaction(tx)

        print("Safe transaction executed!")
        print(f"Transaction hash: {tx_receipt.tx_hash}")
        print(f"Block number: {tx_receipt.block_number}")
        print(f"Status: {'Success' if tx_receipt.status == 1 else 'Failed'}")

    except Exception as e:
        print(f"Error executing transaction: {str(e)}")


if __name__ == "__main__":
    main()
