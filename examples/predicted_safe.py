#!/usr/bin/env python3
"""
Predict the address of a Safe before deploying it, and sign for it offline.
"""
import os

from safe_protocol_sdk import LocalSigner, SafeClient, Web3Gateway


def main():
    RPC_URL = os.environ.get("RPC_URL", "https://ethereum-sepolia-rpc.publicnode.com")
    OWNER_KEY = os.environ.get("OWNER_KEY")

    if not OWNER_KEY:
        print("ERROR: OWNER_KEY environment variable is required")
        return

    signer = LocalSigner(OWNER_KEY)
    gateway = Web3Gateway(rpc_url=RPC_URL)

    # The proxy creation code is read from the factory through the gateway
    client = SafeClient.predicted(
        {"owners": [signer.address], "threshold": 1},
        {"salt_nonce": 0},
        gateway=gateway,
    )
    print(f"Predicted Safe address: {client.address}")

    deployment = client.get_deployment_transaction()
    print(f"Deploy through factory {deployment['to']} with data 0x{deployment['data'].hex()}")

    # Signatures made now stay valid once the Safe is deployed at that address
    tx = client.create_transaction([{"to": signer.address, "value": 0}])
    tx = client.sign_transaction(tx, signer)
    print(f"Signed Safe tx 0x{client.get_transaction_hash(tx).hex()}")
    print(f"Signatures: 0x{tx.encoded_signatures().hex()}")


if __name__ == "__main__":
    main()
