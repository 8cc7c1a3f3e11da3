"""
Property-based tests for the Safe protocol SDK.

These tests verify that properties hold true across many random inputs.
"""
from hypothesis import given, settings, strategies as st
from eth_utils import to_checksum_address

from safe_protocol_sdk.multisend import decode_multi_send_data, encode_multi_send_data
from safe_protocol_sdk.readiness import Ready, check
from safe_protocol_sdk.signatures import (
    SafeSignature,
    SignatureStore,
    SigningScheme,
    generate_pre_validated_signature,
    split_signatures,
)

address_strategy = st.binary(min_size=20, max_size=20).map(to_checksum_address)
addresses_strategy = st.lists(address_strategy, min_size=1, max_size=8, unique_by=lambda a: a.lower())
call_strategy = st.fixed_dictionaries({
    "to": address_strategy,
    "value": st.integers(min_value=0, max_value=2 ** 256 - 1),
    "data": st.binary(max_size=200),
    "operation": st.sampled_from([0, 1]),
})


@settings(max_examples=50)
@given(addresses=addresses_strategy, data=st.data())
def test_encoding_independent_of_insertion_order(addresses, data):
    """
    The same set of signatures always encodes to the same blob, sorted by signer.
    """
    signatures = [generate_pre_validated_signature(address) for address in addresses]
    shuffled = data.draw(st.permutations(signatures))

    encoded = SignatureStore(signatures).encode()
    assert SignatureStore(shuffled).encode() == encoded

    signers = [s.signer for s in split_signatures(encoded, b"\x00" * 32)]
    assert signers == sorted(signers, key=lambda a: int(a, 16))


@settings(max_examples=50)
@given(
    addresses=addresses_strategy,
    payloads=st.lists(st.binary(max_size=150), min_size=1, max_size=4),
)
def test_contract_signatures_parse_back(addresses, payloads):
    """
    Dynamic parts come back at the offsets their static slots point to.
    """
    contract_signers = addresses[:len(payloads)]
    signatures = [
        SafeSignature(signer, payload, SigningScheme.CONTRACT_SIGNATURE)
        for signer, payload in zip(contract_signers, payloads)
    ]
    signatures += [generate_pre_validated_signature(a) for a in addresses[len(payloads):]]

    parsed = split_signatures(SignatureStore(signatures).encode(), b"\x00" * 32)

    assert {s.signer: s.data for s in parsed} == {s.signer: s.data for s in signatures}


@settings(max_examples=100)
@given(
    owners=addresses_strategy,
    data=st.data(),
)
def test_threshold_satisfaction(owners, data):
    """
    A signature set is ready exactly when enough distinct owners signed.
    """
    threshold = data.draw(st.integers(min_value=1, max_value=len(owners)))
    signed = data.draw(st.lists(st.sampled_from(owners), max_size=len(owners) + 2))
    owner_keys = {owner.lower() for owner in owners}
    outsiders = data.draw(st.lists(address_strategy.filter(lambda a: a.lower() not in owner_keys), max_size=3))

    store = SignatureStore(
        generate_pre_validated_signature(address) for address in signed + outsiders
    )
    distinct_owners = {address.lower() for address in signed}
    result = check(store, owners, threshold)

    if len(distinct_owners) >= threshold:
        assert isinstance(result, Ready)
    else:
        assert not result
        assert result.count == threshold - len(distinct_owners)


@settings(max_examples=50)
@given(calls=st.lists(call_strategy, min_size=1, max_size=5))
def test_batch_preserves_call_order(calls):
    decoded = decode_multi_send_data(encode_multi_send_data(calls))

    assert [call.to for call in decoded] == [call["to"] for call in calls]
    assert [call.data for call in decoded] == [call["data"] for call in calls]
    assert [int(call.operation) for call in decoded] == [call["operation"] for call in calls]
