from __future__ import annotations

from radar.core.discovery import (
    compute_contract_address,
    filter_token_logs,
    find_block_created_contracts,
    find_created_contracts,
    unique_log_addresses,
)
from radar.core.interfaces import event_topic
from radar.core.types import CreatedContract, TxEvent

from .fakes import addr, create_trace, transfer_log, tx_hash

DEPLOYER = "0x6ac7ea33f8831ea9dcc53393aaa88b25a785dbf0"


def test_compute_contract_address_known_vectors() -> None:
    assert compute_contract_address(DEPLOYER, 0) == "0xcd234a471b72ba2f1ccf0a70fcaba648a5eecd8d"
    assert compute_contract_address(DEPLOYER, 1) == "0x343c43a37d37dff08ae8c4a11544c718abb4fcf8"


def test_created_contract_from_trace_result() -> None:
    tx = TxEvent(hash=tx_hash(1), sender=addr(0xD), traces=[create_trace(addr(0xD), addr(0xA))])

    assert find_created_contracts(tx) == [CreatedContract(address=addr(0xA), deployer=addr(0xD))]


def test_created_contract_address_derived_from_sender_nonce() -> None:
    tx = TxEvent(hash=tx_hash(1), sender=DEPLOYER, nonce=1, traces=[create_trace(DEPLOYER, None)])

    (created,) = find_created_contracts(tx)

    assert created.address == compute_contract_address(DEPLOYER, 1)


def test_contract_created_by_new_contract_uses_nonce_one() -> None:
    first = compute_contract_address(DEPLOYER, 0)
    tx = TxEvent(hash=tx_hash(1), sender=DEPLOYER, nonce=0, traces=[
        create_trace(DEPLOYER, None),
        create_trace(first, None),
    ])

    created = find_created_contracts(tx)

    assert [c.address for c in created] == [first, compute_contract_address(first, 1)]
    assert created[1].deployer == first


def test_reverted_create_is_skipped() -> None:
    failed = dict(create_trace(DEPLOYER, None), error="Reverted")
    tx = TxEvent(hash=tx_hash(1), sender=DEPLOYER, nonce=3, traces=[failed])

    assert find_created_contracts(tx) == []
    assert find_block_created_contracts([failed], {}) == {}


def test_non_create_traces_are_ignored() -> None:
    call = {"type": "call", "action": {"from": addr(0xD)}, "result": {}}
    assert find_created_contracts(TxEvent(hash=tx_hash(1), sender=addr(0xD), traces=[call])) == []


def test_block_creations_attribute_the_transaction_sender() -> None:
    factory = addr(0xF)
    traces = [
        create_trace(factory, addr(0xA), tx=tx_hash(1)),
        create_trace(addr(0xE), addr(0xB), tx=tx_hash(2)),
        create_trace(addr(0xE), None, tx=tx_hash(2)),  # failed create
    ]

    created = find_block_created_contracts(traces, {tx_hash(1): addr(0xD)})

    assert created == {addr(0xA): addr(0xD), addr(0xB): addr(0xE)}


def test_token_logs_are_filtered_and_deduplicated() -> None:
    other = {"address": addr(0xC), "topics": [event_topic("Sync(uint112,uint112)")]}
    logs = [transfer_log(addr(0xB)), other, transfer_log(addr(0xA).upper().replace("0X", "0x")),
            transfer_log(addr(0xB))]

    token_logs = filter_token_logs(logs)

    assert len(token_logs) == 3
    assert unique_log_addresses(token_logs) == [addr(0xB), addr(0xA)]
