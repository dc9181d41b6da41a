from __future__ import annotations

from jobs.watch_chain import watch
from radar.core.scan import fetch_block_events

from .fakes import FakeProvider, addr, create_trace, transfer_log, tx_hash

TOKEN_A, TOKEN_B = addr(0xA), addr(0xB)


def _deploy_block(provider: FakeProvider, number: int, deployer: str, token: str) -> None:
    h = tx_hash(number)
    provider.add_block(
        number,
        [{"hash": h, "from": deployer, "to": None, "nonce": 3, "blockNumber": number}],
        receipts=[{"contractAddress": token, "logs": [transfer_log(token, number)]}],
        traces=[create_trace(deployer, token, tx=h)],
    )


def test_fetch_block_events_groups_traces_by_transaction(provider: FakeProvider) -> None:
    _deploy_block(provider, 7, addr(0xD1), TOKEN_A)

    (event,) = fetch_block_events(provider, 7, with_traces=True)

    assert event.hash == tx_hash(7)
    assert event.sender == addr(0xD1)
    assert event.nonce == 3
    assert event.block_number == 7
    assert [t["result"]["address"] for t in event.traces] == [TOKEN_A]
    assert [l["address"] for l in event.logs] == [TOKEN_A]
    assert fetch_block_events(provider, 8, with_traces=True) == []


def test_watch_follows_the_head(make_orchestrator, provider: FakeProvider) -> None:
    provider.add_erc20(TOKEN_A, symbol="TKN")
    provider.add_erc20(TOKEN_B, symbol="TKN")
    _deploy_block(provider, 1, addr(0xD1), TOKEN_A)
    orch = make_orchestrator()
    found = []
    waits = []

    def sleep(seconds: float) -> None:
        # the next block shows up while we wait at the head
        waits.append(seconds)
        _deploy_block(provider, 2, addr(0xD2), TOKEN_B)

    next_block = watch(orch, 1, poll_interval=3.0, max_blocks=2, on_finding=found.append, sleep=sleep)

    assert next_block == 3
    assert waits == [3.0]
    assert [(f.legitimate.address, f.impersonating.address) for f in found] == [(TOKEN_A, TOKEN_B)]


def test_watch_retries_a_failing_block(make_orchestrator, provider: FakeProvider) -> None:
    provider.add_erc20(TOKEN_A, symbol="TKN")
    _deploy_block(provider, 1, addr(0xD1), TOKEN_A)
    orch = make_orchestrator(max_retries=3, retry_wait_seconds=1.5)
    provider.fail("get_transaction_receipt", 1)
    waits = []

    assert watch(orch, 1, max_blocks=1, sleep=waits.append) == 2
    assert waits == [1.5]
    assert orch.registry.is_known_address(TOKEN_A)
