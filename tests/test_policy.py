from __future__ import annotations

from radar.core.policy import ExclusionPolicy, PopularityJudge, is_same_deployer
from radar.core.types import Token, TokenInterface

from .fakes import FakeProvider, addr, transfer_log

ERC20 = TokenInterface.ERC20Detailed


def _token(n: int, symbol: str | None = "TKN", name: str | None = None, deployer: int | None = None) -> Token:
    return Token(address=addr(n), type=ERC20, name=name, symbol=symbol,
                 deployer=addr(deployer) if deployer else None)


def test_exclusion_entry_matches_every_given_field() -> None:
    policy = ExclusionPolicy([{"symbol": "WETH"}, {"symbol": "UNI-V2", "name": "Uniswap V2"}])

    assert policy.is_excluded(_token(1, symbol="weth", name="Wrapped Ether"))
    assert policy.is_excluded(_token(2, symbol="UNI-V2", name="uniswap v2"))
    assert not policy.is_excluded(_token(3, symbol="UNI-V2", name="Other"))


def test_empty_exclusion_entries_match_nothing() -> None:
    policy = ExclusionPolicy([{}, {"symbol": ""}], scam_patterns=[])
    assert not policy.is_excluded(_token(1))


def test_scam_phrases() -> None:
    policy = ExclusionPolicy()

    assert policy.is_excluded(_token(1, symbol="TKN", name="Claim rewards at tkn-drop.com"))
    assert policy.is_excluded(_token(2, symbol="$ 1000 USDT"))
    assert policy.is_excluded(_token(3, name="visit https://scam"))
    assert not policy.is_excluded(_token(4, symbol="USDT", name="Tether USD"))


def test_same_deployer_requires_both_known() -> None:
    assert is_same_deployer(_token(1, deployer=0xD), _token(2, deployer=0xD))
    assert not is_same_deployer(_token(1, deployer=0xD), _token(2, deployer=0xE))
    assert not is_same_deployer(_token(1), _token(2))
    assert not is_same_deployer(_token(1, deployer=0xD), _token(2))


def test_count_logs_chunks_the_window(provider: FakeProvider) -> None:
    provider.logs = [transfer_log(addr(0xA), b) for b in (0, 5, 9, 10, 25)] + [transfer_log(addr(0xB), 3)]
    judge = PopularityJudge(provider, window_blocks=20, chunk_blocks=4, parallel_requests=2)

    assert judge.count_logs(addr(0xA), 0, 20) == 4
    assert len(provider.calls_of("get_logs")) == 6


def test_more_popular_new_token_must_be_strictly_more_active(provider: FakeProvider) -> None:
    old, new = _token(0xA), _token(0xB)
    judge = PopularityJudge(provider, window_blocks=100)

    provider.logs = [transfer_log(old.address, 150), transfer_log(new.address, 160)]
    assert judge.more_popular(old, new, at_block=200) is old

    provider.logs.append(transfer_log(new.address, 170))
    assert judge.more_popular(old, new, at_block=200) is new


def test_more_popular_window_ends_at_block(provider: FakeProvider) -> None:
    old, new = _token(0xA), _token(0xB)
    provider.logs = [transfer_log(new.address, 50), transfer_log(new.address, 60)]
    judge = PopularityJudge(provider, window_blocks=10)

    # both logs are older than the window
    assert judge.more_popular(old, new, at_block=200) is old
