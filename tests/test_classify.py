from __future__ import annotations

from radar.core.classify import (
    BytecodeSignatureProbe,
    DuckTypingProbe,
    Erc165Probe,
    InterfaceClassifier,
    is_code_compatible,
    match_bytecode,
)
from radar.core.interfaces import EIP1967_IMPL_SLOT, ERC20_FUNCTIONS
from radar.core.types import ProbeResult, TokenInterface

from .fakes import FakeProvider, addr, erc1155_code, erc20_code, erc721_code

TOKEN = addr(0xA)


def test_is_code_compatible_requires_every_hash() -> None:
    code = erc20_code()
    assert is_code_compatible(code, ERC20_FUNCTIONS)
    assert is_code_compatible("0x" + code.upper(), ERC20_FUNCTIONS)
    assert not is_code_compatible(code, ["mint(address,uint256)"])


def test_match_bytecode_kinds() -> None:
    assert match_bytecode(erc20_code()).kind == TokenInterface.ERC20Detailed
    assert match_bytecode(erc721_code()).kind == TokenInterface.ERC721Metadata
    assert match_bytecode(erc1155_code()).kind == TokenInterface.ERC1155


def test_match_bytecode_rejects_tokens_without_metadata() -> None:
    assert match_bytecode(erc20_code(metadata=False)).result == ProbeResult.REJECT
    assert match_bytecode(erc721_code(metadata=False)).result == ProbeResult.REJECT


def test_match_bytecode_empty_code() -> None:
    assert match_bytecode("").result == ProbeResult.NO_MATCH
    assert match_bytecode("6080604052").result == ProbeResult.NO_MATCH


def test_erc165_probe_match_no_match_inconclusive(provider: FakeProvider) -> None:
    probe = Erc165Probe(provider)

    provider.support_interfaces(TOKEN, {TokenInterface.ERC721Metadata})
    assert probe.probe(TOKEN).kind == TokenInterface.ERC721Metadata

    provider.support_interfaces(TOKEN, set())
    assert probe.probe(TOKEN).result == ProbeResult.NO_MATCH

    # no supportsInterface at all
    assert probe.probe(addr(0xB)).result == ProbeResult.INCONCLUSIVE


def test_erc165_tie_break_prefers_erc20(provider: FakeProvider) -> None:
    provider.support_interfaces(TOKEN, {TokenInterface.ERC1155, TokenInterface.ERC20Detailed})
    assert Erc165Probe(provider).probe(TOKEN).kind == TokenInterface.ERC20Detailed

    provider.support_interfaces(TOKEN, {TokenInterface.ERC1155, TokenInterface.ERC721Metadata})
    assert Erc165Probe(provider).probe(TOKEN).kind == TokenInterface.ERC721Metadata


def test_erc165_partial_failure_is_inconclusive(provider: FakeProvider) -> None:
    def supports(iid: bytes) -> bool:
        if iid.hex() == "d9b67a26":
            raise RuntimeError("out of gas")
        return False

    provider.set_function(TOKEN, "supportsInterface", supports)
    assert Erc165Probe(provider).probe(TOKEN).result == ProbeResult.INCONCLUSIVE


def test_erc165_short_circuits_bytecode_scan(provider: FakeProvider) -> None:
    provider.support_interfaces(TOKEN, {TokenInterface.ERC1155})
    provider.code[TOKEN] = erc20_code()

    assert InterfaceClassifier(provider).classify(TOKEN) == TokenInterface.ERC1155
    assert provider.calls_of("get_code") == []


def test_bytecode_probe_follows_eip1967_proxy(provider: FakeProvider) -> None:
    impl = addr(0x1A)
    provider.code[TOKEN] = "6080604052363d3d373d3d3d363d73"
    provider.storage[(TOKEN, EIP1967_IMPL_SLOT)] = bytes(12) + bytes.fromhex(impl[2:])
    provider.code[impl] = erc721_code()

    outcome = BytecodeSignatureProbe(provider).probe(TOKEN)

    assert outcome.kind == TokenInterface.ERC721Metadata


def test_bytecode_probe_without_proxy_following(provider: FakeProvider) -> None:
    impl = addr(0x1A)
    provider.code[TOKEN] = "6080604052"
    provider.storage[(TOKEN, EIP1967_IMPL_SLOT)] = bytes(12) + bytes.fromhex(impl[2:])
    provider.code[impl] = erc721_code()

    assert BytecodeSignatureProbe(provider, follow_proxy=False).probe(TOKEN).result == ProbeResult.NO_MATCH


def test_bytecode_probe_get_code_failure_is_inconclusive(provider: FakeProvider) -> None:
    provider.fail("get_code")
    assert BytecodeSignatureProbe(provider).probe(TOKEN).result == ProbeResult.INCONCLUSIVE


def _erc20_calls(provider: FakeProvider, address: str, symbol: str | None = "TKN") -> None:
    provider.set_function(address, "balanceOf", lambda owner: 0)
    provider.set_function(address, "totalSupply", 10 ** 18)
    provider.set_function(address, "allowance", lambda owner, spender: 0)
    if symbol is not None:
        provider.set_function(address, "symbol", symbol)


def test_duck_typing_probe(provider: FakeProvider) -> None:
    _erc20_calls(provider, TOKEN)
    assert DuckTypingProbe(provider).probe(TOKEN).kind == TokenInterface.ERC20Detailed


def test_duck_typing_needs_metadata(provider: FakeProvider) -> None:
    _erc20_calls(provider, TOKEN, symbol=None)
    assert DuckTypingProbe(provider).probe(TOKEN).result == ProbeResult.NO_MATCH


def test_duck_typing_needs_core_functions(provider: FakeProvider) -> None:
    provider.set_function(TOKEN, "symbol", "TKN")
    provider.set_function(TOKEN, "name", "Token")
    assert DuckTypingProbe(provider).probe(TOKEN).result == ProbeResult.NO_MATCH


def test_duck_typing_fires_only_after_other_probes(provider: FakeProvider) -> None:
    # unknown proxy: no ERC-165, nothing recognizable in the code, but ERC-20 calls work
    provider.code[TOKEN] = "6080604052"
    _erc20_calls(provider, TOKEN)

    assert InterfaceClassifier(provider).classify(TOKEN) == TokenInterface.ERC20Detailed
    assert provider.calls_of("get_code")


def test_duck_typing_not_reached_when_bytecode_matches(provider: FakeProvider) -> None:
    provider.code[TOKEN] = erc721_code()
    _erc20_calls(provider, TOKEN)

    assert InterfaceClassifier(provider).classify(TOKEN) == TokenInterface.ERC721Metadata
    called = {args[1] for args in provider.calls_of("call_function")}
    assert "totalSupply" not in called


def test_classify_returns_none_for_plain_contract(provider: FakeProvider) -> None:
    provider.code[TOKEN] = "6080604052"
    assert InterfaceClassifier(provider).classify(TOKEN) is None


def test_classify_never_raises(provider: FakeProvider) -> None:
    class Broken:
        name = "broken"

        def probe(self, address):
            raise RuntimeError("boom")

    provider.code[TOKEN] = erc20_code()
    classifier = InterfaceClassifier(provider, [Broken(), BytecodeSignatureProbe(provider)])
    assert classifier.classify(TOKEN) == TokenInterface.ERC20Detailed


def test_token_without_metadata_selectors_is_unrecognized(provider: FakeProvider) -> None:
    # the ERC-20 calls all answer, but the code lacks symbol()/name()
    provider.code[TOKEN] = erc20_code(metadata=False)
    _erc20_calls(provider, TOKEN)

    assert InterfaceClassifier(provider).classify(TOKEN) is None
    called = {args[1] for args in provider.calls_of("call_function")}
    assert called == {"supportsInterface"}


def test_nft_without_metadata_selectors_is_unrecognized(provider: FakeProvider) -> None:
    provider.code[TOKEN] = erc721_code(metadata=False)
    _erc20_calls(provider, TOKEN)

    assert InterfaceClassifier(provider).classify(TOKEN) is None


def test_explain_reports_verdicts(provider: FakeProvider) -> None:
    provider.code[TOKEN] = erc20_code()
    kind, verdicts = InterfaceClassifier(provider).explain(TOKEN)

    assert kind == TokenInterface.ERC20Detailed
    assert verdicts == {
        "erc165": "inconclusive",
        "bytecode": "match (ERC20Detailed)",
        "duck-typing": "skipped",
    }


def test_explain_costs_the_same_calls_as_classify(provider: FakeProvider) -> None:
    provider.code[TOKEN] = "6080604052"
    _erc20_calls(provider, TOKEN)
    classifier = InterfaceClassifier(provider)

    assert classifier.classify(TOKEN) == TokenInterface.ERC20Detailed
    classify_calls = len(provider.calls)
    provider.calls.clear()

    kind, verdicts = classifier.explain(TOKEN)
    assert kind == TokenInterface.ERC20Detailed
    assert verdicts["duck-typing"] == "match (ERC20Detailed)"
    assert len(provider.calls) == classify_calls
