# radar/core/classify.py
"""
Token interface identification without verified source.

Strategies run in order, cheapest/most reliable first, and stop at the first
MATCH:
  1) ERC-165 supportsInterface for the three token interface ids
  2) selector/topic substring search in the runtime bytecode
     (follows an EIP-1967 implementation slot when the proxy itself matches nothing)
  3) ERC-20 duck typing for proxies whose implementation can't be inspected
Any probe failure is INCONCLUSIVE and the cascade moves on. A REJECT (ERC-20 /
ERC-721 code without symbol/name) ends it with None. classify() never raises.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from radar.core.interfaces import (
    EIP1967_IMPL_SLOT,
    ERC1155_EVENTS,
    ERC1155_FUNCTIONS,
    ERC165_ABI,
    ERC165_PRIORITY,
    ERC20_ABI,
    ERC20_EVENTS,
    ERC20_FUNCTIONS,
    ERC721_EVENTS,
    ERC721_FUNCTIONS,
    INTERFACE_ID_BY_TYPE,
    NAME_FN,
    SYMBOL_FN,
    selector_hex,
    topic_hex,
)
from radar.core.types import ProbeOutcome, ProbeResult, TokenInterface
from radar.utils.addr import ZERO_ADDRESS, pad_address
from radar.utils.logger import log

Logger = Callable[..., None]


def _noop(*args) -> None:
    pass


def _fan_out(calls: Sequence[Callable[[], object]]) -> List[Tuple[bool, object]]:
    """Run calls concurrently and wait for all of them: [(ok, value_or_exc), ...]."""
    def guarded(fn):
        try:
            return True, fn()
        except Exception as e:
            return False, e

    with ThreadPoolExecutor(max_workers=max(1, len(calls))) as ex:
        return list(ex.map(guarded, calls))


def is_code_compatible(code: str, functions: Sequence[str] = (), events: Sequence[str] = ()) -> bool:
    """True if the hex code contains every selector and event topic."""
    code = code.lower()
    if code.startswith("0x"):
        code = code[2:]
    hashes = [selector_hex(f) for f in functions] + [topic_hex(e) for e in events]
    return all(h in code for h in hashes)


def _has_metadata(code: str) -> bool:
    return is_code_compatible(code, [SYMBOL_FN]) or is_code_compatible(code, [NAME_FN])


def match_bytecode(code: str) -> ProbeOutcome:
    """Pure bytecode check: ERC-20, then ERC-721, then ERC-1155."""
    if not code or code in ("0x", "00"):
        return ProbeOutcome.no_match()

    if is_code_compatible(code, ERC20_FUNCTIONS, ERC20_EVENTS):
        if _has_metadata(code):
            return ProbeOutcome.match(TokenInterface.ERC20Detailed)
        # an ERC-20 without symbol/name is of no interest
        return ProbeOutcome.reject(TokenInterface.ERC20Detailed)

    if is_code_compatible(code, ERC721_FUNCTIONS, ERC721_EVENTS):
        if _has_metadata(code):
            return ProbeOutcome.match(TokenInterface.ERC721Metadata)
        return ProbeOutcome.reject(TokenInterface.ERC721Metadata)

    if is_code_compatible(code, ERC1155_FUNCTIONS, ERC1155_EVENTS):
        return ProbeOutcome.match(TokenInterface.ERC1155)

    return ProbeOutcome.no_match()


class Erc165Probe:
    name = "erc165"

    def __init__(self, provider):
        self.provider = provider

    def _supports(self, address: str, kind: TokenInterface) -> Callable[[], object]:
        interface_id = bytes.fromhex(INTERFACE_ID_BY_TYPE[kind][2:])
        return lambda: self.provider.call_function(address, ERC165_ABI, "supportsInterface", interface_id)

    def probe(self, address: str) -> ProbeOutcome:
        results = _fan_out([self._supports(address, kind) for kind in ERC165_PRIORITY])
        if not all(ok for ok, _ in results):
            # contract doesn't implement ERC-165 (or the call failed)
            return ProbeOutcome.inconclusive()
        for kind, (_, supported) in zip(ERC165_PRIORITY, results):
            if supported is True:
                return ProbeOutcome.match(kind)
        return ProbeOutcome.no_match()


class BytecodeSignatureProbe:
    name = "bytecode"

    def __init__(self, provider, follow_proxy: bool = True):
        self.provider = provider
        self.follow_proxy = follow_proxy

    def _implementation(self, address: str) -> Optional[str]:
        try:
            raw = self.provider.get_storage_at(address, EIP1967_IMPL_SLOT)
        except Exception as e:
            log("classify", f"EIP-1967 read error for {address}: {e}")
            return None
        if not raw or len(raw) < 20:
            return None
        impl = "0x" + bytes(raw[-20:]).hex()
        return None if impl == ZERO_ADDRESS else impl

    def probe(self, address: str) -> ProbeOutcome:
        try:
            code = self.provider.get_code(address)
        except Exception as e:
            log("classify", f"getCode failed for {address}: {e}")
            return ProbeOutcome.inconclusive()

        outcome = match_bytecode(code)
        if outcome.result != ProbeResult.NO_MATCH or not self.follow_proxy or not code:
            return outcome

        impl = self._implementation(address)
        if not impl or impl == address.lower():
            return outcome
        log("classify", f"{address} is an EIP-1967 proxy -> {impl}")
        try:
            return match_bytecode(self.provider.get_code(impl))
        except Exception as e:
            log("classify", f"getCode failed for implementation {impl}: {e}")
            return outcome


class DuckTypingProbe:
    name = "duck-typing"

    def __init__(self, provider):
        self.provider = provider

    def probe(self, address: str) -> ProbeOutcome:
        holder, spender = pad_address(1), pad_address(2)
        call = self.provider.call_function

        core = _fan_out([
            lambda: call(address, ERC20_ABI, "balanceOf", holder),
            lambda: call(address, ERC20_ABI, "totalSupply"),
            lambda: call(address, ERC20_ABI, "allowance", holder, spender),
        ])
        if not all(ok for ok, _ in core):
            return ProbeOutcome.no_match()

        meta = _fan_out([
            lambda: call(address, ERC20_ABI, "symbol"),
            lambda: call(address, ERC20_ABI, "name"),
        ])
        if any(ok for ok, _ in meta):
            return ProbeOutcome.match(TokenInterface.ERC20Detailed)
        return ProbeOutcome.no_match()


class InterfaceClassifier:
    def __init__(self, provider, strategies: Optional[List] = None):
        self.provider = provider
        self.strategies = strategies if strategies is not None else [
            Erc165Probe(provider),
            BytecodeSignatureProbe(provider),
            DuckTypingProbe(provider),
        ]

    def _cascade(self, address: str, logger: Logger,
                 verdicts: Optional[Dict[str, str]] = None) -> Optional[TokenInterface]:
        for strategy in self.strategies:
            logger(f"Trying to identify interface with {strategy.name}")
            try:
                outcome = strategy.probe(address)
            except Exception as e:
                logger(f"{strategy.name} probe raised: {e}")
                if verdicts is not None:
                    verdicts[strategy.name] = f"error: {e}"
                continue
            if verdicts is not None:
                kind = f" ({outcome.kind.name})" if outcome.kind is not None else ""
                verdicts[strategy.name] = outcome.result.value + kind
            if outcome.result == ProbeResult.MATCH:
                return outcome.kind
            logger(f"{strategy.name}: {outcome.result.value}")
            if outcome.result == ProbeResult.REJECT:
                return None
        return None

    def classify(self, address: str, logger: Logger = _noop) -> Optional[TokenInterface]:
        return self._cascade(address, logger)

    def explain(self, address: str) -> Tuple[Optional[TokenInterface], Dict[str, str]]:
        """
        classify() plus each strategy's verdict, for the API. Same calls as
        classify(): strategies after the deciding one read "skipped".
        """
        verdicts = {strategy.name: "skipped" for strategy in self.strategies}
        kind = self._cascade(address, _noop, verdicts)
        return kind, verdicts
