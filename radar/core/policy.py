# radar/core/policy.py
# Purpose: collision policy refinements applied on top of first-seen-wins.
#   - exclusion list + scam-phrase patterns (never registered, never reported)
#   - same-deployer suppression
#   - popularity override (log volume over a trailing window)

from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence

from radar.core.types import Token
from radar.utils.logger import log

DEFAULT_SCAM_PATTERNS = [
    r"\bclaim",
    r"\bbonus\b",
    r"\$\s",
    r"\bairdrop",
    r"\breward",
    r"\bvisit\b",
    r"https?://",
    r"\bwww\.",
    r"\.(com|io|org|net|xyz|app|finance)\b",
]


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


class ExclusionPolicy:
    """
    An exclusion entry matches when every field it gives (symbol and/or name)
    equals the token's field, case-insensitively. Scam patterns are regexes
    searched in both name and symbol.
    """

    def __init__(self, exclusions: Iterable[Dict[str, Optional[str]]] = (),
                 scam_patterns: Sequence[str] = DEFAULT_SCAM_PATTERNS):
        self.exclusions = [
            {k: _norm(v) for k, v in entry.items() if k in ("symbol", "name") and _norm(v)}
            for entry in exclusions
        ]
        self.exclusions = [e for e in self.exclusions if e]
        self.patterns = [re.compile(p, re.IGNORECASE) for p in scam_patterns]

    def matches_exclusion(self, token: Token) -> bool:
        fields = {"symbol": _norm(token.symbol), "name": _norm(token.name)}
        return any(all(fields[k] == v for k, v in entry.items()) for entry in self.exclusions)

    def matches_scam_phrase(self, token: Token) -> bool:
        texts = [t for t in (token.symbol, token.name) if t]
        return any(p.search(t) for p in self.patterns for t in texts)

    def is_excluded(self, token: Token) -> bool:
        return self.matches_exclusion(token) or self.matches_scam_phrase(token)


def is_same_deployer(new: Token, existing: Token) -> bool:
    """Both deployers known and equal."""
    return bool(new.deployer) and bool(existing.deployer) and new.deployer == existing.deployer


class PopularityJudge:
    """Picks the more active of two contracts by event-log count."""

    def __init__(self, provider, window_blocks: int, chunk_blocks: int = 200, parallel_requests: int = 5):
        self.provider = provider
        self.window_blocks = max(1, int(window_blocks))
        self.chunk_blocks = max(1, int(chunk_blocks))
        self.parallel_requests = max(1, int(parallel_requests))

    def _steps(self, from_block: int, to_block: int) -> List[Dict[str, int]]:
        steps = []
        block = from_block
        while block <= to_block:
            end = min(to_block, block + self.chunk_blocks - 1)
            steps.append({"fromBlock": block, "toBlock": end})
            block = end + 1
        return steps

    def count_logs(self, address: str, from_block: int, to_block: int) -> int:
        """Log count for address over [from_block, to_block]. Provider errors propagate."""
        steps = self._steps(from_block, to_block)
        with ThreadPoolExecutor(max_workers=self.parallel_requests) as ex:
            counts = ex.map(lambda s: len(self.provider.get_logs({"address": address, **s})), steps)
            return sum(counts)

    def more_popular(self, existing: Token, new: Token, at_block: int) -> Token:
        """The more active token; the existing one wins ties."""
        from_block = max(0, at_block - self.window_blocks)
        existing_n = self.count_logs(existing.address, from_block, at_block)
        new_n = self.count_logs(new.address, from_block, at_block)
        log("policy", f"logs over {from_block}-{at_block}: {existing.address}={existing_n} {new.address}={new_n}")
        return new if new_n > existing_n else existing
