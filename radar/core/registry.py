# radar/core/registry.py
# Purpose: in-memory index of observed tokens. One instance per running scan,
# rebuilt from storage at startup and mutated only by the orchestrator.

from __future__ import annotations

from typing import Dict, Iterable, Iterator, Optional

from radar.core.fingerprint import FingerprintPolicy, token_fingerprint
from radar.core.types import RegisterResult, Token, TokenRecord
from radar.utils.logger import log


class TokenRegistry:
    def __init__(self, policy: FingerprintPolicy = FingerprintPolicy.TUPLE):
        self.policy = policy
        # fingerprint -> legitimate (first accepted) token
        self._by_fingerprint: Dict[str, Token] = {}
        # address -> last known token, legitimate or not
        self._by_address: Dict[str, Token] = {}

    def fingerprint_of(self, token: Token) -> str:
        return token_fingerprint(token, self.policy)

    def lookup(self, fp: str) -> Optional[Token]:
        return self._by_fingerprint.get(fp)

    def lookup_token(self, token: Token) -> Optional[Token]:
        return self._by_fingerprint.get(self.fingerprint_of(token))

    def get(self, address: str) -> Optional[Token]:
        return self._by_address.get(address.lower())

    def is_known_address(self, address: str) -> bool:
        return address.lower() in self._by_address

    def register(self, token: Token) -> RegisterResult:
        """First-seen-wins insert. An existing holder is never overwritten."""
        fp = self.fingerprint_of(token)
        existing = self._by_fingerprint.get(fp)
        if existing is not None:
            return RegisterResult(accepted=False, collides_with=existing)
        self._by_fingerprint[fp] = token
        self._by_address[token.address] = token
        return RegisterResult(accepted=True)

    def remember(self, token: Token) -> None:
        """Index by address only (impersonators, same-deployer re-deployments)."""
        self._by_address[token.address] = token

    def promote(self, token: Token) -> Optional[Token]:
        """Make token the legitimate holder of its fingerprint; returns the one replaced."""
        fp = self.fingerprint_of(token)
        previous = self._by_fingerprint.get(fp)
        self._by_fingerprint[fp] = token
        self._by_address[token.address] = token
        return previous

    def replay(self, records: Iterable[TokenRecord]) -> int:
        """
        Rebuild state from persisted rows in file order. Later legit rows with
        the same fingerprint do not override earlier ones (duplicate appends
        after a crash are harmless), unless the row explicitly supersedes the
        current holder.
        """
        count = 0
        for rec in records:
            count += 1
            token = rec.token
            if not rec.legit:
                self.remember(token)
                continue
            current = self.lookup_token(token)
            if current is None:
                self.register(token)
            elif rec.supersedes and rec.supersedes == current.address:
                self.promote(token)
            else:
                log("registry", f"replay: {token.address} kept out, {current.address} holds the identity")
                self.remember(token)
        return count

    def legitimate_tokens(self) -> Iterator[Token]:
        return iter(self._by_fingerprint.values())

    @property
    def known_addresses(self) -> int:
        return len(self._by_address)

    def __len__(self) -> int:
        return len(self._by_fingerprint)
