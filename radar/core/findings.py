# radar/core/findings.py
# Purpose: impersonation findings and the popular-token list that bumps their severity.

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from radar.core.fingerprint import FingerprintPolicy, fingerprint
from radar.core.types import Token, TokenInterface

HIGH_SEVERITY_ALERT_ID = "IMPERSONATED-TOKEN-DEPLOYMENT-POPULAR"
MEDIUM_SEVERITY_ALERT_ID = "IMPERSONATED-TOKEN-DEPLOYMENT"

FINDING_NAME = "Impersonating Token Contract"


@dataclass(frozen=True)
class Finding:
    impersonating: Token
    legitimate: Token
    severity: str = "Medium"
    alert_id: str = MEDIUM_SEVERITY_ALERT_ID

    @property
    def description(self) -> str:
        new, old = self.impersonating, self.legitimate
        who = new.deployer or "Unknown deployer"
        return (f"{who} deployed an impersonating token contract at {new.address}. "
                f"It impersonates token {old.display_name()} at {old.address}")

    def _labels(self) -> List[Dict[str, Any]]:
        new, old = self.impersonating, self.legitimate
        pairs = [
            ("Victim", old.deployer),
            ("Victim", old.address),
            ("Scam", new.address),
            ("Scammer", new.deployer),
        ]
        return [
            {"entityType": "Address", "label": label, "entity": entity, "confidence": 0.5, "remove": False}
            for label, entity in pairs if entity
        ]

    def to_dict(self) -> Dict[str, Any]:
        new, old = self.impersonating, self.legitimate
        addresses = [a for a in (new.deployer, old.deployer, new.address, old.address) if a]
        return {
            "alertId": self.alert_id,
            "name": FINDING_NAME,
            "description": self.description,
            "type": "Suspicious",
            "severity": self.severity,
            "addresses": list(dict.fromkeys(addresses)),
            "labels": self._labels(),
            "metadata": {
                "newTokenSymbol": new.symbol or "",
                "newTokenName": new.name or "",
                "newTokenType": new.type.name,
                "oldTokenSymbol": old.symbol or "",
                "oldTokenName": old.name or "",
                "oldTokenType": old.type.name,
                "newTokenDeployer": new.deployer or "",
                "newTokenContract": new.address,
                "oldTokenDeployer": old.deployer or "",
                "oldTokenContract": old.address,
            },
        }


class PopularTokens:
    """
    Fingerprints of well-known tokens. Entries may omit `type`, in which case
    every interface kind is considered.
    """

    def __init__(self, entries: Iterable[Dict[str, Any]] = (),
                 policy: FingerprintPolicy = FingerprintPolicy.TUPLE):
        self.policy = policy
        self._hashes = set()
        for e in entries:
            kinds = [TokenInterface(int(e["type"]))] if e.get("type") else list(TokenInterface)
            for kind in kinds:
                self._hashes.add(fingerprint(e.get("symbol"), e.get("name"), kind, policy))

    @classmethod
    def from_file(cls, path: Optional[Union[str, Path]],
                  policy: FingerprintPolicy = FingerprintPolicy.TUPLE) -> "PopularTokens":
        if not path:
            return cls(policy=policy)
        entries = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(entries, policy=policy)

    def is_popular(self, token: Token) -> bool:
        return fingerprint(token.symbol, token.name, token.type, self.policy) in self._hashes

    def __len__(self) -> int:
        return len(self._hashes)


def create_impersonation_finding(new: Token, old: Token, popular: bool = False) -> Finding:
    if popular:
        return Finding(new, old, severity="High", alert_id=HIGH_SEVERITY_ALERT_ID)
    return Finding(new, old, severity="Medium", alert_id=MEDIUM_SEVERITY_ALERT_ID)
