# radar/core/fingerprint.py
"""
Identity key for collision detection.

Two tokens with equal fingerprints share a "named identity" whatever their
addresses. The key is canonical JSON (sorted keys, fixed separators) so it
is unambiguous even for names that contain delimiter characters, and it is
byte-for-byte stable across processes and Python versions.

Policies:
  TUPLE  symbol and name are separate fields. A symbol-only "TKN" and a
         name-only "TKN" are different identities. This is the default.
  LABEL  only the label (symbol, else name) is kept, so the two tokens above
         are the same identity.
"""

import json
from enum import Enum
from typing import Optional, Union

from radar.core.types import Token, TokenInterface


class FingerprintPolicy(str, Enum):
    TUPLE = "tuple"
    LABEL = "label"


def _norm(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def fingerprint(symbol: Optional[str], name: Optional[str],
                kind: Union[TokenInterface, int],
                policy: FingerprintPolicy = FingerprintPolicy.TUPLE) -> str:
    sym, nm = _norm(symbol), _norm(name)
    parts = {"type": int(kind)}
    if policy == FingerprintPolicy.LABEL:
        label = sym or nm
        if label:
            parts["label"] = label
    else:
        if sym:
            parts["symbol"] = sym
        if nm:
            parts["name"] = nm
    return json.dumps(parts, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def token_fingerprint(token: Token, policy: FingerprintPolicy = FingerprintPolicy.TUPLE) -> str:
    return fingerprint(token.symbol, token.name, token.type, policy)
