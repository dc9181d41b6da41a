# radar/core/types.py
# Purpose: value types shared by the classifier, registry, storage and scanner.

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional


class TokenInterface(IntEnum):
    # values double as the persisted `type` column
    ERC20Detailed = 20
    ERC721Metadata = 721
    ERC1155 = 1155


class ProbeResult(Enum):
    MATCH = "match"
    NO_MATCH = "no_match"
    INCONCLUSIVE = "inconclusive"
    # recognised interface the pipeline has no use for; ends the cascade
    REJECT = "reject"


@dataclass(frozen=True)
class ProbeOutcome:
    result: ProbeResult
    kind: Optional[TokenInterface] = None

    @classmethod
    def match(cls, kind: TokenInterface) -> "ProbeOutcome":
        return cls(ProbeResult.MATCH, kind)

    @classmethod
    def no_match(cls) -> "ProbeOutcome":
        return cls(ProbeResult.NO_MATCH)

    @classmethod
    def inconclusive(cls) -> "ProbeOutcome":
        return cls(ProbeResult.INCONCLUSIVE)

    @classmethod
    def reject(cls, kind: TokenInterface) -> "ProbeOutcome":
        return cls(ProbeResult.REJECT, kind)


class BlockPhase(Enum):
    PENDING = "pending"
    FETCHING_BLOCK = "fetching_block"
    EXTRACTING_CANDIDATES = "extracting_candidates"
    CLASSIFYING_EACH = "classifying_each"
    CHECKPOINTING = "checkpointing"
    DONE = "done"
    ERROR_BACKOFF = "error_backoff"


@dataclass(frozen=True)
class Token:
    address: str
    type: TokenInterface
    name: Optional[str] = None
    symbol: Optional[str] = None
    deployer: Optional[str] = None

    @property
    def label(self) -> Optional[str]:
        """Symbol first, name as the fallback."""
        return self.symbol or self.name or None

    @property
    def is_named(self) -> bool:
        return bool((self.symbol or "").strip() or (self.name or "").strip())

    def display_name(self) -> str:
        if self.symbol and self.name:
            return f"{self.symbol} ({self.name})"
        return self.symbol or self.name or ""


@dataclass(frozen=True)
class TokenRecord:
    """One persisted row. `supersedes` names the holder a promotion replaced."""
    token: Token
    legit: bool
    supersedes: Optional[str] = None


@dataclass(frozen=True)
class RegisterResult:
    accepted: bool
    collides_with: Optional[Token] = None


@dataclass(frozen=True)
class ScanState:
    from_block: int
    to_block: int

    def to_dict(self) -> Dict[str, int]:
        return {"fromBlock": self.from_block, "toBlock": self.to_block}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ScanState":
        return cls(from_block=int(raw["fromBlock"]), to_block=int(raw["toBlock"]))


@dataclass(frozen=True)
class CreatedContract:
    address: str
    deployer: str


@dataclass
class TxEvent:
    """A transaction as the live pipeline sees it (hex strings lower-cased)."""
    hash: str
    sender: str
    nonce: int = 0
    block_number: Optional[int] = None
    traces: List[Dict[str, Any]] = field(default_factory=list)
    logs: List[Dict[str, Any]] = field(default_factory=list)
