# radar/core/storage.py
"""
Append-only token log (CSV) plus a small JSON checkpoint per chain.

Rows are only ever appended; replaying them in file order rebuilds the
registry. The checkpoint is replaced atomically and is written by the
scanner only after every append of a block has been flushed to disk.
"""

from __future__ import annotations

import csv
import io
import json
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from radar.core.errors import StorageError
from radar.core.types import ScanState, Token, TokenInterface, TokenRecord
from radar.utils.addr import lower_or_none, normalize_evm_address
from radar.utils.logger import log, warn

# column order of the token log
FIELDNAMES = ["type", "name", "symbol", "address", "deployer", "legit", "supersedes"]

LIST_ADDRESS_KEY = "contract_address"  # address column in exported token lists

_TRUE = {"1", "true", "yes", "y"}


def tokens_file_name(chain_id: int) -> str:
    return f"chain-{chain_id}"


def _record_to_row(rec: TokenRecord) -> Dict[str, str]:
    t = rec.token
    return {
        "type": str(int(t.type)),
        "name": t.name or "",
        "symbol": t.symbol or "",
        "address": t.address,
        "deployer": t.deployer or "",
        "legit": "true" if rec.legit else "false",
        "supersedes": rec.supersedes or "",
    }


def _row_to_record(row: Dict[str, Optional[str]]) -> TokenRecord:
    if any(row.get(k) is None for k in ("type", "address")):
        raise ValueError("missing columns")
    token = Token(
        address=normalize_evm_address(row["address"] or ""),
        type=TokenInterface(int(row["type"] or "")),
        name=(row.get("name") or None),
        symbol=(row.get("symbol") or None),
        deployer=lower_or_none(row.get("deployer")),
    )
    # rows written before the legit column existed are treated as legitimate
    legit_raw = (row.get("legit") or "true").strip().lower()
    return TokenRecord(token=token, legit=legit_raw in _TRUE, supersedes=lower_or_none(row.get("supersedes")))


class TokenStorage:
    ext = ".csv"

    def __init__(self, dist_path: Union[str, Path], file_name: str):
        self.dist_path = Path(dist_path)
        self.file_name = file_name
        self.file_path = self.dist_path / (file_name + self.ext)
        self.checkpoint_path = self.dist_path / (file_name + ".checkpoint.json")

    def exists(self) -> bool:
        return self.file_path.exists()

    def _mkdir(self) -> None:
        self.dist_path.mkdir(parents=True, exist_ok=True)

    def _truncate_torn_tail(self, data: bytes) -> bytes:
        """A crash mid-append can leave a last line without its newline: cut it off."""
        if not data or data.endswith(b"\n"):
            return data
        cut = data.rfind(b"\n") + 1
        warn("storage", f"{self.file_path}: dropping partially written last row "
                        f"({len(data) - cut} bytes)")
        with open(self.file_path, "r+b") as f:
            f.truncate(cut)
            f.flush()
            os.fsync(f.fileno())
        return data[:cut]

    def read_all(self) -> List[TokenRecord]:
        """Every record in append order. Malformed rows are skipped with a warning."""
        if not self.exists():
            return []
        try:
            data = self.file_path.read_bytes()
        except OSError as e:
            raise StorageError(f"cannot read {self.file_path}: {e}") from e

        data = self._truncate_torn_tail(data)
        records: List[TokenRecord] = []
        reader = csv.DictReader(io.StringIO(data.decode("utf-8", errors="replace")))
        for line_no, row in enumerate(reader, start=2):
            try:
                records.append(_row_to_record(row))
            except (ValueError, KeyError) as e:
                warn("storage", f"{self.file_path}:{line_no}: skipping malformed row ({e})")
        log("storage", f"read {len(records)} records from {self.file_path}")
        return records

    def append(self, records: Union[TokenRecord, Iterable[TokenRecord]]) -> None:
        rows = [records] if isinstance(records, TokenRecord) else list(records)
        if not rows:
            return
        self._mkdir()
        needs_header = not self.exists() or self.file_path.stat().st_size == 0
        with open(self.file_path, "a", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=FIELDNAMES, lineterminator="\n")
            if needs_header:
                writer.writeheader()
            for rec in rows:
                writer.writerow(_record_to_row(rec))
            f.flush()
            os.fsync(f.fileno())

    def read_checkpoint(self) -> Optional[ScanState]:
        if not self.checkpoint_path.exists():
            return None
        try:
            return ScanState.from_dict(json.loads(self.checkpoint_path.read_text(encoding="utf-8")))
        except (ValueError, KeyError, TypeError) as e:
            warn("storage", f"{self.checkpoint_path}: unreadable checkpoint ignored ({e})")
            return None

    def write_checkpoint(self, state: ScanState) -> None:
        self._mkdir()
        tmp = self.checkpoint_path.with_name(self.checkpoint_path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(state.to_dict(), f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.checkpoint_path)

    def delete(self) -> None:
        for p in (self.file_path, self.checkpoint_path):
            try:
                p.unlink()
            except FileNotFoundError:
                pass


# ---------- address lists for the bulk fetcher ----------

def _prepare_address(raw: str) -> str:
    # exports from SQL tools come as \x-prefixed bytea
    return normalize_evm_address((raw or "").strip().replace("\\x", "0x", 1))


def read_address_file(path: Union[str, Path],
                      default_type: Optional[TokenInterface] = None) -> List[Tuple[str, Optional[TokenInterface]]]:
    """
    (address, type) pairs from a CSV export (contract_address/address column,
    optional type column) or a plain text file with one address per line.
    Blank lines, '#' comments and invalid addresses are skipped.
    """
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    out: List[Tuple[str, Optional[TokenInterface]]] = []

    first = text.lstrip().splitlines()[0] if text.strip() else ""
    if p.suffix == ".csv" and (LIST_ADDRESS_KEY in first or "address" in first):
        for row in csv.DictReader(io.StringIO(text)):
            raw = row.get(LIST_ADDRESS_KEY) or row.get("address") or ""
            try:
                address = _prepare_address(raw)
                kind = TokenInterface(int(row["type"])) if row.get("type") else default_type
            except ValueError as e:
                warn("storage", f"{p}: skipping {raw!r} ({e})")
                continue
            out.append((address, kind))
        return out

    for line in text.splitlines():
        s = line.strip()
        if not s or s.startswith("#"):
            continue
        try:
            out.append((_prepare_address(s), default_type))
        except ValueError as e:
            warn("storage", f"{p}: skipping {s!r} ({e})")
    return out


def load_address_rows(dist_path: Union[str, Path], chain_id: int) -> List[Tuple[str, Optional[TokenInterface]]]:
    """
    The chain's merged list (chain-<id>.list.csv) if present, otherwise the
    per-interface partial lists (chain-<id>.list.erc<type>.csv).
    """
    base = Path(dist_path)
    merged = base / f"{tokens_file_name(chain_id)}.list.csv"
    if merged.exists():
        log("storage", f"Loading list of token addresses from {merged}")
        return read_address_file(merged)

    rows: List[Tuple[str, Optional[TokenInterface]]] = []
    for kind in TokenInterface:
        partial = base / f"{tokens_file_name(chain_id)}.list.erc{int(kind)}.csv"
        if partial.exists():
            log("storage", f"Loading partial list of {kind.name} token addresses")
            rows.extend(read_address_file(partial, default_type=kind))
    return rows
