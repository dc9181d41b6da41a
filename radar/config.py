# radar/config.py
# Purpose: one ScanConfig resolved at startup from .env / environment / overrides.

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from radar.chains import get_chain
from radar.core.fingerprint import FingerprintPolicy
from radar.core.policy import DEFAULT_SCAM_PATTERNS

_FALSY = {"0", "false", "no", "off", ""}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in _FALSY


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    return float(raw) if raw else default


def _load_json_list(path: Optional[str]) -> List[Dict[str, Any]]:
    if not path:
        return []
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        # bot-config style: {"exclude": [...]}
        data = data.get("exclude") or []
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list")
    return data


@dataclass
class ScanConfig:
    chain_key: str = "eth"
    data_path: str = "data"
    use_trace_discovery: bool = True
    popularity_override_enabled: bool = False
    same_deployer_suppression: bool = True
    fingerprint_policy: FingerprintPolicy = FingerprintPolicy.TUPLE
    popularity_window_days: int = 1
    blocks_per_day: int = 6_000
    max_retries: int = 25
    retry_wait_seconds: float = 30.0
    receipt_concurrency: int = 8
    resolve_deployers: bool = False
    exclusions: List[Dict[str, Any]] = field(default_factory=list)
    scam_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_SCAM_PATTERNS))
    popular_tokens_file: Optional[str] = None

    @property
    def popularity_window_blocks(self) -> int:
        return self.popularity_window_days * self.blocks_per_day


def load_config(chain_key: str = "eth", **overrides) -> ScanConfig:
    """
    Environment first (after load_dotenv), keyword overrides last. Unknown
    override keys raise TypeError; None overrides are ignored.
    """
    load_dotenv()
    chain = get_chain(chain_key)

    cfg = ScanConfig(
        chain_key=chain_key,
        data_path=os.getenv("RADAR_DATA_PATH", "data"),
        use_trace_discovery=_env_flag("RADAR_TRACE_DISCOVERY", bool(chain.get("trace_api", False))),
        popularity_override_enabled=_env_flag("RADAR_POPULARITY_OVERRIDE", False),
        same_deployer_suppression=_env_flag("RADAR_SAME_DEPLOYER_SUPPRESSION", True),
        fingerprint_policy=FingerprintPolicy(os.getenv("RADAR_FINGERPRINT_POLICY", "tuple").strip().lower()),
        popularity_window_days=_env_int("RADAR_POPULARITY_WINDOW_DAYS", 1),
        blocks_per_day=int(chain["blocks_per_day"]),
        max_retries=_env_int("RADAR_MAX_RETRIES", 25),
        retry_wait_seconds=_env_float("RADAR_RETRY_WAIT", 30.0),
        receipt_concurrency=_env_int("RADAR_RECEIPT_CONCURRENCY", 8),
        resolve_deployers=_env_flag("RADAR_RESOLVE_DEPLOYERS", False),
        exclusions=_load_json_list(os.getenv("RADAR_EXCLUSIONS_FILE")),
        popular_tokens_file=os.getenv("RADAR_POPULAR_TOKENS_FILE") or None,
    )

    known = {f.name for f in fields(ScanConfig)}
    for key, value in overrides.items():
        if key not in known:
            raise TypeError(f"unknown config field: {key}")
        if value is not None:
            setattr(cfg, key, value)
    if isinstance(cfg.fingerprint_policy, str):
        cfg.fingerprint_policy = FingerprintPolicy(cfg.fingerprint_policy)
    return cfg
