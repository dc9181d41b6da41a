from __future__ import annotations

import json

from radar.core.findings import (
    HIGH_SEVERITY_ALERT_ID,
    MEDIUM_SEVERITY_ALERT_ID,
    PopularTokens,
    create_impersonation_finding,
)
from radar.core.types import Token, TokenInterface

from .fakes import addr

ERC20 = TokenInterface.ERC20Detailed

LEGIT = Token(address=addr(0xA), type=ERC20, name="Tether USD", symbol="USDT", deployer=addr(0xD))
FAKE = Token(address=addr(0xB), type=ERC20, name="Tether USD", symbol="USDT", deployer=addr(0xE))


def test_medium_finding_shape() -> None:
    finding = create_impersonation_finding(FAKE, LEGIT)
    out = finding.to_dict()

    assert out["alertId"] == MEDIUM_SEVERITY_ALERT_ID
    assert out["severity"] == "Medium"
    assert out["type"] == "Suspicious"
    assert out["description"] == (
        f"{addr(0xE)} deployed an impersonating token contract at {addr(0xB)}. "
        f"It impersonates token USDT (Tether USD) at {addr(0xA)}"
    )
    assert out["addresses"] == [addr(0xE), addr(0xD), addr(0xB), addr(0xA)]
    assert out["metadata"]["oldTokenContract"] == addr(0xA)
    assert out["metadata"]["newTokenType"] == "ERC20Detailed"
    assert {(l["label"], l["entity"]) for l in out["labels"]} == {
        ("Victim", addr(0xD)), ("Victim", addr(0xA)), ("Scam", addr(0xB)), ("Scammer", addr(0xE)),
    }


def test_unknown_deployer_is_described_and_left_out() -> None:
    fake = Token(address=addr(0xB), type=ERC20, symbol="USDT", name="Tether USD")
    out = create_impersonation_finding(fake, LEGIT).to_dict()

    assert out["description"].startswith("Unknown deployer deployed")
    assert "Scammer" not in {l["label"] for l in out["labels"]}
    assert out["metadata"]["newTokenDeployer"] == ""


def test_popular_token_raises_severity() -> None:
    finding = create_impersonation_finding(FAKE, LEGIT, popular=True)
    assert finding.severity == "High"
    assert finding.alert_id == HIGH_SEVERITY_ALERT_ID


def test_popular_tokens_match_by_fingerprint(tmp_path) -> None:
    path = tmp_path / "popular.json"
    path.write_text(json.dumps([{"symbol": "usdt", "name": "tether usd"}, {"symbol": "BAYC", "type": 721}]))

    popular = PopularTokens.from_file(path)

    assert popular.is_popular(LEGIT)
    assert not popular.is_popular(Token(address=addr(1), type=ERC20, symbol="BAYC"))
    assert popular.is_popular(Token(address=addr(1), type=TokenInterface.ERC721Metadata, symbol="bayc"))
    assert len(PopularTokens.from_file(None)) == 0
