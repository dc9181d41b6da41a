from __future__ import annotations

import json

from radar.core.fingerprint import FingerprintPolicy, fingerprint, token_fingerprint
from radar.core.types import Token, TokenInterface

ERC20 = TokenInterface.ERC20Detailed


def test_fingerprint_is_case_insensitive() -> None:
    assert fingerprint("USDT", "Tether", ERC20) == fingerprint("usdt", "TETHER", ERC20)


def test_fingerprint_ignores_surrounding_whitespace() -> None:
    assert fingerprint(" USDT ", "Tether\n", ERC20) == fingerprint("usdt", "tether", ERC20)


def test_fingerprint_depends_on_interface() -> None:
    assert fingerprint("TKN", None, ERC20) != fingerprint("TKN", None, TokenInterface.ERC721Metadata)


def test_fingerprint_is_canonical_json() -> None:
    fp = fingerprint("TKN", "Token", ERC20)
    assert json.loads(fp) == {"type": 20, "symbol": "tkn", "name": "token"}
    assert fp == '{"name":"token","symbol":"tkn","type":20}'


def test_delimiters_in_names_do_not_collide() -> None:
    assert fingerprint("a,b", "c", ERC20) != fingerprint("a", "b,c", ERC20)


def test_tuple_policy_keeps_symbol_only_and_name_only_apart() -> None:
    symbol_only = fingerprint("TKN", None, ERC20, FingerprintPolicy.TUPLE)
    name_only = fingerprint(None, "TKN", ERC20, FingerprintPolicy.TUPLE)
    assert symbol_only != name_only


def test_label_policy_collapses_symbol_only_and_name_only() -> None:
    symbol_only = fingerprint("TKN", None, ERC20, FingerprintPolicy.LABEL)
    name_only = fingerprint(None, "TKN", ERC20, FingerprintPolicy.LABEL)
    assert symbol_only == name_only
    # the symbol wins over the name when both are present
    assert fingerprint("TKN", "Other", ERC20, FingerprintPolicy.LABEL) == symbol_only


def test_token_fingerprint_uses_token_fields() -> None:
    token = Token(address="0x" + "1" * 40, type=ERC20, name="Tether", symbol="USDT")
    assert token_fingerprint(token) == fingerprint("USDT", "Tether", ERC20)


def test_token_is_named_needs_a_non_blank_field() -> None:
    assert Token(address="0x1", type=ERC20, symbol="TKN").is_named
    assert Token(address="0x1", type=ERC20, name="Token").is_named
    assert not Token(address="0x1", type=ERC20, symbol="  ", name="").is_named
    assert not Token(address="0x1", type=ERC20).is_named
