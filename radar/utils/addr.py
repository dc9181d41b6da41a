from typing import Optional

from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def normalize_evm_address(raw: str) -> str:
    """Strictly validate an EVM address and return it lower-cased."""
    s = (raw or "").strip()
    if "..." in s:
        raise ValueError("Ellipses ('...') are not allowed. Provide the full 42-char 0x address.")
    if s[:2] in ("\\x", "0X"):
        s = "0x" + s[2:]
    if not s.startswith("0x") or len(s) != 42:
        raise ValueError("Invalid address: must be 0x-prefixed and 42 characters long (0x + 40 hex).")
    if not Web3.is_address(s.lower()):
        raise ValueError("Invalid address: not a valid hex string.")
    return s.lower()


def lower_or_none(raw: Optional[str]) -> Optional[str]:
    """Lower-case an optional address; empty strings become None."""
    s = (raw or "").strip()
    return s.lower() if s else None


def checksum(address: str) -> str:
    return Web3.to_checksum_address(address)


def pad_address(n: int) -> str:
    """0x-prefixed 20-byte address whose integer value is n (0x...01, 0x...02)."""
    return "0x" + format(n, "040x")
