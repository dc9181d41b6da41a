# radar/core/metadata.py
# Purpose: best-effort symbol()/name() reads. A revert means "absent", never an error.

from typing import Optional, Tuple

from radar.core.interfaces import ERC20_ABI, ERC20_BYTES32_ABI
from radar.utils.logger import log


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).rstrip(b"\x00").decode("utf-8", errors="ignore")
    s = str(value).replace("\x00", "").strip()
    return s or None


class MetadataReader:
    def __init__(self, provider):
        self.provider = provider

    def _read(self, address: str, fn_name: str) -> Optional[str]:
        try:
            return _clean(self.provider.call_function(address, ERC20_ABI, fn_name))
        except Exception as e:
            log("metadata", f"{fn_name}() as string failed for {address}: {e}")
        try:
            return _clean(self.provider.call_function(address, ERC20_BYTES32_ABI, fn_name))
        except Exception as e:
            log("metadata", f"{fn_name}() as bytes32 failed for {address}: {e}")
        return None

    def read_symbol(self, address: str) -> Optional[str]:
        return self._read(address, "symbol")

    def read_name(self, address: str) -> Optional[str]:
        return self._read(address, "name")

    def read(self, address: str) -> Tuple[Optional[str], Optional[str]]:
        """(symbol, name); either may be None."""
        return self.read_symbol(address), self.read_name(address)
