# radar/core/provider.py
# Purpose: thin adapter over a web3 v7 client. Every method returns plain
# dicts / strings with lower-case 0x hex so the pipeline never touches
# HexBytes or AttributeDict, and every RPC failure surfaces as ProviderError.

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Dict, List, Optional

from web3 import Web3

from radar.core.errors import ProviderError
from radar.utils.addr import checksum


def _rpc(method: str) -> Callable:
    def deco(fn: Callable) -> Callable:
        @wraps(fn)
        def wrapped(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except ProviderError:
                raise
            except Exception as e:
                raise ProviderError(method, e) from e
        return wrapped
    return deco


def to_hex(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, int):
        return hex(value)
    s = str(value).lower()
    return s if s.startswith("0x") else "0x" + s


def normalize_log(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "address": to_hex(raw.get("address")),
        "topics": [to_hex(t) for t in (raw.get("topics") or [])],
        "transactionHash": to_hex(raw.get("transactionHash")),
        "blockNumber": raw.get("blockNumber"),
        "logIndex": raw.get("logIndex"),
    }


def normalize_trace(raw: Dict[str, Any]) -> Dict[str, Any]:
    action = raw.get("action") or {}
    result = raw.get("result") or {}
    return {
        "type": raw.get("type"),
        "transactionHash": to_hex(raw.get("transactionHash")),
        "action": {"from": to_hex(action.get("from"))},
        "result": {"address": to_hex(result.get("address"))} if result else None,
        "error": raw.get("error"),
    }


def normalize_transaction(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "hash": to_hex(raw.get("hash")),
        "from": to_hex(raw.get("from")),
        "to": to_hex(raw.get("to")),
        "nonce": int(raw.get("nonce") or 0),
        "blockNumber": raw.get("blockNumber"),
    }


class ChainProvider:
    """Blockchain data provider used by the classifier and the scanner."""

    def __init__(self, w3: Web3):
        self.w3 = w3

    @classmethod
    def for_chain(cls, chain_key: str) -> "ChainProvider":
        from radar.chains import get_w3_for_chain
        return cls(get_w3_for_chain(chain_key))

    @_rpc("eth_chainId")
    def chain_id(self) -> int:
        return int(self.w3.eth.chain_id)

    @_rpc("eth_blockNumber")
    def get_block_number(self) -> int:
        return int(self.w3.eth.block_number)

    @_rpc("eth_getCode")
    def get_code(self, address: str) -> str:
        """Runtime bytecode as lower-case hex without 0x ('' for no code)."""
        return bytes(self.w3.eth.get_code(checksum(address))).hex()

    @_rpc("eth_getStorageAt")
    def get_storage_at(self, address: str, slot: int) -> bytes:
        return bytes(self.w3.eth.get_storage_at(checksum(address), slot))

    @_rpc("eth_call")
    def call_function(self, address: str, abi: List[dict], fn_name: str, *args) -> Any:
        contract = self.w3.eth.contract(address=checksum(address), abi=abi)
        return getattr(contract.functions, fn_name)(*args).call()

    @_rpc("eth_getLogs")
    def get_logs(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        params = dict(params)
        if params.get("address"):
            params["address"] = checksum(params["address"])
        return [normalize_log(l) for l in self.w3.eth.get_logs(params)]

    @_rpc("eth_getBlockByNumber")
    def get_block(self, number: int, full_transactions: bool = True) -> Dict[str, Any]:
        blk = self.w3.eth.get_block(number, full_transactions=full_transactions)
        txs = blk.get("transactions") or []
        if full_transactions:
            transactions = [normalize_transaction(tx) for tx in txs]
        else:
            transactions = [to_hex(h) for h in txs]
        return {"number": int(blk["number"]), "transactions": transactions}

    @_rpc("eth_getTransactionByHash")
    def get_transaction(self, tx_hash: str) -> Dict[str, Any]:
        return normalize_transaction(self.w3.eth.get_transaction(tx_hash))

    @_rpc("eth_getTransactionReceipt")
    def get_transaction_receipt(self, tx_hash: str) -> Dict[str, Any]:
        r = self.w3.eth.get_transaction_receipt(tx_hash)
        return {
            "transactionHash": to_hex(r.get("transactionHash")),
            "from": to_hex(r.get("from")),
            "to": to_hex(r.get("to")),
            "contractAddress": to_hex(r.get("contractAddress")),
            "status": r.get("status"),
            "logs": [normalize_log(l) for l in (r.get("logs") or [])],
        }

    def _trace_request(self, method: str, params: list) -> List[Dict[str, Any]]:
        resp = self.w3.provider.make_request(method, params)
        if resp.get("error"):
            raise ProviderError(method, RuntimeError(str(resp["error"])))
        return [normalize_trace(t) for t in (resp.get("result") or [])]

    @_rpc("trace_block")
    def trace_block(self, number: int) -> List[Dict[str, Any]]:
        return self._trace_request("trace_block", [hex(number)])

    @_rpc("trace_transaction")
    def trace_transaction(self, tx_hash: str) -> List[Dict[str, Any]]:
        return self._trace_request("trace_transaction", [tx_hash])
