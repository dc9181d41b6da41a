# radar/core/discovery.py
# Purpose: candidate contract addresses from traces (precise, with deployer)
# and from token-shaped event logs (works on chains without trace_* support).

from typing import Any, Dict, Iterable, List, Optional

import rlp
from web3 import Web3

from radar.core.interfaces import TOKEN_EVENT_NAMES_BY_TOPIC
from radar.core.types import CreatedContract, TxEvent


def compute_contract_address(deployer: str, nonce: int) -> str:
    """CREATE address: keccak(rlp([sender, nonce]))[12:]."""
    raw = Web3.keccak(rlp.encode([bytes.fromhex(deployer.lower()[2:]), nonce]))
    return "0x" + bytes(raw)[12:].hex()


def _creates(traces: Iterable[Dict[str, Any]]) -> Iterable[Dict[str, Any]]:
    for trace in traces:
        # a reverted create carries an error and deploys nothing
        if trace.get("type") == "create" and not trace.get("error"):
            yield trace


def find_created_contracts(tx: TxEvent) -> List[CreatedContract]:
    """Contracts created by one transaction, in trace order."""
    created: List[CreatedContract] = []
    sender = (tx.sender or "").lower()

    for trace in _creates(tx.traces):
        deployer = ((trace.get("action") or {}).get("from") or "").lower()
        result = trace.get("result") or {}

        # Parity/OpenEthereum trace format carries the created address
        if result.get("address"):
            created.append(CreatedContract(address=result["address"].lower(), deployer=deployer))
            continue

        # otherwise derive it; contracts creating contracts start at nonce 1
        if deployer and (deployer == sender or any(c.address == deployer for c in created)):
            nonce = tx.nonce if deployer == sender else 1
            created.append(CreatedContract(address=compute_contract_address(deployer, nonce), deployer=deployer))

    return created


def find_block_created_contracts(traces: Iterable[Dict[str, Any]],
                                 senders: Dict[str, str]) -> Dict[str, Optional[str]]:
    """
    address -> deployer for every successful create in a block's traces.
    The deployer is the transaction sender (the EOA), not an intermediate factory.
    """
    out: Dict[str, Optional[str]] = {}
    for trace in _creates(traces):
        result = trace.get("result") or {}
        if not result.get("address"):
            continue
        address = result["address"].lower()
        tx_hash = (trace.get("transactionHash") or "").lower()
        sender = senders.get(tx_hash) or ((trace.get("action") or {}).get("from") or "").lower() or None
        out.setdefault(address, sender)
    return out


def is_token_log(log: Dict[str, Any]) -> bool:
    return any((t or "").lower() in TOKEN_EVENT_NAMES_BY_TOPIC for t in (log.get("topics") or []))


def filter_token_logs(logs: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [l for l in logs if is_token_log(l)]


def unique_log_addresses(logs: Iterable[Dict[str, Any]]) -> List[str]:
    """Emitting contract addresses, lower-cased, de-duplicated in first-seen order."""
    return list(dict.fromkeys((l.get("address") or "").lower() for l in logs if l.get("address")))
