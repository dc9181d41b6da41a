# radar/core/deployer.py
# Purpose: off-chain deployer lookup for tokens found without traces.
# Order:
#   1) Etherscan V2 -> contract/getcontractcreation  (single key, add chainid)
#   2) Legacy V1 host for the chain (only with a chain-specific key off mainnet)
#   3) Give up (None)

from __future__ import annotations

import os
from typing import Optional

from radar.chains import CHAINS, EXPLORER_V2_BASE
from radar.utils.addr import lower_or_none
from radar.utils.cache import memoize_ttl
from radar.utils.logger import log
from radar.utils.ratelimit import http_get_json

V1_KEY_ENVS = {
    "bsc": "BSCSCAN_API_KEY",
    "polygon": "POLYGONSCAN_API_KEY",
    "optimism": "OPTIMISTIC_ETHERSCAN_API_KEY",
    "arbitrum": "ARBISCAN_API_KEY",
    "avalanche": "SNOWTRACE_API_KEY",
    "fantom": "FTMSCAN_API_KEY",
}


def _creator_from(data: dict) -> Optional[str]:
    res = data.get("result") or []
    if isinstance(res, list) and res:
        item = res[0] or {}
        return lower_or_none(item.get("contractCreator") or item.get("contractcreator"))
    return None


def _v2_creator(chain_key: str, address: str, api_key: str) -> Optional[str]:
    params = {
        "chainid": CHAINS[chain_key]["chainid"],
        "module": "contract",
        "action": "getcontractcreation",
        "contractaddresses": address,
        "apikey": api_key,
    }
    data = http_get_json("etherscan_v2", EXPLORER_V2_BASE, params)
    creator = _creator_from(data)
    if creator:
        log("deployer", f"V2 creation hit {address} -> {creator}")
    else:
        log("deployer", f"V2 creation miss for {address}: {data.get('message') or data.get('result')}")
    return creator


def _v1_creator(chain_key: str, address: str) -> Optional[str]:
    host = CHAINS[chain_key].get("explorer_v1_host")
    if not host:
        return None
    if chain_key == "eth":
        key = os.getenv("ETHERSCAN_API_KEY", "")
    else:
        key = os.getenv(V1_KEY_ENVS.get(chain_key, ""), "")
        if not key:
            log("deployer", f"skip V1 creation on {chain_key} without chain-specific key")
            return None
    params = {"module": "contract", "action": "getcontractcreation", "contractaddresses": address, "apikey": key}
    host_key = host.split("//", 1)[-1].split("/", 1)[0] + "_v1"
    return _creator_from(http_get_json(host_key, host, params))


@memoize_ttl(ttl_seconds=3600)
def lookup_deployer(chain_key: str, address: str) -> Optional[str]:
    """
    Address that created `address`, lower-cased, or None when the explorers
    don't know it. HTTP failures after the rate limiter's own retries raise.
    """
    api_key = os.getenv("ETHERSCAN_API_KEY", "")
    creator = _v2_creator(chain_key, address, api_key)
    if creator:
        return creator
    return _v1_creator(chain_key, address)


class DeployerLookup:
    """Callable wrapper bound to one chain, as the scanner and bulk fetcher expect."""

    def __init__(self, chain_key: str):
        self.chain_key = chain_key

    def __call__(self, address: str) -> Optional[str]:
        return lookup_deployer(self.chain_key, address.lower())
