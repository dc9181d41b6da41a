# radar/chains.py
# Purpose: Chain config + web3 factory (Web3 v7). Injects POA middleware for PoA chains.

import os
from web3 import Web3
from web3.middleware.proof_of_authority import ExtraDataToPOAMiddleware

from radar.utils.logger import log

# One Etherscan V2 base works for multi-chain keys
EXPLORER_V2_BASE = "https://api.etherscan.io/v2/api"

# blocks_per_day sizes the default scan window and the popularity window.
# trace_api marks chains whose public RPCs usually serve trace_* methods;
# the scanner still probes once at startup.
CHAINS = {
    "eth": {
        "name": "eth",
        "chainid": 1,
        "rpc_env": "WEB3_PROVIDER_ETH",
        "explorer_v1_host": "https://api.etherscan.io/api",
        "blocks_per_day": 6_000,
        "trace_api": True,
    },
    "bsc": {
        "name": "bsc",
        "chainid": 56,
        "rpc_env": "WEB3_PROVIDER_BSC",
        "explorer_v1_host": "https://api.bscscan.com/api",
        "blocks_per_day": 28_000,
        "trace_api": False,
        "default_rpc": "https://bsc-dataseed.binance.org",
    },
    "polygon": {
        "name": "polygon",
        "chainid": 137,
        "rpc_env": "WEB3_PROVIDER_POLYGON",
        "explorer_v1_host": "https://api.polygonscan.com/api",
        "blocks_per_day": 40_000,
        "trace_api": False,
    },
    "optimism": {
        "name": "optimism",
        "chainid": 10,
        "rpc_env": "WEB3_PROVIDER_OPTIMISM",
        "explorer_v1_host": "https://api-optimistic.etherscan.io/api",
        "blocks_per_day": 60_000,
        "trace_api": False,
    },
    "arbitrum": {
        "name": "arbitrum",
        "chainid": 42161,
        "rpc_env": "WEB3_PROVIDER_ARBITRUM",
        "explorer_v1_host": "https://api.arbiscan.io/api",
        "blocks_per_day": 70_000,
        "trace_api": False,
    },
    "avalanche": {
        "name": "avalanche",
        "chainid": 43114,
        "rpc_env": "WEB3_PROVIDER_AVALANCHE",
        "explorer_v1_host": "https://api.snowtrace.io/api",
        "blocks_per_day": 40_000,
        "trace_api": False,
    },
    "fantom": {
        "name": "fantom",
        "chainid": 250,
        "rpc_env": "WEB3_PROVIDER_FANTOM",
        "explorer_v1_host": "https://api.ftmscan.com/api",
        "blocks_per_day": 75_000,
        "trace_api": False,
    },
}

POA_CHAIN_IDS = (56, 97, 137, 250, 43114)


def get_chain(chain_key: str) -> dict:
    if chain_key not in CHAINS:
        raise ValueError(f"Unknown chain: {chain_key}. Available: {', '.join(CHAINS)}")
    return CHAINS[chain_key]


def get_w3_for_chain(chain_key: str, timeout: int = 30) -> Web3:
    log("CHAINS", f"get_w3_for_chain({chain_key})")
    cfg = get_chain(chain_key)

    rpc = os.getenv(cfg["rpc_env"]) or (os.getenv("WEB3_PROVIDER") if chain_key == "eth" else "")
    rpc = (rpc or "").strip().rstrip("\r")

    if not rpc or rpc in {"https://", "http://"}:
        if cfg.get("default_rpc"):
            rpc = cfg["default_rpc"]
            log("CHAINS", f"Using default {chain_key} RPC: {rpc}")
        else:
            raise ValueError(f"Missing/invalid RPC URL for {chain_key}. Set {cfg['rpc_env']} in .env")

    log("CHAINS", f"HTTPProvider -> {rpc}")
    # per-call timeout; the scanner retries whole blocks on top of this
    w3 = Web3(Web3.HTTPProvider(rpc, request_kwargs={"timeout": timeout}))

    if cfg["chainid"] in POA_CHAIN_IDS:
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        log("CHAINS", f"POA middleware injected (ExtraDataToPOAMiddleware) for {chain_key}")

    return w3


__all__ = ["EXPLORER_V2_BASE", "CHAINS", "get_chain", "get_w3_for_chain"]
