# api.py
import os
import threading
from typing import Dict, Optional

print("[API] Booting FastAPI...")

from fastapi import FastAPI, HTTPException, Query, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
from pydantic import BaseModel

_loaded = load_dotenv()
print(f"[API] .env loaded: {_loaded}")
print(f"[API] ENV presence -> ETH RPC: {'yes' if os.getenv('WEB3_PROVIDER_ETH') else 'no'}, "
      f"BSC RPC: {'yes' if os.getenv('WEB3_PROVIDER_BSC') else 'no'}, "
      f"ETHERSCAN_API_KEY: {'yes' if os.getenv('ETHERSCAN_API_KEY') else 'no'}")

try:
    from radar.chains import CHAINS
    from radar.config import load_config
    from radar.core.errors import RadarError
    from radar.core.scan import ScanOrchestrator, build_orchestrator, fetch_tx_event
    from radar.core.types import Token
    from radar.utils.addr import normalize_evm_address
    print("[API] Import scanner: OK")
except Exception as e:
    print("[API] Import scanner: FAIL ->", e)
    raise

CHAIN_PATTERN = "^(" + "|".join(sorted(CHAINS)) + ")$"

# one initialized orchestrator per chain, shared by every request
_ORCHESTRATORS: Dict[str, ScanOrchestrator] = {}
_LOCK = threading.Lock()


def get_orchestrator(chain: str) -> ScanOrchestrator:
    with _LOCK:
        orch = _ORCHESTRATORS.get(chain)
        if orch is None:
            print(f"[API] Initializing scanner for {chain}...")
            orch = build_orchestrator(load_config(chain))
            orch.initialize()
            _ORCHESTRATORS[chain] = orch
        return orch


class TokenOut(BaseModel):
    address: str
    type: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    deployer: Optional[str] = None

    @classmethod
    def of(cls, token: Optional[Token]) -> Optional["TokenOut"]:
        if token is None:
            return None
        return cls(address=token.address, type=token.type.name, name=token.name,
                   symbol=token.symbol, deployer=token.deployer)


app = FastAPI(title="Token Impersonation Radar API", version="0.1.0")
print("[API] FastAPI instance created.")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
print("[API] CORS middleware registered.")

api = APIRouter(prefix="/api")
print("[API] APIRouter created at /api.")


@api.get("/health")
def health():
    print("[API] GET /api/health")
    return {"ok": True, "chains": sorted(_ORCHESTRATORS)}


@api.get("/classify/{address}")
def classify(address: str, chain: str = Query(default="eth", pattern=CHAIN_PATTERN)):
    print(f"[API] GET /api/classify/{address}?chain={chain} -> start")
    try:
        address = normalize_evm_address(address)
        orch = get_orchestrator(chain)
        kind, verdicts = orch.classifier.explain(address)
        symbol, name = orch.metadata.read(address) if kind is not None else (None, None)
    except (ValueError, RadarError) as e:
        print(f"[API] /classify error address={address} chain={chain} -> {e}")
        raise HTTPException(status_code=400, detail=str(e))
    print(f"[API] /classify OK address={address} type={kind.name if kind else None}")
    return {
        "chain": chain,
        "address": address,
        "type": kind.name if kind is not None else None,
        "symbol": symbol,
        "name": name,
        "strategies": verdicts,
    }


@api.get("/tx/{tx_hash}")
def tx(tx_hash: str, chain: str = Query(default="eth", pattern=CHAIN_PATTERN)):
    print(f"[API] GET /api/tx/{tx_hash}?chain={chain} -> start")
    try:
        orch = get_orchestrator(chain)
        event = fetch_tx_event(orch.provider, tx_hash.lower(), with_traces=orch.trace_supported)
        findings = orch.handle_transaction(event)
    except (ValueError, RadarError) as e:
        print(f"[API] /tx error tx={tx_hash} chain={chain} -> {e}")
        raise HTTPException(status_code=400, detail=str(e))
    print(f"[API] /tx OK tx={tx_hash} findings={len(findings)}")
    return {"chain": chain, "tx": tx_hash.lower(), "count": len(findings),
            "findings": [f.to_dict() for f in findings]}


@api.get("/tokens/{address}")
def token(address: str, chain: str = Query(default="eth", pattern=CHAIN_PATTERN)):
    print(f"[API] GET /api/tokens/{address}?chain={chain}")
    try:
        address = normalize_evm_address(address)
        orch = get_orchestrator(chain)
    except (ValueError, RadarError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    known = orch.registry.get(address)
    if known is None:
        raise HTTPException(status_code=404, detail=f"{address} is not a known token")
    holder = orch.registry.lookup_token(known)
    return {
        "chain": chain,
        "token": TokenOut.of(known),
        "legit": holder is not None and holder.address == known.address,
        "legitimate": TokenOut.of(holder),
    }


app.include_router(api)
print("[API] Router included.")
