# radar/core/scan.py
"""
Scan orchestrator: candidate discovery -> classification -> metadata ->
registry/policy -> append -> finding.

Two drivers share the per-candidate pipeline:
  handle_transaction(tx)      live, one transaction at a time
  scan_range(from, to)        historical, block by block with checkpoints

Historical blocks go PENDING -> FETCHING_BLOCK -> EXTRACTING_CANDIDATES ->
CLASSIFYING_EACH -> CHECKPOINTING -> DONE. A failure while fetching or
classifying moves the block to ERROR_BACKOFF: wait, spend one retry, and run
the same block again. The checkpoint is written only after every append of
the block is on disk, so a restart never skips an unprocessed contract.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Set

from radar.config import ScanConfig
from radar.core.classify import InterfaceClassifier
from radar.core.discovery import (
    filter_token_logs,
    find_block_created_contracts,
    find_created_contracts,
    unique_log_addresses,
)
from radar.core.errors import NotInitializedError, RetryBudgetExhausted
from radar.core.findings import Finding, PopularTokens, create_impersonation_finding
from radar.core.metadata import MetadataReader
from radar.core.policy import ExclusionPolicy, PopularityJudge, is_same_deployer
from radar.core.registry import TokenRegistry
from radar.core.storage import TokenStorage, tokens_file_name
from radar.core.types import BlockPhase, ScanState, Token, TokenRecord, TxEvent
from radar.utils.logger import log, warn

Logger = Callable[..., None]


@dataclass(frozen=True)
class ScanRange:
    lineage_from: int   # fromBlock recorded in checkpoints for this run
    start: int          # first block to process
    end: int            # last block to process (inclusive)


def resolve_scan_range(from_block: int, to_block: int, checkpoint: Optional[ScanState]) -> Optional[ScanRange]:
    """
    Effective range given the stored checkpoint; None when already covered.
    A request that starts before the checkpoint, or leaves a gap after it,
    starts a new lineage.
    """
    if from_block > to_block:
        raise ValueError(f"fromBlock ({from_block}) is bigger than toBlock ({to_block})")
    if checkpoint is None:
        return ScanRange(from_block, from_block, to_block)
    if checkpoint.from_block <= from_block and checkpoint.to_block >= to_block:
        return None
    if from_block < checkpoint.from_block or from_block > checkpoint.to_block + 1:
        return ScanRange(from_block, from_block, to_block)
    return ScanRange(checkpoint.from_block, checkpoint.to_block + 1, to_block)


@dataclass
class ScanSummary:
    from_block: Optional[int] = None
    to_block: Optional[int] = None
    blocks: int = 0
    candidates: int = 0
    new_tokens: int = 0
    findings: List[Finding] = field(default_factory=list)
    already_scanned: bool = False


class ScanOrchestrator:
    def __init__(self, provider, storage: TokenStorage, config: ScanConfig,
                 registry: Optional[TokenRegistry] = None,
                 classifier: Optional[InterfaceClassifier] = None,
                 metadata: Optional[MetadataReader] = None,
                 exclusions: Optional[ExclusionPolicy] = None,
                 popularity: Optional[PopularityJudge] = None,
                 popular_tokens: Optional[PopularTokens] = None,
                 deployer_lookup: Optional[Callable[[str], Optional[str]]] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 on_finding: Optional[Callable[[Finding], None]] = None):
        self.provider = provider
        self.storage = storage
        self.config = config
        self.registry = registry if registry is not None else TokenRegistry(config.fingerprint_policy)
        self.classifier = classifier or InterfaceClassifier(provider)
        self.metadata = metadata or MetadataReader(provider)
        self.exclusions = exclusions or ExclusionPolicy(config.exclusions, config.scam_patterns)
        if popularity is None and config.popularity_override_enabled:
            popularity = PopularityJudge(provider, config.popularity_window_blocks)
        self.popularity = popularity
        self.popular_tokens = popular_tokens or PopularTokens(policy=config.fingerprint_policy)
        self.deployer_lookup = deployer_lookup
        self.sleep = sleep
        self.on_finding = on_finding

        self.is_initialized = False
        self.trace_supported = False
        self.phase = BlockPhase.PENDING
        self._last_candidates = 0
        # excluded addresses; skipped for the process lifetime, never persisted
        self._ignored: Set[str] = set()
        self._lock = threading.RLock()

    # ---------- startup ----------

    def initialize(self) -> None:
        records = self.storage.read_all()
        if records:
            log("SCAN", f"Found existing token storage with {len(records)} rows")
        self.registry.replay(records)
        self.trace_supported = self._probe_trace_support() if self.config.use_trace_discovery else False
        log("SCAN", f"initialized: {len(self.registry)} legitimate tokens, "
                    f"{self.registry.known_addresses} known addresses, traces={self.trace_supported}")
        self.is_initialized = True

    def _probe_trace_support(self) -> bool:
        try:
            self.provider.trace_block(self.provider.get_block_number())
            return True
        except Exception as e:
            warn("SCAN", f"trace API not available, using log discovery only ({e})")
            return False

    def _require_initialized(self) -> None:
        if not self.is_initialized:
            raise NotInitializedError("Data container is not initialized")

    # ---------- per-candidate pipeline ----------

    def is_handled(self, address: str) -> bool:
        address = address.lower()
        return self.registry.is_known_address(address) or address in self._ignored

    def _resolve_deployer(self, address: str) -> Optional[str]:
        if self.deployer_lookup is None:
            return None
        try:
            return self.deployer_lookup(address)
        except Exception as e:
            warn("SCAN", f"deployer lookup failed for {address}: {e}")
            return None

    def process_candidate(self, address: str, deployer: Optional[str] = None,
                          at_block: Optional[int] = None, logger: Logger = log) -> Optional[Finding]:
        address = address.lower()
        if self.is_handled(address):
            known = self.registry.get(address)
            logger("SCAN", f"Known {known.label if known else 'excluded'} token, skip {address}")
            return None

        kind = self.classifier.classify(address, lambda *a: logger("classify", *a))
        if kind is None:
            logger("SCAN", f"No matching token interface is found for {address}")
            return None
        logger("SCAN", f"Token interface: {kind.name} at {address}")

        symbol, name = self.metadata.read(address)
        token = Token(address=address, type=kind, name=name, symbol=symbol)
        if not token.is_named:
            logger("SCAN", f"Cannot get symbol and name of {address}")
            return None

        if deployer is None:
            deployer = self._resolve_deployer(address)
        token = replace(token, deployer=deployer.lower() if deployer else None)
        logger("SCAN", f"Symbol: {symbol} | Name: {name} | Deployer: {token.deployer}")
        return self.handle_token(token, at_block=at_block, logger=logger)

    def handle_token(self, token: Token, at_block: Optional[int] = None,
                     logger: Logger = log) -> Optional[Finding]:
        """
        Registry + policy for one named token. Storage is appended before the
        registry changes, so a failed append leaves the token unhandled and the
        retry sees it again. Decisions are serialized: API requests share one
        orchestrator across threads.
        """
        with self._lock:
            finding = self._decide(token, at_block, logger)
        if finding is not None and self.on_finding is not None:
            self.on_finding(finding)
        return finding

    def _decide(self, token: Token, at_block: Optional[int], logger: Logger) -> Optional[Finding]:
        if self.exclusions.is_excluded(token):
            logger("SCAN", f"{token.display_name()} at {token.address} is excluded")
            self._ignored.add(token.address)
            return None

        existing = self.registry.lookup_token(token)
        if existing is None:
            self.storage.append(TokenRecord(token, legit=True))
            result = self.registry.register(token)
            if result.accepted:
                return None
            # registered by another writer in the meantime: first seen still wins
            warn("SCAN", f"{token.address} lost its identity to {result.collides_with.address}")
            existing = result.collides_with

        if existing.address == token.address:
            self.registry.remember(token)
            return None

        logger("SCAN", f"Token {existing.address} has the same identity as {token.address}")

        if self.config.same_deployer_suppression and is_same_deployer(token, existing):
            logger("SCAN", f"Existing token was deployed from the same address: {existing.deployer}")
            self.storage.append(TokenRecord(token, legit=False))
            self.registry.remember(token)
            return None

        if self.popularity is not None and at_block is not None:
            winner = self.popularity.more_popular(existing, token, at_block)
            if winner is token:
                logger("SCAN", f"New contract {token.address} is more active, it becomes the legitimate one")
                self.storage.append(TokenRecord(token, legit=True, supersedes=existing.address))
                self.registry.promote(token)
                return None

        self.storage.append(TokenRecord(token, legit=False))
        self.registry.remember(token)
        return create_impersonation_finding(token, existing, popular=self.popular_tokens.is_popular(existing))

    # ---------- live mode ----------

    def handle_transaction(self, tx: TxEvent) -> List[Finding]:
        self._require_initialized()
        log("SCAN", f"Transaction {tx.hash}")
        findings: List[Finding] = []

        if self.trace_supported:
            for created in find_created_contracts(tx):
                finding = self.process_candidate(created.address, deployer=tx.sender,
                                                 at_block=tx.block_number)
                if finding:
                    findings.append(finding)
            return findings

        # no trace API: find new tokens by the events they emit
        addresses = unique_log_addresses(filter_token_logs(tx.logs))
        if addresses:
            log("SCAN", f"Found {len(addresses)} unique contracts in token logs")
        for c, address in enumerate(addresses):
            progress = self._progress_logger(f"[{c + 1}/{len(addresses)}]")
            finding = self.process_candidate(address, at_block=tx.block_number, logger=progress)
            if finding:
                findings.append(finding)
        return findings

    # ---------- historical mode ----------

    def _fetch_receipts(self, hashes: List[str]) -> List[dict]:
        if not hashes:
            return []
        workers = max(1, min(self.config.receipt_concurrency, len(hashes)))
        with ThreadPoolExecutor(max_workers=workers) as ex:
            return list(ex.map(self.provider.get_transaction_receipt, hashes))

    def extract_block_candidates(self, block: dict, receipts: List[dict],
                                 traces: Optional[List[dict]] = None) -> Dict[str, Optional[str]]:
        """address -> deployer (None when unknown), first-seen order, unhandled only."""
        txs = block.get("transactions") or []
        senders = {tx["hash"]: tx.get("from") for tx in txs}
        candidates: Dict[str, Optional[str]] = {}

        if traces:
            candidates.update(find_block_created_contracts(traces, senders))

        for tx, receipt in zip(txs, receipts):
            created = receipt.get("contractAddress")
            if created:
                candidates.setdefault(created.lower(), tx.get("from"))
            for address in unique_log_addresses(filter_token_logs(receipt.get("logs") or [])):
                candidates.setdefault(address, None)

        return {a: d for a, d in candidates.items() if not self.is_handled(a)}

    def _progress_logger(self, prefix: str) -> Logger:
        return lambda tag, *args: log(tag, prefix, *args)

    def process_block(self, number: int, lineage_from: int, total: Optional[str] = None) -> List[Finding]:
        self.phase = BlockPhase.FETCHING_BLOCK
        block = self.provider.get_block(number, full_transactions=True)
        receipts = self._fetch_receipts([tx["hash"] for tx in block.get("transactions") or []])
        traces = self.provider.trace_block(number) if self.trace_supported else None

        self.phase = BlockPhase.EXTRACTING_CANDIDATES
        candidates = self.extract_block_candidates(block, receipts, traces)

        self.phase = BlockPhase.CLASSIFYING_EACH
        findings: List[Finding] = []
        for c, (address, deployer) in enumerate(candidates.items()):
            progress = self._progress_logger(f"[B|{number}{total or ''}][C|{c + 1}/{len(candidates)}]")
            finding = self.process_candidate(address, deployer=deployer, at_block=number, logger=progress)
            if finding:
                findings.append(finding)

        self.phase = BlockPhase.CHECKPOINTING
        self.storage.write_checkpoint(ScanState(lineage_from, number))
        self.phase = BlockPhase.DONE
        self._last_candidates = len(candidates)
        return findings

    def scan_range(self, from_block: int, to_block: int) -> ScanSummary:
        self._require_initialized()
        checkpoint = self.storage.read_checkpoint()
        if checkpoint:
            log("SCAN", f"Found storage state {checkpoint.to_dict()}")
        rng = resolve_scan_range(from_block, to_block, checkpoint)
        if rng is None:
            log("SCAN", f"Specified blocks are already scanned {from_block}-{to_block}")
            return ScanSummary(from_block, to_block, already_scanned=True)
        if checkpoint and rng.lineage_from != checkpoint.from_block:
            warn("SCAN", f"requested {from_block}-{to_block} doesn't continue stored state "
                         f"{checkpoint.to_dict()}, starting a new scan lineage")

        log("SCAN", f"Scanning {rng.start}-{rng.end} blocks")
        summary = ScanSummary(rng.start, rng.end)
        attempt = 0
        number = rng.start
        while number <= rng.end:
            self.phase = BlockPhase.PENDING
            tokens_before = len(self.registry)
            try:
                findings = self.process_block(number, rng.lineage_from,
                                              total=f"|{number - rng.start}/{rng.end - rng.start}")
            except Exception as e:
                self.phase = BlockPhase.ERROR_BACKOFF
                attempt += 1
                warn("SCAN", f"block {number}: error ({attempt}/{self.config.max_retries}): {e}")
                if attempt >= self.config.max_retries:
                    warn("SCAN", "Retry attempts is exceeded")
                    raise RetryBudgetExhausted(number, attempt, e) from e
                log("SCAN", f"Waiting {self.config.retry_wait_seconds}s....")
                self.sleep(self.config.retry_wait_seconds)
                continue

            attempt = 0
            summary.blocks += 1
            summary.candidates += self._last_candidates
            summary.new_tokens += max(0, len(self.registry) - tokens_before)
            summary.findings.extend(findings)
            number += 1

        return summary


def build_orchestrator(config: ScanConfig, provider=None, **kwargs) -> ScanOrchestrator:
    """Wire an orchestrator for config.chain_key from the environment."""
    from radar.core.deployer import DeployerLookup
    from radar.core.provider import ChainProvider

    provider = provider or ChainProvider.for_chain(config.chain_key)
    storage = TokenStorage(config.data_path, tokens_file_name(provider.chain_id()))
    kwargs.setdefault("popular_tokens", PopularTokens.from_file(config.popular_tokens_file,
                                                                config.fingerprint_policy))
    if config.resolve_deployers:
        kwargs.setdefault("deployer_lookup", DeployerLookup(config.chain_key))
    return ScanOrchestrator(provider, storage, config, **kwargs)


def fetch_block_events(provider, number: int, with_traces: bool,
                       receipt_concurrency: int = 8) -> List[TxEvent]:
    """Live-mode views of every transaction in a block, in block order."""
    block = provider.get_block(number, full_transactions=True)
    txs = block.get("transactions") or []
    if not txs:
        return []
    with ThreadPoolExecutor(max_workers=max(1, min(receipt_concurrency, len(txs)))) as ex:
        receipts = list(ex.map(provider.get_transaction_receipt, [tx["hash"] for tx in txs]))

    traces_by_tx: Dict[str, List[dict]] = {}
    if with_traces:
        for trace in provider.trace_block(number):
            traces_by_tx.setdefault((trace.get("transactionHash") or "").lower(), []).append(trace)

    return [
        TxEvent(
            hash=tx["hash"],
            sender=tx["from"],
            nonce=tx.get("nonce") or 0,
            block_number=number,
            traces=traces_by_tx.get(tx["hash"].lower(), []),
            logs=receipt.get("logs") or [],
        )
        for tx, receipt in zip(txs, receipts)
    ]


def fetch_tx_event(provider, tx_hash: str, with_traces: bool) -> TxEvent:
    """Build the live-mode view of one mined transaction from RPC data."""
    tx = provider.get_transaction(tx_hash)
    receipt = provider.get_transaction_receipt(tx_hash)
    traces = provider.trace_transaction(tx_hash) if with_traces else []
    return TxEvent(
        hash=tx["hash"],
        sender=tx["from"],
        nonce=tx["nonce"],
        block_number=tx.get("blockNumber"),
        traces=traces,
        logs=receipt.get("logs") or [],
    )
