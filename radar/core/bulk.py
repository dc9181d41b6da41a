# radar/core/bulk.py
"""
Bulk token fetcher: seeds the token log from an exported address list.

Two stages joined by a bounded queue:
  metadata   symbol()/name() (and classification when the list has no type)
             on a thread pool, in input order
  register   deployer lookup (serialized, retried) + first-seen-wins
             registration + append, on the calling thread

Metadata reads run at most `concurrency` at a time and stop submitting while
the queue is full, so they never get more than queue_size + concurrency rows
ahead of the slow explorer lookups. A failure in either stage sets the stop
event; the producer stops putting, the consumer drains, and the error is
re-raised to the caller.
Everything appended before the failure stays on disk, so a rerun skips it.
"""

from __future__ import annotations

import queue
import threading
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Tuple

from radar.core.classify import InterfaceClassifier
from radar.core.fingerprint import FingerprintPolicy
from radar.core.metadata import MetadataReader
from radar.core.registry import TokenRegistry
from radar.core.storage import TokenStorage
from radar.core.types import Token, TokenInterface, TokenRecord
from radar.utils.logger import log, warn
from radar.utils.retry import retry

_SENTINEL = object()

Row = Tuple[str, Optional[TokenInterface]]


@dataclass
class _Fetched:
    index: int
    address: str
    kind: Optional[TokenInterface]
    symbol: Optional[str]
    name: Optional[str]


@dataclass
class BulkSummary:
    loaded: int = 0
    already_fetched: int = 0
    unclassified: int = 0
    unnamed: int = 0
    duplicates: int = 0
    added: int = 0


class BulkTokenFetcher:
    def __init__(self, provider, storage: TokenStorage,
                 registry: Optional[TokenRegistry] = None,
                 metadata: Optional[MetadataReader] = None,
                 classifier: Optional[InterfaceClassifier] = None,
                 deployer_lookup: Optional[Callable[[str], Optional[str]]] = None,
                 policy: FingerprintPolicy = FingerprintPolicy.TUPLE,
                 concurrency: int = 5,
                 queue_size: int = 100,
                 lookup_retries: int = 15,
                 lookup_interval: float = 60.0,
                 sleep: Callable[[float], None] = time.sleep):
        self.provider = provider
        self.storage = storage
        self.registry = registry if registry is not None else TokenRegistry(policy)
        self.metadata = metadata or MetadataReader(provider)
        self.classifier = classifier or InterfaceClassifier(provider)
        self.deployer_lookup = deployer_lookup
        self.concurrency = max(1, int(concurrency))
        self.queue_size = max(1, int(queue_size))
        self.lookup_retries = max(1, int(lookup_retries))
        self.lookup_interval = lookup_interval
        self.sleep = sleep

    def load_existing(self) -> int:
        records = self.storage.read_all()
        self.registry.replay(records)
        if records:
            log("BULK", f"Found existing token storage with {self.registry.known_addresses} tokens")
        return len(records)

    def _pending_rows(self, rows: Sequence[Row], summary: BulkSummary) -> List[Row]:
        seen = set()
        pending: List[Row] = []
        for address, kind in rows:
            address = address.lower()
            if self.registry.is_known_address(address):
                summary.already_fetched += 1
                continue
            # same address listed under several interfaces: the first one wins
            if address in seen:
                continue
            seen.add(address)
            pending.append((address, kind))
        return pending

    def _read_metadata(self, item: Tuple[int, Row]) -> _Fetched:
        index, (address, kind) = item
        if kind is None:
            kind = self.classifier.classify(address)
        if kind is None:
            return _Fetched(index, address, None, None, None)
        symbol, name = self.metadata.read(address)
        return _Fetched(index, address, kind, symbol, name)

    def _put(self, q: "queue.Queue", item, stop: threading.Event) -> bool:
        while not stop.is_set():
            try:
                q.put(item, timeout=0.5)
                return True
            except queue.Full:
                continue
        return False

    def _produce(self, rows: List[Row], q: "queue.Queue", stop: threading.Event, errors: list) -> None:
        # at most `concurrency` reads in flight; a full queue blocks the next submit
        ex = ThreadPoolExecutor(max_workers=self.concurrency)
        in_flight: deque = deque()
        try:
            for item in enumerate(rows):
                if len(in_flight) >= self.concurrency:
                    if not self._put(q, in_flight.popleft().result(), stop):
                        break
                in_flight.append(ex.submit(self._read_metadata, item))
            while in_flight and not stop.is_set():
                if not self._put(q, in_flight.popleft().result(), stop):
                    break
        except Exception as e:
            errors.append(e)
            stop.set()
        finally:
            ex.shutdown(wait=True, cancel_futures=True)
            self._put(q, _SENTINEL, threading.Event())

    def _lookup_deployer(self, address: str) -> Optional[str]:
        if self.deployer_lookup is None:
            return None
        deployer = retry(lambda: self.deployer_lookup(address),
                         times=self.lookup_retries, interval=self.lookup_interval,
                         sleep=self.sleep, tag="BULK")
        return deployer.lower() if deployer else None

    def _register(self, fetched: _Fetched, total: int, summary: BulkSummary) -> None:
        progress = f"[{fetched.index + 1}/{total}] {fetched.address} |"
        if fetched.kind is None:
            log("BULK", progress, "no token interface, skip")
            summary.unclassified += 1
            return
        token = Token(address=fetched.address, type=fetched.kind, name=fetched.name, symbol=fetched.symbol)
        if not token.is_named:
            # self-destructed or unknown token
            log("BULK", progress, f"Symbol: {fetched.symbol} | Name: {fetched.name}")
            summary.unnamed += 1
            return

        deployer = self._lookup_deployer(fetched.address)
        token = replace(token, deployer=deployer)
        log("BULK", progress, f"Symbol: {token.symbol} | Name: {token.name} | Deployer: {deployer}")

        if self.registry.lookup_token(token) is not None:
            warn("BULK", f"{progress} Not a unique fingerprint, skip")
            summary.duplicates += 1
            return

        self.storage.append(TokenRecord(token, legit=True))
        self.registry.register(token)
        summary.added += 1

    def fetch(self, rows: Sequence[Row]) -> BulkSummary:
        if not rows:
            raise ValueError("There are no addresses to fetch")

        summary = BulkSummary(loaded=len(rows))
        pending = self._pending_rows(rows, summary)
        if summary.already_fetched:
            log("BULK", f"Filtered out {summary.already_fetched} already fetched tokens")
        log("BULK", f"Fetching {len(pending)} tokens...")

        q: "queue.Queue" = queue.Queue(maxsize=self.queue_size)
        stop = threading.Event()
        errors: list = []
        producer = threading.Thread(target=self._produce, args=(pending, q, stop, errors),
                                    name="bulk-metadata", daemon=True)
        producer.start()

        try:
            while True:
                item = q.get()
                if item is _SENTINEL:
                    break
                self._register(item, len(pending), summary)
        except BaseException:
            stop.set()
            # unblock the producer so it can reach its sentinel
            while producer.is_alive():
                try:
                    q.get(timeout=0.1)
                except queue.Empty:
                    continue
            raise
        finally:
            producer.join()

        if errors:
            raise errors[0]
        log("BULK", f"Finished: {summary}")
        return summary
