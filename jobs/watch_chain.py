# jobs/watch_chain.py
import argparse, json, sys, time
from typing import Callable, List, Optional

from dotenv import load_dotenv

from radar.chains import CHAINS
from radar.config import load_config
from radar.core.errors import RadarError
from radar.core.findings import Finding
from radar.core.scan import ScanOrchestrator, build_orchestrator, fetch_block_events
from radar.utils.retry import retry

load_dotenv()


def process_block(orch: ScanOrchestrator, number: int) -> List[Finding]:
    events = fetch_block_events(orch.provider, number, with_traces=orch.trace_supported,
                                receipt_concurrency=orch.config.receipt_concurrency)
    findings: List[Finding] = []
    for event in events:
        findings.extend(orch.handle_transaction(event))
    return findings


def watch(orch: ScanOrchestrator, start: int, poll_interval: float = 12.0,
          max_blocks: Optional[int] = None,
          on_finding: Callable[[Finding], None] = lambda f: None,
          sleep: Callable[[float], None] = time.sleep) -> int:
    """
    Feed every transaction from `start` on to the live pipeline, waiting for
    new blocks at the chain head. A block that keeps failing after the retry
    budget raises; everything handled before it is already persisted.
    Returns the next block to process.
    """
    cfg = orch.config
    number, done = start, 0
    while max_blocks is None or done < max_blocks:
        head = orch.provider.get_block_number()
        if number > head:
            sleep(poll_interval)
            continue
        findings = retry(lambda: process_block(orch, number), times=cfg.max_retries,
                         interval=cfg.retry_wait_seconds, sleep=sleep, tag="WATCH")
        for f in findings:
            on_finding(f)
        number += 1
        done += 1
    return number


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Follow the chain head and report impersonating tokens")
    ap.add_argument("--chain", default="eth", choices=sorted(CHAINS))
    ap.add_argument("--from-block", type=int, default=None, help="first block, the current head by default")
    ap.add_argument("--poll", type=float, default=12.0, help="seconds between head checks")
    ap.add_argument("--max-blocks", type=int, default=None, help="stop after this many blocks")
    ap.add_argument("--out", default=None, help="append findings as JSON lines to this file")
    args = ap.parse_args(argv)

    cfg = load_config(args.chain)
    orch = build_orchestrator(cfg)
    orch.initialize()
    start = args.from_block if args.from_block is not None else orch.provider.get_block_number()
    print(f"🔎 Watching {args.chain} from block {start} (traces={orch.trace_supported}) …")

    def report(finding: Finding) -> None:
        out = finding.to_dict()
        print(f"{'❗' if finding.severity == 'High' else '⚠️ '} {out['description']}")
        if args.out:
            with open(args.out, "a") as f:
                f.write(json.dumps(out) + "\n")

    try:
        next_block = watch(orch, start, args.poll, args.max_blocks, on_finding=report)
    except KeyboardInterrupt:
        print("\n👋 Stopped.")
        return 0
    except RadarError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    print(f"✅ Stopped before block {next_block}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
