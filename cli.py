# cli.py
import argparse
import json
import os
import sys

print("[CLI] Booting...")

from dotenv import load_dotenv
_loaded = load_dotenv()
print(f"[CLI] .env loaded: {_loaded}")
print(f"[CLI] ENV presence -> ETH RPC: {'yes' if os.getenv('WEB3_PROVIDER_ETH') else 'no'}, "
      f"BSC RPC: {'yes' if os.getenv('WEB3_PROVIDER_BSC') else 'no'}, "
      f"ETHERSCAN_API_KEY: {'yes' if os.getenv('ETHERSCAN_API_KEY') else 'no'}")

try:
    from radar.chains import CHAINS
    from radar.config import load_config
    from radar.core.errors import RadarError
    from radar.core.scan import build_orchestrator
    from radar.utils.logger import set_enabled
    print("[CLI] Import scanner: OK")
except Exception as e:
    print("[CLI] Import scanner: FAIL ->", e)
    sys.exit(1)

SCAN_DAYS = 28  # default history depth when --from-block is not given


def resolve_blocks(latest: int, blocks_per_day: int, days: int,
                   from_block=None, to_block=None) -> tuple:
    end = latest if to_block is None else to_block
    start = max(0, end - blocks_per_day * days) if from_block is None else from_block
    return start, end


def main(argv=None) -> int:
    print("[CLI] Parsing arguments...")
    p = argparse.ArgumentParser(description="Token Impersonation Radar - historical scan")
    p.add_argument("--chain", default="eth", choices=sorted(CHAINS), help="Chain to scan")
    p.add_argument("--days", type=int, default=SCAN_DAYS, help="Days of history when --from-block is not set")
    p.add_argument("--from-block", type=int, default=None, help="First block (inclusive)")
    p.add_argument("--to-block", type=int, default=None, help="Last block (inclusive), latest by default")
    p.add_argument("--data-dir", default=None, help="Directory for token log + checkpoint")
    p.add_argument("--popularity", action="store_true", help="Let a more active duplicate replace the known token")
    p.add_argument("--json", action="store_true", help="Print findings as JSON only")
    p.add_argument("--reset", action="store_true", help="Delete the stored token log + checkpoint first")
    p.add_argument("--debug", action="store_true", help="Verbose [TAG] logging")
    args = p.parse_args(argv)
    print(f"[CLI] Args -> chain={args.chain} days={args.days} from={args.from_block} to={args.to_block} "
          f"data_dir={args.data_dir} popularity={args.popularity} json={args.json} reset={args.reset}")
    if args.debug:
        set_enabled(True)

    try:
        cfg = load_config(args.chain, data_path=args.data_dir,
                          popularity_override_enabled=True if args.popularity else None)
        orchestrator = build_orchestrator(cfg)
        if args.reset:
            print(f"[CLI] Reset -> deleting {orchestrator.storage.file_path} + checkpoint")
            orchestrator.storage.delete()
        orchestrator.initialize()
        start, end = resolve_blocks(orchestrator.provider.get_block_number(), cfg.blocks_per_day,
                                    args.days, args.from_block, args.to_block)
        print(f"[CLI] Scanning {args.chain} blocks {start}-{end}...")
        summary = orchestrator.scan_range(start, end)
    except (ValueError, RadarError) as e:
        print("[CLI] scan: FAIL ->", e, file=sys.stderr)
        return 1

    findings = [f.to_dict() for f in summary.findings]
    if args.json:
        print(json.dumps(findings, indent=2, sort_keys=False, default=str))
        return 0

    if summary.already_scanned:
        print(f"✅ Blocks {start}-{end} are already scanned.")
        return 0

    print(f"✅ Scanned {summary.blocks} blocks ({summary.from_block}-{summary.to_block}), "
          f"{summary.candidates} candidates, {summary.new_tokens} new tokens")
    if not findings:
        print("✅ No impersonating tokens found.")
    for f in findings:
        icon = "❗" if f["severity"] == "High" else "⚠️ "
        print(f"{icon} {f['description']}")

    print("[CLI] Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
