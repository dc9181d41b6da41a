# batch_cli.py
import argparse, os, sys
from dataclasses import asdict

print("[BATCH] Booting...")

from dotenv import load_dotenv
_loaded = load_dotenv()
print(f"[BATCH] .env loaded: {_loaded}")
print(f"[BATCH] ENV presence -> ETH RPC: {'yes' if os.getenv('WEB3_PROVIDER_ETH') else 'no'}, "
      f"BSC RPC: {'yes' if os.getenv('WEB3_PROVIDER_BSC') else 'no'}, "
      f"ETHERSCAN_API_KEY: {'yes' if os.getenv('ETHERSCAN_API_KEY') else 'no'}")

try:
    from radar.chains import CHAINS
    from radar.config import load_config
    from radar.core.bulk import BulkTokenFetcher
    from radar.core.deployer import DeployerLookup
    from radar.core.errors import RadarError
    from radar.core.provider import ChainProvider
    from radar.core.storage import TokenStorage, load_address_rows, read_address_file, tokens_file_name
    from radar.core.types import TokenInterface
    print("[BATCH] Import bulk fetcher: OK")
except Exception as e:
    print("[BATCH] Import bulk fetcher: FAIL ->", e)
    sys.exit(1)

try:
    from radar.utils.ratelimit import set_default_qps
    from radar.utils.logger import set_enabled
    print("[BATCH] Import set_default_qps: OK")
except Exception as e:
    print("[BATCH] Import set_default_qps: FAIL ->", e)
    sys.exit(1)


def load_rows(infile, kind, data_path: str, chain_id: int) -> list:
    if infile:
        print(f"[BATCH] Loading addresses from: {infile}")
        if not os.path.exists(infile):
            print(f"[BATCH] ❌ Input file not found: {infile}", file=sys.stderr)
            sys.exit(1)
        rows = read_address_file(infile, default_type=kind)
    else:
        print(f"[BATCH] Loading address lists from: {data_path}")
        rows = load_address_rows(data_path, chain_id)
    print(f"[BATCH] Loaded {len(rows)} addresses")
    if rows:
        print("[BATCH] First 3:", [a for a, _ in rows[:3]])
    return rows


def main(argv=None) -> int:
    print("[BATCH] Parsing arguments...")
    ap = argparse.ArgumentParser(description="Token Impersonation Radar - bulk token list fetcher")
    ap.add_argument("--chain", default="eth", choices=sorted(CHAINS), help="Chain of the listed tokens")
    ap.add_argument("--infile", default=None,
                    help="CSV (contract_address[,type]) or text file with one address per line; "
                         "defaults to chain-<id>.list*.csv in the data dir")
    ap.add_argument("--type", type=int, default=None, choices=[int(t) for t in TokenInterface],
                    help="Interface of every listed address (20|721|1155); classified on-chain when omitted")
    ap.add_argument("--data-dir", default=None, help="Directory for the token log")
    ap.add_argument("--concurrency", type=int, default=5, help="Parallel metadata reads")
    ap.add_argument("--etherscan-qps", type=float, default=4.0, help="Max req/s to explorer APIs")
    ap.add_argument("--skip-deployers", action="store_true", help="Don't look up deployers on the explorer")
    ap.add_argument("--debug", action="store_true", help="Verbose [TAG] logging")
    args = ap.parse_args(argv)
    print(f"[BATCH] Args -> chain={args.chain} infile={args.infile} type={args.type} data_dir={args.data_dir} "
          f"conc={args.concurrency} qps={args.etherscan_qps} skip_deployers={args.skip_deployers}")

    if args.debug:
        set_enabled(True)
    set_default_qps(args.etherscan_qps)
    print(f"[BATCH] Rate limit set to {args.etherscan_qps} req/s")

    try:
        cfg = load_config(args.chain, data_path=args.data_dir)
        provider = ChainProvider.for_chain(args.chain)
        chain_id = provider.chain_id()
        kind = TokenInterface(args.type) if args.type else None
        rows = load_rows(args.infile, kind, cfg.data_path, chain_id)

        fetcher = BulkTokenFetcher(
            provider,
            TokenStorage(cfg.data_path, tokens_file_name(chain_id)),
            deployer_lookup=None if args.skip_deployers else DeployerLookup(args.chain),
            policy=cfg.fingerprint_policy,
            concurrency=args.concurrency,
        )
        fetcher.load_existing()
        summary = fetcher.fetch(rows)
    except (ValueError, RadarError) as e:
        print("[BATCH] fetch FAIL:", e, file=sys.stderr)
        return 1

    print(f"[BATCH] Summary: {asdict(summary)}")
    print("✅ Done. Token log →", fetcher.storage.file_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
