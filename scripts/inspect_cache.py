#!/usr/bin/env python3
import os, sys, json
from dotenv import load_dotenv

from packages.cache.kv import make_kv
from packages.cache.store import WinnerCacheStore
from packages.config.constants import CACHE_KEY

USAGE = """
Usage:
  python scripts/inspect_cache.py mainnet
  python scripts/inspect_cache.py testnet

Reads STORE_BACKEND / STORE_PATH from configs/.env.<network> and prints the
decoded leaderboard cache blob (or the reason it is unusable).
Set DROP_CACHE=true to delete the blob afterwards.
"""

NETWORKS = ("mainnet", "testnet")

def envfile(network: str) -> str:
    return f"configs/.env.{network}"

def main():
    if len(sys.argv) != 2 or sys.argv[1] not in NETWORKS:
        print(USAGE); sys.exit(1)
    network = sys.argv[1]
    env_path = envfile(network)
    if not load_dotenv(env_path, override=True):
        print(f"Could not load env: {env_path}"); sys.exit(1)

    backend = os.environ.get("STORE_BACKEND", "file")
    path = os.environ.get("STORE_PATH", ".cache/leaderboard")
    kv = make_kv(backend, path)
    try:
        report(network, kv, backend, path)
    finally:
        close = getattr(kv, "close", None)
        if close is not None:
            close()

def report(network, kv, backend, path):
    raw = kv.get(CACHE_KEY)
    if raw is None:
        print(f"[{network}] no cache blob under {CACHE_KEY!r} ({backend}:{path})")
        return

    # load() deletes unusable blobs, so keep the raw text for the report
    data = WinnerCacheStore(kv).load()
    if data is None:
        print(f"[{network}] cache blob was unusable and has been removed. Raw head:")
        print(raw[:400])
        sys.exit(1)

    print(f"[{network}] version={data.version} last_updated={data.last_updated}")
    print(f"[{network}] records={len(data.cached_results)} processed_ids={len(data.processed_game_ids)}")
    print(json.dumps(data.model_dump(mode="json"), indent=2)[:4000])

    if os.environ.get("DROP_CACHE", "false").lower() in ("1","true","yes"):
        kv.delete(CACHE_KEY)
        print(f"Deleted {CACHE_KEY} from {backend}:{path}")

if __name__ == "__main__":
    main()
