TESTNET_ENV = "configs/.env.testnet"
MAINNET_ENV = "configs/.env.mainnet"
SYNC_YAML = "configs/leaderboard.yml"

# Bump CACHE_VERSION whenever the persisted blob shape changes; old blobs are dropped, not migrated.
CACHE_VERSION = "v1"
CACHE_KEY = f"leaderboard-cache-{CACHE_VERSION}"

MAX_RECORDS = 1000
REFRESH_INTERVAL_SEC = 30
STALE_THRESHOLD_SEC = 300
FETCH_TIMEOUT_SEC = 15.0

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
