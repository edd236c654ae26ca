# background loop: fetch → merge → persist → report
import asyncio
from typing import Optional

import structlog

from packages.config.constants import MAINNET_ENV, SYNC_YAML, TESTNET_ENV
from packages.config.env import load_cfg
from packages.leaderboard.ranker import format_address, format_eth
from packages.sync.controller import build_controller

log = structlog.get_logger()


async def run(network: str = "testnet", config: str = SYNC_YAML, top: int = 5,
              max_ticks: Optional[int] = None):
    env_file = MAINNET_ENV if network == "mainnet" else TESTNET_ENV
    cfg = load_cfg(env_file, config)
    ctl = build_controller(cfg)
    log.info("watch_start", source=cfg.source_url, interval=cfg.refresh_interval_sec,
             stale_after=cfg.stale_threshold_sec, backend=cfg.store_backend)

    last_seen = ctl.last_updated
    ticks = 0
    async with ctl:
        while max_ticks is None or ticks < max_ticks:
            await asyncio.sleep(cfg.refresh_interval_sec)
            ticks += 1
            if ctl.last_updated == last_seen and ctl.last_error is None:
                continue
            last_seen = ctl.last_updated
            board = ctl.get_leaderboard()[:top]
            log.info("leaderboard", state=ctl.state.value, error=ctl.last_error, top=[
                {"rank": i, "address": format_address(e.address), "wins": e.games_won,
                 "earned_eth": format_eth(e.total_earnings)}
                for i, e in enumerate(board, 1)
            ])
