import argparse, asyncio, json
from contextlib import asynccontextmanager
from packages.config.constants import MAINNET_ENV, SYNC_YAML, TESTNET_ENV
from packages.config.env import load_cfg
from packages.config.logging import setup_logging
from packages.leaderboard.ranker import format_address, format_eth
from packages.sync.controller import RefreshController, build_controller
from apps.leaderboard.tasks.refresh_watch import run as run_refresh_watch


log = setup_logging()

def envfile(network:str)->str:
    return MAINNET_ENV if network=="mainnet" else TESTNET_ENV

@asynccontextmanager
async def open_controller(args, fresh: bool = True):
    cfg = load_cfg(envfile(args.network), args.config)
    log.info("Config loaded", source_url=cfg.source_url, backend=cfg.store_backend, store_path=cfg.store_path)
    ctl = build_controller(cfg)
    try:
        if fresh and not args.offline:
            res = await ctl.ensure_fresh()
            if res is not None and not res.ok:
                log.warning("Serving cached leaderboard; refresh failed", error=res.error)
        yield ctl
    finally:
        await ctl.stop()

def _stale_note(ctl: RefreshController):
    if ctl.is_stale:
        print("(data may be stale" + (f": {ctl.last_error}" if ctl.last_error else "") + ")")

async def run_show(args):
    async with open_controller(args) as ctl:
        page = ctl.search(args.search, page=args.page, per_page=args.limit)
        if args.json:
            print(json.dumps(page.model_dump(mode="json"), indent=2))
            return

        print(f"=== LEADERBOARD (page {page.page}/{max(1, page.total_pages)}, {page.total} players) ===")
        if not page.items:
            print("(none)")
        first = (page.page - 1) * page.per_page + 1
        for i, e in enumerate(page.items, first):
            print(f"#{i:<4} {format_address(e.address):<14} wins={e.games_won:<4} "
                  f"earned={format_eth(e.total_earnings)} avg={format_eth(e.average_winnings)} "
                  f"last=game {e.latest_win.game_id}")
        _stale_note(ctl)

async def run_recent(args):
    async with open_controller(args) as ctl:
        recent = ctl.get_recent_winners(args.limit)
        if args.json:
            print(json.dumps([r.model_dump(mode="json") for r in recent], indent=2))
            return
        print("=== RECENT WINNERS ===")
        if not recent:
            print("(none)")
        for r in recent:
            print(f"game {r.game_id} | {r.room_name} | {format_address(r.winner)} | "
                  f"number={r.winning_number} | prize={format_eth(r.prize)}")
        _stale_note(ctl)

async def run_position(args):
    async with open_controller(args) as ctl:
        pos = ctl.get_user_position(args.address)
        if pos is None:
            print(f"{args.address} is not on the leaderboard")
            return
        if args.json:
            print(json.dumps(pos.model_dump(mode="json"), indent=2))
            return
        e = pos.entry
        print(f"rank #{pos.rank}: {e.address} wins={e.games_won} earned={format_eth(e.total_earnings)}")
        _stale_note(ctl)

async def run_stats(args):
    async with open_controller(args) as ctl:
        s = ctl.get_stats()
        print(json.dumps({
            "total_games": s.total_games,
            "total_players": s.total_players,
            "total_prize_pool_eth": format_eth(s.total_prize_pool),
            "state": ctl.state.value,
            "last_updated": ctl.last_updated,
        }, indent=2))

async def run_refresh(args):
    log.info("=== REFRESH ===")
    async with open_controller(args, fresh=False) as ctl:
        res = await ctl.refresh()
    log.info("Refresh finished", ok=res.ok, new_records=res.new_records, total=res.total_records, error=res.error)
    print(json.dumps(res.model_dump(mode="json"), indent=2))

async def run_clear(args):
    async with open_controller(args, fresh=False) as ctl:
        ctl.clear_cache()
    print("cache cleared")

async def run_watch(args):
    await run_refresh_watch(args.network, args.config, top=args.top)

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--network", default="testnet", choices=["testnet","mainnet"])
    ap.add_argument("--config", default=SYNC_YAML, help="YAML file with sync tuning")
    ap.add_argument("--offline", action="store_true", help="serve the cache without refreshing")
    sub = ap.add_subparsers(dest="cmd")

    s = sub.add_parser("show")
    s.add_argument("--limit", type=int, default=10)
    s.add_argument("--page", type=int, default=1)
    s.add_argument("--search", required=False, help="address substring")
    s.add_argument("--json", action="store_true")
    s.set_defaults(func=run_show)

    r = sub.add_parser("recent")
    r.add_argument("--limit", type=int, default=10)
    r.add_argument("--json", action="store_true")
    r.set_defaults(func=run_recent)

    p = sub.add_parser("position")
    p.add_argument("address")
    p.add_argument("--json", action="store_true")
    p.set_defaults(func=run_position)

    st = sub.add_parser("stats")
    st.set_defaults(func=run_stats)

    rf = sub.add_parser("refresh")
    rf.set_defaults(func=run_refresh)

    c = sub.add_parser("clear")
    c.set_defaults(func=run_clear)

    w = sub.add_parser("watch")
    w.add_argument("--top", type=int, default=5)
    w.set_defaults(func=run_watch)

    args = ap.parse_args()
    if not getattr(args, "func", None):
        ap.print_help(); return
    asyncio.run(args.func(args))

if __name__ == "__main__":
    main()
