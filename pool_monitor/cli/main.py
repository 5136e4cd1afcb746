from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

from pool_monitor.config import Config
from pool_monitor.errors import UpstreamNotifyError
from pool_monitor.logging_config import setup_logging
from pool_monitor.main import build_runner
from pool_monitor.notifiers.lark import LarkClient
from pool_monitor.runner import RunStatus
from pool_monitor.store import NotifyStateStore
from pool_monitor.utils import now_ms, resolve_path


def _fmt_utc(ts_ms: float) -> str:
    return datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _store_path(arg: str | None) -> Path:
    if arg:
        return resolve_path(arg)
    return Config.from_env().notify_store_path


def cmd_state(args: argparse.Namespace) -> int:
    store = NotifyStateStore(_store_path(args.store))
    if not store.path.exists():
        print(f"FAIL store_not_found {store.path}")
        return 2
    store.load()
    now = now_ms()
    records = sorted(store.items(), key=lambda item: item[1].notified_at, reverse=True)
    print(f"store={store.path}")
    print(f"tracked_pools={len(records)}")
    for address, record in records[: max(0, int(args.limit))]:
        age_hours = max(0.0, (now - record.notified_at) / 3_600_000)
        print(
            f"  {address} notified_at_utc={_fmt_utc(record.notified_at)} "
            f"age_hours={age_hours:.1f} volume={record.volume}"
        )
    return 0


def cmd_once(args: argparse.Namespace) -> int:
    config = Config.from_env()
    setup_logging(config.log_level)
    runner = build_runner(config)
    runner.store.load()
    result = asyncio.run(runner.run_once())
    print(
        f"RUN {result.status.value.upper()} fetched={result.fetched} matched={result.matched} "
        f"notified={result.notified} elapsed_ms={result.elapsed_ms}"
    )
    if result.error:
        print(f"error={result.error}")
    return 2 if result.status is RunStatus.FAILED else 0


def cmd_lark_test(args: argparse.Namespace) -> int:
    webhook_url = (args.webhook or Config.from_env().lark_webhook_url).strip()
    if not webhook_url:
        print("FAIL reason=webhook_missing")
        return 2
    client = LarkClient(webhook_url=webhook_url)
    text = args.text or f"pool-monitor test message at {_fmt_utc(now_ms())} UTC"
    try:
        response = client.send_text(text)
    except UpstreamNotifyError as exc:
        print(f"FAIL webhook={client.masked_url} err={exc}")
        return 2
    print(f"OK webhook={client.masked_url} status={response.status_code}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pool-monitorctl", description="Pool Monitor CLI")

    sub = parser.add_subparsers(dest="command", required=True)

    p_state = sub.add_parser("state", help="list tracked pools from the notify store")
    p_state.add_argument("--store", default=None, help="notify store JSON path")
    p_state.add_argument("--limit", default=50, type=int)
    p_state.set_defaults(func=cmd_state)

    p_once = sub.add_parser("once", help="run a single poll cycle and exit")
    p_once.set_defaults(func=cmd_once)

    p_lark = sub.add_parser("lark-test", help="send a test text message to the Lark webhook")
    p_lark.add_argument("--webhook", default="")
    p_lark.add_argument("--text", default="")
    p_lark.set_defaults(func=cmd_lark_test)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
