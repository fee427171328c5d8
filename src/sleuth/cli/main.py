from __future__ import annotations

import argparse
import datetime as dt
import json
import logging
import os
import sys
import time
from pathlib import Path

from sleuth.config import settings
from sleuth.core.errors import SleuthError
from sleuth.core.models import CrawlPolicy
from sleuth.services.forensic_service import ForensicService
from sleuth.io.output_writer import write_outputs

from sleuth.adapters.chain.helius_chain_adapter import HeliusChainAdapter
from sleuth.adapters.chain.static_chain_adapter import StaticChainAdapter

MODES = ("trace", "audit", "forensic")


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="sleuth", description="Forensic value-flow tracer (SOL + SPL tokens)")
    p.add_argument("--address", required=False, help="Seed address to trace")
    p.add_argument("--mode", choices=MODES + ("all",), default="forensic", help="Analysis to run")
    p.add_argument("--depth", type=int, default=None, help="Maximum hop depth (audit/forensic, default 3)")
    p.add_argument("--window", type=int, default=None, help="Transactions fetched per address")
    p.add_argument("--delay", type=float, default=settings.CRAWL_CALL_DELAY_SEC, help="Seconds between crawl calls")
    p.add_argument("--noise-threshold", type=int, default=settings.NOISE_THRESHOLD_LAMPORTS, help="Ignore balance changes at or below this many lamports")
    p.add_argument("--out", default=settings.DEFAULT_OUT_DIR, help="Output folder")
    p.add_argument("--enhanced", action="store_true", help="Use the enhanced (pre-parsed) transaction API")
    p.add_argument("--use-static", action="store_true", help="Use static adapter (dev/testing)")
    p.add_argument("--static-file", help="JSON file mapping address -> list of raw transactions (with --use-static)")
    p.add_argument("--log-level", default=settings.LOG_LEVEL, help="Logging level (DEBUG, INFO, WARNING, ...)")
    return p


def _make_progress_reporter(policy: CrawlPolicy):
    start_time = time.time()
    last_print = 0.0
    is_tty = sys.stdout.isatty()

    def _short_addr(addr: str) -> str:
        if not addr:
            return ""
        if len(addr) <= 12:
            return addr
        return f"{addr[:6]}...{addr[-4:]}"

    def _ts() -> str:
        return dt.datetime.now().strftime("%H:%M:%S")

    def _print_line(message: str) -> None:
        if is_tty:
            sys.stdout.write("\r" + message.ljust(88))
            sys.stdout.flush()
        else:
            print(message)

    def _clear_line() -> None:
        if is_tty:
            sys.stdout.write("\r" + (" " * 88) + "\r")
            sys.stdout.flush()

    def progress(event: str, data: dict) -> None:
        nonlocal last_print
        now = time.time()
        if event == "start":
            print(f"[{_ts()}] {policy.mode.title()} {data['address']} • depth {data['max_depth']}")
            return
        if event == "visit":
            if is_tty and now - last_print < 0.2:
                return
            msg = (
                f"Depth {data['depth']}/{policy.max_depth} • "
                f"queue {data['queue']} • "
                f"processed {data['processed']} • "
                f"edges {data['edges']}"
            )
            _print_line(msg)
            last_print = now
            return
        if event == "fetch":
            _print_line(f"{'  ' * data['depth']}Fetching {_short_addr(data['address'])}...")
            last_print = now
            return
        if event == "fetch_done":
            _print_line(f"Fetched {_short_addr(data['address'])}: {data['count']} transaction(s)")
            last_print = now
            return
        if event == "error":
            _clear_line()
            print(f"[{_ts()}] Skipped {_short_addr(data['address'])}: {data['message']}", file=sys.stderr)
            return
        if event == "done":
            _clear_line()
            elapsed = time.time() - start_time
            print(
                f"[{_ts()}] Done in {elapsed:.1f}s • "
                f"{data['nodes']} nodes • {data['edges']} edges • {data['fetched']} fetched"
            )

    return progress


def _load_static(path: str | None) -> StaticChainAdapter:
    if not path:
        return StaticChainAdapter()
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object mapping address -> transactions")
    transactions = data.get("transactions", data)
    if not isinstance(transactions, dict):
        raise ValueError(f"{path}: 'transactions' must map address -> list of transactions")
    return StaticChainAdapter(transactions=transactions, failing=data.get("failing"))


def main() -> int:
    args = build_arg_parser().parse_args()
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.address:
        print("Missing --address for tracing", file=sys.stderr)
        return 2

    # Ports
    if args.use_static:
        try:
            history = _load_static(args.static_file)
        except (OSError, ValueError) as exc:
            print(f"Invalid --static-file: {exc}", file=sys.stderr)
            return 2
        adapter_label = "StaticChainAdapter (dev/testing)"
    else:
        # Helius key should come from env or .env file
        if not os.getenv("HELIUS_API_KEY"):
            print("Missing HELIUS_API_KEY environment variable", file=sys.stderr)
            return 2
        history = HeliusChainAdapter(use_enhanced_api=args.enhanced or None)
        adapter_label = "HeliusChainAdapter"
    print(f"Adapter: {adapter_label}")

    modes = MODES if args.mode == "all" else (args.mode,)
    try:
        policies = [
            CrawlPolicy.preset(
                mode,
                args.address,
                max_depth=args.depth if mode != "trace" else None,
                window_size=args.window,
                call_delay_sec=args.delay,
                noise_threshold=args.noise_threshold,
            )
            for mode in modes
        ]
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    for policy in policies:
        mode = policy.mode
        progress = _make_progress_reporter(policy)
        svc = ForensicService(history, on_progress=progress)
        try:
            report = svc.analyze(policy)
        except SleuthError as exc:
            print(f"Error: {exc.__class__.__name__}: {exc}", file=sys.stderr)
            return 1

        # Outputs
        out_dir = Path(args.out) / mode / args.address[:20]
        print("Writing outputs...")
        for path in write_outputs(report, str(out_dir)):
            print(f"Wrote: {path}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
