#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import aiohttp

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from binwatch.config import load_config
from binwatch.dashboard.client import BinApiClient, WebSocketChangeFeed
from binwatch.dashboard.view_model import DashboardState, DashboardViewModel
from binwatch.exceptions import TransportError

LOGGER = logging.getLogger("watch_dashboard")


def render(state: DashboardState) -> None:
    badge = "Connected" if state.connected else "Disconnected"
    print(f"\nSmart Waste Management [{badge}]")
    if state.error:
        print(f"  ! {state.error}")
    print(f"  Overall compliance: {state.compliance_score}% ({state.rating_label})")
    if not state.bins:
        print("  No bins reported yet")
    for item in state.bins:
        print(f"  {item.display_name:<12} {item.fill_level:>6.2f}%  {item.status_label}")
    if state.last_refreshed is not None:
        print(f"  Last updated: {state.last_refreshed.astimezone().strftime('%H:%M:%S')}")


async def watch(args: argparse.Namespace) -> None:
    async with aiohttp.ClientSession() as session:
        view_model = DashboardViewModel(
            BinApiClient(args.api_base, session, timeout_s=args.timeout),
            WebSocketChangeFeed(args.ws_url, session),
            on_render=render,
        )
        while True:
            try:
                await view_model.run()
            except TransportError as exc:
                LOGGER.warning("Reconnecting in %.0fs: %s", args.reconnect_delay, exc)
            await asyncio.sleep(args.reconnect_delay)


def parse_args() -> argparse.Namespace:
    dashboard = load_config().dashboard
    parser = argparse.ArgumentParser(description="Live terminal view of bin fill levels and compliance score.")
    parser.add_argument("--api-base", default=dashboard.api_base, help="Backend API base URL")
    parser.add_argument("--ws-url", default=dashboard.ws_url, help="Change feed WebSocket URL")
    parser.add_argument("--timeout", type=float, default=dashboard.request_timeout_seconds, help="HTTP timeout seconds")
    parser.add_argument(
        "--reconnect-delay",
        type=float,
        default=dashboard.reconnect_delay_seconds,
        help="Seconds to wait before resubscribing after the feed drops",
    )
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s - %(message)s")
    args = parse_args()
    try:
        asyncio.run(watch(args))
    except KeyboardInterrupt:
        print("\nStopped.")


if __name__ == "__main__":
    main()
