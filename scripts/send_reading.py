#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import aiohttp

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from binwatch.config import load_config
from binwatch.dashboard.client import BinApiClient
from binwatch.exceptions import TransportError


async def send(args: argparse.Namespace) -> int:
    async with aiohttp.ClientSession() as session:
        client = BinApiClient(args.api_base, session, timeout_s=args.timeout)
        try:
            body = await client.post_reading(args.bin_type, args.distance_cm, args.bin_height_cm)
        except TransportError as exc:
            print(f"[error] {exc}", file=sys.stderr)
            return 1
    print(f"[ok] {body['message']}")
    return 0


def parse_args() -> argparse.Namespace:
    dashboard = load_config().dashboard
    parser = argparse.ArgumentParser(description="Post one distance reading to the bin ingestion API.")
    parser.add_argument("bin_type", choices=["dry", "wet", "metal"])
    parser.add_argument("distance_cm", type=float, help="Distance from sensor to waste surface (cm)")
    parser.add_argument("--bin-height-cm", type=float, default=None, help="Bin height (cm), server default is 30")
    parser.add_argument("--api-base", default=dashboard.api_base, help="Backend API base URL")
    parser.add_argument("--timeout", type=float, default=dashboard.request_timeout_seconds, help="HTTP timeout seconds")
    return parser.parse_args()


def main() -> None:
    raise SystemExit(asyncio.run(send(parse_args())))


if __name__ == "__main__":
    main()
