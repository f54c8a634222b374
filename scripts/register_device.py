#!/usr/bin/env python3
"""Live registration check against the push platform.

Registers a device token with optional identity, tags and attributes,
waits for the sync to settle and prints the resulting sync state.

Credentials come from the environment:
- PUSH_APP_ID
- PUSH_ACCESS_TOKEN

Any other ``PUSH_*`` variable understood by ``PushConfig.from_env`` applies
as well (``PUSH_STORAGE_PATH`` keeps state between runs).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pymobilepush import PushClient, PushConfig, PushConfigError, PushPermanentSyncError  # noqa: E402


def _parse_attribute(text: str) -> tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {text!r}")
    return name, value


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Register a device token and sync its state")
    parser.add_argument(
        "--token",
        required=True,
        help="Device token as hex (angle brackets and spaces are ignored).",
    )
    parser.add_argument("--subscriber-key", default=None, help="Subscriber key to attach to the device.")
    parser.add_argument("--tag", action="append", default=[], help="Tag to add (repeatable).")
    parser.add_argument(
        "--attribute",
        action="append",
        default=[],
        type=_parse_attribute,
        help="Attribute as NAME=VALUE (repeatable).",
    )
    parser.add_argument(
        "--reset-badge",
        action="store_true",
        help="Also ask the server to zero the badge count.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="Seconds to wait for the sync to settle.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG logging.")
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> int:
    try:
        config = PushConfig.from_env()
    except PushConfigError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    fatal: list[PushPermanentSyncError] = []
    async with PushClient(config, on_fatal_error=fatal.append) as client:
        client.register_token(args.token)
        if args.subscriber_key is not None:
            client.set_subscriber_key(args.subscriber_key)
        for tag in args.tag:
            client.add_tag(tag)
        for name, value in args.attribute:
            client.add_attribute(name, value)
        if args.reset_badge:
            client.reset_badge_count()

        try:
            await asyncio.wait_for(client.wait_for_sync(), timeout=args.timeout)
        except TimeoutError:
            print(f"Sync still in flight after {args.timeout}s")
            return 2

        state = client.sync_state
        print(
            json.dumps(
                {
                    "device_id": client.device_id,
                    "token": client.device_token(),
                    "sync_state": state.model_dump(mode="json"),
                },
                indent=2,
                sort_keys=True,
            )
        )

    if fatal:
        print(f"Permanent failure: {fatal[0]}")
        return 1
    return 1 if state.dirty else 0


def main() -> int:
    args = _parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
