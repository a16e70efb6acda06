"""Poll an order update job and print its progress until it completes."""

from __future__ import annotations

import argparse
import os
import sys
import time
from datetime import datetime
from typing import Any, Dict, Optional

import httpx


def _print_header(title: str) -> None:
    line = "=" * len(title)
    print(f"\n{title}\n{line}")


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _describe(status: Dict[str, Any]) -> str:
    stats = status.get("stats") or {}
    return (
        f"{str(status.get('status', 'unknown')).upper()}"
        f" | {stats.get('succeeded', 0)} ok"
        f" / {stats.get('failed', 0)} failed"
        f" of {stats.get('total', 0)}"
        f" | rejected={len(status.get('invalid') or [])}"
    )


def fetch_status(client: httpx.Client, monitor_path: str) -> Dict[str, Any]:
    response = client.get(monitor_path)
    response.raise_for_status()
    return response.json()


def watch(
    base_url: str,
    job_id: str,
    token: str,
    *,
    api_prefix: str = "/api",
    poll_interval: float = 1.0,
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """Poll until the job completes and return its final status document."""
    monitor_path = f"{api_prefix.rstrip('/')}/jobs/{job_id}"
    owned = client is None
    client = client or httpx.Client(
        base_url=base_url,
        headers={"Authorization": f"Bearer {token}"},
        timeout=10.0,
    )

    _print_header(f"Watching job {job_id} (Ctrl+C to exit)")
    last_line = None
    try:
        while True:
            status = fetch_status(client, monitor_path)
            line = _describe(status)
            if line != last_line:
                print(f"[{_timestamp()}] {line}")
                last_line = line
            if status.get("status") == "completed":
                for error in status.get("errors") or []:
                    print(f"  {error.get('orderId')}: {error.get('error')}")
                return status
            time.sleep(poll_interval)
    finally:
        if owned:
            client.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Follow an order update job.")
    parser.add_argument("job_id", help="Identifier returned by /updateFilteredOrders.")
    parser.add_argument(
        "--base-url",
        default=os.getenv("GATEWAY_URL", "http://localhost:8000"),
        help="Gateway base URL (default: $GATEWAY_URL or http://localhost:8000).",
    )
    parser.add_argument("--api-prefix", default=os.getenv("API_PREFIX", "/api"))
    parser.add_argument(
        "--token",
        default=os.getenv("GATEWAY_ACCESS_TOKEN", ""),
        help="Current provider access token (default: $GATEWAY_ACCESS_TOKEN).",
    )
    parser.add_argument("--interval", type=float, default=1.0)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        status = watch(
            args.base_url,
            args.job_id,
            args.token,
            api_prefix=args.api_prefix,
            poll_interval=args.interval,
        )
    except httpx.HTTPStatusError as exc:
        print(f"Gateway answered {exc.response.status_code}: {exc.response.text}", file=sys.stderr)
        return 1
    except httpx.HTTPError as exc:
        print(f"Could not reach gateway: {exc}", file=sys.stderr)
        return 1
    return 0 if not status.get("errors") else 2


if __name__ == "__main__":  # pragma: no cover - manual execution path
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nStopped watching.")
