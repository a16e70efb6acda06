"""Pre-flight check for the gateway's ``.env`` file.

Loading ``AppSettings`` from the file parses every token provider definition
together with its body templates, so a typo in a placeholder fails here rather
than at the first scheduled rotation. The ``record``/``verify`` pair keeps a
SHA256 baseline of the file so that a refresh token pasted in by hand, or any
other unreviewed edit, is noticed before the service is restarted.

Example usages::

    python -m scripts.check_env check --env-file /opt/gateway/.env

    python -m scripts.check_env record --env-file /opt/gateway/.env \
        --hash-file /opt/gateway/.env.sha256

    # cron/systemd timer
    python -m scripts.check_env verify --env-file /opt/gateway/.env \
        --hash-file /opt/gateway/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable, Dict

from pydantic import ValidationError

from gateway.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


class EnvCheckError(RuntimeError):
    """Raised for problems with the files this tool reads or writes."""


def _digest(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load(env_file: Path) -> AppSettings:
    if not env_file.is_file():
        raise EnvCheckError(f"Environment file {env_file} does not exist.")
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _provider_lines(settings: AppSettings) -> list[str]:
    lines = []
    for provider in settings.provider_configs():
        schedule = []
        if provider.rotation_enabled:
            schedule.append(f"rotation every {provider.rotation_interval_seconds}s")
        if provider.secret_rotation.enabled:
            schedule.append(f"secret every {provider.secret_rotation.interval_seconds}s")
        lines.append(f"  {provider.name}: {', '.join(schedule) or 'rotation disabled'}")
    return lines


def _cmd_check(settings: AppSettings, args: argparse.Namespace) -> int:
    lines = _provider_lines(settings)
    if not lines:
        print("Settings OK, but no token providers are configured.", file=sys.stderr)
        return EXIT_VALIDATION_ERROR if args.strict else EXIT_OK
    print("Settings OK. Configured providers:")
    print("\n".join(lines))
    if args.strict and any(line.endswith("rotation disabled") for line in lines):
        print("Strict mode: every provider must rotate.", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    return EXIT_OK


def _cmd_record(settings: AppSettings, args: argparse.Namespace) -> int:
    digest = _digest(args.env_file)
    args.hash_file.write_text(f"{digest}\n", encoding="utf-8")
    print(f"Baseline {digest} written to {args.hash_file}")
    return EXIT_OK


def _cmd_verify(settings: AppSettings, args: argparse.Namespace) -> int:
    if not args.hash_file.is_file():
        raise EnvCheckError(
            f"No baseline at {args.hash_file}; run 'record' first."
        )
    baseline = args.hash_file.read_text(encoding="utf-8").strip()
    current = _digest(args.env_file)
    if baseline != current:
        print(
            f"{args.env_file} changed since the baseline was recorded.\n"
            f"  baseline: {baseline}\n"
            f"  current:  {current}",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR
    print("Environment checksum OK.")
    return EXIT_OK


_COMMANDS: Dict[str, tuple[str, bool, Callable[[AppSettings, argparse.Namespace], int]]] = {
    "check": ("Validate settings and list the configured providers.", False, _cmd_check),
    "record": ("Validate settings and store a checksum baseline.", True, _cmd_record),
    "verify": ("Validate settings and compare against the baseline.", True, _cmd_verify),
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate gateway settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, (help_text, needs_hash, _) in _COMMANDS.items():
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--env-file", default=Path(".env"), type=Path)
        if needs_hash:
            sub.add_argument("--hash-file", required=True, type=Path)
        if name == "check":
            sub.add_argument(
                "--strict",
                action="store_true",
                help="Fail when a provider has rotation disabled.",
            )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    handler = _COMMANDS[args.command][2]

    try:
        settings = _load(args.env_file)
        return handler(settings, args)
    except ValidationError as exc:
        print(f"Settings validation failed:\n{exc.json(indent=2)}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except (EnvCheckError, OSError) as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
