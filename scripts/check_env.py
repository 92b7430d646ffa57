"""Utility for verifying that the broker's environment configuration is intact.

The tool performs two main checks:

1. It loads ``AppSettings`` from the provided ``.env`` file, surfacing a
   missing encryption secret, malformed tenant registry or incomplete
   storage configuration before the service starts failing requests.
2. It can record and verify a checksum for the ``.env`` file so unexpected
   edits are detected.

Example usages::

    python -m scripts.check_env record --env-file /opt/oauth-broker/.env \
        --hash-file /opt/oauth-broker/.env.sha256

    python -m scripts.check_env verify --env-file /opt/oauth-broker/.env \
        --hash-file /opt/oauth-broker/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from oauth_broker.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_NO_TENANTS = 4
EXIT_RUNTIME_ERROR = 5


def _compute_hash(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Load settings from the supplied env file, raising on invalid values."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _describe(settings: AppSettings) -> int:
    """Print the tenant registry; configurations without tenants are rejected."""
    tenants = settings.configured_tenants()
    if not tenants:
        print("No OAuth tenants configured (set OAUTH_TENANTS or OAUTH_TENANTS_FILE).", file=sys.stderr)
        return EXIT_NO_TENANTS
    print(f"Credential store backend: {settings.storage.backend}")
    for tenant in tenants:
        providers = ", ".join(sorted(p.value for p in settings.oauth.tenants[tenant])) or "none"
        print(f"  tenant {tenant}: {providers}")
    return EXIT_OK


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    """Compare the current checksum to the recorded baseline."""
    if not hash_file.exists():
        print(
            f"Expected checksum file {hash_file} is missing. "
            "Re-run with the 'record' command to establish a baseline.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        "Environment checksum mismatch!\n"
        f"  expected: {expected}\n"
        f"  actual:   {actual}\n"
        "Investigate recent changes before restarting the broker.",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate broker settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_env_file(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

    for name, help_text in (
        ("record", "Validate settings and store the checksum baseline."),
        ("verify", "Validate settings and compare the checksum with the baseline."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        add_env_file(subparser)
        subparser.add_argument("--hash-file", required=True, type=Path)

    check_parser = subparsers.add_parser(
        "check",
        help="Validate settings and list configured tenants.",
    )
    add_env_file(check_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file
    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except (OSError, ValueError) as exc:
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: _describe(settings),
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
