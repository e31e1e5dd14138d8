"""Check that the marketplace configuration in an env file is usable.

Two checks are available:

1. Load ``AppSettings`` from the given env file and confirm the OAuth
   settings (client id, client secret, RuName) are present. Malformed values
   such as an unknown ``EBAY_ENVIRONMENT`` or an unsupported scope fail here
   as well.
2. Record a SHA256 checksum of the env file and later compare against it, so
   edits made outside a deploy are noticed.

Example usages::

    # Validate and store the baseline checksum.
    python -m scripts.check_env record --env-file /srv/lister/.env \
        --hash-file /srv/lister/.env.sha256

    # Compare later, e.g. from a systemd timer.
    python -m scripts.check_env verify --env-file /srv/lister/.env \
        --hash-file /srv/lister/.env.sha256

    # Credentials are entered through the UI on this host.
    python -m scripts.check_env check --allow-missing-credentials
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from ebay_lister.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5

_CREDENTIAL_SETTINGS = {"EBAY_CLIENT_ID", "EBAY_CLIENT_SECRET"}


def _compute_hash(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _missing_settings(env_file: Path, *, allow_missing_credentials: bool) -> list[str]:
    """Load settings from ``env_file`` and return the unset OAuth variables."""
    _load_env_file(str(env_file))
    settings = AppSettings()  # type: ignore[call-arg]
    missing = settings.ebay.missing_oauth_settings()
    if allow_missing_credentials:
        missing = [name for name in missing if name not in _CREDENTIAL_SETTINGS]
    return missing


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"Checksum baseline {hash_file} not found; run 'record' first.",
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
        f"  actual:   {actual}",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate marketplace settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env).",
        )
        subparser.add_argument(
            "--allow-missing-credentials",
            action="store_true",
            help="Accept an unset client id/secret (submitted at runtime instead).",
        )

    for name, help_text in (
        ("record", "Validate settings and store the checksum baseline."),
        ("verify", "Validate settings and compare against the checksum baseline."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        add_common_arguments(subparser)
        subparser.add_argument("--hash-file", required=True, type=Path)

    check_parser = subparsers.add_parser("check", help="Validate settings only.")
    add_common_arguments(check_parser)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file
    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        missing = _missing_settings(
            env_file, allow_missing_credentials=args.allow_missing_credentials
        )
    except ValidationError as exc:
        print(f"Settings validation failed:\n{exc.json(indent=2)}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    if missing:
        print(
            "Missing marketplace settings: " + ", ".join(missing),
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: EXIT_OK,
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
