#!/usr/bin/env python3
"""
Provision and administer a store from the command line.

Creates the data directory and tables, bootstraps the first administrator,
checks a PIN, and rotates an operator's PIN.

Usage:
    python3 scripts/init_store.py init [--config store.yaml]
    python3 scripts/init_store.py login 1234
    python3 scripts/init_store.py change-pin --user-id 1
"""

import argparse
import getpass
import sys
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from store_config import ConfigError, get_active_config  # noqa: E402
from store_kernel.exceptions import StorageUnavailableError  # noqa: E402
from store_services import StoreApp  # noqa: E402


def cmd_init(app: StoreApp, args: argparse.Namespace) -> int:
    created = app.startup()
    settings = app.config.database
    location = settings.database_path if settings.uses_data_dir else "configured URL"
    print(f"Store ready at {location}")
    if created is not None:
        print(
            f"Created administrator '{created.name}' (id {created.id}) "
            "with the default PIN. Change it now with: change-pin --user-id "
            f"{created.id}"
        )
    return 0


def cmd_login(app: StoreApp, args: argparse.Namespace) -> int:
    app.startup()
    response = app.login(args.pin)
    print(response.message)
    if response.success:
        print(f"  user_id={response.user_id} name={response.name} role={response.role}")
        return 0
    return 1


def cmd_change_pin(app: StoreApp, args: argparse.Namespace) -> int:
    app.startup()
    current = args.current_pin or getpass.getpass("Current PIN: ")
    new = args.new_pin or getpass.getpass("New PIN: ")
    if args.new_pin is None and getpass.getpass("Repeat new PIN: ") != new:
        print("PINs do not match", file=sys.stderr)
        return 1

    result = app.change_pin(args.user_id, current, new)
    if not result.success:
        print(f"{result.error_code}: {result.message}", file=sys.stderr)
        return 1
    print(f"PIN changed for '{result.record.name}'")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Provision and administer the store database.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML file overlaid on the built-in defaults",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create tables and the bootstrap administrator")

    login = sub.add_parser("login", help="Check a PIN")
    login.add_argument("pin")

    change = sub.add_parser("change-pin", help="Rotate an operator's PIN")
    change.add_argument("--user-id", type=int, required=True)
    change.add_argument("--current-pin", default=None)
    change.add_argument("--new-pin", default=None)

    args = parser.parse_args(argv)
    handlers = {
        "init": cmd_init,
        "login": cmd_login,
        "change-pin": cmd_change_pin,
    }

    try:
        config = get_active_config(args.config)
    except (ConfigError, FileNotFoundError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    app = StoreApp(config)
    try:
        return handlers[args.command](app, args)
    except StorageUnavailableError as exc:
        print(f"Store unavailable: {exc}", file=sys.stderr)
        return 3
    finally:
        app.shutdown()


if __name__ == "__main__":
    sys.exit(main())
