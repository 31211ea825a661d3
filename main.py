"""gcal-readonly accounts - Entry Point.

Manages the Google accounts whose calendars can be read. Adding an
account runs the OAuth consent flow in the browser (with a paste-the-code
fallback) and saves a token for that account only.

Usage:
    python main.py --add-account work
    python main.py --reauthorize-account work
    python main.py --remove-account work
    python main.py --list-accounts
"""

import argparse
import logging
import sys

from accounts.manager import AccountManager
from auth.errors import AuthError
from config.settings import load_settings

logger = logging.getLogger("main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage read-only Google Calendar accounts.")
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--add-account",
        metavar="NAME",
        help="Add a new Google account (e.g. 'personal' or 'work').",
    )
    group.add_argument(
        "--reauthorize-account",
        metavar="NAME",
        help="Run the consent flow again for a configured account.",
    )
    group.add_argument(
        "--remove-account",
        metavar="NAME",
        help="Remove a configured Google account.",
    )
    group.add_argument(
        "--list-accounts",
        action="store_true",
        help="List configured accounts.",
    )
    return parser


def main(argv: list[str] | None = None, manager: AccountManager | None = None) -> int:
    """Parse arguments and run the requested account command.

    Returns:
        Process exit status.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Suppress per-request logs from the callback listener
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    if not (args.add_account or args.reauthorize_account or args.remove_account or args.list_accounts):
        parser.print_help()
        return 0

    try:
        manager = manager or AccountManager(settings)

        if args.remove_account:
            manager.remove_account(args.remove_account)
            print(f"Account '{args.remove_account}' removed successfully!")
        elif args.add_account:
            manager.add_account(args.add_account)
            print(f"Account '{args.add_account}' added successfully!")
        elif args.reauthorize_account:
            manager.reauthorize_account(args.reauthorize_account)
            print(f"Account '{args.reauthorize_account}' re-authorized successfully!")
        else:
            accounts = manager.list_accounts()
            if not accounts:
                print("No accounts configured. Use --add-account <name> to add one.")
            else:
                print("Configured accounts:")
                for name in accounts:
                    print(f"  - {name}")
    except AuthError as e:
        logger.error("%s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
