"""
Create an account from the command line. Run from project root:
  python -m ckam.scripts.create_user DISPLAY_NAME USERNAME PASSWORD
Example:
  python -m ckam.scripts.create_user "Alexey" alexey password123
"""
import argparse
import logging
import sys

from ckam.core.config import get_settings
from ckam.core.errors import AccountStoreError
from ckam.services.account_store import AccountStore


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a CKAM messenger account.")
    parser.add_argument("display_name", help="Name shown to other users")
    parser.add_argument("username", help="Login handle (3-64 chars, case-insensitive unique)")
    parser.add_argument("password", help="Password (6-128 chars)")
    parser.add_argument(
        "--accounts-file",
        default=None,
        help="Backing file (defaults to ACCOUNTS_FILE from the environment)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    settings = get_settings()
    if args.accounts_file:
        store = AccountStore(args.accounts_file, bcrypt_rounds=settings.BCRYPT_ROUNDS)
    else:
        store = AccountStore.from_settings(settings)

    try:
        result = store.register(args.display_name, args.username, args.password)
    except AccountStoreError as e:
        print(e.message, file=sys.stderr)
        return 1
    if not result.persisted:
        print(f"Warning: {result.warning}", file=sys.stderr)
        return 1
    print(f"Created user '{result.user.username}' with id {result.user.id}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
