"""Create voter/admin records or reset a voter's ballot flag."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Manage rows in public.users.")
    subcommands = parser.add_subparsers(dest="command", required=True)

    add = subcommands.add_parser("add", help="Create a voter or admin.")
    add.add_argument("id", help="Auth user id (auth.users.id) the record belongs to.")
    add.add_argument("email")
    add.add_argument("name")
    add.add_argument("--role", choices=["voter", "admin"], default="voter")
    add.add_argument(
        "--unverified",
        action="store_true",
        help="Create the record unverified; unverified voters cannot vote.",
    )

    reset = subcommands.add_parser(
        "reset-voted",
        help="Clear the legacy ballot flag for one voter.",
    )
    reset.add_argument("id")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = parse_args(argv)

    from ballotbox.dependencies import get_db
    from ballotbox.services.identity_service import IdentityService
    from ballotbox.utils.errors import AppError

    identity = IdentityService(get_db())
    try:
        if args.command == "add":
            voter = identity.create_voter(
                email=args.email,
                name=args.name,
                role=args.role,
                voter_id=args.id,
                is_verified=not args.unverified,
            )
            print(f"Created {voter['role']} {voter['email']} ({voter['id']})")
        else:
            voter = identity.reset_voted(args.id)
            print(f"Reset ballot flag for {voter['email']}")
    except AppError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
