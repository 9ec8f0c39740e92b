"""Out-of-band account provisioning.

    cricket-auction-manage create-manager ana@club.com "Ana" --team "Ana XI" --password s3cret!
    cricket-auction-manage create-manager admin@club.com "Admin" --admin --password s3cret!
    cricket-auction-manage set-password ana@club.com n3wpass!
"""
from __future__ import annotations

import argparse
import logging

from .db import SessionLocal, init_db
from .errors import AuctionError
from .managers import create_manager, set_password
from .rules import ManagerRole

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage auction accounts")
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-manager", help="register a manager or admin")
    create.add_argument("email")
    create.add_argument("name")
    create.add_argument("--team", dest="team_name")
    create.add_argument("--password")
    create.add_argument("--budget", type=int, dest="starting_budget")
    create.add_argument("--admin", action="store_true", help="create an admin account")

    reset = sub.add_parser("set-password", help="set a login password")
    reset.add_argument("email")
    reset.add_argument("password")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    init_db()

    db = SessionLocal()
    try:
        if args.command == "create-manager":
            manager = create_manager(
                db,
                email=args.email,
                name=args.name,
                team_name=args.team_name,
                role=ManagerRole.ADMIN.value if args.admin else ManagerRole.MANAGER.value,
                password=args.password,
                starting_budget=args.starting_budget,
            )
            logger.info("OK: %s (id %s)", manager.email, manager.manager_id)
        else:
            manager = set_password(db, args.email, args.password)
            logger.info("OK: password set for %s", manager.email)
    except AuctionError as exc:
        logger.error("%s", exc.detail)
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
