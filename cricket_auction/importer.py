"""Load the cricketer CSV into ``players_raw`` and the curated ``players`` pool.

Usage::

    cricket-auction-import "Cricketers list.csv" --classes Platinum Gold Silver
"""
from __future__ import annotations

import argparse
import csv
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .db import SessionLocal, init_db
from .models import Player, PlayerClass, PlayerRaw, PlayerType
from .rules import ClassBand

logger = logging.getLogger(__name__)

CSV_COLUMNS = (
    "cricketer_id",
    "cricket_team",
    "player_name",
    "bowling_style",
    "batting_style",
    "role",
    "class_band",
    "base_price",
    "country",
    "ipl_team",
    "ipl_type",
    "player_status",
)
DEFAULT_CLASSES = (ClassBand.PLATINUM.value, ClassBand.GOLD.value, ClassBand.SILVER.value)


@dataclass
class ImportSummary:
    total_rows: int = 0
    raw_imported: int = 0
    players_imported: int = 0
    dropped: int = 0
    by_class: Counter = field(default_factory=Counter)
    by_role: Counter = field(default_factory=Counter)


def _parse_price(value: str | None) -> int:
    try:
        return int((value or "").strip())
    except ValueError:
        return 0


def read_rows(path: str | Path) -> list[dict[str, str]]:
    # utf-8-sig drops a leading BOM from the header row
    with open(path, newline="", encoding="utf-8-sig") as fh:
        reader = csv.DictReader(fh)
        return [
            {column: (row.get(column) or "").strip() for column in CSV_COLUMNS}
            for row in reader
        ]


def import_players(
    db: Session,
    rows: list[dict[str, str]],
    classes: tuple[str, ...] | list[str] = DEFAULT_CLASSES,
) -> ImportSummary:
    summary = ImportSummary(total_rows=len(rows))

    db.execute(delete(Player))
    db.execute(delete(PlayerRaw))

    db.add_all(
        [
            PlayerRaw(
                cricketer_id=row["cricketer_id"] or None,
                cricket_team=row["cricket_team"] or None,
                player_name=row["player_name"],
                bowling_style=row["bowling_style"] or None,
                batting_style=row["batting_style"] or None,
                role=row["role"] or None,
                class_band=row["class_band"] or None,
                base_price=_parse_price(row["base_price"]),
                country=row["country"] or None,
                ipl_team=row["ipl_team"] or None,
                ipl_type=row["ipl_type"] or None,
                player_status=row["player_status"] or None,
            )
            for row in rows
        ]
    )
    summary.raw_imported = len(rows)

    class_map = {c.class_name: c.class_id for c in db.scalars(select(PlayerClass)).all()}
    type_map = {t.type_name: t.type_id for t in db.scalars(select(PlayerType)).all()}

    for row in rows:
        if row["player_status"] != "Active" or row["class_band"] not in classes:
            continue
        class_id = class_map.get(row["class_band"])
        type_id = type_map.get(row["role"])
        if class_id is None or type_id is None:
            summary.dropped += 1
            logger.warning(
                "Skipping %s: unknown class %r or role %r",
                row["player_name"],
                row["class_band"],
                row["role"],
            )
            continue
        db.add(
            Player(
                player_name=row["player_name"],
                country=row["country"] or None,
                class_id=class_id,
                type_id=type_id,
                base_price=_parse_price(row["base_price"]),
            )
        )
        summary.players_imported += 1
        summary.by_class[row["class_band"]] += 1
        summary.by_role[row["role"]] += 1

    db.commit()
    return summary


def log_summary(summary: ImportSummary) -> None:
    logger.info("Total in CSV: %s", summary.total_rows)
    logger.info("Imported to players_raw: %s", summary.raw_imported)
    logger.info("Imported to players: %s (dropped %s)", summary.players_imported, summary.dropped)
    for band, count in sorted(summary.by_class.items()):
        logger.info("  class %s: %s", band, count)
    for role, count in sorted(summary.by_role.items()):
        logger.info("  role %s: %s", role, count)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import cricketers from a CSV file")
    parser.add_argument("csv_path", help="path to the cricketers CSV")
    parser.add_argument(
        "--classes",
        nargs="+",
        default=list(DEFAULT_CLASSES),
        help="class bands admitted to the auction pool",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    init_db()
    rows = read_rows(args.csv_path)
    logger.info("Read %s rows from %s", len(rows), args.csv_path)

    db = SessionLocal()
    try:
        summary = import_players(db, rows, args.classes)
    except Exception:
        db.rollback()
        logger.exception("Import failed")
        return 1
    finally:
        db.close()
    log_summary(summary)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
