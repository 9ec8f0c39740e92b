"""Pre-selection of unsold players for the second round."""
from __future__ import annotations

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import settings
from .errors import InvalidTransition, NotFound, SelectionConflict, ValidationRejected
from .models import Auction, Manager, Player, Round2Selection, UnsoldPlayer
from .rules import AuctionStatus

logger = logging.getLogger(__name__)


def unsold_players(db: Session, auction_id: int) -> list[Player]:
    return list(
        db.scalars(
            select(Player)
            .join(UnsoldPlayer, UnsoldPlayer.player_id == Player.player_id)
            .where(UnsoldPlayer.auction_id == auction_id)
            .order_by(Player.player_name)
        ).all()
    )


def selections(db: Session, auction_id: int) -> list[Round2Selection]:
    return list(
        db.scalars(
            select(Round2Selection)
            .where(Round2Selection.auction_id == auction_id)
            .order_by(Round2Selection.selection_id)
        ).all()
    )


def selection_count(db: Session, auction_id: int, manager_id: int) -> int:
    return db.scalar(
        select(func.count())
        .select_from(Round2Selection)
        .where(
            Round2Selection.auction_id == auction_id,
            Round2Selection.manager_id == manager_id,
        )
    ) or 0


def _ensure_selection_open(auction: Auction) -> None:
    if auction.status != AuctionStatus.COMPLETED.value or not auction.round2_selection_open:
        raise InvalidTransition("Round 2 selection is not open yet!")


def select_player(
    db: Session, auction: Auction, manager: Manager, player_id: int
) -> Round2Selection:
    _ensure_selection_open(auction)
    is_unsold = db.scalar(
        select(UnsoldPlayer.unsold_id).where(
            UnsoldPlayer.auction_id == auction.auction_id,
            UnsoldPlayer.player_id == player_id,
        )
    )
    if is_unsold is None:
        raise NotFound("Player is not in the unsold list")

    existing = db.scalars(
        select(Round2Selection).where(
            Round2Selection.auction_id == auction.auction_id,
            Round2Selection.player_id == player_id,
        )
    ).first()
    if existing:
        if existing.manager_id == manager.manager_id:
            return existing
        raise SelectionConflict(
            f"Already selected by {existing.manager.manager_name}! Choose a different player."
        )

    if selection_count(db, auction.auction_id, manager.manager_id) >= settings.MAX_ROUND2_SELECTIONS:
        raise ValidationRejected(
            f"You can only select maximum {settings.MAX_ROUND2_SELECTIONS} players!"
        )

    selection = Round2Selection(
        auction_id=auction.auction_id,
        manager_id=manager.manager_id,
        player_id=player_id,
    )
    db.add(selection)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise SelectionConflict(
            "This player was just selected by another manager! Choose a different player."
        )
    db.refresh(selection)
    logger.info(
        "Auction %s: %s selected player %s for round 2",
        auction.auction_id,
        manager.manager_name,
        player_id,
    )
    return selection


def deselect_player(db: Session, auction: Auction, manager: Manager, player_id: int) -> None:
    _ensure_selection_open(auction)
    result = db.execute(
        delete(Round2Selection).where(
            Round2Selection.auction_id == auction.auction_id,
            Round2Selection.manager_id == manager.manager_id,
            Round2Selection.player_id == player_id,
        )
    )
    if result.rowcount == 0:
        db.rollback()
        raise NotFound("Selection not found")
    db.commit()
    logger.info(
        "Auction %s: %s released player %s", auction.auction_id, manager.manager_name, player_id
    )
