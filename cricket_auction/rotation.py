"""Pick the next player to put up for auction."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .models import Auction, Player, PlayerClass, PlayerType, Round2Selection
from .roster import sold_player_ids, unsold_player_ids
from .rules import AuctionStatus, ensure_transition, next_category

logger = logging.getLogger(__name__)


@dataclass
class RotationResult:
    player: Player | None
    completed: bool = False
    categories_skipped: int = 0


def _round1_candidates(db: Session, auction: Auction) -> list[Player]:
    stmt = select(Player).where(
        Player.player_id.not_in(sold_player_ids(auction.auction_id)),
        Player.player_id.not_in(unsold_player_ids(auction.auction_id)),
    )
    if auction.class_filter:
        stmt = stmt.join(PlayerClass, PlayerClass.class_id == Player.class_id).where(
            PlayerClass.class_name == auction.class_filter
        )
    if auction.role_filter:
        stmt = stmt.join(PlayerType, PlayerType.type_id == Player.type_id).where(
            PlayerType.type_name == auction.role_filter
        )
    return list(db.scalars(stmt.order_by(Player.player_id)).all())


def _round2_candidates(db: Session, auction: Auction) -> list[Player]:
    selected = select(Round2Selection.player_id).where(
        Round2Selection.auction_id == auction.auction_id,
        Round2Selection.is_passed.is_(False),
    )
    stmt = select(Player).where(
        Player.player_id.in_(selected),
        Player.player_id.not_in(sold_player_ids(auction.auction_id)),
    )
    return list(db.scalars(stmt.order_by(Player.player_id)).all())


def _offer(auction: Auction, player: Player) -> None:
    auction.current_player = player
    auction.current_bid_amount = 0
    auction.current_bidder = None
    auction.timer_seconds = settings.BID_TIMER_SECONDS


def _finish(auction: Auction, notice: str) -> None:
    ensure_transition(auction.status, AuctionStatus.COMPLETED.value)
    auction.status = AuctionStatus.COMPLETED.value
    auction.current_player = None
    auction.current_bid_amount = 0
    auction.current_bidder = None
    auction.status_message = notice


def advance_to_next_player(
    db: Session, auction: Auction, rng: random.Random | None = None
) -> RotationResult:
    """Write a new current player onto ``auction``, moving through categories as needed.

    Always picks a player other than the ones already sold or passed over, so it
    must only be called once the current player has been cleared. The caller
    owns the transaction.
    """
    rng = rng or random
    if auction.status == AuctionStatus.ROUND2.value:
        candidates = _round2_candidates(db, auction)
        if not candidates:
            logger.info("Auction %s: round 2 pool exhausted", auction.auction_id)
            _finish(auction, "Round 2 complete")
            db.flush()
            return RotationResult(player=None, completed=True)
        player = rng.choice(candidates)
        _offer(auction, player)
        db.flush()
        logger.info("Auction %s: round 2 offering %s", auction.auction_id, player.player_name)
        return RotationResult(player=player)

    skipped = 0
    while True:
        candidates = _round1_candidates(db, auction)
        if candidates:
            player = rng.choice(candidates)
            _offer(auction, player)
            db.flush()
            logger.info(
                "Auction %s: offering %s (%s %s)",
                auction.auction_id,
                player.player_name,
                auction.class_filter,
                auction.role_filter,
            )
            return RotationResult(player=player, categories_skipped=skipped)

        upcoming = next_category(auction.class_filter, auction.role_filter)
        if upcoming is None:
            logger.info("Auction %s: all categories exhausted", auction.auction_id)
            _finish(auction, "Auction complete! All players have been auctioned.")
            db.flush()
            return RotationResult(player=None, completed=True, categories_skipped=skipped)

        logger.info(
            "Auction %s: moving from %s %s to %s %s",
            auction.auction_id,
            auction.class_filter,
            auction.role_filter,
            upcoming[0],
            upcoming[1],
        )
        auction.class_filter, auction.role_filter = upcoming
        skipped += 1
