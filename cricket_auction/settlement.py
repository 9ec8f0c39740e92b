"""Close out the player on the block when the timer runs out or the admin skips."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .models import Auction, Manager, Round2Selection, TeamPlayer, UnsoldPlayer
from .rotation import RotationResult, advance_to_next_player
from .rules import AuctionStatus, is_live

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    auction_id: int
    player_id: int
    sold: bool
    manager_id: int | None = None
    price: int = 0


def _claim(db: Session, auction: Auction, now: datetime) -> bool:
    result = db.execute(
        update(Auction)
        .where(
            Auction.auction_id == auction.auction_id,
            Auction.current_player_id == auction.current_player_id,
            Auction.pending_advance.is_(False),
        )
        .values(
            pending_advance=True,
            bid_locked=True,
            lock_expires_at=now + timedelta(seconds=settings.SETTLEMENT_DISPLAY_SECONDS),
            timer_seconds=0,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def settle_current_player(
    db: Session, auction_id: int, now: datetime | None = None
) -> SettlementResult | None:
    """Sell the current player to the highest bidder, or mark them unsold.

    The sale record, the budget debit and the settlement lock are committed
    together. Returns None when there is nothing to settle or another caller
    already claimed this player.
    """
    now = now or datetime.utcnow()
    auction = db.get(Auction, auction_id, populate_existing=True)
    if not auction or not is_live(auction.status):
        logger.warning("Auction %s: nothing to settle, auction not live", auction_id)
        return None
    player = auction.current_player
    if player is None:
        logger.warning("Auction %s: nothing to settle, no current player", auction_id)
        return None

    round2 = auction.status == AuctionStatus.ROUND2.value

    try:
        if not _claim(db, auction, now):
            db.rollback()
            logger.info("Auction %s: %s is already being settled", auction_id, player.player_name)
            return None

        # the claim freezes bidding; a bid committed before it must win
        auction = db.get(Auction, auction_id, populate_existing=True)
        winner_id = auction.current_bid_manager_id
        price = auction.current_bid_amount

        if winner_id is not None and price > 0:
            already_sold = db.scalar(
                select(TeamPlayer.id).where(
                    TeamPlayer.auction_id == auction_id,
                    TeamPlayer.player_id == player.player_id,
                )
            )
            if already_sold is None:
                db.add(
                    TeamPlayer(
                        auction_id=auction_id,
                        manager_id=winner_id,
                        player_id=player.player_id,
                        price=price,
                        round=2 if round2 else 1,
                    )
                )
                db.execute(
                    update(Manager)
                    .where(Manager.manager_id == winner_id)
                    .values(current_budget=Manager.current_budget - price)
                    .execution_options(synchronize_session=False)
                )
            winner = db.get(Manager, winner_id)
            message = f"SOLD! {player.player_name} to {winner.team_name or winner.manager_name} for {price}"
            outcome = SettlementResult(auction_id, player.player_id, True, winner_id, price)
        else:
            if round2:
                db.execute(
                    update(Round2Selection)
                    .where(
                        Round2Selection.auction_id == auction_id,
                        Round2Selection.player_id == player.player_id,
                    )
                    .values(is_passed=True)
                    .execution_options(synchronize_session=False)
                )
            else:
                existing = db.scalar(
                    select(UnsoldPlayer.unsold_id).where(
                        UnsoldPlayer.auction_id == auction_id,
                        UnsoldPlayer.player_id == player.player_id,
                    )
                )
                if existing is None:
                    db.add(UnsoldPlayer(auction_id=auction_id, player_id=player.player_id))
                else:
                    logger.info("Auction %s: %s already marked unsold", auction_id, player.player_name)
            message = f"UNSOLD: {player.player_name}"
            outcome = SettlementResult(auction_id, player.player_id, False)

        db.execute(
            update(Auction)
            .where(Auction.auction_id == auction_id)
            .values(status_message=message)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Auction %s: settlement of %s failed", auction_id, player.player_name)
        raise

    logger.info("Auction %s: %s", auction_id, message)
    return outcome


def finish_settlement(
    db: Session,
    auction: Auction,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> RotationResult | None:
    """After the display window, clear the settled player and offer the next one."""
    now = now or datetime.utcnow()
    if not auction.pending_advance:
        return None
    if auction.lock_expires_at is not None and auction.lock_expires_at > now:
        return None
    auction.pending_advance = False
    auction.bid_locked = False
    auction.lock_expires_at = None
    auction.status_message = None
    auction.current_player = None
    auction.current_bidder = None
    auction.current_bid_amount = 0
    db.flush()
    return advance_to_next_player(db, auction, rng)
