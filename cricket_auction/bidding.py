"""Bid admission.

A bid is admitted by a single conditional UPDATE on the auction row: it only
matches while the bid lock is free (or its freeze window has run out) and the
player and highest bid are the ones the bid was priced against. The winner of
that race holds the lock for ``BID_FREEZE_SECONDS``; the server timer releases
it afterwards.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from .config import settings
from .errors import LockContention, NotFound, ValidationRejected
from .models import Auction, Bid, Manager
from .roster import affordable_after_win, bidding_freeze, role_counts, roster_size
from .rules import AuctionStatus, is_live, next_bid_amount

logger = logging.getLogger(__name__)


def upcoming_bid(auction: Auction) -> int | None:
    player = auction.current_player
    if player is None:
        return None
    return next_bid_amount(
        auction.current_bid_amount,
        auction.current_bid_manager_id is not None,
        player.base_price,
        round2=auction.status == AuctionStatus.ROUND2.value,
    )


def lock_is_held(auction: Auction, now: datetime) -> bool:
    if not auction.bid_locked:
        return False
    if auction.pending_advance:
        return True
    return auction.lock_expires_at is not None and auction.lock_expires_at > now


def place_bid(
    db: Session, auction_id: int, manager: Manager, now: datetime | None = None
) -> Auction:
    now = now or datetime.utcnow()
    auction = db.get(Auction, auction_id, populate_existing=True)
    if not auction:
        raise NotFound("Auction not found")
    if not is_live(auction.status):
        raise ValidationRejected("Auction is not live")
    if auction.is_paused:
        raise ValidationRejected("Auction is paused")
    player = auction.current_player
    if player is None or auction.pending_advance:
        raise ValidationRejected("No player is up for bidding")
    if manager.starting_budget <= 0:
        raise ValidationRejected("Only participating managers can bid")

    if roster_size(db, auction.auction_id, manager.manager_id) >= settings.MAX_ROSTER:
        raise ValidationRejected(
            f"You have reached the maximum of {settings.MAX_ROSTER} players!"
        )

    amount = upcoming_bid(auction)
    if manager.current_budget < amount:
        raise ValidationRejected("Insufficient budget!")

    freeze = bidding_freeze(db, auction, manager)
    if freeze.frozen:
        raise ValidationRejected(freeze.message)

    counts = role_counts(db, auction.auction_id, manager.manager_id)
    if not affordable_after_win(counts, player.role, manager.current_budget, amount):
        raise ValidationRejected(
            "This bid would leave too little budget to complete a legal roster"
        )

    if lock_is_held(auction, now):
        logger.info("Auction %s: bid by %s rejected, lock held", auction_id, manager.manager_name)
        raise LockContention("Another bid is being processed, please try again")

    seen_bidder = auction.current_bid_manager_id
    result = db.execute(
        update(Auction)
        .where(
            Auction.auction_id == auction.auction_id,
            Auction.current_player_id == player.player_id,
            Auction.current_bid_amount == auction.current_bid_amount,
            (
                Auction.current_bid_manager_id.is_(None)
                if seen_bidder is None
                else Auction.current_bid_manager_id == seen_bidder
            ),
            Auction.is_paused.is_(False),
            Auction.pending_advance.is_(False),
            or_(
                Auction.bid_locked.is_(False),
                and_(Auction.lock_expires_at.is_not(None), Auction.lock_expires_at <= now),
            ),
        )
        .values(
            current_bid_amount=amount,
            current_bid_manager_id=manager.manager_id,
            timer_seconds=settings.BID_TIMER_SECONDS,
            bid_locked=True,
            lock_expires_at=now + timedelta(seconds=settings.BID_FREEZE_SECONDS),
            status_message=f"{manager.manager_name} bid {amount}",
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        logger.info("Auction %s: bid by %s lost the lock race", auction_id, manager.manager_name)
        raise LockContention("Another bid is being processed, please try again")

    db.add(
        Bid(
            auction_id=auction.auction_id,
            manager_id=manager.manager_id,
            player_id=player.player_id,
            bid_amount=amount,
            created_at=now,
        )
    )
    db.commit()
    db.refresh(auction)
    logger.info(
        "Auction %s: %s bid %s on %s",
        auction_id,
        manager.manager_name,
        amount,
        player.player_name,
    )
    return auction


def release_expired_lock(db: Session, auction: Auction, now: datetime | None = None) -> bool:
    """Clear a bid freeze whose window has elapsed. Settlement locks are left alone."""
    now = now or datetime.utcnow()
    if not auction.bid_locked or auction.pending_advance:
        return False
    if auction.lock_expires_at is not None and auction.lock_expires_at > now:
        return False
    auction.bid_locked = False
    auction.lock_expires_at = None
    auction.status_message = None
    return True
