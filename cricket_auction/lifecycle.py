"""Auction lifecycle: creation, pausing, category changes, completion and round 2."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from .config import settings
from .errors import InvalidTransition, NotFound, ValidationRejected
from .models import (
    Auction,
    Bid,
    Manager,
    Round2Selection,
    TeamPlayer,
    UnsoldPlayer,
)
from .rotation import RotationResult, advance_to_next_player
from .rules import (
    LIVE_STATUSES,
    AuctionStatus,
    ClassBand,
    PlayerRole,
    ensure_transition,
    is_live,
)

logger = logging.getLogger(__name__)


@dataclass
class AuctionStats:
    auction: Auction
    total_sold: int
    total_unsold: int
    total_spent: int


def get_auction(db: Session, auction_id: int) -> Auction:
    auction = db.get(Auction, auction_id)
    if not auction:
        raise NotFound("Auction not found")
    return auction


def find_live_auction(db: Session) -> Auction | None:
    return db.scalars(
        select(Auction)
        .where(Auction.status.in_(LIVE_STATUSES))
        .order_by(Auction.scheduled_at.desc(), Auction.auction_id.desc())
        .limit(1)
    ).first()


def resolve_auction(db: Session, auction_id: int | None) -> Auction:
    """The auction a view should show: the requested one, else the live one."""
    if auction_id is not None:
        return get_auction(db, auction_id)
    auction = find_live_auction(db)
    if not auction:
        raise NotFound("No active auction found!")
    return auction


def _ensure_no_other_live(db: Session, auction_id: int | None = None) -> None:
    live = find_live_auction(db)
    if live and live.auction_id != auction_id:
        raise InvalidTransition(f"Auction {live.auction_name!r} is already live")


def _reset_managers(db: Session) -> None:
    db.execute(
        update(Manager)
        .values(current_budget=Manager.starting_budget, is_ready=False)
        .execution_options(synchronize_session=False)
    )


def _validate_category(class_band: str | None, role: str | None) -> None:
    if (class_band is None) != (role is None):
        raise ValidationRejected("Please select both Class and Role")
    if class_band is not None and class_band not in {band.value for band in ClassBand}:
        raise ValidationRejected(f"Unknown class band: {class_band}")
    if role is not None and role not in {item.value for item in PlayerRole}:
        raise ValidationRejected(f"Unknown role: {role}")


def create_auction(
    db: Session,
    name: str,
    tournament: str,
    class_band: str | None = None,
    role: str | None = None,
    start: bool = True,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> Auction:
    """Create an auction; a live one resets every manager's budget and readiness."""
    if not name or not tournament:
        raise ValidationRejected("Please fill all fields!")
    _validate_category(class_band, role)
    if start:
        _ensure_no_other_live(db)
        _reset_managers(db)
    now = now or datetime.utcnow()

    auction = Auction(
        auction_name=name,
        tournament_filter=tournament,
        class_filter=class_band,
        role_filter=role,
        scheduled_at=now,
        status=AuctionStatus.ACTIVE.value if start else AuctionStatus.DRAFT.value,
        timer_seconds=settings.BID_TIMER_SECONDS,
        is_paused=False,
        current_bid_amount=0,
    )
    db.add(auction)
    db.flush()
    if start:
        advance_to_next_player(db, auction, rng)
    db.commit()
    db.refresh(auction)
    logger.info("Created auction %s (%s) status=%s", auction.auction_id, name, auction.status)
    return auction


def start_auction(db: Session, auction: Auction, rng: random.Random | None = None) -> Auction:
    ensure_transition(auction.status, AuctionStatus.ACTIVE.value)
    _ensure_no_other_live(db, auction.auction_id)
    _reset_managers(db)
    auction.status = AuctionStatus.ACTIVE.value
    auction.is_paused = False
    auction.timer_seconds = settings.BID_TIMER_SECONDS
    advance_to_next_player(db, auction, rng)
    db.commit()
    db.refresh(auction)
    logger.info("Started auction %s", auction.auction_id)
    return auction


def set_paused(db: Session, auction: Auction, paused: bool | None = None) -> Auction:
    """Pause or resume; ``None`` toggles."""
    if not is_live(auction.status):
        raise InvalidTransition("Only a live auction can be paused")
    auction.is_paused = (not auction.is_paused) if paused is None else paused
    db.commit()
    db.refresh(auction)
    logger.info("Auction %s paused=%s", auction.auction_id, auction.is_paused)
    return auction


def apply_filters(
    db: Session,
    auction: Auction,
    class_band: str | None,
    role: str | None,
    rng: random.Random | None = None,
) -> RotationResult:
    if not class_band or not role:
        raise ValidationRejected("Please select both Class and Role")
    _validate_category(class_band, role)
    if not is_live(auction.status) or auction.status == AuctionStatus.ROUND2.value:
        raise InvalidTransition("Filters can only be changed during round 1")
    if auction.pending_advance:
        raise InvalidTransition("A player is being settled, try again shortly")

    auction.class_filter = class_band
    auction.role_filter = role
    auction.current_player = None
    auction.current_bidder = None
    auction.current_bid_amount = 0
    auction.bid_locked = False
    auction.lock_expires_at = None
    auction.status_message = None
    db.flush()
    result = advance_to_next_player(db, auction, rng)
    db.commit()
    db.refresh(auction)
    return result


def complete_auction(db: Session, auction: Auction) -> Auction:
    ensure_transition(auction.status, AuctionStatus.COMPLETED.value)
    auction.status = AuctionStatus.COMPLETED.value
    auction.current_player = None
    auction.current_bidder = None
    auction.current_bid_amount = 0
    auction.bid_locked = False
    auction.lock_expires_at = None
    auction.pending_advance = False
    auction.status_message = "Auction completed"
    db.commit()
    db.refresh(auction)
    logger.info("Completed auction %s", auction.auction_id)
    return auction


def _ensure_round2_setup(auction: Auction) -> None:
    if auction.status != AuctionStatus.COMPLETED.value or auction.round2_started:
        raise InvalidTransition("Round 2 selection needs a completed auction")


def open_round2_selection(db: Session, auction: Auction) -> Auction:
    _ensure_round2_setup(auction)
    auction.round2_selection_open = True
    db.commit()
    db.refresh(auction)
    return auction


def close_round2_selection(db: Session, auction: Auction) -> Auction:
    _ensure_round2_setup(auction)
    auction.round2_selection_open = False
    db.commit()
    db.refresh(auction)
    return auction


def start_round2(db: Session, auction: Auction, rng: random.Random | None = None) -> Auction:
    _ensure_round2_setup(auction)
    selected = db.scalar(
        select(func.count())
        .select_from(Round2Selection)
        .where(Round2Selection.auction_id == auction.auction_id)
    )
    if not selected:
        raise ValidationRejected("No players selected yet! Cannot start Round 2.")
    _ensure_no_other_live(db, auction.auction_id)
    ensure_transition(auction.status, AuctionStatus.ROUND2.value)
    auction.status = AuctionStatus.ROUND2.value
    auction.round2_selection_open = False
    auction.round2_started = True
    auction.is_paused = False
    auction.status_message = None
    advance_to_next_player(db, auction, rng)
    db.commit()
    db.refresh(auction)
    logger.info("Auction %s: round 2 started with %s players", auction.auction_id, selected)
    return auction


def delete_auction(db: Session, auction: Auction) -> None:
    auction_id = auction.auction_id
    for model in (Bid, TeamPlayer, UnsoldPlayer, Round2Selection):
        db.execute(delete(model).where(model.auction_id == auction_id))
    db.delete(auction)
    db.commit()
    logger.info("Deleted auction %s and its records", auction_id)


def auction_history(db: Session) -> list[AuctionStats]:
    auctions = db.scalars(
        select(Auction).order_by(Auction.scheduled_at.desc(), Auction.auction_id.desc())
    ).all()
    stats: list[AuctionStats] = []
    for auction in auctions:
        sold, spent = db.execute(
            select(func.count(TeamPlayer.id), func.coalesce(func.sum(TeamPlayer.price), 0)).where(
                TeamPlayer.auction_id == auction.auction_id
            )
        ).one()
        unsold = db.scalar(
            select(func.count())
            .select_from(UnsoldPlayer)
            .where(UnsoldPlayer.auction_id == auction.auction_id)
        )
        stats.append(AuctionStats(auction, sold, unsold or 0, spent))
    return stats
