"""Server-owned countdown for live auctions."""
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from .bidding import release_expired_lock
from .config import settings
from .db import SessionLocal
from .models import Auction
from .rules import LIVE_STATUSES
from .serializers import publish_auction
from .settlement import finish_settlement, settle_current_player
from .ws import feed

logger = logging.getLogger(__name__)

timer_lock = threading.Lock()
timer_stop_event = threading.Event()
timer_thread: threading.Thread | None = None


def tick(db: Session, elapsed: float, now: datetime | None = None) -> list[int]:
    """Advance every live auction by ``elapsed`` seconds.

    Returns the ids of the auctions whose state changed beyond the countdown.
    """
    now = now or datetime.utcnow()
    changed: list[int] = []
    auctions = db.scalars(
        select(Auction).where(Auction.status.in_(LIVE_STATUSES)).order_by(Auction.auction_id)
    ).all()
    expired: list[int] = []
    for auction in auctions:
        if auction.pending_advance:
            if finish_settlement(db, auction, now) is not None:
                changed.append(auction.auction_id)
            continue
        if release_expired_lock(db, auction, now):
            changed.append(auction.auction_id)
        if auction.is_paused or auction.current_player_id is None:
            continue
        auction.timer_seconds = max(0.0, auction.timer_seconds - elapsed)
        if auction.timer_seconds <= 0:
            expired.append(auction.auction_id)
    db.commit()

    for auction_id in expired:
        if settle_current_player(db, auction_id, now) is not None:
            changed.append(auction_id)
    return changed


def _has_live_auction(db: Session) -> bool:
    return db.scalar(
        select(Auction.auction_id).where(Auction.status.in_(LIVE_STATUSES)).limit(1)
    ) is not None


def _timer_loop() -> None:
    last_time = time.monotonic()
    while not timer_stop_event.is_set():
        time.sleep(settings.TICK_SECONDS)
        now = time.monotonic()
        elapsed = now - last_time
        last_time = now
        db = SessionLocal()
        try:
            if not _has_live_auction(db):
                timer_stop_event.set()
                break
            changed = tick(db, elapsed)
            for auction in db.scalars(
                select(Auction).where(Auction.status.in_(LIVE_STATUSES))
            ).all():
                feed.publish(
                    "timer_sync",
                    {
                        "timeLeft": auction.timer_seconds,
                        "isPaused": auction.is_paused,
                    },
                    auction_id=auction.auction_id,
                )
            for auction_id in changed:
                auction = db.get(Auction, auction_id)
                if auction:
                    publish_auction(db, auction)
        except Exception:
            db.rollback()
            logger.exception("Timer tick failed")
        finally:
            db.close()


def start_timer_thread() -> None:
    global timer_thread
    if not settings.TIMER_ENABLED:
        return
    with timer_lock:
        if timer_thread and timer_thread.is_alive():
            return
        timer_stop_event.clear()
        timer_thread = threading.Thread(target=_timer_loop, name="auction-timer", daemon=True)
        timer_thread.start()


def stop_timer_thread() -> None:
    timer_stop_event.set()
