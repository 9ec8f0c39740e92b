from datetime import timedelta

import pytest
from conftest import T0
from sqlalchemy import select

from cricket_auction import lifecycle, timer
from cricket_auction.bidding import place_bid
from cricket_auction.models import TeamPlayer, UnsoldPlayer
from cricket_auction.timer import start_timer_thread, tick


@pytest.fixture
def auction(db, players, alice, rng):
    return lifecycle.create_auction(db, "A", "IPL", "Platinum", "Batsman", now=T0, rng=rng)


def test_tick_counts_down(db, auction):
    assert tick(db, 5.0, now=T0 + timedelta(seconds=5)) == []
    db.refresh(auction)
    assert auction.timer_seconds == 25


def test_paused_auction_does_not_count_down(db, auction):
    lifecycle.set_paused(db, auction, True)
    tick(db, 5.0, now=T0 + timedelta(seconds=5))
    db.refresh(auction)
    assert auction.timer_seconds == 30


def test_expired_timer_settles_the_player(db, auction):
    player_id = auction.current_player_id
    auction.timer_seconds = 1
    db.commit()

    changed = tick(db, 2.0, now=T0 + timedelta(seconds=30))

    assert changed == [auction.auction_id]
    db.refresh(auction)
    assert auction.pending_advance
    assert db.scalars(select(UnsoldPlayer.player_id)).all() == [player_id]


def test_tick_releases_expired_bid_lock(db, auction, alice):
    place_bid(db, auction.auction_id, alice, now=T0)

    assert tick(db, 1.0, now=T0 + timedelta(seconds=1)) == []
    db.refresh(auction)
    assert auction.bid_locked

    assert tick(db, 3.0, now=T0 + timedelta(seconds=4)) == [auction.auction_id]
    db.refresh(auction)
    assert not auction.bid_locked
    assert auction.timer_seconds == 26


def test_tick_advances_after_settlement_window(db, auction):
    first = auction.current_player_id
    auction.timer_seconds = 1
    db.commit()
    settled_at = T0 + timedelta(seconds=30)
    tick(db, 2.0, now=settled_at)

    tick(db, 1.0, now=settled_at + timedelta(seconds=1))
    db.refresh(auction)
    assert auction.current_player_id == first

    assert tick(db, 5.0, now=settled_at + timedelta(seconds=6)) == [auction.auction_id]
    db.refresh(auction)
    assert not auction.pending_advance
    assert auction.current_player_id not in (None, first)


def test_timer_thread_stays_off_when_disabled():
    start_timer_thread()
    assert timer.timer_thread is None


def test_outbid_manager_keeps_budget_when_timer_expires(db, auction, alice, bob):
    first = auction.current_player_id
    place_bid(db, auction.auction_id, alice, now=T0)
    place_bid(db, auction.auction_id, bob, now=T0 + timedelta(seconds=4))

    expired_at = T0 + timedelta(seconds=34)
    assert auction.auction_id in tick(db, 30.0, now=expired_at)

    sale = db.scalars(select(TeamPlayer).where(TeamPlayer.auction_id == auction.auction_id)).one()
    assert (sale.manager_id, sale.player_id, sale.price) == (bob.manager_id, first, 25)
    db.refresh(alice)
    db.refresh(bob)
    assert alice.current_budget == 1000
    assert bob.current_budget == 975

    tick(db, 1.0, now=expired_at + timedelta(seconds=6))
    db.refresh(auction)
    assert not auction.pending_advance
    assert auction.current_player_id not in (None, first)
    assert auction.current_bid_amount == 0
