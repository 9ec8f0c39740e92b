from datetime import timedelta

import pytest
from conftest import T0
from sqlalchemy import select

from cricket_auction import lifecycle, settlement
from cricket_auction.bidding import place_bid
from cricket_auction.errors import ValidationRejected
from cricket_auction.models import TeamPlayer, UnsoldPlayer
from cricket_auction.settlement import finish_settlement, settle_current_player

END = T0 + timedelta(seconds=31)


@pytest.fixture
def auction(db, players, alice, bob, rng):
    return lifecycle.create_auction(db, "A", "IPL", "Platinum", "Batsman", now=T0, rng=rng)


def test_highest_bidder_buys_the_player(db, auction, alice):
    player = auction.current_player
    place_bid(db, auction.auction_id, alice, now=T0)

    outcome = settle_current_player(db, auction.auction_id, now=END)

    assert outcome.sold
    assert outcome.manager_id == alice.manager_id
    assert outcome.price == 20
    sale = db.scalars(select(TeamPlayer).where(TeamPlayer.auction_id == auction.auction_id)).one()
    assert (sale.manager_id, sale.player_id, sale.price, sale.round) == (
        alice.manager_id,
        player.player_id,
        20,
        1,
    )
    assert alice.current_budget == 980

    db.refresh(auction)
    assert auction.pending_advance
    assert auction.timer_seconds == 0
    assert auction.status_message == f"SOLD! {player.player_name} to Alice XI for 20"


def test_settlement_runs_once_per_player(db, auction, alice):
    place_bid(db, auction.auction_id, alice, now=T0)
    settle_current_player(db, auction.auction_id, now=END)

    assert settle_current_player(db, auction.auction_id, now=END) is None

    sales = db.scalars(select(TeamPlayer).where(TeamPlayer.auction_id == auction.auction_id)).all()
    assert len(sales) == 1
    assert alice.current_budget == 980


def test_no_bid_marks_player_unsold(db, auction):
    player = auction.current_player

    outcome = settle_current_player(db, auction.auction_id, now=END)

    assert not outcome.sold
    unsold = db.scalars(
        select(UnsoldPlayer.player_id).where(UnsoldPlayer.auction_id == auction.auction_id)
    ).all()
    assert unsold == [player.player_id]
    db.refresh(auction)
    assert auction.status_message == f"UNSOLD: {player.player_name}"


def test_next_player_is_offered_after_display_window(db, auction, rng):
    first = auction.current_player_id
    settle_current_player(db, auction.auction_id, now=END)
    db.refresh(auction)

    assert finish_settlement(db, auction, END + timedelta(seconds=2), rng) is None
    assert auction.current_player_id == first

    result = finish_settlement(db, auction, END + timedelta(seconds=5), rng)
    db.commit()

    assert result.player is not None
    assert auction.current_player_id != first
    assert not auction.pending_advance
    assert not auction.bid_locked
    assert auction.current_bid_amount == 0
    assert auction.current_bid_manager_id is None
    assert auction.timer_seconds == 30


def test_bids_are_rejected_while_settling(db, auction, alice, bob):
    place_bid(db, auction.auction_id, alice, now=T0)
    settle_current_player(db, auction.auction_id, now=END)

    with pytest.raises(ValidationRejected, match="No player is up for bidding"):
        place_bid(db, auction.auction_id, bob, now=END + timedelta(seconds=1))


def test_nothing_to_settle_on_draft_auction(db, players):
    draft = lifecycle.create_auction(db, "Later", "IPL", start=False)
    assert settle_current_player(db, draft.auction_id, now=END) is None


def test_bid_committed_before_the_claim_wins(db, auction, alice, bob, monkeypatch):
    place_bid(db, auction.auction_id, alice, now=T0)
    claim = settlement._claim

    def bid_lands_first(db, auction, now):
        place_bid(db, auction.auction_id, bob, now=now)
        return claim(db, auction, now)

    monkeypatch.setattr(settlement, "_claim", bid_lands_first)

    outcome = settle_current_player(db, auction.auction_id, now=END)

    assert (outcome.manager_id, outcome.price) == (bob.manager_id, 25)
    sale = db.scalars(select(TeamPlayer).where(TeamPlayer.auction_id == auction.auction_id)).one()
    assert (sale.manager_id, sale.price) == (bob.manager_id, 25)
    db.refresh(alice)
    db.refresh(bob)
    assert (alice.current_budget, bob.current_budget) == (1000, 975)
