from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from .bidding import upcoming_bid
from .models import Auction, Bid, Manager, Player, PlayerRaw, TeamPlayer
from .schemas import (
    AuctionOut,
    BidOut,
    ManagerOut,
    ManagerSlim,
    PlayerOut,
    PlayerRawOut,
    TeamPlayerOut,
)
from .ws import feed


def player_to_out(player: Player) -> PlayerOut:
    return PlayerOut(
        id=player.player_id,
        name=player.player_name,
        country=player.country,
        role=player.role,
        class_band=player.class_band,
        base_price=player.base_price,
    )


def raw_player_to_out(row: PlayerRaw) -> PlayerRawOut:
    return PlayerRawOut.model_validate(row)


def team_player_to_out(item: TeamPlayer) -> TeamPlayerOut:
    player = item.player
    return TeamPlayerOut(
        id=player.player_id,
        name=player.player_name,
        country=player.country,
        role=player.role,
        class_band=player.class_band,
        base_price=player.base_price,
        price=item.price,
        round=item.round,
    )


def manager_to_slim(manager: Manager | None) -> ManagerSlim | None:
    if not manager:
        return None
    return ManagerSlim(id=manager.manager_id, name=manager.manager_name, team_name=manager.team_name)


def manager_to_out(manager: Manager) -> ManagerOut:
    return ManagerOut(
        id=manager.manager_id,
        name=manager.manager_name,
        team_name=manager.team_name,
        email=manager.email,
        role=manager.role,
        starting_budget=manager.starting_budget,
        current_budget=manager.current_budget,
        is_ready=manager.is_ready,
    )


def managers_out(managers: Iterable[Manager]) -> list[dict]:
    return [manager_to_out(manager).model_dump(by_alias=True, mode="json") for manager in managers]


def bid_to_out(bid: Bid) -> BidOut:
    return BidOut(
        bid_id=bid.bid_id,
        manager_id=bid.manager_id,
        manager_name=bid.manager.manager_name,
        player_id=bid.player_id,
        player_name=bid.player.player_name,
        bid_amount=bid.bid_amount,
        created_at=bid.created_at,
    )


def bid_history(db: Session, auction_id: int, limit: int = 50) -> list[str]:
    bids = db.scalars(
        select(Bid)
        .where(Bid.auction_id == auction_id)
        .order_by(Bid.bid_id.desc())
        .limit(limit)
    ).all()
    return [f"{bid.manager.manager_name} bid {bid.bid_amount} on {bid.player.player_name}" for bid in bids]


def auction_to_out(auction: Auction, history: list[str] | None = None) -> AuctionOut:
    player = auction.current_player
    return AuctionOut(
        auction_id=auction.auction_id,
        auction_name=auction.auction_name,
        status=auction.status,
        scheduled_at=auction.scheduled_at,
        tournament_filter=auction.tournament_filter,
        class_filter=auction.class_filter,
        role_filter=auction.role_filter,
        current_player=player_to_out(player) if player else None,
        current_bid_amount=auction.current_bid_amount,
        current_bidder=manager_to_slim(auction.current_bidder),
        next_bid_amount=upcoming_bid(auction),
        timer_seconds=auction.timer_seconds,
        is_paused=auction.is_paused,
        bid_locked=auction.bid_locked,
        lock_expires_at=auction.lock_expires_at,
        status_message=auction.status_message,
        round2_selection_open=auction.round2_selection_open,
        round2_started=auction.round2_started,
        bid_history=history or [],
    )


def auction_payload(db: Session, auction: Auction) -> dict:
    return auction_to_out(auction, bid_history(db, auction.auction_id)).model_dump(
        by_alias=True, mode="json"
    )


def publish_auction(db: Session, auction: Auction, event: str = "auction_update") -> None:
    feed.publish(event, auction_payload(db, auction), auction_id=auction.auction_id)
