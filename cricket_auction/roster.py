"""Roster and budget guard.

A manager must be able to finish with 3 Batsmen, 3 Bowlers, 2 All-rounders and
1 Wicket Keeper. Bidding is frozen for a manager whose budget can no longer buy
the cheapest available players needed to close that gap.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .config import settings
from .models import Auction, Manager, Player, PlayerType, Round2Selection, TeamPlayer, UnsoldPlayer
from .rules import MIN_ROSTER, OPENING_BID, AuctionStatus, role_shortfall

logger = logging.getLogger(__name__)


@dataclass
class FreezeStatus:
    frozen: bool
    message: str = ""
    shortfall: dict[str, int] = field(default_factory=dict)
    minimum_cost: int = 0


def sold_player_ids(auction_id: int):
    return select(TeamPlayer.player_id).where(TeamPlayer.auction_id == auction_id)


def unsold_player_ids(auction_id: int):
    return select(UnsoldPlayer.player_id).where(UnsoldPlayer.auction_id == auction_id)


def roster(db: Session, auction_id: int, manager_id: int) -> list[TeamPlayer]:
    return list(
        db.scalars(
            select(TeamPlayer)
            .where(TeamPlayer.auction_id == auction_id, TeamPlayer.manager_id == manager_id)
            .order_by(TeamPlayer.id)
        ).all()
    )


def roster_size(db: Session, auction_id: int, manager_id: int) -> int:
    return db.scalar(
        select(func.count())
        .select_from(TeamPlayer)
        .where(TeamPlayer.auction_id == auction_id, TeamPlayer.manager_id == manager_id)
    ) or 0


def role_counts(db: Session, auction_id: int, manager_id: int) -> dict[str, int]:
    rows = db.execute(
        select(PlayerType.type_name, func.count())
        .select_from(TeamPlayer)
        .join(Player, Player.player_id == TeamPlayer.player_id)
        .join(PlayerType, PlayerType.type_id == Player.type_id)
        .where(TeamPlayer.auction_id == auction_id, TeamPlayer.manager_id == manager_id)
        .group_by(PlayerType.type_name)
    ).all()
    return {name: count for name, count in rows}


def cheapest_available(db: Session, auction_id: int, role: str, limit: int) -> list[int]:
    """Base prices of the cheapest players of ``role`` still on offer in the auction."""
    return list(
        db.scalars(
            select(Player.base_price)
            .join(PlayerType, PlayerType.type_id == Player.type_id)
            .where(
                PlayerType.type_name == role,
                Player.player_id.not_in(sold_player_ids(auction_id)),
                Player.player_id.not_in(unsold_player_ids(auction_id)),
            )
            .order_by(Player.base_price, Player.player_id)
            .limit(limit)
        ).all()
    )


def round2_available(db: Session, auction_id: int, role: str, limit: int) -> list[int]:
    """Round 2 only offers pre-selected unsold players, each opening at the minimum bid."""
    count = db.scalar(
        select(func.count())
        .select_from(Round2Selection)
        .join(Player, Player.player_id == Round2Selection.player_id)
        .join(PlayerType, PlayerType.type_id == Player.type_id)
        .where(
            Round2Selection.auction_id == auction_id,
            Round2Selection.is_passed.is_(False),
            PlayerType.type_name == role,
            Player.player_id.not_in(sold_player_ids(auction_id)),
        )
    ) or 0
    return [OPENING_BID] * min(count, limit)


def bidding_freeze(db: Session, auction: Auction, manager: Manager) -> FreezeStatus:
    missing = role_shortfall(role_counts(db, auction.auction_id, manager.manager_id))
    if not any(missing.values()):
        return FreezeStatus(frozen=False)

    lookup = (
        round2_available if auction.status == AuctionStatus.ROUND2.value else cheapest_available
    )
    total_cost = 0
    details: list[str] = []
    for role, needed in missing.items():
        if not needed:
            continue
        prices = lookup(db, auction.auction_id, role, needed)
        if not prices:
            return FreezeStatus(
                frozen=True,
                message=f"No {role}s available to meet minimum requirements!",
                shortfall=missing,
            )
        cost = sum(prices)
        total_cost += cost
        details.append(f"{needed} {role}(s): {cost} pts")

    if manager.current_budget < total_cost:
        return FreezeStatus(
            frozen=True,
            message=f"Insufficient funds! Need {total_cost} pts minimum ({', '.join(details)})",
            shortfall=missing,
            minimum_cost=total_cost,
        )
    return FreezeStatus(frozen=False, shortfall=missing, minimum_cost=total_cost)


def affordable_after_win(
    counts: dict[str, int], role: str, budget: int, amount: int
) -> bool:
    """Whether winning a ``role`` player at ``amount`` still leaves room for a legal roster.

    Only checked while the roster would stay under the minimum; the remaining
    slots are priced at a flat per-player floor.
    """
    after = dict(counts)
    after[role] = after.get(role, 0) + 1
    if sum(after.values()) >= MIN_ROSTER:
        return True
    still_missing = sum(role_shortfall(after).values())
    return budget - amount >= still_missing * settings.MIN_PLAYER_COST
