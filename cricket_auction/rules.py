"""Fixed game rules: tiers, roles, category order, bid steps and roster shape."""
from __future__ import annotations

from enum import Enum

from .errors import InvalidTransition


class ClassBand(str, Enum):
    PLATINUM = "Platinum"
    GOLD = "Gold"
    SILVER = "Silver"
    COPPER = "Copper"
    BRONZE = "Bronze"
    STONE = "Stone"


class PlayerRole(str, Enum):
    BATSMAN = "Batsman"
    BOWLER = "Bowler"
    ALL_ROUNDER = "All-rounder"
    WICKET_KEEPER = "Wicket Keeper"


class AuctionStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ROUND1 = "round1"
    ROUND2 = "round2"
    COMPLETED = "completed"


class ManagerRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"


CLASS_ORDER = list(ClassBand)
ROLE_ORDER = list(PlayerRole)

# Platinum Batsman, Platinum Bowler, ..., Stone Wicket Keeper
CATEGORY_ORDER: list[tuple[str, str]] = [
    (band.value, role.value) for band in CLASS_ORDER for role in ROLE_ORDER
]

LIVE_STATUSES = (AuctionStatus.ACTIVE.value, AuctionStatus.ROUND1.value, AuctionStatus.ROUND2.value)

TRANSITIONS: dict[str, set[str]] = {
    AuctionStatus.DRAFT.value: {AuctionStatus.ACTIVE.value, AuctionStatus.ROUND1.value},
    AuctionStatus.ACTIVE.value: {AuctionStatus.COMPLETED.value},
    AuctionStatus.ROUND1.value: {AuctionStatus.COMPLETED.value},
    AuctionStatus.COMPLETED.value: {AuctionStatus.ROUND2.value},
    AuctionStatus.ROUND2.value: {AuctionStatus.COMPLETED.value},
}

ROLE_MINIMUMS: dict[str, int] = {
    PlayerRole.BATSMAN.value: 3,
    PlayerRole.BOWLER.value: 3,
    PlayerRole.ALL_ROUNDER.value: 2,
    PlayerRole.WICKET_KEEPER.value: 1,
}
MIN_ROSTER = 11  # squad size below which the pre-bid affordability check applies

OPENING_BID = 5  # first bid when the base price is zero (round 2)


def is_live(status: str) -> bool:
    return status in LIVE_STATUSES


def ensure_transition(current: str, target: str) -> None:
    if target not in TRANSITIONS.get(current, set()):
        raise InvalidTransition(f"Cannot move auction from {current} to {target}")


def next_category(class_band: str | None, role: str | None) -> tuple[str, str] | None:
    """Return the category after (class_band, role), or None when there is none."""
    try:
        index = CATEGORY_ORDER.index((class_band, role))
    except ValueError:
        return None
    if index + 1 >= len(CATEGORY_ORDER):
        return None
    return CATEGORY_ORDER[index + 1]


def bid_increment(current: int) -> int:
    if current < 100:
        return 5
    if current < 200:
        return 10
    return 20


def next_bid_amount(current: int, has_bid: bool, base_price: int, round2: bool = False) -> int:
    if not has_bid:
        if round2:
            return OPENING_BID
        return base_price or OPENING_BID
    return current + bid_increment(current)


def role_shortfall(counts: dict[str, int]) -> dict[str, int]:
    return {
        role: max(0, minimum - counts.get(role, 0))
        for role, minimum in ROLE_MINIMUMS.items()
    }
