from __future__ import annotations

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .rules import ClassBand, ManagerRole, PlayerRole


class BaseSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class PlayerOut(BaseSchema):
    id: int = Field(..., alias="playerId")
    name: str = Field(..., alias="playerName")
    country: Optional[str] = None
    role: str
    class_band: str = Field(..., alias="classBand")
    base_price: int = Field(..., alias="basePrice")


class PlayerRawOut(BaseSchema):
    id: int
    cricketer_id: Optional[str] = Field(default=None, alias="cricketerId")
    cricket_team: Optional[str] = Field(default=None, alias="cricketTeam")
    player_name: str = Field(..., alias="playerName")
    bowling_style: Optional[str] = Field(default=None, alias="bowlingStyle")
    batting_style: Optional[str] = Field(default=None, alias="battingStyle")
    role: Optional[str] = None
    class_band: Optional[str] = Field(default=None, alias="classBand")
    base_price: int = Field(..., alias="basePrice")
    country: Optional[str] = None
    ipl_team: Optional[str] = Field(default=None, alias="iplTeam")
    ipl_type: Optional[str] = Field(default=None, alias="iplType")
    player_status: Optional[str] = Field(default=None, alias="playerStatus")


class TeamPlayerOut(PlayerOut):
    price: int
    round: int


class ManagerSlim(BaseSchema):
    id: int = Field(..., alias="managerId")
    name: str = Field(..., alias="managerName")
    team_name: Optional[str] = Field(default=None, alias="teamName")


class ManagerOut(ManagerSlim):
    email: str
    role: str
    starting_budget: int = Field(..., alias="startingBudget")
    current_budget: int = Field(..., alias="currentBudget")
    is_ready: bool = Field(..., alias="isReady")


class ManagerCreate(BaseSchema):
    email: EmailStr
    manager_name: str = Field(..., alias="managerName", min_length=1)
    team_name: Optional[str] = Field(default=None, alias="teamName")
    role: ManagerRole = ManagerRole.MANAGER
    password: Optional[str] = Field(default=None, min_length=6)
    starting_budget: Optional[int] = Field(default=None, alias="startingBudget", ge=0)


class AuctionOut(BaseSchema):
    auction_id: int = Field(..., alias="auctionId")
    auction_name: str = Field(..., alias="auctionName")
    status: str
    scheduled_at: datetime = Field(..., alias="scheduledAt")
    tournament_filter: Optional[str] = Field(default=None, alias="tournamentFilter")
    class_filter: Optional[str] = Field(default=None, alias="classFilter")
    role_filter: Optional[str] = Field(default=None, alias="roleFilter")
    current_player: Optional[PlayerOut] = Field(default=None, alias="currentPlayer")
    current_bid_amount: int = Field(..., alias="currentBidAmount")
    current_bidder: Optional[ManagerSlim] = Field(default=None, alias="currentBidder")
    next_bid_amount: Optional[int] = Field(default=None, alias="nextBidAmount")
    timer_seconds: float = Field(..., alias="timerSeconds")
    is_paused: bool = Field(..., alias="isPaused")
    bid_locked: bool = Field(..., alias="bidLocked")
    lock_expires_at: Optional[datetime] = Field(default=None, alias="lockExpiresAt")
    status_message: Optional[str] = Field(default=None, alias="statusMessage")
    round2_selection_open: bool = Field(..., alias="round2SelectionOpen")
    round2_started: bool = Field(..., alias="round2Started")
    bid_history: list[str] = Field(default_factory=list, alias="bidHistory")


class AuctionStatsOut(BaseSchema):
    auction_id: int = Field(..., alias="auctionId")
    auction_name: str = Field(..., alias="auctionName")
    status: str
    scheduled_at: datetime = Field(..., alias="scheduledAt")
    total_sold: int = Field(..., alias="totalSold")
    total_unsold: int = Field(..., alias="totalUnsold")
    total_spent: int = Field(..., alias="totalSpent")


class AuctionCreateRequest(BaseSchema):
    auction_name: str = Field(..., alias="auctionName", min_length=1)
    tournament: str = Field(..., min_length=1)
    class_band: Optional[ClassBand] = Field(default=None, alias="classBand")
    role: Optional[PlayerRole] = None
    start: bool = True


class FiltersRequest(BaseSchema):
    class_band: Optional[str] = Field(default=None, alias="classBand")
    role: Optional[str] = None


class PauseRequest(BaseSchema):
    paused: Optional[bool] = None


class BidOut(BaseSchema):
    bid_id: int = Field(..., alias="bidId")
    manager_id: int = Field(..., alias="managerId")
    manager_name: str = Field(..., alias="managerName")
    player_id: int = Field(..., alias="playerId")
    player_name: str = Field(..., alias="playerName")
    bid_amount: int = Field(..., alias="bidAmount")
    created_at: datetime = Field(..., alias="createdAt")


class FreezeOut(BaseSchema):
    frozen: bool
    message: str = ""
    shortfall: dict[str, int] = Field(default_factory=dict)
    minimum_cost: int = Field(default=0, alias="minimumCost")


class ManagerAuctionView(BaseSchema):
    manager: ManagerOut
    roster: list[TeamPlayerOut] = Field(default_factory=list)
    role_counts: dict[str, int] = Field(default_factory=dict, alias="roleCounts")
    freeze: FreezeOut
    next_bid_amount: Optional[int] = Field(default=None, alias="nextBidAmount")
    can_bid: bool = Field(..., alias="canBid")


class TeamOut(BaseSchema):
    manager: ManagerSlim
    current_budget: int = Field(..., alias="currentBudget")
    total_spent: int = Field(..., alias="totalSpent")
    roster: list[TeamPlayerOut] = Field(default_factory=list)


class LobbyOut(BaseSchema):
    managers: list[ManagerOut]
    ready_count: int = Field(..., alias="readyCount")
    all_ready: bool = Field(..., alias="allReady")
    live_auction: Optional[AuctionOut] = Field(default=None, alias="liveAuction")


class ReadyRequest(BaseSchema):
    ready: bool


class SelectionOut(BaseSchema):
    selection_id: int = Field(..., alias="selectionId")
    player_id: int = Field(..., alias="playerId")
    manager_id: int = Field(..., alias="managerId")
    manager_name: str = Field(..., alias="managerName")
    is_passed: bool = Field(..., alias="isPassed")


class Round2PoolOut(BaseSchema):
    auction_id: int = Field(..., alias="auctionId")
    selection_open: bool = Field(..., alias="selectionOpen")
    unsold_players: list[PlayerOut] = Field(default_factory=list, alias="unsoldPlayers")
    selections: list[SelectionOut] = Field(default_factory=list)


class SelectionRequest(BaseSchema):
    player_id: int = Field(..., alias="playerId")


class LoginRequest(BaseSchema):
    email: EmailStr
    password: str


class LoginResponse(BaseSchema):
    access_token: str = Field(..., alias="accessToken")
    token_type: str = Field(default="bearer", alias="tokenType")
    manager: ManagerOut
