from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from fastapi import Depends, FastAPI, Query, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select
from sqlalchemy.orm import Session

from . import lifecycle, managers as manager_service, round2
from .bidding import place_bid, upcoming_bid
from .config import settings
from .db import SessionLocal, get_db, init_db
from .models import Auction, Bid, Manager, Player, PlayerClass, PlayerRaw, PlayerType
from .roster import bidding_freeze, role_counts, roster
from .rules import ClassBand, PlayerRole, is_live
from .schemas import (
    AuctionCreateRequest,
    AuctionOut,
    AuctionStatsOut,
    BidOut,
    FiltersRequest,
    FreezeOut,
    LobbyOut,
    LoginRequest,
    LoginResponse,
    ManagerAuctionView,
    ManagerCreate,
    ManagerOut,
    PauseRequest,
    PlayerOut,
    PlayerRawOut,
    ReadyRequest,
    Round2PoolOut,
    SelectionOut,
    SelectionRequest,
    TeamOut,
)
from .security import authenticate, create_access_token, get_current_manager, require_admin
from .serializers import (
    auction_payload,
    auction_to_out,
    bid_history,
    bid_to_out,
    manager_to_out,
    manager_to_slim,
    managers_out,
    player_to_out,
    publish_auction,
    raw_player_to_out,
    team_player_to_out,
)
from .settlement import settle_current_player
from .timer import start_timer_thread, stop_timer_thread
from .ws import feed, manager as connections

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Cricket Auction API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _auction_out(db: Session, auction: Auction) -> AuctionOut:
    return auction_to_out(auction, bid_history(db, auction.auction_id))


def _publish_lobby(db: Session) -> None:
    live = lifecycle.find_live_auction(db)
    feed.publish(
        "lobby_update",
        {
            "managers": managers_out(manager_service.list_managers(db)),
            "liveAuction": auction_payload(db, live) if live else None,
        },
    )


def _publish_managers(db: Session, auction: Auction) -> None:
    feed.publish(
        "manager_update",
        {"managers": managers_out(manager_service.participants(db))},
        auction_id=auction.auction_id,
    )


def _publish_round2(db: Session, auction: Auction) -> None:
    feed.publish(
        "round2_update",
        _round2_pool(db, auction).model_dump(by_alias=True, mode="json"),
        auction_id=auction.auction_id,
    )


def _round2_pool(db: Session, auction: Auction) -> Round2PoolOut:
    return Round2PoolOut(
        auction_id=auction.auction_id,
        selection_open=auction.round2_selection_open,
        unsold_players=[player_to_out(p) for p in round2.unsold_players(db, auction.auction_id)],
        selections=[
            SelectionOut(
                selection_id=item.selection_id,
                player_id=item.player_id,
                manager_id=item.manager_id,
                manager_name=item.manager.manager_name,
                is_passed=item.is_passed,
            )
            for item in round2.selections(db, auction.auction_id)
        ],
    )


@app.on_event("startup")
async def on_startup() -> None:
    init_db()
    feed.bind(asyncio.get_running_loop())
    app.state.feed_task = asyncio.get_running_loop().create_task(feed.run())
    db = SessionLocal()
    try:
        if lifecycle.find_live_auction(db):
            start_timer_thread()
    finally:
        db.close()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    stop_timer_thread()
    task = getattr(app.state, "feed_task", None)
    if task:
        task.cancel()
    feed.unbind()


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "time": datetime.utcnow().isoformat()}


@app.post("/auth/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    manager = authenticate(db, payload.email, payload.password)
    logger.info("%s logged in", manager.email)
    return LoginResponse(
        access_token=create_access_token(manager.email),
        manager=manager_to_out(manager),
    )


@app.get("/me", response_model=ManagerOut)
def me(current: Manager = Depends(get_current_manager)) -> ManagerOut:
    return manager_to_out(current)


@app.get("/managers", response_model=list[ManagerOut])
def list_managers(
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> list[ManagerOut]:
    return [manager_to_out(item) for item in manager_service.list_managers(db)]


@app.post("/managers", response_model=ManagerOut, status_code=status.HTTP_201_CREATED)
def create_manager(
    payload: ManagerCreate,
    db: Session = Depends(get_db),
    admin: Manager = Depends(require_admin),
) -> ManagerOut:
    created = manager_service.create_manager(
        db,
        email=payload.email,
        name=payload.manager_name,
        team_name=payload.team_name,
        role=payload.role.value,
        password=payload.password,
        starting_budget=payload.starting_budget,
    )
    _publish_lobby(db)
    return manager_to_out(created)


@app.get("/lobby", response_model=LobbyOut)
def lobby(
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> LobbyOut:
    playing = manager_service.participants(db)
    ready = sum(1 for item in playing if item.is_ready)
    live = lifecycle.find_live_auction(db)
    return LobbyOut(
        managers=[manager_to_out(item) for item in manager_service.list_managers(db)],
        ready_count=ready,
        all_ready=bool(playing) and ready == len(playing),
        live_auction=_auction_out(db, live) if live else None,
    )


@app.post("/lobby/ready", response_model=ManagerOut)
def set_ready(
    payload: ReadyRequest,
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> ManagerOut:
    updated = manager_service.set_ready(db, current, payload.ready)
    _publish_lobby(db)
    return manager_to_out(updated)


@app.get("/players", response_model=list[PlayerOut])
def list_players(
    class_band: ClassBand | None = Query(default=None, alias="classBand"),
    role: PlayerRole | None = Query(default=None),
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> list[PlayerOut]:
    stmt = select(Player)
    if class_band is not None:
        stmt = stmt.join(PlayerClass, PlayerClass.class_id == Player.class_id).where(
            PlayerClass.class_name == class_band.value
        )
    if role is not None:
        stmt = stmt.join(PlayerType, PlayerType.type_id == Player.type_id).where(
            PlayerType.type_name == role.value
        )
    players = db.scalars(stmt.order_by(Player.player_name)).all()
    return [player_to_out(player) for player in players]


@app.get("/players/raw", response_model=list[PlayerRawOut])
def list_raw_players(
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> list[PlayerRawOut]:
    rows = db.scalars(select(PlayerRaw).order_by(PlayerRaw.id)).all()
    return [raw_player_to_out(row) for row in rows]


@app.post("/auctions", response_model=AuctionOut, status_code=status.HTTP_201_CREATED)
def create_auction(
    payload: AuctionCreateRequest,
    db: Session = Depends(get_db),
    admin: Manager = Depends(require_admin),
) -> AuctionOut:
    auction = lifecycle.create_auction(
        db,
        name=payload.auction_name,
        tournament=payload.tournament,
        class_band=payload.class_band.value if payload.class_band else None,
        role=payload.role.value if payload.role else None,
        start=payload.start,
    )
    if is_live(auction.status):
        start_timer_thread()
    publish_auction(db, auction)
    _publish_lobby(db)
    return _auction_out(db, auction)


@app.get("/auctions", response_model=list[AuctionStatsOut])
def list_auctions(
    db: Session = Depends(get_db),
    admin: Manager = Depends(require_admin),
) -> list[AuctionStatsOut]:
    return [
        AuctionStatsOut(
            auction_id=item.auction.auction_id,
            auction_name=item.auction.auction_name,
            status=item.auction.status,
            scheduled_at=item.auction.scheduled_at,
            total_sold=item.total_sold,
            total_unsold=item.total_unsold,
            total_spent=item.total_spent,
        )
        for item in lifecycle.auction_history(db)
    ]


@app.get("/auctions/current", response_model=AuctionOut)
def current_auction(
    auction_id: int | None = Query(default=None, alias="auctionId"),
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> AuctionOut:
    return _auction_out(db, lifecycle.resolve_auction(db, auction_id))


@app.get("/auctions/{auction_id}", response_model=AuctionOut)
def get_auction(
    auction_id: int,
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> AuctionOut:
    return _auction_out(db, lifecycle.get_auction(db, auction_id))


@app.delete("/auctions/{auction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_auction(
    auction_id: int,
    db: Session = Depends(get_db),
    admin: Manager = Depends(require_admin),
):
    auction = lifecycle.get_auction(db, auction_id)
    lifecycle.delete_auction(db, auction)
    _publish_lobby(db)


@app.post("/auctions/{auction_id}/start", response_model=AuctionOut)
def start_auction(
    auction_id: int,
    db: Session = Depends(get_db),
    admin: Manager = Depends(require_admin),
) -> AuctionOut:
    auction = lifecycle.start_auction(db, lifecycle.get_auction(db, auction_id))
    start_timer_thread()
    publish_auction(db, auction)
    _publish_lobby(db)
    return _auction_out(db, auction)


@app.post("/auctions/{auction_id}/pause", response_model=AuctionOut)
def pause_auction(
    auction_id: int,
    payload: PauseRequest | None = None,
    db: Session = Depends(get_db),
    admin: Manager = Depends(require_admin),
) -> AuctionOut:
    paused = payload.paused if payload else None
    auction = lifecycle.set_paused(db, lifecycle.get_auction(db, auction_id), paused)
    if not auction.is_paused:
        start_timer_thread()
    publish_auction(db, auction)
    return _auction_out(db, auction)


@app.post("/auctions/{auction_id}/filters", response_model=AuctionOut)
def apply_filters(
    auction_id: int,
    payload: FiltersRequest,
    db: Session = Depends(get_db),
    admin: Manager = Depends(require_admin),
) -> AuctionOut:
    auction = lifecycle.get_auction(db, auction_id)
    lifecycle.apply_filters(db, auction, payload.class_band, payload.role)
    publish_auction(db, auction)
    return _auction_out(db, auction)


@app.post("/auctions/{auction_id}/skip", response_model=AuctionOut)
def skip_player(
    auction_id: int,
    db: Session = Depends(get_db),
    admin: Manager = Depends(require_admin),
) -> AuctionOut:
    outcome = settle_current_player(db, auction_id)
    auction = lifecycle.get_auction(db, auction_id)
    if outcome is not None:
        publish_auction(db, auction, "player_sold" if outcome.sold else "player_unsold")
        _publish_managers(db, auction)
    return _auction_out(db, auction)


@app.post("/auctions/{auction_id}/complete", response_model=AuctionOut)
def complete_auction(
    auction_id: int,
    db: Session = Depends(get_db),
    admin: Manager = Depends(require_admin),
) -> AuctionOut:
    auction = lifecycle.complete_auction(db, lifecycle.get_auction(db, auction_id))
    publish_auction(db, auction)
    _publish_lobby(db)
    return _auction_out(db, auction)


@app.post("/auctions/{auction_id}/bids", response_model=AuctionOut)
def bid(
    auction_id: int,
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> AuctionOut:
    auction = place_bid(db, auction_id, current)
    publish_auction(db, auction, "bid_placed")
    return _auction_out(db, auction)


@app.get("/auctions/{auction_id}/bids", response_model=list[BidOut])
def list_bids(
    auction_id: int,
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> list[BidOut]:
    lifecycle.get_auction(db, auction_id)
    bids = db.scalars(
        select(Bid)
        .where(Bid.auction_id == auction_id)
        .order_by(Bid.bid_id.desc())
        .limit(100)
    ).all()
    return [bid_to_out(item) for item in bids]


@app.get("/auctions/{auction_id}/teams", response_model=list[TeamOut])
def list_teams(
    auction_id: int,
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> list[TeamOut]:
    lifecycle.get_auction(db, auction_id)
    teams: list[TeamOut] = []
    for item in manager_service.participants(db):
        bought = roster(db, auction_id, item.manager_id)
        teams.append(
            TeamOut(
                manager=manager_to_slim(item),
                current_budget=item.current_budget,
                total_spent=sum(entry.price for entry in bought),
                roster=[team_player_to_out(entry) for entry in bought],
            )
        )
    return teams


@app.get("/auctions/{auction_id}/me", response_model=ManagerAuctionView)
def my_auction_view(
    auction_id: int,
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> ManagerAuctionView:
    auction = lifecycle.get_auction(db, auction_id)
    bought = roster(db, auction_id, current.manager_id)
    freeze = bidding_freeze(db, auction, current)
    amount = upcoming_bid(auction)
    can_bid = (
        is_live(auction.status)
        and amount is not None
        and not auction.is_paused
        and not auction.pending_advance
        and current.starting_budget > 0
        and current.current_budget >= amount
        and len(bought) < settings.MAX_ROSTER
        and not freeze.frozen
    )
    return ManagerAuctionView(
        manager=manager_to_out(current),
        roster=[team_player_to_out(entry) for entry in bought],
        role_counts=role_counts(db, auction_id, current.manager_id),
        freeze=FreezeOut(
            frozen=freeze.frozen,
            message=freeze.message,
            shortfall=freeze.shortfall,
            minimum_cost=freeze.minimum_cost,
        ),
        next_bid_amount=amount,
        can_bid=can_bid,
    )


@app.get("/auctions/{auction_id}/round2", response_model=Round2PoolOut)
def round2_pool(
    auction_id: int,
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> Round2PoolOut:
    return _round2_pool(db, lifecycle.get_auction(db, auction_id))


@app.post("/auctions/{auction_id}/round2/open", response_model=AuctionOut)
def open_round2(
    auction_id: int,
    db: Session = Depends(get_db),
    admin: Manager = Depends(require_admin),
) -> AuctionOut:
    auction = lifecycle.open_round2_selection(db, lifecycle.get_auction(db, auction_id))
    publish_auction(db, auction)
    return _auction_out(db, auction)


@app.post("/auctions/{auction_id}/round2/close", response_model=AuctionOut)
def close_round2(
    auction_id: int,
    db: Session = Depends(get_db),
    admin: Manager = Depends(require_admin),
) -> AuctionOut:
    auction = lifecycle.close_round2_selection(db, lifecycle.get_auction(db, auction_id))
    publish_auction(db, auction)
    return _auction_out(db, auction)


@app.post("/auctions/{auction_id}/round2/start", response_model=AuctionOut)
def start_round2(
    auction_id: int,
    db: Session = Depends(get_db),
    admin: Manager = Depends(require_admin),
) -> AuctionOut:
    auction = lifecycle.start_round2(db, lifecycle.get_auction(db, auction_id))
    start_timer_thread()
    publish_auction(db, auction)
    _publish_lobby(db)
    return _auction_out(db, auction)


@app.post(
    "/auctions/{auction_id}/round2/selections",
    response_model=SelectionOut,
    status_code=status.HTTP_201_CREATED,
)
def select_round2_player(
    auction_id: int,
    payload: SelectionRequest,
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
) -> SelectionOut:
    auction = lifecycle.get_auction(db, auction_id)
    selection = round2.select_player(db, auction, current, payload.player_id)
    _publish_round2(db, auction)
    return SelectionOut(
        selection_id=selection.selection_id,
        player_id=selection.player_id,
        manager_id=selection.manager_id,
        manager_name=current.manager_name,
        is_passed=selection.is_passed,
    )


@app.delete(
    "/auctions/{auction_id}/round2/selections/{player_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def deselect_round2_player(
    auction_id: int,
    player_id: int,
    db: Session = Depends(get_db),
    current: Manager = Depends(get_current_manager),
):
    auction = lifecycle.get_auction(db, auction_id)
    round2.deselect_player(db, auction, current, player_id)
    _publish_round2(db, auction)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    auction_id = websocket.query_params.get("auctionId")
    await connections.connect(websocket, auction_id)
    try:
        db = SessionLocal()
        try:
            if auction_id and auction_id.isdigit():
                auction = db.get(Auction, int(auction_id))
                if auction:
                    await websocket.send_json(
                        {
                            "event": "auction_update",
                            "auctionId": auction.auction_id,
                            "payload": auction_payload(db, auction),
                        }
                    )
            else:
                live = lifecycle.find_live_auction(db)
                await websocket.send_json(
                    {
                        "event": "lobby_update",
                        "payload": {
                            "managers": managers_out(manager_service.list_managers(db)),
                            "liveAuction": auction_payload(db, live) if live else None,
                        },
                    }
                )
        finally:
            db.close()

        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Subscriber left %s", auction_id or "lobby")
    finally:
        connections.disconnect(websocket)
