import pytest
from conftest import auth_header

from cricket_auction import main
from cricket_auction.managers import create_manager

PASSWORD = "wicket-keeper-7"


@pytest.fixture
def staff(db):
    return create_manager(db, "chair@cricketclub.com", "Chair", role="admin", password=PASSWORD)


@pytest.fixture
def carol(db):
    return create_manager(db, "carol@cricketclub.com", "Carol", team_name="Carol XI", password=PASSWORD)


@pytest.fixture
def dave(db):
    return create_manager(db, "dave@cricketclub.com", "Dave", team_name="Dave XI", password=PASSWORD)


def _create_auction(client, staff, **overrides):
    body = {"auctionName": "Spring", "tournament": "IPL", "classBand": "Platinum", "role": "Batsman"}
    body.update(overrides)
    return client.post("/auctions", json=body, headers=auth_header(staff))


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_login_and_me(client, carol):
    response = client.post("/auth/login", json={"email": "Carol@cricketclub.com", "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["tokenType"] == "bearer"
    assert body["manager"]["managerName"] == "Carol"

    me = client.get("/me", headers={"Authorization": f"Bearer {body['accessToken']}"})
    assert me.status_code == 200
    assert me.json()["currentBudget"] == 1000


def test_login_rejects_bad_password(client, carol):
    response = client.post("/auth/login", json={"email": carol.email, "password": "nope"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_endpoints_require_a_token(client):
    assert client.get("/me").status_code == 401
    assert client.get("/players").status_code == 401


def test_only_admin_provisions_managers(client, staff, carol):
    body = {"email": "erin@cricketclub.com", "managerName": "Erin", "teamName": "Erin XI"}

    assert client.post("/managers", json=body, headers=auth_header(carol)).status_code == 403

    response = client.post("/managers", json=body, headers=auth_header(staff))
    assert response.status_code == 201
    assert response.json()["startingBudget"] == 1000

    duplicate = client.post("/managers", json=body, headers=auth_header(staff))
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "Email already registered"


def test_lobby_ready_flow(client, carol, dave):
    response = client.post("/lobby/ready", json={"ready": True}, headers=auth_header(carol))
    assert response.json()["isReady"] is True

    lobby = client.get("/lobby", headers=auth_header(dave)).json()
    assert lobby["readyCount"] == 1
    assert lobby["allReady"] is False
    assert lobby["liveAuction"] is None


def test_players_listing(client, players, carol):
    response = client.get("/players", params={"classBand": "Gold", "role": "Bowler"}, headers=auth_header(carol))
    assert response.status_code == 200
    names = [p["playerName"] for p in response.json()]
    assert names == ["Gold Bowler 1", "Gold Bowler 2"]


def test_auction_round_trip(client, players, staff, carol, dave):
    created = _create_auction(client, staff)
    assert created.status_code == 201
    auction = created.json()
    auction_id = auction["auctionId"]
    assert auction["status"] == "active"
    assert auction["currentPlayer"]["classBand"] == "Platinum"
    assert auction["nextBidAmount"] == 20

    bid = client.post(f"/auctions/{auction_id}/bids", headers=auth_header(carol))
    assert bid.status_code == 200
    assert bid.json()["currentBidAmount"] == 20
    assert bid.json()["currentBidder"]["managerName"] == "Carol"
    assert bid.json()["bidHistory"][0].startswith("Carol bid 20 on ")

    blocked = client.post(f"/auctions/{auction_id}/bids", headers=auth_header(dave))
    assert blocked.status_code == 409

    skipped = client.post(f"/auctions/{auction_id}/skip", headers=auth_header(staff))
    assert skipped.status_code == 200
    assert skipped.json()["statusMessage"].startswith("SOLD! ")

    view = client.get(f"/auctions/{auction_id}/me", headers=auth_header(carol)).json()
    assert view["canBid"] is False
    assert view["manager"]["currentBudget"] == 980
    assert len(view["roster"]) == 1
    assert view["roster"][0]["price"] == 20
    assert view["roleCounts"] == {"Batsman": 1}

    teams = client.get(f"/auctions/{auction_id}/teams", headers=auth_header(dave)).json()
    spent = {team["manager"]["managerName"]: team["totalSpent"] for team in teams}
    assert spent == {"Carol": 20, "Dave": 0}

    bids = client.get(f"/auctions/{auction_id}/bids", headers=auth_header(dave)).json()
    assert [b["bidAmount"] for b in bids] == [20]


def test_manager_cannot_run_admin_actions(client, players, staff, carol):
    auction_id = _create_auction(client, staff).json()["auctionId"]
    for path in ("pause", "skip", "complete"):
        response = client.post(f"/auctions/{auction_id}/{path}", headers=auth_header(carol))
        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access only!"


def test_current_auction_lookup(client, players, staff, carol):
    missing = client.get("/auctions/current", headers=auth_header(carol))
    assert missing.status_code == 404
    assert missing.json()["detail"] == "No active auction found!"

    auction_id = _create_auction(client, staff).json()["auctionId"]
    current = client.get("/auctions/current", headers=auth_header(carol))
    assert current.json()["auctionId"] == auction_id
    explicit = client.get("/auctions/current", params={"auctionId": auction_id}, headers=auth_header(carol))
    assert explicit.json()["auctionId"] == auction_id

    second = _create_auction(client, staff, auctionName="Again")
    assert second.status_code == 409


def test_pause_filters_and_complete(client, players, staff):
    auction_id = _create_auction(client, staff).json()["auctionId"]
    headers = auth_header(staff)

    paused = client.post(f"/auctions/{auction_id}/pause", json={"paused": True}, headers=headers)
    assert paused.json()["isPaused"] is True
    toggled = client.post(f"/auctions/{auction_id}/pause", headers=headers)
    assert toggled.json()["isPaused"] is False

    filtered = client.post(
        f"/auctions/{auction_id}/filters",
        json={"classBand": "Gold", "role": "Wicket Keeper"},
        headers=headers,
    )
    assert filtered.status_code == 200
    assert filtered.json()["currentPlayer"]["playerName"] == "Gold Wicket Keeper 1"

    incomplete = client.post(f"/auctions/{auction_id}/filters", json={"classBand": "Gold"}, headers=headers)
    assert incomplete.status_code == 400

    done = client.post(f"/auctions/{auction_id}/complete", headers=headers)
    assert done.json()["status"] == "completed"

    history = client.get("/auctions", headers=headers).json()
    assert history[0]["auctionId"] == auction_id
    assert history[0]["totalSold"] == 0


def test_round2_endpoints(client, players, staff, carol, dave):
    headers = auth_header(staff)
    auction_id = _create_auction(client, staff).json()["auctionId"]
    skipped = client.post(f"/auctions/{auction_id}/skip", headers=headers).json()
    assert skipped["statusMessage"].startswith("UNSOLD: ")
    client.post(f"/auctions/{auction_id}/complete", headers=headers)

    assert client.post(f"/auctions/{auction_id}/round2/open", headers=headers).json()["round2SelectionOpen"]

    pool = client.get(f"/auctions/{auction_id}/round2", headers=auth_header(carol)).json()
    assert len(pool["unsoldPlayers"]) == 1
    player_id = pool["unsoldPlayers"][0]["playerId"]

    chosen = client.post(
        f"/auctions/{auction_id}/round2/selections",
        json={"playerId": player_id},
        headers=auth_header(carol),
    )
    assert chosen.status_code == 201
    assert chosen.json()["managerName"] == "Carol"

    clash = client.post(
        f"/auctions/{auction_id}/round2/selections",
        json={"playerId": player_id},
        headers=auth_header(dave),
    )
    assert clash.status_code == 409

    started = client.post(f"/auctions/{auction_id}/round2/start", headers=headers).json()
    assert started["status"] == "round2"
    assert started["currentPlayer"]["playerId"] == player_id
    assert started["nextBidAmount"] == 5


def test_delete_auction(client, players, staff):
    auction_id = _create_auction(client, staff).json()["auctionId"]
    headers = auth_header(staff)

    assert client.delete(f"/auctions/{auction_id}", headers=headers).status_code == 204
    assert client.get(f"/auctions/{auction_id}", headers=headers).status_code == 404


def test_websocket_sends_snapshot(client, players, staff):
    auction_id = _create_auction(client, staff).json()["auctionId"]

    with client.websocket_connect(f"/ws?auctionId={auction_id}") as websocket:
        message = websocket.receive_json()

    assert message["event"] == "auction_update"
    assert message["auctionId"] == auction_id
    assert message["payload"]["status"] == "active"


def test_websocket_lobby_snapshot(client, carol):
    with client.websocket_connect("/ws") as websocket:
        message = websocket.receive_json()

    assert message["event"] == "lobby_update"
    assert [m["managerName"] for m in message["payload"]["managers"]] == ["Carol"]


def test_websocket_unregisters_on_close(client, players, staff):
    auction_id = _create_auction(client, staff).json()["auctionId"]

    with client.websocket_connect(f"/ws?auctionId={auction_id}") as websocket:
        websocket.receive_json()
        assert main.connections.active_connections == 1

    assert main.connections.active_connections == 0


def test_websocket_unregisters_when_snapshot_fails(client, players, staff, monkeypatch):
    auction_id = _create_auction(client, staff).json()["auctionId"]

    def broken_payload(db, auction):
        raise RuntimeError("snapshot failed")

    monkeypatch.setattr(main, "auction_payload", broken_payload)

    with pytest.raises(RuntimeError, match="snapshot failed"):
        with client.websocket_connect(f"/ws?auctionId={auction_id}") as websocket:
            websocket.receive_json()

    assert main.connections.active_connections == 0
