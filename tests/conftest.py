import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TIMER_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"

import random
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from cricket_auction.db import Base, SessionLocal, engine, init_db
from cricket_auction.managers import create_manager
from cricket_auction.models import Player, PlayerClass, PlayerType, TeamPlayer, UnsoldPlayer
from cricket_auction.security import create_access_token

T0 = datetime(2026, 3, 1, 18, 0, 0)

# (class band, role, how many, base price)
POOL = [
    ("Platinum", "Batsman", 2, 20),
    ("Platinum", "Bowler", 2, 20),
    ("Platinum", "All-rounder", 1, 20),
    ("Platinum", "Wicket Keeper", 1, 20),
    ("Gold", "Batsman", 2, 10),
    ("Gold", "Bowler", 2, 10),
    ("Gold", "All-rounder", 2, 10),
    ("Gold", "Wicket Keeper", 1, 10),
]


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def rng():
    return random.Random(7)


def add_player(db, name, band, role, base_price=10, country="India"):
    class_id = db.scalar(select(PlayerClass.class_id).where(PlayerClass.class_name == band))
    type_id = db.scalar(select(PlayerType.type_id).where(PlayerType.type_name == role))
    player = Player(
        player_name=name,
        country=country,
        class_id=class_id,
        type_id=type_id,
        base_price=base_price,
    )
    db.add(player)
    db.commit()
    return player


def give_player(db, auction, manager, player, price=10, round=1):
    db.add(
        TeamPlayer(
            auction_id=auction.auction_id,
            manager_id=manager.manager_id,
            player_id=player.player_id,
            price=price,
            round=round,
        )
    )
    db.commit()


def mark_unsold(db, auction, *players):
    for player in players:
        db.add(UnsoldPlayer(auction_id=auction.auction_id, player_id=player.player_id))
    db.commit()


@pytest.fixture
def players(db):
    created = []
    for band, role, count, price in POOL:
        for n in range(1, count + 1):
            created.append(add_player(db, f"{band} {role} {n}", band, role, price))
    return created


@pytest.fixture
def alice(db):
    return create_manager(db, "alice@cricketclub.com", "Alice", team_name="Alice XI")


@pytest.fixture
def bob(db):
    return create_manager(db, "bob@cricketclub.com", "Bob", team_name="Bob XI")


@pytest.fixture
def admin(db):
    return create_manager(db, "admin@cricketclub.com", "Admin", role="admin")


@pytest.fixture
def client(db):
    from cricket_auction.main import app

    with TestClient(app) as test_client:
        yield test_client


def auth_header(manager):
    return {"Authorization": f"Bearer {create_access_token(manager.email)}"}
