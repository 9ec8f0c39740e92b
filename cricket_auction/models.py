from __future__ import annotations

from datetime import datetime
from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


class Manager(Base):
    __tablename__ = "managers"

    manager_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    manager_name: Mapped[str] = mapped_column(String, nullable=False)
    team_name: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(String, default="manager")
    password_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    starting_budget: Mapped[int] = mapped_column(Integer, default=0)
    current_budget: Mapped[int] = mapped_column(Integer, default=0)
    is_ready: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class PlayerClass(Base):
    __tablename__ = "player_classes"

    class_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    class_name: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)


class PlayerType(Base):
    __tablename__ = "player_types"

    type_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type_name: Mapped[str] = mapped_column(String, unique=True, nullable=False)


class PlayerRaw(Base):
    __tablename__ = "players_raw"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cricketer_id: Mapped[str | None] = mapped_column(String, nullable=True)
    cricket_team: Mapped[str | None] = mapped_column(String, nullable=True)
    player_name: Mapped[str] = mapped_column(String, nullable=False)
    bowling_style: Mapped[str | None] = mapped_column(String, nullable=True)
    batting_style: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[str | None] = mapped_column(String, nullable=True)
    class_band: Mapped[str | None] = mapped_column(String, nullable=True)
    base_price: Mapped[int] = mapped_column(Integer, default=0)
    country: Mapped[str | None] = mapped_column(String, nullable=True)
    ipl_team: Mapped[str | None] = mapped_column(String, nullable=True)
    ipl_type: Mapped[str | None] = mapped_column(String, nullable=True)
    player_status: Mapped[str | None] = mapped_column(String, nullable=True)


class Player(Base):
    __tablename__ = "players"

    player_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_name: Mapped[str] = mapped_column(String, nullable=False)
    country: Mapped[str | None] = mapped_column(String, nullable=True)
    class_id: Mapped[int] = mapped_column(Integer, ForeignKey("player_classes.class_id"), index=True)
    type_id: Mapped[int] = mapped_column(Integer, ForeignKey("player_types.type_id"), index=True)
    base_price: Mapped[int] = mapped_column(Integer, default=0)

    player_class: Mapped["PlayerClass"] = relationship(lazy="selectin")
    player_type: Mapped["PlayerType"] = relationship(lazy="selectin")

    @property
    def class_band(self) -> str:
        return self.player_class.class_name

    @property
    def role(self) -> str:
        return self.player_type.type_name


class Auction(Base):
    __tablename__ = "auctions"

    auction_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auction_name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, default="draft", index=True)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    tournament_filter: Mapped[str | None] = mapped_column(String, nullable=True)
    class_filter: Mapped[str | None] = mapped_column(String, nullable=True)
    role_filter: Mapped[str | None] = mapped_column(String, nullable=True)
    current_player_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.player_id"), nullable=True
    )
    current_bid_amount: Mapped[int] = mapped_column(Integer, default=0)
    current_bid_manager_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("managers.manager_id"), nullable=True
    )
    timer_seconds: Mapped[float] = mapped_column(Float, default=30.0)
    is_paused: Mapped[bool] = mapped_column(Boolean, default=False)
    bid_locked: Mapped[bool] = mapped_column(Boolean, default=False)
    lock_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    pending_advance: Mapped[bool] = mapped_column(Boolean, default=False)
    status_message: Mapped[str | None] = mapped_column(String, nullable=True)
    round2_selection_open: Mapped[bool] = mapped_column(Boolean, default=False)
    round2_started: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    current_player: Mapped["Player | None"] = relationship(
        foreign_keys=[current_player_id], lazy="selectin"
    )
    current_bidder: Mapped["Manager | None"] = relationship(
        foreign_keys=[current_bid_manager_id], lazy="selectin"
    )


class Bid(Base):
    __tablename__ = "bids"

    bid_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auction_id: Mapped[int] = mapped_column(Integer, ForeignKey("auctions.auction_id"), index=True)
    manager_id: Mapped[int] = mapped_column(Integer, ForeignKey("managers.manager_id"))
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.player_id"))
    bid_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    manager: Mapped["Manager"] = relationship(lazy="selectin")
    player: Mapped["Player"] = relationship(lazy="selectin")


class TeamPlayer(Base):
    __tablename__ = "team_players"
    __table_args__ = (
        UniqueConstraint("auction_id", "player_id", name="uq_team_players_auction_player"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auction_id: Mapped[int] = mapped_column(Integer, ForeignKey("auctions.auction_id"), index=True)
    manager_id: Mapped[int] = mapped_column(Integer, ForeignKey("managers.manager_id"), index=True)
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.player_id"))
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    round: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    player: Mapped["Player"] = relationship(lazy="selectin")


class UnsoldPlayer(Base):
    __tablename__ = "unsold_players"
    __table_args__ = (
        UniqueConstraint("auction_id", "player_id", name="uq_unsold_players_auction_player"),
    )

    unsold_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auction_id: Mapped[int] = mapped_column(Integer, ForeignKey("auctions.auction_id"), index=True)
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.player_id"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class Round2Selection(Base):
    __tablename__ = "round2_selections"
    __table_args__ = (
        UniqueConstraint("auction_id", "player_id", name="uq_round2_selections_auction_player"),
    )

    selection_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    auction_id: Mapped[int] = mapped_column(Integer, ForeignKey("auctions.auction_id"), index=True)
    manager_id: Mapped[int] = mapped_column(Integer, ForeignKey("managers.manager_id"), index=True)
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.player_id"))
    is_passed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    manager: Mapped["Manager"] = relationship(lazy="selectin")
    player: Mapped["Player"] = relationship(lazy="selectin")
