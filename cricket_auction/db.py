from __future__ import annotations

from sqlalchemy import create_engine, select
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings


class Base(DeclarativeBase):
    pass


def _build_engine():
    url = settings.DATABASE_URL
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory database.
            return create_engine(
                url, connect_args={"check_same_thread": False}, poolclass=StaticPool
            )
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url)


engine = _build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create tables and seed the class/role lookup rows."""
    from . import models
    from .rules import CLASS_ORDER, ROLE_ORDER

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        known_classes = set(db.scalars(select(models.PlayerClass.class_name)).all())
        for rank, band in enumerate(CLASS_ORDER, start=1):
            if band.value not in known_classes:
                db.add(models.PlayerClass(class_name=band.value, rank=rank))
        known_types = set(db.scalars(select(models.PlayerType.type_name)).all())
        for role in ROLE_ORDER:
            if role.value not in known_types:
                db.add(models.PlayerType(type_name=role.value))
        db.commit()
    finally:
        db.close()
