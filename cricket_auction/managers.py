from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .config import settings
from .errors import NotFound, ValidationRejected
from .models import Manager
from .rules import ManagerRole
from .security import hash_password

logger = logging.getLogger(__name__)


def list_managers(db: Session) -> list[Manager]:
    return list(db.scalars(select(Manager).order_by(Manager.manager_name)).all())


def participants(db: Session) -> list[Manager]:
    return list(
        db.scalars(
            select(Manager).where(Manager.starting_budget > 0).order_by(Manager.manager_name)
        ).all()
    )


def create_manager(
    db: Session,
    email: str,
    name: str,
    team_name: str | None = None,
    role: str = ManagerRole.MANAGER.value,
    password: str | None = None,
    starting_budget: int | None = None,
) -> Manager:
    email = email.lower().strip()
    name = name.strip()
    if not name:
        raise ValidationRejected("Please enter a manager name")
    if db.scalars(select(Manager).where(Manager.email == email)).first():
        raise ValidationRejected("Email already registered")
    if role == ManagerRole.MANAGER.value:
        count = db.scalar(
            select(func.count()).select_from(Manager).where(Manager.role == ManagerRole.MANAGER.value)
        )
        if count >= settings.MAX_MANAGERS:
            raise ValidationRejected(f"Maximum {settings.MAX_MANAGERS} managers allowed")
    if starting_budget is None:
        starting_budget = settings.STARTING_BUDGET if role == ManagerRole.MANAGER.value else 0

    manager = Manager(
        email=email,
        manager_name=name,
        team_name=team_name,
        role=role,
        password_hash=hash_password(password) if password else None,
        starting_budget=starting_budget,
        current_budget=starting_budget,
        is_ready=False,
    )
    db.add(manager)
    db.commit()
    db.refresh(manager)
    logger.info("Provisioned %s %s (%s)", role, name, email)
    return manager


def set_password(db: Session, email: str, password: str) -> Manager:
    manager = db.scalars(select(Manager).where(Manager.email == email.lower().strip())).first()
    if not manager:
        raise NotFound("Manager not found")
    manager.password_hash = hash_password(password)
    db.commit()
    return manager


def set_ready(db: Session, manager: Manager, ready: bool) -> Manager:
    manager.is_ready = ready
    db.commit()
    db.refresh(manager)
    return manager
