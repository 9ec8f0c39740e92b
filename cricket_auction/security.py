from __future__ import annotations

from datetime import datetime, timedelta

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .errors import Forbidden, Unauthorized
from .models import Manager
from .rules import ManagerRole

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


def create_access_token(email: str) -> str:
    expire = datetime.utcnow() + timedelta(minutes=settings.JWT_EXPIRE_MIN)
    return jwt.encode(
        {"sub": email, "exp": expire},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALG,
    )


def authenticate(db: Session, email: str, password: str) -> Manager:
    manager = db.scalars(select(Manager).where(Manager.email == email.lower().strip())).first()
    if not manager or not verify_password(password, manager.password_hash):
        raise Unauthorized("Invalid credentials")
    return manager


def get_current_manager(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Manager:
    if creds is None or creds.scheme.lower() != "bearer":
        raise Unauthorized("Not authenticated")
    try:
        payload = jwt.decode(creds.credentials, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        raise Unauthorized("Invalid token")
    email = payload.get("sub")
    if not email:
        raise Unauthorized("Invalid token")
    manager = db.scalars(select(Manager).where(Manager.email == email)).first()
    if not manager:
        raise Unauthorized("Your email is not registered. Please contact the admin.")
    return manager


def require_admin(manager: Manager = Depends(get_current_manager)) -> Manager:
    if manager.role != ManagerRole.ADMIN.value:
        raise Forbidden("Admin access only!")
    return manager
