"""Auth API — login and profile endpoints, bearer-token caller resolution."""
from __future__ import annotations
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import APIRouter, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from jose import JWTError, jwt

from portal.container import get_database
from portal.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from portal.domain.access.models import Caller
from portal.domain.access.rbac import normalize_role
from portal.domain.common.errors import AuthenticationError, NotFoundError
from portal.persistence.db import Database

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

_bearer = HTTPBearer(auto_error=False)


# ------------------------------------------------------------------
# Password hashing (Direct bcrypt to avoid passlib compatibility issues)
# ------------------------------------------------------------------
def hash_password(password: str) -> str:
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8")
        )
    except ValueError:
        # Malformed stored hash.
        return False


# ------------------------------------------------------------------
# Pydantic schemas
# ------------------------------------------------------------------
class LoginRequest(BaseModel):
    username: str
    password: str


# ------------------------------------------------------------------
# JWT helpers
# ------------------------------------------------------------------
def create_access_token(user_id: str, username: str, role: str, email: Optional[str] = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": user_id,
        "username": username,
        "email": email,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def _decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        log.debug("rejected bearer token: %s", e)
        raise AuthenticationError("Invalid token")


# ------------------------------------------------------------------
# Dependency: get current user from Bearer token
# ------------------------------------------------------------------
def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer)) -> Caller:
    if not credentials:
        raise AuthenticationError("Not authenticated")
    claims = _decode_token(credentials.credentials)
    uid = claims.get("sub")
    if not isinstance(uid, str) or not uid:
        raise AuthenticationError("Invalid token")
    return Caller(
        uid=uid,
        role=normalize_role(claims.get("role")),
        email=claims.get("email"),
        username=claims.get("username"),
    )


# ------------------------------------------------------------------
# DB helpers
# ------------------------------------------------------------------
def _get_user_by_username(db: Database, username: str) -> Optional[dict]:
    with db.reader() as conn:
        row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
    return dict(row) if row else None


def _get_user_by_id(db: Database, user_id: str) -> Optional[dict]:
    with db.reader() as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return dict(row) if row else None


def create_user(
    db: Database,
    username: str,
    password: str,
    role: str = "student",
    email: Optional[str] = None,
    display_name: Optional[str] = None,
) -> str:
    user_id = str(uuid.uuid4())
    with db.transaction() as conn:
        conn.execute(
            """
            INSERT INTO users (id, username, password_hash, role, display_name, email, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                username,
                hash_password(password),
                normalize_role(role),
                display_name,
                email,
                datetime.now(timezone.utc).isoformat(),
            ),
        )
    return user_id


def seed_bootstrap_admin(db: Database, username: str, password: str) -> Optional[str]:
    """Create the first super admin when the users table is empty."""
    with db.reader() as conn:
        count = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
    if count:
        return None
    user_id = create_user(db, username, password, role="super_admin")
    log.info("seeded bootstrap admin %r", username)
    return user_id


def _serialize_user(user: dict) -> dict:
    return {
        "id": user["id"],
        "username": user["username"],
        "role": normalize_role(user["role"]),
        "display_name": user.get("display_name"),
        "email": user.get("email"),
    }


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------
@router.post("/login")
def login(body: LoginRequest, db: Database = Depends(get_database)):
    user = _get_user_by_username(db, body.username)
    if not user or not verify_password(body.password, user["password_hash"]):
        raise AuthenticationError("Invalid credentials")

    token = create_access_token(user["id"], user["username"], normalize_role(user["role"]), user.get("email"))
    return {"token": token, "user": _serialize_user(user)}


@router.get("/profile")
def get_profile(current_user: Caller = Depends(get_current_user), db: Database = Depends(get_database)):
    user = _get_user_by_id(db, current_user.uid)
    if not user:
        raise NotFoundError("User not found")
    return _serialize_user(user)
