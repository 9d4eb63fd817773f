"""Caller identity as resolved from the bearer token."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Caller:
    uid: str
    role: str  # normalised platform role
    email: Optional[str] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    ip: str = "unknown-ip"
    user_agent: str = ""
