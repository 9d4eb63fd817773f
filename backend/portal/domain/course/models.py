"""Course domain models — pure Python, no DB or HTTP dependencies."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass
class Course:
    id: str
    name: str
    code: str
    term: str
    code_norm: str
    term_norm: str
    description: Optional[str] = None
    archived: bool = False
    visibility: str = "enrolled_only"  # enrolled_only | public_catalog
    created_by: str = ""
    created_at: str = ""
    updated_at: str = ""
    updated_by: Optional[str] = None


@dataclass
class Enrollment:
    course_id: str
    user_id: str
    role: str  # student | instructor
    status: str  # active | removed
    created_by: str = ""
    created_at: str = ""
    updated_at: str = ""
    updated_by: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def is_active_instructor(self) -> bool:
        return self.status == "active" and self.role == "instructor"
