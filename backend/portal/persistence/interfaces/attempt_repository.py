"""Abstract repository interface for test attempts."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

from portal.domain.attempt.models import Attempt


class AttemptRepository(ABC):

    @abstractmethod
    def get(self, test_id: str, attempt_id: str) -> Optional[Attempt]:
        ...

    @abstractmethod
    def count_for_user(self, test_id: str, user_id: str) -> int:
        ...

    @abstractmethod
    def create(self, attempt: Attempt) -> None:
        """Insert a started attempt. Fails if the id already exists."""
        ...

    @abstractmethod
    def save_graded(self, attempt: Attempt) -> None:
        """Persist the grading fields (status, score, breakdown, answers)."""
        ...
