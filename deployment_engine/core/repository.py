# deployment_engine/core/repository.py

from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from deployment_engine.core.models import SequenceRun


class RunRepository(ABC):
    """
    Persistence contract for sequence runs.
    """

    @abstractmethod
    def create(self, run: SequenceRun) -> None:
        """
        Persist a new run.
        Must fail if run_id already exists.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, run_id: UUID) -> Optional[SequenceRun]:
        """
        Fetch run by ID.
        Returns None if not found.
        """
        raise NotImplementedError

    @abstractmethod
    def update(self, run: SequenceRun) -> None:
        """
        Persist updated run and stage run state.
        Must fail if the run does not exist.
        """
        raise NotImplementedError

    @abstractmethod
    def list_recent(self, limit: int = 20) -> List[SequenceRun]:
        """
        Most recent runs first.
        """
        raise NotImplementedError
