# deployment_engine/infrastructure/memory/repository.py

import copy
from threading import Lock
from typing import List, Optional
from uuid import UUID

from deployment_engine.core.errors import RunAlreadyExists, RunNotFound
from deployment_engine.core.models import SequenceRun
from deployment_engine.core.repository import RunRepository


class InMemoryRunRepository(RunRepository):
    def __init__(self):
        self._store: dict[UUID, SequenceRun] = {}
        self._lock = Lock()

    def create(self, run: SequenceRun) -> None:
        with self._lock:
            if run.run_id in self._store:
                raise RunAlreadyExists(f"Run {run.run_id} already exists")
            self._store[run.run_id] = copy.deepcopy(run)

    def get(self, run_id: UUID) -> Optional[SequenceRun]:
        with self._lock:
            run = self._store.get(run_id)
            return copy.deepcopy(run) if run is not None else None

    def update(self, run: SequenceRun) -> None:
        with self._lock:
            if run.run_id not in self._store:
                raise RunNotFound(f"Run {run.run_id} not found")
            self._store[run.run_id] = copy.deepcopy(run)

    def list_recent(self, limit: int = 20) -> List[SequenceRun]:
        with self._lock:
            runs = sorted(self._store.values(), key=lambda r: r.created_at, reverse=True)
            return [copy.deepcopy(r) for r in runs[:limit]]
