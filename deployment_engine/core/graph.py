# deployment_engine/core/graph.py
"""Stage dependency graph: validation and topological ordering."""

import heapq
from typing import Dict, Iterable, List, Set

from deployment_engine.core.errors import (
    CyclicDependency,
    MissingDependencyError,
    StageDefinitionError,
)
from deployment_engine.core.models import StageDefinition


def index_stages(stages: Iterable[StageDefinition]) -> Dict[str, StageDefinition]:
    """Map stage_id -> stage. Rejects duplicates and unknown dependencies."""
    by_id: Dict[str, StageDefinition] = {}
    for stage in stages:
        if not stage.stage_id:
            raise StageDefinitionError("stage_id is required")
        if stage.stage_id in by_id:
            raise StageDefinitionError(f"Duplicate stage id: {stage.stage_id}")
        by_id[stage.stage_id] = stage

    for stage in by_id.values():
        for dep in stage.depends_on:
            if dep == stage.stage_id:
                raise CyclicDependency([stage.stage_id, stage.stage_id])
            if dep not in by_id:
                raise MissingDependencyError("stage", dep, stage.stage_id)

    return by_id


def topological_order(stages: Iterable[StageDefinition]) -> List[StageDefinition]:
    """
    Order stages so every stage comes after all of its dependencies.

    Kahn's algorithm. Among stages that are ready at the same time the one
    with the lowest ``order`` wins, then the one listed first.

    Raises:
        MissingDependencyError: a depends_on entry names no known stage
        CyclicDependency: the graph is not acyclic
    """
    stages = list(stages)
    by_id = index_stages(stages)
    position = {stage.stage_id: i for i, stage in enumerate(stages)}

    remaining: Dict[str, int] = {
        stage_id: len(set(stage.depends_on)) for stage_id, stage in by_id.items()
    }
    dependents: Dict[str, List[str]] = {stage_id: [] for stage_id in by_id}
    for stage in by_id.values():
        for dep in set(stage.depends_on):
            dependents[dep].append(stage.stage_id)

    ready = [
        (by_id[stage_id].order, position[stage_id], stage_id)
        for stage_id, count in remaining.items()
        if count == 0
    ]
    heapq.heapify(ready)

    ordered: List[StageDefinition] = []
    while ready:
        _, _, stage_id = heapq.heappop(ready)
        ordered.append(by_id[stage_id])
        for child in dependents[stage_id]:
            remaining[child] -= 1
            if remaining[child] == 0:
                heapq.heappush(ready, (by_id[child].order, position[child], child))

    if len(ordered) != len(by_id):
        blocked = {stage_id for stage_id, count in remaining.items() if count > 0}
        raise CyclicDependency(_find_cycle(by_id, blocked))

    return ordered


def _find_cycle(by_id: Dict[str, StageDefinition], blocked: Set[str]) -> List[str]:
    """Walk dependency edges inside the blocked set until a node repeats."""
    start = min(blocked)
    path: List[str] = []
    seen: Dict[str, int] = {}
    node = start
    while node not in seen:
        seen[node] = len(path)
        path.append(node)
        node = min(dep for dep in by_id[node].depends_on if dep in blocked)
    return path[seen[node]:] + [node]


def transitive_dependencies(
    stage_id: str,
    by_id: Dict[str, StageDefinition],
) -> Set[str]:
    """All stage ids reachable through depends_on edges (excluding stage_id)."""
    found: Set[str] = set()
    stack = list(by_id[stage_id].depends_on)
    while stack:
        dep = stack.pop()
        if dep in found:
            continue
        found.add(dep)
        stack.extend(by_id[dep].depends_on)
    return found


def check_references(stages: Iterable[StageDefinition]) -> None:
    """
    Every entity reference must be produced by the referring stage itself
    or by one of its transitive dependencies.

    Raises:
        StageDefinitionError: when two stages produce the same (kind, name)
        MissingDependencyError: naming the unresolved (kind, name) and stage
    """
    by_id = index_stages(stages)

    producers: Dict[tuple, str] = {}
    for stage in by_id.values():
        for key in stage.produces():
            owner = producers.setdefault(key, stage.stage_id)
            if owner != stage.stage_id:
                kind, name = key
                raise StageDefinitionError(
                    f"{kind}/{name} is produced by both '{owner}' and '{stage.stage_id}'"
                )

    for stage in by_id.values():
        allowed = transitive_dependencies(stage.stage_id, by_id) | {stage.stage_id}
        for entity in stage.entities:
            for kind, name in entity.references():
                producer = producers.get((kind, name))
                if producer is None or producer not in allowed:
                    raise MissingDependencyError(kind, name, stage.stage_id)

        if stage.target_workload:
            producer = producers.get(("Deployment", stage.target_workload))
            if producer is None or producer not in allowed:
                raise MissingDependencyError("Deployment", stage.target_workload, stage.stage_id)
