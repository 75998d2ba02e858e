"""Dependency ordering for scripted objects.

Objects are ordered so that every object is created after everything it
references. Among objects that are ready at the same time, catalog
enumeration order wins, which keeps the output reproducible between runs.
"""

from __future__ import annotations

import heapq
import logging
from collections import defaultdict

from wdbschema.core.errors import DependencyCycleError
from wdbschema.core.models import DatabaseObjectRef, ObjectGraph

logger = logging.getLogger(__name__)


def _find_cycle(
    graph: ObjectGraph,
    remaining: set[DatabaseObjectRef],
    position: dict[DatabaseObjectRef, int],
) -> list[DatabaseObjectRef]:
    """
    Return one cycle among the unresolved objects, in reference order.

    Every unresolved object still has an unresolved dependency, so walking
    dependencies from any of them must revisit a node.
    """
    node = min(remaining, key=position.__getitem__)
    path: list[DatabaseObjectRef] = []
    seen: dict[DatabaseObjectRef, int] = {}
    while node not in seen:
        seen[node] = len(path)
        path.append(node)
        deps = [d for d in graph.depends_on(node) if d in remaining and d != node]
        node = min(deps, key=position.__getitem__)
    return path[seen[node]:]


def order_objects(graph: ObjectGraph) -> list[DatabaseObjectRef]:
    """
    Order the graph's objects so dependencies come before dependents.

    Preferences (foreign keys, trigger references) are followed as well; when
    only preferences block progress, the earliest object in catalog order
    whose dependencies are met is taken next.

    Args:
        graph: Object graph produced by the catalog loader.

    Returns:
        Every ref of the graph exactly once, dependencies first.

    Raises:
        DependencyCycleError: If objects depend on each other in a cycle.
    """
    position = {ref: i for i, ref in enumerate(graph.refs())}
    blocking: dict[DatabaseObjectRef, int] = {}
    hard_blocking: dict[DatabaseObjectRef, int] = {}
    dependents: dict[DatabaseObjectRef, list[tuple[DatabaseObjectRef, bool]]] = defaultdict(list)

    for ref in position:
        deps = {d for d in graph.depends_on(ref) if d in position and d != ref}
        preferred = {
            d for d in graph.preferred_after(ref) if d in position and d != ref
        } - deps
        hard_blocking[ref] = len(deps)
        blocking[ref] = len(deps) + len(preferred)
        for dep in deps:
            dependents[dep].append((ref, True))
        for dep in preferred:
            dependents[dep].append((ref, False))

    ready = [(position[ref], ref) for ref, count in blocking.items() if count == 0]
    heapq.heapify(ready)

    ordered: list[DatabaseObjectRef] = []
    done: set[DatabaseObjectRef] = set()
    while len(ordered) < len(position):
        if ready:
            _, ref = heapq.heappop(ready)
            if ref in done:
                continue
        else:
            candidates = [r for r in position if r not in done and hard_blocking[r] == 0]
            if not candidates:
                remaining = set(position) - done
                cycle = _find_cycle(graph, remaining, position)
                logger.debug(
                    "Unresolved objects: %s", sorted(remaining, key=position.__getitem__)
                )
                raise DependencyCycleError(cycle)
            ref = min(candidates, key=position.__getitem__)
            logger.debug("Preference cycle, taking %s first", ref)

        ordered.append(ref)
        done.add(ref)
        for dependent, hard in dependents[ref]:
            blocking[dependent] -= 1
            if hard:
                hard_blocking[dependent] -= 1
            if blocking[dependent] == 0 and dependent not in done:
                heapq.heappush(ready, (position[dependent], dependent))

    return ordered
