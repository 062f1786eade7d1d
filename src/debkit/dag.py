# dag.py
from __future__ import annotations

import heapq
from typing import Dict, List, Sequence, Set, Tuple

from .errors import CyclicDependency, UnknownStep
from .model import Plan, PlannedStep, Step
from .registry import Expansion, FeatureRegistry


def merge_expansions(
    expansions: Sequence[Expansion],
) -> Tuple[Dict[str, Step], Dict[str, str], Dict[str, Set[str]]]:
    """
    Merge per-Feature expansions into one node set.

    Returns:
      steps:  name -> Step (first instance wins)
      owner:  name -> first Feature that contributed the Step
      needs:  name -> union of declared needs across all contributors
    """
    steps: Dict[str, Step] = {}
    owner: Dict[str, str] = {}
    needs: Dict[str, Set[str]] = {}

    for exp in expansions:
        for step in exp.steps:
            if step.name not in steps:
                steps[step.name] = step
                owner[step.name] = exp.feature
                needs[step.name] = set()
            needs[step.name].update(step.needs)

    return steps, owner, needs


def _upstream(feature: str, feature_needs: Dict[str, Tuple[str, ...]]) -> Set[str]:
    """Every Feature `feature` depends on, directly or transitively."""
    seen: Set[str] = set()
    pending = list(feature_needs.get(feature, ()))
    while pending:
        dep = pending.pop()
        if dep in seen:
            continue
        seen.add(dep)
        pending.extend(feature_needs.get(dep, ()))
    return seen


def feature_edges(expansions: Sequence[Expansion]) -> Set[Tuple[str, str]]:
    """
    Flatten "feature A needs feature B" into Step edges.

    Every Step B contributes and A does not goes before every A-only Step
    whose declared needs do not already point at another A-only Step. A Step
    is A-only when no Feature in A's transitive dependency closure contributes
    it too; shared Steps get no edge from this rule.
    """
    contributed = {exp.feature: {s.name for s in exp.steps} for exp in expansions}
    declared = {exp.feature: {s.name: set(s.needs) for s in exp.steps} for exp in expansions}
    feature_needs = {exp.feature: exp.feature_needs for exp in expansions}

    edges: Set[Tuple[str, str]] = set()
    for exp in expansions:
        a_names = contributed[exp.feature]
        upstream_names: Set[str] = set()
        for dep in _upstream(exp.feature, feature_needs):
            upstream_names |= contributed.get(dep, set())
        a_only = a_names - upstream_names
        roots = [n for n in a_only if not (declared[exp.feature][n] & a_only)]
        for dep in exp.feature_needs:
            b_only = contributed.get(dep, set()) - a_names
            for before in b_only:
                for after in roots:
                    edges.add((before, after))
    return edges


def build_graph(
    steps: Dict[str, Step],
    needs: Dict[str, Set[str]],
    extra_edges: Set[Tuple[str, str]],
) -> Tuple[Dict[str, Set[str]], Dict[str, int], Dict[str, Set[str]]]:
    """
    Build adjacency (dep -> dependents), in-degree and predecessor sets.
    """
    adj: Dict[str, Set[str]] = {n: set() for n in steps}
    indeg: Dict[str, int] = {n: 0 for n in steps}
    preds: Dict[str, Set[str]] = {n: set() for n in steps}

    def add(before: str, after: str) -> None:
        if after in adj[before]:
            return
        adj[before].add(after)
        indeg[after] += 1
        preds[after].add(before)

    for name in steps:
        for dep in sorted(needs[name]):
            if dep not in steps:
                raise UnknownStep(name, dep)
            add(dep, name)

    for before, after in sorted(extra_edges):
        add(before, after)

    return adj, indeg, preds


def find_cycle(adj: Dict[str, Set[str]], nodes: Sequence[str]) -> List[str]:
    """Return one cycle among `nodes` as [a, b, ..., a]."""
    stuck = set(nodes)
    state: Dict[str, int] = {}   # 1 = on stack, 2 = done
    stack: List[str] = []

    def visit(node: str) -> List[str] | None:
        state[node] = 1
        stack.append(node)
        for nxt in sorted(adj.get(node, set()) & stuck):
            if state.get(nxt) == 1:
                return stack[stack.index(nxt):] + [nxt]
            if nxt not in state:
                found = visit(nxt)
                if found:
                    return found
        stack.pop()
        state[node] = 2
        return None

    for node in sorted(stuck):
        if node not in state:
            found = visit(node)
            if found:
                return found
    return sorted(stuck)


def topo_order(
    adj: Dict[str, Set[str]],
    indeg: Dict[str, int],
    rank: Dict[str, int],
) -> List[str]:
    """
    Kahn's algorithm with a deterministic tie-break.

    Among ready nodes, the one whose owning Feature was requested first wins,
    then the lower Step name.
    """
    indeg = dict(indeg)  # copy (we mutate it)
    ready = [(rank[n], n) for n, d in indeg.items() if d == 0]
    heapq.heapify(ready)

    order: List[str] = []
    while ready:
        _, node = heapq.heappop(ready)
        order.append(node)
        for child in adj[node]:
            indeg[child] -= 1
            if indeg[child] == 0:
                heapq.heappush(ready, (rank[child], child))

    if len(order) != len(indeg):
        remaining = [n for n, d in indeg.items() if d > 0]
        raise CyclicDependency(find_cycle(adj, remaining))

    return order


def plan_features(registry: FeatureRegistry, requested: Sequence[str]) -> Plan:
    """
    Resolve requested Feature names into an ordered, deduplicated Step plan.

    Raises UnknownFeature, UnknownStep or CyclicDependency before anything
    touches the machine.
    """
    features = registry.closure(requested)
    expansions = [registry.expand(name) for name in features]

    steps, owner, needs = merge_expansions(expansions)
    extra = feature_edges(expansions)
    adj, indeg, preds = build_graph(steps, needs, extra)

    feature_rank = {name: i for i, name in enumerate(features)}
    rank = {name: feature_rank[owner[name]] for name in steps}
    order = topo_order(adj, indeg, rank)

    planned = [
        PlannedStep(step=steps[name], feature=owner[name], needs=tuple(sorted(preds[name])))
        for name in order
    ]
    edges = sorted((before, after) for before, afters in adj.items() for after in afters)
    return Plan(features=features, steps=planned, edges=edges)
