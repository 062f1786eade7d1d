# registry.py
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple

from .errors import CyclicDependency, DebkitError, UnknownFeature, UnknownProfile
from .model import Feature, Profile, Step


@dataclass(frozen=True)
class Expansion:
    """What one Feature contributes to a run."""
    feature: str
    steps: tuple[Step, ...]
    edges: tuple[tuple[str, str], ...]   # (before, after) from Step-declared needs
    feature_needs: tuple[str, ...]


class FeatureRegistry:
    """
    Closed Feature table, built once at startup.

    There is no register() after construction: the mapping is exposed
    read-only and the set of names is fixed for the life of the process.
    """

    def __init__(self, features: Iterable[Feature]):
        table: Dict[str, Feature] = {}
        for f in features:
            if f.name in table:
                raise DebkitError(kind="DuplicateFeature", message=f"feature '{f.name}' is defined twice")
            table[f.name] = f

        for f in table.values():
            for dep in f.needs:
                if dep not in table:
                    raise UnknownFeature(dep, list(table))

        self._features: Mapping[str, Feature] = MappingProxyType(table)

    @property
    def features(self) -> Mapping[str, Feature]:
        return self._features

    def names(self) -> List[str]:
        return list(self._features)

    def __contains__(self, name: object) -> bool:
        return name in self._features

    def get(self, name: str) -> Feature:
        try:
            return self._features[name]
        except KeyError:
            raise UnknownFeature(name, list(self._features)) from None

    def expand(self, name: str) -> Expansion:
        """
        Materialize a Feature's Steps.

        Pure: the factories are called fresh each time and only depend on
        values captured when the table was built.
        """
        feature = self.get(name)
        steps = tuple(factory() for factory in feature.steps)

        edges: List[Tuple[str, str]] = []
        for step in steps:
            for dep in step.needs:
                edges.append((dep, step.name))

        return Expansion(
            feature=feature.name,
            steps=steps,
            edges=tuple(edges),
            feature_needs=tuple(feature.needs),
        )

    def closure(self, names: Iterable[str]) -> List[str]:
        """
        Requested Features plus their transitive Feature dependencies.

        Dependencies come before their dependents; otherwise request order is
        kept. Duplicates are dropped.
        """
        order: List[str] = []
        done: set[str] = set()
        visiting: List[str] = []

        def visit(name: str) -> None:
            if name in done:
                return
            if name in visiting:
                start = visiting.index(name)
                raise CyclicDependency(visiting[start:] + [name], what="feature")
            feature = self.get(name)
            visiting.append(name)
            for dep in feature.needs:
                visit(dep)
            visiting.pop()
            done.add(name)
            order.append(name)

        for n in names:
            visit(n)
        return order


class ProfileRegistry:
    """Closed Profile table. Every Feature a Profile names must exist."""

    def __init__(self, profiles: Iterable[Profile], features: FeatureRegistry):
        table: Dict[str, Profile] = {}
        for p in profiles:
            if p.name in table:
                raise DebkitError(kind="DuplicateProfile", message=f"profile '{p.name}' is defined twice")
            for fname in p.features:
                if fname not in features:
                    raise UnknownFeature(fname, features.names())
            table[p.name] = p

        self._profiles: Mapping[str, Profile] = MappingProxyType(table)

    @property
    def profiles(self) -> Mapping[str, Profile]:
        return self._profiles

    def names(self) -> List[str]:
        return list(self._profiles)

    def __contains__(self, name: object) -> bool:
        return name in self._profiles

    def expand(self, name: str) -> tuple[str, ...]:
        try:
            return self._profiles[name].features
        except KeyError:
            raise UnknownProfile(name, list(self._profiles)) from None
