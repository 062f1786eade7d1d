# dsl.py
from __future__ import annotations

from functools import partial
from typing import Callable, List, Optional, Sequence

from .model import Feature, Profile, Step, StepFactory
from .steps.shell import ShellStep


# ---------------------------------------------------------------------
# Step helper
# ---------------------------------------------------------------------

def sh(name: str, check: str, apply: str, *, needs: Sequence[str] = ()) -> StepFactory:
    """Factory for a shell-driven step."""
    return partial(ShellStep, name=name, check_cmd=check, apply_cmd=apply, needs=tuple(needs))


def step(factory: Callable[..., Step], *args, **kwargs) -> StepFactory:
    """Bind constructor arguments now; the Step itself is built per run."""
    return partial(factory, *args, **kwargs)


# ---------------------------------------------------------------------
# Functional helpers
# ---------------------------------------------------------------------

def feature(
    name: str,
    *steps: StepFactory,
    needs: Optional[List[str]] = None,
    description: str = "",
) -> Feature:
    if not steps:
        raise ValueError(f"feature({name!r}) must contribute at least one step")
    return Feature(name=name, steps=tuple(steps), needs=tuple(needs or []), description=description)


def profile(name: str, *features: str, description: str = "") -> Profile:
    return Profile(name=name, features=tuple(features), description=description)


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class FeatureBuilder:
    def __init__(self, name: str):
        self.name = name
        self._needs: list[str] = []
        self._steps: list[StepFactory] = []
        self._description = ""

    def depends_on(self, *feature_names: str):
        self._needs.extend(feature_names)
        return self

    def define_step(self, factory: StepFactory):
        self._steps.append(factory)
        return self

    def describe(self, text: str):
        self._description = text
        return self

    def build(self) -> Feature:
        return feature(self.name, *self._steps, needs=self._needs, description=self._description)


def build(name: str) -> FeatureBuilder:
    """Convenience: build('rust').depends_on('dev-base').define_step(...).build()"""
    return FeatureBuilder(name)
