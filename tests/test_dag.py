from __future__ import annotations

import pytest

from debkit.dag import feature_edges, find_cycle, plan_features
from debkit.dsl import feature
from debkit.errors import CyclicDependency, UnknownStep
from debkit.registry import FeatureRegistry


def test_plan_orders_by_declared_needs(machine) -> None:
    reg = FeatureRegistry([
        feature("dev-base",
                machine.factory("apt-install-base", needs=("apt-update",)),
                machine.factory("apt-update")),
    ])
    plan = plan_features(reg, ["dev-base"])
    assert plan.step_names == ["apt-update", "apt-install-base"]
    assert plan.steps[1].needs == ("apt-update",)


def test_shared_step_is_one_node_with_union_of_needs(machine) -> None:
    reg = FeatureRegistry([
        feature("a", machine.factory("prep"), machine.factory("shared", needs=("prep",))),
        feature("b", machine.factory("other"), machine.factory("shared", needs=("other",))),
    ])
    plan = plan_features(reg, ["a", "b"])

    assert plan.step_names.count("shared") == 1
    shared = next(p for p in plan.steps if p.name == "shared")
    assert shared.feature == "a"
    assert set(shared.needs) == {"prep", "other"}
    assert plan.step_names.index("shared") > plan.step_names.index("other")


def test_feature_dependency_orders_all_steps_regardless_of_request_order(machine) -> None:
    reg = FeatureRegistry([
        feature("rust",
                machine.factory("cargo-env", needs=("rustup",)),
                machine.factory("rustup"),
                machine.factory("a-early-name"),
                needs=["dev-base"]),
        feature("dev-base",
                machine.factory("apt-update"),
                machine.factory("apt-install-base", needs=("apt-update",))),
    ])
    for request in (["rust", "dev-base"], ["dev-base", "rust"], ["rust"]):
        order = plan_features(reg, request).step_names
        last_base = max(order.index("apt-update"), order.index("apt-install-base"))
        first_rust = min(order.index(n) for n in ("cargo-env", "rustup", "a-early-name"))
        assert last_base < first_rust, request


def test_feature_edges_only_target_roots_and_skip_shared_steps(machine) -> None:
    reg = FeatureRegistry([
        feature("base", machine.factory("update"), machine.factory("install", needs=("update",))),
        feature("rust",
                machine.factory("update"),
                machine.factory("toolchain", needs=("update",)),
                machine.factory("env", needs=("toolchain",)),
                needs=["base"]),
    ])
    edges = feature_edges([reg.expand("base"), reg.expand("rust")])
    # "toolchain" only needs the shared "update", so it is a root of rust-only steps
    assert edges == {("install", "toolchain")}


def test_tie_break_is_first_requested_feature_then_name(machine) -> None:
    reg = FeatureRegistry([
        feature("x", machine.factory("zeta"), machine.factory("alpha")),
        feature("y", machine.factory("beta"), machine.factory("aaa")),
    ])
    assert plan_features(reg, ["y", "x"]).step_names == ["aaa", "beta", "alpha", "zeta"]
    assert plan_features(reg, ["x", "y"]).step_names == ["alpha", "zeta", "aaa", "beta"]


def test_plan_is_deterministic(machine) -> None:
    reg = FeatureRegistry([
        feature("a", *[machine.factory(f"s{i}") for i in range(20)]),
        feature("b", *[machine.factory(f"t{i}", needs=(f"s{i}",)) for i in range(20)], needs=["a"]),
    ])
    first = plan_features(reg, ["b"])
    for _ in range(5):
        again = plan_features(reg, ["b"])
        assert again.step_names == first.step_names
        assert again.edges == first.edges


def test_cycle_is_reported_with_its_path(machine) -> None:
    reg = FeatureRegistry([
        feature("loop", machine.factory("a", needs=("b",)), machine.factory("b", needs=("a",))),
    ])
    with pytest.raises(CyclicDependency) as exc:
        plan_features(reg, ["loop"])
    assert exc.value.cycle in (["a", "b", "a"], ["b", "a", "b"])
    assert "a -> b" in str(exc.value) or "b -> a" in str(exc.value)
    assert machine.applies == []
    assert machine.checks == []


def test_self_dependency_is_a_cycle(machine) -> None:
    reg = FeatureRegistry([feature("f", machine.factory("a", needs=("a",)))])
    with pytest.raises(CyclicDependency) as exc:
        plan_features(reg, ["f"])
    assert exc.value.cycle == ["a", "a"]


def test_need_outside_the_run_is_unknown_step(machine) -> None:
    reg = FeatureRegistry([feature("f", machine.factory("a", needs=("ghost",)))])
    with pytest.raises(UnknownStep) as exc:
        plan_features(reg, ["f"])
    assert exc.value.missing == "ghost"


def test_find_cycle_ignores_acyclic_prefix() -> None:
    adj = {"root": {"a"}, "a": {"b"}, "b": {"c"}, "c": {"a"}}
    assert find_cycle(adj, ["a", "b", "c"]) == ["a", "b", "c", "a"]


def test_step_shared_with_transitive_dependency_is_not_a_cycle(machine) -> None:
    reg = FeatureRegistry([
        feature("dev-base", machine.factory("apt-update")),
        feature("rust", machine.factory("rustup"), needs=["dev-base"]),
        feature("tools",
                machine.factory("apt-update"),
                machine.factory("x", needs=("apt-update",)),
                needs=["rust"]),
    ])
    plan = plan_features(reg, ["tools"])
    assert plan.step_names == ["apt-update", "rustup", "x"]
    assert ("apt-update", "rustup") in plan.edges
    assert ("rustup", "x") in plan.edges
