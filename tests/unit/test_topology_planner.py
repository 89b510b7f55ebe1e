"""
Unit tests for wave planning.
"""
import random

import pytest
from pydantic import ValidationError

from devtopo.MANAGERS.relationship_graph import RelationshipGraph
from devtopo.MANAGERS.resource_registry import ResourceRegistry
from devtopo.MANAGERS.topology_builder import TopologyBuilder
from devtopo.MODELS.errors import (
    CyclicDependencyError,
    DuplicatePortError,
    FrozenRegistryError,
    UnresolvedReferenceError,
)
from devtopo.MODELS.resource import Endpoint, EndpointReference, Resource
from devtopo.RUNNERS.topology_planner import TopologyPlanner


def test_master_and_worker():
    builder = TopologyBuilder()
    builder.add_container("master", "bitnami/spark")
    builder.add_container("worker", "bitnami/spark")
    builder.wait_for("worker", ["master"])
    plan = builder.build_plan()
    assert plan.wave_names() == [["master"], ["worker"]]


def test_master_worker_jupyter():
    builder = TopologyBuilder()
    builder.add_container("master", "bitnami/spark")
    builder.add_container("worker", "bitnami/spark")
    builder.add_container("jupyter", "jupyter/pyspark-notebook")
    builder.wait_for("worker", ["master"])
    builder.wait_for("jupyter", ["master", "worker"])
    plan = builder.build_plan()
    assert plan.wave_names() == [["master"], ["worker"], ["jupyter"]]
    assert plan.wave_of("jupyter") == 2


def test_independent_resources_share_wave():
    builder = TopologyBuilder()
    for name in ["web", "db", "cache"]:
        builder.add_container(name, "busybox")
    plan = builder.build_plan()
    assert plan.wave_names() == [["cache", "db", "web"]]


def test_parent_places_child_later():
    builder = TopologyBuilder()
    builder.add_container("master", "bitnami/spark")
    builder.add_container("worker", "bitnami/spark")
    builder.set_parent("worker", "master")
    plan = builder.build_plan()
    assert plan.wave_of("master") <= plan.wave_of("worker")
    assert plan.descriptor("worker").parent == "master"


def test_cycle_never_produces_plan():
    registry = ResourceRegistry()
    graph = RelationshipGraph(registry)
    registry.register(Resource(name="a", image="x"))
    registry.register(Resource(name="b", image="x"))
    graph.add_wait_for("a", "b")
    graph.add_wait_for("b", "a")
    with pytest.raises(CyclicDependencyError):
        TopologyPlanner().build_plan(registry, graph)
    assert not registry.frozen
    assert not graph.frozen


def test_failed_resolution_leaves_nothing_frozen():
    registry = ResourceRegistry()
    graph = RelationshipGraph(registry)
    registry.register(Resource(name="ok", image="x", environment={"A": "1"}))
    registry.register(Resource(name="bad", image="x", environment={
        "URL": EndpointReference(resource="ghost", endpoint="http"),
    }))
    with pytest.raises(UnresolvedReferenceError):
        TopologyPlanner().build_plan(registry, graph)
    assert not registry.frozen
    assert registry.lookup("ok").resolved_environment is None


def test_prefilled_port_collision_detected():
    registry = ResourceRegistry()
    registry.register(Resource(name="a", image="x", endpoints=[Endpoint(target_port=1, host_port=5000)]))
    registry.register(Resource(name="b", image="x", endpoints=[Endpoint(target_port=2, host_port=5000)]))
    with pytest.raises(DuplicatePortError):
        TopologyPlanner().build_plan(registry, RelationshipGraph(registry))


def test_plan_freezes_topology():
    registry = ResourceRegistry()
    graph = RelationshipGraph(registry)
    registry.register(Resource(name="a", image="x"))
    TopologyPlanner().build_plan(registry, graph)
    assert registry.frozen and graph.frozen
    with pytest.raises(FrozenRegistryError):
        registry.register(Resource(name="b", image="x"))


def test_descriptors_carry_resolved_environment():
    builder = TopologyBuilder()
    builder.add_container("master", "bitnami/spark")
    builder.add_endpoint("master", 7077, protocol="spark", name="spark-master")
    builder.add_container("worker", "bitnami/spark", environment={
        "SPARK_MASTER_URL": EndpointReference(resource="master", endpoint="spark-master"),
    })
    plan = builder.build_plan()
    worker = plan.descriptor("worker")
    assert worker.environment == {"SPARK_MASTER_URL": "spark://master:7077"}
    assert worker.wave == 0
    with pytest.raises(KeyError):
        plan.descriptor("missing")


def test_plan_descriptors_are_read_only():
    builder = TopologyBuilder()
    builder.add_container("web", "nginx", environment={"K": "v"})
    builder.add_endpoint("web", 80, host_port=8080)
    builder.add_volume("web", "web-data", "/data")
    descriptor = builder.build_plan().descriptor("web")

    with pytest.raises(TypeError):
        descriptor.environment["K"] = "changed"
    with pytest.raises(ValidationError):
        descriptor.endpoints[0].host_port = 1
    with pytest.raises(ValidationError):
        descriptor.volumes[0].read_only = True
    with pytest.raises(ValidationError):
        descriptor.wave = 3
    assert descriptor.environment == {"K": "v"}
    assert descriptor.model_dump(mode="json")["environment"] == {"K": "v"}


def _declare_diamond(order):
    builder = TopologyBuilder()
    for name in order:
        builder.add_container(name, "busybox")
    builder.wait_for("left", ["root"])
    builder.wait_for("right", ["root"])
    builder.wait_for("sink", ["left", "right"])
    builder.wait_for("lonely-tail", ["lonely"])
    return builder.build_plan()


def test_plan_is_independent_of_declaration_order():
    names = ["root", "left", "right", "sink", "lonely", "lonely-tail"]
    expected = _declare_diamond(names).wave_names()
    assert expected == [["lonely", "root"], ["left", "lonely-tail", "right"], ["sink"]]
    rng = random.Random(7)
    for _ in range(10):
        shuffled = names[:]
        rng.shuffle(shuffled)
        assert _declare_diamond(shuffled).wave_names() == expected


def test_rebuild_is_idempotent():
    first = _declare_diamond(["root", "left", "right", "sink", "lonely", "lonely-tail"])
    second = _declare_diamond(["root", "left", "right", "sink", "lonely", "lonely-tail"])
    assert first == second


def test_ordering_invariant_on_random_graphs():
    rng = random.Random(42)
    for _ in range(20):
        builder = TopologyBuilder()
        names = [f"r{i}" for i in range(15)]
        for name in names:
            builder.add_container(name, "busybox")
        for i, name in enumerate(names):
            earlier = names[:i]
            if earlier and rng.random() < 0.5:
                builder.set_parent(name, rng.choice(earlier))
            for target in rng.sample(earlier, k=min(len(earlier), rng.randint(0, 3))):
                builder.wait_for(name, [target])
        plan = builder.build_plan()
        for descriptor in plan.resources():
            for target in descriptor.wait_for:
                assert plan.wave_of(target) < descriptor.wave
            if descriptor.parent:
                assert plan.wave_of(descriptor.parent) <= descriptor.wave
