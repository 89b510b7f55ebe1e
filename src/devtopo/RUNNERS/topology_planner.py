"""
Planning of launch waves from the validated resource graph.
"""
from collections import deque
from typing import Dict, List, Optional

from ..MANAGERS.environment_manager import EnvironmentResolver
from ..MANAGERS.network_manager import NetworkManager
from ..MANAGERS.relationship_graph import RelationshipGraph
from ..MANAGERS.resource_registry import ResourceRegistry
from ..MANAGERS.volume_manager import VolumeManager
from ..MODELS.launch_plan import LaunchPlan, ResourceDescriptor
from ..MODELS.resource import Resource
from ..UTILS.logging import get_logger

log = get_logger("planner")


class TopologyPlanner:
    """
    Validates the declared topology and groups resources into launch waves.
    """
    def build_plan(self,
                   registry: ResourceRegistry,
                   graph: RelationshipGraph,
                   resolver: Optional[EnvironmentResolver] = None) -> LaunchPlan:
        """
        Validates the graph, computes waves, resolves environments and freezes
        the topology. Either returns a complete plan or raises, leaving the
        registry and graph unfrozen.

        :param registry: The declared resources.
        :param graph: Relationships between them.
        :param resolver: Environment resolver, created from the registry when omitted.
        :return: The immutable launch plan.
        :raises CyclicDependencyError: If any graph contains a cycle.
        """
        resolver = resolver or EnvironmentResolver(registry)

        graph.detect_cycles()
        NetworkManager(registry).validate()
        VolumeManager(registry).validate()

        waves = self.compute_waves(graph)
        if resolver.frozen:
            environments = {name: resolver.resolve_environment(name) for name in registry.names()}
        else:
            environments = resolver.resolve_all()

        grouped: Dict[int, List[ResourceDescriptor]] = {}
        for resource in registry:
            descriptor = self._describe(resource, waves[resource.name], environments[resource.name])
            grouped.setdefault(descriptor.wave, []).append(descriptor)

        plan = LaunchPlan(waves=tuple(
            tuple(sorted(grouped[wave], key=lambda d: d.name)) for wave in sorted(grouped)
        ))

        resolver.commit(environments)
        registry.freeze()
        graph.freeze()
        log.info("plan_built", resources=len(registry), waves=plan.wave_names())
        return plan

    def compute_waves(self, graph: RelationshipGraph) -> Dict[str, int]:
        """
        Assigns each resource its wave: 0 without dependencies, otherwise one
        more than the latest of its wait-for targets and its parent.
        The graph must be acyclic.

        :return: Resource name -> wave number.
        """
        dependencies = graph.combined_edges()
        dependents: Dict[str, List[str]] = {name: [] for name in dependencies}
        remaining = {}
        for name, targets in dependencies.items():
            remaining[name] = len(targets)
            for target in targets:
                dependents[target].append(name)

        waves: Dict[str, int] = {}
        ready = deque(sorted(name for name, count in remaining.items() if count == 0))
        while ready:
            name = ready.popleft()
            targets = dependencies[name]
            waves[name] = 1 + max(waves[t] for t in targets) if targets else 0
            for dependent in dependents[name]:
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    ready.append(dependent)
        return waves

    def _describe(self, resource: Resource, wave: int, environment: Dict[str, str]) -> ResourceDescriptor:
        return ResourceDescriptor(
            name=resource.name,
            kind=resource.kind,
            image=resource.image,
            hostname=resource.host,
            wave=wave,
            environment=dict(environment),
            endpoints=tuple(resource.endpoints),
            volumes=tuple(resource.volumes),
            entrypoint=tuple(resource.entrypoint),
            args=tuple(resource.args),
            parent=resource.parent,
            wait_for=tuple(resource.wait_for),
        )
