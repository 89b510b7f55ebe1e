# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Containment and wait-for relationships between registered resources, with
cycle detection.
"""
from typing import Dict, List, Optional

from ..MODELS.errors import CyclicDependencyError, FrozenRegistryError
from .resource_registry import ResourceRegistry
from ..UTILS.logging import get_logger

log = get_logger("graph")

WAIT_FOR = "wait-for"
PARENT = "parent"
COMBINED = "combined"


def find_cycles(adjacency: Dict[str, List[str]]) -> List[List[str]]:
    """
    Finds every cycle in a directed graph using Tarjan's strongly connected
    components algorithm. Iterative, so deep chains do not hit the recursion limit.

    :param adjacency: Node -> successors. Every successor must also be a key.
    :return: One sorted member list per cycle, ordered by first member.
    """
    index: Dict[str, int] = {}
    low: Dict[str, int] = {}
    stack: List[str] = []
    on_stack = set()
    counter = 0
    cycles = []

    for root in sorted(adjacency):
        if root in index:
            continue
        index[root] = low[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(sorted(adjacency[root])))]

        while work:
            node, successors = work[-1]
            descended = False
            for nxt in successors:
                if nxt not in index:
                    index[nxt] = low[nxt] = counter
                    counter += 1
                    stack.append(nxt)
                    on_stack.add(nxt)
                    work.append((nxt, iter(sorted(adjacency[nxt]))))
                    descended = True
                    break
                if nxt in on_stack:
                    low[node] = min(low[node], index[nxt])
            if descended:
                continue

            work.pop()
            if work:
                caller = work[-1][0]
                low[caller] = min(low[caller], low[node])
            if low[node] == index[node]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                if len(component) > 1 or node in adjacency[node]:
                    cycles.append(sorted(component))

    return sorted(cycles)


class RelationshipGraph:
    """
    Two distinct edge sets over the registry: containment (child -> parent)
    and ordering (dependent -> dependency it waits for).

    Edges live on the resources themselves as names, so the graph stays in step
    with resources registered with relationships already filled in.
    """
    def __init__(self, registry: ResourceRegistry):
        """
        :param registry: Registry used to validate both ends of every edge.
        """
        self.registry = registry
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add_wait_for(self, source: str, target: str):
        """
        Records that ``source`` must not start before ``target`` is ready.

        :raises UnknownResourceError: If either resource is not registered.
        :raises CyclicDependencyError: If a resource would wait for itself.
        """
        self._ensure_mutable(f"add wait-for edge {source} -> {target}")
        resource = self.registry.lookup(source)
        self.registry.lookup(target)
        if source == target:
            raise CyclicDependencyError([source], WAIT_FOR)
        if target not in resource.wait_for:
            resource.wait_for.append(target)
            log.debug("wait_for_added", source=source, target=target)

    def set_parent(self, child: str, parent: str):
        """
        Records that ``child`` is logically contained by ``parent``.

        :raises UnknownResourceError: If either resource is not registered.
        :raises CyclicDependencyError: If a resource would contain itself.
        """
        self._ensure_mutable(f"set parent of {child}")
        resource = self.registry.lookup(child)
        self.registry.lookup(parent)
        if child == parent:
            raise CyclicDependencyError([child], PARENT)
        if resource.parent not in (None, parent):
            log.warning("parent_replaced", child=child, previous=resource.parent, parent=parent)
        resource.parent = parent
        log.debug("parent_set", child=child, parent=parent)

    def wait_for_of(self, name: str) -> List[str]:
        return list(self.registry.lookup(name).wait_for)

    def parent_of(self, name: str) -> Optional[str]:
        return self.registry.lookup(name).parent

    def children_of(self, name: str) -> List[str]:
        self.registry.lookup(name)
        return [r.name for r in self.registry if r.parent == name]

    def wait_for_edges(self) -> Dict[str, List[str]]:
        return {r.name: list(r.wait_for) for r in self.registry}

    def parent_edges(self) -> Dict[str, List[str]]:
        return {r.name: [r.parent] if r.parent else [] for r in self.registry}

    def combined_edges(self) -> Dict[str, List[str]]:
        """
        Union of both edge kinds: every resource points at what must be placed before it.
        """
        combined = self.wait_for_edges()
        for name, parents in self.parent_edges().items():
            for parent in parents:
                if parent not in combined[name]:
                    combined[name].append(parent)
        return combined

    def detect_cycles(self):
        """
        Checks the wait-for graph and the parent graph separately, then their
        union, since wave numbers depend on both edge kinds at once.

        :raises UnknownResourceError: If an edge points at an unregistered resource.
        :raises CyclicDependencyError: On the first graph that contains a cycle.
        """
        for graph, adjacency in ((WAIT_FOR, self.wait_for_edges()),
                                 (PARENT, self.parent_edges()),
                                 (COMBINED, self.combined_edges())):
            for targets in adjacency.values():
                for target in targets:
                    self.registry.lookup(target)
            cycles = find_cycles(adjacency)
            if cycles:
                log.warning("cycle_detected", graph=graph, members=cycles[0])
                raise CyclicDependencyError(cycles[0], graph, cycles)

    def freeze(self):
        self._frozen = True

    def _ensure_mutable(self, operation: str):
        self.registry.ensure_mutable(operation)
        if self._frozen:
            raise FrozenRegistryError(operation)
