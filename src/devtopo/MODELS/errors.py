"""
Exceptions raised while declaring, validating and planning a topology.

Every error is raised synchronously during the build phase and is not
retryable: fix the declaration and build again.
"""
from typing import List, Optional, Sequence


class TopologyError(Exception):
    """
    Base class for all topology errors.
    """


class DuplicateNameError(TopologyError):
    """
    A resource with the same name is already registered.
    """
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Resource '{name}' is already declared")


class UnknownResourceError(TopologyError):
    """
    A name does not refer to a registered resource.
    """
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Resource '{name}' is not declared")


class FrozenRegistryError(TopologyError):
    """
    The topology was frozen by a successful plan build and can no longer change.
    """
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot {operation}: the topology is frozen")


class CyclicDependencyError(TopologyError):
    """
    The wait-for graph, the parent graph or their union contains a cycle.

    :param members: Names of the resources in the reported cycle.
    :param graph: Which graph the cycle was found in ("wait-for", "parent" or "combined").
    :param cycles: Every cycle found in that graph, including ``members``.
    """
    def __init__(self, members: Sequence[str], graph: str, cycles: Optional[List[List[str]]] = None):
        self.members = list(members)
        self.graph = graph
        self.cycles = cycles if cycles is not None else [self.members]
        super().__init__(
            f"Circular {graph} dependency detected involving: {', '.join(self.members)}"
        )


class DuplicatePortError(TopologyError):
    """
    A host port is bound by more than one endpoint in the topology.
    """
    def __init__(self, port: int, owner: str, resource: str):
        self.port = port
        self.owner = owner
        self.resource = resource
        super().__init__(
            f"Host port {port} requested by '{resource}' is already bound by '{owner}'"
        )


class DuplicateEndpointNameError(TopologyError):
    """
    An endpoint name is used twice on one resource.
    """
    def __init__(self, resource: str, endpoint: str):
        self.resource = resource
        self.endpoint = endpoint
        super().__init__(f"Resource '{resource}' already has an endpoint named '{endpoint}'")


class DuplicateMountPathError(TopologyError):
    """
    Two volume bindings of one resource mount at the same target path.
    """
    def __init__(self, resource: str, target_path: str):
        self.resource = resource
        self.target_path = target_path
        super().__init__(f"Resource '{resource}' already mounts a volume at '{target_path}'")


class UnresolvedReferenceError(TopologyError):
    """
    An environment reference points at a resource, endpoint or variable that does not exist.
    """
    def __init__(self, message: str, resource: Optional[str] = None):
        self.resource = resource
        super().__init__(message)


class SelfReferenceCycleError(TopologyError):
    """
    A chain of environment variable references loops back on itself.

    :param chain: The ``resource.VARIABLE`` keys walked, ending with the repeated key.
    """
    def __init__(self, chain: Sequence[str]):
        self.chain = list(chain)
        super().__init__(f"Environment reference cycle: {' -> '.join(self.chain)}")


class PlanAbortedError(TopologyError):
    """
    A previous plan build on this builder failed; declare a new topology.
    """


class TopologyParseError(TopologyError):
    """
    A topology declaration file could not be read.
    """


class LaunchError(TopologyError):
    """
    The launcher failed to start a resource or it never became ready.
    """
    def __init__(self, resource: str, wave: int, reason: str):
        self.resource = resource
        self.wave = wave
        self.reason = reason
        super().__init__(f"Failed to launch '{resource}' in wave {wave}: {reason}")
