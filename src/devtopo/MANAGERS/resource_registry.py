"""
Registry of declared resources, keyed by unique name.
"""
from typing import Dict, Iterator, List

from ..MODELS.errors import (
    CyclicDependencyError,
    DuplicateNameError,
    FrozenRegistryError,
    UnknownResourceError,
)
from ..MODELS.resource import Resource
from ..UTILS.logging import get_logger

log = get_logger("registry")


class ResourceRegistry:
    """
    Holds every declared resource by name, in declaration order.
    """
    def __init__(self):
        self._resources: Dict[str, Resource] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, resource: Resource) -> Resource:
        """
        Adds a resource to the registry.

        :param resource: The resource to add.
        :return: The registered resource.
        :raises DuplicateNameError: If the name is already taken.
        :raises FrozenRegistryError: If the registry is frozen.
        """
        self.ensure_mutable(f"register '{resource.name}'")
        if resource.name in self._resources:
            raise DuplicateNameError(resource.name)
        # Relationships declared up front must point at earlier declarations.
        if resource.parent is not None:
            self._check_reference(resource, resource.parent, "parent")
        for target in resource.wait_for:
            self._check_reference(resource, target, "wait-for")
        self._resources[resource.name] = resource
        log.debug("resource_registered", name=resource.name, kind=resource.kind.value)
        return resource

    def lookup(self, name: str) -> Resource:
        """
        :raises UnknownResourceError: If no resource has that name.
        """
        try:
            return self._resources[name]
        except KeyError:
            raise UnknownResourceError(name) from None

    def _check_reference(self, resource: Resource, target: str, graph: str):
        if target == resource.name:
            raise CyclicDependencyError([target], graph)
        if target not in self._resources:
            raise UnknownResourceError(target)

    def ensure_mutable(self, operation: str):
        if self._frozen:
            raise FrozenRegistryError(operation)

    def freeze(self):
        self._frozen = True

    def names(self) -> List[str]:
        return list(self._resources)

    def resources(self) -> List[Resource]:
        return list(self._resources.values())

    def __contains__(self, name: object) -> bool:
        return name in self._resources

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self._resources.values()))

    def __len__(self) -> int:
        return len(self._resources)
