"""
Volume bindings for resources: named volumes and host bind mounts.
"""
import os
from typing import List, Tuple

from ..MODELS.errors import DuplicateMountPathError
from ..MODELS.resource import VolumeBinding, VolumeKind
from .resource_registry import ResourceRegistry
from ..UTILS.logging import get_logger

log = get_logger("volumes")


def infer_kind(source: str) -> VolumeKind:
    """
    Guesses whether a volume source is a host path or a volume name.
    Paths start with '.', '/' or '~'; anything else names a volume.
    """
    if os.path.isabs(source) or source.startswith(('.', '~')):
        return VolumeKind.BIND
    return VolumeKind.VOLUME


class VolumeManager:
    """
    Attaches volume bindings to resources, keeping mount paths unique per resource.
    """
    def __init__(self, registry: ResourceRegistry):
        """
        Initializes the volume manager.

        :param registry: Registry holding the resources volumes are attached to.
        """
        self.registry = registry

    def add_volume(self, resource_name: str, binding: VolumeBinding) -> VolumeBinding:
        """
        Attaches a volume binding to a resource.

        :param resource_name: The owning resource.
        :param binding: The volume or bind mount declaration.
        :return: The attached binding.
        :raises DuplicateMountPathError: If the resource already mounts something at that path.
        """
        self.registry.ensure_mutable(f"add volume to '{resource_name}'")
        resource = self.registry.lookup(resource_name)
        for existing in resource.volumes:
            if existing.target_path == binding.target_path:
                raise DuplicateMountPathError(resource_name, binding.target_path)

        resource.volumes.append(binding)
        log.debug(
            "volume_added",
            resource=resource_name,
            kind=binding.kind.value,
            source=binding.source,
            target=binding.target_path,
            read_only=binding.read_only,
        )
        return binding

    def named_volumes(self) -> List[str]:
        """
        Returns every named volume used in the topology, first use first.
        """
        names = []
        for resource in self.registry:
            for binding in resource.volumes:
                if binding.kind == VolumeKind.VOLUME and binding.source not in names:
                    names.append(binding.source)
        return names

    def bind_mounts(self) -> List[Tuple[str, VolumeBinding]]:
        """
        Returns (resource, binding) for every host bind mount.
        """
        return [
            (resource.name, binding)
            for resource in self.registry
            for binding in resource.volumes
            if binding.kind == VolumeKind.BIND
        ]

    def validate(self):
        """
        Re-checks mount path uniqueness on every resource.
        """
        for resource in self.registry:
            paths = set()
            for binding in resource.volumes:
                if binding.target_path in paths:
                    raise DuplicateMountPathError(resource.name, binding.target_path)
                paths.add(binding.target_path)
