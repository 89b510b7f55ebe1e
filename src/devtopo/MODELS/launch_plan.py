"""
Models for the immutable launch plan handed to an external launcher.
"""
from types import MappingProxyType
from typing import Annotated, Dict, List, Mapping, Optional, Tuple

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, PlainSerializer

from .resource import Endpoint, ResourceKind, VolumeBinding

# Read-only view of a resolved environment; serialized as a plain mapping.
FrozenEnvironment = Annotated[
    Mapping[str, str],
    AfterValidator(lambda value: MappingProxyType(dict(value))),
    PlainSerializer(lambda value: dict(value), return_type=Dict[str, str]),
]


class ResourceDescriptor(BaseModel):
    """
    Everything a launcher needs to start one resource.
    Environment values are fully resolved strings.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    kind: ResourceKind
    image: str
    hostname: str
    wave: int
    environment: FrozenEnvironment = Field(default_factory=dict, validate_default=True)
    endpoints: Tuple[Endpoint, ...] = ()
    volumes: Tuple[VolumeBinding, ...] = ()
    entrypoint: Tuple[str, ...] = ()
    args: Tuple[str, ...] = ()
    parent: Optional[str] = None
    wait_for: Tuple[str, ...] = ()


class LaunchPlan(BaseModel):
    """
    Ordered waves of resources. Every resource in wave ``k`` may start
    concurrently once all of wave ``k - 1`` reports ready.
    """
    model_config = ConfigDict(frozen=True)

    waves: Tuple[Tuple[ResourceDescriptor, ...], ...] = ()

    def wave_names(self) -> List[List[str]]:
        """
        Returns the resource names of each wave, in launch order.
        """
        return [[descriptor.name for descriptor in wave] for wave in self.waves]

    def resources(self) -> List[ResourceDescriptor]:
        """
        Returns every descriptor, flattened in launch order.
        """
        return [descriptor for wave in self.waves for descriptor in wave]

    def descriptor(self, name: str) -> ResourceDescriptor:
        """
        Looks up the descriptor of a resource by name.

        :raises KeyError: If the plan has no such resource.
        """
        for descriptor in self.resources():
            if descriptor.name == name:
                return descriptor
        raise KeyError(name)

    def wave_of(self, name: str) -> int:
        return self.descriptor(name).wave
