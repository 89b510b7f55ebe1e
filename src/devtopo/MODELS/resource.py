"""
Models for declared resources, their endpoints, volumes and environment references.
"""
import posixpath
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator

NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
PROTOCOL_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*$")


def validate_token(value: str, what: str = "name") -> str:
    """
    Checks that a value is a stable token usable as a resource or volume name.

    :param value: The candidate token.
    :param what: What the token names, used in the error message.
    :return: The token unchanged.
    """
    if not value or not NAME_PATTERN.match(value):
        raise ValueError(f"Invalid {what} '{value}': expected letters, digits, '_', '.' or '-'")
    return value


class ResourceKind(str, Enum):
    """
    Kinds of resources a topology can declare.
    """
    CONTAINER = "container"
    MANAGED_SERVICE = "managed-service"


class VolumeKind(str, Enum):
    """
    Storage backing a volume binding.
    """
    VOLUME = "volume"
    BIND = "bind"


class ReferenceField(str, Enum):
    """
    Parts of an endpoint address an environment reference can ask for.
    """
    HOST = "host"
    PORT = "port"
    AUTHORITY = "authority"
    URL = "url"


class Endpoint(BaseModel):
    """
    A network endpoint exposed by a resource.
    ``host_port`` left unset means the launcher picks an ephemeral port.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    target_port: int = Field(ge=1, le=65535)
    host_port: Optional[int] = Field(default=None, ge=1, le=65535)
    protocol: str = "tcp"

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("name") is None:
            data = {**data, "name": str(data.get("protocol") or "tcp").lower()}
        return data

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return validate_token(value, "endpoint name")

    @field_validator("protocol")
    @classmethod
    def _check_protocol(cls, value: str) -> str:
        value = value.lower()
        if not PROTOCOL_PATTERN.match(value):
            raise ValueError(f"Invalid protocol '{value}'")
        return value


class VolumeBinding(BaseModel):
    """
    Storage mounted into a resource: a named volume or a host bind mount.
    """
    model_config = ConfigDict(frozen=True)

    kind: VolumeKind = VolumeKind.VOLUME
    source: str
    target_path: str
    read_only: bool = False

    @field_validator("target_path")
    @classmethod
    def _check_target(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"Mount path '{value}' must be absolute")
        return posixpath.normpath(value)

    @model_validator(mode="after")
    def _check_source(self) -> "VolumeBinding":
        if not self.source:
            raise ValueError("Volume source must not be empty")
        if self.kind == VolumeKind.VOLUME:
            validate_token(self.source, "volume name")
        return self


class EndpointReference(BaseModel):
    """
    Deferred value: a field of another resource's endpoint, resolved at plan time.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    resource: str
    endpoint: str
    field: ReferenceField = ReferenceField.URL


class VariableReference(BaseModel):
    """
    Deferred value: the resolved value of another resource's environment variable.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    resource: str
    variable: str


EnvValue = Union[str, EndpointReference, VariableReference]


class Resource(BaseModel):
    """
    A declared unit of the topology.

    ``parent`` and ``wait_for`` hold names looked up in the registry, never the
    resources themselves.
    """
    name: str
    kind: ResourceKind = ResourceKind.CONTAINER
    image: str
    hostname: Optional[str] = None

    environment: Dict[str, EnvValue] = {}
    endpoints: List[Endpoint] = []
    volumes: List[VolumeBinding] = []

    entrypoint: List[str] = []
    args: List[str] = []

    parent: Optional[str] = None
    wait_for: List[str] = []

    _resolved_environment: Optional[Dict[str, str]] = PrivateAttr(default=None)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return validate_token(value)

    @field_validator("image")
    @classmethod
    def _check_image(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Resource image or service type must not be empty")
        return value

    @property
    def host(self) -> str:
        """
        Network name other resources use to reach this one.
        """
        return self.hostname or self.name

    @property
    def resolved_environment(self) -> Optional[Dict[str, str]]:
        return self._resolved_environment

    def find_endpoint(self, name: str) -> Optional[Endpoint]:
        for endpoint in self.endpoints:
            if endpoint.name == name:
                return endpoint
        return None
