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
Declaration context for a topology: the object every declaration call goes
through, and the one that builds the launch plan.
"""
from enum import Enum
from typing import Dict, Iterable, List, Optional

from ..MODELS.errors import PlanAbortedError, TopologyError
from ..MODELS.launch_plan import LaunchPlan
from ..MODELS.resource import (
    Endpoint,
    EnvValue,
    Resource,
    ResourceKind,
    VolumeBinding,
    VolumeKind,
)
from ..MODELS.service_catalog import get_template
from ..RUNNERS.topology_planner import TopologyPlanner
from .environment_manager import EnvironmentResolver
from .network_manager import NetworkManager
from .relationship_graph import RelationshipGraph
from .resource_registry import ResourceRegistry
from .volume_manager import VolumeManager
from ..UTILS.logging import get_logger

log = get_logger("builder")


class BuildState(str, Enum):
    """
    Lifecycle of a builder. ABORTED and FROZEN are terminal.
    """
    DECLARING = "declaring"
    VALIDATING = "validating"
    FROZEN = "frozen"
    ABORTED = "aborted"


class TopologyBuilder:
    """
    Collects declarations into a registry and relationship graph, then hands
    them to the planner.
    """
    def __init__(self, name: str = "devtopo"):
        """
        :param name: Name of the topology, used in logs and generated files.
        """
        self.name = name
        self.registry = ResourceRegistry()
        self.graph = RelationshipGraph(self.registry)
        self.network = NetworkManager(self.registry)
        self.volumes = VolumeManager(self.registry)
        self.resolver = EnvironmentResolver(self.registry)
        self.planner = TopologyPlanner()
        self.state = BuildState.DECLARING

    def add_container(self,
                      name: str,
                      image: str,
                      environment: Optional[Dict[str, EnvValue]] = None,
                      hostname: Optional[str] = None,
                      entrypoint: Optional[List[str]] = None,
                      args: Optional[List[str]] = None) -> Resource:
        """
        Declares a container resource.

        :param name: Unique resource name.
        :param image: Container image reference.
        :param environment: Initial environment values or references.
        :param hostname: Network name, defaults to the resource name.
        :param entrypoint: Entrypoint override.
        :param args: Arguments passed to the entrypoint.
        :return: The registered resource.
        """
        return self._register(Resource(
            name=name,
            kind=ResourceKind.CONTAINER,
            image=image,
            hostname=hostname,
            environment=dict(environment or {}),
            entrypoint=list(entrypoint or []),
            args=list(args or []),
        ))

    def add_managed_service(self,
                            name: str,
                            service_type: str,
                            host_port: Optional[int] = None,
                            environment: Optional[Dict[str, EnvValue]] = None,
                            data_volume: bool = False) -> Resource:
        """
        Declares a managed service such as a database or broker, applying the
        catalog defaults for its type.

        :param name: Unique resource name.
        :param service_type: Catalog type, e.g. ``sqlserver`` or ``rabbitmq``.
        :param host_port: Host port for the primary endpoint, ephemeral when omitted.
        :param environment: Values merged over the catalog defaults.
        :param data_volume: Whether to persist the service's data in a named volume.
        :return: The registered resource.
        """
        self._ensure_declaring()
        try:
            template = get_template(service_type)
        except KeyError as e:
            raise TopologyError(str(e.args[0])) from None

        endpoints = [
            Endpoint.model_validate({**endpoint.model_dump(), "host_port": host_port if index == 0 else None})
            for index, endpoint in enumerate(template.endpoints)
        ]
        merged: Dict[str, EnvValue] = dict(template.environment)
        merged.update(environment or {})
        resource = self._register(Resource(
            name=name,
            kind=ResourceKind.MANAGED_SERVICE,
            image=service_type,
            environment=merged,
        ))
        for endpoint in endpoints:
            self.network.add_endpoint(name, endpoint)
        if data_volume:
            if template.data_path is None:
                raise TopologyError(f"Managed service type '{service_type}' keeps no data to persist")
            self.add_data_volume(name, template.data_path)
        return resource

    def add_endpoint(self,
                     resource_name: str,
                     target_port: int,
                     host_port: Optional[int] = None,
                     protocol: str = "tcp",
                     name: Optional[str] = None) -> Endpoint:
        """
        Exposes a port of a resource. The endpoint name defaults to the protocol.
        """
        self._ensure_declaring()
        return self.network.add_endpoint(
            resource_name,
            Endpoint(name=name, target_port=target_port, host_port=host_port, protocol=protocol),
        )

    def add_volume(self, resource_name: str, source: str, target_path: str,
                   read_only: bool = False) -> VolumeBinding:
        """
        Mounts a named volume into a resource.
        """
        self._ensure_declaring()
        return self.volumes.add_volume(resource_name, VolumeBinding(
            kind=VolumeKind.VOLUME, source=source, target_path=target_path, read_only=read_only,
        ))

    def add_bind_mount(self, resource_name: str, source: str, target_path: str,
                       read_only: bool = False) -> VolumeBinding:
        """
        Mounts a host path into a resource.
        """
        self._ensure_declaring()
        return self.volumes.add_volume(resource_name, VolumeBinding(
            kind=VolumeKind.BIND, source=source, target_path=target_path, read_only=read_only,
        ))

    def add_data_volume(self, resource_name: str, target_path: str) -> VolumeBinding:
        """
        Persists a resource's data in a volume named ``<resource>-data``.
        """
        return self.add_volume(resource_name, f"{resource_name}-data", target_path)

    def set_environment(self, resource_name: str, variable: str, value: EnvValue):
        self._ensure_declaring()
        self.registry.ensure_mutable(f"set {variable} on '{resource_name}'")
        self.registry.lookup(resource_name).environment[variable] = value

    def wait_for(self, resource_name: str, targets: Iterable[str]):
        """
        Makes a resource wait until each target is ready.
        """
        self._ensure_declaring()
        for target in targets:
            self.graph.add_wait_for(resource_name, target)

    def set_parent(self, child: str, parent: str):
        self._ensure_declaring()
        self.graph.set_parent(child, parent)

    def build_plan(self) -> LaunchPlan:
        """
        Validates the declarations and produces the launch plan.
        Calling it again on a frozen builder yields an identical plan.

        :raises PlanAbortedError: If an earlier build on this builder failed.
        :raises TopologyError: On any validation failure; the builder is then aborted.
        """
        if self.state == BuildState.ABORTED:
            raise PlanAbortedError(f"Topology '{self.name}' failed to build; declare it again")
        if self.state == BuildState.FROZEN:
            return self.planner.build_plan(self.registry, self.graph, self.resolver)

        self.state = BuildState.VALIDATING
        try:
            plan = self.planner.build_plan(self.registry, self.graph, self.resolver)
        except TopologyError as e:
            self.state = BuildState.ABORTED
            log.error("plan_failed", topology=self.name, error=str(e))
            raise
        self.state = BuildState.FROZEN
        return plan

    def _register(self, resource: Resource) -> Resource:
        self._ensure_declaring()
        return self.registry.register(resource)

    def _ensure_declaring(self):
        if self.state == BuildState.ABORTED:
            raise PlanAbortedError(f"Topology '{self.name}' failed to build; declare it again")
        if self.state != BuildState.DECLARING:
            self.registry.ensure_mutable("declare resources")
