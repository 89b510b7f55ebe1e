"""
Network endpoint bindings, enforcing unique host ports across the topology and
unique endpoint names within a resource.
"""
from typing import Dict, List, Optional, Tuple

from ..MODELS.errors import DuplicateEndpointNameError, DuplicatePortError, UnresolvedReferenceError
from ..MODELS.resource import Endpoint, Resource
from .resource_registry import ResourceRegistry
from ..UTILS.logging import get_logger

log = get_logger("network")


class NetworkManager:
    """
    Attaches endpoints to resources and answers host-port and endpoint lookups.
    """
    def __init__(self, registry: ResourceRegistry):
        """
        Initializes the network manager.

        :param registry: Registry holding the resources endpoints are attached to.
        """
        self.registry = registry

    def add_endpoint(self, resource_name: str, endpoint: Endpoint) -> Endpoint:
        """
        Attaches an endpoint to a resource.

        :param resource_name: The owning resource.
        :param endpoint: The endpoint declaration.
        :return: The attached endpoint, with its name defaulted.
        :raises DuplicatePortError: If the host port is already bound anywhere.
        :raises DuplicateEndpointNameError: If the resource already has an endpoint of that name.
        """
        self.registry.ensure_mutable(f"add endpoint to '{resource_name}'")
        resource = self.registry.lookup(resource_name)
        if resource.find_endpoint(endpoint.name) is not None:
            raise DuplicateEndpointNameError(resource_name, endpoint.name)
        if endpoint.host_port is not None:
            owner = self.host_port_owner(endpoint.host_port)
            if owner is not None:
                raise DuplicatePortError(endpoint.host_port, owner, resource_name)

        resource.endpoints.append(endpoint)
        log.debug(
            "endpoint_added",
            resource=resource_name,
            endpoint=endpoint.name,
            host_port=endpoint.host_port,
            target_port=endpoint.target_port,
            protocol=endpoint.protocol,
        )
        return endpoint

    def host_port_owner(self, port: int) -> Optional[str]:
        """
        Returns the name of the resource binding a host port, if any.
        """
        for resource in self.registry:
            for endpoint in resource.endpoints:
                if endpoint.host_port == port:
                    return resource.name
        return None

    def host_port_map(self) -> Dict[int, Tuple[str, str]]:
        """
        Returns host_port -> (resource, endpoint) for every fixed host port.
        """
        ports = {}
        for resource in self.registry:
            for endpoint in resource.endpoints:
                if endpoint.host_port is not None:
                    ports[endpoint.host_port] = (resource.name, endpoint.name)
        return ports

    def get_endpoint(self, resource_name: str, endpoint_name: str) -> Endpoint:
        """
        :raises UnknownResourceError: If the resource is not registered.
        :raises UnresolvedReferenceError: If the resource has no such endpoint.
        """
        resource = self.registry.lookup(resource_name)
        endpoint = resource.find_endpoint(endpoint_name)
        if endpoint is None:
            raise UnresolvedReferenceError(
                f"Resource '{resource_name}' has no endpoint named '{endpoint_name}'",
                resource=resource_name,
            )
        return endpoint

    def host_for(self, resource_name: str) -> str:
        return self.registry.lookup(resource_name).host

    def validate(self):
        """
        Re-checks every binding, including those on resources that were
        registered with endpoints already attached.
        """
        seen_ports: Dict[int, str] = {}
        for resource in self.registry:
            self._check_resource(resource, seen_ports)

    def _check_resource(self, resource: Resource, seen_ports: Dict[int, str]):
        names: List[str] = []
        for endpoint in resource.endpoints:
            if endpoint.name in names:
                raise DuplicateEndpointNameError(resource.name, endpoint.name)
            names.append(endpoint.name)
            if endpoint.host_port is None:
                continue
            if endpoint.host_port in seen_ports:
                raise DuplicatePortError(endpoint.host_port, seen_ports[endpoint.host_port], resource.name)
            seen_ports[endpoint.host_port] = resource.name
