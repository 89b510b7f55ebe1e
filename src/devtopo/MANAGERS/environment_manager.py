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
Resolution of environment variables that refer to other resources' endpoints
or environment variables.
"""
from typing import Dict, List, Optional

from ..MODELS.errors import SelfReferenceCycleError, UnresolvedReferenceError
from ..MODELS.resource import (
    EndpointReference,
    EnvValue,
    ReferenceField,
    Resource,
    VariableReference,
)
from .resource_registry import ResourceRegistry
from ..UTILS.logging import get_logger

log = get_logger("environment")


class EnvironmentResolver:
    """
    Turns deferred environment values into strings once the graph is known.

    Values are resolved into a scratch map first and only cached on the
    resources when every resource resolved, so a failed build leaves no trace.
    After :meth:`freeze`, cached values are returned and nothing is resolved again.
    """
    def __init__(self, registry: ResourceRegistry):
        """
        :param registry: Registry used to look up referenced resources.
        """
        self.registry = registry
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, reference: EnvValue) -> str:
        """
        Resolves a single value.

        :param reference: A literal string, an endpoint reference or a variable reference.
        :return: The resolved string.
        :raises UnresolvedReferenceError: If a referenced resource, endpoint or variable is missing.
        :raises SelfReferenceCycleError: If variable references loop.
        """
        return self._resolve_value(reference, [], {})

    def resolve_environment(self, resource_name: str) -> Dict[str, str]:
        """
        Returns the fully resolved environment of one resource.
        """
        resource = self.registry.lookup(resource_name)
        if self._frozen and resource.resolved_environment is not None:
            return dict(resource.resolved_environment)
        return self._resolve_resource(resource, {})

    def resolve_all(self) -> Dict[str, Dict[str, str]]:
        """
        Resolves every resource's environment without caching anything.

        :return: Resource name -> resolved environment.
        """
        memo: Dict[str, str] = {}
        resolved = {}
        for resource in self.registry:
            resolved[resource.name] = self._resolve_resource(resource, memo)
        return resolved

    def commit(self, resolved: Dict[str, Dict[str, str]]):
        """
        Caches the output of :meth:`resolve_all` on the resources and freezes the resolver.
        """
        for name, environment in resolved.items():
            self.registry.lookup(name)._resolved_environment = dict(environment)
        self._frozen = True
        log.debug("environment_committed", resources=len(resolved))

    def freeze(self):
        self._frozen = True

    def _resolve_resource(self, resource: Resource, memo: Dict[str, str]) -> Dict[str, str]:
        environment = {}
        for variable, value in resource.environment.items():
            key = f"{resource.name}.{variable}"
            if key not in memo:
                memo[key] = self._resolve_value(value, [key], memo)
            environment[variable] = memo[key]
        return environment

    def _resolve_value(self, value: EnvValue, chain: List[str], memo: Dict[str, str]) -> str:
        if isinstance(value, str):
            return value
        if isinstance(value, EndpointReference):
            return self._resolve_endpoint(value)
        if isinstance(value, VariableReference):
            return self._resolve_variable(value, chain, memo)
        raise TypeError(f"Unsupported environment value: {value!r}")

    def _resolve_endpoint(self, reference: EndpointReference) -> str:
        target = self._target(reference.resource)
        endpoint = target.find_endpoint(reference.endpoint)
        if endpoint is None:
            raise UnresolvedReferenceError(
                f"Resource '{reference.resource}' has no endpoint named '{reference.endpoint}'",
                resource=reference.resource,
            )

        host = target.host
        port = endpoint.target_port
        if reference.field == ReferenceField.HOST:
            return host
        if reference.field == ReferenceField.PORT:
            return str(port)
        if reference.field == ReferenceField.AUTHORITY:
            return f"{host}:{port}"
        return f"{endpoint.protocol}://{host}:{port}"

    def _resolve_variable(self, reference: VariableReference, chain: List[str],
                          memo: Dict[str, str]) -> str:
        key = f"{reference.resource}.{reference.variable}"
        if key in chain:
            raise SelfReferenceCycleError(chain[chain.index(key):] + [key])
        if key in memo:
            return memo[key]

        target = self._target(reference.resource)
        cached = self._cached(target, reference.variable)
        if cached is not None:
            return cached
        if reference.variable not in target.environment:
            raise UnresolvedReferenceError(
                f"Resource '{reference.resource}' has no environment variable '{reference.variable}'",
                resource=reference.resource,
            )

        value = self._resolve_value(target.environment[reference.variable], chain + [key], memo)
        memo[key] = value
        return value

    def _cached(self, resource: Resource, variable: str) -> Optional[str]:
        if not self._frozen or resource.resolved_environment is None:
            return None
        return resource.resolved_environment.get(variable)

    def _target(self, name: str) -> Resource:
        if name not in self.registry:
            raise UnresolvedReferenceError(f"Referenced resource '{name}' is not declared", resource=name)
        return self.registry.lookup(name)
