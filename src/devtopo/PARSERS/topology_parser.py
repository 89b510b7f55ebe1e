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
Parser for topology declaration files (YAML).
"""
import os
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import ValidationError

from ..MANAGERS.topology_builder import TopologyBuilder
from ..MANAGERS.volume_manager import infer_kind
from ..MODELS.errors import TopologyParseError
from ..MODELS.resource import Endpoint, EndpointReference, EnvValue, VariableReference, VolumeBinding
from ..UTILS.string_interpolation import EnvironmentInterpolator

RESOURCE_KEYS = {
    "kind", "image", "type", "hostname", "environment", "endpoints", "volumes",
    "parent", "wait_for", "entrypoint", "args", "host_port", "data_volume",
}


class TopologyParser:
    """
    Parser for topology declaration files.

    Resources are registered first, then their bindings and environment, then
    their relationships, so a file may refer to resources declared further down.
    """
    def __init__(self, context: Optional[Mapping[str, str]] = None):
        """
        Initializes the parser with an optional context for ${VAR} interpolation.

        :param context: Variables for interpolation, defaults to the process environment.
        """
        self.context = dict(os.environ) if context is None else dict(context)

    def parse(self, topology_path: str) -> TopologyBuilder:
        """
        Parses a topology file from a path.

        :param topology_path: Path to the YAML file.
        :return: A builder holding every declaration, ready for build_plan().
        """
        try:
            with open(topology_path, 'r') as f:
                content = f.read()
        except OSError as e:
            raise TopologyParseError(f"Cannot read {topology_path}: {e}") from e
        default_name = os.path.splitext(os.path.basename(topology_path))[0]
        return self.parse_from_string(content, default_name=default_name)

    def parse_from_string(self, content: str, default_name: str = "devtopo") -> TopologyBuilder:
        """
        Parses a topology from YAML content.

        :param content: YAML content.
        :param default_name: Topology name when the document has no ``name`` key.
        :return: A builder holding every declaration.
        :raises TopologyParseError: On malformed YAML or declarations.
        """
        try:
            data = yaml.safe_load(content) if content.strip() else None
        except yaml.YAMLError as e:
            raise TopologyParseError(f"Invalid YAML: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise TopologyParseError("Topology document must be a mapping")

        try:
            data = EnvironmentInterpolator.interpolate_data(data, self.context)
        except KeyError as e:
            raise TopologyParseError(f"Variable {e.args[0]} is not set and has no default") from None

        resources = data.get('resources') or {}
        if not isinstance(resources, dict):
            raise TopologyParseError("'resources' must be a mapping of name to declaration")

        builder = TopologyBuilder(name=str(data.get('name') or default_name))
        specs = {}
        for name, spec in resources.items():
            spec = spec or {}
            if not isinstance(spec, dict):
                raise TopologyParseError(f"Resource '{name}' must be a mapping")
            unknown = set(spec) - RESOURCE_KEYS
            if unknown:
                raise TopologyParseError(f"Resource '{name}' has unknown keys: {', '.join(sorted(unknown))}")
            specs[str(name)] = spec

        try:
            for name, spec in specs.items():
                self._declare(builder, name, spec)
            for name, spec in specs.items():
                self._bind(builder, name, spec)
            for name, spec in specs.items():
                self._relate(builder, name, spec)
        except ValidationError as e:
            raise TopologyParseError(f"Invalid declaration: {e}") from e

        return builder

    def _declare(self, builder: TopologyBuilder, name: str, spec: Dict[str, Any]):
        """
        Registers a resource without relationships.
        """
        if 'type' in spec or spec.get('kind') == 'managed-service':
            service_type = spec.get('type') or spec.get('image')
            if not service_type:
                raise TopologyParseError(f"Managed service '{name}' needs a 'type'")
            builder.add_managed_service(
                name,
                service_type,
                host_port=spec.get('host_port'),
                environment=self._parse_environment(name, spec.get('environment')),
                data_volume=bool(spec.get('data_volume', False)),
            )
            return

        if not spec.get('image'):
            raise TopologyParseError(f"Container '{name}' needs an 'image'")
        if spec.get('data_volume'):
            raise TopologyParseError(f"'data_volume' only applies to managed services ('{name}')")
        builder.add_container(
            name,
            spec['image'],
            environment=self._parse_environment(name, spec.get('environment')),
            hostname=spec.get('hostname'),
            entrypoint=self._to_list(spec.get('entrypoint')),
            args=self._to_list(spec.get('args')),
        )

    def _bind(self, builder: TopologyBuilder, name: str, spec: Dict[str, Any]):
        """
        Attaches endpoints and volumes.
        """
        for entry in spec.get('endpoints') or []:
            builder.network.add_endpoint(name, self._parse_endpoint(name, entry))
        for entry in spec.get('volumes') or []:
            builder.volumes.add_volume(name, self._parse_volume(name, entry))

    def _relate(self, builder: TopologyBuilder, name: str, spec: Dict[str, Any]):
        if spec.get('parent'):
            builder.set_parent(name, spec['parent'])
        builder.wait_for(name, self._to_list(spec.get('wait_for')))

    def _parse_environment(self, name: str, env_spec: Any) -> Dict[str, EnvValue]:
        """
        Accepts a mapping or a list of KEY=VALUE strings. Mapping values may be
        references: ``{resource, endpoint, field}`` or ``{resource, variable}``.
        """
        environment: Dict[str, EnvValue] = {}
        if not env_spec:
            return environment
        if isinstance(env_spec, list):
            for e in env_spec:
                if not isinstance(e, str) or '=' not in e:
                    raise TopologyParseError(f"Resource '{name}': environment entry {e!r} is not KEY=VALUE")
                k, v = e.split('=', 1)
                environment[k] = v
            return environment
        if not isinstance(env_spec, dict):
            raise TopologyParseError(f"Resource '{name}': environment must be a mapping or a list")

        for key, value in env_spec.items():
            if isinstance(value, dict):
                if 'variable' in value:
                    environment[str(key)] = VariableReference.model_validate(value)
                else:
                    environment[str(key)] = EndpointReference.model_validate(value)
            elif isinstance(value, bool):
                environment[str(key)] = 'true' if value else 'false'
            elif value is None:
                environment[str(key)] = ''
            else:
                environment[str(key)] = str(value)
        return environment

    def _parse_endpoint(self, name: str, entry: Any) -> Endpoint:
        """
        Accepts a mapping, a bare target port, or ``[host:]target[/protocol]``.
        """
        if isinstance(entry, dict):
            return Endpoint.model_validate(entry)
        if isinstance(entry, int) and not isinstance(entry, bool):
            return Endpoint(target_port=entry)
        if not isinstance(entry, str):
            raise TopologyParseError(f"Resource '{name}': cannot parse endpoint {entry!r}")

        protocol = 'tcp'
        if '/' in entry:
            entry, protocol = entry.split('/', 1)
        parts = entry.split(':')
        try:
            if len(parts) == 2:
                return Endpoint(host_port=int(parts[0]), target_port=int(parts[1]), protocol=protocol)
            if len(parts) == 1:
                return Endpoint(target_port=int(parts[0]), protocol=protocol)
        except ValueError:
            pass
        raise TopologyParseError(f"Resource '{name}': cannot parse endpoint {entry!r}")

    def _parse_volume(self, name: str, entry: Any) -> VolumeBinding:
        """
        Accepts a mapping or ``source:target[:ro]``.
        """
        if isinstance(entry, dict):
            entry = dict(entry)
            if 'target' in entry and 'target_path' not in entry:
                entry['target_path'] = entry.pop('target')
            if 'kind' not in entry and 'source' in entry:
                entry['kind'] = infer_kind(str(entry['source']))
            return VolumeBinding.model_validate(entry)
        if isinstance(entry, str):
            parts = entry.split(':')
            if len(parts) in (2, 3) and (len(parts) == 2 or parts[2] in ('ro', 'rw')):
                return VolumeBinding(
                    kind=infer_kind(parts[0]),
                    source=parts[0],
                    target_path=parts[1],
                    read_only=len(parts) == 3 and parts[2] == 'ro',
                )
        raise TopologyParseError(f"Resource '{name}': cannot parse volume {entry!r}")

    def _to_list(self, val: Any) -> List[str]:
        """
        Helper to ensure a value is a list of strings.
        """
        if val is None:
            return []
        if isinstance(val, str):
            return [val]
        return [str(v) for v in val]
