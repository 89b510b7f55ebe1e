"""
Converter that renders a launch plan as a docker-compose document.
"""
import os
from typing import Any, Dict

import yaml

from ..MODELS.launch_plan import LaunchPlan, ResourceDescriptor
from ..MODELS.resource import VolumeKind
from ..MODELS.service_catalog import image_for
from ..UTILS.logging import get_logger

log = get_logger("compose")


class ComposeConverter:
    """
    Converts a launch plan into a docker-compose file.
    Wait-for edges become ``depends_on``; waves are implied by them.
    """
    def __init__(self, plan: LaunchPlan, project: str = "devtopo"):
        """
        :param plan: The plan to convert.
        :param project: Compose project name.
        """
        self.plan = plan
        self.project = project

    def to_dict(self) -> Dict[str, Any]:
        services = {}
        volumes: Dict[str, Dict] = {}
        for descriptor in self.plan.resources():
            services[descriptor.name] = self._service(descriptor)
            for binding in descriptor.volumes:
                if binding.kind == VolumeKind.VOLUME:
                    volumes.setdefault(binding.source, {})

        document: Dict[str, Any] = {'name': self.project, 'services': services}
        if volumes:
            document['volumes'] = volumes
        return document

    def render(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)

    def convert(self, output_dir: str = "dist") -> str:
        """
        Writes ``docker-compose.yml`` into the output directory.

        :return: Path of the written file.
        """
        os.makedirs(output_dir, exist_ok=True)
        path = os.path.join(output_dir, "docker-compose.yml")
        with open(path, 'w') as f:
            f.write(self.render())
        log.info("compose_written", path=path, services=len(self.plan.resources()))
        return path

    def _service(self, descriptor: ResourceDescriptor) -> Dict[str, Any]:
        service: Dict[str, Any] = {
            'image': image_for(descriptor.kind.value, descriptor.image),
            'hostname': descriptor.hostname,
        }
        if descriptor.entrypoint:
            service['entrypoint'] = list(descriptor.entrypoint)
        if descriptor.args:
            service['command'] = list(descriptor.args)
        if descriptor.environment:
            service['environment'] = dict(descriptor.environment)

        ports = []
        for endpoint in descriptor.endpoints:
            if endpoint.host_port is not None:
                ports.append(f"{endpoint.host_port}:{endpoint.target_port}")
            else:
                ports.append(str(endpoint.target_port))
        if ports:
            service['ports'] = ports

        mounts = []
        for binding in descriptor.volumes:
            mount = f"{binding.source}:{binding.target_path}"
            mounts.append(mount + ":ro" if binding.read_only else mount)
        if mounts:
            service['volumes'] = mounts

        if descriptor.wait_for:
            service['depends_on'] = {
                target: {'condition': 'service_started'} for target in descriptor.wait_for
            }
        if descriptor.parent:
            service['labels'] = {'devtopo.parent': descriptor.parent}
        return service
