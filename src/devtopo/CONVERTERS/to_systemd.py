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
Converter for generating systemd units that run each planned resource with docker.
"""
import os
import shlex
from typing import Dict, List

from jinja2 import Template

from ..MODELS.launch_plan import LaunchPlan, ResourceDescriptor
from ..MODELS.resource import VolumeKind
from ..MODELS.service_catalog import image_for
from ..UTILS.logging import get_logger

log = get_logger("systemd")

SYSTEMD_TEMPLATE = """[Unit]
Description={{ project }} resource: {{ name }} (wave {{ wave }})
After=docker.service {{ network_unit }}{% for dep in wait_for %} {{ project }}-{{ dep }}.service{% endfor %}
Requires=docker.service {{ network_unit }}{% for dep in wait_for %} {{ project }}-{{ dep }}.service{% endfor %}
{% if parent %}PartOf={{ project }}-{{ parent }}.service
{% endif %}
[Service]
Type=simple
ExecStartPre=-/usr/bin/docker rm -f {{ project }}-{{ name }}
ExecStart={{ command }}
ExecStop=/usr/bin/docker stop {{ project }}-{{ name }}
Restart=on-failure

[Install]
WantedBy=multi-user.target
"""

NETWORK_TEMPLATE = """[Unit]
Description={{ project }} network
After=docker.service
Requires=docker.service

[Service]
Type=oneshot
RemainAfterExit=yes
ExecStart=-/usr/bin/docker network create {{ project }}
ExecStop=-/usr/bin/docker network rm {{ project }}

[Install]
WantedBy=multi-user.target
"""


class SystemdConverter:
    """
    Converts a launch plan into one systemd unit file per resource, plus a
    oneshot unit that creates the docker network the resources join.
    """

    def __init__(self, plan: LaunchPlan, project: str = "devtopo", base_dir: str = "."):
        """
        Initializes the systemd converter.

        :param plan: The plan to convert.
        :param project: Prefix for unit and container names.
        :param base_dir: Directory relative bind mount sources are resolved against.
        """
        self.plan = plan
        self.project = project
        self.base_dir = os.path.abspath(base_dir)
        self.template = Template(SYSTEMD_TEMPLATE)
        self.network_template = Template(NETWORK_TEMPLATE)

    @property
    def network_unit(self) -> str:
        return f"{self.project}_network.service"

    def render_unit(self, descriptor: ResourceDescriptor) -> str:
        return self.template.render(
            project=self.project,
            network_unit=self.network_unit,
            name=descriptor.name,
            wave=descriptor.wave,
            wait_for=descriptor.wait_for,
            parent=descriptor.parent,
            command=" ".join(shlex.quote(part) for part in self.docker_command(descriptor)),
        )

    def render(self) -> Dict[str, str]:
        """
        The network unit comes first, then one unit per resource in launch order.

        :return: Unit file name -> content.
        """
        units = {self.network_unit: self.network_template.render(project=self.project)}
        for descriptor in self.plan.resources():
            units[f"{self.project}-{descriptor.name}.service"] = self.render_unit(descriptor)
        return units

    def docker_command(self, descriptor: ResourceDescriptor) -> List[str]:
        command = [
            "/usr/bin/docker", "run", "--rm",
            "--name", f"{self.project}-{descriptor.name}",
            "--hostname", descriptor.hostname,
            "--network", self.project,
        ]
        for endpoint in descriptor.endpoints:
            if endpoint.host_port is not None:
                command += ["-p", f"{endpoint.host_port}:{endpoint.target_port}"]
            else:
                command += ["-p", str(endpoint.target_port)]
        for binding in descriptor.volumes:
            source = binding.source
            if binding.kind == VolumeKind.BIND:
                source = os.path.abspath(os.path.join(self.base_dir, os.path.expanduser(source)))
            else:
                source = f"{self.project}_{source}"
            mount = f"{source}:{binding.target_path}"
            command += ["-v", mount + ":ro" if binding.read_only else mount]
        for key, value in descriptor.environment.items():
            command += ["-e", f"{key}={value}"]
        if descriptor.entrypoint:
            command += ["--entrypoint", descriptor.entrypoint[0]]
        command.append(image_for(descriptor.kind.value, descriptor.image))
        command += list(descriptor.entrypoint[1:]) + list(descriptor.args)
        return command

    def convert(self, output_dir: str = "systemd") -> str:
        """
        Generates systemd service files.

        :param output_dir: The directory where unit files will be created.
        :return: The path to the output directory.
        """
        os.makedirs(output_dir, exist_ok=True)
        for filename, content in self.render().items():
            with open(os.path.join(output_dir, filename), "w") as f:
                f.write(content)
        log.info("systemd_units_written", path=output_dir, units=len(self.plan.resources()))
        return output_dir
