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
Execution of a launch plan against an external launcher, wave by wave.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..MODELS.errors import LaunchError
from ..MODELS.launch_plan import LaunchPlan, ResourceDescriptor
from ..UTILS.logging import get_logger
from ..UTILS.settings import TopologySettings

log = get_logger("executor")


@dataclass
class ReadyStatus:
    """
    What a launcher reports once a resource is ready.
    """
    name: str
    ready: bool = True
    detail: str = ""


class Launcher(Protocol):
    """
    Capability the plan is executed against. The readiness signal for each
    resource kind is up to the implementation.
    """
    def launch(self, descriptor: ResourceDescriptor) -> Any:
        """Starts a resource and returns a handle for it."""

    def await_ready(self, handle: Any, timeout: float) -> ReadyStatus:
        """Blocks until the resource is ready; raises TimeoutError otherwise."""


@dataclass
class DryRunLauncher:
    """
    Launcher that starts nothing: it records each launch and reports ready at once.
    """
    launched: List[str] = field(default_factory=list)

    def launch(self, descriptor: ResourceDescriptor) -> ResourceDescriptor:
        log.info(
            "dry_run_launch",
            resource=descriptor.name,
            image=descriptor.image,
            wave=descriptor.wave,
            ports=[e.host_port for e in descriptor.endpoints if e.host_port],
        )
        self.launched.append(descriptor.name)
        return descriptor

    def await_ready(self, handle: ResourceDescriptor, timeout: float) -> ReadyStatus:
        return ReadyStatus(name=handle.name, detail="dry run")


class PlanExecutor:
    """
    Runs a plan: every resource of a wave is launched concurrently, and the
    next wave only starts once the whole wave is ready.
    """
    def __init__(self, launcher: Launcher, settings: Optional[TopologySettings] = None):
        """
        :param launcher: Starts resources and waits for them.
        :param settings: Provides ready_timeout, ready_retries and max_parallel.
        """
        self.launcher = launcher
        self.settings = settings or TopologySettings()

    def execute(self, plan: LaunchPlan) -> Dict[str, ReadyStatus]:
        """
        Executes the plan.

        :return: Resource name -> ready status, for every resource.
        :raises LaunchError: When a resource fails to launch or never becomes ready.
        """
        statuses: Dict[str, ReadyStatus] = {}
        for number, wave in enumerate(plan.waves):
            log.info("wave_starting", wave=number, resources=[d.name for d in wave])
            workers = min(self.settings.max_parallel, len(wave)) or 1
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {d.name: pool.submit(self._start, d) for d in wave}
                errors = []
                for name, future in futures.items():
                    try:
                        statuses[name] = future.result()
                    except LaunchError as e:
                        errors.append(e)
            if errors:
                raise errors[0]
            log.info("wave_ready", wave=number)
        return statuses

    def _start(self, descriptor: ResourceDescriptor) -> ReadyStatus:
        try:
            handle = self.launcher.launch(descriptor)
        except Exception as e:
            log.error("launch_failed", resource=descriptor.name, error=str(e))
            raise LaunchError(descriptor.name, descriptor.wave, str(e)) from e

        retrying = Retrying(
            stop=stop_after_attempt(self.settings.ready_retries),
            wait=wait_exponential(multiplier=0.1, max=5),
            retry=retry_if_exception_type(TimeoutError),
            before_sleep=lambda state: log.warning(
                "ready_timeout_retry", resource=descriptor.name, attempt=state.attempt_number,
            ),
            reraise=True,
        )
        try:
            status = retrying(self.launcher.await_ready, handle, self.settings.ready_timeout)
        except TimeoutError as e:
            raise LaunchError(descriptor.name, descriptor.wave, f"not ready: {e}") from e
        if not status.ready:
            raise LaunchError(descriptor.name, descriptor.wave, status.detail or "reported not ready")
        log.info("resource_ready", resource=descriptor.name)
        return status
