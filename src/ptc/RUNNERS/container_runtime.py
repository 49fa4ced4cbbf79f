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
Container runtime used to back cluster nodes.

``ContainerRuntime`` is the seam between the orchestrator and whatever
actually runs containers. ``DockerRuntime`` talks to a local Docker daemon.
"""
import abc
from typing import Dict, List, Optional

import docker
from docker.errors import DockerException, ImageNotFound, NotFound
from tenacity import Retrying, retry_if_exception_type, stop_after_delay, wait_fixed

from ..errors import ClusterError, ExecutionFailure, NodeStartError
from ..MODELS.node_definition import ContainerSpec, ExecResult
from ..UTILS.logging import get_logger
from ..UTILS.port_probe import is_port_open

logger = get_logger(__name__)


class ContainerRuntime(abc.ABC):
    """
    Start/stop/exec primitives on containers plus network creation.
    """

    @property
    @abc.abstractmethod
    def host(self) -> str:
        """Address on which mapped ports are reachable from the caller."""

    @abc.abstractmethod
    def create_network(self, name: str) -> str:
        """Creates a private network and returns its id."""

    @abc.abstractmethod
    def remove_network(self, network_id: str) -> None:
        """Removes a network created by ``create_network``."""

    @abc.abstractmethod
    def create_container(self, spec: ContainerSpec) -> str:
        """Creates (but does not start) a container joined to ``spec.network``."""

    @abc.abstractmethod
    def start_container(self, container_id: str) -> None:
        """Starts a created container."""

    @abc.abstractmethod
    def wait_until_ready(self, container_id: str, port: Optional[int], timeout: float) -> None:
        """Blocks until the container serves ``port``, or only until it runs if ``port`` is None."""

    @abc.abstractmethod
    def remove_container(self, container_id: str) -> None:
        """Stops and removes a container. Removing a missing container is a no-op."""

    @abc.abstractmethod
    def exec_in_container(self, container_id: str, argv: List[str]) -> ExecResult:
        """Runs ``argv`` inside a running container and captures its output."""

    @abc.abstractmethod
    def mapped_port(self, container_id: str, port: int) -> int:
        """Returns the host port a container port is published on."""


class NotReadyError(Exception):
    """Raised while polling a container that has not become ready yet."""


class DockerRuntime(ContainerRuntime):
    """
    ``ContainerRuntime`` backed by the Docker SDK.
    """

    def __init__(self, client: Optional[docker.DockerClient] = None,
                 host: str = "localhost",
                 poll_interval: float = 0.5,
                 stop_timeout: int = 10):
        """
        :param client: Docker client; built from the environment when omitted.
        :param host: Address of the Docker host as seen by the caller.
        :param poll_interval: Seconds between readiness probes.
        :param stop_timeout: Seconds to wait for a container to stop before it is killed.
        """
        self.client = client or docker.from_env()
        self._host = host
        self.poll_interval = poll_interval
        self.stop_timeout = stop_timeout

    @property
    def host(self) -> str:
        return self._host

    def create_network(self, name: str) -> str:
        network = self.client.networks.create(name, driver="bridge")
        logger.debug("Created network", network=name, network_id=network.id)
        return network.id

    def remove_network(self, network_id: str) -> None:
        try:
            self.client.networks.get(network_id).remove()
        except NotFound:
            logger.debug("Network already gone", network_id=network_id)

    def create_container(self, spec: ContainerSpec) -> str:
        volumes = {m.source: {"bind": m.target, "mode": "rw"} for m in spec.mounts}
        ports: Dict[str, None] = {f"{p}/tcp": None for p in spec.exposed_ports}
        create_kwargs = dict(
            command=spec.command or None,
            name=spec.name,
            hostname=spec.hostname or spec.alias,
            environment=spec.environment,
            working_dir=spec.working_dir,
            ports=ports,
            volumes=volumes,
            labels=spec.labels,
        )
        try:
            try:
                container = self.client.containers.create(spec.image, **create_kwargs)
            except ImageNotFound:
                logger.info("Pulling image", image=spec.image)
                self.client.images.pull(spec.image)
                container = self.client.containers.create(spec.image, **create_kwargs)
            self.client.networks.get(spec.network).connect(container, aliases=[spec.alias])
        except DockerException as e:
            raise NodeStartError(spec.alias, str(e)) from e
        return container.id

    def start_container(self, container_id: str) -> None:
        try:
            self.client.containers.get(container_id).start()
        except DockerException as e:
            raise NodeStartError(container_id, str(e)) from e

    def wait_until_ready(self, container_id: str, port: Optional[int], timeout: float) -> None:
        retrying = Retrying(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(self.poll_interval),
            retry=retry_if_exception_type(NotReadyError),
            reraise=True,
        )
        try:
            retrying(self._probe, container_id, port)
        except NotReadyError as e:
            raise NodeStartError(container_id, f"not ready after {timeout}s: {e}") from e

    def _probe(self, container_id: str, port: Optional[int]) -> None:
        try:
            container = self.client.containers.get(container_id)
            container.reload()
        except DockerException as e:
            raise NodeStartError(container_id, str(e)) from e

        if container.status in ("exited", "dead"):
            raise NodeStartError(container_id, f"container {container.status} while starting")
        if container.status != "running":
            raise NotReadyError(f"status is {container.status}")
        if port is None:
            return

        host_port = self._published_port(container, port)
        if host_port is None:
            raise NotReadyError(f"port {port} is not published yet")
        if not is_port_open(self.host, host_port):
            raise NotReadyError(f"port {port} is not accepting connections")

    def remove_container(self, container_id: str) -> None:
        try:
            container = self.client.containers.get(container_id)
        except NotFound:
            return
        try:
            container.stop(timeout=self.stop_timeout)
        except DockerException as e:
            logger.warning("Graceful stop failed, forcing removal", container_id=container_id, error=str(e))
        container.remove(force=True, v=True)

    def exec_in_container(self, container_id: str, argv: List[str]) -> ExecResult:
        try:
            container = self.client.containers.get(container_id)
            exit_code, output = container.exec_run(argv, demux=True)
        except DockerException as e:
            raise ExecutionFailure(container_id, str(e)) from e

        stdout, stderr = output if output else (None, None)
        return ExecResult(
            exit_code=exit_code if exit_code is not None else -1,
            stdout=(stdout or b"").decode("utf-8", errors="replace"),
            stderr=(stderr or b"").decode("utf-8", errors="replace"),
        )

    def mapped_port(self, container_id: str, port: int) -> int:
        container = self.client.containers.get(container_id)
        container.reload()
        host_port = self._published_port(container, port)
        if host_port is None:
            raise ClusterError(f"Port {port} is not published by container {container_id}")
        return host_port

    @staticmethod
    def _published_port(container, port: int) -> Optional[int]:
        ports = container.attrs.get("NetworkSettings", {}).get("Ports") or {}
        for binding in ports.get(f"{port}/tcp") or []:
            host_port = binding.get("HostPort")
            if host_port and host_port.isdigit():
                return int(host_port)
        return None
