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
Lifecycle management for a single container-backed cluster node.
"""
from typing import Dict, List, Optional

from ..errors import ClusterError, ExecutionFailure, NodeStartError, NodeStateError
from ..MODELS.node_definition import ContainerSpec, ExecResult, NodeRole, NodeState
from ..MODELS.topology_spec import ResourceMount
from ..RUNNERS.container_runtime import ContainerRuntime
from ..UTILS.logging import get_logger
from .network_manager import ClusterNetwork

logger = get_logger(__name__)


class NodeHandle:
    """
    One node of the cluster. All roles share this class; what differs
    between roles (environment, command, ports) is data handed in by the
    orchestrator.
    """
    def __init__(self,
                 role: NodeRole,
                 name: str,
                 runtime: ContainerRuntime,
                 network: ClusterNetwork,
                 image: str,
                 command: Optional[List[str]] = None,
                 working_dir: Optional[str] = None,
                 exposed_ports: Optional[List[int]] = None,
                 ready_port: Optional[int] = None,
                 startup_timeout: float = 120.0,
                 labels: Optional[Dict[str, str]] = None):
        """
        Initializes the handle. Nothing is created on the runtime until ``start``.

        :param role: Kind of process this node runs.
        :param name: Generated node name, also the default network alias.
        :param runtime: Runtime that creates the backing container.
        :param network: Network the node joins.
        :param image: Container image.
        :param command: Command run by the container, image default when empty.
        :param working_dir: Working directory inside the container.
        :param exposed_ports: Container ports published on the runtime host.
        :param ready_port: Port that must accept connections before the node counts as started.
        :param startup_timeout: Seconds to wait for readiness.
        :param labels: Labels attached to the container.
        """
        self.role = role
        self.name = name
        self.runtime = runtime
        self.network = network
        self.image = image
        self.command = list(command or [])
        self.working_dir = working_dir
        self.exposed_ports = list(exposed_ports or [])
        self.ready_port = ready_port
        self.startup_timeout = startup_timeout
        self.labels = dict(labels or {})

        self.alias = name
        self.environment: Dict[str, str] = {}
        self.mounts: List[ResourceMount] = []
        self.state = NodeState.NOT_STARTED
        self.container_id: Optional[str] = None

    def configure(self, network_alias: str, env_vars: Dict[str, str],
                  mounts: Optional[List[ResourceMount]] = None) -> "NodeHandle":
        """
        Attaches network identity, environment and mounts. Must precede ``start``.
        """
        self.alias = network_alias
        self.environment.update(env_vars)
        if mounts:
            self.mounts.extend(mounts)
        return self

    @property
    def container_name(self) -> str:
        return f"{self.network.name}-{self.name}"

    def container_spec(self) -> ContainerSpec:
        return ContainerSpec(
            name=self.container_name,
            image=self.image,
            network=self.network.name,
            alias=self.alias,
            hostname=self.alias,
            command=self.command,
            working_dir=self.working_dir,
            environment=self.environment,
            exposed_ports=self.exposed_ports,
            mounts=self.mounts,
            labels=self.labels,
        )

    def start(self):
        """
        Creates and starts the backing container and waits until it is ready.
        A stopped node may be started again; it gets a fresh container. A
        container left behind by a failed start is removed first.

        :raises NodeStateError: If the node is already running.
        :raises NodeStartError: If the container fails to start or become ready.
        """
        if self.state == NodeState.RUNNING:
            raise NodeStateError(f"{self.name} is already running")

        logger.debug("Starting node", node=self.name, role=self.role.value)
        try:
            if self.container_id is not None:
                logger.debug("Removing stale container", node=self.name, container_id=self.container_id)
                self.runtime.remove_container(self.container_id)
                self.container_id = None
            self.container_id = self.runtime.create_container(self.container_spec())
            self.runtime.start_container(self.container_id)
            self.runtime.wait_until_ready(self.container_id, self.ready_port, self.startup_timeout)
        except ClusterError:
            raise
        except Exception as e:
            raise NodeStartError(self.name, str(e)) from e

        self.state = NodeState.RUNNING
        logger.info("Node started", node=self.name, role=self.role.value)

    def stop(self):
        """
        Stops and removes the backing container. No-op if there is none.
        """
        if self.container_id is None:
            return
        self.runtime.remove_container(self.container_id)
        self.container_id = None
        self.state = NodeState.STOPPED
        logger.debug("Node stopped", node=self.name)

    def exec_command(self, argv: List[str]) -> ExecResult:
        """
        Runs a command inside the node.

        :param argv: Command and arguments.
        :return: Captured output and exit code. A non-zero exit is not an error.
        :raises ExecutionFailure: If the node is not running or the command cannot be dispatched.
        """
        if self.state != NodeState.RUNNING or self.container_id is None:
            raise ExecutionFailure(self.name, f"node is {self.state.value}")

        logger.debug("Executing command", node=self.name, argv=argv)
        try:
            return self.runtime.exec_in_container(self.container_id, list(argv))
        except ClusterError:
            raise
        except Exception as e:
            raise ExecutionFailure(self.name, str(e)) from e

    def mapped_port(self, port: int) -> int:
        """
        Returns the runtime host port a container port is published on.
        """
        if self.container_id is None:
            raise NodeStateError(f"{self.name} has no running container")
        return self.runtime.mapped_port(self.container_id, port)

    @property
    def host(self) -> str:
        return self.runtime.host

    def __repr__(self) -> str:
        return f"NodeHandle(role={self.role.value}, name={self.name}, state={self.state.value})"
