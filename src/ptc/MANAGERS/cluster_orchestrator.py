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
Orchestration of a complete Pulsar test cluster: topology, start-up
ordering, administrative commands and teardown.
"""
import random
import re
import threading
import uuid
from enum import Enum
from typing import Dict, Iterable, List, Optional

from ..errors import BootstrapError, ClusterStateError, ExecutionFailure
from ..MODELS.node_definition import ExecResult, NodeRole
from ..MODELS.settings import ClusterSettings
from ..MODELS.topology_spec import TopologySpec
from ..RUNNERS.command_runner import CommandRunner, ScriptKind
from ..RUNNERS.container_runtime import ContainerRuntime, DockerRuntime
from ..RUNNERS.parallel import failures_of, run_concurrently
from ..UTILS.logging import get_logger
from ..UTILS.selection import pick_random
from .external_services import ExternalServiceAdapter
from .network_manager import ClusterNetwork
from .node_handle import NodeHandle
from .topology import (
    BROKER_HTTP_PORT, BROKER_PORT, CS_NAME, INIT_CLUSTER_COMMAND, PROXY_NAME,
    PULSAR_HOME, ROLE_PROFILES, ZK_NAME, ZK_PORT, RoleProfile,
    functions_worker_profile, node_names,
)

logger = get_logger(__name__)

DEFAULT_TENANT = "public"


class ClusterState(str, Enum):
    """
    Cluster-level lifecycle. ``start`` only moves forward; ``stop`` always ends in STOPPED.
    """
    INITIALIZED = "initialized"
    BOOTSTRAPPING = "bootstrapping"
    CLUSTER_INITIALIZED = "cluster-initialized"
    STORAGE_READY = "storage-ready"
    BROKERS_READY = "brokers-ready"
    RUNNING = "running"
    STOPPED = "stopped"


class PulsarCluster:
    """
    A Pulsar cluster running in containers on a private network.

    Construction creates the network and every node handle except the
    function workers, which are created by ``start``. A failed ``start``
    leaves whatever it started running; ``stop`` (or the context manager)
    reclaims it.
    """

    @classmethod
    def for_spec(cls, spec: TopologySpec,
                 runtime: Optional[ContainerRuntime] = None,
                 settings: Optional[ClusterSettings] = None,
                 rng: Optional[random.Random] = None) -> "PulsarCluster":
        """
        Builds a cluster for ``spec``.
        """
        return cls(spec, runtime=runtime, settings=settings, rng=rng)

    def __init__(self, spec: TopologySpec,
                 runtime: Optional[ContainerRuntime] = None,
                 settings: Optional[ClusterSettings] = None,
                 rng: Optional[random.Random] = None):
        """
        :param spec: Desired cluster shape.
        :param runtime: Container runtime; a local Docker daemon when omitted.
        :param settings: Image, timeouts and parallelism; read from the environment when omitted.
        :param rng: Randomness for node selection. Seed it to make selection reproducible.
        """
        self.spec = spec
        self.cluster_name = spec.cluster_name
        self.settings = settings or ClusterSettings()
        self.runtime = runtime or DockerRuntime()
        self.rng = rng or random.Random()
        self.command_runner = CommandRunner()
        self.log = logger.bind(cluster=self.cluster_name)

        self._lock = threading.Lock()
        self._stop_requested = False
        self.state = ClusterState.INITIALIZED

        self.network = ClusterNetwork(self.runtime, self._network_name())
        self.labels = {"ptc.cluster": self.cluster_name, "ptc.network": self.network.name}
        self.mounts = spec.resource_mounts()

        self.zookeeper = self._new_node(ROLE_PROFILES[NodeRole.ZOOKEEPER], ZK_NAME)
        self.configuration_store = self._new_node(
            ROLE_PROFILES[NodeRole.CONFIGURATION_STORE], CS_NAME)
        self.proxy = self._new_node(ROLE_PROFILES[NodeRole.PROXY], PROXY_NAME)

        self.bookies = self._new_nodes(ROLE_PROFILES[NodeRole.BOOKIE], spec.num_bookies)
        self.brokers = self._new_nodes(ROLE_PROFILES[NodeRole.BROKER], spec.num_brokers)
        self.workers: Dict[str, NodeHandle] = {}

        adapter = ExternalServiceAdapter(self.runtime, self.network,
                                         startup_timeout=self.settings.startup_timeout,
                                         labels=self.labels)
        self.external_services = adapter.adapt_all(spec.external_services)

    def _network_name(self) -> str:
        safe_name = re.sub(r"[^a-zA-Z0-9_.-]", "-", self.cluster_name)
        return f"ptc-{safe_name}-{uuid.uuid4().hex[:8]}"

    def _new_node(self, profile: RoleProfile, name: str) -> NodeHandle:
        node = NodeHandle(
            profile.role,
            name,
            self.runtime,
            self.network,
            image=self.settings.image,
            command=profile.command,
            working_dir=PULSAR_HOME,
            exposed_ports=profile.exposed_ports,
            ready_port=profile.ready_port,
            startup_timeout=self.settings.startup_timeout,
            labels=self.labels,
        )
        return node.configure(name, profile.environment(self.cluster_name, name), self.mounts)

    def _new_nodes(self, profile: RoleProfile, count: int) -> Dict[str, NodeHandle]:
        return {name: self._new_node(profile, name)
                for name in sorted(node_names(profile.role, count))}

    # Lifecycle

    def start(self):
        """
        Brings the cluster up phase by phase.

        A concurrent ``stop`` halts start-up at the next phase boundary; nodes
        of the interrupted phase are stopped again before raising.

        :raises ClusterStateError: If the cluster was already started, or stopped before start-up finished.
        :raises BootstrapError: If any node fails to start or cluster initialization fails.
        """
        with self._lock:
            if self.state != ClusterState.INITIALIZED or self._stop_requested:
                raise ClusterStateError(
                    f"Cluster {self.cluster_name} cannot start from state {self.state.value}")
            self.state = ClusterState.BOOTSTRAPPING

        self._start_nodes("coordination", [self.zookeeper, self.configuration_store])

        self._check_not_stopped()
        self._init_cluster()
        self._advance(ClusterState.CLUSTER_INITIALIZED)

        self._start_nodes("bookie", self.bookies.values())
        self._advance(ClusterState.STORAGE_READY)

        self.start_all_brokers()
        self._advance(ClusterState.BROKERS_READY)

        self._start_nodes("proxy", [self.proxy])
        try:
            service_url = self.get_plain_text_service_url()
            http_service_url = self.get_http_service_url()
        except Exception as e:
            raise BootstrapError(f"Cannot resolve service URLs of {PROXY_NAME}",
                                 {PROXY_NAME: e}) from e
        self.log.info("Pulsar cluster is up",
                      service_url=service_url, http_service_url=http_service_url)

        if self.spec.num_function_workers > 0:
            self._start_function_workers(self.spec.num_function_workers)

        if self.external_services:
            self._start_nodes("external service", self.external_services.values())

        self._advance(ClusterState.RUNNING)

    def _check_not_stopped(self):
        with self._lock:
            self._raise_if_stopped()

    def _raise_if_stopped(self):
        # Caller holds self._lock.
        if self._stop_requested:
            raise ClusterStateError(f"Cluster {self.cluster_name} has been stopped")

    def _advance(self, state: ClusterState):
        with self._lock:
            self._raise_if_stopped()
            self.state = state

    def _init_cluster(self):
        try:
            result = self.zookeeper.exec_command(INIT_CLUSTER_COMMAND)
        except ExecutionFailure as e:
            raise BootstrapError(f"Cluster {self.cluster_name} initialization failed: {e}") from e
        if not result.succeeded:
            raise BootstrapError(
                f"Cluster {self.cluster_name} initialization exited with {result.exit_code}: "
                f"{result.stderr.strip() or result.stdout.strip()}")
        self.log.info("Successfully initialized the cluster")

    def _start_function_workers(self, num_workers: int):
        profile = functions_worker_profile(self.spec.function_runtime_type)
        with self._lock:
            # Registered under the lock so stop() sees them.
            self._raise_if_stopped()
            self.workers.update(self._new_nodes(profile, num_workers))
        self._start_nodes("functions worker", self.workers.values())

    def _start_nodes(self, label: str, nodes: Iterable[NodeHandle]):
        """
        Starts nodes in parallel and waits for all of them.

        :raises ClusterStateError: If the cluster is stopped before or while the nodes start.
        :raises BootstrapError: If any of them failed, after every start attempt has finished.
        """
        nodes = list(nodes)
        self._check_not_stopped()
        outcomes = run_concurrently({node.name: node.start for node in nodes},
                                    max_workers=self.settings.max_parallelism)
        with self._lock:
            interrupted = self._stop_requested
        if interrupted:
            # Reclaim nodes that came up after stop() took its snapshot.
            self._stop_nodes(nodes)
            self._check_not_stopped()

        failures = failures_of(outcomes)
        if failures:
            for name, error in failures.items():
                self.log.error("Failed to start node", node=name, exc_info=error)
            first_error = next(iter(failures.values()))
            raise BootstrapError(f"Failed to start {label} nodes", failures) from first_error
        self.log.info("Successfully started nodes", role=label, count=len(nodes))

    def _stop_nodes(self, nodes: Iterable[NodeHandle]):
        outcomes = run_concurrently({node.name: node.stop for node in nodes},
                                    max_workers=self.settings.max_parallelism)
        for name, error in failures_of(outcomes).items():
            self.log.warning("Failed to stop node", node=name, exc_info=error)

    def all_nodes(self) -> List[NodeHandle]:
        """
        Every node of the cluster, external services included.
        """
        nodes = list(self.workers.values())
        nodes += self.brokers.values()
        nodes += self.bookies.values()
        nodes += [self.proxy, self.configuration_store, self.zookeeper]
        nodes += self.external_services.values()
        return nodes

    def stop(self):
        """
        Stops every node in parallel, then releases the network.

        Individual failures are logged and never raised. Safe to call more
        than once, on a cluster that never started, and while ``start`` runs.
        """
        with self._lock:
            if self._stop_requested:
                return
            self._stop_requested = True
            nodes = self.all_nodes()

        self._stop_nodes(nodes)
        self.network.close()
        with self._lock:
            self.state = ClusterState.STOPPED
        self.log.info("Pulsar cluster stopped")

    def __enter__(self) -> "PulsarCluster":
        try:
            self.start()
        except BaseException:
            self.stop()
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    # Accessors

    def get_plain_text_service_url(self) -> str:
        return f"pulsar://{self.proxy.host}:{self.proxy.mapped_port(BROKER_PORT)}"

    def get_http_service_url(self) -> str:
        return f"http://{self.proxy.host}:{self.proxy.mapped_port(BROKER_HTTP_PORT)}"

    def get_zk_conn_string(self) -> str:
        return f"{self.zookeeper.host}:{self.zookeeper.mapped_port(ZK_PORT)}"

    def get_brokers(self) -> List[NodeHandle]:
        return list(self.brokers.values())

    def get_bookies(self) -> List[NodeHandle]:
        return list(self.bookies.values())

    def get_workers(self) -> List[NodeHandle]:
        return list(self.workers.values())

    def get_proxy(self) -> NodeHandle:
        return self.proxy

    def get_zookeeper(self) -> NodeHandle:
        return self.zookeeper

    def get_configuration_store(self) -> NodeHandle:
        return self.configuration_store

    def get_external_services(self) -> Dict[str, NodeHandle]:
        return dict(self.external_services)

    def get_any_broker(self) -> NodeHandle:
        """
        :raises EmptyPoolError: If the cluster has no brokers.
        """
        return pick_random(self.get_brokers(), NodeRole.BROKER.value, self.rng)

    def get_any_worker(self) -> NodeHandle:
        """
        :raises EmptyPoolError: If the cluster has no function workers.
        """
        return pick_random(self.get_workers(), NodeRole.FUNCTIONS_WORKER.value, self.rng)

    # Commands

    def run_admin_command_on_any_broker(self, *commands: str) -> ExecResult:
        return self._run_on_any_broker(ScriptKind.ADMIN, *commands)

    def run_pulsar_base_command_on_any_broker(self, *commands: str) -> ExecResult:
        return self._run_on_any_broker(ScriptKind.BASE, *commands)

    def run_client_command_on_any_broker(self, *commands: str) -> ExecResult:
        return self._run_on_any_broker(ScriptKind.CLIENT, *commands)

    def _run_on_any_broker(self, script_kind: ScriptKind, *commands: str) -> ExecResult:
        broker = self.get_any_broker()
        return self.command_runner.execute(broker, script_kind, *commands)

    def stop_all_brokers(self):
        """
        Stops every broker in parallel. Failures are logged, not raised.
        """
        outcomes = run_concurrently({b.name: b.stop for b in self.brokers.values()},
                                    max_workers=self.settings.max_parallelism)
        for name, error in failures_of(outcomes).items():
            self.log.warning("Failed to stop broker", node=name, exc_info=error)

    def start_all_brokers(self):
        """
        Starts every broker in parallel.

        :raises ClusterStateError: If the cluster has been stopped.
        :raises BootstrapError: If any broker failed to start.
        """
        self._start_nodes("broker", self.brokers.values())

    def create_namespace(self, ns_name: str, tenant: str = DEFAULT_TENANT) -> ExecResult:
        return self.run_admin_command_on_any_broker(
            "namespaces", "create", f"{tenant}/{ns_name}",
            "--clusters", self.cluster_name)

    def set_deduplication(self, ns_name: str, enabled: bool,
                          tenant: str = DEFAULT_TENANT) -> ExecResult:
        return self.run_admin_command_on_any_broker(
            "namespaces", "set-deduplication", f"{tenant}/{ns_name}",
            "--enable" if enabled else "--disable")
