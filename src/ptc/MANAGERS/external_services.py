"""
Folding caller-owned auxiliary containers into a cluster.
"""
from typing import Dict, Optional

from ..MODELS.node_definition import NodeRole
from ..MODELS.topology_spec import ExternalService
from ..RUNNERS.container_runtime import ContainerRuntime
from .network_manager import ClusterNetwork
from .node_handle import NodeHandle


class ExternalServiceAdapter:
    """
    Wraps each external service in a ``NodeHandle`` joined to the cluster
    network under its alias. Start is deferred to the orchestrator's last
    phase; the handles are part of the cluster's stop set.
    """
    def __init__(self, runtime: ContainerRuntime, network: ClusterNetwork,
                 startup_timeout: float = 120.0, labels: Optional[Dict[str, str]] = None):
        self.runtime = runtime
        self.network = network
        self.startup_timeout = startup_timeout
        self.labels = dict(labels or {})

    def adapt(self, alias: str, service: ExternalService) -> NodeHandle:
        """
        Builds the handle for one service.
        """
        handle = NodeHandle(
            NodeRole.EXTERNAL,
            alias,
            self.runtime,
            self.network,
            image=service.image,
            command=service.command,
            exposed_ports=service.exposed_ports,
            ready_port=service.ready_port,
            startup_timeout=self.startup_timeout,
            labels=self.labels,
        )
        return handle.configure(alias, dict(service.environment))

    def adapt_all(self, services: Dict[str, ExternalService]) -> Dict[str, NodeHandle]:
        """
        Builds handles for every service, keyed by alias in sorted order.
        """
        return {alias: self.adapt(alias, services[alias]) for alias in sorted(services)}
