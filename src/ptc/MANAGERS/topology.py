"""
Per-role node data: names, ports, start commands and environment.

Roles differ only in the data defined here; every node is a plain
``NodeHandle`` configured from its ``RoleProfile``.
"""
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict, List, Optional, Tuple

from ..MODELS.node_definition import NodeRole
from ..MODELS.topology_spec import FunctionRuntimeType, TopologySpec

PULSAR_HOME = "/pulsar"

ZK_PORT = 2181
CS_PORT = 2184
BOOKIE_PORT = 3181
BROKER_PORT = 6650
BROKER_HTTP_PORT = 8080

ZK_NAME = "zookeeper"
CS_NAME = "configuration-store"
PROXY_NAME = "pulsar-proxy"

CS_ADDRESS = f"{CS_NAME}:{CS_PORT}"

INIT_CLUSTER_COMMAND = ["bin/init-cluster.sh"]

THREAD_GROUP_ENV = "PF_threadContainerFactory_threadGroupName"
THREAD_GROUP_NAME = "pf-container-group"

EnvBuilder = Callable[[str, str], Dict[str, str]]


def node_name(role: NodeRole, index: int) -> str:
    """
    Generated name of the ``index``-th node of a scalable role.
    """
    return f"pulsar-{role.value}-{index}"


def node_names(role: NodeRole, count: int) -> List[str]:
    """
    Names ``pulsar-<role>-0`` .. ``pulsar-<role>-<count-1>``.
    """
    return [node_name(role, i) for i in range(count)]


def zookeeper_env(cluster_name: str, name: str) -> Dict[str, str]:
    return {
        "clusterName": cluster_name,
        "zkServers": ZK_NAME,
        "configurationStore": CS_ADDRESS,
        "pulsarNode": node_name(NodeRole.BROKER, 0),
    }


def configuration_store_env(cluster_name: str, name: str) -> Dict[str, str]:
    return {"clusterName": cluster_name}


def bookie_env(cluster_name: str, name: str) -> Dict[str, str]:
    return {
        "zkServers": ZK_NAME,
        "useHostNameAsBookieID": "true",
        "clusterName": cluster_name,
    }


def broker_env(cluster_name: str, name: str) -> Dict[str, str]:
    return {
        "zkServers": ZK_NAME,
        "zookeeperServers": ZK_NAME,
        "configurationStoreServers": CS_ADDRESS,
        "clusterName": cluster_name,
        "brokerServiceCompactionMonitorIntervalInSeconds": "1",
    }


def proxy_env(cluster_name: str, name: str) -> Dict[str, str]:
    return {
        "zkServers": ZK_NAME,
        "zookeeperServers": ZK_NAME,
        "configurationStoreServers": CS_ADDRESS,
        "clusterName": cluster_name,
    }


def functions_worker_env(cluster_name: str, name: str,
                         runtime_type: FunctionRuntimeType) -> Dict[str, str]:
    """
    Worker environment. THREAD mode adds the thread group name; nothing else
    differs between the two runtime types.
    """
    first_broker = node_name(NodeRole.BROKER, 0)
    env = {
        "PF_workerId": name,
        "PF_workerHostname": name,
        "PF_workerPort": str(BROKER_HTTP_PORT),
        "PF_pulsarFunctionsCluster": cluster_name,
        "PF_pulsarServiceUrl": f"pulsar://{first_broker}:{BROKER_PORT}",
        "PF_pulsarWebServiceUrl": f"http://{first_broker}:{BROKER_HTTP_PORT}",
        "clusterName": cluster_name,
        "zookeeperServers": ZK_NAME,
        "zkServers": ZK_NAME,
    }
    if runtime_type == FunctionRuntimeType.THREAD:
        env[THREAD_GROUP_ENV] = THREAD_GROUP_NAME
    return env


@dataclass(frozen=True)
class RoleProfile:
    """
    How nodes of one role are started and configured.
    """
    role: NodeRole
    command: List[str]
    env_builder: EnvBuilder
    exposed_ports: List[int] = field(default_factory=list)
    ready_port: Optional[int] = None

    def environment(self, cluster_name: str, name: str) -> Dict[str, str]:
        return self.env_builder(cluster_name, name)


ROLE_PROFILES: Dict[NodeRole, RoleProfile] = {
    NodeRole.ZOOKEEPER: RoleProfile(
        NodeRole.ZOOKEEPER, ["bin/run-local-zk.sh"], zookeeper_env, [ZK_PORT], ZK_PORT),
    NodeRole.CONFIGURATION_STORE: RoleProfile(
        NodeRole.CONFIGURATION_STORE, ["bin/run-global-zk.sh"], configuration_store_env,
        [CS_PORT], CS_PORT),
    NodeRole.BOOKIE: RoleProfile(
        NodeRole.BOOKIE, ["bin/run-bookie.sh"], bookie_env, [BOOKIE_PORT], BOOKIE_PORT),
    NodeRole.BROKER: RoleProfile(
        NodeRole.BROKER, ["bin/run-broker.sh"], broker_env,
        [BROKER_PORT, BROKER_HTTP_PORT], BROKER_HTTP_PORT),
    NodeRole.PROXY: RoleProfile(
        NodeRole.PROXY, ["bin/run-proxy.sh"], proxy_env,
        [BROKER_PORT, BROKER_HTTP_PORT], BROKER_HTTP_PORT),
}


def functions_worker_profile(runtime_type: FunctionRuntimeType) -> RoleProfile:
    return RoleProfile(
        NodeRole.FUNCTIONS_WORKER,
        ["bin/run-functions-worker.sh"],
        partial(functions_worker_env, runtime_type=runtime_type),
        [BROKER_HTTP_PORT],
        BROKER_HTTP_PORT,
    )


def plan_nodes(spec: TopologySpec) -> List[Tuple[NodeRole, str, Dict[str, str]]]:
    """
    Every node a cluster for ``spec`` will run, in start order, with its
    environment. External services are listed with their own environment.
    """
    cluster = spec.cluster_name
    planned = [
        (NodeRole.ZOOKEEPER, ZK_NAME, zookeeper_env(cluster, ZK_NAME)),
        (NodeRole.CONFIGURATION_STORE, CS_NAME, configuration_store_env(cluster, CS_NAME)),
    ]
    for role, count in ((NodeRole.BOOKIE, spec.num_bookies), (NodeRole.BROKER, spec.num_brokers)):
        profile = ROLE_PROFILES[role]
        planned.extend((role, name, profile.environment(cluster, name))
                       for name in node_names(role, count))
    planned.append((NodeRole.PROXY, PROXY_NAME, proxy_env(cluster, PROXY_NAME)))

    worker_profile = functions_worker_profile(spec.function_runtime_type)
    planned.extend((NodeRole.FUNCTIONS_WORKER, name, worker_profile.environment(cluster, name))
                   for name in node_names(NodeRole.FUNCTIONS_WORKER, spec.num_function_workers))

    for alias, service in sorted(spec.external_services.items()):
        planned.append((NodeRole.EXTERNAL, alias, dict(service.environment)))
    return planned
