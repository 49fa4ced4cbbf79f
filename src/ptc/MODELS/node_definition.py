"""
Models for cluster nodes: roles, lifecycle states, container specs and
command results.
"""
from typing import List, Dict, Optional
from enum import Enum
from pydantic import BaseModel

from .topology_spec import ResourceMount


class NodeRole(str, Enum):
    """
    The kind of process a node runs.
    """
    ZOOKEEPER = "zookeeper"
    CONFIGURATION_STORE = "configuration-store"
    BOOKIE = "bookie"
    BROKER = "broker"
    PROXY = "proxy"
    FUNCTIONS_WORKER = "functions-worker"
    EXTERNAL = "external"


class NodeState(str, Enum):
    """
    Lifecycle state of a single node.
    """
    NOT_STARTED = "not-started"
    RUNNING = "running"
    STOPPED = "stopped"


class ContainerSpec(BaseModel):
    """
    Everything the container runtime needs to create one node's container.
    """
    name: str
    image: str
    network: str
    alias: str
    hostname: Optional[str] = None
    command: List[str] = []
    working_dir: Optional[str] = None
    environment: Dict[str, str] = {}
    exposed_ports: List[int] = []
    mounts: List[ResourceMount] = []
    labels: Dict[str, str] = {}


class ExecResult(BaseModel):
    """
    Captured outcome of a command run inside a node.
    A non-zero exit code is data, not an error.
    """
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0
