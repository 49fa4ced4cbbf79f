"""
Builds and runs Pulsar tool command lines inside cluster nodes.
"""
from enum import Enum
from typing import List

from ..MANAGERS.node_handle import NodeHandle
from ..MODELS.node_definition import ExecResult


class ScriptKind(str, Enum):
    """
    Pulsar command line tools shipped in the node image.
    """
    ADMIN = "admin"
    BASE = "base"
    CLIENT = "client"


SCRIPT_PATHS = {
    ScriptKind.ADMIN: "/pulsar/bin/pulsar-admin",
    ScriptKind.BASE: "/pulsar/bin/pulsar",
    ScriptKind.CLIENT: "/pulsar/bin/pulsar-client",
}


class CommandRunner:
    """
    Prepends a tool's script path to an argument list and runs it on a node.
    No retries, no timeouts of its own.
    """
    def command_line(self, script_kind: ScriptKind, *args: str) -> List[str]:
        """
        :return: ``[<script path>, *args]``.
        """
        return [SCRIPT_PATHS[ScriptKind(script_kind)], *args]

    def execute(self, node: NodeHandle, script_kind: ScriptKind, *args: str) -> ExecResult:
        """
        Runs the tool on ``node``.

        :raises ExecutionFailure: If the node is not running or the exec fails.
        """
        return node.exec_command(self.command_line(script_kind, *args))
