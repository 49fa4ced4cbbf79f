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
Exceptions raised by the cluster harness.

Bootstrap and execution failures propagate to the caller. Teardown failures
never leave this package: they are logged where they happen.
"""
from typing import Dict, Optional


class ClusterError(Exception):
    """Base class for every error raised by ptc."""


class ClusterStateError(ClusterError):
    """An operation was attempted in a cluster state that does not allow it."""


class NodeStateError(ClusterError):
    """A node was asked to do something its lifecycle state does not allow."""


class NodeStartError(ClusterError):
    """The backing container of a node could not be started or never became ready."""

    def __init__(self, node_name: str, message: str):
        super().__init__(f"Failed to start {node_name}: {message}")
        self.node_name = node_name


class BootstrapError(ClusterError):
    """
    A phase of cluster start-up failed.

    ``failures`` maps every node that failed in the phase to its exception;
    the first of them is chained as ``__cause__`` by the raiser.
    """

    def __init__(self, message: str, failures: Optional[Dict[str, BaseException]] = None):
        self.failures = dict(failures or {})
        if self.failures:
            message = f"{message} (failed: {', '.join(sorted(self.failures))})"
        super().__init__(message)


class ExecutionFailure(ClusterError):
    """A command could not be dispatched to a node."""

    def __init__(self, node_name: str, message: str):
        super().__init__(f"Cannot execute on {node_name}: {message}")
        self.node_name = node_name


class EmptyPoolError(ClusterError, ValueError):
    """Random selection was requested from a role that has no nodes."""

    def __init__(self, role: str):
        super().__init__(f"No {role} is alive")
        self.role = role
