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
Shared fixtures: an in-memory container runtime that records every call.
"""
import itertools
import random
import threading

import pytest

from ptc.MANAGERS.cluster_orchestrator import PulsarCluster
from ptc.MODELS.node_definition import ExecResult
from ptc.MODELS.settings import ClusterSettings
from ptc.MODELS.topology_spec import TopologySpec
from ptc.RUNNERS.container_runtime import ContainerRuntime


class FakeRuntime(ContainerRuntime):
    """
    Records calls as ``(operation, subject)`` tuples in order.
    Set ``fail_start``/``fail_stop`` to aliases that should fail.
    ``hold_ready`` maps an alias to ``(entered, release)`` events that park its readiness wait.
    """

    def __init__(self):
        self.calls = []
        self.networks = {}
        self.containers = {}
        self.running = set()
        self.fail_start = set()
        self.fail_stop = set()
        self.fail_create_network = False
        self.fail_remove_network = False
        self.exec_results = {}
        self.hold_ready = {}
        self._ids = itertools.count()
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def ops(self, operation):
        return [call[1] for call in self.calls if call[0] == operation]

    def index_of(self, operation, subject):
        return self.calls.index((operation, subject))

    @property
    def host(self):
        return "localhost"

    def create_network(self, name):
        if self.fail_create_network:
            raise RuntimeError("no networks for you")
        self._record("create_network", name)
        network_id = f"net-{name}"
        self.networks[network_id] = name
        return network_id

    def remove_network(self, network_id):
        self._record("remove_network", network_id)
        if self.fail_remove_network:
            raise RuntimeError("network busy")
        self.networks.pop(network_id, None)

    def create_container(self, spec):
        container_id = f"c{next(self._ids)}-{spec.alias}"
        with self._lock:
            self.containers[container_id] = spec
        self._record("create", spec.alias)
        return container_id

    def alias(self, container_id):
        return self.containers[container_id].alias

    def start_container(self, container_id):
        alias = self.alias(container_id)
        if alias in self.fail_start:
            raise RuntimeError(f"{alias} refused to start")
        self._record("start", alias)
        with self._lock:
            self.running.add(container_id)

    def wait_until_ready(self, container_id, port, timeout):
        alias = self.alias(container_id)
        if alias in self.hold_ready:
            entered, release = self.hold_ready[alias]
            entered.set()
            release.wait(5)
        self._record("ready", alias)

    def remove_container(self, container_id):
        alias = self.alias(container_id)
        self._record("remove", alias)
        if alias in self.fail_stop:
            raise RuntimeError(f"{alias} is stuck")
        with self._lock:
            self.running.discard(container_id)

    def exec_in_container(self, container_id, argv):
        self._record("exec", (self.alias(container_id), tuple(argv)))
        return self.exec_results.get(tuple(argv), ExecResult(exit_code=0, stdout="ok"))

    def mapped_port(self, container_id, port):
        return 30000 + port


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def settings():
    return ClusterSettings(image="pulsar-test:latest", startup_timeout=5, max_parallelism=4)


@pytest.fixture
def spec():
    return TopologySpec(cluster_name="t1", num_bookies=2, num_brokers=2)


@pytest.fixture
def make_cluster(runtime, settings):
    """Builds clusters on the fake runtime with a seeded rng."""
    def _make(topology, seed=42):
        return PulsarCluster.for_spec(topology, runtime=runtime, settings=settings,
                                      rng=random.Random(seed))
    return _make


@pytest.fixture
def cluster(make_cluster, spec):
    return make_cluster(spec)
