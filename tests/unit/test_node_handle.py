"""
Unit tests for NodeHandle.
"""
import pytest

from ptc.errors import ExecutionFailure, NodeStartError, NodeStateError
from ptc.MANAGERS.network_manager import ClusterNetwork
from ptc.MANAGERS.node_handle import NodeHandle
from ptc.MODELS.node_definition import ExecResult, NodeRole, NodeState
from ptc.MODELS.topology_spec import ResourceMount


@pytest.fixture
def network(runtime):
    return ClusterNetwork(runtime, "ptc-test")


@pytest.fixture
def node(runtime, network):
    handle = NodeHandle(NodeRole.BROKER, "pulsar-broker-0", runtime, network,
                        image="pulsar-test:latest", command=["bin/run-broker.sh"],
                        exposed_ports=[6650, 8080], ready_port=8080)
    return handle.configure("pulsar-broker-0", {"clusterName": "t1"})


class TestNodeHandle:
    """Tests for NodeHandle."""

    def test_configure(self, node):
        """Test alias and environment are attached."""
        node.configure("broker-alias", {"zkServers": "zookeeper"},
                       [ResourceMount(source="/a", target="/b")])
        spec = node.container_spec()
        assert spec.alias == "broker-alias"
        assert spec.hostname == "broker-alias"
        assert spec.environment == {"clusterName": "t1", "zkServers": "zookeeper"}
        assert spec.network == "ptc-test"
        assert spec.name == "ptc-test-pulsar-broker-0"
        assert spec.mounts[0].target == "/b"

    def test_start_and_stop(self, node, runtime):
        """Test the lifecycle states."""
        assert node.state == NodeState.NOT_STARTED
        node.start()
        assert node.state == NodeState.RUNNING
        assert runtime.ops("ready") == ["pulsar-broker-0"]
        node.stop()
        assert node.state == NodeState.STOPPED
        assert node.container_id is None

    def test_start_twice(self, node):
        """Test starting a running node is rejected."""
        node.start()
        with pytest.raises(NodeStateError):
            node.start()

    def test_stop_is_safe(self, node, runtime):
        """Test stop on a never started or stopped node is a no-op."""
        node.stop()
        node.start()
        node.stop()
        node.stop()
        assert runtime.ops("remove") == ["pulsar-broker-0"]

    def test_start_failure_wrapped(self, node, runtime):
        """Test runtime failures surface as NodeStartError and keep the container for cleanup."""
        runtime.fail_start.add("pulsar-broker-0")
        with pytest.raises(NodeStartError, match="pulsar-broker-0"):
            node.start()
        assert node.state == NodeState.NOT_STARTED
        assert node.container_id is not None
        node.stop()
        assert runtime.ops("remove") == ["pulsar-broker-0"]

    def test_retry_after_failure_replaces_container(self, node, runtime):
        """Test a retried start removes the container left by the failed one."""
        runtime.fail_start.add("pulsar-broker-0")
        with pytest.raises(NodeStartError):
            node.start()
        stale_id = node.container_id

        runtime.fail_start.clear()
        node.start()
        assert node.state == NodeState.RUNNING
        assert node.container_id != stale_id
        assert runtime.ops("create") == ["pulsar-broker-0", "pulsar-broker-0"]
        assert runtime.ops("remove") == ["pulsar-broker-0"]
        assert stale_id not in runtime.running

        node.stop()
        assert runtime.ops("remove") == ["pulsar-broker-0", "pulsar-broker-0"]

    def test_exec_requires_running(self, node):
        """Test exec on a node that is not running."""
        with pytest.raises(ExecutionFailure, match="not-started"):
            node.exec_command(["ls"])

    def test_exec_returns_result(self, node, runtime):
        """Test exec returns the captured result, even for non-zero exits."""
        runtime.exec_results[("false",)] = ExecResult(exit_code=1, stderr="nope")
        node.start()
        result = node.exec_command(["false"])
        assert result.exit_code == 1
        assert not result.succeeded
        assert result.stderr == "nope"

    def test_mapped_port(self, node):
        """Test mapped ports need a container."""
        with pytest.raises(NodeStateError):
            node.mapped_port(8080)
        node.start()
        assert node.mapped_port(8080) == 38080
        assert node.host == "localhost"
