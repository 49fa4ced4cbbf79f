"""
Unit tests for the cluster network handle.
"""
import pytest

from ptc.MANAGERS.network_manager import ClusterNetwork


class TestClusterNetwork:
    """Tests for ClusterNetwork."""

    def test_created_on_construction(self, runtime):
        """Test the network is created immediately."""
        network = ClusterNetwork(runtime, "ptc-a")
        assert runtime.ops("create_network") == ["ptc-a"]
        assert network.network_id == "net-ptc-a"
        assert not network.closed

    def test_close_once(self, runtime):
        """Test close releases exactly once."""
        network = ClusterNetwork(runtime, "ptc-a")
        network.close()
        network.close()
        assert runtime.ops("remove_network") == ["net-ptc-a"]
        assert network.closed

    def test_close_failure_is_contained(self, runtime):
        """Test a release failure is not raised and not retried."""
        network = ClusterNetwork(runtime, "ptc-a")
        runtime.fail_remove_network = True
        network.close()
        network.close()
        assert runtime.ops("remove_network") == ["net-ptc-a"]

    def test_create_failure_raises(self, runtime):
        """Test a creation failure propagates."""
        runtime.fail_create_network = True
        with pytest.raises(RuntimeError):
            ClusterNetwork(runtime, "ptc-a")
