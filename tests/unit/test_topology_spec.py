"""
Unit tests for the topology models.
"""
import pytest
from pydantic import ValidationError

from ptc.MODELS.topology_spec import ExternalService, FunctionRuntimeType, TopologySpec


class TestTopologySpec:
    """Tests for TopologySpec."""

    def test_defaults(self):
        """Test default counts."""
        spec = TopologySpec(cluster_name="t1")
        assert spec.num_bookies == 2
        assert spec.num_brokers == 2
        assert spec.num_function_workers == 0
        assert spec.function_runtime_type == FunctionRuntimeType.PROCESS

    @pytest.mark.parametrize("field", ["num_bookies", "num_brokers", "num_function_workers"])
    def test_negative_counts_rejected(self, field):
        """Test negative counts fail at construction."""
        with pytest.raises(ValidationError):
            TopologySpec(cluster_name="t1", **{field: -1})

    def test_empty_name_rejected(self):
        """Test the cluster name is required."""
        with pytest.raises(ValidationError):
            TopologySpec(cluster_name="")

    def test_immutable(self):
        """Test the topology cannot be changed after construction."""
        spec = TopologySpec(cluster_name="t1")
        with pytest.raises(ValidationError):
            spec.num_brokers = 5

    @pytest.mark.parametrize("alias", ["zookeeper", "pulsar-proxy", "pulsar-broker-0"])
    def test_external_alias_collision(self, alias):
        """Test external services cannot take a node's name."""
        with pytest.raises(ValidationError):
            TopologySpec(cluster_name="t1", external_services={alias: ExternalService(image="x")})

    def test_resource_mounts_sorted(self):
        """Test mounts come back sorted by source."""
        spec = TopologySpec(cluster_name="t1", class_path_volume_mounts={"/b": "/y", "/a": "/x"})
        assert [m.source for m in spec.resource_mounts()] == ["/a", "/b"]
