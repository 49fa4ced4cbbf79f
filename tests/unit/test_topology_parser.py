"""
Unit tests for the YAML topology parser.
"""
import pytest
from pydantic import ValidationError

from ptc.MODELS.topology_spec import FunctionRuntimeType
from ptc.PARSERS.topology_parser import load_topology, parse_topology_string


def test_parse_full_topology():
    content = """
    cluster_name: t1
    num_bookies: 1
    num_brokers: 3
    num_function_workers: 2
    function_runtime_type: THREAD
    volume_mounts:
      - /host/connectors:/pulsar/connectors
      - source: /host/conf
        target: /pulsar/conf/extra
    external_services:
      mysql:
        image: mysql:8
        command: mysqld --skip-log-bin
        environment:
          - MYSQL_ROOT_PASSWORD=pulsar
        ports: [3306]
        ready_port: 3306
    """
    spec = parse_topology_string(content)
    assert spec.cluster_name == "t1"
    assert spec.num_brokers == 3
    assert spec.function_runtime_type == FunctionRuntimeType.THREAD
    assert spec.class_path_volume_mounts == {
        "/host/connectors": "/pulsar/connectors",
        "/host/conf": "/pulsar/conf/extra",
    }
    mysql = spec.external_services["mysql"]
    assert mysql.command == ["mysqld", "--skip-log-bin"]
    assert mysql.environment == {"MYSQL_ROOT_PASSWORD": "pulsar"}
    assert mysql.exposed_ports == [3306]
    assert mysql.ready_port == 3306


def test_parse_minimal():
    spec = parse_topology_string("cluster_name: tiny\nnum_brokers: 1\n")
    assert spec.num_brokers == 1
    assert spec.external_services == {}


def test_negative_count_rejected():
    with pytest.raises(ValidationError):
        parse_topology_string("cluster_name: t1\nnum_bookies: -1\n")


def test_bad_mount_rejected():
    with pytest.raises(ValueError):
        parse_topology_string("cluster_name: t1\nvolume_mounts: ['/only-source']\n")


def test_non_mapping_rejected():
    with pytest.raises(ValueError):
        parse_topology_string("- just\n- a list\n")


def test_load_from_file(tmp_path):
    path = tmp_path / "topology.yml"
    path.write_text("cluster_name: from-file\n")
    assert load_topology(str(path)).cluster_name == "from-file"
