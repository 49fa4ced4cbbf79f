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
Parser for YAML topology files.

Example::

    cluster_name: test
    num_bookies: 2
    num_brokers: 2
    num_function_workers: 1
    function_runtime_type: THREAD
    volume_mounts:
      - ./connectors:/pulsar/connectors
    external_services:
      mysql:
        image: mysql:8
        environment:
          - MYSQL_ROOT_PASSWORD=pulsar
        ports: [3306]
        ready_port: 3306
"""
import shlex
import yaml
from typing import Dict, Any, List

from ..MODELS.topology_spec import ExternalService, TopologySpec


class TopologyParser:
    """
    Builds a ``TopologySpec`` from YAML.
    """
    def parse(self, path: str) -> TopologySpec:
        """
        Parses a topology file.

        :param path: Path to the YAML file.
        :return: The validated topology.
        """
        with open(path, 'r') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> TopologySpec:
        """
        Parses topology YAML.

        :raises ValueError: If the document is not a mapping or fails validation.
        """
        data = yaml.safe_load(content) or {}
        if not isinstance(data, dict):
            raise ValueError("Topology document must be a mapping")

        fields = {k: v for k, v in data.items() if k not in ('volume_mounts', 'external_services')}
        fields['class_path_volume_mounts'] = self._parse_mounts(data.get('volume_mounts', []))
        fields['external_services'] = {
            alias: self._parse_service(spec or {})
            for alias, spec in (data.get('external_services') or {}).items()
        }
        return TopologySpec(**fields)

    def _parse_mounts(self, mounts: Any) -> Dict[str, str]:
        """
        Accepts ``source:target`` strings, ``{source, target}`` mappings or a
        plain ``{source: target}`` mapping.
        """
        if isinstance(mounts, dict):
            return {str(k): str(v) for k, v in mounts.items()}

        parsed = {}
        for m in mounts or []:
            if isinstance(m, str):
                source, sep, target = m.partition(':')
                if not sep or not target:
                    raise ValueError(f"Volume mount {m!r} must look like source:target")
                parsed[source] = target
            elif isinstance(m, dict):
                parsed[m['source']] = m['target']
        return parsed

    def _parse_service(self, spec: Dict[str, Any]) -> ExternalService:
        environment = {}
        env_spec = spec.get('environment', [])
        if isinstance(env_spec, list):
            for e in env_spec:
                if '=' in e:
                    k, v = e.split('=', 1)
                    environment[k] = v
        elif isinstance(env_spec, dict):
            environment = {k: str(v) for k, v in env_spec.items()}

        return ExternalService(
            image=spec.get('image'),
            command=self._to_list(spec.get('command', [])),
            environment=environment,
            exposed_ports=[int(p) for p in spec.get('ports', [])],
            ready_port=spec.get('ready_port'),
        )

    def _to_list(self, val: Any) -> List[str]:
        """
        A string command is split shell-style; a list is kept as is.
        """
        if val is None:
            return []
        if isinstance(val, str):
            return shlex.split(val)
        return [str(v) for v in val]


def load_topology(path: str) -> TopologySpec:
    return TopologyParser().parse(path)


def parse_topology_string(content: str) -> TopologySpec:
    return TopologyParser().parse_from_string(content)
